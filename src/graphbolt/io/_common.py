# Copyright (c) "Neo4j"
# Neo4j Sweden AB [https://neo4j.com]
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


from __future__ import annotations

import logging
import typing as t
from struct import pack as struct_pack

from ..packstream import (
    Packer,
    UnpackableBuffer,
    Unpacker,
)


log = logging.getLogger("graphbolt.io")


class MessageInbox:
    """ Reads whole chunked messages from a stream reader and decodes the
    structure they carry.

    Transport errors (``OSError``, ``asyncio.IncompleteReadError``) and
    decode errors (:class:`graphbolt.packstream.UnpackError`) are raised to
    the caller, which decides what they mean for the connection.
    """

    def __init__(self, reader, local_port=0):
        self._reader = reader
        self._local_port = local_port
        self._buffer = UnpackableBuffer()
        self._unpacker = Unpacker(self._buffer)

    async def _buffer_one_message(self):
        self._buffer.reset()
        while True:
            chunk_size = int.from_bytes(await self._reader.readexactly(2),
                                        "big")
            if chunk_size == 0:
                if self._buffer.used:
                    # end marker for the message
                    return
                log.debug("[#%04X]  S: <NOOP>", self._local_port)
                continue
            self._buffer.append(await self._reader.readexactly(chunk_size))

    async def pop(self) -> t.Tuple[bytes, list]:
        await self._buffer_one_message()
        size, tag = self._unpacker.unpack_structure_header()
        fields = [self._unpacker.unpack() for _ in range(size)]
        return tag, fields


class Outbox:
    """ Packs messages and splits them into chunks, ready to be written in
    one go on flush.
    """

    def __init__(self, writer, max_chunk_size=16384):
        self._max_chunk_size = max_chunk_size
        self._chunked_data = bytearray()
        self._buffer = bytearray()
        self._packer = Packer(self)
        self._writer = writer

    def write(self, data):
        # Packer target
        self._buffer += data

    def max_chunk_size(self):
        return self._max_chunk_size

    def _chunk_data(self):
        data = self._buffer
        for start in range(0, len(data), self._max_chunk_size):
            chunk = data[start:start + self._max_chunk_size]
            self._chunked_data += struct_pack(">H", len(chunk))
            self._chunked_data += chunk
        self._buffer = bytearray()

    def append_message(self, tag, fields):
        try:
            self._packer.pack_struct(tag, fields)
        except (TypeError, ValueError, OverflowError):
            self._buffer = bytearray()
            raise
        self._chunk_data()
        self._chunked_data += b"\x00\x00"

    def has_data(self) -> bool:
        return bool(self._chunked_data)

    async def flush(self) -> bool:
        data = self._chunked_data
        if not data:
            return False
        self._chunked_data = bytearray()
        self._writer.write(bytes(data))
        await self._writer.drain()
        return True
