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

import asyncio

from graphbolt.io._messages import (
    BEGIN,
    COMMIT,
    DISCARD_ALL,
    GOODBYE,
    HELLO,
    PULL_ALL,
    RESET,
    ROLLBACK,
    RUN,
)

from ._packing import (
    _decode,
    record,
    success,
)


class StubServer:
    """ Minimal Bolt server on an ephemeral local port.

    It answers the handshake with a fixed reply and every request with a
    canned success. ``respond=False`` makes it accept connections and then
    stay silent.
    """

    server_agent = "Neo4j/3.5.0"

    def __init__(self, handshake_reply=b"\x00\x00\x00\x03", respond=True,
                 fields=("x",), records=((1,),),
                 bookmark="neo4j:bookmark:v1:tx1"):
        self.handshake_reply = handshake_reply
        self.respond = respond
        self.fields = list(fields)
        self.records = [list(values) for values in records]
        self.bookmark = bookmark
        self.handshakes = []
        self.received = []
        self._server = None
        self.port = None

    @property
    def address(self):
        return "127.0.0.1", self.port

    @property
    def uri(self):
        return "bolt://127.0.0.1:{}".format(self.port)

    async def start(self):
        self._server = await asyncio.start_server(self._handle,
                                                  "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def stop(self):
        self._server.close()
        await self._server.wait_closed()

    async def __aenter__(self):
        return await self.start()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    async def _read_message(self, reader):
        body = bytearray()
        while True:
            size = int.from_bytes(await reader.readexactly(2), "big")
            if size == 0:
                if body:
                    return _decode(body)
                continue
            body += await reader.readexactly(size)

    def _reply(self, tag, fields):
        if tag == HELLO:
            return success({"server": self.server_agent,
                            "connection_id": "bolt-1"})
        if tag == RUN:
            if fields[0] in ("BEGIN", "COMMIT", "ROLLBACK"):
                return success({})
            return success({"fields": self.fields})
        if tag == PULL_ALL:
            statement = self.received[-2][1][0]
            if statement == "COMMIT":
                return success({"bookmark": self.bookmark})
            if statement in ("BEGIN", "ROLLBACK"):
                return success({})
            return (b"".join(record(values) for values in self.records)
                    + success({"bookmark": self.bookmark, "type": "rw"}))
        if tag == COMMIT:
            return success({"bookmark": self.bookmark})
        if tag in (BEGIN, ROLLBACK, DISCARD_ALL, RESET):
            return success({})
        raise AssertionError("Unexpected request 0x%02X" % ord(tag))

    async def _handle(self, reader, writer):
        try:
            self.handshakes.append(await reader.readexactly(20))
            if not self.respond:
                await reader.read()
                return
            writer.write(self.handshake_reply)
            await writer.drain()
            while True:
                tag, fields = await self._read_message(reader)
                self.received.append((tag, fields))
                if tag == GOODBYE:
                    break
                writer.write(self._reply(tag, fields))
                await writer.drain()
        except (asyncio.IncompleteReadError, ConnectionError):
            # client went away
            pass
        finally:
            writer.close()
