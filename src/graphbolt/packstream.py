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


""" PackStream is the binary value format carried inside Bolt messages.

Only the basic values are supported: None, booleans, integers, floats,
strings, bytes, lists, dicts and structures. Structures other than
messages are returned as raw :class:`Structure` values.
"""


from __future__ import annotations

import typing as t
from struct import (
    pack as struct_pack,
    unpack as struct_unpack,
)


PACKED_UINT_8 = [struct_pack(">B", value) for value in range(0x100)]
PACKED_UINT_16 = [struct_pack(">H", value) for value in range(0x10000)]

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63

# (tiny marker base, 8-bit marker, 16-bit marker, 32-bit marker)
_STRING_MARKERS = (0x80, 0xD0, 0xD1, 0xD2)
_LIST_MARKERS = (0x90, 0xD4, 0xD5, 0xD6)
_MAP_MARKERS = (0xA0, 0xD8, 0xD9, 0xDA)
_BYTES_MARKERS = (None, 0xCC, 0xCD, 0xCE)

_SIZE_FORMATS = {1: ">B", 2: ">H", 4: ">I"}


class UnpackError(ValueError):
    """ Raised when a byte sequence is not valid PackStream. """


class Structure:
    """ A tagged sequence of fields. Bolt messages and graph values are
    both carried as structures.
    """

    def __init__(self, tag: bytes, *fields):
        self.tag = tag
        self.fields = list(fields)

    def __repr__(self):
        return "Structure[0x%02X](%s)" % (ord(self.tag),
                                         ", ".join(map(repr, self.fields)))

    def __eq__(self, other):
        if not isinstance(other, Structure):
            return NotImplemented
        return self.tag == other.tag and self.fields == other.fields

    def __len__(self):
        return len(self.fields)

    def __getitem__(self, key):
        return self.fields[key]


class Packer:

    def __init__(self, stream):
        self.stream = stream
        self._write = self.stream.write

    def pack(self, value):
        write = self._write

        if value is None:
            write(b"\xC0")
        elif value is True:
            write(b"\xC3")
        elif value is False:
            write(b"\xC2")
        elif isinstance(value, float):
            write(b"\xC1")
            write(struct_pack(">d", value))
        elif isinstance(value, int):
            self._pack_int(value)
        elif isinstance(value, str):
            encoded = value.encode("utf-8")
            self._pack_header(_STRING_MARKERS, len(encoded))
            write(encoded)
        elif isinstance(value, (bytes, bytearray)):
            self._pack_header(_BYTES_MARKERS, len(value))
            write(bytes(value))
        elif isinstance(value, (list, tuple)):
            self._pack_header(_LIST_MARKERS, len(value))
            for item in value:
                self.pack(item)
        elif isinstance(value, dict):
            self._pack_header(_MAP_MARKERS, len(value))
            for key, item in value.items():
                if not isinstance(key, str):
                    raise TypeError("Map keys must be strings, not %s"
                                    % type(key).__name__)
                self.pack(key)
                self.pack(item)
        elif isinstance(value, Structure):
            self.pack_struct(value.tag, value.fields)
        else:
            raise ValueError("Values of type %s are not supported"
                             % type(value).__name__)

    def _pack_int(self, value):
        write = self._write
        if -0x10 <= value < 0x80:
            write(PACKED_UINT_8[value % 0x100])
        elif -0x80 <= value < 0x80:
            write(b"\xC8")
            write(PACKED_UINT_8[value % 0x100])
        elif -0x8000 <= value < 0x8000:
            write(b"\xC9")
            write(PACKED_UINT_16[value % 0x10000])
        elif -0x80000000 <= value < 0x80000000:
            write(b"\xCA")
            write(struct_pack(">i", value))
        elif INT64_MIN <= value < INT64_MAX:
            write(b"\xCB")
            write(struct_pack(">q", value))
        else:
            raise OverflowError("Integer %s out of range" % value)

    def _pack_header(self, markers, size):
        write = self._write
        tiny, m8, m16, m32 = markers
        if tiny is not None and size <= 0x0F:
            write(PACKED_UINT_8[tiny | size])
        elif size < 0x100:
            write(PACKED_UINT_8[m8])
            write(PACKED_UINT_8[size])
        elif size < 0x10000:
            write(PACKED_UINT_8[m16])
            write(PACKED_UINT_16[size])
        elif size < 0x100000000:
            write(PACKED_UINT_8[m32])
            write(struct_pack(">I", size))
        else:
            raise OverflowError("Header size %d out of range" % size)

    def pack_struct(self, signature, fields):
        if len(signature) != 1 or not isinstance(signature, bytes):
            raise ValueError("Structure signature must be a single byte value")
        size = len(fields)
        if size > 0x0F:
            raise OverflowError("Structure size out of range")
        self._write(PACKED_UINT_8[0xB0 | size])
        self._write(signature)
        for field in fields:
            self.pack(field)


class Unpacker:

    def __init__(self, unpackable: UnpackableBuffer):
        self.unpackable = unpackable

    def read(self, n=1) -> memoryview:
        return self.unpackable.read(n)

    def _read_size(self, n_bytes):
        size, = struct_unpack(_SIZE_FORMATS[n_bytes], self.read(n_bytes))
        return size

    def unpack(self):
        marker = self.unpackable.read_u8()

        # Tiny Integer
        if 0x00 <= marker <= 0x7F:
            return marker
        elif 0xF0 <= marker <= 0xFF:
            return marker - 0x100

        elif marker == 0xC0:
            return None
        elif marker == 0xC1:
            value, = struct_unpack(">d", self.read(8))
            return value
        elif marker == 0xC2:
            return False
        elif marker == 0xC3:
            return True

        # Integer
        elif marker == 0xC8:
            return struct_unpack(">b", self.read(1))[0]
        elif marker == 0xC9:
            return struct_unpack(">h", self.read(2))[0]
        elif marker == 0xCA:
            return struct_unpack(">i", self.read(4))[0]
        elif marker == 0xCB:
            return struct_unpack(">q", self.read(8))[0]

        # Bytes
        elif 0xCC <= marker <= 0xCE:
            size = self._read_size(1 << (marker - 0xCC))
            return self.read(size).tobytes()

        # String
        elif 0x80 <= marker <= 0x8F:
            return self._decode_str(marker & 0x0F)
        elif 0xD0 <= marker <= 0xD2:
            return self._decode_str(self._read_size(1 << (marker - 0xD0)))

        # List
        elif 0x90 <= marker <= 0x9F:
            return [self.unpack() for _ in range(marker & 0x0F)]
        elif 0xD4 <= marker <= 0xD6:
            size = self._read_size(1 << (marker - 0xD4))
            return [self.unpack() for _ in range(size)]

        # Map
        elif 0xA0 <= marker <= 0xAF:
            return self._unpack_map_items(marker & 0x0F)
        elif 0xD8 <= marker <= 0xDA:
            return self._unpack_map_items(
                self._read_size(1 << (marker - 0xD8))
            )

        # Structure
        elif 0xB0 <= marker <= 0xBF:
            tag = self.read(1).tobytes()
            return Structure(tag, *(self.unpack()
                                    for _ in range(marker & 0x0F)))

        else:
            raise UnpackError("Unknown PackStream marker %02X" % marker)

    def _decode_str(self, size):
        try:
            return self.read(size).tobytes().decode("utf-8")
        except UnicodeDecodeError as error:
            raise UnpackError("Invalid UTF-8 string") from error

    def _unpack_map_items(self, size):
        value = {}
        for _ in range(size):
            key = self.unpack()
            if not isinstance(key, str):
                raise UnpackError("Map keys must be strings, found %r"
                                  % type(key).__name__)
            value[key] = self.unpack()
        return value

    def unpack_structure_header(self) -> t.Tuple[int, bytes]:
        marker = self.unpackable.read_u8()
        if 0xB0 <= marker <= 0xBF:
            return marker & 0x0F, self.read(1).tobytes()
        raise UnpackError("Expected structure, found marker %02X" % marker)


class UnpackableBuffer:
    """ A growable byte buffer holding one complete message at a time,
    with a read pointer. Reading past the end of the received data raises
    :class:`UnpackError`.
    """

    initial_capacity = 8192

    def __init__(self, data=None):
        if data is None:
            self.data = bytearray(self.initial_capacity)
            self.used = 0
        else:
            self.data = bytearray(data)
            self.used = len(self.data)
        self.p = 0

    def reset(self):
        self.used = 0
        self.p = 0

    def remaining(self) -> int:
        return self.used - self.p

    def read(self, n=1) -> memoryview:
        q = self.p + n
        if q > self.used:
            raise UnpackError("Unexpected end of message")
        subview = memoryview(self.data)[self.p:q]
        self.p = q
        return subview

    def read_u8(self) -> int:
        if self.used - self.p < 1:
            raise UnpackError("Unexpected end of message")
        value = self.data[self.p]
        self.p += 1
        return value

    def append(self, data: bytes):
        end = self.used + len(data)
        if end > len(self.data):
            # never resize in place, views handed out by read() may be alive
            grown = bytearray(max(end, 2 * len(self.data)))
            grown[:self.used] = self.data[:self.used]
            self.data = grown
        self.data[self.used:end] = data
        self.used = end
