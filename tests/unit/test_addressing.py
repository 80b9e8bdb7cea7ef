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


from socket import (
    AF_INET,
    AF_INET6,
)

import pytest

from graphbolt.addressing import (
    Address,
    IPv4Address,
    IPv6Address,
)


@pytest.mark.parametrize(("test_input", "expected"), (
    (("127.0.0.1", 7687), IPv4Address),
    (("localhost", 7687), IPv4Address),
    (("::1", 7687, 0, 0), IPv6Address),
))
def test_address_initialization(test_input, expected):
    address = Address(test_input)
    assert address.host == test_input[0]
    assert address.port == test_input[1]
    assert isinstance(address, expected)
    assert address.family == (AF_INET6 if expected is IPv6Address
                              else AF_INET)


@pytest.mark.parametrize("test_input", (
    ("127.0.0.1",),
    ("127.0.0.1", 7687, 0),
))
def test_address_rejects_other_lengths(test_input):
    with pytest.raises(ValueError):
        Address(test_input)


def test_address_is_not_copied():
    address = Address(("localhost", 7687))
    assert Address(address) is address


@pytest.mark.parametrize(("test_input", "expected"), (
    ("localhost:7687", ("localhost", 7687)),
    ("127.0.0.1:9001", ("127.0.0.1", 9001)),
    ("[::1]:7687", ("::1", 7687, 0, 0)),
    ("core1", ("core1", 7687)),
    ("[::1]", ("::1", 7687, 0, 0)),
    (":7688", ("localhost", 7688)),
))
def test_address_parse(test_input, expected):
    assert Address.parse(test_input, default_port=7687) == expected


def test_address_parse_requires_string():
    with pytest.raises(TypeError):
        Address.parse(("localhost", 7687))


def test_address_parse_list():
    assert Address.parse_list("core1:7687 core2", "core3:7688",
                              default_port=7687) == [
        ("core1", 7687), ("core2", 7687), ("core3", 7688),
    ]


@pytest.mark.parametrize(("address", "expected"), (
    (Address(("localhost", 7687)), "localhost:7687"),
    (Address(("::1", 7687, 0, 0)), "[::1]:7687"),
))
def test_address_str(address, expected):
    assert str(address) == expected


def test_addresses_are_hashable_by_value():
    table = {Address(("core1", 7687)): "a"}
    assert table[Address.parse("core1:7687")] == "a"
    assert repr(Address(("core1", 7687))) == "IPv4Address(('core1', 7687))"
