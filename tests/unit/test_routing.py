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


import pytest

from graphbolt.api import (
    READ_ACCESS,
    WRITE_ACCESS,
)
from graphbolt.routing import (
    OrderedSet,
    RoundRobin,
    RoutingTable,
)


VALID_ROUTING_RECORD = {
    "ttl": 300,
    "servers": [
        {"role": "ROUTE", "addresses": ["127.0.0.1:9001", "127.0.0.1:9002",
                                        "127.0.0.1:9003"]},
        {"role": "READ", "addresses": ["127.0.0.1:9004", "127.0.0.1:9005"]},
        {"role": "WRITE", "addresses": ["127.0.0.1:9006"]},
    ],
}

VALID_ROUTING_RECORD_WITH_EXTRA_ROLE = {
    "ttl": 300,
    "servers": [
        {"role": "ROUTE", "addresses": ["127.0.0.1:9001", "127.0.0.1:9002",
                                        "127.0.0.1:9003"]},
        {"role": "READ", "addresses": ["127.0.0.1:9004", "127.0.0.1:9005"]},
        {"role": "WRITE", "addresses": ["127.0.0.1:9006"]},
        {"role": "MAGIC", "addresses": ["127.0.0.1:9007"]},
    ],
}

INVALID_ROUTING_RECORD = {
    "X": 1,
}

A = ("a", 7687)
B = ("b", 7687)
C = ("c", 7687)
D = ("d", 7687)


# OrderedSet


def test_ordered_set_repr():
    assert repr(OrderedSet([1, 2, 3])) == "{1, 2, 3}"


def test_ordered_set_keeps_insertion_order():
    s = OrderedSet([3, 1, 2, 1])
    assert list(s) == [3, 1, 2]
    assert len(s) == 3
    assert s[0] == 3


def test_ordered_set_get_item_if_empty():
    with pytest.raises(IndexError):
        _ = OrderedSet([])[0]


def test_ordered_set_add_and_discard():
    s = OrderedSet([1, 2])
    s.add(3)
    s.add(1)
    s.discard(2)
    s.discard(4)
    assert list(s) == [1, 3]


def test_ordered_set_replace():
    s = OrderedSet([1, 2])
    s.replace([3, 4])
    assert list(s) == [3, 4]


# RoundRobin


def test_round_robin_cycles():
    cursor = RoundRobin()
    addresses = OrderedSet([A, B, C])
    assert [cursor.next(addresses) for _ in range(4)] == [A, B, C, A]


def test_round_robin_on_empty_set():
    assert RoundRobin().next(OrderedSet()) is None


# RoutingTable


def test_parse_routing_info():
    table = RoutingTable.parse_routing_info(**VALID_ROUTING_RECORD)
    assert list(table.routers) == [("127.0.0.1", 9001), ("127.0.0.1", 9002),
                                   ("127.0.0.1", 9003)]
    assert list(table.readers) == [("127.0.0.1", 9004), ("127.0.0.1", 9005)]
    assert list(table.writers) == [("127.0.0.1", 9006)]
    assert table.ttl == 300


def test_parse_routing_info_ignores_unknown_roles():
    table = RoutingTable.parse_routing_info(
        **VALID_ROUTING_RECORD_WITH_EXTRA_ROLE
    )
    assert ("127.0.0.1", 9007) not in table


def test_parse_routing_info_applies_default_port():
    table = RoutingTable.parse_routing_info(
        servers=[{"role": "ROUTE", "addresses": ["core1"]}], ttl=1
    )
    assert list(table.routers) == [("core1", 7687)]


def test_parse_invalid_routing_info():
    with pytest.raises(ValueError):
        RoutingTable.parse_routing_info(servers=[INVALID_ROUTING_RECORD],
                                        ttl=300)
    with pytest.raises(ValueError):
        RoutingTable.parse_routing_info(servers=[], ttl="soon")


def test_writers_are_returned_round_robin():
    table = RoutingTable(routers=[A], readers=[A], writers=[A, B, C],
                         ttl=300)
    assert [table.address_for(WRITE_ACCESS) for _ in range(4)] == \
        [A, B, C, A]


def test_readers_and_writers_have_separate_cursors():
    table = RoutingTable(routers=[A], readers=[A, B], writers=[C, D],
                         ttl=300)
    assert table.address_for(READ_ACCESS) == A
    assert table.address_for(WRITE_ACCESS) == C
    assert table.address_for(READ_ACCESS) == B
    assert table.address_for(WRITE_ACCESS) == D


def test_no_address_for_empty_role():
    table = RoutingTable(routers=[A], readers=[A], ttl=300)
    assert table.address_for(WRITE_ACCESS) is None


def test_new_table_without_ttl_is_expired():
    table = RoutingTable(routers=[A])
    assert table.is_expired()
    assert not table.is_fresh(READ_ACCESS)


def test_freshness_depends_on_access_mode():
    table = RoutingTable(routers=[A], readers=[B], ttl=300)
    assert table.is_fresh(READ_ACCESS)
    assert not table.is_fresh(WRITE_ACCESS)


def test_table_without_routers_is_not_fresh():
    table = RoutingTable(readers=[B], writers=[C], ttl=300)
    assert not table.is_fresh(READ_ACCESS)


def test_update_replaces_addresses_and_expiry():
    table = RoutingTable(routers=[A])
    table.update(RoutingTable(routers=[B], readers=[C], writers=[D],
                              ttl=300))
    assert list(table.routers) == [B]
    assert list(table.readers) == [C]
    assert list(table.writers) == [D]
    assert table.ttl == 300
    assert table.is_fresh(WRITE_ACCESS)


def test_update_with_changed_list_resets_cursor():
    table = RoutingTable(routers=[A], readers=[A], writers=[A, B, C],
                         ttl=300)
    assert table.address_for(WRITE_ACCESS) == A
    table.update(RoutingTable(routers=[A], readers=[A], writers=[B, C, D],
                              ttl=300))
    assert table.address_for(WRITE_ACCESS) == B


def test_update_with_same_list_keeps_cursor():
    table = RoutingTable(routers=[A], readers=[A], writers=[A, B, C],
                         ttl=300)
    assert table.address_for(WRITE_ACCESS) == A
    table.update(RoutingTable(routers=[A], readers=[A], writers=[A, B, C],
                              ttl=300))
    assert table.address_for(WRITE_ACCESS) == B


def test_forget_removes_reader_and_writer():
    table = RoutingTable(routers=[A], readers=[A, B], writers=[A, C],
                         ttl=300)
    table.forget(A)
    assert list(table.routers) == [A]
    assert list(table.readers) == [B]
    assert list(table.writers) == [C]


def test_forget_writer_keeps_reader():
    table = RoutingTable(routers=[A], readers=[B], writers=[B], ttl=300)
    table.forget_writer(B)
    assert list(table.readers) == [B]
    assert list(table.writers) == []
    assert not table.is_fresh(WRITE_ACCESS)


def test_forget_router():
    table = RoutingTable(routers=[A, B])
    table.forget_router(A)
    assert list(table.routers) == [B]


def test_servers():
    table = RoutingTable(routers=[A], readers=[B], writers=[C])
    assert table.servers() == {A, B, C}
