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

import typing as t
from collections.abc import MutableSet
from contextlib import suppress
from logging import getLogger
from time import perf_counter

from .addressing import (
    Address,
    DEFAULT_PORT,
)
from .api import READ_ACCESS


log = getLogger("graphbolt.routing")


class OrderedSet(MutableSet):
    def __init__(self, elements=()):
        # dicts keep insertion order starting with Python 3.7
        self._elements = dict.fromkeys(elements)

    def __repr__(self):
        return "{%s}" % ", ".join(map(repr, self._elements))

    def __contains__(self, element):
        return element in self._elements

    def __iter__(self):
        return iter(self._elements)

    def __len__(self):
        return len(self._elements)

    def __getitem__(self, index):
        return list(self._elements.keys())[index]

    def add(self, element):
        self._elements[element] = None

    def discard(self, element):
        with suppress(KeyError):
            del self._elements[element]

    def replace(self, elements=()):
        e = self._elements
        e.clear()
        e.update(dict.fromkeys(elements))


class RoundRobin:
    """ Cursor cycling over an ordered set of addresses. The cursor
    survives removals and is reset only when asked to.
    """

    def __init__(self):
        self._index = 0

    def reset(self):
        self._index = 0

    def next(self, addresses: OrderedSet) -> t.Optional[Address]:
        size = len(addresses)
        if size == 0:
            return None
        address = addresses[self._index % size]
        self._index = (self._index + 1) % size
        return address


class RoutingTable:
    """ Cluster topology: routers, readers and writers, with an expiry.

    Address lists change only through :meth:`update` (a refresh) or through
    :meth:`forget` and :meth:`forget_writer` (removal after a failure).
    """

    @classmethod
    def parse_routing_info(cls, *, servers, ttl):
        """ Parse the records returned from the procedure call and
        return a new RoutingTable instance.
        """
        routers = []
        readers = []
        writers = []
        try:
            for server in servers:
                role = server["role"]
                addresses = []
                for address in server["addresses"]:
                    addresses.append(Address.parse(address,
                                                   default_port=DEFAULT_PORT))
                if role == "ROUTE":
                    routers.extend(addresses)
                elif role == "READ":
                    readers.extend(addresses)
                elif role == "WRITE":
                    writers.extend(addresses)
            ttl = float(ttl)
        except (KeyError, TypeError, ValueError):
            raise ValueError("Cannot parse routing info")
        else:
            return cls(routers=routers, readers=readers, writers=writers,
                       ttl=ttl)

    def __init__(self, *, routers=(), readers=(), writers=(), ttl=0):
        self.routers = OrderedSet(routers)
        self.readers = OrderedSet(readers)
        self.writers = OrderedSet(writers)
        self.last_updated_time = perf_counter()
        self.ttl = ttl
        self._read_cursor = RoundRobin()
        self._write_cursor = RoundRobin()

    def __repr__(self):
        return ("RoutingTable(routers=%r, readers=%r, writers=%r, "
                "last_updated_time=%r, ttl=%r)" % (
                    self.routers, self.readers, self.writers,
                    self.last_updated_time, self.ttl,
                ))

    def __contains__(self, address):
        return (address in self.routers or address in self.readers
                or address in self.writers)

    @property
    def expiry(self) -> float:
        return self.last_updated_time + self.ttl

    def is_expired(self) -> bool:
        return self.expiry <= perf_counter()

    def is_fresh(self, mode) -> bool:
        """ Indicator for whether routing information is still usable for
        the given access mode.
        """
        if mode == READ_ACCESS:
            has_server_for_mode = bool(self.readers)
        else:
            has_server_for_mode = bool(self.writers)
        fresh = (not self.is_expired() and bool(self.routers)
                 and has_server_for_mode)
        log.debug("[#0000]  _: <ROUTING> table fresh for %s: %r", mode, fresh)
        return fresh

    def address_for(self, mode) -> t.Optional[Address]:
        """ Next address for the given access mode, round-robin. """
        if mode == READ_ACCESS:
            return self._read_cursor.next(self.readers)
        return self._write_cursor.next(self.writers)

    def update(self, new_routing_table):
        """ Update the current routing table with new routing information
        from a replacement table. Round-robin cursors restart when their
        list changed.
        """
        if list(self.readers) != list(new_routing_table.readers):
            self._read_cursor.reset()
        if list(self.writers) != list(new_routing_table.writers):
            self._write_cursor.reset()
        self.routers.replace(new_routing_table.routers)
        self.readers.replace(new_routing_table.readers)
        self.writers.replace(new_routing_table.writers)
        self.last_updated_time = perf_counter()
        self.ttl = new_routing_table.ttl
        log.debug("[#0000]  S: <ROUTING> table=%r", self)

    def forget(self, address):
        """ Remove an unreachable address from readers and writers. """
        self.readers.discard(address)
        self.writers.discard(address)

    def forget_writer(self, address):
        """ Remove an address that is no longer allowed to take writes. """
        self.writers.discard(address)

    def forget_router(self, address):
        self.routers.discard(address)

    def servers(self):
        return set(self.routers) | set(self.writers) | set(self.readers)
