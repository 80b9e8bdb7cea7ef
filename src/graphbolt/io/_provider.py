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


""" Connection providers sit between sessions and the connection pool.

A provider decides which server a unit of work runs against. The direct
provider always answers with its single address. The routing provider
keeps a routing table for a cluster, refreshes it through discovery and
picks a reader or writer round-robin.
"""


from __future__ import annotations

import asyncio
import logging
import typing as t

from ..addressing import Address
from ..api import (
    check_access_mode,
    READ_ACCESS,
)
from ..data import Record
from ..exceptions import (
    ClientError,
    DatabaseError,
    ForbiddenOnReadOnlyDatabase,
    NotALeader,
    ProtocolError,
    ReadServiceUnavailable,
    ResourceExhausted,
    RoutingServiceUnavailable,
    ServiceUnavailable,
    TransientError,
    WriteServiceUnavailable,
)
from ..routing import RoutingTable


log = logging.getLogger("graphbolt.routing")


DISCOVERY_QUERY = "CALL dbms.cluster.routing.getRoutingTable($context)"

PROCEDURE_NOT_FOUND = "Neo.ClientError.Procedure.ProcedureNotFound"


class DirectConnectionProvider:
    """ Hands out connections to one fixed address. """

    def __init__(self, pool, address):
        self._pool = pool
        self._address = Address(address)

    def __repr__(self):
        return "<{} address={!r}>".format(self.__class__.__name__,
                                          self._address)

    @property
    def address(self) -> Address:
        return self._address

    @property
    def pool(self):
        return self._pool

    async def acquire(self, access_mode=None, timeout=None):
        return await self._pool.acquire(self._address, access_mode, timeout)

    async def release(self, cx):
        await self._pool.release(cx)

    async def verify_connectivity(self):
        cx = await self.acquire()
        await self.release(cx)

    async def close(self):
        await self._pool.close()


class RoutingConnectionProvider:
    """ Hands out connections to cluster members chosen by access mode.

    The routing table is refreshed on demand, when it has expired or has
    no server for the requested mode. Refreshes and failure-triggered
    removals are serialised by one lock per provider.

    :param pool: :class:`graphbolt.io.ConnectionPool`
    :param initial_routers: seed router addresses, used for the first
        discovery and as a last resort when every known router failed
    :param routing_context: parameters passed to the discovery procedure
    """

    def __init__(self, pool, initial_routers, routing_context=None):
        self._pool = pool
        self._initial_routers = [Address(router)
                                 for router in initial_routers]
        self._routing_context = dict(routing_context or {})
        self._routing_table = RoutingTable(routers=self._initial_routers)
        self._refresh_lock = asyncio.Lock()

    def __repr__(self):
        return "<{} table={!r}>".format(self.__class__.__name__,
                                        self._routing_table)

    @property
    def routing_table(self) -> RoutingTable:
        return self._routing_table

    @property
    def initial_routers(self) -> t.List[Address]:
        return list(self._initial_routers)

    @property
    def pool(self):
        return self._pool

    async def ensure_fresh(self, access_mode) -> bool:
        """ Refresh the routing table if it is not fresh for the given
        access mode.

        The freshness check is repeated after taking the refresh lock, so
        concurrent callers trigger a single discovery.

        :return: :const:`True` if a refresh took place
        :raise RoutingServiceUnavailable: if no router answered
        """
        if self._routing_table.is_fresh(access_mode):
            return False
        async with self._refresh_lock:
            if self._routing_table.is_fresh(access_mode):
                return False
            await self._update_routing_table()
        await self._update_connection_pool()
        return True

    async def _update_routing_table(self):
        tried = set()
        for router in list(self._routing_table.routers):
            tried.add(router)
            if await self._update_routing_table_from(router):
                return
        # last resort, seed routers the table no longer lists
        for router in self._initial_routers:
            if router in tried:
                continue
            tried.add(router)
            if await self._update_routing_table_from(router):
                return
        log.error("Unable to retrieve routing information")
        raise RoutingServiceUnavailable(
            "Unable to retrieve routing information"
        )

    async def _update_routing_table_from(self, router) -> bool:
        new_routing_table = await self.fetch_routing_table(router)
        if new_routing_table is None:
            log.warning("Failed to fetch routing info from %s, "
                        "forgetting router", router)
            self._routing_table.forget_router(router)
            return False
        self._routing_table.update(new_routing_table)
        log.debug("[#0000]  _: <ROUTING> updated table from %s", router)
        return True

    async def fetch_routing_info(self, address) -> t.List[Record]:
        """ Run the discovery procedure against one router.

        :return: the records returned by the procedure
        :raise ServiceUnavailable: if the server does not support routing
            or could not be reached
        """
        cx = await self._pool.acquire(address, READ_ACCESS)
        try:
            protocol = cx.protocol
            run, pull = await protocol.run_auto_commit(
                cx, DISCOVERY_QUERY, {"context": self._routing_context}
            )
            await cx.fetch_until(run, pull)
        except ClientError as error:
            if error.code == PROCEDURE_NOT_FOUND:
                raise ServiceUnavailable(
                    "Server {!r} does not support routing".format(address)
                ) from error
            raise
        finally:
            await self._pool.release(cx)
        keys = run.metadata.get("fields", ())
        return [Record(keys, values) for values in pull.records]

    async def fetch_routing_table(self, address) -> t.Optional[RoutingTable]:
        """ Fetch a routing table from one router.

        :return: a new :class:`RoutingTable`, or :const:`None` if the
            router could not provide usable routing information
        :raise ServiceUnavailable: if the server does not support routing
        :raise ClientError: if the server refused the request
        """
        try:
            records = await self.fetch_routing_info(address)
        except ServiceUnavailable as error:
            if isinstance(error.__cause__, ClientError):
                raise
            log.debug("[#0000]  _: <ROUTING> %s unreachable (%r)",
                      address, error)
            return None
        except (ResourceExhausted, ProtocolError, TransientError,
                DatabaseError) as error:
            log.debug("[#0000]  _: <ROUTING> discovery against %s failed "
                      "(%r)", address, error)
            return None
        if not records:
            log.debug("[#0000]  _: <ROUTING> no routing info returned "
                      "from %s", address)
            return None
        record = records[0]
        try:
            new_routing_table = RoutingTable.parse_routing_info(
                servers=record.get("servers"), ttl=record.get("ttl")
            )
        except ValueError:
            log.debug("[#0000]  _: <ROUTING> malformed routing info from %s",
                      address)
            return None
        if not new_routing_table.routers:
            log.debug("[#0000]  _: <ROUTING> no routing servers returned "
                      "from %s", address)
            return None
        if not new_routing_table.readers:
            log.debug("[#0000]  _: <ROUTING> no read servers returned "
                      "from %s", address)
            return None
        return new_routing_table

    async def _update_connection_pool(self):
        servers = self._routing_table.servers()
        for address in self._pool.addresses():
            if address not in servers:
                await self._pool.purge(address)

    def address_for(self, access_mode) -> t.Optional[Address]:
        return self._routing_table.address_for(access_mode)

    async def acquire(self, access_mode=None, timeout=None):
        """ Acquire a connection to a server able to serve the access mode.

        Servers that cannot be reached are forgotten and the next one is
        tried.

        :raise ReadServiceUnavailable: if no reader is left
        :raise WriteServiceUnavailable: if no writer is left
        """
        access_mode = check_access_mode(access_mode)
        await self.ensure_fresh(access_mode)
        while True:
            address = self.address_for(access_mode)
            if address is None:
                if access_mode == READ_ACCESS:
                    raise ReadServiceUnavailable(
                        "No read service currently available"
                    )
                raise WriteServiceUnavailable(
                    "No write service currently available"
                )
            try:
                cx = await self._pool.acquire(address, access_mode, timeout)
            except ServiceUnavailable as error:
                log.debug("[#0000]  _: <ROUTING> failed to connect to %s "
                          "(%r)", address, error)
                await self.forget(address)
            else:
                cx.on_failure = self._on_connection_failure
                return cx

    async def release(self, cx):
        await self._pool.release(cx)

    async def forget(self, address):
        """ Remove an unreachable server from readers and writers and
        drop its pooled connections.
        """
        log.debug("[#0000]  _: <ROUTING> forgetting %s", address)
        async with self._refresh_lock:
            self._routing_table.forget(address)
        await self._pool.purge(address)

    async def forget_writer(self, address):
        log.debug("[#0000]  _: <ROUTING> forgetting writer %s", address)
        async with self._refresh_lock:
            self._routing_table.forget_writer(address)

    async def _on_connection_failure(self, cx, error):
        if isinstance(error, (NotALeader, ForbiddenOnReadOnlyDatabase)):
            await self.forget_writer(cx.address)
        elif isinstance(error, (OSError, EOFError, ServiceUnavailable)):
            await self.forget(cx.address)

    async def verify_connectivity(self):
        await self.ensure_fresh(READ_ACCESS)

    async def close(self):
        await self._pool.close()
