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
import logging
import typing as t
from collections import deque
from time import perf_counter

from ..addressing import Address
from ..conf import PoolConfig
from ..exceptions import (
    ConnectionAcquisitionTimeout,
    GraphError,
    ProtocolError,
    ServiceUnavailable,
)
from ._bolt import ConnectionState


log = logging.getLogger("graphbolt.pool")


# Handed to a waiter in place of a connection: a slot has been reserved
# for it and it may open a new connection.
_SLOT = object()


class AddressPool:
    """ The connections to a single address.

    :param opener: coroutine function taking an address and returning an
        open and ready connection
    :param address: the remote address for which this pool operates
    :param pool_config: :class:`graphbolt.conf.PoolConfig`

    Bookkeeping (idle deque, in-use set, reservations, waiters) never
    spans an ``await``, so acquire and release are mutually exclusive on
    the event loop.
    """

    def __init__(self, opener, address, pool_config):
        self._opener = opener
        self._address = Address(address)
        self._config = pool_config
        self._idle = deque()
        self._in_use = set()
        self._reservations = 0
        self._waiters = deque()
        self.closed = False

    def __repr__(self):
        return "<{} addr'{}' [{}{}{}]>".format(
            self.__class__.__name__,
            self.address,
            "|" * len(self._in_use),
            "." * len(self._idle),
            " " * max(0, self.max_size - self.size),
        )

    def __contains__(self, cx):
        return cx in self._in_use or cx in self._idle

    @property
    def address(self) -> Address:
        return self._address

    @property
    def max_size(self) -> int:
        return self._config.max_connection_pool_size

    @property
    def in_use(self) -> int:
        return len(self._in_use)

    @property
    def idle(self) -> int:
        return len(self._idle)

    @property
    def size(self) -> int:
        """ Connections owned by this pool, idle, in use or being opened.
        """
        return len(self._idle) + len(self._in_use) + self._reservations

    @property
    def waiting(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    def _needs_probe(self, cx) -> bool:
        threshold = self._config.idle_time_before_connection_test
        return threshold is not None and cx.idle_time() > threshold

    async def acquire(self, timeout=None):
        """ Acquire a connection for exclusive use.

        In the simplest case, this returns an idle connection. If none is
        idle and the pool is not full, a new connection is opened. If the
        pool is full, the caller waits, in arrival order, for a released
        connection or a free slot.

        :param timeout: seconds to wait for a full pool, forever if
            :const:`None`
        :raise ConnectionAcquisitionTimeout: if the pool stayed full for
            the whole timeout
        """
        deadline = None if timeout is None else perf_counter() + timeout
        reserved = False
        while True:
            if not reserved and self._idle:
                # Plan A: select an idle connection from the pool
                cx = self._idle.popleft()
                self._in_use.add(cx)
                if cx.defunct or cx.stale():
                    if cx.broken:
                        log.warning("[#%04X]  _: <POOL> disposing of broken "
                                    "connection to %s", cx.local_port,
                                    self.address)
                    await self._dispose(cx)
                    continue
                if self._needs_probe(cx):
                    try:
                        await cx.reset()
                    except (ServiceUnavailable, ProtocolError,
                            GraphError) as error:
                        log.debug("[#%04X]  _: <POOL> liveness probe "
                                  "failed (%r)", cx.local_port, error)
                        await self._dispose(cx)
                        continue
                    except BaseException:
                        # abandoned mid-probe, the connection is unusable
                        self._in_use.discard(cx)
                        self._hand_off_slot()
                        await cx.close()
                        raise
                cx.state = ConnectionState.IN_USE
                return cx
            if reserved or self.size < self.max_size:
                # Plan B: open a new connection in a reserved slot
                if not reserved:
                    self._reservations += 1
                return await self._open_reserved()
            # Plan C: wait for a connection or a slot to become free
            handed = await self._wait(deadline, timeout)
            if handed is _SLOT:
                reserved = True
            else:
                handed.state = ConnectionState.IN_USE
                return handed

    async def _open_reserved(self):
        try:
            cx = await self._opener(self.address)
        except BaseException:
            self._reservations -= 1
            self._hand_off_slot()
            raise
        self._reservations -= 1
        self._in_use.add(cx)
        cx.state = ConnectionState.IN_USE
        return cx

    async def _wait(self, deadline, timeout):
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        remaining = None
        if deadline is not None:
            remaining = max(0.0, deadline - perf_counter())
        log.debug("[#0000]  _: <POOL> waiting for %s (%r)", self.address, self)
        try:
            await asyncio.wait({waiter}, timeout=remaining)
        except asyncio.CancelledError:
            self._abandon(waiter)
            raise
        if waiter.done():
            return waiter.result()
        self._abandon(waiter)
        raise ConnectionAcquisitionTimeout(
            "Failed to obtain a connection to {} from the pool within "
            "{!r}s".format(self.address, timeout)
        )

    def _abandon(self, waiter):
        """ Withdraw a waiter, passing on anything already handed to it. """
        if waiter.done():
            if not waiter.cancelled() and waiter.exception() is None:
                handed = waiter.result()
                if handed is _SLOT:
                    self._reservations -= 1
                    self._hand_off_slot()
                else:
                    self._in_use.discard(handed)
                    self._hand_off(handed)
            return
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass
        waiter.cancel()

    def _next_waiter(self):
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                return waiter
        return None

    def _hand_off(self, cx):
        """ Give a healthy connection to the first waiter, or put it back
        in the idle set.
        """
        waiter = self._next_waiter()
        if waiter is not None:
            self._in_use.add(cx)
            waiter.set_result(cx)
        else:
            cx.state = ConnectionState.READY
            cx.idle_since = perf_counter()
            self._idle.append(cx)

    def _hand_off_slot(self):
        """ Tell the first waiter that a slot has freed up. """
        if self.closed or self.size >= self.max_size:
            return
        waiter = self._next_waiter()
        if waiter is not None:
            self._reservations += 1
            waiter.set_result(_SLOT)

    async def _dispose(self, cx):
        self._in_use.discard(cx)
        self._hand_off_slot()
        await cx.close()

    async def release(self, cx):
        """ Return a connection to the pool. Broken, closed or expired
        connections are closed and their slot freed.

        :raise ValueError: if the connection is not in use in this pool
        """
        if cx not in self._in_use:
            raise ValueError("Connection is not in use in this pool")
        cx.on_failure = None
        if cx.defunct or self.closed or cx.stale():
            if cx.broken:
                log.warning("[#%04X]  _: <POOL> disposing of broken "
                            "connection to %s", cx.local_port, self.address)
            await self._dispose(cx)
            return
        if cx.pending():
            # unread replies would be handed to the next owner
            log.debug("[#%04X]  _: <POOL> discarding connection with %d "
                      "pending responses", cx.local_port, cx.pending())
            await self._dispose(cx)
            return
        self._in_use.discard(cx)
        self._hand_off(cx)

    async def prune(self):
        """ Close all idle connections. """
        idle = list(self._idle)
        self._idle.clear()
        for cx in idle:
            await cx.close()

    async def close(self, force=False):
        """ Close idle connections and fail every waiter. In-use
        connections are closed on release, or immediately if forced.
        """
        self.closed = True
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_exception(ServiceUnavailable(
                    "Connection pool for {} closed".format(self.address)
                ))
        await self.prune()
        if force:
            in_use = list(self._in_use)
            self._in_use.clear()
            for cx in in_use:
                await cx.close()


class ConnectionPool:
    """ Connection pool keyed by server address.

    :param opener: coroutine function taking an address and returning an
        open and ready connection, see :meth:`graphbolt.io.Bolt.opener`
    :param pool_config: :class:`graphbolt.conf.PoolConfig`
    """

    def __init__(self, opener, pool_config=None):
        self._opener = opener
        self._config = pool_config or PoolConfig()
        self._pools: t.Dict[Address, AddressPool] = {}
        self._closed = False

    def __repr__(self):
        return "<{} {!r}>".format(self.__class__.__name__,
                                  list(self._pools.values()))

    @property
    def config(self) -> PoolConfig:
        return self._config

    def addresses(self):
        return list(self._pools)

    def _pool_for(self, address) -> AddressPool:
        address = Address(address)
        try:
            return self._pools[address]
        except KeyError:
            pool = AddressPool(self._opener, address, self._config)
            self._pools[address] = pool
            return pool

    def in_use_connection_count(self, address) -> int:
        pool = self._pools.get(Address(address))
        return pool.in_use if pool else 0

    def idle_connection_count(self, address) -> int:
        pool = self._pools.get(Address(address))
        return pool.idle if pool else 0

    def size(self, address) -> int:
        pool = self._pools.get(Address(address))
        return pool.size if pool else 0

    async def acquire(self, address, mode=None, timeout=None):
        """ Acquire a connection to the given address.

        :param address: server address
        :param mode: access mode the connection is wanted for, for logging
        :param timeout: seconds to wait on a full pool, the configured
            ``connection_acquisition_timeout`` if :const:`None`
        :raise ConnectionAcquisitionTimeout: if the pool stayed full
        :raise ServiceUnavailable: if the server could not be reached
        """
        if self._closed:
            raise ServiceUnavailable("Connection pool is closed")
        if timeout is None:
            timeout = self._config.connection_acquisition_timeout
        pool = self._pool_for(address)
        cx = await pool.acquire(timeout=timeout)
        log.debug("[#%04X]  _: <POOL> acquired %s connection to %s",
                  cx.local_port, mode or "", pool.address)
        return cx

    async def release(self, cx):
        """ Release a connection back to the pool it came from. A
        connection whose address has been purged is closed.
        """
        pool = self._pools.get(cx.address)
        if pool is None or cx not in pool:
            cx.on_failure = None
            await cx.close()
            return
        await pool.release(cx)

    async def purge(self, address):
        """ Forget an address: close its idle connections now and its
        in-use connections when they are released.
        """
        pool = self._pools.pop(Address(address), None)
        if pool is not None:
            log.debug("[#0000]  _: <POOL> purging %s", pool.address)
            await pool.close()

    async def close(self):
        """ Close every connection, including those in use. """
        self._closed = True
        pools = list(self._pools.values())
        self._pools.clear()
        for pool in pools:
            await pool.close(force=True)
