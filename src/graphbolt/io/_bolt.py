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
import enum
import logging
import socket
import typing as t
from contextlib import suppress
from ssl import SSLError
from time import perf_counter

from ..addressing import Address
from ..api import (
    to_auth,
    Version,
)
from ..conf import PoolConfig
from ..exceptions import (
    HandshakeError,
    ProtocolError,
    ServiceUnavailable,
    SessionExpired,
)
from ..packstream import UnpackError
from ._common import (
    MessageInbox,
    Outbox,
)
from ._protocol import protocol_handlers
from ._response import ResponseDispatcher


log = logging.getLogger("graphbolt.io")


MAGIC = b"\x60\x60\xB0\x17"


class ConnectionState(enum.Enum):
    CONNECTING = "CONNECTING"
    READY = "READY"
    IN_USE = "IN_USE"
    BROKEN = "BROKEN"
    CLOSED = "CLOSED"


class Bolt:
    """ One physical connection to a server.

    A connection owns one response dispatcher and one negotiated protocol.
    It is used by a single owner at a time; the pool is the only place
    where ownership changes hands.

    Reading is driven by the owner: :meth:`fetch_message` reads and
    dispatches one server message, :meth:`fetch_until` keeps reading until
    the given responses are complete.
    """

    #: Called as ``await on_failure(connection, error)`` when a server
    #: FAILURE arrives or the connection is lost. Installed by the routing
    #: layer on connections it hands out.
    on_failure: t.Optional[t.Callable[..., t.Awaitable]] = None

    def __init__(self, address, reader, writer, protocol, *,
                 local_port=0, max_connection_lifetime=-1):
        self.address = Address(address)
        self.protocol = protocol
        self.local_port = local_port
        self.max_connection_lifetime = max_connection_lifetime
        self.server_agent = None
        self.connection_id = None
        self.state = ConnectionState.CONNECTING
        self._reader = reader
        self._writer = writer
        self.inbox = MessageInbox(reader, local_port)
        self.outbox = Outbox(writer)
        self.dispatcher = ResponseDispatcher(local_port)
        self._t_opened = perf_counter()
        self.idle_since = self._t_opened

    def __repr__(self):
        return "<Bolt address=%r version=%s state=%s>" % (
            self.address, self.version, self.state.name
        )

    @property
    def version(self) -> Version:
        return self.protocol.version

    @classmethod
    def opener(cls, auth=None, pool_config=None, protocols=None):
        """ Create and return an opener function for a given set of
        configuration parameters, as used by the connection pool.
        """

        async def f(address):
            return await cls.open(address, auth=auth, pool_config=pool_config,
                                  protocols=protocols)

        return f

    @classmethod
    async def open(cls, address, *, auth=None, pool_config=None,
                   protocols=None):
        """ Open a socket connection, negotiate a protocol version and
        initialise the connection.

        The whole sequence is bounded by the ``connection_timeout`` of the
        pool configuration. Nothing is left open if any step fails.

        :param address: tuples of host and port, such as
                        ("127.0.0.1", 7687)
        :param auth: auth token, ``(user, password)`` tuple or None
        :param pool_config: :class:`graphbolt.conf.PoolConfig`
        :param protocols: version table to negotiate from, the default
            table if :const:`None`
        :return: a ready :class:`Bolt` connection
        :raise ServiceUnavailable: if a connection could not be
            established in time
        :raise HandshakeError: if no protocol version could be agreed
        :raise GraphError: if the server refused initialisation
        """
        address = Address(address)
        if pool_config is None:
            pool_config = PoolConfig()
        timeout = pool_config.connection_timeout
        try:
            return await asyncio.wait_for(
                cls._open(address, to_auth(auth), pool_config, protocols),
                timeout
            )
        except asyncio.TimeoutError as error:
            log.debug("[#0000]  _: <TIMEOUT> %s", address)
            raise ServiceUnavailable(
                "Unable to establish connection in {}ms".format(
                    int(timeout * 1000))
            ) from error

    @classmethod
    async def _open(cls, address, auth, pool_config, protocols):
        reader, writer = await cls._connect(address, pool_config)
        try:
            sockname = writer.get_extra_info("sockname")
            local_port = sockname[1] if sockname else 0
            protocol = await cls._handshake(
                reader, writer, address, local_port,
                protocol_handlers(protocols, pool_config.protocol_version)
            )
            cx = cls(address, reader, writer, protocol,
                     local_port=local_port,
                     max_connection_lifetime=pool_config
                     .max_connection_lifetime)
            await cx._initialize(pool_config.user_agent, auth)
            return cx
        except BaseException:
            writer.close()
            raise

    @classmethod
    async def _connect(cls, address, pool_config):
        connection_args = {"host": address.host, "port": address.port}
        ssl_context = pool_config.get_ssl_context()
        if ssl_context:
            connection_args["ssl"] = ssl_context
            connection_args["server_hostname"] = address.host
        log.debug("[#0000]  C: <OPEN> %s", address)
        try:
            reader, writer = await asyncio.open_connection(**connection_args)
        except SSLError as error:
            log.debug("[#0000]  S: <REJECT> %s (%s)", address, error)
            raise ServiceUnavailable(
                "Failed to establish a secure connection to {}".format(address)
            ) from error
        except OSError as error:
            log.debug("[#0000]  S: <REJECT> %s (%s)", address, error)
            raise ServiceUnavailable(
                "Failed to establish connection to {}".format(address)
            ) from error
        if pool_config.keep_alive:
            sock = writer.get_extra_info("socket")
            if sock is not None:
                with suppress(OSError):
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
        return reader, writer

    @classmethod
    async def _handshake(cls, reader, writer, address, local_port, handlers):
        """ Carry out a Bolt handshake, offering the versions of the given
        table, highest first.

        :return: the agreed :class:`BoltProtocol`
        :raise ServiceUnavailable: if the connection is lost
        :raise HandshakeError: if handshake completes without a
            successful negotiation
        """
        if not handlers:
            raise ValueError("No protocol handlers available")
        offered_versions = sorted(handlers.keys(), reverse=True)[:4]
        request_data = MAGIC + b"".join(
            v.to_bytes() for v in offered_versions).ljust(16, b"\x00")
        log.debug("[#%04X]  C: <HANDSHAKE> %r", local_port, request_data)
        try:
            writer.write(request_data)
            await writer.drain()
            response_data = await reader.readexactly(4)
        except (OSError, asyncio.IncompleteReadError) as error:
            raise ServiceUnavailable(
                "Connection to {} closed during handshake".format(address)
            ) from error
        log.debug("[#%04X]  S: <HANDSHAKE> %r", local_port, response_data)
        if response_data == b"\x00\x00\x00\x00":
            raise HandshakeError("The server does not support any of the "
                                 "offered protocol versions", address,
                                 request_data, response_data)
        try:
            agreed_version = Version.from_bytes(response_data)
        except ValueError as error:
            raise HandshakeError(
                "Unexpected handshake response %r" % response_data,
                address, request_data, response_data
            ) from error
        try:
            return handlers[agreed_version]
        except KeyError:
            log.debug("[#%04X]  _: <HANDSHAKE> unsupported version %s",
                      local_port, agreed_version)
            raise HandshakeError(
                "Unsupported protocol version {}".format(agreed_version),
                address, request_data, response_data
            ) from None

    async def _initialize(self, user_agent, auth):
        metadata = await self.protocol.initialize(self, user_agent, auth)
        self.server_agent = metadata.get("server")
        self.connection_id = metadata.get("connection_id")
        self.state = ConnectionState.READY

    @property
    def broken(self) -> bool:
        return self.state is ConnectionState.BROKEN

    @property
    def closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    @property
    def defunct(self) -> bool:
        """ True if the connection can no longer be used. """
        return self.state in (ConnectionState.BROKEN, ConnectionState.CLOSED)

    def age(self) -> float:
        """ The age of this connection in seconds. """
        return perf_counter() - self._t_opened

    def idle_time(self) -> float:
        return perf_counter() - self.idle_since

    def stale(self) -> bool:
        lifetime = self.max_connection_lifetime
        return lifetime is not None and 0 <= lifetime < self.age()

    def pending(self) -> int:
        """ Number of responses still awaiting a reply. """
        return len(self.dispatcher)

    def write(self, request, response=None):
        """ Append a request to the outbox and queue its response.

        :raise SessionExpired: if the connection is broken or closed
        """
        if self.defunct:
            raise SessionExpired(
                "Connection to {} is no longer usable".format(self.address)
            )
        log.debug("[#%04X]  C: %s%s", self.local_port, request.name,
                  "".join(" %r" % f for f in request.log_fields()))
        self.outbox.append_message(request.tag, request.fields)
        if response is not None:
            self.dispatcher.queue(response)

    async def flush(self) -> bool:
        """ Send everything appended since the last flush. """
        try:
            return await self.outbox.flush()
        except OSError as error:
            await self._break(error)
            raise SessionExpired(
                "Failed to write to {}".format(self.address)
            ) from error
        except asyncio.CancelledError as error:
            await self._break(error)
            raise

    async def fetch_message(self):
        """ Read one message and hand it to the response it belongs to.

        A FAILURE breaks the connection: the response it answers receives
        the server error, every other pending response
        :class:`SessionExpired`.
        """
        try:
            tag, fields = await self.inbox.pop()
        except (OSError, asyncio.IncompleteReadError) as error:
            await self._break(error)
            raise SessionExpired(
                "Connection to {} lost".format(self.address)
            ) from error
        except UnpackError as error:
            await self._break(error, close=True)
            raise ProtocolError("Malformed message received",
                                self.address) from error
        except asyncio.CancelledError as error:
            await self._break(error)
            raise
        try:
            failure = self.dispatcher.dispatch(tag, fields)
        except ProtocolError as error:
            error.address = self.address
            await self._break(error, close=True)
            raise
        if failure is not None:
            await self._break(failure)

    async def fetch_until(self, *responses):
        """ Fetch messages until every given response is complete, then
        raise the first error found among them.
        """
        while not all(response.complete for response in responses):
            if self.defunct and not self.pending():
                raise SessionExpired(
                    "Connection to {} is no longer usable".format(self.address)
                )
            await self.fetch_message()
        for response in responses:
            if response.error is not None:
                raise response.error

    async def _break(self, cause, close=False):
        first = not self.defunct
        if first:
            log.debug("[#%04X]  _: <CONNECTION> broken (%r)",
                      self.local_port, cause)
            self.state = ConnectionState.BROKEN
        self.dispatcher.fail_all(cause)
        if close:
            self.state = ConnectionState.CLOSED
            self._writer.close()
        if first and self.on_failure is not None:
            await self.on_failure(self, cause)

    async def reset(self):
        """ Send a RESET and wait for it to be acknowledged. Used as the
        liveness probe for idle connections.
        """
        await self.protocol.reset(self)

    async def close(self):
        """ Say goodbye to the server if the connection is healthy, then
        close the transport.
        """
        if self.closed:
            return
        if not self.broken:
            with suppress(OSError, ServiceUnavailable):
                await self.protocol.goodbye(self)
        self.state = ConnectionState.CLOSED
        self.dispatcher.fail_all(ConnectionAbortedError("Connection closed"))
        self._writer.close()
        with suppress(OSError):
            await self._writer.wait_closed()
        log.debug("[#%04X]  C: <CLOSE>", self.local_port)
