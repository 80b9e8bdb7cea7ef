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

from .addressing import (
    Address,
    DEFAULT_PORT,
)
from .api import (
    DRIVER_BOLT,
    parse_routing_context,
    parse_uri,
)
from .conf import (
    Config,
    PoolConfig,
    SessionConfig,
)
from .exceptions import (
    ConfigurationError,
    DriverError,
    ServiceUnavailable,
)
from .io import (
    Bolt,
    ConnectionPool,
    DirectConnectionProvider,
    RoutingConnectionProvider,
)
from .work import (
    LeakLoggingSession,
    Session,
)


log = logging.getLogger("graphbolt")


class GraphDatabase:
    """Accessor for :class:`graphbolt.Driver` construction.
    """

    @classmethod
    def driver(cls, uri, *, auth=None, protocols=None, **config) -> Driver:
        """Create a driver.

        No network I/O takes place here: a bad URI or configuration fails
        immediately, an unreachable server only once the driver is used.

        :param uri: ``bolt://host[:port]`` for a single server,
            ``bolt+routing://host[:port][?routing_context]`` (or
            ``neo4j://...``) for a cluster
        :param auth: auth token, ``(user, password)`` tuple or
            :const:`None`
        :param protocols: version table to negotiate from, the default
            table if :const:`None`
        :param config: keyword arguments of :class:`graphbolt.PoolConfig`
            and :class:`graphbolt.SessionConfig`
        :raise ConfigurationError: on an invalid URI or configuration
        """
        driver_type, parsed = parse_uri(uri)
        if driver_type == DRIVER_BOLT:
            return DirectDriver.open(parsed.netloc, auth=auth,
                                     protocols=protocols, **config)
        routing_context = parse_routing_context(parsed.query)
        return RoutingDriver.open(parsed.netloc, auth=auth,
                                  routing_context=routing_context,
                                  protocols=protocols, **config)

    @classmethod
    async def routing_driver(cls, uris, *, auth=None, protocols=None,
                             **config) -> RoutingDriver:
        """Create a routing driver from the first of several cluster URIs
        for which discovery succeeds.

        :raise ServiceUnavailable: if discovery failed for every URI
        :raise ConfigurationError: if a URI is not a routing URI
        """
        for uri in uris:
            driver = cls.driver(uri, auth=auth, protocols=protocols, **config)
            if not isinstance(driver, RoutingDriver):
                await driver.close()
                raise ConfigurationError(
                    "Illegal URI scheme, expected a routing URI: "
                    "{!r}".format(uri)
                )
            try:
                await driver.verify_connectivity()
            except ServiceUnavailable as error:
                log.warning("Unable to create routing driver for URI: %s",
                            uri, exc_info=error)
                await driver.close()
            else:
                return driver
        raise ServiceUnavailable("Failed to discover an available server")


class Driver:
    """ Base class for all types of :class:`graphbolt.Driver`, instances of
    which are used as the primary access point to the database.
    """

    #: Connection provider
    _provider: t.Any = None

    #: Flag if the driver has been closed
    _closed = False

    def __init__(self, provider, default_session_config):
        assert provider is not None
        assert default_session_config is not None
        self._provider = provider
        self._default_session_config = default_session_config

    async def __aenter__(self) -> Driver:
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.close()

    @property
    def encrypted(self) -> bool:
        """Indicate whether the driver was configured to use encryption."""
        return bool(self._provider.pool.config.encrypted)

    def closed(self) -> bool:
        return self._closed

    def _check_open(self):
        if self._closed:
            raise DriverError("Driver closed")

    def session(self, access_mode=None, bookmark=None, **config) -> Session:
        """Create a session.

        :param access_mode: ``READ_ACCESS`` or ``WRITE_ACCESS``, the
            configured ``default_access_mode`` if :const:`None`
        :param bookmark: bookmark, or iterable of bookmark values, the
            first transaction of the session must observe
        :param config: overrides of :class:`graphbolt.SessionConfig`
        :raise DriverError: if the driver has been closed
        """
        self._check_open()
        session_config = SessionConfig(
            self._default_session_config, config,
            default_access_mode=access_mode, bookmarks=bookmark
        )
        if session_config.log_leaked_sessions:
            return LeakLoggingSession(self._provider, session_config)
        return Session(self._provider, session_config)

    async def verify_connectivity(self):
        """ Check that the server, or for a cluster a router, can be
        reached.

        :raise ServiceUnavailable: if it cannot
        """
        self._check_open()
        await self._provider.verify_connectivity()

    async def close(self) -> None:
        """ Shut down, closing any open connections in the pool.
        """
        if self._closed:
            return
        self._closed = True
        await self._provider.close()


class DirectDriver(Driver):
    """:class:`.DirectDriver` is instantiated for ``bolt`` URIs and
    addresses a single database machine. This may be a standalone server or
    could be a specific member of a cluster.

    Connections established by a :class:`.DirectDriver` are always made to
    the exact host and port detailed in the URI.
    """

    default_host = "localhost"
    default_port = DEFAULT_PORT

    @classmethod
    def parse_target(cls, target):
        """ Parse a target string to produce an address.
        """
        if not target:
            target = ":"
        return Address.parse(target, default_host=cls.default_host,
                             default_port=cls.default_port)

    @classmethod
    def open(cls, target, *, auth=None, protocols=None, **config):
        address = cls.parse_target(target)
        pool_config, default_session_config = Config.consume_chain(
            config, PoolConfig, SessionConfig
        )
        pool = ConnectionPool(Bolt.opener(auth, pool_config, protocols),
                              pool_config)
        return cls(DirectConnectionProvider(pool, address),
                   default_session_config)

    @property
    def address(self) -> Address:
        return self._provider.address


class RoutingDriver(Driver):
    """:class:`.RoutingDriver` is instantiated for ``bolt+routing`` and
    ``neo4j`` URIs. It discovers the members of a cluster and directs read
    and write work to the appropriate members.
    """

    default_host = "localhost"
    default_port = DEFAULT_PORT

    @classmethod
    def parse_targets(cls, *targets):
        """ Parse a sequence of target strings to produce an address
        list.
        """
        targets = " ".join(targets)
        if not targets:
            targets = ":"
        return Address.parse_list(targets, default_host=cls.default_host,
                                  default_port=cls.default_port)

    @classmethod
    def open(cls, *targets, auth=None, routing_context=None, protocols=None,
             **config):
        addresses = cls.parse_targets(*targets)
        pool_config, default_session_config = Config.consume_chain(
            config, PoolConfig, SessionConfig
        )
        pool = ConnectionPool(Bolt.opener(auth, pool_config, protocols),
                              pool_config)
        provider = RoutingConnectionProvider(pool, addresses, routing_context)
        return cls(provider, default_session_config)

    @property
    def initial_addresses(self) -> t.List[Address]:
        return list(self._provider.initial_routers)

    @property
    def routing_table(self):
        return self._provider.routing_table
