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

from abc import ABCMeta
from collections.abc import Mapping

from ._meta import get_user_agent
from .api import (
    READ_ACCESS,
    TRUST_ALL_CERTIFICATES,
    TRUST_SYSTEM_CA_SIGNED_CERTIFICATES,
    WRITE_ACCESS,
)
from .exceptions import ConfigurationError


def iter_items(iterable):
    """ Iterate through all items (key-value pairs) within an iterable
    dictionary-like object. If the object has a `keys` method, this is
    used along with `__getitem__` to yield each pair in turn. If no
    `keys` method exists, each iterable element is assumed to be a
    2-tuple of key and value.
    """
    if hasattr(iterable, "keys"):
        for key in iterable.keys():
            yield key, iterable[key]
    else:
        for key, value in iterable:
            yield key, value


class ConfigType(ABCMeta):

    def __new__(mcs, name, bases, attributes):
        fields = []

        for base in bases:
            if type(base) is mcs:
                fields += base.keys()

        for k, v in attributes.items():
            if (
                k.startswith("_")
                or callable(v)
                or isinstance(v, (staticmethod, classmethod))
            ):
                continue
            fields.append(k)

        def keys(_):
            return fields

        attributes.setdefault("keys", classmethod(keys))

        return super(ConfigType, mcs).__new__(mcs, name, bases, attributes)


class Config(Mapping, metaclass=ConfigType):
    """ Base class for all configuration containers.

    Values are taken from the class defaults, overridden by any mappings
    and keyword arguments passed in. Once constructed, a configuration is
    validated and cannot be changed.
    """

    _frozen = False

    @staticmethod
    def consume_chain(data, *config_classes):
        values = []
        for config_class in config_classes:
            if not issubclass(config_class, Config):
                raise TypeError("%r is not a Config subclass" % config_class)
            values.append(config_class._consume(data))
        if data:
            raise ConfigurationError(
                "Unexpected config keys: %s" % ", ".join(data.keys())
            )
        return values

    @classmethod
    def consume(cls, data):
        config, = cls.consume_chain(data, cls)
        return config

    @classmethod
    def _consume(cls, data):
        config = {}
        if data:
            for key in list(cls.keys()):
                try:
                    value = data.pop(key)
                except KeyError:
                    pass
                else:
                    config[key] = value
        return cls(config)

    def __update(self, data):
        for key, value in iter_items(data):
            if key not in self.keys():
                raise ConfigurationError("Unexpected config key: %s" % key)
            if value is not None:
                object.__setattr__(self, key, value)

    def __init__(self, *args, **kwargs):
        for arg in args:
            self.__update(arg)
        self.__update(kwargs)
        self._validate()
        object.__setattr__(self, "_frozen", True)

    def _validate(self):
        pass

    def __setattr__(self, key, value):
        if self._frozen:
            raise AttributeError(
                "%s is immutable, cannot set %r" % (self.__class__.__name__,
                                                    key)
            )
        object.__setattr__(self, key, value)

    def __repr__(self):
        attrs = []
        for key in self:
            attrs.append(" %s=%r" % (key, getattr(self, key)))
        return "<%s%s>" % (self.__class__.__name__, "".join(attrs))

    def __len__(self):
        return len(self.keys())

    def __getitem__(self, key):
        return getattr(self, key)

    def __iter__(self):
        return iter(self.keys())


def _check_number(config, key, minimum=None, allow_none=False):
    value = getattr(config, key)
    if value is None and allow_none:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(
            "Config value %r must be a number, got %r" % (key, value)
        )
    if minimum is not None and value < minimum:
        raise ConfigurationError(
            "Config value %r must be at least %r, got %r"
            % (key, minimum, value)
        )


class PoolConfig(Config):
    """ Connection pool configuration.
    """

    #: Max Connection Lifetime
    max_connection_lifetime = 3600  # seconds
    # The maximum duration a connection is kept before being removed from
    # the pool. A negative value disables the check.

    #: Max Connection Pool Size
    max_connection_pool_size = 100
    # The maximum number of connections per server address.

    #: Connection Timeout
    connection_timeout = 30.0  # seconds
    # The maximum amount of time to establish a connection, handshake and
    # initialisation included.

    #: Connection Acquisition Timeout
    connection_acquisition_timeout = 60.0  # seconds
    # The maximum amount of time to wait for a connection from a full pool.

    #: Idle Time Before Connection Test
    idle_time_before_connection_test = None  # seconds
    # Connections idle for longer than this are probed with a RESET before
    # being handed out. None disables the probe.

    #: Trust
    trust = TRUST_SYSTEM_CA_SIGNED_CERTIFICATES
    # How to determine the authenticity of server certificates.

    #: Encrypted
    encrypted = False
    # Whether to use an encrypted connection to the server.

    #: SSL Context
    ssl_context = None
    # A ready-made ssl.SSLContext; overrides encrypted and trust.

    #: User Agent
    user_agent = get_user_agent()
    # The client agent name sent during initialisation.

    #: Protocol Version
    protocol_version = None  # Version(3, 0)
    # Restrict the handshake to one protocol version.

    #: Socket Keep Alive
    keep_alive = True
    # Whether TCP keep-alive should be enabled.

    def _validate(self):
        _check_number(self, "max_connection_pool_size", minimum=1)
        _check_number(self, "connection_timeout", minimum=0)
        _check_number(self, "connection_acquisition_timeout", minimum=0)
        _check_number(self, "idle_time_before_connection_test", minimum=0,
                      allow_none=True)
        _check_number(self, "max_connection_lifetime")
        if self.trust not in (TRUST_SYSTEM_CA_SIGNED_CERTIFICATES,
                              TRUST_ALL_CERTIFICATES):
            raise ConfigurationError("Unsupported trust %r" % self.trust)

    def get_ssl_context(self):
        if self.ssl_context is not None:
            return self.ssl_context

        if not self.encrypted:
            return None

        import ssl

        # TLS 1.2 and above only
        ssl_context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        ssl_context.minimum_version = ssl.TLSVersion.TLSv1_2

        if self.trust == TRUST_ALL_CERTIFICATES:
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE

        ssl_context.set_default_verify_paths()
        return ssl_context


class SessionConfig(Config):
    """ Session configuration.
    """

    #: Bookmarks
    bookmarks = None

    #: Default AccessMode
    default_access_mode = WRITE_ACCESS

    #: Log Leaked Sessions
    log_leaked_sessions = False
    # Log at ERROR level when a session is garbage collected while still
    # holding a connection.

    def _validate(self):
        if self.default_access_mode not in (READ_ACCESS, WRITE_ACCESS):
            raise ConfigurationError(
                "Unsupported access mode %r" % self.default_access_mode
            )
