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


""" Base classes and helpers.
"""


from __future__ import annotations

import re
import typing as t
from urllib.parse import (
    parse_qs,
    urlparse,
)

from .exceptions import ConfigurationError


if t.TYPE_CHECKING:
    import typing_extensions as te


READ_ACCESS: te.Final[str] = "READ"
WRITE_ACCESS: te.Final[str] = "WRITE"

DRIVER_BOLT: te.Final[str] = "DRIVER_BOLT"
DRIVER_ROUTING: te.Final[str] = "DRIVER_ROUTING"

URI_SCHEME_BOLT: te.Final[str] = "bolt"
URI_SCHEME_BOLT_ROUTING: te.Final[str] = "bolt+routing"
URI_SCHEME_NEO4J: te.Final[str] = "neo4j"

TRUST_SYSTEM_CA_SIGNED_CERTIFICATES: te.Final[str] = \
    "TRUST_SYSTEM_CA_SIGNED_CERTIFICATES"  # Default
TRUST_ALL_CERTIFICATES: te.Final[str] = "TRUST_ALL_CERTIFICATES"


class Auth:
    """Container for auth details.

    :param scheme: specifies the type of authentication, examples: "basic",
                   "kerberos"
    :type scheme: str
    :param principal: specifies who is being authenticated
    :type principal: str or None
    :param credentials: authenticates the principal
    :type credentials: str or None
    :param realm: specifies the authentication provider
    :type realm: str or None
    :param parameters: extra key word parameters passed along to the
                       authentication provider
    :type parameters: Dict[str, Any]
    """

    def __init__(self, scheme, principal, credentials, realm=None,
                 **parameters):
        self.scheme = scheme
        # Older servers require the principal field to always be present.
        if principal is not None:
            self.principal = principal
        if credentials:
            self.credentials = credentials
        if realm:
            self.realm = realm
        if parameters:
            self.parameters = parameters

    def to_dict(self) -> t.Dict[str, t.Any]:
        """ The auth token as sent to the server. """
        return dict(vars(self))

    def __eq__(self, other):
        if not isinstance(other, Auth):
            return NotImplemented
        return vars(self) == vars(other)


def basic_auth(user, password, realm=None):
    """Generate a basic auth token for a given user and password.

    This will set the scheme to "basic" for the auth token.

    :param user: user name, this will set the principal
    :type user: str
    :param password: current password, this will set the credentials
    :type password: str
    :param realm: specifies the authentication provider
    :type realm: str or None

    :return: auth token for use with :meth:`GraphDatabase.driver`
    :rtype: :class:`graphbolt.Auth`
    """
    return Auth("basic", user, password, realm)


def custom_auth(principal, credentials, realm, scheme, **parameters):
    """Generate a custom auth token.

    :param principal: specifies who is being authenticated
    :type principal: str or None
    :param credentials: authenticates the principal
    :type credentials: str or None
    :param realm: specifies the authentication provider
    :type realm: str or None
    :param scheme: specifies the type of authentication
    :type scheme: str or None
    :param parameters: extra key word parameters passed along to the
                       authentication provider
    :type parameters: Dict[str, Any]

    :return: auth token for use with :meth:`GraphDatabase.driver`
    :rtype: :class:`graphbolt.Auth`
    """
    return Auth(scheme, principal, credentials, realm, **parameters)


def to_auth(auth) -> Auth:
    """ Normalise the various accepted auth forms into an :class:`Auth`.
    """
    if auth is None:
        return Auth("none", None, None)
    if isinstance(auth, Auth):
        return auth
    if isinstance(auth, tuple) and len(auth) == 2:
        return basic_auth(*auth)
    raise ConfigurationError("Unsupported auth {!r}".format(auth))


_BOOKMARK_PREFIX = "neo4j:bookmark:v1:tx"
_BOOKMARK_PATTERN = re.compile(re.escape(_BOOKMARK_PREFIX) + r"(\d+)$")


def _transaction_id(value):
    match = _BOOKMARK_PATTERN.match(value)
    if match is None:
        return None
    return int(match.group(1))


class Bookmark:
    """A Bookmark object contains an immutable set of bookmark string values.

    Bookmarks mark a point in the write history of the database. Values of
    the form ``neo4j:bookmark:v1:tx<N>`` are ordered by ``N``; other values
    are kept and sent along but do not take part in ordering.

    :param values: ASCII string values
    """

    def __init__(self, *values):
        if values:
            bookmarks = []
            for ix in values:
                try:
                    if ix:
                        ix.encode("ascii")
                        bookmarks.append(ix)
                except UnicodeEncodeError:
                    raise ValueError("The value {} is not ASCII".format(ix))
            self._values = frozenset(bookmarks)
        else:
            self._values = frozenset()

    @classmethod
    def from_raw(cls, value) -> Bookmark:
        """ Build a bookmark from ``None``, a string, an iterable of strings
        or another bookmark.
        """
        if value is None:
            return cls()
        if isinstance(value, Bookmark):
            return value
        if isinstance(value, str):
            return cls(value)
        return cls(*value)

    def __repr__(self):
        """
        :return: repr string with sorted values
        """
        return "<Bookmark values={{{}}}>".format(
            ", ".join(["'{}'".format(ix) for ix in sorted(self._values)])
        )

    def __bool__(self):
        return bool(self._values)

    def __eq__(self, other):
        if not isinstance(other, Bookmark):
            return NotImplemented
        return self._values == other._values

    def __hash__(self):
        return hash(self._values)

    def __lt__(self, other):
        if not isinstance(other, Bookmark):
            return NotImplemented
        return self._order_key() < other._order_key()

    def __gt__(self, other):
        if not isinstance(other, Bookmark):
            return NotImplemented
        return self._order_key() > other._order_key()

    def _order_key(self):
        tx_id = _transaction_id(self.max_value) if self.max_value else None
        return -1 if tx_id is None else tx_id

    @property
    def values(self) -> t.FrozenSet[str]:
        """
        :return: immutable set of bookmark string values
        :rtype: frozenset
        """
        return self._values

    @property
    def max_value(self) -> t.Optional[str]:
        """ The value with the highest transaction id, or ``None`` if no
        value carries one.
        """
        best, best_id = None, -1
        for value in self._values:
            tx_id = _transaction_id(value)
            if tx_id is not None and tx_id > best_id:
                best, best_id = value, tx_id
        return best

    def combine(self, other: Bookmark) -> Bookmark:
        """ Combine two bookmarks. The result holds the values of both, so
        its :attr:`max_value` is the maximum of the two.
        """
        return Bookmark(*(self._values | Bookmark.from_raw(other)._values))

    def as_begin_parameters(self) -> t.Dict[str, t.Any]:
        """ Parameters carried by a statement-based ``BEGIN``. """
        if not self:
            return {}
        return {"bookmark": self.max_value,
                "bookmarks": sorted(self._values)}


class Version(tuple):

    def __new__(cls, *v):
        return super().__new__(cls, v)

    def __repr__(self):
        return "{}{}".format(self.__class__.__name__, super().__repr__())

    def __str__(self):
        return ".".join(map(str, self))

    def to_bytes(self) -> bytes:
        b = bytearray(4)
        for i, v in enumerate(self):
            if not 0 <= i < 2:
                raise ValueError("Too many version components")
            b[-i - 1] = int(v % 0x100)
        return bytes(b)

    @classmethod
    def from_bytes(cls, b) -> Version:
        b = bytearray(b)
        if len(b) != 4:
            raise ValueError("Byte representation must be exactly four bytes")
        if b[0] != 0 or b[1] != 0:
            raise ValueError("First two bytes must contain zero")
        return Version(b[-1], b[-2])


def parse_uri(uri):
    """ Split a connection URI into its driver type and parsed parts.

    URIs without a scheme are taken to be ``bolt://`` URIs. Routing
    parameters in the query string are only accepted for routing schemes.
    """
    if "://" not in uri:
        uri = "{}://{}".format(URI_SCHEME_BOLT, uri)
    parsed = urlparse(uri)

    if parsed.username:
        raise ConfigurationError("Username is not supported in the URI")

    if parsed.password:
        raise ConfigurationError("Password is not supported in the URI")

    if parsed.scheme == URI_SCHEME_BOLT:
        driver_type = DRIVER_BOLT
        if parsed.query:
            raise ConfigurationError(
                "Parameters are not supported with scheme {!r}. "
                "Given URI: {!r}".format(parsed.scheme, uri)
            )
    elif parsed.scheme in (URI_SCHEME_BOLT_ROUTING, URI_SCHEME_NEO4J):
        driver_type = DRIVER_ROUTING
    else:
        raise ConfigurationError(
            "URI scheme {!r} is not supported. Supported URI schemes are {}. "
            "Examples: bolt://host[:port] or "
            "bolt+routing://host[:port][?routing_context]".format(
                parsed.scheme,
                [URI_SCHEME_BOLT, URI_SCHEME_BOLT_ROUTING, URI_SCHEME_NEO4J]
            )
        )

    return driver_type, parsed


def check_access_mode(access_mode):
    if access_mode is None:
        return WRITE_ACCESS
    if access_mode not in (READ_ACCESS, WRITE_ACCESS):
        msg = "Unsupported access mode {}".format(access_mode)
        raise ConfigurationError(msg)

    return access_mode


def parse_routing_context(query):
    """ Parse the query portion of a URI to generate a routing context dictionary.
    """
    if not query:
        return {}

    context = {}
    parameters = parse_qs(query, True)
    for key in parameters:
        value_list = parameters[key]
        if len(value_list) != 1:
            raise ConfigurationError(
                "Duplicated query parameters with key '%s', value '%s' "
                "found in query string '%s'" % (key, value_list, query)
            )
        value = value_list[0]
        if not value:
            raise ConfigurationError(
                "Invalid parameters:'%s=%s' in query string '%s'."
                % (key, value, query)
            )
        context[key] = value

    return context
