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


""" Bolt message structures.

Requests are built with the functions below and are immutable once built.
The same tag may mean different things in different protocol versions
(``INIT`` and ``HELLO`` share ``0x01``), so every request carries its name.
"""


from __future__ import annotations

import typing as t


if t.TYPE_CHECKING:
    import typing_extensions as te


# Requests
INIT: te.Final[bytes] = b"\x01"
HELLO: te.Final[bytes] = b"\x01"
GOODBYE: te.Final[bytes] = b"\x02"
RESET: te.Final[bytes] = b"\x0F"
RUN: te.Final[bytes] = b"\x10"
BEGIN: te.Final[bytes] = b"\x11"
COMMIT: te.Final[bytes] = b"\x12"
ROLLBACK: te.Final[bytes] = b"\x13"
DISCARD_ALL: te.Final[bytes] = b"\x2F"
PULL_ALL: te.Final[bytes] = b"\x3F"

# Responses
SUCCESS: te.Final[bytes] = b"\x70"
RECORD: te.Final[bytes] = b"\x71"
IGNORED: te.Final[bytes] = b"\x7E"
FAILURE: te.Final[bytes] = b"\x7F"


class Request(t.NamedTuple):
    """ An outgoing message: a structure tag, a name and its fields. """

    tag: bytes
    name: str
    fields: tuple = ()

    def log_fields(self):
        """ Fields as they may be written to the log, with any credentials
        masked.
        """
        return tuple(_mask_credentials(field) for field in self.fields)


def _mask_credentials(field):
    if isinstance(field, dict) and "credentials" in field:
        field = dict(field, credentials="*******")
    return field


def init(user_agent: str, auth: t.Dict[str, t.Any]) -> Request:
    return Request(INIT, "INIT", (user_agent, auth))


def hello(extras: t.Dict[str, t.Any]) -> Request:
    return Request(HELLO, "HELLO", (extras,))


def goodbye() -> Request:
    return Request(GOODBYE, "GOODBYE")


def reset() -> Request:
    return Request(RESET, "RESET")


def run(query: str, parameters=None, extras=None) -> Request:
    fields = (query, dict(parameters or {}))
    if extras is not None:
        fields += (dict(extras),)
    return Request(RUN, "RUN", fields)


def begin(extras=None) -> Request:
    return Request(BEGIN, "BEGIN", (dict(extras or {}),))


def commit() -> Request:
    return Request(COMMIT, "COMMIT")


def rollback() -> Request:
    return Request(ROLLBACK, "ROLLBACK")


def discard_all() -> Request:
    return Request(DISCARD_ALL, "DISCARD_ALL")


def pull_all() -> Request:
    return Request(PULL_ALL, "PULL_ALL")
