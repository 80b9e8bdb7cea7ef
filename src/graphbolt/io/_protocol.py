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


""" Protocol version strategies.

Each supported protocol version is described by one :class:`BoltProtocol`
value holding the same set of operations. The version is chosen once per
connection, during the handshake, from a version table that is passed to
:meth:`graphbolt.io.Bolt.open`.

Every operation takes the connection as its first argument. Writes are
appended to the connection's outbox and their responses queued, in the
same order. Statements register two responses: one for the ``RUN``
acknowledgement and one for the ``PULL_ALL``/``DISCARD_ALL`` terminator.
"""


from __future__ import annotations

import typing as t

from ..api import (
    Bookmark,
    READ_ACCESS,
    Version,
)
from . import _messages as messages
from ._response import Response


class BoltProtocol(t.NamedTuple):
    version: Version
    initialize: t.Callable
    run_auto_commit: t.Callable
    run_in_transaction: t.Callable
    begin_transaction: t.Callable
    commit_transaction: t.Callable
    rollback_transaction: t.Callable
    reset: t.Callable
    goodbye: t.Callable

    def __repr__(self):
        return "<BoltProtocol {}>".format(self.version)


def _write_statement(cx, run_message, discard):
    run = Response("RUN")
    if discard:
        tail = Response("DISCARD_ALL")
        cx.write(run_message, run)
        cx.write(messages.discard_all(), tail)
    else:
        tail = Response("PULL_ALL")
        cx.write(run_message, run)
        cx.write(messages.pull_all(), tail)
    return run, tail


async def _reset(cx):
    response = Response("RESET")
    cx.write(messages.reset(), response)
    await cx.flush()
    await cx.fetch_until(response)


# Version 1


async def _v1_initialize(cx, user_agent, auth):
    response = Response("INIT")
    cx.write(messages.init(user_agent, auth.to_dict()), response)
    await cx.flush()
    await cx.fetch_until(response)
    return response.metadata


async def _v1_run(cx, query, parameters=None, bookmark=None, mode=None,
                  discard=False):
    # Version 1 has no statement metadata, so bookmark and mode are unused.
    responses = _write_statement(cx, messages.run(query, parameters), discard)
    await cx.flush()
    return responses


async def _v1_run_in_transaction(cx, query, parameters=None, discard=False):
    responses = _write_statement(cx, messages.run(query, parameters), discard)
    await cx.flush()
    return responses


async def _v1_begin(cx, bookmark, mode=None, on_failure=None):
    bookmark = Bookmark.from_raw(bookmark)
    run = Response("RUN", on_failure=on_failure)
    pull = Response("PULL_ALL", on_failure=on_failure)
    cx.write(messages.run("BEGIN", bookmark.as_begin_parameters()), run)
    cx.write(messages.pull_all(), pull)
    if bookmark:
        # The server must confirm it has caught up with the bookmark
        # before anything else runs in this transaction.
        await cx.flush()
        await cx.fetch_until(run, pull)


async def _v1_commit(cx):
    run, pull = _write_statement(cx, messages.run("COMMIT"), False)
    await cx.flush()
    await cx.fetch_until(run, pull)
    return Bookmark.from_raw(pull.metadata.get("bookmark"))


async def _v1_rollback(cx):
    run, pull = _write_statement(cx, messages.run("ROLLBACK"), False)
    await cx.flush()
    await cx.fetch_until(run, pull)


async def _v1_goodbye(cx):
    return False


BOLT_V1 = BoltProtocol(
    version=Version(1, 0),
    initialize=_v1_initialize,
    run_auto_commit=_v1_run,
    run_in_transaction=_v1_run_in_transaction,
    begin_transaction=_v1_begin,
    commit_transaction=_v1_commit,
    rollback_transaction=_v1_rollback,
    reset=_reset,
    goodbye=_v1_goodbye,
)


# Version 3


def _v3_extras(bookmark, mode):
    extras = {}
    bookmark = Bookmark.from_raw(bookmark)
    if bookmark:
        extras["bookmarks"] = sorted(bookmark.values)
    if mode == READ_ACCESS:
        extras["mode"] = "r"
    return extras


async def _v3_initialize(cx, user_agent, auth):
    extras = {"user_agent": user_agent}
    extras.update(auth.to_dict())
    response = Response("HELLO")
    cx.write(messages.hello(extras), response)
    await cx.flush()
    await cx.fetch_until(response)
    return response.metadata


async def _v3_run(cx, query, parameters=None, bookmark=None, mode=None,
                  discard=False):
    message = messages.run(query, parameters, _v3_extras(bookmark, mode))
    responses = _write_statement(cx, message, discard)
    await cx.flush()
    return responses


async def _v3_run_in_transaction(cx, query, parameters=None, discard=False):
    responses = _write_statement(cx, messages.run(query, parameters, {}),
                                 discard)
    await cx.flush()
    return responses


async def _v3_begin(cx, bookmark, mode=None, on_failure=None):
    response = Response("BEGIN", on_failure=on_failure)
    cx.write(messages.begin(_v3_extras(bookmark, mode)), response)
    if Bookmark.from_raw(bookmark):
        await cx.flush()
        await cx.fetch_until(response)


async def _v3_commit(cx):
    response = Response("COMMIT")
    cx.write(messages.commit(), response)
    await cx.flush()
    await cx.fetch_until(response)
    return Bookmark.from_raw(response.metadata.get("bookmark"))


async def _v3_rollback(cx):
    response = Response("ROLLBACK")
    cx.write(messages.rollback(), response)
    await cx.flush()
    await cx.fetch_until(response)


async def _v3_goodbye(cx):
    cx.write(messages.goodbye())
    return await cx.flush()


BOLT_V3 = BoltProtocol(
    version=Version(3, 0),
    initialize=_v3_initialize,
    run_auto_commit=_v3_run,
    run_in_transaction=_v3_run_in_transaction,
    begin_transaction=_v3_begin,
    commit_transaction=_v3_commit,
    rollback_transaction=_v3_rollback,
    reset=_reset,
    goodbye=_v3_goodbye,
)


#: Default version table, highest preference first.
DEFAULT_PROTOCOLS: t.Dict[Version, BoltProtocol] = {
    BOLT_V3.version: BOLT_V3,
    BOLT_V1.version: BOLT_V1,
}


def protocol_handlers(protocols=None, protocol_version=None):
    """ Return the version table to offer during a handshake.

    :param protocols: version table to choose from, the default table if
        :const:`None`
    :param protocol_version: restrict the table to this single version
    :raise TypeError: if protocol version is not passed as a tuple
    """
    if protocols is None:
        protocols = DEFAULT_PROTOCOLS
    if protocol_version is None:
        return dict(protocols)
    if not isinstance(protocol_version, tuple):
        raise TypeError("Protocol version must be specified as a tuple")
    return {version: protocol
            for version, protocol in protocols.items()
            if version == protocol_version}
