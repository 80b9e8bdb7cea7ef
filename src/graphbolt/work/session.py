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
import traceback
import typing as t

from ..api import (
    Bookmark,
    check_access_mode,
)
from ..conf import SessionConfig
from ..exceptions import (
    GraphError,
    ServiceUnavailable,
    SessionError,
)
from .result import Result
from .transaction import (
    Transaction,
    TransactionState,
)


log = logging.getLogger("graphbolt.work")


class Session:
    """ A context for a sequence of units of work.

    A session drives one unit of work at a time: either an auto-commit
    statement started with :meth:`run` or an explicit transaction started
    with :meth:`begin_transaction`. It keeps the bookmark of the last
    committed transaction so the next one observes its writes.

    Sessions are created by :meth:`graphbolt.Driver.session` and should be
    used as async context managers::

        async with driver.session() as session:
            result = await session.run("MATCH (a:Person) RETURN a.name")
            names = [record["a.name"] async for record in result]

    :param provider: hands out connections for an access mode
    :param config: :class:`graphbolt.conf.SessionConfig`
    """

    def __init__(self, provider, config=None):
        self._provider = provider
        self._config = config or SessionConfig()
        self._bookmark = Bookmark.from_raw(self._config.bookmarks)
        self._connection = None
        self._result: t.Optional[Result] = None
        self._transaction: t.Optional[Transaction] = None
        self._busy = False
        self._closed = False

    def __repr__(self):
        return "<{} mode={} bookmark={!r}>".format(
            self.__class__.__name__, self._config.default_access_mode,
            self._bookmark
        )

    async def __aenter__(self) -> Session:
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.close()

    def closed(self) -> bool:
        return self._closed

    def last_bookmark(self) -> Bookmark:
        """ The bookmark of the last committed transaction, or the
        bookmark the session was created with.
        """
        return self._bookmark

    def _assert_usable(self):
        if self._closed:
            raise SessionError(self, "Session closed")
        if self._busy or (self._result is not None
                          and self._result.reading()):
            raise SessionError(
                self, "Session is busy with another operation; a session "
                      "drives one unit of work at a time"
            )
        if self._transaction is not None:
            raise SessionError(
                self, "Session has an open transaction; commit or roll it "
                      "back before starting more work"
            )

    async def _connect(self, access_mode):
        self._connection = await self._provider.acquire(access_mode)

    async def _disconnect(self):
        cx, self._connection = self._connection, None
        if cx is not None:
            await self._provider.release(cx)

    async def _auto_result_closed(self, result, error):
        if result is not self._result:
            return
        self._result = None
        bookmark = result._pull.metadata.get("bookmark")
        if error is None and bookmark:
            self._bookmark = Bookmark.from_raw(bookmark)
        await self._disconnect()

    async def _transaction_closed(self, transaction, error):
        if transaction is not self._transaction:
            return
        self._transaction = None
        if transaction.state is TransactionState.COMMITTED:
            # replace, never merge
            self._bookmark = transaction.bookmark
        await self._disconnect()

    async def run(self, query, parameters=None, **kwparameters) -> Result:
        """ Run an auto-commit statement.

        The connection is held until the returned result has been fully
        read or consumed. Starting more work on this session first buffers
        whatever is left of that result.

        :return: a :class:`graphbolt.Result` cursor
        :raise SessionError: if the session is closed or busy
        """
        self._assert_usable()
        self._busy = True
        try:
            if self._result is not None:
                await self._result._buffer_all()
            parameters = dict(parameters or {}, **kwparameters)
            access_mode = self._config.default_access_mode
            await self._connect(access_mode)
            cx = self._connection
            try:
                run, pull = await cx.protocol.run_auto_commit(
                    cx, query, parameters, self._bookmark, access_mode
                )
            except BaseException:
                await self._disconnect()
                raise
            result = Result(cx, run, pull, query, parameters,
                            on_closed=self._auto_result_closed)
            self._result = result
            await result._attach()
            return result
        finally:
            self._busy = False

    async def begin_transaction(self, bookmark=None) -> Transaction:
        """ Begin an explicit transaction.

        :param bookmark: replaces the session bookmark before beginning
        :return: a :class:`graphbolt.Transaction`
        :raise SessionError: if the session is closed, busy or already has
            an open transaction
        """
        self._assert_usable()
        self._busy = True
        try:
            if self._result is not None:
                await self._result._buffer_all()
            if bookmark is not None:
                self._bookmark = Bookmark.from_raw(bookmark)
            access_mode = check_access_mode(self._config.default_access_mode)
            await self._connect(access_mode)
            transaction = Transaction(self._connection,
                                      self._transaction_closed)
            self._transaction = transaction
            await transaction._begin(self._bookmark, access_mode)
            return transaction
        finally:
            self._busy = False

    async def close(self):
        """ Close the session, rolling back an open transaction and
        discarding an unread result before releasing the connection.
        """
        if self._closed:
            return
        self._closed = True
        try:
            if self._transaction is not None:
                await self._transaction.close()
            if self._result is not None:
                await self._result.consume()
        except (GraphError, ServiceUnavailable) as error:
            log.debug("[#0000]  _: <SESSION> error while closing (%r)", error)
        finally:
            self._result = None
            self._transaction = None
            await self._disconnect()


class LeakLoggingSession(Session):
    """ Session that logs an error when it is garbage collected while still
    holding a connection. A diagnostic aid only: sessions must be closed,
    preferably with ``async with``.
    """

    def __init__(self, provider, config=None):
        super().__init__(provider, config)
        self._created_at = "".join(traceback.format_stack()[:-1])

    def __del__(self):
        if self._connection is not None:
            log.error("Session object leaked, it was not closed properly. "
                      "Session was created at:\n%s", self._created_at)
