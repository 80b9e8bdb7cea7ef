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

import enum
import logging

from ..api import Bookmark
from ..exceptions import TransactionError
from .result import Result


log = logging.getLogger("graphbolt.work")


class TransactionState(enum.Enum):
    ACTIVE = "ACTIVE"
    COMMITTED = "COMMITTED"
    ROLLED_BACK = "ROLLED_BACK"
    FAILED = "FAILED"


class Transaction:
    """ An explicit transaction, holding one connection from begin to
    commit or rollback.

    Created by :meth:`graphbolt.Session.begin_transaction`. Every statement
    of the transaction runs on the same connection. Once committed, rolled
    back or failed, any further operation raises
    :class:`graphbolt.exceptions.TransactionError`.

    Use it as an async context manager to make sure it is closed; leaving
    the block rolls back unless :meth:`commit` was called.
    """

    def __init__(self, connection, on_closed):
        self._connection = connection
        self._on_closed = on_closed
        self._state = TransactionState.ACTIVE
        self._begin_error = None
        self._bookmark = Bookmark()

    def __repr__(self):
        return "<{} state={}>".format(self.__class__.__name__,
                                      self._state.name)

    async def __aenter__(self) -> Transaction:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def state(self) -> TransactionState:
        return self._state

    def closed(self) -> bool:
        """ Whether the transaction has reached a terminal state. """
        return self._state is not TransactionState.ACTIVE

    def _on_begin_failure(self, error):
        if self._begin_error is None:
            self._begin_error = error

    async def _begin(self, bookmark, mode):
        protocol = self._connection.protocol
        try:
            await protocol.begin_transaction(
                self._connection, bookmark, mode,
                on_failure=self._on_begin_failure
            )
        except BaseException as error:
            await self._finish(TransactionState.FAILED, error)
            raise

    def _assert_active(self):
        if self._state is not TransactionState.ACTIVE:
            raise TransactionError(
                self, "Transaction is {}, no further operations are "
                      "allowed".format(self._state.name.lower()
                                       .replace("_", " "))
            )

    async def _finish(self, state, error=None):
        self._state = state
        log.debug("[#%04X]  _: <TRANSACTION> %s", self._connection.local_port,
                  state.name)
        await self._on_closed(self, error)

    async def _result_closed(self, result, error):
        if error is not None and self._state is TransactionState.ACTIVE:
            await self._finish(TransactionState.FAILED, error)

    async def run(self, query, parameters=None, **kwparameters) -> Result:
        """ Run a statement within this transaction.

        :return: a :class:`graphbolt.Result` cursor
        :raise TransactionError: if the transaction is no longer active
        """
        self._assert_active()
        parameters = dict(parameters or {}, **kwparameters)
        protocol = self._connection.protocol
        try:
            run, pull = await protocol.run_in_transaction(
                self._connection, query, parameters
            )
        except BaseException as error:
            await self._finish(TransactionState.FAILED, error)
            raise
        result = Result(self._connection, run, pull, query, parameters,
                        on_closed=self._result_closed)
        try:
            await result._attach()
        except BaseException:
            if self._begin_error is not None:
                raise self._begin_error
            raise
        return result

    async def commit(self) -> Bookmark:
        """ Commit the transaction.

        :return: the bookmark of the committed transaction
        :raise TransactionError: if the transaction is no longer active
        """
        self._assert_active()
        try:
            bookmark = await self._connection.protocol.commit_transaction(
                self._connection
            )
        except BaseException as error:
            await self._finish(TransactionState.FAILED, error)
            if self._begin_error is not None:
                raise self._begin_error
            raise
        self._bookmark = bookmark
        await self._finish(TransactionState.COMMITTED)
        return bookmark

    async def rollback(self):
        """ Roll the transaction back.

        :raise TransactionError: if the transaction is no longer active
        """
        self._assert_active()
        try:
            await self._connection.protocol.rollback_transaction(
                self._connection
            )
        except BaseException as error:
            await self._finish(TransactionState.FAILED, error)
            raise
        await self._finish(TransactionState.ROLLED_BACK)

    async def close(self):
        """ Roll back if still active, otherwise do nothing. """
        if self._state is TransactionState.ACTIVE:
            await self.rollback()

    @property
    def bookmark(self) -> Bookmark:
        """ The bookmark returned by commit, empty before that. """
        return self._bookmark
