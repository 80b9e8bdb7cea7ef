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

import typing as t
from warnings import warn

from ..data import Record
from ..exceptions import (
    ResultConsumedError,
    ResultError,
)
from .summary import ResultSummary


class Result:
    """ A cursor over the records of one statement.

    Records are read from the connection on demand. Reading the
    connection may also complete earlier responses queued on it, so
    records not yet asked for are kept in the response buffer.

    :param connection: connection the statement was sent on
    :param run: response to the ``RUN`` request
    :param pull: response to the ``PULL_ALL``/``DISCARD_ALL`` request
    :param on_closed: awaited once with ``(result, error)`` when the
        result is exhausted, consumed or failed
    """

    def __init__(self, connection, run, pull, query=None, parameters=None,
                 on_closed=None):
        self._connection = connection
        self._run = run
        self._pull = pull
        self._query = query
        self._parameters = parameters
        self._on_closed = on_closed
        self._closed = False
        self._consumed = False
        self._reading = False
        self._summary = None

    def __repr__(self):
        return "<{} query={!r} closed={!r}>".format(
            self.__class__.__name__, self._query, self._closed
        )

    async def _attach(self):
        """ Wait for the ``RUN`` acknowledgement. """
        await self._read(self._run)

    async def _read(self, *responses):
        """ Read from the connection, until the given responses are
        complete or else a single message. Only one task may read a
        result at a time.
        """
        if self._reading:
            raise ResultError(self, "Result is already being read by "
                                    "another task")
        self._reading = True
        try:
            if responses:
                await self._connection.fetch_until(*responses)
            else:
                await self._connection.fetch_message()
        except BaseException as error:
            self._reading = False
            await self._close(error)
            raise
        self._reading = False

    def reading(self) -> bool:
        """ True while a task is waiting on the connection for this
        result.
        """
        return self._reading

    async def _close(self, error=None):
        if self._closed:
            return
        self._closed = True
        if self._on_closed is not None:
            await self._on_closed(self, error)

    def closed(self) -> bool:
        """ True once every record has arrived or the statement failed. """
        return self._closed

    async def keys(self) -> t.Tuple[str, ...]:
        """ The keys of the records in this result. """
        if not self._run.complete:
            await self._attach()
        if self._run.error is not None:
            raise self._run.error
        return tuple(self._run.metadata.get("fields", ()))

    def __aiter__(self):
        return self

    async def __anext__(self) -> Record:
        if self._consumed:
            raise ResultConsumedError(
                self, "The result has been consumed. Fetch all needed "
                      "records before calling Result.consume()."
            )
        keys = await self.keys()
        while not self._pull.records:
            if self._pull.complete:
                await self._close(self._pull.error)
                if self._pull.error is not None:
                    raise self._pull.error
                raise StopAsyncIteration
            await self._read()
        return Record(keys, self._pull.records.popleft())

    async def _buffer_all(self):
        """ Read every remaining record into the buffer, so that the
        connection is free while the records can still be iterated.
        """
        await self._read(self._run, self._pull)
        await self._close()

    async def consume(self) -> ResultSummary:
        """ Discard the remaining records and return the summary. """
        if self._summary is not None:
            return self._summary
        await self._buffer_all()
        self._pull.records.clear()
        self._consumed = True
        metadata = dict(self._run.metadata)
        metadata.update(self._pull.metadata)
        metadata.setdefault("query", self._query)
        metadata.setdefault("parameters", self._parameters)
        self._summary = ResultSummary(self._connection.address, **metadata)
        return self._summary

    async def single(self) -> t.Optional[Record]:
        """ Obtain the next and only remaining record from this result.

        A warning is generated if more than one record is available but
        the first of these is still returned.

        :return: the next :class:`.Record` or :const:`None` if no
            records remain
        :warn: if more than one record is available
        """
        records = [record async for record in self]
        size = len(records)
        if size == 0:
            return None
        if size != 1:
            warn("Expected a result with a single record, "
                 "but this result contains %d" % size)
        return records[0]

    async def data(self, *keys) -> t.List[t.Dict[str, t.Any]]:
        """ The remaining records as dictionaries. """
        return [record.data(*keys) async for record in self]

    async def values(self, *keys) -> t.List[t.List[t.Any]]:
        """ The remaining records as lists of values. """
        return [record.values(*keys) async for record in self]
