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
from collections import deque

from ..exceptions import (
    GraphError,
    ProtocolError,
    SessionExpired,
)
from ._messages import (
    FAILURE,
    IGNORED,
    RECORD,
    SUCCESS,
)


log = logging.getLogger("graphbolt.io")


class Response:
    """
    Subscriber object for a full response.

    I.e., zero or more RECORD messages followed by one summary message
    (SUCCESS, FAILURE or IGNORED). Handlers are plain callables passed by
    keyword: ``on_records``, ``on_success``, ``on_failure``, ``on_ignored``
    and ``on_summary``. They run on the event loop while the message is
    dispatched and must not block.
    """

    def __init__(self, name="", **handlers):
        self.name = name
        self.handlers = handlers
        self.records = deque()
        self.metadata = {}
        self.error = None
        self.ignored = False
        self.complete = False

    def __repr__(self):
        return "<{} {} complete={!r}>".format(self.__class__.__name__,
                                              self.name, self.complete)

    def _call(self, name, *args):
        handler = self.handlers.get(name)
        if handler is not None:
            handler(*args)

    def on_records(self, values):
        """ Handle a RECORD message. """
        self.records.append(values)
        self._call("on_records", values)

    def on_success(self, metadata):
        """ Handle a SUCCESS message. """
        self.metadata = metadata
        self.complete = True
        self._call("on_success", metadata)
        self._call("on_summary")

    def on_failure(self, error):
        """ Handle a failure, either a server FAILURE or the loss of the
        connection before the summary arrived.
        """
        self.error = error
        self.complete = True
        self._call("on_failure", error)
        self._call("on_summary")

    def on_ignored(self, metadata=None):
        """ Handle an IGNORED message. """
        self.ignored = True
        self.complete = True
        self._call("on_ignored", metadata)
        self._call("on_summary")


class ResponseDispatcher:
    """ FIFO queue of responses awaiting a reply on one connection.

    Replies arrive in the order requests were written, so every summary
    message completes the response at the head of the queue. RECORD
    messages are handed to the head response without removing it.
    """

    def __init__(self, local_port=0):
        self._local_port = local_port
        self._queue = deque()

    def __len__(self):
        return len(self._queue)

    def queue(self, response: Response):
        self._queue.append(response)

    def dispatch(self, tag: bytes, fields: list) -> t.Optional[GraphError]:
        """ Feed one server message to the head response.

        :return: the hydrated server error if the message was a FAILURE,
            otherwise :const:`None`
        :raise ProtocolError: if no response is waiting or the message is
            not a known response
        """
        if not self._queue:
            raise ProtocolError("Unexpected message 0x%02X with no "
                                "response pending" % ord(tag))
        if tag == RECORD:
            values = fields[0] if fields else []
            if not isinstance(values, list):
                raise ProtocolError("RECORD fields must be a list, found "
                                    "%r" % type(values).__name__)
            log.debug("[#%04X]  S: RECORD * 1", self._local_port)
            self._queue[0].on_records(values)
            return None
        if tag not in (SUCCESS, FAILURE, IGNORED):
            raise ProtocolError("Unexpected response message with "
                                "signature %02X" % ord(tag))
        metadata = fields[0] if fields else {}
        if not isinstance(metadata, dict):
            raise ProtocolError("Summary metadata must be a map, found "
                                "%r" % type(metadata).__name__)
        response = self._queue.popleft()
        if tag == SUCCESS:
            log.debug("[#%04X]  S: SUCCESS %r", self._local_port, metadata)
            response.on_success(metadata)
            return None
        if tag == IGNORED:
            log.debug("[#%04X]  S: IGNORED", self._local_port)
            response.on_ignored(metadata)
            return None
        log.debug("[#%04X]  S: FAILURE %r", self._local_port, metadata)
        error = GraphError.hydrate(**metadata)
        response.on_failure(error)
        return error

    def fail_all(self, cause: BaseException):
        """ Fail every pending response with :class:`SessionExpired`,
        chained to the cause.
        """
        while self._queue:
            response = self._queue.popleft()
            error = SessionExpired(
                "Connection failed before {} completed".format(
                    response.name or "request")
            )
            error.__cause__ = cause
            response.on_failure(error)
