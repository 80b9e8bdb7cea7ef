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

from ..addressing import Address
from ..api import Bookmark


class ResultSummary:
    """ A summary of execution returned with a :class:`.Result` object.
    """

    #: The address of the server that produced the result.
    server: Address

    #: The query that was executed to produce this result.
    query: t.Optional[str]

    #: Dictionary of parameters passed with the query.
    parameters: t.Optional[t.Dict[str, t.Any]]

    #: The type of query (``'r'`` = read-only, ``'rw'`` = read/write).
    query_type: t.Optional[str]

    #: A dictionary of counters for the statement, if provided.
    counters: t.Dict[str, t.Any]

    #: Bookmark returned with the result, empty unless the server sent one.
    bookmark: Bookmark

    def __init__(self, address, **metadata):
        self.metadata = metadata
        self.server = address
        self.query = metadata.get("query")
        self.parameters = metadata.get("parameters")
        self.query_type = metadata.get("type")
        self.counters = dict(metadata.get("stats", {}))
        self.bookmark = Bookmark.from_raw(metadata.get("bookmark"))
        self.result_available_after = metadata.get(
            "result_available_after", metadata.get("t_first")
        )
        self.result_consumed_after = metadata.get(
            "result_consumed_after", metadata.get("t_last")
        )

    def __repr__(self):
        return "<{} server={} query_type={!r} counters={!r}>".format(
            self.__class__.__name__, self.server, self.query_type,
            self.counters
        )
