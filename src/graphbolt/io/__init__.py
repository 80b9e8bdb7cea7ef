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


"""
Connections, protocol versions, pooling and connection providers. Driver
users work with sessions from :mod:`graphbolt.work` instead.
"""


__all__ = [
    "Bolt",
    "BOLT_V1",
    "BOLT_V3",
    "BoltProtocol",
    "ConnectionPool",
    "ConnectionState",
    "DEFAULT_PROTOCOLS",
    "DirectConnectionProvider",
    "Response",
    "ResponseDispatcher",
    "RoutingConnectionProvider",
]


from ._bolt import (
    Bolt,
    ConnectionState,
)
from ._pool import ConnectionPool
from ._protocol import (
    BOLT_V1,
    BOLT_V3,
    BoltProtocol,
    DEFAULT_PROTOCOLS,
)
from ._provider import (
    DirectConnectionProvider,
    RoutingConnectionProvider,
)
from ._response import (
    Response,
    ResponseDispatcher,
)
