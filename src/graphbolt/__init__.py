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


from ._meta import (
    get_user_agent,
    version as __version__,
)
from .addressing import (
    Address,
    IPv4Address,
    IPv6Address,
)
from .api import (
    Auth,
    basic_auth,
    Bookmark,
    custom_auth,
    READ_ACCESS,
    TRUST_ALL_CERTIFICATES,
    TRUST_SYSTEM_CA_SIGNED_CERTIFICATES,
    Version,
    WRITE_ACCESS,
)
from .conf import (
    Config,
    PoolConfig,
    SessionConfig,
)
from .data import Record
from .driver import (
    DirectDriver,
    Driver,
    GraphDatabase,
    RoutingDriver,
)
from .work import (
    Result,
    ResultSummary,
    Session,
    Transaction,
)


__all__ = [
    "READ_ACCESS",
    "TRUST_ALL_CERTIFICATES",
    "TRUST_SYSTEM_CA_SIGNED_CERTIFICATES",
    "WRITE_ACCESS",
    "Address",
    "Auth",
    "Bookmark",
    "Config",
    "DirectDriver",
    "Driver",
    "GraphDatabase",
    "IPv4Address",
    "IPv6Address",
    "PoolConfig",
    "Record",
    "Result",
    "ResultSummary",
    "RoutingDriver",
    "Session",
    "SessionConfig",
    "Transaction",
    "Version",
    "__version__",
    "basic_auth",
    "custom_auth",
    "get_user_agent",
]
