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

import sys


# Can be automatically overridden in builds
package = "graphbolt"
version = "1.0.0.dev0"


def _compute_user_agent() -> str:
    template = "{}-python/{} Python/{}.{}.{}-{}-{} ({})"
    fields = (package, version) + tuple(sys.version_info) + (sys.platform,)
    return template.format(*fields)


USER_AGENT = _compute_user_agent()


def get_user_agent():
    """ Obtain the default user agent string sent to the server during
    connection initialisation.
    """
    return USER_AGENT
