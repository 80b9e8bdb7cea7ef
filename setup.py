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


import pathlib
import sys

from setuptools import (
    find_packages,
    setup,
)


sys.path.insert(0, str(pathlib.Path(__file__).parent / "src"))

from graphbolt._meta import (
    package,
    version,
)


install_requires = [
    "typing_extensions>=4.1",
]

extras_require = {
    "test": [
        "pytest>=7.0",
        "pytest-asyncio>=0.20",
        "pytest-mock>=3.10",
    ],
}


setup(
    name=package,
    version=version,
    description="Asynchronous client for Bolt graph database servers.",
    license="Apache License, Version 2.0",
    python_requires=">=3.8",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=install_requires,
    extras_require=extras_require,
    classifiers=[
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Database",
        "Framework :: AsyncIO",
    ],
)
