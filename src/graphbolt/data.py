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
from collections.abc import (
    Mapping,
    Sequence,
)


class Record(tuple, Mapping):
    """ A :class:`.Record` is an immutable ordered collection of key-value
    pairs. It is generally closer to a :py:class:`namedtuple` than to a
    :py:class:`OrderedDict` inasmuch as iteration of the collection will
    yield values rather than keys.
    """

    __keys: t.Tuple[str, ...] = ()

    def __new__(cls, keys=(), values=()):
        keys = tuple(keys)
        values = tuple(values)
        if len(keys) != len(values):
            raise ValueError("Record has %d keys but %d values"
                             % (len(keys), len(values)))
        inst = tuple.__new__(cls, values)
        inst.__keys = keys
        return inst

    def __repr__(self):
        return "<%s %s>" % (
            self.__class__.__name__,
            " ".join("%s=%r" % (field, self[i])
                     for i, field in enumerate(self.__keys))
        )

    def __eq__(self, other):
        """ Records compare equal to sequences with the same values and
        to mappings with the same items.
        """
        if isinstance(other, Record):
            return self.__keys == other.__keys and tuple(self) == tuple(other)
        if isinstance(other, Sequence):
            return tuple(self) == tuple(other)
        if isinstance(other, Mapping):
            return dict(self.items()) == dict(other)
        return NotImplemented

    def __hash__(self):
        return hash((self.__keys, tuple(self)))

    def __iter__(self):
        return tuple.__iter__(self)

    def __len__(self):
        return tuple.__len__(self)

    def __getitem__(self, key):
        if isinstance(key, slice):
            return self.__class__(self.__keys[key],
                                  tuple.__getitem__(self, key))
        return tuple.__getitem__(self, self.index(key))

    def __contains__(self, value):
        return tuple.__contains__(self, value)

    def get(self, key, default=None):
        """ Obtain a value from the record by key, returning a default
        value if the key does not exist.
        """
        try:
            index = self.__keys.index(str(key))
        except ValueError:
            return default
        return tuple.__getitem__(self, index)

    def index(self, key):
        """ Return the index of the given item.

        :param key: a key or an integer index
        :raise IndexError: if an integer index is out of range
        :raise KeyError: if the key does not exist
        """
        if isinstance(key, int):
            if 0 <= key < len(self.__keys) or -len(self.__keys) <= key < 0:
                return key % len(self.__keys)
            raise IndexError(key)
        elif isinstance(key, str):
            try:
                return self.__keys.index(key)
            except ValueError:
                raise KeyError(key)
        else:
            raise TypeError(key)

    def value(self, key=0, default=None):
        """ Obtain a single value from the record by index or key. If no
        index or key is specified, the first value is returned. If the
        specified item does not exist, the default value is returned.
        """
        try:
            index = self.index(key)
        except (IndexError, KeyError):
            return default
        return tuple.__getitem__(self, index)

    def keys(self):
        """ Return the keys of the record.

        :return: list of key names
        """
        return list(self.__keys)

    def values(self, *keys):
        """ Return the values of the record, optionally filtering to
        include only certain values by index or key.
        """
        if keys:
            return [self.value(key) for key in keys]
        return list(self)

    def items(self):
        """ Return the fields of the record as a list of key and value
        tuples.
        """
        return list(zip(self.__keys, self))

    def data(self, *keys):
        """ Return the keys and values of this record as a dictionary,
        optionally including only certain values by index or key.

        :raise IndexError: if an out-of-bounds index is specified
        """
        if keys:
            return {self.__keys[self.index(key)]: self[key] for key in keys}
        return dict(self.items())
