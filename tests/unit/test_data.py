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


import pytest

from graphbolt.data import Record


def test_record_equality():
    record1 = Record(["name", "empire"], ["Nigel", "The British Empire"])
    record2 = Record(["name", "empire"], ["Nigel", "The British Empire"])
    record3 = Record(["name", "empire"], ["Stefan", "Das Deutschland"])
    assert record1 == record2
    assert record1 != record3
    assert record2 != record3


def test_record_hashing():
    record1 = Record(["name", "empire"], ["Nigel", "The British Empire"])
    record2 = Record(["name", "empire"], ["Nigel", "The British Empire"])
    record3 = Record(["name", "empire"], ["Stefan", "Das Deutschland"])
    assert hash(record1) == hash(record2)
    assert hash(record1) != hash(record3)


def test_record_compares_to_sequences_and_mappings():
    r = Record(["name", "age"], ["Alice", 33])
    assert r == ["Alice", 33]
    assert r == ("Alice", 33)
    assert r == {"name": "Alice", "age": 33}


def test_record_iter():
    a_record = Record(["name", "empire"], ["Nigel", "The British Empire"])
    assert list(a_record.__iter__()) == ["Nigel", "The British Empire"]


def test_record_as_dict():
    a_record = Record(["name", "empire"], ["Nigel", "The British Empire"])
    assert dict(a_record) == {"name": "Nigel", "empire": "The British Empire"}


def test_record_as_list():
    a_record = Record(["name", "empire"], ["Nigel", "The British Empire"])
    assert list(a_record) == ["Nigel", "The British Empire"]


def test_record_len():
    a_record = Record(["name", "empire"], ["Nigel", "The British Empire"])
    assert len(a_record) == 2


def test_record_repr():
    a_record = Record(["name", "empire"], ["Nigel", "The British Empire"])
    assert repr(a_record) == "<Record name='Nigel' empire='The British Empire'>"


def test_record_data():
    r = Record(["name", "age", "married"], ["Alice", 33, True])
    assert r.data() == {"name": "Alice", "age": 33, "married": True}
    assert r.data("name") == {"name": "Alice"}
    assert r.data("age", "name") == {"age": 33, "name": "Alice"}
    assert r.data(2) == {"married": True}
    with pytest.raises(KeyError):
        r.data("shoe size")
    with pytest.raises(IndexError):
        r.data(3)


def test_record_keys():
    r = Record(["name", "age", "married"], ["Alice", 33, True])
    assert r.keys() == ["name", "age", "married"]


def test_record_values():
    r = Record(["name", "age", "married"], ["Alice", 33, True])
    assert r.values() == ["Alice", 33, True]
    assert r.values("name") == ["Alice"]
    assert r.values("age", "name") == [33, "Alice"]
    assert r.values("age", "name", "shoe size") == [33, "Alice", None]
    assert r.values(0, "name") == ["Alice", "Alice"]
    assert r.values(0) == ["Alice"]
    assert r.values(1, 0) == [33, "Alice"]


def test_record_items():
    r = Record(["name", "age", "married"], ["Alice", 33, True])
    assert r.items() == [("name", "Alice"), ("age", 33), ("married", True)]


def test_record_index():
    r = Record(["name", "age", "married"], ["Alice", 33, True])
    assert r.index("name") == 0
    assert r.index("age") == 1
    assert r.index("married") == 2
    assert r.index(-1) == 2
    with pytest.raises(KeyError):
        r.index("shoe size")
    with pytest.raises(IndexError):
        r.index(3)
    with pytest.raises(TypeError):
        r.index(None)


def test_record_value():
    r = Record(["name", "age", "married"], ["Alice", 33, True])
    assert r.value() == "Alice"
    assert r.value("name") == "Alice"
    assert r.value("shoe size") is None
    assert r.value("shoe size", 6) == 6
    assert r.value(1) == 33
    assert r.value(3) is None


def test_record_get():
    r = Record(["name", "age"], ["Alice", 33])
    assert r.get("age") == 33
    assert r.get("shoe size") is None
    assert r.get("shoe size", 6) == 6


def test_record_contains():
    r = Record(["name", "age", "married"], ["Alice", 33, True])
    assert "Alice" in r
    assert 33 in r
    assert "name" not in r


def test_record_getitem():
    r = Record(["name", "age", "married"], ["Alice", 33, True])
    assert r["name"] == "Alice"
    assert r[1] == 33
    assert r[-1] is True
    assert r[1:] == Record(["age", "married"], [33, True])
    with pytest.raises(KeyError):
        _ = r["shoe size"]
    with pytest.raises(IndexError):
        _ = r[3]


def test_record_rejects_mismatched_lengths():
    with pytest.raises(ValueError):
        Record(["name", "age"], ["Alice"])
