from datetime import timedelta

import pytest

from gonkey.fixtures.redis_model import (
    TYPE_FLOAT,
    TYPE_INT,
    TYPE_STR,
    Context,
    HashValue,
    KeyValue,
    ListValue,
    SetValue,
    Value,
    ZSetValue,
    fixture_from_yaml,
    float_value,
    int_value,
    parse_duration,
    str_value,
    value_from_yaml,
)

EXAMPLE = """
inherits:
  - parent_template
  - child_template
databases:
  1:
    keys:
      $name: keys1
      values:
        a:
          value: 1
          expiration: 10s
        b:
          value: 2
  2:
    keys:
      $name: keys2
      values:
        c:
          value: 3
          expiration: 10s
        d:
          value: 4
"""


def test_value_constructors():
    assert str_value("a") == Value(TYPE_STR, "a")
    assert int_value(1) == Value(TYPE_INT, 1)
    assert float_value(1.5) == Value(TYPE_FLOAT, 1.5)
    assert int_value(1) != float_value(1.0)


@pytest.mark.parametrize("raw, expected", [("x", str_value("x")), (7, int_value(7)), (2.5, float_value(2.5))])
def test_value_from_yaml(raw, expected):
    assert value_from_yaml(raw) == expected


@pytest.mark.parametrize("raw", [True, [1], {"a": 1}, None])
def test_value_from_yaml_rejects_other_types(raw):
    with pytest.raises(ValueError, match="unknown value type"):
        value_from_yaml(raw)


def test_parse_duration():
    assert parse_duration("10s") == timedelta(seconds=10)
    assert parse_duration("0") == timedelta(0)
    assert parse_duration("1h30m") == parse_duration("1h") + parse_duration("30m")
    assert parse_duration("1.5s") == parse_duration("1500ms")
    assert parse_duration("-2m") == -parse_duration("2m")
    assert parse_duration("1000us") == parse_duration("1ms")


@pytest.mark.parametrize("text", ["", "10", "s", "-", "10x", "1s2"])
def test_parse_duration_invalid(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_fixture_from_example_document():
    fixture = fixture_from_yaml(EXAMPLE)
    assert fixture.inherits == ["parent_template", "child_template"]
    assert sorted(fixture.databases) == [1, 2]

    keys = fixture.databases[1].keys
    assert keys.name == "keys1"
    assert keys.values == {
        "a": KeyValue(int_value(1), parse_duration("10s")),
        "b": KeyValue(int_value(2), timedelta(0)),
    }
    assert fixture.databases[1].sets is None
    assert fixture.databases[2].keys.values["d"] == KeyValue(int_value(4))


def test_fixture_accepts_bytes():
    assert fixture_from_yaml(EXAMPLE.encode()) == fixture_from_yaml(EXAMPLE)


def test_fixture_collections_and_templates():
    fixture = fixture_from_yaml(
        """
templates:
  hashes:
    - $name: parentMap
      values:
        - key: a1
          value: 1
  zsets:
    - $name: childZSet
      $extend: parentZSet
      values:
        - value: 3
          score: 5.6
databases:
  1:
    sets:
      values:
        set1:
          expiration: 10s
          values:
            - value: a
    lists:
      values:
        list1:
          values:
            - value: 1
            - value: "2"
"""
    )
    template = fixture.templates.hashes[0]
    assert template.name == "parentMap"
    assert template.values == [HashValue(str_value("a1"), int_value(1))]

    zset = fixture.templates.zsets[0]
    assert (zset.name, zset.extend) == ("childZSet", "parentZSet")
    assert zset.values == [ZSetValue(int_value(3), 5.6)]

    db = fixture.databases[1]
    set1 = db.sets.values["set1"]
    assert set1.values == [SetValue(str_value("a"))]
    assert set1.expiration == parse_duration("10s")
    assert db.lists.values["list1"].values == [ListValue(int_value(1)), ListValue(str_value("2"))]


def test_empty_document_gives_empty_fixture():
    fixture = fixture_from_yaml("")
    assert fixture.inherits == []
    assert fixture.databases == {}
    assert fixture.templates.keys == []


def test_malformed_documents_raise():
    with pytest.raises(ValueError):
        fixture_from_yaml("- just a list")
    with pytest.raises(ValueError):
        fixture_from_yaml("databases:\n  1:\n    keys:\n      values:\n        a:\n          value: true\n")


def test_context_starts_empty():
    ctx = Context()
    assert (ctx.key_refs, ctx.hash_refs, ctx.set_refs, ctx.list_refs, ctx.zset_refs) == ({}, {}, {}, {}, {})
    other = Context()
    ctx.key_refs["x"] = None
    assert other.key_refs == {}