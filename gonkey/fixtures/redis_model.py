"""Data model of Redis fixture files."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import timedelta
from fractions import Fraction
from typing import Any, Callable, TypeVar

import yaml

__all__ = [
    "TYPE_INT",
    "TYPE_STR",
    "TYPE_FLOAT",
    "Value",
    "KeyValue",
    "Keys",
    "HashValue",
    "HashRecordValue",
    "Hashes",
    "SetValue",
    "SetRecordValue",
    "Sets",
    "ListValue",
    "ListRecordValue",
    "Lists",
    "ZSetValue",
    "ZSetRecordValue",
    "ZSets",
    "Database",
    "Templates",
    "Fixture",
    "Context",
    "str_value",
    "int_value",
    "float_value",
    "value_from_yaml",
    "parse_duration",
    "fixture_from_yaml",
]

TYPE_INT = "int"
TYPE_STR = "str"
TYPE_FLOAT = "float"

_NO_DURATION = timedelta(0)


@dataclass(frozen=True)
class Value:
    """A scalar stored in Redis, with its type."""

    type: str = ""
    value: Any = None


def str_value(value: str) -> Value:
    return Value(TYPE_STR, value)


def int_value(value: int) -> Value:
    return Value(TYPE_INT, value)


def float_value(value: float) -> Value:
    return Value(TYPE_FLOAT, value)


def value_from_yaml(raw: Any) -> Value:
    """Build a Value from a decoded YAML scalar; raise ValueError for other types."""
    if isinstance(raw, str):
        return str_value(raw)
    if isinstance(raw, int) and not isinstance(raw, bool):
        return int_value(raw)
    if isinstance(raw, float):
        return float_value(raw)
    raise ValueError(f"unknown value type: {type(raw).__name__}")


@dataclass(frozen=True)
class KeyValue:
    value: Value = Value()
    expiration: timedelta = _NO_DURATION


@dataclass
class Keys:
    """Plain key/value pairs of a database."""

    name: str = ""
    extend: str = ""
    values: dict[str, KeyValue | None] = field(default_factory=dict)


@dataclass(frozen=True)
class HashValue:
    key: Value = Value()
    value: Value = Value()


@dataclass
class HashRecordValue:
    name: str = ""
    extend: str = ""
    values: list[HashValue | None] = field(default_factory=list)
    expiration: timedelta = _NO_DURATION


@dataclass
class Hashes:
    values: dict[str, HashRecordValue] = field(default_factory=dict)


@dataclass(frozen=True)
class SetValue:
    value: Value = Value()


@dataclass
class SetRecordValue:
    name: str = ""
    extend: str = ""
    values: list[SetValue | None] = field(default_factory=list)
    expiration: timedelta = _NO_DURATION


@dataclass
class Sets:
    values: dict[str, SetRecordValue] = field(default_factory=dict)


@dataclass(frozen=True)
class ListValue:
    value: Value = Value()


@dataclass
class ListRecordValue:
    name: str = ""
    extend: str = ""
    values: list[ListValue | None] = field(default_factory=list)
    expiration: timedelta = _NO_DURATION


@dataclass
class Lists:
    values: dict[str, ListRecordValue] = field(default_factory=dict)


@dataclass(frozen=True)
class ZSetValue:
    value: Value = Value()
    score: float = 0.0


@dataclass
class ZSetRecordValue:
    name: str = ""
    extend: str = ""
    values: list[ZSetValue | None] = field(default_factory=list)
    expiration: timedelta = _NO_DURATION


@dataclass
class ZSets:
    values: dict[str, ZSetRecordValue] = field(default_factory=dict)


@dataclass
class Database:
    """Data to load into one Redis database."""

    keys: Keys | None = None
    hashes: Hashes | None = None
    sets: Sets | None = None
    lists: Lists | None = None
    zsets: ZSets | None = None


@dataclass
class Templates:
    keys: list[Keys] = field(default_factory=list)
    hashes: list[HashRecordValue] = field(default_factory=list)
    sets: list[SetRecordValue] = field(default_factory=list)
    lists: list[ListRecordValue] = field(default_factory=list)
    zsets: list[ZSetRecordValue] = field(default_factory=list)


@dataclass
class Fixture:
    """A parsed fixture file: parents, templates and per-database data."""

    inherits: list[str] = field(default_factory=list)
    templates: Templates = field(default_factory=Templates)
    databases: dict[int, Database] = field(default_factory=dict)


@dataclass
class Context:
    """Named records collected while parsing, available for ``$extend``."""

    key_refs: dict[str, Keys] = field(default_factory=dict)
    hash_refs: dict[str, HashRecordValue] = field(default_factory=dict)
    set_refs: dict[str, SetRecordValue] = field(default_factory=dict)
    list_refs: dict[str, ListRecordValue] = field(default_factory=dict)
    zset_refs: dict[str, ZSetRecordValue] = field(default_factory=dict)


_UNIT_NS = {
    "ns": 1,
    "us": 10**3,
    "µs": 10**3,
    "μs": 10**3,
    "ms": 10**6,
    "s": 10**9,
    "m": 60 * 10**9,
    "h": 3600 * 10**9,
}
_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``10s``, ``1h30m`` or ``1.5ms``; raise ValueError if invalid."""
    body = text
    negative = False
    if body[:1] in ("+", "-"):
        negative = body[0] == "-"
        body = body[1:]
    if body == "0":
        return timedelta(0)
    if not body:
        raise ValueError(f"invalid duration {text!r}")

    total = Fraction(0)
    position = 0
    while position < len(body):
        match = _COMPONENT.match(body, position)
        if match is None:
            raise ValueError(f"invalid duration {text!r}")
        total += Fraction(match.group(1)) * _UNIT_NS[match.group(2)]
        position = match.end()
    if negative:
        total = -total
    return timedelta(microseconds=round(total / 1000))


def fixture_from_yaml(data: str | bytes) -> Fixture:
    """Decode a fixture document; raise ValueError on malformed content."""
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    document = _mapping(yaml.safe_load(data), "fixture")
    return Fixture(
        inherits=[_string(item) for item in _sequence(document.get("inherits"), "inherits")],
        templates=_templates(document.get("templates")),
        databases={
            int(db_id): _database(raw)
            for db_id, raw in _mapping(document.get("databases"), "databases").items()
        },
    )


_T = TypeVar("_T")


def _mapping(raw: Any, what: str) -> dict:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"expected a mapping as {what}")
    return raw


def _sequence(raw: Any, what: str) -> list:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f"expected a list as {what}")
    return raw


def _string(raw: Any) -> str:
    return "" if raw is None else str(raw)


def _value(raw: Any) -> Value:
    return Value() if raw is None else value_from_yaml(raw)


def _duration(raw: Any) -> timedelta:
    if raw is None:
        return _NO_DURATION
    if isinstance(raw, str):
        return parse_duration(raw)
    if isinstance(raw, int) and not isinstance(raw, bool):
        return timedelta(microseconds=round(Fraction(raw, 1000)))
    raise ValueError(f"invalid expiration: {raw!r}")


def _score(raw: Any) -> float:
    if raw is None:
        return 0.0
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return float(raw)
    raise ValueError(f"invalid score: {raw!r}")


def _optional(raw: Any, build: Callable[[dict], _T], what: str) -> _T | None:
    return None if raw is None else build(_mapping(raw, what))


def _key_value(raw: dict) -> KeyValue:
    return KeyValue(value=_value(raw.get("value")), expiration=_duration(raw.get("expiration")))


def _hash_value(raw: dict) -> HashValue:
    return HashValue(key=_value(raw.get("key")), value=_value(raw.get("value")))


def _set_value(raw: dict) -> SetValue:
    return SetValue(value=_value(raw.get("value")))


def _list_value(raw: dict) -> ListValue:
    return ListValue(value=_value(raw.get("value")))


def _zset_value(raw: dict) -> ZSetValue:
    return ZSetValue(value=_value(raw.get("value")), score=_score(raw.get("score")))


def _keys(raw: dict) -> Keys:
    return Keys(
        name=_string(raw.get("$name")),
        extend=_string(raw.get("$extend")),
        values={
            str(key): _optional(value, _key_value, "key value")
            for key, value in _mapping(raw.get("values"), "values").items()
        },
    )


def _record_builder(record_type: type, build_value: Callable[[dict], Any]) -> Callable[[dict], Any]:
    def build(raw: dict) -> Any:
        return record_type(
            name=_string(raw.get("$name")),
            extend=_string(raw.get("$extend")),
            values=[
                _optional(item, build_value, "value")
                for item in _sequence(raw.get("values"), "values")
            ],
            expiration=_duration(raw.get("expiration")),
        )

    return build


_hash_record = _record_builder(HashRecordValue, _hash_value)
_set_record = _record_builder(SetRecordValue, _set_value)
_list_record = _record_builder(ListRecordValue, _list_value)
_zset_record = _record_builder(ZSetRecordValue, _zset_value)


def _collection(raw: dict, collection_type: type, build: Callable[[dict], Any]) -> Any:
    return collection_type(
        values={
            str(key): build(_mapping(value, "record"))
            for key, value in _mapping(raw.get("values"), "values").items()
        }
    )


def _database(raw: Any) -> Database:
    data = _mapping(raw, "database")
    return Database(
        keys=_optional(data.get("keys"), _keys, "keys"),
        hashes=_optional(data.get("hashes"), lambda m: _collection(m, Hashes, _hash_record), "hashes"),
        sets=_optional(data.get("sets"), lambda m: _collection(m, Sets, _set_record), "sets"),
        lists=_optional(data.get("lists"), lambda m: _collection(m, Lists, _list_record), "lists"),
        zsets=_optional(data.get("zsets"), lambda m: _collection(m, ZSets, _zset_record), "zsets"),
    )


def _templates(raw: Any) -> Templates:
    data = _mapping(raw, "templates")

    def build_all(name: str, build: Callable[[dict], Any]) -> list:
        return [build(_mapping(item, name)) for item in _sequence(data.get(name), name)]

    return Templates(
        keys=build_all("keys", _keys),
        hashes=build_all("hashes", _hash_record),
        sets=build_all("sets", _set_record),
        lists=build_all("lists", _list_record),
        zsets=build_all("zsets", _zset_record),
    )