"""Parsing of Redis fixture files, with inheritance, templates and ``$extend``."""

from __future__ import annotations

import glob
import os
from typing import Any, Callable, Protocol

import yaml

from gonkey.fixtures.redis_model import (
    Context,
    Database,
    Fixture,
    HashRecordValue,
    Keys,
    Templates,
    fixture_from_yaml,
)

__all__ = [
    "FixtureError",
    "FixtureNotFoundError",
    "FixtureFileLoadError",
    "FixtureParseError",
    "ParserNotFoundError",
    "FileParser",
    "RedisYamlParser",
    "register_parser",
    "get_parser",
]


class FixtureError(Exception):
    """Base class of fixture loading failures."""


class FixtureNotFoundError(FixtureError):
    """No file matches the fixture name."""


class FixtureFileLoadError(FixtureError):
    """A fixture file could not be located or read."""


class FixtureParseError(FixtureError):
    """A fixture file could not be parsed."""


class ParserNotFoundError(FixtureError):
    """No parser is registered for the fixture file's format."""


class _FixtureFileParser(Protocol):
    def parse(self, ctx: Context, filename: str) -> Fixture: ...

    def copy(self, file_parser: FileParser) -> _FixtureFileParser: ...


_registry: dict[str, _FixtureFileParser] = {}


def register_parser(format: str, parser: _FixtureFileParser) -> None:
    """Register a parser for files with the given extension."""
    _registry[format] = parser


def get_parser(format: str) -> _FixtureFileParser | None:
    """Return the parser registered for an extension, or None."""
    return _registry.get(format)


class FileParser:
    """Finds fixture files by name in a list of directories and parses them."""

    def __init__(self, locations: list[str]) -> None:
        self.locations = list(locations)

    def parse_files(self, ctx: Context, names: list[str]) -> list[Fixture]:
        """Parse the named fixtures, each file once, collecting references into ``ctx``."""
        seen: set[str] = set()
        fixtures: list[Fixture] = []
        for name in names:
            for location in self.locations:
                filename = self._first_existing(name, location)
                if filename in seen:
                    continue
                extension = os.path.splitext(filename)[1].replace(".", "")
                parser = get_parser(extension)
                if parser is None:
                    raise ParserNotFoundError("parser not found")
                try:
                    fixture = parser.copy(self).parse(ctx, filename)
                except (OSError, ValueError, yaml.YAMLError, FixtureError) as exc:
                    raise FixtureParseError(
                        f"failed to parse fixture file {filename}: {exc}"
                    ) from exc
                fixtures.append(fixture)
                seen.add(filename)
        return fixtures

    @staticmethod
    def _first_existing(name: str, location: str) -> str:
        for candidate in (name, f"{name}.yaml", f"{name}.yml"):
            matches = sorted(glob.glob(os.path.join(location, candidate)))
            if matches:
                return matches[0]
        raise FixtureFileLoadError(
            f"failed to load fixture file {name}: fixture not found"
        ) from FixtureNotFoundError("fixture not found")


def _copy_keys(source: Keys) -> Keys:
    return Keys(values=dict(source.values))


def _copy_record(source: Any) -> Any:
    return type(source)(values=list(source.values), expiration=source.expiration)


def _merge_keys(parent: Keys, child: Keys) -> None:
    parent.values.update(child.values)
    child.values = parent.values


def _merge_sequence(parent: Any, child: Any) -> None:
    child.values = parent.values + child.values
    child.expiration = parent.expiration


def _merge_hash(parent: HashRecordValue, child: HashRecordValue) -> None:
    merged = {}
    for item in [*parent.values, *child.values]:
        if item is None:
            raise ValueError("hash value without a key")
        merged[item.key] = item
    child.values = list(merged.values())
    child.expiration = parent.expiration


def _extend(
    refs: dict[str, Any],
    child: Any,
    copy: Callable[[Any], Any],
    merge: Callable[[Any, Any], None],
) -> None:
    if not child.extend:
        return
    if child.extend not in refs:
        raise ValueError(f"ref not found: {child.extend}")
    merge(copy(refs[child.extend]), child)


class RedisYamlParser:
    """Parses YAML Redis fixtures, resolving inherited files and ``$extend`` references."""

    def __init__(self, file_parser: FileParser | None = None) -> None:
        self.file_parser = file_parser

    def copy(self, file_parser: FileParser) -> RedisYamlParser:
        """Return a parser bound to ``file_parser`` for loading inherited fixtures."""
        return RedisYamlParser(file_parser)

    def parse(self, ctx: Context, filename: str) -> Fixture:
        """Parse one file; raise ValueError or OSError on failure."""
        with open(filename, "rb") as handle:
            data = handle.read()
        fixture = fixture_from_yaml(data)

        for parent in fixture.inherits:
            if self.file_parser is None:
                raise ValueError("parser is not bound to a file parser")
            self.file_parser.parse_files(ctx, [parent])

        self._build_templates(ctx, fixture.templates)
        for database in fixture.databases.values():
            self._build_database(ctx, database)
        return fixture

    @staticmethod
    def _build_templates(ctx: Context, templates: Templates) -> None:
        kinds = (
            (templates.keys, ctx.key_refs, _copy_keys, _merge_keys),
            (templates.sets, ctx.set_refs, _copy_record, _merge_sequence),
            (templates.hashes, ctx.hash_refs, _copy_record, _merge_hash),
            (templates.lists, ctx.list_refs, _copy_record, _merge_sequence),
            (templates.zsets, ctx.zset_refs, _copy_record, _merge_sequence),
        )
        for records, refs, copy, merge in kinds:
            for record in records:
                if not record.name:
                    raise ValueError("template $name is required")
                if record.name in refs:
                    raise ValueError(
                        f"unable to load template {record.name}: duplicating ref name"
                    )
                _extend(refs, record, copy, merge)
                refs[record.name] = copy(record)

    @staticmethod
    def _build_database(ctx: Context, database: Database) -> None:
        if database.keys is not None:
            _extend(ctx.key_refs, database.keys, _copy_keys, _merge_keys)
            if database.keys.name:
                ctx.key_refs[database.keys.name] = _copy_keys(database.keys)

        collections = (
            (database.hashes, ctx.hash_refs, _merge_hash, "hash"),
            (database.sets, ctx.set_refs, _merge_sequence, "set"),
            (database.lists, ctx.list_refs, _merge_sequence, "list"),
            (database.zsets, ctx.zset_refs, _merge_sequence, "zset"),
        )
        for collection, refs, merge, label in collections:
            if collection is None:
                continue
            for record in collection.values.values():
                try:
                    _extend(refs, record, _copy_record, merge)
                except ValueError as exc:
                    raise ValueError(f"extend {label} error: {exc}") from exc
                if record.name:
                    refs[record.name] = _copy_record(record)


register_parser("yaml", RedisYamlParser())