"""Loading YAML fixtures into Aerospike sets."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Protocol

import yaml

from gonkey.fixtures.mysql import _FixtureYamlLoader, _dump, _mapping, _resolve_reference

__all__ = ["LoadContext", "LoadedSet", "AerospikeLoader"]


class _AerospikeClient(Protocol):
    def truncate(self, set_name: str) -> None: ...

    def insert_bin_map(self, set_name: str, key: str, bin_map: dict[str, Any]) -> None: ...


@dataclass
class LoadedSet:
    """Records read from fixtures for one set: key to bin map."""

    name: str
    data: dict[str, dict[str, Any]] = field(default_factory=dict)


@dataclass
class LoadContext:
    """State gathered while reading fixture files."""

    files: list[str] = field(default_factory=list)
    sets: list[LoadedSet] = field(default_factory=list)
    refs_definition: dict[str, dict[str, Any]] = field(default_factory=dict)


class AerospikeLoader:
    """Truncates sets and fills them with records from YAML fixture files.

    ``client`` offers ``truncate(set_name)`` and ``insert_bin_map(set_name, key, bin_map)``.
    """

    def __init__(self, client: _AerospikeClient | None, location: str = "", debug: bool = False) -> None:
        self._client = client
        self.location = location
        self.debug = debug

    def load(self, names: list[str]) -> None:
        """Read the named fixtures and load their sets."""
        ctx = LoadContext()
        for name in names:
            try:
                self._load_file(name, ctx)
            except (OSError, ValueError, yaml.YAMLError) as exc:
                raise ValueError(f"unable to load fixture {name}: {exc}") from exc
        self.load_sets(ctx)

    def _load_file(self, name: str, ctx: LoadContext) -> None:
        candidates = [
            f"{self.location}/{name}",
            f"{self.location}/{name}.yml",
            f"{self.location}/{name}.yaml",
        ]
        filename = next((c for c in candidates if os.path.exists(c)), None)
        if filename is None:
            raise FileNotFoundError(f"no such file or directory: {candidates[-1]}")
        if filename in ctx.files:
            return
        if self.debug:
            print("Loading", filename)
        with open(filename, "rb") as handle:
            data = handle.read()
        ctx.files.append(filename)
        self.load_yaml(data, ctx)

    def load_yaml(self, data: str | bytes, ctx: LoadContext) -> None:
        """Parse one fixture document into ``ctx``, loading inherited files first."""
        document = _mapping(yaml.load(data, Loader=_FixtureYamlLoader), "fixture")

        for inherit in document.get("inherits") or []:
            self._load_file(str(inherit), ctx)

        for name, raw in _mapping(document.get("templates"), "templates").items():
            name = str(name)
            if name in ctx.refs_definition:
                raise ValueError(f"unable to load template {name}: duplicating ref name")
            bin_map = _bin_map(raw)
            if "$extend" in bin_map:
                base = _resolve_reference(ctx.refs_definition, str(bin_map["$extend"]))
                base.update(bin_map)
                bin_map = base
            ctx.refs_definition[name] = bin_map
            if self.debug:
                print(f"Populating ref {name} as {_dump(bin_map)} from template")

        for name, raw in _mapping(document.get("sets"), "sets").items():
            ctx.sets.append(LoadedSet(str(name), _set(raw)))

    def load_sets(self, ctx: LoadContext) -> None:
        """Truncate every set once, then insert its records."""
        truncated: set[str] = set()
        for loaded in ctx.sets:
            if loaded.name in truncated:
                continue
            self._client.truncate(loaded.name)
            truncated.add(loaded.name)

        for loaded in ctx.sets:
            if not loaded.data:
                continue
            try:
                self._load_set(ctx, loaded)
            except Exception as exc:
                raise RuntimeError(
                    f"failed to load set '{loaded.name}' because:\n{exc}"
                ) from exc

    def _load_set(self, ctx: LoadContext, loaded: LoadedSet) -> None:
        for key, bin_map in list(loaded.data.items()):
            if "$extend" not in bin_map:
                continue
            base = _resolve_reference(ctx.refs_definition, str(bin_map["$extend"]))
            base.update(bin_map)
            loaded.data[key] = base

        for key, bin_map in loaded.data.items():
            self._client.insert_bin_map(loaded.name, key, bin_map)


def _set(raw: Any) -> dict[str, dict[str, Any]]:
    if not isinstance(raw, dict):
        raise ValueError("expected map/array as set")
    return {str(key): _bin_map(value) for key, value in raw.items()}


def _bin_map(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise ValueError("expected map/array as binmap")
    return {str(key): value for key, value in raw.items()}