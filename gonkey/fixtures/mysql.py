"""Loading YAML fixtures into a MySQL database."""

from __future__ import annotations

import json
import math
import os
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import yaml

__all__ = [
    "LoadContext",
    "LoadedTable",
    "MysqlLoader",
    "to_db_value",
    "quote_literal",
]

_EVAL_EXPR = re.compile(r"\$eval\((.+)\)")
_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"
_MISSING_ID_COLUMN = "Unknown column 'id'"


class _FixtureYamlLoader(yaml.SafeLoader):
    """Safe loader that keeps dates and times as plain strings."""


_FixtureYamlLoader.yaml_implicit_resolvers = {
    first: [(tag, rx) for tag, rx in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


@dataclass
class LoadedTable:
    """Rows read from fixtures for one table."""

    name: str
    rows: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class LoadContext:
    """State gathered while reading fixture files and inserting their rows."""

    files: list[str] = field(default_factory=list)
    tables: list[LoadedTable] = field(default_factory=list)
    refs_definition: dict[str, dict[str, Any]] = field(default_factory=dict)
    refs_inserted: dict[str, dict[str, Any]] = field(default_factory=dict)


class MysqlLoader:
    """Truncates tables and fills them with rows from YAML fixture files.

    ``db`` is a DB-API connection using the ``%s`` parameter style.
    """

    def __init__(self, db: Any, location: str, debug: bool = False) -> None:
        self._db = db
        self.location = location
        self.debug = debug

    def load(self, names: list[str]) -> None:
        """Read the named fixtures and load them in one transaction."""
        ctx = LoadContext()
        for name in names:
            try:
                self._load_file(name, ctx)
            except (OSError, ValueError, yaml.YAMLError) as exc:
                raise ValueError(f"unable to load fixture {name}: {exc}") from exc
        self.load_tables(ctx)

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
        self._print_debug("Loading", filename)
        with open(filename, "rb") as handle:
            data = handle.read()
        ctx.files.append(filename)
        self.load_yaml(data, ctx)

    def load_yaml(self, data: str | bytes, ctx: LoadContext) -> None:
        """Parse one fixture document into ``ctx``, loading inherited files first."""
        document = _mapping(yaml.load(data, Loader=_FixtureYamlLoader), "fixture")

        for inherit in document.get("inherits") or []:
            self._load_file(str(inherit), ctx)

        for name, fields in _mapping(document.get("templates"), "templates").items():
            name = str(name)
            if name in ctx.refs_definition:
                raise ValueError(f"unable to load template {name}: duplicating ref name")
            row = _row(fields)
            if "$extend" in row:
                base_row = _resolve_reference(ctx.refs_definition, str(row["$extend"]))
                base_row.update(row)
                row = base_row
            ctx.refs_definition[name] = row
            if self.debug:
                print(f"Populating ref {name} as {_dump(row)} from template")

        for name, source_rows in _mapping(document.get("tables"), "tables").items():
            if not isinstance(source_rows, list):
                raise ValueError("expected array at root level")
            ctx.tables.append(LoadedTable(str(name), [_row(item) for item in source_rows]))

    def load_tables(self, ctx: LoadContext) -> None:
        """Truncate every table once, then insert rows; commit or roll back as a whole."""
        cursor = self._db.cursor()
        try:
            truncated: set[str] = set()
            for table in ctx.tables:
                if table.name in truncated:
                    continue
                self._execute(cursor, f"TRUNCATE TABLE `{table.name}`")
                truncated.add(table.name)

            for table in ctx.tables:
                if table.rows:
                    self._load_table(cursor, ctx, table)
        except BaseException:
            self._db.rollback()
            raise
        else:
            self._db.commit()
        finally:
            cursor.close()

    def _load_table(self, cursor: Any, ctx: LoadContext, table: LoadedTable) -> None:
        for index, row in enumerate(table.rows):
            if "$extend" not in row:
                continue
            base_row = _resolve_reference(ctx.refs_definition, str(row["$extend"]))
            base_row.update(row)
            table.rows[index] = base_row

        for row in table.rows:
            self._load_row(cursor, ctx, table.name, row)

    def _load_row(self, cursor: Any, ctx: LoadContext, table: str, row: dict[str, Any]) -> None:
        self._execute(cursor, self.build_insert_query(ctx, table, row))

        inserted = self._fetch_inserted_row(cursor, table)
        if inserted is None:
            return

        if "$name" not in row:
            return
        name = str(row["$name"])
        if name in ctx.refs_definition:
            raise ValueError(f"duplicating ref name {name}")
        ctx.refs_definition[name] = row
        if self.debug:
            print(f"Populating ref {name} as {_dump(row)} from row definition")
        ctx.refs_inserted[name] = inserted
        if self.debug:
            print(f"Populating ref {name} as {_dump(inserted)} from inserted values")

    @staticmethod
    def _fetch_inserted_row(cursor: Any, table: str) -> dict[str, Any] | None:
        """Read back the row just inserted; None when the table has no ``id`` column."""
        last_id = cursor.lastrowid
        try:
            cursor.execute(f"SELECT * FROM `{table}` WHERE `id` = %s", (last_id,))
        except Exception as exc:
            if _is_missing_id_column(exc):
                return None
            raise
        values = cursor.fetchone()
        if values is None:
            raise RuntimeError("can't get inserted row")
        columns = [column[0] for column in cursor.description]
        return {column: _raw_text(value) for column, value in zip(columns, values)}

    def build_insert_query(self, ctx: LoadContext, table: str, row: dict[str, Any]) -> str:
        """Build the INSERT statement for one row, resolving ``$`` expressions."""
        fields = sorted(name for name in row if not name.startswith("$"))
        values = []
        for name in fields:
            try:
                values.append(self._insert_value(ctx, row[name]))
            except (ValueError, TypeError) as exc:
                raise ValueError(f"unable to process {name} value (of {table}): {exc}") from exc
        columns = ", ".join(f"`{name}`" for name in fields)
        return f"INSERT INTO `{table}` ({columns}) VALUES ({', '.join(values)})"

    @staticmethod
    def _insert_value(ctx: LoadContext, value: Any) -> str:
        if isinstance(value, str) and value.startswith("$"):
            return _resolve_expression(value, ctx)
        return to_db_value(value)

    def _execute(self, cursor: Any, query: str) -> None:
        self._print_debug("Issuing SQL:", query)
        cursor.execute(query)

    def _print_debug(self, *parts: Any) -> None:
        if self.debug:
            print(*parts)


def _resolve_expression(expr: str, ctx: LoadContext) -> str:
    """Turn ``$eval(...)`` into an SQL expression, ``$ref.field`` into an inserted value."""
    if expr[:5] == "$eval":
        match = _EVAL_EXPR.fullmatch(expr)
        if match is None:
            raise ValueError(f"incorrect $eval() usage: {expr}")
        return f"({match.group(1)})"
    return to_db_value(_resolve_field_reference(ctx.refs_inserted, expr))


def _resolve_reference(refs: dict[str, dict[str, Any]], ref_name: str) -> dict[str, Any]:
    """Copy a named row without its ``$`` entries."""
    if ref_name not in refs:
        raise ValueError(f"undefined reference {ref_name}")
    return {key: value for key, value in refs[ref_name].items() if not key.startswith("$")}


def _resolve_field_reference(refs: dict[str, dict[str, Any]], ref: str) -> Any:
    parts = ref.split(".", 1)
    if len(parts) < 2 or len(parts[0]) < 2 or not parts[1]:
        raise ValueError(f"invalid reference {ref}, correct form is $refName.field")
    ref_name, field_name = parts[0][1:], parts[1]
    if ref_name not in refs:
        raise ValueError(f"undefined reference {ref_name}")
    target = refs[ref_name]
    if field_name not in target:
        raise ValueError(f"undefined reference field {field_name}")
    return target[field_name]


def to_db_value(value: Any) -> str:
    """Render a fixture value as an SQL literal; lists and maps become JSON strings."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return quote_literal(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    return quote_literal(_to_json(value))


def quote_literal(text: str) -> str:
    """Quote a string as a MySQL literal."""
    return "'" + text.replace("'", "''").replace("\\", "\\\\") + "'"


def _to_json(value: Any) -> str:
    encoded = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return encoded.replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


def _format_float(value: float) -> str:
    """Shortest representation, in exponent form for large or tiny magnitudes."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"
    number = Decimal(repr(value)).normalize()
    sign, digits, exponent = number.as_tuple()
    prefix = "-" if sign else ""
    exp = len(digits) + exponent - 1
    if exp < -4 or exp >= 6:
        text = "".join(str(d) for d in digits)
        mantissa = text[0] + ("." + text[1:] if len(text) > 1 else "")
        return f"{prefix}{mantissa}e{'+' if exp >= 0 else '-'}{abs(exp):02d}"
    return format(number, "f")


def _mapping(raw: Any, what: str) -> dict:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"expected a mapping as {what}")
    return raw


def _row(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise ValueError("expected a mapping as row")
    return {str(key): value for key, value in raw.items()}


def _raw_text(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def _is_missing_id_column(exc: Exception) -> bool:
    args = getattr(exc, "args", ())
    if args[:1] == (1054,):
        return _MISSING_ID_COLUMN in " ".join(str(arg) for arg in args[1:])
    return f"Error 1054: {_MISSING_ID_COLUMN}" in str(exc)


def _dump(row: dict[str, Any]) -> str:
    return json.dumps(row, separators=(",", ":"), default=str)