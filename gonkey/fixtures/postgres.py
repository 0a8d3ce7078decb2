"""Loading YAML fixtures into a PostgreSQL database."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any

import yaml

from gonkey.fixtures.mysql import (
    _EVAL_EXPR,
    _FixtureYamlLoader,
    _dump,
    _format_float,
    _mapping,
    _resolve_field_reference,
    _resolve_reference,
    _row,
    _to_json,
)

__all__ = [
    "TableName",
    "LoadContext",
    "LoadedTable",
    "PostgresLoader",
    "to_db_value",
    "quote_literal",
]

_DEFAULT_SCHEMA = "public"

_FIX_SEQUENCES_QUERY = """
DO $$
DECLARE
    r record;
BEGIN
    FOR r IN (
        SELECT 'SELECT SETVAL(' || quote_literal(quote_ident(seq_ns.nspname) || '.' || quote_ident(seq.relname))
            || ', COALESCE(MAX(' || quote_ident(col.attname) || '), 1) ) FROM '
            || quote_ident(tbl_ns.nspname) || '.' || quote_ident(tbl.relname) AS q
        FROM pg_class seq
            JOIN pg_namespace seq_ns ON (seq.relnamespace = seq_ns.oid)
            JOIN pg_depend dep ON (dep.objid = seq.oid)
            JOIN pg_class tbl ON (dep.refobjid = tbl.oid)
            JOIN pg_namespace tbl_ns ON (tbl.relnamespace = tbl_ns.oid)
            JOIN pg_attribute col ON (col.attrelid = tbl.oid AND dep.refobjsubid = col.attnum)
        WHERE
            seq.relkind = 'S'
        ORDER BY seq.relname
    ) LOOP
        EXECUTE r.q;
    END LOOP;
END$$
"""


@dataclass(frozen=True)
class TableName:
    """A table name qualified by its schema."""

    schema: str
    name: str

    @staticmethod
    def from_source(source: str) -> TableName:
        """Parse ``schema.table`` or ``table``; the schema defaults to ``public``."""
        schema, dot, name = source.partition(".")
        if not dot:
            name = schema
            schema = _DEFAULT_SCHEMA
        elif not schema:
            schema = _DEFAULT_SCHEMA
        return TableName(schema=schema, name=name)

    def full_name(self) -> str:
        """Return the quoted ``"schema"."table"`` form."""
        return f"{_quote_ident(self.schema)}.{_quote_ident(self.name)}"


@dataclass
class LoadedTable:
    """Rows read from fixtures for one table."""

    name: TableName
    rows: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class LoadContext:
    """State gathered while reading fixture files and inserting their rows."""

    files: list[str] = field(default_factory=list)
    tables: list[LoadedTable] = field(default_factory=list)
    refs_definition: dict[str, dict[str, Any]] = field(default_factory=dict)
    refs_inserted: dict[str, dict[str, Any]] = field(default_factory=dict)


class PostgresLoader:
    """Truncates tables and fills them with rows from YAML fixture files.

    ``db`` is a DB-API connection.
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
            ctx.tables.append(
                LoadedTable(TableName.from_source(str(name)), [_row(item) for item in source_rows])
            )

    def load_tables(self, ctx: LoadContext) -> None:
        """Truncate the tables, insert rows and fix sequences; commit or roll back as a whole."""
        cursor = self._db.cursor()
        try:
            self._truncate_tables(cursor, ctx.tables)
            for table in ctx.tables:
                if not table.rows:
                    continue
                try:
                    self._load_table(cursor, ctx, table)
                except Exception as exc:
                    raise RuntimeError(
                        f"failed to load table '{table.name.full_name()}' because:\n{exc}"
                    ) from exc
            self._execute(cursor, _FIX_SEQUENCES_QUERY)
        except BaseException:
            self._db.rollback()
            raise
        else:
            self._db.commit()
        finally:
            cursor.close()

    def _truncate_tables(self, cursor: Any, tables: list[LoadedTable]) -> None:
        names = list(dict.fromkeys(table.name.full_name() for table in tables))
        self._execute(cursor, f"TRUNCATE TABLE {','.join(names)} CASCADE")

    def _load_table(self, cursor: Any, ctx: LoadContext, table: LoadedTable) -> None:
        for index, row in enumerate(table.rows):
            if "$extend" not in row:
                continue
            base_row = _resolve_reference(ctx.refs_definition, str(row["$extend"]))
            base_row.update(row)
            table.rows[index] = base_row

        self._execute(cursor, self.build_insert_query(ctx, table.name, table.rows))
        try:
            inserted = cursor.fetchall()
        except Exception as exc:
            raise RuntimeError(f"failed to execute query. DB returned error:\n{exc}") from exc

        # returned rows are assumed to come in the order the values were given
        for row, returned in zip(table.rows, inserted):
            if "$name" not in row:
                continue
            name = str(row["$name"])
            if name in ctx.refs_definition:
                raise ValueError(f"duplicating ref name {name}")
            values = _decode_returned(returned[0])
            ctx.refs_definition[name] = row
            if self.debug:
                print(f"Populating ref {name} as {_dump(row)} from row definition")
            ctx.refs_inserted[name] = values
            if self.debug:
                print(f"Populating ref {name} as {_dump(values)} from inserted values")

    def build_insert_query(
        self, ctx: LoadContext, table: TableName, rows: list[dict[str, Any]]
    ) -> str:
        """Build one INSERT statement for all rows; missing fields take their defaults."""
        fields = sorted(
            {name for row in rows for name in row if not name.startswith("$")}
        )
        db_rows = []
        for index, row in enumerate(rows):
            values = []
            for name in fields:
                if name not in row:
                    values.append("default")
                    continue
                value = row[name]
                if isinstance(value, str) and value.startswith("$"):
                    values.append(_resolve_expression(value, ctx))
                    continue
                try:
                    values.append(to_db_value(value))
                except (ValueError, TypeError) as exc:
                    raise ValueError(
                        f"unable to process {name} value (row {index} of "
                        f"{table.full_name()}): {exc}"
                    ) from exc
            db_rows.append("(" + ", ".join(values) + ")")
        columns = ", ".join(f'"{name}"' for name in fields)
        return (
            f"INSERT INTO {table.full_name()} AS row ({columns}) "
            f"VALUES {', '.join(db_rows)} RETURNING row_to_json(row)"
        )

    def _execute(self, cursor: Any, query: str) -> None:
        self._print_debug("Issuing SQL:", query)
        cursor.execute(query)

    def _print_debug(self, *parts: Any) -> None:
        if self.debug:
            print(*parts)


def _resolve_expression(expr: str, ctx: LoadContext) -> str:
    """Turn ``$eval(...)`` into an SQL expression, ``$ref.field`` into an inserted value.

    An unresolvable field reference yields an empty value.
    """
    if expr[:5] == "$eval":
        match = _EVAL_EXPR.fullmatch(expr)
        if match is None:
            raise ValueError(f"incorrect $eval() usage: {expr}")
        return f"({match.group(1)})"
    try:
        value = _resolve_field_reference(ctx.refs_inserted, expr)
    except ValueError:
        return ""
    return to_db_value(value)


def _decode_returned(raw: Any) -> dict[str, Any]:
    if isinstance(raw, (bytes, bytearray)):
        raw = bytes(raw).decode("utf-8")
    values = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(values, dict):
        raise ValueError("inserted row is not a JSON object")
    return values


def _quote_ident(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


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
    """Quote a string as a PostgreSQL literal, using the E'' form when it holds backslashes."""
    prefix = "E" if "\\" in text else ""
    return prefix + "'" + text.replace("'", "''").replace("\\", "\\\\") + "'"