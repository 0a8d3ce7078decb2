"""Checking database state against rows expected by a test."""

from __future__ import annotations

import difflib
import json
from contextlib import closing
from typing import Any

from gonkey.compare import Params, compare
from gonkey.models import DatabaseCheck, DatabaseResult, Result, TestInterface

__all__ = ["ResponseDbChecker"]


class ResponseDbChecker:
    """Runs the test's database queries and compares their rows with the expected ones."""

    def __init__(self, db: Any) -> None:
        self._db = db

    def check(self, test: TestInterface, result: Result) -> list[str]:
        """Return mismatch messages; raise ValueError on incomplete or invalid checks."""
        errors = self._check(test.name, test.ignore_db_ordering, test, result)
        for db_check in getattr(test, "database_checks", None) or []:
            errors.extend(self._check(test.name, test.ignore_db_ordering, db_check, result))
        return errors

    def _check(
        self, test_name: str, ignore_ordering: bool, db_check: DatabaseCheck, result: Result
    ) -> list[str]:
        query = db_check.db_query_string
        expected_rows = db_check.db_response_json

        if query == "" and expected_rows is None:
            return []
        if query == "":
            raise ValueError(f'DB query not found for test "{test_name}"')
        if expected_rows is None:
            raise ValueError(f'expected DB response not found for test "{test_name}"')

        actual_rows = self._query(query)
        result.database_result.append(DatabaseResult(query=query, response=actual_rows))

        if len(expected_rows) != len(actual_rows):
            return [_length_error(expected_rows, actual_rows, query)]

        expected_items = _to_json_array(expected_rows, "expected", test_name)
        actual_items = _to_json_array(actual_rows, "actual", test_name)
        return compare(expected_items, actual_items, Params(ignore_arrays_ordering=ignore_ordering))

    def _query(self, query: str) -> list[str]:
        query = query.split(";", 1)[0]
        with closing(self._db.cursor()) as cursor:
            cursor.execute(f"SELECT row_to_json(rows) FROM ({query}) rows;")
            rows = cursor.fetchall()
        return [row[0] if isinstance(row[0], str) else json.dumps(row[0]) for row in rows]


def _to_json_array(rows: list[str], qualifier: str, test_name: str) -> list[Any]:
    items = []
    for index, row in enumerate(rows):
        try:
            items.append(json.loads(row))
        except ValueError as exc:
            raise ValueError(
                f"invalid JSON in the {qualifier} DB response for test {test_name}:\n"
                f" row #{index}:\n {row}\n error:\n{exc}"
            ) from exc
    return items


def _length_error(expected: list[str], actual: list[str], query: str) -> str:
    diff = "\n".join(
        line for line in difflib.ndiff(expected, actual) if not line.startswith("?")
    )
    return (
        f"quantity of items in database do not match "
        f"(-expected: {len(expected)} +actual: {len(actual)})\n"
        f"     test query:\n{query}\n"
        f"    result diff:\n{diff}"
    )