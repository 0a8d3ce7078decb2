"""Checking a response body against the expected one."""

from __future__ import annotations

import json
from typing import Any

from gonkey.compare import Params, compare
from gonkey.models import Result, TestInterface

__all__ = ["ResponseBodyChecker"]


class ResponseBodyChecker:
    """Compares the response body with the body expected for its status code."""

    def check(self, test: TestInterface, result: Result) -> list[str]:
        """Return mismatch messages; raise ValueError if the expected JSON is invalid."""
        expected_body = test.get_response(result.response_status_code)
        if expected_body is None:
            return [f"server responded with status {result.response_status_code}"]

        if "json" in result.response_content_type and expected_body != "":
            return self._compare_json(test, expected_body, result)
        return compare(expected_body, result.response_body, Params())

    @staticmethod
    def _compare_json(test: TestInterface, expected_body: str, result: Result) -> list[str]:
        try:
            expected: Any = json.loads(expected_body)
        except ValueError as exc:
            raise ValueError(
                f"invalid JSON in response for test {test.name} "
                f"(status {result.response_status_code}): {exc}"
            ) from exc

        try:
            actual: Any = json.loads(result.response_body)
        except ValueError:
            return ["could not parse response"]

        params = Params(
            ignore_values=not test.needs_checking_values,
            ignore_arrays_ordering=test.ignore_arrays_ordering,
            disallow_extra_fields=test.disallow_extra_fields,
        )
        return compare(expected, actual, params)