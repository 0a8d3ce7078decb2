"""Checking response headers against the expected ones."""

from __future__ import annotations

import string

from gonkey.compare import Params, compare
from gonkey.models import Result, TestInterface

__all__ = ["ResponseHeaderChecker", "canonical_header_key"]

_TOKEN_CHARS = frozenset(string.ascii_letters + string.digits + "!#$%&'*+-.^_`|~")


def canonical_header_key(key: str) -> str:
    """Return the canonical form of a MIME header name, e.g. ``Content-Type``.

    Names holding characters not allowed in a header name are returned unchanged.
    """
    if any(char not in _TOKEN_CHARS for char in key):
        return key
    return "-".join(part[:1].upper() + part[1:].lower() for part in key.split("-"))


class ResponseHeaderChecker:
    """Checks that every expected header is present with a matching value."""

    def check(self, test: TestInterface, result: Result) -> list[str]:
        """Return mismatch messages for expected headers."""
        expected_headers = test.get_response_headers(result.response_status_code)
        if not expected_headers:
            return []

        errors = []
        for key, expected_value in expected_headers.items():
            key = canonical_header_key(key)
            actual_values = result.response_headers.get(key)
            if actual_values is None:
                errors.append(f"response does not include expected header {key}")
                continue
            if not any(not compare(expected_value, value, Params()) for value in actual_values):
                errors.append(
                    f"response header {key} value does not match expected {expected_value}"
                )
        return errors