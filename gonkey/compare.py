"""Structural comparison of expected and actual values."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any

__all__ = ["Params", "compare", "compare_query"]

_REGEX_EXPR = re.compile(r"\$matchRegexp\((.+)\)")

_ARRAY = "array"
_MAP = "map"


@dataclass(frozen=True)
class Params:
    """Options controlling how values are compared."""

    ignore_values: bool = False
    ignore_arrays_ordering: bool = False
    disallow_extra_fields: bool = False
    ignore_db_ordering: bool = False
    fail_fast: bool = False


def compare(expected: Any, actual: Any, params: Params | None = None) -> list[str]:
    """Compare two decoded documents and return a list of mismatch messages.

    Leaves are compared by value, or, when the expected leaf has the form
    ``$matchRegexp(<pattern>)``, by matching the actual value against the pattern.
    """
    return _compare_branch("$", expected, actual, params or Params())


def compare_query(expected: list[str], actual: list[str]) -> bool:
    """Check that two lists of query values match regardless of order.

    Raises ValueError when the lists differ in length.
    """
    if len(expected) != len(actual):
        raise ValueError("expected and actual query params have different lengths")

    expected_left = list(expected)
    actual_left = list(actual)
    while expected_left:
        pair = _first_query_match(expected_left, actual_left)
        if pair is None:
            return False
        i, j = pair
        _swap_remove(expected_left, i)
        _swap_remove(actual_left, j)
    return True


def _first_query_match(expected: list[str], actual: list[str]) -> tuple[int, int] | None:
    for i, expected_value in enumerate(expected):
        match = _REGEX_EXPR.fullmatch(expected_value)
        rx = re.compile(match.group(1)) if match else None
        for j, actual_value in enumerate(actual):
            found = rx.search(actual_value) is not None if rx else expected_value == actual_value
            if found:
                return i, j
    return None


def _swap_remove(items: list[Any], index: int) -> None:
    items[index] = items[-1]
    items.pop()


def _compare_branch(path: str, expected: Any, actual: Any, params: Params) -> list[str]:
    expected_type = _type_name(expected)
    actual_type = _type_name(actual)
    is_regex = _is_regex(expected)

    if not is_regex and expected_type != actual_type:
        return [_make_error(path, "types do not match", expected_type, actual_type)]

    if is_regex or actual_type not in (_ARRAY, _MAP):
        if params.ignore_values:
            return []
        return _compare_leaves(path, expected, actual, is_regex)

    if actual_type == _ARRAY:
        return _compare_arrays(path, list(expected), list(actual), params)
    return _compare_maps(path, expected, actual, params)


def _compare_arrays(path: str, expected: list[Any], actual: list[Any], params: Params) -> list[str]:
    if len(expected) != len(actual):
        return [_make_error(path, "array lengths do not match", len(expected), len(actual))]

    if params.ignore_arrays_ordering:
        expected, actual = _unmatched_arrays(expected, actual, params)

    errors: list[str] = []
    for index, (expected_item, actual_item) in enumerate(zip(expected, actual)):
        errors.extend(_compare_branch(f"{path}[{index}]", expected_item, actual_item, params))
        if params.fail_fast and errors:
            break
    return errors


def _compare_maps(path: str, expected: dict, actual: dict, params: Params) -> list[str]:
    if params.disallow_extra_fields and len(expected) != len(actual):
        return [_make_error(path, "map lengths do not match", len(expected), len(actual))]

    errors: list[str] = []
    for key, expected_value in expected.items():
        if key not in actual:
            errors.append(_make_error(path, "key is missing", key, "<missing>"))
            if params.fail_fast:
                break
            continue
        errors.extend(_compare_branch(f"{path}.{key}", expected_value, actual[key], params))
        if params.fail_fast and errors:
            break
    return errors


def _unmatched_arrays(
    expected: list[Any], actual: list[Any], params: Params
) -> tuple[list[Any], list[Any]]:
    """Pair off equal elements; return what is left of both arrays."""
    strict = replace(params, fail_fast=True)
    unmatched: list[Any] = []
    for expected_item in expected:
        for index, actual_item in enumerate(actual):
            if not _compare_branch("", expected_item, actual_item, strict):
                _swap_remove(actual, index)
                break
        else:
            unmatched.append(expected_item)
            if params.fail_fast:
                return unmatched, actual[:1]
    return unmatched, actual


def _compare_leaves(path: str, expected: Any, actual: Any, is_regex: bool) -> list[str]:
    if not is_regex:
        if expected != actual:
            return [_make_error(path, "values do not match", expected, actual)]
        return []

    pattern = _REGEX_EXPR.fullmatch(expected).group(1)
    try:
        rx = re.compile(pattern)
    except re.error:
        return [_make_error(path, "can not compile regex", None, "error")]
    if rx.search(_format(actual)) is None:
        return [_make_error(path, "value does not match regex", expected, actual)]
    return []


def _is_regex(value: Any) -> bool:
    return isinstance(value, str) and _REGEX_EXPR.fullmatch(value) is not None


def _type_name(value: Any) -> str:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return _ARRAY
    if isinstance(value, dict):
        return _MAP
    return type(value).__name__


def _make_error(path: str, message: str, expected: Any, actual: Any) -> str:
    return (
        f"at path {path} {message}:\n"
        f"     expected: {_format(expected)}\n"
        f"       actual: {_format(actual)}"
    )


def _format(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_format(item) for item in value) + "]"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda item: str(item[0]))
        return "map[" + " ".join(f"{_format(k)}:{_format(v)}" for k, v in items) + "]"
    return str(value)


def _format_float(value: float) -> str:
    """Format a float with the shortest representation, exponent form for large or tiny values."""
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