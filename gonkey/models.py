"""Test, result and checker models shared across the package."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

__all__ = [
    "DatabaseResult",
    "Result",
    "Form",
    "Summary",
    "DatabaseCheck",
    "TestInterface",
    "Checker",
]

_NOT_RUN_STATUSES = frozenset({"broken", "skipped"})


@dataclass
class Form:
    """Multipart form of a request: field name to file path."""

    files: dict[str, str] = field(default_factory=dict)


@dataclass
class Summary:
    """Totals of a test run."""

    success: bool = False
    failed: int = 0
    skipped: int = 0
    broken: int = 0
    total: int = 0


@dataclass
class DatabaseResult:
    """Rows returned by a database check query, as JSON strings."""

    query: str = ""
    response: list[str] = field(default_factory=list)


class DatabaseCheck(Protocol):
    """A query and the rows it is expected to return."""

    db_query_string: str
    db_response_json: list[str] | None


class TestInterface(Protocol):
    """What runners and checkers need to know about a test case."""

    __test__ = False

    name: str
    description: str
    status: str
    file_name: str
    method: str
    path: str
    query: str
    request: str
    form: Form | None
    headers: dict[str, str]
    cookies: dict[str, str]
    content_type: str
    responses: dict[int, str]
    fixtures: list[str]
    service_mocks: dict[str, Any]
    pause: int
    before_script_path: str
    before_script_timeout: int
    after_request_script_path: str
    after_request_script_timeout: int
    db_query_string: str
    db_response_json: list[str] | None
    variables: dict[str, str]
    combined_variables: dict[str, str]
    variables_to_set: dict[int, dict[str, str]]
    database_checks: list[DatabaseCheck]
    needs_checking_values: bool
    ignore_arrays_ordering: bool
    disallow_extra_fields: bool
    ignore_db_ordering: bool

    def to_query(self) -> str: ...

    def to_json(self) -> bytes: ...

    def get_response(self, code: int) -> str | None: ...

    def get_response_headers(self, code: int) -> dict[str, str] | None: ...

    def clone(self) -> TestInterface: ...


@dataclass
class Result:
    """Outcome of one test execution."""

    path: str = ""
    query: str = ""
    request_body: str = ""
    response_status_code: int = 0
    response_status: str = ""
    response_content_type: str = ""
    response_body: str = ""
    response_headers: dict[str, list[str]] = field(default_factory=dict)
    errors: list[Any] = field(default_factory=list)
    test: TestInterface | None = None
    database_result: list[DatabaseResult] = field(default_factory=list)

    def allure_status(self) -> tuple[str, str | None]:
        """Return the report status and the failure text, if any."""
        status = getattr(self.test, "status", "") if self.test is not None else ""
        if status in _NOT_RUN_STATUSES:
            return status, None
        if not self.errors:
            return "passed", None
        return "failed", "".join(f"{error}\n" for error in self.errors)

    def passed(self) -> bool:
        """True when the test produced no errors."""
        return not self.errors


class Checker(Protocol):
    """Inspects a result and returns mismatch messages; raises on fatal problems."""

    def check(self, test: TestInterface, result: Result) -> list[Any]: ...