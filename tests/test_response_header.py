from dataclasses import dataclass, field

import pytest

from gonkey.checkers.response_header import ResponseHeaderChecker, canonical_header_key
from gonkey.models import Result


@dataclass
class FakeTest:
    response_headers: dict = field(default_factory=dict)

    def get_response_headers(self, code):
        return self.response_headers.get(code)


def test_check_should_match_subset():
    test = FakeTest(
        response_headers={200: {"content-type": "application/json", "ACCEPT": "text/html"}}
    )
    result = Result(
        response_status_code=200,
        response_headers={
            "Content-Type": ["application/json"],
            "Accept": ["application/json", "text/html"],
        },
    )
    assert ResponseHeaderChecker().check(test, result) == []


def test_check_when_not_matched_should_return_error():
    test = FakeTest(
        response_headers={200: {"content-type": "application/json", "accept": "text/html"}}
    )
    result = Result(
        response_status_code=200,
        response_headers={"Accept": ["application/json"]},
    )
    errors = sorted(ResponseHeaderChecker().check(test, result))
    assert errors == [
        "response does not include expected header Content-Type",
        "response header Accept value does not match expected text/html",
    ]


def test_no_expected_headers_for_status():
    test = FakeTest(response_headers={200: {"accept": "text/html"}})
    result = Result(response_status_code=404, response_headers={})
    assert ResponseHeaderChecker().check(test, result) == []


def test_regex_header_value():
    test = FakeTest(response_headers={200: {"x-request-id": "$matchRegexp(^[a-f0-9]+$)"}})
    result = Result(response_status_code=200, response_headers={"X-Request-Id": ["abc123"]})
    assert ResponseHeaderChecker().check(test, result) == []


@pytest.mark.parametrize(
    "raw, canonical",
    [
        ("content-type", "Content-Type"),
        ("ACCEPT", "Accept"),
        ("Content-Type", "Content-Type"),
        ("bad key", "bad key"),
    ],
)
def test_canonical_header_key(raw, canonical):
    assert canonical_header_key(raw) == canonical