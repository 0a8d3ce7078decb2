from dataclasses import dataclass

from gonkey.models import Result


@dataclass
class _Case:
    status: str = ""


def test_passed_without_errors():
    assert Result().passed() is True


def test_not_passed_with_errors():
    assert Result(errors=["boom"]).passed() is False


def test_allure_status_passed():
    assert Result(test=_Case()).allure_status() == ("passed", None)


def test_allure_status_failed_joins_errors():
    result = Result(test=_Case(), errors=["first", ValueError("second")])
    status, text = result.allure_status()
    assert status == "failed"
    assert text.splitlines() == ["first", "second"]
    assert text.endswith("\n")


def test_allure_status_keeps_broken_and_skipped():
    for status in ("broken", "skipped"):
        result = Result(test=_Case(status=status), errors=["ignored"])
        assert result.allure_status() == (status, None)


def test_allure_status_other_test_status_is_recomputed():
    result = Result(test=_Case(status="passed"), errors=["oops"])
    assert result.allure_status()[0] == "failed"


def test_allure_status_without_test():
    assert Result(errors=["e"]).allure_status()[0] == "failed"


def test_default_collections_are_independent():
    first = Result()
    second = Result()
    first.errors.append("x")
    first.response_headers["A"] = ["b"]
    assert second.errors == []
    assert second.response_headers == {}