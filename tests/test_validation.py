from __future__ import annotations

import pytest

from account_provisioning.errors import InvalidRequest
from account_provisioning.models import ProvisioningRequest
from account_provisioning.validation import is_valid_domain, validate_request


def test_valid_request_passes() -> None:
    validate_request(
        ProvisioningRequest(
            username="site-owner_1",
            email="owner@example.test",
            password="P",
            domain="www.example.test",
            enable_ssl=True,
            database_kind="redis",
        )
    )


def test_every_problem_is_reported() -> None:
    request = ProvisioningRequest(username="1bad", email="nope", password="", enable_ssl=True, database_kind="oracle")

    with pytest.raises(InvalidRequest) as excinfo:
        validate_request(request)

    problems = excinfo.value.problems
    assert len(problems) == 5
    assert any("username" in problem for problem in problems)
    assert "enable_ssl requires a domain" in problems
    assert any("oracle" in problem for problem in problems)


@pytest.mark.parametrize("username", ["", "Admin", "a" * 33, "bad name", "-dash"])
def test_usernames_outside_the_system_pattern_are_rejected(username) -> None:
    with pytest.raises(InvalidRequest):
        validate_request(ProvisioningRequest(username=username, email="u@x", password="P"))


@pytest.mark.parametrize(
    "name, expected",
    [
        ("example.test", True),
        ("a.b.example.test", True),
        ("localhost", False),
        ("-bad.example.test", False),
        ("bad_label.example.test", False),
        ("x" * 64 + ".test", False),
    ],
)
def test_is_valid_domain(name, expected) -> None:
    assert is_valid_domain(name) is expected
