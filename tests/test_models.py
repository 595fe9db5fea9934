from __future__ import annotations

from datetime import datetime, timezone

import pytest

from account_provisioning.errors import (
    CompensationFailure,
    DeprovisionAggregate,
    InvalidRequest,
    StepFailure,
    UserNotFound,
    WorkflowNotFound,
)
from account_provisioning.models import (
    ProvisioningRequest,
    ProvisioningStatus,
    StepRecord,
    StepState,
    UserRole,
    WorkflowState,
)


def test_request_from_dict_maps_wire_names() -> None:
    request = ProvisioningRequest.from_dict(
        {
            "username": "u1",
            "email": "u@x",
            "password": "P",
            "role": "Reseller",
            "domain": " Example.TEST ",
            "create_database": True,
            "php_version": "8.1",
            "database_type": "mariadb",
            "install_apps": ["wordpress"],
            "unexpected": "ignored",
        }
    )

    assert request.role is UserRole.RESELLER
    assert request.domain == "example.test"
    assert request.runtime_version == "8.1"
    assert request.database_kind == "mariadb"
    assert request.install_apps == ["wordpress"]
    assert request.enable_ssl is False


def test_request_rejects_unknown_role() -> None:
    with pytest.raises(InvalidRequest) as excinfo:
        ProvisioningRequest(username="u1", email="u@x", password="P", role="root")

    assert "role" in excinfo.value.problems[0]


def test_request_to_dict_never_includes_password() -> None:
    payload = ProvisioningRequest(username="u1", email="u@x", password="secret").to_dict()

    assert "password" not in payload
    assert payload["role"] == "user"


def test_workflow_state_terminality() -> None:
    terminal = {state for state in WorkflowState if state.is_terminal}

    assert terminal == {WorkflowState.COMPLETED, WorkflowState.FAILED, WorkflowState.ROLLED_BACK}


def test_settle_never_moves_progress_backwards() -> None:
    status = ProvisioningStatus.for_steps("prov_1", ["a", "b", "c", "d"], started_at=datetime.now(timezone.utc))

    status.settle(2)
    status.settle(0)

    assert status.progress == 75


def test_record_lookup_raises_for_unknown_step() -> None:
    status = ProvisioningStatus.for_steps("prov_1", ["a"], started_at=datetime.now(timezone.utc))

    with pytest.raises(KeyError):
        status.record("missing")


def test_step_record_rolled_back_keeps_compensation_error() -> None:
    now = datetime.now(timezone.utc)
    record = StepRecord(name="CreateHomeDirectory")
    record.mark_running(now)
    record.mark_completed(now)

    record.mark_rolled_back(now, OSError("busy"))

    assert record.status is StepState.ROLLED_BACK
    assert record.error == "compensation failed: busy"


def test_step_failure_message_names_step() -> None:
    failure = StepFailure(step="CreateDomain", cause=RuntimeError("taken"))

    assert str(failure) == "step 'CreateDomain' failed: taken"
    assert failure.caused_rollback is True
    assert failure.compensation_failures == []


def test_compensation_failure_message() -> None:
    failure = CompensationFailure(step="CreateIdentity", cause=RuntimeError("gone"))

    assert str(failure) == "compensation for step 'CreateIdentity' failed: gone"


def test_not_found_errors_are_key_errors() -> None:
    assert isinstance(WorkflowNotFound("prov_1"), KeyError)
    assert str(UserNotFound("usr_1")) == "user 'usr_1' not found"


def test_deprovision_aggregate_reports_last_failure() -> None:
    aggregate = DeprovisionAggregate(
        [("DeleteDatabases", RuntimeError("db down")), ("DeleteIdentity", RuntimeError("ldap down"))]
    )

    assert aggregate.step == "DeleteIdentity"
    assert str(aggregate) == "DeleteIdentity failed: ldap down"
    assert aggregate.failed_steps == ["DeleteDatabases", "DeleteIdentity"]


def test_deprovision_aggregate_needs_failures() -> None:
    with pytest.raises(ValueError):
        DeprovisionAggregate([])


@pytest.mark.parametrize("value", ["false", "true", 1, 0])
def test_request_from_dict_rejects_non_boolean_flags(value) -> None:
    payload = {"username": "u1", "email": "u@x", "password": "P", "create_database": value}

    with pytest.raises(InvalidRequest) as excinfo:
        ProvisioningRequest.from_dict(payload)

    assert excinfo.value.problems == [f"create_database must be a boolean (got {value!r})"]


def test_request_from_dict_treats_null_flags_as_false() -> None:
    request = ProvisioningRequest.from_dict(
        {"username": "u1", "email": "u@x", "password": "P", "enable_ssl": None, "setup_backup": True}
    )

    assert request.enable_ssl is False
    assert request.setup_backup is True
