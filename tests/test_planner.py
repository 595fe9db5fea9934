from __future__ import annotations

import itertools

import pytest

from account_provisioning.models import ProvisioningRequest
from account_provisioning.planner import build_plan
from account_provisioning.steps import PROVISIONING_STEPS, StepKind

MANDATORY = [
    "CreateIdentity",
    "CreateSystemPrincipal",
    "CreateHomeDirectory",
    "InitializeFilesystem",
    "AllocateResources",
    "ConfigureWebServer",
]
CATALOGUE = [step.name for step in PROVISIONING_STEPS]


def _request(**overrides) -> ProvisioningRequest:
    values = {"username": "u1", "email": "u@x", "password": "P"}
    values.update(overrides)
    return ProvisioningRequest(**values)


def test_minimal_plan_is_the_mandatory_prefix() -> None:
    plan = build_plan(_request())

    assert plan.names == MANDATORY
    assert all(step.kind is StepKind.MANDATORY for step in plan)


def test_full_plan_lists_every_step() -> None:
    plan = build_plan(
        _request(domain="example.test", create_database=True, enable_ssl=True, setup_backup=True)
    )

    assert plan.names == CATALOGUE
    assert len(plan) == 11


def test_domain_brings_its_zone() -> None:
    plan = build_plan(_request(domain="example.test"))

    assert plan.names == MANDATORY + ["CreateDomain", "CreateDnsZone"]


def test_certificate_requires_a_domain() -> None:
    assert "IssueCertificate" not in build_plan(_request(enable_ssl=True)).names


@pytest.mark.parametrize(
    "domain, create_database, enable_ssl, setup_backup",
    list(itertools.product(["", "example.test"], [False, True], [False, True], [False, True])),
)
def test_plan_preserves_catalogue_order(domain, create_database, enable_ssl, setup_backup) -> None:
    request = _request(
        domain=domain,
        create_database=create_database,
        enable_ssl=enable_ssl,
        setup_backup=setup_backup,
    )

    names = build_plan(request).names

    assert names[:6] == MANDATORY
    assert names == [name for name in CATALOGUE if name in names]
    assert build_plan(request) == build_plan(request)


def test_install_apps_schedules_nothing() -> None:
    assert build_plan(_request(install_apps=["wordpress"])).names == MANDATORY


def test_describe_reports_kinds() -> None:
    described = build_plan(_request(setup_backup=True)).describe()

    assert described[0] == {"name": "CreateIdentity", "kind": "mandatory"}
    assert described[-1] == {"name": "ConfigureBackupSchedule", "kind": "optional"}


def test_dependent_steps_declare_domain_prerequisite() -> None:
    by_name = {step.name: step for step in PROVISIONING_STEPS}

    assert by_name["CreateDnsZone"].depends_on == ("CreateDomain",)
    assert by_name["IssueCertificate"].depends_on == ("CreateDomain",)
    assert by_name["InitializeFilesystem"].compensate is None
