"""Catalogue of provisioning steps.

Registration order is execution order: the mandatory steps form a fixed
prefix, optional steps follow and only enter a plan when their guard accepts
the request. A step naming ``depends_on`` is skipped at run time (left
pending) unless every named step completed in the same workflow.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .collaborators import Collaborators
from .config import ProvisioningConfig
from .models import DatabaseSpec, ProvisioningRequest, ProvisioningResult, UserHandle


class StepKind(str, Enum):
    MANDATORY = "mandatory"
    OPTIONAL = "optional"


@dataclass(slots=True)
class StepContext:
    """Read-only inputs shared by every step of one workflow."""

    workflow_id: str
    request: ProvisioningRequest
    collaborators: Collaborators
    config: ProvisioningConfig

    @property
    def runtime_version(self) -> str:
        return self.request.runtime_version or self.config.defaults.runtime_version

    @property
    def database_kind(self) -> str:
        return (self.request.database_kind or self.config.defaults.database_kind).lower()


StepAction = Callable[[StepContext, ProvisioningResult], None]
StepGuard = Callable[[ProvisioningRequest], bool]


def _always(_: ProvisioningRequest) -> bool:
    return True


@dataclass(frozen=True, slots=True)
class Step:
    name: str
    kind: StepKind
    forward: StepAction
    compensate: Optional[StepAction] = None
    guard: StepGuard = _always
    depends_on: tuple[str, ...] = ()

    @property
    def mandatory(self) -> bool:
        return self.kind is StepKind.MANDATORY


def _user(result: ProvisioningResult) -> UserHandle:
    if result.user is None:
        raise RuntimeError("identity has not been created for this workflow")
    return result.user


def create_identity(ctx: StepContext, result: ProvisioningResult) -> None:
    user = ctx.collaborators.identity.create(ctx.request)
    result.user = user
    result.home_directory = user.home_directory
    result.system_uid = user.uid
    result.system_gid = user.gid


def delete_identity(ctx: StepContext, result: ProvisioningResult) -> None:
    ctx.collaborators.identity.delete(_user(result).id)


def create_system_principal(ctx: StepContext, result: ProvisioningResult) -> None:
    user = _user(result)
    ctx.collaborators.system.create_account(user.username, user.uid, user.gid)


def delete_system_principal(ctx: StepContext, result: ProvisioningResult) -> None:
    ctx.collaborators.system.delete_account(_user(result).username)


def create_home_directory(ctx: StepContext, result: ProvisioningResult) -> None:
    user = _user(result)
    ctx.collaborators.system.create_home(user.home_directory, user.uid, user.gid)


def delete_home_directory(ctx: StepContext, result: ProvisioningResult) -> None:
    ctx.collaborators.system.delete_home(_user(result).home_directory)


def initialize_filesystem(ctx: StepContext, result: ProvisioningResult) -> None:
    user = _user(result)
    ctx.collaborators.filesystem.initialize_user_tree(user.id, user.home_directory)


def allocate_resources(ctx: StepContext, result: ProvisioningResult) -> None:
    user = _user(result)
    if ctx.request.package is not None:
        ctx.collaborators.resources.apply_package(user.id, ctx.request.package)
    else:
        ctx.collaborators.resources.apply_defaults(user.id)


def release_resources(ctx: StepContext, result: ProvisioningResult) -> None:
    ctx.collaborators.resources.release_all(_user(result).id)


def configure_web_server(ctx: StepContext, result: ProvisioningResult) -> None:
    user = _user(result)
    ctx.collaborators.webserver.configure_user(user.id, user.username, ctx.runtime_version)


def remove_web_server_config(ctx: StepContext, result: ProvisioningResult) -> None:
    ctx.collaborators.webserver.remove_user(_user(result).id)


def create_domain(ctx: StepContext, result: ProvisioningResult) -> None:
    user = _user(result)
    result.domain = ctx.collaborators.domains.create(
        user.id,
        ctx.request.domain,
        ctx.config.web_root_for(user.home_directory),
    )


def delete_domain(ctx: StepContext, result: ProvisioningResult) -> None:
    if result.domain is not None:
        ctx.collaborators.domains.delete(result.domain.id)


def create_dns_zone(ctx: StepContext, result: ProvisioningResult) -> None:
    domain = result.domain
    if domain is None:
        raise RuntimeError("primary domain is missing; cannot create its zone")
    result.zone = ctx.collaborators.dns.create(domain.id, domain.name)


def delete_dns_zone(ctx: StepContext, result: ProvisioningResult) -> None:
    if result.zone is not None:
        ctx.collaborators.dns.delete(result.zone.id)


def create_database(ctx: StepContext, result: ProvisioningResult) -> None:
    user = _user(result)
    defaults = ctx.config.defaults
    spec = DatabaseSpec(
        name=f"{user.username}{defaults.database_suffix}",
        kind=ctx.database_kind,
        charset=defaults.database_charset,
    )
    result.database = ctx.collaborators.databases.create(user.id, spec)


def delete_database(ctx: StepContext, result: ProvisioningResult) -> None:
    if result.database is not None:
        ctx.collaborators.databases.delete(result.database.id)


def issue_certificate(ctx: StepContext, result: ProvisioningResult) -> None:
    domain = result.domain
    if domain is None:
        raise RuntimeError("primary domain is missing; cannot issue a certificate")
    result.certificate = ctx.collaborators.certificates.issue_for(_user(result).id, domain)


def delete_certificate(ctx: StepContext, result: ProvisioningResult) -> None:
    if result.certificate is not None:
        ctx.collaborators.certificates.delete(result.certificate.id)


def configure_backup_schedule(ctx: StepContext, result: ProvisioningResult) -> None:
    ctx.collaborators.backups.configure_default(_user(result).id)


def delete_backup_schedule(ctx: StepContext, result: ProvisioningResult) -> None:
    ctx.collaborators.backups.delete_all_by_user(_user(result).id)


def _wants_domain(request: ProvisioningRequest) -> bool:
    return bool(request.domain)


def _wants_database(request: ProvisioningRequest) -> bool:
    return request.create_database


def _wants_certificate(request: ProvisioningRequest) -> bool:
    return request.enable_ssl and bool(request.domain)


def _wants_backup(request: ProvisioningRequest) -> bool:
    return request.setup_backup


CREATE_IDENTITY = "CreateIdentity"
CREATE_SYSTEM_PRINCIPAL = "CreateSystemPrincipal"
CREATE_HOME_DIRECTORY = "CreateHomeDirectory"
INITIALIZE_FILESYSTEM = "InitializeFilesystem"
ALLOCATE_RESOURCES = "AllocateResources"
CONFIGURE_WEB_SERVER = "ConfigureWebServer"
CREATE_DOMAIN = "CreateDomain"
CREATE_DNS_ZONE = "CreateDnsZone"
CREATE_DATABASE = "CreateDatabase"
ISSUE_CERTIFICATE = "IssueCertificate"
CONFIGURE_BACKUP_SCHEDULE = "ConfigureBackupSchedule"


PROVISIONING_STEPS: tuple[Step, ...] = (
    Step(CREATE_IDENTITY, StepKind.MANDATORY, create_identity, delete_identity),
    Step(CREATE_SYSTEM_PRINCIPAL, StepKind.MANDATORY, create_system_principal, delete_system_principal),
    Step(CREATE_HOME_DIRECTORY, StepKind.MANDATORY, create_home_directory, delete_home_directory),
    # covered by the home directory compensation
    Step(INITIALIZE_FILESYSTEM, StepKind.MANDATORY, initialize_filesystem),
    Step(ALLOCATE_RESOURCES, StepKind.MANDATORY, allocate_resources, release_resources),
    Step(CONFIGURE_WEB_SERVER, StepKind.MANDATORY, configure_web_server, remove_web_server_config),
    Step(CREATE_DOMAIN, StepKind.OPTIONAL, create_domain, delete_domain, guard=_wants_domain),
    Step(
        CREATE_DNS_ZONE,
        StepKind.OPTIONAL,
        create_dns_zone,
        delete_dns_zone,
        guard=_wants_domain,
        depends_on=(CREATE_DOMAIN,),
    ),
    Step(CREATE_DATABASE, StepKind.OPTIONAL, create_database, delete_database, guard=_wants_database),
    Step(
        ISSUE_CERTIFICATE,
        StepKind.OPTIONAL,
        issue_certificate,
        delete_certificate,
        guard=_wants_certificate,
        depends_on=(CREATE_DOMAIN,),
    ),
    Step(
        CONFIGURE_BACKUP_SCHEDULE,
        StepKind.OPTIONAL,
        configure_backup_schedule,
        delete_backup_schedule,
        guard=_wants_backup,
    ),
)
