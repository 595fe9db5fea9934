"""Capability interfaces the provisioning workflow drives.

Implementations are supplied by the host. Every operation may raise; a
``TransientCollaboratorError`` marks failures worth retrying later, anything
else is treated as fatal. Collaborators own their retry policy, the workflow
never retries a step. Create/delete operations on the system host must be
idempotent so a retried call after a partial failure is safe.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from .models import (
    CertificateHandle,
    DatabaseHandle,
    DatabaseSpec,
    DomainHandle,
    ProvisioningRequest,
    UserHandle,
    ZoneHandle,
)


class IdentityStore(Protocol):
    def create(self, request: ProvisioningRequest) -> UserHandle: ...

    def delete(self, user_id: str) -> None: ...

    def get(self, user_id: str) -> UserHandle:
        """Return the user or raise ``UserNotFound``."""
        ...


class SystemHost(Protocol):
    def create_account(self, username: str, uid: int, gid: int) -> None: ...

    def delete_account(self, username: str) -> None: ...

    def create_home(self, path: str, uid: int, gid: int) -> None: ...

    def delete_home(self, path: str) -> None: ...


class FileSystem(Protocol):
    def initialize_user_tree(self, user_id: str, home: str) -> None: ...


class ResourceAllocator(Protocol):
    def apply_package(self, user_id: str, package: Any) -> None: ...

    def apply_defaults(self, user_id: str) -> None: ...

    def release_all(self, user_id: str) -> None: ...


class WebServer(Protocol):
    def configure_user(self, user_id: str, username: str, runtime_version: str) -> None: ...

    def remove_user(self, user_id: str) -> None: ...


class Domains(Protocol):
    def create(self, user_id: str, name: str, document_root: str) -> DomainHandle: ...

    def delete(self, domain_id: str) -> None: ...

    def delete_all_by_user(self, user_id: str) -> None: ...


class DnsZones(Protocol):
    def create(self, domain_id: str, domain_name: str) -> ZoneHandle: ...

    def delete(self, zone_id: str) -> None: ...


class Databases(Protocol):
    def create(self, user_id: str, spec: DatabaseSpec) -> DatabaseHandle: ...

    def delete(self, database_id: str) -> None: ...

    def delete_all_by_user(self, user_id: str) -> None: ...


class Certificates(Protocol):
    def issue_for(self, user_id: str, domain: DomainHandle) -> CertificateHandle: ...

    def delete(self, certificate_id: str) -> None: ...

    def delete_all_by_user(self, user_id: str) -> None: ...


class BackupScheduler(Protocol):
    def configure_default(self, user_id: str) -> None: ...

    def delete_all_by_user(self, user_id: str) -> None: ...


@dataclass(slots=True)
class Collaborators:
    """Bundle of every subsystem the workflow touches."""

    identity: IdentityStore
    system: SystemHost
    filesystem: FileSystem
    resources: ResourceAllocator
    webserver: WebServer
    domains: Domains
    dns: DnsZones
    databases: Databases
    certificates: Certificates
    backups: BackupScheduler
