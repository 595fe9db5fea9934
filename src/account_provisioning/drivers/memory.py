"""Thread-safe in-memory collaborators.

Useful for tests, dry runs and hosts that keep these subsystems elsewhere.
Each driver enforces the same conflicts a real backend would report
(duplicate usernames, domains, zones and database names).
"""
from __future__ import annotations

import logging
import secrets
from threading import Lock
from typing import Any, Dict, Mapping, Optional

from ..config import SUPPORTED_DATABASE_KINDS, BackupConfig, ProvisioningConfig, ResourceDefaultsConfig
from ..errors import FatalCollaboratorError, UserNotFound
from ..models import (
    CertificateHandle,
    DatabaseHandle,
    DatabaseSpec,
    DomainHandle,
    ProvisioningRequest,
    UserHandle,
    ZoneHandle,
)

logger = logging.getLogger(__name__)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{secrets.token_hex(8)}"


class MemoryIdentityStore:
    def __init__(self, config: ProvisioningConfig, first_uid: int = 1001) -> None:
        self._config = config
        self._next_uid = first_uid
        self._users: Dict[str, UserHandle] = {}
        self._lock = Lock()

    def create(self, request: ProvisioningRequest) -> UserHandle:
        with self._lock:
            if any(user.username == request.username for user in self._users.values()):
                raise FatalCollaboratorError(f"username '{request.username}' already exists")
            uid = self._next_uid
            self._next_uid += 1
            user = UserHandle(
                id=_new_id("usr"),
                username=request.username,
                email=request.email,
                role=request.role,
                uid=uid,
                gid=uid,
                home_directory=self._config.home_for(request.username),
            )
            self._users[user.id] = user
        logger.debug("Created user '%s' with uid %d", user.username, uid)
        return user

    def delete(self, user_id: str) -> None:
        with self._lock:
            if self._users.pop(user_id, None) is None:
                raise UserNotFound(user_id)

    def get(self, user_id: str) -> UserHandle:
        with self._lock:
            user = self._users.get(user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user

    def find_by_username(self, username: str) -> Optional[UserHandle]:
        with self._lock:
            for user in self._users.values():
                if user.username == username:
                    return user
        return None


class MemorySystemHost:
    def __init__(self) -> None:
        self.accounts: Dict[str, tuple[int, int]] = {}
        self.homes: Dict[str, tuple[int, int]] = {}
        self._lock = Lock()

    def create_account(self, username: str, uid: int, gid: int) -> None:
        with self._lock:
            existing = self.accounts.get(username)
            if existing is not None and existing != (uid, gid):
                raise FatalCollaboratorError(
                    f"system account '{username}' already exists with uid/gid {existing[0]}/{existing[1]}"
                )
            if any(ids[0] == uid for name, ids in self.accounts.items() if name != username):
                raise FatalCollaboratorError(f"uid {uid} is already in use")
            self.accounts[username] = (uid, gid)

    def delete_account(self, username: str) -> None:
        with self._lock:
            self.accounts.pop(username, None)

    def create_home(self, path: str, uid: int, gid: int) -> None:
        with self._lock:
            self.homes[path] = (uid, gid)

    def delete_home(self, path: str) -> None:
        with self._lock:
            self.homes.pop(path, None)


class MemoryFileSystem:
    def __init__(self, skeleton: list[str]) -> None:
        self._skeleton = list(skeleton)
        self.trees: Dict[str, list[str]] = {}
        self._lock = Lock()

    def initialize_user_tree(self, user_id: str, home: str) -> None:
        base = home.rstrip("/")
        with self._lock:
            self.trees[user_id] = [f"{base}/{entry}" for entry in self._skeleton]


class MemoryWebServer:
    def __init__(self) -> None:
        self.fragments: Dict[str, Dict[str, str]] = {}
        self._lock = Lock()

    def configure_user(self, user_id: str, username: str, runtime_version: str) -> None:
        socket = f"/run/php/php{runtime_version}-fpm-{username}.sock"
        fragment = "\n".join(
            [
                f"# managed vhost fragment for {username}",
                "location ~ \\.php$ {",
                "    include fastcgi_params;",
                f"    fastcgi_pass unix:{socket};",
                "}",
            ]
        )
        with self._lock:
            self.fragments[user_id] = {
                "username": username,
                "runtime_version": runtime_version,
                "socket": socket,
                "fragment": fragment,
            }

    def remove_user(self, user_id: str) -> None:
        with self._lock:
            self.fragments.pop(user_id, None)


class MemoryResourceAllocator:
    """Stores quota sets per user.

    ``release_all`` also drops the user's web-server fragment when a web
    server is attached, since deprovisioning has no dedicated web step.
    """

    def __init__(self, defaults: ResourceDefaultsConfig, webserver: Optional[MemoryWebServer] = None) -> None:
        self._defaults = defaults
        self._webserver = webserver
        self.quotas: Dict[str, Dict[str, Any]] = {}
        self._lock = Lock()

    def apply_defaults(self, user_id: str) -> None:
        with self._lock:
            self.quotas[user_id] = self._defaults.model_dump()

    def apply_package(self, user_id: str, package: Any) -> None:
        quota = self._defaults.model_dump()
        if isinstance(package, Mapping):
            unknown = sorted(set(package) - set(quota) - {"name"})
            if unknown:
                raise FatalCollaboratorError(f"package sets unknown quotas: {', '.join(unknown)}")
            quota.update({key: value for key, value in package.items() if key != "name"})
            quota["package"] = package.get("name")
        else:
            quota["package"] = str(package)
        with self._lock:
            self.quotas[user_id] = quota

    def release_all(self, user_id: str) -> None:
        with self._lock:
            self.quotas.pop(user_id, None)
        if self._webserver is not None:
            self._webserver.remove_user(user_id)


class MemoryDomains:
    def __init__(self) -> None:
        self.domains: Dict[str, DomainHandle] = {}
        self._lock = Lock()

    def create(self, user_id: str, name: str, document_root: str) -> DomainHandle:
        with self._lock:
            if any(domain.name == name for domain in self.domains.values()):
                raise FatalCollaboratorError(f"domain '{name}' is already registered")
            domain = DomainHandle(id=_new_id("dom"), user_id=user_id, name=name, document_root=document_root)
            self.domains[domain.id] = domain
        return domain

    def delete(self, domain_id: str) -> None:
        with self._lock:
            self.domains.pop(domain_id, None)

    def delete_all_by_user(self, user_id: str) -> None:
        with self._lock:
            for domain_id in [key for key, value in self.domains.items() if value.user_id == user_id]:
                del self.domains[domain_id]


class MemoryDnsZones:
    def __init__(self) -> None:
        self.zones: Dict[str, ZoneHandle] = {}
        self._lock = Lock()

    def create(self, domain_id: str, domain_name: str) -> ZoneHandle:
        with self._lock:
            if any(zone.domain_id == domain_id for zone in self.zones.values()):
                raise FatalCollaboratorError("zone already exists for domain")
            zone = ZoneHandle(id=_new_id("zone"), domain_id=domain_id, name=domain_name)
            self.zones[zone.id] = zone
        return zone

    def delete(self, zone_id: str) -> None:
        with self._lock:
            self.zones.pop(zone_id, None)


class MemoryDatabases:
    def __init__(self) -> None:
        self.databases: Dict[str, DatabaseHandle] = {}
        self._lock = Lock()

    def create(self, user_id: str, spec: DatabaseSpec) -> DatabaseHandle:
        if spec.kind not in SUPPORTED_DATABASE_KINDS:
            raise FatalCollaboratorError(f"unsupported database type '{spec.kind}'")
        with self._lock:
            if any(db.name == spec.name and db.kind == spec.kind for db in self.databases.values()):
                raise FatalCollaboratorError(f"database '{spec.name}' already exists")
            database = DatabaseHandle(
                id=_new_id("db"),
                user_id=user_id,
                name=spec.name,
                kind=spec.kind,
                charset=spec.charset,
            )
            self.databases[database.id] = database
        return database

    def delete(self, database_id: str) -> None:
        with self._lock:
            self.databases.pop(database_id, None)

    def delete_all_by_user(self, user_id: str) -> None:
        with self._lock:
            for database_id in [key for key, value in self.databases.items() if value.user_id == user_id]:
                del self.databases[database_id]


class MemoryCertificates:
    def __init__(self, issuer: str = "letsencrypt") -> None:
        self._issuer = issuer
        self.certificates: Dict[str, CertificateHandle] = {}
        self._lock = Lock()

    def issue_for(self, user_id: str, domain: DomainHandle) -> CertificateHandle:
        certificate = CertificateHandle(id=_new_id("cert"), user_id=user_id, domain=domain.name, issuer=self._issuer)
        with self._lock:
            self.certificates[certificate.id] = certificate
        return certificate

    def delete(self, certificate_id: str) -> None:
        with self._lock:
            self.certificates.pop(certificate_id, None)

    def delete_all_by_user(self, user_id: str) -> None:
        with self._lock:
            for cert_id in [key for key, value in self.certificates.items() if value.user_id == user_id]:
                del self.certificates[cert_id]


class MemoryBackupScheduler:
    def __init__(self, defaults: BackupConfig) -> None:
        self._defaults = defaults
        self.schedules: Dict[str, list[Dict[str, Any]]] = {}
        self._lock = Lock()

    def configure_default(self, user_id: str) -> None:
        schedule = {"id": _new_id("bks"), "enabled": True, **self._defaults.model_dump()}
        with self._lock:
            self.schedules.setdefault(user_id, []).append(schedule)

    def delete_all_by_user(self, user_id: str) -> None:
        with self._lock:
            self.schedules.pop(user_id, None)
