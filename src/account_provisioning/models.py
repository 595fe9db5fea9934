"""Domain models for account provisioning."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .errors import InvalidRequest


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _flag(payload: Mapping[str, Any], key: str) -> bool:
    value = payload.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise InvalidRequest([f"{key} must be a boolean (got {value!r})"])
    return value


class UserRole(str, Enum):
    ADMIN = "admin"
    RESELLER = "reseller"
    USER = "user"


class WorkflowState(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLING_BACK = "rolling_back"
    ROLLED_BACK = "rolled_back"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset({WorkflowState.COMPLETED, WorkflowState.FAILED, WorkflowState.ROLLED_BACK})


class StepState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


@dataclass(slots=True)
class ProvisioningRequest:
    """Everything needed to bring a hosting account into existence."""

    username: str
    email: str
    password: str
    role: UserRole = UserRole.USER
    domain: str = ""
    package: Any = None
    create_database: bool = False
    enable_ssl: bool = False
    setup_backup: bool = False
    install_apps: list[str] = field(default_factory=list)
    runtime_version: Optional[str] = None
    database_kind: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.role, UserRole):
            try:
                self.role = UserRole(str(self.role).lower())
            except ValueError as exc:
                raise InvalidRequest([f"role must be one of admin, reseller, user (got '{self.role}')"]) from exc
        self.domain = (self.domain or "").strip().lower()

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ProvisioningRequest":
        """Build a request from its JSON representation (unknown keys are ignored)."""

        return cls(
            username=payload.get("username", ""),
            email=payload.get("email", ""),
            password=payload.get("password", ""),
            role=payload.get("role") or UserRole.USER,
            domain=payload.get("domain") or "",
            package=payload.get("package"),
            create_database=_flag(payload, "create_database"),
            enable_ssl=_flag(payload, "enable_ssl"),
            setup_backup=_flag(payload, "setup_backup"),
            install_apps=list(payload.get("install_apps") or []),
            runtime_version=payload.get("php_version") or None,
            database_kind=payload.get("database_type") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        # password is never echoed back
        return {
            "username": self.username,
            "email": self.email,
            "role": self.role.value,
            "domain": self.domain,
            "package": self.package,
            "create_database": self.create_database,
            "enable_ssl": self.enable_ssl,
            "setup_backup": self.setup_backup,
            "install_apps": list(self.install_apps),
            "php_version": self.runtime_version,
            "database_type": self.database_kind,
        }


@dataclass(slots=True)
class UserHandle:
    id: str
    username: str
    email: str
    role: UserRole
    uid: int
    gid: int
    home_directory: str


@dataclass(slots=True)
class DomainHandle:
    id: str
    user_id: str
    name: str
    document_root: str


@dataclass(slots=True)
class ZoneHandle:
    id: str
    domain_id: str
    name: str


@dataclass(slots=True)
class DatabaseSpec:
    name: str
    kind: str
    charset: str


@dataclass(slots=True)
class DatabaseHandle:
    id: str
    user_id: str
    name: str
    kind: str
    charset: str


@dataclass(slots=True)
class CertificateHandle:
    id: str
    user_id: str
    domain: str
    issuer: str = "letsencrypt"


@dataclass(slots=True)
class StepRecord:
    """Runtime state of one plan step."""

    name: str
    status: StepState = StepState.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    def mark_running(self, now: datetime) -> None:
        self.status = StepState.RUNNING
        self.started_at = now

    def mark_completed(self, now: datetime) -> None:
        self.status = StepState.COMPLETED
        self.completed_at = now

    def mark_failed(self, now: datetime, error: BaseException) -> None:
        self.status = StepState.FAILED
        self.completed_at = now
        self.error = str(error)

    def mark_rolled_back(self, now: datetime, error: Optional[BaseException] = None) -> None:
        self.status = StepState.ROLLED_BACK
        self.completed_at = now
        if error is not None:
            self.error = f"compensation failed: {error}"


@dataclass(slots=True)
class ProvisioningStatus:
    """Observable state of one provisioning workflow."""

    id: str
    steps: list[StepRecord]
    status: WorkflowState = WorkflowState.PENDING
    user_id: Optional[str] = None
    progress: int = 0
    error: Optional[str] = None
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @classmethod
    def for_steps(cls, workflow_id: str, step_names: list[str], started_at: datetime) -> "ProvisioningStatus":
        return cls(id=workflow_id, steps=[StepRecord(name=name) for name in step_names], started_at=started_at)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def record(self, name: str) -> StepRecord:
        for step in self.steps:
            if step.name == name:
                return step
        raise KeyError(name)

    def settle(self, index: int) -> None:
        """Advance progress to cover the step at ``index``; never moves backwards."""

        if not self.steps:
            return
        self.progress = max(self.progress, ((index + 1) * 100) // len(self.steps))

    def mark_in_progress(self) -> None:
        self.status = WorkflowState.IN_PROGRESS

    def mark_completed(self, now: datetime) -> None:
        self.status = WorkflowState.COMPLETED
        self.progress = 100
        self.completed_at = now

    def mark_rolling_back(self, error: BaseException) -> None:
        self.status = WorkflowState.ROLLING_BACK
        self.error = str(error)

    def mark_rolled_back(self, now: datetime) -> None:
        self.status = WorkflowState.ROLLED_BACK
        self.completed_at = now

    def mark_failed(self, now: datetime, error: BaseException) -> None:
        self.status = WorkflowState.FAILED
        self.error = str(error)
        self.completed_at = now


@dataclass(slots=True)
class ProvisioningResult:
    """Side-effect handles accumulated by the forward steps of one workflow."""

    status: ProvisioningStatus
    user: Optional[UserHandle] = None
    home_directory: str = ""
    system_uid: Optional[int] = None
    system_gid: Optional[int] = None
    domain: Optional[DomainHandle] = None
    zone: Optional[ZoneHandle] = None
    database: Optional[DatabaseHandle] = None
    certificate: Optional[CertificateHandle] = None
