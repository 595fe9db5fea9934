"""Error taxonomy for account provisioning workflows."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .models import ProvisioningResult, ProvisioningStatus


class ProvisioningError(Exception):
    """Base class for every error raised by the provisioning core."""


class InvalidRequest(ProvisioningError, ValueError):
    """Raised when a request violates its cross-field invariants."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems) or "invalid provisioning request")


class CollaboratorError(ProvisioningError):
    """Raised by collaborator implementations when an operation fails."""

    transient = False


class TransientCollaboratorError(CollaboratorError):
    """A failure that may succeed if the caller tries again later."""

    transient = True


class FatalCollaboratorError(CollaboratorError):
    """A failure that will not go away by retrying."""


@dataclass(eq=False)
class CompensationFailure(ProvisioningError):
    """Raised (and collected) when a compensating action fails during rollback."""

    step: str
    cause: BaseException

    def __post_init__(self) -> None:
        ProvisioningError.__init__(self, str(self))

    def __str__(self) -> str:
        return f"compensation for step '{self.step}' failed: {self.cause}"


@dataclass(eq=False)
class StepFailure(ProvisioningError):
    """A step's forward action failed and the workflow could not complete."""

    step: str
    cause: BaseException
    caused_rollback: bool = True
    compensation_failures: list[CompensationFailure] = field(default_factory=list)
    result: Optional["ProvisioningResult"] = None
    status: Optional["ProvisioningStatus"] = None

    def __post_init__(self) -> None:
        ProvisioningError.__init__(self, str(self))

    def __str__(self) -> str:
        return f"step '{self.step}' failed: {self.cause}"


class NotFound(ProvisioningError, KeyError):
    """Raised when a workflow or user id is unknown."""

    kind = "object"

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(identifier)

    def __str__(self) -> str:
        return f"{self.kind} '{self.identifier}' not found"


class WorkflowNotFound(NotFound):
    kind = "provisioning"


class UserNotFound(NotFound):
    kind = "user"


class DeprovisionAggregate(ProvisioningError):
    """One or more deprovision steps failed.

    ``step`` and ``cause`` describe the last failing step; ``failures`` holds
    every ``(step, error)`` pair in execution order.
    """

    def __init__(self, failures: list[tuple[str, BaseException]]) -> None:
        if not failures:
            raise ValueError("DeprovisionAggregate requires at least one failure")
        self.failures = list(failures)
        self.step, self.cause = self.failures[-1]
        super().__init__(f"{self.step} failed: {self.cause}")

    @property
    def failed_steps(self) -> list[str]:
        return [name for name, _ in self.failures]
