"""Service orchestration for account provisioning."""
from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Callable, Optional

from .collaborators import Collaborators
from .config import ProvisioningConfig
from .deprovision import Deprovisioner
from .models import ProvisioningRequest, ProvisioningResult, ProvisioningStatus, utcnow
from .planner import Plan, build_plan
from .state import StatusArchive
from .steps import StepContext
from .tracker import ProgressTracker
from .validation import validate_request
from .workflow import WorkflowRunner

logger = logging.getLogger(__name__)


def generate_workflow_id(prefix: str = "prov") -> str:
    return f"{prefix}_{secrets.token_hex(16)}"


class ProvisioningService:
    """Coordinates account creation and teardown across hosting subsystems."""

    def __init__(
        self,
        collaborators: Collaborators,
        config: Optional[ProvisioningConfig] = None,
        tracker: Optional[ProgressTracker] = None,
        id_factory: Callable[[], str] = generate_workflow_id,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._config = config or ProvisioningConfig()
        self._collaborators = collaborators
        self._tracker = tracker or self._build_tracker(self._config, clock)
        self._runner = WorkflowRunner(self._tracker, clock=clock)
        self._deprovisioner = Deprovisioner(collaborators)
        self._new_id = id_factory
        self._clock = clock

    @property
    def tracker(self) -> ProgressTracker:
        return self._tracker

    def plan(self, request: ProvisioningRequest) -> Plan:
        validate_request(request)
        return build_plan(request)

    def provision_account(self, request: ProvisioningRequest) -> ProvisioningResult:
        """Run the full provisioning workflow for ``request`` on the calling thread.

        Raises ``InvalidRequest`` before any side effect, or ``StepFailure``
        (carrying the partial result and terminal status) once a mandatory
        step failed and the completed steps were compensated.
        """
        plan = self.plan(request)
        workflow_id = self._new_id()
        status = ProvisioningStatus.for_steps(workflow_id, plan.names, started_at=self._clock())
        self._tracker.register(status)
        logger.info(
            "Starting provisioning '%s' for user '%s' (%d steps)",
            workflow_id,
            request.username,
            len(plan),
        )

        result = ProvisioningResult(status=status)
        context = StepContext(
            workflow_id=workflow_id,
            request=request,
            collaborators=self._collaborators,
            config=self._config,
        )
        return self._runner.run(plan, status, context, result)

    def deprovision_account(self, user_id: str) -> None:
        self._deprovisioner.deprovision(user_id)

    def get_provisioning_status(self, workflow_id: str) -> ProvisioningStatus:
        return self._tracker.get(workflow_id)

    def list_provisionings(self) -> list[ProvisioningStatus]:
        return self._tracker.list()

    @staticmethod
    def _build_tracker(config: ProvisioningConfig, clock: Callable[[], datetime]) -> ProgressTracker:
        archive = StatusArchive(config.tracker.archive_path) if config.tracker.archive_path else None
        return ProgressTracker(
            retention_seconds=config.tracker.retention_seconds,
            archive=archive,
            clock=clock,
        )
