"""Workflow runner for sequential provisioning steps with compensation."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from .errors import CompensationFailure, StepFailure, TransientCollaboratorError
from .models import ProvisioningResult, ProvisioningStatus, StepState, utcnow
from .planner import Plan
from .steps import Step, StepContext
from .tracker import ProgressTracker

logger = logging.getLogger(__name__)


class WorkflowRunner:
    """Executes a plan on the calling thread, publishing every transition.

    A failing optional step is recorded and skipped over. A failing mandatory
    step stops the plan and compensates every completed mandatory step in
    reverse order before ``StepFailure`` is raised.
    """

    def __init__(self, tracker: ProgressTracker, clock: Callable[[], datetime] = utcnow) -> None:
        self._tracker = tracker
        self._clock = clock
        self._log = logger

    def run(
        self,
        plan: Plan,
        status: ProvisioningStatus,
        context: StepContext,
        result: ProvisioningResult,
    ) -> ProvisioningResult:
        if len(plan) != len(status.steps):
            raise ValueError("status does not describe the plan being run")

        status.mark_in_progress()
        self._publish(status)

        executed: list[int] = []
        for index, step in enumerate(plan):
            record = status.steps[index]
            unmet = [name for name in step.depends_on if not self._completed(status, name)]
            if unmet:
                self._log.info(
                    "Skipping step '%s' for provisioning '%s'; prerequisites did not complete: %s",
                    step.name,
                    status.id,
                    ", ".join(unmet),
                )
                status.settle(index)
                self._publish(status)
                continue

            self._log.info("Running step '%s' for provisioning '%s'", step.name, status.id)
            record.mark_running(self._clock())
            self._publish(status)
            try:
                step.forward(context, result)
            except Exception as exc:  # noqa: BLE001 - every step error is recorded on the status
                record.mark_failed(self._clock(), exc)
                status.settle(index)
                self._log_step_error(step, status, exc)
                if not step.mandatory:
                    self._publish(status)
                    continue
                failure = StepFailure(step=step.name, cause=exc, result=result, status=status)
                self._rollback(plan, status, context, result, executed, failure)
                raise failure from exc

            record.mark_completed(self._clock())
            if result.user is not None and status.user_id is None:
                status.user_id = result.user.id
            if step.mandatory:
                executed.append(index)
            status.settle(index)
            self._publish(status)

        status.mark_completed(self._clock())
        self._publish(status)
        self._log.info("Provisioning '%s' completed", status.id)
        return result

    def _rollback(
        self,
        plan: Plan,
        status: ProvisioningStatus,
        context: StepContext,
        result: ProvisioningResult,
        executed: list[int],
        failure: StepFailure,
    ) -> None:
        if not executed:
            failure.caused_rollback = False
            status.mark_failed(self._clock(), failure)
            self._publish(status)
            self._log.error("Provisioning '%s' failed before any step completed", status.id)
            return

        status.mark_rolling_back(failure)
        self._publish(status)
        for index in reversed(executed):
            step = plan.steps[index]
            record = status.steps[index]
            error = self._compensate(step, status, context, result)
            if error is not None:
                failure.compensation_failures.append(CompensationFailure(step=step.name, cause=error))
            record.mark_rolled_back(self._clock(), error)
            self._publish(status)

        if failure.compensation_failures:
            failed_steps = ", ".join(item.step for item in failure.compensation_failures)
            status.error = f"{failure}; compensation failed for: {failed_steps}"
        status.mark_rolled_back(self._clock())
        self._publish(status)
        self._log.info("Provisioning '%s' rolled back after step '%s' failed", status.id, failure.step)

    def _compensate(
        self,
        step: Step,
        status: ProvisioningStatus,
        context: StepContext,
        result: ProvisioningResult,
    ) -> Exception | None:
        if step.compensate is None:
            return None
        try:
            self._log.info("Compensating for step '%s' of provisioning '%s'", step.name, status.id)
            step.compensate(context, result)
        except Exception as exc:  # noqa: BLE001 - rollback continues past failed compensations
            self._log.error(
                "Compensation for step '%s' of provisioning '%s' failed: %s",
                step.name,
                status.id,
                exc,
            )
            return exc
        return None

    def _log_step_error(self, step: Step, status: ProvisioningStatus, exc: Exception) -> None:
        if isinstance(exc, TransientCollaboratorError):
            self._log.warning(
                "Step '%s' of provisioning '%s' failed with a transient error: %s",
                step.name,
                status.id,
                exc,
            )
        elif step.mandatory:
            self._log.exception("Step '%s' of provisioning '%s' failed: %s", step.name, status.id, exc)
        else:
            self._log.error("Optional step '%s' of provisioning '%s' failed: %s", step.name, status.id, exc)

    def _completed(self, status: ProvisioningStatus, name: str) -> bool:
        try:
            return status.record(name).status is StepState.COMPLETED
        except KeyError:
            return False

    def _publish(self, status: ProvisioningStatus) -> None:
        self._tracker.publish(status)
