"""In-memory registry of live and recently finished provisioning workflows."""
from __future__ import annotations

import copy
import logging
from datetime import datetime, timedelta
from threading import Lock
from typing import Callable, Dict, Optional

from .errors import WorkflowNotFound
from .models import ProvisioningStatus, utcnow
from .state import StatusArchive

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Holds one snapshot per workflow id.

    Workflows publish copies of their private status after every transition,
    so readers only ever see whole transitions. Terminal snapshots are frozen
    and evicted ``retention_seconds`` after completion; with an archive they
    remain readable from disk afterwards.
    """

    def __init__(
        self,
        retention_seconds: int = 3600,
        archive: Optional[StatusArchive] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._retention = timedelta(seconds=retention_seconds)
        self._archive = archive
        self._clock = clock
        self._statuses: Dict[str, ProvisioningStatus] = {}
        self._lock = Lock()

    def register(self, status: ProvisioningStatus) -> None:
        snapshot = copy.deepcopy(status)
        with self._lock:
            self._prune_locked()
            if status.id in self._statuses:
                raise ValueError(f"provisioning '{status.id}' is already registered")
            self._statuses[status.id] = snapshot
        logger.debug("Registered provisioning '%s' with %d steps", status.id, len(status.steps))

    def publish(self, status: ProvisioningStatus) -> None:
        snapshot = copy.deepcopy(status)
        with self._lock:
            current = self._statuses.get(status.id)
            if current is None:
                raise WorkflowNotFound(status.id)
            if current.is_terminal:
                logger.warning("Ignoring update to finished provisioning '%s'", status.id)
                return
            self._statuses[status.id] = snapshot
        if snapshot.is_terminal and self._archive is not None:
            try:
                self._archive.save(snapshot)
            except OSError:
                # the in-memory snapshot stays authoritative
                logger.exception("Failed to archive provisioning '%s'", snapshot.id)

    def get(self, workflow_id: str) -> ProvisioningStatus:
        with self._lock:
            self._prune_locked()
            status = self._statuses.get(workflow_id)
            if status is not None:
                return copy.deepcopy(status)
        if self._archive is not None:
            archived = self._archive.get(workflow_id)
            if archived is not None:
                return archived
        raise WorkflowNotFound(workflow_id)

    def list(self) -> list[ProvisioningStatus]:
        with self._lock:
            self._prune_locked()
            statuses = [copy.deepcopy(status) for status in self._statuses.values()]
        return sorted(statuses, key=lambda status: status.started_at)

    def prune(self) -> int:
        with self._lock:
            return self._prune_locked()

    def _prune_locked(self) -> int:
        cutoff = self._clock() - self._retention
        expired = [
            workflow_id
            for workflow_id, status in self._statuses.items()
            if status.is_terminal and status.completed_at is not None and status.completed_at < cutoff
        ]
        for workflow_id in expired:
            del self._statuses[workflow_id]
        if expired:
            logger.debug("Evicted %d finished provisionings from the tracker", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._statuses)
