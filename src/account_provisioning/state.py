"""JSON serialization and file archive for provisioning statuses."""
from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Optional

from .models import ProvisioningResult, ProvisioningStatus, StepRecord, StepState, WorkflowState


def _serialize_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=0).isoformat() + "Z"


def _deserialize_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.rstrip("Z")).replace(tzinfo=timezone.utc)


def status_to_json(status: ProvisioningStatus) -> dict[str, Any]:
    """Wire representation of a status (snake_case field names)."""

    return {
        "id": status.id,
        "user_id": status.user_id,
        "status": status.status.value,
        "progress": status.progress,
        "steps": [
            {
                "name": step.name,
                "status": step.status.value,
                "started_at": _serialize_datetime(step.started_at),
                "completed_at": _serialize_datetime(step.completed_at),
                "error": step.error,
            }
            for step in status.steps
        ],
        "error": status.error,
        "started_at": _serialize_datetime(status.started_at),
        "completed_at": _serialize_datetime(status.completed_at),
    }


def result_to_json(result: ProvisioningResult) -> dict[str, Any]:
    user = None
    if result.user is not None:
        user = asdict(result.user)
        user["role"] = result.user.role.value
    return {
        "status": status_to_json(result.status),
        "user": user,
        "domain": asdict(result.domain) if result.domain else None,
        "dns_zone": asdict(result.zone) if result.zone else None,
        "database": asdict(result.database) if result.database else None,
        "ssl_cert": asdict(result.certificate) if result.certificate else None,
        "home_dir": result.home_directory,
        "system_uid": result.system_uid,
        "system_gid": result.system_gid,
    }


def json_to_status(data: dict[str, Any]) -> ProvisioningStatus:
    steps = [
        StepRecord(
            name=step["name"],
            status=StepState(step.get("status", "pending")),
            started_at=_deserialize_datetime(step.get("started_at")),
            completed_at=_deserialize_datetime(step.get("completed_at")),
            error=step.get("error"),
        )
        for step in data.get("steps", [])
    ]
    return ProvisioningStatus(
        id=data["id"],
        steps=steps,
        status=WorkflowState(data.get("status", "pending")),
        user_id=data.get("user_id"),
        progress=int(data.get("progress", 0)),
        error=data.get("error"),
        started_at=_deserialize_datetime(data["started_at"]),
        completed_at=_deserialize_datetime(data.get("completed_at")),
    )


class StatusArchive:
    """Very small JSON file-backed archive of terminal statuses."""

    def __init__(self, root_path: str | Path):
        self._root = Path(root_path).expanduser().resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

    def _path_for(self, workflow_id: str) -> Path:
        safe_name = workflow_id.replace("/", "_")
        return self._root / f"{safe_name}.json"

    def get(self, workflow_id: str) -> Optional[ProvisioningStatus]:
        path = self._path_for(workflow_id)
        if not path.exists():
            return None
        data = json.loads(path.read_text())
        return json_to_status(data)

    def save(self, status: ProvisioningStatus) -> None:
        path = self._path_for(status.id)
        with self._lock:
            payload = status_to_json(status)
            path.write_text(json.dumps(payload, indent=2, sort_keys=True))
