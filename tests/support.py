from __future__ import annotations

import itertools
from dataclasses import dataclass, field, fields
from typing import Any, Callable

from account_provisioning.collaborators import Collaborators
from account_provisioning.config import ProvisioningConfig
from account_provisioning.drivers import build_collaborators
from account_provisioning.models import ProvisioningRequest
from account_provisioning.service import ProvisioningService


@dataclass
class CallRecorder:
    calls: list[str] = field(default_factory=list)
    failures: dict[str, Exception] = field(default_factory=dict)
    hooks: dict[str, Callable[[], None]] = field(default_factory=dict)

    def fail(self, label: str, error: Exception | None = None) -> None:
        self.failures[label] = error or RuntimeError(f"{label} exploded")

    def count(self, label: str) -> int:
        return self.calls.count(label)


class RecordingProxy:
    """Forwards to a real driver while logging ``<collaborator>.<method>`` labels."""

    def __init__(self, name: str, target: Any, recorder: CallRecorder) -> None:
        self._name = name
        self._target = target
        self._recorder = recorder

    def __getattr__(self, attr: str) -> Any:
        method = getattr(self._target, attr)
        label = f"{self._name}.{attr}"

        def wrapper(*args: Any, **kwargs: Any) -> Any:
            self._recorder.calls.append(label)
            hook = self._recorder.hooks.get(label)
            if hook is not None:
                hook()
            failure = self._recorder.failures.get(label)
            if failure is not None:
                raise failure
            return method(*args, **kwargs)

        return wrapper


@dataclass
class Harness:
    recorder: CallRecorder
    backend: Collaborators
    collaborators: Collaborators
    service: ProvisioningService
    config: ProvisioningConfig

    @property
    def calls(self) -> list[str]:
        return self.recorder.calls


def make_harness(config: ProvisioningConfig | None = None) -> Harness:
    config = config or ProvisioningConfig()
    recorder = CallRecorder()
    backend = build_collaborators(config)
    proxied = Collaborators(
        **{item.name: RecordingProxy(item.name, getattr(backend, item.name), recorder) for item in fields(backend)}
    )
    counter = itertools.count(1)
    service = ProvisioningService(proxied, config, id_factory=lambda: f"prov_{next(counter)}")
    return Harness(recorder=recorder, backend=backend, collaborators=proxied, service=service, config=config)


def minimal_request(username: str = "u1") -> ProvisioningRequest:
    return ProvisioningRequest(username=username, email="u@x", password="P", role="user")


def full_request(username: str = "u1") -> ProvisioningRequest:
    return ProvisioningRequest(
        username=username,
        email="u@x",
        password="P",
        role="user",
        domain="example.test",
        create_database=True,
        enable_ssl=True,
        setup_backup=True,
        database_kind="mysql",
    )


MANDATORY_CALLS = [
    "identity.create",
    "system.create_account",
    "system.create_home",
    "filesystem.initialize_user_tree",
    "resources.apply_defaults",
    "webserver.configure_user",
]
