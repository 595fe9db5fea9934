"""Turns a provisioning request into an ordered, frozen step plan."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence

from .models import ProvisioningRequest
from .steps import PROVISIONING_STEPS, Step


@dataclass(frozen=True, slots=True)
class Plan:
    steps: tuple[Step, ...]

    def __iter__(self) -> Iterator[Step]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    @property
    def names(self) -> list[str]:
        return [step.name for step in self.steps]

    def describe(self) -> list[dict[str, str]]:
        return [{"name": step.name, "kind": step.kind.value} for step in self.steps]


def build_plan(request: ProvisioningRequest, catalogue: Sequence[Step] = PROVISIONING_STEPS) -> Plan:
    """Select the catalogue steps whose guard accepts ``request``, keeping catalogue order.

    Pure and deterministic: the same request always yields an equal plan.
    """
    return Plan(steps=tuple(step for step in catalogue if step.guard(request)))
