"""Best-effort teardown of a provisioned account."""
from __future__ import annotations

import logging
from typing import Any, Callable

from .collaborators import Collaborators
from .errors import DeprovisionAggregate
from .models import UserHandle

logger = logging.getLogger(__name__)

DeprovisionStep = tuple[str, Callable[[], Any]]


class Deprovisioner:
    """Runs every teardown step regardless of earlier failures."""

    def __init__(self, collaborators: Collaborators) -> None:
        self._collaborators = collaborators

    def steps_for(self, user: UserHandle) -> list[DeprovisionStep]:
        c = self._collaborators
        user_id = user.id
        return [
            ("DeleteBackups", lambda: c.backups.delete_all_by_user(user_id)),
            ("DeleteDatabases", lambda: c.databases.delete_all_by_user(user_id)),
            ("DeleteDomains", lambda: c.domains.delete_all_by_user(user_id)),
            ("DeleteCertificates", lambda: c.certificates.delete_all_by_user(user_id)),
            ("DeleteHomeDirectory", lambda: c.system.delete_home(user.home_directory)),
            ("DeleteSystemAccount", lambda: c.system.delete_account(user.username)),
            ("ReleaseResources", lambda: c.resources.release_all(user_id)),
            ("DeleteIdentity", lambda: c.identity.delete(user_id)),
        ]

    def deprovision(self, user_id: str) -> None:
        """Tear down every resource of ``user_id``.

        Raises ``UserNotFound`` (from the identity store) before touching
        anything when the user is unknown, and ``DeprovisionAggregate`` after
        all steps ran when at least one of them failed.
        """
        user = self._collaborators.identity.get(user_id)
        logger.info("Deprovisioning user '%s' (%s)", user.username, user_id)

        failures: list[tuple[str, BaseException]] = []
        for label, action in self.steps_for(user):
            try:
                action()
            except Exception as exc:  # noqa: BLE001 - teardown continues past failures
                logger.error("Deprovision step '%s' failed for user '%s': %s", label, user_id, exc)
                failures.append((label, exc))
            else:
                logger.debug("Deprovision step '%s' finished for user '%s'", label, user_id)

        if failures:
            raise DeprovisionAggregate(failures)
        logger.info("User '%s' deprovisioned", user_id)
