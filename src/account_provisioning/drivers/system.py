"""Linux implementation of the system host collaborator."""
from __future__ import annotations

import grp
import logging
import os
import pwd
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Optional, Sequence

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from ..errors import FatalCollaboratorError, TransientCollaboratorError

logger = logging.getLogger(__name__)

# useradd/userdel/groupadd exit codes for "could not lock or update passwd/group files"
TRANSIENT_EXIT_CODES = frozenset({1, 10})
PROTECTED_PATHS = frozenset({"/", "/home", "/root", "/etc", "/usr", "/var"})

CommandRunner = Callable[..., subprocess.CompletedProcess]


def _lookup_user(username: str) -> Optional[tuple[int, int]]:
    try:
        entry = pwd.getpwnam(username)
    except KeyError:
        return None
    return entry.pw_uid, entry.pw_gid


def _group_exists(gid: int) -> bool:
    try:
        grp.getgrgid(gid)
    except KeyError:
        return False
    return True


class LinuxSystemHost:
    """Manages OS accounts and home directories with the shadow-utils commands.

    Every operation tolerates being repeated: creating something that already
    exists with the same ids, or deleting something already gone, succeeds.
    """

    def __init__(
        self,
        shell: str = "/bin/bash",
        attempts: int = 3,
        runner: CommandRunner = subprocess.run,
        wait: wait_base | None = None,
        lookup_user: Callable[[str], Optional[tuple[int, int]]] = _lookup_user,
        group_exists: Callable[[int], bool] = _group_exists,
    ) -> None:
        self._shell = shell
        self._attempts = attempts
        self._runner = runner
        self._wait = wait if wait is not None else wait_exponential(multiplier=1, min=1, max=8)
        self._lookup_user = lookup_user
        self._group_exists = group_exists

    def create_account(self, username: str, uid: int, gid: int) -> None:
        existing = self._lookup_user(username)
        if existing is not None:
            if existing != (uid, gid):
                raise FatalCollaboratorError(
                    f"system account '{username}' already exists with uid/gid {existing[0]}/{existing[1]}"
                )
            logger.info("System account '%s' already exists with uid/gid %d/%d", username, uid, gid)
            return
        if not self._group_exists(gid):
            self._run(["groupadd", "-g", str(gid), username])
        self._run(["useradd", "-u", str(uid), "-g", str(gid), "-M", "-s", self._shell, username])

    def delete_account(self, username: str) -> None:
        if self._lookup_user(username) is None:
            logger.info("System account '%s' already absent", username)
            return
        self._run(["userdel", username])

    def create_home(self, path: str, uid: int, gid: int) -> None:
        home = self._checked_path(path)
        try:
            home.mkdir(parents=True, exist_ok=True)
            os.chown(home, uid, gid)
            home.chmod(0o711)
        except PermissionError as exc:
            raise FatalCollaboratorError(f"cannot prepare home directory '{home}': {exc}") from exc
        except OSError as exc:
            raise TransientCollaboratorError(f"cannot prepare home directory '{home}': {exc}") from exc

    def delete_home(self, path: str) -> None:
        home = self._checked_path(path)
        if not home.exists():
            return
        try:
            shutil.rmtree(home)
        except OSError as exc:
            raise FatalCollaboratorError(f"cannot remove home directory '{home}': {exc}") from exc

    def _checked_path(self, path: str) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute() or str(candidate) in PROTECTED_PATHS or ".." in candidate.parts:
            raise FatalCollaboratorError(f"refusing to manage home directory at '{path}'")
        return candidate

    def _run(self, command: Sequence[str]) -> None:
        for attempt in Retrying(
            stop=stop_after_attempt(self._attempts),
            wait=self._wait,
            retry=retry_if_exception_type(TransientCollaboratorError),
            reraise=True,
        ):
            with attempt:
                self._run_once(command)

    def _run_once(self, command: Sequence[str]) -> None:
        logger.debug("Running host command: %s", " ".join(command))
        try:
            completed = self._runner(list(command), capture_output=True, text=True, check=False)
        except FileNotFoundError as exc:
            raise FatalCollaboratorError(f"command '{command[0]}' is not available on this host") from exc
        if completed.returncode == 0:
            return
        message = f"'{' '.join(command)}' exited with {completed.returncode}: {(completed.stderr or '').strip()}"
        if completed.returncode in TRANSIENT_EXIT_CODES:
            logger.warning("Transient host command failure: %s", message)
            raise TransientCollaboratorError(message)
        raise FatalCollaboratorError(message)
