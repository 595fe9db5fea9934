"""Local filesystem implementation of the user tree initializer."""
from __future__ import annotations

import logging
import os
from pathlib import Path

from ..errors import FatalCollaboratorError

logger = logging.getLogger(__name__)


class LocalFileSystem:
    def __init__(self, skeleton: list[str]) -> None:
        self._skeleton = list(skeleton)

    def initialize_user_tree(self, user_id: str, home: str) -> None:
        base = Path(home)
        if not base.is_dir():
            raise FatalCollaboratorError(f"home directory '{home}' does not exist")
        owner = base.stat()
        # ownership can only be handed over when running as root
        can_chown = hasattr(os, "geteuid") and os.geteuid() == 0
        for entry in self._skeleton:
            target = base / entry
            target.mkdir(parents=True, exist_ok=True)
            if can_chown:
                os.chown(target, owner.st_uid, owner.st_gid)
        logger.info("Initialized %d directories under '%s' for user '%s'", len(self._skeleton), home, user_id)
