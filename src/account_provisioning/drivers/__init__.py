from __future__ import annotations

from ..collaborators import Collaborators
from ..config import ProvisioningConfig
from .filesystem import LocalFileSystem
from .memory import (
    MemoryBackupScheduler,
    MemoryCertificates,
    MemoryDatabases,
    MemoryDnsZones,
    MemoryDomains,
    MemoryFileSystem,
    MemoryIdentityStore,
    MemoryResourceAllocator,
    MemorySystemHost,
    MemoryWebServer,
)
from .system import LinuxSystemHost

__all__ = ["LinuxSystemHost", "LocalFileSystem", "build_collaborators"]


def build_collaborators(config: ProvisioningConfig) -> Collaborators:
    """Wire the collaborator set selected by ``config.system.driver``."""
    webserver = MemoryWebServer()
    if config.system.driver == "linux":
        system = LinuxSystemHost(shell=config.system.shell, attempts=config.system.command_attempts)
        filesystem = LocalFileSystem(config.home.skeleton)
    else:
        system = MemorySystemHost()
        filesystem = MemoryFileSystem(config.home.skeleton)
    return Collaborators(
        identity=MemoryIdentityStore(config),
        system=system,
        filesystem=filesystem,
        resources=MemoryResourceAllocator(config.resources, webserver=webserver),
        webserver=webserver,
        domains=MemoryDomains(),
        dns=MemoryDnsZones(),
        databases=MemoryDatabases(),
        certificates=MemoryCertificates(),
        backups=MemoryBackupScheduler(config.backup),
    )
