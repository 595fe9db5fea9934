"""Configuration loading utilities for the provisioning service."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

SUPPORTED_DATABASE_KINDS = ("mysql", "postgresql", "mariadb", "mongodb", "redis", "sqlite")


class DefaultsConfig(BaseModel):
    runtime_version: str = Field("8.2", description="PHP-FPM version used when a request does not name one")
    database_kind: str = Field("mysql", description="Database engine used when a request does not name one")
    database_charset: str = "utf8mb4"
    database_suffix: str = Field("_db", description="Appended to the username to form the database name")

    @field_validator("database_kind")
    @classmethod
    def validate_database_kind(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in SUPPORTED_DATABASE_KINDS:
            raise ValueError(f"defaults.database_kind must be one of {', '.join(SUPPORTED_DATABASE_KINDS)}")
        return normalized

    @field_validator("runtime_version")
    @classmethod
    def validate_runtime_version(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("defaults.runtime_version must not be empty")
        return stripped


class HomeConfig(BaseModel):
    root: str = Field("/home", description="Parent directory of user home directories")
    skeleton: list[str] = Field(
        default_factory=lambda: ["public_html", "www", "logs", "mail", "tmp", "backups"],
        description="Subdirectories created inside every home directory",
    )
    web_root: str = Field("public_html", description="Subdirectory served as the primary domain's document root")

    @field_validator("skeleton")
    @classmethod
    def validate_skeleton(cls, value: list[str]) -> list[str]:
        for entry in value:
            if not entry or entry.startswith("/") or ".." in Path(entry).parts:
                raise ValueError(f"home.skeleton entries must be relative paths inside the home directory: '{entry}'")
        return value

    @model_validator(mode="after")
    def _web_root_in_skeleton(self) -> "HomeConfig":
        if self.web_root not in self.skeleton:
            raise ValueError("home.web_root must be one of the home.skeleton directories")
        return self


class ResourceDefaultsConfig(BaseModel):
    cpu_quota: int = Field(100, gt=0, description="CPU quota in percent of one core")
    memory_limit_mb: int = Field(1024, gt=0)
    swap_limit_mb: int = Field(512, ge=0)
    disk_quota_mb: int = Field(10240, gt=0)
    inode_limit: int = Field(250000, gt=0)
    max_processes: int = Field(100, gt=0)


class BackupConfig(BaseModel):
    backup_type: str = Field("full", description="full, incremental or differential")
    cron_expression: str = "0 2 * * *"
    retention_days: int = Field(7, ge=1)
    include_files: bool = True
    include_databases: bool = True

    @field_validator("backup_type")
    @classmethod
    def validate_backup_type(cls, value: str) -> str:
        if value not in {"full", "incremental", "differential"}:
            raise ValueError("backup.backup_type must be full, incremental or differential")
        return value

    @field_validator("cron_expression")
    @classmethod
    def validate_cron_expression(cls, value: str) -> str:
        if len(value.split()) != 5:
            raise ValueError("backup.cron_expression must have five fields")
        return value


class TrackerConfig(BaseModel):
    retention_seconds: int = Field(3600, ge=60, description="How long terminal statuses stay in memory")
    archive_path: Optional[str] = Field(default=None, description="Directory for archived terminal statuses")


class SystemConfig(BaseModel):
    driver: str = Field("memory", description="Collaborator driver set: memory or linux")
    shell: str = "/bin/bash"
    command_attempts: int = Field(3, ge=1, description="Attempts for host commands failing transiently")

    @field_validator("driver")
    @classmethod
    def validate_driver(cls, value: str) -> str:
        if value not in {"memory", "linux"}:
            raise ValueError("system.driver must be 'memory' or 'linux'")
        return value


class ProvisioningConfig(BaseModel):
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    home: HomeConfig = Field(default_factory=HomeConfig)
    resources: ResourceDefaultsConfig = Field(default_factory=ResourceDefaultsConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
    system: SystemConfig = Field(default_factory=SystemConfig)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ProvisioningConfig":
        return cls.model_validate(raw or {})

    @classmethod
    def from_yaml(cls, path: Path) -> "ProvisioningConfig":
        data = yaml.safe_load(path.read_text())
        return cls.from_dict(data)

    def home_for(self, username: str) -> str:
        return f"{self.home.root.rstrip('/')}/{username}"

    def web_root_for(self, home_directory: str) -> str:
        return f"{home_directory.rstrip('/')}/{self.home.web_root}"


def load_config(path: str | Path) -> ProvisioningConfig:
    """Load a ProvisioningConfig from a YAML file."""
    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    return ProvisioningConfig.from_yaml(config_path)
