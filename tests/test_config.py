from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from account_provisioning.config import ProvisioningConfig, load_config


def test_defaults_match_hosting_conventions() -> None:
    config = ProvisioningConfig()

    assert config.defaults.runtime_version == "8.2"
    assert config.defaults.database_kind == "mysql"
    assert config.defaults.database_charset == "utf8mb4"
    assert config.home.skeleton == ["public_html", "www", "logs", "mail", "tmp", "backups"]
    assert config.home_for("u1") == "/home/u1"
    assert config.web_root_for("/home/u1") == "/home/u1/public_html"
    assert config.system.driver == "memory"
    assert config.tracker.archive_path is None


def test_load_config_from_yaml(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
defaults:
  runtime_version: "8.3"
  database_kind: PostgreSQL
home:
  root: /srv/home/
backup:
  backup_type: incremental
  cron_expression: "30 3 * * 0"
  retention_days: 14
tracker:
  retention_seconds: 120
  archive_path: /var/lib/provisioning
system:
  driver: linux
  command_attempts: 5
"""
    )

    config = load_config(config_path)

    assert config.defaults.runtime_version == "8.3"
    assert config.defaults.database_kind == "postgresql"
    assert config.home_for("u1") == "/srv/home/u1"
    assert config.backup.retention_days == 14
    assert config.tracker.archive_path == "/var/lib/provisioning"
    assert config.system.command_attempts == 5


def test_empty_yaml_uses_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("")

    assert load_config(config_path) == ProvisioningConfig()


def test_load_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


@pytest.mark.parametrize(
    "raw",
    [
        {"defaults": {"database_kind": "oracle"}},
        {"defaults": {"runtime_version": "  "}},
        {"home": {"web_root": "htdocs"}},
        {"home": {"skeleton": ["public_html", "../escape"]}},
        {"backup": {"backup_type": "snapshot"}},
        {"backup": {"cron_expression": "@daily"}},
        {"backup": {"retention_days": 0}},
        {"tracker": {"retention_seconds": 5}},
        {"system": {"driver": "windows"}},
        {"system": {"command_attempts": 0}},
    ],
)
def test_invalid_config_is_rejected(raw) -> None:
    with pytest.raises(ValidationError):
        ProvisioningConfig.from_dict(raw)
