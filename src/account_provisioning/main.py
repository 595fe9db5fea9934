"""CLI entrypoint for account provisioning."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import NoReturn, Optional

import typer

from .config import ProvisioningConfig, load_config
from .drivers import build_collaborators
from .errors import InvalidRequest, StepFailure
from .models import ProvisioningRequest
from .planner import build_plan
from .service import ProvisioningService
from .state import StatusArchive, result_to_json, status_to_json
from .validation import validate_request


def _configure_logging() -> None:
    env_level = os.getenv("ACCOUNT_PROVISIONING_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, env_level, None)
    if not isinstance(level, int):
        level = logging.INFO
        logging.warning(
            "Unrecognized ACCOUNT_PROVISIONING_LOG_LEVEL '%s'; defaulting to INFO",
            env_level,
        )
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s - %(message)s")


_configure_logging()

app = typer.Typer(help="Hosting account provisioning")


def _load(config: Optional[Path]) -> ProvisioningConfig:
    if config is None:
        return ProvisioningConfig()
    return load_config(config)


def _build_request(
    username: Optional[str],
    email: Optional[str],
    password: Optional[str],
    role: str,
    domain: str,
    create_database: bool,
    enable_ssl: bool,
    setup_backup: bool,
    php_version: Optional[str],
    database_type: Optional[str],
    request_file: Optional[Path],
) -> ProvisioningRequest:
    if request_file is not None:
        return ProvisioningRequest.from_dict(json.loads(request_file.read_text()))
    return ProvisioningRequest(
        username=username or "",
        email=email or "",
        password=password or "",
        role=role,
        domain=domain,
        create_database=create_database,
        enable_ssl=enable_ssl,
        setup_backup=setup_backup,
        runtime_version=php_version,
        database_kind=database_type,
    )


def _fail(message: str, code: int) -> NoReturn:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=code)


@app.command("plan")
def plan_command(
    username: Optional[str] = typer.Option(None, help="Account username"),
    email: Optional[str] = typer.Option(None, help="Account email"),
    password: Optional[str] = typer.Option(None, help="Account password"),
    role: str = typer.Option("user", help="admin, reseller or user"),
    domain: str = typer.Option("", help="Primary domain"),
    create_database: bool = typer.Option(False, "--create-database", help="Create a database"),
    enable_ssl: bool = typer.Option(False, "--enable-ssl", help="Issue a certificate for the domain"),
    setup_backup: bool = typer.Option(False, "--setup-backup", help="Install the default backup schedule"),
    php_version: Optional[str] = typer.Option(None, help="PHP-FPM version"),
    database_type: Optional[str] = typer.Option(None, help="Database engine"),
    request_file: Optional[Path] = typer.Option(None, exists=True, readable=True, help="JSON request payload"),
) -> None:
    """Show the ordered steps a request would run."""

    try:
        request = _build_request(
            username, email, password, role, domain, create_database,
            enable_ssl, setup_backup, php_version, database_type, request_file,
        )
        validate_request(request)
    except InvalidRequest as exc:
        _fail(str(exc), 2)
    typer.echo(json.dumps({"username": request.username, "steps": build_plan(request).describe()}, indent=2))


@app.command("provision")
def provision_command(
    username: Optional[str] = typer.Option(None, help="Account username"),
    email: Optional[str] = typer.Option(None, help="Account email"),
    password: Optional[str] = typer.Option(None, help="Account password"),
    role: str = typer.Option("user", help="admin, reseller or user"),
    domain: str = typer.Option("", help="Primary domain"),
    create_database: bool = typer.Option(False, "--create-database", help="Create a database"),
    enable_ssl: bool = typer.Option(False, "--enable-ssl", help="Issue a certificate for the domain"),
    setup_backup: bool = typer.Option(False, "--setup-backup", help="Install the default backup schedule"),
    php_version: Optional[str] = typer.Option(None, help="PHP-FPM version"),
    database_type: Optional[str] = typer.Option(None, help="Database engine"),
    request_file: Optional[Path] = typer.Option(None, exists=True, readable=True, help="JSON request payload"),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, help="Path to provisioning config YAML"),
) -> None:
    """Provision an account with the configured drivers and print its final status."""

    provisioning_config = _load(config)
    service = ProvisioningService(build_collaborators(provisioning_config), provisioning_config)
    try:
        request = _build_request(
            username, email, password, role, domain, create_database,
            enable_ssl, setup_backup, php_version, database_type, request_file,
        )
        result = service.provision_account(request)
    except InvalidRequest as exc:
        _fail(str(exc), 2)
    except StepFailure as exc:
        if exc.result is not None:
            typer.echo(json.dumps(result_to_json(exc.result), indent=2))
        _fail(str(exc), 1)

    typer.echo(json.dumps(result_to_json(result), indent=2))


@app.command("status")
def status_command(
    workflow_id: str,
    config: Path = typer.Option(..., exists=True, readable=True, help="Path to provisioning config YAML"),
) -> None:
    """Print an archived provisioning status."""

    provisioning_config = load_config(config)
    archive_path = provisioning_config.tracker.archive_path
    if not archive_path:
        _fail("tracker.archive_path is not configured; no statuses are archived", 1)
    status = StatusArchive(archive_path).get(workflow_id)
    if status is None:
        _fail(f"provisioning '{workflow_id}' not found", 1)
    typer.echo(json.dumps(status_to_json(status), indent=2))


if __name__ == "__main__":
    app()
