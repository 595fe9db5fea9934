"""Pre-flight checks run before a workflow touches any collaborator."""
from __future__ import annotations

import re

from .config import SUPPORTED_DATABASE_KINDS
from .errors import InvalidRequest
from .models import ProvisioningRequest

USERNAME_PATTERN = re.compile(r"^[a-z][a-z0-9_-]{0,31}$")
_LABEL_PATTERN = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")


def is_valid_domain(name: str) -> bool:
    if len(name) > 253:
        return False
    labels = name.rstrip(".").split(".")
    if len(labels) < 2:
        return False
    return all(_LABEL_PATTERN.match(label) for label in labels)


def validate_request(request: ProvisioningRequest) -> None:
    """Raise ``InvalidRequest`` listing every problem found in ``request``."""

    problems: list[str] = []
    if not request.username:
        problems.append("username is required")
    elif not USERNAME_PATTERN.match(request.username):
        problems.append(
            f"username '{request.username}' must start with a lowercase letter and contain only "
            "lowercase letters, digits, '-' or '_' (max 32 characters)"
        )
    if not request.email or "@" not in request.email:
        problems.append("a valid email address is required")
    if not request.password:
        problems.append("password is required")
    if request.enable_ssl and not request.domain:
        problems.append("enable_ssl requires a domain")
    if request.domain and not is_valid_domain(request.domain):
        problems.append(f"domain '{request.domain}' is not a valid fully qualified name")
    if request.database_kind and request.database_kind.lower() not in SUPPORTED_DATABASE_KINDS:
        problems.append(
            f"database_type '{request.database_kind}' is not supported "
            f"(expected one of {', '.join(SUPPORTED_DATABASE_KINDS)})"
        )
    if problems:
        raise InvalidRequest(problems)
