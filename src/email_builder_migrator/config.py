"""
Runtime settings for the email builder migration tool.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Final

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_PRODUCTION_HOSTS: Final[tuple[str, ...]] = (
    "https://services.leadconnectorhq.com",
    "https://backend.leadconnectorhq.com",
)
DEFAULT_STAGING_URL: Final[str] = "http://staging.services.leadconnectorhq.internal"
DEFAULT_UPDATED_BY: Final[str] = "7Xw0wYJ99ufWXkfSrEQ0"
DEFAULT_TEMPLATE_TITLE: Final[str] = "Migrated Template"
DEFAULT_REQUEST_TIMEOUT: Final[float] = 30.0

_HOSTS_ENV_VAR: Final[str] = "EMAIL_MIGRATOR_PRODUCTION_HOSTS"
_STAGING_ENV_VAR: Final[str] = "EMAIL_MIGRATOR_STAGING_URL"
_UPDATED_BY_ENV_VAR: Final[str] = "EMAIL_MIGRATOR_UPDATED_BY"
_TITLE_ENV_VAR: Final[str] = "EMAIL_MIGRATOR_TEMPLATE_TITLE"
_TIMEOUT_ENV_VAR: Final[str] = "EMAIL_MIGRATOR_TIMEOUT"


@dataclass(frozen=True)
class MigratorSettings:
    """Hosts, author id and transport limits shared by the reader and the writer."""

    production_hosts: tuple[str, ...] = field(default=DEFAULT_PRODUCTION_HOSTS)
    staging_base_url: str = DEFAULT_STAGING_URL
    updated_by: str = DEFAULT_UPDATED_BY
    template_title: str = DEFAULT_TEMPLATE_TITLE
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    def __post_init__(self) -> None:
        if len(self.production_hosts) != 2:
            msg = f"Exactly two production hosts are required, got {len(self.production_hosts)}"
            raise ValueError(msg)
        if self.request_timeout <= 0:
            msg = f"Request timeout must be positive, got {self.request_timeout}"
            raise ValueError(msg)
        object.__setattr__(self, "production_hosts", tuple(h.rstrip("/") for h in self.production_hosts))
        object.__setattr__(self, "staging_base_url", self.staging_base_url.rstrip("/"))

    @classmethod
    def from_env(cls) -> MigratorSettings:
        """Build settings from EMAIL_MIGRATOR_* environment variables, falling back to defaults."""
        settings = cls()

        hosts = os.environ.get(_HOSTS_ENV_VAR)
        if hosts:
            settings = replace(settings, production_hosts=tuple(h.strip() for h in hosts.split(",") if h.strip()))

        staging_url = os.environ.get(_STAGING_ENV_VAR)
        if staging_url:
            settings = replace(settings, staging_base_url=staging_url)

        updated_by = os.environ.get(_UPDATED_BY_ENV_VAR)
        if updated_by:
            settings = replace(settings, updated_by=updated_by)

        title = os.environ.get(_TITLE_ENV_VAR)
        if title:
            settings = replace(settings, template_title=title)

        timeout = os.environ.get(_TIMEOUT_ENV_VAR)
        if timeout:
            try:
                settings = replace(settings, request_timeout=float(timeout))
            except ValueError as e:
                msg = f"Invalid {_TIMEOUT_ENV_VAR} value: {timeout!r}"
                raise ValueError(msg) from e

        logger.debug(f"Loaded settings: staging={settings.staging_base_url}, hosts={settings.production_hosts}")
        return settings
