"""Credential resolution for the production read API.

Credentials come either from an explicit override (command line, ``pass``,
environment) or from a key-value snapshot of the browser storage of a logged-in
production session. Each way of finding one is a CredentialSource; sources are
tried in order and the first non-empty answer wins.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Final, Protocol

from . import utils
from .exceptions import MigrationError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

logger: logging.Logger = logging.getLogger(__name__)

_TOKEN_ENV_VAR: Final[str] = "EMAIL_MIGRATOR_TOKEN"  # noqa: S105

# Base64url of '{"' which starts every JWT header
JWT_MARKER: Final[str] = "eyJ"
_JWT_PATTERN: Final[re.Pattern[str]] = re.compile(r"eyJ[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+")


def looks_like_token(value: str | None) -> bool:
    """Loose check used for named storage slots."""
    return bool(value) and (JWT_MARKER in value or "token" in value)


class CredentialSource(Protocol):
    """A place a credential may be found, given a storage snapshot."""

    def resolve(self, storage: Mapping[str, str]) -> str | None: ...


@dataclass(frozen=True)
class Override:
    """Credential supplied explicitly by the caller, used verbatim."""

    value: str | None

    def resolve(self, storage: Mapping[str, str]) -> str | None:  # noqa: ARG002
        return self.value or None


@dataclass(frozen=True)
class NamedSlot:
    """A well-known storage key whose value is accepted if it looks like a token."""

    name: str

    def resolve(self, storage: Mapping[str, str]) -> str | None:
        value = storage.get(self.name)
        if isinstance(value, str) and looks_like_token(value):
            logger.debug(f"Credential found in storage slot '{self.name}'")
            return value
        return None


@dataclass(frozen=True)
class FullScan:
    """Scan every storage entry for a JWT, either wrapped as ``{"value": ...}`` or raw."""

    def resolve(self, storage: Mapping[str, str]) -> str | None:
        for key, value in storage.items():
            if not isinstance(value, str) or JWT_MARKER not in value:
                continue

            try:
                parsed = json.loads(value)
            except ValueError:
                if _JWT_PATTERN.search(value):
                    logger.debug(f"Raw JWT found in storage entry '{key}'")
                    return value
                continue

            if isinstance(parsed, dict):
                wrapped = parsed.get("value")
                if isinstance(wrapped, str) and wrapped:
                    logger.debug(f"Wrapped credential found in storage entry '{key}'")
                    return wrapped
        return None


DEFAULT_SOURCES: Final[tuple[CredentialSource, ...]] = (
    NamedSlot("token-id"),
    NamedSlot("_pendo_visitorId.undefined"),
    NamedSlot("a"),
    FullScan(),
)


def resolve_credential(
    storage: Mapping[str, str] | None = None,
    sources: Sequence[CredentialSource] = DEFAULT_SOURCES,
    override: str | None = None,
) -> str | None:
    """Return the first credential produced by ``sources``, or None.

    An override short-circuits the scan entirely.
    """
    if override:
        return Override(override).resolve({})

    snapshot: Mapping[str, str] = storage or {}
    for source in sources:
        credential = source.resolve(snapshot)
        if credential:
            logger.info(f"Resolved credential {utils.mask_token(credential)} via {type(source).__name__}")
            return credential

    logger.warning("No credential found in storage snapshot")
    return None


def get_token(pass_path: str | None = None) -> str | None:
    """Get an explicit token from a pass path or the EMAIL_MIGRATOR_TOKEN env var."""
    # Try pass path first
    if pass_path:
        return utils.get_pass_value(pass_path)

    # Try environment variable
    token: str | None = os.environ.get(_TOKEN_ENV_VAR)
    if token:
        return token

    return None


def load_storage_snapshot(path: str | Path) -> dict[str, str]:
    """Load a JSON object dump of browser storage as a key-value snapshot.

    Non-string values are re-serialized so the scan sees what the browser stored.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        msg = f"Failed to read storage snapshot from {path}: {e}"
        raise MigrationError(msg) from e

    if not isinstance(data, dict):
        msg = f"Storage snapshot {path} must contain a JSON object, got {type(data).__name__}"
        raise MigrationError(msg)

    return {str(k): v if isinstance(v, str) else json.dumps(v) for k, v in data.items()}
