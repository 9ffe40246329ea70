"""
Utility functions for the email builder migration tool.
"""

from __future__ import annotations

import getpass
import logging
import os
import re
import subprocess
from subprocess import CompletedProcess
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    import requests

logger: logging.Logger = logging.getLogger(__name__)

_GPG_LOOPBACK_OPTS: Final = "--pinentry-mode=loopback --passphrase-fd 0"


class PassError(Exception):
    """Base class for pass-related errors."""


class InvalidPassPathError(PassError):
    """Raised when the pass path format is invalid."""


class PassphraseRequiredError(PassError):
    """Raised when a GPG passphrase is required for the pass utility."""


def setup_logging(*, verbosity: int = 0) -> None:
    """Configure logging for the migration process.

    The console shows warnings by default, info with one ``-v`` and debug with
    two. The ``migration.log`` file always receives debug output. Calls after
    the root logger has handlers leave it untouched.
    """
    if verbosity >= 2:
        console_level = logging.DEBUG
    elif verbosity == 1:
        console_level = logging.INFO
    else:
        console_level = logging.WARNING

    if logging.getLogger().handlers:
        # Already configured, e.g. by an earlier call in the same process
        return

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    file_handler = logging.FileHandler("migration.log", mode="a")
    file_handler.setLevel(logging.DEBUG)

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[console_handler, file_handler],
    )

    # urllib3 is chatty at debug level
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def is_success(response: requests.Response) -> bool:
    """True for 2xx responses only; redirects and 1xx do not count."""
    return 200 <= response.status_code < 300


def mask_token(token: str | None) -> str:
    """Return a log-safe representation of a credential."""
    if not token:
        return "<none>"
    return f"{token[:8]}..." if len(token) > 8 else "***"


def _validate_pass_path(pass_path: str) -> None:
    """Validate the pass path format."""
    if not re.fullmatch(r"(?:[A-Za-z0-9_-]+)(?:/[A-Za-z0-9_-]+)*", pass_path):
        msg = f"Invalid pass path: {pass_path}"
        raise InvalidPassPathError(msg)


def _run_pass(pass_path: str, passphrase: str | None = None) -> str:
    """Read one entry from the pass store; a passphrase is fed to GPG on stdin."""
    unlock: dict[str, Any] = {}
    if passphrase is not None:
        unlock = {"input": passphrase, "env": os.environ | {"PASSWORD_STORE_GPG_OPTS": _GPG_LOOPBACK_OPTS}}

    try:
        result: CompletedProcess[str] = subprocess.run(  # noqa: S603
            ["pass", pass_path], capture_output=True, text=True, check=True, **unlock
        )
    except FileNotFoundError as e:
        msg = "The 'pass' utility is not installed or not on PATH."
        raise PassError(msg) from e
    return result.stdout.strip()


def _needs_passphrase(error: subprocess.CalledProcessError) -> bool:
    stderr = (error.stderr or "").lower()
    return error.returncode == 2 and "gpg" in stderr and "public key decryption failed" in stderr


def get_pass_value(pass_path: str) -> str:
    """Read a secret such as the production token from the ``pass`` store.

    When the GPG key is locked, the passphrase is prompted for once without
    echo and the lookup is repeated.
    """
    _validate_pass_path(pass_path)

    try:
        return _run_pass(pass_path)
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        if e.returncode == 1 and "not in the password store" in stderr.lower():
            msg = f"Pass path '{pass_path}' not found or invalid."
            raise InvalidPassPathError(msg) from e
        if not _needs_passphrase(e):
            msg = f"Failed to read '{pass_path}' from pass (exit {e.returncode}): {stderr}"
            raise PassError(msg) from e

    logger.info(f"GPG key for '{pass_path}' is locked, asking for its passphrase")
    try:
        passphrase = getpass.getpass("Passphrase for the GPG key used by pass: ")
    except EOFError as e:
        msg = "No passphrase given for the GPG key used by pass; run the command in an interactive session."
        raise PassphraseRequiredError(msg) from e

    try:
        return _run_pass(pass_path, passphrase)
    except subprocess.CalledProcessError as e:
        msg = f"Could not unlock '{pass_path}' with the given passphrase (exit {e.returncode}): {e.stderr.strip()}"
        raise PassphraseRequiredError(msg) from e
