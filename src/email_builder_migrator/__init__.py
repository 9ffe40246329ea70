"""
Email Builder Migration Tool

Migrates a single production email template or campaign into a new staging
template, reading through the production API and writing through staging.
"""

from __future__ import annotations

from .cli import main
from .config import MigratorSettings
from .exceptions import (
    AllEndpointsFailedError,
    CreateFailedError,
    CredentialNotFoundError,
    InvalidResourceKindError,
    MigrationCancelledError,
    MigrationError,
    TransportError,
    WriteFailedError,
)
from .models import CanonicalDocument, ResourceDescriptor, ResourceKind
from .orchestrator import CancellationToken, MigrationResult, MigrationState, Migrator, start_migration
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "AllEndpointsFailedError",
    "CancellationToken",
    "CanonicalDocument",
    "CreateFailedError",
    "CredentialNotFoundError",
    "InvalidResourceKindError",
    "MigrationCancelledError",
    "MigrationError",
    "MigrationResult",
    "MigrationState",
    "Migrator",
    "MigratorSettings",
    "ResourceDescriptor",
    "ResourceKind",
    "TransportError",
    "WriteFailedError",
    "main",
    "setup_logging",
    "start_migration",
]
