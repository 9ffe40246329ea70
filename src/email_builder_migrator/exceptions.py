"""
Custom exception classes for the email builder migration tool.
"""

from __future__ import annotations


class MigrationError(Exception):
    """Base exception for migration errors."""


class CredentialNotFoundError(MigrationError):
    """Raised when no override was given and no stored credential matched."""


class AllEndpointsFailedError(MigrationError):
    """Raised when every production read attempt failed, including the alternate-header one."""


class InvalidResourceKindError(MigrationError):
    """Raised when a resource kind is neither template nor campaign."""


class CreateFailedError(MigrationError):
    """Raised when the staging API did not create a template."""


class WriteFailedError(MigrationError):
    """Raised when the staging API rejected the template data."""


class TransportError(MigrationError):
    """Raised for network or parse faults not covered by a more specific error."""


class MigrationCancelledError(MigrationError):
    """Raised when a run is cancelled between steps."""
