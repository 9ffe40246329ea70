"""Protocols defining the contracts between the orchestrator and its collaborators.

The migration pipeline separates concerns into three components:

1. ResourceReader: Fetches the raw production payload through the fallback chain
2. DestinationWriter: Creates the staging template and writes the document into it
3. Migrator: Resolves the credential, normalizes the payload and sequences the steps

This separation allows testing the orchestrator with fake readers and writers,
and swapping the HTTP implementations without touching the state machine.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias

if TYPE_CHECKING:
    from .models import CanonicalDocument, ResourceDescriptor, ResourceKind

StatusSink: TypeAlias = Callable[[str], None]
"""Receives one free-text progress message per pipeline step."""


class ResourceReader(Protocol):
    """Reads a resource from production."""

    def fetch_resource(self, descriptor: ResourceDescriptor, credential: str) -> Any:
        """Return the first successfully parsed payload from the fallback chain.

        Raises:
            AllEndpointsFailedError: If no attempt succeeded
        """
        ...


class DocumentNormalizer(Protocol):
    """Turns a raw payload into a CanonicalDocument. Never fails."""

    def normalize(self, payload: Any) -> CanonicalDocument: ...


class DestinationWriter(Protocol):
    """Writes a migrated document into staging.

    The Migrator calls create_entity() and then write_data(). There is no
    transaction between the two: a failed write leaves the created entity behind.
    """

    def create_entity(self, location_id: str) -> str:
        """Create a blank template and return its id.

        Raises:
            CreateFailedError: If the template was not created
        """
        ...

    def write_data(
        self,
        location_id: str,
        entity_id: str,
        document: CanonicalDocument,
        kind: ResourceKind = ...,
    ) -> dict[str, Any]:
        """Push the document into the created entity.

        Raises:
            WriteFailedError: If the staging API rejected the write
        """
        ...
