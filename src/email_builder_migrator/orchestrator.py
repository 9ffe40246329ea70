"""Migration orchestrator that sequences credential, read, normalize and write steps.

Migration Flow
--------------
A run is a linear state machine with no back-edges:

    IDLE -> RESOLVING_CREDENTIAL -> FETCHING -> NORMALIZING
         -> CREATING_DESTINATION -> WRITING_DATA -> DONE

ERROR is reachable from every non-terminal state. Before each step the
Migrator emits one progress message to the status sink, so a UI can follow
along without knowing the states. Credential resolution is announced only when
the token has to be extracted from storage.

    descriptor + override/storage
           │
           ▼
    ┌──────────────────┐
    │ resolve_         │ ──► credential (or CredentialNotFoundError,
    │ credential()     │     before any network call)
    └──────────────────┘
           │
           ▼
    ┌──────────────────┐
    │ Reader.fetch_    │ ──► raw payload (first 2xx JSON body wins)
    │ resource()       │
    └──────────────────┘
           │
           ▼
    ┌──────────────────┐
    │ Normalizer.      │ ──► CanonicalDocument (never fails)
    │ normalize()      │
    └──────────────────┘
           │
           ▼
    ┌──────────────────┐
    │ Writer.create_   │ ──► new template id (always a template)
    │ entity()         │
    └──────────────────┘
           │
           ▼
    ┌──────────────────┐
    │ Writer.write_    │ ──► acknowledgement
    │ data()           │
    └──────────────────┘

Error Handling
--------------
Components raise typed MigrationError subclasses and the Migrator catches them
at the top level only, producing exactly one MigrationResult. There are no
retries above the reader's fallback chain and no rollback: if writing fails,
the created staging template is left behind.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

import requests

from . import credentials
from .config import MigratorSettings
from .exceptions import CredentialNotFoundError, MigrationCancelledError, MigrationError, TransportError
from .models import ResourceDescriptor, ResourceKind
from .normalizer import Normalizer
from .production import ProductionReader
from .staging import StagingWriter

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from .credentials import CredentialSource
    from .protocols import DestinationWriter, DocumentNormalizer, ResourceReader, StatusSink

logger = logging.getLogger(__name__)


class MigrationState(str, Enum):
    IDLE = "idle"
    RESOLVING_CREDENTIAL = "resolving_credential"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    CREATING_DESTINATION = "creating_destination"
    WRITING_DATA = "writing_data"
    DONE = "done"
    ERROR = "error"


_PROGRESS_MESSAGES: dict[MigrationState, str] = {
    MigrationState.RESOLVING_CREDENTIAL: "Extracting authentication token...",
    MigrationState.FETCHING: "Fetching data from production...",
    MigrationState.NORMALIZING: "Normalizing production data...",
    MigrationState.CREATING_DESTINATION: "Creating new template in staging...",
    MigrationState.WRITING_DATA: "Updating staging template with production data...",
    MigrationState.DONE: "Migration completed",
}


class CancellationToken:
    """Thread-safe flag checked by the Migrator before every step."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class MigrationResult:
    """Terminal value of a migration run."""

    success: bool
    state: MigrationState
    new_entity_id: str | None = None
    error: MigrationError | None = None
    progress: list[str] = field(default_factory=list)

    @property
    def reason(self) -> str | None:
        """Failure message surfaced to the user, verbatim from the originating error."""
        return str(self.error) if self.error is not None else None


class Migrator:
    """Orchestrates one migration from production to staging.

    Usage:
        with requests.Session() as session:
            migrator = Migrator(
                ProductionReader(session, settings),
                Normalizer(session, settings),
                StagingWriter(session, settings),
                status_sink=print,
            )
            result = migrator.migrate(descriptor, "staging-location", credential_override=token)

    The migrator keeps no state between runs beyond the state of the last run,
    which is exposed for inspection.
    """

    _reader: ResourceReader
    _normalizer: DocumentNormalizer
    _writer: DestinationWriter
    _status_sink: StatusSink | None

    def __init__(
        self,
        reader: ResourceReader,
        normalizer: DocumentNormalizer,
        writer: DestinationWriter,
        *,
        status_sink: StatusSink | None = None,
        credential_sources: Sequence[CredentialSource] = credentials.DEFAULT_SOURCES,
    ) -> None:
        self._reader = reader
        self._normalizer = normalizer
        self._writer = writer
        self._status_sink = status_sink
        self._credential_sources = credential_sources
        self.state: MigrationState = MigrationState.IDLE
        self._progress: list[str] = []

    def _notify(self, message: str) -> None:
        self._progress.append(message)
        logger.info(message)
        if self._status_sink is not None:
            self._status_sink(message)

    def _enter(
        self,
        state: MigrationState,
        cancel_token: CancellationToken | None,
        created_id: str | None,
        *,
        announce: bool = True,
    ) -> None:
        if cancel_token is not None and cancel_token.cancelled:
            if created_id:
                msg = f"Migration cancelled before {state.value}; staging template {created_id} was left behind"
            else:
                msg = f"Migration cancelled before {state.value}"
            raise MigrationCancelledError(msg)
        self.state = state
        if announce:
            self._notify(_PROGRESS_MESSAGES[state])

    def migrate(
        self,
        descriptor: ResourceDescriptor,
        destination_location_id: str,
        *,
        credential_override: str | None = None,
        storage: Mapping[str, str] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> MigrationResult:
        """Execute the full migration and return its single result. Never raises MigrationError."""
        self.state = MigrationState.IDLE
        self._progress = []
        created_id: str | None = None

        try:
            logger.info(
                f"Starting migration of {descriptor.kind.value} {descriptor.entity_id} "
                f"({descriptor.location_id}) -> staging location {destination_location_id}"
            )

            # Nothing is extracted when the caller supplies the token
            self._enter(
                MigrationState.RESOLVING_CREDENTIAL, cancel_token, created_id, announce=not credential_override
            )
            credential = credentials.resolve_credential(
                storage, self._credential_sources, override=credential_override
            )
            if not credential:
                msg = "Authentication token is required for API calls"
                raise CredentialNotFoundError(msg)

            self._enter(MigrationState.FETCHING, cancel_token, created_id)
            payload = self._reader.fetch_resource(descriptor, credential)

            self._enter(MigrationState.NORMALIZING, cancel_token, created_id)
            document = self._normalizer.normalize(payload)

            # Every target becomes a template, whatever the source kind
            self._enter(MigrationState.CREATING_DESTINATION, cancel_token, created_id)
            created_id = self._writer.create_entity(destination_location_id)

            self._enter(MigrationState.WRITING_DATA, cancel_token, created_id)
            self._writer.write_data(destination_location_id, created_id, document, ResourceKind.TEMPLATE)

            self.state = MigrationState.DONE
            self._notify(_PROGRESS_MESSAGES[MigrationState.DONE])

        except MigrationError as e:
            return self._fail(e, created_id)
        except requests.RequestException as e:
            msg = f"Network error during {self.state.value}: {e}"
            return self._fail(TransportError(msg), created_id)

        return MigrationResult(
            success=True,
            state=self.state,
            new_entity_id=created_id,
            progress=list(self._progress),
        )

    def _fail(self, error: MigrationError, created_id: str | None) -> MigrationResult:
        logger.error(f"Migration failed during {self.state.value}: {error}")
        if created_id:
            logger.warning(f"Staging template {created_id} was created but not fully populated")
        self.state = MigrationState.ERROR
        self._notify(str(error))
        return MigrationResult(success=False, state=self.state, error=error, progress=list(self._progress))


def start_migration(
    source_location_id: str,
    source_entity_id: str,
    destination_location_id: str,
    resource_kind: str | ResourceKind,
    credential_override: str | None = None,
    *,
    storage: Mapping[str, str] | None = None,
    status_sink: StatusSink | None = None,
    settings: MigratorSettings | None = None,
    session: requests.Session | None = None,
    cancel_token: CancellationToken | None = None,
) -> MigrationResult:
    """Migrate one production template or campaign into a new staging template.

    Invalid input (unknown kind, empty ids) is reported as a failed result,
    like every other failure.
    """
    settings = settings or MigratorSettings()
    owns_session = session is None
    http = session or requests.Session()

    try:
        try:
            if not destination_location_id or not destination_location_id.strip():
                msg = "Destination location id must not be empty"
                raise ValueError(msg)
            descriptor = ResourceDescriptor(source_location_id, source_entity_id, resource_kind)
        except (MigrationError, ValueError) as e:
            error = e if isinstance(e, MigrationError) else MigrationError(str(e))
            logger.error(f"Invalid migration request: {error}")
            if status_sink is not None:
                status_sink(str(error))
            return MigrationResult(success=False, state=MigrationState.ERROR, error=error, progress=[str(error)])

        migrator = Migrator(
            ProductionReader(http, settings),
            Normalizer(http, settings),
            StagingWriter(http, settings),
            status_sink=status_sink,
        )
        return migrator.migrate(
            descriptor,
            destination_location_id,
            credential_override=credential_override,
            storage=storage,
            cancel_token=cancel_token,
        )
    finally:
        if owns_session:
            http.close()
