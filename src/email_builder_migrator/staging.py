"""Staging write side: create a blank template and push the migrated document into it."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Final

import requests

from . import utils
from .config import MigratorSettings
from .exceptions import CreateFailedError, TransportError, WriteFailedError
from .models import ResourceKind

if TYPE_CHECKING:
    from .models import CanonicalDocument

logger: logging.Logger = logging.getLogger(__name__)

STAGING_API_VERSION: Final[str] = "2021-04-15"
STAGING_CHANNEL: Final[str] = "ISTIO_MESH"
STAGING_SOURCE: Final[str] = "EMAIL_BUILDER"
STAGING_WORKLOAD: Final[str] = "emails"
EDITOR_TYPE: Final[str] = "builder"


def staging_headers(location_id: str) -> dict[str, str]:
    """Headers for the internal staging mesh; no credential is required there."""
    return {
        "version": STAGING_API_VERSION,
        "channel": STAGING_CHANNEL,
        "source": STAGING_SOURCE,
        "source-id": location_id,
        "istio-workload-name": STAGING_WORKLOAD,
        "Content-Type": "application/json",
    }


class StagingWriter:
    """Creates templates in staging and writes builder data into them.

    Every migration target is created as a blank template, whatever the source
    kind was. The campaign data path in write_data() is kept for callers that
    pass ResourceKind.CAMPAIGN explicitly; the Migrator never does.
    """

    _session: requests.Session
    _settings: MigratorSettings

    def __init__(self, session: requests.Session, settings: MigratorSettings | None = None) -> None:
        self._session = session
        self._settings = settings or MigratorSettings()

    @property
    def create_url(self) -> str:
        return f"{self._settings.staging_base_url}/emails/builder"

    def data_url(self, kind: ResourceKind) -> str:
        if kind is ResourceKind.CAMPAIGN:
            return f"{self._settings.staging_base_url}/emails/schedule/template-data"
        return f"{self._settings.staging_base_url}/emails/builder/data"

    def create_entity(self, location_id: str) -> str:
        """Create a blank template in the staging location and return its id.

        Not idempotent: every call creates a new template.
        """
        body = {
            "locationId": location_id,
            "type": "blank",
            "updatedBy": self._settings.updated_by,
            "title": self._settings.template_title,
            "isPlainText": False,
        }

        try:
            response = self._session.post(
                self.create_url,
                headers=staging_headers(location_id),
                json=body,
                timeout=self._settings.request_timeout,
            )
        except requests.RequestException as e:
            msg = f"Failed to create template in staging: {e}"
            raise TransportError(msg) from e

        if not utils.is_success(response):
            msg = f"Failed to create template in staging: {response.status_code} {response.reason}"
            raise CreateFailedError(msg)

        try:
            result = response.json()
        except ValueError as e:
            msg = f"Failed to create template in staging: unparseable response ({e})"
            raise CreateFailedError(msg) from e

        entity_id = (result.get("id") or result.get("redirect")) if isinstance(result, dict) else None
        if not entity_id:
            msg = "Failed to create new template in staging: response has neither 'id' nor 'redirect'"
            raise CreateFailedError(msg)

        logger.info(f"Created staging template {entity_id} in location {location_id}")
        return str(entity_id)

    def write_data(
        self,
        location_id: str,
        entity_id: str,
        document: CanonicalDocument,
        kind: ResourceKind = ResourceKind.TEMPLATE,
    ) -> dict[str, Any]:
        """Write the canonical document into a staging entity and return the acknowledgement."""
        kind = ResourceKind.parse(kind)
        body: dict[str, Any] = {
            "locationId": location_id,
            "updatedBy": self._settings.updated_by,
            "dnd": document.design_data,
            "html": document.html_content,
            "editorType": EDITOR_TYPE,
        }
        if kind is ResourceKind.CAMPAIGN:
            body["campaignId"] = entity_id
        else:
            body["templateId"] = entity_id

        url = self.data_url(kind)
        logger.debug(f"Sending update request to staging: url={url}, entity={entity_id}")

        try:
            response = self._session.post(
                url,
                headers=staging_headers(location_id),
                json=body,
                timeout=self._settings.request_timeout,
            )
        except requests.RequestException as e:
            msg = f"Failed to update entity data: {e}"
            raise TransportError(msg) from e

        if not utils.is_success(response):
            msg = f"Failed to update entity data: {response.status_code} {response.reason}"
            raise WriteFailedError(msg)

        if not response.content:
            return {}
        try:
            ack = response.json()
        except ValueError as e:
            msg = f"Failed to update entity data: unparseable response ({e})"
            raise WriteFailedError(msg) from e

        logger.info(f"Wrote {kind.value} data to staging entity {entity_id}")
        return ack if isinstance(ack, dict) else {"response": ack}
