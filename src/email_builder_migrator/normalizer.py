"""Normalization of production payloads into a CanonicalDocument."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import requests

from . import utils
from .config import MigratorSettings
from .models import CanonicalDocument, DndShape, EditorDataShape, PayloadShape, UnknownShape, empty_design

logger: logging.Logger = logging.getLogger(__name__)


def _is_set(value: Any) -> bool:
    """A field counts as set unless it is null, false, zero or an empty string.

    Objects and arrays count as set even when empty.
    """
    if isinstance(value, (Mapping, list)):
        return True
    return bool(value)


def classify_payload(payload: Any) -> PayloadShape:
    """Decide the payload shape once. ``editorData`` takes precedence over ``dnd``."""
    if not isinstance(payload, Mapping):
        return UnknownShape()

    if _is_set(payload.get("editorData")):
        preview_url = payload.get("previewUrl")
        return EditorDataShape(
            editor_data=payload["editorData"],
            preview_url=preview_url if isinstance(preview_url, str) and preview_url else None,
        )

    if _is_set(payload.get("dnd")):
        html = payload.get("html")
        return DndShape(dnd=payload["dnd"], html=html if isinstance(html, str) else None)

    return UnknownShape()


class Normalizer:
    """Builds the canonical document, fetching preview HTML for editorData payloads."""

    _session: requests.Session
    _settings: MigratorSettings

    def __init__(self, session: requests.Session, settings: MigratorSettings | None = None) -> None:
        self._session = session
        self._settings = settings or MigratorSettings()

    def normalize(self, payload: Any) -> CanonicalDocument:
        """Return the canonical document for a raw payload or an already classified shape."""
        shape = payload if isinstance(payload, (EditorDataShape, DndShape, UnknownShape)) else classify_payload(payload)

        match shape:
            case EditorDataShape(editor_data=editor_data, preview_url=preview_url):
                logger.info("Using editorData format from production")
                html = self._fetch_preview(preview_url) if preview_url else ""
                return CanonicalDocument(design_data=editor_data, html_content=html)
            case DndShape(dnd=dnd, html=html):
                logger.info("Using dnd format from production")
                return CanonicalDocument(design_data=dnd, html_content=html or "")
            case _:
                logger.warning("No editor data found in production response, using an empty design")
                return CanonicalDocument(design_data=empty_design(), html_content="")

    def _fetch_preview(self, preview_url: str) -> str:
        """Fetch rendered HTML from the preview URL; any failure yields an empty string."""
        try:
            response = self._session.get(preview_url, timeout=self._settings.request_timeout)
        except requests.RequestException as e:
            logger.warning(f"Could not fetch HTML from previewUrl {preview_url}: {e}")
            return ""

        if not utils.is_success(response):
            logger.warning(f"Could not fetch HTML from previewUrl {preview_url}: status {response.status_code}")
            return ""

        logger.debug(f"Fetched {len(response.text)} characters of preview HTML")
        return response.text
