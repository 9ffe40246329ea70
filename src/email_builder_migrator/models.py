"""Data models exchanged between the production reader, the normalizer and the staging writer.

These models are intentionally small. Raw production payloads are classified
once into one of the shape variants below; everything downstream of the
normalizer only ever sees a CanonicalDocument.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .exceptions import InvalidResourceKindError


class ResourceKind(str, Enum):
    """Kind of production resource; selects which read endpoints are tried."""

    TEMPLATE = "template"
    CAMPAIGN = "campaign"

    @classmethod
    def parse(cls, value: str | ResourceKind) -> ResourceKind:
        if isinstance(value, ResourceKind):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            msg = f"Invalid resource kind: {value!r} (expected 'template' or 'campaign')"
            raise InvalidResourceKindError(msg) from None


class HeaderProfile(str, Enum):
    """Header set attached to a production read request."""

    STANDARD = "standard"
    ALTERNATE = "alternate"


@dataclass(frozen=True)
class ResourceDescriptor:
    """Identifies the production resource to migrate."""

    location_id: str
    entity_id: str
    kind: ResourceKind

    def __post_init__(self) -> None:
        if not self.location_id or not self.location_id.strip():
            msg = "Source location id must not be empty"
            raise ValueError(msg)
        if not self.entity_id or not self.entity_id.strip():
            msg = "Source entity id must not be empty"
            raise ValueError(msg)
        # Accept plain strings for convenience
        object.__setattr__(self, "kind", ResourceKind.parse(self.kind))


@dataclass(frozen=True)
class EndpointAttempt:
    """One read request in the fallback chain."""

    url: str
    header_profile: HeaderProfile = HeaderProfile.STANDARD


def empty_design() -> dict[str, Any]:
    """Return a fresh empty-design sentinel."""
    return {"elements": [], "attrs": {}, "templateSettings": {}}


@dataclass(frozen=True)
class EditorDataShape:
    """Newer production format: design in ``editorData``, HTML behind ``previewUrl``."""

    editor_data: Any
    preview_url: str | None = None


@dataclass(frozen=True)
class DndShape:
    """Older production format: design in ``dnd``, HTML inline in ``html``."""

    dnd: Any
    html: str | None = None


@dataclass(frozen=True)
class UnknownShape:
    """Payload carrying neither known design field."""


PayloadShape = EditorDataShape | DndShape | UnknownShape


@dataclass
class CanonicalDocument:
    """Normalized template content written to staging.

    design_data is never None; a missing design becomes the empty-design sentinel.
    """

    design_data: dict[str, Any] = field(default_factory=empty_design)
    html_content: str = ""

    def __post_init__(self) -> None:
        if self.design_data is None:
            self.design_data = empty_design()
        if self.html_content is None:
            self.html_content = ""
