"""
Extraction of location id, entity id and kind from production builder URLs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final
from urllib.parse import parse_qs, urlparse

from .models import ResourceKind

APP_HOST: Final[str] = "app.gohighlevel.com"
BUILDER_HOST: Final[str] = "email-builder-prod.web.app"

_LOCATION_RE: Final[re.Pattern[str]] = re.compile(r"/location/([^/]+)")
_CAMPAIGN_RE: Final[re.Pattern[str]] = re.compile(r"/emails/campaigns/create/([^/]+)")
_TEMPLATE_RE: Final[re.Pattern[str]] = re.compile(r"/emails/create/([^/]+)/builder")


@dataclass(frozen=True)
class SourceUrlInfo:
    location_id: str
    entity_id: str
    kind: ResourceKind


def parse_source_url(url: str) -> SourceUrlInfo:
    """Parse an app or standalone builder URL.

    Campaign ids win over template ids when a URL carries both.

    Raises:
        ValueError: If the host is unsupported or an id is missing
    """
    parsed = urlparse(url)
    host = parsed.hostname or ""

    location_id: str | None = None
    entity_id: str | None = None
    kind: ResourceKind | None = None

    if host == APP_HOST:
        if match := _LOCATION_RE.search(parsed.path):
            location_id = match.group(1)
        if match := _CAMPAIGN_RE.search(parsed.path):
            entity_id, kind = match.group(1), ResourceKind.CAMPAIGN
        elif match := _TEMPLATE_RE.search(parsed.path):
            entity_id, kind = match.group(1), ResourceKind.TEMPLATE
    elif host == BUILDER_HOST:
        params = {k: v[0] for k, v in parse_qs(parsed.query).items() if v and v[0]}
        location_id = params.get("locationId")
        if campaign_id := params.get("campaignId") or params.get("id"):
            entity_id, kind = campaign_id, ResourceKind.CAMPAIGN
        elif template_id := params.get("templateId"):
            entity_id, kind = template_id, ResourceKind.TEMPLATE
    else:
        msg = f"Unsupported source URL host '{host}'. Expected {APP_HOST} or {BUILDER_HOST}."
        raise ValueError(msg)

    if not location_id or not entity_id or kind is None:
        msg = f"Unable to extract location id, entity id and kind from URL: {url}"
        raise ValueError(msg)

    return SourceUrlInfo(location_id=location_id, entity_id=entity_id, kind=kind)
