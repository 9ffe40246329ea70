"""Production read side: endpoint fallback chain for template and campaign data.

The production backend serves the same resource from several hosts and path
shapes, and which one answers depends on the account and resource age. The
reader walks a fixed, ordered list of attempts and returns the first body that
comes back 2xx and parses as JSON. It never compares results across endpoints
and never fans out in parallel.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, Final

import requests

from . import utils
from .config import MigratorSettings
from .exceptions import AllEndpointsFailedError
from .models import EndpointAttempt, HeaderProfile, ResourceDescriptor, ResourceKind

if TYPE_CHECKING:
    from collections.abc import Iterable

logger: logging.Logger = logging.getLogger(__name__)

API_VERSION: Final[str] = "2021-07-28"
CHANNEL: Final[str] = "APP"
SOURCE: Final[str] = "WEB_USER"
ALTERNATE_ACCEPT: Final[str] = "application/json, text/plain, */*"

# Path shapes per kind, tried on every production host in order
_PATH_SHAPES: Final[dict[ResourceKind, tuple[str, ...]]] = {
    ResourceKind.TEMPLATE: (
        "emails/builder/data/{location_id}/{entity_id}?isInternal=true",
        "emails/builder/{location_id}/{entity_id}",
        "emails/builder/data/{location_id}/{entity_id}",
    ),
    ResourceKind.CAMPAIGN: (
        "emails/schedule/template-data/{location_id}/{entity_id}",
        "emails/schedule/{location_id}/{entity_id}",
        "emails/schedule/data/{location_id}/{entity_id}",
    ),
}


def standard_headers(location_id: str, credential: str | None) -> dict[str, str]:
    """Header profile used for every regular read attempt."""
    headers = {
        "version": API_VERSION,
        "channel": CHANNEL,
        "source": SOURCE,
        "source-id": location_id,
        "Content-Type": "application/json",
    }
    if credential:
        headers["token-id"] = credential
    return headers


def alternate_headers(location_id: str, credential: str | None) -> dict[str, str]:
    """Last-resort header profile: broad accept header, no API version."""
    headers = {
        "accept": ALTERNATE_ACCEPT,
        "channel": CHANNEL,
        "source": SOURCE,
        "source-id": location_id,
        "Content-Type": "application/json",
    }
    if credential:
        headers["token-id"] = credential
    return headers


def build_headers(profile: HeaderProfile, location_id: str, credential: str | None) -> dict[str, str]:
    if profile is HeaderProfile.ALTERNATE:
        return alternate_headers(location_id, credential)
    return standard_headers(location_id, credential)


def candidate_urls(descriptor: ResourceDescriptor, settings: MigratorSettings) -> list[str]:
    """Return the six ordered read URLs for the descriptor's kind."""
    shapes = _PATH_SHAPES[descriptor.kind]
    return [
        f"{host}/{shape.format(location_id=descriptor.location_id, entity_id=descriptor.entity_id)}"
        for shape in shapes
        for host in settings.production_hosts
    ]


def iter_attempts(descriptor: ResourceDescriptor, settings: MigratorSettings) -> Iterator[EndpointAttempt]:
    """Lazily yield the fallback chain: every candidate URL, then one alternate-header retry of the first."""
    urls = candidate_urls(descriptor, settings)
    for url in urls:
        yield EndpointAttempt(url=url, header_profile=HeaderProfile.STANDARD)
    yield EndpointAttempt(url=urls[0], header_profile=HeaderProfile.ALTERNATE)


class ProductionReader:
    """Fetches a template or campaign payload from production."""

    _session: requests.Session
    _settings: MigratorSettings

    def __init__(self, session: requests.Session, settings: MigratorSettings | None = None) -> None:
        self._session = session
        self._settings = settings or MigratorSettings()

    def fetch_resource(self, descriptor: ResourceDescriptor, credential: str) -> Any:
        """Return the first parsed payload from the fallback chain.

        Raises:
            AllEndpointsFailedError: If every attempt, including the alternate-header one, failed
        """
        logger.info(
            f"Fetching {descriptor.kind.value} {descriptor.entity_id} from location {descriptor.location_id} "
            f"with credential {utils.mask_token(credential)}"
        )
        return self._consume(iter_attempts(descriptor, self._settings), descriptor, credential)

    def _consume(self, attempts: Iterable[EndpointAttempt], descriptor: ResourceDescriptor, credential: str) -> Any:
        failures: list[str] = []
        for attempt in attempts:
            ok, payload, reason = self._try(attempt, descriptor.location_id, credential)
            if ok:
                logger.info(f"Success with endpoint {attempt.url} ({attempt.header_profile.value} headers)")
                return payload
            failures.append(f"{attempt.url} [{attempt.header_profile.value}]: {reason}")

        logger.debug("All production read attempts failed:\n" + "\n".join(f"  - {f}" for f in failures))
        msg = (
            f"Failed to fetch {descriptor.kind.value} {descriptor.entity_id} from production: "
            f"all {len(failures)} endpoint attempts failed (last: {failures[-1] if failures else 'none'})"
        )
        raise AllEndpointsFailedError(msg)

    def _try(self, attempt: EndpointAttempt, location_id: str, credential: str) -> tuple[bool, Any, str]:
        """Issue one read; return (succeeded, payload, failure reason)."""
        headers = build_headers(attempt.header_profile, location_id, credential)
        logger.debug(f"Trying endpoint {attempt.url} ({attempt.header_profile.value} headers)")

        try:
            response = self._session.get(attempt.url, headers=headers, timeout=self._settings.request_timeout)
        except requests.RequestException as e:
            logger.warning(f"Error with endpoint {attempt.url}: {e}")
            return False, None, f"transport error: {e}"

        if not utils.is_success(response):
            logger.debug(f"Endpoint {attempt.url} failed with status {response.status_code}")
            return False, None, f"status {response.status_code}"

        try:
            payload = response.json()
        except ValueError as e:
            logger.warning(f"Endpoint {attempt.url} returned an unparseable body: {e}")
            return False, None, "unparseable body"

        return True, payload, ""
