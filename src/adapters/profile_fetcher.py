"""Profile fetcher: the single network leaf every stage depends on.

Retrieves `https://{domain}/.well-known/ucp` with one GET. Redirects are not
followed and only `200` with a JSON content type is accepted. Every failure
is returned as a `FetchedProfile` with `error` set.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from adapters.http_client import decode_json, describe_network_error, is_json_content_type
from core.domain.profile import WELL_KNOWN_PATH
from core.errors import ParseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchedProfile:
    url: str
    status_code: int | None = None
    content_type: str | None = None
    raw: bytes | None = None
    data: Any = None
    error: str | None = None
    json_error: str | None = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None and self.json_error is None


def profile_url_for(domain: str) -> str:
    return f"https://{domain}{WELL_KNOWN_PATH}"


async def fetch_profile(client: httpx.AsyncClient, domain: str) -> FetchedProfile:
    """Fetch and decode the profile for an already-normalized `domain`."""

    url = profile_url_for(domain)
    started = time.perf_counter()

    def elapsed() -> int:
        return int((time.perf_counter() - started) * 1000)

    try:
        response = await client.get(url, follow_redirects=False)
    except httpx.HTTPError as exc:
        cause = describe_network_error(exc)
        logger.info("profile fetch failed for %s: %s", url, cause)
        return FetchedProfile(url=url, error=cause, duration_ms=elapsed())

    content_type = response.headers.get("content-type")
    if response.is_redirect:
        location = response.headers.get("location", "?")
        return FetchedProfile(
            url=url,
            status_code=response.status_code,
            content_type=content_type,
            error=f"HTTP {response.status_code} redirect to {location} (redirects are not followed)",
            duration_ms=elapsed(),
        )
    if response.status_code != 200:
        return FetchedProfile(
            url=url,
            status_code=response.status_code,
            content_type=content_type,
            error=f"HTTP {response.status_code}",
            duration_ms=elapsed(),
        )
    if response.url.scheme != "https":
        return FetchedProfile(
            url=url,
            status_code=response.status_code,
            content_type=content_type,
            error=f"Non-HTTPS response from {response.url}",
            duration_ms=elapsed(),
        )
    if not is_json_content_type(content_type):
        return FetchedProfile(
            url=url,
            status_code=response.status_code,
            content_type=content_type,
            raw=response.content,
            error=f"Unexpected content type: {content_type or 'none'} (expected application/json)",
            duration_ms=elapsed(),
        )

    raw = response.content
    try:
        data = decode_json(raw)
    except ParseError as exc:
        logger.info("profile at %s is not valid JSON: %s", url, exc.message)
        return FetchedProfile(
            url=url,
            status_code=response.status_code,
            content_type=content_type,
            raw=raw,
            json_error=exc.message,
            duration_ms=elapsed(),
        )

    return FetchedProfile(
        url=url,
        status_code=response.status_code,
        content_type=content_type,
        raw=raw,
        data=data,
        duration_ms=elapsed(),
    )
