"""httpx wrapper.

Why a wrapper:
- Standardizes timeouts, headers and the HTTPS-only policy for every probe.
- Eases testing: callers pass an `httpx.MockTransport` through `transport`.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

import httpx

from core.config import AppSettings
from core.errors import NetworkError, ParseError
from core.interfaces.prober import ProbeResult

logger = logging.getLogger(__name__)

MAX_REDIRECTS = 5


def build_async_client(
    settings: AppSettings | None = None,
    *,
    timeout_seconds: float | None = None,
    follow_redirects: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
    extra_headers: dict[str, str] | None = None,
) -> httpx.AsyncClient:
    """Create an `httpx.AsyncClient` with safe defaults.

    Why a builder:
    - Centralizes timeouts/headers so every stage behaves the same way.
    - One client per run; nothing is shared across runs.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json, */*;q=0.5",
    }
    if extra_headers:
        headers.update(extra_headers)
    timeout = timeout_seconds if timeout_seconds is not None else settings.http_timeout_seconds
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        follow_redirects=follow_redirects,
        headers=headers,
        transport=transport,
    )


def is_https(url: str) -> bool:
    try:
        return httpx.URL(url).scheme == "https"
    except (httpx.InvalidURL, TypeError, ValueError):
        return False


def is_json_content_type(content_type: str | None) -> bool:
    if not content_type:
        return False
    media = content_type.split(";", 1)[0].strip().lower()
    return media == "application/json" or media.endswith("+json")


def describe_network_error(exc: httpx.HTTPError) -> str:
    """Short, human-readable cause for a transport-level failure."""

    if isinstance(exc, httpx.TimeoutException):
        return f"timeout ({exc.__class__.__name__})"
    if isinstance(exc, httpx.ConnectError):
        # DNS and TLS handshake failures surface as ConnectError in httpx.
        return f"connection failed: {exc}" if str(exc) else "connection failed"
    if isinstance(exc, httpx.UnsupportedProtocol):
        return f"unsupported protocol: {exc}"
    return f"{exc.__class__.__name__}: {exc}" if str(exc) else exc.__class__.__name__


def decode_json(body: bytes) -> Any:
    """Decode a JSON body or raise `ParseError`."""

    text = body.decode("utf-8", errors="replace")
    if text.lstrip().startswith("<"):
        raise ParseError("Response is HTML, not JSON")
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})") from exc
    except RecursionError as exc:
        raise ParseError("Invalid JSON: nesting too deep") from exc


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class HttpProber:
    """`UrlProber` backed by a shared `httpx.AsyncClient`.

    Concurrency inside a run is bounded by a semaphore; the client itself is
    owned by the caller (one per run).
    """

    def __init__(self, client: httpx.AsyncClient, *, max_concurrency: int = 8) -> None:
        self._client = client
        self._sem = asyncio.Semaphore(max(1, max_concurrency))

    async def _send(self, method: str, url: str) -> httpx.Response:
        """Send one request, following redirects only while they stay on HTTPS."""

        current = url
        for _ in range(MAX_REDIRECTS + 1):
            if not is_https(current):
                raise NetworkError(f"Refusing non-HTTPS URL: {current}", {"url": url})
            async with self._sem:
                try:
                    response = await self._client.request(method, current, follow_redirects=False)
                except httpx.HTTPError as exc:
                    raise NetworkError(describe_network_error(exc), {"url": url}) from exc
            location = response.headers.get("location")
            if not response.is_redirect or not location:
                return response
            try:
                current = str(response.url.join(location))
            except httpx.InvalidURL as exc:
                raise NetworkError(f"Invalid redirect location: {location}", {"url": url}) from exc
        raise NetworkError(f"Too many redirects (more than {MAX_REDIRECTS})", {"url": url})

    async def fetch_json(self, url: str) -> ProbeResult:
        started = time.perf_counter()
        try:
            response = await self._send("GET", url)
        except NetworkError as exc:
            logger.debug("probe GET %s failed: %s", url, exc.message)
            return ProbeResult(url=url, ok=False, error=exc.message, duration_ms=_elapsed_ms(started))

        content_type = response.headers.get("content-type")
        if not response.is_success:
            return ProbeResult(
                url=url,
                ok=False,
                status_code=response.status_code,
                content_type=content_type,
                error=f"HTTP {response.status_code}",
                duration_ms=_elapsed_ms(started),
            )
        try:
            data = decode_json(response.content)
        except ParseError as exc:
            return ProbeResult(
                url=url,
                ok=False,
                status_code=response.status_code,
                content_type=content_type,
                error=exc.message,
                duration_ms=_elapsed_ms(started),
            )
        return ProbeResult(
            url=url,
            ok=True,
            status_code=response.status_code,
            content_type=content_type,
            data=data,
            duration_ms=_elapsed_ms(started),
        )

    async def check_reachable(self, url: str) -> ProbeResult:
        started = time.perf_counter()
        try:
            response = await self._send("HEAD", url)
            if response.status_code == 405:
                response = await self._send("GET", url)
        except NetworkError as exc:
            logger.debug("probe HEAD %s failed: %s", url, exc.message)
            return ProbeResult(url=url, ok=False, error=exc.message, duration_ms=_elapsed_ms(started))

        ok = response.status_code < 400
        return ProbeResult(
            url=url,
            ok=ok,
            status_code=response.status_code,
            content_type=response.headers.get("content-type"),
            error=None if ok else f"HTTP {response.status_code}",
            duration_ms=_elapsed_ms(started),
        )
