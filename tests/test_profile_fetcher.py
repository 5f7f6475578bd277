from __future__ import annotations

import httpx
import pytest

from adapters.http_client import build_async_client, decode_json, is_json_content_type
from adapters.profile_fetcher import fetch_profile, profile_url_for
from core.errors import ParseError

DOMAIN = "shop.example.com"


async def _fetch(handler, settings):
    async with build_async_client(settings, transport=httpx.MockTransport(handler)) as client:
        return await fetch_profile(client, DOMAIN)


def test_profile_url() -> None:
    assert profile_url_for(DOMAIN) == "https://shop.example.com/.well-known/ucp"


async def test_json_profile_is_decoded(settings) -> None:
    fetched = await _fetch(lambda request: httpx.Response(200, json={"ucp": {}}), settings)

    assert fetched.ok
    assert fetched.data == {"ucp": {}}
    assert fetched.status_code == 200
    assert fetched.raw.replace(b" ", b"") == b'{"ucp":{}}'


async def test_redirects_are_not_followed(settings) -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(301, headers={"location": "https://www.shop.example.com/.well-known/ucp"})

    fetched = await _fetch(handler, settings)

    assert not fetched.ok
    assert "redirect" in fetched.error
    assert seen == ["https://shop.example.com/.well-known/ucp"]


@pytest.mark.parametrize("status", [404, 500])
async def test_non_200_status_is_a_failure(status, settings) -> None:
    fetched = await _fetch(lambda request: httpx.Response(status, json={}), settings)

    assert fetched.error == f"HTTP {status}"
    assert fetched.data is None


async def test_non_json_content_type_is_a_failure(settings) -> None:
    fetched = await _fetch(
        lambda request: httpx.Response(200, text="<html></html>", headers={"content-type": "text/html"}),
        settings,
    )

    assert "Unexpected content type" in fetched.error


async def test_invalid_json_sets_json_error(settings) -> None:
    fetched = await _fetch(
        lambda request: httpx.Response(200, content=b"{'ucp':", headers={"content-type": "application/json"}),
        settings,
    )

    assert fetched.error is None
    assert fetched.json_error.startswith("Invalid JSON")
    assert not fetched.ok


async def test_network_failure_is_reported_not_raised(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    fetched = await _fetch(handler, settings)

    assert fetched.error.startswith("timeout")
    assert fetched.status_code is None


def test_decode_json_rejects_html() -> None:
    with pytest.raises(ParseError, match="HTML"):
        decode_json(b"  <!doctype html><html></html>")


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("application/json", True),
        ("application/json; charset=utf-8", True),
        ("application/ld+json", True),
        ("text/plain", False),
        (None, False),
    ],
)
def test_is_json_content_type(value, expected) -> None:
    assert is_json_content_type(value) is expected


async def test_deeply_nested_json_sets_json_error(settings) -> None:
    body = b"[" * 100_000 + b"]" * 100_000
    fetched = await _fetch(
        lambda request: httpx.Response(200, content=body, headers={"content-type": "application/json"}),
        settings,
    )

    assert fetched.json_error.startswith("Invalid JSON")
    assert fetched.data is None


def test_decode_json_rejects_deep_nesting() -> None:
    with pytest.raises(ParseError, match="nesting too deep"):
        decode_json(b"[" * 100_000 + b"]" * 100_000)
