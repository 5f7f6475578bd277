from __future__ import annotations

import asyncio
import copy
from typing import Any, Callable

import httpx
import pytest

from core.config import AppSettings
from core.domain.profile import CHECKOUT, ORDER

DOMAIN = "shop.example.com"
PROFILE_URL = f"https://{DOMAIN}/.well-known/ucp"
VERSION = "2026-01-11"

REST_SCHEMA_URL = "https://ucp.dev/services/shopping/openapi.json"
REST_ENDPOINT = f"https://{DOMAIN}/ucp/v1"
CHECKOUT_SCHEMA_URL = "https://ucp.dev/schemas/shopping/checkout.json"
CHECKOUT_SPEC_URL = "https://ucp.dev/specification/checkout/"
ORDER_SCHEMA_URL = "https://ucp.dev/schemas/shopping/order.json"
ORDER_SPEC_URL = "https://ucp.dev/specification/order/"

CHECKOUT_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": CHECKOUT_SCHEMA_URL,
    "title": "Checkout",
    "type": "object",
    "properties": {
        "checkout_id": {"type": "string"},
        "items": {"type": "array", "items": {"type": "object"}},
    },
    "required": ["checkout_id"],
}

ORDER_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {"order_id": {"type": "string"}},
}

OPENAPI: dict[str, Any] = {
    "openapi": "3.1.0",
    "info": {"title": "UCP Shopping", "version": VERSION},
    "paths": {
        "/checkout-sessions": {"post": {"operationId": "createCheckout", "responses": {"201": {"description": "ok"}}}},
        "/checkout-sessions/{id}": {"get": {"operationId": "getCheckout", "responses": {"200": {"description": "ok"}}}},
    },
}

VALID_EC_KEY: dict[str, str] = {
    "kty": "EC",
    "kid": "webhook-2026",
    "use": "sig",
    "alg": "ES256",
    "crv": "P-256",
    "x": "f83OJ3D2xF1Bg8vub9tLe1gHMzV76e8Tus9uPHvRVEU",
    "y": "x_FEzRu9m36HLN_tue659LNpXW6pCyStikYjKIWI5a0",
}

PAYMENT_HANDLER: dict[str, str] = {
    "id": "google_pay",
    "name": "com.google.pay",
    "version": VERSION,
    "spec": "https://pay.google.com/gp/p/ucp/2026-01-11/",
    "config_schema": "https://pay.google.com/gp/p/ucp/2026-01-11/schemas/config.json",
}


def _checkout_only() -> dict[str, Any]:
    return {
        "ucp": {
            "version": VERSION,
            "services": {
                "dev.ucp.shopping": {
                    "version": VERSION,
                    "spec": "https://ucp.dev/specification/overview/",
                    "rest": {"schema": REST_SCHEMA_URL, "endpoint": REST_ENDPOINT},
                }
            },
            "capabilities": [
                {
                    "name": CHECKOUT,
                    "version": VERSION,
                    "spec": CHECKOUT_SPEC_URL,
                    "schema": CHECKOUT_SCHEMA_URL,
                }
            ],
        }
    }


def _with_order(profile: dict[str, Any], *, keys: list[dict[str, Any]] | None, handlers: bool = True) -> dict[str, Any]:
    profile = copy.deepcopy(profile)
    profile["ucp"]["capabilities"].append(
        {"name": ORDER, "version": VERSION, "spec": ORDER_SPEC_URL, "schema": ORDER_SCHEMA_URL}
    )
    if keys is not None:
        profile["signing_keys"] = keys
    if handlers:
        profile["payment"] = {"handlers": [dict(PAYMENT_HANDLER)]}
    return profile


@pytest.fixture
def checkout_only_profile() -> dict[str, Any]:
    return _checkout_only()


@pytest.fixture
def order_profile() -> dict[str, Any]:
    """Order-capable profile with one handler and one valid EC key."""

    return _with_order(_checkout_only(), keys=[dict(VALID_EC_KEY)])


@pytest.fixture
def make_order_profile() -> Callable[..., dict[str, Any]]:
    def _factory(*, keys: list[dict[str, Any]] | None, handlers: bool = True) -> dict[str, Any]:
        return _with_order(_checkout_only(), keys=keys, handlers=handlers)

    return _factory


def merchant_routes(profile: Any) -> dict[str, httpx.Response]:
    return {
        PROFILE_URL: httpx.Response(200, json=profile),
        CHECKOUT_SCHEMA_URL: httpx.Response(200, json=CHECKOUT_SCHEMA),
        ORDER_SCHEMA_URL: httpx.Response(200, json=ORDER_SCHEMA),
        REST_SCHEMA_URL: httpx.Response(200, json=OPENAPI),
        CHECKOUT_SPEC_URL: httpx.Response(200, text="<html>spec</html>", headers={"content-type": "text/html"}),
        ORDER_SPEC_URL: httpx.Response(200, text="<html>spec</html>", headers={"content-type": "text/html"}),
        # Authentication required: still reachable for an agent.
        REST_ENDPOINT: httpx.Response(401, json={"error": "unauthorized"}),
    }


@pytest.fixture
def merchant_transport() -> Callable[..., httpx.MockTransport]:
    """Build a MockTransport serving `profile` plus the documents it references.

    `overrides` replaces or adds routes; a route value may be an exception
    instance, raised for that URL.
    """

    def _factory(profile: Any, overrides: dict[str, Any] | None = None) -> httpx.MockTransport:
        routes: dict[str, Any] = merchant_routes(profile)
        routes.update(overrides or {})

        def handler(request: httpx.Request) -> httpx.Response:
            url = str(request.url)
            route = routes.get(url)
            if isinstance(route, Exception):
                raise route
            if route is None:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(route.status_code, headers=route.headers, content=route.content)

        return httpx.MockTransport(handler)

    return _factory


@pytest.fixture
def slow_transport() -> Callable[..., httpx.MockTransport]:
    """Serves the profile immediately and stalls every other request."""

    def _factory(profile: Any, delay: float = 5.0) -> httpx.MockTransport:
        async def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == PROFILE_URL:
                return httpx.Response(200, json=profile)
            await asyncio.sleep(delay)
            return httpx.Response(200, json={})

        return httpx.MockTransport(handler)

    return _factory


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        http_timeout_seconds=5.0,
        run_timeout_seconds=10.0,
        user_agent="ucp-readiness-tests/1.0",
        probe_max_concurrency=4,
        log_level="WARNING",
        _env_file=None,
    )
