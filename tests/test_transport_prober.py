from __future__ import annotations

import httpx

from adapters.http_client import HttpProber, build_async_client
from core.domain.models import StepStatus
from core.services.structural_validator import validate_structure
from core.services.transport_prober import disabled_transport_stage, probe_transports

SCHEMA = "https://ucp.dev/services/shopping/openapi.json"
MCP_SCHEMA = "https://ucp.dev/services/shopping/mcp.openrpc.json"
CARD = "https://shop.example.com/.well-known/agent.json"
ENDPOINT = "https://shop.example.com/ucp/v1"
MCP_ENDPOINT = "https://shop.example.com/ucp/mcp"


def _document(service: dict):
    service = {"version": "2026-01-11", "spec": "https://ucp.dev/specification/overview/", **service}
    data = {
        "ucp": {
            "version": "2026-01-11",
            "services": {"dev.ucp.shopping": service},
            "capabilities": [],
        }
    }
    return validate_structure(data).document


def _transport(routes: dict[str, object]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get(str(request.url))
        if isinstance(route, Exception):
            raise route
        if isinstance(route, int):
            return httpx.Response(route, json={})
        if route is None:
            return httpx.Response(404)
        return httpx.Response(200, json=route)

    return httpx.MockTransport(handler)


async def _probe(document, routes, settings, *, verbose: bool = False):
    async with build_async_client(settings, transport=_transport(routes)) as client:
        prober = HttpProber(client, max_concurrency=settings.probe_max_concurrency)
        return await probe_transports(document, prober, verbose=verbose)


async def test_endpoint_answering_401_is_reachable(settings) -> None:
    document = _document({"rest": {"schema": SCHEMA, "endpoint": ENDPOINT}})

    stage = await _probe(document, {SCHEMA: {"openapi": "3.1.0", "paths": {}}, ENDPOINT: 401}, settings)

    [probe] = stage.transports
    assert probe.endpoint_reachable is True
    assert probe.usable is True
    assert stage.success is True
    assert stage.schema_loaded and stage.endpoint_accessible
    assert [(s.name, s.status) for s in stage.steps] == [
        ("probe_transport:dev.ucp.shopping:rest", StepStatus.PASS)
    ]
    assert stage.usable_transports == ("dev.ucp.shopping:rest",)


async def test_server_errors_still_count_as_reachable(settings) -> None:
    document = _document({"rest": {"schema": SCHEMA, "endpoint": ENDPOINT}})

    stage = await _probe(document, {SCHEMA: {"openapi": "3.1.0"}, ENDPOINT: 503}, settings)

    assert stage.transports[0].usable is True
    assert stage.steps[0].detail == "endpoint answered HTTP 503"


async def test_connection_failure_makes_endpoint_unreachable(settings) -> None:
    document = _document({"rest": {"schema": SCHEMA, "endpoint": ENDPOINT}})
    refused = httpx.ConnectError("connection refused")

    stage = await _probe(document, {SCHEMA: {"openapi": "3.1.0"}, ENDPOINT: refused}, settings)

    [probe] = stage.transports
    assert probe.endpoint_reachable is False
    assert probe.usable is False
    assert stage.success is False
    assert stage.steps[0].status is StepStatus.FAIL
    assert "connection failed" in stage.steps[0].detail


async def test_unfetchable_schema_makes_transport_unusable(settings) -> None:
    document = _document({"rest": {"schema": SCHEMA, "endpoint": ENDPOINT}})

    stage = await _probe(document, {ENDPOINT: 200}, settings)

    assert stage.transports[0].schema_accessible is False
    assert stage.steps[0].message == "Transport schema not accessible"
    assert stage.steps[0].detail == "HTTP 404"


async def test_plain_http_urls_are_never_requested(settings) -> None:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(200, json={})

    document = _document({"rest": {"schema": "http://ucp.dev/openapi.json", "endpoint": "http://shop.example.com/api"}})
    async with build_async_client(settings, transport=httpx.MockTransport(handler)) as client:
        stage = await probe_transports(document, HttpProber(client))

    assert requested == []
    assert stage.steps[0].status is StepStatus.FAIL
    assert "non-HTTPS" in stage.steps[0].detail


async def test_every_transport_kind_gets_a_step(settings) -> None:
    document = _document(
        {
            "rest": {"schema": SCHEMA, "endpoint": ENDPOINT},
            "mcp": {"schema": MCP_SCHEMA, "endpoint": MCP_ENDPOINT},
            "a2a": {"agentCard": CARD},
        }
    )
    routes = {SCHEMA: {"openapi": "3.1.0"}, MCP_SCHEMA: {"openrpc": "1.3.2"}, CARD: {"name": "shop"}, ENDPOINT: 200, MCP_ENDPOINT: 405}

    stage = await _probe(document, routes, settings)

    assert [s.name for s in stage.steps] == [
        "probe_transport:dev.ucp.shopping:rest",
        "probe_transport:dev.ucp.shopping:mcp",
        "probe_transport:dev.ucp.shopping:a2a",
    ]
    a2a = stage.transports[2]
    assert a2a.endpoint_reachable is None
    assert all(p.usable for p in stage.transports)


async def test_no_transports(settings) -> None:
    document = _document({})

    stage = await _probe(document, {}, settings)

    assert [(s.name, s.status) for s in stage.steps] == [("enumerate_transports", StepStatus.FAIL)]
    assert stage.success is False


def test_disabled_stage_keeps_the_checklist() -> None:
    document = _document({"rest": {"schema": SCHEMA, "endpoint": ENDPOINT}})

    stage = disabled_transport_stage(document, "REST API test disabled by option")

    assert stage.disabled is True
    assert stage.is_all_skipped()
    assert stage.steps[0].name == "probe_transport:dev.ucp.shopping:rest"


def _redirecting(location: str, requested: list[str]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        requested.append(url)
        if url == SCHEMA:
            return httpx.Response(301, headers={"location": location})
        if url == location:
            return httpx.Response(200, json={"openapi": "3.1.0"})
        return httpx.Response(200, json={})

    return httpx.MockTransport(handler)


async def test_redirect_to_plain_http_is_refused(settings) -> None:
    requested: list[str] = []
    insecure = "http://insecure.example.com/openapi.json"
    document = _document({"rest": {"schema": SCHEMA, "endpoint": ENDPOINT}})

    async with build_async_client(settings, transport=_redirecting(insecure, requested)) as client:
        stage = await probe_transports(document, HttpProber(client))

    assert insecure not in requested
    assert stage.transports[0].schema_accessible is False
    assert stage.steps[0].status is StepStatus.FAIL
    assert "non-HTTPS" in stage.steps[0].detail


async def test_https_redirects_are_followed(settings) -> None:
    requested: list[str] = []
    moved = "https://cdn.ucp.dev/services/shopping/openapi.json"
    document = _document({"rest": {"schema": SCHEMA, "endpoint": ENDPOINT}})

    async with build_async_client(settings, transport=_redirecting(moved, requested)) as client:
        stage = await probe_transports(document, HttpProber(client))

    assert moved in requested
    assert stage.transports[0].schema_accessible is True
    assert stage.steps[0].status is StepStatus.PASS


async def test_redirect_loops_are_cut_off(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(302, headers={"location": str(request.url)})

    async with build_async_client(settings, transport=httpx.MockTransport(handler)) as client:
        result = await HttpProber(client).fetch_json(SCHEMA)

    assert result.ok is False
    assert "Too many redirects" in result.error
