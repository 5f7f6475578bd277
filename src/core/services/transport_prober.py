"""Transport probing.

For every declared transport the simulated agent:
- fetches the schema (the agent card for A2A) and requires a JSON body;
- for REST and MCP, checks that the live endpoint answers at the HTTP level.

Any HTTP status on the endpoint (401, 404, 5xx) counts as reachable: an agent
can still begin an authentication flow. Only DNS, connect, TLS and timeout
failures make an endpoint unreachable.
"""

from __future__ import annotations

import asyncio
import logging

from core.domain.models import SimulationStep, StepStatus, TransportProbe, TransportStage
from core.domain.profile import ProfileDocument, TransportRef
from core.interfaces.prober import UrlProber
from core.services.steps import probe_detail, skipped, step

logger = logging.getLogger(__name__)

LIVE_ENDPOINT_KINDS = frozenset({"rest", "mcp"})


def step_name(ref: TransportRef) -> str:
    return f"probe_transport:{ref.service}:{ref.kind}"


def disabled_transport_stage(document: ProfileDocument, detail: str) -> TransportStage:
    names = [step_name(ref) for ref in document.transports()] or ["enumerate_transports"]
    return TransportStage(success=False, disabled=True, steps=skipped(names, detail))


async def _probe_one(ref: TransportRef, prober: UrlProber, *, verbose: bool) -> tuple[TransportProbe, SimulationStep]:
    name = step_name(ref)
    label = "agent card" if ref.kind == "a2a" else "schema"

    if not ref.schema_url:
        probe = TransportProbe(service=ref.service, kind=ref.kind, endpoint=ref.endpoint, detail=f"No {label} URL declared")
        return probe, step(name, StepStatus.FAIL, f"No {label} URL declared")

    has_endpoint = ref.kind in LIVE_ENDPOINT_KINDS
    if has_endpoint and ref.endpoint:
        schema, endpoint = await asyncio.gather(
            prober.fetch_json(ref.schema_url),
            prober.check_reachable(ref.endpoint),
        )
    else:
        schema, endpoint = await prober.fetch_json(ref.schema_url), None

    endpoint_reachable: bool | None = None
    if has_endpoint:
        endpoint_reachable = endpoint is not None and endpoint.reachable

    usable = schema.ok and endpoint_reachable is not False
    duration = schema.duration_ms + (endpoint.duration_ms if endpoint else 0)

    if not schema.ok:
        message = f"Transport {label} not accessible"
        detail = probe_detail(schema, verbose=verbose)
    elif endpoint_reachable is False:
        message = "Endpoint unreachable"
        detail = probe_detail(endpoint, verbose=verbose) if endpoint else "No endpoint URL declared"
    else:
        message = f"{ref.kind.upper()} transport usable"
        detail = None
        if endpoint is not None and (verbose or not endpoint.ok):
            detail = probe_detail(endpoint, verbose=True) if verbose else f"endpoint answered HTTP {endpoint.status_code}"

    probe = TransportProbe(
        service=ref.service,
        kind=ref.kind,
        schema_url=ref.schema_url,
        endpoint=ref.endpoint,
        schema_accessible=schema.ok,
        endpoint_reachable=endpoint_reachable,
        usable=usable,
        detail=detail if not usable else None,
        schema_document=schema.data if schema.ok else None,
    )
    if not usable:
        logger.info("transport %s not usable: %s", name, detail)
    status = StepStatus.PASS if usable else StepStatus.FAIL
    return probe, step(name, status, message, detail, duration)


async def probe_transports(
    document: ProfileDocument,
    prober: UrlProber,
    *,
    verbose: bool = False,
) -> TransportStage:
    refs = document.transports()
    if not refs:
        return TransportStage(
            success=False,
            steps=(step("enumerate_transports", StepStatus.FAIL, "No transport bindings declared"),),
        )

    outcomes = await asyncio.gather(*(_probe_one(ref, prober, verbose=verbose) for ref in refs))
    probes = tuple(probe for probe, _ in outcomes)
    rest = [p for p in probes if p.kind == "rest"]

    return TransportStage(
        success=all(p.usable for p in probes),
        steps=tuple(s for _, s in outcomes),
        transports=probes,
        schema_loaded=any(p.schema_accessible for p in rest),
        endpoint_accessible=any(p.endpoint_reachable for p in rest),
        usable_transports=tuple(f"{p.service}:{p.kind}" for p in probes if p.usable),
    )
