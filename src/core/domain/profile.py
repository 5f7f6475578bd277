"""UCP profile document (typed core + residual vendor fields).

The document published at `/.well-known/ucp` is decoded into these models by
`core.services.structural_validator`. Every optional part is `None` when it
was absent (or unusable) in the source JSON; consumers must handle `None`
explicitly.
"""

from __future__ import annotations

from typing import Any, Iterator

from pydantic import BaseModel, ConfigDict, Field

CURRENT_UCP_VERSION = "2026-01-11"
KNOWN_UCP_VERSIONS: tuple[str, ...] = (CURRENT_UCP_VERSION,)

WELL_KNOWN_PATH = "/.well-known/ucp"

OFFICIAL_NAMESPACE = "dev.ucp."
VENDOR_NAMESPACES: tuple[str, ...] = ("com.", "io.", "ai.", "net.", "org.")

CHECKOUT = "dev.ucp.shopping.checkout"
ORDER = "dev.ucp.shopping.order"
PAYMENT = "dev.ucp.shopping.payment"
PAYMENT_DATA = "dev.ucp.shopping.payment_data"
FULFILLMENT = "dev.ucp.shopping.fulfillment"
DISCOUNT = "dev.ucp.shopping.discount"
BUYER_CONSENT = "dev.ucp.shopping.buyer_consent"

KNOWN_CAPABILITIES: frozenset[str] = frozenset(
    {CHECKOUT, ORDER, PAYMENT, PAYMENT_DATA, FULFILLMENT, DISCOUNT, BUYER_CONSENT}
)

TRANSPORT_KINDS: tuple[str, ...] = ("rest", "mcp", "a2a", "embedded")


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class RestTransport(_Frozen):
    schema_url: str | None = None
    endpoint: str | None = None


class McpTransport(_Frozen):
    schema_url: str | None = None
    endpoint: str | None = None


class A2aTransport(_Frozen):
    agent_card: str | None = None


class EmbeddedTransport(_Frozen):
    schema_url: str | None = None


class TransportRef(_Frozen):
    """Flattened view of one transport binding, used by probes and rules."""

    service: str
    kind: str
    schema_url: str | None = None
    endpoint: str | None = None
    path: str


class ServiceBinding(_Frozen):
    name: str
    version: str | None = None
    spec: str | None = None
    rest: RestTransport | None = None
    mcp: McpTransport | None = None
    a2a: A2aTransport | None = None
    embedded: EmbeddedTransport | None = None

    def transports(self) -> Iterator[TransportRef]:
        """Yield the declared transports in a stable order (rest, mcp, a2a, embedded)."""

        base = f'$.ucp.services["{self.name}"]'
        if self.rest is not None:
            yield TransportRef(
                service=self.name,
                kind="rest",
                schema_url=self.rest.schema_url,
                endpoint=self.rest.endpoint,
                path=f"{base}.rest",
            )
        if self.mcp is not None:
            yield TransportRef(
                service=self.name,
                kind="mcp",
                schema_url=self.mcp.schema_url,
                endpoint=self.mcp.endpoint,
                path=f"{base}.mcp",
            )
        if self.a2a is not None:
            yield TransportRef(
                service=self.name,
                kind="a2a",
                schema_url=self.a2a.agent_card,
                path=f"{base}.a2a",
            )
        if self.embedded is not None:
            yield TransportRef(
                service=self.name,
                kind="embedded",
                schema_url=self.embedded.schema_url,
                path=f"{base}.embedded",
            )


class CapabilityDecl(_Frozen):
    index: int = Field(..., ge=0, description="Position in `ucp.capabilities`.")
    name: str | None = None
    version: str | None = None
    spec: str | None = None
    schema_url: str | None = None
    extends: str | None = None
    config: dict[str, Any] | None = None

    @property
    def path(self) -> str:
        return f"$.ucp.capabilities[{self.index}]"


class PaymentHandler(_Frozen):
    index: int = Field(..., ge=0)
    id: str | None = None
    name: str | None = None
    version: str | None = None
    spec: str | None = None
    config_schema: str | None = None


class JsonWebKey(_Frozen):
    """Public JWK as published in `signing_keys` (validity decided elsewhere)."""

    index: int = Field(default=0, ge=0)
    kty: str | None = None
    kid: str | None = None
    use: str | None = None
    alg: str | None = None
    crv: str | None = None
    x: str | None = None
    y: str | None = None
    n: str | None = None
    e: str | None = None


class ProfileDocument(_Frozen):
    """Aggregate: the decoded merchant profile.

    `extensions` keeps every unrecognised top-level key exactly as published.
    """

    has_ucp_root: bool = False
    ucp_version: str | None = None
    services: dict[str, ServiceBinding] | None = None
    capabilities: tuple[CapabilityDecl, ...] | None = None
    payment_handlers: tuple[PaymentHandler, ...] | None = None
    signing_keys: tuple[JsonWebKey, ...] | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)

    def capability_names(self) -> list[str]:
        if self.capabilities is None:
            return []
        return [c.name for c in self.capabilities if c.name]

    def find_capability(self, name: str) -> CapabilityDecl | None:
        for cap in self.capabilities or ():
            if cap.name == name:
                return cap
        return None

    def has_capability(self, name: str) -> bool:
        return self.find_capability(name) is not None

    def transports(self) -> list[TransportRef]:
        out: list[TransportRef] = []
        for service in (self.services or {}).values():
            out.extend(service.transports())
        return out
