"""Structural validation of a fetched UCP profile.

Decodes the raw JSON into a `ProfileDocument` and records every shape or
required-field problem on the way. Checks are independent: a malformed field
is recorded and decoding continues with the next one, so a single pass
reports everything that is wrong.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any
from urllib.parse import SplitResult, urlsplit

from core.domain.models import IssueCode, Severity, ValidationIssue
from core.domain.profile import (
    CHECKOUT,
    CURRENT_UCP_VERSION,
    KNOWN_UCP_VERSIONS,
    ORDER,
    A2aTransport,
    CapabilityDecl,
    EmbeddedTransport,
    JsonWebKey,
    McpTransport,
    PaymentHandler,
    ProfileDocument,
    RestTransport,
    ServiceBinding,
)

VERSION_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
VERSION_HINT = f'Use format "YYYY-MM-DD" (e.g., "{CURRENT_UCP_VERSION}")'

_CORE_KEYS = frozenset({"ucp", "payment", "signing_keys"})
_JWK_MEMBERS: tuple[str, ...] = ("kty", "kid", "use", "alg", "crv", "x", "y", "n", "e")


@dataclass
class IssueCollector:
    """Ordered accumulator of `ValidationIssue` values."""

    issues: list[ValidationIssue] = field(default_factory=list)

    def error(self, code: IssueCode, path: str, message: str, hint: str | None = None) -> None:
        self.issues.append(
            ValidationIssue(severity=Severity.ERROR, code=code, path=path, message=message, hint=hint)
        )

    def warn(self, code: IssueCode, path: str, message: str, hint: str | None = None) -> None:
        self.issues.append(
            ValidationIssue(severity=Severity.WARN, code=code, path=path, message=message, hint=hint)
        )


@dataclass(frozen=True)
class StructuralResult:
    document: ProfileDocument
    issues: list[ValidationIssue]

    @property
    def has_errors(self) -> bool:
        return any(i.severity is Severity.ERROR for i in self.issues)


def _read_str(
    obj: dict[str, Any],
    key: str,
    path: str,
    collector: IssueCollector,
    *,
    code: IssueCode,
    owner: str,
    required: bool = True,
) -> str | None:
    value = obj.get(key)
    if value is None or value == "":
        if required:
            collector.error(code, f"{path}.{key}", f'{owner} missing required "{key}" field')
        return None
    if not isinstance(value, str):
        collector.error(code, f"{path}.{key}", f'{owner} field "{key}" must be a string')
        return None
    return value


def is_valid_version(value: str) -> bool:
    if not VERSION_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _read_dated_version(
    obj: dict[str, Any],
    path: str,
    collector: IssueCollector,
    *,
    code: IssueCode,
    owner: str,
) -> str | None:
    version = _read_str(obj, "version", path, collector, code=code, owner=owner)
    if version is not None and not is_valid_version(version):
        collector.error(
            IssueCode.INVALID_VERSION_FORMAT,
            f"{path}.version",
            f'Invalid version format in {owner}: "{version}"',
            VERSION_HINT,
        )
    return version


def _read_protocol_version(ucp: dict[str, Any], collector: IssueCollector) -> str | None:
    path = "$.ucp.version"
    value = ucp.get("version")
    if value is None or value == "":
        collector.error(
            IssueCode.MISSING_VERSION,
            path,
            'Missing required "version" field in ucp object',
            VERSION_HINT,
        )
        return None
    if not isinstance(value, str):
        collector.error(IssueCode.INVALID_VERSION_FORMAT, path, "Version must be a string", VERSION_HINT)
        return None
    if not is_valid_version(value):
        collector.error(IssueCode.INVALID_VERSION_FORMAT, path, f'Invalid version format: "{value}"', VERSION_HINT)
        return value
    if value not in KNOWN_UCP_VERSIONS:
        if value > CURRENT_UCP_VERSION:
            message = f'UCP version "{value}" is newer than the latest known version ({CURRENT_UCP_VERSION})'
        else:
            message = f'UCP version "{value}" is not a published UCP version'
        collector.warn(
            IssueCode.UNKNOWN_VERSION,
            path,
            message,
            "Agents may not understand this version; check https://ucp.dev/specification/",
        )
    return value


def _read_url_transport(
    raw: Any,
    path: str,
    label: str,
    collector: IssueCollector,
) -> tuple[str | None, str | None] | None:
    if not isinstance(raw, dict):
        collector.error(IssueCode.INVALID_SERVICE, path, f"{label} transport must be an object")
        return None
    owner = f"{label} transport"
    schema_url = _read_str(raw, "schema", path, collector, code=IssueCode.INVALID_SERVICE, owner=owner)
    endpoint = _read_str(raw, "endpoint", path, collector, code=IssueCode.INVALID_SERVICE, owner=owner)
    return schema_url, endpoint


def _read_service(name: str, raw: Any, collector: IssueCollector) -> ServiceBinding | None:
    path = f'$.ucp.services["{name}"]'
    if not isinstance(raw, dict):
        collector.error(IssueCode.INVALID_SERVICE, path, f'Service "{name}" must be an object')
        return None

    owner = f'service "{name}"'
    version = _read_dated_version(raw, path, collector, code=IssueCode.INVALID_SERVICE, owner=owner)
    spec = _read_str(raw, "spec", path, collector, code=IssueCode.INVALID_SERVICE, owner=owner)

    rest = mcp = a2a = embedded = None
    if raw.get("rest") is not None:
        urls = _read_url_transport(raw["rest"], f"{path}.rest", "REST", collector)
        if urls is not None:
            rest = RestTransport(schema_url=urls[0], endpoint=urls[1])
    if raw.get("mcp") is not None:
        urls = _read_url_transport(raw["mcp"], f"{path}.mcp", "MCP", collector)
        if urls is not None:
            mcp = McpTransport(schema_url=urls[0], endpoint=urls[1])
    if raw.get("a2a") is not None:
        if isinstance(raw["a2a"], dict):
            card = _read_str(
                raw["a2a"], "agentCard", f"{path}.a2a", collector, code=IssueCode.INVALID_SERVICE, owner="A2A transport"
            )
            a2a = A2aTransport(agent_card=card)
        else:
            collector.error(IssueCode.INVALID_SERVICE, f"{path}.a2a", "A2A transport must be an object")
    if raw.get("embedded") is not None:
        if isinstance(raw["embedded"], dict):
            schema_url = _read_str(
                raw["embedded"],
                "schema",
                f"{path}.embedded",
                collector,
                code=IssueCode.INVALID_SERVICE,
                owner="Embedded transport",
            )
            embedded = EmbeddedTransport(schema_url=schema_url)
        else:
            collector.error(IssueCode.INVALID_SERVICE, f"{path}.embedded", "Embedded transport must be an object")

    if all(raw.get(kind) is None for kind in ("rest", "mcp", "a2a", "embedded")):
        collector.warn(
            IssueCode.INVALID_SERVICE,
            path,
            f'Service "{name}" has no transport bindings',
            "Add at least one transport: rest, mcp, a2a, or embedded",
        )

    return ServiceBinding(name=name, version=version, spec=spec, rest=rest, mcp=mcp, a2a=a2a, embedded=embedded)


def _read_services(ucp: dict[str, Any], collector: IssueCollector) -> dict[str, ServiceBinding] | None:
    path = "$.ucp.services"
    raw = ucp.get("services")
    if raw is None:
        collector.error(
            IssueCode.MISSING_SERVICES,
            path,
            'Missing required "services" field in ucp object',
            "Add a services object with at least one service definition",
        )
        return None
    if not isinstance(raw, dict):
        collector.error(
            IssueCode.INVALID_SERVICE,
            path,
            "Services must be an object (not an array)",
            'Use format: { "dev.ucp.shopping": { ... } }',
        )
        return None
    if not raw:
        collector.warn(
            IssueCode.MISSING_SERVICES,
            path,
            "Services object is empty",
            'Add at least one service (e.g., "dev.ucp.shopping")',
        )

    services: dict[str, ServiceBinding] = {}
    for name, service in raw.items():
        binding = _read_service(name, service, collector)
        if binding is not None:
            services[name] = binding
    return services


def _read_capability(index: int, raw: Any, collector: IssueCollector) -> CapabilityDecl:
    path = f"$.ucp.capabilities[{index}]"
    if not isinstance(raw, dict):
        collector.error(IssueCode.INVALID_CAPABILITY, path, f"Capability at index {index} must be an object")
        return CapabilityDecl(index=index)

    code = IssueCode.INVALID_CAPABILITY
    owner = "Capability"
    name = _read_str(raw, "name", path, collector, code=code, owner=owner)
    version = _read_dated_version(raw, path, collector, code=code, owner=f"capability at index {index}")
    spec = _read_str(raw, "spec", path, collector, code=code, owner=owner)
    schema_url = _read_str(raw, "schema", path, collector, code=code, owner=owner)
    extends = _read_str(raw, "extends", path, collector, code=code, owner=owner, required=False)

    config = raw.get("config")
    if config is not None and not isinstance(config, dict):
        collector.error(code, f"{path}.config", 'Capability "config" must be an object')
        config = None

    return CapabilityDecl(
        index=index,
        name=name,
        version=version,
        spec=spec,
        schema_url=schema_url,
        extends=extends,
        config=config,
    )


def _read_capabilities(ucp: dict[str, Any], collector: IssueCollector) -> tuple[CapabilityDecl, ...] | None:
    path = "$.ucp.capabilities"
    raw = ucp.get("capabilities")
    if raw is None:
        collector.error(
            IssueCode.MISSING_CAPABILITIES,
            path,
            'Missing required "capabilities" field in ucp object',
            "Add a capabilities array with at least one capability",
        )
        return None
    if not isinstance(raw, list):
        collector.error(IssueCode.INVALID_CAPABILITY, path, "Capabilities must be an array")
        return None
    if not raw:
        collector.error(
            IssueCode.MISSING_CAPABILITIES,
            path,
            "Capabilities array is empty",
            f"Add at least one capability (e.g., {CHECKOUT})",
        )
    return tuple(_read_capability(i, cap, collector) for i, cap in enumerate(raw))


def _read_payment_handlers(data: dict[str, Any], collector: IssueCollector) -> tuple[PaymentHandler, ...] | None:
    raw = data.get("payment")
    if raw is None:
        return None
    if not isinstance(raw, dict):
        collector.error(IssueCode.INVALID_PAYMENT, "$.payment", "payment must be an object")
        return None
    handlers = raw.get("handlers")
    if not isinstance(handlers, list):
        collector.error(
            IssueCode.INVALID_PAYMENT,
            "$.payment.handlers",
            "payment.handlers must be an array",
            'Use format: { "handlers": [ { "id": ..., "name": ..., ... } ] }',
        )
        return None

    out: list[PaymentHandler] = []
    for i, handler in enumerate(handlers):
        path = f"$.payment.handlers[{i}]"
        if not isinstance(handler, dict):
            collector.error(IssueCode.INVALID_PAYMENT, path, f"Payment handler at index {i} must be an object")
            continue
        fields = {
            key: _read_str(handler, key, path, collector, code=IssueCode.INVALID_PAYMENT, owner="Payment handler", required=False)
            for key in ("id", "name", "version", "spec", "config_schema")
        }
        out.append(PaymentHandler(index=i, **fields))
    return tuple(out)


def _read_signing_keys(data: dict[str, Any], collector: IssueCollector) -> tuple[JsonWebKey, ...] | None:
    raw = data.get("signing_keys")
    if raw is None:
        return None
    if not isinstance(raw, list):
        collector.error(
            IssueCode.INVALID_SIGNING_KEY,
            "$.signing_keys",
            "signing_keys must be an array of JWK public keys",
        )
        return None

    keys: list[JsonWebKey] = []
    for i, jwk in enumerate(raw):
        path = f"$.signing_keys[{i}]"
        if not isinstance(jwk, dict):
            collector.error(IssueCode.INVALID_SIGNING_KEY, path, "JWK must be an object")
            continue
        members = {
            member: _read_str(jwk, member, path, collector, code=IssueCode.INVALID_SIGNING_KEY, owner="JWK", required=False)
            for member in _JWK_MEMBERS
        }
        keys.append(JsonWebKey(index=i, **members))
    return tuple(keys)


def parse_url(url: str) -> SplitResult | None:
    """`urlsplit` that returns None for URLs it cannot take apart."""

    try:
        parts = urlsplit(url)
        parts.port  # raises on a non-numeric or out-of-range port
    except ValueError:
        return None
    return parts


def _is_private_host(parts: SplitResult) -> bool:
    host = parts.hostname or ""
    if host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return address.is_private or address.is_loopback or address.is_link_local


def _check_transport_urls(document: ProfileDocument, collector: IssueCollector) -> None:
    for ref in document.transports():
        urls: list[tuple[str, str, bool]] = []
        if ref.schema_url:
            is_card = ref.kind == "a2a"
            urls.append((ref.schema_url, f"{ref.path}.{'agentCard' if is_card else 'schema'}", is_card))
        if ref.endpoint:
            urls.append((ref.endpoint, f"{ref.path}.endpoint", True))

        for url, path, is_endpoint in urls:
            parts = parse_url(url)
            if parts is None:
                collector.error(
                    IssueCode.INVALID_URL,
                    path,
                    "Transport URL cannot be parsed",
                    f'Fix the malformed URL "{url}"',
                )
                continue
            if parts.scheme != "https":
                collector.error(
                    IssueCode.ENDPOINT_NOT_HTTPS,
                    path,
                    "Transport URL must use HTTPS",
                    f'Change "{url}" to use https://',
                )
            if not is_endpoint:
                continue
            if url.endswith("/") and path.endswith(".endpoint"):
                collector.warn(
                    IssueCode.ENDPOINT_TRAILING_SLASH,
                    path,
                    "Endpoint should not have a trailing slash",
                    f'Remove trailing slash from "{url}"',
                )
            if _is_private_host(parts):
                collector.warn(
                    IssueCode.PRIVATE_IP_ENDPOINT,
                    path,
                    "Endpoint appears to use a private or loopback address",
                    "Use a public domain name for production profiles",
                )


def _check_checkout_present(document: ProfileDocument, collector: IssueCollector) -> None:
    if not document.has_capability(CHECKOUT):
        collector.error(
            IssueCode.MISSING_CHECKOUT,
            "$.ucp.capabilities",
            f'Missing required checkout capability "{CHECKOUT}"',
            "Checkout is the baseline capability every UCP merchant must declare",
        )


def _check_signing_keys_requirement(document: ProfileDocument, collector: IssueCollector) -> None:
    if not document.has_capability(ORDER):
        return
    if not document.signing_keys:
        collector.error(
            IssueCode.MISSING_SIGNING_KEYS,
            "$.signing_keys",
            "Order capability requires signing_keys for webhook verification",
            "Add a signing_keys array with at least one JWK public key",
        )


def validate_structure(data: Any) -> StructuralResult:
    """Decode `data` into a `ProfileDocument` and collect structural issues."""

    collector = IssueCollector()

    if not isinstance(data, dict):
        collector.error(
            IssueCode.MISSING_ROOT,
            "$",
            "Profile must be a JSON object",
            "Ensure your profile is valid JSON and contains a root object",
        )
        return StructuralResult(document=ProfileDocument(), issues=collector.issues)

    extensions = {key: value for key, value in data.items() if key not in _CORE_KEYS}

    ucp = data.get("ucp")
    if not isinstance(ucp, dict):
        collector.error(
            IssueCode.MISSING_ROOT,
            "$.ucp",
            'Missing required "ucp" object at root level',
            'Add a "ucp" object containing version, services, and capabilities',
        )
        ucp = None

    version = services = capabilities = None
    if ucp is not None:
        version = _read_protocol_version(ucp, collector)
        services = _read_services(ucp, collector)
        capabilities = _read_capabilities(ucp, collector)

    document = ProfileDocument(
        has_ucp_root=ucp is not None,
        ucp_version=version,
        services=services,
        capabilities=capabilities,
        payment_handlers=_read_payment_handlers(data, collector),
        signing_keys=_read_signing_keys(data, collector),
        extensions=extensions,
    )

    if document.has_ucp_root:
        _check_checkout_present(document, collector)
    _check_transport_urls(document, collector)
    _check_signing_keys_requirement(document, collector)

    return StructuralResult(document=document, issues=collector.issues)
