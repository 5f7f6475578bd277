from __future__ import annotations

import copy

import pytest

from core.domain.models import IssueCode, Severity
from core.domain.profile import CHECKOUT, ORDER
from core.services.structural_validator import is_valid_version, validate_structure


def _codes(result) -> list[IssueCode]:
    return [issue.code for issue in result.issues]


def test_checkout_only_profile_is_clean(checkout_only_profile) -> None:
    result = validate_structure(checkout_only_profile)

    assert result.issues == []
    assert result.document.has_ucp_root is True
    assert result.document.ucp_version == "2026-01-11"
    assert result.document.capability_names() == [CHECKOUT]
    assert [ref.kind for ref in result.document.transports()] == ["rest"]


@pytest.mark.parametrize("data", [None, [], "ucp", 42])
def test_non_object_root(data) -> None:
    result = validate_structure(data)

    assert _codes(result) == [IssueCode.MISSING_ROOT]
    assert result.issues[0].path == "$"
    assert result.document.has_ucp_root is False


def test_missing_ucp_object_keeps_extensions() -> None:
    result = validate_structure({"merchant": {"name": "Acme"}})

    assert _codes(result) == [IssueCode.MISSING_ROOT]
    assert result.issues[0].path == "$.ucp"
    assert result.document.extensions == {"merchant": {"name": "Acme"}}


def test_vendor_fields_pass_through_untouched(checkout_only_profile) -> None:
    checkout_only_profile["com.acme.loyalty"] = {"tiers": ["gold", {"nested": [1, 2]}]}
    checkout_only_profile["x-debug"] = True

    result = validate_structure(checkout_only_profile)

    assert result.issues == []
    assert result.document.extensions == {
        "com.acme.loyalty": {"tiers": ["gold", {"nested": [1, 2]}]},
        "x-debug": True,
    }


def test_missing_capabilities_reports_every_problem(checkout_only_profile) -> None:
    del checkout_only_profile["ucp"]["capabilities"]
    checkout_only_profile["ucp"]["version"] = "Jan 2026"

    result = validate_structure(checkout_only_profile)

    assert IssueCode.MISSING_CAPABILITIES in _codes(result)
    assert IssueCode.MISSING_CHECKOUT in _codes(result)
    assert IssueCode.INVALID_VERSION_FORMAT in _codes(result)
    assert result.document.capabilities is None


def test_empty_capabilities_is_an_error(checkout_only_profile) -> None:
    checkout_only_profile["ucp"]["capabilities"] = []

    result = validate_structure(checkout_only_profile)

    missing = [i for i in result.issues if i.code is IssueCode.MISSING_CAPABILITIES]
    assert missing and missing[0].severity is Severity.ERROR
    assert result.document.capabilities == ()


def test_missing_checkout_capability_is_an_error(checkout_only_profile) -> None:
    checkout_only_profile["ucp"]["capabilities"][0]["name"] = "dev.ucp.shopping.discount"

    result = validate_structure(checkout_only_profile)

    issue = next(i for i in result.issues if i.code is IssueCode.MISSING_CHECKOUT)
    assert issue.severity is Severity.ERROR


@pytest.mark.parametrize(
    ("version", "code", "severity"),
    [
        (None, IssueCode.MISSING_VERSION, Severity.ERROR),
        (20260111, IssueCode.INVALID_VERSION_FORMAT, Severity.ERROR),
        ("2026-1-11", IssueCode.INVALID_VERSION_FORMAT, Severity.ERROR),
        ("2026-02-30", IssueCode.INVALID_VERSION_FORMAT, Severity.ERROR),
        ("2031-06-01", IssueCode.UNKNOWN_VERSION, Severity.WARN),
        ("2025-01-01", IssueCode.UNKNOWN_VERSION, Severity.WARN),
    ],
)
def test_protocol_version_rules(checkout_only_profile, version, code, severity) -> None:
    if version is None:
        del checkout_only_profile["ucp"]["version"]
    else:
        checkout_only_profile["ucp"]["version"] = version

    result = validate_structure(checkout_only_profile)

    issue = next(i for i in result.issues if i.path == "$.ucp.version")
    assert issue.code is code
    assert issue.severity is severity


def test_is_valid_version() -> None:
    assert is_valid_version("2026-01-11")
    assert not is_valid_version("2026-13-01")
    assert not is_valid_version("v2026-01-11")


def test_services_must_be_an_object(checkout_only_profile) -> None:
    checkout_only_profile["ucp"]["services"] = [{"name": "dev.ucp.shopping"}]

    result = validate_structure(checkout_only_profile)

    issue = next(i for i in result.issues if i.path == "$.ucp.services")
    assert issue.code is IssueCode.INVALID_SERVICE
    assert result.document.services is None


def test_service_without_transport_warns(checkout_only_profile) -> None:
    del checkout_only_profile["ucp"]["services"]["dev.ucp.shopping"]["rest"]

    result = validate_structure(checkout_only_profile)

    issue = next(i for i in result.issues if i.code is IssueCode.INVALID_SERVICE)
    assert issue.severity is Severity.WARN
    assert "no transport" in issue.message


def test_rest_transport_needs_schema_and_endpoint(checkout_only_profile) -> None:
    checkout_only_profile["ucp"]["services"]["dev.ucp.shopping"]["rest"] = {"endpoint": "https://shop.example.com/api"}

    result = validate_structure(checkout_only_profile)

    issue = next(i for i in result.issues if i.code is IssueCode.INVALID_SERVICE)
    assert issue.path == '$.ucp.services["dev.ucp.shopping"].rest.schema'


def test_capability_entry_fields_are_required(checkout_only_profile) -> None:
    checkout_only_profile["ucp"]["capabilities"].append({"name": "dev.ucp.shopping.order"})
    checkout_only_profile["ucp"]["capabilities"].append("dev.ucp.shopping.fulfillment")

    result = validate_structure(checkout_only_profile)

    paths = {i.path for i in result.issues if i.code is IssueCode.INVALID_CAPABILITY}
    assert "$.ucp.capabilities[1].version" in paths
    assert "$.ucp.capabilities[1].spec" in paths
    assert "$.ucp.capabilities[1].schema" in paths
    assert "$.ucp.capabilities[2]" in paths
    assert [c.index for c in result.document.capabilities] == [0, 1, 2]


def test_http_endpoint_is_an_error(checkout_only_profile) -> None:
    rest = checkout_only_profile["ucp"]["services"]["dev.ucp.shopping"]["rest"]
    rest["endpoint"] = "http://shop.example.com/ucp/v1"

    result = validate_structure(checkout_only_profile)

    issue = next(i for i in result.issues if i.code is IssueCode.ENDPOINT_NOT_HTTPS)
    assert issue.severity is Severity.ERROR
    assert issue.path.endswith(".rest.endpoint")


def test_trailing_slash_and_private_host_warn(checkout_only_profile) -> None:
    rest = checkout_only_profile["ucp"]["services"]["dev.ucp.shopping"]["rest"]
    rest["endpoint"] = "https://192.168.1.20/ucp/"

    result = validate_structure(checkout_only_profile)

    codes = _codes(result)
    assert IssueCode.ENDPOINT_TRAILING_SLASH in codes
    assert IssueCode.PRIVATE_IP_ENDPOINT in codes
    assert all(i.severity is Severity.WARN for i in result.issues)


def test_order_without_signing_keys_is_flagged(make_order_profile) -> None:
    for keys in (None, []):
        result = validate_structure(make_order_profile(keys=keys))
        issue = next(i for i in result.issues if i.code is IssueCode.MISSING_SIGNING_KEYS)
        assert issue.severity is Severity.ERROR
        assert issue.path == "$.signing_keys"


def test_checkout_only_never_requires_signing_keys(checkout_only_profile) -> None:
    for keys in (None, []):
        profile = copy.deepcopy(checkout_only_profile)
        if keys is not None:
            profile["signing_keys"] = keys
        result = validate_structure(profile)
        assert IssueCode.MISSING_SIGNING_KEYS not in _codes(result)


def test_order_with_keys_decodes_them(order_profile) -> None:
    result = validate_structure(order_profile)

    assert result.issues == []
    assert result.document.has_capability(ORDER)
    [key] = result.document.signing_keys
    assert key.kty == "EC" and key.crv == "P-256"
    [handler] = result.document.payment_handlers
    assert handler.id == "google_pay"


def test_payment_and_keys_shapes(checkout_only_profile) -> None:
    checkout_only_profile["payment"] = {"handlers": {"id": "x"}}
    checkout_only_profile["signing_keys"] = ["not-a-jwk", {"kty": "EC"}]

    result = validate_structure(checkout_only_profile)

    assert [i.path for i in result.issues] == ["$.payment.handlers", "$.signing_keys[0]"]
    assert result.document.payment_handlers is None
    assert len(result.document.signing_keys) == 1
    assert result.document.signing_keys[0].index == 1


def test_malformed_transport_url_is_reported_not_raised(checkout_only_profile) -> None:
    rest = checkout_only_profile["ucp"]["services"]["dev.ucp.shopping"]["rest"]
    rest["endpoint"] = "https://[oops/ucp"

    result = validate_structure(checkout_only_profile)

    [issue] = result.issues
    assert issue.code is IssueCode.INVALID_URL
    assert issue.severity is Severity.ERROR
    assert issue.path == '$.ucp.services["dev.ucp.shopping"].rest.endpoint'


def test_empty_rest_binding_is_not_a_missing_transport(checkout_only_profile) -> None:
    checkout_only_profile["ucp"]["services"]["dev.ucp.shopping"]["rest"] = {}

    result = validate_structure(checkout_only_profile)

    assert not any("no transport" in i.message for i in result.issues)
    assert {i.path for i in result.issues} == {
        '$.ucp.services["dev.ucp.shopping"].rest.schema',
        '$.ucp.services["dev.ucp.shopping"].rest.endpoint',
    }
    assert all(i.severity is Severity.ERROR for i in result.issues)
