"""Structural rules for JWK public signing keys.

These are the rules the signing-key generator applies to the keys it emits:
- `kty` is required and must be `EC` or `RSA`.
- EC keys need `crv`, `x`, `y`; `crv` must be one of P-256, P-384, P-521.
- RSA keys need `n` and `e`.
- Key material members must be base64url strings (no padding).
- A missing `kid` does not invalidate the key but is reported.
"""

from __future__ import annotations

import re

from core.domain.profile import JsonWebKey
from core.interfaces.collaborators import KeyCheck

SUPPORTED_EC_CURVES: tuple[str, ...] = ("P-256", "P-384", "P-521")

_BASE64URL = re.compile(r"^[A-Za-z0-9_-]+$")

_EC_MEMBERS: tuple[tuple[str, str], ...] = (("x", "x coordinate"), ("y", "y coordinate"))
_RSA_MEMBERS: tuple[tuple[str, str], ...] = (("n", "modulus"), ("e", "exponent"))


def _check_members(key: JsonWebKey, kty: str, members: tuple[tuple[str, str], ...]) -> list[str]:
    errors: list[str] = []
    for member, label in members:
        value = getattr(key, member)
        if not value:
            errors.append(f"{kty} key missing {label} ({member})")
        elif not _BASE64URL.match(value):
            errors.append(f"{kty} key {label} ({member}) is not base64url encoded")
    return errors


def validate_public_key(key: JsonWebKey) -> KeyCheck:
    """Apply the JWK rules to one key."""

    errors: list[str] = []
    warnings: list[str] = []

    if not key.kid:
        warnings.append("Missing recommended field: kid")

    if not key.kty:
        errors.append("Missing required field: kty")
    elif key.kty == "EC":
        if not key.crv:
            errors.append("EC key missing curve (crv)")
        elif key.crv not in SUPPORTED_EC_CURVES:
            errors.append(f"Unsupported EC curve: {key.crv}")
        errors.extend(_check_members(key, "EC", _EC_MEMBERS))
    elif key.kty == "RSA":
        errors.extend(_check_members(key, "RSA", _RSA_MEMBERS))
    else:
        errors.append(f"Unsupported key type: {key.kty}")

    return KeyCheck(valid=not errors, errors=errors, warnings=warnings)


class JwkKeyValidator:
    """`KeyValidator` implementation wrapping `validate_public_key`."""

    def validate(self, key: JsonWebKey) -> KeyCheck:
        return validate_public_key(key)
