"""Core interfaces/abstractions.

Why:
- Defines contracts (Protocol) implemented by concrete adapters.
- Inverts dependencies: services depend on abstractions, adapters plug in.
"""

from core.interfaces.collaborators import KeyCheck, KeyValidator, SchemaShapeChecker
from core.interfaces.prober import ProbeResult, UrlProber

__all__ = [
    "KeyCheck",
    "KeyValidator",
    "ProbeResult",
    "SchemaShapeChecker",
    "UrlProber",
]
