"""Network probe contract.

Why Protocol:
- Defines a structural contract (duck typing) without rigid inheritance.
- Services (capability resolver, transport prober) stay testable and never
  import an HTTP library directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one probe. Network failures are values, not exceptions."""

    url: str
    ok: bool
    status_code: int | None = None
    content_type: str | None = None
    data: Any = None
    error: str | None = None
    duration_ms: int = 0

    @property
    def reachable(self) -> bool:
        """True when the server answered at the HTTP level, whatever the status."""

        return self.status_code is not None


@runtime_checkable
class UrlProber(Protocol):
    """Minimal contract for the probes a simulated agent performs.

    Design rules:
    - Both calls are async because they perform HTTP I/O.
    - Neither call raises for network, TLS or decoding failures; the cause
      is reported in `ProbeResult.error`.
    """

    async def fetch_json(self, url: str) -> ProbeResult:
        """GET `url`; `ok` only for a 2xx response whose body decodes as JSON."""

        ...

    async def check_reachable(self, url: str) -> ProbeResult:
        """HEAD `url` (GET on 405); `ok` for any status below 400."""

        ...
