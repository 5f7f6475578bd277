"""JSON export of run results.

Why JSON:
- Interoperability with CI pipelines, dashboards and directory tooling.
- Keeps a machine-readable record independent of the HTML/PDF render.
"""

from __future__ import annotations

import json
from pathlib import Path

from core.domain.models import SimulationResult, ValidationReport


def export_result_json(*, result: SimulationResult | ValidationReport, output_path: Path) -> Path:
    """Write `result` as UTF-8 JSON with camelCase keys and stable formatting."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps(result.to_dict(), ensure_ascii=False, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return output_path
