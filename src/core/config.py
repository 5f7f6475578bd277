"""Core configuration.

Why here:
- Centralizes environment variables (pydantic-settings) away from the CLI.
- Adapters (HTTP, reports) and services read one settings contract.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_user_config_dir() -> Path:
    """Per-user configuration directory (cross-platform, no extra dependencies)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "ucp-readiness"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "ucp-readiness"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "ucp-readiness"
    return Path.home() / ".config" / "ucp-readiness"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str]) -> Path:
    """Write or update variables in the user's global .env file."""

    env_path = get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# ucp-readiness user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Central application settings.

    Values come from `UCP_READINESS_*` environment variables, the project
    `.env` and then the per-user `.env`.
    """

    model_config = SettingsConfigDict(
        env_prefix="UCP_READINESS_",
        extra="ignore",
        case_sensitive=False,
        # Project first (dev), then the user's global config.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single network probe (seconds).",
    )
    run_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Overall budget for one validation/simulation run (seconds).",
    )
    user_agent: str = Field(
        default="UCP-Agent-Simulator/1.0",
        min_length=1,
        description="User-Agent sent with every probe.",
    )
    probe_max_concurrency: int = Field(
        default=8,
        ge=1,
        le=64,
        description="Maximum number of probes in flight inside one run.",
    )
    log_level: str = Field(
        default="WARNING",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Log level used by the CLI handler.",
    )
