"""
wellspring.config — YAML Configuration Loader
==============================================

Reads ``config.yaml`` for **infrastructure-only** settings (platform
identity, API port, timezone defaults).  All gameplay tuning values
(points per activity, streak bonuses, level size) live in the
``settings`` database table and are read through
:class:`~wellspring.engine.cache.ConfigCache`.

Usage::

    from wellspring.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.platform_name)     # "Wellspring Dev"
    print(cfg.default_timezone)  # "America/Sao_Paulo"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml


# ---------------------------------------------------------------------------
# Typed settings object: infrastructure/identity only.
# Gameplay tuning lives in the DB ``settings`` table.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class WellspringConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    platform_name: str

    # Day boundaries for newly provisioned patients (IANA name)
    default_timezone: str

    # API
    api_port: int

    # Optional
    leaderboard_max_limit: int = 100


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> WellspringConfig:
    """Read *path* and return a :class:`WellspringConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If ``default_timezone`` is not a known IANA timezone.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh)

    timezone = str(raw["default_timezone"])
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown default_timezone: {timezone!r}") from exc

    return WellspringConfig(
        platform_name=raw["platform_name"],
        default_timezone=timezone,
        api_port=int(raw["api_port"]),
        leaderboard_max_limit=int(raw.get("leaderboard_max_limit") or 100),
    )
