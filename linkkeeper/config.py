"""
linkkeeper.config — YAML Configuration Loader
==============================================

**Why this file exists:**
This module reads ``config.yaml`` for guild identity, Discord wiring and the
distribution rules (tenure thresholds, absence limit).  Secrets such as the
bot token, database URL and JWT secret stay in ``.env``.

Usage::

    from linkkeeper.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.guild_name)        # "Flava Flav"
    print(cfg.rules.gold_days)   # 90
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from linkkeeper.engine.eligibility import EligibilityRules

DEFAULT_CONFIG_PATH = "config.yaml"


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LinkKeeperConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    guild_name: str
    guild_motto: str

    # Discord
    bot_prefix: str
    guild_id: int  # Primary guild snowflake

    # Dashboard / API
    dashboard_port: int

    # Officer (Maester) role required for admin commands
    officer_role_id: int

    # Distribution rules
    rules: EligibilityRules = field(default_factory=EligibilityRules)

    # Optional
    announce_channel_id: int | None = None  # Where winner announcements go


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def _parse_rules(raw: dict | None) -> EligibilityRules:
    if not raw:
        return EligibilityRules()
    defaults = EligibilityRules()
    return EligibilityRules(
        silver_days=int(raw.get("silver_eligibility_days", defaults.silver_days)),
        gold_days=int(raw.get("gold_eligibility_days", defaults.gold_days)),
        max_absence_count=int(raw.get("max_absence_count", defaults.max_absence_count)),
    )


def load_config(path: str | Path | None = None) -> LinkKeeperConfig:
    """Read *path* and return a :class:`LinkKeeperConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.  Defaults to the
        ``LINKKEEPER_CONFIG`` env var, then ``config.yaml`` in the current
        working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If the rules are inconsistent (gold threshold not above silver).
    """
    if path is None:
        path = os.getenv("LINKKEEPER_CONFIG", DEFAULT_CONFIG_PATH)
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return LinkKeeperConfig(
        guild_name=raw["guild_name"],
        guild_motto=raw.get("guild_motto", ""),
        bot_prefix=raw.get("bot_prefix", "!"),
        guild_id=int(raw["guild_id"]),
        dashboard_port=int(raw.get("dashboard_port", 8000)),
        officer_role_id=int(raw["officer_role_id"]),
        rules=_parse_rules(raw.get("rules")),
        announce_channel_id=(
            int(raw["announce_channel_id"]) if raw.get("announce_channel_id") else None
        ),
    )
