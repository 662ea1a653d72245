"""
linkkeeper.engine.eligibility — Member Eligibility Rules
=========================================================

Pure functions deciding, for one member at one instant, whether they may
receive a link of a given tier and whether they still count as active.
No DB I/O, no Discord I/O, and no hidden clock: ``now`` is always passed in.

Eligibility::

    officer                                   → eligible for every tier
    days_in_guild >= threshold(tier)
        and weekly_boss_participation         → eligible
    otherwise                                 → not eligible

Active::

    omni_absence_count < max_absence_count

The ``rank`` / ``*_eligible`` / ``days_in_guild`` columns on
:class:`~linkkeeper.database.models.Member` are a display cache written by
:func:`refresh_cached_flags`; nothing reads them to make a decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from linkkeeper.database.models import Rank, Tier

__all__ = [
    "EligibilityRules",
    "MemberLike",
    "as_utc",
    "days_in_guild",
    "is_active",
    "is_eligible",
    "rank_for",
    "refresh_cached_flags",
]


@dataclass(frozen=True, slots=True)
class EligibilityRules:
    """Tenure thresholds and absence limit, usually taken from config."""

    silver_days: int = 30
    gold_days: int = 90
    max_absence_count: int = 3

    def __post_init__(self) -> None:
        if self.silver_days < 0:
            raise ValueError("silver_days must be >= 0")
        if self.gold_days <= self.silver_days:
            raise ValueError(
                f"gold_days ({self.gold_days}) must be greater than "
                f"silver_days ({self.silver_days})"
            )
        if self.max_absence_count < 1:
            raise ValueError("max_absence_count must be >= 1")

    def threshold(self, tier: Tier) -> int:
        """Tenure in days required for *tier*."""
        return self.gold_days if Tier(tier) is Tier.GOLD else self.silver_days


class MemberLike(Protocol):
    """The attributes the rules read.  The ORM ``Member`` satisfies this."""

    join_date: datetime
    is_officer: bool
    weekly_boss_participation: bool
    omni_absence_count: int


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; treat them as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def days_in_guild(join_date: datetime, now: datetime) -> int:
    """Whole days between *join_date* and *now* (never negative)."""
    delta = as_utc(now) - as_utc(join_date)
    return max(delta.days, 0)


def is_eligible(member: MemberLike, tier: Tier, rules: EligibilityRules, now: datetime) -> bool:
    """Return True if *member* may receive a *tier* link at *now*."""
    if member.is_officer:
        return True
    if days_in_guild(member.join_date, now) < rules.threshold(tier):
        return False
    return bool(member.weekly_boss_participation)


def is_active(member: MemberLike, max_absence: int) -> bool:
    """Return True while the member's omni absences stay under *max_absence*."""
    return (member.omni_absence_count or 0) < max_absence


def rank_for(member: MemberLike, rules: EligibilityRules, now: datetime) -> Rank:
    """Display rank from tenure alone (officers are always Maester)."""
    if member.is_officer:
        return Rank.MAESTER
    days = days_in_guild(member.join_date, now)
    if days >= rules.gold_days:
        return Rank.SAGE
    if days >= rules.silver_days:
        return Rank.SCHOLAR
    return Rank.BOOK_WORM


def refresh_cached_flags(member, rules: EligibilityRules, now: datetime):
    """Write the display cache columns on *member* and return it."""
    member.days_in_guild = days_in_guild(member.join_date, now)
    member.rank = rank_for(member, rules, now).value
    member.silver_eligible = is_eligible(member, Tier.SILVER, rules, now)
    member.gold_eligible = is_eligible(member, Tier.GOLD, rules, now)
    return member
