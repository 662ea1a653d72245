"""
linkkeeper.services.member_service — Member Roster Service
===========================================================

Officer-facing roster mutations (add, promote/demote, participation marking)
and the per-member status report.  Shared by the bot and the API.

Reads hand back detached ``Member`` objects whose display cache has been
refreshed in memory only, so a read never writes a row.  Writes refresh the
cache before commit.  Every officer mutation lands an ``admin_log`` row in
the same transaction.

Deletion goes through :meth:`DistributionEngine.remove_member` so the id
leaves every tier list in the same commit.  The service is always built over
the process-wide engine, so deletes and draws contend on the same tier locks.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from linkkeeper.database.models import AdminActionType, LinkHistory, Member, Rank, Tier
from linkkeeper.engine.eligibility import (
    EligibilityRules,
    as_utc,
    days_in_guild,
    is_active,
    is_eligible,
    rank_for,
    refresh_cached_flags,
)
from linkkeeper.engine.locks import KeyedLocks
from linkkeeper.errors import PreconditionFailed
from linkkeeper.services.distribution_service import DistributionEngine
from linkkeeper.services.stores import (
    StoreBundle,
    log_admin_action,
    row_to_dict,
    run_transaction,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Status report
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class MemberStatus:
    member: Member
    days_in_guild: int
    rank: Rank
    silver_eligible: bool
    gold_eligible: bool
    is_active: bool
    history: list[LinkHistory] = field(default_factory=list)
    last_silver_link: LinkHistory | None = None
    last_gold_link: LinkHistory | None = None
    total_silver_links: int = 0
    total_gold_links: int = 0
    compensation_links: int = 0

    def to_dict(self) -> dict:
        return {
            "member": member_to_dict(self.member),
            "days_in_guild": self.days_in_guild,
            "rank": self.rank.value,
            "silver_eligible": self.silver_eligible,
            "gold_eligible": self.gold_eligible,
            "is_active": self.is_active,
            "last_silver_link": history_to_dict(self.last_silver_link),
            "last_gold_link": history_to_dict(self.last_gold_link),
            "total_silver_links": self.total_silver_links,
            "total_gold_links": self.total_gold_links,
            "compensation_links": self.compensation_links,
            "history": [history_to_dict(h) for h in self.history],
        }


def member_to_dict(member: Member) -> dict:
    return {
        "discord_id": member.discord_id,
        "username": member.username,
        "join_date": as_utc(member.join_date).isoformat(),
        "is_officer": member.is_officer,
        "rank": member.rank,
        "days_in_guild": member.days_in_guild,
        "silver_eligible": member.silver_eligible,
        "gold_eligible": member.gold_eligible,
        "weekly_boss_participation": member.weekly_boss_participation,
        "omni_absence_count": member.omni_absence_count,
        "last_omni_participation": (
            as_utc(member.last_omni_participation).isoformat()
            if member.last_omni_participation else None
        ),
        "compensation_owed": member.compensation_owed,
    }


def history_to_dict(entry: LinkHistory | None) -> dict | None:
    if entry is None:
        return None
    return {
        "id": entry.id,
        "discord_id": entry.discord_id,
        "username": entry.username,
        "tier": entry.tier,
        "date_received": as_utc(entry.date_received).isoformat(),
        "event_date": as_utc(entry.event_date).isoformat() if entry.event_date else None,
        "is_compensation": entry.is_compensation,
        "notes": entry.notes,
    }


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
class MemberService:
    """Roster operations over the ``members`` table."""

    def __init__(
        self,
        db_engine: Engine,
        rules: EligibilityRules,
        *,
        distribution: DistributionEngine,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.db_engine = db_engine
        self.rules = rules
        self.distribution = distribution
        self._clock = clock or distribution.now
        self.locks = KeyedLocks()

    def now(self) -> datetime:
        return self._clock()

    def _mutate(
        self,
        operation: str,
        discord_id: str,
        change: Callable[[Member], None],
        *,
        actor_id: str | None = None,
        action_type: AdminActionType = AdminActionType.UPDATE,
    ) -> Member:
        """Load, apply *change*, refresh the cache, audit, commit."""

        def _apply(stores: StoreBundle) -> Member:
            member = stores.members.get(discord_id)
            before = row_to_dict(member)
            change(member)
            refresh_cached_flags(member, self.rules, self.now())
            stores.members.update(member)
            log_admin_action(
                stores.session,
                actor_id=actor_id,
                action_type=action_type.value,
                target_table="members",
                target_id=discord_id,
                before=before,
                after=row_to_dict(member),
            )
            return member

        with self.locks.hold(discord_id):
            return run_transaction(self.db_engine, operation, _apply)

    # -------------------------------------------------------------------
    # Create / read
    # -------------------------------------------------------------------
    def create_member(
        self,
        discord_id: str,
        username: str,
        join_date: datetime,
        added_by: str | None = None,
    ) -> Member:
        """Register a member.  Raises :class:`AlreadyExists` on a duplicate id."""

        def _create(stores: StoreBundle) -> Member:
            member = Member(
                discord_id=discord_id,
                username=username,
                join_date=as_utc(join_date),
                is_officer=False,
                weekly_boss_participation=False,
                omni_absence_count=0,
                omni_participation_dates=[],
                compensation_owed=False,
                added_by=added_by,
            )
            refresh_cached_flags(member, self.rules, self.now())
            stores.members.create(member)
            log_admin_action(
                stores.session,
                actor_id=added_by,
                action_type=AdminActionType.CREATE.value,
                target_table="members",
                target_id=discord_id,
                after=row_to_dict(member),
            )
            return member

        with self.locks.hold(discord_id):
            member = run_transaction(self.db_engine, "create_member", _create)
        logger.info("Added member %s (%s) by %s", discord_id, username, added_by)
        return member

    def get_member(self, discord_id: str) -> Member:
        member = run_transaction(
            self.db_engine, "get_member", lambda stores: stores.members.get(discord_id)
        )
        return refresh_cached_flags(member, self.rules, self.now())

    def list_members(self) -> list[Member]:
        members = run_transaction(
            self.db_engine, "list_members", lambda stores: stores.members.list()
        )
        now = self.now()
        return [refresh_cached_flags(m, self.rules, now) for m in members]

    def get_history(self, discord_id: str) -> list[LinkHistory]:
        """Grant history for *discord_id*, newest first."""

        def _history(stores: StoreBundle) -> list[LinkHistory]:
            stores.members.get(discord_id)
            return stores.history.list_by_member(discord_id)

        return run_transaction(self.db_engine, "get_history", _history)

    def recent_history(self, limit: int = 50, tier: Tier | None = None) -> list[LinkHistory]:
        return run_transaction(
            self.db_engine,
            "recent_history",
            lambda stores: stores.history.list_recent(limit=limit, tier=tier),
        )

    # -------------------------------------------------------------------
    # Participation
    # -------------------------------------------------------------------
    def mark_weekly_participation(
        self, discord_id: str, participated: bool, *, actor_id: str | None = None
    ) -> Member:
        def change(member: Member) -> None:
            member.weekly_boss_participation = participated

        return self._mutate("mark_weekly_participation", discord_id, change, actor_id=actor_id)

    def mark_omni_participation(
        self,
        discord_id: str,
        participated: bool,
        omni_date: datetime | None = None,
        *,
        actor_id: str | None = None,
    ) -> Member:
        """Record attendance at an omni event.

        Attending appends the date and clears the absence count; missing it
        adds one absence.
        """
        omni_date = as_utc(omni_date or self.now())

        def change(member: Member) -> None:
            if participated:
                member.omni_participation_dates = [
                    *(member.omni_participation_dates or []),
                    omni_date.isoformat(),
                ]
                member.last_omni_participation = omni_date
                member.omni_absence_count = 0
            else:
                member.omni_absence_count = (member.omni_absence_count or 0) + 1

        member = self._mutate("mark_omni_participation", discord_id, change, actor_id=actor_id)
        if not is_active(member, self.rules.max_absence_count):
            logger.info(
                "Member %s reached %d omni absences; inactive on next refresh",
                discord_id, member.omni_absence_count,
            )
        return member

    def reset_weekly_participation(self, actor_id: str | None = None) -> int:
        """Clear the weekly boss flag on every member.  Returns how many changed."""

        def _reset(stores: StoreBundle) -> int:
            now = self.now()
            changed = 0
            for member in stores.members.list():
                if member.weekly_boss_participation:
                    member.weekly_boss_participation = False
                    refresh_cached_flags(member, self.rules, now)
                    stores.members.update(member)
                    changed += 1
            log_admin_action(
                stores.session,
                actor_id=actor_id,
                action_type=AdminActionType.PARTICIPATION_RESET.value,
                target_table="members",
                target_id=None,
                after={"cleared": changed},
            )
            return changed

        changed = run_transaction(self.db_engine, "reset_weekly_participation", _reset)
        logger.info("Weekly participation reset by %s (%d members cleared)", actor_id, changed)
        return changed

    # -------------------------------------------------------------------
    # Officer flag
    # -------------------------------------------------------------------
    def promote_to_officer(self, discord_id: str, actor_id: str | None = None) -> Member:
        def change(member: Member) -> None:
            if member.is_officer:
                raise PreconditionFailed(
                    f"member {discord_id} is already an officer",
                    operation="promote_to_officer",
                )
            member.is_officer = True

        member = self._mutate(
            "promote_to_officer", discord_id, change,
            actor_id=actor_id, action_type=AdminActionType.PROMOTE,
        )
        logger.info("Promoted %s to officer (actor=%s)", discord_id, actor_id)
        return member

    def demote_from_officer(self, discord_id: str, actor_id: str | None = None) -> Member:
        def change(member: Member) -> None:
            if not member.is_officer:
                raise PreconditionFailed(
                    f"member {discord_id} is not an officer",
                    operation="demote_from_officer",
                )
            member.is_officer = False

        member = self._mutate(
            "demote_from_officer", discord_id, change,
            actor_id=actor_id, action_type=AdminActionType.DEMOTE,
        )
        logger.info("Demoted %s from officer (actor=%s)", discord_id, actor_id)
        return member

    def delete_member(self, discord_id: str, actor_id: str | None = None) -> None:
        with self.locks.hold(discord_id):
            self.distribution.remove_member(discord_id, actor_id=actor_id)

    # -------------------------------------------------------------------
    # Status report
    # -------------------------------------------------------------------
    def get_member_status(self, discord_id: str) -> MemberStatus:
        def _load(stores: StoreBundle) -> tuple[Member, list[LinkHistory]]:
            member = stores.members.get(discord_id)
            return member, stores.history.list_by_member(discord_id)

        member, history = run_transaction(self.db_engine, "get_member_status", _load)
        now = self.now()
        refresh_cached_flags(member, self.rules, now)

        silver = [h for h in history if h.tier == Tier.SILVER.value]
        gold = [h for h in history if h.tier == Tier.GOLD.value]
        return MemberStatus(
            member=member,
            days_in_guild=days_in_guild(member.join_date, now),
            rank=rank_for(member, self.rules, now),
            silver_eligible=is_eligible(member, Tier.SILVER, self.rules, now),
            gold_eligible=is_eligible(member, Tier.GOLD, self.rules, now),
            is_active=is_active(member, self.rules.max_absence_count),
            history=history,
            last_silver_link=silver[0] if silver else None,
            last_gold_link=gold[0] if gold else None,
            total_silver_links=len(silver),
            total_gold_links=len(gold),
            compensation_links=sum(1 for h in history if h.is_compensation),
        )
