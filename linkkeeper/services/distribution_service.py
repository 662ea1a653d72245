"""
linkkeeper.services.distribution_service — Distribution Engine
===============================================================

Orchestrates the per-tier cycle: rebuilds the eligible set from the member
roster, draws winners, writes the grant history and rolls cycles over.
Shared by the bot and the API.

Every mutating operation follows the same shape:

  1. Take the tier lock (in-process serialization)
  2. Open one session → read list + members
  3. Apply transitions on the :class:`DistributionList`
  4. Append history / update members / update list
  5. Commit, or roll back everything if any step raised

A ``StaleDataError`` at step 4 or 5 means another process wrote the list
first; the whole operation is re-run from step 2, up to
:attr:`DistributionEngine.MAX_CONFLICT_RETRIES` times.

Selection order for :meth:`DistributionEngine.select_winner`:

  compensation queue head (FIFO) → uniform random over eligible → PreconditionFailed
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TypeVar

from linkkeeper.database.models import AdminActionType, LinkHistory, Member, Tier
from linkkeeper.engine.distribution_list import DistributionList
from linkkeeper.engine.eligibility import EligibilityRules, is_active, is_eligible
from linkkeeper.engine.locks import KeyedLocks
from linkkeeper.engine.selection import RandomSource, default_random_source
from linkkeeper.errors import (
    AlreadyExists,
    NotFound,
    PreconditionFailed,
)
from linkkeeper.services.stores import (
    MAX_CONFLICT_RETRIES,
    StoreBundle,
    log_admin_action,
    row_to_dict,
    run_transaction,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")

COMPENSATION_NOTE = "Compensation for missed omni events"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ListStatus:
    """Read-only summary of one tier's cycle."""

    tier: Tier
    eligible_count: int
    completed_count: int
    inactive_count: int
    compensation_count: int
    completion_percentage: float
    current_cycle_start: datetime
    last_reset_date: datetime
    can_force_complete: bool
    is_complete: bool

    @classmethod
    def from_list(cls, dl: DistributionList) -> ListStatus:
        return cls(
            tier=Tier(dl.tier),
            eligible_count=len(dl.eligible),
            completed_count=len(dl.completed),
            inactive_count=len(dl.inactive),
            compensation_count=len(dl.compensation_queue),
            completion_percentage=dl.completion_percentage(),
            current_cycle_start=dl.current_cycle_start,
            last_reset_date=dl.last_reset_date,
            can_force_complete=dl.can_force_complete(),
            is_complete=dl.is_complete(),
        )

    def to_dict(self) -> dict:
        return {
            "tier": self.tier.value,
            "eligible_count": self.eligible_count,
            "completed_count": self.completed_count,
            "inactive_count": self.inactive_count,
            "compensation_count": self.compensation_count,
            "completion_percentage": round(self.completion_percentage, 2),
            "current_cycle_start": self.current_cycle_start.isoformat(),
            "last_reset_date": self.last_reset_date.isoformat(),
            "can_force_complete": self.can_force_complete,
            "is_complete": self.is_complete,
        }


@dataclass(frozen=True, slots=True)
class WinnerResult:
    """Outcome of one :meth:`DistributionEngine.select_winner` call."""

    winner: Member
    history: LinkHistory
    is_compensation: bool
    status: ListStatus
    cycle_reset: bool = False


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
class DistributionEngine:
    """Owns every transition on the per-tier distribution lists.

    Parameters
    ----------
    db_engine:
        SQLAlchemy engine; each operation opens its own session.
    rules:
        Tenure thresholds and absence limit.
    random_source:
        Anything with ``choice(seq)``.  Defaults to OS entropy.
    clock:
        Zero-arg callable returning an aware ``datetime``.
    stores_factory:
        Builds the store bundle for a session (tests swap in failing stores).
    """

    MAX_CONFLICT_RETRIES = MAX_CONFLICT_RETRIES

    def __init__(
        self,
        db_engine: Engine,
        rules: EligibilityRules,
        *,
        random_source: RandomSource | None = None,
        clock: Callable[[], datetime] | None = None,
        stores_factory: Callable[[Session], StoreBundle] = StoreBundle.for_session,
    ) -> None:
        self.db_engine = db_engine
        self.rules = rules
        self._random = random_source or default_random_source()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._stores_factory = stores_factory
        self.locks = KeyedLocks()

    # -------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------
    def now(self) -> datetime:
        return self._clock()

    @contextmanager
    def hold_all_tiers(self) -> Iterator[None]:
        """Hold every tier lock (always taken in the same order)."""
        with ExitStack() as stack:
            for tier in sorted(Tier, key=lambda t: t.value):
                stack.enter_context(self.locks.hold(tier))
            yield

    def _run(
        self,
        operation: str,
        tier: Tier | None,
        fn: Callable[[StoreBundle], T],
    ) -> T:
        try:
            return run_transaction(
                self.db_engine,
                operation,
                fn,
                tier=tier.value if tier is not None else None,
                stores_factory=self._stores_factory,
                retries=self.MAX_CONFLICT_RETRIES,
            )
        except PreconditionFailed as exc:
            logger.info("Rejected: %s", exc)
            raise

    def _locked(self, operation: str, tier: Tier, fn: Callable[[StoreBundle], T]) -> T:
        with self.locks.hold(tier):
            return self._run(operation, tier, fn)

    def _flag_compensation_owed(self, stores: StoreBundle, member_ids: list[str]) -> None:
        for member_id in member_ids:
            try:
                member = stores.members.get(member_id)
            except NotFound:
                logger.warning("Queued compensation for unknown member %s", member_id)
                continue
            if not member.compensation_owed:
                member.compensation_owed = True
                stores.members.update(member)

    # -------------------------------------------------------------------
    # Bootstrap
    # -------------------------------------------------------------------
    def initialize_lists(self) -> list[Tier]:
        """Create any missing tier list.  Returns the tiers that were created."""
        created: list[Tier] = []
        for tier in Tier:
            def _create(stores: StoreBundle, tier: Tier = tier) -> bool:
                try:
                    stores.lists.get(tier)
                    return False
                except NotFound:
                    stores.lists.create(
                        DistributionList.new(tier, self.rules.max_absence_count, self.now())
                    )
                    return True
            try:
                if self._locked("initialize_lists", tier, _create):
                    created.append(tier)
                    logger.info("Created %s distribution list", tier.value)
            except AlreadyExists:
                logger.info("%s distribution list created by another process", tier.value)
        return created

    # -------------------------------------------------------------------
    # Refresh
    # -------------------------------------------------------------------
    def _apply_refresh(self, dl: DistributionList, members: list[Member], now: datetime) -> None:
        dl.clear_eligible()
        for member in members:
            if member.discord_id in dl.completed or member.discord_id in dl.inactive:
                continue
            if is_eligible(member, dl.tier, self.rules, now):
                dl.add_eligible(member.discord_id)
        for member in members:
            if not is_active(member, dl.max_absence_count) and member.discord_id in dl.eligible:
                dl.mark_inactive(member.discord_id)

    def refresh_list(self, tier: Tier) -> ListStatus:
        """Rebuild *tier*'s eligible set from the current roster and persist it."""
        tier = Tier(tier)

        def _refresh(stores: StoreBundle) -> ListStatus:
            dl = stores.lists.get(tier)
            members = stores.members.list()
            self._apply_refresh(dl, members, self.now())
            stores.lists.update(dl)
            return ListStatus.from_list(dl)

        status = self._locked("refresh_list", tier, _refresh)
        logger.info(
            "Refreshed %s list: eligible=%d completed=%d inactive=%d",
            tier.value, status.eligible_count, status.completed_count, status.inactive_count,
        )
        return status

    def refresh_all(self) -> dict[Tier, ListStatus]:
        return {tier: self.refresh_list(tier) for tier in Tier}

    # -------------------------------------------------------------------
    # Winner selection
    # -------------------------------------------------------------------
    def select_winner(
        self,
        tier: Tier,
        *,
        event_date: datetime | None = None,
        notes: str | None = None,
    ) -> WinnerResult:
        """Award one *tier* link.

        Raises
        ------
        PreconditionFailed
            Compensation queue and eligible set are both empty.
        NotFound
            The drawn member id has no member record.
        StoreUnavailable
            Persistence failed; nothing was written.
        """
        tier = Tier(tier)

        def _select(stores: StoreBundle) -> WinnerResult:
            now = self.now()
            dl = stores.lists.get(tier)
            cycle_reset = False

            winner_id = dl.pop_compensation()
            if winner_id is not None:
                is_compensation = True
                member = stores.members.get(winner_id)
                member.compensation_owed = False
            elif dl.eligible:
                is_compensation = False
                winner_id = self._random.choice(list(dl.eligible))
                member = stores.members.get(winner_id)
                dl.mark_completed(winner_id)
                if dl.is_complete():
                    queued = dl.reset(now)
                    self._flag_compensation_owed(stores, queued)
                    cycle_reset = True
            else:
                raise PreconditionFailed(
                    f"no eligible recipients for {tier.value} links",
                    operation="select_winner",
                    tier=tier.value,
                )

            entry = stores.history.append(LinkHistory(
                discord_id=member.discord_id,
                username=member.username,
                tier=tier.value,
                date_received=now,
                event_date=event_date or now,
                is_compensation=is_compensation,
                notes=notes if notes is not None else (COMPENSATION_NOTE if is_compensation else None),
            ))
            stores.members.update(member)
            stores.lists.update(dl)
            return WinnerResult(
                winner=member,
                history=entry,
                is_compensation=is_compensation,
                status=ListStatus.from_list(dl),
                cycle_reset=cycle_reset,
            )

        result = self._locked("select_winner", tier, _select)
        logger.info(
            "%s link → %s (%s)%s",
            tier.value, result.winner.discord_id,
            "compensation" if result.is_compensation else "regular",
            "; cycle reset" if result.cycle_reset else "",
        )
        return result

    # -------------------------------------------------------------------
    # Force complete
    # -------------------------------------------------------------------
    def force_complete(
        self,
        tier: Tier,
        reason: str,
        *,
        actor_id: str | None = None,
    ) -> ListStatus:
        """Close a stalled cycle: sweep remaining eligible members to inactive, then reset.

        Raises :class:`PreconditionFailed` when nobody is inactive.
        """
        tier = Tier(tier)

        def _force(stores: StoreBundle) -> ListStatus:
            dl = stores.lists.get(tier)
            if not dl.can_force_complete():
                raise PreconditionFailed(
                    f"{tier.value} list cannot be force completed: no inactive members",
                    operation="force_complete",
                    tier=tier.value,
                )
            before = ListStatus.from_list(dl).to_dict()
            for member_id in list(dl.eligible):
                dl.mark_inactive(member_id)
            queued = dl.reset(self.now())
            self._flag_compensation_owed(stores, queued)
            stores.lists.update(dl)
            status = ListStatus.from_list(dl)
            log_admin_action(
                stores.session,
                actor_id=actor_id,
                action_type=AdminActionType.FORCE_COMPLETE.value,
                target_table="distribution_lists",
                target_id=tier.value,
                before=before,
                after={**status.to_dict(), "queued": queued},
                reason=reason,
            )
            return status

        status = self._locked("force_complete", tier, _force)
        logger.info(
            "Force-completed %s list (actor=%s, reason=%r); compensation queue=%d",
            tier.value, actor_id, reason, status.compensation_count,
        )
        return status

    # -------------------------------------------------------------------
    # Member removal (administrative escape hatch)
    # -------------------------------------------------------------------
    @staticmethod
    def _purge_from_lists(stores: StoreBundle, discord_id: str) -> list[Tier]:
        purged = []
        for tier in Tier:
            dl = stores.lists.get(tier)
            if dl.contains(discord_id):
                dl.purge(discord_id)
                stores.lists.update(dl)
                purged.append(tier)
        return purged

    def purge_member(self, discord_id: str) -> list[Tier]:
        """Drop *discord_id* from every tier list.  Returns the tiers that held it."""
        with self.hold_all_tiers():
            purged = self._run(
                "purge_member", None,
                lambda stores: self._purge_from_lists(stores, discord_id),
            )
        if purged:
            logger.info(
                "Purged %s from %s lists", discord_id, ", ".join(t.value for t in purged),
            )
        return purged

    def remove_member(self, discord_id: str, *, actor_id: str | None = None) -> None:
        """Delete a member and drop their id from every tier list, atomically."""

        def _remove(stores: StoreBundle) -> None:
            member = stores.members.get(discord_id)
            before = row_to_dict(member)
            self._purge_from_lists(stores, discord_id)
            stores.members.delete(discord_id)
            log_admin_action(
                stores.session,
                actor_id=actor_id,
                action_type=AdminActionType.DELETE.value,
                target_table="members",
                target_id=discord_id,
                before=before,
            )

        with self.hold_all_tiers():
            self._run("remove_member", None, _remove)
        logger.info("Removed member %s (actor=%s)", discord_id, actor_id)

    # -------------------------------------------------------------------
    # Status (unlocked snapshot reads)
    # -------------------------------------------------------------------
    def get_list(self, tier: Tier) -> DistributionList:
        tier = Tier(tier)
        return self._run("get_list", tier, lambda stores: stores.lists.get(tier))

    def get_status(self, tier: Tier) -> ListStatus:
        return ListStatus.from_list(self.get_list(tier))

    def get_all_statuses(self) -> dict[Tier, ListStatus]:
        return {tier: self.get_status(tier) for tier in Tier}
