"""
linkkeeper.engine.distribution_list — Per-Tier Cycle State Machine
===================================================================

One :class:`DistributionList` per tier.  Member ids live in four ordered
collections:

* ``eligible``           — may still win a regular grant this cycle
* ``completed``          — already won this cycle
* ``inactive``           — dropped out this cycle (too many absences or swept
  by a force-complete), in the order they were marked
* ``compensation_queue`` — FIFO of members owed a catch-up link

An id is in at most one of eligible / completed / inactive, and once
completed or inactive it stays there until the next reset.  The
compensation queue is independent: a member can be mid-cycle and still be
owed a link from an earlier one.

Transitions are plain methods; the caller (the distribution service) owns
locking and persistence.  No DB I/O here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from linkkeeper.database.models import Tier


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class DistributionList:
    """Mutable cycle state for one tier."""

    tier: Tier
    max_absence_count: int
    eligible: list[str] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)
    inactive: list[str] = field(default_factory=list)
    compensation_queue: list[str] = field(default_factory=list)
    current_cycle_start: datetime = field(default_factory=_utcnow)
    last_reset_date: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    version: int | None = None  # None until first persisted

    @classmethod
    def new(cls, tier: Tier, max_absence_count: int, now: datetime | None = None) -> DistributionList:
        now = now or _utcnow()
        return cls(
            tier=Tier(tier),
            max_absence_count=max_absence_count,
            current_cycle_start=now,
            last_reset_date=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Set transitions
    # -------------------------------------------------------------------
    def add_eligible(self, member_id: str) -> None:
        if member_id in self.completed or member_id in self.inactive:
            return
        if member_id not in self.eligible:
            self.eligible.append(member_id)
            self._touch()

    def remove_eligible(self, member_id: str) -> None:
        if member_id in self.eligible:
            self.eligible.remove(member_id)
            self._touch()

    def mark_completed(self, member_id: str) -> None:
        """Move *member_id* to completed.  No-op if it is already inactive."""
        if member_id in self.inactive:
            return
        self.remove_eligible(member_id)
        if member_id not in self.completed:
            self.completed.append(member_id)
        self._touch()

    def mark_inactive(self, member_id: str) -> None:
        """Move *member_id* to inactive.  No-op if it already won this cycle."""
        if member_id in self.completed:
            return
        self.remove_eligible(member_id)
        if member_id not in self.inactive:
            self.inactive.append(member_id)
        self._touch()

    def clear_eligible(self) -> None:
        self.eligible = []
        self._touch()

    # -------------------------------------------------------------------
    # Compensation queue (FIFO, duplicates suppressed)
    # -------------------------------------------------------------------
    def enqueue_compensation(self, member_id: str) -> bool:
        """Append *member_id* to the queue.  Returns False if already queued."""
        if member_id in self.compensation_queue:
            return False
        self.compensation_queue.append(member_id)
        self._touch()
        return True

    def dequeue_compensation(self, member_id: str) -> None:
        if member_id in self.compensation_queue:
            self.compensation_queue.remove(member_id)
            self._touch()

    def pop_compensation(self) -> str | None:
        """Remove and return the head of the queue, or None if empty."""
        if not self.compensation_queue:
            return None
        head = self.compensation_queue.pop(0)
        self._touch()
        return head

    # -------------------------------------------------------------------
    # Cycle lifecycle
    # -------------------------------------------------------------------
    def reset(self, now: datetime | None = None) -> list[str]:
        """Start a new cycle.

        Inactive members are queued for compensation in the order they were
        marked inactive, then eligible / completed / inactive are cleared.
        Returns the ids that were newly added to the queue.
        """
        queued = [mid for mid in self.inactive if self.enqueue_compensation(mid)]
        now = now or _utcnow()
        self.eligible = []
        self.completed = []
        self.inactive = []
        self.current_cycle_start = now
        self.last_reset_date = now
        self.updated_at = now
        return queued

    def purge(self, member_id: str) -> None:
        """Drop *member_id* from every collection."""
        for bucket in (self.eligible, self.completed, self.inactive, self.compensation_queue):
            if member_id in bucket:
                bucket.remove(member_id)
        self._touch()

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_complete(self) -> bool:
        return not self.eligible

    def can_force_complete(self) -> bool:
        return bool(self.inactive)

    def completion_percentage(self) -> float:
        total = len(self.eligible) + len(self.completed) + len(self.inactive)
        if total == 0:
            return 100.0
        return len(self.completed) / total * 100.0

    def state_of(self, member_id: str) -> str | None:
        """Which cycle set holds *member_id* ("eligible"/"completed"/"inactive")."""
        if member_id in self.eligible:
            return "eligible"
        if member_id in self.completed:
            return "completed"
        if member_id in self.inactive:
            return "inactive"
        return None

    def contains(self, member_id: str) -> bool:
        """True if *member_id* is in any cycle set or the compensation queue."""
        return self.state_of(member_id) is not None or member_id in self.compensation_queue

    def _touch(self) -> None:
        self.updated_at = _utcnow()
