"""
linkkeeper.services.stores — Member, History, List & Inventory Stores
======================================================================

The persistence collaborators the services talk to.  Each store
wraps one open :class:`~sqlalchemy.orm.Session`, so everything a service
does between ``get_session()`` entry and exit commits or rolls back as one
unit.

Contracts (``typing.Protocol``) are declared alongside the SQLAlchemy
implementations so tests can slot in a failing store.

Error mapping at this boundary:

* row missing              → :class:`~linkkeeper.errors.NotFound`
* duplicate key            → :class:`~linkkeeper.errors.AlreadyExists`
* any other SQLAlchemy error → :class:`~linkkeeper.errors.StoreUnavailable`

``StaleDataError`` (optimistic version mismatch) is let through untouched so
the engine can re-read and retry.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from linkkeeper.database.engine import get_session
from linkkeeper.database.models import (
    AdminLog,
    DistributionListRecord,
    InventoryItem,
    InventoryTransaction,
    LinkHistory,
    Member,
    Tier,
)
from linkkeeper.engine.distribution_list import DistributionList
from linkkeeper.engine.eligibility import as_utc
from linkkeeper.errors import (
    AlreadyExists,
    ConcurrentUpdate,
    NotFound,
    StoreUnavailable,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_CONFLICT_RETRIES = 3


@contextmanager
def store_errors(operation: str, tier: str | None = None) -> Iterator[None]:
    """Translate SQLAlchemy failures into :class:`StoreUnavailable`."""
    try:
        yield
    except StaleDataError:
        raise
    except SQLAlchemyError as exc:
        logger.exception("Store failure during %s: %s", operation, exc)
        raise StoreUnavailable(
            f"storage failed: {exc.__class__.__name__}",
            operation=operation,
            tier=tier,
        ) from exc


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------
class MemberStore(Protocol):
    def create(self, member: Member) -> Member: ...
    def get(self, discord_id: str) -> Member: ...
    def update(self, member: Member) -> Member: ...
    def list(self) -> list[Member]: ...
    def delete(self, discord_id: str) -> None: ...


class HistoryStore(Protocol):
    def append(self, entry: LinkHistory) -> LinkHistory: ...
    def list_by_member(self, discord_id: str) -> list[LinkHistory]: ...
    def list_recent(self, limit: int = 50, tier: Tier | None = None) -> list[LinkHistory]: ...


class ListStore(Protocol):
    def create(self, dl: DistributionList) -> DistributionList: ...
    def get(self, tier: Tier) -> DistributionList: ...
    def update(self, dl: DistributionList) -> DistributionList: ...


class InventoryStore(Protocol):
    def create(self, item: InventoryItem) -> InventoryItem: ...
    def get(self, link_type: str) -> InventoryItem: ...
    def find(self, link_type: str) -> InventoryItem | None: ...
    def update(self, item: InventoryItem) -> InventoryItem: ...
    def list(self, category: str | None = None) -> list[InventoryItem]: ...
    def record(self, tx: InventoryTransaction) -> InventoryTransaction: ...
    def transactions(self, link_type: str, limit: int = 50) -> list[InventoryTransaction]: ...


# ---------------------------------------------------------------------------
# SQLAlchemy implementations
# ---------------------------------------------------------------------------
class SqlMemberStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, member: Member) -> Member:
        with store_errors("member.create"):
            if self.session.get(Member, member.discord_id) is not None:
                raise AlreadyExists(
                    f"member {member.discord_id} already exists",
                    operation="member.create",
                )
            self.session.add(member)
            try:
                self.session.flush()
            except IntegrityError as exc:
                raise AlreadyExists(
                    f"member {member.discord_id} already exists",
                    operation="member.create",
                ) from exc
        return member

    def get(self, discord_id: str) -> Member:
        with store_errors("member.get"):
            member = self.session.get(Member, discord_id)
        if member is None:
            raise NotFound(f"member {discord_id} not found", operation="member.get")
        return member

    def update(self, member: Member) -> Member:
        with store_errors("member.update"):
            self.session.add(member)
            self.session.flush()
        return member

    def list(self) -> list[Member]:
        with store_errors("member.list"):
            return list(
                self.session.scalars(select(Member).order_by(Member.discord_id)).all()
            )

    def delete(self, discord_id: str) -> None:
        member = self.get(discord_id)
        with store_errors("member.delete"):
            self.session.delete(member)
            self.session.flush()


class SqlHistoryStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def append(self, entry: LinkHistory) -> LinkHistory:
        with store_errors("history.append", entry.tier):
            self.session.add(entry)
            self.session.flush()
        return entry

    def list_by_member(self, discord_id: str) -> list[LinkHistory]:
        """Entries for *discord_id*, newest first."""
        with store_errors("history.list_by_member"):
            return list(self.session.scalars(
                select(LinkHistory)
                .where(LinkHistory.discord_id == discord_id)
                .order_by(LinkHistory.date_received.desc(), LinkHistory.id.desc())
            ).all())

    def list_recent(self, limit: int = 50, tier: Tier | None = None) -> list[LinkHistory]:
        with store_errors("history.list_recent", tier):
            stmt = select(LinkHistory)
            if tier is not None:
                stmt = stmt.where(LinkHistory.tier == Tier(tier).value)
            stmt = stmt.order_by(
                LinkHistory.date_received.desc(), LinkHistory.id.desc()
            ).limit(limit)
            return list(self.session.scalars(stmt).all())


class SqlListStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, dl: DistributionList) -> DistributionList:
        tier = Tier(dl.tier).value
        with store_errors("list.create", tier):
            if self.session.get(DistributionListRecord, tier) is not None:
                raise AlreadyExists(
                    f"distribution list for {tier} already exists",
                    operation="list.create",
                    tier=tier,
                )
            record = DistributionListRecord(
                tier=tier,
                max_absence_count=dl.max_absence_count,
            )
            _copy_into(record, dl)
            self.session.add(record)
            try:
                self.session.flush()
            except IntegrityError as exc:
                raise AlreadyExists(
                    f"distribution list for {tier} already exists",
                    operation="list.create",
                    tier=tier,
                ) from exc
            dl.version = record.version
        return dl

    def get(self, tier: Tier) -> DistributionList:
        tier = Tier(tier).value
        with store_errors("list.get", tier):
            record = self.session.get(DistributionListRecord, tier)
        if record is None:
            raise NotFound(
                f"distribution list for {tier} not found",
                operation="list.get",
                tier=tier,
            )
        return _to_domain(record)

    def update(self, dl: DistributionList) -> DistributionList:
        tier = Tier(dl.tier).value
        with store_errors("list.update", tier):
            record = self.session.get(DistributionListRecord, tier)
            if record is None:
                raise NotFound(
                    f"distribution list for {tier} not found",
                    operation="list.update",
                    tier=tier,
                )
            if dl.version is not None and record.version != dl.version:
                raise StaleDataError(
                    f"distribution list {tier} is at version {record.version}, "
                    f"caller holds {dl.version}"
                )
            _copy_into(record, dl)
            self.session.flush()
            dl.version = record.version
        return dl


class SqlInventoryStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, item: InventoryItem) -> InventoryItem:
        with store_errors("inventory.create"):
            if self.session.get(InventoryItem, item.link_type) is not None:
                raise AlreadyExists(
                    f"link type {item.link_type!r} is already stocked",
                    operation="inventory.create",
                )
            self.session.add(item)
            try:
                self.session.flush()
            except IntegrityError as exc:
                raise AlreadyExists(
                    f"link type {item.link_type!r} is already stocked",
                    operation="inventory.create",
                ) from exc
        return item

    def find(self, link_type: str) -> InventoryItem | None:
        with store_errors("inventory.get"):
            return self.session.get(InventoryItem, link_type)

    def get(self, link_type: str) -> InventoryItem:
        item = self.find(link_type)
        if item is None:
            raise NotFound(f"link type {link_type!r} not in inventory", operation="inventory.get")
        return item

    def update(self, item: InventoryItem) -> InventoryItem:
        with store_errors("inventory.update"):
            self.session.add(item)
            self.session.flush()
        return item

    def list(self, category: str | None = None) -> list[InventoryItem]:
        with store_errors("inventory.list"):
            stmt = select(InventoryItem)
            if category is not None:
                stmt = stmt.where(InventoryItem.category == category)
            stmt = stmt.order_by(InventoryItem.category, InventoryItem.link_type)
            return list(self.session.scalars(stmt).all())

    def record(self, tx: InventoryTransaction) -> InventoryTransaction:
        with store_errors("inventory.record"):
            self.session.add(tx)
            self.session.flush()
        return tx

    def transactions(self, link_type: str, limit: int = 50) -> list[InventoryTransaction]:
        """Changes to *link_type*, newest first."""
        with store_errors("inventory.transactions"):
            return list(self.session.scalars(
                select(InventoryTransaction)
                .where(InventoryTransaction.link_type == link_type)
                .order_by(InventoryTransaction.timestamp.desc(), InventoryTransaction.id.desc())
                .limit(limit)
            ).all())


def _copy_into(record: DistributionListRecord, dl: DistributionList) -> None:
    # Fresh list objects so the JSON columns register as changed.
    record.eligible_members = list(dl.eligible)
    record.completed_members = list(dl.completed)
    record.inactive_members = list(dl.inactive)
    record.compensation_queue = list(dl.compensation_queue)
    record.max_absence_count = dl.max_absence_count
    record.current_cycle_start = dl.current_cycle_start
    record.last_reset_date = dl.last_reset_date
    record.updated_at = dl.updated_at


def _to_domain(record: DistributionListRecord) -> DistributionList:
    return DistributionList(
        tier=Tier(record.tier),
        max_absence_count=record.max_absence_count,
        eligible=list(record.eligible_members or []),
        completed=list(record.completed_members or []),
        inactive=list(record.inactive_members or []),
        compensation_queue=list(record.compensation_queue or []),
        current_cycle_start=as_utc(record.current_cycle_start),
        last_reset_date=as_utc(record.last_reset_date),
        updated_at=as_utc(record.updated_at),
        version=record.version,
    )


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------
def row_to_dict(obj: Any) -> dict | None:
    """Convert a SQLAlchemy model instance to a JSON-serializable dict."""
    if obj is None:
        return None
    result = {}
    for col in obj.__table__.columns:
        val = getattr(obj, col.key, None)
        if isinstance(val, datetime):
            val = val.isoformat()
        result[col.name] = val
    return result


def log_admin_action(
    session: Session,
    *,
    actor_id: str | None,
    action_type: str,
    target_table: str,
    target_id: str | None,
    before: dict | None = None,
    after: dict | None = None,
    reason: str | None = None,
) -> None:
    """Insert a row into admin_log within the current transaction."""
    with store_errors(f"audit.{action_type.lower()}"):
        session.add(AdminLog(
            actor_id=actor_id,
            action_type=action_type,
            target_table=target_table,
            target_id=target_id,
            before_snapshot=before,
            after_snapshot=after,
            reason=reason,
        ))


# ---------------------------------------------------------------------------
# Bundle — every store over one session
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class StoreBundle:
    session: Session
    members: MemberStore
    history: HistoryStore
    lists: ListStore
    inventory: InventoryStore

    @classmethod
    def for_session(cls, session: Session) -> StoreBundle:
        return cls(
            session=session,
            members=SqlMemberStore(session),
            history=SqlHistoryStore(session),
            lists=SqlListStore(session),
            inventory=SqlInventoryStore(session),
        )


# ---------------------------------------------------------------------------
# Transaction runner
# ---------------------------------------------------------------------------
def run_transaction(
    db_engine: Engine,
    operation: str,
    fn: Callable[[StoreBundle], T],
    *,
    tier: str | None = None,
    stores_factory: Callable[[Session], StoreBundle] = StoreBundle.for_session,
    retries: int = MAX_CONFLICT_RETRIES,
) -> T:
    """Run *fn* against a fresh store bundle in one transaction.

    Everything *fn* does commits together or not at all.  A version conflict
    re-runs *fn* from scratch (re-reading state) up to *retries* times, then
    raises :class:`ConcurrentUpdate`.
    """
    for attempt in range(1, retries + 1):
        try:
            with store_errors(operation, tier):
                with get_session(db_engine) as session:
                    return fn(stores_factory(session))
        except StaleDataError:
            logger.warning(
                "Version conflict during %s (tier=%s), attempt %d/%d",
                operation, tier, attempt, retries,
            )
    raise ConcurrentUpdate(
        "record changed concurrently, giving up",
        operation=operation,
        tier=tier,
    )
