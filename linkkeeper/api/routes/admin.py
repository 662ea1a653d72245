"""
linkkeeper.api.routes.admin — Officer endpoints (JWT‑protected)
================================================================

Every mutation is attributed to the token's ``sub`` claim, in ``admin_log``
or, for stock changes, in the inventory journal.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from linkkeeper.api.deps import (
    get_current_admin,
    get_distribution_engine,
    get_inventory_service,
    get_member_service,
)
from linkkeeper.database.models import DEFAULT_INVENTORY_CATEGORY, Quality, Tier
from linkkeeper.services.distribution_service import DistributionEngine
from linkkeeper.services.inventory_service import (
    CountUpdate,
    InventoryService,
    item_to_dict,
    transaction_to_dict,
)
from linkkeeper.services.member_service import MemberService, history_to_dict, member_to_dict

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class MemberCreate(BaseModel):
    discord_id: str = Field(min_length=1, max_length=32)
    username: str = Field(min_length=1, max_length=100)
    join_date: datetime


class WeeklyParticipation(BaseModel):
    participated: bool = True


class OmniParticipation(BaseModel):
    participated: bool
    omni_date: datetime | None = None


class PickWinner(BaseModel):
    event_date: datetime | None = None
    notes: str | None = None


class ForceComplete(BaseModel):
    reason: str = Field(min_length=1)


class InventoryItemCreate(BaseModel):
    link_type: str = Field(min_length=1, max_length=100)
    category: str = Field(DEFAULT_INVENTORY_CATEGORY, min_length=1, max_length=100)
    description: str | None = None


class StockReceived(BaseModel):
    link_type: str = Field(min_length=1, max_length=100)
    quality: Quality
    quantity: int = Field(1, ge=1, le=1000)
    category: str = Field(DEFAULT_INVENTORY_CATEGORY, min_length=1, max_length=100)
    reason: str | None = None


class CountSet(BaseModel):
    link_type: str = Field(min_length=1, max_length=100)
    quality: Quality
    new_count: int = Field(ge=0)
    reason: str | None = None


class CountAdjust(BaseModel):
    link_type: str = Field(min_length=1, max_length=100)
    quality: Quality
    delta: int
    reason: str | None = None


class StockTakeLine(BaseModel):
    link_type: str = Field(min_length=1, max_length=100)
    quality: Quality
    new_count: int = Field(ge=0)


class StockTake(BaseModel):
    updates: list[StockTakeLine] = Field(min_length=1)
    reason: str | None = None


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------
@router.post("/members", status_code=status.HTTP_201_CREATED)
def create_member(
    body: MemberCreate,
    admin: dict = Depends(get_current_admin),
    service: MemberService = Depends(get_member_service),
):
    member = service.create_member(
        body.discord_id, body.username, body.join_date, added_by=admin["sub"],
    )
    return member_to_dict(member)


@router.post("/members/{discord_id}/promote")
def promote_member(
    discord_id: str,
    admin: dict = Depends(get_current_admin),
    service: MemberService = Depends(get_member_service),
):
    return member_to_dict(service.promote_to_officer(discord_id, admin["sub"]))


@router.post("/members/{discord_id}/demote")
def demote_member(
    discord_id: str,
    admin: dict = Depends(get_current_admin),
    service: MemberService = Depends(get_member_service),
):
    return member_to_dict(service.demote_from_officer(discord_id, admin["sub"]))


@router.delete("/members/{discord_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_member(
    discord_id: str,
    admin: dict = Depends(get_current_admin),
    service: MemberService = Depends(get_member_service),
):
    service.delete_member(discord_id, admin["sub"])


@router.post("/members/{discord_id}/weekly")
def mark_weekly(
    discord_id: str,
    body: WeeklyParticipation,
    admin: dict = Depends(get_current_admin),
    service: MemberService = Depends(get_member_service),
):
    member = service.mark_weekly_participation(
        discord_id, body.participated, actor_id=admin["sub"],
    )
    return member_to_dict(member)


@router.post("/members/{discord_id}/omni")
def mark_omni(
    discord_id: str,
    body: OmniParticipation,
    admin: dict = Depends(get_current_admin),
    service: MemberService = Depends(get_member_service),
):
    member = service.mark_omni_participation(
        discord_id, body.participated, body.omni_date, actor_id=admin["sub"],
    )
    return member_to_dict(member)


@router.post("/participation/weekly/reset")
def reset_weekly(
    admin: dict = Depends(get_current_admin),
    service: MemberService = Depends(get_member_service),
):
    return {"cleared": service.reset_weekly_participation(admin["sub"])}


# ---------------------------------------------------------------------------
# Distribution
# ---------------------------------------------------------------------------
@router.post("/distribution/{tier}/refresh")
def refresh_list(
    tier: Tier,
    admin: dict = Depends(get_current_admin),
    engine: DistributionEngine = Depends(get_distribution_engine),
):
    return engine.refresh_list(tier).to_dict()


@router.post("/distribution/{tier}/pick-winner")
def pick_winner(
    tier: Tier,
    body: PickWinner | None = None,
    admin: dict = Depends(get_current_admin),
    engine: DistributionEngine = Depends(get_distribution_engine),
):
    body = body or PickWinner()
    result = engine.select_winner(tier, event_date=body.event_date, notes=body.notes)
    return {
        "winner": member_to_dict(result.winner),
        "history": history_to_dict(result.history),
        "is_compensation": result.is_compensation,
        "cycle_reset": result.cycle_reset,
        "status": result.status.to_dict(),
    }


@router.post("/distribution/{tier}/force-complete")
def force_complete(
    tier: Tier,
    body: ForceComplete,
    admin: dict = Depends(get_current_admin),
    engine: DistributionEngine = Depends(get_distribution_engine),
):
    return engine.force_complete(tier, body.reason, actor_id=admin["sub"]).to_dict()


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------
@router.post("/inventory", status_code=status.HTTP_201_CREATED)
def add_inventory_item(
    body: InventoryItemCreate,
    admin: dict = Depends(get_current_admin),
    service: InventoryService = Depends(get_inventory_service),
):
    item = service.add_item(
        body.link_type, body.category, description=body.description, actor_id=admin["sub"],
    )
    return item_to_dict(item)


@router.post("/inventory/add", status_code=status.HTTP_201_CREATED)
def receive_stock(
    body: StockReceived,
    admin: dict = Depends(get_current_admin),
    service: InventoryService = Depends(get_inventory_service),
):
    tx = service.receive_stock(
        body.link_type, body.quality, body.quantity, body.reason,
        category=body.category, actor_id=admin["sub"],
    )
    return transaction_to_dict(tx)


@router.post("/inventory/count")
def set_inventory_count(
    body: CountSet,
    admin: dict = Depends(get_current_admin),
    service: InventoryService = Depends(get_inventory_service),
):
    tx = service.set_count(
        body.link_type, body.quality, body.new_count, body.reason, actor_id=admin["sub"],
    )
    return transaction_to_dict(tx)


@router.post("/inventory/adjust")
def adjust_inventory_count(
    body: CountAdjust,
    admin: dict = Depends(get_current_admin),
    service: InventoryService = Depends(get_inventory_service),
):
    tx = service.adjust_count(
        body.link_type, body.quality, body.delta, body.reason, actor_id=admin["sub"],
    )
    return transaction_to_dict(tx)


@router.post("/inventory/bulk")
def bulk_update_inventory(
    body: StockTake,
    admin: dict = Depends(get_current_admin),
    service: InventoryService = Depends(get_inventory_service),
):
    updates = [CountUpdate(u.link_type, u.quality, u.new_count) for u in body.updates]
    txs = service.bulk_update(updates, body.reason, actor_id=admin["sub"])
    return [transaction_to_dict(t) for t in txs]
