"""
linkkeeper.api.routes.public — Read-only public endpoints
==========================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from linkkeeper.api.deps import (
    get_distribution_engine,
    get_inventory_service,
    get_member_service,
)
from linkkeeper.database.models import Tier
from linkkeeper.services.distribution_service import DistributionEngine
from linkkeeper.services.inventory_service import (
    InventoryService,
    item_to_dict,
    transaction_to_dict,
)
from linkkeeper.services.member_service import MemberService, history_to_dict, member_to_dict

router = APIRouter(tags=["public"])


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------
@router.get("/members")
def list_members(service: MemberService = Depends(get_member_service)):
    """Full roster with cached rank and eligibility."""
    members = service.list_members()
    return {"total": len(members), "members": [member_to_dict(m) for m in members]}


@router.get("/members/{discord_id}")
def get_member(discord_id: str, service: MemberService = Depends(get_member_service)):
    """Status report for one member."""
    return service.get_member_status(discord_id).to_dict()


@router.get("/members/{discord_id}/history")
def get_member_history(discord_id: str, service: MemberService = Depends(get_member_service)):
    return [history_to_dict(h) for h in service.get_history(discord_id)]


# ---------------------------------------------------------------------------
# Distribution
# ---------------------------------------------------------------------------
@router.get("/distribution/status")
def get_all_statuses(engine: DistributionEngine = Depends(get_distribution_engine)):
    return {tier.value: status.to_dict() for tier, status in engine.get_all_statuses().items()}


@router.get("/distribution/status/{tier}")
def get_status(tier: Tier, engine: DistributionEngine = Depends(get_distribution_engine)):
    return engine.get_status(tier).to_dict()


@router.get("/distribution/history")
def get_recent_history(
    tier: Tier | None = None,
    limit: int = Query(50, ge=1, le=500),
    service: MemberService = Depends(get_member_service),
):
    """Most recent grants, newest first."""
    return [history_to_dict(h) for h in service.recent_history(limit=limit, tier=tier)]


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------
# Link type names contain "/", so they travel as query parameters.
@router.get("/inventory")
def list_inventory(
    category: str | None = None,
    service: InventoryService = Depends(get_inventory_service),
):
    items = service.list_items(category)
    return {"total": len(items), "items": [item_to_dict(i) for i in items]}


@router.get("/inventory/summary")
def inventory_summary(service: InventoryService = Depends(get_inventory_service)):
    return service.summary().to_dict()


@router.get("/inventory/low-stock")
def low_stock(
    bronze: int = Query(0, ge=0),
    silver: int = Query(0, ge=0),
    gold: int = Query(0, ge=0),
    service: InventoryService = Depends(get_inventory_service),
):
    return [item_to_dict(i) for i in service.low_stock(bronze, silver, gold)]


@router.get("/inventory/item")
def inventory_item(link_type: str, service: InventoryService = Depends(get_inventory_service)):
    return item_to_dict(service.get_item(link_type))


@router.get("/inventory/transactions")
def inventory_transactions(
    link_type: str,
    limit: int = Query(50, ge=1, le=500),
    service: InventoryService = Depends(get_inventory_service),
):
    return [transaction_to_dict(t) for t in service.get_transactions(link_type, limit)]
