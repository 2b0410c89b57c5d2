"""Offer management endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from hichers.api.deps import get_offer_manager
from hichers.schemas.offer import (
    OFFER_TYPE_LABELS,
    ClassifiedOffers,
    OfferDetail,
    OfferDraft,
    OfferTypeOption,
    OfferWriteResponse,
)
from hichers.services.offers import OfferManager

router = APIRouter()


@router.get("", response_model=ClassifiedOffers)
async def list_offers(manager: OfferManager = Depends(get_offer_manager)):
    """Offers split into past / present / future.

    A failed remote load renders as empty tabs.
    """
    return await manager.list_classified()


@router.get("/types", response_model=list[OfferTypeOption])
async def list_offer_types():
    return [OfferTypeOption(id=int(t), label=label) for t, label in OFFER_TYPE_LABELS.items()]


@router.post("", response_model=OfferWriteResponse, status_code=201)
async def create_offer(
    draft: OfferDraft,
    manager: OfferManager = Depends(get_offer_manager),
):
    """Create a new offer."""
    return await manager.create(draft)


@router.put("/{offer_id}", response_model=OfferWriteResponse)
async def update_offer(
    offer_id: int,
    draft: OfferDraft,
    manager: OfferManager = Depends(get_offer_manager),
):
    return await manager.update(offer_id, draft)


@router.delete("/{offer_id}", response_model=OfferWriteResponse)
async def delete_offer(
    offer_id: int,
    manager: OfferManager = Depends(get_offer_manager),
):
    return await manager.delete(offer_id)


@router.post("/{offer_id}/end-early", response_model=OfferWriteResponse)
async def end_offer_early(
    offer_id: int,
    manager: OfferManager = Depends(get_offer_manager),
):
    """End a current offer now."""
    offer = await manager.find(offer_id)
    if not offer:
        raise HTTPException(status_code=404, detail="Offer not found")
    return await manager.end_early(offer)


@router.get("/{offer_id}/detail", response_model=OfferDetail)
async def get_offer_detail(
    offer_id: int,
    map_id: int,
    manager: OfferManager = Depends(get_offer_manager),
):
    """Offer plus scan / click / redemption statistics."""
    return await manager.view(offer_id, map_id)
