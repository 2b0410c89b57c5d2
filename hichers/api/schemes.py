"""Loyalty scheme endpoints."""

from fastapi import APIRouter, Depends

from hichers.api.deps import get_scheme_manager
from hichers.schemas.loyalty import LoyaltyScheme, SchemeCreation, SchemeDraft
from hichers.services.loyalty import SchemeManager

router = APIRouter()


@router.get("", response_model=list[LoyaltyScheme])
async def list_schemes(manager: SchemeManager = Depends(get_scheme_manager)):
    return await manager.list_schemes()


@router.post("", response_model=SchemeCreation, status_code=201)
async def create_scheme(
    draft: SchemeDraft,
    manager: SchemeManager = Depends(get_scheme_manager),
):
    """Create a points or stamps scheme.

    A name the API reports as taken is retried once with today's date
    appended; `renamed` tells the caller that happened.
    """
    return await manager.create_with_retry(draft)
