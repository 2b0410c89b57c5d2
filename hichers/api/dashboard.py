"""Dashboard endpoint."""

from fastapi import APIRouter, Depends

from hichers.api.deps import get_dashboard
from hichers.schemas.dashboard import DashboardView
from hichers.services.dashboard import DashboardAggregator

router = APIRouter()


@router.get("", response_model=DashboardView)
async def get_dashboard_view(aggregator: DashboardAggregator = Depends(get_dashboard)):
    """Metric cards, scheme cards and growth estimate for the signed-in business."""
    return await aggregator.load()
