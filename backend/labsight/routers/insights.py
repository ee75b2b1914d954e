from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from labsight.config import settings
from labsight.deps import get_store, get_user_id
from labsight.models import DashboardResponse, TrendsResponse
from labsight.services.insights import build_dashboard, build_trends
from labsight.services.store import ReportStore

router = APIRouter(tags=["insights"])


@router.get("/parameters/trends", response_model=TrendsResponse)
async def parameter_trends(
    days: Optional[int] = Query(default=None, ge=1, le=3650),
    user_id: str = Depends(get_user_id),
    store: ReportStore = Depends(get_store),
):
    """Readings per parameter over the last ``days`` days."""
    days = days or settings.trend_default_days
    since = datetime.now(timezone.utc) - timedelta(days=days)
    return {"days": days, "trends": build_trends(store.parameters_for_user(user_id, since=since))}


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    user_id: str = Depends(get_user_id),
    store: ReportStore = Depends(get_store),
):
    return build_dashboard(store, user_id)
