import uuid
from datetime import datetime
from typing import Annotated, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import dependencies
from app.core.responses import StandardResponse
from app.database import get_db
from app.models.user import User
from app.routers.clients import ClientResponse
from app.services.dashboard_service import DashboardService

router = APIRouter()


class DashboardStatsResponse(BaseModel):
    exercises: int
    clients: int
    plans: int

    class Config:
        from_attributes = True


class RecentPlanResponse(BaseModel):
    id: uuid.UUID
    name: str
    client_id: uuid.UUID
    client_name: str
    created_at: datetime
    exercises_count: int

    class Config:
        from_attributes = True


@router.get("/stats", response_model=StandardResponse[DashboardStatsResponse])
async def get_stats(
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    stats = await DashboardService.stats(db, current_user.id)
    return StandardResponse(data=DashboardStatsResponse.model_validate(stats))


@router.get("/recent-plans", response_model=StandardResponse[List[RecentPlanResponse]])
async def get_recent_plans(
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    plans = await DashboardService.recent_plans(db, current_user.id)
    return StandardResponse(data=[RecentPlanResponse.model_validate(p) for p in plans])


@router.get("/recent-clients", response_model=StandardResponse[List[ClientResponse]])
async def get_recent_clients(
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    clients = await DashboardService.recent_clients(db, current_user.id)
    return StandardResponse(data=[ClientResponse.model_validate(c) for c in clients])
