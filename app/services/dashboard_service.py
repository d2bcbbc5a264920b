from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.coaching import Client, ClientTrainerRelationship
from app.models.fitness import Exercise, Plan, PlanExercise
from app.services.trainer_service import linked_clients_stmt

RECENT_PLANS_LIMIT = 3
RECENT_CLIENTS_LIMIT = 4


@dataclass
class DashboardStats:
    exercises: int
    clients: int
    plans: int


@dataclass
class RecentPlan:
    id: uuid.UUID
    name: str
    client_id: uuid.UUID
    client_name: str
    created_at: datetime
    exercises_count: int


class DashboardService:
    @staticmethod
    async def stats(db: AsyncSession, trainer_id: uuid.UUID) -> DashboardStats:
        exercises = await db.scalar(select(func.count()).select_from(Exercise))
        clients = await db.scalar(
            select(func.count())
            .select_from(ClientTrainerRelationship)
            .where(ClientTrainerRelationship.trainer_id == trainer_id)
        )
        plans = await db.scalar(select(func.count()).select_from(Plan).where(Plan.trainer_id == trainer_id))
        return DashboardStats(exercises=exercises or 0, clients=clients or 0, plans=plans or 0)

    @staticmethod
    async def recent_plans(db: AsyncSession, trainer_id: uuid.UUID) -> list[RecentPlan]:
        exercise_counts = (
            select(PlanExercise.plan_id, func.count(PlanExercise.id).label("exercises_count"))
            .group_by(PlanExercise.plan_id)
            .subquery()
        )
        stmt = (
            select(Plan, Client.name, func.coalesce(exercise_counts.c.exercises_count, 0))
            .join(Client, Client.id == Plan.client_id)
            .outerjoin(exercise_counts, exercise_counts.c.plan_id == Plan.id)
            .where(Plan.trainer_id == trainer_id)
            .order_by(Plan.created_at.desc())
            .limit(RECENT_PLANS_LIMIT)
        )
        rows = (await db.execute(stmt)).all()
        return [
            RecentPlan(
                id=plan.id,
                name=plan.name,
                client_id=plan.client_id,
                client_name=client_name,
                created_at=plan.created_at,
                exercises_count=count,
            )
            for plan, client_name, count in rows
        ]

    @staticmethod
    async def recent_clients(db: AsyncSession, trainer_id: uuid.UUID) -> list[Client]:
        stmt = linked_clients_stmt(trainer_id).order_by(Client.created_at.desc()).limit(RECENT_CLIENTS_LIMIT)
        return list((await db.execute(stmt)).scalars().all())
