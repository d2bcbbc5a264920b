from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.coaching import Client
from app.models.fitness import Plan, PlanExercise, Series, TrainingSession

logger = logging.getLogger(__name__)


class ScheduledSession(BaseModel):
    id: uuid.UUID
    name: str
    scheduled_date: datetime
    plan_id: uuid.UUID
    plan_name: str


class TrainingExercise(BaseModel):
    id: uuid.UUID
    exercise_id: uuid.UUID
    exercise_name: str
    level: int
    video_url: str = ""
    repetitions: int | float = 0
    weight: int | float = 0


class TrainingSeries(BaseModel):
    id: uuid.UUID
    name: str
    order_index: int
    exercises: List[TrainingExercise] = []


class TrainingSessionView(BaseModel):
    id: uuid.UUID
    name: str
    plan_id: uuid.UUID
    scheduled_date: Optional[datetime] = None
    series: List[TrainingSeries] = []


def _to_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _training_exercise(item: PlanExercise) -> TrainingExercise:
    level = item.exercise.level_data(item.level) if item.exercise else {}
    return TrainingExercise(
        id=item.id,
        exercise_id=item.exercise_id,
        exercise_name=item.exercise.name if item.exercise else "",
        level=item.level,
        video_url=level.get("video") or "",
        repetitions=level.get("repetitions") or 0,
        weight=level.get("weight") or 0,
    )


class SessionService:
    @staticmethod
    async def get_client_session_or_404(
        db: AsyncSession,
        session_id: uuid.UUID,
        client: Client,
        *,
        with_exercises: bool = False,
    ) -> TrainingSession:
        stmt = select(TrainingSession).where(
            TrainingSession.id == session_id,
            TrainingSession.client_id == client.id,
        )
        if with_exercises:
            stmt = stmt.options(
                selectinload(TrainingSession.series)
                .selectinload(Series.exercises)
                .selectinload(PlanExercise.exercise)
            )
        session = (await db.execute(stmt)).scalar_one_or_none()
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return session

    @staticmethod
    async def list_scheduled(db: AsyncSession, client: Client) -> list[ScheduledSession]:
        stmt = (
            select(TrainingSession, Plan.name)
            .join(Plan, Plan.id == TrainingSession.plan_id)
            .where(
                TrainingSession.client_id == client.id,
                TrainingSession.scheduled_date.is_not(None),
            )
            .order_by(TrainingSession.scheduled_date)
        )
        rows = (await db.execute(stmt)).all()
        return [
            ScheduledSession(
                id=session.id,
                name=session.name,
                scheduled_date=_to_utc(session.scheduled_date),
                plan_id=session.plan_id,
                plan_name=plan_name,
            )
            for session, plan_name in rows
        ]

    @staticmethod
    async def schedule(
        db: AsyncSession,
        session_id: uuid.UUID,
        client: Client,
        scheduled_date: datetime | None,
    ) -> TrainingSession:
        """Set or clear the date of one of the client's sessions. The caller commits."""
        session = await SessionService.get_client_session_or_404(db, session_id, client)
        session.scheduled_date = _to_utc(scheduled_date)
        logger.info("Session %s scheduled for %s by client %s", session.id, session.scheduled_date, client.id)
        return session

    @staticmethod
    async def session_view(db: AsyncSession, session_id: uuid.UUID, client: Client) -> TrainingSessionView:
        session = await SessionService.get_client_session_or_404(db, session_id, client, with_exercises=True)
        return TrainingSessionView(
            id=session.id,
            name=session.name,
            plan_id=session.plan_id,
            scheduled_date=_to_utc(session.scheduled_date),
            series=[
                TrainingSeries(
                    id=series.id,
                    name=series.name,
                    order_index=series.order_index,
                    exercises=[_training_exercise(item) for item in series.exercises],
                )
                for series in session.series
            ],
        )
