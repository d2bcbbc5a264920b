from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.coaching import Client
from app.models.enums import Role
from app.models.fitness import Exercise, Plan, PlanExercise, Series, TrainingSession
from app.models.user import User
from app.services.trainer_service import TrainerService

logger = logging.getLogger(__name__)


# --- Input models ---
class PlanExerciseInput(BaseModel):
    exercise_id: Optional[uuid.UUID] = None
    level: int = 1


class SeriesInput(BaseModel):
    name: str = ""
    exercises: List[PlanExerciseInput] = []


class SessionInput(BaseModel):
    name: str = ""
    series: List[SeriesInput] = []


class PlanCreate(BaseModel):
    name: str
    client_id: Optional[uuid.UUID] = None
    month: Optional[str] = None
    sessions: List[SessionInput] = []

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return value.strip()


# --- Views ---
class EvaluationView(BaseModel):
    id: uuid.UUID
    time_rating: Optional[int] = None
    weight_rating: Optional[int] = None
    repetitions_rating: Optional[int] = None
    exercise_rating: Optional[int] = None
    comment: Optional[str] = None
    date: datetime

    class Config:
        from_attributes = True


class PlanExerciseView(BaseModel):
    id: uuid.UUID
    exercise_id: uuid.UUID
    exercise_name: str
    level: int
    evaluations: List[EvaluationView] = []


class SeriesView(BaseModel):
    id: uuid.UUID
    name: str
    order_index: int
    exercises: List[PlanExerciseView] = []


class SessionView(BaseModel):
    id: uuid.UUID
    name: str
    order_index: int
    scheduled_date: Optional[datetime] = None
    series: List[SeriesView] = []


class PlanView(BaseModel):
    id: uuid.UUID
    name: str
    month: Optional[str] = None
    client_id: uuid.UUID
    trainer_id: uuid.UUID
    created_at: datetime
    sessions: List[SessionView] = []
    exercises: List[PlanExerciseView] = Field(default_factory=list)


def plan_tree_options():
    series_loader = (
        selectinload(Plan.sessions)
        .selectinload(TrainingSession.series)
        .selectinload(Series.exercises)
    )
    return [
        series_loader.selectinload(PlanExercise.exercise),
        series_loader.selectinload(PlanExercise.evaluations),
    ]


def _plan_exercise_view(item: PlanExercise) -> PlanExerciseView:
    return PlanExerciseView(
        id=item.id,
        exercise_id=item.exercise_id,
        exercise_name=item.exercise.name if item.exercise else "",
        level=item.level,
        evaluations=[EvaluationView.model_validate(e) for e in item.evaluations],
    )


def build_plan_view(plan: Plan) -> PlanView:
    """Render a loaded plan tree, plus a flat list of all its exercises."""
    sessions = []
    flat: list[PlanExerciseView] = []
    for session in plan.sessions:
        series_views = []
        for series in session.series:
            exercises = [_plan_exercise_view(item) for item in series.exercises]
            flat.extend(exercises)
            series_views.append(
                SeriesView(id=series.id, name=series.name, order_index=series.order_index, exercises=exercises)
            )
        sessions.append(
            SessionView(
                id=session.id,
                name=session.name,
                order_index=session.order_index,
                scheduled_date=session.scheduled_date,
                series=series_views,
            )
        )
    return PlanView(
        id=plan.id,
        name=plan.name,
        month=plan.month,
        client_id=plan.client_id,
        trainer_id=plan.trainer_id,
        created_at=plan.created_at,
        sessions=sessions,
        exercises=flat,
    )


def prepare_sessions(sessions: List[SessionInput]) -> List[SessionInput]:
    """Drop exercises without an id or with a non-positive level."""
    return [
        SessionInput(
            name=session.name,
            series=[
                SeriesInput(
                    name=series.name,
                    exercises=[ex for ex in series.exercises if ex.exercise_id and ex.level > 0],
                )
                for series in session.series
            ],
        )
        for session in sessions
    ]


def _has_exercises(sessions: List[SessionInput]) -> bool:
    return any(
        ex.exercise_id for session in sessions for series in session.series for ex in series.exercises
    )


class PlanService:
    @staticmethod
    async def list_for_trainer(db: AsyncSession, trainer_id: uuid.UUID) -> list[PlanView]:
        stmt = (
            select(Plan)
            .where(Plan.trainer_id == trainer_id)
            .options(*plan_tree_options())
            .order_by(Plan.created_at.desc())
        )
        plans = (await db.execute(stmt)).scalars().all()
        return [build_plan_view(plan) for plan in plans]

    @staticmethod
    async def list_for_client(db: AsyncSession, client_id: uuid.UUID) -> list[PlanView]:
        stmt = (
            select(Plan)
            .where(Plan.client_id == client_id)
            .options(*plan_tree_options())
            .order_by(Plan.created_at.desc())
        )
        plans = (await db.execute(stmt)).scalars().all()
        return [build_plan_view(plan) for plan in plans]

    @staticmethod
    async def get_plan_or_404(db: AsyncSession, plan_id: uuid.UUID, *, with_tree: bool = False) -> Plan:
        stmt = select(Plan).where(Plan.id == plan_id)
        if with_tree:
            stmt = stmt.options(*plan_tree_options())
        plan = (await db.execute(stmt)).scalar_one_or_none()
        if plan is None:
            raise HTTPException(status_code=404, detail="Plan not found")
        return plan

    @staticmethod
    def ensure_owned_by_requester_or_admin(plan: Plan, current_user: User, *, action: str) -> None:
        if current_user.role != Role.ADMIN and plan.trainer_id != current_user.id:
            raise HTTPException(status_code=403, detail=f"Cannot {action} plan created by another trainer")

    @staticmethod
    async def get_complete_plan_for_client(db: AsyncSession, plan_id: uuid.UUID, client: Client) -> PlanView:
        stmt = (
            select(Plan)
            .where(Plan.id == plan_id, Plan.client_id == client.id)
            .options(*plan_tree_options())
        )
        plan = (await db.execute(stmt)).scalar_one_or_none()
        if plan is None:
            raise HTTPException(status_code=404, detail="Plan not found")
        return build_plan_view(plan)

    @staticmethod
    async def create_complete_plan(db: AsyncSession, data: PlanCreate, trainer: User) -> Plan:
        """Create a plan with its sessions, series and exercises in one go.

        The caller commits.
        """
        if not data.name or data.client_id is None:
            raise HTTPException(status_code=400, detail="Plan name and client are required")
        sessions = prepare_sessions(data.sessions)
        if not _has_exercises(sessions):
            raise HTTPException(status_code=400, detail="The plan must contain at least one exercise")

        client = await TrainerService.get_client_for_trainer_or_404(db, data.client_id, trainer)

        exercise_ids = {ex.exercise_id for s in sessions for se in s.series for ex in se.exercises}
        result = await db.execute(select(Exercise).where(Exercise.id.in_(exercise_ids)))
        exercises = {exercise.id: exercise for exercise in result.scalars().all()}
        for s in sessions:
            for se in s.series:
                for ex in se.exercises:
                    exercise = exercises.get(ex.exercise_id)
                    if exercise is None:
                        raise HTTPException(status_code=400, detail=f"Exercise {ex.exercise_id} not found")
                    if ex.level > len(exercise.levels or []):
                        raise HTTPException(
                            status_code=400,
                            detail=f"Exercise '{exercise.name}' has no level {ex.level}",
                        )

        plan = Plan(
            id=uuid.uuid4(),
            name=data.name,
            month=data.month,
            client_id=client.id,
            trainer_id=trainer.id,
        )
        for session_index, session_data in enumerate(sessions):
            session = TrainingSession(
                client_id=client.id,
                name=session_data.name.strip() or f"Session {session_index + 1}",
                order_index=session_index,
            )
            for series_index, series_data in enumerate(session_data.series):
                series = Series(
                    client_id=client.id,
                    name=series_data.name.strip() or f"Series {series_index + 1}",
                    order_index=series_index,
                )
                series.exercises = [
                    PlanExercise(
                        plan_id=plan.id,
                        exercise_id=ex.exercise_id,
                        level=ex.level,
                        order_index=exercise_index,
                    )
                    for exercise_index, ex in enumerate(series_data.exercises)
                ]
                session.series.append(series)
            plan.sessions.append(session)

        db.add(plan)
        await db.flush()
        logger.info(
            "Plan %s created by trainer %s for client %s with %s sessions",
            plan.id,
            trainer.id,
            client.id,
            len(plan.sessions),
        )
        return plan
