import re
import uuid
from datetime import datetime
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import dependencies
from app.core.responses import CreatedId, StandardResponse, created
from app.database import get_db
from app.models.enums import EXERCISE_CATEGORY_LABELS, ExerciseCategory, Role
from app.models.fitness import Exercise, PlanExercise
from app.models.user import User
from app.services.audit_service import AuditService

router = APIRouter()

YOUTUBE_URL_RE = re.compile(
    r"^(https?://)?(www\.)?(youtube\.com/(?:embed/|v/|watch\?v=)|youtu\.be/)([\w-]{11})(\S*)?$"
)


# --- Pydantic Models ---
class ExerciseLevelData(BaseModel):
    level: Optional[int] = None
    video: str = ""
    repetitions: int = Field(default=0, ge=0)
    weight: float = Field(default=0, ge=0)

    @field_validator("video")
    @classmethod
    def validate_video(cls, value: str) -> str:
        value = (value or "").strip()
        if value and not YOUTUBE_URL_RE.match(value):
            raise ValueError("video must be a YouTube link")
        return value


class ExerciseCreate(BaseModel):
    name: str
    description: Optional[str] = None
    categories: List[ExerciseCategory]
    levels: List[ExerciseLevelData]

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("name cannot be blank")
        return normalized

    @field_validator("categories")
    @classmethod
    def validate_categories(cls, value: List[ExerciseCategory]) -> List[ExerciseCategory]:
        if not value:
            raise ValueError("at least one category is required")
        return list(dict.fromkeys(value))

    @field_validator("levels")
    @classmethod
    def renumber_levels(cls, value: List[ExerciseLevelData]) -> List[ExerciseLevelData]:
        if not value:
            raise ValueError("at least one level is required")
        return [level.model_copy(update={"level": index}) for index, level in enumerate(value, start=1)]


class ExerciseResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    categories: List[str]
    levels: List[ExerciseLevelData]
    created_by: Optional[uuid.UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CategoryOption(BaseModel):
    value: ExerciseCategory
    label: str


async def _get_exercise_or_404(db: AsyncSession, exercise_id: uuid.UUID) -> Exercise:
    exercise = await db.get(Exercise, exercise_id)
    if exercise is None:
        raise HTTPException(status_code=404, detail="Exercise not found")
    return exercise


def _ensure_owned_by_requester_or_admin(exercise: Exercise, current_user: User, *, action: str) -> None:
    if current_user.role != Role.ADMIN and exercise.created_by != current_user.id:
        raise HTTPException(status_code=403, detail=f"Cannot {action} exercise created by another trainer")


def _apply(exercise: Exercise, data: ExerciseCreate) -> None:
    exercise.name = data.name
    exercise.description = data.description
    exercise.categories = [category.value for category in data.categories]
    exercise.levels = [level.model_dump() for level in data.levels]


# --- Endpoints ---

@router.get("/categories", response_model=StandardResponse[List[CategoryOption]])
async def list_categories(
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
):
    return StandardResponse(
        data=[CategoryOption(value=category, label=label) for category, label in EXERCISE_CATEGORY_LABELS.items()]
    )


@router.get("", response_model=StandardResponse[List[ExerciseResponse]])
async def list_exercises(
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
    search: Optional[str] = Query(None),
    categories: Optional[List[ExerciseCategory]] = Query(None),
):
    """List the exercise library, filtered by name and categories."""
    stmt = select(Exercise).order_by(Exercise.name)
    if search and search.strip():
        stmt = stmt.where(func.lower(Exercise.name).contains(search.strip().lower(), autoescape=True))
    exercises = (await db.execute(stmt)).scalars().all()
    if categories:
        wanted = {category.value for category in categories}
        exercises = [e for e in exercises if wanted.intersection(e.categories or [])]
    return StandardResponse(data=[ExerciseResponse.model_validate(e) for e in exercises])


@router.post("", response_model=StandardResponse[CreatedId])
async def create_exercise(
    data: ExerciseCreate,
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create a new exercise in the library."""
    exercise = Exercise(created_by=current_user.id)
    _apply(exercise, data)
    db.add(exercise)
    await db.flush()
    await AuditService.log_action(
        db=db,
        user_id=current_user.id,
        action="CREATE_EXERCISE",
        target_id=str(exercise.id),
        details=f"Created exercise {exercise.name}",
    )
    await db.commit()
    return created(exercise.id, "Exercise created")


@router.get("/{exercise_id}", response_model=StandardResponse[ExerciseResponse])
async def get_exercise(
    exercise_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    exercise = await _get_exercise_or_404(db, exercise_id)
    return StandardResponse(data=ExerciseResponse.model_validate(exercise))


@router.put("/{exercise_id}", response_model=StandardResponse[ExerciseResponse])
async def update_exercise(
    exercise_id: uuid.UUID,
    data: ExerciseCreate,
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    exercise = await _get_exercise_or_404(db, exercise_id)
    _ensure_owned_by_requester_or_admin(exercise, current_user, action="edit")
    _apply(exercise, data)
    await AuditService.log_action(
        db=db,
        user_id=current_user.id,
        action="UPDATE_EXERCISE",
        target_id=str(exercise.id),
        details=f"Updated exercise {exercise.name}",
    )
    await db.commit()
    await db.refresh(exercise)
    return StandardResponse(data=ExerciseResponse.model_validate(exercise), message="Exercise updated")


@router.delete("/{exercise_id}", response_model=StandardResponse)
async def delete_exercise(
    exercise_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    exercise = await _get_exercise_or_404(db, exercise_id)
    _ensure_owned_by_requester_or_admin(exercise, current_user, action="delete")

    in_use = await db.scalar(
        select(func.count()).select_from(PlanExercise).where(PlanExercise.exercise_id == exercise.id)
    )
    if in_use:
        raise HTTPException(status_code=409, detail="Exercise is used by existing plans")

    await db.delete(exercise)
    await AuditService.log_action(
        db=db,
        user_id=current_user.id,
        action="DELETE_EXERCISE",
        target_id=str(exercise_id),
        details=f"Deleted exercise {exercise.name}",
    )
    await db.commit()
    return StandardResponse(message="Exercise deleted")
