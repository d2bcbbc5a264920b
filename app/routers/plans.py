import uuid
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import dependencies
from app.core.responses import CreatedId, StandardResponse, created
from app.database import get_db
from app.models.fitness import Evaluation, PlanExercise
from app.models.user import User
from app.services.audit_service import AuditService
from app.services.plan_service import PlanCreate, PlanService, PlanView, build_plan_view

router = APIRouter()


# --- Pydantic Models ---
class PlanCreatedResponse(BaseModel):
    id: uuid.UUID
    name: str
    client_id: uuid.UUID
    month: Optional[str] = None
    sessions_count: int


class PlanUpdate(BaseModel):
    name: Optional[str] = None
    month: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        normalized = value.strip()
        if not normalized:
            raise ValueError("name cannot be blank")
        return normalized


class EvaluationCreate(BaseModel):
    plan_exercise_id: uuid.UUID
    time_rating: Optional[int] = Field(default=None, ge=0, le=5)
    weight_rating: Optional[int] = Field(default=None, ge=0, le=5)
    repetitions_rating: Optional[int] = Field(default=None, ge=0, le=5)
    exercise_rating: Optional[int] = Field(default=None, ge=0, le=5)
    comment: Optional[str] = None


# --- Endpoints ---

@router.get("", response_model=StandardResponse[List[PlanView]])
async def list_plans(
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """List the trainer's plans, newest first, with their full tree."""
    return StandardResponse(data=await PlanService.list_for_trainer(db, current_user.id))


@router.post("", response_model=StandardResponse[PlanCreatedResponse], status_code=status.HTTP_201_CREATED)
async def create_complete_plan(
    data: PlanCreate,
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create a plan together with its sessions, series and exercises."""
    plan = await PlanService.create_complete_plan(db, data, current_user)
    await AuditService.log_action(
        db=db,
        user_id=current_user.id,
        action="CREATE_PLAN",
        target_id=str(plan.id),
        details=f"Created plan {plan.name} for client {plan.client_id}",
    )
    await db.commit()
    return StandardResponse(
        message="Plan created",
        data=PlanCreatedResponse(
            id=plan.id,
            name=plan.name,
            client_id=plan.client_id,
            month=plan.month,
            sessions_count=len(plan.sessions),
        ),
    )


@router.get("/{plan_id}", response_model=StandardResponse[PlanView])
async def get_plan(
    plan_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    plan = await PlanService.get_plan_or_404(db, plan_id, with_tree=True)
    PlanService.ensure_owned_by_requester_or_admin(plan, current_user, action="view")
    return StandardResponse(data=build_plan_view(plan))


@router.put("/{plan_id}", response_model=StandardResponse[CreatedId])
async def update_plan(
    plan_id: uuid.UUID,
    data: PlanUpdate,
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    plan = await PlanService.get_plan_or_404(db, plan_id)
    PlanService.ensure_owned_by_requester_or_admin(plan, current_user, action="edit")
    for field, value in data.model_dump(exclude_unset=True).items():
        if field == "name" and value is None:
            continue
        setattr(plan, field, value)
    await AuditService.log_action(
        db=db,
        user_id=current_user.id,
        action="UPDATE_PLAN",
        target_id=str(plan.id),
        details=f"Updated plan {plan.name}",
    )
    await db.commit()
    return created(plan.id, "Plan updated successfully")


@router.delete("/{plan_id}", response_model=StandardResponse)
async def delete_plan(
    plan_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Delete a plan with its sessions, series, exercises and evaluations."""
    plan = await PlanService.get_plan_or_404(db, plan_id, with_tree=True)
    PlanService.ensure_owned_by_requester_or_admin(plan, current_user, action="delete")
    await db.delete(plan)
    await AuditService.log_action(
        db=db,
        user_id=current_user.id,
        action="DELETE_PLAN",
        target_id=str(plan_id),
        details=f"Deleted plan {plan.name}",
    )
    await db.commit()
    return StandardResponse(message="Plan deleted")


@router.post(
    "/{plan_id}/evaluations",
    response_model=StandardResponse[CreatedId],
    status_code=status.HTTP_201_CREATED,
)
async def add_evaluation(
    plan_id: uuid.UUID,
    data: EvaluationCreate,
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Rate how the client performed one exercise of the plan."""
    plan = await PlanService.get_plan_or_404(db, plan_id)
    PlanService.ensure_owned_by_requester_or_admin(plan, current_user, action="evaluate")

    plan_exercise = await db.get(PlanExercise, data.plan_exercise_id)
    if plan_exercise is None or plan_exercise.plan_id != plan.id:
        raise HTTPException(status_code=404, detail="Plan exercise not found")

    evaluation = Evaluation(**data.model_dump())
    db.add(evaluation)
    await db.flush()
    await AuditService.log_action(
        db=db,
        user_id=current_user.id,
        action="ADD_EVALUATION",
        target_id=str(evaluation.id),
        details=f"Evaluated exercise {plan_exercise.id} of plan {plan.id}",
    )
    await db.commit()
    return created(evaluation.id, "Evaluation recorded")
