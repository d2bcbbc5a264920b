import uuid
from datetime import datetime
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import dependencies
from app.auth.schemas import BrandResponse
from app.core.responses import StandardResponse
from app.database import get_db
from app.models.coaching import Client
from app.models.enums import InvitationStatus
from app.models.user import User
from app.services.audit_service import AuditService
from app.services.invitation_service import InvitationService
from app.services.plan_service import PlanService, PlanView
from app.services.session_service import ScheduledSession, SessionService, TrainingSessionView
from app.services.trainer_service import TrainerService, client_theme

router = APIRouter()


# --- Pydantic Models ---
class ClientProfileResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    avatar: Optional[str] = None
    trainer_id: Optional[uuid.UUID] = None
    current_trainer_id: Optional[uuid.UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PendingInvitationResponse(BaseModel):
    id: uuid.UUID
    email: str
    trainer_id: uuid.UUID
    trainer_name: str
    status: InvitationStatus
    created_at: datetime
    expires_at: datetime

    class Config:
        from_attributes = True


class InvitationDecision(BaseModel):
    invitation_id: uuid.UUID
    status: InvitationStatus
    client_id: Optional[uuid.UUID] = None


class LinkedTrainerResponse(BaseModel):
    id: uuid.UUID
    name: str
    is_primary: bool
    branding: BrandResponse


class SelectTrainerRequest(BaseModel):
    trainer_id: uuid.UUID


class ScheduleRequest(BaseModel):
    scheduled_date: Optional[datetime] = None


class ScheduleResult(BaseModel):
    session_id: uuid.UUID
    scheduled_date: Optional[datetime] = None


# --- Endpoints ---

@router.get("/me", response_model=StandardResponse[ClientProfileResponse])
async def read_client_me(
    client: Annotated[Client, Depends(dependencies.get_current_client)],
):
    return StandardResponse(data=ClientProfileResponse.model_validate(client))


@router.get("/invitations", response_model=StandardResponse[List[PendingInvitationResponse]])
async def list_pending_invitations(
    current_user: Annotated[User, Depends(dependencies.get_current_client_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Pending, unexpired invitations addressed to the caller's e-mail."""
    invitations = await InvitationService.list_pending_for_email(db, current_user.email)
    return StandardResponse(data=[PendingInvitationResponse.model_validate(i) for i in invitations])


@router.post("/invitations/{invitation_id}/accept", response_model=StandardResponse[InvitationDecision])
async def accept_invitation(
    invitation_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_client_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    client = await InvitationService.accept_for_user(db, invitation_id, current_user)
    await AuditService.log_action(
        db=db,
        user_id=current_user.id,
        action="ACCEPT_INVITATION",
        target_id=str(invitation_id),
        details=f"Client {client.id} accepted invitation {invitation_id}",
    )
    await db.commit()
    return StandardResponse(
        message="Invitation accepted",
        data=InvitationDecision(invitation_id=invitation_id, status=InvitationStatus.ACCEPTED, client_id=client.id),
    )


@router.post("/invitations/{invitation_id}/reject", response_model=StandardResponse[InvitationDecision])
async def reject_invitation(
    invitation_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_client_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    invitation = await InvitationService.reject_for_user(db, invitation_id, current_user)
    await AuditService.log_action(
        db=db,
        user_id=current_user.id,
        action="REJECT_INVITATION",
        target_id=str(invitation.id),
        details=f"Rejected invitation from trainer {invitation.trainer_id}",
    )
    await db.commit()
    return StandardResponse(
        message="Invitation rejected",
        data=InvitationDecision(invitation_id=invitation.id, status=invitation.status),
    )


@router.get("/trainers", response_model=StandardResponse[List[LinkedTrainerResponse]])
async def list_my_trainers(
    client: Annotated[Client, Depends(dependencies.get_current_client)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """The client's trainers, primary first, with their branding."""
    trainers = await TrainerService.list_client_trainers(db, client)
    return StandardResponse(
        data=[
            LinkedTrainerResponse(
                id=trainer.id,
                name=trainer.name,
                is_primary=trainer.is_primary,
                branding=BrandResponse(**vars(trainer.branding)),
            )
            for trainer in trainers
        ]
    )


@router.put("/trainer", response_model=StandardResponse[BrandResponse])
async def select_trainer(
    data: SelectTrainerRequest,
    client: Annotated[Client, Depends(dependencies.get_current_client)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    branding = await TrainerService.select_trainer(db, client, data.trainer_id)
    await db.commit()
    return StandardResponse(data=BrandResponse(**vars(branding)), message="Trainer selected")


@router.get("/theme", response_model=StandardResponse[BrandResponse])
async def read_theme(
    client: Annotated[Client, Depends(dependencies.get_current_client)],
):
    return StandardResponse(data=BrandResponse(**vars(client_theme(client))))


@router.get("/plans", response_model=StandardResponse[List[PlanView]])
async def list_my_plans(
    client: Annotated[Client, Depends(dependencies.get_current_client)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return StandardResponse(data=await PlanService.list_for_client(db, client.id))


@router.get("/plans/{plan_id}", response_model=StandardResponse[PlanView])
async def get_my_plan(
    plan_id: uuid.UUID,
    client: Annotated[Client, Depends(dependencies.get_current_client)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return StandardResponse(data=await PlanService.get_complete_plan_for_client(db, plan_id, client))


@router.get("/sessions/scheduled", response_model=StandardResponse[List[ScheduledSession]])
async def list_scheduled_sessions(
    client: Annotated[Client, Depends(dependencies.get_current_client)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return StandardResponse(data=await SessionService.list_scheduled(db, client))


@router.put("/sessions/{session_id}/schedule", response_model=StandardResponse[ScheduleResult])
async def schedule_session(
    session_id: uuid.UUID,
    data: ScheduleRequest,
    client: Annotated[Client, Depends(dependencies.get_current_client)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Set or clear the date of one of the client's sessions."""
    session = await SessionService.schedule(db, session_id, client, data.scheduled_date)
    scheduled_date = session.scheduled_date
    await db.commit()
    return StandardResponse(
        message="Session date cleared" if scheduled_date is None else "Session scheduled",
        data=ScheduleResult(session_id=session.id, scheduled_date=scheduled_date),
    )


@router.get("/sessions/{session_id}", response_model=StandardResponse[TrainingSessionView])
async def read_session(
    session_id: uuid.UUID,
    client: Annotated[Client, Depends(dependencies.get_current_client)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return StandardResponse(data=await SessionService.session_view(db, session_id, client))
