import uuid
from datetime import datetime
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, EmailStr
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import dependencies
from app.core.responses import StandardResponse
from app.database import get_db
from app.models.coaching import Client, ClientInvitation
from app.models.enums import InvitationStatus
from app.models.fitness import Plan
from app.models.user import User
from app.services.audit_service import AuditService
from app.services.invitation_service import InvitationService, invitation_link
from app.services.plan_service import PlanView, build_plan_view, plan_tree_options
from app.services.trainer_service import TrainerService, linked_clients_stmt

router = APIRouter()


# --- Pydantic Models ---
class ClientResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    avatar: Optional[str] = None
    user_id: Optional[uuid.UUID] = None
    trainer_id: Optional[uuid.UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ClientDetailResponse(ClientResponse):
    plans: List[PlanView] = []


class InviteRequest(BaseModel):
    email: EmailStr


class InvitationResponse(BaseModel):
    id: uuid.UUID
    email: str
    status: InvitationStatus
    expires_at: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class InviteResult(BaseModel):
    invitation: InvitationResponse
    invitation_link: str
    client_exists: bool


# --- Endpoints ---

@router.get("", response_model=StandardResponse[List[ClientResponse]])
async def list_clients(
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """List clients linked to the current trainer."""
    stmt = linked_clients_stmt(current_user.id).order_by(Client.name)
    clients = (await db.execute(stmt)).scalars().all()
    return StandardResponse(data=[ClientResponse.model_validate(c) for c in clients])


@router.get("/invitations", response_model=StandardResponse[List[InvitationResponse]])
async def list_invitations(
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
    search: Optional[str] = Query(None),
):
    stmt = (
        select(ClientInvitation)
        .where(ClientInvitation.trainer_id == current_user.id)
        .order_by(ClientInvitation.created_at.desc())
    )
    if search and search.strip():
        stmt = stmt.where(func.lower(ClientInvitation.email).contains(search.strip().lower(), autoescape=True))
    invitations = (await db.execute(stmt)).scalars().all()
    return StandardResponse(data=[InvitationResponse.model_validate(i) for i in invitations])


@router.post("/invitations", response_model=StandardResponse[InviteResult], status_code=status.HTTP_201_CREATED)
async def invite_client(
    data: InviteRequest,
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Invite a client by e-mail and return the sign-up link."""
    invitation, client_exists = await InvitationService.create(db, current_user, data.email)
    await AuditService.log_action(
        db=db,
        user_id=current_user.id,
        action="INVITE_CLIENT",
        target_id=str(invitation.id),
        details=f"Invited {invitation.email}",
    )
    await db.commit()
    return StandardResponse(
        message="Invitation created",
        data=InviteResult(
            invitation=InvitationResponse.model_validate(invitation),
            invitation_link=invitation_link(invitation),
            client_exists=client_exists,
        ),
    )


@router.post("/invitations/{invitation_id}/resend", response_model=StandardResponse[InviteResult])
async def resend_invitation(
    invitation_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    invitation = await db.get(ClientInvitation, invitation_id)
    if invitation is None or invitation.trainer_id != current_user.id:
        raise HTTPException(status_code=404, detail="Invitation not found")
    client_exists = await db.scalar(select(func.count()).select_from(Client).where(Client.email == invitation.email))
    return StandardResponse(
        message="Invitation link generated",
        data=InviteResult(
            invitation=InvitationResponse.model_validate(invitation),
            invitation_link=invitation_link(invitation),
            client_exists=bool(client_exists),
        ),
    )


@router.get("/{client_id}", response_model=StandardResponse[ClientDetailResponse])
async def get_client(
    client_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Client details with the plans this trainer assigned."""
    client = await TrainerService.get_client_for_trainer_or_404(db, client_id, current_user)
    stmt = (
        select(Plan)
        .where(Plan.client_id == client.id, Plan.trainer_id == current_user.id)
        .options(*plan_tree_options())
        .order_by(Plan.created_at.desc())
    )
    plans = (await db.execute(stmt)).scalars().all()
    detail = ClientDetailResponse.model_validate(client)
    detail.plans = [build_plan_view(plan) for plan in plans]
    return StandardResponse(data=detail)
