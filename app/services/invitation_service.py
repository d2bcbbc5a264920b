from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import security
from app.config import settings
from app.models.coaching import Client, ClientInvitation
from app.models.enums import InvitationStatus
from app.models.user import User
from app.services.trainer_service import DEFAULT_TRAINER_NAME, TrainerService

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_NAME = "Client"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def invitation_link(invitation: ClientInvitation) -> str:
    query = urlencode({"token": invitation.token, "email": invitation.email})
    return f"{settings.FRONTEND_URL.rstrip('/')}/auth?{query}"


def is_expired(invitation: ClientInvitation, now: datetime | None = None) -> bool:
    now = now or datetime.now(timezone.utc)
    return as_utc(invitation.expires_at) <= now


@dataclass
class PendingInvitation:
    id: uuid.UUID
    email: str
    trainer_id: uuid.UUID
    trainer_name: str
    status: InvitationStatus
    created_at: datetime
    expires_at: datetime


class InvitationService:
    @staticmethod
    async def create(db: AsyncSession, trainer: User, email: str) -> tuple[ClientInvitation, bool]:
        """Create an invitation; returns it with whether a client with that e-mail already exists."""
        email = normalize_email(email)
        duplicate = await db.execute(
            select(ClientInvitation.id).where(
                ClientInvitation.email == email,
                ClientInvitation.trainer_id == trainer.id,
            )
        )
        if duplicate.first() is not None:
            raise HTTPException(status_code=409, detail="This client has already been invited")

        invitation = ClientInvitation(
            email=email,
            trainer_id=trainer.id,
            token=security.generate_invitation_token(),
            status=InvitationStatus.PENDING,
            expires_at=datetime.now(timezone.utc) + timedelta(days=settings.INVITATION_EXPIRE_DAYS),
        )
        db.add(invitation)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise HTTPException(status_code=409, detail="This client has already been invited")

        existing_client = await db.execute(select(Client.id).where(Client.email == email))
        return invitation, existing_client.first() is not None

    @staticmethod
    async def list_pending_for_email(db: AsyncSession, email: str) -> list[PendingInvitation]:
        stmt = (
            select(ClientInvitation, User)
            .join(User, User.id == ClientInvitation.trainer_id)
            .where(
                ClientInvitation.email == normalize_email(email),
                ClientInvitation.status == InvitationStatus.PENDING,
            )
            .order_by(ClientInvitation.created_at.desc())
        )
        rows = (await db.execute(stmt)).all()
        now = datetime.now(timezone.utc)
        return [
            PendingInvitation(
                id=invitation.id,
                email=invitation.email,
                trainer_id=invitation.trainer_id,
                trainer_name=trainer.name or DEFAULT_TRAINER_NAME,
                status=invitation.status,
                created_at=invitation.created_at,
                expires_at=invitation.expires_at,
            )
            for invitation, trainer in rows
            if not is_expired(invitation, now)
        ]

    @staticmethod
    async def get_by_token(db: AsyncSession, token: str) -> ClientInvitation | None:
        result = await db.execute(select(ClientInvitation).where(ClientInvitation.token == token))
        return result.scalar_one_or_none()

    @staticmethod
    async def _get_for_email_or_404(db: AsyncSession, invitation_id: uuid.UUID, email: str) -> ClientInvitation:
        invitation = await db.get(ClientInvitation, invitation_id)
        if invitation is None or invitation.email != normalize_email(email):
            raise HTTPException(status_code=404, detail="Invitation not found")
        return invitation

    @staticmethod
    def ensure_acceptable(invitation: ClientInvitation) -> None:
        if invitation.status != InvitationStatus.PENDING:
            raise HTTPException(status_code=400, detail=f"Invitation is already {invitation.status.value.lower()}")
        if is_expired(invitation):
            raise HTTPException(status_code=400, detail="Invitation has expired")

    @staticmethod
    async def accept(db: AsyncSession, invitation: ClientInvitation, user: User) -> Client:
        """Accept an invitation for ``user`` and link the inviting trainer.

        Creates the client record on first acceptance. The caller commits.
        """
        InvitationService.ensure_acceptable(invitation)
        invitation.status = InvitationStatus.ACCEPTED

        result = await db.execute(select(Client).where(Client.email == invitation.email))
        client = result.scalar_one_or_none()
        if client is None:
            local_part = invitation.email.split("@")[0]
            client = Client(
                id=uuid.uuid4(),
                email=invitation.email,
                name=local_part or DEFAULT_CLIENT_NAME,
                user_id=user.id,
            )
            db.add(client)
        elif client.user_id is None:
            client.user_id = user.id

        await TrainerService.link_trainer(db, client, invitation.trainer_id)
        logger.info("Invitation %s accepted by %s for trainer %s", invitation.id, invitation.email, invitation.trainer_id)
        return client

    @staticmethod
    async def accept_for_user(db: AsyncSession, invitation_id: uuid.UUID, user: User) -> Client:
        invitation = await InvitationService._get_for_email_or_404(db, invitation_id, user.email)
        return await InvitationService.accept(db, invitation, user)

    @staticmethod
    async def reject_for_user(db: AsyncSession, invitation_id: uuid.UUID, user: User) -> ClientInvitation:
        invitation = await InvitationService._get_for_email_or_404(db, invitation_id, user.email)
        if invitation.status != InvitationStatus.PENDING:
            raise HTTPException(status_code=400, detail=f"Invitation is already {invitation.status.value.lower()}")
        invitation.status = InvitationStatus.REJECTED
        return invitation
