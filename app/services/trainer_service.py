from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.coaching import Client, ClientTrainerRelationship, TrainerBrand
from app.models.enums import Role
from app.models.user import User

logger = logging.getLogger(__name__)

DEFAULT_PRIMARY_COLOR = "#9b87f5"
DEFAULT_SECONDARY_COLOR = "#E5DEFF"
DEFAULT_ACCENT_COLOR = "#7E69AB"
DEFAULT_TRAINER_NAME = "Trainer"


@dataclass
class Branding:
    logo_url: str | None
    primary_color: str
    secondary_color: str
    accent_color: str


@dataclass
class LinkedTrainer:
    id: uuid.UUID
    name: str
    is_primary: bool
    branding: Branding


def resolve_branding(brand: TrainerBrand | None) -> Branding:
    if brand is None:
        return Branding(
            logo_url=None,
            primary_color=DEFAULT_PRIMARY_COLOR,
            secondary_color=DEFAULT_SECONDARY_COLOR,
            accent_color=DEFAULT_ACCENT_COLOR,
        )
    return Branding(
        logo_url=brand.logo_url,
        primary_color=brand.primary_color or DEFAULT_PRIMARY_COLOR,
        secondary_color=brand.secondary_color or DEFAULT_SECONDARY_COLOR,
        accent_color=brand.accent_color or DEFAULT_ACCENT_COLOR,
    )


def client_theme(client: Client) -> Branding:
    return Branding(
        logo_url=client.current_theme_logo_url,
        primary_color=client.current_theme_primary_color or DEFAULT_PRIMARY_COLOR,
        secondary_color=client.current_theme_secondary_color or DEFAULT_SECONDARY_COLOR,
        accent_color=client.current_theme_accent_color or DEFAULT_ACCENT_COLOR,
    )


def linked_clients_stmt(trainer_id: uuid.UUID):
    return (
        select(Client)
        .join(ClientTrainerRelationship, ClientTrainerRelationship.client_id == Client.id)
        .where(ClientTrainerRelationship.trainer_id == trainer_id)
    )


class TrainerService:
    @staticmethod
    async def get_brand(db: AsyncSession, trainer_id: uuid.UUID) -> TrainerBrand | None:
        result = await db.execute(select(TrainerBrand).where(TrainerBrand.trainer_id == trainer_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def is_linked(db: AsyncSession, client_id: uuid.UUID, trainer_id: uuid.UUID) -> bool:
        result = await db.execute(
            select(ClientTrainerRelationship.id).where(
                ClientTrainerRelationship.client_id == client_id,
                ClientTrainerRelationship.trainer_id == trainer_id,
            )
        )
        return result.first() is not None

    @staticmethod
    async def get_client_for_trainer_or_404(
        db: AsyncSession,
        client_id: uuid.UUID,
        current_user: User,
    ) -> Client:
        client = await db.get(Client, client_id)
        if client is None:
            raise HTTPException(status_code=404, detail="Client not found")
        if current_user.role != Role.ADMIN and not await TrainerService.is_linked(db, client.id, current_user.id):
            raise HTTPException(status_code=404, detail="Client not found")
        return client

    @staticmethod
    async def link_trainer(db: AsyncSession, client: Client, trainer_id: uuid.UUID) -> ClientTrainerRelationship:
        """Attach a trainer to a client; the first trainer of a client becomes primary."""
        result = await db.execute(
            select(ClientTrainerRelationship).where(
                ClientTrainerRelationship.client_id == client.id,
                ClientTrainerRelationship.trainer_id == trainer_id,
            )
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            return existing

        make_primary = client.trainer_id is None
        relationship = ClientTrainerRelationship(
            client_id=client.id,
            trainer_id=trainer_id,
            is_primary=make_primary,
        )
        db.add(relationship)
        if make_primary:
            client.trainer_id = trainer_id
        return relationship

    @staticmethod
    async def list_client_trainers(db: AsyncSession, client: Client) -> list[LinkedTrainer]:
        stmt = (
            select(ClientTrainerRelationship, User, TrainerBrand)
            .join(User, User.id == ClientTrainerRelationship.trainer_id)
            .outerjoin(TrainerBrand, TrainerBrand.trainer_id == User.id)
            .where(ClientTrainerRelationship.client_id == client.id)
        )
        rows = (await db.execute(stmt)).all()
        trainers = [
            LinkedTrainer(
                id=user.id,
                name=user.name or DEFAULT_TRAINER_NAME,
                is_primary=rel.is_primary,
                branding=resolve_branding(brand),
            )
            for rel, user, brand in rows
        ]
        trainers.sort(key=lambda t: (not t.is_primary, t.name.lower()))
        return trainers

    @staticmethod
    async def select_trainer(db: AsyncSession, client: Client, trainer_id: uuid.UUID) -> Branding:
        if not await TrainerService.is_linked(db, client.id, trainer_id):
            raise HTTPException(status_code=400, detail="Trainer is not linked to this client")

        branding = resolve_branding(await TrainerService.get_brand(db, trainer_id))
        client.current_trainer_id = trainer_id
        client.current_theme_primary_color = branding.primary_color
        client.current_theme_secondary_color = branding.secondary_color
        client.current_theme_accent_color = branding.accent_color
        client.current_theme_logo_url = branding.logo_url
        return branding

    @staticmethod
    async def update_client_trainers(
        db: AsyncSession,
        client: Client,
        trainer_ids: list[uuid.UUID],
    ) -> dict[str, list[str]]:
        """Replace the client's trainer set; the first id becomes primary."""
        trainer_ids = list(dict.fromkeys(trainer_ids))
        if trainer_ids:
            found = await db.execute(
                select(User.id).where(User.id.in_(trainer_ids), User.role.in_([Role.TRAINER, Role.ADMIN]))
            )
            known = set(found.scalars().all())
            unknown = [str(tid) for tid in trainer_ids if tid not in known]
            if unknown:
                raise HTTPException(status_code=400, detail=f"Unknown trainer ids: {', '.join(unknown)}")

        result = await db.execute(
            select(ClientTrainerRelationship).where(ClientTrainerRelationship.client_id == client.id)
        )
        existing = {rel.trainer_id: rel for rel in result.scalars().all()}

        to_add = [tid for tid in trainer_ids if tid not in existing]
        to_remove = [tid for tid in existing if tid not in trainer_ids]

        for tid in to_remove:
            await db.delete(existing.pop(tid))

        primary_id = trainer_ids[0] if trainer_ids else None
        for tid, rel in existing.items():
            rel.is_primary = tid == primary_id
        for tid in to_add:
            db.add(ClientTrainerRelationship(client_id=client.id, trainer_id=tid, is_primary=tid == primary_id))

        client.trainer_id = primary_id
        client.current_trainer_id = primary_id
        logger.info(
            "Updated trainers for client %s: added=%s removed=%s primary=%s",
            client.id,
            len(to_add),
            len(to_remove),
            primary_id,
        )
        return {
            "added": [str(tid) for tid in to_add],
            "removed": [str(tid) for tid in to_remove],
        }
