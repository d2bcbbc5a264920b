import logging
import uuid
from datetime import datetime
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.auth import dependencies, security
from app.auth.schemas import UserResponse
from app.core.responses import StandardResponse
from app.database import get_db
from app.models.coaching import Client
from app.models.enums import Role
from app.models.user import User
from app.services.audit_service import AuditService
from app.services.rls_service import RLSService, TableRLSStatus
from app.services.trainer_service import TrainerService

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Pydantic Models ---
class AdminUserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    name: str = Field(min_length=1, max_length=120)
    role: Role = Role.CLIENT
    is_admin: bool = False

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("name cannot be blank")
        return normalized


class AdminUserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=120)
    role: Optional[Role] = None
    is_admin: Optional[bool] = None
    is_active: Optional[bool] = None
    password: Optional[str] = Field(default=None, min_length=8)


class RoleChange(BaseModel):
    role: Role


class RoleStats(BaseModel):
    total: int
    admins: int
    trainers: int
    clients: int


class AdminClientResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    user_id: Optional[uuid.UUID] = None
    trainer_id: Optional[uuid.UUID] = None
    current_trainer_id: Optional[uuid.UUID] = None
    trainer_ids: List[uuid.UUID] = []
    created_at: datetime


class ClientTrainersUpdate(BaseModel):
    trainer_ids: List[uuid.UUID]


class ClientTrainersResult(BaseModel):
    client_id: uuid.UUID
    trainer_ids: List[uuid.UUID]
    added: List[uuid.UUID]
    removed: List[uuid.UUID]


class RLSStatusResponse(BaseModel):
    table: str
    rls_enabled: bool
    policies: List[str] = []

    class Config:
        from_attributes = True


class AuditLogResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID | None
    action: str
    target_id: str | None
    timestamp: datetime
    details: str | None

    class Config:
        from_attributes = True


async def _get_user_or_404(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def _get_client_or_404(db: AsyncSession, client_id: uuid.UUID) -> Client:
    client = await db.get(Client, client_id)
    if client is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


async def _log_and_commit(db: AsyncSession, *, user_id, action: str, target_id: str, details: str) -> None:
    await AuditService.log_action(db=db, user_id=user_id, action=action, target_id=target_id, details=details)
    await db.commit()


# --- Users ---

@router.get("/users", response_model=StandardResponse[List[UserResponse]])
async def list_users(
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    role: Optional[Role] = Query(None),
):
    stmt = select(User).order_by(User.created_at.desc())
    if role is not None:
        stmt = stmt.where(User.role == role)
    users = (await db.execute(stmt)).scalars().all()
    return StandardResponse(data=[UserResponse.model_validate(u) for u in users])


@router.post("/users", response_model=StandardResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def create_user(
    data: AdminUserCreate,
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    existing = await db.execute(select(User.id).where(User.email == data.email))
    if existing.first() is not None:
        raise HTTPException(status_code=400, detail="The user with this email already exists in the system.")

    user = User(
        email=data.email,
        hashed_password=security.get_password_hash(data.password),
        name=data.name,
        role=Role.ADMIN if data.is_admin else data.role,
        registration_type="admin",
        is_active=True,
    )
    db.add(user)
    await db.flush()
    await _log_and_commit(
        db,
        user_id=current_user.id,
        action="CREATE_USER",
        target_id=str(user.id),
        details=f"Created user {user.email} with role {user.role.value}",
    )
    return StandardResponse(data=UserResponse.model_validate(user), message="User created successfully")


@router.put("/users/{user_id}", response_model=StandardResponse[UserResponse])
async def update_user(
    user_id: uuid.UUID,
    data: AdminUserUpdate,
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Admin updates user details."""
    user = await _get_user_or_404(db, user_id)
    update_data = data.model_dump(exclude_unset=True)

    if update_data.get("name") is not None:
        user.name = update_data["name"].strip() or user.name
    if update_data.get("role") is not None:
        user.role = update_data["role"]
    if update_data.get("is_admin"):
        user.role = Role.ADMIN
    if update_data.get("is_active") is not None:
        user.is_active = update_data["is_active"]
    if update_data.get("password"):
        user.hashed_password = security.get_password_hash(update_data["password"])

    await _log_and_commit(
        db,
        user_id=current_user.id,
        action="UPDATE_USER",
        target_id=str(user.id),
        details=f"Updated fields: {', '.join(sorted(update_data)) or 'none'}",
    )
    await db.refresh(user)
    return StandardResponse(data=UserResponse.model_validate(user), message="User updated successfully")


@router.put("/users/{user_id}/role", response_model=StandardResponse[UserResponse])
async def change_role(
    user_id: uuid.UUID,
    data: RoleChange,
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    user = await _get_user_or_404(db, user_id)
    previous = user.role
    user.role = data.role
    await _log_and_commit(
        db,
        user_id=current_user.id,
        action="CHANGE_ROLE",
        target_id=str(user.id),
        details=f"Changed role from {previous.value} to {data.role.value}",
    )
    await db.refresh(user)
    return StandardResponse(data=UserResponse.model_validate(user), message="Role updated")


@router.post("/users/{user_id}/toggle-admin", response_model=StandardResponse[UserResponse])
async def toggle_admin(
    user_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Grant admin, or demote an admin to client."""
    user = await _get_user_or_404(db, user_id)
    user.role = Role.CLIENT if user.role == Role.ADMIN else Role.ADMIN
    await _log_and_commit(
        db,
        user_id=current_user.id,
        action="TOGGLE_ADMIN",
        target_id=str(user.id),
        details=f"Role is now {user.role.value}",
    )
    await db.refresh(user)
    return StandardResponse(data=UserResponse.model_validate(user), message="Admin flag toggled")


@router.delete("/users/{user_id}", response_model=StandardResponse)
async def delete_user(
    user_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    user = await _get_user_or_404(db, user_id)
    email = user.email
    await db.delete(user)
    await _log_and_commit(
        db,
        user_id=current_user.id,
        action="DELETE_USER",
        target_id=str(user_id),
        details=f"Deleted user {email}",
    )
    return StandardResponse(message="User deleted")


@router.get("/stats", response_model=StandardResponse[RoleStats])
async def get_stats(
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    rows = (await db.execute(select(User.role, func.count(User.id)).group_by(User.role))).all()
    counts = {role: count for role, count in rows}
    return StandardResponse(
        data=RoleStats(
            total=sum(counts.values()),
            admins=counts.get(Role.ADMIN, 0),
            trainers=counts.get(Role.TRAINER, 0),
            clients=counts.get(Role.CLIENT, 0),
        )
    )


# --- Client / trainer assignment ---

@router.get("/clients", response_model=StandardResponse[List[AdminClientResponse]])
async def list_clients(
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    stmt = select(Client).options(selectinload(Client.trainer_links)).order_by(Client.name)
    clients = (await db.execute(stmt)).scalars().all()
    return StandardResponse(
        data=[
            AdminClientResponse(
                id=client.id,
                email=client.email,
                name=client.name,
                user_id=client.user_id,
                trainer_id=client.trainer_id,
                current_trainer_id=client.current_trainer_id,
                trainer_ids=[
                    link.trainer_id
                    for link in sorted(client.trainer_links, key=lambda link: not link.is_primary)
                ],
                created_at=client.created_at,
            )
            for client in clients
        ]
    )


@router.get("/trainers", response_model=StandardResponse[List[UserResponse]])
async def list_trainers(
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    stmt = select(User).where(User.role.in_([Role.TRAINER, Role.ADMIN])).order_by(User.name)
    trainers = (await db.execute(stmt)).scalars().all()
    return StandardResponse(data=[UserResponse.model_validate(t) for t in trainers])


@router.put("/clients/{client_id}/trainers", response_model=StandardResponse[ClientTrainersResult])
async def update_client_trainers(
    client_id: uuid.UUID,
    data: ClientTrainersUpdate,
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Replace a client's trainers; the first id becomes the primary trainer."""
    client = await _get_client_or_404(db, client_id)
    diff = await TrainerService.update_client_trainers(db, client, data.trainer_ids)
    await _log_and_commit(
        db,
        user_id=current_user.id,
        action="UPDATE_CLIENT_TRAINERS",
        target_id=str(client.id),
        details=f"Added {len(diff['added'])} and removed {len(diff['removed'])} trainers",
    )
    return StandardResponse(
        message="Trainers updated",
        data=ClientTrainersResult(
            client_id=client.id,
            trainer_ids=list(dict.fromkeys(data.trainer_ids)),
            added=diff["added"],
            removed=diff["removed"],
        ),
    )


# --- Row level security ---

@router.post("/rls/sessions", response_model=StandardResponse[RLSStatusResponse])
async def apply_session_rls(
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Enable RLS on sessions and recreate its policies (PostgreSQL only)."""
    result: TableRLSStatus = await RLSService.apply_session_policies(db)
    await _log_and_commit(
        db,
        user_id=current_user.id,
        action="APPLY_SESSION_RLS",
        target_id="sessions",
        details=f"Policies: {', '.join(result.policies)}",
    )
    return StandardResponse(data=RLSStatusResponse.model_validate(result), message="Session RLS applied")


@router.get("/rls", response_model=StandardResponse[List[RLSStatusResponse]])
async def check_rls(
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    statuses = await RLSService.check(db)
    return StandardResponse(data=[RLSStatusResponse.model_validate(s) for s in statuses])


# --- Audit ---

@router.get("/audit-logs", response_model=StandardResponse[List[AuditLogResponse]])
async def get_audit_logs(
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(50, ge=1, le=500),
    action: Optional[str] = Query(None),
):
    """Retrieve the most recent audit logs, optionally for one action."""
    logs = await AuditService.recent(db, limit=limit, action=action)
    return StandardResponse(data=[AuditLogResponse.model_validate(log) for log in logs])
