import logging
import os
import shutil
import uuid
from typing import Annotated
from datetime import timedelta, datetime, timezone
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from jose import jwt, JWTError

from app.config import settings
from app.database import get_db
from app.auth import schemas, security, dependencies
from app.core.rate_limit import LOGIN_LIMIT, REFRESH_LIMIT, SIGNUP_LIMIT, rate_limit_dependency
from app.models.user import User
from app.models.auth import RefreshToken
from app.models.enums import Role
from app.services.audit_service import AuditService
from app.services.invitation_service import InvitationService
from app.services.trainer_service import TrainerService, resolve_branding
from app.core.responses import StandardResponse

logger = logging.getLogger(__name__)

router = APIRouter()

AVATAR_DIR = os.path.join("static", "avatars")
HOME_PATHS = {
    Role.ADMIN: "/admin",
    Role.TRAINER: "/trainer-dashboard",
    Role.CLIENT: "/client-dashboard",
}


def _to_utc_datetime(value: int | float | datetime) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.fromtimestamp(value, tz=timezone.utc)


async def _persist_refresh_token(db: AsyncSession, user_id, refresh_token: str):
    payload = jwt.decode(refresh_token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    jti = payload.get("jti")
    exp = payload.get("exp")
    if not jti or exp is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token payload")

    token_record = RefreshToken(
        user_id=user_id,
        jti=str(jti),
        token_hash=security.hash_token(refresh_token),
        expires_at=_to_utc_datetime(exp),
    )
    db.add(token_record)


async def _issue_tokens(db: AsyncSession, user: User) -> schemas.Token:
    access_token = security.create_access_token(
        subject=user.email,
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    refresh_token = security.create_refresh_token(subject=user.email)
    await _persist_refresh_token(db, user.id, refresh_token)
    return schemas.Token(access_token=access_token, refresh_token=refresh_token, token_type="bearer")


async def _get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _log_and_commit(
    db: AsyncSession,
    *,
    user_id,
    action: str,
    target_id: str,
    details: str,
) -> None:
    await AuditService.log_action(
        db=db,
        user_id=user_id,
        action=action,
        target_id=target_id,
        details=details,
    )
    await db.commit()


@router.post(
    "/signup",
    response_model=StandardResponse[schemas.UserResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[rate_limit_dependency(route_key="POST /auth/signup", scope="auth-signup", limit=SIGNUP_LIMIT)],
)
async def signup(
    user_in: schemas.SignupRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Register a trainer, or a client when an invitation token is supplied."""
    if await _get_user_by_email(db, user_in.email):
        raise HTTPException(
            status_code=400,
            detail="The user with this email already exists in the system.",
        )

    invitation = None
    if user_in.invitation_token:
        invitation = await InvitationService.get_by_token(db, user_in.invitation_token)
        if invitation is None or invitation.email != user_in.email:
            raise HTTPException(status_code=400, detail="Invalid invitation token")
        InvitationService.ensure_acceptable(invitation)

    user = User(
        email=user_in.email,
        hashed_password=security.get_password_hash(user_in.password),
        name=user_in.name,
        role=Role.CLIENT if invitation else Role.TRAINER,
        registration_type="invitation" if invitation else "self",
        is_active=True,
    )
    db.add(user)
    await db.flush()

    if invitation is not None:
        client = await InvitationService.accept(db, invitation, user)
        await AuditService.log_action(
            db=db,
            user_id=user.id,
            action="ACCEPT_INVITATION",
            target_id=str(client.id),
            details=f"Accepted invitation from trainer {invitation.trainer_id} at signup",
        )

    await _log_and_commit(
        db,
        user_id=user.id,
        action="SIGNUP",
        target_id=str(user.id),
        details=f"Signed up {user.email} as {user.role.value}",
    )
    logger.info("New %s account registered: %s", user.role.value, user.email)
    return StandardResponse(data=user, message="Account created successfully")


@router.post(
    "/login",
    response_model=StandardResponse[schemas.Token],
    dependencies=[
        rate_limit_dependency(
            route_key="POST /auth/login",
            scope="auth-login",
            limit=LOGIN_LIMIT,
            json_fields=("email",),
        )
    ],
)
async def login(
    login_data: schemas.LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    user = await _get_user_by_email(db, login_data.email)

    if not user or not security.verify_password(login_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")

    tokens = await _issue_tokens(db, user)
    await db.commit()
    return StandardResponse(data=tokens, message="Login Successful")


@router.post(
    "/refresh",
    response_model=StandardResponse[schemas.Token],
    dependencies=[rate_limit_dependency(route_key="POST /auth/refresh", scope="auth-refresh", limit=REFRESH_LIMIT)],
)
async def refresh_token(
    token: Annotated[str, Depends(dependencies.oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    credentials_exception = _credentials_exception()

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        username = payload.get("sub")
        token_type = payload.get("type")
        jti = payload.get("jti")
        if username is None or token_type != "refresh" or jti is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = await _get_user_by_email(db, username)
    if user is None:
        raise credentials_exception

    refresh_stmt = select(RefreshToken).where(
        RefreshToken.user_id == user.id,
        RefreshToken.jti == str(jti),
        RefreshToken.revoked_at.is_(None)
    )
    token_record = (await db.execute(refresh_stmt)).scalar_one_or_none()

    now = datetime.now(timezone.utc)
    if token_record is None or not token_record.is_usable(security.hash_token(token), now):
        raise credentials_exception

    token_record.revoke(now)
    tokens = await _issue_tokens(db, user)
    await db.commit()
    return StandardResponse(data=tokens, message="Token Refreshed")


@router.get("/me", response_model=StandardResponse[schemas.ProfileResponse])
async def read_users_me(
    current_user: Annotated[User, Depends(dependencies.get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    profile = schemas.ProfileResponse.model_validate(current_user)
    if current_user.role in (Role.TRAINER, Role.ADMIN):
        branding = resolve_branding(await TrainerService.get_brand(db, current_user.id))
        profile.brand = schemas.BrandResponse(**vars(branding))
    return StandardResponse(data=profile)


@router.put("/me", response_model=StandardResponse[schemas.UserResponse])
async def update_user_me(
    user_update: schemas.UserUpdate,
    current_user: Annotated[User, Depends(dependencies.get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update current user profile."""
    update_data = user_update.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(current_user, field, value)

    await _log_and_commit(
        db,
        user_id=current_user.id,
        action="UPDATE_PROFILE",
        target_id=str(current_user.id),
        details=f"Updated profile fields: {', '.join(sorted(update_data)) or 'none'}",
    )
    await db.refresh(current_user)
    return StandardResponse(data=current_user, message="Profile updated successfully")


@router.post("/me/avatar", response_model=StandardResponse[schemas.UserResponse])
async def upload_avatar(
    current_user: Annotated[User, Depends(dependencies.get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    file: UploadFile = File(...)
):
    """Upload and update the user's avatar."""
    if not file.content_type or not file.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="File must be an image")

    os.makedirs(AVATAR_DIR, exist_ok=True)

    filename_in = file.filename or ""
    file_extension = filename_in.rsplit(".", 1)[-1].lower() if "." in filename_in else "jpg"
    filename = f"{current_user.id}_{uuid.uuid4().hex[:8]}.{file_extension}"
    file_path = os.path.join(AVATAR_DIR, filename)

    with open(file_path, "wb") as buffer:
        shutil.copyfileobj(file.file, buffer)

    old_url = current_user.avatar_url
    if old_url and old_url.startswith(f"/{AVATAR_DIR}/"):
        old_path = old_url.lstrip("/")
        if os.path.exists(old_path):
            try:
                os.remove(old_path)
            except OSError:
                logger.warning("Could not remove previous avatar %s", old_path)

    current_user.avatar_url = f"/{AVATAR_DIR}/{filename}"
    await _log_and_commit(
        db,
        user_id=current_user.id,
        action="UPDATE_AVATAR",
        target_id=str(current_user.id),
        details=f"Updated avatar to {current_user.avatar_url}",
    )
    await db.refresh(current_user)
    return StandardResponse(data=current_user, message="Avatar updated successfully")


@router.put("/me/password", response_model=StandardResponse)
async def change_password(
    password_data: schemas.PasswordChange,
    current_user: Annotated[User, Depends(dependencies.get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Change current user password."""
    if not security.verify_password(password_data.current_password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Incorrect current password"
        )

    current_user.hashed_password = security.get_password_hash(password_data.new_password)
    await _log_and_commit(
        db,
        user_id=current_user.id,
        action="CHANGE_PASSWORD",
        target_id=str(current_user.id),
        details="Password changed successfully",
    )
    return StandardResponse(message="Password changed successfully")


@router.get("/home", response_model=StandardResponse[schemas.HomeResponse])
async def home(
    current_user: Annotated[User, Depends(dependencies.get_current_active_user)],
):
    """Landing route for the caller's role."""
    return StandardResponse(data=schemas.HomeResponse(role=current_user.role, path=HOME_PATHS[current_user.role]))
