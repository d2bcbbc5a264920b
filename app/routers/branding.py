import re
from typing import Annotated, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import dependencies
from app.auth.schemas import BrandResponse
from app.core.responses import StandardResponse
from app.database import get_db
from app.models.coaching import TrainerBrand
from app.models.user import User
from app.services.audit_service import AuditService
from app.services.trainer_service import TrainerService, resolve_branding

router = APIRouter()

HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{6}|[0-9a-fA-F]{3})$")


class BrandUpdate(BaseModel):
    logo_url: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    accent_color: Optional[str] = None

    @field_validator("primary_color", "secondary_color", "accent_color")
    @classmethod
    def validate_color(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not HEX_COLOR_RE.match(value):
            raise ValueError("color must be a hex value like #9b87f5")
        return value


@router.get("", response_model=StandardResponse[BrandResponse])
async def get_brand(
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """The trainer's brand, or the default palette when none is saved."""
    brand = await TrainerService.get_brand(db, current_user.id)
    return StandardResponse(data=BrandResponse(**vars(resolve_branding(brand))))


@router.put("", response_model=StandardResponse[BrandResponse])
async def upsert_brand(
    data: BrandUpdate,
    current_user: Annotated[User, Depends(dependencies.get_current_trainer)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    brand = await TrainerService.get_brand(db, current_user.id)
    if brand is None:
        brand = TrainerBrand(trainer_id=current_user.id)
        db.add(brand)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(brand, field, value)

    await AuditService.log_action(
        db=db,
        user_id=current_user.id,
        action="UPDATE_BRAND",
        target_id=str(current_user.id),
        details=f"Updated brand fields: {', '.join(sorted(data.model_fields_set)) or 'none'}",
    )
    await db.commit()
    await db.refresh(brand)
    return StandardResponse(data=BrandResponse(**vars(resolve_branding(brand))), message="Brand saved")
