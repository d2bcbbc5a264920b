from datetime import datetime, timezone
import uuid
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.models.audit import AuditLog

class AuditService:
    @staticmethod
    async def log_action(
        db: AsyncSession,
        user_id: uuid.UUID | None,
        action: str,
        target_id: str | None = None,
        details: str | None = None
    ):
        """
        Log an audit event.

        The entry joins the caller's transaction; it is persisted by the caller's commit,
        so an action that rolls back leaves no trace.
        """
        audit_entry = AuditLog(
            user_id=user_id,
            action=action,
            target_id=target_id,
            details=details,
            timestamp=datetime.now(timezone.utc)
        )
        db.add(audit_entry)

    @staticmethod
    async def recent(db: AsyncSession, *, limit: int = 50, action: str | None = None) -> list[AuditLog]:
        stmt = select(AuditLog).order_by(AuditLog.timestamp.desc()).limit(limit)
        if action:
            stmt = stmt.where(AuditLog.action == action)
        return list((await db.execute(stmt)).scalars().all())
