from __future__ import annotations

import logging
from dataclasses import dataclass, field

from fastapi import HTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import supports_rls

logger = logging.getLogger(__name__)

COACHING_TABLES = (
    "clients",
    "client_trainer_relationships",
    "client_invitations",
    "trainer_brands",
    "exercises",
    "plans",
    "sessions",
    "series",
    "plan_exercises",
    "evaluations",
)

CURRENT_USER_ID = "NULLIF(current_setting('app.current_user_id', true), '')::uuid"
CURRENT_ROLE = "current_setting('app.current_user_role', true)"

# A session is visible to admins, to the trainer owning its plan and to the client it belongs to.
SESSION_ACCESS = f"""
    {CURRENT_ROLE} = 'ADMIN'
    OR EXISTS (
        SELECT 1 FROM plans plan
        WHERE plan.id = sessions.plan_id
          AND plan.trainer_id = {CURRENT_USER_ID}
    )
    OR EXISTS (
        SELECT 1 FROM clients client
        WHERE client.id = sessions.client_id
          AND client.user_id = {CURRENT_USER_ID}
    )
"""

SESSION_POLICIES = {
    "sessions_select_policy": f"""
        CREATE POLICY sessions_select_policy ON sessions
            FOR SELECT
            USING ({SESSION_ACCESS})
    """,
    "sessions_modify_policy": f"""
        CREATE POLICY sessions_modify_policy ON sessions
            FOR ALL
            USING ({SESSION_ACCESS})
            WITH CHECK ({SESSION_ACCESS})
    """,
}


@dataclass
class TableRLSStatus:
    table: str
    rls_enabled: bool
    policies: list[str] = field(default_factory=list)


def _ensure_postgres(db: AsyncSession) -> None:
    if not supports_rls(db.bind):
        raise HTTPException(status_code=400, detail="Row level security requires PostgreSQL")


async def _policy_names(db: AsyncSession, table: str) -> list[str]:
    result = await db.execute(
        text("SELECT policyname FROM pg_policies WHERE schemaname = current_schema() AND tablename = :table ORDER BY policyname"),
        {"table": table},
    )
    return list(result.scalars().all())


async def _rls_enabled(db: AsyncSession, table: str) -> bool:
    result = await db.execute(
        text("SELECT rowsecurity FROM pg_tables WHERE schemaname = current_schema() AND tablename = :table"),
        {"table": table},
    )
    return bool(result.scalar_one_or_none())


class RLSService:
    @staticmethod
    async def apply_session_policies(db: AsyncSession) -> TableRLSStatus:
        """Enable RLS on sessions and recreate its policies. The caller commits."""
        _ensure_postgres(db)
        await db.execute(text("ALTER TABLE sessions ENABLE ROW LEVEL SECURITY"))
        for name, statement in SESSION_POLICIES.items():
            await db.execute(text(f"DROP POLICY IF EXISTS {name} ON sessions"))
            await db.execute(text(statement))
        status = TableRLSStatus(
            table="sessions",
            rls_enabled=await _rls_enabled(db, "sessions"),
            policies=await _policy_names(db, "sessions"),
        )
        logger.info("Applied session RLS policies: %s", ", ".join(status.policies))
        return status

    @staticmethod
    async def check(db: AsyncSession) -> list[TableRLSStatus]:
        _ensure_postgres(db)
        return [
            TableRLSStatus(
                table=table,
                rls_enabled=await _rls_enabled(db, table),
                policies=await _policy_names(db, table),
            )
            for table in COACHING_TABLES
        ]
