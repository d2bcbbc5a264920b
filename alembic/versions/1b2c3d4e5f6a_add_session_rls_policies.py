"""add session rls policies

Revision ID: 1b2c3d4e5f6a
Revises: 0a1b2c3d4e5f
Create Date: 2026-10-19 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = "1b2c3d4e5f6a"
down_revision: Union[str, Sequence[str], None] = "0a1b2c3d4e5f"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


CURRENT_USER_ID = "NULLIF(current_setting('app.current_user_id', true), '')::uuid"
CURRENT_ROLE = "current_setting('app.current_user_role', true)"

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


def upgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return
    op.execute("ALTER TABLE sessions ENABLE ROW LEVEL SECURITY")
    op.execute(
        f"""
        CREATE POLICY sessions_select_policy ON sessions
            FOR SELECT
            USING ({SESSION_ACCESS})
        """
    )
    op.execute(
        f"""
        CREATE POLICY sessions_modify_policy ON sessions
            FOR ALL
            USING ({SESSION_ACCESS})
            WITH CHECK ({SESSION_ACCESS})
        """
    )


def downgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return
    op.execute("DROP POLICY IF EXISTS sessions_modify_policy ON sessions")
    op.execute("DROP POLICY IF EXISTS sessions_select_policy ON sessions")
    op.execute("ALTER TABLE sessions DISABLE ROW LEVEL SECURITY")
