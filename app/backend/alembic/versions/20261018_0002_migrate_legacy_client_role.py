"""rename legacy CLIENT role to CLIENT_USER

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op


# revision identifiers, used by Alembic.
revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("UPDATE users SET role = 'CLIENT_USER' WHERE role = 'CLIENT'")
    op.create_check_constraint(
        "ck_users_client_role_has_client",
        "users",
        "role NOT IN ('CLIENT_ADMIN', 'CLIENT_USER') OR client_id IS NOT NULL",
    )


def downgrade() -> None:
    op.drop_constraint("ck_users_client_role_has_client", "users", type_="check")
