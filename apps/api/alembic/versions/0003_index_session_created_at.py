"""index training_sessions.created_at for the monthly session quota

Revision ID: 0003_index_session_created_at
Revises: 0002_add_license_fields
Create Date: 2026-10-19 00:00:00
"""

from typing import Sequence

from alembic import op

revision: str = "0003_index_session_created_at"
down_revision: str | None = "0002_add_license_fields"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_index("ix_training_sessions_created_at", "training_sessions", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_training_sessions_created_at", table_name="training_sessions")
