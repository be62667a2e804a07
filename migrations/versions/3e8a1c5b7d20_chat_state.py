"""Cache the last viewed section per chat.

Revision ID: 3e8a1c5b7d20
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


def _table_exists(conn, name: str) -> bool:
    inspector = sa.inspect(conn)
    return name in inspector.get_table_names()


# revision identifiers, used by Alembic.
revision = "3e8a1c5b7d20"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    conn = op.get_bind()
    if not _table_exists(conn, "chat_state"):
        op.create_table(
            "chat_state",
            sa.Column("chat_id", sa.Integer(), primary_key=True),
            sa.Column("last_section", sa.Text(), nullable=True),
            sa.Column("updated_at", sa.Text(), nullable=False),
        )


def downgrade():
    conn = op.get_bind()
    if _table_exists(conn, "chat_state"):
        op.drop_table("chat_state")
