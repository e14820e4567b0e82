"""Add org_id to reward_log

Revision ID: 1b2c3d4e5f6a
Revises: 0a1b2c3d4e5f
Create Date: 2026-10-25 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "1b2c3d4e5f6a"
down_revision = "0a1b2c3d4e5f"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Tag each coin award with the organization it was earned in.

    Post rewards are backfilled from ``posts.org_id``; older goal payouts
    stay untagged.
    """
    op.add_column("reward_log", sa.Column("org_id", sa.String(36), nullable=True))
    op.create_index("ix_reward_log_org_id", "reward_log", ["org_id"])
    op.execute(
        "UPDATE reward_log SET org_id = posts.org_id "
        "FROM posts WHERE posts.id = reward_log.post_id"
    )


def downgrade() -> None:
    op.drop_index("ix_reward_log_org_id", table_name="reward_log")
    op.drop_column("reward_log", "org_id")
