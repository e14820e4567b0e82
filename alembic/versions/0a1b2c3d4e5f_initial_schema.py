"""Initial OrgSync schema

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0a1b2c3d4e5f"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSONB = postgresql.JSONB(astext_type=sa.Text())


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable, server_default=sa.func.now())


def _post_fk() -> sa.Column:
    return sa.Column(
        "post_id", sa.String(36), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False,
    )


def _org_fk(primary_key: bool = False) -> sa.Column:
    return sa.Column(
        "org_id",
        sa.String(36),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        primary_key=primary_key,
        nullable=False,
    )


def _goal_columns() -> list[sa.Column]:
    return [
        sa.Column("goal_type", sa.String(20), nullable=False),
        sa.Column("goal_target", sa.Integer(), nullable=False),
        sa.Column("reward_coins", sa.Integer(), nullable=False),
        sa.Column("current_progress", sa.Integer(), server_default="0"),
        sa.Column("is_completed", sa.Boolean(), server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        _ts("created_at"),
        _ts("updated_at"),
    ]


def upgrade() -> None:
    """Create every OrgSync table."""
    # Users & roles
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), unique=True),
        sa.Column("first_name", sa.String(100)),
        sa.Column("last_name", sa.String(100)),
        sa.Column("avatar_url", sa.Text()),
        sa.Column("user_type", sa.String(20)),
        sa.Column("student_number", sa.String(50)),
        sa.Column("employee_id", sa.String(50)),
        sa.Column("year_level", sa.Integer()),
        sa.Column("program", sa.String(100)),
        sa.Column("department", sa.String(20)),
        sa.Column("college", sa.String(100)),
        sa.Column("position", sa.String(100)),
        sa.Column("profile_completed", sa.Boolean(), server_default=sa.false()),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_users_last_name", "users", ["last_name"])
    op.create_index("ix_users_department", "users", ["department"])

    op.create_table(
        "user_roles",
        sa.Column(
            "user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("role", sa.String(20), nullable=False, server_default="member"),
        _ts("granted_at"),
    )

    # Organizations
    op.create_table(
        "organizations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("org_code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("abbrev_name", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("description", sa.Text()),
        sa.Column("department", sa.String(20), server_default="OTHERS"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("org_type", sa.String(20), nullable=False),
        sa.Column("date_established", sa.Date()),
        sa.Column("org_pic", sa.Text()),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_organizations_status", "organizations", ["status"])

    op.create_table(
        "programs",
        sa.Column("program", sa.String(100), primary_key=True),
        sa.Column("org_id", sa.String(36), sa.ForeignKey("organizations.id", ondelete="SET NULL")),
    )

    op.create_table(
        "org_members",
        sa.Column(
            "user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        _org_fk(primary_key=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        _ts("joined_at"),
    )
    op.create_index("ix_org_members_org", "org_members", ["org_id"])

    op.create_table(
        "org_managers",
        sa.Column(
            "user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        _org_fk(primary_key=True),
        sa.Column("manager_role", sa.String(20), nullable=False),
        sa.Column("position", sa.String(100)),
        _ts("assigned_at"),
    )
    op.create_index("ix_org_managers_org_role", "org_managers", ["org_id", "manager_role"])

    # Posts & engagement
    op.create_table(
        "posts",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_fk(),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("post_type", sa.String(20), nullable=False, server_default="general"),
        sa.Column("visibility", sa.String(20), nullable=False, server_default="public"),
        sa.Column("status", sa.String(20), server_default="published"),
        sa.Column("tags", JSONB),
        sa.Column("media", JSONB),
        sa.Column("is_pinned", sa.Boolean(), server_default=sa.false()),
        sa.Column("view_count", sa.Integer(), server_default="0"),
        sa.Column("event_date", sa.Date()),
        sa.Column("start_time", sa.String(10)),
        sa.Column("end_time", sa.String(10)),
        sa.Column("location", sa.String(300)),
        sa.Column("options", JSONB),
        sa.Column("form_fields", JSONB),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_posts_org_type", "posts", ["org_id", "post_type"])
    op.create_index("ix_posts_created", "posts", ["created_at"])

    op.create_table(
        "post_likes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _post_fk(),
        sa.Column("user_id", sa.String(36), nullable=False),
        _ts("created_at"),
        sa.UniqueConstraint("post_id", "user_id", name="uq_post_likes_post_user"),
    )
    op.create_table(
        "post_views",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _post_fk(),
        sa.Column("user_id", sa.String(36), nullable=False),
        _ts("viewed_at"),
        sa.UniqueConstraint("post_id", "user_id", name="uq_post_views_post_user"),
    )
    op.create_table(
        "poll_votes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _post_fk(),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("option_index", sa.Integer(), nullable=False),
        _ts("created_at"),
        sa.UniqueConstraint("post_id", "user_id", name="uq_poll_votes_post_user"),
    )
    op.create_table(
        "form_responses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _post_fk(),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("responses", JSONB, nullable=False),
        _ts("submitted_at"),
        sa.UniqueConstraint("post_id", "user_id", name="uq_form_responses_post_user"),
    )
    op.create_table(
        "rsvps",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _post_fk(),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("status", sa.String(20), server_default="going"),
        _ts("created_at"),
        sa.UniqueConstraint("post_id", "user_id", name="uq_rsvps_post_user"),
    )
    op.create_table(
        "event_registrations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _post_fk(),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("middle_initial", sa.String(5)),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("college", sa.String(100)),
        sa.Column("program", sa.String(100)),
        sa.Column("section", sa.String(50)),
        _ts("created_at"),
        sa.UniqueConstraint("post_id", "user_id", name="uq_event_registrations_post_user"),
    )
    op.create_table(
        "event_evaluations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _post_fk(),
        sa.Column("user_id", sa.String(36), nullable=False),
        *[
            sa.Column(rating, sa.Integer(), nullable=False)
            for rating in ("design", "facilities", "overall", "participation", "speakers")
        ],
        sa.Column("benefits", sa.Text(), server_default=""),
        sa.Column("problems", sa.Text(), server_default=""),
        sa.Column("comments", sa.Text(), server_default=""),
        _ts("created_at"),
        sa.UniqueConstraint("post_id", "user_id", name="uq_event_evaluations_post_user"),
    )
    op.create_table(
        "event_attendance",
        sa.Column(
            "post_id", sa.String(36), sa.ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("attended", sa.Boolean(), server_default=sa.false()),
        _ts("updated_at"),
    )
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("post_id", sa.String(36)),
        sa.Column("read", sa.Boolean(), server_default=sa.false()),
        _ts("date_sent"),
    )
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "read"])

    # Coins
    op.create_table(
        "game_rooms",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(36), nullable=False, unique=True),
        sa.Column("coins", sa.Integer(), server_default="0"),
        sa.Column("save_data", JSONB),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_table(
        "reward_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("post_id", sa.String(64)),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        _ts("created_at"),
        sa.UniqueConstraint("user_id", "post_id", "action", name="uq_reward_log_user_post_action"),
    )
    op.create_index("ix_reward_log_action", "reward_log", ["action"])

    # Quizzes
    op.create_table(
        "quizzes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _org_fk(),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("data", JSONB, nullable=False),
        sa.Column("open_at", sa.DateTime(timezone=True)),
        sa.Column("close_at", sa.DateTime(timezone=True)),
        _ts("created_at"),
    )
    op.create_table(
        "scores",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "quiz_id", sa.Integer(), sa.ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("org_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("score", sa.Integer(), server_default="0"),
        _ts("updated_at"),
        sa.UniqueConstraint("quiz_id", "user_id", name="uq_scores_quiz_user"),
    )
    op.create_index("ix_scores_quiz_score", "scores", ["quiz_id", "score"])
    op.create_table(
        "community_goals",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_fk(),
        sa.Column(
            "quiz_id", sa.Integer(), sa.ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False,
        ),
        *_goal_columns(),
    )

    # Flappy minigame
    op.create_table(
        "flappy_config",
        sa.Column("challenge_id", sa.String(36), primary_key=True),
        _org_fk(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("player_image_url", sa.Text()),
        sa.Column("background_image_url", sa.Text()),
        sa.Column("start_time", sa.DateTime(timezone=True)),
        sa.Column("end_time", sa.DateTime(timezone=True)),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_table(
        "flappy_scores",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "challenge_id",
            sa.String(36),
            sa.ForeignKey("flappy_config.challenge_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("org_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("score", sa.Integer(), server_default="0"),
        _ts("updated_at"),
        sa.UniqueConstraint("challenge_id", "user_id", name="uq_flappy_scores_challenge_user"),
    )
    op.create_table(
        "community_goals_flappy",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_fk(),
        sa.Column(
            "challenge_id",
            sa.String(36),
            sa.ForeignKey("flappy_config.challenge_id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_goal_columns(),
    )

    # Contests
    op.create_table(
        "room_contests",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_fk(),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("start_date", sa.Date()),
        sa.Column("end_date", sa.Date()),
        sa.Column("created_by", sa.String(36), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        _ts("created_at"),
    )
    op.create_table(
        "contest_submissions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "contest_id",
            sa.String(36),
            sa.ForeignKey("room_contests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("org_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=False),
        _ts("submitted_at"),
    )

    # Settings & audit
    op.create_table(
        "settings",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value_json", sa.Text(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("description", sa.Text()),
        _ts("updated_at"),
    )
    op.create_table(
        "admin_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.String(36), nullable=False),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("target_table", sa.String(50), nullable=False),
        sa.Column("target_id", sa.String(100)),
        sa.Column("before_snapshot", JSONB),
        sa.Column("after_snapshot", JSONB),
        sa.Column("reason", sa.Text()),
        _ts("timestamp"),
    )
    op.create_index("ix_admin_log_actor_time", "admin_log", ["actor_id", "timestamp"])
    op.create_index("ix_admin_log_target", "admin_log", ["target_table", "target_id", "timestamp"])


def downgrade() -> None:
    """Drop every OrgSync table (children first)."""
    for table in (
        "admin_log",
        "settings",
        "contest_submissions",
        "room_contests",
        "community_goals_flappy",
        "flappy_scores",
        "flappy_config",
        "community_goals",
        "scores",
        "quizzes",
        "reward_log",
        "game_rooms",
        "notifications",
        "event_attendance",
        "event_evaluations",
        "event_registrations",
        "rsvps",
        "form_responses",
        "poll_votes",
        "post_views",
        "post_likes",
        "posts",
        "org_managers",
        "org_members",
        "programs",
        "organizations",
        "user_roles",
        "users",
    ):
        op.drop_table(table)
