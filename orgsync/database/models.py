"""
orgsync.database.models — SQLAlchemy 2.0 Data Models
=====================================================

Tables:
- users                — Profiles keyed by the identity provider's user id
- user_roles           — One global role per user
- organizations        — Student organizations
- programs             — Academic program → organization auto-join mapping
- org_members          — Membership junction (soft-deactivated)
- org_managers         — Officer / adviser assignments scoped to one org
- posts                — General posts, events, polls and feedback forms
- post_likes / post_views / poll_votes / form_responses
- rsvps / event_registrations / event_evaluations / event_attendance
- notifications        — Per-user inbox
- game_rooms           — Per-user coin balance + minigame save data
- reward_log           — Idempotency journal for coin awards
- quizzes / scores     — Quiz game definitions and best scores
- community_goals / community_goals_flappy — Coin-reward thresholds
- flappy_config / flappy_scores — Minigame challenges and best scores
- room_contests / contest_submissions — Screenshot contests
- settings             — Admin-tunable key/value store
- admin_log            — Append-only audit trail
"""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all OrgSync ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class UserRole(enum.StrEnum):
    """Global role held by every user (at most one)."""
    ADMIN = "admin"
    OFFICER = "officer"
    ADVISER = "adviser"
    MEMBER = "member"


class ManagerRole(enum.StrEnum):
    """Role scoped to a single organization."""
    OFFICER = "officer"
    ADVISER = "adviser"


class PostType(enum.StrEnum):
    GENERAL = "general"
    EVENT = "event"
    POLL = "poll"
    FEEDBACK = "feedback"


class GoalType(enum.StrEnum):
    SCORE = "score"
    PARTICIPANTS = "participants"


class AdminActionType(enum.StrEnum):
    """Categories of admin mutations recorded in admin_log."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    PROMOTE = "PROMOTE"
    DEMOTE = "DEMOTE"
    ASSIGN = "ASSIGN"
    REVOKE = "REVOKE"


# ---------------------------------------------------------------------------
# Users & roles
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, default=None)
    first_name: Mapped[str | None] = mapped_column(String(100), default=None)
    last_name: Mapped[str | None] = mapped_column(String(100), default=None)
    avatar_url: Mapped[str | None] = mapped_column(Text, default=None)
    user_type: Mapped[str | None] = mapped_column(String(20), default=None)  # student, faculty
    student_number: Mapped[str | None] = mapped_column(String(50), default=None)
    employee_id: Mapped[str | None] = mapped_column(String(50), default=None)
    year_level: Mapped[int | None] = mapped_column(Integer, default=None)
    program: Mapped[str | None] = mapped_column(String(100), default=None)
    department: Mapped[str | None] = mapped_column(String(20), default=None)
    college: Mapped[str | None] = mapped_column(String(100), default=None)
    position: Mapped[str | None] = mapped_column(String(100), default=None)
    profile_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    role: Mapped[UserRoleRow | None] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    memberships: Mapped[list[OrgMember]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_users_last_name", "last_name"),
        Index("ix_users_department", "department"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"


class UserRoleRow(Base):
    __tablename__ = "user_roles"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.MEMBER.value)
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="role")

    def __repr__(self) -> str:
        return f"<UserRoleRow user={self.user_id} role={self.role!r}>"


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------
class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    org_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    abbrev_name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), default=None)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    department: Mapped[str] = mapped_column(String(20), default="OTHERS")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    org_type: Mapped[str] = mapped_column(String(20), nullable=False)
    date_established: Mapped[date | None] = mapped_column(Date, default=None)
    org_pic: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    members: Mapped[list[OrgMember]] = relationship(
        back_populates="organization", cascade="all, delete-orphan"
    )
    managers: Mapped[list[OrgManager]] = relationship(
        back_populates="organization", cascade="all, delete-orphan"
    )
    posts: Mapped[list[Post]] = relationship(cascade="all, delete-orphan")
    quizzes: Mapped[list[Quiz]] = relationship(cascade="all, delete-orphan")
    challenges: Mapped[list[FlappyConfig]] = relationship(cascade="all, delete-orphan")
    contests: Mapped[list[RoomContest]] = relationship(cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_organizations_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} code={self.org_code!r}>"


class Program(Base):
    """Maps an academic program to the organization its students auto-join."""
    __tablename__ = "programs"

    program: Mapped[str] = mapped_column(String(100), primary_key=True)
    org_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="SET NULL"), default=None
    )


class OrgMember(Base):
    __tablename__ = "org_members"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    org_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="memberships")
    organization: Mapped[Organization] = relationship(back_populates="members")

    __table_args__ = (
        Index("ix_org_members_org", "org_id"),
    )

    def __repr__(self) -> str:
        return f"<OrgMember user={self.user_id} org={self.org_id} active={self.is_active}>"


class OrgManager(Base):
    __tablename__ = "org_managers"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    org_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True
    )
    manager_role: Mapped[str] = mapped_column(String(20), nullable=False)  # officer, adviser
    position: Mapped[str | None] = mapped_column(String(100), default=None)
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    organization: Mapped[Organization] = relationship(back_populates="managers")

    __table_args__ = (
        Index("ix_org_managers_org_role", "org_id", "manager_role"),
    )

    def __repr__(self) -> str:
        return (
            f"<OrgManager user={self.user_id} org={self.org_id} "
            f"role={self.manager_role!r}>"
        )


# ---------------------------------------------------------------------------
# Posts and engagement
# ---------------------------------------------------------------------------
class Post(Base):
    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    org_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    post_type: Mapped[str] = mapped_column(String(20), nullable=False, default="general")
    visibility: Mapped[str] = mapped_column(String(20), nullable=False, default="public")
    status: Mapped[str | None] = mapped_column(String(20), default="published")
    tags: Mapped[list | None] = mapped_column(JSONB, default=None)
    media: Mapped[list | None] = mapped_column(JSONB, default=None)
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False)
    view_count: Mapped[int] = mapped_column(Integer, default=0)

    # Event fields
    event_date: Mapped[date | None] = mapped_column(Date, default=None)
    start_time: Mapped[str | None] = mapped_column(String(10), default=None)
    end_time: Mapped[str | None] = mapped_column(String(10), default=None)
    location: Mapped[str | None] = mapped_column(String(300), default=None)

    # Poll options / feedback form fields
    options: Mapped[list | None] = mapped_column(JSONB, default=None)
    form_fields: Mapped[list | None] = mapped_column(JSONB, default=None)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_posts_org_type", "org_id", "post_type"),
        Index("ix_posts_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Post id={self.id} type={self.post_type!r} title={self.title!r}>"


class PostLike(Base):
    __tablename__ = "post_likes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_post_likes_post_user"),
    )


class PostView(Base):
    __tablename__ = "post_views"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    viewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_post_views_post_user"),
    )


class PollVote(Base):
    __tablename__ = "poll_votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    option_index: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_poll_votes_post_user"),
    )


class FormResponse(Base):
    __tablename__ = "form_responses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    responses: Mapped[dict] = mapped_column(JSONB, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_form_responses_post_user"),
    )


class Rsvp(Base):
    __tablename__ = "rsvps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="going")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_rsvps_post_user"),
    )


class EventRegistration(Base):
    __tablename__ = "event_registrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    middle_initial: Mapped[str | None] = mapped_column(String(5), default=None)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    college: Mapped[str | None] = mapped_column(String(100), default=None)
    program: Mapped[str | None] = mapped_column(String(100), default=None)
    section: Mapped[str | None] = mapped_column(String(50), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_event_registrations_post_user"),
    )


class EventEvaluation(Base):
    __tablename__ = "event_evaluations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    design: Mapped[int] = mapped_column(Integer, nullable=False)
    facilities: Mapped[int] = mapped_column(Integer, nullable=False)
    overall: Mapped[int] = mapped_column(Integer, nullable=False)
    participation: Mapped[int] = mapped_column(Integer, nullable=False)
    speakers: Mapped[int] = mapped_column(Integer, nullable=False)
    benefits: Mapped[str] = mapped_column(Text, default="")
    problems: Mapped[str] = mapped_column(Text, default="")
    comments: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_event_evaluations_post_user"),
    )


class EventAttendance(Base):
    __tablename__ = "event_attendance"

    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    attended: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    post_id: Mapped[str | None] = mapped_column(String(36), default=None)
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    date_sent: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "read"),
    )


# ---------------------------------------------------------------------------
# Coins
# ---------------------------------------------------------------------------
class GameRoom(Base):
    """Per-user minigame room: the coin balance lives here."""
    __tablename__ = "game_rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    coins: Mapped[int] = mapped_column(Integer, default=0)
    save_data: Mapped[dict | None] = mapped_column(JSONB, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<GameRoom user={self.user_id} coins={self.coins}>"


class RewardLog(Base):
    """One row per (user, post, action) coin award, the idempotency key."""
    __tablename__ = "reward_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    post_id: Mapped[str | None] = mapped_column(String(64), default=None)
    org_id: Mapped[str | None] = mapped_column(String(36), default=None)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "post_id", "action", name="uq_reward_log_user_post_action"),
        Index("ix_reward_log_action", "action"),
        Index("ix_reward_log_org_id", "org_id"),
    )


# ---------------------------------------------------------------------------
# Quizzes
# ---------------------------------------------------------------------------
class Quiz(Base):
    __tablename__ = "quizzes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    # {"timeLimitInSeconds", "pointsAddedForCorrectAnswer", "questions": [...]}
    data: Mapped[dict] = mapped_column(JSONB, nullable=False)
    open_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    close_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Quiz id={self.id} title={self.title!r}>"


class Score(Base):
    __tablename__ = "scores"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quiz_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False
    )
    org_id: Mapped[str] = mapped_column(String(36), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    score: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("quiz_id", "user_id", name="uq_scores_quiz_user"),
        Index("ix_scores_quiz_score", "quiz_id", "score"),
    )


class CommunityGoal(Base):
    __tablename__ = "community_goals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    org_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    quiz_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False
    )
    goal_type: Mapped[str] = mapped_column(String(20), nullable=False)
    goal_target: Mapped[int] = mapped_column(Integer, nullable=False)
    reward_coins: Mapped[int] = mapped_column(Integer, nullable=False)
    current_progress: Mapped[int] = mapped_column(Integer, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<CommunityGoal id={self.id} type={self.goal_type!r} "
            f"{self.current_progress}/{self.goal_target}>"
        )


# ---------------------------------------------------------------------------
# Flappy minigame
# ---------------------------------------------------------------------------
class FlappyConfig(Base):
    __tablename__ = "flappy_config"

    challenge_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    org_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    player_image_url: Mapped[str | None] = mapped_column(Text, default=None)
    background_image_url: Mapped[str | None] = mapped_column(Text, default=None)
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<FlappyConfig id={self.challenge_id} name={self.name!r}>"


class FlappyScore(Base):
    __tablename__ = "flappy_scores"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    challenge_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("flappy_config.challenge_id", ondelete="CASCADE"), nullable=False
    )
    org_id: Mapped[str] = mapped_column(String(36), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    score: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("challenge_id", "user_id", name="uq_flappy_scores_challenge_user"),
    )


class FlappyCommunityGoal(Base):
    __tablename__ = "community_goals_flappy"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    org_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    challenge_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("flappy_config.challenge_id", ondelete="CASCADE"), nullable=False
    )
    goal_type: Mapped[str] = mapped_column(String(20), nullable=False)
    goal_target: Mapped[int] = mapped_column(Integer, nullable=False)
    reward_coins: Mapped[int] = mapped_column(Integer, nullable=False)
    current_progress: Mapped[int] = mapped_column(Integer, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


# ---------------------------------------------------------------------------
# Contests
# ---------------------------------------------------------------------------
class RoomContest(Base):
    __tablename__ = "room_contests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    org_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    start_date: Mapped[date | None] = mapped_column(Date, default=None)
    end_date: Mapped[date | None] = mapped_column(Date, default=None)
    created_by: Mapped[str] = mapped_column(String(36), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    submissions: Mapped[list[ContestSubmission]] = relationship(
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<RoomContest id={self.id} title={self.title!r} active={self.is_active}>"


class ContestSubmission(Base):
    __tablename__ = "contest_submissions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    contest_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("room_contests.id", ondelete="CASCADE"), nullable=False
    )
    org_id: Mapped[str] = mapped_column(String(36), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


# ---------------------------------------------------------------------------
# Settings & audit
# ---------------------------------------------------------------------------
class Setting(Base):
    """Key-value configuration store.

    Coin amounts, page sizes and cache TTLs live here so admins can adjust
    them from the dashboard without redeploying.  Values are JSON strings.
    """
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<Setting key={self.key!r} category={self.category!r}>"


class AdminLog(Base):
    __tablename__ = "admin_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[str] = mapped_column(String(36), nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_table: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    before_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    after_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_admin_log_actor_time", "actor_id", "timestamp"),
        Index("ix_admin_log_target", "target_table", "target_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AdminLog id={self.id} actor={self.actor_id} action={self.action_type}>"
