"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17

Creates all tables for the speaker request service:
users, events, speakers, speaker_reviews, speaking_sessions,
speaker_requests.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="organizer"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- events ---
    op.create_table(
        "events",
        sa.Column("event_id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("category", sa.String(100), nullable=False, server_default=""),
        sa.Column("tags", sa.JSON, nullable=False),
        sa.Column("organizer_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- speakers ---
    op.create_table(
        "speakers",
        sa.Column("speaker_id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("bio", sa.Text, nullable=False, server_default=""),
        sa.Column("specializations", sa.JSON, nullable=False),
        sa.Column("past_speaking_records", sa.JSON, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("is_suspended", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- speaker_reviews ---
    op.create_table(
        "speaker_reviews",
        sa.Column("review_id", sa.String(36), primary_key=True),
        sa.Column("speaker_id", sa.String(36), sa.ForeignKey("speakers.speaker_id"), nullable=False, index=True),
        sa.Column("organizer_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.event_id"), nullable=True),
        sa.Column("rating", sa.Integer, nullable=False),
        sa.Column("review", sa.Text, nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="check_review_rating_range"),
    )

    # --- speaking_sessions ---
    op.create_table(
        "speaking_sessions",
        sa.Column("session_id", sa.String(36), primary_key=True),
        sa.Column("speaker_id", sa.String(36), sa.ForeignKey("speakers.speaker_id"), nullable=False, index=True),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.event_id"), nullable=True),
        sa.Column("title", sa.String(255), nullable=False, server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- speaker_requests ---
    op.create_table(
        "speaker_requests",
        sa.Column("request_id", sa.String(36), primary_key=True),
        sa.Column("speaker_id", sa.String(36), sa.ForeignKey("speakers.speaker_id"), nullable=False),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.event_id"), nullable=False),
        sa.Column("organizer_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("message", sa.Text, nullable=False, server_default=""),
        sa.Column("match_score", sa.Float, nullable=False),
        sa.Column("score_breakdown", sa.JSON, nullable=True),
        sa.Column("rank", sa.Integer, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.String(500), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("speaker_id", "event_id", name="uq_speaker_request_speaker_event"),
    )
    op.create_index("ix_speaker_requests_event_status", "speaker_requests", ["event_id", "status"])


def downgrade() -> None:
    op.drop_index("ix_speaker_requests_event_status", table_name="speaker_requests")
    op.drop_table("speaker_requests")
    op.drop_table("speaking_sessions")
    op.drop_table("speaker_reviews")
    op.drop_table("speakers")
    op.drop_table("events")
    op.drop_table("users")
