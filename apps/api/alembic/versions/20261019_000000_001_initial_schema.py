"""Initial schema: preferences, content history and subscriptions.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Create enum types
    delivery_trigger = postgresql.ENUM(
        "scheduled", "forced", "manual", name="delivery_trigger", create_type=False
    )
    delivery_trigger.create(op.get_bind(), checkfirst=True)

    # Create user_preferences table
    op.create_table(
        "user_preferences",
        sa.Column("id", sa.UUID(), nullable=False, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("industry", sa.String(255), nullable=False),
        sa.Column("tone", sa.String(255), nullable=False, server_default="professional"),
        sa.Column(
            "template",
            sa.String(100),
            nullable=False,
            server_default="bullet-points-style-x-style",
        ),
        sa.Column("temperature", sa.Float(), nullable=False, server_default=sa.text("0.7")),
        sa.Column("delivery_time", sa.String(5), nullable=True),
        sa.Column("timezone", sa.String(64), nullable=True),
        sa.Column("auto_generate", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_user_preferences"),
        sa.UniqueConstraint("user_id", name="uq_user_preferences_user_id"),
    )
    op.create_index("ix_user_preferences_email", "user_preferences", ["email"])

    # Create content_history table
    op.create_table(
        "content_history",
        sa.Column("id", sa.UUID(), nullable=False, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("industry", sa.String(255), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("snippet", sa.Text(), nullable=False),
        sa.Column("template", sa.String(100), nullable=False),
        sa.Column("tone", sa.String(255), nullable=False),
        sa.Column("trigger", delivery_trigger, nullable=False),
        sa.Column("occasion_date", sa.Date(), nullable=True),
        sa.Column("message_id", sa.String(255), nullable=True),
        sa.Column(
            "sent_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_content_history"),
        sa.UniqueConstraint(
            "user_id", "occasion_date", name="uq_content_history_user_occasion"
        ),
    )
    op.create_index(
        "ix_content_history_user_sent", "content_history", ["user_id", "sent_at"]
    )

    # Create user_subscriptions table
    op.create_table(
        "user_subscriptions",
        sa.Column("id", sa.UUID(), nullable=False, server_default=sa.text("gen_random_uuid()")),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="active"),
        sa.Column("plan_type", sa.String(50), nullable=False, server_default="monthly"),
        sa.Column("customer_id", sa.String(255), nullable=True),
        sa.Column("subscription_id", sa.String(255), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_user_subscriptions"),
        sa.UniqueConstraint("email", name="uq_user_subscriptions_email"),
    )


def downgrade() -> None:
    op.drop_table("user_subscriptions")
    op.drop_index("ix_content_history_user_sent", table_name="content_history")
    op.drop_table("content_history")
    op.drop_index("ix_user_preferences_email", table_name="user_preferences")
    op.drop_table("user_preferences")
    op.execute("DROP TYPE IF EXISTS delivery_trigger")
