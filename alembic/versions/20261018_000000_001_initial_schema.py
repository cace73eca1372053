"""Initial schema: conversations and conversation turns.

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

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
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # Create enum types
    op.execute(
        "CREATE TYPE conversation_status AS ENUM ('in_progress', 'completed', 'abandoned')"
    )
    op.execute(
        "CREATE TYPE conversation_stage AS ENUM ('introduction', 'basic_info', "
        "'materials_crafting', 'cultural_significance', 'pricing_market', "
        "'final_details', 'summary')"
    )
    op.execute("CREATE TYPE turn_type AS ENUM ('ai_question', 'user_response')")

    # Create conversations table
    op.create_table(
        "conversations",
        sa.Column("id", sa.UUID(), nullable=False, server_default=sa.text("uuid_generate_v4()")),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("language", sa.String(16), nullable=False, server_default="en"),
        sa.Column(
            "status",
            postgresql.ENUM(
                "in_progress",
                "completed",
                "abandoned",
                name="conversation_status",
                create_type=False,
            ),
            nullable=False,
            server_default="in_progress",
        ),
        sa.Column(
            "conversation_stage",
            postgresql.ENUM(
                "introduction",
                "basic_info",
                "materials_crafting",
                "cultural_significance",
                "pricing_market",
                "final_details",
                "summary",
                name="conversation_stage",
                create_type=False,
            ),
            nullable=False,
            server_default="introduction",
        ),
        sa.Column("extracted_info", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("confidence", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
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
        sa.PrimaryKeyConstraint("id", name=op.f("pk_conversations")),
    )
    op.create_index(
        op.f("ix_conversations_user_id"),
        "conversations",
        ["user_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_conversations_status"),
        "conversations",
        ["status"],
        unique=False,
    )

    # Create conversation_turns table
    op.create_table(
        "conversation_turns",
        sa.Column("id", sa.UUID(), nullable=False, server_default=sa.text("uuid_generate_v4()")),
        sa.Column("conversation_id", sa.UUID(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column(
            "type",
            postgresql.ENUM("ai_question", "user_response", name="turn_type", create_type=False),
            nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("language", sa.String(16), nullable=False),
        sa.Column("audio_url", sa.Text(), nullable=True),
        sa.Column("processing_time", sa.Integer(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=True),
        sa.Column("extra_data", postgresql.JSONB(), nullable=False, server_default="{}"),
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
        sa.ForeignKeyConstraint(
            ["conversation_id"],
            ["conversations.id"],
            name=op.f("fk_conversation_turns_conversation_id_conversations"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_conversation_turns")),
        sa.UniqueConstraint(
            "conversation_id",
            "position",
            name=op.f("uq_conversation_turns_conversation_id"),
        ),
    )
    op.create_index(
        op.f("ix_conversation_turns_conversation_id"),
        "conversation_turns",
        ["conversation_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_table("conversation_turns")
    op.drop_table("conversations")

    op.execute("DROP TYPE IF EXISTS turn_type")
    op.execute("DROP TYPE IF EXISTS conversation_stage")
    op.execute("DROP TYPE IF EXISTS conversation_status")
