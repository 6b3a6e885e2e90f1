"""Initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("owner_id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("experience", sa.Text(), nullable=True),
        sa.Column("education", sa.Text(), nullable=True),
        sa.Column("skills", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "job_postings",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("company", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("contact_person", sa.String(length=255), nullable=True),
        sa.Column("url", sa.String(length=800), nullable=True),
        sa.Column("deadline", sa.Date(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_job_postings_owner_id", "job_postings", ["owner_id"], unique=False)

    op.create_table(
        "cover_letters",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column(
            "job_posting_id",
            sa.String(length=36),
            sa.ForeignKey("job_postings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_cover_letters_owner_id", "cover_letters", ["owner_id"], unique=False)
    op.create_index("ix_cover_letters_job_posting_id", "cover_letters", ["job_posting_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_cover_letters_job_posting_id", table_name="cover_letters")
    op.drop_index("ix_cover_letters_owner_id", table_name="cover_letters")
    op.drop_table("cover_letters")
    op.drop_index("ix_job_postings_owner_id", table_name="job_postings")
    op.drop_table("job_postings")
    op.drop_table("profiles")
