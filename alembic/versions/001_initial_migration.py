"""Initial migration: create racer and bracketstate tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Roster: one row per racer per event class
    op.create_table(
        "racer",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("race_class", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("bib_number", sa.String(), nullable=False),
        sa.Column("seed_time", sa.Float(), nullable=True),
        sa.Column("starting_position", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("event_id", "bib_number", name="uq_event_bib"),
    )
    op.create_index("ix_racer_event_id", "racer", ["event_id"])
    op.create_index("ix_racer_race_class", "racer", ["race_class"])

    # Bracket document per (event, class)
    op.create_table(
        "bracketstate",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("race_class", sa.String(), nullable=False),
        sa.Column("bracket_json", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("event_id", "race_class", name="uq_bracket_event_class"),
    )
    op.create_index("ix_bracketstate_event_id", "bracketstate", ["event_id"])


def downgrade() -> None:
    op.drop_index("ix_bracketstate_event_id", table_name="bracketstate")
    op.drop_table("bracketstate")
    op.drop_index("ix_racer_race_class", table_name="racer")
    op.drop_index("ix_racer_event_id", table_name="racer")
    op.drop_table("racer")
