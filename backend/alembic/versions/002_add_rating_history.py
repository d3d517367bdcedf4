"""Add peak rating to ratingprofile and the ratinghistory table

Revision ID: 002_rating_history
Revises: 001_initial
Create Date: 2026-10-19 12:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "002_rating_history"
down_revision = "001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Existing profiles start their peak at the current rating
    with op.batch_alter_table("ratingprofile", schema=None) as batch_op:
        batch_op.add_column(sa.Column("peak_rating", sa.Integer(), nullable=False, server_default="1200"))
    op.execute("UPDATE ratingprofile SET peak_rating = rating")

    # Create ratinghistory table
    op.create_table(
        "ratinghistory",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.String(), nullable=False),
        sa.Column("scope", sa.String(), nullable=False),
        sa.Column("game_type", sa.String(), nullable=False),
        sa.Column("competition_id", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=False),
        sa.Column("opponent_ids", sa.JSON(), nullable=False),
        sa.Column("won", sa.Boolean(), nullable=False),
        sa.Column("final_score", sa.String(), nullable=True),
        sa.Column("old_rating", sa.Integer(), nullable=False),
        sa.Column("new_rating", sa.Integer(), nullable=False),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("k_factor", sa.Integer(), nullable=False),
        sa.Column("expected_score", sa.Float(), nullable=False),
        sa.Column("recorded_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["competition_id"], ["competition.id"]),
        sa.ForeignKeyConstraint(["match_id"], ["match.id"]),
        sa.UniqueConstraint("player_id", "scope", "competition_id", "match_id", name="uq_rating_history_match"),
    )
    op.create_index("ix_ratinghistory_player_id", "ratinghistory", ["player_id"])


def downgrade() -> None:
    op.drop_index("ix_ratinghistory_player_id", table_name="ratinghistory")
    op.drop_table("ratinghistory")
    with op.batch_alter_table("ratingprofile", schema=None) as batch_op:
        batch_op.drop_column("peak_rating")
