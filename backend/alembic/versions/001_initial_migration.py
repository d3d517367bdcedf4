"""Initial migration: create competition, participant, match, ratingprofile tables

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
    # Create competition table
    op.create_table(
        "competition",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("game_type", sa.String(), nullable=False),
        sa.Column("club_id", sa.String(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("points_for_win", sa.Integer(), nullable=False),
        sa.Column("points_for_loss", sa.Integer(), nullable=False),
        sa.Column("auto_playoffs", sa.Boolean(), nullable=False),
        sa.Column("total_rounds", sa.Integer(), nullable=False),
        sa.Column("current_round", sa.Integer(), nullable=False),
        sa.Column("standings", sa.JSON(), nullable=False),
        sa.Column("playoff", sa.JSON(), nullable=True),
        sa.Column("champion_id", sa.Integer(), nullable=True),
        sa.Column("runner_up_id", sa.Integer(), nullable=True),
        sa.Column("third_place_id", sa.Integer(), nullable=True),
        sa.Column("fourth_place_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_competition_club_id", "competition", ["club_id"])

    # Create participant table
    op.create_table(
        "participant",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("competition_id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("player_id", sa.String(), nullable=False),
        sa.Column("partner_player_id", sa.String(), nullable=True),
        sa.Column("team_key", sa.String(), nullable=True),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("seed", sa.Integer(), nullable=True),
        sa.Column("registration_order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["competition_id"],
            ["competition.id"],
        ),
        sa.UniqueConstraint("competition_id", "player_id", name="uq_competition_player"),
    )
    op.create_index("ix_participant_competition_id", "participant", ["competition_id"])

    # Create match table (self-referencing links for the bracket graph)
    op.create_table(
        "match",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("competition_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("sequence_in_round", sa.Integer(), nullable=False),
        sa.Column("match_type", sa.String(), nullable=False),
        sa.Column("participant_a_id", sa.Integer(), nullable=True),
        sa.Column("participant_b_id", sa.Integer(), nullable=True),
        sa.Column("source_a_match_id", sa.Integer(), nullable=True),
        sa.Column("source_a_role", sa.String(), nullable=True),
        sa.Column("source_b_match_id", sa.Integer(), nullable=True),
        sa.Column("source_b_role", sa.String(), nullable=True),
        sa.Column("next_match_id", sa.Integer(), nullable=True),
        sa.Column("next_match_slot", sa.String(), nullable=True),
        sa.Column("loser_next_match_id", sa.Integer(), nullable=True),
        sa.Column("loser_next_match_slot", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("sets", sa.JSON(), nullable=False),
        sa.Column("final_score", sa.String(), nullable=True),
        sa.Column("retired", sa.Boolean(), nullable=False),
        sa.Column("walkover", sa.Boolean(), nullable=False),
        sa.Column("is_bye", sa.Boolean(), nullable=False),
        sa.Column("winner_id", sa.Integer(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["competition_id"], ["competition.id"]),
        sa.ForeignKeyConstraint(["participant_a_id"], ["participant.id"]),
        sa.ForeignKeyConstraint(["participant_b_id"], ["participant.id"]),
        sa.ForeignKeyConstraint(["winner_id"], ["participant.id"]),
        sa.ForeignKeyConstraint(["source_a_match_id"], ["match.id"]),
        sa.ForeignKeyConstraint(["source_b_match_id"], ["match.id"]),
        sa.ForeignKeyConstraint(["next_match_id"], ["match.id"]),
        sa.ForeignKeyConstraint(["loser_next_match_id"], ["match.id"]),
        sa.UniqueConstraint("competition_id", "code", name="uq_match_competition_code"),
    )
    op.create_index("ix_match_competition_id", "match", ["competition_id"])

    # Create ratingprofile table
    op.create_table(
        "ratingprofile",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.String(), nullable=False),
        sa.Column("scope", sa.String(), nullable=False),
        sa.Column("game_type", sa.String(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("matches_played", sa.Integer(), nullable=False),
        sa.Column("wins", sa.Integer(), nullable=False),
        sa.Column("losses", sa.Integer(), nullable=False),
        sa.Column("applied_matches", sa.JSON(), nullable=False),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_id", "scope", "game_type", name="uq_rating_player_scope_game"),
    )
    op.create_index("ix_ratingprofile_player_id", "ratingprofile", ["player_id"])


def downgrade() -> None:
    op.drop_index("ix_ratingprofile_player_id", table_name="ratingprofile")
    op.drop_table("ratingprofile")
    op.drop_index("ix_match_competition_id", table_name="match")
    op.drop_table("match")
    op.drop_index("ix_participant_competition_id", table_name="participant")
    op.drop_table("participant")
    op.drop_index("ix_competition_club_id", table_name="competition")
    op.drop_table("competition")
