from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel

GLOBAL_SCOPE = "global"


def club_scope(club_id: str) -> str:
    return f"club:{club_id}"


class RatingProfile(SQLModel, table=True):
    """One ELO rating per (player, scope, game type). Scopes never share state."""

    __table_args__ = (
        SAUniqueConstraint("player_id", "scope", "game_type", name="uq_rating_player_scope_game"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    player_id: str = Field(index=True)
    scope: str  # "global" | "club:<id>"
    game_type: str = Field(sa_column=Column(String, nullable=False))  # singles | doubles | mixed

    rating: int = Field(default=1200)
    peak_rating: int = Field(default=1200)
    matches_played: int = Field(default=0)  # Drives the K-factor tier
    wins: int = Field(default=0)
    losses: int = Field(default=0)

    # "competition_id:match_id" keys already applied; append-unique only
    applied_matches: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    last_updated: datetime = Field(default_factory=datetime.utcnow)
    version: int = Field(default=1)


class RatingHistory(SQLModel, table=True):
    """One rated match as seen by one player. Written alongside the profile update."""

    __table_args__ = (
        SAUniqueConstraint("player_id", "scope", "competition_id", "match_id", name="uq_rating_history_match"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    player_id: str = Field(index=True)
    scope: str
    game_type: str = Field(sa_column=Column(String, nullable=False))
    competition_id: int = Field(foreign_key="competition.id")
    match_id: int = Field(foreign_key="match.id")

    opponent_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    won: bool
    final_score: Optional[str] = None

    old_rating: int
    new_rating: int
    delta: int
    k_factor: int
    expected_score: float

    recorded_at: datetime = Field(default_factory=datetime.utcnow)
