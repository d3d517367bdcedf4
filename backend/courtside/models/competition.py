from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON, String
from sqlmodel import Column, Field, Relationship, SQLModel

from courtside.models.rating_profile import GLOBAL_SCOPE, club_scope

if TYPE_CHECKING:
    from courtside.models.match import Match
    from courtside.models.participant import Participant


class CompetitionKind(str, Enum):
    bracket = "bracket"
    league = "league"


class CompetitionStatus(str, Enum):
    draft = "draft"
    registration = "registration"
    preparing = "preparing"  # league, before fixtures exist
    in_progress = "in_progress"  # bracket
    ongoing = "ongoing"  # league regular season
    playoffs = "playoffs"
    completed = "completed"
    cancelled = "cancelled"


class GameType(str, Enum):
    singles = "singles"
    doubles = "doubles"
    mixed = "mixed"


SEEDABLE_STATUSES = (CompetitionStatus.draft, CompetitionStatus.registration)
BRACKET_GENERATION_STATUSES = (CompetitionStatus.draft, CompetitionStatus.registration)


class Competition(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    kind: CompetitionKind = Field(sa_column=Column(String, nullable=False))
    status: CompetitionStatus = Field(sa_column=Column(String, nullable=False))
    game_type: GameType = Field(default=GameType.singles, sa_column=Column(String, nullable=False))

    # Null club means the competition counts towards global ratings
    club_id: Optional[str] = Field(default=None, index=True)
    created_by: Optional[str] = Field(default=None)

    # League settings
    points_for_win: int = Field(default=3)
    points_for_loss: int = Field(default=0)
    auto_playoffs: bool = Field(default=False)

    total_rounds: int = Field(default=0)
    current_round: int = Field(default=0)

    # Denormalized league table, rewritten wholesale on every update
    standings: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    # {"type": "final" | "semifinals", "qualified": [participant ids]}
    playoff: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))

    champion_id: Optional[int] = Field(default=None)
    runner_up_id: Optional[int] = Field(default=None)
    third_place_id: Optional[int] = Field(default=None)
    fourth_place_id: Optional[int] = Field(default=None)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = Field(default=None)

    # Optimistic concurrency: bumped by every compare-and-set write
    version: int = Field(default=1)

    # Relationships
    participants: List["Participant"] = Relationship(back_populates="competition")
    matches: List["Match"] = Relationship(back_populates="competition")

    @property
    def rating_scope(self) -> str:
        return club_scope(self.club_id) if self.club_id else GLOBAL_SCOPE
