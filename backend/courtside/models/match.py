from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON, String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from courtside.models.competition import Competition


class MatchType(str, Enum):
    bracket = "bracket"
    round_robin = "round_robin"
    semifinal = "semifinal"
    final = "final"
    consolation = "consolation"


class MatchStatus(str, Enum):
    pending = "pending"  # at least one slot waits on an upstream match
    scheduled = "scheduled"
    in_progress = "in_progress"
    completed = "completed"


# Forward-only lifecycle; index in this tuple is the rank
STATUS_ORDER = (
    MatchStatus.pending,
    MatchStatus.scheduled,
    MatchStatus.in_progress,
    MatchStatus.completed,
)

ROLE_WINNER = "winner"
ROLE_LOSER = "loser"

SLOT_A = "a"
SLOT_B = "b"


class Match(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("competition_id", "code", name="uq_match_competition_code"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    competition_id: int = Field(foreign_key="competition.id", index=True)
    code: str  # e.g. "R1M3", "RR2M1", "SF1", "F", "C"
    round_number: int
    sequence_in_round: int
    match_type: MatchType = Field(sa_column=Column(String, nullable=False))

    # Slots: a concrete participant, or unresolved and fed by an upstream match
    participant_a_id: Optional[int] = Field(default=None, foreign_key="participant.id")
    participant_b_id: Optional[int] = Field(default=None, foreign_key="participant.id")
    source_a_match_id: Optional[int] = Field(default=None, foreign_key="match.id")
    source_a_role: Optional[str] = Field(default=None)  # "winner" | "loser"
    source_b_match_id: Optional[int] = Field(default=None, foreign_key="match.id")
    source_b_role: Optional[str] = Field(default=None)

    # Forward links
    next_match_id: Optional[int] = Field(default=None, foreign_key="match.id")
    next_match_slot: Optional[str] = Field(default=None)  # "a" | "b"
    loser_next_match_id: Optional[int] = Field(default=None, foreign_key="match.id")
    loser_next_match_slot: Optional[str] = Field(default=None)

    status: MatchStatus = Field(default=MatchStatus.pending, sa_column=Column(String, nullable=False))

    # Score: [{"a": 6, "b": 4}, ...]
    sets: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    final_score: Optional[str] = Field(default=None)
    retired: bool = Field(default=False)
    walkover: bool = Field(default=False)
    is_bye: bool = Field(default=False)

    winner_id: Optional[int] = Field(default=None, foreign_key="participant.id")

    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    version: int = Field(default=1)

    competition: "Competition" = Relationship(back_populates="matches")

    def slot(self, side: str) -> Optional[int]:
        return self.participant_a_id if side == SLOT_A else self.participant_b_id

    @property
    def is_resolved(self) -> bool:
        return self.participant_a_id is not None and self.participant_b_id is not None

    @property
    def loser_id(self) -> Optional[int]:
        if self.winner_id is None or not self.is_resolved:
            return None
        return self.participant_b_id if self.winner_id == self.participant_a_id else self.participant_a_id

    def involves(self, participant_id: int) -> bool:
        return participant_id in (self.participant_a_id, self.participant_b_id)
