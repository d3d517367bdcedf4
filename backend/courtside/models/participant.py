from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from courtside.models.competition import Competition


class ParticipantKind(str, Enum):
    individual = "individual"
    team = "team"


class Participant(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("competition_id", "player_id", name="uq_competition_player"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    competition_id: int = Field(foreign_key="competition.id", index=True)
    kind: ParticipantKind = Field(default=ParticipantKind.individual, sa_column=Column(String, nullable=False))

    # Individual: the player. Team: the first member.
    player_id: str
    partner_player_id: Optional[str] = Field(default=None)  # Team only
    team_key: Optional[str] = Field(default=None)  # Persistent team identifier, if the ledger has one

    display_name: str
    seed: Optional[int] = Field(default=None)  # 1-based; None/0 = unseeded
    registration_order: int = Field(default=0)  # Tie-break for unseeded entries
    created_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = Field(default=1)

    competition: "Competition" = Relationship(back_populates="participants")

    @property
    def player_ids(self) -> List[str]:
        if self.kind == ParticipantKind.team and self.partner_player_id:
            return [self.player_id, self.partner_player_id]
        return [self.player_id]
