from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator, model_validator

from courtside.auth import Caller, get_caller
from courtside.dependencies import get_competition_service
from courtside.models.competition import CompetitionKind, CompetitionStatus, GameType
from courtside.models.participant import ParticipantKind
from courtside.services.competition_service import CompetitionService
from courtside.services.standings_calculator import Standing

router = APIRouter()


class CompetitionCreate(BaseModel):
    name: str
    kind: CompetitionKind
    game_type: GameType = GameType.singles
    club_id: Optional[str] = None
    points_for_win: Optional[int] = None
    points_for_loss: Optional[int] = None
    auto_playoffs: bool = False
    open_registration: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @model_validator(mode="after")
    def validate_points(self):
        win = self.points_for_win
        loss = self.points_for_loss
        if (win is not None and win < 0) or (loss is not None and loss < 0):
            raise ValueError("points must be >= 0")
        if win is not None and loss is not None and loss > win:
            raise ValueError("points_for_loss must be <= points_for_win")
        return self


class CompetitionResponse(BaseModel):
    id: int
    name: str
    kind: CompetitionKind
    status: CompetitionStatus
    game_type: GameType
    club_id: Optional[str] = None
    created_by: Optional[str] = None
    points_for_win: int
    points_for_loss: int
    auto_playoffs: bool
    total_rounds: int
    current_round: int
    playoff: Optional[Dict[str, Any]] = None
    champion_id: Optional[int] = None
    runner_up_id: Optional[int] = None
    third_place_id: Optional[int] = None
    fourth_place_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ParticipantCreate(BaseModel):
    player_id: str
    display_name: str
    partner_player_id: Optional[str] = None
    team_key: Optional[str] = None

    @field_validator("player_id", "display_name")
    @classmethod
    def validate_required(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class ParticipantResponse(BaseModel):
    id: int
    competition_id: int
    kind: ParticipantKind
    player_id: str
    partner_player_id: Optional[str] = None
    team_key: Optional[str] = None
    display_name: str
    seed: Optional[int] = None
    registration_order: int

    class Config:
        from_attributes = True


class SeedAssignment(BaseModel):
    participant_id: str  # participant id, or either member's player id
    seed: int

    @field_validator("participant_id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v)


class SeedRequest(BaseModel):
    seeds: List[SeedAssignment]


class SeedResponse(BaseModel):
    assigned: int
    removed: int


class BracketResponse(BaseModel):
    total_rounds: int
    total_matches: int
    bracket_size: int
    byes: int


class RoundRobinResponse(BaseModel):
    total_matches: int
    total_rounds: int


class PlayoffResponse(BaseModel):
    type: str
    qualified: List[int]
    match_ids: List[int]
    warnings: List[str] = []


class CompletionResponse(BaseModel):
    champion_id: Optional[int] = None
    runner_up_id: Optional[int] = None
    warnings: List[str] = []


@router.post("/competitions", response_model=CompetitionResponse, status_code=201)
def create_competition(
    data: CompetitionCreate,
    caller: Caller = Depends(get_caller),
    service: CompetitionService = Depends(get_competition_service),
):
    """Create a competition (bracket starts in draft, league in preparing)"""
    return service.create_competition(caller, **data.model_dump())


@router.get("/competitions/{competition_id}", response_model=CompetitionResponse)
def get_competition(competition_id: int, service: CompetitionService = Depends(get_competition_service)):
    return service.get_competition(competition_id)


@router.post(
    "/competitions/{competition_id}/participants", response_model=ParticipantResponse, status_code=201
)
def register_participant(
    competition_id: int,
    data: ParticipantCreate,
    caller: Caller = Depends(get_caller),
    service: CompetitionService = Depends(get_competition_service),
):
    return service.register_participant(caller, competition_id, **data.model_dump())


@router.get("/competitions/{competition_id}/participants", response_model=List[ParticipantResponse])
def list_participants(competition_id: int, service: CompetitionService = Depends(get_competition_service)):
    return service.list_participants(competition_id)


@router.post("/competitions/{competition_id}/seeds", response_model=SeedResponse)
def assign_seeds(
    competition_id: int,
    data: SeedRequest,
    caller: Caller = Depends(get_caller),
    service: CompetitionService = Depends(get_competition_service),
):
    return service.assign_seeds(caller, competition_id, [(s.participant_id, s.seed) for s in data.seeds])


@router.post("/competitions/{competition_id}/bracket", response_model=BracketResponse, status_code=201)
def generate_bracket(
    competition_id: int,
    caller: Caller = Depends(get_caller),
    service: CompetitionService = Depends(get_competition_service),
):
    return service.generate_bracket(caller, competition_id)


@router.post("/competitions/{competition_id}/round-robin", response_model=RoundRobinResponse, status_code=201)
def generate_round_robin(
    competition_id: int,
    caller: Caller = Depends(get_caller),
    service: CompetitionService = Depends(get_competition_service),
):
    return service.generate_round_robin(caller, competition_id)


@router.get("/competitions/{competition_id}/standings", response_model=List[Standing])
def get_standings(competition_id: int, service: CompetitionService = Depends(get_competition_service)):
    """Ranked league table (same tiebreak cascade as playoff seeding)"""
    return service.get_standings(competition_id)


@router.post("/competitions/{competition_id}/playoffs", response_model=PlayoffResponse, status_code=201)
def generate_playoffs(
    competition_id: int,
    caller: Caller = Depends(get_caller),
    service: CompetitionService = Depends(get_competition_service),
):
    return service.generate_playoffs(caller, competition_id)


@router.post("/competitions/{competition_id}/complete", response_model=CompletionResponse)
def complete_competition(
    competition_id: int,
    caller: Caller = Depends(get_caller),
    service: CompetitionService = Depends(get_competition_service),
):
    return service.complete_competition(caller, competition_id)
