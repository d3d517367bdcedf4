"""
Match play: listing, starting and reporting results.
Results run the full advancement pipeline (slots, standings, ratings,
playoffs, completion) in one transaction.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, model_validator

from courtside.auth import Caller, get_caller
from courtside.dependencies import get_competition_service
from courtside.models.match import MatchStatus, MatchType
from courtside.services.bracket_builder import round_name
from courtside.services.competition_service import CompetitionService

router = APIRouter()


class SetScore(BaseModel):
    a: int
    b: int

    @model_validator(mode="after")
    def validate_games(self):
        if self.a < 0 or self.b < 0:
            raise ValueError("games must be >= 0")
        return self


class MatchResultSubmit(BaseModel):
    # Structured sets, or a string like "6-4 3-6 10-7"
    score: Optional[Union[List[SetScore], str]] = None
    winner_id: Optional[int] = None
    retired: bool = False
    walkover: bool = False

    @model_validator(mode="after")
    def validate_result(self):
        if self.walkover and self.retired:
            raise ValueError("a match cannot be both a walkover and a retirement")
        if (self.walkover or self.retired) and self.winner_id is None:
            raise ValueError("winner_id is required for walkovers and retirements")
        if not (self.walkover or self.retired) and not self.score:
            raise ValueError("score is required")
        return self


class RatingChangeResponse(BaseModel):
    player_id: str
    old_rating: int
    new_rating: int
    delta: int
    k_factor: int


class MatchResultResponse(BaseModel):
    match_id: int
    winner_id: int
    loser_id: int
    final_score: Optional[str] = None
    next_match_id: Optional[int] = None
    competition_completed: bool
    playoffs_created: bool = False
    champion_id: Optional[int] = None
    runner_up_id: Optional[int] = None
    rating_changes: List[RatingChangeResponse] = []
    warnings: List[str] = []


class MatchResponse(BaseModel):
    id: int
    competition_id: int
    code: str
    round_number: int
    round_name: Optional[str] = None
    sequence_in_round: int
    match_type: MatchType
    status: MatchStatus
    participant_a_id: Optional[int] = None
    participant_b_id: Optional[int] = None
    source_a_match_id: Optional[int] = None
    source_a_role: Optional[str] = None
    source_b_match_id: Optional[int] = None
    source_b_role: Optional[str] = None
    next_match_id: Optional[int] = None
    next_match_slot: Optional[str] = None
    loser_next_match_id: Optional[int] = None
    loser_next_match_slot: Optional[str] = None
    sets: List[Dict[str, Any]] = []
    final_score: Optional[str] = None
    retired: bool
    walkover: bool
    is_bye: bool
    winner_id: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


@router.get("/competitions/{competition_id}/matches", response_model=List[MatchResponse])
def list_matches(competition_id: int, service: CompetitionService = Depends(get_competition_service)):
    """All matches ordered by round, then sequence in round"""
    competition = service.get_competition(competition_id)
    matches = service.list_matches(competition_id)
    out = []
    for m in matches:
        state = MatchResponse.model_validate(m)
        if m.match_type == MatchType.bracket:
            state.round_name = round_name(m.round_number, competition.total_rounds)
        elif m.match_type == MatchType.final:
            state.round_name = "Final"
        elif m.match_type == MatchType.semifinal:
            state.round_name = "Semifinals"
        elif m.match_type == MatchType.consolation:
            state.round_name = "Third place"
        elif m.match_type == MatchType.round_robin:
            state.round_name = f"Round {m.round_number}"
        out.append(state)
    return out


@router.post("/competitions/{competition_id}/matches/{match_id}/start", response_model=MatchResponse)
def start_match(
    competition_id: int,
    match_id: int,
    caller: Caller = Depends(get_caller),
    service: CompetitionService = Depends(get_competition_service),
):
    """Move a scheduled match to in_progress"""
    return service.start_match(caller, competition_id, match_id)


@router.post("/competitions/{competition_id}/matches/{match_id}/result", response_model=MatchResultResponse)
def submit_result(
    competition_id: int,
    match_id: int,
    data: MatchResultSubmit,
    caller: Caller = Depends(get_caller),
    service: CompetitionService = Depends(get_competition_service),
):
    """
    Report a result. The winner is derived from the score; a winner_id that
    disagrees is rejected. Walkovers and retirements take winner_id as given.
    """
    score: Any = data.score
    if isinstance(score, list):
        score = [s.model_dump() for s in score]
    return service.submit_result(
        caller,
        competition_id,
        match_id,
        winner_id=data.winner_id,
        score=score,
        retired=data.retired,
        walkover=data.walkover,
    )
