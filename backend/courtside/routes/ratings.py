from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from courtside.dependencies import get_competition_service
from courtside.services.competition_service import CompetitionService

router = APIRouter()


class RatingProfileResponse(BaseModel):
    player_id: str
    scope: str
    game_type: str
    rating: int
    peak_rating: int
    matches_played: int
    wins: int
    losses: int
    last_updated: datetime

    class Config:
        from_attributes = True


@router.get("/players/{player_id}/ratings", response_model=List[RatingProfileResponse])
def get_player_ratings(player_id: str, service: CompetitionService = Depends(get_competition_service)):
    """Every rating profile of a player (one per scope and game type)"""
    return service.get_rating_profiles(player_id)


class RatingHistoryResponse(BaseModel):
    competition_id: int
    match_id: int
    scope: str
    game_type: str
    opponent_ids: List[str]
    won: bool
    final_score: Optional[str] = None
    old_rating: int
    new_rating: int
    delta: int
    k_factor: int
    expected_score: float
    recorded_at: datetime

    class Config:
        from_attributes = True


@router.get("/players/{player_id}/rating-history", response_model=List[RatingHistoryResponse])
def get_player_rating_history(
    player_id: str,
    scope: Optional[str] = None,
    game_type: Optional[str] = None,
    service: CompetitionService = Depends(get_competition_service),
):
    """Rated matches of a player, oldest first; filter with ?scope=global or ?scope=club:<id>"""
    return service.get_rating_history(player_id, scope=scope, game_type=game_type)
