from courtside.models.competition import Competition, CompetitionKind, CompetitionStatus, GameType
from courtside.models.match import Match, MatchStatus, MatchType
from courtside.models.participant import Participant, ParticipantKind
from courtside.models.rating_profile import RatingHistory, RatingProfile

__all__ = [
    "Competition",
    "CompetitionKind",
    "CompetitionStatus",
    "GameType",
    "Participant",
    "ParticipantKind",
    "Match",
    "MatchStatus",
    "MatchType",
    "RatingHistory",
    "RatingProfile",
]
