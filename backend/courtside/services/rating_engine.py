"""
ELO rating engine.

Pure functions only: callers read the current profiles, ask for the changes,
and persist them in the same transaction as the match result.

  expected_a = 1 / (1 + 10 ** ((rating_b - rating_a) / 400))
  delta_a    = round(k_a * (outcome_a - expected_a))

Each side (and, for teams, each member) uses its own K-factor, so the two
deltas of one match are not necessarily equal in magnitude. Team strength for
the expectation is the average of the members' ratings.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence, Tuple

from courtside.config import KTier


@dataclass
class MemberRating:
    player_id: str
    rating: int
    matches_played: int


@dataclass
class RatingChange:
    player_id: str
    old_rating: int
    new_rating: int
    delta: int
    k_factor: int
    expected_score: float
    won: bool
    counted: bool  # False for walkovers: profile untouched


def round_half_away(value: float) -> int:
    """Round to nearest int, halves away from zero (16.5 -> 17, -16.5 -> -17)."""
    return int(Decimal(repr(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def expected_score(rating_a: float, rating_b: float) -> float:
    return 1.0 / (1.0 + 10 ** ((rating_b - rating_a) / 400.0))


def k_factor_for(matches_played: int, tiers: Sequence[KTier]) -> int:
    """Pick K from a tier schedule: first tier whose bound exceeds matches_played."""
    for bound, k in tiers:
        if bound is None or matches_played < bound:
            return k
    # parse_k_tiers guarantees a catch-all, but stay total for hand-built schedules
    return tiers[-1][1]


def compute_delta(
    rating_a: float, rating_b: float, outcome_a: int, k_a: int, k_b: int
) -> Tuple[int, int]:
    """Return (delta_a, delta_b) for one result. outcome_a is 1 (A won) or 0."""
    if outcome_a not in (0, 1):
        raise ValueError(f"outcome_a must be 0 or 1, got {outcome_a}")
    outcome_b = 1 - outcome_a
    delta_a = round_half_away(k_a * (outcome_a - expected_score(rating_a, rating_b)))
    delta_b = round_half_away(k_b * (outcome_b - expected_score(rating_b, rating_a)))
    return delta_a, delta_b


def side_rating(members: Sequence[MemberRating]) -> float:
    if not members:
        raise ValueError("A side needs at least one rated member")
    return sum(m.rating for m in members) / len(members)


def compute_match_changes(
    side_a: Sequence[MemberRating],
    side_b: Sequence[MemberRating],
    a_won: bool,
    tiers: Sequence[KTier],
    walkover: bool = False,
) -> List[RatingChange]:
    """
    Rating changes for every member on both sides of a completed match.

    Walkovers return zero-delta, uncounted changes so callers can report them
    without touching the profiles.
    """
    rating_a = side_rating(side_a)
    rating_b = side_rating(side_b)
    changes: List[RatingChange] = []

    for members, won, own, other in (
        (side_a, a_won, rating_a, rating_b),
        (side_b, not a_won, rating_b, rating_a),
    ):
        expected = expected_score(own, other)
        for member in members:
            k = k_factor_for(member.matches_played, tiers)
            if walkover:
                delta = 0
            else:
                delta = round_half_away(k * ((1 if won else 0) - expected))
            changes.append(
                RatingChange(
                    player_id=member.player_id,
                    old_rating=member.rating,
                    new_rating=member.rating + delta,
                    delta=delta,
                    k_factor=k,
                    expected_score=expected,
                    won=won,
                    counted=not walkover,
                )
            )
    return changes


def find_change(changes: Sequence[RatingChange], player_id: str) -> Optional[RatingChange]:
    for change in changes:
        if change.player_id == player_id:
            return change
    return None
