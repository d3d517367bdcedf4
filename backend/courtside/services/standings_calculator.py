"""
League standings: apply a result, then rank.

Ranking cascade (first rule that separates two rows wins):
  1. points, descending
  2. head-to-head between exactly the two tied participants
  3. set difference, descending
  4. game difference, descending
  5. previous relative order (stable sort)

Positions are reassigned 1..N after every sort. The same comparator is used
for every ranking read (season end, playoff seeding, manual inspection).
"""
from functools import cmp_to_key
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from courtside.errors import Internal
from courtside.services.score_parser import ParsedScore

STREAK_WIN = "win"
STREAK_LOSS = "loss"
STREAK_NONE = "none"


class Streak(BaseModel):
    type: str = STREAK_NONE
    count: int = 0


class Standing(BaseModel):
    participant_id: int
    display_name: str = ""
    played: int = 0
    won: int = 0
    lost: int = 0
    points: int = 0
    games_won: int = 0
    games_lost: int = 0
    games_difference: int = 0
    sets_won: int = 0
    sets_lost: int = 0
    sets_difference: int = 0
    streak: Streak = Field(default_factory=Streak)
    position: int = 0


# (participant_a_id, participant_b_id, winner_id) of a completed league match
ResultRecord = Tuple[int, int, int]
HeadToHead = Dict[FrozenSet[int], Dict[int, int]]


def head_to_head_index(results: Iterable[ResultRecord]) -> HeadToHead:
    """Wins per participant for every pair that has met."""
    index: HeadToHead = {}
    for a_id, b_id, winner_id in results:
        pair = frozenset((a_id, b_id))
        wins = index.setdefault(pair, {a_id: 0, b_id: 0})
        wins[winner_id] = wins.get(winner_id, 0) + 1
    return index


def initial_standings(participants: Sequence[Tuple[int, str]]) -> List[Standing]:
    """Zeroed rows with position = input order."""
    return [
        Standing(participant_id=pid, display_name=name, position=i + 1)
        for i, (pid, name) in enumerate(participants)
    ]


def load_standings(raw: Optional[Sequence[dict]]) -> List[Standing]:
    rows = [Standing.model_validate(r) for r in (raw or [])]
    positions = sorted(r.position for r in rows)
    if positions != list(range(1, len(rows) + 1)):
        raise Internal(f"Corrupt standings: positions {positions} are not 1..{len(rows)}")
    return sorted(rows, key=lambda r: r.position)


def dump_standings(rows: Sequence[Standing]) -> List[dict]:
    return [r.model_dump() for r in rows]


def _compare(a: Standing, b: Standing, h2h: HeadToHead) -> int:
    if a.points != b.points:
        return -1 if a.points > b.points else 1

    wins = h2h.get(frozenset((a.participant_id, b.participant_id)))
    if wins:
        a_wins = wins.get(a.participant_id, 0)
        b_wins = wins.get(b.participant_id, 0)
        if a_wins != b_wins:
            return -1 if a_wins > b_wins else 1

    if a.sets_difference != b.sets_difference:
        return -1 if a.sets_difference > b.sets_difference else 1
    if a.games_difference != b.games_difference:
        return -1 if a.games_difference > b.games_difference else 1
    return 0


def sort_standings(rows: Sequence[Standing], results: Iterable[ResultRecord]) -> List[Standing]:
    """Rank rows (input order is the 'previous order' for stability) and renumber."""
    h2h = head_to_head_index(results)
    ranked = sorted(rows, key=cmp_to_key(lambda x, y: _compare(x, y, h2h)))
    out: List[Standing] = []
    for i, row in enumerate(ranked):
        out.append(row.model_copy(update={"position": i + 1}))
    return out


def _advance_streak(streak: Streak, won: bool) -> Streak:
    kind = STREAK_WIN if won else STREAK_LOSS
    if streak.type == kind:
        return Streak(type=kind, count=streak.count + 1)
    return Streak(type=kind, count=1)


def _apply_side(
    row: Standing,
    won: bool,
    sets_for: int,
    sets_against: int,
    games_for: int,
    games_against: int,
    points_for_win: int,
    points_for_loss: int,
) -> Standing:
    games_won = row.games_won + games_for
    games_lost = row.games_lost + games_against
    sets_won = row.sets_won + sets_for
    sets_lost = row.sets_lost + sets_against
    return row.model_copy(
        update={
            "played": row.played + 1,
            "won": row.won + (1 if won else 0),
            "lost": row.lost + (0 if won else 1),
            "points": row.points + (points_for_win if won else points_for_loss),
            "games_won": games_won,
            "games_lost": games_lost,
            "games_difference": games_won - games_lost,
            "sets_won": sets_won,
            "sets_lost": sets_lost,
            "sets_difference": sets_won - sets_lost,
            "streak": _advance_streak(row.streak, won),
        }
    )


def apply_result(
    standings: Sequence[Standing],
    participant_a_id: int,
    participant_b_id: int,
    winner_id: int,
    score: ParsedScore,
    points_for_win: int,
    points_for_loss: int,
    prior_results: Iterable[ResultRecord] = (),
) -> List[Standing]:
    """
    Fold one completed league match into the table and re-rank it.

    ``prior_results`` are the other completed league matches; this match is
    added to them for the head-to-head rule.
    """
    if winner_id not in (participant_a_id, participant_b_id):
        raise Internal(f"Winner {winner_id} is not part of match {participant_a_id} v {participant_b_id}")

    by_id = {row.participant_id: row for row in standings}
    for pid in (participant_a_id, participant_b_id):
        if pid not in by_id:
            raise Internal(f"Participant {pid} has no standings row")

    a_won = winner_id == participant_a_id
    updated = {
        participant_a_id: _apply_side(
            by_id[participant_a_id],
            a_won,
            score.side_a_sets_won,
            score.side_b_sets_won,
            score.side_a_games,
            score.side_b_games,
            points_for_win,
            points_for_loss,
        ),
        participant_b_id: _apply_side(
            by_id[participant_b_id],
            not a_won,
            score.side_b_sets_won,
            score.side_a_sets_won,
            score.side_b_games,
            score.side_a_games,
            points_for_win,
            points_for_loss,
        ),
    }
    rows = [updated.get(row.participant_id, row) for row in standings]
    results = list(prior_results) + [(participant_a_id, participant_b_id, winner_id)]
    return sort_standings(rows, results)
