"""
Playoff bracket from final league standings.

Qualifiers are the top min(4, active) rows of the ranked table, where
"active" means at least one completed match.
  2-3 qualifiers: F = 1 v 2
  4 qualifiers:   SF1 = 1 v 4, SF2 = 2 v 3,
                  F = winner-of SF1 v winner-of SF2,
                  C = loser-of SF1 v loser-of SF2 (third place)
"""
from dataclasses import dataclass, field
from typing import List, Sequence

from courtside.errors import FailedPrecondition
from courtside.models.match import ROLE_LOSER, ROLE_WINNER, SLOT_A, SLOT_B, MatchStatus, MatchType
from courtside.services.bracket_builder import PlannedMatch, SlotSource
from courtside.services.standings_calculator import Standing

PLAYOFF_FINAL = "final"
PLAYOFF_SEMIFINALS = "semifinals"

MAX_QUALIFIERS = 4


@dataclass
class PlayoffPlan:
    type: str  # PLAYOFF_FINAL | PLAYOFF_SEMIFINALS
    qualified: List[int]
    matches: List[PlannedMatch] = field(default_factory=list)

    def to_json(self) -> dict:
        return {"type": self.type, "qualified": list(self.qualified)}


def select_qualifiers(ranked: Sequence[Standing]) -> List[int]:
    """Top rows of an already-ranked table, skipping anyone who never played."""
    active = [row.participant_id for row in sorted(ranked, key=lambda r: r.position) if row.played >= 1]
    return active[:MAX_QUALIFIERS]


def build_playoffs(ranked: Sequence[Standing], round_offset: int = 0) -> PlayoffPlan:
    qualified = select_qualifiers(ranked)
    if len(qualified) < 2:
        raise FailedPrecondition(f"Playoffs need at least 2 qualifiers, got {len(qualified)}")

    if len(qualified) < 4:
        final = PlannedMatch(
            code="F",
            round_number=round_offset + 1,
            sequence_in_round=1,
            match_type=MatchType.final,
            participant_a_id=qualified[0],
            participant_b_id=qualified[1],
            status=MatchStatus.scheduled,
        )
        return PlayoffPlan(type=PLAYOFF_FINAL, qualified=qualified[:2], matches=[final])

    first, second, third, fourth = qualified
    semi_round = round_offset + 1
    final_round = round_offset + 2

    sf1 = PlannedMatch(
        code="SF1",
        round_number=semi_round,
        sequence_in_round=1,
        match_type=MatchType.semifinal,
        participant_a_id=first,
        participant_b_id=fourth,
        status=MatchStatus.scheduled,
        next_code="F",
        next_slot=SLOT_A,
        loser_next_code="C",
        loser_next_slot=SLOT_A,
    )
    sf2 = PlannedMatch(
        code="SF2",
        round_number=semi_round,
        sequence_in_round=2,
        match_type=MatchType.semifinal,
        participant_a_id=second,
        participant_b_id=third,
        status=MatchStatus.scheduled,
        next_code="F",
        next_slot=SLOT_B,
        loser_next_code="C",
        loser_next_slot=SLOT_B,
    )
    final = PlannedMatch(
        code="F",
        round_number=final_round,
        sequence_in_round=1,
        match_type=MatchType.final,
        source_a=SlotSource(code="SF1", role=ROLE_WINNER),
        source_b=SlotSource(code="SF2", role=ROLE_WINNER),
    )
    consolation = PlannedMatch(
        code="C",
        round_number=final_round,
        sequence_in_round=2,
        match_type=MatchType.consolation,
        source_a=SlotSource(code="SF1", role=ROLE_LOSER),
        source_b=SlotSource(code="SF2", role=ROLE_LOSER),
    )
    return PlayoffPlan(
        type=PLAYOFF_SEMIFINALS,
        qualified=list(qualified),
        matches=[sf1, sf2, final, consolation],
    )
