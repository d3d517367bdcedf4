"""
Single-elimination bracket builder.

Pure planning: takes seed data, returns a list of PlannedMatch records that
reference each other by code. The operation layer inserts them and resolves
codes to database ids.

Layout:
  - size = next power of two >= N; rounds = log2(size)
  - entries ordered seeded-first (by seed), then unseeded by registration order
  - round 1 positions follow the standard fold (1v8, 4v5, 3v6, 2v7 for 8),
    so seeds 1 and 2 can only meet in the final
  - seeds N+1..size are phantoms: their opponents (the top size-N seeds) get
    byes, materialized as completed is_bye matches so total = size - 1
  - every match feeds ceil(seq/2) of the next round, slot a for odd seq
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from courtside.errors import FailedPrecondition
from courtside.models.match import ROLE_WINNER, SLOT_A, SLOT_B, MatchStatus, MatchType


@dataclass
class SeedEntry:
    participant_id: int
    seed: Optional[int]  # None/0 = unseeded
    registration_order: int


@dataclass
class SlotSource:
    code: str
    role: str  # ROLE_WINNER | ROLE_LOSER


@dataclass
class PlannedMatch:
    code: str
    round_number: int
    sequence_in_round: int
    match_type: MatchType
    participant_a_id: Optional[int] = None
    participant_b_id: Optional[int] = None
    source_a: Optional[SlotSource] = None
    source_b: Optional[SlotSource] = None
    next_code: Optional[str] = None
    next_slot: Optional[str] = None
    loser_next_code: Optional[str] = None
    loser_next_slot: Optional[str] = None
    status: MatchStatus = MatchStatus.pending
    winner_id: Optional[int] = None
    is_bye: bool = False

    def set_slot(self, side: str, participant_id: int) -> None:
        if side == SLOT_A:
            self.participant_a_id = participant_id
        else:
            self.participant_b_id = participant_id

    @property
    def is_resolved(self) -> bool:
        return self.participant_a_id is not None and self.participant_b_id is not None


@dataclass
class BracketPlan:
    size: int
    total_rounds: int
    byes: int
    matches: List[PlannedMatch] = field(default_factory=list)

    @property
    def playable_matches(self) -> int:
        return sum(1 for m in self.matches if not m.is_bye)


def bracket_size(n: int) -> int:
    size = 1
    while size < n:
        size *= 2
    return size


def round_count(size: int) -> int:
    return max(size.bit_length() - 1, 0)


def round_name(round_number: int, total_rounds: int) -> str:
    remaining = total_rounds - round_number + 1
    if remaining == 1:
        return "Final"
    if remaining == 2:
        return "Semifinals"
    if remaining == 3:
        return "Quarterfinals"
    return f"Round {round_number}"


def bracket_fold_positions(n: int) -> List[int]:
    """Standard bracket-fold positions for *n* entries.

    Returns a flat list of seed numbers in bracket position order.
    Consecutive pairs indicate which seeds meet if chalk holds:
      4-entry  -> [1, 4, 2, 3]       -> (1v4), (2v3)
      8-entry  -> [1, 8, 4, 5, ...]   -> (1v8), (4v5), ...
    """
    if n == 1:
        return [1]
    if n == 2:
        return [1, 2]

    half = bracket_fold_positions(n // 2)

    expanded: List[int] = []
    for s in half:
        expanded.append(s)
        expanded.append(n + 1 - s)

    mid = len(expanded) // 2
    top = expanded[:mid]
    bot = expanded[mid:]
    if len(bot) >= 4:
        bot = bot[:-4] + bot[-2:] + bot[-4:-2]

    return top + bot


def order_entries(entries: Sequence[SeedEntry]) -> List[SeedEntry]:
    """Seeded entries by seed, then unseeded by registration order."""
    seeded = sorted((e for e in entries if e.seed), key=lambda e: (e.seed, e.registration_order))
    unseeded = sorted((e for e in entries if not e.seed), key=lambda e: e.registration_order)
    return seeded + unseeded


def match_code(round_number: int, sequence_in_round: int) -> str:
    return f"R{round_number}M{sequence_in_round}"


def build_bracket(entries: Sequence[SeedEntry]) -> BracketPlan:
    n = len(entries)
    if n < 2:
        raise FailedPrecondition(f"A bracket needs at least 2 participants, got {n}")

    ordered = order_entries(entries)
    size = bracket_size(n)
    total_rounds = round_count(size)
    by_seed: Dict[int, int] = {i + 1: e.participant_id for i, e in enumerate(ordered)}

    rounds: List[List[PlannedMatch]] = []
    matches_in_round = size // 2
    for r in range(1, total_rounds + 1):
        is_final = r == total_rounds
        rounds.append(
            [
                PlannedMatch(
                    code=match_code(r, s),
                    round_number=r,
                    sequence_in_round=s,
                    match_type=MatchType.final if is_final else MatchType.bracket,
                )
                for s in range(1, matches_in_round + 1)
            ]
        )
        matches_in_round //= 2

    # Wire winner-of links
    for r_idx in range(len(rounds) - 1):
        for m in rounds[r_idx]:
            target = rounds[r_idx + 1][(m.sequence_in_round - 1) // 2]
            side = SLOT_A if m.sequence_in_round % 2 == 1 else SLOT_B
            m.next_code = target.code
            m.next_slot = side
            source = SlotSource(code=m.code, role=ROLE_WINNER)
            if side == SLOT_A:
                target.source_a = source
            else:
                target.source_b = source

    # Seed round 1
    positions = bracket_fold_positions(size)
    byes = 0
    for i, m in enumerate(rounds[0]):
        seed_a, seed_b = positions[2 * i], positions[2 * i + 1]
        m.participant_a_id = by_seed.get(seed_a)
        m.participant_b_id = by_seed.get(seed_b)
        if m.participant_a_id is not None and m.participant_b_id is not None:
            m.status = MatchStatus.scheduled
            continue

        # Exactly one real entrant: phantoms never meet each other
        byes += 1
        advancing = m.participant_a_id if m.participant_a_id is not None else m.participant_b_id
        m.participant_a_id, m.participant_b_id = advancing, None
        m.is_bye = True
        m.status = MatchStatus.completed
        m.winner_id = advancing
        if m.next_code is not None:
            target = rounds[1][(m.sequence_in_round - 1) // 2]
            target.set_slot(m.next_slot, advancing)

    for later in rounds[1:]:
        for m in later:
            if m.is_resolved:
                m.status = MatchStatus.scheduled

    plan = BracketPlan(size=size, total_rounds=total_rounds, byes=byes)
    for round_matches in rounds:
        plan.matches.extend(round_matches)
    return plan
