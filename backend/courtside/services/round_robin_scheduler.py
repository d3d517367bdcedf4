"""
Round-robin fixture generation (circle method).

Every unordered pair meets exactly once: N(N-1)/2 matches. Position 0 is
fixed and the rest rotate one step per round; for odd N a synthetic BYE
position is added and any pairing with it is skipped, so nobody plays twice
in a round.
"""
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from courtside.errors import FailedPrecondition
from courtside.services.standings_calculator import Standing, initial_standings


@dataclass
class Fixture:
    round_number: int
    sequence_in_round: int
    participant_a_id: int
    participant_b_id: int

    @property
    def code(self) -> str:
        return f"RR{self.round_number}M{self.sequence_in_round}"


@dataclass
class RoundRobinPlan:
    total_rounds: int
    fixtures: List[Fixture]
    standings: List[Standing]


def rr_round_count(n: int) -> int:
    """N-1 rounds for even N, N for odd N (one bye per round)."""
    return n - 1 if n % 2 == 0 else n


def rr_pairings_by_round(n: int) -> List[Tuple[int, int, int, int]]:
    """
    Round-robin pairings. Returns list of (round_index, sequence_in_round, idx_a, idx_b).
    idx_a, idx_b are 0-based input positions with idx_a < idx_b.
    """
    n2 = n + 1 if n % 2 == 1 else n  # Add BYE for odd n
    half = n2 // 2
    rounds_count = n2 - 1

    # For odd n, position n is the BYE
    bye_idx = n if n % 2 == 1 else -1

    result: List[Tuple[int, int, int, int]] = []
    positions = list(range(n2))

    for round_num in range(1, rounds_count + 1):
        seq = 0
        for i in range(half):
            j = n2 - 1 - i
            a, b = positions[i], positions[j]
            if a == bye_idx or b == bye_idx:
                continue
            seq += 1
            result.append((round_num, seq, min(a, b), max(a, b)))
        # Rotate: keep 0, move last to second, shift others
        positions = [positions[0]] + [positions[-1]] + positions[1:-1]

    return result


def build_round_robin(participants: Sequence[Tuple[int, str]]) -> RoundRobinPlan:
    """participants: (participant_id, display_name) in ledger order."""
    n = len(participants)
    if n < 2:
        raise FailedPrecondition(f"A round robin needs at least 2 participants, got {n}")

    fixtures = [
        Fixture(
            round_number=round_num,
            sequence_in_round=seq,
            participant_a_id=participants[a][0],
            participant_b_id=participants[b][0],
        )
        for round_num, seq, a, b in rr_pairings_by_round(n)
    ]
    return RoundRobinPlan(
        total_rounds=rr_round_count(n),
        fixtures=fixtures,
        standings=initial_standings(participants),
    )
