"""
Score parser for set-based results.

Supports:
  [{"a": 6, "b": 4}, {"a": 3, "b": 6}]  → structured sets
  "8-4"           → 1 set, games 8-4
  "6-3 4-6 10-7"  → 3 sets, games summed
  "6-3, 4-6, 10-7" → comma-separated variant
  {"sets": [...]} or {"display": "8-4"} → unwrapped first

Games are always from side A's perspective first. Returns None on parse
failure; callers decide whether that is fatal.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class ParsedScore:
    sets: List[Tuple[int, int]]  # (side_a_games, side_b_games) per set
    side_a_sets_won: int
    side_b_sets_won: int
    side_a_games: int
    side_b_games: int

    @property
    def final_score(self) -> str:
        return " ".join(f"{a}-{b}" for a, b in self.sets)

    @property
    def winning_side(self) -> Optional[str]:
        """"a", "b", or None when sets are level (e.g. an abandoned match)."""
        if self.side_a_sets_won > self.side_b_sets_won:
            return "a"
        if self.side_b_sets_won > self.side_a_sets_won:
            return "b"
        return None

    def to_json(self) -> List[Dict[str, int]]:
        return [{"a": a, "b": b} for a, b in self.sets]


def empty_score() -> ParsedScore:
    """Score of a match decided without play (walkover, bye)."""
    return _build([])


def parse_score(score: Any) -> Optional[ParsedScore]:
    """Parse a score blob into structured set/game counts.

    Returns None if the score cannot be parsed.
    """
    if not score:
        return None

    if isinstance(score, list):
        return _parse_structured_sets(score)
    if isinstance(score, dict):
        if isinstance(score.get("sets"), list):
            return _parse_structured_sets(score["sets"])
        score = str(score.get("display") or score.get("score") or "")
    if not isinstance(score, str) or not score.strip():
        return None

    return _parse_score_string(score.strip())


def _parse_structured_sets(sets_list: list) -> Optional[ParsedScore]:
    sets: List[Tuple[int, int]] = []
    for s in sets_list:
        if not isinstance(s, dict):
            return None
        try:
            a = int(s.get("a", 0))
            b = int(s.get("b", 0))
        except (TypeError, ValueError):
            return None
        if a < 0 or b < 0:
            return None
        sets.append((a, b))
    if not sets:
        return None
    return _build(sets)


def _parse_score_string(raw: str) -> Optional[ParsedScore]:
    """Parse strings like '8-4', '6-3 4-6 10-7', '6-3, 4-6, 10-7'."""
    # Normalize: replace commas with spaces, collapse whitespace
    normalized = raw.replace(",", " ").strip()
    parts = normalized.split()

    sets: List[Tuple[int, int]] = []
    for part in parts:
        pair = part.split("-")
        if len(pair) != 2:
            return None
        try:
            a = int(pair[0])
            b = int(pair[1])
        except ValueError:
            return None
        sets.append((a, b))

    if not sets:
        return None
    return _build(sets)


def _build(sets: List[Tuple[int, int]]) -> ParsedScore:
    return ParsedScore(
        sets=sets,
        side_a_sets_won=sum(1 for a, b in sets if a > b),
        side_b_sets_won=sum(1 for a, b in sets if b > a),
        side_a_games=sum(a for a, _ in sets),
        side_b_games=sum(b for _, b in sets),
    )
