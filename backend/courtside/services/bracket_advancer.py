"""
Result submission state machine for elimination matches.

Given read snapshots of the match, its successors and the competition, plan
every write a result causes:
  1. completed match → winner/loser recorded, score stored
  2. winner (and, for semifinals, loser) written into the successor slot;
     a successor whose two slots are now known moves pending → scheduled
  3. a terminal final fixes champion/runner-up and completes the competition;
     a consolation fixes third/fourth place

The planner never touches the database. The operation layer applies the plan
inside the write phase of a transaction.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from courtside.errors import FailedPrecondition, Internal
from courtside.models.competition import Competition, CompetitionStatus
from courtside.models.match import SLOT_A, STATUS_ORDER, Match, MatchStatus, MatchType
from courtside.services.score_parser import ParsedScore


@dataclass
class SuccessorUpdate:
    match_id: int
    changes: Dict[str, Any]
    becomes_scheduled: bool


@dataclass
class AdvancementPlan:
    winner_id: int
    loser_id: int
    match_changes: Dict[str, Any]
    successor_updates: List[SuccessorUpdate] = field(default_factory=list)
    competition_changes: Dict[str, Any] = field(default_factory=dict)
    next_match_id: Optional[int] = None
    competition_completed: bool = False


def can_transition(current: str, target: str) -> bool:
    """Strictly forward: pending → scheduled → in_progress → completed."""
    return STATUS_ORDER.index(MatchStatus(target)) > STATUS_ORDER.index(MatchStatus(current))


def validate_submission(match: Match, winner_id: int) -> None:
    if match.status == MatchStatus.completed:
        raise FailedPrecondition(f"Match {match.id} is already completed")
    if not match.is_resolved:
        raise FailedPrecondition(f"Match {match.id} is still waiting on an earlier result")
    if not match.involves(winner_id):
        raise Internal(
            f"Winner {winner_id} is not a participant of match {match.id} "
            f"({match.participant_a_id} v {match.participant_b_id})"
        )


def _fill_slot(successor: Match, side: str, participant_id: int) -> Optional[SuccessorUpdate]:
    """Idempotent: re-filling the same participant is a no-op."""
    field_name = "participant_a_id" if side == SLOT_A else "participant_b_id"
    current = getattr(successor, field_name)
    if current == participant_id:
        return None
    if current is not None:
        raise Internal(
            f"Match {successor.id} slot {side} already holds participant {current}, "
            f"cannot place {participant_id}"
        )

    changes: Dict[str, Any] = {field_name: participant_id}
    other = successor.participant_b_id if side == SLOT_A else successor.participant_a_id
    becomes_scheduled = other is not None and successor.status == MatchStatus.pending
    if becomes_scheduled:
        changes["status"] = MatchStatus.scheduled
    return SuccessorUpdate(match_id=successor.id, changes=changes, becomes_scheduled=becomes_scheduled)


def plan_advancement(
    match: Match,
    winner_id: int,
    score: ParsedScore,
    competition: Competition,
    next_match: Optional[Match] = None,
    loser_next_match: Optional[Match] = None,
    retired: bool = False,
    walkover: bool = False,
    now: Optional[datetime] = None,
) -> AdvancementPlan:
    validate_submission(match, winner_id)
    now = now or datetime.utcnow()
    loser_id = match.participant_b_id if winner_id == match.participant_a_id else match.participant_a_id

    plan = AdvancementPlan(
        winner_id=winner_id,
        loser_id=loser_id,
        match_changes={
            "status": MatchStatus.completed,
            "winner_id": winner_id,
            "sets": score.to_json(),
            "final_score": "W/O" if walkover else score.final_score,
            "retired": retired,
            "walkover": walkover,
            "completed_at": now,
            "updated_at": now,
        },
    )

    if match.next_match_id is not None:
        if next_match is None or next_match.id != match.next_match_id:
            raise Internal(f"Successor {match.next_match_id} of match {match.id} was not loaded")
        update = _fill_slot(next_match, match.next_match_slot, winner_id)
        if update:
            plan.successor_updates.append(update)
        plan.next_match_id = next_match.id

    if match.loser_next_match_id is not None:
        if loser_next_match is None or loser_next_match.id != match.loser_next_match_id:
            raise Internal(f"Loser successor {match.loser_next_match_id} of match {match.id} was not loaded")
        update = _fill_slot(loser_next_match, match.loser_next_match_slot, loser_id)
        if update:
            plan.successor_updates.append(update)

    if match.match_type == MatchType.final and match.next_match_id is None:
        if competition.status == CompetitionStatus.completed:
            raise FailedPrecondition(f"Competition {competition.id} is already completed")
        plan.competition_changes.update(
            {
                "status": CompetitionStatus.completed,
                "champion_id": winner_id,
                "runner_up_id": loser_id,
                "completed_at": now,
            }
        )
        plan.competition_completed = True
    elif match.match_type == MatchType.consolation:
        # The final may already have completed the competition; placement still lands
        plan.competition_changes.update({"third_place_id": winner_id, "fourth_place_id": loser_id})

    if plan.competition_changes:
        plan.competition_changes["updated_at"] = now
    return plan


def round_is_complete(round_matches: Sequence[Match], just_completed_id: int) -> bool:
    """True when every match of a round is completed once ``just_completed_id`` is."""
    return all(m.status == MatchStatus.completed or m.id == just_completed_id for m in round_matches)


def next_bracket_round(competition: Competition, round_matches: Sequence[Match], just_completed_id: int) -> Optional[int]:
    """New current_round if this result closes the current bracket round."""
    if not round_matches or not round_is_complete(round_matches, just_completed_id):
        return None
    if competition.current_round >= competition.total_rounds:
        return None
    return competition.current_round + 1
