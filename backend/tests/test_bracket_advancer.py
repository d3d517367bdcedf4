"""
Tests for result planning on elimination matches: successor slots,
pending → scheduled, champion/runner-up, third place.
"""
from datetime import datetime

import pytest

from courtside.errors import FailedPrecondition, Internal
from courtside.models.competition import Competition, CompetitionKind, CompetitionStatus
from courtside.models.match import Match, MatchStatus, MatchType
from courtside.services.bracket_advancer import (
    can_transition,
    next_bracket_round,
    plan_advancement,
    round_is_complete,
    validate_submission,
)
from courtside.services.score_parser import empty_score, parse_score

NOW = datetime(2026, 5, 1, 12, 0, 0)


def _competition(**kwargs):
    defaults = dict(
        id=1,
        name="Spring Open",
        kind=CompetitionKind.bracket,
        status=CompetitionStatus.in_progress,
        total_rounds=2,
        current_round=1,
    )
    defaults.update(kwargs)
    return Competition(**defaults)


def _match(id, code, match_type=MatchType.bracket, a=None, b=None, status=MatchStatus.scheduled, **kwargs):
    return Match(
        id=id,
        competition_id=1,
        code=code,
        round_number=kwargs.pop("round_number", 1),
        sequence_in_round=kwargs.pop("sequence_in_round", 1),
        match_type=match_type,
        participant_a_id=a,
        participant_b_id=b,
        status=status,
        **kwargs,
    )


class TestTransitions:
    def test_forward_only(self):
        assert can_transition("pending", "scheduled")
        assert can_transition("scheduled", "in_progress")
        assert can_transition("scheduled", "completed")
        assert not can_transition("completed", "in_progress")
        assert not can_transition("scheduled", "scheduled")

    def test_completed_match_rejected(self):
        match = _match(1, "R1M1", a=10, b=11, status=MatchStatus.completed, winner_id=10)
        with pytest.raises(FailedPrecondition):
            validate_submission(match, 10)

    def test_unresolved_match_rejected(self):
        match = _match(1, "R2M1", a=10, status=MatchStatus.pending)
        with pytest.raises(FailedPrecondition):
            validate_submission(match, 10)

    def test_winner_must_play_in_match(self):
        match = _match(1, "R1M1", a=10, b=11)
        with pytest.raises(Internal):
            validate_submission(match, 99)


class TestSuccessorSlots:
    def test_winner_fills_slot_and_waits(self):
        match = _match(1, "R1M1", a=10, b=11, next_match_id=3, next_match_slot="a")
        successor = _match(3, "R2M1", match_type=MatchType.final, status=MatchStatus.pending, round_number=2)
        plan = plan_advancement(match, 11, parse_score("4-6 2-6"), _competition(), next_match=successor, now=NOW)

        assert plan.loser_id == 10
        assert plan.next_match_id == 3
        assert plan.match_changes["status"] == MatchStatus.completed
        assert plan.match_changes["final_score"] == "4-6 2-6"
        assert plan.match_changes["completed_at"] == NOW
        [update] = plan.successor_updates
        assert update.changes == {"participant_a_id": 11}
        assert not update.becomes_scheduled
        assert not plan.competition_completed

    def test_second_slot_schedules_successor(self):
        match = _match(2, "R1M2", a=12, b=13, next_match_id=3, next_match_slot="b")
        successor = _match(3, "R2M1", match_type=MatchType.final, a=11, status=MatchStatus.pending, round_number=2)
        plan = plan_advancement(match, 12, parse_score("6-1 6-1"), _competition(), next_match=successor, now=NOW)

        [update] = plan.successor_updates
        assert update.changes == {"participant_b_id": 12, "status": MatchStatus.scheduled}
        assert update.becomes_scheduled

    def test_refilling_same_participant_is_noop(self):
        match = _match(2, "R1M2", a=12, b=13, next_match_id=3, next_match_slot="b")
        successor = _match(3, "R2M1", a=11, b=12, round_number=2)
        plan = plan_advancement(match, 12, parse_score("6-1"), _competition(), next_match=successor, now=NOW)
        assert plan.successor_updates == []

    def test_occupied_slot_is_internal(self):
        match = _match(2, "R1M2", a=12, b=13, next_match_id=3, next_match_slot="b")
        successor = _match(3, "R2M1", a=11, b=14, round_number=2)
        with pytest.raises(Internal):
            plan_advancement(match, 12, parse_score("6-1"), _competition(), next_match=successor, now=NOW)

    def test_missing_successor_snapshot_is_internal(self):
        match = _match(2, "R1M2", a=12, b=13, next_match_id=3, next_match_slot="b")
        with pytest.raises(Internal):
            plan_advancement(match, 12, parse_score("6-1"), _competition(), now=NOW)

    def test_semifinal_loser_goes_to_consolation(self):
        sf = _match(
            1, "SF1", match_type=MatchType.semifinal, a=1, b=4,
            next_match_id=3, next_match_slot="a", loser_next_match_id=4, loser_next_match_slot="a",
        )
        final = _match(3, "F", match_type=MatchType.final, status=MatchStatus.pending)
        consolation = _match(4, "C", match_type=MatchType.consolation, status=MatchStatus.pending)
        plan = plan_advancement(
            sf, 1, parse_score("6-3 6-3"), _competition(kind=CompetitionKind.league, status=CompetitionStatus.playoffs),
            next_match=final, loser_next_match=consolation, now=NOW,
        )
        assert [u.match_id for u in plan.successor_updates] == [3, 4]
        assert plan.successor_updates[1].changes == {"participant_a_id": 4}


class TestTerminalMatches:
    def test_final_completes_competition(self):
        final = _match(3, "R2M1", match_type=MatchType.final, a=11, b=12, round_number=2)
        plan = plan_advancement(final, 12, parse_score("3-6 6-3 10-8"), _competition(current_round=2), now=NOW)

        assert plan.competition_completed
        assert plan.competition_changes["status"] == CompetitionStatus.completed
        assert plan.competition_changes["champion_id"] == 12
        assert plan.competition_changes["runner_up_id"] == 11
        assert plan.competition_changes["completed_at"] == NOW

    def test_final_on_completed_competition_rejected(self):
        final = _match(3, "F", match_type=MatchType.final, a=11, b=12)
        with pytest.raises(FailedPrecondition):
            plan_advancement(final, 12, parse_score("6-0"), _competition(status=CompetitionStatus.completed), now=NOW)

    def test_consolation_sets_third_place_only(self):
        consolation = _match(4, "C", match_type=MatchType.consolation, a=3, b=4)
        plan = plan_advancement(
            consolation, 4, parse_score("6-4"), _competition(status=CompetitionStatus.completed), now=NOW
        )
        assert not plan.competition_completed
        assert plan.competition_changes["third_place_id"] == 4
        assert plan.competition_changes["fourth_place_id"] == 3
        assert "status" not in plan.competition_changes

    def test_walkover_and_retirement_flags(self):
        match = _match(1, "R1M1", match_type=MatchType.final, a=10, b=11)
        plan = plan_advancement(match, 10, empty_score(), _competition(), walkover=True, now=NOW)
        assert plan.match_changes["final_score"] == "W/O"
        assert plan.match_changes["walkover"] is True
        assert plan.match_changes["sets"] == []

        match = _match(1, "R1M1", match_type=MatchType.final, a=10, b=11)
        plan = plan_advancement(match, 11, parse_score("6-4 2-1"), _competition(), retired=True, now=NOW)
        assert plan.match_changes["retired"] is True
        assert plan.match_changes["final_score"] == "6-4 2-1"


class TestRoundProgress:
    def test_round_complete_counts_current_result(self):
        matches = [
            _match(1, "R1M1", a=1, b=4, status=MatchStatus.completed),
            _match(2, "R1M2", a=2, b=3),
        ]
        assert round_is_complete(matches, 2)
        assert not round_is_complete(matches, 1)

    def test_advances_current_round(self):
        matches = [_match(1, "R1M1", a=1, b=4, status=MatchStatus.completed), _match(2, "R1M2", a=2, b=3)]
        assert next_bracket_round(_competition(current_round=1, total_rounds=2), matches, 2) == 2

    def test_stays_on_last_round(self):
        matches = [_match(3, "R2M1", match_type=MatchType.final, a=1, b=2, round_number=2)]
        assert next_bracket_round(_competition(current_round=2, total_rounds=2), matches, 3) is None
