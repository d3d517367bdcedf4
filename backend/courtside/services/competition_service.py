"""
Competition operations.

Each public method is one logical operation run through the
TransactionCoordinator: read every document it needs, compute the outcome
with the pure planners (bracket builder, round-robin scheduler, standings,
playoffs, advancement, ratings), then write. Notifications go out after
commit and only ever produce warnings.

Every write also compare-and-sets the competition row, so operations on the
same competition serialize through it.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlmodel import col, select

from courtside.auth import Caller, can_manage, require_manager, require_player_or_manager
from courtside.config import KTier, Settings
from courtside.errors import (
    AlreadyExists,
    FailedPrecondition,
    Internal,
    InvalidArgument,
    NotFound,
    PermissionDenied,
)
from courtside.models.competition import (
    BRACKET_GENERATION_STATUSES,
    SEEDABLE_STATUSES,
    Competition,
    CompetitionKind,
    CompetitionStatus,
    GameType,
)
from courtside.models.match import Match, MatchStatus, MatchType
from courtside.models.participant import Participant, ParticipantKind
from courtside.models.rating_profile import RatingHistory, RatingProfile
from courtside.services import notifications
from courtside.services.bracket_advancer import (
    can_transition,
    next_bracket_round,
    plan_advancement,
    validate_submission,
)
from courtside.services.bracket_builder import PlannedMatch, SeedEntry, build_bracket
from courtside.services.notifications import Event, NotificationDispatcher, dispatch_all
from courtside.services.playoff_generator import build_playoffs
from courtside.services.rating_engine import MemberRating, RatingChange, compute_match_changes
from courtside.services.round_robin_scheduler import build_round_robin
from courtside.services.score_parser import ParsedScore, empty_score, parse_score
from courtside.services.standings_calculator import (
    ResultRecord,
    Standing,
    apply_result,
    dump_standings,
    load_standings,
    sort_standings,
)
from courtside.services.transaction import ReadPhase, TransactionCoordinator, WritePhase

logger = logging.getLogger(__name__)

REGISTRATION_STATUSES = (
    CompetitionStatus.draft,
    CompetitionStatus.registration,
    CompetitionStatus.preparing,
)
SUBMITTABLE_STATUSES = (
    CompetitionStatus.in_progress,
    CompetitionStatus.ongoing,
    CompetitionStatus.playoffs,
)


# ----------------------------------------------------------------------------
# Read helpers (read phase only)
# ----------------------------------------------------------------------------


def _load_competition(reads: ReadPhase, competition_id: int) -> Competition:
    competition = reads.get(Competition, competition_id)
    if competition is None:
        raise NotFound(f"Competition {competition_id} not found")
    return competition


def _load_participants(reads: ReadPhase, competition_id: int) -> List[Participant]:
    return reads.exec(
        select(Participant)
        .where(Participant.competition_id == competition_id)
        .order_by(Participant.registration_order, Participant.id)
    )


def _load_matches(reads: ReadPhase, competition_id: int) -> List[Match]:
    return reads.exec(
        select(Match)
        .where(Match.competition_id == competition_id)
        .order_by(Match.round_number, Match.sequence_in_round, Match.id)
    )


def _load_match(reads: ReadPhase, competition_id: int, match_id: int) -> Match:
    match = reads.get(Match, match_id)
    if match is None or match.competition_id != competition_id:
        raise NotFound(f"Match {match_id} not found in competition {competition_id}")
    return match


def _completed_league_results(matches: Sequence[Match], exclude_id: Optional[int] = None) -> List[ResultRecord]:
    return [
        (m.participant_a_id, m.participant_b_id, m.winner_id)
        for m in matches
        if m.match_type == MatchType.round_robin
        and m.status == MatchStatus.completed
        and m.id != exclude_id
        and m.winner_id is not None
    ]


def _ranked_standings(competition: Competition, matches: Sequence[Match]) -> List[Standing]:
    """Stored table, re-ranked with the comparator against completed league matches."""
    return sort_standings(load_standings(competition.standings), _completed_league_results(matches))


# ----------------------------------------------------------------------------
# Write helpers (write phase only)
# ----------------------------------------------------------------------------


def _materialize(
    writes: WritePhase, competition_id: int, planned: Sequence[PlannedMatch], now: datetime
) -> Dict[str, Match]:
    """Insert planned matches, then resolve code references into id links."""
    by_code: Dict[str, Match] = {}
    for p in planned:
        by_code[p.code] = writes.insert(
            Match(
                competition_id=competition_id,
                code=p.code,
                round_number=p.round_number,
                sequence_in_round=p.sequence_in_round,
                match_type=p.match_type,
                participant_a_id=p.participant_a_id,
                participant_b_id=p.participant_b_id,
                status=p.status,
                is_bye=p.is_bye,
                winner_id=p.winner_id,
                final_score="BYE" if p.is_bye else None,
                completed_at=now if p.status == MatchStatus.completed else None,
                created_at=now,
                updated_at=now,
            )
        )

    for p in planned:
        links: Dict[str, Any] = {}
        if p.next_code:
            links["next_match_id"] = by_code[p.next_code].id
            links["next_match_slot"] = p.next_slot
        if p.loser_next_code:
            links["loser_next_match_id"] = by_code[p.loser_next_code].id
            links["loser_next_match_slot"] = p.loser_next_slot
        if p.source_a:
            links["source_a_match_id"] = by_code[p.source_a.code].id
            links["source_a_role"] = p.source_a.role
        if p.source_b:
            links["source_b_match_id"] = by_code[p.source_b.code].id
            links["source_b_role"] = p.source_b.role
        if links:
            writes.update(by_code[p.code], **links)
    return by_code


def _rating_key(competition_id: int, match_id: int) -> str:
    return f"{competition_id}:{match_id}"


class CompetitionService:
    def __init__(
        self,
        coordinator: TransactionCoordinator,
        settings: Settings,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.coordinator = coordinator
        self.settings = settings
        self.dispatcher = dispatcher

    def _k_tiers(self, competition: Competition) -> List[KTier]:
        return self.settings.club_k_tiers if competition.club_id else self.settings.global_k_tiers

    def _notify(self, events: List[Event]) -> List[str]:
        return dispatch_all(self.dispatcher, events)

    # ------------------------------------------------------------------
    # Registration ledger
    # ------------------------------------------------------------------

    def create_competition(
        self,
        caller: Caller,
        name: str,
        kind: CompetitionKind,
        game_type: GameType = GameType.singles,
        club_id: Optional[str] = None,
        points_for_win: Optional[int] = None,
        points_for_loss: Optional[int] = None,
        auto_playoffs: bool = False,
        open_registration: bool = False,
    ) -> Competition:
        if kind == CompetitionKind.league:
            status = CompetitionStatus.preparing
        else:
            status = CompetitionStatus.registration if open_registration else CompetitionStatus.draft

        competition = Competition(
            name=name,
            kind=kind,
            status=status,
            game_type=game_type,
            club_id=club_id,
            created_by=caller.user_id,
            points_for_win=self.settings.points_for_win if points_for_win is None else points_for_win,
            points_for_loss=self.settings.points_for_loss if points_for_loss is None else points_for_loss,
            auto_playoffs=auto_playoffs,
        )

        def op(reads: ReadPhase) -> Competition:
            writes = reads.close()
            return writes.insert(competition)

        created = self.coordinator.run(op, name="create_competition")
        logger.info(f"Competition {created.id} created ({created.kind}, {created.game_type}) by {caller.user_id}")
        return created

    def register_participant(
        self,
        caller: Caller,
        competition_id: int,
        player_id: str,
        display_name: str,
        partner_player_id: Optional[str] = None,
        team_key: Optional[str] = None,
    ) -> Participant:
        def op(reads: ReadPhase) -> Participant:
            competition = _load_competition(reads, competition_id)
            members = {player_id} | ({partner_player_id} if partner_player_id else set())
            if not can_manage(caller, competition) and caller.user_id not in members:
                raise PermissionDenied(f"User {caller.user_id} cannot register other players")
            if competition.status not in REGISTRATION_STATUSES:
                raise FailedPrecondition(
                    f"Competition {competition_id} is not open for registration (status {competition.status})"
                )

            is_team = competition.game_type != GameType.singles
            if is_team and not partner_player_id:
                raise InvalidArgument("Doubles and mixed competitions require a partner")
            if not is_team and partner_player_id:
                raise InvalidArgument("Singles competitions do not take a partner")
            if partner_player_id == player_id:
                raise InvalidArgument("A player cannot partner themselves")

            existing = _load_participants(reads, competition_id)
            taken = {pid for p in existing for pid in p.player_ids}
            clash = members & taken
            if clash:
                raise AlreadyExists(f"Player(s) {sorted(clash)} already registered in competition {competition_id}")

            writes = reads.close()
            writes.update(competition, updated_at=datetime.utcnow())
            return writes.insert(
                Participant(
                    competition_id=competition_id,
                    kind=ParticipantKind.team if is_team else ParticipantKind.individual,
                    player_id=player_id,
                    partner_player_id=partner_player_id,
                    team_key=team_key,
                    display_name=display_name,
                    registration_order=max((p.registration_order for p in existing), default=0) + 1,
                )
            )

        participant = self.coordinator.run(op, name="register_participant")
        logger.info(f"Participant {participant.id} registered in competition {competition_id}")
        return participant

    # ------------------------------------------------------------------
    # Seeding and generation
    # ------------------------------------------------------------------

    def assign_seeds(self, caller: Caller, competition_id: int, seeds: Sequence[Tuple[str, int]]) -> Dict[str, Any]:
        """
        Assign (or with seed 0, remove) seeds.

        Each entry names a participant by participant id or by either member's
        player id, so both partners of a team may submit the same seed.
        """
        if not seeds:
            raise InvalidArgument("No seeds supplied")

        def op(reads: ReadPhase) -> Dict[str, Any]:
            competition = _load_competition(reads, competition_id)
            require_manager(caller, competition)
            if competition.status not in SEEDABLE_STATUSES:
                raise FailedPrecondition(
                    f"Seeds can only be assigned in draft or registration (status {competition.status})"
                )

            participants = _load_participants(reads, competition_id)
            n = len(participants)
            by_ref: Dict[str, Participant] = {}
            for p in participants:
                by_ref[str(p.id)] = p
                for pid in p.player_ids:
                    by_ref.setdefault(pid, p)

            requested: Dict[int, int] = {}
            for ref, seed in seeds:
                if seed < 0 or seed > n:
                    raise InvalidArgument(f"Seed {seed} out of range 0..{n}")
                participant = by_ref.get(str(ref))
                if participant is None:
                    raise NotFound(f"Participant '{ref}' not found in competition {competition_id}")
                previous = requested.get(participant.id)
                if previous is not None and previous != seed:
                    raise InvalidArgument(
                        f"Participant {participant.id} was given both seed {previous} and seed {seed}"
                    )
                requested[participant.id] = seed

            final_seeds = {p.id: (requested[p.id] if p.id in requested else (p.seed or 0)) for p in participants}
            holders: Dict[int, int] = {}
            for pid, seed in final_seeds.items():
                if not seed:
                    continue
                if seed in holders:
                    raise InvalidArgument(f"Seed {seed} is assigned to both participant {holders[seed]} and {pid}")
                holders[seed] = pid

            writes = reads.close()
            assigned = removed = 0
            for p in participants:
                if p.id not in requested:
                    continue
                seed = requested[p.id]
                if seed:
                    assigned += 1
                else:
                    removed += 1
                if (p.seed or 0) != seed:
                    writes.update(p, seed=seed or None)
            writes.update(competition, updated_at=datetime.utcnow())
            return {"assigned": assigned, "removed": removed}

        result = self.coordinator.run(op, name="assign_seeds")
        logger.info(f"Seeds updated for competition {competition_id}: {result}")
        return result

    def generate_bracket(self, caller: Caller, competition_id: int) -> Dict[str, Any]:
        def op(reads: ReadPhase) -> Dict[str, Any]:
            competition = _load_competition(reads, competition_id)
            require_manager(caller, competition)
            if competition.kind != CompetitionKind.bracket:
                raise FailedPrecondition(f"Competition {competition_id} is not a bracket")
            if reads.first(select(Match.id).where(Match.competition_id == competition_id)) is not None:
                raise AlreadyExists(f"Bracket for competition {competition_id} already generated")
            if competition.status not in BRACKET_GENERATION_STATUSES:
                raise FailedPrecondition(f"Cannot generate a bracket in status {competition.status}")

            participants = _load_participants(reads, competition_id)
            plan = build_bracket(
                [SeedEntry(p.id, p.seed, p.registration_order) for p in participants]
            )

            writes = reads.close()
            now = datetime.utcnow()
            _materialize(writes, competition_id, plan.matches, now)
            writes.update(
                competition,
                status=CompetitionStatus.in_progress,
                total_rounds=plan.total_rounds,
                current_round=1,
                updated_at=now,
            )
            return {
                "total_rounds": plan.total_rounds,
                "total_matches": len(plan.matches),
                "bracket_size": plan.size,
                "byes": plan.byes,
            }

        result = self.coordinator.run(op, name="generate_bracket")
        logger.info(f"Bracket generated for competition {competition_id}: {result}")
        return result

    def generate_round_robin(self, caller: Caller, competition_id: int) -> Dict[str, Any]:
        def op(reads: ReadPhase) -> Dict[str, Any]:
            competition = _load_competition(reads, competition_id)
            require_manager(caller, competition)
            if competition.kind != CompetitionKind.league:
                raise FailedPrecondition(f"Competition {competition_id} is not a league")
            if competition.status != CompetitionStatus.preparing:
                raise FailedPrecondition(f"Fixtures can only be generated while preparing (status {competition.status})")

            participants = _load_participants(reads, competition_id)
            plan = build_round_robin([(p.id, p.display_name) for p in participants])

            writes = reads.close()
            now = datetime.utcnow()
            for fixture in plan.fixtures:
                writes.insert(
                    Match(
                        competition_id=competition_id,
                        code=fixture.code,
                        round_number=fixture.round_number,
                        sequence_in_round=fixture.sequence_in_round,
                        match_type=MatchType.round_robin,
                        participant_a_id=fixture.participant_a_id,
                        participant_b_id=fixture.participant_b_id,
                        status=MatchStatus.scheduled,
                        created_at=now,
                        updated_at=now,
                    )
                )
            writes.update(
                competition,
                status=CompetitionStatus.ongoing,
                total_rounds=plan.total_rounds,
                current_round=1,
                standings=dump_standings(plan.standings),
                updated_at=now,
            )
            return {"total_matches": len(plan.fixtures), "total_rounds": plan.total_rounds}

        result = self.coordinator.run(op, name="generate_round_robin")
        logger.info(f"Round robin generated for competition {competition_id}: {result}")
        return result

    # ------------------------------------------------------------------
    # Match play
    # ------------------------------------------------------------------

    def start_match(self, caller: Caller, competition_id: int, match_id: int) -> Match:
        def op(reads: ReadPhase) -> Match:
            competition = _load_competition(reads, competition_id)
            match = _load_match(reads, competition_id, match_id)
            participants = [reads.get(Participant, pid) for pid in (match.participant_a_id, match.participant_b_id) if pid]
            require_player_or_manager(caller, competition, [pid for p in participants if p for pid in p.player_ids])
            if competition.status not in SUBMITTABLE_STATUSES:
                raise FailedPrecondition(f"Competition {competition_id} is not running (status {competition.status})")
            if not match.is_resolved or not can_transition(match.status, MatchStatus.in_progress):
                raise FailedPrecondition(f"Match {match_id} cannot start from status {match.status}")

            writes = reads.close()
            now = datetime.utcnow()
            writes.update(match, status=MatchStatus.in_progress, started_at=now, updated_at=now)
            writes.update(competition, updated_at=now)
            return match

        started = self.coordinator.run(op, name="start_match")
        logger.info(f"Match {match_id} started in competition {competition_id}")
        return started

    def submit_result(
        self,
        caller: Caller,
        competition_id: int,
        match_id: int,
        winner_id: Optional[int] = None,
        score: Any = None,
        retired: bool = False,
        walkover: bool = False,
    ) -> Dict[str, Any]:
        """
        Record a match result and propagate everything it implies.

        The winner comes from the score (more sets won) unless the match was a
        walkover or a retirement, in which case ``winner_id`` is required. A
        ``winner_id`` that disagrees with the score is rejected.
        """
        parsed = self._validate_score(score, winner_id, retired, walkover)

        def op(reads: ReadPhase) -> Dict[str, Any]:
            competition = _load_competition(reads, competition_id)
            match = _load_match(reads, competition_id, match_id)

            side_a = reads.get(Participant, match.participant_a_id) if match.participant_a_id else None
            side_b = reads.get(Participant, match.participant_b_id) if match.participant_b_id else None
            player_ids = [pid for p in (side_a, side_b) if p for pid in p.player_ids]
            require_player_or_manager(caller, competition, player_ids)

            consolation_after_final = (
                match.match_type == MatchType.consolation and competition.status == CompetitionStatus.completed
            )
            if competition.status not in SUBMITTABLE_STATUSES and not consolation_after_final:
                raise FailedPrecondition(
                    f"Competition {competition_id} does not accept results (status {competition.status})"
                )
            if match.is_bye:
                raise FailedPrecondition(f"Match {match_id} is a bye")
            if match.status == MatchStatus.completed:
                raise FailedPrecondition(f"Match {match_id} is already completed")

            winner = self._resolve_winner(match, parsed, winner_id, retired, walkover)
            validate_submission(match, winner)

            next_match = reads.get(Match, match.next_match_id) if match.next_match_id else None
            loser_next = reads.get(Match, match.loser_next_match_id) if match.loser_next_match_id else None
            all_matches = _load_matches(reads, competition_id)

            plan = plan_advancement(
                match,
                winner,
                parsed,
                competition,
                next_match=next_match,
                loser_next_match=loser_next,
                retired=retired,
                walkover=walkover,
            )
            now = plan.match_changes["completed_at"]
            competition_changes: Dict[str, Any] = dict(plan.competition_changes)

            # League table
            season_complete = False
            if match.match_type == MatchType.round_robin:
                standings = apply_result(
                    load_standings(competition.standings),
                    match.participant_a_id,
                    match.participant_b_id,
                    winner,
                    parsed,
                    competition.points_for_win,
                    competition.points_for_loss,
                    prior_results=_completed_league_results(all_matches, exclude_id=match.id),
                )
                competition_changes["standings"] = dump_standings(standings)
                season_complete = all(
                    m.status == MatchStatus.completed or m.id == match.id
                    for m in all_matches
                    if m.match_type == MatchType.round_robin
                )

            # Bracket round progress
            if competition.kind == CompetitionKind.bracket:
                new_round = next_bracket_round(
                    competition,
                    [m for m in all_matches if m.round_number == competition.current_round],
                    match.id,
                )
                if new_round is not None:
                    competition_changes["current_round"] = new_round

            # Playoffs straight from the last league result
            playoff_plan = None
            if season_complete and competition.auto_playoffs and competition.status == CompetitionStatus.ongoing:
                playoff_plan = build_playoffs(standings, round_offset=competition.total_rounds)
                competition_changes["status"] = CompetitionStatus.playoffs
                competition_changes["playoff"] = playoff_plan.to_json()

            # Ratings
            rating_reads = self._read_rating_profiles(reads, competition, player_ids)
            changes = self._rating_changes(competition, side_a, side_b, winner, walkover, rating_reads)
            key = _rating_key(competition_id, match_id)

            writes = reads.close()
            writes.update(match, **plan.match_changes)
            successors = {m.id: m for m in (next_match, loser_next) if m is not None}
            for update in plan.successor_updates:
                writes.update(successors[update.match_id], **update.changes, updated_at=now)
            if playoff_plan is not None:
                _materialize(writes, competition_id, playoff_plan.matches, now)
            competition_changes["updated_at"] = now
            writes.update(competition, **competition_changes)
            applied = self._apply_ratings(
                writes, competition, match, plan.match_changes["final_score"], changes, rating_reads, key, now
            )

            return {
                "match_id": match_id,
                "winner_id": winner,
                "loser_id": plan.loser_id,
                "final_score": plan.match_changes["final_score"],
                "next_match_id": plan.next_match_id,
                "competition_completed": plan.competition_completed,
                "playoffs_created": playoff_plan is not None,
                "rating_changes": applied,
                "champion_id": competition.champion_id,
                "runner_up_id": competition.runner_up_id,
            }

        result = self.coordinator.run(op, name="submit_result")
        logger.info(
            f"Result recorded for match {match_id} in competition {competition_id}: winner {result['winner_id']}"
        )

        events = [
            Event(
                notifications.MATCH_COMPLETED,
                competition_id,
                {"match_id": match_id, "winner_id": result["winner_id"], "score": result["final_score"]},
            )
        ]
        if result["playoffs_created"]:
            events.append(Event(notifications.PLAYOFFS_CREATED, competition_id, {}))
        if result["competition_completed"]:
            events.append(
                Event(
                    notifications.COMPETITION_COMPLETED,
                    competition_id,
                    {"champion_id": result["champion_id"], "runner_up_id": result["runner_up_id"]},
                )
            )
        result["warnings"] = self._notify(events)
        return result

    def _validate_score(
        self, score: Any, winner_id: Optional[int], retired: bool, walkover: bool
    ) -> ParsedScore:
        if walkover and retired:
            raise InvalidArgument("A match cannot be both a walkover and a retirement")
        if walkover or retired:
            if winner_id is None:
                raise InvalidArgument("winner_id is required for walkovers and retirements")
            if not score:
                return empty_score()
            parsed = parse_score(score)
            if parsed is None:
                raise InvalidArgument(f"Unparseable score: {score!r}")
            return parsed

        if not score:
            raise InvalidArgument("A score is required")
        parsed = parse_score(score)
        if parsed is None:
            raise InvalidArgument(f"Unparseable score: {score!r}")
        if parsed.winning_side is None:
            raise InvalidArgument(f"Score {parsed.final_score} does not produce a winner")
        return parsed

    @staticmethod
    def _resolve_winner(
        match: Match, parsed: ParsedScore, winner_id: Optional[int], retired: bool, walkover: bool
    ) -> int:
        if walkover or retired:
            return winner_id  # type: ignore[return-value]
        if winner_id is not None and not match.involves(winner_id):
            raise Internal(f"Winner {winner_id} is not a participant of match {match.id}")
        from_score = match.slot(parsed.winning_side)  # type: ignore[arg-type]
        if from_score is None:
            raise FailedPrecondition(f"Match {match.id} is still waiting on an earlier result")
        if winner_id is not None and winner_id != from_score:
            raise InvalidArgument(
                f"Reported winner {winner_id} does not match the score {parsed.final_score} "
                f"(side {parsed.winning_side} won)"
            )
        return from_score

    # ------------------------------------------------------------------
    # Ratings
    # ------------------------------------------------------------------

    def _read_rating_profiles(
        self, reads: ReadPhase, competition: Competition, player_ids: Sequence[str]
    ) -> Dict[str, RatingProfile]:
        if not player_ids:
            return {}
        profiles = reads.exec(
            select(RatingProfile).where(
                col(RatingProfile.player_id).in_(list(player_ids)),
                RatingProfile.scope == competition.rating_scope,
                RatingProfile.game_type == competition.game_type,
            )
        )
        return {p.player_id: p for p in profiles}

    def _rating_changes(
        self,
        competition: Competition,
        side_a: Optional[Participant],
        side_b: Optional[Participant],
        winner_id: int,
        walkover: bool,
        profiles: Dict[str, RatingProfile],
    ) -> List[RatingChange]:
        if side_a is None or side_b is None:
            raise Internal("Rated match is missing a participant")

        def members(participant: Participant) -> List[MemberRating]:
            out = []
            for pid in participant.player_ids:
                profile = profiles.get(pid)
                if profile is None:
                    out.append(MemberRating(pid, self.settings.default_rating, 0))
                else:
                    out.append(MemberRating(pid, profile.rating, profile.matches_played))
            return out

        return compute_match_changes(
            members(side_a),
            members(side_b),
            a_won=winner_id == side_a.id,
            tiers=self._k_tiers(competition),
            walkover=walkover,
        )

    def _apply_ratings(
        self,
        writes: WritePhase,
        competition: Competition,
        match: Match,
        final_score: Optional[str],
        changes: Sequence[RatingChange],
        profiles: Dict[str, RatingProfile],
        key: str,
        now: datetime,
    ) -> List[Dict[str, Any]]:
        applied: List[Dict[str, Any]] = []
        winners = [c.player_id for c in changes if c.won]
        losers = [c.player_id for c in changes if not c.won]
        for change in changes:
            entry = {
                "player_id": change.player_id,
                "old_rating": change.old_rating,
                "new_rating": change.new_rating,
                "delta": change.delta,
                "k_factor": change.k_factor,
            }
            if not change.counted:
                applied.append(entry)
                continue

            profile = profiles.get(change.player_id)
            if profile is None:
                writes.insert(
                    RatingProfile(
                        player_id=change.player_id,
                        scope=competition.rating_scope,
                        game_type=competition.game_type,
                        rating=change.new_rating,
                        peak_rating=max(change.old_rating, change.new_rating),
                        matches_played=1,
                        wins=1 if change.won else 0,
                        losses=0 if change.won else 1,
                        applied_matches=[key],
                        last_updated=now,
                    )
                )
            else:
                if not writes.append_unique(profile, "applied_matches", key):
                    logger.warning(f"Rating for {change.player_id} already applied for match {key}; skipping")
                    continue
                writes.increment(profile, "matches_played", 1)
                writes.increment(profile, "wins" if change.won else "losses", 1)
                writes.update(
                    profile,
                    rating=change.new_rating,
                    peak_rating=max(profile.peak_rating, change.new_rating),
                    last_updated=now,
                )

            writes.insert(
                RatingHistory(
                    player_id=change.player_id,
                    scope=competition.rating_scope,
                    game_type=competition.game_type,
                    competition_id=competition.id,
                    match_id=match.id,
                    opponent_ids=losers if change.won else winners,
                    won=change.won,
                    final_score=final_score,
                    old_rating=change.old_rating,
                    new_rating=change.new_rating,
                    delta=change.delta,
                    k_factor=change.k_factor,
                    expected_score=round(change.expected_score, 4),
                    recorded_at=now,
                )
            )
            applied.append(entry)
        return applied

    # ------------------------------------------------------------------
    # Playoffs and completion
    # ------------------------------------------------------------------

    def generate_playoffs(self, caller: Caller, competition_id: int) -> Dict[str, Any]:
        def op(reads: ReadPhase) -> Dict[str, Any]:
            competition = _load_competition(reads, competition_id)
            require_manager(caller, competition)
            if competition.kind != CompetitionKind.league:
                raise FailedPrecondition(f"Competition {competition_id} is not a league")
            if competition.status != CompetitionStatus.ongoing:
                raise FailedPrecondition(f"Playoffs need an ongoing league (status {competition.status})")

            matches = _load_matches(reads, competition_id)
            if any(m.match_type != MatchType.round_robin for m in matches):
                raise AlreadyExists(f"Playoffs for competition {competition_id} already exist")
            unfinished = [m.id for m in matches if m.status != MatchStatus.completed]
            if unfinished:
                raise FailedPrecondition(f"{len(unfinished)} regular-season matches are not completed")

            ranked = _ranked_standings(competition, matches)
            plan = build_playoffs(ranked, round_offset=competition.total_rounds)

            writes = reads.close()
            now = datetime.utcnow()
            created = _materialize(writes, competition_id, plan.matches, now)
            writes.update(
                competition,
                status=CompetitionStatus.playoffs,
                playoff=plan.to_json(),
                standings=dump_standings(ranked),
                updated_at=now,
            )
            return {
                "type": plan.type,
                "qualified": plan.qualified,
                "match_ids": [created[p.code].id for p in plan.matches],
            }

        result = self.coordinator.run(op, name="generate_playoffs")
        logger.info(f"Playoffs created for competition {competition_id}: {result['type']} {result['qualified']}")
        result["warnings"] = self._notify(
            [Event(notifications.PLAYOFFS_CREATED, competition_id, {"type": result["type"], "qualified": result["qualified"]})]
        )
        return result

    def complete_competition(self, caller: Caller, competition_id: int) -> Dict[str, Any]:
        """
        Close a league by hand.

        An ongoing league is decided by its ranked table; a league in playoffs
        needs its final completed.
        """

        def op(reads: ReadPhase) -> Dict[str, Any]:
            competition = _load_competition(reads, competition_id)
            require_manager(caller, competition)
            matches = _load_matches(reads, competition_id)
            changes: Dict[str, Any] = {}

            if competition.status == CompetitionStatus.ongoing:
                ranked = _ranked_standings(competition, matches)
                if not ranked:
                    raise FailedPrecondition(f"Competition {competition_id} has no standings")
                changes["standings"] = dump_standings(ranked)
                changes["champion_id"] = ranked[0].participant_id
                changes["runner_up_id"] = ranked[1].participant_id if len(ranked) > 1 else None
            elif competition.status == CompetitionStatus.playoffs:
                final = next((m for m in matches if m.match_type == MatchType.final), None)
                if final is None or final.status != MatchStatus.completed:
                    raise FailedPrecondition(f"The playoff final of competition {competition_id} is not completed")
                changes["champion_id"] = final.winner_id
                changes["runner_up_id"] = final.loser_id
                consolation = next((m for m in matches if m.match_type == MatchType.consolation), None)
                if consolation is not None and consolation.status == MatchStatus.completed:
                    changes["third_place_id"] = consolation.winner_id
                    changes["fourth_place_id"] = consolation.loser_id
            else:
                raise FailedPrecondition(
                    f"Only ongoing leagues or leagues in playoffs can be completed (status {competition.status})"
                )

            writes = reads.close()
            now = datetime.utcnow()
            writes.update(competition, status=CompetitionStatus.completed, completed_at=now, updated_at=now, **changes)
            return {"champion_id": changes["champion_id"], "runner_up_id": changes["runner_up_id"]}

        result = self.coordinator.run(op, name="complete_competition")
        logger.info(f"Competition {competition_id} completed: champion {result['champion_id']}")
        result["warnings"] = self._notify([Event(notifications.COMPETITION_COMPLETED, competition_id, dict(result))])
        return result

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_competition(self, competition_id: int) -> Competition:
        return self.coordinator.run(lambda reads: _load_competition(reads, competition_id), name="get_competition")

    def list_participants(self, competition_id: int) -> List[Participant]:
        def op(reads: ReadPhase) -> List[Participant]:
            _load_competition(reads, competition_id)
            return _load_participants(reads, competition_id)

        return self.coordinator.run(op, name="list_participants")

    def list_matches(self, competition_id: int) -> List[Match]:
        def op(reads: ReadPhase) -> List[Match]:
            _load_competition(reads, competition_id)
            return _load_matches(reads, competition_id)

        return self.coordinator.run(op, name="list_matches")

    def get_standings(self, competition_id: int) -> List[Standing]:
        def op(reads: ReadPhase) -> List[Standing]:
            competition = _load_competition(reads, competition_id)
            if competition.kind != CompetitionKind.league:
                raise FailedPrecondition(f"Competition {competition_id} is not a league")
            return _ranked_standings(competition, _load_matches(reads, competition_id))

        return self.coordinator.run(op, name="get_standings")

    def get_rating_profiles(self, player_id: str) -> List[RatingProfile]:
        return self.coordinator.run(
            lambda reads: reads.exec(
                select(RatingProfile)
                .where(RatingProfile.player_id == player_id)
                .order_by(RatingProfile.scope, RatingProfile.game_type)
            ),
            name="get_rating_profiles",
        )

    def get_rating_history(
        self, player_id: str, scope: Optional[str] = None, game_type: Optional[str] = None
    ) -> List[RatingHistory]:
        """A player's rated matches, oldest first."""
        statement = select(RatingHistory).where(RatingHistory.player_id == player_id)
        if scope is not None:
            statement = statement.where(RatingHistory.scope == scope)
        if game_type is not None:
            statement = statement.where(RatingHistory.game_type == game_type)
        statement = statement.order_by(RatingHistory.recorded_at, RatingHistory.id)
        return self.coordinator.run(lambda reads: reads.exec(statement), name="get_rating_history")
