"""
Tournament service: runs the format engine over persisted tournaments.

The engine only ever sees plain schemas; this module converts database rows
to and from them. Result submission is serialised per tournament with an
optimistic check on Tournament.state_version: the new state is written with
UPDATE ... WHERE state_version = <version read>, and a lost race raises
StaleStateError instead of overwriting someone else's result.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import update
from sqlmodel import Session, select

from squashmarker.models.group import TournamentGroup
from squashmarker.models.match import Match
from squashmarker.models.participant import TournamentParticipant
from squashmarker.models.tournament import Tournament
from squashmarker.services.formats.base import ConfigInput, coerce_config
from squashmarker.services.formats.errors import TournamentEngineError
from squashmarker.services.formats.schemas import (
    TERMINAL_STATUSES,
    FinalPlacement,
    Group,
    MatchResult,
    Participant,
    StandingsView,
    StandingsUpdate,
    TournamentMatch,
)
from squashmarker.services.formats.state import MatchResultOutcome
from squashmarker.services.tournament_engine import TournamentEngine, get_engine

logger = logging.getLogger(__name__)

# Forward-only ordering of match statuses; terminal statuses share the top rank
_STATUS_RANK = {"pending": 0, "ready": 1, "live": 2, "completed": 3, "walkover": 3, "cancelled": 3}


class TournamentServiceError(Exception):
    """Base exception for tournament service errors"""
    pass


class TournamentNotFoundError(TournamentServiceError):
    pass


class MatchNotFoundError(TournamentServiceError):
    pass


class MatchStatusError(TournamentServiceError):
    """Requested status change is not allowed from the match's current status"""
    pass


class StaleStateError(TournamentServiceError):
    """Tournament state changed since it was read; reload and retry"""

    def __init__(self, tournament_id: int, expected_version: int):
        self.tournament_id = tournament_id
        self.expected_version = expected_version
        super().__init__(
            f"Tournament {tournament_id} state changed (expected version {expected_version}); reload and retry"
        )


# -----------------------------------------------------------------------------
# Row <-> engine conversion
# -----------------------------------------------------------------------------

def to_engine_participant(row: TournamentParticipant) -> Participant:
    return Participant(
        id=str(row.id),
        name=row.name,
        seed=row.seed,
        club=row.club,
        withdrawn=row.withdrawn,
    )


def to_engine_match(row: Match) -> TournamentMatch:
    return TournamentMatch.model_validate(
        {
            "id": str(row.id) if row.id is not None else None,
            "round": row.round,
            "stage": row.stage,
            "match_number": row.match_number,
            "participant_a": row.participant_a,
            "participant_b": row.participant_b,
            "status": row.status,
            "result": row.result,
            "dependency_matches": row.dependency_matches or [],
            "feeds_to_matches": row.feeds_to_matches or [],
            "group_id": row.group_key,
        }
    )


def new_match_row(tournament_id: int, match: TournamentMatch) -> Match:
    row = Match(
        tournament_id=tournament_id,
        match_number=match.match_number,
        round=match.round,
        stage=match.stage,
        group_key=match.group_id,
        participant_a={},
        participant_b={},
    )
    apply_engine_match(row, match)
    return row


def apply_engine_match(row: Match, match: TournamentMatch) -> None:
    """Copy the engine's view of a match onto its row; status never moves backwards."""
    row.participant_a = match.participant_a.model_dump(mode="json")
    row.participant_b = match.participant_b.model_dump(mode="json")
    row.dependency_matches = list(match.dependency_matches)
    row.feeds_to_matches = list(match.feeds_to_matches)
    row.result = match.result.model_dump(mode="json") if match.result else None
    if _STATUS_RANK[match.status] >= _STATUS_RANK.get(row.status, 0):
        row.status = match.status
    if row.status in TERMINAL_STATUSES and row.completed_at is None:
        row.completed_at = datetime.utcnow()


def group_row_from_view(tournament_id: int, group: Group) -> TournamentGroup:
    return TournamentGroup(
        tournament_id=tournament_id,
        group_key=group.id,
        name=group.name,
        participant_ids=list(group.participant_ids),
        standings=[row.model_dump(mode="json") for row in group.standings],
        completed=group.completed,
    )


def _apply_standings(row: TournamentGroup, update_: StandingsUpdate) -> None:
    row.standings = [s.model_dump(mode="json") for s in update_.standings]
    row.completed = update_.completed


# -----------------------------------------------------------------------------
# Lookups
# -----------------------------------------------------------------------------

def load_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise TournamentNotFoundError(f"Tournament {tournament_id} not found")
    return tournament


def load_match(session: Session, tournament_id: int, match_id: int) -> Match:
    match = session.get(Match, match_id)
    if not match or match.tournament_id != tournament_id:
        raise MatchNotFoundError(f"Match {match_id} not found in tournament {tournament_id}")
    return match


def list_matches(session: Session, tournament_id: int) -> List[Match]:
    return list(
        session.exec(
            select(Match).where(Match.tournament_id == tournament_id).order_by(Match.id)
        ).all()
    )


def list_groups(session: Session, tournament_id: int) -> List[TournamentGroup]:
    return list(
        session.exec(
            select(TournamentGroup).where(TournamentGroup.tournament_id == tournament_id).order_by(TournamentGroup.id)
        ).all()
    )


def list_participants(session: Session, tournament_id: int) -> List[TournamentParticipant]:
    return list(
        session.exec(
            select(TournamentParticipant)
            .where(TournamentParticipant.tournament_id == tournament_id)
            .order_by(TournamentParticipant.id)
        ).all()
    )


def _load_state(engine: TournamentEngine, tournament: Tournament):
    return engine.deserialize_state(tournament.format, tournament.state_blob or "")


# -----------------------------------------------------------------------------
# Operations
# -----------------------------------------------------------------------------

def create_tournament(
    session: Session,
    name: str,
    format_id: str,
    config: ConfigInput,
    participants: Sequence[Dict[str, Any]],
    venue: Optional[str] = None,
    description: Optional[str] = None,
    engine: Optional[TournamentEngine] = None,
) -> Tournament:
    """
    Create a tournament, its participants, and the generated draw.

    Raises UnknownFormatError / TournamentValidationError (nothing is persisted).
    """
    engine = engine or get_engine()
    fmt = engine.get_format(format_id)
    cfg = coerce_config(config)

    tournament = Tournament(
        name=name,
        format=format_id,
        config=cfg.model_dump(mode="json"),
        venue=venue,
        description=description,
    )
    session.add(tournament)
    session.flush()

    rows = [TournamentParticipant(tournament_id=tournament.id, **entry) for entry in participants]
    session.add_all(rows)
    session.flush()

    try:
        generated = engine.generate_tournament(format_id, cfg, [to_engine_participant(r) for r in rows])
    except TournamentEngineError:
        session.rollback()
        raise

    tournament.state_blob = engine.serialize_state(format_id, generated.state)
    tournament.state_version = 1
    tournament.status = "completed" if fmt.is_complete(generated.state) else "active"

    for match in generated.matches:
        session.add(new_match_row(tournament.id, match))

    by_id = {str(r.id): r for r in rows}
    for group in generated.groups:
        session.add(group_row_from_view(tournament.id, group))
        for pid in group.participant_ids:
            by_id[pid].group_key = group.id

    session.commit()
    session.refresh(tournament)
    logger.info(
        "Created tournament %s (%s): %d participants, %d matches",
        tournament.id, format_id, len(rows), len(generated.matches),
    )
    return tournament


def submit_result(
    session: Session,
    tournament_id: int,
    match_id: int,
    result: MatchResult,
    expected_version: Optional[int] = None,
    engine: Optional[TournamentEngine] = None,
) -> Tuple[Tournament, MatchResultOutcome]:
    """
    Apply one match result and persist every change the engine reports.

    Raises StaleStateError when the tournament moved on since it was read (or
    since expected_version, when the caller supplies the version it saw).
    """
    engine = engine or get_engine()
    tournament = load_tournament(session, tournament_id)
    row = load_match(session, tournament_id, match_id)

    version = tournament.state_version
    if expected_version is not None and expected_version != version:
        raise StaleStateError(tournament_id, expected_version)

    state = _load_state(engine, tournament)
    outcome = engine.process_match_result(tournament.format, state, to_engine_match(row), result)
    blob = engine.serialize_state(tournament.format, outcome.state)
    status = "completed" if outcome.tournament_complete else tournament.status

    written = session.execute(
        update(Tournament)
        .where(Tournament.id == tournament_id, Tournament.state_version == version)
        .values(state_blob=blob, state_version=version + 1, status=status, updated_at=datetime.utcnow())
    )
    if written.rowcount != 1:
        session.rollback()
        logger.warning("Stale state for tournament %s at version %s", tournament_id, version)
        raise StaleStateError(tournament_id, version)

    rows_by_number = {m.match_number: m for m in list_matches(session, tournament_id)}
    for match in outcome.updated_matches:
        existing = rows_by_number.get(match.match_number)
        if existing is None:
            session.add(new_match_row(tournament_id, match))
        else:
            apply_engine_match(existing, match)
            session.add(existing)
    for match in outcome.new_matches:
        if match.match_number not in rows_by_number:
            session.add(new_match_row(tournament_id, match))

    if outcome.standings_updates:
        groups_by_key = {g.group_key: g for g in list_groups(session, tournament_id)}
        for standings in outcome.standings_updates:
            group_row = groups_by_key.get(standings.group_id)
            if group_row is not None:
                _apply_standings(group_row, standings)
                session.add(group_row)

    session.commit()
    session.refresh(tournament)
    logger.info(
        "Tournament %s: result for %s applied (%d updated, %d new matches)",
        tournament_id, row.match_number, len(outcome.updated_matches), len(outcome.new_matches),
    )
    return tournament, outcome


def start_match(session: Session, tournament_id: int, match_id: int) -> Match:
    """Mark a ready match as live. Only ready matches can go on court."""
    load_tournament(session, tournament_id)
    match = load_match(session, tournament_id, match_id)
    if match.status != "ready":
        raise MatchStatusError(f"Match {match.match_number} is {match.status}; only ready matches can start")
    match.status = "live"
    match.started_at = datetime.utcnow()
    session.add(match)
    session.commit()
    session.refresh(match)
    return match


def get_standings(session: Session, tournament_id: int, engine: Optional[TournamentEngine] = None) -> StandingsView:
    engine = engine or get_engine()
    tournament = load_tournament(session, tournament_id)
    return engine.get_standings(tournament.format, _load_state(engine, tournament))


def get_playable_matches(
    session: Session, tournament_id: int, engine: Optional[TournamentEngine] = None
) -> List[Tuple[Match, TournamentMatch]]:
    """Playable matches as (row, engine view) pairs, in play order."""
    engine = engine or get_engine()
    tournament = load_tournament(session, tournament_id)
    rows = list_matches(session, tournament_id)
    by_id = {str(r.id): r for r in rows}
    playable = engine.get_playable_matches(
        tournament.format, _load_state(engine, tournament), [to_engine_match(r) for r in rows]
    )
    return [(by_id[m.id], m) for m in playable]


def get_final_results(
    session: Session, tournament_id: int, engine: Optional[TournamentEngine] = None
) -> List[FinalPlacement]:
    engine = engine or get_engine()
    tournament = load_tournament(session, tournament_id)
    return engine.get_final_results(tournament.format, _load_state(engine, tournament))


def delete_tournament(session: Session, tournament_id: int) -> None:
    tournament = load_tournament(session, tournament_id)
    session.delete(tournament)
    session.commit()
    logger.info("Deleted tournament %s", tournament_id)
