"""
Tournament draw endpoints: create, inspect and score multi-format tournaments.
All draw logic lives in the format engine; these handlers only translate HTTP
to service calls and domain errors to status codes.
"""
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, field_validator, model_validator
from sqlmodel import Session, select

from squashmarker.database import get_session
from squashmarker.models.tournament import Tournament
from squashmarker.services import tournament_service
from squashmarker.services.formats.errors import (
    InvalidMatchResultError,
    StateSerializationError,
    TournamentValidationError,
    UnknownFormatError,
)
from squashmarker.services.formats.schemas import (
    FinalPlacement,
    GameScore,
    MatchResult,
    StandingsUpdate,
    StandingsView,
    TournamentConfig,
)
from squashmarker.services.score_parser import parse_score
from squashmarker.services.tournament_engine import get_engine

router = APIRouter()


class ParticipantCreate(BaseModel):
    name: str
    seed: Optional[int] = None
    club: Optional[str] = None
    external_ranking: Optional[str] = None
    withdrawn: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class TournamentCreate(BaseModel):
    name: str
    format: str
    config: TournamentConfig = TournamentConfig()
    participants: List[ParticipantCreate]
    venue: Optional[str] = None
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class TournamentResponse(BaseModel):
    id: int
    name: str
    format: str
    status: str
    config: Dict[str, Any]
    venue: Optional[str] = None
    description: Optional[str] = None
    state_version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ParticipantResponse(BaseModel):
    id: int
    name: str
    seed: Optional[int] = None
    club: Optional[str] = None
    withdrawn: bool
    group_key: Optional[str] = None

    class Config:
        from_attributes = True


class MatchResponse(BaseModel):
    id: int
    tournament_id: int
    match_number: str
    round: int
    stage: str
    group_key: Optional[str] = None
    participant_a: Dict[str, Any]
    participant_b: Dict[str, Any]
    status: str
    result: Optional[Dict[str, Any]] = None
    dependency_matches: List[str] = []
    feeds_to_matches: List[str] = []
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GroupResponse(BaseModel):
    id: int
    group_key: str
    name: str
    participant_ids: List[str]
    standings: List[Dict[str, Any]]
    completed: bool

    class Config:
        from_attributes = True


class TournamentDetailResponse(TournamentResponse):
    participants: List[ParticipantResponse]
    matches: List[MatchResponse]
    groups: List[GroupResponse]


class ResultSubmission(BaseModel):
    winner_id: str
    loser_id: Optional[str] = None
    game_scores: Optional[List[GameScore]] = None
    score: Optional[str] = None  # alternative to game_scores: "11-7 9-11 11-5"
    walkover: bool = False
    retired: bool = False
    state_version: Optional[int] = None  # version the client last saw

    @model_validator(mode="after")
    def validate_score_source(self):
        if self.game_scores is not None and self.score is not None:
            raise ValueError("Provide either game_scores or score, not both")
        return self


class ResultResponse(BaseModel):
    match: MatchResponse
    updated_matches: List[MatchResponse]
    new_matches: List[MatchResponse]
    standings_updates: List[StandingsUpdate]
    tournament_complete: bool
    state_version: int


@contextmanager
def _domain_errors() -> Iterator[None]:
    """Translate service/engine errors to HTTP responses."""
    try:
        yield
    except (tournament_service.TournamentNotFoundError, tournament_service.MatchNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except TournamentValidationError as e:
        raise HTTPException(status_code=400, detail={"message": "Tournament validation failed", "details": e.errors})
    except UnknownFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (tournament_service.StaleStateError, tournament_service.MatchStatusError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidMatchResultError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StateSerializationError as e:
        raise HTTPException(status_code=500, detail=str(e))


def _slot_name(slot: Dict[str, Any], participant_id: str) -> Optional[str]:
    if slot.get("type") == "participant" and slot.get("participant_id") == participant_id:
        return slot.get("name")
    return None


@router.get("/tournaments/formats")
def list_formats() -> List[Dict[str, str]]:
    """Available tournament formats"""
    return get_engine().available_formats()


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    return session.exec(select(Tournament).order_by(Tournament.id)).all()


@router.post("/tournaments", response_model=TournamentDetailResponse, status_code=201)
def create_tournament(payload: TournamentCreate, session: Session = Depends(get_session)):
    """Create a tournament and generate its draw"""
    with _domain_errors():
        tournament = tournament_service.create_tournament(
            session,
            name=payload.name,
            format_id=payload.format,
            config=payload.config,
            participants=[p.model_dump() for p in payload.participants],
            venue=payload.venue,
            description=payload.description,
        )
    return _detail(session, tournament)


@router.get("/tournaments/{tournament_id}", response_model=TournamentDetailResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Tournament with participants, matches and groups"""
    with _domain_errors():
        tournament = tournament_service.load_tournament(session, tournament_id)
    return _detail(session, tournament)


@router.get("/tournaments/{tournament_id}/standings", response_model=StandingsView)
def get_standings(tournament_id: int, session: Session = Depends(get_session)):
    with _domain_errors():
        return tournament_service.get_standings(session, tournament_id)


@router.get("/tournaments/{tournament_id}/matches/playable", response_model=List[MatchResponse])
def get_playable_matches(tournament_id: int, session: Session = Depends(get_session)):
    """Matches that can go on court now"""
    with _domain_errors():
        playable = tournament_service.get_playable_matches(session, tournament_id)
    return [row for row, _ in playable]


@router.post("/tournaments/{tournament_id}/matches/{match_id}/start", response_model=MatchResponse)
def start_match(tournament_id: int, match_id: int, session: Session = Depends(get_session)):
    """Mark a ready match as live"""
    with _domain_errors():
        return tournament_service.start_match(session, tournament_id, match_id)


@router.post("/tournaments/{tournament_id}/matches/{match_id}/result", response_model=ResultResponse)
def submit_result(
    tournament_id: int,
    match_id: int,
    payload: ResultSubmission,
    session: Session = Depends(get_session),
) -> ResultResponse:
    """Record a match result and advance the draw"""
    with _domain_errors():
        match = tournament_service.load_match(session, tournament_id, match_id)

    slots = (match.participant_a, match.participant_b)
    winner_name = next((n for n in (_slot_name(s, payload.winner_id) for s in slots) if n), None)
    if winner_name is None:
        raise HTTPException(status_code=422, detail=f"Winner {payload.winner_id} is not playing match {match.match_number}")
    loser_id = payload.loser_id
    if loser_id is None:
        loser_id = next(
            (s["participant_id"] for s in slots if s.get("type") == "participant" and s.get("participant_id") != payload.winner_id),
            None,
        )
    loser_name = next((n for n in (_slot_name(s, loser_id) for s in slots) if n), None) if loser_id else None

    game_scores = payload.game_scores or []
    if payload.score is not None:
        parsed = parse_score(payload.score)
        if parsed is None:
            raise HTTPException(status_code=422, detail=f"Could not parse score: {payload.score}")
        game_scores = parsed

    result = MatchResult(
        winner_id=payload.winner_id,
        winner_name=winner_name,
        loser_id=loser_id,
        loser_name=loser_name,
        game_scores=game_scores,
        walkover=payload.walkover,
        retired=payload.retired,
    )

    with _domain_errors():
        tournament, outcome = tournament_service.submit_result(
            session, tournament_id, match_id, result, expected_version=payload.state_version
        )

    rows = {m.match_number: m for m in tournament_service.list_matches(session, tournament_id)}
    updated_numbers = [m.match_number for m in outcome.updated_matches if m.match_number != match.match_number]
    return ResultResponse(
        match=MatchResponse.model_validate(rows[match.match_number]),
        updated_matches=[MatchResponse.model_validate(rows[n]) for n in updated_numbers],
        new_matches=[MatchResponse.model_validate(rows[m.match_number]) for m in outcome.new_matches],
        standings_updates=outcome.standings_updates,
        tournament_complete=outcome.tournament_complete,
        state_version=tournament.state_version,
    )


@router.get("/tournaments/{tournament_id}/results", response_model=List[FinalPlacement])
def get_final_results(tournament_id: int, session: Session = Depends(get_session)):
    """Final placements (partial while the draw is still running)"""
    with _domain_errors():
        return tournament_service.get_final_results(session, tournament_id)


@router.delete("/tournaments/{tournament_id}", status_code=204)
def delete_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Delete a tournament and everything generated for it"""
    with _domain_errors():
        tournament_service.delete_tournament(session, tournament_id)
    return Response(status_code=204)


def _detail(session: Session, tournament: Tournament) -> TournamentDetailResponse:
    base = TournamentResponse.model_validate(tournament)
    return TournamentDetailResponse(
        **base.model_dump(),
        participants=[ParticipantResponse.model_validate(p) for p in tournament_service.list_participants(session, tournament.id)],
        matches=[MatchResponse.model_validate(m) for m in tournament_service.list_matches(session, tournament.id)],
        groups=[GroupResponse.model_validate(g) for g in tournament_service.list_groups(session, tournament.id)],
    )
