"""
Per-format tournament state.

The state blob is a tagged union keyed by `format`. Every variant is a plain
pydantic model so that serialize/deserialize is a lossless JSON round-trip and
transitions can take a deep structural copy instead of mutating shared input.
"""

from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from squashmarker.services.formats.schemas import (
    GameScore,
    Group,
    ParticipantRef,
    StandingsUpdate,
    TournamentMatch,
)


# -----------------------------------------------------------------------------
# Shared building blocks
# -----------------------------------------------------------------------------

class MatchOutcome(BaseModel):
    """How a match inside a bracket or pairing table was settled."""
    status: Literal["completed", "walkover", "cancelled"]
    winner: Optional[ParticipantRef] = None
    loser: Optional[ParticipantRef] = None
    game_scores: List[GameScore] = Field(default_factory=list)
    walkover_reason: Optional[str] = None
    retired: bool = False


class BracketState(BaseModel):
    """
    Slot grid of one single-elimination bracket.

    slots[r - 1] holds the occupants of round r: draw_size >> (r - 1) entries,
    where match k of round r is slots[r - 1][2k] vs slots[r - 1][2k + 1].
    """
    stage: Literal["main", "consolation"] = "main"
    code_prefix: str = ""
    draw_size: int
    total_rounds: int
    slots: List[List[ParticipantRef]]
    outcomes: Dict[str, MatchOutcome] = Field(default_factory=dict)
    draw_ranks: Dict[str, int] = Field(default_factory=dict)  # participant id -> draw seed


class GroupLedgerEntry(BaseModel):
    """One completed group fixture, oriented as participant_a vs participant_b."""
    match_number: str
    participant_a_id: str
    participant_b_id: str
    winner_id: str
    loser_id: str
    game_scores: List[GameScore] = Field(default_factory=list)
    walkover: bool = False


class GroupState(BaseModel):
    id: str
    name: str
    participant_ids: List[str]
    participant_names: Dict[str, str]
    fixtures: List[str]
    ledger: List[GroupLedgerEntry] = Field(default_factory=list)

    @property
    def completed(self) -> bool:
        return len(self.ledger) >= len(self.fixtures)


class SeedHolder(BaseModel):
    participant_id: str
    name: str
    is_bye: bool = False
    resolved_round: int = 0


class ParticipantHistory(BaseModel):
    participant_id: str
    name: str
    is_bye: bool = False
    wins: int = 0
    losses: int = 0
    opponents: List[str] = Field(default_factory=list)
    current_seed: int


# -----------------------------------------------------------------------------
# Format states
# -----------------------------------------------------------------------------

class SingleEliminationState(BaseModel):
    format: Literal["single_elimination"] = "single_elimination"
    draw_size: int
    bye_count: int
    total_rounds: int
    current_round: int = 1
    main: BracketState
    consolation: Optional[BracketState] = None
    consolation_enabled: bool = False
    completed: bool = False


class RoundRobinState(BaseModel):
    format: Literal["round_robin"] = "round_robin"
    total_rounds: int
    group_count: int
    tiebreakers: List[str]
    random_salt: str
    groups: List[GroupState]
    completed: bool = False


class MonradState(BaseModel):
    format: Literal["monrad"] = "monrad"
    participant_count: int
    effective_participant_count: int
    total_rounds: int
    current_round: int = 1
    seed_positions: Dict[int, SeedHolder]
    participant_history: Dict[str, ParticipantHistory]
    # match code -> [slot A, slot B], frozen once both seeds are known for that round
    lineups: Dict[str, List[ParticipantRef]] = Field(default_factory=dict)
    outcomes: Dict[str, MatchOutcome] = Field(default_factory=dict)
    completed: bool = False


class PoolsKnockoutState(BaseModel):
    format: Literal["pools_knockout"] = "pools_knockout"
    phase: Literal["pools", "knockout"] = "pools"
    group_count: int
    advance_per_group: int
    total_qualifiers: int
    knockout_draw_size: int
    tiebreakers: List[str]
    random_salt: str
    groups: List[GroupState]
    pools_complete: bool = False
    knockout_generated: bool = False
    knockout: Optional[BracketState] = None
    completed: bool = False


TournamentState = Annotated[
    Union[SingleEliminationState, RoundRobinState, MonradState, PoolsKnockoutState],
    Field(discriminator="format"),
]

TOURNAMENT_STATE_ADAPTER: TypeAdapter = TypeAdapter(TournamentState)


# -----------------------------------------------------------------------------
# Operation results
# -----------------------------------------------------------------------------

class GenerationResult(BaseModel):
    state: TournamentState
    matches: List[TournamentMatch]
    groups: List[Group] = Field(default_factory=list)


class MatchResultOutcome(BaseModel):
    state: TournamentState
    updated_matches: List[TournamentMatch] = Field(default_factory=list)
    new_matches: List[TournamentMatch] = Field(default_factory=list)
    standings_updates: List[StandingsUpdate] = Field(default_factory=list)
    tournament_complete: bool = False
