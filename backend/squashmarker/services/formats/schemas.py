"""
Engine data types.

Plain pydantic models exchanged between the format engine and its callers.
Persistence rows (models/) are converted to and from these at the service
boundary; the engine never sees a database object.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

MatchStatus = Literal["pending", "ready", "live", "completed", "walkover", "cancelled"]
MatchStage = Literal["group", "main", "consolation"]

# Statuses after which a match never changes again
TERMINAL_STATUSES = frozenset({"completed", "walkover", "cancelled"})
PLAYABLE_STATUSES = frozenset({"ready", "live"})


# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------

class GroupsConfig(BaseModel):
    target_size: Optional[int] = None
    advance_per_group: Optional[int] = None
    avoid_same_club: bool = False


class KnockoutConfig(BaseModel):
    consolation: bool = False
    draw_size: Optional[int] = None


class TournamentConfig(BaseModel):
    groups: GroupsConfig = Field(default_factory=GroupsConfig)
    knockout: KnockoutConfig = Field(default_factory=KnockoutConfig)
    tiebreakers: Optional[List[str]] = None


# -----------------------------------------------------------------------------
# Participants and match slots
# -----------------------------------------------------------------------------

class Participant(BaseModel):
    id: str
    name: str
    seed: Optional[int] = None
    club: Optional[str] = None
    withdrawn: bool = False


class ParticipantSlot(BaseModel):
    type: Literal["participant"] = "participant"
    participant_id: str
    name: str


class ByeSlot(BaseModel):
    type: Literal["bye"] = "bye"
    name: str = "BYE"


class QualifierSlot(BaseModel):
    """Outcome not known yet, e.g. qualifier="W:R1M3" (winner of R1M3)."""
    type: Literal["qualifier"] = "qualifier"
    qualifier: str
    name: str


class SeedPositionSlot(BaseModel):
    type: Literal["seed_position"] = "seed_position"
    seed: int
    name: str


ParticipantRef = Annotated[
    Union[ParticipantSlot, ByeSlot, QualifierSlot, SeedPositionSlot],
    Field(discriminator="type"),
]


def participant_ref(participant_id: str, name: str) -> ParticipantSlot:
    return ParticipantSlot(participant_id=participant_id, name=name)


def is_concrete(ref: Any) -> bool:
    """True when the slot is resolved: a real participant or a bye."""
    return ref.type in ("participant", "bye")


# -----------------------------------------------------------------------------
# Results and matches
# -----------------------------------------------------------------------------

class GameScore(BaseModel):
    """Points in one game; player1 is participant_a, player2 is participant_b."""
    player1: int
    player2: int


class MatchResult(BaseModel):
    """Result payload reported by the scoring system."""
    winner_id: str
    winner_name: str
    loser_id: Optional[str] = None
    loser_name: Optional[str] = None
    game_scores: List[GameScore] = Field(default_factory=list)
    walkover: bool = False
    retired: bool = False


class RecordedResult(BaseModel):
    """Result as stored on a TournamentMatch."""
    winner_participant_id: str
    winner_name: str
    loser_participant_id: Optional[str] = None
    loser_name: Optional[str] = None
    game_scores: List[GameScore] = Field(default_factory=list)
    walkover: bool = False
    walkover_reason: Optional[str] = None
    retired: bool = False


class TournamentMatch(BaseModel):
    id: Optional[str] = None  # storage id, opaque to the engine
    round: int = Field(ge=1)
    stage: MatchStage = "main"
    match_number: str
    participant_a: ParticipantRef
    participant_b: ParticipantRef
    status: MatchStatus = "pending"
    result: Optional[RecordedResult] = None
    dependency_matches: List[str] = Field(default_factory=list)
    feeds_to_matches: List[str] = Field(default_factory=list)
    group_id: Optional[str] = None


# -----------------------------------------------------------------------------
# Groups and standings
# -----------------------------------------------------------------------------

class HeadToHead(BaseModel):
    wins: int = 0
    losses: int = 0


class GroupStanding(BaseModel):
    participant_id: str
    name: str
    position: int = 0
    played: int = 0
    wins: int = 0
    losses: int = 0
    games_won: int = 0
    games_lost: int = 0
    points_won: int = 0
    points_lost: int = 0
    walkovers_given: int = 0
    walkovers_received: int = 0
    head_to_head: Dict[str, HeadToHead] = Field(default_factory=dict)
    tiebreak_values: List[float] = Field(default_factory=list)

    @property
    def game_differential(self) -> int:
        return self.games_won - self.games_lost

    @property
    def point_differential(self) -> int:
        return self.points_won - self.points_lost


class Group(BaseModel):
    id: str
    name: str
    participant_ids: List[str]
    standings: List[GroupStanding] = Field(default_factory=list)
    completed: bool = False


class StandingsUpdate(BaseModel):
    group_id: str
    standings: List[GroupStanding]
    completed: bool = False


# -----------------------------------------------------------------------------
# Operation results
# -----------------------------------------------------------------------------

class ValidationResult(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: List[str]) -> "ValidationResult":
        return cls(valid=len(errors) == 0, errors=errors)


class FinalPlacement(BaseModel):
    position: int
    participant_id: str
    name: str
    group: Optional[str] = None
    group_position: Optional[int] = None
    wins: int = 0
    losses: int = 0
    detail: Dict[str, Any] = Field(default_factory=dict)


class BracketRoundView(BaseModel):
    round: int
    stage: MatchStage
    matches: List[TournamentMatch]


class ProgressiveStanding(BaseModel):
    """One row of the Monrad table: a participant and the seed they hold now."""
    seed_position: int
    participant_id: str
    name: str
    wins: int = 0
    losses: int = 0


class StandingsView(BaseModel):
    """
    Standings as shown to spectators. Which of groups / bracket / rows is filled
    depends on `type`.
    """
    type: Literal["bracket", "groups", "progressive"]
    title: str
    current_round: Optional[int] = None
    total_rounds: Optional[int] = None
    groups: List[Group] = Field(default_factory=list)
    bracket: List[BracketRoundView] = Field(default_factory=list)
    rows: List[ProgressiveStanding] = Field(default_factory=list)
