"""
Tournament format contract.

Every format is a stateless object: all tournament data lives in the state
model it creates in generate_initial_state and hands back (as a fresh copy)
from on_match_result. Formats never perform I/O.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ValidationError

from squashmarker.services.format_rules import ALLOWED_TIEBREAKERS, is_power_of_two
from squashmarker.services.formats.errors import StateSerializationError, TournamentEngineError
from squashmarker.services.formats.schemas import (
    PLAYABLE_STATUSES,
    FinalPlacement,
    Group,
    MatchResult,
    Participant,
    StandingsView,
    TournamentConfig,
    TournamentMatch,
    ValidationResult,
)
from squashmarker.services.formats.state import (
    TOURNAMENT_STATE_ADAPTER,
    GenerationResult,
    MatchResultOutcome,
)

logger = logging.getLogger(__name__)

ConfigInput = Union[TournamentConfig, Dict[str, Any], None]

_STAGE_ORDER = {"group": 0, "main": 1, "consolation": 2}
_MATCH_INDEX = re.compile(r"M(\d+)$")


def coerce_config(config: ConfigInput) -> TournamentConfig:
    """Accept a TournamentConfig, a plain dict (API payload) or None."""
    if config is None:
        return TournamentConfig()
    if isinstance(config, TournamentConfig):
        return config
    return TournamentConfig.model_validate(config)


def active_participants(participants: Sequence[Participant]) -> List[Participant]:
    """Withdrawn entrants never enter a draw."""
    return [p for p in participants if not p.withdrawn]


def match_sort_key(match: TournamentMatch) -> tuple:
    """Round, then stage, then group, then the match index inside its round."""
    found = _MATCH_INDEX.search(match.match_number)
    index = int(found.group(1)) if found else 0
    return (match.round, _STAGE_ORDER.get(match.stage, 9), match.group_id or "", index, match.match_number)


class TournamentFormat(ABC):
    """Capability set shared by all tournament formats."""

    id: str = ""
    name: str = ""
    state_model: type = BaseModel

    @abstractmethod
    def validate_config(self, config: ConfigInput, participants: Sequence[Participant]) -> ValidationResult:
        """Check config and field; errors are accumulated, never raised."""

    @abstractmethod
    def generate_initial_state(self, config: ConfigInput, participants: Sequence[Participant]) -> GenerationResult:
        """Build the initial state, every match of the draw, and any groups."""

    @abstractmethod
    def on_match_result(self, state, match: TournamentMatch, result: MatchResult) -> MatchResultOutcome:
        """Apply one result. The input state is never mutated."""

    @abstractmethod
    def get_standings(self, state, groups: Optional[Sequence[Group]] = None) -> StandingsView:
        ...

    @abstractmethod
    def get_final_results(self, state, groups: Optional[Sequence[Group]] = None) -> List[FinalPlacement]:
        ...

    def get_next_playable_matches(self, state, matches: Sequence[TournamentMatch]) -> List[TournamentMatch]:
        """Matches that can go on court now: ready/live with two real participants."""
        playable = [
            m for m in matches
            if m.status in PLAYABLE_STATUSES
            and m.participant_a.type == "participant"
            and m.participant_b.type == "participant"
        ]
        return sorted(playable, key=match_sort_key)

    def is_complete(self, state) -> bool:
        return self._own_state(state).completed

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def serialize(self, state) -> str:
        try:
            return self._own_state(state).model_dump_json()
        except (TypeError, ValueError) as e:
            raise StateSerializationError(f"Cannot serialize {self.id} state: {e}") from e

    def deserialize(self, blob: str):
        try:
            state = TOURNAMENT_STATE_ADAPTER.validate_json(blob)
        except ValidationError as e:
            raise StateSerializationError(f"Invalid {self.id} state blob: {e.error_count()} error(s)") from e
        if not isinstance(state, self.state_model):
            raise StateSerializationError(
                f"State blob belongs to format '{state.format}', not '{self.id}'"
            )
        return state

    # -------------------------------------------------------------------------
    # Shared helpers
    # -------------------------------------------------------------------------

    def _own_state(self, state):
        if not isinstance(state, self.state_model):
            raise TournamentEngineError(
                f"{type(state).__name__} cannot be handled by format '{self.id}'"
            )
        return state

    def _field_errors(self, participants: Sequence[Participant], minimum: int, maximum: Optional[int]) -> List[str]:
        """Count limits, duplicate ids and duplicate seed numbers."""
        errors: List[str] = []
        active = active_participants(participants)
        count = len(active)
        if count < minimum:
            errors.append(f"{self.name} requires at least {minimum} participants (got {count})")
        if maximum is not None and count > maximum:
            errors.append(f"{self.name} supports at most {maximum} participants (got {count})")

        seen_ids = set()
        for p in participants:
            if p.id in seen_ids:
                errors.append(f"Duplicate participant id: {p.id}")
            seen_ids.add(p.id)

        seen_seeds: Dict[int, str] = {}
        for p in active:
            if p.seed is None:
                continue
            if p.seed < 1:
                errors.append(f"Seed must be a positive number (participant {p.name})")
            elif p.seed in seen_seeds:
                errors.append(f"Duplicate seed {p.seed}: {seen_seeds[p.seed]} and {p.name}")
            else:
                seen_seeds[p.seed] = p.name
        return errors

    def _tiebreaker_errors(self, config: TournamentConfig) -> List[str]:
        if config.tiebreakers is None:
            return []
        if not config.tiebreakers:
            return ["tiebreakers must not be empty when provided"]
        errors = [f"Unknown tiebreaker: {t}" for t in config.tiebreakers if t not in ALLOWED_TIEBREAKERS]
        if len(set(config.tiebreakers)) != len(config.tiebreakers):
            errors.append("tiebreakers must not repeat")
        return errors

    def _draw_size_errors(self, config: TournamentConfig, natural: int) -> List[str]:
        requested = config.knockout.draw_size
        if requested is None:
            return []
        if not is_power_of_two(requested):
            return [f"knockout.draw_size must be a power of two (got {requested})"]
        if requested < natural:
            return [f"knockout.draw_size {requested} is smaller than the {natural} slots needed"]
        return []
