"""
Tournament engine: format registry plus pass-through helpers.

The registry is filled once in __init__ and never changes afterwards.
"""

import logging
from typing import Dict, List, Optional, Sequence

from squashmarker.services.formats.base import ConfigInput, TournamentFormat
from squashmarker.services.formats.errors import TournamentValidationError, UnknownFormatError
from squashmarker.services.formats.monrad import MonradFormat
from squashmarker.services.formats.pools_knockout import PoolsKnockoutFormat
from squashmarker.services.formats.round_robin import RoundRobinFormat
from squashmarker.services.formats.schemas import (
    FinalPlacement,
    Group,
    MatchResult,
    Participant,
    StandingsView,
    TournamentMatch,
    ValidationResult,
)
from squashmarker.services.formats.single_elimination import SingleEliminationFormat
from squashmarker.services.formats.state import GenerationResult, MatchResultOutcome

logger = logging.getLogger(__name__)


class TournamentEngine:
    def __init__(self, formats: Optional[Sequence[TournamentFormat]] = None):
        if formats is None:
            formats = [
                SingleEliminationFormat(),
                RoundRobinFormat(),
                MonradFormat(),
                PoolsKnockoutFormat(),
            ]
        self._formats: Dict[str, TournamentFormat] = {f.id: f for f in formats}

    def available_formats(self) -> List[Dict[str, str]]:
        return [{"id": f.id, "name": f.name} for f in self._formats.values()]

    def get_format(self, format_id: str) -> TournamentFormat:
        fmt = self._formats.get(format_id)
        if fmt is None:
            raise UnknownFormatError(format_id)
        return fmt

    def validate_tournament(
        self, format_id: str, config: ConfigInput, participants: Sequence[Participant]
    ) -> ValidationResult:
        return self.get_format(format_id).validate_config(config, participants)

    def generate_tournament(
        self, format_id: str, config: ConfigInput, participants: Sequence[Participant]
    ) -> GenerationResult:
        """Validate, then generate. Raises TournamentValidationError with every problem found."""
        fmt = self.get_format(format_id)
        validation = fmt.validate_config(config, participants)
        if not validation.valid:
            logger.warning("Rejected %s tournament: %s", format_id, "; ".join(validation.errors))
            raise TournamentValidationError(validation.errors)
        return fmt.generate_initial_state(config, participants)

    def process_match_result(
        self, format_id: str, state, match: TournamentMatch, result: MatchResult
    ) -> MatchResultOutcome:
        return self.get_format(format_id).on_match_result(state, match, result)

    def get_standings(self, format_id: str, state, groups: Optional[Sequence[Group]] = None) -> StandingsView:
        return self.get_format(format_id).get_standings(state, groups)

    def get_playable_matches(self, format_id: str, state, matches: Sequence[TournamentMatch]) -> List[TournamentMatch]:
        return self.get_format(format_id).get_next_playable_matches(state, matches)

    def is_tournament_complete(self, format_id: str, state) -> bool:
        return self.get_format(format_id).is_complete(state)

    def get_final_results(
        self, format_id: str, state, groups: Optional[Sequence[Group]] = None
    ) -> List[FinalPlacement]:
        return self.get_format(format_id).get_final_results(state, groups)

    def serialize_state(self, format_id: str, state) -> str:
        return self.get_format(format_id).serialize(state)

    def deserialize_state(self, format_id: str, blob: str):
        return self.get_format(format_id).deserialize(blob)


# Built once at import; the registry is never modified afterwards
ENGINE = TournamentEngine()


def get_engine() -> TournamentEngine:
    """The process-wide TournamentEngine."""
    return ENGINE
