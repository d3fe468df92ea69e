"""
Single Elimination Format

- Draw size is the smallest power of two that fits the field
- Byes sit opposite the top seeds, so seed 1 gets the first bye
- Standard squash seeding: 1 and 2 at opposite ends of the draw
- Optional consolation draw for first-round losers
"""

import logging
from typing import List, Optional, Sequence

from squashmarker.services.format_rules import (
    FORMAT_SINGLE_ELIMINATION,
    SINGLE_ELIMINATION_MAX,
    SINGLE_ELIMINATION_MIN,
    draw_size_for,
)
from squashmarker.services.formats.base import (
    ConfigInput,
    TournamentFormat,
    active_participants,
    coerce_config,
)
from squashmarker.services.formats.errors import InvalidMatchResultError
from squashmarker.services.formats.schemas import (
    BracketRoundView,
    ByeSlot,
    FinalPlacement,
    Group,
    MatchResult,
    Participant,
    StandingsView,
    TournamentMatch,
    ValidationResult,
    participant_ref,
)
from squashmarker.services.formats.state import (
    BracketState,
    GenerationResult,
    MatchResultOutcome,
    SingleEliminationState,
)
from squashmarker.utils import bracket as bracket_ops
from squashmarker.utils.seeding import bracket_positions, sort_participants

logger = logging.getLogger(__name__)

CONSOLATION_PREFIX = "C"


def seeded_first_round(ranked: Sequence[Participant], draw_size: int) -> list:
    """
    Occupants of round 1 in draw order.

    The participant ranked r takes the position of seed r; positions whose
    seed number exceeds the field size are byes.
    """
    field = len(ranked)
    first_round = []
    for seed in bracket_positions(draw_size):
        if seed <= field:
            p = ranked[seed - 1]
            first_round.append(participant_ref(p.id, p.name))
        else:
            first_round.append(ByeSlot())
    return first_round


def consolation_first_round(main: BracketState) -> list:
    """Main round-1 match k sends its loser to consolation slot k."""
    occupants = []
    for index in range(bracket_ops.matches_in_round(main, 1)):
        code = bracket_ops.match_code(main, 1, index)
        outcome = main.outcomes.get(code)
        if outcome is None:
            occupants.append(bracket_ops.loser_placeholder(code))
        elif outcome.loser is not None and outcome.loser.type == "participant":
            occupants.append(outcome.loser)
        else:
            occupants.append(ByeSlot())
    return occupants


def bracket_rounds(bracket: BracketState) -> List[BracketRoundView]:
    return [
        BracketRoundView(
            round=r,
            stage=bracket.stage,
            matches=[bracket_ops.build_match(bracket, r, k) for k in range(bracket_ops.matches_in_round(bracket, r))],
        )
        for r in range(1, bracket.total_rounds + 1)
    ]


class SingleEliminationFormat(TournamentFormat):
    id = FORMAT_SINGLE_ELIMINATION
    name = "Single Elimination"
    state_model = SingleEliminationState

    def validate_config(self, config: ConfigInput, participants: Sequence[Participant]) -> ValidationResult:
        cfg = coerce_config(config)
        errors = self._field_errors(participants, SINGLE_ELIMINATION_MIN, SINGLE_ELIMINATION_MAX)
        count = len(active_participants(participants))
        draw_errors = self._draw_size_errors(cfg, draw_size_for(count))
        errors.extend(draw_errors)
        draw_size = draw_size_for(count) if draw_errors else max(draw_size_for(count), cfg.knockout.draw_size or 0)
        if cfg.knockout.consolation and draw_size < 4:
            errors.append("Consolation draw requires a draw of at least 4")
        return ValidationResult.from_errors(errors)

    def generate_initial_state(self, config: ConfigInput, participants: Sequence[Participant]) -> GenerationResult:
        cfg = coerce_config(config)
        ranked = sort_participants(active_participants(participants))
        draw_size = max(draw_size_for(len(ranked)), cfg.knockout.draw_size or 0)
        draw_ranks = {p.id: rank for rank, p in enumerate(ranked, start=1)}

        main = bracket_ops.new_bracket(seeded_first_round(ranked, draw_size), "main", "", draw_ranks)
        bracket_ops.settle_first_round(main)

        consolation = None
        consolation_enabled = cfg.knockout.consolation and draw_size >= 4
        if consolation_enabled:
            consolation = bracket_ops.new_bracket(
                consolation_first_round(main), "consolation", CONSOLATION_PREFIX, draw_ranks
            )
            bracket_ops.settle_first_round(consolation)

        state = SingleEliminationState(
            draw_size=draw_size,
            bye_count=draw_size - len(ranked),
            total_rounds=main.total_rounds,
            main=main,
            consolation=consolation,
            consolation_enabled=consolation_enabled,
        )
        self._refresh_progress(state)

        matches = bracket_ops.build_matches(main, bracket_ops.all_positions(main))
        if consolation is not None:
            matches.extend(bracket_ops.build_matches(consolation, bracket_ops.all_positions(consolation)))

        logger.info(
            "Generated single elimination draw: %d participants, draw %d, %d byes, consolation=%s",
            len(ranked), draw_size, state.bye_count, consolation_enabled,
        )
        return GenerationResult(state=state, matches=matches, groups=[])

    def on_match_result(self, state, match: TournamentMatch, result: MatchResult) -> MatchResultOutcome:
        state = self._own_state(state).model_copy(deep=True)
        code = match.match_number

        if state.consolation is not None and bracket_ops.owns(state.consolation, code):
            position, _, downstream = bracket_ops.record_result(state.consolation, code, result)
            updated = bracket_ops.build_matches(state.consolation, [position] + downstream)
        elif bracket_ops.owns(state.main, code):
            position, loser, downstream = bracket_ops.record_result(state.main, code, result)
            updated = bracket_ops.build_matches(state.main, [position] + downstream)
            if state.consolation is not None and position[0] == 1:
                fed = bracket_ops.fill_slot(state.consolation, 1, position[1], loser)
                updated.extend(bracket_ops.build_matches(state.consolation, fed))
        else:
            raise InvalidMatchResultError(f"Match {code} is not part of this draw")

        self._refresh_progress(state)
        logger.debug("Recorded %s: winner %s", code, result.winner_id)
        if state.completed:
            logger.info("Single elimination draw complete")

        return MatchResultOutcome(
            state=state,
            updated_matches=updated,
            tournament_complete=state.completed,
        )

    def get_standings(self, state, groups: Optional[Sequence[Group]] = None) -> StandingsView:
        state = self._own_state(state)
        rounds = bracket_rounds(state.main)
        if state.consolation is not None:
            rounds.extend(bracket_rounds(state.consolation))
        return StandingsView(
            type="bracket",
            title="Draw",
            current_round=state.current_round,
            total_rounds=state.total_rounds,
            bracket=rounds,
        )

    def get_final_results(self, state, groups: Optional[Sequence[Group]] = None) -> List[FinalPlacement]:
        """Placements decided so far; complete once the draw is complete."""
        state = self._own_state(state)
        results = [
            FinalPlacement(
                position=place,
                participant_id=slot.participant_id,
                name=slot.name,
                detail={"round_reached": reached, "stage": "main"},
            )
            for place, slot, reached in bracket_ops.placements(state.main)
        ]
        if state.consolation is not None:
            results.extend(
                FinalPlacement(
                    position=place,
                    participant_id=slot.participant_id,
                    name=slot.name,
                    detail={"round_reached": reached, "stage": "consolation"},
                )
                for place, slot, reached in bracket_ops.placements(state.consolation)
                if place <= 2
            )
        return results

    def _refresh_progress(self, state: SingleEliminationState) -> None:
        state.current_round = bracket_ops.current_round(state.main)
        main_done = bracket_ops.is_complete(state.main)
        consolation_done = state.consolation is None or bracket_ops.is_complete(state.consolation)
        state.completed = main_done and consolation_done
