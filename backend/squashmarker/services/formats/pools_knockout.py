"""
Pools → Knockout Format

Phase 1: round robin in pools (snake seeded).
Phase 2: the top N of every pool play a single-elimination knockout.

Knockout seeding keeps pool-mates apart for as long as the draw allows:
qualifiers are ranked by finishing position then pool order, and each one takes
the free draw position furthest (in rounds) from anyone of its own pool.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from squashmarker.services.format_rules import (
    DEFAULT_ADVANCE_PER_GROUP,
    DEFAULT_POOL_SIZE,
    DEFAULT_TIEBREAKERS,
    FORMAT_POOLS_KNOCKOUT,
    MIN_GROUP_SIZE,
    POOLS_KNOCKOUT_MIN,
    POOLS_KNOCKOUT_MIN_QUALIFIERS,
    draw_size_for,
    total_rounds_for,
)
from squashmarker.services.formats import group_stage
from squashmarker.services.formats.base import (
    ConfigInput,
    TournamentFormat,
    active_participants,
    coerce_config,
)
from squashmarker.services.formats.round_robin import placements_by_group_position
from squashmarker.services.formats.schemas import (
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
from squashmarker.services.formats.single_elimination import bracket_rounds
from squashmarker.services.formats.state import (
    BracketState,
    GenerationResult,
    MatchResultOutcome,
    PoolsKnockoutState,
)
from squashmarker.utils import bracket as bracket_ops
from squashmarker.utils.seeding import (
    bracket_positions,
    group_count_for,
    meeting_round,
    position_of_seed,
    sort_participants,
)

logger = logging.getLogger(__name__)

KNOCKOUT_PREFIX = "K"

Qualifier = Tuple[str, str, int]  # (participant_id, name, pool index)


def pool_settings(cfg) -> Tuple[int, int]:
    return (
        cfg.groups.target_size or DEFAULT_POOL_SIZE,
        cfg.groups.advance_per_group or DEFAULT_ADVANCE_PER_GROUP,
    )


def place_qualifiers(qualifiers: Sequence[Qualifier], draw_size: int) -> List[Optional[Qualifier]]:
    """
    Draw position -> qualifier (None = bye), with pool separation.

    Qualifier r (1-based, in seed order) may only use the positions of seeds
    1..len(qualifiers); the rest are byes, opposite the top seeds. Among the
    free positions it takes the one maximising the earliest round it could
    meet an already placed pool-mate; ties go to its own seed position, then
    to the best-seeded position.
    """
    seed_at = bracket_positions(draw_size)
    pos_of = position_of_seed(draw_size)
    no_meeting = total_rounds_for(draw_size) + 1

    free = {pos_of[seed] for seed in range(1, len(qualifiers) + 1)}
    placed: Dict[int, List[int]] = {}  # pool index -> positions
    draw: List[Optional[Qualifier]] = [None] * draw_size

    for rank, qualifier in enumerate(qualifiers, start=1):
        mates = placed.get(qualifier[2], [])

        def separation(pos: int) -> int:
            return min((meeting_round(pos, other) for other in mates), default=no_meeting)

        best = max(separation(pos) for pos in free)
        candidates = [pos for pos in free if separation(pos) == best]
        if pos_of[rank] in candidates:
            chosen = pos_of[rank]
        else:
            chosen = min(candidates, key=lambda pos: seed_at[pos])

        draw[chosen] = qualifier
        free.remove(chosen)
        placed.setdefault(qualifier[2], []).append(chosen)
    return draw


class PoolsKnockoutFormat(TournamentFormat):
    id = FORMAT_POOLS_KNOCKOUT
    name = "Pools → Knockout"
    state_model = PoolsKnockoutState

    def validate_config(self, config: ConfigInput, participants: Sequence[Participant]) -> ValidationResult:
        cfg = coerce_config(config)
        errors = self._field_errors(participants, POOLS_KNOCKOUT_MIN, None)
        errors.extend(self._tiebreaker_errors(cfg))

        count = len(active_participants(participants))
        pool_size, advance = pool_settings(cfg)
        if pool_size < MIN_GROUP_SIZE:
            errors.append(f"Pool size must be at least {MIN_GROUP_SIZE}")
        if advance < 1:
            errors.append("groups.advance_per_group must be at least 1")
        if advance >= pool_size:
            errors.append("Advance count must be less than pool size")

        if count >= POOLS_KNOCKOUT_MIN and pool_size >= MIN_GROUP_SIZE:
            pool_count = group_count_for(count, pool_size)
            smallest = count // pool_count
            if smallest < MIN_GROUP_SIZE:
                errors.append(f"Pool size {pool_size} would leave a pool smaller than {MIN_GROUP_SIZE}")
            elif advance >= smallest:
                errors.append(f"Advance count must be less than the smallest pool ({smallest})")
            qualifiers = pool_count * advance
            if qualifiers < POOLS_KNOCKOUT_MIN_QUALIFIERS:
                errors.append(
                    f"Not enough qualifiers for knockout phase ({qualifiers}, need {POOLS_KNOCKOUT_MIN_QUALIFIERS})"
                )
            else:
                errors.extend(self._draw_size_errors(cfg, draw_size_for(qualifiers)))
        return ValidationResult.from_errors(errors)

    def generate_initial_state(self, config: ConfigInput, participants: Sequence[Participant]) -> GenerationResult:
        cfg = coerce_config(config)
        active = active_participants(participants)
        ranked = sort_participants(active)
        pool_size, advance = pool_settings(cfg)
        pool_count = group_count_for(len(ranked), pool_size)

        pools = group_stage.build_groups(ranked, pool_count, cfg.groups.avoid_same_club, "Pool", "P")
        total_qualifiers = pool_count * advance
        state = PoolsKnockoutState(
            group_count=pool_count,
            advance_per_group=advance,
            total_qualifiers=total_qualifiers,
            knockout_draw_size=max(draw_size_for(total_qualifiers), cfg.knockout.draw_size or 0),
            tiebreakers=list(cfg.tiebreakers or DEFAULT_TIEBREAKERS),
            random_salt=group_stage.field_salt(active),
            groups=pools,
        )

        matches: List[TournamentMatch] = []
        for pool in pools:
            matches.extend(group_stage.group_matches(pool))

        logger.info(
            "Generated pools: %d participants in %d pools, %d qualifiers into a draw of %d",
            len(ranked), pool_count, total_qualifiers, state.knockout_draw_size,
        )
        return GenerationResult(state=state, matches=matches, groups=self._views(state))

    def on_match_result(self, state, match: TournamentMatch, result: MatchResult) -> MatchResultOutcome:
        state = self._own_state(state).model_copy(deep=True)
        code = match.match_number

        if state.knockout is not None and bracket_ops.owns(state.knockout, code):
            position, _, downstream = bracket_ops.record_result(state.knockout, code, result)
            state.completed = bracket_ops.is_complete(state.knockout)
            if state.completed:
                logger.info("Knockout complete")
            return MatchResultOutcome(
                state=state,
                updated_matches=bracket_ops.build_matches(state.knockout, [position] + downstream),
                tournament_complete=state.completed,
            )

        pool = group_stage.find_group(state.groups, match)
        group_stage.record_group_result(pool, code, result)
        outcome = MatchResultOutcome(
            state=state,
            updated_matches=[group_stage.group_match(pool, code)],
            standings_updates=[group_stage.standings_update(pool, state.tiebreakers, state.random_salt)],
        )

        if all(p.completed for p in state.groups) and not state.knockout_generated:
            state.pools_complete = True
            state.knockout = self._seed_knockout(state)
            state.knockout_generated = True
            state.phase = "knockout"
            outcome.new_matches = bracket_ops.build_matches(
                state.knockout, bracket_ops.all_positions(state.knockout)
            )
            state.completed = bracket_ops.is_complete(state.knockout)
            logger.info(
                "Pools complete: %d qualifiers seeded into a knockout of %d",
                state.total_qualifiers, state.knockout_draw_size,
            )

        outcome.tournament_complete = state.completed
        return outcome

    def get_standings(self, state, groups: Optional[Sequence[Group]] = None) -> StandingsView:
        state = self._own_state(state)
        view = StandingsView(
            type="groups" if state.knockout is None else "bracket",
            title="Pool Standings" if state.knockout is None else "Knockout",
            groups=self._views(state),
        )
        if state.knockout is not None:
            view.current_round = bracket_ops.current_round(state.knockout)
            view.total_rounds = state.knockout.total_rounds
            view.bracket = bracket_rounds(state.knockout)
        return view

    def get_final_results(self, state, groups: Optional[Sequence[Group]] = None) -> List[FinalPlacement]:
        """Knockout placements first, then everyone eliminated in the pools."""
        state = self._own_state(state)
        results: List[FinalPlacement] = []
        pool_names = {}
        pool_positions = {}
        for view in self._views(state):
            for row in view.standings:
                pool_names[row.participant_id] = view.name
                pool_positions[row.participant_id] = row.position

        if state.knockout is not None:
            for place, slot, reached in bracket_ops.placements(state.knockout):
                results.append(
                    FinalPlacement(
                        position=place,
                        participant_id=slot.participant_id,
                        name=slot.name,
                        group=pool_names.get(slot.participant_id),
                        group_position=pool_positions.get(slot.participant_id),
                        detail={"round_reached": reached, "stage": "knockout"},
                    )
                )

        eliminated = [
            p for p in placements_by_group_position(state.groups, state.tiebreakers, state.random_salt)
            if p.group_position > state.advance_per_group
        ]
        for offset, placement in enumerate(eliminated):
            placement.position = state.total_qualifiers + 1 + offset
            placement.detail["stage"] = "pools"
            results.append(placement)
        return results

    def _qualifiers(self, state: PoolsKnockoutState) -> List[Qualifier]:
        """All pool winners in pool order, then all runners-up, and so on."""
        views = self._views(state)
        qualifiers: List[Qualifier] = []
        for finish in range(state.advance_per_group):
            for pool_index, view in enumerate(views):
                if finish < len(view.standings):
                    row = view.standings[finish]
                    qualifiers.append((row.participant_id, row.name, pool_index))
        return qualifiers

    def _seed_knockout(self, state: PoolsKnockoutState) -> BracketState:
        qualifiers = self._qualifiers(state)
        draw = place_qualifiers(qualifiers, state.knockout_draw_size)
        first_round = [
            participant_ref(q[0], q[1]) if q is not None else ByeSlot()
            for q in draw
        ]
        ranks = {q[0]: rank for rank, q in enumerate(qualifiers, start=1)}
        knockout = bracket_ops.new_bracket(first_round, "main", KNOCKOUT_PREFIX, ranks)
        bracket_ops.settle_first_round(knockout)
        return knockout

    def _views(self, state: PoolsKnockoutState) -> List[Group]:
        return [group_stage.group_view(p, state.tiebreakers, state.random_salt) for p in state.groups]
