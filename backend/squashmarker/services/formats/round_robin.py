"""
Round Robin Format

Everyone in a group plays everyone else once. Large fields are split into
groups by snake seeding; standings are ordered by the configured tiebreakers.
"""

import logging
from typing import List, Optional, Sequence

from squashmarker.services.format_rules import (
    DEFAULT_TIEBREAKERS,
    FORMAT_ROUND_ROBIN,
    MIN_GROUP_SIZE,
    ROUND_ROBIN_MAX,
    ROUND_ROBIN_MIN,
)
from squashmarker.services.formats import group_stage
from squashmarker.services.formats.base import (
    ConfigInput,
    TournamentFormat,
    active_participants,
    coerce_config,
)
from squashmarker.services.formats.schemas import (
    FinalPlacement,
    Group,
    MatchResult,
    Participant,
    StandingsView,
    TournamentMatch,
    ValidationResult,
)
from squashmarker.services.formats.state import (
    GenerationResult,
    GroupState,
    MatchResultOutcome,
    RoundRobinState,
)
from squashmarker.utils.seeding import group_count_for, sort_participants

logger = logging.getLogger(__name__)


def smallest_group_size(participant_count: int, target_size: int) -> int:
    return participant_count // group_count_for(participant_count, target_size)


def placements_by_group_position(
    groups: Sequence[GroupState], tiebreakers: Sequence[str], salt: str, start: int = 1
) -> List[FinalPlacement]:
    """All group winners first (in group order), then all runners-up, and so on."""
    rows = []
    for group_index, group in enumerate(groups):
        view = group_stage.group_view(group, tiebreakers, salt)
        for row in view.standings:
            rows.append((row.position, group_index, view.name, row))
    rows.sort(key=lambda item: (item[0], item[1]))

    return [
        FinalPlacement(
            position=start + offset,
            participant_id=row.participant_id,
            name=row.name,
            group=group_name,
            group_position=group_position,
            wins=row.wins,
            losses=row.losses,
            detail={
                "played": row.played,
                "games_won": row.games_won,
                "games_lost": row.games_lost,
                "points_won": row.points_won,
                "points_lost": row.points_lost,
            },
        )
        for offset, (group_position, _, group_name, row) in enumerate(rows)
    ]


class RoundRobinFormat(TournamentFormat):
    id = FORMAT_ROUND_ROBIN
    name = "Round Robin"
    state_model = RoundRobinState

    def validate_config(self, config: ConfigInput, participants: Sequence[Participant]) -> ValidationResult:
        cfg = coerce_config(config)
        errors = self._field_errors(participants, ROUND_ROBIN_MIN, ROUND_ROBIN_MAX)
        errors.extend(self._tiebreaker_errors(cfg))

        count = len(active_participants(participants))
        target = cfg.groups.target_size
        if target is not None:
            if target < MIN_GROUP_SIZE:
                errors.append(f"groups.target_size must be at least {MIN_GROUP_SIZE} (got {target})")
            elif count >= ROUND_ROBIN_MIN and smallest_group_size(count, target) < MIN_GROUP_SIZE:
                errors.append(
                    f"groups.target_size {target} would leave a group smaller than {MIN_GROUP_SIZE}"
                )
        return ValidationResult.from_errors(errors)

    def generate_initial_state(self, config: ConfigInput, participants: Sequence[Participant]) -> GenerationResult:
        cfg = coerce_config(config)
        active = active_participants(participants)
        ranked = sort_participants(active)
        target = cfg.groups.target_size or len(ranked)
        group_count = group_count_for(len(ranked), target)

        groups = group_stage.build_groups(ranked, group_count, cfg.groups.avoid_same_club, "Group", "G")
        state = RoundRobinState(
            total_rounds=group_stage.rounds_needed(groups),
            group_count=group_count,
            tiebreakers=list(cfg.tiebreakers or DEFAULT_TIEBREAKERS),
            random_salt=group_stage.field_salt(active),
            groups=groups,
        )

        matches: List[TournamentMatch] = []
        for group in groups:
            matches.extend(group_stage.group_matches(group))

        logger.info(
            "Generated round robin: %d participants in %d group(s), %d matches",
            len(ranked), group_count, len(matches),
        )
        return GenerationResult(state=state, matches=matches, groups=self._views(state))

    def on_match_result(self, state, match: TournamentMatch, result: MatchResult) -> MatchResultOutcome:
        state = self._own_state(state).model_copy(deep=True)
        group = group_stage.find_group(state.groups, match)
        group_stage.record_group_result(group, match.match_number, result)

        state.completed = all(g.completed for g in state.groups)
        if group.completed:
            logger.info("%s complete", group.name)

        return MatchResultOutcome(
            state=state,
            updated_matches=[group_stage.group_match(group, match.match_number)],
            standings_updates=[group_stage.standings_update(group, state.tiebreakers, state.random_salt)],
            tournament_complete=state.completed,
        )

    def get_standings(self, state, groups: Optional[Sequence[Group]] = None) -> StandingsView:
        state = self._own_state(state)
        return StandingsView(
            type="groups",
            title="Group Standings",
            total_rounds=state.total_rounds,
            groups=self._views(state),
        )

    def get_final_results(self, state, groups: Optional[Sequence[Group]] = None) -> List[FinalPlacement]:
        state = self._own_state(state)
        return placements_by_group_position(state.groups, state.tiebreakers, state.random_salt)

    def _views(self, state: RoundRobinState) -> List[Group]:
        return [group_stage.group_view(g, state.tiebreakers, state.random_salt) for g in state.groups]
