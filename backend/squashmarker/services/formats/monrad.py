"""
Monrad (Progressive Consolation) Format

- Fixed pairing table per draw size: every round pairs seed positions, not players
- Winners take the lower seed number of their pair, losers the higher
- Every player plays every round, so the draw produces a full 1..N ranking
- Fields that are not 8/16/32 are padded with byes seeded last
"""

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from squashmarker.services.format_rules import (
    FORMAT_MONRAD,
    MONRAD_MAX,
    MONRAD_MIN,
    MONRAD_PAIRINGS,
    MONRAD_SUPPORTED_SIZES,
    total_rounds_for,
)
from squashmarker.services.formats.base import (
    ConfigInput,
    TournamentFormat,
    active_participants,
)
from squashmarker.services.formats.errors import InvalidMatchResultError, UnsupportedTournamentSizeError
from squashmarker.services.formats.schemas import (
    ByeSlot,
    FinalPlacement,
    Group,
    MatchResult,
    Participant,
    ProgressiveStanding,
    SeedPositionSlot,
    StandingsView,
    TournamentMatch,
    ValidationResult,
    participant_ref,
)
from squashmarker.services.formats.state import (
    GenerationResult,
    MatchOutcome,
    MatchResultOutcome,
    MonradState,
    ParticipantHistory,
    SeedHolder,
)
from squashmarker.utils.bracket import BYE_REASON, outcome_to_result
from squashmarker.utils.seeding import sort_participants

logger = logging.getLogger(__name__)

_CODE = re.compile(r"^R(\d+)M(\d+)$")


def monrad_size_for(participant_count: int) -> int:
    """Smallest supported table size that fits the field."""
    for size in MONRAD_SUPPORTED_SIZES:
        if size >= participant_count:
            return size
    raise UnsupportedTournamentSizeError(participant_count)


def round_pairs(size: int, round_number: int) -> List[Tuple[int, int]]:
    table = MONRAD_PAIRINGS.get(size)
    if table is None or round_number not in table:
        raise UnsupportedTournamentSizeError(size, round_number)
    return table[round_number]


def match_code(round_number: int, index: int) -> str:
    return f"R{round_number}M{index + 1}"


def _holder_slot(holder: SeedHolder):
    if holder.is_bye:
        return ByeSlot(name=holder.name)
    return participant_ref(holder.participant_id, holder.name)


class MonradFormat(TournamentFormat):
    id = FORMAT_MONRAD
    name = "Monrad / Progressive Consolation"
    state_model = MonradState

    def validate_config(self, config: ConfigInput, participants: Sequence[Participant]) -> ValidationResult:
        errors = self._field_errors(participants, MONRAD_MIN, MONRAD_MAX)
        return ValidationResult.from_errors(errors)

    def generate_initial_state(self, config: ConfigInput, participants: Sequence[Participant]) -> GenerationResult:
        ranked = sort_participants(active_participants(participants))
        size = monrad_size_for(len(ranked))
        total_rounds = total_rounds_for(size)

        holders: Dict[int, SeedHolder] = {}
        for seed, p in enumerate(ranked, start=1):
            holders[seed] = SeedHolder(participant_id=p.id, name=p.name)
        for i in range(1, size - len(ranked) + 1):
            holders[len(ranked) + i] = SeedHolder(participant_id=f"bye-{i}", name=f"BYE {i}", is_bye=True)
        if size > len(ranked):
            logger.info("Monrad: padded %d participants to %d with byes", len(ranked), size)

        history = {
            h.participant_id: ParticipantHistory(
                participant_id=h.participant_id, name=h.name, is_bye=h.is_bye, current_seed=seed
            )
            for seed, h in holders.items()
        }

        state = MonradState(
            participant_count=len(ranked),
            effective_participant_count=size,
            total_rounds=total_rounds,
            seed_positions=holders,
            participant_history=history,
        )
        self._resolve(state)
        self._refresh_progress(state)

        matches = [
            self._build_match(state, r, k)
            for r in range(1, total_rounds + 1)
            for k in range(len(round_pairs(size, r)))
        ]
        logger.info("Generated Monrad draw: %d matches across %d rounds", len(matches), total_rounds)
        return GenerationResult(state=state, matches=matches, groups=[])

    def on_match_result(self, state, match: TournamentMatch, result: MatchResult) -> MatchResultOutcome:
        state = self._own_state(state).model_copy(deep=True)
        code = match.match_number
        round_number, index = self._locate(state, code)

        if code in state.outcomes:
            raise InvalidMatchResultError(f"Match {code} already has a result")
        lineup = state.lineups.get(code)
        if lineup is None or any(slot.type != "participant" for slot in lineup):
            raise InvalidMatchResultError(f"Match {code} is not ready to be played")

        a, b = lineup
        if result.winner_id == a.participant_id:
            winner, loser = a, b
        elif result.winner_id == b.participant_id:
            winner, loser = b, a
        else:
            raise InvalidMatchResultError(f"Winner {result.winner_id} is not a participant of match {code}")
        if result.loser_id is not None and result.loser_id != loser.participant_id:
            raise InvalidMatchResultError(f"Loser {result.loser_id} is not the opponent in match {code}")

        state.outcomes[code] = MatchOutcome(
            status="walkover" if result.walkover else "completed",
            winner=winner,
            loser=loser,
            game_scores=list(result.game_scores),
            retired=result.retired,
        )
        self._reassign(state, round_number, index, winner.participant_id, loser.participant_id)
        winner_history = state.participant_history[winner.participant_id]
        loser_history = state.participant_history[loser.participant_id]
        winner_history.wins += 1
        loser_history.losses += 1
        winner_history.opponents.append(loser.participant_id)
        loser_history.opponents.append(winner.participant_id)

        changed = [code] + [c for c in self._resolve(state) if c != code]
        self._refresh_progress(state)
        logger.debug("Monrad %s: %s takes the higher seed", code, winner.name)
        if state.completed:
            logger.info("Monrad draw complete")

        return MatchResultOutcome(
            state=state,
            updated_matches=[self._build_match(state, *self._locate(state, c)) for c in changed],
            tournament_complete=state.completed,
        )

    def get_standings(self, state, groups: Optional[Sequence[Group]] = None) -> StandingsView:
        state = self._own_state(state)
        return StandingsView(
            type="progressive",
            title="Current Standings",
            current_round=state.current_round,
            total_rounds=state.total_rounds,
            rows=self._rows(state),
        )

    def get_final_results(self, state, groups: Optional[Sequence[Group]] = None) -> List[FinalPlacement]:
        """Full ranking once every round is played; empty before that."""
        state = self._own_state(state)
        if not state.completed:
            return []
        return [
            FinalPlacement(
                position=place,
                participant_id=row.participant_id,
                name=row.name,
                wins=row.wins,
                losses=row.losses,
                detail={"seed_position": row.seed_position},
            )
            for place, row in enumerate(self._rows(state), start=1)
        ]

    # -------------------------------------------------------------------------
    # Seed table
    # -------------------------------------------------------------------------

    def _locate(self, state: MonradState, code: str) -> Tuple[int, int]:
        found = _CODE.match(code)
        if found is None:
            raise InvalidMatchResultError(f"Match {code} is not part of this draw")
        round_number, index = int(found.group(1)), int(found.group(2)) - 1
        if not 1 <= round_number <= state.total_rounds:
            raise InvalidMatchResultError(f"Match {code} is not part of this draw")
        if not 0 <= index < len(round_pairs(state.effective_participant_count, round_number)):
            raise InvalidMatchResultError(f"Match {code} is not part of this draw")
        return round_number, index

    def _reassign(self, state: MonradState, round_number: int, index: int, winner_id: str, loser_id: str) -> None:
        """Winners up, losers down: winner takes the pair's lower seed number."""
        high, low = round_pairs(state.effective_participant_count, round_number)[index]
        by_id = {h.participant_id: h for h in state.seed_positions.values()}
        winner, loser = by_id[winner_id], by_id[loser_id]
        state.seed_positions[high] = winner.model_copy(update={"resolved_round": round_number})
        state.seed_positions[low] = loser.model_copy(update={"resolved_round": round_number})
        state.participant_history[winner_id].current_seed = high
        state.participant_history[loser_id].current_seed = low

    def _resolve(self, state: MonradState) -> List[str]:
        """
        Bind seed placeholders to their holders and settle bye matches, until
        nothing changes. Returns the codes of matches whose view changed.
        """
        size = state.effective_participant_count
        changed: List[str] = []
        progress = True
        while progress:
            progress = False
            for round_number in range(1, state.total_rounds + 1):
                for index, (high, low) in enumerate(round_pairs(size, round_number)):
                    code = match_code(round_number, index)
                    if code in state.outcomes:
                        continue
                    holder_a = state.seed_positions[high]
                    holder_b = state.seed_positions[low]
                    if holder_a.resolved_round != round_number - 1 or holder_b.resolved_round != round_number - 1:
                        continue

                    if code not in state.lineups:
                        state.lineups[code] = [_holder_slot(holder_a), _holder_slot(holder_b)]
                        changed.append(code)
                        progress = True

                    if holder_a.is_bye and holder_b.is_bye:
                        state.outcomes[code] = MatchOutcome(status="cancelled")
                        state.seed_positions[high] = holder_a.model_copy(update={"resolved_round": round_number})
                        state.seed_positions[low] = holder_b.model_copy(update={"resolved_round": round_number})
                    elif holder_a.is_bye or holder_b.is_bye:
                        real, bye = (holder_b, holder_a) if holder_a.is_bye else (holder_a, holder_b)
                        state.outcomes[code] = MatchOutcome(
                            status="completed",
                            winner=_holder_slot(real),
                            loser=None,
                            walkover_reason=BYE_REASON,
                        )
                        self._reassign(state, round_number, index, real.participant_id, bye.participant_id)
                    else:
                        continue

                    if code not in changed:
                        changed.append(code)
                    progress = True
        return changed

    def _refresh_progress(self, state: MonradState) -> None:
        size = state.effective_participant_count
        state.current_round = state.total_rounds + 1
        for round_number in range(1, state.total_rounds + 1):
            codes = [match_code(round_number, k) for k in range(len(round_pairs(size, round_number)))]
            if any(code not in state.outcomes for code in codes):
                state.current_round = round_number
                break
        final_codes = [
            match_code(state.total_rounds, k) for k in range(len(round_pairs(size, state.total_rounds)))
        ]
        state.completed = all(code in state.outcomes for code in final_codes)

    def _rows(self, state: MonradState) -> List[ProgressiveStanding]:
        rows = []
        for seed in sorted(state.seed_positions):
            holder = state.seed_positions[seed]
            if holder.is_bye:
                continue
            history = state.participant_history[holder.participant_id]
            rows.append(
                ProgressiveStanding(
                    seed_position=seed,
                    participant_id=holder.participant_id,
                    name=holder.name,
                    wins=history.wins,
                    losses=history.losses,
                )
            )
        return rows

    def _build_match(self, state: MonradState, round_number: int, index: int) -> TournamentMatch:
        code = match_code(round_number, index)
        high, low = round_pairs(state.effective_participant_count, round_number)[index]
        lineup = state.lineups.get(code)
        if lineup is not None:
            slot_a, slot_b = lineup
        else:
            slot_a = SeedPositionSlot(seed=high, name=f"Seed {high}")
            slot_b = SeedPositionSlot(seed=low, name=f"Seed {low}")

        outcome = state.outcomes.get(code)
        if outcome is not None:
            status = outcome.status
        elif lineup is not None:
            status = "ready"
        else:
            status = "pending"

        return TournamentMatch(
            round=round_number,
            stage="main",
            match_number=code,
            participant_a=slot_a,
            participant_b=slot_b,
            status=status,
            result=outcome_to_result(outcome) if outcome else None,
        )
