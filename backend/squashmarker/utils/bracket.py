"""
Knockout bracket wiring and advancement.

A BracketState is the authoritative slot grid of one single-elimination
bracket. Matches handed to callers are always rebuilt from the grid, so the
engine never depends on the caller's copy of a future match.

Advancement (deterministic, idempotent per match):
- match k of round r feeds match k // 2 of round r + 1
- even k fills slot A, odd k fills slot B
- a match with one bye auto-completes for the real side
- a match with two byes is cancelled and passes a bye forward
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from squashmarker.services.formats.errors import InvalidMatchResultError
from squashmarker.services.formats.schemas import (
    ByeSlot,
    MatchResult,
    ParticipantSlot,
    QualifierSlot,
    RecordedResult,
    TournamentMatch,
    is_concrete,
)
from squashmarker.services.formats.state import BracketState, MatchOutcome
from squashmarker.services.format_rules import total_rounds_for

logger = logging.getLogger(__name__)

BYE_REASON = "Bye - automatic advancement"

Position = Tuple[int, int]  # (round, index within round), round is 1-based


def match_code(bracket: BracketState, round_number: int, index: int) -> str:
    return f"{bracket.code_prefix}R{round_number}M{index + 1}"


def winner_placeholder(code: str) -> QualifierSlot:
    return QualifierSlot(qualifier=f"W:{code}", name=f"Winner {code}")


def loser_placeholder(code: str) -> QualifierSlot:
    return QualifierSlot(qualifier=f"L:{code}", name=f"Loser {code}")


def new_bracket(
    first_round: Sequence,
    stage: str = "main",
    code_prefix: str = "",
    draw_ranks: Optional[Dict[str, int]] = None,
) -> BracketState:
    """
    Build the full slot grid from the round-1 occupants (draw order).

    Later rounds start as qualifier placeholders pointing at their feeder match.
    Nothing is settled yet; call settle_first_round() to resolve byes.
    """
    draw_size = len(first_round)
    bracket = BracketState(
        stage=stage,
        code_prefix=code_prefix,
        draw_size=draw_size,
        total_rounds=total_rounds_for(draw_size),
        slots=[list(first_round)],
        draw_ranks=dict(draw_ranks or {}),
    )
    for round_number in range(1, bracket.total_rounds):
        feeders = draw_size >> round_number
        bracket.slots.append(
            [winner_placeholder(match_code(bracket, round_number, k)) for k in range(feeders)]
        )
    return bracket


def matches_in_round(bracket: BracketState, round_number: int) -> int:
    return bracket.draw_size >> round_number


def all_positions(bracket: BracketState) -> List[Position]:
    return [
        (r, k)
        for r in range(1, bracket.total_rounds + 1)
        for k in range(matches_in_round(bracket, r))
    ]


def locate(bracket: BracketState, code: str) -> Position:
    """Inverse of match_code; raises InvalidMatchResultError for foreign codes."""
    prefix = f"{bracket.code_prefix}R"
    if not code.startswith(prefix) or "M" not in code[len(prefix):]:
        raise InvalidMatchResultError(f"Match {code} is not part of this bracket")
    round_part, index_part = code[len(prefix):].split("M", 1)
    try:
        round_number, index = int(round_part), int(index_part) - 1
    except ValueError:
        raise InvalidMatchResultError(f"Match {code} is not part of this bracket")
    if not 1 <= round_number <= bracket.total_rounds or not 0 <= index < matches_in_round(bracket, round_number):
        raise InvalidMatchResultError(f"Match {code} is not part of this bracket")
    return round_number, index


def owns(bracket: BracketState, code: str) -> bool:
    try:
        locate(bracket, code)
    except InvalidMatchResultError:
        return False
    return True


def sides(bracket: BracketState, round_number: int, index: int) -> Tuple:
    row = bracket.slots[round_number - 1]
    return row[2 * index], row[2 * index + 1]


# -----------------------------------------------------------------------------
# Advancement
# -----------------------------------------------------------------------------

def _advance(bracket: BracketState, round_number: int, index: int, winner) -> List[Position]:
    if round_number >= bracket.total_rounds:
        return []
    bracket.slots[round_number][index] = winner
    next_pos = (round_number + 1, index // 2)
    logger.debug(
        "Advanced %s from %s into %s",
        winner.name,
        match_code(bracket, round_number, index),
        match_code(bracket, *next_pos),
    )
    return [next_pos] + settle(bracket, *next_pos)


def settle(bracket: BracketState, round_number: int, index: int) -> List[Position]:
    """
    Resolve a match whose slots just changed, if it needs no play.

    Returns positions whose published match changed beyond the one passed in
    (the match itself when it auto-resolved, plus everything downstream).
    """
    code = match_code(bracket, round_number, index)
    if code in bracket.outcomes:
        return []
    a, b = sides(bracket, round_number, index)
    if not (is_concrete(a) and is_concrete(b)):
        return []

    if a.type == "bye" and b.type == "bye":
        bracket.outcomes[code] = MatchOutcome(status="cancelled", winner=ByeSlot())
        return [(round_number, index)] + _advance(bracket, round_number, index, ByeSlot())

    if a.type == "bye" or b.type == "bye":
        real = b if a.type == "bye" else a
        bracket.outcomes[code] = MatchOutcome(
            status="completed", winner=real, loser=None, walkover_reason=BYE_REASON
        )
        return [(round_number, index)] + _advance(bracket, round_number, index, real)

    return []


def settle_first_round(bracket: BracketState) -> None:
    for index in range(matches_in_round(bracket, 1)):
        settle(bracket, 1, index)


def fill_slot(bracket: BracketState, round_number: int, slot_index: int, occupant) -> List[Position]:
    """Place an occupant fed from outside the bracket (e.g. a consolation entrant)."""
    bracket.slots[round_number - 1][slot_index] = occupant
    pos = (round_number, slot_index // 2)
    return [pos] + settle(bracket, *pos)


def record_result(bracket: BracketState, code: str, result: MatchResult) -> Tuple[Position, Optional[ParticipantSlot], List[Position]]:
    """
    Apply a reported result. Returns (position, loser, downstream positions).

    Raises InvalidMatchResultError when the match is already settled, not yet
    playable, or the winner is not one of its two participants.
    """
    round_number, index = locate(bracket, code)
    if code in bracket.outcomes:
        raise InvalidMatchResultError(f"Match {code} already has a result")
    a, b = sides(bracket, round_number, index)
    if a.type != "participant" or b.type != "participant":
        raise InvalidMatchResultError(f"Match {code} is not ready to be played")

    if result.winner_id == a.participant_id:
        winner, loser = a, b
    elif result.winner_id == b.participant_id:
        winner, loser = b, a
    else:
        raise InvalidMatchResultError(f"Winner {result.winner_id} is not a participant of match {code}")
    if result.loser_id is not None and result.loser_id != loser.participant_id:
        raise InvalidMatchResultError(f"Loser {result.loser_id} is not the opponent in match {code}")

    bracket.outcomes[code] = MatchOutcome(
        status="walkover" if result.walkover else "completed",
        winner=winner,
        loser=loser,
        game_scores=list(result.game_scores),
        retired=result.retired,
    )
    downstream = _advance(bracket, round_number, index, winner)
    return (round_number, index), loser, downstream


# -----------------------------------------------------------------------------
# Views
# -----------------------------------------------------------------------------

def outcome_to_result(outcome: MatchOutcome) -> Optional[RecordedResult]:
    if outcome.winner is None or outcome.winner.type != "participant":
        return None
    loser = outcome.loser if outcome.loser is not None and outcome.loser.type == "participant" else None
    return RecordedResult(
        winner_participant_id=outcome.winner.participant_id,
        winner_name=outcome.winner.name,
        loser_participant_id=loser.participant_id if loser else None,
        loser_name=loser.name if loser else None,
        game_scores=list(outcome.game_scores),
        walkover=outcome.status == "walkover" or outcome.walkover_reason is not None,
        walkover_reason=outcome.walkover_reason,
        retired=outcome.retired,
    )


def build_match(bracket: BracketState, round_number: int, index: int) -> TournamentMatch:
    code = match_code(bracket, round_number, index)
    a, b = sides(bracket, round_number, index)
    outcome = bracket.outcomes.get(code)
    if outcome is not None:
        status = outcome.status
    elif a.type == "participant" and b.type == "participant":
        status = "ready"
    else:
        status = "pending"

    if round_number > 1:
        dependencies = [
            match_code(bracket, round_number - 1, 2 * index),
            match_code(bracket, round_number - 1, 2 * index + 1),
        ]
    else:
        dependencies = [
            slot.qualifier.split(":", 1)[1]
            for slot in bracket.slots[0][2 * index:2 * index + 2]
            if slot.type == "qualifier"
        ]
    feeds = [match_code(bracket, round_number + 1, index // 2)] if round_number < bracket.total_rounds else []

    return TournamentMatch(
        round=round_number,
        stage=bracket.stage,
        match_number=code,
        participant_a=a,
        participant_b=b,
        status=status,
        result=outcome_to_result(outcome) if outcome else None,
        dependency_matches=dependencies,
        feeds_to_matches=feeds,
    )


def build_matches(bracket: BracketState, positions: Sequence[Position]) -> List[TournamentMatch]:
    """Build matches for positions, first occurrence wins, order preserved."""
    seen = set()
    result: List[TournamentMatch] = []
    for pos in positions:
        if pos in seen:
            continue
        seen.add(pos)
        result.append(build_match(bracket, *pos))
    return result


def is_complete(bracket: BracketState) -> bool:
    return len(bracket.outcomes) >= bracket.draw_size - 1


def current_round(bracket: BracketState) -> int:
    """Lowest round with an unsettled match; total_rounds + 1 once all are settled."""
    for round_number in range(1, bracket.total_rounds + 1):
        for index in range(matches_in_round(bracket, round_number)):
            if match_code(bracket, round_number, index) not in bracket.outcomes:
                return round_number
    return bracket.total_rounds + 1


def placements(bracket: BracketState) -> List[Tuple[int, ParticipantSlot, int]]:
    """
    (place, participant, round reached) for every decided finisher.

    Champion first, runner-up second; everyone else shares the place of the
    round they lost in (both semi-final losers are 3rd, quarter-final losers 5th).
    Ties within a place are ordered by draw rank.
    """
    result: List[Tuple[int, ParticipantSlot, int]] = []
    final_code = match_code(bracket, bracket.total_rounds, 0)
    final = bracket.outcomes.get(final_code)
    if final is not None and final.winner is not None and final.winner.type == "participant":
        result.append((1, final.winner, bracket.total_rounds + 1))

    for round_number in range(bracket.total_rounds, 0, -1):
        place = (bracket.draw_size >> round_number) + 1
        losers: List[ParticipantSlot] = []
        for index in range(matches_in_round(bracket, round_number)):
            outcome = bracket.outcomes.get(match_code(bracket, round_number, index))
            if outcome is not None and outcome.loser is not None and outcome.loser.type == "participant":
                losers.append(outcome.loser)
        losers.sort(key=lambda p: (bracket.draw_ranks.get(p.participant_id, 10**6), p.participant_id))
        result.extend((place, loser, round_number) for loser in losers)
    return result
