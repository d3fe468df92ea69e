"""
Group stage shared by round robin and the pools phase of pools knockout.

Fixtures are never stored as matches: the k-th fixture of a group is the k-th
pairing of rr_pairings_by_round for that group size, so a fixture code maps
back to its two participants without the caller's match list.
"""

import logging
from typing import Dict, List, Sequence, Tuple

from squashmarker.services.format_rules import rr_pairings_by_round
from squashmarker.services.formats.errors import InvalidMatchResultError
from squashmarker.services.formats.schemas import (
    Group,
    MatchResult,
    Participant,
    RecordedResult,
    StandingsUpdate,
    TournamentMatch,
    participant_ref,
)
from squashmarker.services.formats.state import GroupLedgerEntry, GroupState
from squashmarker.utils.seeding import group_label, snake_distribute, stable_hash
from squashmarker.utils.standings import compute_group_standings

logger = logging.getLogger(__name__)

Fixture = Tuple[int, str, str]  # (round, participant_a_id, participant_b_id)


def field_salt(participants: Sequence[Participant]) -> str:
    """Salt for the random tiebreak, fixed by the field itself."""
    return format(stable_hash(*sorted(p.id for p in participants)), "x")


def build_groups(
    ranked: Sequence[Participant],
    group_count: int,
    avoid_same_club: bool,
    label: str,
    code_prefix: str,
) -> List[GroupState]:
    """
    Snake-deal the ranked field into groups and lay out each group's fixtures.

    Group n (1-based) gets fixture codes {code_prefix}{n}M1, M2, ...
    """
    groups: List[GroupState] = []
    for index, members in enumerate(snake_distribute(ranked, group_count, avoid_same_club)):
        letter = group_label(index)
        fixture_count = len(rr_pairings_by_round(len(members))) if len(members) > 1 else 0
        groups.append(
            GroupState(
                id=f"{label.lower()}-{letter.lower()}",
                name=f"{label} {letter}",
                participant_ids=[p.id for p in members],
                participant_names={p.id: p.name for p in members},
                fixtures=[f"{code_prefix}{index + 1}M{k}" for k in range(1, fixture_count + 1)],
            )
        )
    return groups


def fixture_map(group: GroupState) -> Dict[str, Fixture]:
    if len(group.participant_ids) < 2:
        return {}
    pairings = rr_pairings_by_round(len(group.participant_ids))
    return {
        code: (round_num, group.participant_ids[a], group.participant_ids[b])
        for code, (round_num, _, a, b) in zip(group.fixtures, pairings)
    }


def find_group(groups: Sequence[GroupState], match: TournamentMatch) -> GroupState:
    for group in groups:
        if match.match_number in group.fixtures:
            if match.group_id is not None and match.group_id != group.id:
                raise InvalidMatchResultError(
                    f"Match {match.match_number} belongs to {group.id}, not {match.group_id}"
                )
            return group
    raise InvalidMatchResultError(f"Match {match.match_number} is not a group fixture")


def _ledger_entry(group: GroupState, code: str):
    for entry in group.ledger:
        if entry.match_number == code:
            return entry
    return None


def record_group_result(group: GroupState, code: str, result: MatchResult) -> GroupLedgerEntry:
    """Append a result to the group's ledger. Each fixture is recorded once."""
    fixtures = fixture_map(group)
    if code not in fixtures:
        raise InvalidMatchResultError(f"Match {code} is not part of {group.name}")
    if _ledger_entry(group, code) is not None:
        raise InvalidMatchResultError(f"Match {code} already has a result")

    _, a_id, b_id = fixtures[code]
    if result.winner_id == a_id:
        loser_id = b_id
    elif result.winner_id == b_id:
        loser_id = a_id
    else:
        raise InvalidMatchResultError(f"Winner {result.winner_id} is not a participant of match {code}")
    if result.loser_id is not None and result.loser_id != loser_id:
        raise InvalidMatchResultError(f"Loser {result.loser_id} is not the opponent in match {code}")

    entry = GroupLedgerEntry(
        match_number=code,
        participant_a_id=a_id,
        participant_b_id=b_id,
        winner_id=result.winner_id,
        loser_id=loser_id,
        game_scores=list(result.game_scores),
        walkover=result.walkover,
    )
    group.ledger.append(entry)
    logger.debug("%s: %s beat %s in %s", group.name, result.winner_id, loser_id, code)
    return entry


def build_group_match(group: GroupState, code: str, fixture: Fixture) -> TournamentMatch:
    round_num, a_id, b_id = fixture
    names = group.participant_names
    entry = _ledger_entry(group, code)
    result = None
    status = "ready"
    if entry is not None:
        status = "walkover" if entry.walkover else "completed"
        result = RecordedResult(
            winner_participant_id=entry.winner_id,
            winner_name=names[entry.winner_id],
            loser_participant_id=entry.loser_id,
            loser_name=names[entry.loser_id],
            game_scores=list(entry.game_scores),
            walkover=entry.walkover,
        )
    return TournamentMatch(
        round=round_num,
        stage="group",
        match_number=code,
        participant_a=participant_ref(a_id, names[a_id]),
        participant_b=participant_ref(b_id, names[b_id]),
        status=status,
        result=result,
        group_id=group.id,
    )


def group_matches(group: GroupState) -> List[TournamentMatch]:
    return [build_group_match(group, code, fixture) for code, fixture in fixture_map(group).items()]


def group_match(group: GroupState, code: str) -> TournamentMatch:
    return build_group_match(group, code, fixture_map(group)[code])


def group_view(group: GroupState, tiebreakers: Sequence[str], salt: str) -> Group:
    return Group(
        id=group.id,
        name=group.name,
        participant_ids=list(group.participant_ids),
        standings=compute_group_standings(group, tiebreakers, salt),
        completed=group.completed,
    )


def standings_update(group: GroupState, tiebreakers: Sequence[str], salt: str) -> StandingsUpdate:
    view = group_view(group, tiebreakers, salt)
    return StandingsUpdate(group_id=view.id, standings=view.standings, completed=view.completed)


def rounds_needed(groups: Sequence[GroupState]) -> int:
    rounds = [fixture[0] for group in groups for fixture in fixture_map(group).values()]
    return max(rounds, default=0)
