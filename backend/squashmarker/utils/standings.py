"""
Group standings and the tiebreaker chain.

Standings are always recomputed from the group's result ledger, never patched
incrementally, so applying the same ledger twice yields the same table.
"""

from typing import Callable, Dict, List, Sequence

from squashmarker.services.formats.schemas import GroupStanding, HeadToHead
from squashmarker.services.formats.state import GroupLedgerEntry, GroupState
from squashmarker.utils.seeding import stable_hash


def build_rows(group: GroupState) -> Dict[str, GroupStanding]:
    """
    Aggregate the ledger into one row per member.

    Walkovers: the player who concedes gives the walkover, the opponent receives it.
    """
    rows: Dict[str, GroupStanding] = {
        pid: GroupStanding(participant_id=pid, name=group.participant_names.get(pid, pid))
        for pid in group.participant_ids
    }

    for entry in group.ledger:
        winner = rows.get(entry.winner_id)
        loser = rows.get(entry.loser_id)
        if winner is None or loser is None:
            continue

        winner.played += 1
        loser.played += 1
        winner.wins += 1
        loser.losses += 1

        _apply_games(rows, entry)

        if entry.walkover:
            loser.walkovers_given += 1
            winner.walkovers_received += 1

        winner.head_to_head.setdefault(entry.loser_id, HeadToHead()).wins += 1
        loser.head_to_head.setdefault(entry.winner_id, HeadToHead()).losses += 1

    return rows


def _apply_games(rows: Dict[str, GroupStanding], entry: GroupLedgerEntry) -> None:
    row_a = rows[entry.participant_a_id]
    row_b = rows[entry.participant_b_id]
    for game in entry.game_scores:
        row_a.points_won += game.player1
        row_a.points_lost += game.player2
        row_b.points_won += game.player2
        row_b.points_lost += game.player1
        if game.player1 > game.player2:
            row_a.games_won += 1
            row_b.games_lost += 1
        elif game.player2 > game.player1:
            row_b.games_won += 1
            row_a.games_lost += 1


def effective_chain(tiebreakers: Sequence[str]) -> List[str]:
    """Configured chain with 'random' guaranteed as the last resort."""
    chain = [t for t in tiebreakers]
    if "random" not in chain:
        chain.append("random")
    return chain


def _criterion(name: str, salt: str) -> Callable[[GroupStanding, List[str]], float]:
    """Return key(row, tied_ids) for a tiebreaker. Lower key = better placing."""
    if name == "wins":
        return lambda row, tied: -row.wins
    if name == "h2h":
        # Mini-league among the rows still tied at this point
        return lambda row, tied: -sum(
            row.head_to_head[other].wins for other in tied if other in row.head_to_head
        )
    if name == "game_diff":
        return lambda row, tied: -row.game_differential
    if name == "point_diff":
        return lambda row, tied: -row.point_differential
    if name == "fewest_walkovers":
        return lambda row, tied: row.walkovers_received
    if name == "random":
        return lambda row, tied: stable_hash(salt, row.participant_id)
    raise ValueError(f"Unknown tiebreaker: {name}")


def rank_rows(rows: Sequence[GroupStanding], tiebreakers: Sequence[str], salt: str) -> List[GroupStanding]:
    """
    Order rows by the tiebreaker chain.

    Each chain entry only splits clusters that every earlier entry left tied, so
    head-to-head is evaluated among exactly the tied players. The value a row
    scored at each step is recorded in tiebreak_values (sign flipped back so
    larger = better for the "more is better" criteria).
    """
    chain = effective_chain(tiebreakers)
    clusters: List[List[GroupStanding]] = [list(rows)]
    values: Dict[str, List[float]] = {row.participant_id: [] for row in rows}

    for name in chain:
        key = _criterion(name, salt)
        refined: List[List[GroupStanding]] = []
        for cluster in clusters:
            tied_ids = [row.participant_id for row in cluster]
            keyed = [(key(row, tied_ids), row) for row in cluster]
            for k, row in keyed:
                values[row.participant_id].append(_display_value(name, k))
            keyed.sort(key=lambda item: item[0])
            refined.extend(_split(keyed))
        clusters = refined

    ordered: List[GroupStanding] = []
    for cluster in clusters:
        # Still tied after the whole chain only on a hash collision
        ordered.extend(sorted(cluster, key=lambda row: row.participant_id))

    result: List[GroupStanding] = []
    for position, row in enumerate(ordered, start=1):
        result.append(
            row.model_copy(update={"position": position, "tiebreak_values": values[row.participant_id]})
        )
    return result


def _split(keyed: List[tuple]) -> List[List[GroupStanding]]:
    groups: List[List[GroupStanding]] = []
    previous = object()
    for k, row in keyed:
        if not groups or k != previous:
            groups.append([])
        groups[-1].append(row)
        previous = k
    return groups


def _display_value(name: str, key: float) -> float:
    if name in ("fewest_walkovers", "random"):
        return float(key)
    return float(-key)


def compute_group_standings(group: GroupState, tiebreakers: Sequence[str], salt: str) -> List[GroupStanding]:
    """Full, ordered standings table for one group."""
    rows = build_rows(group)
    ordered_input = [rows[pid] for pid in group.participant_ids]
    return rank_rows(ordered_input, tiebreakers, salt)
