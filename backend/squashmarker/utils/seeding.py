"""
Seeding and grouping utilities shared by every format.

Deterministic rules for ordering participants, dealing them into groups and
placing them in a bracket. No randomness: the same input always yields the
same draw.
"""

import hashlib
from typing import Dict, List, Optional, Sequence

from squashmarker.services.format_rules import CANONICAL_BRACKET_POSITIONS
from squashmarker.services.formats.schemas import Participant


def seed_sort_key(participant: Participant) -> tuple:
    """
    Sort key for seed order. Lower = better.

    Order: seeded before unseeded, seed ascending, then name (case-insensitive),
    then id so equal names never depend on input order.
    """
    seeded = participant.seed is not None
    return (
        0 if seeded else 1,
        participant.seed if seeded else 0,
        participant.name.casefold(),
        participant.id,
    )


def sort_participants(participants: Sequence[Participant]) -> List[Participant]:
    """Return a new list in seed order; the input is left untouched."""
    return sorted(participants, key=seed_sort_key)


def stable_hash(*parts: object) -> int:
    """Deterministic hash for tiebreaks. Same inputs always yield same value."""
    s = ":".join(str(p) for p in parts)
    return int(hashlib.sha256(s.encode()).hexdigest()[:12], 16)


def group_count_for(participant_count: int, target_size: int) -> int:
    """Number of groups needed so no group exceeds target_size: ceil(n / size)."""
    return max(1, -(-participant_count // target_size))


def snake_group_index(participant_index: int, group_count: int) -> int:
    """
    Serpentine group index for the participant at participant_index.

    Row 0 deals left-to-right (A, B, C, D), row 1 right-to-left (D, C, B, A), ...
    """
    row = participant_index // group_count
    col = participant_index % group_count
    return col if row % 2 == 0 else group_count - 1 - col


def snake_distribute(
    sorted_participants: Sequence[Participant],
    group_count: int,
    avoid_same_club: bool = False,
) -> List[List[Participant]]:
    """
    Deal participants (already in seed order) into group_count groups.

    Every participant is placed; group sizes differ by at most one. When
    avoid_same_club is set, a participant whose club already sits in its snake
    group is moved to another group still open in the same row, if one has no
    clubmate. Rows never change which groups they fill, so sizes are unaffected.
    """
    groups: List[List[Participant]] = [[] for _ in range(group_count)]

    for row_start in range(0, len(sorted_participants), group_count):
        row = list(sorted_participants[row_start:row_start + group_count])
        targets = [snake_group_index(row_start + i, group_count) for i in range(len(row))]

        if not avoid_same_club:
            for participant, target in zip(row, targets):
                groups[target].append(participant)
            continue

        open_groups = list(targets)
        for participant, target in zip(row, targets):
            chosen = _club_free_group(groups, open_groups, target, participant.club)
            groups[chosen].append(participant)
            open_groups.remove(chosen)

    return groups


def _club_free_group(
    groups: List[List[Participant]],
    open_groups: List[int],
    preferred: int,
    club: Optional[str],
) -> int:
    candidates = list(open_groups)
    if preferred in candidates:
        candidates.remove(preferred)
        candidates.insert(0, preferred)
    if not club:
        return candidates[0]
    for index in candidates:
        if all(member.club != club for member in groups[index]):
            return index
    return candidates[0]


def group_label(index: int) -> str:
    """0 -> 'A', 1 -> 'B', ..., 25 -> 'Z', 26 -> 'AA'."""
    label = ""
    index += 1
    while index > 0:
        index, rem = divmod(index - 1, 26)
        label = chr(65 + rem) + label
    return label


# -----------------------------------------------------------------------------
# Bracket positions
# -----------------------------------------------------------------------------

def generate_bracket_positions(draw_size: int) -> List[int]:
    """
    Seed number for every bracket position, by recursive halving.

    Each seed s of the half-size draw expands into the pair (s, n+1-s), with the
    orientation alternating pair by pair so the top seed of every section sits
    at its outer edge:
      2  -> [1, 2]
      4  -> [1, 4, 3, 2]
      8  -> [1, 8, 5, 4, 3, 6, 7, 2]
    """
    if draw_size <= 2:
        return [1, 2][:draw_size]

    half = generate_bracket_positions(draw_size // 2)
    expanded: List[int] = []
    for pair_index, seed in enumerate(half):
        opponent = draw_size + 1 - seed
        if pair_index % 2 == 0:
            expanded.extend((seed, opponent))
        else:
            expanded.extend((opponent, seed))
    return expanded


def bracket_positions(draw_size: int) -> List[int]:
    """Canonical table for 4/8/16/32, recursive halving for any other size."""
    table = CANONICAL_BRACKET_POSITIONS.get(draw_size)
    if table is not None:
        return list(table)
    return generate_bracket_positions(draw_size)


def position_of_seed(draw_size: int) -> Dict[int, int]:
    """Inverse of bracket_positions: seed -> 0-based bracket position."""
    return {seed: index for index, seed in enumerate(bracket_positions(draw_size))}


def meeting_round(position_a: int, position_b: int) -> int:
    """Earliest round two bracket positions can meet (1 = first round)."""
    return (position_a ^ position_b).bit_length()
