"""
Format Rules: Allowed Matrix and Fixed Tables (Single Source of Truth)

This module defines the participant limits, canonical bracket tables, Monrad
pairing tables and tiebreaker names used by every tournament format.
All other modules must import from here. Do NOT duplicate these rules elsewhere.
"""

from typing import Dict, FrozenSet, List, Tuple

# =============================================================================
# Format identifiers
# =============================================================================

FORMAT_SINGLE_ELIMINATION = "single_elimination"
FORMAT_ROUND_ROBIN = "round_robin"
FORMAT_MONRAD = "monrad"
FORMAT_POOLS_KNOCKOUT = "pools_knockout"

# =============================================================================
# Participant limits per format (inclusive)
# =============================================================================

SINGLE_ELIMINATION_MIN = 2
SINGLE_ELIMINATION_MAX = 128

ROUND_ROBIN_MIN = 3
ROUND_ROBIN_MAX = 20
MIN_GROUP_SIZE = 3

MONRAD_MIN = 4
MONRAD_MAX = 32
MONRAD_SUPPORTED_SIZES: Tuple[int, ...] = (8, 16, 32)

POOLS_KNOCKOUT_MIN = 8
POOLS_KNOCKOUT_MIN_QUALIFIERS = 4
DEFAULT_POOL_SIZE = 4
DEFAULT_ADVANCE_PER_GROUP = 2

# =============================================================================
# Tiebreakers
# =============================================================================

ALLOWED_TIEBREAKERS: FrozenSet[str] = frozenset(
    {"wins", "h2h", "game_diff", "point_diff", "fewest_walkovers", "random"}
)

DEFAULT_TIEBREAKERS: List[str] = [
    "wins",
    "h2h",
    "game_diff",
    "point_diff",
    "fewest_walkovers",
    "random",
]

# =============================================================================
# Single elimination: canonical bracket positions
# =============================================================================

# Index = bracket position (0-based), value = seed placed there.
# Seeds 1 and 2 sit at opposite ends; later seeds fill successive round midpoints.
CANONICAL_BRACKET_POSITIONS: Dict[int, List[int]] = {
    4: [1, 4, 3, 2],
    8: [1, 8, 5, 4, 3, 6, 7, 2],
    16: [1, 16, 9, 8, 5, 12, 13, 4, 3, 14, 11, 6, 7, 10, 15, 2],
    32: [
        1, 32, 16, 17, 9, 24, 25, 8, 5, 28, 21, 12, 13, 20, 29, 4,
        3, 30, 19, 14, 11, 22, 27, 6, 7, 26, 23, 10, 15, 18, 31, 2,
    ],
}


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def draw_size_for(participant_count: int) -> int:
    """Smallest power of two >= participant_count (minimum 2)."""
    size = 2
    while size < participant_count:
        size *= 2
    return size


def total_rounds_for(draw_size: int) -> int:
    """log2(draw_size) for a power-of-two draw."""
    return draw_size.bit_length() - 1


# =============================================================================
# Monrad pairing tables
# =============================================================================

def _monrad_round(size: int, block: int) -> List[Tuple[int, int]]:
    """Fold every block of `block` consecutive seeds: (1,block), (2,block-1)..."""
    pairs: List[Tuple[int, int]] = []
    for start in range(1, size + 1, block):
        end = start + block - 1
        for i in range(block // 2):
            pairs.append((start + i, end - i))
    return pairs


def _monrad_table(size: int) -> Dict[int, List[Tuple[int, int]]]:
    rounds = total_rounds_for(size)
    return {round_num: _monrad_round(size, size >> (round_num - 1)) for round_num in range(1, rounds + 1)}


# Keyed by (normalized size) -> round -> seed-position pairs.
# Size 8: R1 (1,8)(2,7)(3,6)(4,5); R2 (1,4)(2,3)(5,8)(6,7); R3 (1,2)(3,4)(5,6)(7,8)
MONRAD_PAIRINGS: Dict[int, Dict[int, List[Tuple[int, int]]]] = {
    size: _monrad_table(size) for size in MONRAD_SUPPORTED_SIZES
}


# =============================================================================
# Round robin scheduling
# =============================================================================

def rr_pairings_by_round(pool_size: int) -> List[Tuple[int, int, int, int]]:
    """
    Round-robin pairings. Returns list of (round_index, sequence_in_round, idx_a, idx_b).
    idx_a, idx_b are 0-based pool positions (pool seed 1 = index 0).

    Pool size 4 uses the exact preset order (1v2 last):
    - Round 1: 1v4, 2v3  → (0,3), (1,2)
    - Round 2: 1v3, 2v4  → (0,2), (1,3)
    - Round 3: 1v2, 3v4  → (0,1), (2,3)

    Other sizes: circle method.
    """
    if pool_size == 4:
        return [
            (1, 1, 0, 3),
            (1, 2, 1, 2),
            (2, 1, 0, 2),
            (2, 2, 1, 3),
            (3, 1, 0, 1),
            (3, 2, 2, 3),
        ]

    n = pool_size
    n2 = n + 1 if n % 2 == 1 else n  # Add a sit-out slot for odd n
    half = n2 // 2
    rounds_count = n2 - 1
    sit_out_idx = n if n % 2 == 1 else -1

    result: List[Tuple[int, int, int, int]] = []
    positions = list(range(n2))

    for round_num in range(1, rounds_count + 1):
        seq = 0
        for i in range(half):
            j = n2 - 1 - i
            a, b = positions[i], positions[j]
            if a == sit_out_idx or b == sit_out_idx:
                continue
            seq += 1
            result.append((round_num, seq, min(a, b), max(a, b)))
        # Rotate: keep 0, move last to second, shift others
        positions = [positions[0]] + [positions[-1]] + positions[1:-1]

    return result
