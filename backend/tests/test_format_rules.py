"""
Tests for format rules: draw sizes, Monrad pairing tables, round robin schedules.
"""

import pytest

from squashmarker.services.format_rules import (
    MONRAD_PAIRINGS,
    draw_size_for,
    is_power_of_two,
    rr_pairings_by_round,
    total_rounds_for,
)


@pytest.mark.parametrize("n,expected", [(2, 2), (3, 4), (5, 8), (8, 8), (9, 16), (33, 64), (128, 128)])
def test_draw_size_is_next_power_of_two(n, expected):
    assert draw_size_for(n) == expected
    assert is_power_of_two(draw_size_for(n))


def test_total_rounds():
    assert total_rounds_for(2) == 1
    assert total_rounds_for(8) == 3
    assert total_rounds_for(128) == 7


class TestMonradTables:
    def test_size_8(self):
        assert MONRAD_PAIRINGS[8][1] == [(1, 8), (2, 7), (3, 6), (4, 5)]
        assert MONRAD_PAIRINGS[8][2] == [(1, 4), (2, 3), (5, 8), (6, 7)]
        assert MONRAD_PAIRINGS[8][3] == [(1, 2), (3, 4), (5, 6), (7, 8)]

    def test_size_16_round_2(self):
        assert MONRAD_PAIRINGS[16][2] == [
            (1, 8), (2, 7), (3, 6), (4, 5), (9, 16), (10, 15), (11, 14), (12, 13),
        ]

    def test_every_round_is_a_perfect_matching(self):
        for size, table in MONRAD_PAIRINGS.items():
            assert sorted(table) == list(range(1, total_rounds_for(size) + 1))
            for pairs in table.values():
                seeds = sorted(s for pair in pairs for s in pair)
                assert seeds == list(range(1, size + 1))


class TestRoundRobinSchedule:
    def test_pool_of_four_preset(self):
        pairs = [(r, a, b) for r, _, a, b in rr_pairings_by_round(4)]
        assert pairs == [(1, 0, 3), (1, 1, 2), (2, 0, 2), (2, 1, 3), (3, 0, 1), (3, 2, 3)]

    @pytest.mark.parametrize("n", range(2, 21))
    def test_every_pair_exactly_once(self, n):
        pairings = rr_pairings_by_round(n)
        pairs = [(a, b) for _, _, a, b in pairings]
        assert len(pairs) == n * (n - 1) // 2
        assert len(set(pairs)) == len(pairs)
        assert all(a < b for a, b in pairs)

    @pytest.mark.parametrize("n", [3, 5, 6, 7])
    def test_nobody_plays_twice_in_a_round(self, n):
        by_round = {}
        for round_num, _, a, b in rr_pairings_by_round(n):
            seen = by_round.setdefault(round_num, set())
            assert a not in seen and b not in seen
            seen.update((a, b))
        assert len(by_round) == (n if n % 2 else n - 1)
