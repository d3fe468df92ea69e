"""
Tests for the round robin format.
"""

import pytest

from squashmarker.services.formats.errors import InvalidMatchResultError
from squashmarker.services.formats.round_robin import RoundRobinFormat
from squashmarker.services.formats.schemas import GameScore
from tests.helpers import find_match, make_players, play_out, win


@pytest.fixture
def fmt():
    return RoundRobinFormat()


class TestValidation:
    def test_limits(self, fmt):
        assert fmt.validate_config({}, make_players(3)).valid
        assert fmt.validate_config({}, make_players(20)).valid
        assert not fmt.validate_config({}, make_players(2)).valid
        assert not fmt.validate_config({}, make_players(21)).valid

    def test_target_size(self, fmt):
        assert not fmt.validate_config({"groups": {"target_size": 2}}, make_players(6)).valid
        # 7 players in groups of 3 would leave a group of 2
        assert not fmt.validate_config({"groups": {"target_size": 3}}, make_players(7)).valid
        assert fmt.validate_config({"groups": {"target_size": 4}}, make_players(7)).valid

    def test_tiebreakers(self, fmt):
        result = fmt.validate_config({"tiebreakers": ["wins", "coin_toss"]}, make_players(4))
        assert result.errors == ["Unknown tiebreaker: coin_toss"]
        assert not fmt.validate_config({"tiebreakers": []}, make_players(4)).valid
        assert not fmt.validate_config({"tiebreakers": ["wins", "wins"]}, make_players(4)).valid


class TestGeneration:
    def test_single_group_of_four(self, fmt):
        gen = fmt.generate_initial_state({}, make_players(4))
        assert gen.state.group_count == 1
        assert gen.state.total_rounds == 3
        assert [m.match_number for m in gen.matches] == [f"G1M{k}" for k in range(1, 7)]
        assert all(m.status == "ready" and m.group_id == "group-a" for m in gen.matches)

        first = find_match(gen.matches, "G1M1")
        assert (first.participant_a.participant_id, first.participant_b.participant_id) == ("p1", "p4")
        last = find_match(gen.matches, "G1M5")
        assert (last.round, last.participant_a.participant_id, last.participant_b.participant_id) == (3, "p1", "p2")

        assert [g.name for g in gen.groups] == ["Group A"]
        assert len(gen.groups[0].standings) == 4

    def test_snake_groups(self, fmt):
        gen = fmt.generate_initial_state({"groups": {"target_size": 4}}, make_players(7))
        assert [g.participant_ids for g in gen.groups] == [["p1", "p4", "p5"], ["p2", "p3", "p6", "p7"]]
        assert len(gen.matches) == 9
        assert len([m for m in gen.matches if m.group_id == "group-b"]) == 6
        assert gen.state.total_rounds == 3

    def test_salt_depends_on_field(self, fmt):
        one = fmt.generate_initial_state({}, make_players(4)).state.random_salt
        again = fmt.generate_initial_state({}, make_players(4)[::-1]).state.random_salt
        other = fmt.generate_initial_state({}, make_players(5)).state.random_salt
        assert one == again
        assert one != other


class TestResults:
    def test_result_updates_standings(self, fmt):
        gen = fmt.generate_initial_state({}, make_players(4))
        games = [GameScore(player1=11, player2=7), GameScore(player1=11, player2=4), GameScore(player1=11, player2=9)]
        outcome = fmt.on_match_result(gen.state, find_match(gen.matches, "G1M1"), win("p1", games=games))

        assert [m.status for m in outcome.updated_matches] == ["completed"]
        assert outcome.updated_matches[0].result.game_scores == games
        update = outcome.standings_updates[0]
        assert update.group_id == "group-a"
        assert not update.completed
        top = update.standings[0]
        assert (top.participant_id, top.wins, top.games_won, top.points_won) == ("p1", 1, 3, 33)
        assert not outcome.tournament_complete
        assert gen.state.groups[0].ledger == []

    def test_full_group_and_final_results(self, fmt):
        gen = fmt.generate_initial_state({}, make_players(4))
        state, board = play_out(fmt, gen.state, gen.matches)
        assert fmt.is_complete(state)
        assert all(m.status == "completed" for m in board.values())

        results = fmt.get_final_results(state)
        assert [(r.position, r.participant_id) for r in results] == [(1, "p1"), (2, "p2"), (3, "p3"), (4, "p4")]
        assert results[0].group == "Group A"
        assert (results[0].wins, results[0].losses) == (3, 0)

    def test_final_results_interleave_groups(self, fmt):
        gen = fmt.generate_initial_state({"groups": {"target_size": 4}}, make_players(7))
        state, _ = play_out(fmt, gen.state, gen.matches)
        results = fmt.get_final_results(state)
        assert [r.participant_id for r in results] == ["p1", "p2", "p4", "p3", "p5", "p6", "p7"]
        assert [r.group_position for r in results] == [1, 1, 2, 2, 3, 3, 4]

    def test_standings_view(self, fmt):
        gen = fmt.generate_initial_state({"groups": {"target_size": 4}}, make_players(7))
        view = fmt.get_standings(gen.state)
        assert view.type == "groups"
        assert [g.id for g in view.groups] == ["group-a", "group-b"]

    def test_walkover_recorded(self, fmt):
        gen = fmt.generate_initial_state({}, make_players(4))
        outcome = fmt.on_match_result(gen.state, find_match(gen.matches, "G1M1"), win("p4", walkover=True))
        assert outcome.updated_matches[0].status == "walkover"
        rows = {s.participant_id: s for s in outcome.standings_updates[0].standings}
        assert rows["p1"].walkovers_given == 1
        assert rows["p4"].walkovers_received == 1

    def test_invalid_results(self, fmt):
        gen = fmt.generate_initial_state({}, make_players(4))
        match = find_match(gen.matches, "G1M1")
        with pytest.raises(InvalidMatchResultError):
            fmt.on_match_result(gen.state, match, win("p2"))

        state = fmt.on_match_result(gen.state, match, win("p1")).state
        with pytest.raises(InvalidMatchResultError):
            fmt.on_match_result(state, match, win("p1"))

        stray = match.model_copy(update={"match_number": "G9M1"})
        with pytest.raises(InvalidMatchResultError):
            fmt.on_match_result(gen.state, stray, win("p1"))

        wrong_group = match.model_copy(update={"group_id": "group-b"})
        with pytest.raises(InvalidMatchResultError):
            fmt.on_match_result(gen.state, wrong_group, win("p1"))
