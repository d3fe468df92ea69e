"""Shared builders for engine tests."""

from squashmarker.services.formats.schemas import MatchResult, Participant


def make_players(n: int, seeded: bool = True, clubs=None) -> list:
    """Players p1..pn; seed k for player k when seeded."""
    clubs = clubs or {}
    return [
        Participant(
            id=f"p{k}",
            name=f"Player {k:02d}",
            seed=k if seeded else None,
            club=clubs.get(k),
        )
        for k in range(1, n + 1)
    ]


def find_match(matches, match_number: str):
    for m in matches:
        if m.match_number == match_number:
            return m
    raise AssertionError(f"{match_number} not in {[m.match_number for m in matches]}")


def win(winner_id: str, games=None, walkover: bool = False) -> MatchResult:
    """Result where winner_id wins; names are filled from the draw by the engine."""
    return MatchResult(
        winner_id=winner_id,
        winner_name=winner_id,
        game_scores=games or [],
        walkover=walkover,
    )


def favourite(match):
    """The side with the better seed (p1 beats p2)."""
    a, b = match.participant_a, match.participant_b
    return a if int(a.participant_id[1:]) < int(b.participant_id[1:]) else b


def play_out(fmt, state, matches, pick=favourite):
    """
    Play every match that becomes playable until none are left.

    Returns the final state and a match_number -> match board kept current
    from updated_matches and new_matches.
    """
    board = {m.match_number: m for m in matches}
    while True:
        playable = fmt.get_next_playable_matches(state, list(board.values()))
        if not playable:
            return state, board
        match = playable[0]
        outcome = fmt.on_match_result(state, match, win(pick(match).participant_id))
        state = outcome.state
        for m in outcome.updated_matches + outcome.new_matches:
            board[m.match_number] = m
