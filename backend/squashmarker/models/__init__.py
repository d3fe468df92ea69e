from squashmarker.models.group import TournamentGroup
from squashmarker.models.match import Match
from squashmarker.models.participant import TournamentParticipant
from squashmarker.models.tournament import Tournament

__all__ = [
    "Tournament",
    "TournamentParticipant",
    "Match",
    "TournamentGroup",
]
