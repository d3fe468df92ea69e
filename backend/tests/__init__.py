# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from squashmarker.models.group import TournamentGroup  # noqa: F401
from squashmarker.models.match import Match  # noqa: F401
from squashmarker.models.participant import TournamentParticipant  # noqa: F401
from squashmarker.models.tournament import Tournament  # noqa: F401
