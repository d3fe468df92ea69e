"""Exceptions raised by the tournament format engine."""

from typing import List, Optional


class TournamentEngineError(Exception):
    """Base exception for tournament engine errors"""
    pass


class UnknownFormatError(TournamentEngineError):
    """Format id is not registered"""

    def __init__(self, format_id: str):
        self.format_id = format_id
        super().__init__(f"Unknown tournament format: {format_id}")


class TournamentValidationError(TournamentEngineError):
    """Configuration/participants rejected by validate_config"""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Tournament validation failed: {', '.join(self.errors)}")


class StateSerializationError(TournamentEngineError):
    """A state blob could not be serialized or deserialized"""
    pass


class UnsupportedTournamentSizeError(TournamentEngineError):
    """No pairing structure exists for the requested size/round"""

    def __init__(self, size: int, round_number: Optional[int] = None):
        self.size = size
        self.round_number = round_number
        where = f"{size} participants" if round_number is None else f"{size} participants, round {round_number}"
        super().__init__(f"Monrad pairing structure not defined for {where}")


class InvalidMatchResultError(TournamentEngineError):
    """Result cannot be applied to the given match"""
    pass
