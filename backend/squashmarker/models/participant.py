from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from squashmarker.models.tournament import Tournament


class TournamentParticipant(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    name: str
    seed: Optional[int] = Field(default=None)
    club: Optional[str] = Field(default=None)
    external_ranking: Optional[str] = Field(default=None)
    withdrawn: bool = Field(default=False)
    withdrawal_reason: Optional[str] = Field(default=None)
    group_key: Optional[str] = Field(default=None)  # engine group id, e.g. "pool-a"
    created_at: datetime = Field(default_factory=datetime.utcnow)

    tournament: "Tournament" = Relationship(back_populates="participants")
