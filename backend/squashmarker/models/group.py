from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON, UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from squashmarker.models.tournament import Tournament


class TournamentGroup(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "group_key", name="uq_group_tournament_key"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    group_key: str  # engine group id, e.g. "group-a"
    name: str
    participant_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    standings: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    completed: bool = Field(default=False)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    tournament: "Tournament" = Relationship(back_populates="groups")
