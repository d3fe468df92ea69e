from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON, Text
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from squashmarker.models.participant import TournamentParticipant
    from squashmarker.models.match import Match
    from squashmarker.models.group import TournamentGroup


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    format: str  # single_elimination | round_robin | monrad | pools_knockout
    status: str = Field(default="draft")  # draft | active | completed | cancelled
    config: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    venue: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    # Engine state (opaque JSON text) and its optimistic-concurrency version
    state_blob: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    state_version: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    participants: List["TournamentParticipant"] = Relationship(
        back_populates="tournament", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    matches: List["Match"] = Relationship(
        back_populates="tournament", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    groups: List["TournamentGroup"] = Relationship(
        back_populates="tournament", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
