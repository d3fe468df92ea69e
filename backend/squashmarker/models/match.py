from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON, UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from squashmarker.models.tournament import Tournament


class Match(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "match_number", name="uq_match_tournament_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    match_number: str  # R1M1, CR1M1, KR1M1, G1M1, P1M1
    round: int
    stage: str  # "group" | "main" | "consolation"
    group_key: Optional[str] = Field(default=None)

    # Slot refs as produced by the engine: {"type": "participant" | "bye" | "qualifier" | "seed_position", ...}
    participant_a: Dict[str, Any] = Field(sa_column=Column(JSON))
    participant_b: Dict[str, Any] = Field(sa_column=Column(JSON))

    status: str = Field(default="pending")  # pending | ready | live | completed | walkover | cancelled
    result: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    dependency_matches: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    feeds_to_matches: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    tournament: "Tournament" = Relationship(back_populates="matches")
