from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class Racer(SQLModel, table=True):
    __table_args__ = (
        # Bib numbers identify a racer at the start gate; unique per event
        SAUniqueConstraint("event_id", "bib_number", name="uq_event_bib"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: int = Field(index=True)
    race_class: str = Field(index=True)
    name: str
    bib_number: str
    seed_time: Optional[float] = Field(default=None)  # seconds; lower is faster
    starting_position: Optional[int] = Field(default=None)  # 1-based rank by seed time
    created_at: datetime = Field(default_factory=datetime.utcnow)
