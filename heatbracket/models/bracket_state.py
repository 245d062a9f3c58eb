from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel


class BracketState(SQLModel, table=True):
    """Stored bracket document for one (event, class) pair."""

    __table_args__ = (SAUniqueConstraint("event_id", "race_class", name="uq_bracket_event_class"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: int = Field(index=True)
    race_class: str
    bracket_json: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})
