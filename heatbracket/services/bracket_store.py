"""
Bracket State Store: one stored bracket document per (event, class).

Reads and writes go through the caller's session; save() stages changes and
the caller commits, so a whole load -> transform -> save cycle lands in one
transaction.
"""

from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select

from heatbracket.models.bracket_state import BracketState
from heatbracket.services.bracket_model import Bracket


class BracketStore:
    def __init__(self, session: Session) -> None:
        self._session = session

    def _row(self, event_id: int, race_class: str) -> Optional[BracketState]:
        return self._session.exec(
            select(BracketState).where(
                BracketState.event_id == event_id,
                BracketState.race_class == race_class,
            )
        ).first()

    def load(self, event_id: int, race_class: str) -> Optional[Bracket]:
        row = self._row(event_id, race_class)
        if row is None:
            return None
        return Bracket.from_dict(row.bracket_json)

    def save(self, bracket: Bracket) -> None:
        row = self._row(bracket.event_id, bracket.race_class)
        if row is None:
            row = BracketState(
                event_id=bracket.event_id,
                race_class=bracket.race_class,
                bracket_json=bracket.to_dict(),
            )
        else:
            # Assign a fresh dict so the JSON column is flagged dirty
            row.bracket_json = bracket.to_dict()
            row.updated_at = datetime.utcnow()
        self._session.add(row)
        self._session.flush()

    def delete(self, event_id: int, race_class: str) -> bool:
        row = self._row(event_id, race_class)
        if row is None:
            return False
        self._session.delete(row)
        self._session.flush()
        return True

    def list_keys(self, event_id: Optional[int] = None) -> List[tuple]:
        stmt = select(BracketState.event_id, BracketState.race_class)
        if event_id is not None:
            stmt = stmt.where(BracketState.event_id == event_id)
        return [tuple(r) for r in self._session.exec(stmt.order_by(BracketState.event_id, BracketState.race_class)).all()]

    def reset(self) -> int:
        """Drop every stored bracket. Returns the number removed."""
        rows = self._session.exec(select(BracketState)).all()
        for row in rows:
            self._session.delete(row)
        self._session.flush()
        return len(rows)
