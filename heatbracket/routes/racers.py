"""
Roster intake: register racers for an event class and seed them by time.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session, select

from heatbracket.database import get_session
from heatbracket.models.racer import Racer
from heatbracket.services.bracket_service import list_class_racers, seed_class
from heatbracket.services.errors import NotFoundError

router = APIRouter()


class RacerCreate(BaseModel):
    name: str
    bib_number: str
    seed_time: Optional[float] = None

    @field_validator("name", "bib_number")
    @classmethod
    def validate_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError("name and bib_number cannot be empty")
        return v.strip()

    @field_validator("seed_time")
    @classmethod
    def validate_seed_time(cls, v):
        if v is not None and v <= 0:
            raise ValueError("seed_time must be > 0")
        return v


class RacerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    race_class: str
    name: str
    bib_number: str
    seed_time: Optional[float] = None
    starting_position: Optional[int] = None


@router.get("/events/{event_id}/classes/{race_class}/racers", response_model=List[RacerResponse])
def get_class_racers(event_id: int, race_class: str, session: Session = Depends(get_session)):
    """List racers of a class in registration order"""
    return list_class_racers(session, event_id, race_class)


@router.post(
    "/events/{event_id}/classes/{race_class}/racers",
    response_model=List[RacerResponse],
    status_code=201,
)
def register_racers(
    event_id: int,
    race_class: str,
    racers: List[RacerCreate],
    session: Session = Depends(get_session),
):
    """Register racers for a class. Bib numbers must be unique within the event."""
    if not racers:
        raise HTTPException(status_code=422, detail="At least one racer is required")

    bibs = [r.bib_number for r in racers]
    duplicates = sorted({b for b in bibs if bibs.count(b) > 1})
    if duplicates:
        raise HTTPException(status_code=422, detail=f"Duplicate bib numbers in request: {duplicates}")

    existing = session.exec(
        select(Racer).where(Racer.event_id == event_id, Racer.bib_number.in_(bibs))
    ).all()
    if existing:
        taken = ", ".join(f"{r.bib_number} ({r.name})" for r in existing)
        raise HTTPException(status_code=409, detail=f"Bib numbers already registered: {taken}")

    created = [Racer(event_id=event_id, race_class=race_class, **r.model_dump()) for r in racers]
    for racer in created:
        session.add(racer)
    session.commit()
    for racer in created:
        session.refresh(racer)
    return created


@router.post("/events/{event_id}/classes/{race_class}/seeding", response_model=List[RacerResponse])
def seed_class_racers(event_id: int, race_class: str, session: Session = Depends(get_session)):
    """Compute starting positions from seed times; returns racers in starting order"""
    try:
        return seed_class(session, event_id, race_class)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
