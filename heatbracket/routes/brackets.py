"""
Bracket endpoints: build, read, start/complete heats, finals ranking,
DQ/DNS corrections, standings and reset.

Every mutating endpoint is one engine step: the stored bracket is loaded,
transformed and saved in a single commit, or left untouched on error.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session

from heatbracket.database import get_session
from heatbracket.services import bracket_service
from heatbracket.services.bracket_model import Bracket, FinalRankings, Heat, Lane, RemovalReason
from heatbracket.services.errors import (
    BracketError,
    BracketExistsError,
    HeatStateError,
    NotFoundError,
    OverCapacityError,
)

router = APIRouter()


class HeatResultRequest(BaseModel):
    round: int
    lane: Lane
    winners: List[int]
    losers: List[int] = []
    disqualified: List[int] = []
    no_shows: List[int] = []

    @field_validator("round")
    @classmethod
    def validate_round(cls, v):
        if v < 1:
            raise ValueError("round must be >= 1")
        return v


class FinalRankingsRequest(BaseModel):
    first: int
    second: Optional[int] = None
    third: Optional[int] = None
    fourth: Optional[int] = None


class DisqualifyRequest(BaseModel):
    racer_id: int
    reason: RemovalReason = RemovalReason.disqualified


class HeatRacer(BaseModel):
    id: int
    name: Optional[str] = None
    bib_number: Optional[str] = None
    starting_position: Optional[int] = None


class HeatResponse(BaseModel):
    number: int
    lane: Lane
    round_number: int
    status: str
    racers: List[HeatRacer]
    winners: List[int]
    losers: List[int]
    disqualified: List[int]
    no_shows: List[int]
    next_winners_heat: Optional[int] = None
    next_losers_heat: Optional[int] = None
    final_rankings: Optional[Dict[str, Optional[int]]] = None


class RoundResponse(BaseModel):
    round_number: int
    lane: Lane
    heats: List[HeatResponse]


class BracketResponse(BaseModel):
    event_id: int
    race_class: str
    complete: bool
    rounds: List[RoundResponse]


class StandingEntry(BaseModel):
    place: int
    position: str
    racer: HeatRacer


def _raise_http(e: BracketError) -> None:
    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (BracketExistsError, HeatStateError, OverCapacityError)):
        raise HTTPException(status_code=409, detail=str(e))
    raise HTTPException(status_code=422, detail=str(e))


def _roster(session: Session, event_id: int, race_class: str) -> Dict[int, Any]:
    return {r.id: r for r in bracket_service.list_class_racers(session, event_id, race_class)}


def _hydrate(racer_id: int, roster: Dict[int, Any]) -> HeatRacer:
    racer = roster.get(racer_id)
    if racer is None:
        return HeatRacer(id=racer_id)
    return HeatRacer(
        id=racer.id,
        name=racer.name,
        bib_number=racer.bib_number,
        starting_position=racer.starting_position,
    )


def _heat_to_response(heat: Heat, roster: Dict[int, Any]) -> HeatResponse:
    return HeatResponse(
        number=heat.number,
        lane=heat.lane,
        round_number=heat.round_number,
        status=heat.status.value,
        racers=[_hydrate(r, roster) for r in heat.racers],
        winners=heat.winners,
        losers=heat.losers,
        disqualified=heat.disqualified,
        no_shows=heat.no_shows,
        next_winners_heat=heat.next_winners_heat,
        next_losers_heat=heat.next_losers_heat,
        final_rankings=vars(heat.final_rankings) if heat.final_rankings else None,
    )


def _bracket_to_response(session: Session, bracket: Bracket) -> BracketResponse:
    roster = _roster(session, bracket.event_id, bracket.race_class)
    return BracketResponse(
        event_id=bracket.event_id,
        race_class=bracket.race_class,
        complete=bracket.is_complete(),
        rounds=[
            RoundResponse(
                round_number=rnd.round_number,
                lane=rnd.lane,
                heats=[_heat_to_response(h, roster) for h in rnd.heats],
            )
            for rnd in bracket.rounds
        ],
    )


@router.get("/events/{event_id}/brackets", response_model=List[Dict[str, Any]])
def get_event_brackets(event_id: int, session: Session = Depends(get_session)):
    """Summaries of every bracket built for an event"""
    return bracket_service.list_event_brackets(session, event_id)


@router.post(
    "/events/{event_id}/classes/{race_class}/bracket",
    response_model=BracketResponse,
    status_code=201,
)
def build_bracket(
    event_id: int,
    race_class: str,
    replace: bool = False,
    session: Session = Depends(get_session),
):
    """Seed the class and build its bracket. Pass replace=true to rebuild an existing one."""
    try:
        bracket = bracket_service.create_class_bracket(session, event_id, race_class, replace=replace)
    except BracketError as e:
        _raise_http(e)
    return _bracket_to_response(session, bracket)


@router.get("/events/{event_id}/classes/{race_class}/bracket", response_model=BracketResponse)
def get_bracket(event_id: int, race_class: str, session: Session = Depends(get_session)):
    try:
        bracket = bracket_service.get_class_bracket(session, event_id, race_class)
    except BracketError as e:
        _raise_http(e)
    return _bracket_to_response(session, bracket)


@router.post(
    "/events/{event_id}/classes/{race_class}/bracket/heats/{heat_number}/start",
    response_model=BracketResponse,
)
def start_heat(event_id: int, race_class: str, heat_number: int, session: Session = Depends(get_session)):
    """pending -> in_progress"""
    try:
        bracket = bracket_service.begin_heat(session, event_id, race_class, heat_number)
    except BracketError as e:
        _raise_http(e)
    return _bracket_to_response(session, bracket)


@router.post(
    "/events/{event_id}/classes/{race_class}/bracket/heats/{heat_number}/result",
    response_model=BracketResponse,
)
def record_heat_result(
    event_id: int,
    race_class: str,
    heat_number: int,
    payload: HeatResultRequest,
    session: Session = Depends(get_session),
):
    """Complete a heat and route its winners and losers downstream"""
    try:
        bracket = bracket_service.complete_heat(
            session,
            event_id,
            race_class,
            heat_number,
            lane=payload.lane,
            round_number=payload.round,
            winners=payload.winners,
            losers=payload.losers,
            disqualified=payload.disqualified,
            no_shows=payload.no_shows,
        )
    except BracketError as e:
        _raise_http(e)
    return _bracket_to_response(session, bracket)


@router.post("/events/{event_id}/classes/{race_class}/bracket/finals", response_model=BracketResponse)
def record_finals(
    event_id: int,
    race_class: str,
    payload: FinalRankingsRequest,
    session: Session = Depends(get_session),
):
    """Resolve the finals heat from a first..fourth ranking"""
    try:
        bracket = bracket_service.rank_finals(
            session, event_id, race_class, FinalRankings(**payload.model_dump())
        )
    except BracketError as e:
        _raise_http(e)
    return _bracket_to_response(session, bracket)


@router.post(
    "/events/{event_id}/classes/{race_class}/bracket/heats/{heat_number}/disqualify",
    response_model=BracketResponse,
)
def disqualify(
    event_id: int,
    race_class: str,
    heat_number: int,
    payload: DisqualifyRequest,
    session: Session = Depends(get_session),
):
    """Flag a racer DQ or DNS; completed heats strike the racer from results downstream"""
    try:
        bracket = bracket_service.remove_racer(
            session, event_id, race_class, heat_number, payload.racer_id, payload.reason
        )
    except BracketError as e:
        _raise_http(e)
    return _bracket_to_response(session, bracket)


@router.get(
    "/events/{event_id}/classes/{race_class}/bracket/standings",
    response_model=List[StandingEntry],
)
def get_standings(event_id: int, race_class: str, session: Session = Depends(get_session)):
    """Class podium from the finals ranking; empty until the finals are ranked"""
    try:
        bracket = bracket_service.get_class_bracket(session, event_id, race_class)
    except BracketError as e:
        _raise_http(e)
    roster = _roster(session, event_id, race_class)
    return [
        StandingEntry(place=s["place"], position=s["position"], racer=_hydrate(s["racer_id"], roster))
        for s in bracket_service.class_standings(bracket)
    ]


@router.delete("/brackets")
def reset_brackets(session: Session = Depends(get_session)) -> Dict[str, int]:
    """Clear bracket state for every (event, class)"""
    return {"removed": bracket_service.reset_brackets(session)}
