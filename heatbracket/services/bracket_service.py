"""
Bracket Service: load -> engine step -> save for one (event, class).

Each public function runs one engine transformation against the stored
bracket and commits once. Engine errors propagate before anything is
saved, so a failed step leaves the stored bracket as it was.
"""

import logging
from typing import Callable, Dict, List, Optional

from sqlmodel import Session, select

from heatbracket.models.racer import Racer
from heatbracket.services.bracket_builder import build_bracket
from heatbracket.services.bracket_model import (
    PLACES,
    Bracket,
    FinalRankings,
    Lane,
    RemovalReason,
    WinnerLoserOutcome,
)
from heatbracket.services.bracket_store import BracketStore
from heatbracket.services.errors import BracketExistsError, MissingSeedTimesError, NotFoundError
from heatbracket.services.heat_sizer import SeededRacer, assign_starting_positions
from heatbracket.services.progression_router import (
    disqualify_racer,
    record_final_rankings,
    record_heat_result,
    start_heat,
)

logger = logging.getLogger(__name__)


def list_class_racers(session: Session, event_id: int, race_class: str) -> List[Racer]:
    return list(
        session.exec(
            select(Racer)
            .where(Racer.event_id == event_id, Racer.race_class == race_class)
            .order_by(Racer.id)
        ).all()
    )


def _assign_positions(session: Session, event_id: int, race_class: str) -> List[Racer]:
    racers = list_class_racers(session, event_id, race_class)
    if not racers:
        raise NotFoundError(f"No racers registered for event {event_id} class {race_class!r}")

    by_id = {r.id: r for r in racers}
    seeded = assign_starting_positions(
        [SeededRacer(racer_id=r.id, seed_time=r.seed_time) for r in racers]
    )
    ordered = []
    for entry in seeded:
        racer = by_id[entry.racer_id]
        racer.starting_position = entry.starting_position
        session.add(racer)
        ordered.append(racer)
    session.flush()
    return ordered


def seed_class(session: Session, event_id: int, race_class: str) -> List[Racer]:
    """
    Compute starting positions for a class from saved seed times.

    Returns racers in starting order (unseeded racers last).
    """
    ordered = _assign_positions(session, event_id, race_class)
    session.commit()
    for racer in ordered:
        session.refresh(racer)
    return ordered


def create_class_bracket(session: Session, event_id: int, race_class: str, replace: bool = False) -> Bracket:
    """
    Seed the class and build its bracket.

    Refuses to build when no seed times were saved, and refuses to overwrite
    an existing bracket unless `replace` is set.
    """
    store = BracketStore(session)
    if store.load(event_id, race_class) is not None and not replace:
        raise BracketExistsError(f"A bracket already exists for event {event_id} class {race_class!r}")

    racers = list_class_racers(session, event_id, race_class)
    if not racers:
        raise NotFoundError(f"No racers registered for event {event_id} class {race_class!r}")
    if all(r.seed_time is None for r in racers):
        raise MissingSeedTimesError("No seed times saved; record seed times before building the bracket")

    ordered = _assign_positions(session, event_id, race_class)
    bracket = build_bracket(
        [SeededRacer(racer_id=r.id, seed_time=r.seed_time, starting_position=r.starting_position) for r in ordered],
        event_id,
        race_class,
    )
    store.save(bracket)
    session.commit()
    return bracket


def get_class_bracket(session: Session, event_id: int, race_class: str) -> Bracket:
    bracket = BracketStore(session).load(event_id, race_class)
    if bracket is None:
        raise NotFoundError(f"No bracket for event {event_id} class {race_class!r}")
    return bracket


def list_event_brackets(session: Session, event_id: int) -> List[Dict]:
    store = BracketStore(session)
    summaries = []
    for _event_id, race_class in store.list_keys(event_id):
        bracket = store.load(event_id, race_class)
        summaries.append(
            {
                "race_class": race_class,
                "heat_count": len(list(bracket.iter_heats())),
                "finals_heat": bracket.finals.number,
                "complete": bracket.is_complete(),
            }
        )
    return summaries


def _apply(session: Session, event_id: int, race_class: str, step: Callable[[Bracket], Bracket]) -> Bracket:
    store = BracketStore(session)
    bracket = get_class_bracket(session, event_id, race_class)
    updated = step(bracket)
    store.save(updated)
    session.commit()
    return updated


def complete_heat(
    session: Session,
    event_id: int,
    race_class: str,
    heat_number: int,
    *,
    lane: Lane,
    round_number: int,
    winners: List[int],
    losers: List[int],
    disqualified: Optional[List[int]] = None,
    no_shows: Optional[List[int]] = None,
) -> Bracket:
    outcome = WinnerLoserOutcome(
        winners=list(winners),
        losers=list(losers),
        disqualified=list(disqualified or []),
        no_shows=list(no_shows or []),
    )
    return _apply(
        session,
        event_id,
        race_class,
        lambda b: record_heat_result(b, heat_number, outcome, lane=lane, round_number=round_number),
    )


def rank_finals(session: Session, event_id: int, race_class: str, rankings: FinalRankings) -> Bracket:
    return _apply(session, event_id, race_class, lambda b: record_final_rankings(b, rankings))


def begin_heat(session: Session, event_id: int, race_class: str, heat_number: int) -> Bracket:
    return _apply(session, event_id, race_class, lambda b: start_heat(b, heat_number))


def remove_racer(
    session: Session,
    event_id: int,
    race_class: str,
    heat_number: int,
    racer_id: int,
    reason: RemovalReason = RemovalReason.disqualified,
) -> Bracket:
    return _apply(session, event_id, race_class, lambda b: disqualify_racer(b, heat_number, racer_id, reason))


def reset_brackets(session: Session) -> int:
    removed = BracketStore(session).reset()
    session.commit()
    logger.info("Reset bracket state: %d brackets removed", removed)
    return removed


def class_standings(bracket: Bracket) -> List[Dict]:
    """Podium from the finals ranking: [{"place": 1, "position": "first", "racer_id": ...}, ...]."""
    rankings = bracket.finals.final_rankings
    if rankings is None:
        return []
    standings = []
    for place, position in enumerate(PLACES, start=1):
        racer_id = getattr(rankings, position)
        if racer_id is not None:
            standings.append({"place": place, "position": position, "racer_id": racer_id})
    return standings
