"""
Progression Router - record heat results and move racers downstream.

Routing is pointer-driven: winners go to the heat's next_winners_heat and
losers to its next_losers_heat (set only on winners round-1 heats, so
semifinal losers are eliminated). The finals heat is resolved by a ranking
instead of a winners/losers split.

Every operation works on a copy of the bracket and returns it; if any check
fails the caller's bracket is left untouched.
"""

from __future__ import annotations

import copy
import logging
from typing import Iterable, List, Optional, Set

from heatbracket.services.bracket_model import (
    Bracket,
    FinalRankingOutcome,
    FinalRankings,
    Heat,
    HeatOutcome,
    HeatStatus,
    Lane,
    RemovalReason,
    WinnerLoserOutcome,
)
from heatbracket.services.errors import HeatStateError, InvalidResultError, NotFoundError
from heatbracket.services.restructurer import restructure

logger = logging.getLogger(__name__)


def _dedupe(ids: Iterable[int]) -> List[int]:
    seen: Set[int] = set()
    out: List[int] = []
    for racer_id in ids:
        if racer_id not in seen:
            seen.add(racer_id)
            out.append(racer_id)
    return out


def _locate_heat(bracket: Bracket, heat_number: int, lane: Optional[Lane], round_number: Optional[int]) -> Heat:
    heat = bracket.find_heat(heat_number)
    if lane is not None and heat.lane != lane:
        raise NotFoundError(f"Heat {heat_number} is not in the {lane.value} lane")
    if round_number is not None and heat.round_number != round_number:
        raise NotFoundError(f"Heat {heat_number} is not in round {round_number}")
    return heat


def route_racers(bracket: Bracket, target_number: int, racer_ids: List[int]) -> int:
    """
    Append racers to the target heat's round, skipping racers already there.

    Racers land in the target heat while it is pending; once it has started
    they go to the emptiest pending sibling of the same round. Returns the
    number of racers added.
    """
    target = bracket.find_heat(target_number)
    rnd = bracket.round_of(target)
    present = {racer_id for heat in rnd.heats for racer_id in heat.racers}
    incoming = [r for r in racer_ids if r not in present]
    if not incoming:
        return 0

    if target.status != HeatStatus.pending:
        open_siblings = [h for h in rnd.heats if h.status == HeatStatus.pending]
        if not open_siblings:
            raise HeatStateError(
                f"Cannot route racers {incoming} into heat {target.number}: it is already {target.status.value}"
            )
        target = min(open_siblings, key=lambda h: len(h.racers))

    target.racers.extend(incoming)
    logger.debug("Routed racers %s into heat %d", incoming, target.number)
    return len(incoming)


def _validate_split(heat: Heat, outcome: WinnerLoserOutcome) -> None:
    in_heat = set(heat.racers)
    named = outcome.winners + outcome.losers + outcome.disqualified + outcome.no_shows
    strangers = sorted({r for r in named if r not in in_heat})
    if strangers:
        raise InvalidResultError(f"Racers {strangers} are not in heat {heat.number}")
    overlap = sorted(set(outcome.winners) & set(outcome.losers))
    if overlap:
        raise InvalidResultError(f"Racers {overlap} cannot both win and lose heat {heat.number}")


def _same_result(heat: Heat, winners: List[int], losers: List[int]) -> bool:
    return heat.winners == winners and heat.losers == losers


def _complete_with_split(bracket: Bracket, heat: Heat, outcome: WinnerLoserOutcome) -> None:
    if heat.lane == Lane.final:
        raise InvalidResultError("The finals heat is resolved by a ranking, not winners and losers")
    _validate_split(heat, outcome)

    disqualified = _dedupe(heat.disqualified + outcome.disqualified)
    no_shows = _dedupe(heat.no_shows + outcome.no_shows)
    removed = set(disqualified) | set(no_shows)
    winners = [r for r in _dedupe(outcome.winners) if r not in removed]
    losers = [r for r in _dedupe(outcome.losers) if r not in removed]

    if heat.status == HeatStatus.completed:
        if not _same_result(heat, winners, losers):
            raise HeatStateError(f"Heat {heat.number} is already completed with a different result")
        logger.info("Heat %d re-submitted with its recorded result; re-routing", heat.number)
    else:
        heat.winners = winners
        heat.losers = losers
        heat.disqualified = disqualified
        heat.no_shows = no_shows
        heat.status = HeatStatus.completed

    if heat.next_winners_heat is not None:
        route_racers(bracket, heat.next_winners_heat, winners)
    if heat.next_losers_heat is not None:
        route_racers(bracket, heat.next_losers_heat, losers)

    logger.info(
        "Completed heat %d (%s round %d): winners=%s losers=%s removed=%s",
        heat.number,
        heat.lane.value,
        heat.round_number,
        winners,
        losers,
        sorted(removed),
    )


def _complete_with_ranking(heat: Heat, outcome: FinalRankingOutcome) -> None:
    if heat.lane != Lane.final:
        raise InvalidResultError(f"Heat {heat.number} is not the finals heat; rankings apply to finals only")
    placements = outcome.rankings.placements()
    if len(set(placements)) != len(placements):
        raise InvalidResultError("A racer can hold only one finals placement")
    contenders = [r for r in heat.racers if r not in heat.removed]
    strangers = sorted(r for r in placements if r not in contenders)
    if strangers:
        raise InvalidResultError(f"Racers {strangers} are not eligible in the finals heat")
    required = min(len(contenders), 4)
    if required == 0:
        raise InvalidResultError("The finals heat has no racers to rank")
    if len(placements) != required:
        raise InvalidResultError(f"Finals ranking needs {required} placements, got {len(placements)}")

    ranked = FinalRankings(*placements)
    if heat.status == HeatStatus.completed:
        if heat.final_rankings != ranked:
            raise HeatStateError("Finals are already ranked; use a disqualification to correct them")
        return

    heat.final_rankings = ranked
    heat.winners = placements[:2]
    heat.losers = placements[2:]
    heat.status = HeatStatus.completed
    logger.info("Finals heat %d ranked: %s", heat.number, placements)


def record_heat_result(
    bracket: Bracket,
    heat_number: int,
    outcome: HeatOutcome,
    *,
    lane: Optional[Lane] = None,
    round_number: Optional[int] = None,
) -> Bracket:
    """
    Mark a heat completed and apply its routing in one step.

    `lane`/`round_number`, when given, must match the heat. The result is
    restructured before it is returned.
    """
    result = copy.deepcopy(bracket)
    heat = _locate_heat(result, heat_number, lane, round_number)

    if isinstance(outcome, FinalRankingOutcome):
        _complete_with_ranking(heat, outcome)
    else:
        _complete_with_split(result, heat, outcome)

    return restructure(result)


def record_final_rankings(bracket: Bracket, rankings: FinalRankings) -> Bracket:
    """Resolve the finals heat from a first..fourth ranking."""
    return record_heat_result(bracket, bracket.finals.number, FinalRankingOutcome(rankings=rankings))


def start_heat(bracket: Bracket, heat_number: int) -> Bracket:
    result = copy.deepcopy(bracket)
    heat = result.find_heat(heat_number)
    if heat.status == HeatStatus.completed:
        raise HeatStateError(f"Heat {heat_number} is completed and cannot be restarted")
    if not heat.racers:
        raise HeatStateError(f"Heat {heat_number} has no racers yet")
    heat.status = HeatStatus.in_progress
    return result


def _strip_from_results(heat: Heat, racer_id: int) -> None:
    heat.winners = [r for r in heat.winners if r != racer_id]
    heat.losers = [r for r in heat.losers if r != racer_id]
    if heat.final_rankings is not None:
        heat.final_rankings = heat.final_rankings.without(racer_id)


def _flag(heat: Heat, racer_id: int, reason: RemovalReason) -> None:
    flagged = heat.disqualified if reason == RemovalReason.disqualified else heat.no_shows
    if racer_id not in flagged:
        flagged.append(racer_id)


def disqualify_racer(
    bracket: Bracket,
    heat_number: int,
    racer_id: int,
    reason: RemovalReason = RemovalReason.disqualified,
) -> Bracket:
    """
    Flag a racer DQ or DNS in a heat.

    Before completion the flag only keeps the racer out of the heat's
    routing. After completion the racer is also struck from the heat's
    results and from every later heat it reached: pending heats drop it from
    their racer list, completed heats from their results. Heat numbers and
    already-advanced racers are left as they are.
    """
    result = copy.deepcopy(bracket)
    heat = result.find_heat(heat_number)
    if racer_id not in heat.racers:
        raise InvalidResultError(f"Racer {racer_id} is not in heat {heat_number}")

    _flag(heat, racer_id, reason)
    if heat.status != HeatStatus.completed:
        logger.info("Racer %d flagged %s in heat %d before completion", racer_id, reason.value, heat_number)
        return result

    _strip_from_results(heat, racer_id)
    touched = [heat_number]
    for later in result.heats_in_number_order():
        if later.number <= heat_number or racer_id not in later.racers:
            continue
        if later.status == HeatStatus.completed:
            _flag(later, racer_id, reason)
            _strip_from_results(later, racer_id)
        else:
            later.racers = [r for r in later.racers if r != racer_id]
        touched.append(later.number)

    logger.info("Racer %d %s after completion; struck from heats %s", racer_id, reason.value, touched)
    return result
