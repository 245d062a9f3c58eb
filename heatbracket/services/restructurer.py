"""
Restructurer - keep routed heats within capacity and balanced.

Runs after every routing step. For each (lane, round) group that receives
routed racers (every group except winners round 1 and the finals), the
pending heats of the group are:

1. split until there are ceil(total / HEAT_CAPACITY) of them. The largest
   heat splits ceil-first (5 -> 3 + 2); the new heat is inserted right after
   it with the same forward pointers, and every later heat number and every
   pointer past the split heat moves up by one;
2. redistributed evenly (larger heats first, racer order kept) when a heat
   is still over capacity or sizes differ by more than one.

Heats that already started are never touched; if one of them or the
finals heat is over capacity, OverCapacityError is raised.
"""

from __future__ import annotations

import copy
import logging
from math import ceil
from typing import List

from heatbracket.services.bracket_model import HEAT_CAPACITY, Bracket, Heat, HeatStatus, Lane, Round
from heatbracket.services.errors import OverCapacityError
from heatbracket.services.heat_sizer import even_split

logger = logging.getLogger(__name__)


def _is_restructurable(rnd: Round) -> bool:
    if rnd.lane == Lane.final:
        return False
    return not (rnd.lane == Lane.winners and rnd.round_number == 1)


def _shift_numbers_after(bracket: Bracket, number: int) -> None:
    for heat in bracket.iter_heats():
        if heat.number > number:
            heat.number += 1
        if heat.next_winners_heat is not None and heat.next_winners_heat > number:
            heat.next_winners_heat += 1
        if heat.next_losers_heat is not None and heat.next_losers_heat > number:
            heat.next_losers_heat += 1


def split_heat(bracket: Bracket, heat: Heat) -> Heat:
    """
    Split `heat` in place into two siblings, larger half first.

    Returns the new sibling, numbered heat.number + 1.
    """
    rnd = bracket.round_of(heat)
    keep = ceil(len(heat.racers) / 2)
    _shift_numbers_after(bracket, heat.number)
    sibling = Heat(
        number=heat.number + 1,
        lane=heat.lane,
        round_number=heat.round_number,
        racers=heat.racers[keep:],
        next_winners_heat=heat.next_winners_heat,
        next_losers_heat=heat.next_losers_heat,
    )
    heat.racers = heat.racers[:keep]
    rnd.heats.insert(rnd.heats.index(heat) + 1, sibling)
    logger.info(
        "Split heat %d (%s round %d) into %d + %d racers, new heat %d",
        heat.number,
        heat.lane.value,
        heat.round_number,
        len(heat.racers),
        len(sibling.racers),
        sibling.number,
    )
    return sibling


def _rebalance(heats: List[Heat]) -> None:
    pooled = [racer_id for heat in heats for racer_id in heat.racers]
    cursor = 0
    for heat, size in zip(heats, even_split(len(pooled), len(heats))):
        heat.racers = pooled[cursor:cursor + size]
        cursor += size


def _needs_rebalance(heats: List[Heat]) -> bool:
    if len(heats) < 2:
        return False
    sizes = [len(h.racers) for h in heats]
    return max(sizes) > HEAT_CAPACITY or max(sizes) - min(sizes) > 1


def _restructure_round(bracket: Bracket, rnd: Round) -> None:
    for heat in rnd.heats:
        if heat.status != HeatStatus.pending and len(heat.racers) > HEAT_CAPACITY:
            raise OverCapacityError(
                f"Heat {heat.number} is {heat.status.value} with {len(heat.racers)} racers "
                f"(capacity {HEAT_CAPACITY})"
            )

    pending = [h for h in rnd.heats if h.status == HeatStatus.pending]
    if not pending:
        return
    total = sum(len(h.racers) for h in pending)
    needed = ceil(total / HEAT_CAPACITY)

    while len(pending) < needed:
        largest = max(pending, key=lambda h: len(h.racers))
        split_heat(bracket, largest)
        pending = [h for h in rnd.heats if h.status == HeatStatus.pending]

    if _needs_rebalance(pending):
        _rebalance(pending)
        logger.debug(
            "Rebalanced %s round %d heats to %s",
            rnd.lane.value,
            rnd.round_number,
            [len(h.racers) for h in pending],
        )


def restructure(bracket: Bracket) -> Bracket:
    """Return a copy of `bracket` satisfying the heat capacity invariant."""
    result = copy.deepcopy(bracket)
    for rnd in result.rounds:
        if _is_restructurable(rnd):
            _restructure_round(result, rnd)

    finals = result.finals
    if len(finals.racers) > HEAT_CAPACITY:
        raise OverCapacityError(
            f"Finals heat {finals.number} would hold {len(finals.racers)} racers (capacity {HEAT_CAPACITY})"
        )
    return result
