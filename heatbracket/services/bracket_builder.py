"""
Bracket Builder - full heat graph for one (event, class).

Heat numbers come from a single counter advanced in creation order:
round-1 winners heats, winners semifinal, losers round 1, any later winners
rounds, any later losers rounds, finals. Numbering is never looked up from a
table; replaying the sequence gives the right numbers for any first-round
heat count.

Each lane is a ladder of single heats. A lane gets another round while the
field projected into its last round is more than one heat can hold, so
split siblings always merge again before the finals.
"""

from __future__ import annotations

import logging
from math import ceil
from typing import List, Sequence

from heatbracket.services.bracket_model import (
    ADVANCING_PER_HEAT,
    HEAT_CAPACITY,
    Bracket,
    Heat,
    Lane,
    Round,
)
from heatbracket.services.errors import InvalidRacerCountError
from heatbracket.services.heat_sizer import SeededRacer, fill_heats

logger = logging.getLogger(__name__)

# More first-round losers than this opens a second losers round
LOSERS_DIRECT_TO_FINALS_MAX = 2


class _HeatCounter:
    def __init__(self) -> None:
        self.value = 0

    def next(self) -> int:
        self.value += 1
        return self.value


def _narrowed(field: int) -> int:
    """Racers advancing out of a round that holds `field` racers."""
    return ADVANCING_PER_HEAT * ceil(field / HEAT_CAPACITY)


def count_first_round_losers(heat_sizes: Sequence[int]) -> int:
    """Racers dropping to the losers lane after round 1 (all but the advancing pair)."""
    return sum(max(0, size - ADVANCING_PER_HEAT) for size in heat_sizes)


def winners_ladder_length(heat_sizes: Sequence[int]) -> int:
    """
    Winners rounds after round 1.

    up to 8 racers -> 1 (the semifinal feeds the finals)
    9..16 racers  -> 2 (a round-3 heat merges the split semifinal)
    """
    field = sum(min(size, ADVANCING_PER_HEAT) for size in heat_sizes)
    rounds = 1
    while field > HEAT_CAPACITY:
        field = _narrowed(field)
        rounds += 1
    return rounds


def losers_ladder_length(heat_sizes: Sequence[int]) -> int:
    field = count_first_round_losers(heat_sizes)
    if field <= LOSERS_DIRECT_TO_FINALS_MAX:
        return 1
    rounds = 2
    field = _narrowed(field)
    while field > HEAT_CAPACITY:
        field = _narrowed(field)
        rounds += 1
    return rounds


def needs_second_losers_round(heat_sizes: Sequence[int]) -> bool:
    return losers_ladder_length(heat_sizes) > 1


def semifinal_overflows(heat_sizes: Sequence[int]) -> bool:
    return winners_ladder_length(heat_sizes) > 1


def _chain(heats: List[Heat], finals: Heat) -> None:
    for heat, target in zip(heats, heats[1:] + [finals]):
        heat.next_winners_heat = target.number


def build_bracket(racers: Sequence[SeededRacer], event_id: int, race_class: str) -> Bracket:
    """
    Build the complete bracket for a seeded field.

    Round-1 heats are filled in rank blocks; every other heat starts empty
    and is filled by routing as results come in.
    """
    if len(racers) < 2:
        raise InvalidRacerCountError(f"A bracket needs at least 2 racers, got {len(racers)}")

    counter = _HeatCounter()
    first_round_slices = fill_heats(racers)
    heat_sizes = [len(s) for s in first_round_slices]

    first_round: List[Heat] = [
        Heat(number=counter.next(), lane=Lane.winners, round_number=1, racers=list(slice_))
        for slice_ in first_round_slices
    ]
    semifinal = Heat(number=counter.next(), lane=Lane.winners, round_number=2)
    losers_first = Heat(number=counter.next(), lane=Lane.losers, round_number=1)

    winners_ladder = [semifinal] + [
        Heat(number=counter.next(), lane=Lane.winners, round_number=round_number)
        for round_number in range(3, winners_ladder_length(heat_sizes) + 2)
    ]
    losers_ladder = [losers_first] + [
        Heat(number=counter.next(), lane=Lane.losers, round_number=round_number)
        for round_number in range(2, losers_ladder_length(heat_sizes) + 1)
    ]
    finals = Heat(
        number=counter.next(),
        lane=Lane.final,
        round_number=winners_ladder[-1].round_number + 1,
    )

    for heat in first_round:
        heat.next_winners_heat = semifinal.number
        heat.next_losers_heat = losers_first.number
    _chain(winners_ladder, finals)
    _chain(losers_ladder, finals)

    rounds = [Round(round_number=1, lane=Lane.winners, heats=first_round)]
    rounds.extend(Round(round_number=h.round_number, lane=h.lane, heats=[h]) for h in winners_ladder + losers_ladder)
    rounds.append(Round(round_number=finals.round_number, lane=Lane.final, heats=[finals]))

    logger.info(
        "Built bracket %s/%s: %d racers, first round %s, %d rounds, finals heat %d",
        event_id,
        race_class,
        len(racers),
        heat_sizes,
        len(rounds),
        finals.number,
    )
    return Bracket(event_id=event_id, race_class=race_class, rounds=rounds)
