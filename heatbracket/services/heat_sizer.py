"""
Heat Sizer - first-round heat sizes and seed-order filling.

Heats hold at most HEAT_CAPACITY racers and never a single racer unless the
whole field is one racer. Sizes follow a fixed table up to 8 racers and,
above that, heats of 4 with the remainder absorbed so that no two heats
differ by more than one racer.
"""

from __future__ import annotations

from dataclasses import dataclass
from math import ceil
from typing import List, Optional, Sequence

from heatbracket.services.bracket_model import HEAT_CAPACITY
from heatbracket.services.errors import InvalidRacerCountError


@dataclass
class SeededRacer:
    """One roster entry as the bracket engine sees it."""
    racer_id: int
    seed_time: Optional[float] = None
    starting_position: Optional[int] = None


def even_split(total: int, groups: int) -> List[int]:
    """
    Spread `total` over `groups` as evenly as possible, larger groups first.

    even_split(9, 3) -> [3, 3, 3]
    even_split(7, 2) -> [4, 3]
    even_split(5, 2) -> [3, 2]
    """
    if groups <= 0:
        return []
    base, remainder = divmod(total, groups)
    return [base + 1 if i < remainder else base for i in range(groups)]


def compute_heat_sizes(racer_count: int) -> List[int]:
    """
    Compute first-round heat sizes for `racer_count` racers.

    Rules:
    - n <= 4 -> one heat of n
    - 5 -> [3, 2], 6 -> [3, 3], 7 -> [4, 3], 8 -> [4, 4]
    - n > 8 -> heats of 4 while 4 or more remain, then the remainder r:
        r = 3 -> append a heat of 3
        r = 2 -> the last heat of 4 becomes two heats of 3
        r = 1 -> trailing heats give up a racer each until balanced
      (9 -> [3, 3, 3], 10 -> [4, 3, 3], 11 -> [4, 4, 3], 13 -> [4, 3, 3, 3])

    Every case is the even spread of n over ceil(n / 4) heats.
    """
    if racer_count < 1:
        raise InvalidRacerCountError(f"racer_count must be >= 1, got {racer_count}")
    if racer_count <= HEAT_CAPACITY:
        return [racer_count]
    return even_split(racer_count, ceil(racer_count / HEAT_CAPACITY))


def seed_sort_key(racer: SeededRacer):
    return (
        racer.starting_position is None,
        racer.starting_position or 0,
        racer.seed_time is None,
        racer.seed_time or 0.0,
    )


def fill_heats(racers: Sequence[SeededRacer]) -> List[List[int]]:
    """
    Slice the seeded field into first-round heats in rank blocks.

    The field is sorted once by starting position (stable; unranked racers
    last) and heat i takes the next contiguous slice.
    """
    ordered = sorted(racers, key=seed_sort_key)
    heats: List[List[int]] = []
    cursor = 0
    for size in compute_heat_sizes(len(ordered)):
        heats.append([r.racer_id for r in ordered[cursor:cursor + size]])
        cursor += size
    return heats


def assign_starting_positions(racers: Sequence[SeededRacer]) -> List[SeededRacer]:
    """
    Rank racers by seed time ascending (ties keep roster order).

    Racers without a seed time get no starting position. Mutates and returns
    the racers in ranked order, unranked racers last.
    """
    timed = sorted((r for r in racers if r.seed_time is not None), key=lambda r: r.seed_time)
    untimed = [r for r in racers if r.seed_time is None]
    for position, racer in enumerate(timed, start=1):
        racer.starting_position = position
    for racer in untimed:
        racer.starting_position = None
    return timed + untimed


def bracket_seed_order(count: int) -> List[int]:
    """
    Traditional single-elimination pairing order: 1, n, 2, n-1, ...

    n is the next power of two above `count`; the result is cut to `count`
    entries. Heat filling uses rank blocks instead; this ordering is kept for
    cross-heat seeding.
    """
    if count <= 0:
        return []
    size = 1
    while size < count:
        size <<= 1
    seeds: List[int] = []
    for i in range(1, size // 2 + 1):
        seeds.append(i)
        seeds.append(size + 1 - i)
    return seeds[:count] if size > 1 else [1]
