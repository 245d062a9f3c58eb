"""
Bracket graph types.

A bracket is a plain value: ordered rounds across the winners, losers and
final lanes, each holding heats that reference racers by id. The engine
functions take a Bracket and return a new one; the store persists it as a
JSON document via to_dict()/from_dict().
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Union

from heatbracket.services.errors import NotFoundError

HEAT_CAPACITY = 4
# Racers advancing from each first-round heat to the winners semifinal
ADVANCING_PER_HEAT = 2


def _json_ready(items) -> Dict[str, Any]:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in items}


class Lane(str, Enum):
    winners = "winners"
    losers = "losers"
    final = "final"


class HeatStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"


class RemovalReason(str, Enum):
    disqualified = "DQ"
    no_show = "DNS"


PLACES = ("first", "second", "third", "fourth")


@dataclass
class FinalRankings:
    first: Optional[int] = None
    second: Optional[int] = None
    third: Optional[int] = None
    fourth: Optional[int] = None

    def placements(self) -> List[int]:
        """Ranked racer ids, best first, skipping empty places."""
        return [r for r in (self.first, self.second, self.third, self.fourth) if r is not None]

    def without(self, racer_id: int) -> Optional["FinalRankings"]:
        """Vacate the racer's place; the other places keep their racers."""
        slots = {place: (None if getattr(self, place) == racer_id else getattr(self, place)) for place in PLACES}
        if not any(v is not None for v in slots.values()):
            return None
        return FinalRankings(**slots)


@dataclass
class WinnerLoserOutcome:
    winners: List[int]
    losers: List[int]
    disqualified: List[int] = field(default_factory=list)
    no_shows: List[int] = field(default_factory=list)


@dataclass
class FinalRankingOutcome:
    rankings: FinalRankings


HeatOutcome = Union[WinnerLoserOutcome, FinalRankingOutcome]


@dataclass
class Heat:
    number: int
    lane: Lane
    round_number: int
    racers: List[int] = field(default_factory=list)
    status: HeatStatus = HeatStatus.pending
    winners: List[int] = field(default_factory=list)
    losers: List[int] = field(default_factory=list)
    disqualified: List[int] = field(default_factory=list)
    no_shows: List[int] = field(default_factory=list)
    next_winners_heat: Optional[int] = None
    next_losers_heat: Optional[int] = None
    final_rankings: Optional[FinalRankings] = None

    @property
    def removed(self) -> List[int]:
        """Racers flagged DQ or DNS; they never advance from this heat."""
        return self.disqualified + [r for r in self.no_shows if r not in self.disqualified]

    @property
    def forward_pointers(self) -> tuple:
        return (self.next_winners_heat, self.next_losers_heat)


@dataclass
class Round:
    round_number: int
    lane: Lane
    heats: List[Heat] = field(default_factory=list)


@dataclass
class Bracket:
    event_id: int
    race_class: str
    rounds: List[Round] = field(default_factory=list)

    def iter_heats(self) -> Iterator[Heat]:
        for rnd in self.rounds:
            yield from rnd.heats

    def heats_in_number_order(self) -> List[Heat]:
        return sorted(self.iter_heats(), key=lambda h: h.number)

    def find_heat(self, number: int) -> Heat:
        for heat in self.iter_heats():
            if heat.number == number:
                return heat
        raise NotFoundError(f"Heat {number} not found in bracket {self.event_id}/{self.race_class}")

    def find_round(self, lane: Lane, round_number: int) -> Round:
        for rnd in self.rounds:
            if rnd.lane == lane and rnd.round_number == round_number:
                return rnd
        raise NotFoundError(f"No {lane.value} round {round_number} in bracket {self.event_id}/{self.race_class}")

    def round_of(self, heat: Heat) -> Round:
        return self.find_round(heat.lane, heat.round_number)

    @property
    def finals(self) -> Heat:
        for heat in self.iter_heats():
            if heat.lane == Lane.final:
                return heat
        raise NotFoundError(f"Bracket {self.event_id}/{self.race_class} has no finals heat")

    def is_complete(self) -> bool:
        heats = [h for h in self.iter_heats() if h.racers]
        return bool(heats) and all(h.status == HeatStatus.completed for h in heats) and (
            self.finals.final_rankings is not None
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self, dict_factory=_json_ready)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Bracket":
        rounds = []
        for raw_round in data.get("rounds", []):
            heats = []
            for raw in raw_round.get("heats", []):
                rankings = raw.get("final_rankings")
                heats.append(
                    Heat(
                        number=int(raw["number"]),
                        lane=Lane(raw["lane"]),
                        round_number=int(raw["round_number"]),
                        racers=list(raw.get("racers", [])),
                        status=HeatStatus(raw.get("status", HeatStatus.pending.value)),
                        winners=list(raw.get("winners", [])),
                        losers=list(raw.get("losers", [])),
                        disqualified=list(raw.get("disqualified", [])),
                        no_shows=list(raw.get("no_shows", [])),
                        next_winners_heat=raw.get("next_winners_heat"),
                        next_losers_heat=raw.get("next_losers_heat"),
                        final_rankings=FinalRankings(**rankings) if rankings else None,
                    )
                )
            rounds.append(
                Round(
                    round_number=int(raw_round["round_number"]),
                    lane=Lane(raw_round["lane"]),
                    heats=heats,
                )
            )
        return cls(event_id=int(data["event_id"]), race_class=data["race_class"], rounds=rounds)
