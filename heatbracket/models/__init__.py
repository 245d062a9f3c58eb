from heatbracket.models.bracket_state import BracketState
from heatbracket.models.racer import Racer

__all__ = [
    "BracketState",
    "Racer",
]
