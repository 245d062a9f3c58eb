# Force SQLModel table registration at test discovery time
from heatbracket.models.bracket_state import BracketState  # noqa: F401
from heatbracket.models.racer import Racer  # noqa: F401
