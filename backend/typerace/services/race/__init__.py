"""Race domain: word bank, player state, state machine and its runtime.

Nothing in here imports Flask except ``scheduler``, which drives a room's
logical clock from the Socket.IO server.
"""

from .machine import GameStateMachine, NegotiatedSettings, StandaloneSettings, Timings
from .player import PlayerState
from .runtime import LogicalRuntime
from .settings import RoomSettings, coerce_partial, validate_username
from .words import THEMES, generate_words, shuffle

__all__ = [
    "GameStateMachine",
    "NegotiatedSettings",
    "StandaloneSettings",
    "Timings",
    "PlayerState",
    "LogicalRuntime",
    "RoomSettings",
    "coerce_partial",
    "validate_username",
    "THEMES",
    "generate_words",
    "shuffle",
]
