import random
import string
import threading
import time
import zlib
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Set

from typerace.services.race import GameStateMachine, LogicalRuntime, NegotiatedSettings, Timings


ROOMS: Dict[str, 'RaceRoom'] = {}
_rooms_lock = threading.Lock()


@dataclass
class RaceRoom:
    code: str
    runtime: LogicalRuntime
    machine: GameStateMachine
    lock: threading.RLock = field(default_factory=threading.RLock)
    members: Set[str] = field(default_factory=set)
    # monotonic time the room last became empty; None while someone is in it
    empty_since: Optional[float] = field(default_factory=time.monotonic)

    @property
    def is_host_room(self) -> bool:
        return self.machine.strategy.is_host

    def snapshot(self) -> Dict[str, Any]:
        payload = self.machine.get_game_state()
        payload['room_code'] = self.code
        payload['now'] = self.runtime.now()
        return payload


def generate_room_code(length=4):
    """Generate a unique, short room code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if code not in ROOMS:
            return code


def room_seed(code: str) -> int:
    # every replica of a room derives the same shuffle stream from its code
    return zlib.crc32(code.encode('utf-8'))


def create_room(settings: Optional[Mapping[str, Any]] = None, code: Optional[str] = None,
                timings: Optional[Timings] = None, code_length: int = 4) -> RaceRoom:
    """Create and register a room.

    ``settings`` is the host's handoff payload; without it the room starts on
    the guest path and waits for a ``sync-settings`` broadcast.
    """
    with _rooms_lock:
        code = (code or generate_room_code(code_length)).upper()
        if code in ROOMS:
            raise ValueError(f"Room {code} already exists")
        runtime = LogicalRuntime(seed=room_seed(code))
        machine = GameStateMachine(
            runtime,
            strategy=NegotiatedSettings(handoff=settings),
            timings=timings,
            session_id=code,
        )
        machine.initialize()
        room = RaceRoom(code=code, runtime=runtime, machine=machine)
        ROOMS[code] = room
        return room


def get_room(code: Optional[str]) -> Optional[RaceRoom]:
    if not code:
        return None
    return ROOMS.get(code.upper())


def discard_room(code: str) -> Optional[RaceRoom]:
    with _rooms_lock:
        return ROOMS.pop(code.upper(), None)
