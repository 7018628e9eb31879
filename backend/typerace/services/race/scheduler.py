import time
from typing import Optional, Set

from typerace import socketio
from typerace.rooms import discard_room, get_room


_running_clocks: Set[str] = set()


def start_room_clock(app, room) -> None:
    """Drive a room's logical runtime from real time.

    - No-ops in TESTING mode (tests advance the runtime by hand)
    - Ensures a single clock per room code
    - Every step takes the room lock, so socket handlers and due callbacks
      never interleave
    - Exits once ``stop_room_clock`` is called for the room, or once the room
      has sat empty for ``ROOM_IDLE_TIMEOUT_SEC``
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    code = room.code
    if code in _running_clocks:
        app.logger.info(f"[clock-skip] room={code} already running")
        return
    _running_clocks.add(code)

    resolution_ms = max(1, int(app.config.get('CLOCK_RESOLUTION_MS', 50)))
    heartbeat_sec = int(app.config.get('CLOCK_HEARTBEAT_SEC', 0))
    app.logger.info(f"[clock-start] room={code} resolution={resolution_ms}ms")

    def _worker(room_code: str):
        started_at = time.monotonic()
        with room.lock:
            base_ms = room.runtime.now()
        last_beat = started_at
        while room_code in _running_clocks:
            socketio.sleep(resolution_ms / 1000.0)
            now = time.monotonic()
            if expire_idle_room(app, room, now):
                break
            with room.lock:
                room.runtime.advance_to(base_ms + int((now - started_at) * 1000))
                logical_ms = room.runtime.now()
            if heartbeat_sec > 0 and now - last_beat >= heartbeat_sec:
                last_beat = now
                app.logger.info(
                    f"[clock-heartbeat] room={room_code} now={logical_ms}ms pending={room.runtime.pending()}"
                )
        app.logger.info(f"[clock-stop] room={room_code}")

    socketio.start_background_task(_worker, code)


def expire_idle_room(app, room, now: Optional[float] = None) -> bool:
    """Close ``room`` if nobody has been in it for ``ROOM_IDLE_TIMEOUT_SEC``.

    Returns True when the room was closed. A timeout of 0 disables expiry.
    """
    timeout = int(app.config.get('ROOM_IDLE_TIMEOUT_SEC', 300))
    if timeout <= 0:
        return False
    now = time.monotonic() if now is None else now
    with room.lock:
        if room.members or room.empty_since is None:
            return False
        idle = now - room.empty_since
        if idle < timeout:
            return False
        stop_room_clock(room.code)
        if get_room(room.code) is room:
            discard_room(room.code)
    app.logger.info(f"[room-idle-close] room={room.code} idle={int(idle)}s")
    return True


def stop_room_clock(code: str) -> None:
    _running_clocks.discard(code)


def is_clock_running(code: str) -> bool:
    return code in _running_clocks
