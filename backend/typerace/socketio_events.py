from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from typing import Dict, Any, Optional, Set

from typerace import socketio
from typerace.rooms import RaceRoom, create_room, discard_room, get_room
from typerace.services.race import Timings, validate_username
from typerace.services.race.scheduler import start_room_clock, stop_room_clock

NAMESPACE = '/ws'


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws', 'player_id': _get_sid()})


def handle_disconnect(reason=None):
    _leave_current_room(_get_sid())


def handle_join_room(data=None):
    room_code = ((data or {}).get('room_code') or '').strip().upper()
    if not room_code:
        emit('error', {'message': 'room_code is required'})
        return

    room = _get_or_create_room(room_code)
    if room is None:
        emit('error', {'message': 'Room not found'})
        return

    sid = _get_sid()
    ctx = _sid_to_ctx.get(sid)
    if ctx and ctx.get('room_code') != room.code:
        _leave_current_room(sid)

    channel = _channel(room.code)
    with room.lock:
        if get_room(room.code) is not room:
            # closed while we were looking it up
            emit('error', {'message': 'Room not found'})
            return
        _wire_room(room)
        # join the channel first so the join's own state_update reaches us
        join_room(channel)
        _drop_room_full_notifier(room, sid)
        room.runtime.subscribe(sid, 'room-full', _room_full_notifier(sid))
        room.runtime.join(sid)
        player = room.machine.get_player(sid)
        if player is None:
            leave_room(channel)
            _drop_room_full_notifier(room, sid)
            current_app.logger.info(f"[join-rejected] room={room.code} sid={sid}")
            return
        room.members.add(sid)
        room.empty_since = None
        _sid_to_ctx[sid] = {'room_code': room.code}
        snapshot = room.snapshot()
    emit('joined', {'room': channel, 'room_code': room.code, 'player_id': sid, 'state': snapshot})


def handle_leave_room(data=None):
    sid = _get_sid()
    ctx = _sid_to_ctx.get(sid)
    if not ctx:
        emit('error', {'message': 'Not in a room'})
        return
    code = ctx['room_code']
    _leave_current_room(sid)
    emit('left', {'room': _channel(code), 'room_code': code})


def handle_set_initials(data=None):
    initials = ((data or {}).get('initials') or '').strip()
    error = validate_username(initials)
    if error:
        emit('error', {'message': error})
        return
    _publish_for_player('set-initials', initials)


def handle_set_avatar(data=None):
    avatar_url = (data or {}).get('avatar_url') or ''
    _publish_for_player('set-avatar', avatar_url)


def handle_typed_word(data=None):
    correct = bool((data or {}).get('correct'))
    _publish_for_player('typed-word', correct)


def handle_start_game(data=None):
    _publish_for_room('game', 'start')


def handle_reset_game(data=None):
    _publish_for_room('game', 'reset')


def handle_sync_settings(data=None):
    settings = (data or {}).get('settings')
    if not isinstance(settings, dict):
        emit('error', {'message': 'settings object is required'})
        return
    _publish_for_room('room', 'sync-settings', settings)


def handle_initialize_settings(data=None):
    settings = (data or {}).get('settings')
    if not isinstance(settings, dict):
        emit('error', {'message': 'settings object is required'})
        return
    _publish_for_room('room', 'initialize-settings', settings)


def handle_ping(data=None):
    emit('pong', data or {})

# ---- Room membership helpers ----

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}
_wired_rooms: Set[str] = set()
_room_full_notifiers: Dict[str, Any] = {}

def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore

def _channel(room_code: str) -> str:
    return f"room:{room_code}"

def _get_or_create_room(room_code: str) -> Optional[RaceRoom]:
    room = get_room(room_code)
    if room is not None or not current_app.config.get('AUTO_CREATE_ROOMS'):
        return room
    app = current_app._get_current_object()
    try:
        room = create_room(code=room_code, timings=Timings.from_config(app.config))
    except ValueError:
        # created by another connection in the meantime
        return get_room(room_code)
    app.logger.info(f"[room-create] room={room.code} guest path")
    start_room_clock(app, room)
    return room

def _wire_room(room: RaceRoom) -> None:
    """Forward the state machine's view events to the room channel."""
    if room.code in _wired_rooms:
        return
    _wired_rooms.add(room.code)
    channel = _channel(room.code)

    def _on_update():
        socketio.emit('state_update', room.snapshot(), to=channel, namespace=NAMESPACE)

    def _on_new_highscore(payload):
        socketio.emit('new_highscore', payload, to=channel, namespace=NAMESPACE)

    room.runtime.subscribe('view', 'update', _on_update)
    room.runtime.subscribe('view', 'new-highscore', _on_new_highscore)

def _room_full_notifier(sid: str):
    def _notify():
        socketio.emit('room_full', {'message': 'Room is full'}, to=sid, namespace=NAMESPACE)
    _room_full_notifiers[sid] = _notify
    return _notify

def _drop_room_full_notifier(room: RaceRoom, sid: str) -> None:
    notifier = _room_full_notifiers.pop(sid, None)
    if notifier is not None:
        room.runtime.unsubscribe(sid, 'room-full', notifier)

def _leave_current_room(sid: str) -> None:
    ctx = _sid_to_ctx.pop(sid, None)
    if not ctx:
        return
    room = get_room(ctx.get('room_code'))
    if room is None:
        return
    with room.lock:
        room.runtime.leave(sid)
        _drop_room_full_notifier(room, sid)
        room.members.discard(sid)
        empty = not room.members
    leave_room(_channel(room.code), sid=sid, namespace=NAMESPACE)
    if empty:
        _close_room(room.code)

def _close_room(room_code: str) -> None:
    stop_room_clock(room_code)
    _wired_rooms.discard(room_code)
    discard_room(room_code)
    current_app.logger.info(f"[room-close] room={room_code} no members left")

def _publish_for_player(event: str, payload: Any) -> None:
    sid = _get_sid()
    room = _current_room(sid)
    if room is None:
        return
    with room.lock:
        room.runtime.publish(sid, event, payload)

def _publish_for_room(topic: str, event: str, payload: Any = None) -> None:
    room = _current_room(_get_sid())
    if room is None:
        return
    with room.lock:
        if payload is None:
            room.runtime.publish(topic, event)
        else:
            room.runtime.publish(topic, event, payload)

def _current_room(sid: str) -> Optional[RaceRoom]:
    ctx = _sid_to_ctx.get(sid)
    room = get_room(ctx.get('room_code')) if ctx else None
    if room is None:
        emit('error', {'message': 'Join a room first'})
    return room


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('join_room', handle_join_room, namespace=NAMESPACE)
    socketio.on_event('leave_room', handle_leave_room, namespace=NAMESPACE)
    socketio.on_event('set_initials', handle_set_initials, namespace=NAMESPACE)
    socketio.on_event('set_avatar', handle_set_avatar, namespace=NAMESPACE)
    socketio.on_event('typed_word', handle_typed_word, namespace=NAMESPACE)
    socketio.on_event('start_game', handle_start_game, namespace=NAMESPACE)
    socketio.on_event('reset_game', handle_reset_game, namespace=NAMESPACE)
    socketio.on_event('sync_settings', handle_sync_settings, namespace=NAMESPACE)
    socketio.on_event('initialize_settings', handle_initialize_settings, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
