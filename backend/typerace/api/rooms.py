from flask import Blueprint, jsonify, request, current_app
from pydantic import ValidationError

from typerace.rooms import create_room, get_room
from typerace.services.race import THEMES, RoomSettings, Timings, validate_username
from typerace.services.race.scheduler import start_room_clock
from typerace.services.race.settings import VALIDATION_RULES


rooms = Blueprint('rooms', __name__)


@rooms.route('/create', methods=['POST'])
def create_room_route():
    """Create a room whose host already agreed on its settings."""
    data = request.get_json(silent=True) or {}
    try:
        settings = RoomSettings.model_validate(data.get('settings') or {})
    except ValidationError as exc:
        errors = [
            {'field': '.'.join(str(p) for p in err['loc']), 'message': err['msg']}
            for err in exc.errors()
        ]
        return jsonify({'error': 'Invalid room settings', 'details': errors}), 400

    app = current_app._get_current_object()
    room = create_room(
        settings=settings.to_payload(),
        timings=Timings.from_config(app.config),
        code_length=int(app.config.get('ROOM_CODE_LENGTH', 4)),
    )
    app.logger.info(f"[room-create] room={room.code} settings={settings.to_payload()}")
    start_room_clock(app, room)
    return jsonify({
        'message': 'New room created!',
        'room_code': room.code,
        'settings': settings.to_payload(),
    }), 201


@rooms.route('/<string:room_code>/state', methods=['GET'])
def get_room_state(room_code):
    room = get_room(room_code)
    if room is None:
        return jsonify({'error': 'Room not found'}), 404
    with room.lock:
        return jsonify(room.snapshot())


@rooms.route('/options', methods=['GET'])
def get_room_options():
    limits = {name: {'min': lo, 'max': hi} for name, (lo, hi) in VALIDATION_RULES.items()}
    return jsonify({'themes': list(THEMES), 'limits': limits})


@rooms.route('/validate-username', methods=['POST'])
def validate_username_route():
    data = request.get_json(silent=True) or {}
    error = validate_username(data.get('username') or '')
    if error:
        return jsonify({'valid': False, 'error': error}), 400
    return jsonify({'valid': True})
