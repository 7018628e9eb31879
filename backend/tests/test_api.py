from typerace.rooms import ROOMS, get_room
from typerace.services.race.scheduler import expire_idle_room


def test_create_room_with_defaults(client):
    res = client.post('/api/rooms/create', json={})
    assert res.status_code == 201
    data = res.get_json()
    assert len(data['room_code']) == 4
    assert data['settings']['timeLimit'] == 60
    assert data['room_code'] in ROOMS


def test_created_room_is_the_host(client):
    code = client.post('/api/rooms/create', json={
        'settings': {'theme': 'web3', 'sentenceLength': 12, 'timeLimit': 45, 'maxPlayers': 2}
    }).get_json()['room_code']
    room = get_room(code)
    assert room.is_host_room is True

    res = client.get(f'/api/rooms/{code}/state')
    assert res.status_code == 200
    state = res.get_json()
    assert state['room_code'] == code
    assert state['settings_initialized'] is True
    assert state['theme'] == 'web3'
    assert state['time_left'] == 45
    assert state['max_players'] == 2
    assert state['player_count'] == 0
    assert state['now'] == 0


def test_create_room_with_custom_words(client):
    code = client.post('/api/rooms/create', json={
        'settings': {'words': ['alpha', ' ', 'beta'], 'timeLimit': 30}
    }).get_json()['room_code']
    state = client.get(f'/api/rooms/{code}/state').get_json()
    assert sorted(state['words']) == ['alpha', 'beta']


def test_create_room_rejects_invalid_settings(client):
    res = client.post('/api/rooms/create', json={'settings': {'timeLimit': 5, 'maxPlayers': 9}})
    assert res.status_code == 400
    data = res.get_json()
    assert data['error'] == 'Invalid room settings'
    fields = {d['field'] for d in data['details']}
    assert fields == {'timeLimit', 'maxPlayers'}
    assert ROOMS == {}


def test_room_state_lookup_ignores_case(client):
    code = client.post('/api/rooms/create', json={}).get_json()['room_code']
    res = client.get(f'/api/rooms/{code.lower()}/state')
    assert res.status_code == 200
    assert res.get_json()['room_code'] == code


def test_unknown_room_is_404(client):
    res = client.get('/api/rooms/ZZZZ/state')
    assert res.status_code == 404
    assert res.get_json()['error'] == 'Room not found'


def test_room_options(client):
    data = client.get('/api/rooms/options').get_json()
    assert 'tech' in data['themes']
    assert 'random' in data['themes']
    assert data['limits']['time_limit'] == {'min': 30, 'max': 120}
    assert data['limits']['max_players'] == {'min': 2, 'max': 6}


def test_validate_username(client):
    res = client.post('/api/rooms/validate-username', json={'username': 'Speedy'})
    assert res.status_code == 200
    assert res.get_json() == {'valid': True}

    res = client.post('/api/rooms/validate-username', json={'username': 'admin99'})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'Username contains restricted words'


def test_index_and_health(client):
    assert client.get('/').status_code == 200
    client.post('/api/rooms/create', json={})
    health = client.get('/health').get_json()
    assert health == {'status': 'ok', 'rooms': 1}


def test_simulate_race_command(flask_app):
    runner = flask_app.test_cli_runner()
    args = ['simulate-race', '--players', '3', '--seed', '5', '--time-limit', '5']
    result = runner.invoke(args=args)
    assert result.exit_code == 0
    assert 'Race finished: 15 words, 5s' in result.output
    assert '#1 ' in result.output
    assert 'highscore P1=' in result.output

    # same seed, same race
    assert runner.invoke(args=args).output == result.output


def test_unjoined_room_expires_after_idle_timeout(flask_app, client):
    code = client.post('/api/rooms/create', json={}).get_json()['room_code']
    room = get_room(code)
    assert expire_idle_room(flask_app, room, now=room.empty_since + 299) is False
    assert code in ROOMS
    assert expire_idle_room(flask_app, room, now=room.empty_since + 300) is True
    assert code not in ROOMS
    assert client.get(f'/api/rooms/{code}/state').status_code == 404


def test_joined_room_does_not_expire(flask_app, client, sio_client):
    code = client.post('/api/rooms/create', json={}).get_json()['room_code']
    sio_client.emit('join_room', {'room_code': code}, namespace='/ws')
    room = get_room(code)
    assert room.members
    assert room.empty_since is None
    assert expire_idle_room(flask_app, room, now=10 ** 9) is False
    assert code in ROOMS


def test_idle_expiry_can_be_disabled(flask_app, client):
    flask_app.config['ROOM_IDLE_TIMEOUT_SEC'] = 0
    code = client.post('/api/rooms/create', json={}).get_json()['room_code']
    room = get_room(code)
    assert expire_idle_room(flask_app, room, now=room.empty_since + 10 ** 6) is False
    assert code in ROOMS
