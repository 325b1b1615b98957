from conftest import X_PATTERN
from livebingo.services.bingo import rooms


def test_health(client):
    res = client.get('/api/health')
    assert res.status_code == 200
    assert res.get_json() == {'status': 'healthy'}


def test_index(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'message' in res.get_json()


def test_state_of_missing_room(client):
    res = client.get('/api/rooms/NOPE00/state')
    assert res.status_code == 404
    assert res.get_json()['error'] == 'Room not found'


def test_state_snapshot_hides_cards(flask_app, client):
    room, _ = rooms.create_room('Hana', X_PATTERN, 'sid-host')
    code = room.code
    rooms.join_room(code, 'Alice', 'sid-alice')

    res = client.get(f'/api/rooms/{code.lower()}/state')
    assert res.status_code == 200
    state = res.get_json()
    assert state['roomId'] == code
    assert state['status'] == 'waiting'
    assert state['history'] == [] and state['currentNumber'] is None
    assert state['pattern'] == X_PATTERN
    assert state['winners'] == []
    players = {p['name']: p for p in state['players']}
    assert set(players) == {'Hana', 'Alice'}
    for p in state['players']:
        assert 'cardMatrix' not in p
    alice = players['Alice']
    assert alice['remaining'] == 4 and not alice['isHost']
