import pytest

from livebingo import events as ev
from livebingo.errors import ValidationFailed


def test_create_room_payload_uses_camel_case_and_normalizes_pattern():
    payload = ev.parse_client_event('create_room', {'hostName': '  Hana ', 'winningPattern': [24, 0, 12, 0]})
    assert payload.host_name == 'Hana'
    assert payload.winning_pattern == [0, 12, 24]
    assert payload.v == ev.PROTOCOL_VERSION


def test_create_room_rejects_empty_pattern():
    with pytest.raises(ValidationFailed):
        ev.parse_client_event('create_room', {'hostName': 'Hana', 'winningPattern': []})


def test_room_code_is_upper_cased():
    payload = ev.parse_client_event('start_game', {'roomId': ' ab12cd '})
    assert payload.room_id == 'AB12CD'


@pytest.mark.parametrize('data', [
    {'roomId': 'ABC123', 'number': 0, 'cellIndex': 3},
    {'roomId': 'ABC123', 'number': 76, 'cellIndex': 3},
    {'roomId': 'ABC123', 'number': 5, 'cellIndex': 25},
    {'roomId': 'ABC123', 'number': 'five', 'cellIndex': 3},
    {'number': 5, 'cellIndex': 3},
])
def test_mark_number_bounds(data):
    with pytest.raises(ValidationFailed):
        ev.parse_client_event('mark_number', data)


@pytest.mark.parametrize('name', ['', '   ', '<script>', 'x' * 25, 'tab\tname'])
def test_player_names_are_validated(name):
    with pytest.raises(ValidationFailed):
        ev.parse_client_event('join_room', {'roomId': 'ABC123', 'playerName': name})


def test_rejoin_needs_an_identity():
    with pytest.raises(ValidationFailed):
        ev.parse_client_event('rejoin_room', {'roomId': 'ABC123', 'player': {}})
    payload = ev.parse_client_event('rejoin_room', {'roomId': 'ABC123', 'player': {'name': 'Alice'}})
    assert payload.player.name == 'Alice' and payload.player.id is None


def test_unknown_events_and_versions_are_refused():
    with pytest.raises(ValidationFailed):
        ev.parse_client_event('drop_tables', {})
    with pytest.raises(ValidationFailed):
        ev.parse_client_event('start_game', {'roomId': 'ABC123', 'v': 2})
    with pytest.raises(ValidationFailed):
        ev.parse_client_event('start_game', 'ABC123')


def test_server_events_dump_with_wire_names():
    assert ev.UpdatePlayerProgress(player_id='p1', remaining=3).payload() == {'playerId': 'p1', 'remaining': 3}
    assert ev.MarkSuccess(cell_index=6).payload() == {'cellIndex': 6}
    assert ev.PlayerWon(winner='Alice', winners=['Alice'], rank=1).EVENT == 'player_won'


@pytest.mark.parametrize('pattern', [[True, 4], ['3', 4], [1.0, 4]])
def test_pattern_cells_must_be_real_integers(pattern):
    with pytest.raises(ValidationFailed):
        ev.parse_client_event('create_room', {'hostName': 'Hana', 'winningPattern': pattern})
    with pytest.raises(ValidationFailed):
        ev.parse_client_event('update_pattern', {'roomId': 'ABC123', 'pattern': pattern})
