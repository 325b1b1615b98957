"""Room state machine.

Each public function is one transition: it resolves the acting
connection to a player, checks the action against the room status and
the actor's role, applies the change through the store and returns what
the transport needs to announce. Rejections raise ``BingoError``
subclasses; nothing here emits.

Lifecycle::

    waiting --start--> playing --end / first bingo*--> ended
       ^                  |                              |
       +----- restart ----+------------------------------+

    (*) only with END_ON_FIRST_BINGO
"""
from dataclasses import dataclass, field
from typing import Optional

from flask import current_app

from livebingo.errors import IllegalState, NotAuthorized, SessionExpired, ValidationFailed
from livebingo.models import Player, Room, name_key
from . import store
from .cards import FREE_INDEX, cell_value, generate_card
from .patterns import remaining, satisfies


@dataclass
class JoinOutcome:
    kind: str  # joined, spectator, converted, rejoined
    room: Room
    player: Player


@dataclass
class Departure:
    room_code: str
    player_id: str
    player_name: str
    destroyed: bool
    room: Optional[Room] = None
    host_connection_id: Optional[str] = None


@dataclass
class MarkOutcome:
    room: Room
    player: Player
    changed: bool
    remaining: int


@dataclass
class ClaimOutcome:
    room: Room
    player: Player
    won: bool
    rank: Optional[int] = None
    duplicate: bool = False
    ended: bool = False


@dataclass
class RestartOutcome:
    room: Room
    dealt: list = field(default_factory=list)


def _config(key, default=None):
    return current_app.config.get(key, default)


def _log(message):
    current_app.logger.info(message)


# ---- Views ----

def player_remaining(room, player, pattern=None):
    if not player.holds_card:
        return None
    return remaining(player.marked_indices, room.pattern if pattern is None else pattern)


def roster(room):
    pattern = room.pattern
    players = []
    for p in room.players:
        entry = p.to_dict()
        entry['remaining'] = player_remaining(room, p, pattern)
        players.append(entry)
    return players


def room_snapshot(room):
    """The one authoritative view of a room, replayed wholesale on (re)join.

    Never contains cards; a viewer's own card travels separately.
    """
    return {
        'roomId': room.code,
        'status': room.status,
        'history': room.numbers_drawn,
        'currentNumber': room.current_number,
        'pattern': room.pattern,
        'winners': room.winner_names,
        'players': roster(room),
    }


def progress_updates(room):
    """(player_id, remaining) for every card holder, for the host sidebar."""
    pattern = room.pattern
    return [(p.id, player_remaining(room, p, pattern)) for p in room.players if p.holds_card]


# ---- Actor resolution ----

def _actor(room, connection_id):
    player = room.player_for_connection(connection_id)
    if not player:
        raise NotAuthorized('You are not part of this room')
    return player


def _require_host(room, connection_id):
    if not connection_id or room.host_connection_id != connection_id:
        raise NotAuthorized('Only the host can do that')
    return room.host


def _require_status(room, *statuses, message=None):
    if room.status not in statuses:
        raise IllegalState(message or f'Not allowed while the game is {room.status}')


def _require_card_holder(player):
    if player.is_host:
        raise IllegalState('The host does not play a card')
    if player.is_spectator:
        raise IllegalState('Spectators cannot play this round')
    if not player.card_matrix:
        raise IllegalState('You have not been dealt a card yet')


# ---- Transitions ----

def create_room(host_name, pattern, connection_id):
    if not pattern:
        raise ValidationFailed('Pick at least one cell for the winning pattern')
    store.purge_expired_rooms(_config('ROOM_RETENTION_HOURS', 24))
    room, host = store.insert_room(host_name, connection_id, pattern,
                                   code_length=_config('ROOM_CODE_LENGTH', 6))
    _log(f'[room-create] room={room.code} host={host.name} pattern={room.pattern}')
    return room, host


def join_room(room_code, player_name, connection_id, player_id=None):
    room = store.require_room(room_code)

    known = room.find_player(player_id=player_id) if player_id else None
    if known is None:
        known = room.player_for_connection(connection_id)

    if known is not None and known.is_spectator and room.status == 'waiting':
        store.convert_spectator(known.id, connection_id, generate_card())
        _log(f'[join] room={room.code} spectator {known.name} converted to player')
        room = store.require_room(room_code)
        return JoinOutcome('converted', room, room.find_player(player_id=known.id))

    if known is not None:
        room, player = rejoin_room(room_code, connection_id, player_id=known.id)
        return JoinOutcome('rejoined', room, player)

    # Winners and name-based rejoin both key on the display name
    if any(p.name_key == name_key(player_name) for p in room.players):
        raise ValidationFailed('That name is already taken in this room')

    if room.status != 'waiting':
        player = store.insert_player(room, player_name, connection_id, is_spectator=True)
        _log(f'[join] room={room.code} {player_name} joined as spectator ({room.status})')
        return JoinOutcome('spectator', room, player)

    player = store.insert_player(room, player_name, connection_id, card=generate_card())
    _log(f'[join] room={room.code} player={player_name} id={player.id}')
    return JoinOutcome('joined', room, player)


def rejoin_room(room_code, connection_id, player_id=None, name=None):
    """Rebind an existing player to a new connection."""
    room = store.require_room(room_code)
    player = room.find_player(player_id=player_id, name=name)
    if player is None:
        raise SessionExpired('Player session not found in this room.')
    store.rebind_connection(room, player, connection_id)
    _log(f'[rejoin] room={room.code} player={player.name} host={player.is_host}')
    return room, player


def leave_room(room_code, connection_id):
    room = store.require_room(room_code)
    player = _actor(room, connection_id)
    return _depart(room, player, reason='left')


def evict_player(player_id, connection_id):
    """Grace period expiry: leave on behalf of a connection that never came back.

    A no-op when the player has since been rebound to another connection.
    """
    player = store.load_player(player_id)
    if player is None or player.connection_id != connection_id:
        return None
    return _depart(player.room, player, reason='disconnected', connection_id=connection_id)


def _depart(room, player, reason, connection_id=None):
    code = room.code
    departed = Departure(room_code=code, player_id=player.id, player_name=player.name, destroyed=False)
    if player.is_host:
        if not store.delete_room(room, host_connection_id=connection_id):
            _log(f'[evict-skip] room={code} host rebound before teardown')
            return None
        departed.destroyed = True
        _log(f'[room-destroy] room={code} host {reason}')
        return departed

    if not store.remove_player(player.id, connection_id=connection_id):
        return None
    room = store.require_room(code)
    departed.room = room
    departed.host_connection_id = room.host_connection_id
    _log(f'[leave] room={code} player={departed.player_name} {reason}')
    return departed


def mark_disconnected(player_id, connection_id):
    return store.mark_disconnected(player_id, connection_id)


def start_game(room_code, connection_id):
    room = store.require_room(room_code)
    _require_host(room, connection_id)
    _require_status(room, 'waiting', message='The game has already started')

    contenders = [p for p in room.players if not p.is_host and not p.is_spectator]
    min_players = int(_config('MIN_PLAYERS', 1))
    if len(contenders) < min_players:
        raise IllegalState(f'At least {min_players} player(s) are required to start')

    dealt = []
    for p in contenders:
        if not p.card_matrix and store.deal_card_if_missing(p.id, generate_card()):
            dealt.append(p.id)

    if not store.transition_status(room, ['waiting'], 'playing'):
        raise IllegalState('The game has already started')
    room = store.require_room(room_code)
    _log(f'[start] room={room.code} players={len(contenders)} dealt={len(dealt)}')
    return room, dealt


def roll_number(room_code, connection_id, rng=None):
    room = store.require_room(room_code)
    _require_host(room, connection_id)
    _require_status(room, 'playing', message='The game is not in progress')
    number = store.append_draw(room, rng=rng)
    room = store.require_room(room_code)
    _log(f'[roll] room={room.code} number={number} count={len(room.draws)}')
    return room, number


def mark_number(room_code, connection_id, number, cell_index):
    room = store.require_room(room_code)
    player = _actor(room, connection_id)
    _require_status(room, 'playing', message='The game is not in progress')
    _require_card_holder(player)

    if number not in room.numbers_drawn:
        raise ValidationFailed("That number hasn't been called yet!")
    if cell_index == FREE_INDEX or cell_value(player.card, cell_index) != number:
        raise ValidationFailed('Cheating detected! Number mismatch.')

    changed = False
    if cell_index not in player.marked_indices:
        changed = store.add_mark(player.id, cell_index)
        room = store.require_room(room_code)
        player = room.find_player(player_id=player.id)
    return MarkOutcome(room, player, changed, player_remaining(room, player))


def request_shuffle(room_code, connection_id):
    room = store.require_room(room_code)
    player = _actor(room, connection_id)
    _require_status(room, 'waiting', message='Cards can only be shuffled before the game starts')
    if player.is_host or player.is_spectator:
        raise IllegalState('You do not hold a card')
    card = generate_card()
    if not store.replace_card_if_waiting(room, player.id, card):
        raise IllegalState('Cards can only be shuffled before the game starts')
    return card


def kick_player(room_code, connection_id, target_id):
    room = store.require_room(room_code)
    _require_host(room, connection_id)
    target = room.find_player(player_id=target_id)
    if target is None:
        raise ValidationFailed('No such player in this room')
    if target.is_host:
        raise ValidationFailed('The host cannot be kicked')
    target_connection = target.connection_id
    target_name = target.name
    if not store.remove_player(target.id):
        raise ValidationFailed('No such player in this room')
    room = store.require_room(room_code)
    _log(f'[kick] room={room.code} player={target_name}')
    return room, target_id, target_connection


def update_pattern(room_code, connection_id, pattern):
    room = store.require_room(room_code)
    _require_host(room, connection_id)
    if not pattern:
        raise ValidationFailed('Pick at least one cell for the winning pattern')
    _require_status(room, 'waiting', message='The pattern is locked once the game starts')
    if not store.set_pattern_if_waiting(room, pattern):
        raise IllegalState('The pattern is locked once the game starts')
    room = store.require_room(room_code)
    _log(f'[pattern] room={room.code} pattern={room.pattern}')
    return room


def claim_bingo(room_code, connection_id):
    room = store.require_room(room_code)
    player = _actor(room, connection_id)
    _require_status(room, 'playing', message='The game is not in progress')
    _require_card_holder(player)

    if player.name in room.winner_names:
        return ClaimOutcome(room, player, won=True, duplicate=True)

    pattern = room.pattern
    if not pattern or not satisfies(player.marked_indices, pattern):
        _log(f'[bingo] room={room.code} false claim by {player.name}')
        return ClaimOutcome(room, player, won=False)

    rank = store.append_winner(room, player)
    if rank is None:
        return ClaimOutcome(store.require_room(room_code), player, won=True, duplicate=True)

    ended = False
    if _config('END_ON_FIRST_BINGO', False):
        ended = store.transition_status(room, ['playing'], 'ended')
    room = store.require_room(room_code)
    _log(f'[bingo] room={room.code} winner={player.name} rank={rank}')
    return ClaimOutcome(room, room.find_player(player_id=player.id), won=True, rank=rank, ended=ended)


def end_game(room_code, connection_id):
    room = store.require_room(room_code)
    _require_host(room, connection_id)
    if not store.transition_status(room, ['playing'], 'ended'):
        raise IllegalState('The game is not in progress')
    room = store.require_room(room_code)
    _log(f'[end] room={room.code} winners={room.winner_names}')
    return room


def restart_game(room_code, connection_id):
    room = store.require_room(room_code)
    _require_host(room, connection_id)
    _require_status(room, 'playing', 'ended', message='There is no game to restart yet')
    dealt = store.reset_room(room, generate_card)
    room = store.require_room(room_code)
    _log(f'[restart] room={room.code} dealt={len(dealt)}')
    return RestartOutcome(room, dealt)
