"""Room store: persistence primitives for rooms and their rosters.

Every write that can race with another player's action is a guarded
statement (``UPDATE ... WHERE status = ...``) or an insert under a unique
constraint, never a save of a stale whole-room snapshot. Callers commit
nothing themselves; each primitive commits or rolls back on its own.
"""
from datetime import timedelta
import json
import random

from flask import current_app
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError

from livebingo import db
from livebingo.errors import IllegalState, NumbersExhausted, RoomNotFound, ValidationFailed
from livebingo.models import (
    Draw, MarkedCell, Player, Room, Winner, _utcnow, generate_room_code, name_key,
)
from .cards import BALL_MAX, BALL_MIN, FREE_INDEX

MAX_WRITE_ATTEMPTS = 5


def _log(message):
    try:
        current_app.logger.info(message)
    except RuntimeError:
        pass


def load_room(code):
    if not code:
        return None
    # Another connection may have written since this session last looked
    db.session.expire_all()
    return Room.query.filter_by(code=code.strip().upper()).first()


def require_room(code):
    room = load_room(code)
    if not room:
        raise RoomNotFound(code)
    return room


def load_player(player_id):
    if not player_id:
        return None
    return db.session.get(Player, player_id)


def insert_room(host_name, host_connection_id, pattern, code_length=6):
    """Create a room with its host; retries when the code is taken."""
    for _ in range(MAX_WRITE_ATTEMPTS):
        room = Room(
            code=generate_room_code(code_length),
            host_connection_id=host_connection_id,
            status='waiting',
            winning_pattern=json.dumps(list(pattern)),
        )
        host = Player(name=host_name, name_key=name_key(host_name),
                      connection_id=host_connection_id, is_host=True)
        room.players.append(host)
        db.session.add(room)
        try:
            db.session.commit()
            return room, host
        except IntegrityError:
            db.session.rollback()
            _log('[room-create] code collision, regenerating')
    raise IllegalState('Could not allocate a room code, try again')


def insert_player(room, name, connection_id, card=None, is_spectator=False):
    """Add a player; the (room, name_key) constraint rejects a name already seated."""
    player = Player(
        room_id=room.id,
        name=name,
        name_key=name_key(name),
        connection_id=connection_id,
        is_spectator=is_spectator,
        card_matrix=json.dumps(card) if card else None,
    )
    if card:
        player.marks.append(MarkedCell(cell_index=FREE_INDEX))
    db.session.add(player)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationFailed('That name is already taken in this room')
    return player


def transition_status(room, from_statuses, to_status):
    """Compare-and-set on the room status. Returns False if it lost the race."""
    result = db.session.execute(
        update(Room)
        .where(Room.id == room.id, Room.status.in_(list(from_statuses)))
        .values(status=to_status)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount == 1


def set_pattern_if_waiting(room, pattern):
    result = db.session.execute(
        update(Room)
        .where(Room.id == room.id, Room.status == 'waiting')
        .values(winning_pattern=json.dumps(list(pattern)))
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount == 1


def append_draw(room, rng=None):
    """Draw one number from the undrawn complement and append it.

    The bound is checked before sampling, and the unique constraints on
    (room, number) and (room, seq) reject a concurrent duplicate append.
    """
    rng = rng or random
    for _ in range(MAX_WRITE_ATTEMPTS):
        drawn = set(db.session.scalars(select(Draw.number).where(Draw.room_id == room.id)))
        if len(drawn) >= BALL_MAX - BALL_MIN + 1:
            raise NumbersExhausted('All numbers called!')
        pool = [n for n in range(BALL_MIN, BALL_MAX + 1) if n not in drawn]
        number = rng.choice(pool)
        last_seq = db.session.scalar(select(func.max(Draw.seq)).where(Draw.room_id == room.id)) or 0
        db.session.add(Draw(room_id=room.id, seq=last_seq + 1, number=number))
        try:
            db.session.commit()
            return number
        except IntegrityError:
            db.session.rollback()
            _log(f'[roll] room={room.code} contested draw, retrying')
    raise IllegalState('The draw was contested, try again')


def add_mark(player_id, cell_index):
    """Append a marked cell if absent. Returns True when a row was added."""
    db.session.add(MarkedCell(player_id=player_id, cell_index=cell_index))
    try:
        db.session.commit()
        return True
    except IntegrityError:
        db.session.rollback()
        return False


def _reset_marks(player_id):
    db.session.execute(
        delete(MarkedCell)
        .where(MarkedCell.player_id == player_id, MarkedCell.cell_index != FREE_INDEX)
        .execution_options(synchronize_session=False)
    )
    has_free = db.session.scalar(
        select(func.count(MarkedCell.id))
        .where(MarkedCell.player_id == player_id, MarkedCell.cell_index == FREE_INDEX)
    )
    if not has_free:
        db.session.add(MarkedCell(player_id=player_id, cell_index=FREE_INDEX))


def replace_card_if_waiting(room, player_id, card):
    """Swap a player's card and reset marks, only while the room waits."""
    waiting_room = select(Room.id).where(Room.id == room.id, Room.status == 'waiting')
    result = db.session.execute(
        update(Player)
        .where(Player.id == player_id, Player.room_id.in_(waiting_room))
        .values(card_matrix=json.dumps(card))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        return False
    _reset_marks(player_id)
    db.session.commit()
    return True


def deal_card_if_missing(player_id, card):
    result = db.session.execute(
        update(Player)
        .where(Player.id == player_id, Player.card_matrix.is_(None),
               Player.is_host.is_(False), Player.is_spectator.is_(False))
        .values(card_matrix=json.dumps(card))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        return False
    _reset_marks(player_id)
    db.session.commit()
    return True


def convert_spectator(player_id, connection_id, card):
    """Turn a spectator record into a card-holding player."""
    result = db.session.execute(
        update(Player)
        .where(Player.id == player_id, Player.is_spectator.is_(True))
        .values(is_spectator=False, card_matrix=json.dumps(card),
                connection_id=connection_id, connected=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        return False
    _reset_marks(player_id)
    db.session.commit()
    return True


def append_winner(room, player):
    """Conditionally append a winner. Returns the rank, or None if already listed."""
    for _ in range(MAX_WRITE_ATTEMPTS):
        exists = db.session.scalar(
            select(func.count(Winner.id))
            .where(Winner.room_id == room.id, Winner.player_name == player.name)
        )
        if exists:
            return None
        taken = db.session.scalar(select(func.count(Winner.id)).where(Winner.room_id == room.id)) or 0
        db.session.add(Winner(room_id=room.id, player_id=player.id,
                              player_name=player.name, rank=taken + 1))
        try:
            db.session.commit()
            return taken + 1
        except IntegrityError:
            # Either our name landed concurrently or another winner took the rank
            db.session.rollback()
    raise IllegalState('Could not record the win, try again')


def rebind_connection(room, player, connection_id):
    db.session.execute(
        update(Player)
        .where(Player.id == player.id)
        .values(connection_id=connection_id, connected=True)
        .execution_options(synchronize_session=False)
    )
    if player.is_host:
        db.session.execute(
            update(Room)
            .where(Room.id == room.id)
            .values(host_connection_id=connection_id)
            .execution_options(synchronize_session=False)
        )
    db.session.commit()


def mark_disconnected(player_id, connection_id):
    result = db.session.execute(
        update(Player)
        .where(Player.id == player_id, Player.connection_id == connection_id)
        .values(connected=False)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount == 1


def remove_player(player_id, connection_id=None):
    """Delete a player and their marks.

    With ``connection_id`` the delete only applies while the player is
    still bound to that connection, so a rejoin in between wins.
    """
    conditions = [Player.id == player_id]
    if connection_id is not None:
        conditions.append(Player.connection_id == connection_id)
    still_bound = db.session.scalar(select(func.count(Player.id)).where(*conditions))
    if not still_bound:
        return False
    db.session.execute(
        delete(MarkedCell)
        .where(MarkedCell.player_id == player_id)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(
        delete(Player).where(*conditions).execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        return False
    db.session.commit()
    return True


def reset_room(room, card_factory):
    """Clear draws and winners, reset every card holder, back to waiting.

    Returns the ids of players that were dealt a new card.
    """
    result = db.session.execute(
        update(Room)
        .where(Room.id == room.id)
        .values(status='waiting')
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        raise RoomNotFound(room.code)
    db.session.execute(delete(Draw).where(Draw.room_id == room.id).execution_options(synchronize_session=False))
    db.session.execute(delete(Winner).where(Winner.room_id == room.id).execution_options(synchronize_session=False))
    dealt = []
    player_ids = db.session.scalars(
        select(Player.id).where(Player.room_id == room.id, Player.is_host.is_(False),
                                Player.is_spectator.is_(False))
    ).all()
    for player_id in player_ids:
        db.session.execute(
            update(Player)
            .where(Player.id == player_id)
            .values(card_matrix=json.dumps(card_factory()))
            .execution_options(synchronize_session=False)
        )
        _reset_marks(player_id)
        dealt.append(player_id)
    db.session.commit()
    return dealt


def delete_room(room, host_connection_id=None):
    """Delete a room and everything hanging off it.

    With ``host_connection_id`` the teardown only happens while the host is
    still bound to that connection; returns False when a rejoin got there
    first.
    """
    room_id = room.id
    player_ids = select(Player.id).where(Player.room_id == room_id)
    try:
        if host_connection_id is not None:
            claimed = db.session.execute(
                update(Room)
                .where(Room.id == room_id, Room.host_connection_id == host_connection_id)
                .values(host_connection_id=None)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                db.session.rollback()
                return False
        db.session.execute(delete(MarkedCell).where(MarkedCell.player_id.in_(player_ids))
                           .execution_options(synchronize_session=False))
        db.session.execute(delete(Player).where(Player.room_id == room_id)
                           .execution_options(synchronize_session=False))
        db.session.execute(delete(Draw).where(Draw.room_id == room_id)
                           .execution_options(synchronize_session=False))
        db.session.execute(delete(Winner).where(Winner.room_id == room_id)
                           .execution_options(synchronize_session=False))
        db.session.execute(delete(Room).where(Room.id == room_id)
                           .execution_options(synchronize_session=False))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    db.session.expire_all()
    return True


def purge_expired_rooms(retention_hours=24):
    cutoff = _utcnow() - timedelta(hours=retention_hours)
    expired = Room.query.filter(Room.created_at < cutoff).all()
    for room in expired:
        _log(f'[purge] room={room.code} created_at={room.created_at.isoformat()}')
        delete_room(room)
    return len(expired)
