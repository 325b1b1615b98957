from functools import wraps

from flask import current_app, request
from flask_socketio import close_room, disconnect, join_room, leave_room
from sqlalchemy.exc import SQLAlchemyError

from livebingo import db, socketio
from livebingo import events as ev
from livebingo.errors import BingoError, RoomNotFound, SessionExpired
from livebingo.services.bingo import rooms, store

HOST_LEFT_MESSAGE = 'The host has left the game. The room is now closed.'
HOST_DROPPED_MESSAGE = 'The host has disconnected. The room is now closed.'


def _get_sid() -> str:
    return request.sid  # type: ignore[attr-defined]


def _namespace():
    return current_app.config.get('SOCKETIO_NAMESPACE', '/ws')


def _sessions():
    return current_app.extensions['livebingo_sessions']


def _send(event: ev.ServerEvent, to) -> None:
    if not to:
        return
    socketio.emit(event.EVENT, event.payload(), to=to, namespace=_namespace())


def _report(exc: BingoError, sid: str) -> None:
    """Rejections only ever go back to the connection that caused them."""
    if isinstance(exc, RoomNotFound):
        _send(ev.RoomNotFoundNotice(message=exc.message), sid)
    elif isinstance(exc, SessionExpired):
        _send(ev.SessionExpiredNotice(message=exc.message), sid)
    else:
        _send(ev.ActionError(message=exc.message, code=exc.code), sid)


def game_event(name):
    """Validate the payload against the wire model, then run the handler."""
    def decorator(fn):
        @wraps(fn)
        def handler(data=None):
            sid = _get_sid()
            try:
                payload = ev.parse_client_event(name, data)
                return fn(payload, sid)
            except BingoError as exc:
                current_app.logger.info(f"[rejected] event={name} sid={sid} code={exc.code} {exc.message}")
                _report(exc, sid)
            except SQLAlchemyError:
                db.session.rollback()
                current_app.logger.exception(f"[store-error] event={name} sid={sid}")
                _send(ev.ActionError(message='Something went wrong, try again', code='internal'), sid)
        handler.event_name = name
        return handler
    return decorator


# ---- Broadcast helpers ----

def _broadcast_roster(room) -> None:
    _send(ev.UpdatePlayerList(players=rooms.roster(room)), room.code)


def _send_progress(room, updates=None) -> None:
    """Per-player remaining counts go to the host only."""
    for player_id, remaining in (rooms.progress_updates(room) if updates is None else updates):
        _send(ev.UpdatePlayerProgress(player_id=player_id, remaining=remaining), room.host_connection_id)


def _send_card(player) -> None:
    if player is not None and player.card:
        _send(ev.CardShuffled(matrix=player.card), player.connection_id)


def _announce_departure(departure, destroyed_message, left_message) -> None:
    sessions = _sessions()
    sessions.evictions.cancel(departure.player_id)
    if departure.destroyed:
        _send(ev.RoomDestroyed(message=destroyed_message), departure.room_code)
        close_room(departure.room_code, namespace=_namespace())
        sessions.registry.release_room(departure.room_code)
        return

    sessions.registry.release_player(departure.player_id)
    room = departure.room
    _broadcast_roster(room)
    _send(ev.PlayerLeft(message=left_message, player_id=departure.player_id), departure.host_connection_id)
    if room.status == 'playing':
        # Keep the host's sidebar from falling back to "ready" for players with marks
        _send_progress(room)


def _replay_state(room, player, sid) -> None:
    """Send one full snapshot to a (re)joining connection."""
    state = rooms.room_snapshot(room)
    if player.is_spectator:
        _send(ev.SpectatorJoined(room_id=room.code, player=player.to_dict(), state=state), sid)
    else:
        _send(ev.RoomJoined(room_id=room.code, player=player.to_dict(include_card=True),
                            state=state, rejoined=True), sid)
    _broadcast_roster(room)
    if player.is_host and room.status != 'waiting':
        _send_progress(room)


def _expire_connection(player_id: str, connection_id: str) -> None:
    """Grace period ran out without a rejoin."""
    try:
        departure = rooms.evict_player(player_id, connection_id)
    except BingoError as exc:
        current_app.logger.info(f"[evict-skip] player={player_id} {exc.message}")
        return
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(f"[evict-error] player={player_id} sid={connection_id}")
        return
    if departure is None:
        current_app.logger.info(f"[evict-skip] player={player_id} rebound or gone")
        return
    current_app.logger.info(f"[evict] room={departure.room_code} player={departure.player_name}")
    _announce_departure(departure, HOST_DROPPED_MESSAGE, 'A player disconnected.')


# ---- Handlers ----

@game_event('create_room')
def handle_create_room(payload: ev.CreateRoom, sid: str):
    room, host = rooms.create_room(payload.host_name, payload.winning_pattern, sid)
    join_room(room.code)
    _sessions().registry.bind(sid, room.code, host.id)
    _send(ev.RoomCreated(room_id=room.code, player=host.to_dict(), state=rooms.room_snapshot(room)), sid)


@game_event('join_room')
def handle_join_room(payload: ev.JoinRoom, sid: str):
    outcome = rooms.join_room(payload.room_id, payload.player_name, sid, player_id=payload.player_id)
    room, player = outcome.room, outcome.player
    sessions = _sessions()
    sessions.evictions.cancel(player.id)
    sessions.registry.release_player(player.id)
    sessions.registry.bind(sid, room.code, player.id)
    join_room(room.code)

    if outcome.kind == 'rejoined':
        _replay_state(room, player, sid)
        return
    if outcome.kind == 'spectator':
        _send(ev.SpectatorJoined(room_id=room.code, player=player.to_dict(),
                                 state=rooms.room_snapshot(room)), sid)
    else:
        _send(ev.RoomJoined(room_id=room.code, player=player.to_dict(include_card=True),
                            state=rooms.room_snapshot(room)), sid)
    _broadcast_roster(room)


@game_event('rejoin_room')
def handle_rejoin_room(payload: ev.RejoinRoom, sid: str):
    room, player = rooms.rejoin_room(payload.room_id, sid, player_id=payload.player.id, name=payload.player.name)
    sessions = _sessions()
    sessions.evictions.cancel(player.id)
    sessions.registry.release_player(player.id)
    sessions.registry.bind(sid, room.code, player.id)
    join_room(room.code)
    _replay_state(room, player, sid)


@game_event('leave_room')
def handle_leave_room(payload: ev.LeaveRoom, sid: str):
    departure = rooms.leave_room(payload.room_id, sid)
    leave_room(payload.room_id)
    _sessions().registry.release(sid)
    if departure is not None:
        _announce_departure(departure, HOST_LEFT_MESSAGE, 'A player has left the game.')


def handle_disconnect(reason=None):
    # Not a leave yet: the tab may be reloading. Evict only after the grace period.
    sid = _get_sid()
    sessions = _sessions()
    membership = sessions.registry.release(sid)
    if not membership:
        return
    try:
        if rooms.mark_disconnected(membership.player_id, sid):
            room = store.load_room(membership.room_code)
            if room:
                _broadcast_roster(room)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(f"[disconnect] sid={sid} could not flag player")
    sessions.evictions.schedule(current_app._get_current_object(), membership.player_id, sid,
                                _expire_connection)


@game_event('start_game')
def handle_start_game(payload: ev.StartGame, sid: str):
    room, dealt = rooms.start_game(payload.room_id, sid)
    for player_id in dealt:
        _send_card(room.find_player(player_id=player_id))
    _send(ev.GameStarted(status=room.status, pattern=room.pattern, winners=room.winner_names), room.code)
    _send_progress(room)


@game_event('roll_number')
def handle_roll_number(payload: ev.RollNumber, sid: str):
    room, number = rooms.roll_number(payload.room_id, sid)
    delay = float(current_app.config.get('DRAW_REVEAL_DELAY_SEC', 0) or 0)
    if delay > 0:
        socketio.sleep(delay)
    _send(ev.NumberRolled(number=number, history=room.numbers_drawn), room.code)


@game_event('mark_number')
def handle_mark_number(payload: ev.MarkNumber, sid: str):
    outcome = rooms.mark_number(payload.room_id, sid, payload.number, payload.cell_index)
    if outcome.changed:
        _send_progress(outcome.room, [(outcome.player.id, outcome.remaining)])
    _send(ev.MarkSuccess(cell_index=payload.cell_index), sid)


@game_event('request_shuffle')
def handle_request_shuffle(payload: ev.RequestShuffle, sid: str):
    card = rooms.request_shuffle(payload.room_id, sid)
    _send(ev.CardShuffled(matrix=card), sid)


@game_event('kick_player')
def handle_kick_player(payload: ev.KickPlayer, sid: str):
    room, target_id, target_sid = rooms.kick_player(payload.room_id, sid, payload.target_id)
    sessions = _sessions()
    sessions.evictions.cancel(target_id)
    live_sids = sessions.registry.sids_for_player(target_id)
    sessions.registry.release_player(target_id)
    for target in live_sids or ([target_sid] if target_sid else []):
        _send(ev.Kicked(), target)
        leave_room(room.code, sid=target, namespace=_namespace())
    _broadcast_roster(room)
    for target in live_sids:
        disconnect(sid=target, namespace=_namespace())


@game_event('update_pattern')
def handle_update_pattern(payload: ev.UpdatePattern, sid: str):
    room = rooms.update_pattern(payload.room_id, sid, payload.pattern)
    return {'ok': True, 'pattern': room.pattern}


@game_event('claim_bingo')
def handle_claim_bingo(payload: ev.ClaimBingo, sid: str):
    outcome = rooms.claim_bingo(payload.room_id, sid)
    room = outcome.room
    if not outcome.won:
        # Public on purpose: false claims are announced to the whole room
        _send(ev.FalseBingo(name=outcome.player.name), room.code)
        return
    if outcome.duplicate:
        return
    _send(ev.PlayerWon(winner=outcome.player.name, winners=room.winner_names, rank=outcome.rank), room.code)
    if outcome.ended:
        _send(ev.GameOver(winners=room.winner_names), room.code)


@game_event('end_game')
def handle_end_game(payload: ev.EndGame, sid: str):
    room = rooms.end_game(payload.room_id, sid)
    _send(ev.GameOver(winners=room.winner_names), room.code)


@game_event('restart_game')
def handle_restart_game(payload: ev.RestartGame, sid: str):
    outcome = rooms.restart_game(payload.room_id, sid)
    room = outcome.room
    has_spectators = any(p.is_spectator for p in room.players)
    _send(ev.GameReset(message='New Game Started!', players=rooms.roster(room),
                       state=rooms.room_snapshot(room), can_join=has_spectators), room.code)
    for player_id in outcome.dealt:
        _send_card(room.find_player(player_id=player_id))


GAME_HANDLERS = (
    handle_create_room,
    handle_join_room,
    handle_rejoin_room,
    handle_leave_room,
    handle_start_game,
    handle_roll_number,
    handle_mark_number,
    handle_request_shuffle,
    handle_kick_player,
    handle_update_pattern,
    handle_claim_bingo,
    handle_end_game,
    handle_restart_game,
)


def register_socketio_handlers(namespace: str = '/ws') -> None:
    """Register every game event on ``namespace``."""
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    for handler in GAME_HANDLERS:
        socketio.on_event(handler.event_name, handler, namespace=namespace)
