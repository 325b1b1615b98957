"""Connection bookkeeping and the disconnect grace period.

A Socket.IO sid lives only as long as one browser tab's connection; the
player id is what survives a refresh. ``ConnectionRegistry`` maps the
first to the second for the transport layer, and ``EvictionScheduler``
turns an unexpected disconnect into a leave only if nobody rebinds the
player before the deadline.
"""
from dataclasses import dataclass
import time
from typing import Callable, Dict, Optional, Tuple

from livebingo import socketio


@dataclass(frozen=True)
class Membership:
    room_code: str
    player_id: str


class ConnectionRegistry:
    def __init__(self):
        self._by_sid: Dict[str, Membership] = {}

    def bind(self, sid, room_code, player_id):
        self._by_sid[sid] = Membership(room_code=room_code, player_id=player_id)

    def lookup(self, sid) -> Optional[Membership]:
        return self._by_sid.get(sid)

    def release(self, sid) -> Optional[Membership]:
        return self._by_sid.pop(sid, None)

    def sids_for_player(self, player_id):
        return [sid for sid, m in self._by_sid.items() if m.player_id == player_id]

    def release_player(self, player_id):
        for sid in self.sids_for_player(player_id):
            self._by_sid.pop(sid, None)

    def release_room(self, room_code):
        sids = [sid for sid, m in self._by_sid.items() if m.room_code == room_code]
        for sid in sids:
            self._by_sid.pop(sid, None)
        return sids


class EvictionScheduler:
    """Deferred, cancelable evictions keyed by player id.

    Under TESTING the timers are only recorded (unless
    ENABLE_GRACE_TIMER_IN_TESTS is set); tests fire them with
    ``expire_all``.
    """

    def __init__(self):
        self._pending: Dict[str, Tuple[str, float, Callable[[str, str], None]]] = {}

    def is_pending(self, player_id):
        return player_id in self._pending

    def schedule(self, app, player_id, connection_id, on_expire):
        delay = max(0.0, float(app.config.get('DISCONNECT_GRACE_SEC', 3)))
        deadline = time.time() + delay
        self._pending[player_id] = (connection_id, deadline, on_expire)
        try:
            app.logger.info(f"[grace-set] player={player_id} sid={connection_id} delay={delay}s")
        except Exception:
            pass

        if app.config.get('TESTING') and not app.config.get('ENABLE_GRACE_TIMER_IN_TESTS'):
            return

        def _runner(pid: str, expected_deadline: float):
            sleep_for = max(0.0, expected_deadline - time.time())
            if sleep_for:
                socketio.sleep(sleep_for)
            self._fire(app, pid, expected_deadline)

        socketio.start_background_task(_runner, player_id, deadline)

    def cancel(self, player_id):
        return self._pending.pop(player_id, None) is not None

    def expire_all(self, app):
        for player_id, (_, deadline, _) in list(self._pending.items()):
            self._fire(app, player_id, deadline)

    def _fire(self, app, player_id, expected_deadline):
        entry = self._pending.get(player_id)
        if not entry or entry[1] != expected_deadline:
            return
        self._pending.pop(player_id, None)
        connection_id, _, on_expire = entry
        with app.app_context():
            app.logger.info(f"[grace-fire] player={player_id} sid={connection_id}")
            on_expire(player_id, connection_id)


class SessionState:
    """Per-app transport-side session state."""

    def __init__(self):
        self.registry = ConnectionRegistry()
        self.evictions = EvictionScheduler()
