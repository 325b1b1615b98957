import os


def _flag(name, default='0'):
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///livebingo.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS',
        'http://localhost:5173,http://127.0.0.1:5173',
    ).split(',') if o.strip()]
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/ws')
    # Seconds a dropped connection may take to rejoin before it counts as a leave
    DISCONNECT_GRACE_SEC = float(os.environ.get('DISCONNECT_GRACE_SEC', '3'))
    # Pause between persisting a draw and announcing it (client animation pacing)
    DRAW_REVEAL_DELAY_SEC = float(os.environ.get('DRAW_REVEAL_DELAY_SEC', '1.0'))
    # Rooms older than this are purged even if nobody tore them down
    ROOM_RETENTION_HOURS = int(os.environ.get('ROOM_RETENTION_HOURS', '24'))
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '6'))
    # Minimum card-holding players before the host may start
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '1'))
    # Classic single-winner mode: the first accepted bingo ends the game
    END_ON_FIRST_BINGO = _flag('END_ON_FIRST_BINGO')
    # Under TESTING, grace timers are only recorded unless this is set
    ENABLE_GRACE_TIMER_IN_TESTS = False
