from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS', '*')

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Transport-side session state: sid -> player, pending grace evictions
    from livebingo.services.bingo.sessions import SessionState
    flask_app.extensions['livebingo_sessions'] = SessionState()

    from livebingo.main import main
    flask_app.register_blueprint(main)

    from livebingo.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api')

    from livebingo.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/ws'))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates every table."""
        import livebingo.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('rooms-purge')
    def rooms_purge_command():
        """Deletes rooms older than the retention window."""
        from livebingo.services.bingo.store import purge_expired_rooms
        with flask_app.app_context():
            removed = purge_expired_rooms(flask_app.config.get('ROOM_RETENTION_HOURS', 24))
            print(f'Purged {removed} expired room(s).')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(rooms_purge_command)

    return flask_app
