from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
migrate = Migrate()
socketio = SocketIO(async_mode=None, async_handlers=False)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    from lobby.app_logging import configure_logging
    configure_logging(flask_app)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    migrate.init_app(flask_app, db)
    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from lobby.main import main
    flask_app.register_blueprint(main)

    from lobby.api.sessions import sessions
    flask_app.register_blueprint(sessions, url_prefix='/api/games')

    from lobby.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('sessions-reset')
    def sessions_reset_command():
        """Drops and recreates all session tables."""
        import lobby.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
        click.echo('Session tables have been reset.')

    @click.command('reap-sessions')
    def reap_sessions_command():
        """Runs one expiry sweep now."""
        from lobby.services.reaper import reaper
        with flask_app.app_context():
            reaped = reaper.sweep(flask_app)
        click.echo(f'Deleted {len(reaped)} expired session(s).')

    flask_app.cli.add_command(sessions_reset_command)
    flask_app.cli.add_command(reap_sessions_command)

    return flask_app
