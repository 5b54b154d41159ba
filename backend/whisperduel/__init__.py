import random

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

socketio = SocketIO(async_mode=None)

EXTENSION_KEY = 'whisperduel'


def create_app(config_class=Config, rng=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    # Module loggers live under the app logger ('whisperduel.*') and propagate to it
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One registry per process; every socket handler and route reaches it
    # through app.extensions
    from whisperduel.services.games.registry import RoomRegistry
    from whisperduel.services.games.dispatcher import GameDispatcher
    registry = RoomRegistry(
        min_players=int(flask_app.config.get('MIN_PLAYERS', 4)),
        max_players=int(flask_app.config.get('MAX_PLAYERS', 8)),
        rng=rng or random.Random(),
    )
    flask_app.extensions[EXTENSION_KEY] = GameDispatcher(registry)

    from whisperduel.main import main
    flask_app.register_blueprint(main)

    from whisperduel.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from whisperduel.socketio_events import register_socketio_handlers, ConnectionMap, CONNECTIONS_KEY
    flask_app.extensions[CONNECTIONS_KEY] = ConnectionMap()
    register_socketio_handlers(
        namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/ws'),
        testing=flask_app.config.get('TESTING', False),
    )

    @click.command('list-rooms')
    def list_rooms_command():
        """Prints every live room of this process."""
        for summary in get_dispatcher(flask_app).list_rooms():
            print(f"{summary['id']}\t{summary['name']}\t{summary['player_count']}\t{summary['phase']}")

    flask_app.cli.add_command(list_rooms_command)

    return flask_app


def get_dispatcher(flask_app):
    return flask_app.extensions[EXTENSION_KEY]


def shutdown_app(flask_app) -> None:
    """Drops all in-memory rooms; call once when the server stops."""
    get_dispatcher(flask_app).registry.shutdown()
