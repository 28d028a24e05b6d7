import logging

from flask import Flask, current_app
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

socketio = SocketIO(async_mode=None)


def get_room_service():
    """The RoomService owned by the current app."""
    return current_app.extensions['matchup']


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(getattr(logging, flask_app.config.get('LOG_LEVEL', 'INFO'), logging.INFO))

    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One in-memory registry per app; sessions never outlive the process
    from matchup.services.rooms import RoomService, SessionRegistry
    flask_app.extensions['matchup'] = RoomService(
        SessionRegistry(code_length=flask_app.config.get('ROOM_CODE_LENGTH', 6))
    )

    from matchup.main import main
    flask_app.register_blueprint(main)

    from matchup.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from matchup.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    return flask_app
