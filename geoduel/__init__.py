from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from geoduel.main import main
    flask_app.register_blueprint(main)

    from geoduel.api.multiplayer import multiplayer
    flask_app.register_blueprint(multiplayer, url_prefix='/api/multiplayer')

    # One set of match services per app instance
    from geoduel.services.match import init_match_server
    init_match_server(flask_app, socketio)

    from geoduel.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Bearer-token auth for the HTTP API
    from geoduel.auth import load_user_from_request
    login_manager.request_loader(load_user_from_request)

    @login_manager.user_loader
    def load_user(user_id):
        from geoduel.models import User
        return db.session.get(User, int(user_id))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from geoduel.seed import seed_demo_data
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            match = seed_demo_data()
            print(f'Database has been reset and seeded! Demo match id: {match.id}')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
