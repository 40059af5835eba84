from flask import Flask, current_app
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import random
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

REGISTRY_KEY = 'playroom.registry'


def get_registry():
    """The session registry shared by HTTP routes and socket handlers."""
    return current_app.extensions[REGISTRY_KEY]


def broadcast(event, payload, session_id):
    socketio.emit(event, payload, to=f"game:{session_id}", namespace='/ws')


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One registry per app: every delivery path must share its locks
    from playroom.services.games.registry import SessionRegistry
    from playroom.services.games.stores import SqlSessionStore, SqlStatsStore
    seed = flask_app.config.get('OPPONENT_RANDOM_SEED')
    flask_app.extensions[REGISTRY_KEY] = SessionRegistry(
        SqlSessionStore(),
        SqlStatsStore(),
        publisher=broadcast,
        code_length=int(flask_app.config.get('ROOM_CODE_LENGTH', 6)),
        max_code_attempts=int(flask_app.config.get('ROOM_CODE_MAX_ATTEMPTS', 10)),
        rng=random.Random(int(seed)) if seed not in (None, '') else None,
    )

    # Import and register blueprints here
    from playroom.main import main
    flask_app.register_blueprint(main)

    from playroom.api.games import games
    # Mount game routes under /api to match frontend API client
    flask_app.register_blueprint(games, url_prefix='/api/games')

    # Register Socket.IO event handlers
    from playroom.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Flask-Login user loader
    from playroom.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users
            users = ['testuser1', 'testuser2', 'testuser3']
            for u in users:
                user = User(username=u, email=f'{u}@example.com')
                user.set_password('password')
                db.session.add(user)

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('settle-session')
    @click.argument('session_id')
    def settle_session_command(session_id):
        """Retries settlement for a completed game."""
        with flask_app.app_context():
            report = get_registry().settle(session_id)
            print(f'Settled {len(report.win_rates)} account(s), '
                  f'{len(report.already_settled)} already settled, {len(report.failed)} failed.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(settle_session_command)

    return flask_app
