from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def build_engine(flask_app):
    """Wire the game engine to the configured store and the Socket.IO rooms."""
    from color_namer.services.games.clues import WordListClueValidator
    from color_namer.services.games.engine import GameEngine
    from color_namer.services.games.stores import build_store
    from color_namer.socketio_events import SocketIOTransport

    cfg = flask_app.config
    store, update_log = build_store(cfg.get('GAME_STORE', 'sql'), int(cfg.get('UPDATE_LOG_SIZE', 50)))
    return GameEngine(
        store,
        SocketIOTransport(socketio),
        update_log=update_log,
        clue_validator=WordListClueValidator(),
        min_players=int(cfg.get('MIN_PLAYERS', 2)),
        palette_sizes={
            'easy': int(cfg.get('PALETTE_SIZE_EASY', 6)),
            'hard': int(cfg.get('PALETTE_SIZE_HARD', 12)),
        },
        player_timeout=float(cfg.get('PLAYER_TIMEOUT_SEC', 120)),
        idle_timeout=float(cfg.get('IDLE_GAME_TIMEOUT_SEC', 1800)),
        logger=flask_app.logger,
    )


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Import models so the tables are known to SQLAlchemy and Alembic
    from color_namer import models  # noqa: F401

    flask_app.extensions['game_engine'] = build_engine(flask_app)

    from color_namer.main import main
    flask_app.register_blueprint(main)

    from color_namer.api.games import games
    # Mount game routes under /api to match frontend API client
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from color_namer.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from color_namer.services.games.scheduler import run_sweeps, start_sweeper
    start_sweeper(flask_app)

    @click.command('sweep-games')
    def sweep_games_command():
        """Time out silent players and evict idle games once."""
        outcome = run_sweeps(flask_app)
        timed_out = sum(len(ids) for ids in outcome['timed_out'].values())
        print(f"Timed out {timed_out} player(s); evicted {len(outcome['evicted'])} game(s).")

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the game tables."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    flask_app.cli.add_command(sweep_games_command)
    flask_app.cli.add_command(db_reset_command)

    return flask_app
