import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///color_namer.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Session document backend: 'sql' (game table) or 'memory' (single process)
    GAME_STORE = os.environ.get('GAME_STORE', 'sql')
    # Minimum players to start a round
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    # Heartbeat silence before a connected player is marked disconnected (seconds)
    PLAYER_TIMEOUT_SEC = int(os.environ.get('PLAYER_TIMEOUT_SEC', '120'))
    # Games with nobody connected are evicted after this much inactivity (seconds)
    IDLE_GAME_TIMEOUT_SEC = int(os.environ.get('IDLE_GAME_TIMEOUT_SEC', '1800'))
    # How often the sweeper runs (seconds)
    HEARTBEAT_SWEEP_SEC = int(os.environ.get('HEARTBEAT_SWEEP_SEC', '15'))
    # Picker palette sizes per difficulty
    PALETTE_SIZE_EASY = int(os.environ.get('PALETTE_SIZE_EASY', '6'))
    PALETTE_SIZE_HARD = int(os.environ.get('PALETTE_SIZE_HARD', '12'))
    # Diagnostic update log length per game
    UPDATE_LOG_SIZE = int(os.environ.get('UPDATE_LOG_SIZE', '50'))
    # Retries for transient store failures in socket handlers
    STORE_RETRY_ATTEMPTS = int(os.environ.get('STORE_RETRY_ATTEMPTS', '3'))
    STORE_RETRY_BASE_MS = int(os.environ.get('STORE_RETRY_BASE_MS', '50'))
