import time
from typing import Dict, List

from color_namer import socketio


def run_sweeps(app) -> Dict[str, object]:
    """Run both periodic sweeps once against the app's engine.

    - Marks players whose heartbeat is older than PLAYER_TIMEOUT_SEC as
      disconnected (skipping their picker turn)
    - Deletes games nobody is connected to and idle past IDLE_GAME_TIMEOUT_SEC
    """
    engine = app.extensions['game_engine']
    with app.app_context():
        expired = engine.expire_silent_players()
        evicted: List[str] = engine.evict_idle_games()
    if expired or evicted:
        app.logger.info(f"[sweep] timed_out={sum(len(v) for v in expired.values())} evicted={len(evicted)}")
    return {'timed_out': expired, 'evicted': evicted}


def start_sweeper(app) -> None:
    """Start the background sweep loop.

    - No-ops in TESTING mode unless ENABLE_SWEEPER_IN_TESTS is set
    - Player timeouts run every HEARTBEAT_SWEEP_SEC; idle-game eviction
      piggybacks on the same loop
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SWEEPER_IN_TESTS'):
        return
    if app.extensions.get('game_sweeper_started'):
        return
    app.extensions['game_sweeper_started'] = True

    interval = max(1, int(app.config.get('HEARTBEAT_SWEEP_SEC', 15)))
    app.logger.info(f"[sweeper-start] interval={interval}s")

    def _worker():
        while True:
            time.sleep(interval)
            try:
                run_sweeps(app)
            except Exception:
                # A failed pass must not stop later passes
                app.logger.exception("[sweep-failed]")

    socketio.start_background_task(_worker)
