"""Real-time match services: connection registry, answer rate limiting,
match state, scheduling and the coordinator that ties them together.

Nothing here is a module-level singleton; ``init_match_server`` builds one
set of services per Flask app and stores it under ``app.extensions``.
"""

from .coordinator import MatchCoordinator
from .gateway import SqlMatchGateway
from .questions import generate_match_questions
from .rate_limit import FixedWindowRateLimiter
from .registry import ConnectionRegistry
from .scheduler import BackgroundScheduler
from .state import MatchStateStore


EXTENSION_KEY = 'match_coordinator'


def init_match_server(app, socketio) -> MatchCoordinator:
    cfg = app.config
    testing = bool(cfg.get('TESTING'))
    scheduler = BackgroundScheduler(socketio, app, inline=testing)
    limiter = FixedWindowRateLimiter(
        window_ms=int(cfg.get('ANSWER_RATE_LIMIT_WINDOW_MS', 1000)),
        quota=int(cfg.get('ANSWER_RATE_LIMIT_MAX', 3)),
        retention_ms=int(cfg.get('RATE_LIMIT_RETENTION_SEC', 60)) * 1000,
    )
    coordinator = MatchCoordinator(
        gateway=SqlMatchGateway(app),
        store=MatchStateStore(),
        registry=ConnectionRegistry(),
        rate_limiter=limiter,
        scheduler=scheduler,
        question_factory=generate_match_questions,
        questions_per_match=int(cfg.get('QUESTIONS_PER_MATCH', 10)),
        results_pause_sec=float(cfg.get('QUESTION_RESULTS_PAUSE_SEC', 3)),
        min_answer_time_ms=int(cfg.get('MIN_ANSWER_TIME_MS', 100)),
        finalize_attempts=int(cfg.get('FINALIZE_PERSIST_ATTEMPTS', 3)),
        finalize_retry_delay_sec=float(cfg.get('FINALIZE_RETRY_DELAY_SEC', 0.5)),
        sleep=socketio.sleep,
        logger=app.logger,
    )
    scheduler.start_periodic(
        int(cfg.get('RATE_LIMIT_SWEEP_SEC', 60)),
        limiter.sweep,
        name='rate-limit-sweep',
    )
    app.extensions[EXTENSION_KEY] = coordinator
    return coordinator


def get_coordinator(app) -> MatchCoordinator:
    return app.extensions[EXTENSION_KEY]
