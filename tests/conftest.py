import os
import sys
import logging
import pytest
import jwt

# Ensure the project root (containing the `geoduel` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from geoduel import create_app, db, socketio
from geoduel.services.match import get_coordinator
from geoduel.services.match.coordinator import MatchCoordinator
from geoduel.services.match.errors import PersistenceError
from geoduel.services.match.gateway import MatchRecord
from geoduel.services.match.rate_limit import FixedWindowRateLimiter
from geoduel.services.match.registry import ConnectionRegistry
from geoduel.services.match.scheduler import ScheduledTask
from geoduel.services.match.state import MatchStateStore, Question


JWT_SECRET = 'test-jwt-secret'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET = JWT_SECRET
    JWT_ALGORITHM = 'HS256'
    QUESTIONS_PER_MATCH = 2
    QUESTION_RESULTS_PAUSE_SEC = 0
    MIN_ANSWER_TIME_MS = 100
    ANSWER_RATE_LIMIT_WINDOW_MS = 1000
    ANSWER_RATE_LIMIT_MAX = 3
    FINALIZE_PERSIST_ATTEMPTS = 3
    FINALIZE_RETRY_DELAY_SEC = 0


def make_token(user_id, secret=JWT_SECRET):
    return jwt.encode({'userId': user_id}, secret, algorithm='HS256')


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import geoduel.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def seeded(flask_app):
    from geoduel.seed import seed_demo_data
    match = seed_demo_data()
    return {
        'match_id': match.id,
        'challenger_id': match.challenger_id,
        'opponent_id': match.opponent_id,
        'stranger_id': match.opponent_id + 1,
    }


@pytest.fixture()
def coordinator_for(flask_app):
    return get_coordinator(flask_app)


@pytest.fixture()
def sio_connect(flask_app):
    """Factory for authenticated Socket.IO test clients on /ws."""
    clients = []

    def _connect(user_id=None, auth=None):
        if auth is None and user_id is not None:
            auth = {'token': make_token(user_id)}
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/ws',
            auth=auth,
        )
        clients.append(test_client)
        return test_client

    yield _connect
    for test_client in clients:
        try:
            if test_client.is_connected('/ws'):
                test_client.disconnect(namespace='/ws')
        except Exception:
            pass


# ---- in-memory collaborators for coordinator unit tests ----

class FakeChannel:
    def __init__(self, identity, key=None):
        self.identity = identity
        self.key = key or f"sid-{identity}-{id(self)}"
        self.is_open = True
        self.sent = []

    def send(self, message):
        self.sent.append(message)

    def close(self):
        self.is_open = False

    def types(self):
        return [m['type'] for m in self.sent]

    def last(self, message_type):
        for message in reversed(self.sent):
            if message['type'] == message_type:
                return message
        return None

    def clear(self):
        self.sent.clear()


class InMemoryGateway:
    def __init__(self):
        self.matches = {}
        self.answers = []
        self.started = set()
        self.fail_answers = False
        self.complete_failures = 0
        self.complete_calls = 0

    def add_match(self, match_id, challenger_id, opponent_id, status='active', game_type='flags'):
        self.matches[match_id] = {
            'id': match_id,
            'challenger_id': challenger_id,
            'opponent_id': opponent_id,
            'game_type': game_type,
            'status': status,
            'challenger_score': 0,
            'opponent_score': 0,
            'winner_id': None,
        }

    def _record(self, row):
        return MatchRecord(**row)

    def find_active_match(self, match_id, user_id):
        row = self.matches.get(match_id)
        if not row or row['status'] != 'active' or user_id not in (row['challenger_id'], row['opponent_id']):
            return None
        return self._record(row)

    def mark_started(self, match_id):
        self.started.add(match_id)

    def record_answer(self, match_id, user_id, question_index, question, answer, is_correct, time_ms, points):
        if self.fail_answers:
            raise PersistenceError('answer log unavailable')
        self.answers.append((match_id, user_id, question_index, answer, is_correct, time_ms, points))

    def forfeit(self, match_id, leaver_id):
        row = self.matches.get(match_id)
        if not row or row['status'] != 'active':
            return None
        winner = row['opponent_id'] if row['challenger_id'] == leaver_id else row['challenger_id']
        row.update(status='completed', winner_id=winner)
        return winner

    def complete(self, match_id, scores, winner_id):
        self.complete_calls += 1
        if self.complete_failures > 0:
            self.complete_failures -= 1
            raise PersistenceError('write failed')
        row = self.matches[match_id]
        row.update(
            status='completed',
            winner_id=winner_id,
            challenger_score=scores.get(row['challenger_id'], 0),
            opponent_score=scores.get(row['opponent_id'], 0),
        )

    def touch_user(self, user_id):
        pass


class ManualScheduler:
    """Holds scheduled callbacks until the test runs them."""

    def __init__(self):
        self.pending = []

    def schedule(self, delay_sec, fn, *args, name='task'):
        task = ScheduledTask(name)
        task.delay_sec = delay_sec
        self.pending.append((task, fn, args))
        return task

    def run_pending(self):
        ran = 0
        while self.pending:
            task, fn, args = self.pending.pop(0)
            if task.cancelled:
                continue
            task.fired = True
            fn(*args)
            ran += 1
        return ran


class FrozenClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


QUESTIONS = [
    Question(prompt='https://flagcdn.com/w320/fr.png', correct_answer='France', options=['Peru', 'France', 'Japan', 'Kenya']),
    Question(prompt='https://flagcdn.com/w320/jp.png', correct_answer='Japan', options=['Japan', 'Norway', 'Egypt', 'India']),
]

ALICE, BOB, MALLORY = 1, 2, 99
MATCH_ID = 7


@pytest.fixture()
def clock():
    return FrozenClock()


@pytest.fixture()
def gateway():
    gw = InMemoryGateway()
    gw.add_match(MATCH_ID, ALICE, BOB)
    return gw


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def factory_calls():
    return []


@pytest.fixture()
def coordinator(gateway, scheduler, clock, factory_calls):
    def _factory(game_kind, count):
        factory_calls.append((game_kind, count))
        return list(QUESTIONS[:count])

    return MatchCoordinator(
        gateway=gateway,
        store=MatchStateStore(),
        registry=ConnectionRegistry(),
        rate_limiter=FixedWindowRateLimiter(window_ms=1000, quota=3, clock=clock),
        scheduler=scheduler,
        question_factory=_factory,
        questions_per_match=2,
        results_pause_sec=3.0,
        min_answer_time_ms=100,
        finalize_attempts=3,
        finalize_retry_delay_sec=0,
        logger=logging.getLogger('tests.coordinator'),
    )


@pytest.fixture()
def seated(coordinator):
    """Both players joined; returns their channels."""
    alice, bob = FakeChannel(ALICE), FakeChannel(BOB)
    coordinator.join(ALICE, MATCH_ID, alice)
    coordinator.join(BOB, MATCH_ID, bob)
    return alice, bob
