"""Shared test fixtures."""
import pytest
from unittest.mock import patch
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from leadloop.database import Base


class FakeRedis:
    """Minimal in-memory Redis fake for circuit breaker state."""

    def __init__(self):
        self.get_store = {}
        self.hash_store = {}

    def get(self, key):
        return self.get_store.get(key)

    def set(self, key, value):
        self.get_store[key] = str(value)

    def incr(self, key):
        val = int(self.get_store.get(key, 0)) + 1
        self.get_store[key] = str(val)
        return val

    def delete(self, *keys):
        for k in keys:
            self.get_store.pop(k, None)
            self.hash_store.pop(k, None)

    def hset(self, key, field, value):
        self.hash_store.setdefault(key, {})[field] = value

    def hincrby(self, key, field, amount):
        h = self.hash_store.setdefault(key, {})
        h[field] = str(int(h.get(field, 0)) + amount)

    def hgetall(self, key):
        return dict(self.hash_store.get(key, {}))

    def pipeline(self):
        return FakePipeline(self)


class FakePipeline:
    """Fake Redis pipeline that applies queued ops on execute()."""

    def __init__(self, redis):
        self._redis = redis
        self._ops = []

    def set(self, key, value):
        self._ops.append(('set', key, value))
        return self

    def delete(self, *keys):
        self._ops.append(('delete', keys))
        return self

    def hincrby(self, key, field, amount):
        self._ops.append(('hincrby', key, field, amount))
        return self

    def hset(self, key, field, value):
        self._ops.append(('hset', key, field, value))
        return self

    def execute(self):
        for op in self._ops:
            if op[0] == 'set':
                self._redis.set(op[1], op[2])
            elif op[0] == 'delete':
                self._redis.delete(*op[1])
            elif op[0] == 'hincrby':
                self._redis.hincrby(op[1], op[2], op[3])
            elif op[0] == 'hset':
                self._redis.hset(op[1], op[2], op[3])
        self._ops = []


class SequenceRandom:
    """Deterministic random source: returns the given values in a cycle."""

    def __init__(self, *values):
        self.values = list(values) or [0.0]
        self.calls = 0

    def random(self):
        value = self.values[self.calls % len(self.values)]
        self.calls += 1
        return value


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created, shared across threads."""
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    import leadloop.models.query  # noqa: F401
    import leadloop.models.template  # noqa: F401
    import leadloop.models.entity  # noqa: F401
    import leadloop.models.search_run  # noqa: F401
    import leadloop.models.lead  # noqa: F401
    import leadloop.models.lead_event  # noqa: F401
    import leadloop.models.outreach_attempt  # noqa: F401
    import leadloop.models.scoring_weights  # noqa: F401
    import leadloop.models.conversion_pattern  # noqa: F401
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    """Session for arranging and asserting. Call expire_all() before re-reading."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(session_factory):
    """
    Route get_session() inside leadloop.services.db to the in-memory engine.

    The module binds get_session at import time, so the patch targets that
    binding. Each call gets its own session so close() in production code
    leaves the test connection alone.
    """
    with patch('leadloop.services.db.get_session', side_effect=lambda: session_factory()):
        yield session_factory


@pytest.fixture
def fake_redis():
    """In-memory Redis fake with dict-backed storage."""
    return FakeRedis()


@pytest.fixture(autouse=True)
def fake_breakers(fake_redis):
    """Every test gets fresh search / page_fetch / llm breakers on the fake Redis."""
    from leadloop.services import circuit_breaker
    saved = dict(circuit_breaker._registry)
    circuit_breaker._registry.clear()
    circuit_breaker.init_breakers(fake_redis)
    yield fake_redis
    circuit_breaker._registry.clear()
    circuit_breaker._registry.update(saved)


@pytest.fixture
def app(fake_redis):
    """Flask test app (no table creation on the local SQLite file)."""
    from leadloop import create_app
    from leadloop.services.circuit_breaker import init_breakers
    with patch('leadloop.database.init_db'):
        app = create_app()
    init_breakers(fake_redis)
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


@pytest.fixture
def make_query(db_session):
    """Factory fixture: inserts a Query row and returns it."""
    from leadloop.models.query import Query

    def _make(**overrides):
        defaults = dict(name='Test query', query='need a video editor budget', enabled=True)
        defaults.update(overrides)
        row = Query(**defaults)
        db_session.add(row)
        db_session.commit()
        return row
    return _make


@pytest.fixture
def make_template(db_session):
    """Factory fixture: inserts a Template row and returns it."""
    from leadloop.models.template import Template

    def _make(**overrides):
        defaults = dict(name='DM generic', body='Hey {name}, saw your post about {pain_1}. {order_link}', enabled=True)
        defaults.update(overrides)
        row = Template(**defaults)
        db_session.add(row)
        db_session.commit()
        return row
    return _make


@pytest.fixture
def make_lead(db_session):
    """Factory fixture: inserts a Lead row and returns it."""
    from leadloop.models.lead import Lead
    counter = {'n': 0}

    def _make(**overrides):
        counter['n'] += 1
        defaults = dict(
            canonical_hash=f'hash-{counter["n"]}',
            canonical_url=f'https://example.com/post/{counter["n"]}',
            title='Need a video editor ASAP',
            snippet='Looking for an editor, budget $500, hiring this week.',
            score=80,
            intent_depth=40,
            urgency_velocity=25,
            budget_signals=15,
            fit_precision=3,
            intent_class='BUYER',
            intent_confidence=0.9,
            status='OUTREACH_READY',
            pain_tags=['PAIN_DEADLINE'],
            service_tags=[],
        )
        defaults.update(overrides)
        row = Lead(**defaults)
        db_session.add(row)
        db_session.commit()
        return row
    return _make


@pytest.fixture
def seq_random():
    """Factory for deterministic random sources."""
    return SequenceRandom
