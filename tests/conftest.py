"""Shared test fixtures."""
import os

os.environ.setdefault('DATABASE_URL', 'sqlite://')

import pytest
from contextlib import ExitStack
from unittest.mock import patch, MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from podmatch.database import Base, import_models

# Every module that binds get_session at import time
SESSION_USERS = (
    'podmatch.database',
    'podmatch.services.embeddings',
    'podmatch.services.similarity',
    'podmatch.services.cache_lookup',
    'podmatch.services.podcast_cache',
    'podmatch.pipeline.backfill',
    'podmatch.pipeline.outreach',
)


class FakeRedis:
    """Minimal in-memory Redis fake: hashes and pipelines, enough for circuit breakers."""

    def __init__(self):
        self.hash_store = {}

    def hgetall(self, key):
        return dict(self.hash_store.get(key, {}))

    def hset(self, key, field=None, value=None, mapping=None):
        h = self.hash_store.setdefault(key, {})
        if field is not None:
            h[field] = str(value)
        for k, v in (mapping or {}).items():
            h[k] = str(v)

    def hdel(self, key, *fields):
        h = self.hash_store.get(key, {})
        for f in fields:
            h.pop(f, None)

    def hincrby(self, key, field, amount=1):
        h = self.hash_store.setdefault(key, {})
        h[field] = str(int(h.get(field, 0)) + amount)
        return int(h[field])

    def delete(self, *keys):
        for k in keys:
            self.hash_store.pop(k, None)

    def pipeline(self):
        return FakePipeline(self)


class FakePipeline:
    """Records calls and replays them against the FakeRedis on execute()."""

    def __init__(self, redis):
        self._redis = redis
        self._ops = []

    def __getattr__(self, name):
        def _record(*args, **kwargs):
            self._ops.append((name, args, kwargs))
            return self
        return _record

    def execute(self):
        results = [getattr(self._redis, name)(*args, **kwargs) for name, args, kwargs in self._ops]
        self._ops = []
        return results


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared by every session in a test."""
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    import_models()
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    """Session for seeding and assertions. Seed data must be committed."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(session_factory):
    """Route every get_session() call to a fresh session on the test engine."""
    with ExitStack() as stack:
        for module in SESSION_USERS:
            stack.enter_context(patch(f'{module}.get_session', side_effect=session_factory))
        yield session_factory


@pytest.fixture(autouse=True)
def fake_redis():
    """Swap the shared Redis client for an in-memory fake and reset all breakers."""
    from podmatch.services import circuit_breaker

    fake = FakeRedis()
    circuit_breaker._registry.clear()
    with patch('podmatch.extensions.redis_client', fake):
        circuit_breaker.init_breakers(fake)
        yield fake
    circuit_breaker._registry.clear()


@pytest.fixture(autouse=True)
def mock_enqueue():
    """Background jobs never reach RQ in tests."""
    with patch('podmatch.extensions.enqueue_background') as mock:
        yield mock


@pytest.fixture
def mock_openai():
    """OpenAI client returning a fixed 1536-dim vector."""
    mock = MagicMock()
    mock.embeddings.create.return_value = make_embedding_response([0.1] * 1536)
    with patch('podmatch.extensions.openai_client', mock):
        yield mock


@pytest.fixture
def mock_anthropic():
    """Anthropic client; set .messages.create.return_value via anthropic_reply()."""
    mock = MagicMock()
    with patch('podmatch.extensions.anthropic_client', mock):
        yield mock


@pytest.fixture
def app():
    """Flask test app."""
    from podmatch import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


@pytest.fixture
def make_podcast(db_session):
    """Factory fixture — inserts and commits a Podcast row."""
    from podmatch.models.podcast import Podcast

    def _make(podscan_id, **overrides):
        defaults = dict(
            podscan_id=podscan_id,
            podcast_name=f'Podcast {podscan_id}',
            podcast_description=f'A show about {podscan_id}',
            audience_size=1000,
            itunes_rating=4.5,
            episode_count=120,
        )
        defaults.update(overrides)
        podcast = Podcast(**defaults)
        db_session.add(podcast)
        db_session.commit()
        return podcast
    return _make


def make_embedding_response(vector):
    response = MagicMock()
    item = MagicMock()
    item.embedding = vector
    response.data = [item]
    return response


def anthropic_reply(text):
    response = MagicMock()
    block = MagicMock()
    block.text = text
    response.content = [block]
    return response


@pytest.fixture
def embedding_response():
    return make_embedding_response


@pytest.fixture
def llm_reply():
    return anthropic_reply
