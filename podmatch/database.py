"""
Engine, session factory and declarative base for the podcast catalog.

DATABASE_URL points at SQLite locally and in tests, at managed Postgres in
production. Tables are created by the Alembic migrations under alembic/.
"""
import importlib

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from podmatch.config import DATABASE_URL

MODEL_MODULES = ('podcast', 'prospect', 'client', 'cache_entries')


class Base(DeclarativeBase):
    pass


def normalize_url(raw_url):
    """Rewrite the legacy postgres:// scheme that SQLAlchemy 2.x no longer accepts."""
    if raw_url.startswith('postgres://'):
        return 'postgresql://' + raw_url[len('postgres://'):]
    return raw_url


def engine_options(db_url):
    if db_url.startswith('sqlite'):
        # Thread-pool fan-outs share the engine with the request thread
        return {'connect_args': {'check_same_thread': False}}
    return {'pool_pre_ping': True, 'pool_size': 5, 'max_overflow': 10}


engine = create_engine(normalize_url(DATABASE_URL), **engine_options(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine)


def get_session():
    return SessionLocal()


def import_models():
    """Register every mapped class on Base.metadata."""
    for name in MODEL_MODULES:
        importlib.import_module(f'podmatch.models.{name}')
