"""
Database engine + session factory.

Always initializes: defaults to SQLite for local dev, Postgres in production.
get_session() always returns a real session.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from leadloop.config import DATABASE_URL


class Base(DeclarativeBase):
    pass


# Some hosts inject postgres:// but SQLAlchemy 2.x requires postgresql://
url = DATABASE_URL.replace('postgres://', 'postgresql://', 1)

# SQLite needs different engine kwargs than Postgres
if url.startswith('sqlite'):
    engine = create_engine(url, connect_args={'check_same_thread': False})
else:
    engine = create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)

SessionLocal = sessionmaker(bind=engine)


def get_session():
    """Return a new DB session."""
    return SessionLocal()


def init_db():
    """Create all tables. Used by local runs and the test fixtures."""
    # Importing each model module registers its table on Base.metadata
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
