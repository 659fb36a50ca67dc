from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

def build_engine(database_url: str, *, pool_size: int = 5) -> Engine:
    if database_url.startswith("sqlite"):
        # SQLite ignores pool sizing; each worker thread opens its own connection.
        return create_engine(database_url, pool_pre_ping=True)
    return create_engine(database_url, pool_pre_ping=True, pool_size=pool_size, max_overflow=10)

def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    session: Session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
