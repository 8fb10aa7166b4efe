from contextlib import contextmanager

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session


def create_db_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        # in-memory sqlite must share one connection across threads
        return create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,      # checks dead connections
        pool_recycle=1800        # refresh every 30 min
    )


def create_db_and_tables(engine: Engine):
    import app.models  # noqa: F401  registers every table on the metadata
    SQLModel.metadata.create_all(engine)


def get_session(request: Request):
    with Session(request.app.state.engine) as session:
        yield session


@contextmanager
def transaction(session: Session):
    """
    Commit everything written inside the block, or roll all of it back.
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
