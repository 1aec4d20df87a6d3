from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from jgpnr.core.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # Request threads share the file database through FastAPI's threadpool.
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def begin_strict(db: Session) -> None:
    """
    Pin the isolation level for the transaction about to start on ``db``.

    Must be called before the first statement of the unit of work; once the
    session holds a connection the level can no longer change, so the call is
    a no-op in that case.
    """
    level = settings.TRANSACTION_ISOLATION_LEVEL
    if not level or db.in_transaction():
        return
    db.connection(execution_options={"isolation_level": level})
