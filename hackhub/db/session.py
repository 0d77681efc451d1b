from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from hackhub.core.config import DATABASE_URL, DB_POOL_SIZE, DB_POOL_TIMEOUT


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": DB_POOL_SIZE,
        "pool_timeout": DB_POOL_TIMEOUT,
        "pool_pre_ping": True,
    }


engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)
