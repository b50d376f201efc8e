from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # FastAPI runs sync endpoints in a threadpool
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    **_engine_kwargs(settings.DATABASE_URL),
)

SessionLocal = sessionmaker(
    engine,
    expire_on_commit=False,
    autoflush=False,
)


def get_session() -> Generator[Session, None, None]:
    with SessionLocal() as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
