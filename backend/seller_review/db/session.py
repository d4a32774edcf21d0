from functools import lru_cache

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from seller_review.core.config import settings


@lru_cache
def get_engine() -> Engine:
    connect_args = {}
    if settings.DATABASE_URL.startswith("sqlite"):
        # API handlers run in a threadpool
        connect_args["check_same_thread"] = False
    return create_engine(
        settings.DATABASE_URL,
        echo=settings.DB_ECHO,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


@lru_cache
def get_sessionmaker() -> sessionmaker[Session]:
    return sessionmaker(
        bind=get_engine(),
        expire_on_commit=False,
        autoflush=False,
    )


def init_db() -> None:
    """Create missing tables. Existing tables are left as they are."""
    from seller_review.db.base import Base
    import seller_review.models  # noqa: F401  registers mappers

    Base.metadata.create_all(get_engine())
