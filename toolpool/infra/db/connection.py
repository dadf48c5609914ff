"""Database engine creation."""
from sqlalchemy.engine import Engine
from sqlmodel import create_engine
from sqlmodel.pool import StaticPool


def _is_sqlite_memory(database_url: str) -> bool:
    return database_url in ("sqlite://", "sqlite:///") or ":memory:" in database_url


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine suited to the database behind ``database_url``.

    SQLite connections are shared across threads; an in-memory SQLite
    database lives on a single static connection so every session sees it.
    Server databases get a connection pool.
    """
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if _is_sqlite_memory(database_url):
            return create_engine(
                database_url,
                echo=echo,
                connect_args=connect_args,
                poolclass=StaticPool,
            )
        return create_engine(database_url, echo=echo, connect_args=connect_args)

    # Create engine with connection pooling
    return create_engine(
        database_url,
        echo=echo,
        pool_size=20,
        max_overflow=40,
        pool_pre_ping=True,
        pool_recycle=3600,
    )
