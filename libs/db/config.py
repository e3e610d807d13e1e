from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from libs.common.config import get_settings

settings = get_settings()


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def _enable_sqlite_transactions(engine: AsyncEngine) -> None:
    """Make SQLite honour foreign keys, SAVEPOINTs and writer serialization.

    pysqlite/aiosqlite manage BEGIN themselves, which breaks SAVEPOINT; take
    over BEGIN and grab the write lock up front so concurrent writers queue on
    the busy timeout instead of failing mid-transaction.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        # built-in lower() only folds ASCII
        dbapi_connection.create_function(
            "lower", 1, _unicode_lower, deterministic=True
        )

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine for ``database_url``."""
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        engine = create_async_engine(
            url,
            echo=echo,
            connect_args={"timeout": 30},
        )
        _enable_sqlite_transactions(engine)
        return engine

    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,  # Test connections before using
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
    )


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


engine = build_engine(settings.DATABASE_URL)

AsyncSessionLocal = build_sessionmaker(engine)
