from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings

# pool_pre_ping: check connection is alive before use (avoids "connection is closed" errors
# when DB or network closed idle connections).
# pool_recycle: discard connections after this many seconds to avoid stale connections.
engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
    pool_pre_ping=True,
    pool_recycle=300,
)


def use_immediate_transactions(target: AsyncEngine) -> None:
    """SQLite only: open every transaction with BEGIN IMMEDIATE.

    The driver otherwise runs SELECTs outside any transaction and only takes the write
    lock at the first INSERT/UPDATE, so two check-then-insert transactions could both
    pass their checks. With BEGIN IMMEDIATE the second one waits for the first to finish.
    """
    sync_engine = target.sync_engine

    @event.listens_for(sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


if engine.dialect.name == "sqlite":
    use_immediate_transactions(engine)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session
