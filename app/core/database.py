"""Async database engine, session factory and dialect-aware write helpers."""

from collections.abc import AsyncGenerator, Sequence
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from app.core.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_size=20,
    max_overflow=10,
)

async_session_factory = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async DB session."""
    async with async_session_factory() as session:
        yield session


async def init_db() -> None:
    """Create all tables. Use Alembic migrations in production."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


# ── Idempotent writes ─────────────────────────────────────────


def _dialect_insert(session: AsyncSession, table: Any) -> Any:
    """Return the dialect-specific ``insert()`` construct for *table*."""
    dialect_name = getattr(getattr(session.get_bind(), "dialect", None), "name", "")
    if "postgresql" in str(dialect_name):
        from sqlalchemy.dialects.postgresql import insert as _pg_insert

        return _pg_insert(table)
    from sqlalchemy.dialects.sqlite import insert as _sqlite_insert

    return _sqlite_insert(table)


def _row_values(row: SQLModel) -> dict[str, Any]:
    """Column values of a not-yet-persisted model instance (defaults applied)."""
    columns = row.__table__.columns.keys()  # type: ignore[attr-defined]
    return {name: getattr(row, name) for name in columns}


async def insert_or_ignore(
    session: AsyncSession,
    row: SQLModel,
    index_elements: Sequence[str],
) -> bool:
    """INSERT *row*, doing nothing when the unique key already exists.

    Returns ``True`` when this call inserted the row. The caller re-reads
    the winning row by its unique key either way.
    """
    table = type(row)
    stmt = _dialect_insert(session, table).values(**_row_values(row))
    stmt = stmt.on_conflict_do_nothing(index_elements=list(index_elements))
    result = await session.execute(stmt)
    return bool(result.rowcount)


async def upsert(
    session: AsyncSession,
    row: SQLModel,
    index_elements: Sequence[str],
    update_columns: Sequence[str],
) -> None:
    """INSERT *row* or, on unique-key conflict, overwrite *update_columns*."""
    table = type(row)
    values = _row_values(row)
    stmt = _dialect_insert(session, table).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(index_elements),
        set_={col: values[col] for col in update_columns},
    )
    await session.execute(stmt)
