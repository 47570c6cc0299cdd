"""
Base repository with session scoping, chunked writes and dialect-aware upserts
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional, Sequence, Type

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import SQLModel, func, select
from sqlmodel.ext.asyncio.session import AsyncSession

from catalog_sync.core.exceptions import PersistenceError
from catalog_sync.core.logging import log
from catalog_sync.utils.normalization import chunked

Row = Dict[str, Any]


def dialect_insert(dialect_name: str, model: Type[SQLModel]):
    """INSERT construct that supports ON CONFLICT for the active dialect"""
    table = model.__table__
    if dialect_name == "postgresql":
        return postgresql.insert(table)
    if dialect_name == "sqlite":
        return sqlite.insert(table)
    raise PersistenceError(f"Upserts are not supported on dialect {dialect_name}")


class BaseRepository:
    """
    Repository over one table.

    Every public method opens its own short transaction from the session
    factory, so concurrent workers never share a session. Any SQLAlchemy error
    is rolled back and re-raised as PersistenceError.
    """

    model: Type[SQLModel]

    def __init__(self, session_factory: async_sessionmaker, chunk_size: int = 100):
        self.session_factory = session_factory
        self.chunk_size = max(1, chunk_size)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                log.error(f"Database error in {self.__class__.__name__}", error=str(e))
                raise PersistenceError(f"Database error in {self.model.__tablename__}") from e

    def insert_for(self, session: AsyncSession):
        return dialect_insert(session.bind.dialect.name, self.model)

    async def upsert(
        self,
        rows: Sequence[Row],
        conflict_columns: List[str],
        update_columns: Optional[List[str]] = None,
        set_builder: Optional[Callable[[Any], Dict[str, Any]]] = None,
    ) -> int:
        """
        Insert rows, updating `update_columns` from the incoming row on conflict.

        `set_builder` receives the insert statement and returns extra SET
        expressions (it can reference `stmt.excluded`). With neither the
        statement becomes insert-if-absent. All rows in one call must share
        the same keys. Returns the number of rows sent.
        """
        if not rows:
            return 0

        written = 0
        async with self.session() as session:
            for chunk in chunked(rows, self.chunk_size):
                stmt = self.insert_for(session).values(list(chunk))
                if update_columns or set_builder:
                    set_ = {column: stmt.excluded[column] for column in update_columns or []}
                    if set_builder:
                        set_.update(set_builder(stmt))
                    stmt = stmt.on_conflict_do_update(index_elements=conflict_columns, set_=set_)
                else:
                    stmt = stmt.on_conflict_do_nothing(index_elements=conflict_columns)
                await session.execute(stmt)
                written += len(chunk)
        return written

    async def count(self, *conditions) -> int:
        """Count rows matching all conditions"""
        async with self.session() as session:
            statement = select(func.count()).select_from(self.model)
            for condition in conditions:
                statement = statement.where(condition)
            result = await session.exec(statement)
            return result.one()
