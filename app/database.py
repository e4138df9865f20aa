from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from app.logger import get_logger

logger = get_logger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
   # SQLite ignores ON DELETE CASCADE unless enabled per connection
   cursor = dbapi_connection.cursor()
   cursor.execute("PRAGMA foreign_keys=ON")
   cursor.close()


class Database:
   """Process-wide engine and session factory, created once at startup."""

   def __init__(self, url: str, echo: bool = False):
      self.url = url
      self.engine: AsyncEngine = create_async_engine(url, echo=echo)

      if self.engine.dialect.name == "sqlite":
         event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

      self.session_factory = sessionmaker(
         bind=self.engine,
         class_=AsyncSession,
         expire_on_commit=False
      )

   async def create_all(self) -> None:
      # table models must be imported before metadata.create_all
      import app.models.enrollment  # noqa: F401

      async with self.engine.begin() as conn:
         await conn.run_sync(SQLModel.metadata.create_all)
      logger.info(f"Database ready ({self.engine.dialect.name})")

   async def dispose(self) -> None:
      await self.engine.dispose()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
   database: Database = request.app.state.database
   async with database.session_factory() as session:
      try:
         yield session
      finally:
         await session.close()
