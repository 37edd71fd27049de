"""
Order Service - データベース接続とユニットオブワーク

unit_of_work() は1つのトランザクション境界を表す。
  - 正常終了 → コミット
  - 例外 (ドメインエラー含む) → ロールバックして再送出
  - SQLAlchemy のエラー → ロールバックして PersistenceFailure に変換
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from . import config
from .errors import PersistenceFailure
from .schema import metadata

logger = logging.getLogger(__name__)

engine = create_async_engine(config.DATABASE_URL, echo=config.DB_ECHO)
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_schema(bind: AsyncEngine) -> None:
    """テーブルが無ければ作成する。"""
    async with bind.begin() as conn:
        await conn.run_sync(metadata.create_all)


@asynccontextmanager
async def read_only(session_factory: sessionmaker) -> AsyncIterator[AsyncSession]:
    """トランザクションを確定させない読み取り用セッション"""
    async with session_factory() as session:
        try:
            yield session
        except SQLAlchemyError as exc:
            logger.exception("Read failed on database error")
            raise PersistenceFailure("database read failed") from exc


@asynccontextmanager
async def unit_of_work(session_factory: sessionmaker) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        try:
            async with session.begin():
                yield session
        except SQLAlchemyError as exc:
            logger.exception("Unit of work rolled back on database error")
            raise PersistenceFailure("database operation failed") from exc
