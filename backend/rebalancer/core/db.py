import logging
from datetime import date
from typing import AsyncIterator

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from rebalancer.core.config import settings

logger = logging.getLogger(__name__)


Base = declarative_base()

_engine: AsyncEngine | None = None
_SessionLocal: async_sessionmaker[AsyncSession] | None = None

# 默认基准配置的生效起始日期
DEFAULT_BASELINE_EFFECTIVE_FROM = date(2024, 1, 1)


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(settings.database_url, future=True, echo=False)
    return _engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _SessionLocal


async def get_session() -> AsyncIterator[AsyncSession]:
    session_maker = get_sessionmaker()
    async with session_maker() as session:
        yield session


async def init_models(engine: AsyncEngine | None = None) -> int:
    """
    创建所有表，并在 baseline_configuration 为空时写入默认基准分配

    Returns:
        本次写入的基准分配行数（已有配置时为 0）
    """
    import rebalancer.models.baseline_configuration  # noqa: F401
    import rebalancer.models.daily_performance  # noqa: F401
    import rebalancer.models.fund_flow  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        # 创建所有表
        await conn.run_sync(Base.metadata.create_all)

        # 确保存在默认的基准分配配置
        return await _ensure_baseline_configuration(conn)


async def _ensure_baseline_configuration(conn: AsyncConnection) -> int:
    """baseline_configuration 表为空时写入默认基准分配"""
    from rebalancer.models.baseline_configuration import BaselineConfiguration

    result = await conn.execute(select(func.count()).select_from(BaselineConfiguration))
    if result.scalar():
        return 0

    allocation = settings.default_baseline_allocation
    total = sum(allocation.values())
    rows = [
        {
            "chain_name": chain_name,
            "initial_allocation": amount,
            "percentage_allocation": (amount / total * 100) if total else 0.0,
            "effective_from": DEFAULT_BASELINE_EFFECTIVE_FROM,
            "effective_to": None,
        }
        for chain_name, amount in allocation.items()
    ]
    if rows:
        await conn.execute(BaselineConfiguration.__table__.insert(), rows)
        logger.info(f"已写入默认基准分配: {allocation}")
    return len(rows)
