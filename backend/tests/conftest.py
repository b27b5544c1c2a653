from contextlib import asynccontextmanager

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from rebalancer.core.chains import elasticity_for
from rebalancer.core.db import Base, init_models
from rebalancer.services.chain_data_client import ChainSnapshot


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'rebalancer_test.db'}"


@pytest.fixture
def open_database(database_url):
    """返回一个异步上下文管理器：建表（可选写入默认基准分配），产出 sessionmaker"""

    @asynccontextmanager
    async def _open(seed: bool = True):
        engine = create_async_engine(database_url, future=True)
        if seed:
            await init_models(engine)
        else:
            import rebalancer.models.baseline_configuration  # noqa: F401
            import rebalancer.models.daily_performance  # noqa: F401
            import rebalancer.models.fund_flow  # noqa: F401

            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        try:
            yield async_sessionmaker(engine, expire_on_commit=False)
        finally:
            await engine.dispose()

    return _open


@pytest.fixture
def make_snapshot():
    def _make(chain_name, supply_apy, total_liquidity, utilization_ratio=0.75, elasticity_factor=None):
        return ChainSnapshot(
            chain_name=chain_name,
            supply_apy=supply_apy,
            utilization_ratio=utilization_ratio,
            total_liquidity=total_liquidity,
            elasticity_factor=elasticity_for(chain_name) if elasticity_factor is None else elasticity_factor,
        )

    return _make
