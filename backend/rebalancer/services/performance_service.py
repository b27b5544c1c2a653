"""每日业绩计算服务

采集链数据 -> 读取资金规模、基准分配和资金流 -> 优化分配 -> 计算差值 -> 按日期幂等写入。
同一日期同时只允许一次计算，不同日期之间互不影响。
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from functools import lru_cache
from typing import Mapping

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rebalancer.core.config import Settings, get_settings
from rebalancer.core.db import get_sessionmaker
from rebalancer.core.errors import NoChainDataError
from rebalancer.schemas.performance import DailyPerformanceRecord
from rebalancer.services.chain_data_client import AaveSubgraphClient, ChainDataProvider
from rebalancer.services.fund_flows import aggregate_fund_flows
from rebalancer.services.optimizer import AllocationOptimizer, OptimizerConfig, seed_chain_metrics
from rebalancer.services.oracle_client import PoolValueOracleClient, TotalFundSizeOracle, resolve_total_fund_size
from rebalancer.services.performance_calculator import PerformanceDifferentialCalculator
from rebalancer.services.repositories.baseline_repository import BaselineRepository
from rebalancer.services.repositories.fund_flow_repository import FundFlowRepository
from rebalancer.services.repositories.performance_repository import PerformanceRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PerformanceConfig:
    """业绩计算参数，构造服务时显式传入"""

    fallback_fund_size: float = 5_000_000
    default_baseline_allocation: Mapping[str, float] = field(
        default_factory=lambda: {"ethereum": 4_000_000, "base": 1_000_000}
    )
    enabled_chains: tuple[str, ...] = ("ethereum", "base")

    @classmethod
    def from_settings(cls, settings: Settings) -> "PerformanceConfig":
        return cls(
            fallback_fund_size=settings.fallback_fund_size,
            default_baseline_allocation=dict(settings.default_baseline_allocation),
            enabled_chains=tuple(settings.enabled_chains),
        )


class PerformanceService:
    def __init__(
        self,
        *,
        chain_provider: ChainDataProvider,
        session_maker: async_sessionmaker[AsyncSession],
        oracle: TotalFundSizeOracle | None = None,
        optimizer_config: OptimizerConfig | None = None,
        performance_config: PerformanceConfig | None = None,
        calculator: PerformanceDifferentialCalculator | None = None,
    ) -> None:
        self._chain_provider = chain_provider
        self._session_maker = session_maker
        self._oracle = oracle
        self._optimizer_config = optimizer_config or OptimizerConfig()
        self._config = performance_config or PerformanceConfig()
        self._calculator = calculator or PerformanceDifferentialCalculator()
        self._locks: dict[date, asyncio.Lock] = {}
        self._lock_users: dict[date, int] = {}

    async def calculate_daily_performance(self, performance_date: date) -> DailyPerformanceRecord:
        """
        计算并写入指定日期的业绩

        Raises:
            NoChainDataError: 没有任何链数据，当天跳过
            PersistenceConflictError: 写入冲突，由调度层重试
        """
        lock = self._locks.setdefault(performance_date, asyncio.Lock())
        self._lock_users[performance_date] = self._lock_users.get(performance_date, 0) + 1
        if lock.locked():
            logger.info(f"{performance_date} 的业绩计算正在进行，等待其完成")
        try:
            async with lock:
                return await self._calculate(performance_date)
        finally:
            self._release_lock(performance_date)

    def _release_lock(self, performance_date: date) -> None:
        # 没有持有者和等待者时删除该日期的锁
        remaining = self._lock_users[performance_date] - 1
        if remaining:
            self._lock_users[performance_date] = remaining
        else:
            del self._lock_users[performance_date]
            del self._locks[performance_date]

    async def _calculate(self, performance_date: date) -> DailyPerformanceRecord:
        logger.info(f"🧮 开始计算 {performance_date} 的业绩")

        snapshots = await self._chain_provider.fetch_all(self._config.enabled_chains)
        if not snapshots:
            logger.warning("没有可用的链数据，无法计算业绩")
            raise NoChainDataError()

        total_fund_size = await resolve_total_fund_size(self._oracle, self._config.fallback_fund_size)

        async with self._session_maker() as session:
            baseline_allocation = await BaselineRepository(session).allocation_for_date(
                performance_date,
                default=self._config.default_baseline_allocation,
            )
            flows = await FundFlowRepository(session).flows_for_date(performance_date)
            performance_repo = PerformanceRepository(session)
            previous_day_total = await performance_repo.get_previous_day_total(performance_date)

            flow_totals = aggregate_fund_flows(flows)
            available_funds = total_fund_size + flow_totals.net_flow

            metrics = seed_chain_metrics(
                snapshots,
                baseline_allocation,
                self._optimizer_config,
                available_funds=available_funds,
            )
            flows_in_allocation = self._optimizer_config.seed_policy == "scaled"
            if flows_in_allocation:
                # 初始分配已按可用资金缩放，基准场景使用同一组金额
                baseline_allocation = {m.chain_name: m.current_allocation for m in metrics}

            optimization = AllocationOptimizer(self._optimizer_config).optimize(metrics)

            record = self._calculator.calculate(
                performance_date=performance_date,
                snapshots=snapshots,
                baseline_allocation=baseline_allocation,
                optimization=optimization,
                flow_totals=flow_totals,
                total_fund_size=total_fund_size,
                previous_day_total=previous_day_total,
                flows_in_allocation=flows_in_allocation,
            )
            return await performance_repo.upsert_daily_performance(record)

    async def close(self) -> None:
        """关闭链数据和预言机的 HTTP 客户端"""
        await self._chain_provider.close()
        close_oracle = getattr(self._oracle, "close", None)
        if close_oracle is not None:
            await close_oracle()


def create_performance_service(settings: Settings) -> PerformanceService:
    """根据配置组装服务"""
    chain_provider = ChainDataProvider(
        AaveSubgraphClient(),
        timeout=settings.chain_fetch_timeout_seconds,
    )
    oracle = None
    if settings.oracle_url:
        oracle = PoolValueOracleClient(settings.oracle_url, timeout=settings.oracle_timeout_seconds)

    return PerformanceService(
        chain_provider=chain_provider,
        session_maker=get_sessionmaker(),
        oracle=oracle,
        optimizer_config=OptimizerConfig.from_settings(settings),
        performance_config=PerformanceConfig.from_settings(settings),
    )


@lru_cache
def get_performance_service() -> PerformanceService:
    return create_performance_service(get_settings())


async def close_performance_service() -> None:
    """关闭已创建的服务实例（应用退出时调用）"""
    if get_performance_service.cache_info().currsize == 0:
        return
    await get_performance_service().close()
    get_performance_service.cache_clear()
