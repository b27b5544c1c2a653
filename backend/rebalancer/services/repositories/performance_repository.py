"""每日业绩仓库"""

import logging
import statistics
from collections.abc import Sequence
from datetime import date, timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rebalancer.core.errors import PersistenceConflictError
from rebalancer.models.daily_performance import ChainRate, DailyPerformance
from rebalancer.schemas.performance import (
    ChainPerformanceEntry,
    DailyPerformanceRecord,
    PerformanceChartPoint,
    PerformanceMetrics,
    PerformanceSummary,
)

logger = logging.getLogger(__name__)

METRICS_WINDOW_DAYS = 365
CHAIN_RANKING_WINDOW_DAYS = 30
RISK_FREE_RATE = 0.05  # 年化无风险利率
DAYS_PER_YEAR = 365


class PerformanceRepository:
    """每日业绩数据访问层"""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_date(self, performance_date: date) -> DailyPerformanceRecord | None:
        """根据日期获取业绩记录（含各链明细）"""
        result = await self._session.execute(
            select(DailyPerformance).where(DailyPerformance.date == performance_date)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        chains = await self._chain_rows(performance_date)
        return self._to_record(row, chains)

    async def list_range(self, start: date, end: date) -> list[DailyPerformanceRecord]:
        """获取日期区间内的业绩记录（包含两端）"""
        result = await self._session.execute(
            select(DailyPerformance)
            .where(DailyPerformance.date >= start, DailyPerformance.date <= end)
            .order_by(DailyPerformance.date)
        )
        rows = result.scalars().all()

        chain_result = await self._session.execute(
            select(ChainRate)
            .where(ChainRate.date >= start, ChainRate.date <= end)
            .order_by(ChainRate.date, ChainRate.id)
        )
        chains_by_date: dict[date, list[ChainRate]] = {}
        for chain in chain_result.scalars().all():
            chains_by_date.setdefault(chain.date, []).append(chain)

        return [self._to_record(row, chains_by_date.get(row.date, [])) for row in rows]

    async def get_previous_day_total(self, performance_date: date) -> float | None:
        """获取前一天的优化总价值"""
        previous_date = performance_date - timedelta(days=1)
        result = await self._session.execute(
            select(DailyPerformance.total_fund_allocation_optimized).where(
                DailyPerformance.date == previous_date
            )
        )
        return result.scalar_one_or_none()

    async def upsert_daily_performance(self, record: DailyPerformanceRecord) -> DailyPerformanceRecord:
        """
        写入当天业绩：同一日期的记录和所有链明细整体替换（同一事务内完成）

        输入与已存储数据完全一致时不做任何写入。

        Raises:
            PersistenceConflictError: 写入时发生唯一键冲突
        """
        try:
            existing = await self.get_by_date(record.date)
            if existing is not None and existing.model_dump() == record.model_dump():
                logger.info(f"{record.date} 的业绩记录未变化，跳过写入")
                return existing

            result = await self._session.execute(
                select(DailyPerformance).where(DailyPerformance.date == record.date)
            )
            row = result.scalar_one_or_none()
            if row is None:
                row = DailyPerformance(date=record.date)
                self._session.add(row)

            row.total_fund_allocation_baseline = record.total_fund_allocation_baseline
            row.total_fund_allocation_optimized = record.total_fund_allocation_optimized
            row.differential = record.differential
            row.differential_percentage = record.differential_percentage
            row.total_inflows = record.total_inflows
            row.total_outflows = record.total_outflows
            row.net_flow = record.net_flow
            row.previous_day_total = record.previous_day_total
            row.total_fund_size = record.total_fund_size

            # 替换当天所有链明细
            await self._session.execute(delete(ChainRate).where(ChainRate.date == record.date))
            for chain in record.chains:
                self._session.add(
                    ChainRate(
                        date=record.date,
                        chain_name=chain.chain_name,
                        apy_baseline=chain.apy_baseline,
                        apy_optimized=chain.apy_optimized,
                        allocation_baseline=chain.allocation_baseline,
                        allocation_optimized=chain.allocation_optimized,
                        utilization_ratio=chain.utilization_ratio,
                        total_supply=chain.total_supply,
                        elasticity_factor=chain.elasticity_factor,
                    )
                )

            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            logger.error(f"写入 {record.date} 的业绩记录时发生冲突: {e}")
            raise PersistenceConflictError(f"{record.date} 的业绩记录写入冲突") from e
        except Exception:
            await self._session.rollback()
            raise

        logger.info(f"已写入 {record.date} 的业绩记录（{len(record.chains)} 条链）")
        return record

    async def get_metrics(self, as_of: date) -> PerformanceMetrics:
        """汇总最近一年的业绩指标"""
        window_start = as_of - timedelta(days=METRICS_WINDOW_DAYS)
        result = await self._session.execute(
            select(DailyPerformance)
            .where(DailyPerformance.date >= window_start, DailyPerformance.date <= as_of)
            .order_by(DailyPerformance.date)
        )
        rows = result.scalars().all()
        if not rows:
            return PerformanceMetrics()

        differentials = [row.differential for row in rows]
        baselines = [row.total_fund_allocation_baseline for row in rows]
        total_gain = sum(differentials)
        total_baseline = sum(baselines)
        average_gain = statistics.fmean(differentials)
        average_baseline = statistics.fmean(baselines)
        average_gain_percentage = average_gain / average_baseline * 100 if average_baseline else 0.0
        volatility = statistics.stdev(differentials) if len(differentials) > 1 else 0.0

        # 简化的夏普比率
        sharpe_ratio = 0.0
        if volatility > 0:
            sharpe_ratio = (average_gain_percentage - RISK_FREE_RATE / DAYS_PER_YEAR) / volatility

        best_chain, worst_chain = await self._rank_chains(as_of)

        return PerformanceMetrics(
            total_gain=total_gain,
            total_gain_percentage=total_gain / total_baseline * 100 if total_baseline else 0.0,
            average_daily_gain=average_gain,
            average_daily_gain_percentage=average_gain_percentage,
            best_performing_chain=best_chain,
            worst_performing_chain=worst_chain,
            total_days_tracked=len(rows),
            volatility=volatility,
            total_inflows=sum(row.total_inflows for row in rows),
            total_outflows=sum(row.total_outflows for row in rows),
            net_flow=sum(row.net_flow for row in rows),
            sharpe_ratio=sharpe_ratio,
        )

    async def summary(self, start: date, end: date) -> PerformanceSummary | None:
        """
        日期区间内的业绩概览：总差值、日均差值、最好/最差的一天、一致性评分和累计差值曲线

        一致性评分 = max(0, 100 - 标准差 / |日均差值| * 100)，日均差值为 0 时为 100。
        区间内没有记录时返回 None。
        """
        records = await self.list_range(start, end)
        if not records:
            return None

        differentials = [record.differential for record in records]
        total_differential = sum(differentials)
        average_differential = total_differential / len(records)
        deviation = statistics.pstdev(differentials)
        if average_differential != 0:
            consistency_score = max(0.0, 100 - deviation / abs(average_differential) * 100)
        else:
            consistency_score = 100.0

        chart: list[PerformanceChartPoint] = []
        cumulative = 0.0
        for record in records:
            cumulative += record.differential
            chart.append(
                PerformanceChartPoint(
                    date=record.date,
                    baseline_value=record.total_fund_allocation_baseline,
                    optimized_value=record.total_fund_allocation_optimized,
                    cumulative_differential=cumulative,
                )
            )

        return PerformanceSummary(
            start_date=start,
            end_date=end,
            total_differential=total_differential,
            average_differential=average_differential,
            # 并列时取最早的一天
            best_day=max(records, key=lambda r: r.differential),
            worst_day=min(records, key=lambda r: r.differential),
            consistency_score=consistency_score,
            performance_chart=chart,
        )

    async def _rank_chains(self, as_of: date) -> tuple[str | None, str | None]:
        """按最近 30 天平均 APY 提升对链排序，返回 (最好, 最差)"""
        window_start = as_of - timedelta(days=CHAIN_RANKING_WINDOW_DAYS)
        avg_improvement = func.avg(ChainRate.apy_optimized - ChainRate.apy_baseline)
        result = await self._session.execute(
            select(ChainRate.chain_name, avg_improvement.label("avg_improvement"))
            .where(ChainRate.date >= window_start, ChainRate.date <= as_of)
            .group_by(ChainRate.chain_name)
            .order_by(avg_improvement.desc(), ChainRate.chain_name)
        )
        ranked = [row.chain_name for row in result.all()]
        if not ranked:
            return None, None
        return ranked[0], ranked[-1]

    async def _chain_rows(self, performance_date: date) -> Sequence[ChainRate]:
        result = await self._session.execute(
            select(ChainRate).where(ChainRate.date == performance_date).order_by(ChainRate.id)
        )
        return result.scalars().all()

    @staticmethod
    def _to_record(row: DailyPerformance, chains: Sequence[ChainRate]) -> DailyPerformanceRecord:
        return DailyPerformanceRecord(
            date=row.date,
            total_fund_allocation_baseline=row.total_fund_allocation_baseline,
            total_fund_allocation_optimized=row.total_fund_allocation_optimized,
            differential=row.differential,
            differential_percentage=row.differential_percentage,
            total_inflows=row.total_inflows,
            total_outflows=row.total_outflows,
            net_flow=row.net_flow,
            previous_day_total=row.previous_day_total,
            total_fund_size=row.total_fund_size,
            chains=[ChainPerformanceEntry.model_validate(chain) for chain in chains],
        )
