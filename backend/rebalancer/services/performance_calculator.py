"""每日业绩差值计算

基准场景：固定分配，按各链当前 APY 计息一天。
优化场景：优化器给出的分配，按预测 APY 计息一天。
两者都乘以资金流系数 (总规模 + 净流入) / 总规模 后再求差值。
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping, Sequence

from rebalancer.schemas.performance import ChainPerformanceEntry, DailyPerformanceRecord
from rebalancer.services.chain_data_client import ChainSnapshot
from rebalancer.services.fund_flows import FlowTotals
from rebalancer.services.optimizer import OptimizationResult

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365


@dataclass(frozen=True)
class ScenarioRow:
    chain_name: str
    allocation: float
    apy: float


@dataclass(frozen=True)
class DifferentialResult:
    fund_flow_multiplier: float
    adjusted_baseline: float
    adjusted_optimized: float
    differential: float
    differential_percentage: float


def compute_scenario_value(rows: Iterable[ScenarioRow]) -> float:
    """一天后的总价值：Σ allocation * (1 + apy / 365 / 100)"""
    return sum(row.allocation * (1 + row.apy / DAYS_PER_YEAR / 100) for row in rows)


def fund_flow_multiplier(total_fund_size: float, net_flow: float) -> float:
    if total_fund_size == 0:
        return 1.0
    return (total_fund_size + net_flow) / total_fund_size


def compute_differential(
    baseline_value: float,
    optimized_value: float,
    total_fund_size: float,
    net_flow: float,
) -> DifferentialResult:
    multiplier = fund_flow_multiplier(total_fund_size, net_flow)
    adjusted_baseline = baseline_value * multiplier
    adjusted_optimized = optimized_value * multiplier
    differential = adjusted_optimized - adjusted_baseline
    percentage = differential / adjusted_baseline * 100 if adjusted_baseline != 0 else 0.0
    return DifferentialResult(
        fund_flow_multiplier=multiplier,
        adjusted_baseline=adjusted_baseline,
        adjusted_optimized=adjusted_optimized,
        differential=differential,
        differential_percentage=percentage,
    )


class PerformanceDifferentialCalculator:
    """把基准分配、优化结果和资金流合成当天的业绩记录（纯计算，不做 I/O）"""

    def calculate(
        self,
        *,
        performance_date: date,
        snapshots: Sequence[ChainSnapshot],
        baseline_allocation: Mapping[str, float],
        optimization: OptimizationResult,
        flow_totals: FlowTotals,
        total_fund_size: float,
        previous_day_total: float | None = None,
        flows_in_allocation: bool = False,
    ) -> DailyPerformanceRecord:
        """
        flows_in_allocation 为 True 时，两种场景的分配金额已经包含当天资金流，
        不再乘以资金流系数（系数固定为 1）。
        """
        snapshot_map = {s.chain_name: s for s in snapshots}

        # 基准场景只统计有数据的链
        baseline_rows = [
            ScenarioRow(chain_name=name, allocation=amount, apy=snapshot_map[name].supply_apy)
            for name, amount in baseline_allocation.items()
            if name in snapshot_map
        ]
        optimized_rows = [
            ScenarioRow(chain_name=item.chain_name, allocation=item.allocation, apy=item.predicted_apy)
            for item in optimization.allocations
        ]

        baseline_value = compute_scenario_value(baseline_rows)
        optimized_value = compute_scenario_value(optimized_rows)
        result = compute_differential(
            baseline_value,
            optimized_value,
            total_fund_size,
            0.0 if flows_in_allocation else flow_totals.net_flow,
        )

        logger.info(f"📈 {performance_date} 业绩计算:")
        logger.info(f"   基准: ${result.adjusted_baseline:,.2f}")
        logger.info(f"   优化: ${result.adjusted_optimized:,.2f}")
        logger.info(f"   差值: ${result.differential:,.2f} ({result.differential_percentage:.4f}%)")
        logger.info(
            f"   资金流: +${flow_totals.total_inflows:,.2f} -${flow_totals.total_outflows:,.2f} "
            f"= ${flow_totals.net_flow:,.2f}"
        )

        return DailyPerformanceRecord(
            date=performance_date,
            total_fund_allocation_baseline=result.adjusted_baseline,
            total_fund_allocation_optimized=result.adjusted_optimized,
            differential=result.differential,
            differential_percentage=result.differential_percentage,
            total_inflows=flow_totals.total_inflows,
            total_outflows=flow_totals.total_outflows,
            net_flow=flow_totals.net_flow,
            previous_day_total=previous_day_total,
            total_fund_size=total_fund_size,
            chains=self._chain_entries(snapshots, baseline_allocation, optimization),
        )

    @staticmethod
    def _chain_entries(
        snapshots: Sequence[ChainSnapshot],
        baseline_allocation: Mapping[str, float],
        optimization: OptimizationResult,
    ) -> list[ChainPerformanceEntry]:
        optimized = optimization.by_chain()
        entries: list[ChainPerformanceEntry] = []
        for snapshot in snapshots:
            chain_result = optimized.get(snapshot.chain_name)
            if chain_result is None:
                continue
            entries.append(
                ChainPerformanceEntry(
                    chain_name=snapshot.chain_name,
                    apy_baseline=snapshot.supply_apy,
                    apy_optimized=chain_result.predicted_apy,
                    allocation_baseline=baseline_allocation.get(snapshot.chain_name, 0.0),
                    allocation_optimized=chain_result.allocation,
                    utilization_ratio=snapshot.utilization_ratio,
                    total_supply=snapshot.total_liquidity,
                    elasticity_factor=snapshot.elasticity_factor,
                )
            )
        return entries
