"""基于弹性模型的资金分配优化器

在基准分配的基础上，每次在两条链之间移动固定金额，只要年化收益提升超过阈值就立即提交，
直到某一轮没有任何可提升的移动或达到最大轮数。这是贪心的局部搜索，不保证全局最优；
结果依赖于链的遍历顺序，因此遍历顺序必须固定。
"""

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Callable, Literal, Mapping, Sequence

from rebalancer.core.errors import NoChainDataError
from rebalancer.services.chain_data_client import ChainSnapshot
from rebalancer.services.elasticity import predict_apy_after_fund_movement

if TYPE_CHECKING:
    from rebalancer.core.config import Settings

logger = logging.getLogger(__name__)

SeedPolicy = Literal["fixed", "scaled"]
ApyPredictor = Callable[[float, float, float, float], float]


@dataclass
class ChainMetric:
    """优化过程中使用的链数据（可变工作副本，只在一次优化中使用）"""

    chain_name: str
    current_apy: float
    current_utilization: float  # 0 ~ 1 的比例，与 ChainSnapshot.utilization_ratio 一致
    total_liquidity: float
    elasticity_factor: float
    current_allocation: float


@dataclass(frozen=True)
class RebalanceMove:
    """一次已提交的资金移动"""

    iteration: int
    from_chain: str
    to_chain: str
    amount: float
    expected_improvement: float  # 年化收益提升（美元）


@dataclass(frozen=True)
class ChainAllocation:
    chain_name: str
    allocation: float
    predicted_apy: float


@dataclass
class OptimizationResult:
    allocations: list[ChainAllocation]
    iterations: int
    converged: bool
    moves: list[RebalanceMove] = field(default_factory=list)

    @property
    def total_allocation(self) -> float:
        return sum(item.allocation for item in self.allocations)

    def by_chain(self) -> dict[str, ChainAllocation]:
        return {item.chain_name: item for item in self.allocations}


@dataclass(frozen=True)
class OptimizerConfig:
    """优化参数，每次调用时显式传入"""

    move_amount: float = 100_000
    max_iterations: int = 10
    min_improvement: float = 1.0
    seed_policy: SeedPolicy = "fixed"

    @classmethod
    def from_settings(cls, settings: "Settings") -> "OptimizerConfig":
        return cls(
            move_amount=settings.optimizer_move_amount,
            max_iterations=settings.optimizer_max_iterations,
            min_improvement=settings.optimizer_min_improvement,
            seed_policy=settings.optimizer_seed_policy,
        )


def seed_chain_metrics(
    snapshots: Sequence[ChainSnapshot],
    baseline_allocation: Mapping[str, float],
    config: OptimizerConfig,
    available_funds: float | None = None,
) -> list[ChainMetric]:
    """
    根据链数据和基准分配构造优化器的初始工作集

    只包含有数据的链；没有基准分配的链初始分配为 0。
    seed_policy 为 "scaled" 时，按 available_funds / 基准总额 等比缩放初始分配。
    """
    scale = 1.0
    if config.seed_policy == "scaled" and available_funds is not None:
        baseline_total = sum(baseline_allocation.get(s.chain_name, 0.0) for s in snapshots)
        if baseline_total > 0:
            scale = available_funds / baseline_total

    return [
        ChainMetric(
            chain_name=snapshot.chain_name,
            current_apy=snapshot.supply_apy,
            current_utilization=snapshot.utilization_ratio,
            total_liquidity=snapshot.total_liquidity,
            elasticity_factor=snapshot.elasticity_factor,
            current_allocation=baseline_allocation.get(snapshot.chain_name, 0.0) * scale,
        )
        for snapshot in snapshots
    ]


def annual_return(metrics: Sequence[ChainMetric]) -> float:
    """按当前 APY 计算的年化收益（美元）"""
    return sum(m.current_allocation * m.current_apy / 100 for m in metrics)


class AllocationOptimizer:
    """贪心的两两移动优化器（单线程，后面的移动依赖前面已提交的状态）"""

    def __init__(
        self,
        config: OptimizerConfig | None = None,
        predictor: ApyPredictor = predict_apy_after_fund_movement,
    ) -> None:
        self._config = config or OptimizerConfig()
        self._predict = predictor

    @property
    def config(self) -> OptimizerConfig:
        return self._config

    def optimize(self, metrics: Sequence[ChainMetric]) -> OptimizationResult:
        """
        计算优化后的分配

        Raises:
            NoChainDataError: 没有任何链数据
        """
        if not metrics:
            raise NoChainDataError()

        chains = [replace(m) for m in metrics]
        move_amount = self._config.move_amount
        moves: list[RebalanceMove] = []
        converged = False
        iterations = 0

        logger.info(
            f"开始优化分配: {len(chains)} 条链, 初始总额 ${sum(c.current_allocation for c in chains):,.2f}"
        )

        for iteration in range(1, self._config.max_iterations + 1):
            iterations = iteration
            improved = False

            for i in range(len(chains)):
                for j in range(len(chains)):
                    if i == j:
                        continue
                    from_chain = chains[i]
                    to_chain = chains[j]
                    if from_chain.current_allocation < move_amount:
                        continue

                    move = self._try_move(iteration, from_chain, to_chain)
                    if move is not None:
                        moves.append(move)
                        improved = True

            if not improved:
                converged = True
                break

        logger.info(f"优化完成: {iterations} 轮, 共 {len(moves)} 次移动, 是否收敛: {converged}")

        return OptimizationResult(
            allocations=[
                ChainAllocation(
                    chain_name=c.chain_name,
                    allocation=c.current_allocation,
                    predicted_apy=c.current_apy,
                )
                for c in chains
            ],
            iterations=iterations,
            converged=converged,
            moves=moves,
        )

    def _try_move(self, iteration: int, from_chain: ChainMetric, to_chain: ChainMetric) -> RebalanceMove | None:
        """尝试从 from_chain 移动固定金额到 to_chain，收益提升超过阈值时立即提交"""
        move_amount = self._config.move_amount

        from_new_apy = self._predict(
            from_chain.current_apy,
            from_chain.total_liquidity,
            -move_amount,
            from_chain.elasticity_factor,
        )
        to_new_apy = self._predict(
            to_chain.current_apy,
            to_chain.total_liquidity,
            move_amount,
            to_chain.elasticity_factor,
        )

        current_return = (
            from_chain.current_allocation * from_chain.current_apy / 100
            + to_chain.current_allocation * to_chain.current_apy / 100
        )
        new_from_allocation = from_chain.current_allocation - move_amount
        new_to_allocation = to_chain.current_allocation + move_amount
        potential_return = (
            new_from_allocation * from_new_apy / 100
            + new_to_allocation * to_new_apy / 100
        )

        if potential_return <= current_return + self._config.min_improvement:
            return None

        improvement = potential_return - current_return
        logger.info(
            f"移动 ${move_amount:,.0f}: {from_chain.chain_name} -> {to_chain.chain_name}, "
            f"预期年化收益提升 ${improvement:,.2f}"
        )

        from_chain.current_allocation = new_from_allocation
        to_chain.current_allocation = new_to_allocation
        from_chain.current_apy = from_new_apy
        to_chain.current_apy = to_new_apy

        return RebalanceMove(
            iteration=iteration,
            from_chain=from_chain.chain_name,
            to_chain=to_chain.chain_name,
            amount=move_amount,
            expected_improvement=improvement,
        )
