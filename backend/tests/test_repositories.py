import asyncio
from datetime import date

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from rebalancer.core.db import init_models
from rebalancer.core.errors import PersistenceConflictError
from rebalancer.models.baseline_configuration import BaselineConfiguration
from rebalancer.schemas.performance import ChainPerformanceEntry, DailyPerformanceRecord
from rebalancer.services.repositories.baseline_repository import BaselineRepository
from rebalancer.services.repositories.fund_flow_repository import FundFlowRepository
from rebalancer.services.repositories.performance_repository import PerformanceRepository


def _record(performance_date, differential=50.0, chains=None, net_flow=0.0):
    baseline = 5_000_600.0
    if chains is None:
        chains = [
            ChainPerformanceEntry(
                chain_name="ethereum",
                apy_baseline=3.65,
                apy_optimized=3.66,
                allocation_baseline=4_000_000,
                allocation_optimized=3_900_000,
                utilization_ratio=0.8,
                total_supply=100_000_000,
                elasticity_factor=0.1,
            ),
            ChainPerformanceEntry(
                chain_name="base",
                apy_baseline=7.3,
                apy_optimized=7.1,
                allocation_baseline=1_000_000,
                allocation_optimized=1_100_000,
                utilization_ratio=0.6,
                total_supply=20_000_000,
                elasticity_factor=0.2,
            ),
        ]
    return DailyPerformanceRecord(
        date=performance_date,
        total_fund_allocation_baseline=baseline,
        total_fund_allocation_optimized=baseline + differential,
        differential=differential,
        differential_percentage=differential / baseline * 100,
        total_inflows=max(net_flow, 0.0),
        total_outflows=max(-net_flow, 0.0),
        net_flow=net_flow,
        previous_day_total=None,
        total_fund_size=5_000_000,
        chains=chains,
    )


def test_upsert_inserts_and_reads_back(open_database):
    async def scenario():
        async with open_database() as session_maker:
            async with session_maker() as session:
                await PerformanceRepository(session).upsert_daily_performance(_record(date(2025, 1, 15)))
            async with session_maker() as session:
                return await PerformanceRepository(session).get_by_date(date(2025, 1, 15))

    stored = asyncio.run(scenario())
    assert stored == _record(date(2025, 1, 15))
    assert [c.chain_name for c in stored.chains] == ["ethereum", "base"]


def test_identical_upsert_keeps_single_row(open_database):
    async def scenario():
        async with open_database() as session_maker:
            for _ in range(2):
                async with session_maker() as session:
                    await PerformanceRepository(session).upsert_daily_performance(_record(date(2025, 1, 15)))
            async with session_maker() as session:
                return await PerformanceRepository(session).list_range(date(2025, 1, 1), date(2025, 1, 31))

    records = asyncio.run(scenario())
    assert len(records) == 1
    assert len(records[0].chains) == 2


def test_changed_record_replaces_row_and_chain_rates(open_database):
    single_chain = [
        ChainPerformanceEntry(
            chain_name="base",
            apy_baseline=7.3,
            apy_optimized=7.0,
            allocation_baseline=1_000_000,
            allocation_optimized=1_500_000,
            utilization_ratio=0.6,
            total_supply=20_000_000,
            elasticity_factor=0.2,
        )
    ]

    async def scenario():
        async with open_database() as session_maker:
            async with session_maker() as session:
                await PerformanceRepository(session).upsert_daily_performance(_record(date(2025, 1, 15)))
            async with session_maker() as session:
                await PerformanceRepository(session).upsert_daily_performance(
                    _record(date(2025, 1, 15), differential=80.0, chains=single_chain, net_flow=250_000)
                )
            async with session_maker() as session:
                return await PerformanceRepository(session).list_range(date(2025, 1, 15), date(2025, 1, 15))

    records = asyncio.run(scenario())
    assert len(records) == 1
    assert records[0].differential == 80.0
    assert records[0].net_flow == 250_000
    assert [c.chain_name for c in records[0].chains] == ["base"]


def test_previous_day_total(open_database):
    async def scenario():
        async with open_database() as session_maker:
            async with session_maker() as session:
                repo = PerformanceRepository(session)
                await repo.upsert_daily_performance(_record(date(2025, 1, 14)))
                return (
                    await repo.get_previous_day_total(date(2025, 1, 15)),
                    await repo.get_previous_day_total(date(2025, 1, 14)),
                )

    previous, missing = asyncio.run(scenario())
    assert previous == pytest.approx(5_000_650)
    assert missing is None


def test_list_range_is_ordered_and_inclusive(open_database):
    async def scenario():
        async with open_database() as session_maker:
            async with session_maker() as session:
                repo = PerformanceRepository(session)
                for day in (17, 15, 16, 20):
                    await repo.upsert_daily_performance(_record(date(2025, 1, day)))
                return await repo.list_range(date(2025, 1, 15), date(2025, 1, 17))

    records = asyncio.run(scenario())
    assert [r.date.day for r in records] == [15, 16, 17]


def test_metrics_summarise_window(open_database):
    async def scenario():
        async with open_database() as session_maker:
            async with session_maker() as session:
                repo = PerformanceRepository(session)
                await repo.upsert_daily_performance(_record(date(2025, 1, 14), differential=40.0))
                await repo.upsert_daily_performance(_record(date(2025, 1, 15), differential=60.0, net_flow=-10_000))
                return await repo.get_metrics(date(2025, 1, 15))

    metrics = asyncio.run(scenario())
    assert metrics.total_days_tracked == 2
    assert metrics.total_gain == pytest.approx(100.0)
    assert metrics.average_daily_gain == pytest.approx(50.0)
    assert metrics.volatility == pytest.approx(14.1421, abs=1e-3)
    assert metrics.net_flow == pytest.approx(-10_000)
    assert metrics.total_outflows == pytest.approx(10_000)
    # ethereum 的 APY 提升为正，base 为负
    assert metrics.best_performing_chain == "ethereum"
    assert metrics.worst_performing_chain == "base"


def test_metrics_without_data(open_database):
    async def scenario():
        async with open_database() as session_maker:
            async with session_maker() as session:
                return await PerformanceRepository(session).get_metrics(date(2025, 1, 15))

    metrics = asyncio.run(scenario())
    assert metrics.total_days_tracked == 0
    assert metrics.best_performing_chain is None


def test_fund_flow_duplicate_transaction_is_ignored(open_database):
    async def scenario():
        async with open_database() as session_maker:
            async with session_maker() as session:
                repo = FundFlowRepository(session)
                first = await repo.add_fund_flow(
                    flow_date=date(2025, 1, 15),
                    chain_name="base",
                    flow_type="deposit",
                    amount=100_000,
                    transaction_hash="0xabc",
                )
                second = await repo.add_fund_flow(
                    flow_date=date(2025, 1, 15),
                    chain_name="base",
                    flow_type="deposit",
                    amount=100_000,
                    transaction_hash="0xabc",
                )
                flows = await repo.flows_for_date(date(2025, 1, 15))
                return first, second, flows

    first, second, flows = asyncio.run(scenario())
    assert first is not None
    assert second is None
    assert len(flows) == 1


@pytest.mark.parametrize(("flow_type", "amount"), [("transfer", 100.0), ("deposit", 0.0), ("withdrawal", -5.0)])
def test_fund_flow_validation(open_database, flow_type, amount):
    async def scenario():
        async with open_database() as session_maker:
            async with session_maker() as session:
                await FundFlowRepository(session).add_fund_flow(
                    flow_date=date(2025, 1, 15),
                    chain_name="base",
                    flow_type=flow_type,
                    amount=amount,
                )

    with pytest.raises(ValueError):
        asyncio.run(scenario())


def test_fund_flow_summary(open_database):
    async def scenario():
        async with open_database() as session_maker:
            async with session_maker() as session:
                repo = FundFlowRepository(session)
                for flow_date, chain, flow_type, amount in [
                    (date(2025, 1, 14), "ethereum", "deposit", 300_000),
                    (date(2025, 1, 15), "ethereum", "deposit", 200_000),
                    (date(2025, 1, 15), "ethereum", "withdrawal", 50_000),
                    (date(2025, 1, 15), "base", "withdrawal", 25_000),
                ]:
                    await repo.add_fund_flow(flow_date=flow_date, chain_name=chain, flow_type=flow_type, amount=amount)
                return await repo.summary(date(2025, 1, 14), date(2025, 1, 15))

    items = asyncio.run(scenario())
    assert [(i.date.day, i.chain_name) for i in items] == [(15, "base"), (15, "ethereum"), (14, "ethereum")]
    assert items[0].daily_net_flow == pytest.approx(-25_000)
    assert items[1].daily_inflows == pytest.approx(200_000)
    assert items[1].daily_net_flow == pytest.approx(150_000)


def test_default_baseline_is_seeded(open_database):
    async def scenario():
        async with open_database() as session_maker:
            async with session_maker() as session:
                return await BaselineRepository(session).allocation_for_date(date(2025, 1, 15))

    allocation = asyncio.run(scenario())
    assert allocation == {"ethereum": 4_000_000, "base": 1_000_000}


def test_baseline_respects_effective_dates(open_database):
    async def scenario():
        async with open_database(seed=False) as session_maker:
            async with session_maker() as session:
                session.add_all(
                    [
                        BaselineConfiguration(
                            chain_name="ethereum",
                            initial_allocation=5_000_000,
                            percentage_allocation=100.0,
                            effective_from=date(2024, 1, 1),
                            effective_to=date(2025, 1, 1),
                        ),
                        BaselineConfiguration(
                            chain_name="ethereum",
                            initial_allocation=3_000_000,
                            percentage_allocation=60.0,
                            effective_from=date(2025, 1, 1),
                        ),
                        BaselineConfiguration(
                            chain_name="base",
                            initial_allocation=2_000_000,
                            percentage_allocation=40.0,
                            effective_from=date(2025, 1, 1),
                        ),
                    ]
                )
                await session.commit()
                repo = BaselineRepository(session)
                return (
                    await repo.allocation_for_date(date(2024, 6, 1)),
                    await repo.allocation_for_date(date(2025, 1, 1)),
                    await repo.allocation_for_date(date(2023, 6, 1), default={"ethereum": 1.0}),
                )

    old, new, fallback = asyncio.run(scenario())
    assert old == {"ethereum": 5_000_000}
    assert new == {"ethereum": 3_000_000, "base": 2_000_000}
    assert fallback == {"ethereum": 1.0}


def test_conflicting_replace_keeps_previous_record(open_database):
    first = _record(date(2025, 1, 15))
    duplicated = _record(date(2025, 1, 15), differential=99.0)
    duplicated = duplicated.model_copy(update={"chains": duplicated.chains + [duplicated.chains[0]]})

    async def scenario():
        async with open_database() as session_maker:
            async with session_maker() as session:
                await PerformanceRepository(session).upsert_daily_performance(first)
            async with session_maker() as session:
                with pytest.raises(PersistenceConflictError):
                    await PerformanceRepository(session).upsert_daily_performance(duplicated)
            async with session_maker() as session:
                return await PerformanceRepository(session).get_by_date(date(2025, 1, 15))

    assert asyncio.run(scenario()) == first


def test_metrics_sharpe_ratio(open_database):
    async def scenario():
        async with open_database() as session_maker:
            async with session_maker() as session:
                repo = PerformanceRepository(session)
                await repo.upsert_daily_performance(_record(date(2025, 1, 14), differential=40.0))
                single = await repo.get_metrics(date(2025, 1, 14))
                await repo.upsert_daily_performance(_record(date(2025, 1, 15), differential=60.0))
                return single, await repo.get_metrics(date(2025, 1, 15))

    single, metrics = asyncio.run(scenario())
    assert single.sharpe_ratio == 0.0
    assert metrics.average_daily_gain_percentage == pytest.approx(50.0 / 5_000_600 * 100)
    assert metrics.sharpe_ratio == pytest.approx(
        (metrics.average_daily_gain_percentage - 0.05 / 365) / metrics.volatility
    )


def test_summary_over_range(open_database):
    async def scenario():
        async with open_database() as session_maker:
            async with session_maker() as session:
                repo = PerformanceRepository(session)
                for day, differential in ((14, 40.0), (15, 60.0), (16, 20.0)):
                    await repo.upsert_daily_performance(_record(date(2025, 1, day), differential=differential))
                return (
                    await repo.summary(date(2025, 1, 14), date(2025, 1, 16)),
                    await repo.summary(date(2025, 2, 1), date(2025, 2, 28)),
                )

    summary, empty = asyncio.run(scenario())

    assert empty is None
    assert summary.start_date == date(2025, 1, 14)
    assert summary.total_differential == pytest.approx(120.0)
    assert summary.average_differential == pytest.approx(40.0)
    assert summary.best_day.date == date(2025, 1, 15)
    assert summary.worst_day.date == date(2025, 1, 16)
    # 总体标准差 sqrt(800 / 3)
    assert summary.consistency_score == pytest.approx(100 - (800 / 3) ** 0.5 / 40 * 100)
    assert [p.cumulative_differential for p in summary.performance_chart] == pytest.approx([40.0, 100.0, 120.0])
    assert summary.performance_chart[1].optimized_value == pytest.approx(5_000_660.0)


def test_summary_consistency_bounds(open_database):
    async def scenario():
        async with open_database() as session_maker:
            async with session_maker() as session:
                repo = PerformanceRepository(session)
                await repo.upsert_daily_performance(_record(date(2025, 1, 14), differential=100.0))
                await repo.upsert_daily_performance(_record(date(2025, 1, 15), differential=-100.0))
                await repo.upsert_daily_performance(_record(date(2025, 1, 20), differential=0.0))
                return (
                    await repo.summary(date(2025, 1, 14), date(2025, 1, 15)),
                    await repo.summary(date(2025, 1, 20), date(2025, 1, 20)),
                )

    zero_average, flat = asyncio.run(scenario())
    assert zero_average.consistency_score == 100.0
    assert flat.consistency_score == 100.0


def test_init_models_reports_seeded_rows(database_url):
    async def scenario():
        engine = create_async_engine(database_url)
        try:
            return await init_models(engine), await init_models(engine)
        finally:
            await engine.dispose()

    assert asyncio.run(scenario()) == (2, 0)
