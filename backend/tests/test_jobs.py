import asyncio
import logging

import pytest

from rebalancer.core.errors import NoChainDataError, PersistenceConflictError
from rebalancer.schemas.performance import ChainPerformanceEntry, DailyPerformanceRecord
from rebalancer.tasks import jobs
from rebalancer.tasks.scheduler import SchedulerWrapper


class FakeService:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    async def calculate_daily_performance(self, performance_date):
        if self.error is not None:
            raise self.error
        return self.result.model_copy(update={"date": performance_date})


def _record(differential):
    return DailyPerformanceRecord(
        date="2025-01-15",
        total_fund_allocation_baseline=5_000_000,
        total_fund_allocation_optimized=5_000_000 + differential,
        differential=differential,
        differential_percentage=differential / 5_000_000 * 100,
        chains=[
            ChainPerformanceEntry(
                chain_name="base",
                apy_baseline=6.0,
                apy_optimized=5.9,
                allocation_baseline=1_000_000,
                allocation_optimized=1_500_000,
                utilization_ratio=0.7,
                total_supply=20_000_000,
            )
        ],
    )


def test_job_skips_day_without_chain_data(monkeypatch, caplog):
    monkeypatch.setattr(jobs, "get_performance_service", lambda: FakeService(error=NoChainDataError()))
    with caplog.at_level(logging.WARNING):
        asyncio.run(jobs.performance_calculation_job())
    assert "跳过" in caplog.text


def test_job_propagates_persistence_conflict(monkeypatch):
    monkeypatch.setattr(
        jobs, "get_performance_service", lambda: FakeService(error=PersistenceConflictError("conflict"))
    )
    with pytest.raises(PersistenceConflictError):
        asyncio.run(jobs.performance_calculation_job())


def test_job_warns_on_large_differential(monkeypatch, caplog):
    monkeypatch.setattr(jobs, "get_performance_service", lambda: FakeService(result=_record(25_000)))
    monkeypatch.setattr(jobs.settings, "significant_differential_alert", 1_000)
    with caplog.at_level(logging.INFO):
        asyncio.run(jobs.performance_calculation_job())
    assert "业绩差值较大" in caplog.text
    assert "base" in caplog.text


def test_format_number():
    assert jobs._format_number(1_500_000) == "1.5M"
    assert jobs._format_number(-2_500) == "-2.5K"
    assert jobs._format_number(42) == "42"


def test_scheduler_registers_daily_job():
    async def scenario():
        wrapper = SchedulerWrapper()
        await wrapper.start()
        try:
            return [job.id for job in wrapper._scheduler.get_jobs()]
        finally:
            await wrapper.stop()

    assert asyncio.run(scenario()) == ["performance_calculation_daily"]
