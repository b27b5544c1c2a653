from apscheduler.schedulers.asyncio import AsyncIOScheduler

from rebalancer.core.config import settings
from rebalancer.tasks import jobs


class SchedulerWrapper:
    def __init__(self) -> None:
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._performance_job_id = "performance_calculation_daily"
        self._is_configured = False

    def _configure_jobs(self) -> None:
        if self._is_configured:
            return

        # 每日业绩计算任务
        self._scheduler.add_job(
            jobs.performance_calculation_job,
            "cron",
            hour=settings.performance_job_hour,
            minute=settings.performance_job_minute,
            id=self._performance_job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        self._is_configured = True

    async def start(self) -> None:
        if not self._scheduler.running:
            self._configure_jobs()
            self._scheduler.start()

    async def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)


scheduler = SchedulerWrapper()
