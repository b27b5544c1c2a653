"""定时任务"""

import logging
import time
from datetime import datetime, timezone

from rebalancer.core.config import settings
from rebalancer.core.errors import NoChainDataError
from rebalancer.services.performance_service import get_performance_service

logger = logging.getLogger(__name__)


def _format_number(num: float) -> str:
    if abs(num) >= 1_000_000:
        return f"{num / 1_000_000:.1f}M"
    if abs(num) >= 1_000:
        return f"{num / 1_000:.1f}K"
    return f"{num:.0f}"


async def performance_calculation_job() -> None:
    """每天计算当天（UTC）的业绩差值"""
    start_time = time.monotonic()
    today = datetime.now(timezone.utc).date()
    logger.info(f"开始执行业绩计算任务: {today}")

    try:
        record = await get_performance_service().calculate_daily_performance(today)
    except NoChainDataError:
        logger.warning("⚠️ 没有可用的链数据，跳过今天的业绩计算，下个周期重试")
        return
    except Exception as e:
        logger.error(f"❌ 业绩计算任务失败: {e}", exc_info=True)
        raise

    duration = time.monotonic() - start_time
    logger.info(f"✅ 业绩计算完成，耗时 {duration:.2f} 秒")
    logger.info(f"📊 当日差值: ${record.differential:,.2f} ({record.differential_percentage:.4f}%)")

    for chain in record.chains:
        logger.info(
            f"⚖️ {chain.chain_name}: 基准 ${_format_number(chain.allocation_baseline)} "
            f"-> 优化 ${_format_number(chain.allocation_optimized)}, "
            f"APY 变化 {chain.apy_optimized - chain.apy_baseline:+.4f}%"
        )

    if abs(record.differential) > settings.significant_differential_alert:
        logger.warning(f"🚨 业绩差值较大: ${record.differential:,.2f}")
