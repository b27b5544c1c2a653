"""手动计算某一天的业绩

使用方法：
    python scripts/calculate_performance.py 2025-01-15
    python scripts/calculate_performance.py          # 默认今天（UTC）
"""

import argparse
import asyncio
import logging
import sys
from datetime import date, datetime, timezone
from pathlib import Path

# 添加项目根目录到 Python 路径
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from rebalancer.core.db import init_models
from rebalancer.core.errors import NoChainDataError, PersistenceConflictError
from rebalancer.services.performance_service import get_performance_service

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def main(performance_date: date) -> int:
    await init_models()
    try:
        record = await get_performance_service().calculate_daily_performance(performance_date)
    except NoChainDataError as e:
        logger.error(f"数据不足，无法计算 {performance_date} 的业绩: {e}")
        return 2
    except PersistenceConflictError as e:
        logger.error(f"计算成功，但写入失败: {e}")
        return 3

    logger.info(
        f"{record.date}: 基准 ${record.total_fund_allocation_baseline:,.2f}, "
        f"优化 ${record.total_fund_allocation_optimized:,.2f}, "
        f"差值 ${record.differential:,.2f} ({record.differential_percentage:.4f}%)"
    )
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="计算某一天的业绩差值")
    parser.add_argument("date", nargs="?", type=date.fromisoformat, help="日期（YYYY-MM-DD），默认今天")
    args = parser.parse_args()

    target = args.date or datetime.now(timezone.utc).date()
    sys.exit(asyncio.run(main(target)))
