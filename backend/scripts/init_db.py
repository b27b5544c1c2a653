"""初始化数据库脚本

创建每日业绩、链利率明细、资金流和基准分配表；
基准分配表为空时写入配置中的默认基准分配，并打印当前生效的分配。

使用方法：
    python scripts/init_db.py
"""

import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

# 添加项目根目录到 Python 路径
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from rebalancer.core.config import settings
from rebalancer.core.db import get_sessionmaker, init_models
from rebalancer.services.repositories.baseline_repository import BaselineRepository

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def main():
    """初始化数据库"""
    try:
        logger.info(f"开始初始化数据库: {settings.database_url}")
        seeded = await init_models()
        if seeded:
            logger.info(f"已写入 {seeded} 条默认基准分配")
        else:
            logger.info("基准分配配置已存在，未写入默认值")

        today = datetime.now(timezone.utc).date()
        async with get_sessionmaker()() as session:
            allocation = await BaselineRepository(session).allocation_for_date(today)
        for chain_name, amount in allocation.items():
            logger.info(f"   {chain_name}: ${amount:,.2f}")
        logger.info("数据库初始化完成！")
    except Exception as e:
        logger.error(f"数据库初始化失败: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
