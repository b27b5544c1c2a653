"""清空并重新初始化数据库脚本

警告：此操作会删除所有数据，包括：
- 所有每日业绩记录
- 所有链利率明细
- 所有资金流记录
- 所有基准分配配置（重新初始化后恢复为默认配置）

使用方法：
    python scripts/reset_db.py
"""

import asyncio
import logging
import sys
from pathlib import Path

# 添加项目根目录到 Python 路径
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from rebalancer.core.db import Base, get_engine, init_models

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def reset_database():
    """清空并重新初始化数据库"""
    try:
        confirm = input("确认要清空数据库吗？输入 'YES' 继续: ")
        if confirm != "YES":
            logger.info("操作已取消")
            return

        # 先建表确保所有模型已注册到 metadata
        await init_models()

        logger.info("开始清空数据库...")
        engine = get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            logger.info(f"已删除 {len(Base.metadata.tables)} 个表: {', '.join(Base.metadata.tables)}")

        logger.info("数据库已清空，开始重新初始化...")
        await init_models()
        logger.info("✅ 数据库重置完成！")

    except Exception as e:
        logger.error(f"数据库重置失败: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(reset_database())
