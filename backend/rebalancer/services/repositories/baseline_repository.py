"""基准分配配置仓库"""

import logging
from datetime import date
from typing import Mapping

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from rebalancer.models.baseline_configuration import BaselineConfiguration

logger = logging.getLogger(__name__)


class BaselineRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def allocation_for_date(
        self,
        target_date: date,
        default: Mapping[str, float] | None = None,
    ) -> dict[str, float]:
        """
        获取指定日期生效的基准分配

        生效条件：effective_from <= date 且 (effective_to 为空 或 effective_to > date)。
        没有生效记录时返回 default。
        """
        result = await self._session.execute(
            select(BaselineConfiguration)
            .where(
                BaselineConfiguration.effective_from <= target_date,
                or_(
                    BaselineConfiguration.effective_to.is_(None),
                    BaselineConfiguration.effective_to > target_date,
                ),
            )
            .order_by(BaselineConfiguration.id)
        )
        allocation = {row.chain_name: row.initial_allocation for row in result.scalars().all()}

        if not allocation:
            logger.warning(f"{target_date} 没有生效的基准分配配置，使用默认配置")
            return dict(default or {})
        return allocation
