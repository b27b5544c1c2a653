"""资金流仓库"""

import logging
from collections.abc import Sequence
from datetime import date

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rebalancer.models.fund_flow import FundFlow
from rebalancer.schemas.fund_flow import FundFlowSummaryItem

logger = logging.getLogger(__name__)

FLOW_TYPES = ("deposit", "withdrawal")


class FundFlowRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def flows_for_date(self, flow_date: date) -> Sequence[FundFlow]:
        result = await self._session.execute(
            select(FundFlow)
            .where(FundFlow.date == flow_date)
            .order_by(FundFlow.created_at, FundFlow.id)
        )
        return result.scalars().all()

    async def add_fund_flow(
        self,
        *,
        flow_date: date,
        chain_name: str,
        flow_type: str,
        amount: float,
        user_address: str | None = None,
        transaction_hash: str | None = None,
        block_number: int | None = None,
    ) -> FundFlow | None:
        """
        新增资金流记录，(date, chain_name, transaction_hash) 重复时忽略

        Returns:
            新记录；重复时返回 None
        """
        if flow_type not in FLOW_TYPES:
            raise ValueError(f"未知的资金流类型: {flow_type}")
        if amount <= 0:
            raise ValueError(f"资金流金额必须大于 0: {amount}")

        if transaction_hash is not None:
            existing = await self._session.execute(
                select(FundFlow.id).where(
                    FundFlow.date == flow_date,
                    FundFlow.chain_name == chain_name,
                    FundFlow.transaction_hash == transaction_hash,
                )
            )
            if existing.scalar_one_or_none() is not None:
                logger.info(f"资金流已存在，跳过: {chain_name} {transaction_hash}")
                return None

        flow = FundFlow(
            date=flow_date,
            chain_name=chain_name,
            flow_type=flow_type,
            amount=amount,
            user_address=user_address,
            transaction_hash=transaction_hash,
            block_number=block_number,
        )
        self._session.add(flow)
        try:
            await self._session.commit()
        except IntegrityError:
            await self._session.rollback()
            logger.info(f"资金流已存在，跳过: {chain_name} {transaction_hash}")
            return None

        await self._session.refresh(flow)
        logger.info(f"新增资金流: {flow_type} ${amount:,.2f} @ {chain_name}")
        return flow

    async def summary(self, start: date, end: date) -> list[FundFlowSummaryItem]:
        """按日期和链汇总资金流（日期倒序）"""
        inflows = func.sum(case((FundFlow.flow_type == "deposit", FundFlow.amount), else_=0.0))
        outflows = func.sum(case((FundFlow.flow_type == "withdrawal", FundFlow.amount), else_=0.0))
        result = await self._session.execute(
            select(
                FundFlow.date,
                FundFlow.chain_name,
                inflows.label("daily_inflows"),
                outflows.label("daily_outflows"),
            )
            .where(FundFlow.date >= start, FundFlow.date <= end)
            .group_by(FundFlow.date, FundFlow.chain_name)
            .order_by(FundFlow.date.desc(), FundFlow.chain_name)
        )
        return [
            FundFlowSummaryItem(
                date=row.date,
                chain_name=row.chain_name,
                daily_inflows=row.daily_inflows or 0.0,
                daily_outflows=row.daily_outflows or 0.0,
                daily_net_flow=(row.daily_inflows or 0.0) - (row.daily_outflows or 0.0),
            )
            for row in result.all()
        ]
