"""资金流 API 路由"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rebalancer.core.db import get_session
from rebalancer.schemas.fund_flow import FundFlowCreate, FundFlowResponse, FundFlowSummaryResponse
from rebalancer.services.repositories.fund_flow_repository import FundFlowRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/fund-flows", tags=["fund-flows"])


@router.post("", response_model=FundFlowResponse)
async def create_fund_flow(
    data: FundFlowCreate,
    session: AsyncSession = Depends(get_session),
) -> FundFlowResponse:
    """
    记录一笔资金流入或流出
    """
    flow = await FundFlowRepository(session).add_fund_flow(
        flow_date=data.date,
        chain_name=data.chain_name,
        flow_type=data.flow_type,
        amount=data.amount,
        user_address=data.user_address,
        transaction_hash=data.transaction_hash,
        block_number=data.block_number,
    )
    if flow is None:
        raise HTTPException(status_code=409, detail="资金流记录已存在")
    return flow


@router.get("/summary", response_model=FundFlowSummaryResponse)
async def get_fund_flow_summary(
    start: date = Query(..., description="开始日期"),
    end: date = Query(..., description="结束日期"),
    session: AsyncSession = Depends(get_session),
) -> FundFlowSummaryResponse:
    """
    按日期和链汇总资金流
    """
    items = await FundFlowRepository(session).summary(start, end)
    return FundFlowSummaryResponse(items=items)
