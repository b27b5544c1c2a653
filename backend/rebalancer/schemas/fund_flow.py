"""资金流 Schema"""

from datetime import date as date_type
from typing import Literal

from pydantic import BaseModel, Field


class FundFlowCreate(BaseModel):
    """新增资金流记录"""

    date: date_type
    chain_name: str = Field(..., description="链名称")
    flow_type: Literal["deposit", "withdrawal"] = Field(..., description="流入或流出")
    amount: float = Field(..., gt=0, description="金额（美元）")
    user_address: str | None = Field(None, description="用户地址")
    transaction_hash: str | None = Field(None, description="交易哈希")
    block_number: int | None = Field(None, description="区块高度")


class FundFlowResponse(FundFlowCreate):
    """资金流响应模型"""

    id: int

    class Config:
        from_attributes = True


class FundFlowSummaryItem(BaseModel):
    """按日期和链汇总的资金流"""

    date: date_type
    chain_name: str
    daily_inflows: float
    daily_outflows: float
    daily_net_flow: float


class FundFlowSummaryResponse(BaseModel):
    items: list[FundFlowSummaryItem]
