"""资金流模型"""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, Date, DateTime, Float, Integer, String, UniqueConstraint

from rebalancer.core.db import Base


class FundFlow(Base):
    """资金流入流出记录（写入后不可修改）"""

    __tablename__ = "fund_flows"
    __table_args__ = (
        UniqueConstraint("date", "chain_name", "transaction_hash", name="uq_fund_flows_date_chain_tx"),
        CheckConstraint("flow_type IN ('deposit', 'withdrawal')", name="ck_fund_flows_flow_type"),
        CheckConstraint("amount > 0", name="ck_fund_flows_amount_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)

    date = Column(Date, nullable=False, index=True)
    chain_name = Column(String(50), nullable=False, index=True)

    # 'deposit' 或 'withdrawal'
    flow_type = Column(String(10), nullable=False, index=True)
    amount = Column(Float, nullable=False)

    # 来源信息（可选）
    user_address = Column(String(42), nullable=True)
    transaction_hash = Column(String(66), nullable=True)
    block_number = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
