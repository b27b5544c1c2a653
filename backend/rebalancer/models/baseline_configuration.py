"""基准分配配置模型"""

from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, Float, Integer, String

from rebalancer.core.db import Base


class BaselineConfiguration(Base):
    """基准分配配置表，按生效日期区间查询"""

    __tablename__ = "baseline_configuration"

    id = Column(Integer, primary_key=True, index=True)

    chain_name = Column(String(50), nullable=False, index=True)
    initial_allocation = Column(Float, nullable=False)  # 基准分配金额（美元）
    percentage_allocation = Column(Float, nullable=False)  # 占总资金的百分比

    # 生效区间 [effective_from, effective_to)，effective_to 为空表示当前生效
    effective_from = Column(Date, nullable=False, index=True)
    effective_to = Column(Date, nullable=True, index=True)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
