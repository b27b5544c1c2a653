"""每日业绩模型"""

from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, Float, Integer, String, UniqueConstraint

from rebalancer.core.db import Base


class DailyPerformance(Base):
    """每日业绩表，记录基准与优化两种场景的差值（每个日期一行）"""

    __tablename__ = "daily_performance"

    id = Column(Integer, primary_key=True, index=True)

    # 业绩日期（唯一）
    date = Column(Date, unique=True, nullable=False, index=True)

    # 已按资金流调整后的两种场景总价值（美元）
    total_fund_allocation_baseline = Column(Float, nullable=False)
    total_fund_allocation_optimized = Column(Float, nullable=False)

    # 差值 = 优化 - 基准
    differential = Column(Float, nullable=False)
    differential_percentage = Column(Float, nullable=False, default=0.0)

    # 当天资金流入流出
    total_inflows = Column(Float, nullable=False, default=0.0)
    total_outflows = Column(Float, nullable=False, default=0.0)
    net_flow = Column(Float, nullable=False, default=0.0)

    # 前一天的优化总价值（没有记录时为空）
    previous_day_total = Column(Float, nullable=True)

    # 计算时使用的资金池规模（预言机值或备用值）
    total_fund_size = Column(Float, nullable=True)

    # 时间戳
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc), nullable=False)


class ChainRate(Base):
    """每条链每天的利率和分配明细"""

    __tablename__ = "chain_rates"
    __table_args__ = (UniqueConstraint("date", "chain_name", name="unique_chain_date"),)

    id = Column(Integer, primary_key=True, index=True)

    date = Column(Date, nullable=False, index=True)
    chain_name = Column(String(50), nullable=False, index=True)

    # APY，单位：百分比（如 5.5 表示 5.5%）
    apy_baseline = Column(Float, nullable=False)
    apy_optimized = Column(Float, nullable=False)

    # 分配金额（美元）
    allocation_baseline = Column(Float, nullable=False)
    allocation_optimized = Column(Float, nullable=False)

    utilization_ratio = Column(Float, nullable=False)
    total_supply = Column(Float, nullable=False)
    elasticity_factor = Column(Float, nullable=True)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
