"""每日业绩 Schema"""

from datetime import date as date_type

from pydantic import BaseModel, Field


class ChainPerformanceEntry(BaseModel):
    """单条链的业绩明细"""

    chain_name: str = Field(..., description="链名称")
    apy_baseline: float = Field(..., description="基准场景 APY，单位：百分比")
    apy_optimized: float = Field(..., description="优化场景 APY，单位：百分比")
    allocation_baseline: float = Field(..., description="基准分配金额（美元）")
    allocation_optimized: float = Field(..., description="优化分配金额（美元）")
    utilization_ratio: float = Field(..., description="利用率，0 ~ 1 的比例")
    total_supply: float = Field(..., description="池子总供应量（美元）")
    elasticity_factor: float | None = Field(None, description="弹性系数")

    class Config:
        from_attributes = True


class DailyPerformanceRecord(BaseModel):
    """每日业绩记录（每个日期唯一）"""

    date: date_type
    total_fund_allocation_baseline: float = Field(..., description="资金流调整后的基准总价值")
    total_fund_allocation_optimized: float = Field(..., description="资金流调整后的优化总价值")
    differential: float = Field(..., description="优化 - 基准（美元）")
    differential_percentage: float = Field(..., description="差值占基准的百分比")
    total_inflows: float = 0.0
    total_outflows: float = 0.0
    net_flow: float = 0.0
    previous_day_total: float | None = Field(None, description="前一天的优化总价值")
    total_fund_size: float | None = Field(None, description="计算时使用的资金池规模")
    chains: list[ChainPerformanceEntry] = Field(default_factory=list)


class PerformanceListResponse(BaseModel):
    """业绩列表响应"""

    items: list[DailyPerformanceRecord]
    total: int


class PerformanceMetrics(BaseModel):
    """一段时间内的业绩汇总"""

    total_gain: float = 0.0
    total_gain_percentage: float = 0.0
    average_daily_gain: float = 0.0
    average_daily_gain_percentage: float = 0.0
    best_performing_chain: str | None = None
    worst_performing_chain: str | None = None
    total_days_tracked: int = 0
    volatility: float = 0.0
    total_inflows: float = 0.0
    total_outflows: float = 0.0
    net_flow: float = 0.0
    sharpe_ratio: float = Field(0.0, description="(日均收益率 - 日无风险利率) / 波动率")


class PerformanceChartPoint(BaseModel):
    """业绩曲线上的一个点"""

    date: date_type
    baseline_value: float
    optimized_value: float
    cumulative_differential: float = Field(..., description="截至当天的累计差值")


class PerformanceSummary(BaseModel):
    """日期区间内的业绩概览"""

    start_date: date_type
    end_date: date_type
    total_differential: float
    average_differential: float
    best_day: DailyPerformanceRecord
    worst_day: DailyPerformanceRecord
    consistency_score: float = Field(..., description="一致性评分（0 ~ 100，越高越稳定）")
    performance_chart: list[PerformanceChartPoint] = Field(default_factory=list)
