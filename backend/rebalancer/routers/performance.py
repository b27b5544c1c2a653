"""业绩 API 路由"""

import logging
from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rebalancer.core.db import get_session
from rebalancer.core.errors import NoChainDataError, PersistenceConflictError
from rebalancer.schemas.performance import (
    DailyPerformanceRecord,
    PerformanceListResponse,
    PerformanceMetrics,
    PerformanceSummary,
)
from rebalancer.services.performance_service import PerformanceService, get_performance_service
from rebalancer.services.repositories.performance_repository import PerformanceRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/performance", tags=["performance"])


@router.get("", response_model=PerformanceListResponse)
async def list_performance(
    start: date = Query(..., description="开始日期"),
    end: date = Query(..., description="结束日期"),
    session: AsyncSession = Depends(get_session),
) -> PerformanceListResponse:
    """
    获取日期区间内的每日业绩
    """
    if start > end:
        raise HTTPException(status_code=400, detail="开始日期不能晚于结束日期")

    items = await PerformanceRepository(session).list_range(start, end)
    return PerformanceListResponse(items=items, total=len(items))


@router.get("/metrics", response_model=PerformanceMetrics)
async def get_metrics(
    as_of: date | None = Query(None, description="统计截止日期，默认今天"),
    session: AsyncSession = Depends(get_session),
) -> PerformanceMetrics:
    """
    获取最近一年的业绩汇总
    """
    as_of = as_of or datetime.now(timezone.utc).date()
    return await PerformanceRepository(session).get_metrics(as_of)


@router.get("/summary", response_model=PerformanceSummary)
async def get_summary(
    start: date = Query(..., description="开始日期"),
    end: date = Query(..., description="结束日期"),
    session: AsyncSession = Depends(get_session),
) -> PerformanceSummary:
    """
    获取日期区间内的业绩概览（含累计差值曲线）
    """
    if start > end:
        raise HTTPException(status_code=400, detail="开始日期不能晚于结束日期")

    summary = await PerformanceRepository(session).summary(start, end)
    if summary is None:
        raise HTTPException(status_code=404, detail="该区间没有业绩数据")
    return summary


@router.get("/{performance_date}", response_model=DailyPerformanceRecord)
async def get_performance(
    performance_date: date,
    session: AsyncSession = Depends(get_session),
) -> DailyPerformanceRecord:
    record = await PerformanceRepository(session).get_by_date(performance_date)
    if record is None:
        raise HTTPException(status_code=404, detail="该日期没有业绩记录")
    return record


@router.post("/{performance_date}/calculate", response_model=DailyPerformanceRecord)
async def calculate_performance(
    performance_date: date,
    service: PerformanceService = Depends(get_performance_service),
) -> DailyPerformanceRecord:
    """
    手动触发某一天的业绩计算（重复触发会覆盖当天记录）
    """
    try:
        return await service.calculate_daily_performance(performance_date)
    except NoChainDataError as e:
        raise HTTPException(status_code=422, detail=f"数据不足: {e}")
    except PersistenceConflictError as e:
        raise HTTPException(status_code=409, detail=f"计算成功，但写入失败: {e}")
