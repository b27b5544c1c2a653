"""资金池价值预言机客户端"""

import logging
import math
from typing import Any, Protocol

import httpx

from rebalancer.core.errors import OracleUnavailableError

logger = logging.getLogger(__name__)


class TotalFundSizeOracle(Protocol):
    async def current_pool_value(self) -> float: ...


class PoolValueOracleClient:
    """从预言机接口读取资金池当前总价值（美元）"""

    def __init__(
        self,
        url: str | None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._url = url
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={
                "Accept": "application/json",
                "User-Agent": "AaveRebalancer/1.0",
            },
        )

    async def current_pool_value(self) -> float:
        """
        获取资金池当前总价值

        Raises:
            OracleUnavailableError: 未配置地址、请求失败或返回值无效
        """
        if not self._url:
            raise OracleUnavailableError("未配置预言机地址")

        try:
            response = await self._client.get(self._url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise OracleUnavailableError(f"预言机请求失败: {e}") from e

        value = self._extract_value(data)
        if value is None or not math.isfinite(value) or value < 0:
            raise OracleUnavailableError(f"预言机返回无效数据: {data!r}")
        return value

    @staticmethod
    def _extract_value(data: Any) -> float | None:
        if isinstance(data, (int, float)):
            return float(data)
        if isinstance(data, dict):
            for key in ("poolValue", "pool_value", "totalValue", "value"):
                if key in data:
                    try:
                        return float(data[key])
                    except (TypeError, ValueError):
                        return None
        return None

    async def close(self) -> None:
        """关闭 HTTP 客户端"""
        await self._client.aclose()


async def resolve_total_fund_size(oracle: TotalFundSizeOracle | None, fallback: float) -> float:
    """读取资金池规模，预言机不可用时使用备用值"""
    if oracle is None:
        logger.warning(f"未配置预言机，使用备用资金规模: ${fallback:,.2f}")
        return fallback
    try:
        pool_value = await oracle.current_pool_value()
    except OracleUnavailableError as e:
        logger.warning(f"预言机不可用，使用备用资金规模: ${fallback:,.2f} ({e})")
        return fallback

    logger.info(f"使用预言机实时资金池价值: ${pool_value:,.2f}")
    return pool_value
