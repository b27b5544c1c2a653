"""链上借贷市场数据采集

每条链的查询互相独立：并发请求，单条链超时或失败只会被排除，不影响其他链。
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol, Sequence

import httpx

from rebalancer.core.chains import ChainConfig, get_chain_config
from rebalancer.core.errors import ChainDataError

logger = logging.getLogger(__name__)

RAY = 10**27
MAX_REASONABLE_APY = 1000.0  # 超过 1000% 视为异常数据
RESERVE_DECIMALS = 6  # USDC 精度


@dataclass(frozen=True)
class ChainSnapshot:
    """单条链在某一时刻的市场数据"""

    chain_name: str
    supply_apy: float  # 单位：百分比
    utilization_ratio: float  # 借出占供应的比例，0 ~ 1（不是百分比）
    total_liquidity: float  # 美元
    elasticity_factor: float
    fetched_at: datetime | None = None


class ChainFetcher(Protocol):
    async def fetch_chain(self, chain: ChainConfig) -> ChainSnapshot: ...


def ray_to_apy(ray_rate: str | int | None) -> float:
    """
    将 AAVE 的 ray 格式年化利率转换为百分比 APY

    异常值（非数字、负数、超过 1000%）返回 0
    """
    if ray_rate is None:
        return 0.0
    try:
        rate = int(ray_rate) / RAY
    except (TypeError, ValueError):
        return 0.0

    if not math.isfinite(rate) or rate <= 0:
        return 0.0

    apy = rate * 100
    if apy > MAX_REASONABLE_APY:
        return 0.0
    return apy


def utilization_to_ratio(raw: str | float | None) -> float:
    """
    将子图返回的利用率统一换算为 0 ~ 1 的比例

    子图可能返回 ray 格式整数（1e27 = 100%）或已换算的小数，大于 1 的值按 ray 处理。
    """
    if raw is None:
        return 0.0
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0

    if not math.isfinite(value) or value < 0:
        return 0.0
    if value > 1:
        value = value / RAY
    return min(value, 1.0)


class AaveSubgraphClient:
    """AAVE 子图客户端，用于获取各链最新的储备数据"""

    RESERVE_QUERY = """
    query LatestReserve($reserve: String!) {
      reserves(where: { underlyingAsset: $reserve }, first: 1) {
        liquidityRate
        utilizationRate
        totalLiquidity
        availableLiquidity
      }
    }
    """

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 30.0) -> None:
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={
                "Accept": "application/json",
                "User-Agent": "AaveRebalancer/1.0",
            },
        )

    async def fetch_chain(self, chain: ChainConfig) -> ChainSnapshot:
        """获取单条链的最新储备数据"""
        if not chain.subgraph_url:
            raise ChainDataError(chain.name, "未配置子图地址")

        response = await self._client.post(
            chain.subgraph_url,
            json={
                "query": self.RESERVE_QUERY,
                "variables": {"reserve": chain.reserve_address.lower()},
            },
        )
        response.raise_for_status()
        payload = response.json()

        if payload.get("errors"):
            raise ChainDataError(chain.name, f"子图返回错误: {payload['errors']}")

        reserves = (payload.get("data") or {}).get("reserves") or []
        if not reserves:
            raise ChainDataError(chain.name, "子图中没有储备数据")

        return self._parse_reserve(chain, reserves[0])

    @staticmethod
    def _parse_reserve(chain: ChainConfig, reserve: dict[str, Any]) -> ChainSnapshot:
        scale = 10**RESERVE_DECIMALS
        total_liquidity = int(reserve.get("totalLiquidity") or 0) / scale
        utilization = utilization_to_ratio(reserve.get("utilizationRate"))

        return ChainSnapshot(
            chain_name=chain.name,
            supply_apy=ray_to_apy(reserve.get("liquidityRate")),
            utilization_ratio=utilization,
            total_liquidity=total_liquidity,
            elasticity_factor=chain.elasticity_factor,
            fetched_at=datetime.now(timezone.utc),
        )

    async def close(self) -> None:
        """关闭 HTTP 客户端"""
        await self._client.aclose()


class ChainDataProvider:
    """并发采集所有链的数据，容忍部分失败"""

    def __init__(self, fetcher: ChainFetcher, timeout: float = 15.0) -> None:
        self._fetcher = fetcher
        self._timeout = timeout

    async def fetch_all(self, chain_names: Sequence[str]) -> list[ChainSnapshot]:
        """
        获取所有链的数据

        Returns:
            成功获取的链数据，顺序与 chain_names 一致；失败的链被排除
        """
        configs: list[ChainConfig] = []
        for name in chain_names:
            config = get_chain_config(name)
            if config is None:
                logger.warning(f"未找到链配置: {name}，已跳过")
                continue
            configs.append(config)

        results = await asyncio.gather(
            *(self._fetch_one(config) for config in configs),
            return_exceptions=True,
        )

        snapshots: list[ChainSnapshot] = []
        for config, result in zip(configs, results):
            if isinstance(result, BaseException):
                logger.warning(f"获取链 {config.name} 的数据失败，本次计算排除该链: {result!r}")
                continue
            snapshots.append(result)

        logger.info(f"链数据采集完成: {len(snapshots)}/{len(configs)} 条链成功")
        return snapshots

    async def close(self) -> None:
        """关闭底层数据源"""
        close = getattr(self._fetcher, "close", None)
        if close is not None:
            await close()

    async def _fetch_one(self, config: ChainConfig) -> ChainSnapshot:
        try:
            return await asyncio.wait_for(self._fetcher.fetch_chain(config), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise ChainDataError(config.name, f"请求超时（{self._timeout}s）") from e
