"""支持的链配置

弹性系数为静态配置：利用率每变化 1%，APY 变化的百分点数。
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ChainConfig:
    """单条链的 AAVE 市场配置"""

    chain_id: int
    name: str
    display_name: str
    reserve_address: str  # 计价资产（USDC）地址
    subgraph_url: str | None
    elasticity_factor: float


SUPPORTED_CHAINS: dict[str, ChainConfig] = {
    "ethereum": ChainConfig(
        chain_id=1,
        name="ethereum",
        display_name="Ethereum",
        reserve_address="0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48",
        subgraph_url="https://api.studio.thegraph.com/query/24660/aave-v3-ethereum/version/latest",
        elasticity_factor=0.1,
    ),
    "base": ChainConfig(
        chain_id=8453,
        name="base",
        display_name="Base",
        reserve_address="0x833589fcd6edb6e08f4c7c32d4f71b54bda02913",
        subgraph_url="https://api.studio.thegraph.com/query/24660/aave-v3-base/version/latest",
        elasticity_factor=0.2,
    ),
    "optimism": ChainConfig(
        chain_id=10,
        name="optimism",
        display_name="Optimism",
        reserve_address="0x0b2c639c533813f4aa9d7837caf62653d097ff85",
        subgraph_url="https://api.studio.thegraph.com/query/24660/aave-v3-optimism/version/latest",
        elasticity_factor=0.15,
    ),
    "arbitrum": ChainConfig(
        chain_id=42161,
        name="arbitrum",
        display_name="Arbitrum",
        reserve_address="0xaf88d065e77c8cc2239327c5edb3a432268e5831",
        subgraph_url="https://api.studio.thegraph.com/query/24660/aave-v3-arbitrum/version/latest",
        elasticity_factor=0.12,
    ),
    "polygon": ChainConfig(
        chain_id=137,
        name="polygon",
        display_name="Polygon",
        reserve_address="0x2791bca1f2de4661ed88a30c99a7a9449aa84174",
        subgraph_url="https://api.studio.thegraph.com/query/24660/aave-v3-polygon/version/latest",
        elasticity_factor=0.18,
    ),
}


def get_chain_config(chain_name: str) -> ChainConfig | None:
    """根据链名称获取配置"""
    return SUPPORTED_CHAINS.get(chain_name)


def elasticity_for(chain_name: str, default: float = 0.1) -> float:
    """获取链的弹性系数，未配置的链使用默认值"""
    config = SUPPORTED_CHAINS.get(chain_name)
    if config is None:
        return default
    return config.elasticity_factor
