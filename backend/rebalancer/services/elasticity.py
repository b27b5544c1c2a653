"""基于弹性系数的 APY 预测"""

import logging

logger = logging.getLogger(__name__)


def predict_apy_after_fund_movement(
    current_apy: float,
    total_liquidity: float,
    fund_movement: float,
    elasticity_factor: float,
) -> float:
    """
    预测资金移动后的 APY

    公式：newAPY = currentAPY + (fund_movement / total_liquidity * 100) * elasticity_factor

    Args:
        current_apy: 当前 APY，单位：百分比
        total_liquidity: 池子总流动性（美元）
        fund_movement: 资金移动金额，正数为流入，负数为流出
        elasticity_factor: 利用率每变化 1%，APY 变化的百分点数

    Returns:
        预测的 APY（不会小于 0）
    """
    if total_liquidity == 0:
        return current_apy

    utilization_change = (fund_movement / total_liquidity) * 100
    apy_change = utilization_change * elasticity_factor
    new_apy = max(0.0, current_apy + apy_change)

    logger.debug(
        f"APY 预测: {current_apy:.3f}% -> {new_apy:.3f}% "
        f"(移动: ${fund_movement:,.0f}, 弹性: {elasticity_factor})"
    )
    return new_apy
