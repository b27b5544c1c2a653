"""资金流汇总"""

from dataclasses import dataclass
from typing import Iterable, Protocol


class FlowLike(Protocol):
    chain_name: str
    flow_type: str
    amount: float


@dataclass(frozen=True)
class FlowTotals:
    total_inflows: float = 0.0
    total_outflows: float = 0.0

    @property
    def net_flow(self) -> float:
        return self.total_inflows - self.total_outflows


def aggregate_fund_flows(flows: Iterable[FlowLike]) -> FlowTotals:
    """汇总当天的流入（deposit）和流出（withdrawal）"""
    inflows = 0.0
    outflows = 0.0
    for flow in flows:
        if flow.flow_type == "deposit":
            inflows += float(flow.amount)
        elif flow.flow_type == "withdrawal":
            outflows += float(flow.amount)
    return FlowTotals(total_inflows=inflows, total_outflows=outflows)


def summarize_by_chain(flows: Iterable[FlowLike]) -> dict[str, FlowTotals]:
    """按链汇总资金流"""
    grouped: dict[str, list[FlowLike]] = {}
    for flow in flows:
        grouped.setdefault(flow.chain_name, []).append(flow)
    return {chain_name: aggregate_fund_flows(items) for chain_name, items in grouped.items()}
