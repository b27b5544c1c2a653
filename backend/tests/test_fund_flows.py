from datetime import date

import pytest

from rebalancer.schemas.fund_flow import FundFlowCreate
from rebalancer.services.fund_flows import FlowTotals, aggregate_fund_flows, summarize_by_chain


def _flow(chain_name, flow_type, amount, tx=None):
    return FundFlowCreate(
        date=date(2025, 1, 15),
        chain_name=chain_name,
        flow_type=flow_type,
        amount=amount,
        transaction_hash=tx,
    )


def test_empty_flows_yield_zeros():
    totals = aggregate_fund_flows([])
    assert totals == FlowTotals(0.0, 0.0)
    assert totals.net_flow == 0.0


def test_aggregate_deposits_and_withdrawals():
    flows = [
        _flow("ethereum", "deposit", 250_000),
        _flow("base", "deposit", 50_000),
        _flow("ethereum", "withdrawal", 100_000),
    ]
    totals = aggregate_fund_flows(flows)

    assert totals.total_inflows == pytest.approx(300_000)
    assert totals.total_outflows == pytest.approx(100_000)
    assert totals.net_flow == pytest.approx(200_000)


def test_net_flow_can_be_negative():
    totals = aggregate_fund_flows([_flow("base", "withdrawal", 75_000)])
    assert totals.net_flow == pytest.approx(-75_000)


def test_summarize_by_chain():
    flows = [
        _flow("ethereum", "deposit", 250_000),
        _flow("base", "withdrawal", 50_000),
        _flow("ethereum", "withdrawal", 100_000),
    ]
    summary = summarize_by_chain(flows)

    assert set(summary) == {"ethereum", "base"}
    assert summary["ethereum"].net_flow == pytest.approx(150_000)
    assert summary["base"].total_inflows == 0.0
    assert summary["base"].net_flow == pytest.approx(-50_000)


def test_schema_rejects_non_positive_amount():
    with pytest.raises(ValueError):
        _flow("base", "deposit", 0)
