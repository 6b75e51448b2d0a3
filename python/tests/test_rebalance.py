from datetime import date

import pytest

from smart_dca.config import RebalanceConfig, RebalancePeriod
from smart_dca.exceptions import ConfigurationError
from smart_dca.rebalance import (
    SKIP_BELOW_MINIMUM,
    SKIP_NOT_NEEDED,
    RebalanceManager,
    month_difference,
    round_half_up,
)
from smart_dca.types import RebalanceErrored, RebalanceSkipped, RebalanceState, RebalanceSuccess

PRICES = {"A": 10.0, "B": 10.0}


def _manager(min_trade_amount=1000.0, **kwargs) -> RebalanceManager:
    m = RebalanceManager(RebalanceConfig(min_trade_amount=min_trade_amount, **kwargs))
    m.set_target_allocations({"A": 0.6, "B": 0.4})
    m.update_current_holdings({"A": 100, "B": 100})
    return m


class TestCadence:
    def test_first_check_is_always_due(self):
        assert RebalanceManager(RebalanceConfig()).is_rebalance_due(date(2024, 1, 1))

    def test_quarterly(self):
        m = RebalanceManager(RebalanceConfig(period=RebalancePeriod.QUARTERLY))
        m.state.last_rebalance_date = date(2024, 1, 15)
        assert m.is_rebalance_due(date(2024, 4, 14))
        assert not m.is_rebalance_due(date(2024, 3, 15))

    @pytest.mark.parametrize(
        "period, due_on, not_due_on",
        [
            ("MONTHLY", date(2024, 2, 1), date(2024, 1, 31)),
            ("SEMIANNUAL", date(2024, 7, 1), date(2024, 6, 30)),
            ("ANNUAL", date(2025, 1, 1), date(2024, 12, 31)),
        ],
    )
    def test_other_periods(self, period, due_on, not_due_on):
        m = RebalanceManager(RebalanceConfig(period=RebalancePeriod.parse(period)))
        m.state.last_rebalance_date = date(2024, 1, 15)
        assert m.is_rebalance_due(due_on)
        assert not m.is_rebalance_due(not_due_on)

    def test_month_difference_ignores_day(self):
        assert month_difference(date(2024, 4, 1), date(2024, 1, 31)) == 3
        assert month_difference(date(2025, 1, 1), date(2024, 12, 31)) == 1

    def test_set_rebalance_period(self):
        m = RebalanceManager(RebalanceConfig())
        m.set_rebalance_period("monthly")
        assert m.period is RebalancePeriod.MONTHLY
        with pytest.raises(ConfigurationError):
            m.set_rebalance_period("WEEKLY")

    def test_next_rebalance_date(self):
        m = RebalanceManager(RebalanceConfig(period=RebalancePeriod.QUARTERLY))
        assert m.next_rebalance_date(date(2024, 5, 5)) == date(2024, 5, 5)
        m.state.last_rebalance_date = date(2023, 11, 30)
        assert m.next_rebalance_date(date(2024, 1, 1)) == date(2024, 2, 29)


class TestAllocations:
    def test_market_value_allocations(self):
        m = _manager()
        assert m.current_allocations({"A": 30.0, "B": 10.0}) == pytest.approx({"A": 0.75, "B": 0.25})

    def test_share_count_basis_without_prices(self):
        m = _manager()
        m.update_current_holdings({"A": 30, "B": 10})
        assert m.current_allocations() == pytest.approx({"A": 0.75, "B": 0.25})

    def test_uses_last_known_prices(self):
        m = _manager()
        m.update_prices({"A": 30.0, "B": 10.0})
        assert m.current_allocations() == pytest.approx({"A": 0.75, "B": 0.25})

    def test_stale_prices_missing_a_holding_fall_back_to_share_count(self, jan_15):
        m = _manager(min_trade_amount=1.0)
        m.execute_rebalance(jan_15, PRICES)
        m.update_current_holdings({"A": 100, "B": 100, "C": 5})
        assert m.current_allocations() == pytest.approx({"A": 100 / 205, "B": 100 / 205, "C": 5 / 205})
        m.state.last_rebalance_date = None
        assert m.needs_rebalance(date(2024, 1, 16)) is True

    def test_empty_portfolio_reports_targets(self):
        m = _manager()
        m.update_current_holdings({"A": 0, "B": 0})
        assert m.current_allocations(PRICES) == {"A": 0.6, "B": 0.4}
        assert m.max_deviation(m.current_allocations(PRICES)) == 0.0
        assert not m.needs_rebalance(date(2024, 1, 15), PRICES)

    def test_idempotent(self):
        m = _manager()
        assert m.current_allocations(PRICES) == m.current_allocations(PRICES)

    def test_max_deviation(self):
        m = _manager()
        # C is not a target and is ignored; B is missing and counts as 0.
        assert m.max_deviation({"A": 0.7, "C": 0.3}) == pytest.approx(0.4)

    def test_replace_not_merge(self):
        m = _manager()
        m.set_target_allocations({"C": 1.0})
        assert m.target_allocations == {"C": 1.0}
        m.update_current_holdings({"C": 5})
        assert m.current_holdings == {"C": 5}

    def test_needs_rebalance_threshold(self):
        m = _manager()
        assert m.needs_rebalance(date(2024, 1, 15), PRICES)
        m.set_target_allocations({"A": 0.52, "B": 0.48})
        assert not m.needs_rebalance(date(2024, 1, 15), PRICES)


class TestExecute:
    def test_trades_below_minimum_are_skipped_without_mutation(self, jan_15):
        m = _manager(min_trade_amount=1000.0)
        result = m.execute_rebalance(jan_15, PRICES)
        assert result == RebalanceSkipped(date=jan_15, reason=SKIP_BELOW_MINIMUM)
        assert m.current_holdings == {"A": 100, "B": 100}
        assert m.last_rebalance_date is None

    def test_success_applies_trades(self, jan_15):
        m = _manager(min_trade_amount=100.0)
        before = len(m.history)
        result = m.execute_rebalance(jan_15, PRICES)

        assert isinstance(result, RebalanceSuccess)
        assert result.trades == {"A": 20, "B": -20}
        assert result.amounts == pytest.approx({"A": 200.0, "B": -200.0})
        assert m.current_holdings == {"A": 120, "B": 80}
        assert m.last_rebalance_date == jan_15
        assert len(m.history) == before + 1
        assert m.history[-1] is result

    def test_not_due_after_success(self, jan_15):
        m = _manager(min_trade_amount=100.0)
        m.execute_rebalance(jan_15, PRICES)
        m.update_current_holdings({"A": 100, "B": 100})
        result = m.execute_rebalance(date(2024, 2, 15), PRICES)
        assert result == RebalanceSkipped(date=date(2024, 2, 15), reason=SKIP_NOT_NEEDED)
        assert m.current_holdings == {"A": 100, "B": 100}

    def test_skips_recorded_in_history_by_default(self, jan_15):
        m = _manager(min_trade_amount=1000.0)
        m.execute_rebalance(jan_15, PRICES)
        assert [r.status for r in m.history] == ["skipped"]

    def test_skips_not_recorded_when_disabled(self, jan_15):
        m = _manager(min_trade_amount=1000.0, record_all_outcomes=False)
        m.execute_rebalance(jan_15, PRICES)
        assert m.history == ()
        m2 = _manager(min_trade_amount=100.0, record_all_outcomes=False)
        m2.execute_rebalance(jan_15, PRICES)
        assert [r.status for r in m2.history] == ["success"]

    def test_missing_price_becomes_error(self, jan_15):
        m = _manager(min_trade_amount=100.0)
        result = m.execute_rebalance(jan_15, {"A": 10.0})
        assert isinstance(result, RebalanceErrored)
        assert "B" in result.message
        assert m.current_holdings == {"A": 100, "B": 100}
        assert m.history[-1] is result

    def test_non_positive_price_becomes_error(self, jan_15):
        m = _manager(min_trade_amount=100.0)
        result = m.execute_rebalance(jan_15, {"A": 10.0, "B": 0.0})
        assert result.status == "error"

    def test_new_target_asset_is_bought(self, jan_15):
        m = RebalanceManager(RebalanceConfig(min_trade_amount=0.0))
        m.set_target_allocations({"A": 0.5, "C": 0.5})
        m.update_current_holdings({"A": 100})
        result = m.execute_rebalance(jan_15, {"A": 10.0, "C": 25.0})
        assert result.trades == {"A": -50, "C": 20}
        assert m.current_holdings == {"A": 50, "C": 20}

    def test_trade_shares_round_to_nearest(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(2.4) == 2
        assert round_half_up(-2.6) == -3
        m = RebalanceManager(RebalanceConfig(min_trade_amount=0.0))
        m.set_target_allocations({"A": 0.5, "B": 0.5})
        m.update_current_holdings({"A": 10, "B": 0})
        # target value 50 each; 50 / 3 = 16.67 -> 17 shares
        trades = m.required_trades(100.0, {"A": 10.0, "B": 3.0})
        assert trades == {"A": -5, "B": 17}


def test_performance_metrics(jan_15):
    m = _manager(min_trade_amount=100.0)
    m.execute_rebalance(jan_15, PRICES)
    m.execute_rebalance(date(2024, 1, 20), PRICES)
    metrics = m.performance_metrics()
    assert metrics.rebalance_count == 2
    assert metrics.successful_rebalances == 1
    assert metrics.total_trades == 2
    assert metrics.average_trades_per_rebalance == 2.0


def test_restore_state(jan_15):
    state = RebalanceState(
        target_allocations={"A": 1.0},
        current_holdings={"A": 3},
        last_rebalance_date=jan_15,
        history=[RebalanceSkipped(date=jan_15, reason=SKIP_NOT_NEEDED)],
    )
    m = RebalanceManager(RebalanceConfig())
    m.restore(state)
    assert m.current_holdings == {"A": 3}
    assert len(m.history) == 1
    assert not m.is_rebalance_due(date(2024, 2, 1))
