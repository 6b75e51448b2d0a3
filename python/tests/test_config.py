import pytest

from smart_dca.config import AppConfig, RebalancePeriod, WeightConfig
from smart_dca.exceptions import ConfigurationError


def test_defaults():
    cfg = AppConfig()
    assert cfg.tickers == ("SPY", "QQQ", "IWM", "DIA", "VTI")
    assert cfg.indicators.sma_window == 200
    assert cfg.indicators.std_window == 30
    assert (cfg.weights.min_weight, cfg.weights.max_weight) == (0.5, 2.0)
    assert cfg.rebalance.period is RebalancePeriod.QUARTERLY
    assert cfg.rebalance.threshold == 0.05
    assert cfg.rebalance.min_trade_amount == 1000.0
    assert cfg.rebalance.enabled is False


def test_with_defaults_merges_stored_mapping():
    cfg = AppConfig.with_defaults(
        {
            "tickers": ["voo", "bnd"],
            "baseInvestment": 500,
            "smaWindow": 100,
            "rebalanceEnabled": True,
            "rebalancePeriod": "monthly",
            "notifications": {"priceAlerts": False},
            "theme": "dark",
        }
    )
    assert cfg.tickers == ("VOO", "BND")
    assert cfg.weights.base_investment == 500.0
    assert cfg.weights.max_weight == 2.0
    assert cfg.indicators.sma_window == 100
    assert cfg.indicators.std_window == 30
    assert cfg.rebalance.enabled is True
    assert cfg.rebalance.period is RebalancePeriod.MONTHLY
    assert cfg.notifications.price_alerts is False
    assert cfg.notifications.investment_due is True


def test_threshold_percentage_is_converted():
    assert AppConfig.with_defaults({"rebalanceThreshold": 5}).rebalance.threshold == pytest.approx(0.05)
    assert AppConfig.with_defaults({"rebalanceThreshold": 0.1}).rebalance.threshold == pytest.approx(0.1)


def test_unknown_period_is_configuration_error():
    with pytest.raises(ConfigurationError):
        AppConfig.with_defaults({"rebalancePeriod": "WEEKLY"})


def test_round_trip():
    cfg = AppConfig.with_defaults({"tickers": ["AAA"], "minTradeAmount": 250, "rebalancePeriod": "ANNUAL"})
    assert AppConfig.with_defaults(cfg.to_dict()) == cfg


def test_period_months():
    assert [p.months for p in RebalancePeriod] == [1, 3, 6, 12]


@pytest.mark.parametrize(
    "cfg",
    [
        AppConfig(tickers=()),
        AppConfig(weights=WeightConfig(base_investment=0)),
        AppConfig(weights=WeightConfig(min_weight=2.0, max_weight=1.0)),
        AppConfig.with_defaults({"smaWindow": 0}),
        AppConfig.with_defaults({"minTradeAmount": -1}),
    ],
)
def test_validate_rejects(cfg):
    with pytest.raises(ConfigurationError):
        cfg.validate()


def test_validate_returns_config():
    cfg = AppConfig()
    assert cfg.validate() is cfg


def test_stored_only_notification_flags_round_trip():
    cfg = AppConfig.with_defaults({"notifications": {"marketOpen": False, "priceAlerts": False}})
    stored = cfg.to_dict()["notifications"]
    assert stored["marketOpen"] is False and stored["priceAlerts"] is False
    again = AppConfig.with_defaults(cfg.to_dict())
    assert again.notifications == cfg.notifications
