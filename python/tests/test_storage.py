import json
from datetime import date

import pytest

from smart_dca.config import AppConfig, RebalancePeriod, WeightConfig
from smart_dca.exceptions import ConfigurationError, InvalidInputError
from smart_dca.storage import JsonConfigStore, JsonLedger
from smart_dca.types import RebalanceSkipped, RebalanceState, RebalanceSuccess, Trade


def test_config_store_defaults_when_missing(tmp_path):
    store = JsonConfigStore(tmp_path / "config.json")
    assert store.load() == AppConfig()


def test_config_store_save_load(tmp_path):
    store = JsonConfigStore(tmp_path / "nested" / "config.json")
    cfg = AppConfig.with_defaults({"tickers": ["VOO"], "rebalancePeriod": "SEMIANNUAL"})
    store.save(cfg)
    assert store.load() == cfg
    assert json.loads((tmp_path / "nested" / "config.json").read_text())["rebalancePeriod"] == "SEMIANNUAL"


def test_config_store_partial_file_merges_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"baseInvestment": 250, "rebalanceThreshold": 10}))
    cfg = JsonConfigStore(path).load()
    assert cfg.weights.base_investment == 250.0
    assert cfg.rebalance.threshold == pytest.approx(0.10)
    assert cfg.tickers == AppConfig().tickers


def test_config_store_update_and_reset(tmp_path):
    store = JsonConfigStore(tmp_path / "config.json")
    cfg = store.update({"baseInvestment": 500, "rebalancePeriod": "MONTHLY"})
    assert cfg.weights.base_investment == 500.0
    assert store.load().rebalance.period is RebalancePeriod.MONTHLY
    assert store.reset() == AppConfig()
    assert store.load() == AppConfig()


def test_config_store_refuses_invalid(tmp_path):
    store = JsonConfigStore(tmp_path / "config.json")
    with pytest.raises(ConfigurationError):
        store.save(AppConfig(weights=WeightConfig(min_weight=3.0, max_weight=2.0)))


def test_corrupt_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    with pytest.raises(InvalidInputError):
        JsonConfigStore(path).load()


def test_ledger_trades(tmp_path):
    ledger = JsonLedger(tmp_path / "ledger.json")
    assert ledger.trades() == []
    t1 = Trade(date=date(2024, 1, 10), symbol="SPY", price=470.0, shares=2, amount=940.0)
    t2 = Trade(date=date(2024, 1, 10), symbol="QQQ", price=400.0, shares=3, amount=1200.0)
    ledger.append_trade(t1)
    ledger.append_trade(t2)
    assert ledger.trades() == [t1, t2]
    assert ledger.trades("QQQ") == [t2]


def test_ledger_state(tmp_path):
    ledger = JsonLedger(tmp_path / "ledger.json")
    assert ledger.load_state() == RebalanceState()

    day = date(2024, 1, 15)
    state = RebalanceState(
        target_allocations={"A": 0.6, "B": 0.4},
        current_holdings={"A": 120, "B": 80},
        last_rebalance_date=day,
        history=[RebalanceSuccess(date=day, trades={"A": 20, "B": -20}, amounts={"A": 200.0, "B": -200.0})],
    )
    ledger.save_state(state)
    ledger.append_rebalance_result(RebalanceSkipped(date=date(2024, 2, 15), reason="Rebalance not needed"))

    loaded = ledger.load_state()
    assert loaded.current_holdings == {"A": 120, "B": 80}
    assert [r.status for r in ledger.rebalance_results()] == ["success", "skipped"]
