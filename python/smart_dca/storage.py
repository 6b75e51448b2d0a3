"""JSON-file persistence: the configuration store and the trade ledger."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Mapping, Optional

from .config import AppConfig
from .exceptions import InvalidInputError, UpstreamError
from .types import RebalanceResult, RebalanceState, Trade, result_from_dict

logger = logging.getLogger(__name__)


def _read_json(path: Path) -> Optional[dict]:
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"{path} is not valid JSON: {e}") from e
    except OSError as e:
        raise UpstreamError(f"cannot read {path}: {e}") from e


def _write_json(path: Path, data: dict) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        tmp.replace(path)
    except OSError as e:
        raise UpstreamError(f"cannot write {path}: {e}") from e


class JsonConfigStore:
    """Durable configuration. Missing or partial files fall back to defaults."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> AppConfig:
        data = _read_json(self.path)
        if data is None:
            logger.info("No config at %s, using defaults", self.path)
            return AppConfig()
        return AppConfig.with_defaults(data)

    def save(self, config: AppConfig) -> None:
        _write_json(self.path, config.validate().to_dict())

    def update(self, updates: Mapping) -> AppConfig:
        """Merge camelCase ``updates`` over the stored config and save."""
        merged = self.load().to_dict()
        merged.update(dict(updates))
        config = AppConfig.with_defaults(merged)
        self.save(config)
        return config

    def reset(self) -> AppConfig:
        config = AppConfig()
        self.save(config)
        return config


class JsonLedger:
    """Append-only trade / rebalance history plus the rebalance state snapshot."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> dict:
        data = _read_json(self.path) or {}
        data.setdefault("trades", [])
        data.setdefault("rebalanceState", None)
        return data

    def append_trade(self, trade: Trade) -> None:
        data = self._load()
        data["trades"].append(trade.to_dict())
        _write_json(self.path, data)

    def trades(self, symbol: Optional[str] = None) -> list[Trade]:
        out = [Trade.from_dict(d) for d in self._load()["trades"]]
        if symbol is not None:
            out = [t for t in out if t.symbol == symbol]
        return out

    def save_state(self, state: RebalanceState) -> None:
        data = self._load()
        data["rebalanceState"] = state.to_dict()
        _write_json(self.path, data)

    def load_state(self) -> RebalanceState:
        raw = self._load()["rebalanceState"]
        return RebalanceState() if raw is None else RebalanceState.from_dict(raw)

    def append_rebalance_result(self, result: RebalanceResult) -> None:
        state = self.load_state()
        state.history.append(result)
        self.save_state(state)

    def rebalance_results(self) -> list[RebalanceResult]:
        raw = self._load()["rebalanceState"] or {}
        return [result_from_dict(r) for r in raw.get("rebalanceHistory", [])]
