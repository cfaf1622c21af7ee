"""
Baseline state for the rebalancing bot.

Two write-once artifacts are persisted in the working directory:

- the total portfolio value at first observation (plain-text number)
- a per-token snapshot of balance, price and decimals (JSON)

Once a value is present it is the fixed reference point for all later PnL
calculations. It is never recomputed unless the file is removed by hand.
"""

import json
import logging
import math
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, Optional

from . import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenSnapshot:
    """Balance, price and decimals for one token at baseline time."""
    balance: float
    price: float
    decimals: int


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Initial per-token snapshot of the portfolio."""
    timestamp: str
    tokens: Dict[str, TokenSnapshot] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "tokens": {mint: asdict(token) for mint, token in self.tokens.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PortfolioSnapshot":
        tokens = {
            mint: TokenSnapshot(
                balance=float(info["balance"]),
                price=float(info["price"]),
                decimals=int(info["decimals"]),
            )
            for mint, info in data["tokens"].items()
        }
        return cls(timestamp=str(data.get("timestamp", "")), tokens=tokens)


class BaselineStore:
    """
    File persistence for the two baseline artifacts.

    Missing files, empty files and unparseable content all load as None.
    Writes overwrite the whole file; no temp-file rename is used.
    """

    def __init__(self,
                 value_file: str = config.DEFAULT_VALUE_FILE,
                 snapshot_file: str = config.DEFAULT_SNAPSHOT_FILE):
        self.value_file = Path(value_file)
        self.snapshot_file = Path(snapshot_file)

    @staticmethod
    def _read_text(path: Path, what: str) -> Optional[str]:
        """Return stripped file content, or None if missing or unreadable."""
        if not path.exists():
            return None

        try:
            return path.read_text(encoding="utf-8").strip()
        except (UnicodeDecodeError, OSError) as e:
            logger.warning(f"{path} could not be read ({e}). Ignoring {what}.")
            return None

    def load_initial_value(self) -> Optional[float]:
        data = self._read_text(self.value_file, "initial value")
        if not data:
            return None

        try:
            value = float(data)
        except ValueError:
            logger.warning(f"{self.value_file} does not contain a number. Ignoring initial value.")
            return None

        if not math.isfinite(value):
            logger.warning(f"{self.value_file} contains a non-finite value. Ignoring initial value.")
            return None
        return value

    def save_initial_value(self, value: float) -> None:
        self.value_file.write_text(repr(float(value)), encoding="utf-8")

    def load_initial_snapshot(self) -> Optional[PortfolioSnapshot]:
        raw = self._read_text(self.snapshot_file, "snapshot")
        if not raw:
            return None

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"{self.snapshot_file} is invalid JSON. Ignoring snapshot.")
            return None

        if not isinstance(data, dict) or not isinstance(data.get("tokens"), dict):
            logger.warning(f"{self.snapshot_file} has no token entries. Ignoring snapshot.")
            return None

        try:
            return PortfolioSnapshot.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"{self.snapshot_file} is malformed ({e}). Ignoring snapshot.")
            return None

    def save_initial_snapshot(self, snapshot: PortfolioSnapshot) -> None:
        self.snapshot_file.write_text(json.dumps(snapshot.to_dict(), indent=2), encoding="utf-8")


class BaselineState:
    """
    In-memory baseline, loaded once at startup and passed into every tick.

    Each slot is filled at most once per process. The check-and-set runs
    under a lock so overlapping ticks cannot both write a slot.
    """

    def __init__(self,
                 store: BaselineStore,
                 initial_value: Optional[float] = None,
                 initial_snapshot: Optional[PortfolioSnapshot] = None):
        self.store = store
        self._initial_value = initial_value
        self._initial_snapshot = initial_snapshot
        self._lock = threading.Lock()

    @classmethod
    def load(cls, store: BaselineStore) -> "BaselineState":
        state = cls(
            store,
            initial_value=store.load_initial_value(),
            initial_snapshot=store.load_initial_snapshot(),
        )
        if state.initial_value is not None:
            logger.info(f"Loaded initial portfolio value: ${state.initial_value:.2f}")
        if state.initial_snapshot is not None:
            logger.info(f"Loaded initial token snapshot from {state.initial_snapshot.timestamp}")
        return state

    @property
    def initial_value(self) -> Optional[float]:
        return self._initial_value

    @property
    def initial_snapshot(self) -> Optional[PortfolioSnapshot]:
        return self._initial_snapshot

    def capture_snapshot(self, snapshot: PortfolioSnapshot) -> bool:
        """Record and persist the snapshot if none exists. Returns True if written."""
        with self._lock:
            if self._initial_snapshot is not None:
                return False
            self.store.save_initial_snapshot(snapshot)
            self._initial_snapshot = snapshot
            return True

    def capture_initial_value(self, value: float) -> bool:
        """Record and persist the total value if none exists. Returns True if written."""
        with self._lock:
            if self._initial_value is not None:
                return False
            self.store.save_initial_value(value)
            self._initial_value = value
            return True
