"""
Unit tests for the baseline store and in-memory baseline state.
"""

import json
import logging

import pytest

from rebalancer.state import BaselineState, BaselineStore, PortfolioSnapshot, TokenSnapshot


@pytest.fixture
def store(tmp_path):
    return BaselineStore(
        value_file=str(tmp_path / "portfolio_value.json"),
        snapshot_file=str(tmp_path / "portfolio_initial_snapshot.json"),
    )


def make_snapshot(balance_a=100.0, balance_b=50.0):
    return PortfolioSnapshot(
        timestamp="2025-01-01T00:00:00+00:00",
        tokens={
            "MintA": TokenSnapshot(balance=balance_a, price=1.0, decimals=6),
            "MintB": TokenSnapshot(balance=balance_b, price=3.0, decimals=9),
        },
    )


class TestBaselineStoreValue:
    """Test the plain-text initial value file."""

    def test_missing_file(self, store):
        assert store.load_initial_value() is None

    def test_empty_file(self, store):
        store.value_file.write_text("  \n", encoding="utf-8")
        assert store.load_initial_value() is None

    def test_unparseable_file_warns(self, store, caplog):
        store.value_file.write_text("not a number", encoding="utf-8")
        with caplog.at_level(logging.WARNING):
            assert store.load_initial_value() is None
        assert "Ignoring initial value" in caplog.text

    def test_invalid_utf8_warns(self, store, caplog):
        store.value_file.write_bytes(b"\xff\xfe250")
        with caplog.at_level(logging.WARNING):
            assert store.load_initial_value() is None
        assert "Ignoring initial value" in caplog.text

    def test_unreadable_path(self, store):
        store.value_file.mkdir()
        assert store.load_initial_value() is None

    def test_non_finite_value(self, store):
        store.value_file.write_text("inf", encoding="utf-8")
        assert store.load_initial_value() is None

    def test_save_and_load(self, store):
        store.save_initial_value(250.125)
        assert store.load_initial_value() == 250.125

    def test_reads_integer_text(self, store):
        store.value_file.write_text("250", encoding="utf-8")
        assert store.load_initial_value() == 250.0


class TestBaselineStoreSnapshot:
    """Test the JSON snapshot file."""

    def test_missing_file(self, store):
        assert store.load_initial_snapshot() is None

    def test_empty_file(self, store):
        store.snapshot_file.write_text("", encoding="utf-8")
        assert store.load_initial_snapshot() is None

    def test_invalid_json_warns(self, store, caplog):
        store.snapshot_file.write_text("{broken", encoding="utf-8")
        with caplog.at_level(logging.WARNING):
            assert store.load_initial_snapshot() is None
        assert "invalid JSON" in caplog.text

    def test_invalid_utf8_warns(self, store, caplog):
        store.snapshot_file.write_bytes(b"\x80{\"timestamp\": \"x\", \"tokens\": {}}")
        with caplog.at_level(logging.WARNING):
            assert store.load_initial_snapshot() is None
        assert "Ignoring snapshot" in caplog.text

    def test_missing_tokens(self, store):
        store.snapshot_file.write_text(json.dumps({"timestamp": "x"}), encoding="utf-8")
        assert store.load_initial_snapshot() is None

    def test_malformed_token_entry(self, store):
        store.snapshot_file.write_text(
            json.dumps({"timestamp": "x", "tokens": {"MintA": {"balance": 1}}}),
            encoding="utf-8",
        )
        assert store.load_initial_snapshot() is None

    def test_save_and_load(self, store):
        snapshot = make_snapshot()
        store.save_initial_snapshot(snapshot)

        loaded = store.load_initial_snapshot()

        assert loaded == snapshot
        assert loaded.tokens["MintB"].decimals == 9

    def test_file_layout(self, store):
        store.save_initial_snapshot(make_snapshot())
        data = json.loads(store.snapshot_file.read_text(encoding="utf-8"))
        assert data["timestamp"] == "2025-01-01T00:00:00+00:00"
        assert data["tokens"]["MintA"] == {"balance": 100.0, "price": 1.0, "decimals": 6}


class TestBaselineState:
    """Test write-once semantics of the in-memory baseline."""

    def test_load_empty(self, store):
        state = BaselineState.load(store)
        assert state.initial_value is None
        assert state.initial_snapshot is None

    def test_load_undecodable_files(self, store):
        store.value_file.write_bytes(b"\xff\xfe250")
        store.snapshot_file.write_bytes(b"\x80{}")

        state = BaselineState.load(store)

        assert state.initial_value is None
        assert state.initial_snapshot is None

    def test_load_existing(self, store):
        store.save_initial_value(300.0)
        store.save_initial_snapshot(make_snapshot())

        state = BaselineState.load(store)

        assert state.initial_value == 300.0
        assert state.initial_snapshot == make_snapshot()

    def test_capture_snapshot_once(self, store):
        state = BaselineState(store)

        assert state.capture_snapshot(make_snapshot()) is True
        first_file = store.snapshot_file.read_text(encoding="utf-8")

        assert state.capture_snapshot(make_snapshot(balance_a=1.0)) is False
        assert state.initial_snapshot == make_snapshot()
        assert store.snapshot_file.read_text(encoding="utf-8") == first_file

    def test_capture_value_once(self, store):
        state = BaselineState(store)

        assert state.capture_initial_value(250.0) is True
        assert state.capture_initial_value(999.0) is False

        assert state.initial_value == 250.0
        assert store.load_initial_value() == 250.0

    def test_slots_are_independent(self, store):
        store.save_initial_snapshot(make_snapshot())
        state = BaselineState.load(store)

        assert state.initial_value is None
        assert state.capture_initial_value(123.0) is True
        assert state.capture_snapshot(make_snapshot(balance_a=5.0)) is False

    def test_loaded_value_not_overwritten(self, store):
        store.save_initial_value(300.0)
        state = BaselineState.load(store)

        assert state.capture_initial_value(1.0) is False
        assert store.load_initial_value() == 300.0
