"""
Unit tests for the Ultra swap flow.
"""

import base64
from unittest.mock import Mock, patch

import pytest
import requests
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.transaction import VersionedTransaction

from execution.swap_executor import SwapExecutor

TOKEN_A = "MintA"
TOKEN_B = "MintB"


class FakeTransaction:
    """Stands in for a signed VersionedTransaction."""
    signatures = ["LocalSignature"]

    def __bytes__(self):
        return b"signed-tx"


@pytest.fixture
def jupiter():
    jupiter = Mock()
    jupiter.get_order.return_value = {"requestId": "req-1", "transaction": "dW5zaWduZWQ=", "router": "aggregator"}
    jupiter.execute_order.return_value = {"status": "Success", "code": 0, "signature": "RemoteSignature"}
    return jupiter


@pytest.fixture
def rpc():
    rpc = Mock()
    rpc.simulate_transaction.return_value = Mock(err=None, logs=[])
    return rpc


@pytest.fixture
def keypair():
    keypair = Mock()
    keypair.pubkey.return_value = "TakerPubkey"
    return keypair


@pytest.fixture
def executor(jupiter, rpc):
    with patch.object(SwapExecutor, "sign_order_transaction", return_value=FakeTransaction()):
        yield SwapExecutor(jupiter, rpc)


class TestQuoteAndSwap:
    """Test each short-circuit in the swap flow."""

    def test_success_returns_remote_signature(self, executor, jupiter, rpc, keypair):
        signature = executor.quote_and_swap(keypair, 8_000_000, TOKEN_B, TOKEN_A)

        assert signature == "RemoteSignature"
        jupiter.get_order.assert_called_once_with(
            input_mint=TOKEN_B, output_mint=TOKEN_A, amount=8_000_000, taker="TakerPubkey"
        )
        rpc.simulate_transaction.assert_called_once()
        jupiter.execute_order.assert_called_once_with(
            "req-1", base64.b64encode(b"signed-tx").decode("ascii")
        )

    def test_falls_back_to_local_signature(self, executor, jupiter, keypair):
        jupiter.execute_order.return_value = {"status": "Success", "code": 0}

        assert executor.quote_and_swap(keypair, 100, TOKEN_A, TOKEN_B) == "LocalSignature"

    def test_truncates_fractional_amount(self, executor, jupiter, keypair):
        executor.quote_and_swap(keypair, 10.9, TOKEN_A, TOKEN_B)
        assert jupiter.get_order.call_args.kwargs["amount"] == 10

    @pytest.mark.parametrize("amount", [0, -5, 0.4])
    def test_non_positive_amount_skips(self, executor, jupiter, keypair, amount):
        assert executor.quote_and_swap(keypair, amount, TOKEN_A, TOKEN_B) is None
        jupiter.get_order.assert_not_called()

    def test_order_without_transaction(self, executor, jupiter, rpc, keypair, caplog):
        jupiter.get_order.return_value = {
            "requestId": "req-1",
            "transaction": None,
            "router": "jupiterz",
            "errorCode": 1,
            "errorMessage": "Insufficient funds",
        }

        with caplog.at_level("ERROR"):
            assert executor.quote_and_swap(keypair, 100, TOKEN_A, TOKEN_B) is None

        assert "router=jupiterz" in caplog.text
        assert "Insufficient funds" in caplog.text
        rpc.simulate_transaction.assert_not_called()
        jupiter.execute_order.assert_not_called()

    def test_simulation_error(self, executor, jupiter, rpc, keypair, caplog):
        rpc.simulate_transaction.return_value = Mock(err="InstructionError", logs=["log line"])

        with caplog.at_level("ERROR"):
            assert executor.quote_and_swap(keypair, 100, TOKEN_A, TOKEN_B) is None

        assert "Simulation Error" in caplog.text
        assert "log line" in caplog.text
        jupiter.execute_order.assert_not_called()

    @pytest.mark.parametrize("response", [
        {"status": "Failed", "code": -1, "error": "slippage"},
        {"status": "Success", "code": 3},
    ])
    def test_execute_failure(self, executor, jupiter, keypair, response):
        jupiter.execute_order.return_value = response
        assert executor.quote_and_swap(keypair, 100, TOKEN_A, TOKEN_B) is None

    def test_http_error_is_contained(self, executor, jupiter, keypair, caplog):
        jupiter.get_order.side_effect = requests.HTTPError("Ultra order request failed (400)")

        with caplog.at_level("ERROR"):
            assert executor.quote_and_swap(keypair, 100, TOKEN_A, TOKEN_B) is None

        assert "failed" in caplog.text


class TestSignOrderTransaction:

    def test_signs_with_keypair(self):
        keypair = Keypair()
        message = MessageV0.try_compile(keypair.pubkey(), [], [], Hash.default())
        original = VersionedTransaction(message, [keypair])
        transaction_b64 = base64.b64encode(bytes(original)).decode("ascii")

        signed = SwapExecutor(Mock(), Mock()).sign_order_transaction(keypair, transaction_b64)

        assert signed.message.account_keys[0] == keypair.pubkey()
        assert len(signed.signatures) == 1
