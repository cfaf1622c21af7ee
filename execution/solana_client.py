"""
Solana JSON-RPC client wrapper.

Reads SPL token balances for the wallet and simulates signed transactions
before they are handed to the swap API.
"""

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests
from solana.rpc.api import Client
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TokenAccountOpts
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction


@dataclass(frozen=True)
class TokenBalance:
    """Held quantity (UI units) and decimal precision for one mint."""
    balance: float
    decimals: int


ZERO_BALANCE = TokenBalance(balance=0.0, decimals=0)


@dataclass(frozen=True)
class SimulationResult:
    """Outcome of simulateTransaction. ``err`` is None when the transaction would succeed."""
    err: Optional[Any] = None
    logs: List[str] = field(default_factory=list)


class SolanaRpcClient:
    """
    Wrapper for the Solana RPC calls used by the bot.

    Balance lookups never raise: a missing token account and a failed
    request both degrade to a zero balance for that mint.
    """

    def __init__(self, rpc_url: str, client: Client = None, session: requests.Session = None,
                 timeout: float = 10.0):
        """
        Initialize RPC client.

        Args:
            rpc_url: Solana JSON-RPC endpoint
            client: Optional preconfigured solana-py Client
            session: Optional requests session for raw JSON-RPC calls
            timeout: Raw JSON-RPC request timeout in seconds
        """
        self.rpc_url = rpc_url
        self.client = client or Client(rpc_url, commitment=Confirmed)
        self.session = session or requests.Session()
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    def get_token_balance(self, owner: Pubkey, mint: str) -> TokenBalance:
        response = self.client.get_token_accounts_by_owner_json_parsed(
            owner,
            TokenAccountOpts(mint=Pubkey.from_string(mint)),
        )

        if not response.value:
            self.logger.warning(f"No token account found for {mint}")
            return ZERO_BALANCE

        token_amount = response.value[0].account.data.parsed["info"]["tokenAmount"]
        balance = float(token_amount.get("uiAmount") or 0.0)
        decimals = int(token_amount["decimals"])
        self.logger.info(f"Token balance for {mint}: {balance} (decimals: {decimals})")
        return TokenBalance(balance=balance, decimals=decimals)

    def get_token_balances(self, owner: str, mints: List[str]) -> Dict[str, TokenBalance]:
        """
        Get balances for each mint held by the owner.

        Args:
            owner: Wallet public key (base58)
            mints: Mint addresses

        Returns:
            Mapping of mint to TokenBalance, one entry per requested mint
        """
        owner_key = Pubkey.from_string(owner)
        balances = {}

        for mint in mints:
            try:
                balances[mint] = self.get_token_balance(owner_key, mint)
            except Exception as e:
                self.logger.error(f"Error fetching balance for {mint}: {e}")
                balances[mint] = ZERO_BALANCE

        return balances

    def simulate_transaction(self, transaction: VersionedTransaction) -> SimulationResult:
        """
        Simulate a signed transaction at processed commitment.

        Sent as a raw JSON-RPC request with replaceRecentBlockhash set and
        sigVerify off; solana-py's Client has no replaceRecentBlockhash option.

        Returns:
            SimulationResult with the ``err`` and ``logs`` reported by the node

        Raises:
            requests.HTTPError: If the RPC endpoint returns a non-2xx status
            ValueError: If the RPC response carries an error object
        """
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "simulateTransaction",
            "params": [
                base64.b64encode(bytes(transaction)).decode("ascii"),
                {
                    "encoding": "base64",
                    "commitment": "processed",
                    "replaceRecentBlockhash": True,
                    "sigVerify": False,
                },
            ],
        }
        response = self.session.post(self.rpc_url, json=payload, timeout=self.timeout)
        response.raise_for_status()

        body = response.json()
        if body.get("error"):
            raise ValueError(f"simulateTransaction failed: {body['error']}")

        value = body["result"]["value"]
        return SimulationResult(err=value.get("err"), logs=value.get("logs") or [])
