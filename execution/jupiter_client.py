"""
Jupiter REST API client wrapper.

This module wraps the two Jupiter services the bot talks to: the Price API
(USD price per mint) and the Ultra order/execute swap API.
"""

import time
import logging
from dataclasses import dataclass
from typing import Dict, Any, List, Optional

import requests

PRICE_ENDPOINT = "https://lite-api.jup.ag/price/v3"
ULTRA_BASE_URL = "https://lite-api.jup.ag/ultra/v1"
USER_AGENT = "SmartRebalanceBot/1.0"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPrice:
    """Normalised price entry for one mint."""
    price: float
    block_id: Optional[int] = None
    decimals: Optional[int] = None
    price_change_24h: Optional[float] = None


class JupiterClient:
    """
    Wrapper for the Jupiter Price and Ultra APIs.

    Price lookups retry on failure with a fixed delay and return None once
    retries are exhausted. Ultra calls raise on HTTP errors.
    """

    def __init__(self,
                 price_endpoint: str = PRICE_ENDPOINT,
                 ultra_base_url: str = ULTRA_BASE_URL,
                 timeout: float = 5.0,
                 session: requests.Session = None):
        """
        Initialize Jupiter client.

        Args:
            price_endpoint: Price API endpoint
            ultra_base_url: Ultra API base URL
            timeout: Per-request timeout in seconds for price lookups
            session: Optional requests session (a new one is created otherwise)
        """
        self.price_endpoint = price_endpoint
        self.ultra_base_url = ultra_base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        })

    def _fetch_prices(self, mints: List[str]) -> Dict[str, TokenPrice]:
        response = self.session.get(
            self.price_endpoint,
            params={"ids": ",".join(mints)},
            timeout=self.timeout,
        )
        response.raise_for_status()
        price_data = response.json()

        if not price_data or not isinstance(price_data, dict):
            raise ValueError("Empty token price data")

        normalized = {}
        for mint, info in price_data.items():
            usd_price = info.get("usdPrice") if isinstance(info, dict) else None
            if isinstance(usd_price, bool) or not isinstance(usd_price, (int, float)):
                continue

            normalized[mint] = TokenPrice(
                price=float(usd_price),
                block_id=info.get("blockId"),
                decimals=info.get("decimals"),
                price_change_24h=info.get("priceChange24h"),
            )

        if not normalized:
            raise ValueError("No valid token price entries")

        return normalized

    def get_token_prices(self,
                         mints: List[str],
                         retries: int = 3,
                         delay: float = 3.0) -> Optional[Dict[str, TokenPrice]]:
        """
        Get current USD prices for a batch of mints.

        Args:
            mints: Mint addresses to price
            retries: Extra attempts after the first failure
            delay: Seconds to wait between attempts

        Returns:
            Mapping of mint to TokenPrice, or None once retries are exhausted
        """
        attempts_left = retries

        while True:
            try:
                return self._fetch_prices(mints)
            except (requests.RequestException, ValueError) as e:
                logger.error(f"Failed to fetch prices (attempts left: {attempts_left}): {e}")

            if attempts_left <= 0:
                logger.error("Max retries reached. Returning None.")
                return None

            attempts_left -= 1
            time.sleep(delay)

    def get_order(self,
                  input_mint: str,
                  output_mint: str,
                  amount: int,
                  taker: str) -> Dict[str, Any]:
        """
        Request an Ultra order (quote plus unsigned transaction).

        Returns:
            Order response dictionary

        Raises:
            requests.HTTPError: on a non-2xx response
        """
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "taker": taker,
        }
        response = self.session.get(f"{self.ultra_base_url}/order", params=params)

        if not response.ok:
            raise requests.HTTPError(
                f"Ultra order request failed ({response.status_code}): {response.text}",
                response=response,
            )

        return response.json()

    def execute_order(self, request_id: str, signed_transaction: str) -> Dict[str, Any]:
        """
        Submit a signed Ultra order for execution.

        Args:
            request_id: requestId from the order response
            signed_transaction: base64-encoded signed transaction

        Returns:
            Execute response dictionary
        """
        response = self.session.post(
            f"{self.ultra_base_url}/execute",
            json={"requestId": request_id, "signedTransaction": signed_transaction},
        )

        if not response.ok:
            raise requests.HTTPError(
                f"Ultra execute request failed ({response.status_code}): {response.text}",
                response=response,
            )

        return response.json()
