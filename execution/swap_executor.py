"""
Swap execution through the Jupiter Ultra API.

Flow: request an order, deserialize the returned transaction, sign it
locally, simulate it over RPC, then hand it back to Ultra for execution.
Any failure along the way is logged and the swap is abandoned.
"""

import base64
import logging
from typing import Optional

from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from .jupiter_client import JupiterClient
from .solana_client import SolanaRpcClient

SOLSCAN_TX_URL = "https://solscan.io/tx/"


class SwapExecutor:
    """
    Runs the quote, sign, simulate and execute steps for one swap.

    ``quote_and_swap`` never raises; it returns the transaction signature on
    success and None otherwise.
    """

    def __init__(self, jupiter: JupiterClient, rpc: SolanaRpcClient):
        """
        Initialize swap executor.

        Args:
            jupiter: Jupiter client used for Ultra order/execute
            rpc: Solana RPC client used for simulation
        """
        self.jupiter = jupiter
        self.rpc = rpc
        self.logger = logging.getLogger(__name__)

    def sign_order_transaction(self, keypair: Keypair, transaction_b64: str) -> VersionedTransaction:
        """Deserialize a base64 Ultra transaction and sign it with the keypair."""
        raw_transaction = VersionedTransaction.from_bytes(base64.b64decode(transaction_b64))
        return VersionedTransaction(raw_transaction.message, [keypair])

    def quote_and_swap(self,
                       keypair: Keypair,
                       amount: float,
                       input_mint: str,
                       output_mint: str) -> Optional[str]:
        """
        Swap ``amount`` smallest units of ``input_mint`` into ``output_mint``.

        Args:
            keypair: Signer and taker of the swap
            amount: Amount in the input token's smallest unit
            input_mint: Mint being sold
            output_mint: Mint being bought

        Returns:
            Transaction signature, or None if the swap did not go through
        """
        amount = int(amount)

        if amount <= 0:
            self.logger.warning("Skip swap: calculated amount is not positive.")
            return None

        try:
            order = self.jupiter.get_order(
                input_mint=input_mint,
                output_mint=output_mint,
                amount=amount,
                taker=str(keypair.pubkey()),
            )

            if not order.get("transaction"):
                reason = order.get("errorMessage") or "No transaction returned"
                self.logger.error(
                    f"Ultra order did not return a transaction "
                    f"(router={order.get('router')}, code={order.get('errorCode')}). Reason: {reason}"
                )
                return None

            transaction = self.sign_order_transaction(keypair, order["transaction"])

            simulation = self.rpc.simulate_transaction(transaction)
            if simulation.err:
                self.logger.error(f"Simulation Error: {simulation.err} {simulation.logs}")
                return None

            signed_b64 = base64.b64encode(bytes(transaction)).decode("ascii")
            execute_response = self.jupiter.execute_order(order["requestId"], signed_b64)

            if execute_response.get("status") != "Success" or execute_response.get("code") != 0:
                self.logger.error(
                    f"Ultra execute failed: status={execute_response.get('status')}, "
                    f"code={execute_response.get('code')}, "
                    f"error={execute_response.get('error') or 'unknown'}"
                )
                return None

            signature = execute_response.get("signature")
            if signature:
                self.logger.info(f"Swap transaction: {SOLSCAN_TX_URL}{signature}")
            else:
                signature = str(transaction.signatures[0])
                self.logger.info(
                    f"Swap submitted via Ultra (signature pending in response). "
                    f"Local signature: {SOLSCAN_TX_URL}{signature}"
                )
            return signature

        except Exception as e:
            self.logger.error(f"Swap {input_mint} -> {output_mint} failed: {e}")
            return None
