"""
Transaction submission for the insured bridge relayer.

This module sends prepared contract calls to L1, supporting both local mode
(signing with a configured key) and production mode (signing through the ROFL
application daemon).
"""

import logging
from typing import TYPE_CHECKING

from web3 import Web3
from web3.types import HexBytes, TxParams, TxReceipt, Wei

from .gas_estimator import GasEstimator
from .models import PreparedTransaction, TransactionResult

if TYPE_CHECKING:
    from .utils.rofl_utility import RoflUtility

logger = logging.getLogger(__name__)


class TransactionSubmitter:
    """Signs and sends prepared transactions from the relayer account."""

    GAS_LIMIT_MULTIPLIER: float = 1.2

    def __init__(
        self,
        w3: Web3,
        gas_estimator: GasEstimator,
        account: str,
        rofl_util: "RoflUtility | None" = None,
        receipt_timeout: int = 120,
    ) -> None:
        """
        Initialize the TransactionSubmitter.

        Args:
            w3: Web3 instance for L1, with signing middleware in local mode
            gas_estimator: Source of fee parameters
            account: Address transactions are sent from
            rofl_util: ROFL utility for transaction submission (None for local mode)
            receipt_timeout: Seconds to wait for a receipt in local mode
        """
        self.w3 = w3
        self.gas_estimator = gas_estimator
        self.account: str = Web3.to_checksum_address(account)
        self.rofl_util: RoflUtility | None = rofl_util
        self.receipt_timeout = receipt_timeout

        mode = "ROFL production" if rofl_util else "local testing"
        logger.info(f"TransactionSubmitter initialized in {mode} mode for account {self.account}")

    async def submit(self, transaction: PreparedTransaction) -> TransactionResult:
        """
        Submit a prepared transaction and report its outcome.

        Never raises: any failure to build, send or confirm the transaction is
        returned as an unsuccessful result.

        Args:
            transaction: The call to send

        Returns:
            Result describing whether the transaction succeeded
        """
        try:
            await self.gas_estimator.update()
            tx_params: TxParams = {
                "from": self.account,
                "to": Web3.to_checksum_address(transaction.target),
                "data": transaction.data,
                "value": Wei(0),
                **self.gas_estimator.get_current_fast_price(),
            }
            # Estimation reverts for calls that would revert on chain.
            tx_params["gas"] = int(self.w3.eth.estimate_gas(tx_params) * self.GAS_LIMIT_MULTIPLIER)

            match self.rofl_util:
                case None:
                    tx_hash: HexBytes = self.w3.eth.send_transaction(tx_params)
                    logger.info(f"Transaction sent: {transaction.description} tx: {Web3.to_hex(tx_hash)}")

                    receipt: TxReceipt = self.w3.eth.wait_for_transaction_receipt(
                        tx_hash, timeout=self.receipt_timeout
                    )
                    if (status := receipt.get("status", 0)) == 1:
                        logger.info(
                            f"✓ {transaction.description} confirmed in block {receipt['blockNumber']} "
                            f"tx: {Web3.to_hex(tx_hash)} {transaction.details}"
                        )
                        return TransactionResult(transaction.description, True, Web3.to_hex(tx_hash))

                    logger.error(f"✗ {transaction.description} failed with status={status}")
                    return TransactionResult(
                        transaction.description, False, Web3.to_hex(tx_hash), f"status={status}"
                    )

                case rofl_util:
                    if await rofl_util.submit_tx(tx_params):
                        logger.info(f"✓ {transaction.description} submitted via ROFL {transaction.details}")
                        return TransactionResult(transaction.description, True)

                    logger.error(f"✗ Failed to submit {transaction.description} via ROFL")
                    return TransactionResult(transaction.description, False, error="ROFL submission rejected")

        except Exception as e:
            logger.error(f"Something errored sending transaction '{transaction.description}': {e}", exc_info=True)
            return TransactionResult(transaction.description, False, error=str(e))
