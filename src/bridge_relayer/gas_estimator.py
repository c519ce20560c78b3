"""
Gas price estimation for L1 transactions.
"""

import logging
from typing import Any

from web3 import Web3
from web3.types import Wei

logger = logging.getLogger(__name__)


class GasEstimator:
    """Tracks current L1 fee parameters for outgoing transactions."""

    # maxFeePerGas leaves room for the base fee to double before inclusion.
    BASE_FEE_MULTIPLIER: int = 2

    def __init__(self, w3: Web3, min_gas_price_gwei: int = 1) -> None:
        """
        Initialize the gas estimator.

        Args:
            w3: Web3 instance for the L1 chain
            min_gas_price_gwei: Floor applied to every fee estimate
        """
        self.w3 = w3
        self.min_gas_price: Wei = Web3.to_wei(min_gas_price_gwei, "gwei")
        self._fee_params: dict[str, Any] | None = None

    async def update(self) -> None:
        """Refresh fee parameters, preferring EIP-1559 fields when the chain supports them."""
        latest_block = self.w3.eth.get_block("latest")
        base_fee = latest_block.get("baseFeePerGas")

        if base_fee is not None:
            priority_fee = max(self.w3.eth.max_priority_fee, 0)
            max_fee = max(base_fee * self.BASE_FEE_MULTIPLIER + priority_fee, self.min_gas_price)
            self._fee_params = {
                "maxFeePerGas": Wei(max_fee),
                "maxPriorityFeePerGas": Wei(min(priority_fee, max_fee)),
            }
        else:
            self._fee_params = {"gasPrice": Wei(max(self.w3.eth.gas_price, self.min_gas_price))}

        logger.debug(f"Updated gas estimate: {self._fee_params}")

    def get_current_fast_price(self) -> dict[str, Any]:
        """Return fee fields to merge into a transaction."""
        if self._fee_params is None:
            return {"gasPrice": Wei(max(self.w3.eth.gas_price, self.min_gas_price))}
        return dict(self._fee_params)
