"""
Timestamp to block number lookup.
"""

import logging

from web3 import Web3

logger = logging.getLogger(__name__)


class BlockFinder:
    """Finds the latest block at or before a timestamp by binary search.

    Block timestamps are cached, so repeated lookups for nearby quote times
    only fetch a handful of new blocks.
    """

    def __init__(self, w3: Web3) -> None:
        self.w3 = w3
        self._timestamps: dict[int, int] = {}
        self._results: dict[int, int] = {}

    def _get_timestamp(self, block_number: int) -> int:
        if block_number not in self._timestamps:
            self._timestamps[block_number] = self.w3.eth.get_block(block_number)["timestamp"]
        return self._timestamps[block_number]

    def get_block_for_timestamp(self, timestamp: int) -> int:
        """
        Return the number of the latest block whose timestamp is <= ``timestamp``.

        Raises:
            ValueError: If ``timestamp`` precedes the genesis block
        """
        if timestamp in self._results:
            return self._results[timestamp]

        low, high = 0, self.w3.eth.block_number
        if self._get_timestamp(low) > timestamp:
            raise ValueError(f"Timestamp {timestamp} is before the first block")

        if self._get_timestamp(high) <= timestamp:
            # The head can still move, so results at the tip are not cached.
            return high

        # Invariant: timestamp(low) <= target < timestamp(high).
        while high - low > 1:
            mid = (low + high) // 2
            if self._get_timestamp(mid) <= timestamp:
                low = mid
            else:
                high = mid

        logger.debug(f"Block {low} is the latest block at or before timestamp {timestamp}")
        self._results[timestamp] = low
        return low
