"""
Deposit matching for relays.

Finds the L2 deposit a relay attests to, falling back to a windowed block
search from the deposit box's deployment when the L2 client's default
lookback misses it.
"""

import logging

from .clients.interfaces import L2ClientProtocol
from .models import Deposit, Relay

logger = logging.getLogger(__name__)


class DepositMatcher:
    """Matches relays with the deposits they claim to relay."""

    def __init__(self, l2_client: L2ClientProtocol, lookback_window: int) -> None:
        """
        Initialize the deposit matcher.

        Args:
            l2_client: Client for the L2 the deposits were made on
            lookback_window: Number of blocks scanned per fallback window
        """
        if lookback_window <= 0:
            raise ValueError(f"Lookback window must be positive, got {lookback_window}")
        self.l2_client = l2_client
        self.lookback_window = lookback_window

    async def match_relay_with_deposit(self, relay: Relay, start_block: int) -> Deposit | None:
        """
        Return the deposit whose hash matches the relay, if it exists.

        The L2 client's cached deposits are checked first. On a miss, blocks
        are scanned from ``start_block`` to the latest block in windows of
        ``lookback_window`` blocks, recomputing every deposit's hash. The last
        window is clamped to the latest block, and at least one window is
        always scanned.

        Args:
            relay: Relay to match
            start_block: First L2 block to search, usually the deployment block

        Returns:
            The matching deposit, or None if no deposit on L2 matches
        """
        deposit = self.l2_client.get_deposit_by_hash(relay.deposit_hash)
        if deposit is not None:
            return deposit

        latest_block = await self.l2_client.get_latest_block_number()
        from_block = start_block
        to_block = max(from_block, min(from_block + self.lookback_window, latest_block))
        windows_searched = 0

        while True:
            windows_searched += 1
            for candidate in await self.l2_client.scan_deposit_events(from_block, to_block):
                if candidate.deposit_hash == relay.deposit_hash:
                    logger.debug(
                        f"Matched deposit {relay.deposit_hash} in blocks {from_block}-{to_block} "
                        f"after {windows_searched} window(s)"
                    )
                    return candidate

            # The inclusive check guarantees the latest block is searched exactly once.
            if to_block >= latest_block:
                break

            from_block = to_block + 1
            to_block = min(latest_block, to_block + self.lookback_window)

        logger.debug(
            f"No deposit matches relay {relay.deposit_hash} in blocks {start_block}-{latest_block} "
            f"({windows_searched} window(s) searched)"
        )
        return None
