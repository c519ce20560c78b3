"""
Incremental, windowed event scanning for contract logs.
"""

import logging
from collections.abc import Sequence
from typing import Any

from web3.contract import Contract
from web3.types import EventData

logger = logging.getLogger(__name__)


class EventScanner:
    """
    Polls one contract for a set of events via ``get_logs``.

    Ranges wider than ``max_block_range`` are split into windows so a single
    request never exceeds the RPC provider's block range limit.
    """

    def __init__(
        self,
        contract: Contract,
        event_names: Sequence[str],
        max_block_range: int = 20000,
        start_block: int = 0,
    ) -> None:
        """
        Initialize the event scanner.

        Args:
            contract: Contract to monitor
            event_names: Names of the events to fetch
            max_block_range: Maximum number of blocks per get_logs request
            start_block: First block scanned by the initial poll
        """
        if max_block_range <= 0:
            raise ValueError(f"max_block_range must be positive, got {max_block_range}")

        for event_name in event_names:
            if not hasattr(contract.events, event_name):
                raise ValueError(f"Event {event_name} not found in contract ABI")

        self.contract = contract
        self.event_names = list(event_names)
        self.max_block_range = max_block_range
        self.start_block = start_block
        self.last_processed_block: int | None = None

    def get_events(self, from_block: int, to_block: int) -> list[EventData]:
        """
        Fetch every configured event in ``[from_block, to_block]``.

        Returns:
            Events ordered by block number and log index
        """
        events: list[EventData] = []
        window_start = from_block
        while window_start <= to_block:
            window_end = min(window_start + self.max_block_range - 1, to_block)
            for event_name in self.event_names:
                events.extend(
                    getattr(self.contract.events, event_name).get_logs(
                        from_block=window_start, to_block=window_end
                    )
                )
            window_start = window_end + 1

        return sorted(events, key=lambda event: (event["blockNumber"], event["logIndex"]))

    def poll(self) -> list[EventData]:
        """
        Fetch events emitted since the last successful poll.

        ``last_processed_block`` only advances when every window was fetched,
        so a failed poll is retried from the same block next time.
        """
        current_block = self.contract.w3.eth.block_number
        from_block = self.start_block if self.last_processed_block is None else self.last_processed_block + 1

        if from_block > current_block:
            return []

        events = self.get_events(from_block, current_block)
        if events:
            logger.debug(
                f"Found {len(events)} events on {self.contract.address} "
                f"in blocks {from_block}-{current_block}"
            )

        self.last_processed_block = current_block
        return events

    def get_status(self) -> dict[str, Any]:
        return {
            "contract_address": self.contract.address,
            "event_names": self.event_names,
            "last_processed_block": self.last_processed_block,
        }
