"""
L2 client for the insured bridge deposit box.
"""

import logging

from web3 import Web3
from web3.contract import Contract
from web3.types import EventData

from ..models import Deposit
from ..utils.event_scanner import EventScanner

logger = logging.getLogger(__name__)


class InsuredBridgeL2Client:
    """Caches the FundsDeposited events of one L2 deposit box.

    ``update()`` reloads deposits from the most recent ``lookback_window``
    blocks; older deposits are reachable through ``scan_deposit_events``.
    """

    def __init__(
        self,
        w3: Web3,
        deposit_box: Contract,
        chain_id: int,
        lookback_window: int = 10000,
        max_block_range: int = 10000,
    ) -> None:
        """
        Initialize the L2 client.

        Args:
            w3: Web3 instance for the L2
            deposit_box: BridgeDepositBox contract
            chain_id: Chain ID of the L2
            lookback_window: Number of blocks cached by update()
            max_block_range: Maximum number of blocks per get_logs request
        """
        self.w3 = w3
        self.deposit_box = deposit_box
        self.chain_id = chain_id
        self.lookback_window = lookback_window
        self.scanner = EventScanner(deposit_box, ["FundsDeposited"], max_block_range=max_block_range)

        self._deposits: dict[str, Deposit] = {}

    def _deposit_from_event(self, event: EventData) -> Deposit:
        args = event["args"]
        return Deposit.from_fields(
            chain_id=args["chainId"],
            deposit_id=args["depositId"],
            l1_recipient=Web3.to_checksum_address(args["l1Recipient"]),
            l2_sender=Web3.to_checksum_address(args["l2Sender"]),
            l1_token=Web3.to_checksum_address(args["l1Token"]),
            amount=args["amount"],
            slow_relay_fee_pct=args["slowRelayFeePct"],
            instant_relay_fee_pct=args["instantRelayFeePct"],
            quote_timestamp=args["quoteTimestamp"],
            deposit_contract=event["address"],
        )

    async def update(self) -> None:
        latest_block = await self.get_latest_block_number()
        from_block = max(0, latest_block - self.lookback_window)

        deposits = await self.scan_deposit_events(from_block, latest_block)
        self._deposits = {deposit.deposit_hash: deposit for deposit in deposits}

        logger.info(
            f"L2 client updated: {len(self._deposits)} deposits in blocks {from_block}-{latest_block} "
            f"on chain {self.chain_id}"
        )

    async def scan_deposit_events(self, from_block: int, to_block: int) -> list[Deposit]:
        """Decode every deposit in ``[from_block, to_block]``, recomputing its hash."""
        return [self._deposit_from_event(event) for event in self.scanner.get_events(from_block, to_block)]

    async def get_latest_block_number(self) -> int:
        return self.w3.eth.block_number

    def get_all_deposits_for_l1_token(self, l1_token: str) -> list[Deposit]:
        return [deposit for deposit in self._deposits.values() if deposit.l1_token.lower() == l1_token.lower()]

    def get_deposit_by_hash(self, deposit_hash: str) -> Deposit | None:
        return self._deposits.get(deposit_hash)
