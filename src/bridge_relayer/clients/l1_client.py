"""
L1 client for the insured bridge admin and bridge pools.

Replays each whitelisted bridge pool's relay events into an in-memory relay
table and exposes the pool state the relayer, disputer and finalizer need.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from web3 import Web3
from web3.contract import Contract
from web3.types import EventData

from ..lp_fee_calculator import LpFeeCalculator
from ..models import BridgePoolInfo, ClientRelayState, DeploymentInfo, Deposit, Relay, SettleableRelay
from ..utils.contract_utility import ContractUtility
from ..utils.event_scanner import EventScanner

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# After a relay expires, only its slow relayer may settle it for this many seconds.
SLOW_RELAYER_EXCLUSIVITY_WINDOW: int = 900


def get_settleable_state(current_time: int, price_request_time: int, liveness: int) -> SettleableRelay:
    """Classify who may settle a pending relay at ``current_time``."""
    expiration_time = price_request_time + liveness
    if current_time < expiration_time:
        return SettleableRelay.CANNOT_SETTLE
    if current_time <= expiration_time + SLOW_RELAYER_EXCLUSIVITY_WINDOW:
        return SettleableRelay.SLOW_RELAYER_CAN_SETTLE
    return SettleableRelay.ANYONE_CAN_SETTLE


@dataclass(slots=True)
class BridgePoolState:
    """Cached state of one bridge pool."""
    l1_token: str
    contract: Contract
    erc20: Contract
    scanner: EventScanner
    decimals: int
    symbol: str
    current_time: int = 0
    relays: dict[str, Relay] = field(default_factory=dict)
    instant_relayers: dict[tuple[str, int], str] = field(default_factory=dict)


class InsuredBridgeL1Client:
    """Reads relays and pool parameters from the bridge pools on L1."""

    RELAY_EVENTS: tuple[str, ...] = (
        "DepositRelayed",
        "RelaySpedUp",
        "RelayDisputed",
        "RelayCanceled",
        "RelaySettled",
    )

    def __init__(
        self,
        contract_util: ContractUtility,
        bridge_admin_address: str,
        whitelisted_l1_tokens: list[str],
        l2_chain_id: int,
        deploy_timestamps: dict[str, DeploymentInfo],
        lp_fee_calculator: LpFeeCalculator,
        max_block_range: int = 20000,
    ) -> None:
        """
        Initialize the L1 client.

        Args:
            contract_util: Connection to L1
            bridge_admin_address: BridgeAdmin contract address
            whitelisted_l1_tokens: L1 tokens whose bridge pools are tracked
            l2_chain_id: Chain ID of the L2 the pools are whitelisted for
            deploy_timestamps: Bridge pool deployment info keyed by L1 token
            lp_fee_calculator: Prices deposits against the pools' rate models
            max_block_range: Maximum number of blocks per get_logs request
        """
        self.contract_util = contract_util
        self.w3 = contract_util.w3
        self.bridge_admin: Contract = contract_util.get_contract(bridge_admin_address, "BridgeAdmin")
        self.whitelisted_l1_tokens = [Web3.to_checksum_address(token) for token in whitelisted_l1_tokens]
        self.l2_chain_id = l2_chain_id
        self.deploy_timestamps = deploy_timestamps
        self.lp_fee_calculator = lp_fee_calculator
        self.max_block_range = max_block_range

        self.optimistic_oracle_liveness: int = 0
        self._bridge_pools: dict[str, BridgePoolState] = {}

    def _load_bridge_pool(self, l1_token: str) -> BridgePoolState:
        _l2_token, bridge_pool_address = self.bridge_admin.functions.whitelistedTokens(
            l1_token, self.l2_chain_id
        ).call()
        if bridge_pool_address == ZERO_ADDRESS:
            raise ValueError(f"L1 token {l1_token} is not whitelisted for chain {self.l2_chain_id}")

        contract = self.contract_util.get_contract(bridge_pool_address, "BridgePool")
        erc20 = self.contract_util.get_contract(l1_token, "ERC20")
        pool = BridgePoolState(
            l1_token=l1_token,
            contract=contract,
            erc20=erc20,
            scanner=EventScanner(
                contract,
                self.RELAY_EVENTS,
                max_block_range=self.max_block_range,
                start_block=self.deploy_timestamps[l1_token].block_number,
            ),
            decimals=erc20.functions.decimals().call(),
            symbol=erc20.functions.symbol().call(),
        )
        logger.info(f"Tracking bridge pool {contract.address} for {pool.symbol} ({l1_token})")
        return pool

    def _get_pool(self, l1_token: str) -> BridgePoolState:
        try:
            return self._bridge_pools[Web3.to_checksum_address(l1_token)]
        except KeyError:
            raise ValueError(f"No bridge pool loaded for L1 token {l1_token}") from None

    def _apply_event(self, pool: BridgePoolState, event: EventData) -> None:
        args = event["args"]
        deposit_hash = Web3.to_hex(args["depositHash"])

        match event["event"]:
            case "DepositRelayed":
                deposit_data = args["depositData"]
                relay_data = args["relayData"]
                pool.relays[deposit_hash] = Relay(
                    chain_id=deposit_data["chainId"],
                    deposit_id=deposit_data["depositId"],
                    deposit_hash=deposit_hash,
                    l1_recipient=Web3.to_checksum_address(deposit_data["l1Recipient"]),
                    l2_sender=Web3.to_checksum_address(deposit_data["l2Sender"]),
                    l1_token=pool.l1_token,
                    amount=deposit_data["amount"],
                    slow_relay_fee_pct=deposit_data["slowRelayFeePct"],
                    instant_relay_fee_pct=deposit_data["instantRelayFeePct"],
                    quote_timestamp=deposit_data["quoteTimestamp"],
                    relay_state=ClientRelayState(relay_data["relayState"]),
                    slow_relayer=Web3.to_checksum_address(relay_data["slowRelayer"]),
                    relay_id=relay_data["relayId"],
                    realized_lp_fee_pct=relay_data["realizedLpFeePct"],
                    price_request_time=relay_data["priceRequestTime"],
                    proposer_bond=relay_data["proposerBond"],
                    final_fee=relay_data["finalFee"],
                )
            case "RelaySpedUp":
                key = (deposit_hash, args["relayData"]["realizedLpFeePct"])
                pool.instant_relayers[key] = Web3.to_checksum_address(args["instantRelayer"])
            case "RelayDisputed" | "RelayCanceled":
                pool.relays.pop(deposit_hash, None)
            case "RelaySettled":
                if (relay := pool.relays.get(deposit_hash)) is None:
                    logger.warning(f"Settled relay {deposit_hash} was never seen relayed")
                    return
                pool.relays[deposit_hash] = replace(relay, relay_state=ClientRelayState.FINALIZED)

    def _refresh_settleable(self, pool: BridgePoolState) -> None:
        for deposit_hash, relay in pool.relays.items():
            if relay.relay_state != ClientRelayState.PENDING:
                continue
            settleable = get_settleable_state(
                pool.current_time, relay.price_request_time, self.optimistic_oracle_liveness
            )
            if settleable != relay.settleable:
                pool.relays[deposit_hash] = replace(relay, settleable=settleable)

    async def update(self) -> None:
        """Refresh pool parameters and replay new relay events for every whitelisted token."""
        self.optimistic_oracle_liveness = self.bridge_admin.functions.optimisticOracleLiveness().call()

        for l1_token in self.whitelisted_l1_tokens:
            if l1_token not in self._bridge_pools:
                self._bridge_pools[l1_token] = self._load_bridge_pool(l1_token)
            pool = self._bridge_pools[l1_token]

            pool.current_time = pool.contract.functions.getCurrentTime().call()
            events = pool.scanner.poll()
            for event in events:
                self._apply_event(pool, event)
            self._refresh_settleable(pool)

            logger.debug(
                f"Bridge pool {pool.symbol}: replayed {len(events)} events, "
                f"{len(pool.relays)} relays tracked, current time {pool.current_time}"
            )

    def get_deposit_relay_state(self, deposit: Deposit) -> ClientRelayState:
        relay = self._get_pool(deposit.l1_token).relays.get(deposit.deposit_hash)
        return ClientRelayState.UNINITIALIZED if relay is None else relay.relay_state

    def get_relay_for_deposit(self, l1_token: str, deposit: Deposit) -> Relay | None:
        relay = self._get_pool(l1_token).relays.get(deposit.deposit_hash)
        if relay is not None and relay.relay_state == ClientRelayState.PENDING:
            return relay
        return None

    def get_pending_relayed_deposits(self) -> list[Relay]:
        return [
            relay
            for pool in self._bridge_pools.values()
            for relay in pool.relays.values()
            if relay.relay_state == ClientRelayState.PENDING
        ]

    def get_settleable_relayed_deposits_for_l1_token(self, l1_token: str) -> list[Relay]:
        return [
            relay
            for relay in self._get_pool(l1_token).relays.values()
            if relay.relay_state == ClientRelayState.PENDING and relay.settleable != SettleableRelay.CANNOT_SETTLE
        ]

    def has_instant_relayer(self, l1_token: str, deposit_hash: str, realized_lp_fee_pct: int) -> bool:
        return self.get_instant_relayer(l1_token, deposit_hash, realized_lp_fee_pct) is not None

    def get_instant_relayer(self, l1_token: str, deposit_hash: str, realized_lp_fee_pct: int) -> str | None:
        return self._get_pool(l1_token).instant_relayers.get((deposit_hash, realized_lp_fee_pct))

    def get_bridge_pool_for_token(self, l1_token: str) -> BridgePoolInfo:
        pool = self._get_pool(l1_token)
        return BridgePoolInfo(address=pool.contract.address, l1_token=pool.l1_token, current_time=pool.current_time)

    def get_bridge_pool_contract(self, l1_token: str) -> Contract:
        return self._get_pool(l1_token).contract

    def get_collateral_info(self, l1_token: str) -> tuple[int, str]:
        pool = self._get_pool(l1_token)
        return pool.decimals, pool.symbol

    async def get_token_balance(self, l1_token: str, account: str) -> int:
        return self._get_pool(l1_token).erc20.functions.balanceOf(Web3.to_checksum_address(account)).call()

    async def get_proposer_bond_pct(self) -> int:
        return self.bridge_admin.functions.proposerBondPct().call()

    async def get_deposit_contract(self, chain_id: int) -> str:
        deposit_contract, _messenger = self.bridge_admin.functions.depositContracts(chain_id).call()
        return deposit_contract

    async def calculate_realized_lp_fee_pct(self, deposit: Deposit) -> int:
        return self.lp_fee_calculator.calculate_realized_lp_fee_pct(
            self._get_pool(deposit.l1_token).contract,
            deposit.l1_token,
            deposit.amount,
            deposit.quote_timestamp,
        )

    def get_status(self) -> dict[str, Any]:
        return {
            l1_token: {
                "bridge_pool": pool.contract.address,
                "relays": len(pool.relays),
                "current_time": pool.current_time,
                **pool.scanner.get_status(),
            }
            for l1_token, pool in self._bridge_pools.items()
        }
