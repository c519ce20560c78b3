"""Shared fixtures and in-memory chain clients for the relayer tests."""

from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

from bridge_relayer.models import (
    BridgePoolInfo,
    ClientRelayState,
    DeploymentInfo,
    Deposit,
    PreparedTransaction,
    Relay,
    SettleableRelay,
    TransactionResult,
)

FIXED_POINT = 10**18

L1_TOKEN = "0x1111111111111111111111111111111111111111"
L1_TOKEN_2 = "0x8888888888888888888888888888888888888888"
L1_RECIPIENT = "0x2222222222222222222222222222222222222222"
L2_SENDER = "0x3333333333333333333333333333333333333333"
RELAYER_ACCOUNT = "0x4444444444444444444444444444444444444444"
OTHER_RELAYER = "0x5555555555555555555555555555555555555555"
BRIDGE_POOL = "0x6666666666666666666666666666666666666666"
BRIDGE_POOL_2 = "0x9999999999999999999999999999999999999999"
DEPOSIT_BOX = "0x7777777777777777777777777777777777777777"

CHAIN_ID = 10
DEPLOY_TIMESTAMP = 1_600_000_000
QUOTE_TIMESTAMP = 1_700_000_000
CURRENT_TIME = 1_700_003_600
LIVENESS = 7200

PROPOSER_BOND_PCT = 5 * 10**16  # 5%
REALIZED_LP_FEE_PCT = 2 * 10**16  # 2%


def make_deposit(**overrides) -> Deposit:
    """Deposit of 1000 with a 1% slow fee and 0.5% instant fee unless overridden."""
    fields = {
        "chain_id": CHAIN_ID,
        "deposit_id": 1,
        "l1_recipient": L1_RECIPIENT,
        "l2_sender": L2_SENDER,
        "l1_token": L1_TOKEN,
        "amount": 1000,
        "slow_relay_fee_pct": 10**16,
        "instant_relay_fee_pct": 5 * 10**15,
        "quote_timestamp": QUOTE_TIMESTAMP,
        "deposit_contract": DEPOSIT_BOX,
    }
    fields.update(overrides)
    return Deposit.from_fields(**fields)


def make_relay(deposit: Deposit, **overrides) -> Relay:
    """Pending relay of ``deposit`` by another relayer, still inside its dispute window."""
    fields = {
        "chain_id": deposit.chain_id,
        "deposit_id": deposit.deposit_id,
        "deposit_hash": deposit.deposit_hash,
        "l1_recipient": deposit.l1_recipient,
        "l2_sender": deposit.l2_sender,
        "l1_token": deposit.l1_token,
        "amount": deposit.amount,
        "slow_relay_fee_pct": deposit.slow_relay_fee_pct,
        "instant_relay_fee_pct": deposit.instant_relay_fee_pct,
        "quote_timestamp": deposit.quote_timestamp,
        "relay_state": ClientRelayState.PENDING,
        "slow_relayer": OTHER_RELAYER,
        "relay_id": 0,
        "realized_lp_fee_pct": REALIZED_LP_FEE_PCT,
        "price_request_time": CURRENT_TIME - 60,
        "proposer_bond": 50,
        "final_fee": 0,
        "settleable": SettleableRelay.CANNOT_SETTLE,
    }
    fields.update(overrides)
    return Relay(**fields)


def make_bridge_pool(address: str = BRIDGE_POOL) -> MagicMock:
    """Bridge pool whose calldata is the hex-encoded function name."""
    pool = MagicMock()
    pool.address = address
    pool.encode_abi = MagicMock(side_effect=lambda name, args=None: "0x" + name.encode().hex())
    return pool


def calldata(function_name: str) -> str:
    return "0x" + function_name.encode().hex()


class FakeL1Client:
    """In-memory L1 client."""

    def __init__(
        self,
        balance: int = 1000,
        proposer_bond_pct: int = PROPOSER_BOND_PCT,
        realized_lp_fee_pct: int = REALIZED_LP_FEE_PCT,
    ) -> None:
        self.optimistic_oracle_liveness = LIVENESS
        self.current_time = CURRENT_TIME
        self.balances: dict[str, int] = {L1_TOKEN: balance, L1_TOKEN_2: balance}
        self.proposer_bond_pct = proposer_bond_pct
        self.realized_lp_fee_pct = realized_lp_fee_pct
        self.fee_errors: dict[str, Exception] = {}
        self.relays: dict[str, Relay] = {}
        self.finalized: set[str] = set()
        self.instant_relayers: dict[tuple[str, int], str] = {}
        self.bridge_pools = {L1_TOKEN: make_bridge_pool(BRIDGE_POOL), L1_TOKEN_2: make_bridge_pool(BRIDGE_POOL_2)}
        self.deposit_contracts = {CHAIN_ID: DEPOSIT_BOX}
        self.balance_reads = 0

    def add_relay(self, relay: Relay) -> None:
        self.relays[relay.deposit_hash] = relay

    async def update(self) -> None:
        pass

    def get_deposit_relay_state(self, deposit: Deposit) -> ClientRelayState:
        if deposit.deposit_hash in self.finalized:
            return ClientRelayState.FINALIZED
        relay = self.relays.get(deposit.deposit_hash)
        return ClientRelayState.UNINITIALIZED if relay is None else relay.relay_state

    def get_relay_for_deposit(self, l1_token: str, deposit: Deposit) -> Relay | None:
        relay = self.relays.get(deposit.deposit_hash)
        if relay is not None and relay.relay_state == ClientRelayState.PENDING:
            return relay
        return None

    def get_pending_relayed_deposits(self) -> list[Relay]:
        return [relay for relay in self.relays.values() if relay.relay_state == ClientRelayState.PENDING]

    def get_settleable_relayed_deposits_for_l1_token(self, l1_token: str) -> list[Relay]:
        return [
            relay
            for relay in self.get_pending_relayed_deposits()
            if relay.l1_token == l1_token and relay.settleable != SettleableRelay.CANNOT_SETTLE
        ]

    def has_instant_relayer(self, l1_token: str, deposit_hash: str, realized_lp_fee_pct: int) -> bool:
        return (deposit_hash, realized_lp_fee_pct) in self.instant_relayers

    def get_instant_relayer(self, l1_token: str, deposit_hash: str, realized_lp_fee_pct: int) -> str | None:
        return self.instant_relayers.get((deposit_hash, realized_lp_fee_pct))

    def get_bridge_pool_for_token(self, l1_token: str) -> BridgePoolInfo:
        return BridgePoolInfo(self.bridge_pools[l1_token].address, l1_token, self.current_time)

    def get_bridge_pool_contract(self, l1_token: str) -> MagicMock:
        return self.bridge_pools[l1_token]

    def get_collateral_info(self, l1_token: str) -> tuple[int, str]:
        return 6, "USDC"

    async def get_token_balance(self, l1_token: str, account: str) -> int:
        self.balance_reads += 1
        return self.balances[l1_token]

    async def get_proposer_bond_pct(self) -> int:
        return self.proposer_bond_pct

    async def get_deposit_contract(self, chain_id: int) -> str:
        return self.deposit_contracts.get(chain_id, DEPOSIT_BOX)

    async def calculate_realized_lp_fee_pct(self, deposit: Deposit) -> int:
        if deposit.deposit_hash in self.fee_errors:
            raise self.fee_errors[deposit.deposit_hash]
        return self.realized_lp_fee_pct


class FakeL2Client:
    """In-memory L2 client with a block-indexed deposit history."""

    def __init__(
        self,
        deposits: list[Deposit] | None = None,
        history: dict[int, list[Deposit]] | None = None,
        latest_block: int = 1000,
        chain_id: int = CHAIN_ID,
    ) -> None:
        self.chain_id = chain_id
        self.deposits = {deposit.deposit_hash: deposit for deposit in deposits or []}
        self.history = history or {}
        self.latest_block = latest_block
        self.scanned_windows: list[tuple[int, int]] = []

    async def update(self) -> None:
        pass

    def get_all_deposits_for_l1_token(self, l1_token: str) -> list[Deposit]:
        return [deposit for deposit in self.deposits.values() if deposit.l1_token == l1_token]

    def get_deposit_by_hash(self, deposit_hash: str) -> Deposit | None:
        return self.deposits.get(deposit_hash)

    async def scan_deposit_events(self, from_block: int, to_block: int) -> list[Deposit]:
        self.scanned_windows.append((from_block, to_block))
        return [
            deposit
            for block, deposits in sorted(self.history.items())
            if from_block <= block <= to_block
            for deposit in deposits
        ]

    async def get_latest_block_number(self) -> int:
        return self.latest_block


class FakeSubmitter:
    """Records submitted transactions; ``succeeds`` decides each outcome."""

    def __init__(self, succeeds: Callable[[PreparedTransaction], bool] = lambda tx: True) -> None:
        self.succeeds = succeeds
        self.submitted: list[PreparedTransaction] = []

    async def submit(self, transaction: PreparedTransaction) -> TransactionResult:
        self.submitted.append(transaction)
        if self.succeeds(transaction):
            return TransactionResult(transaction.description, True, tx_hash="0x" + "ab" * 32)
        return TransactionResult(transaction.description, False, error="reverted")


@pytest.fixture
def deploy_timestamps() -> dict[str, DeploymentInfo]:
    return {
        L1_TOKEN: DeploymentInfo(timestamp=DEPLOY_TIMESTAMP, block_number=0),
        L1_TOKEN_2: DeploymentInfo(timestamp=DEPLOY_TIMESTAMP, block_number=0),
    }


@pytest.fixture
def deposit() -> Deposit:
    return make_deposit()
