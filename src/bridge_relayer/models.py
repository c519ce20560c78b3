"""
Shared data models for the insured bridge relayer.

This module contains the data classes and enums used across the relayer
components: deposits observed on L2, relays recorded on L1, and the transient
classifications and reports produced by each sweep.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

from eth_abi import encode
from web3 import Web3

# All fee and bond percentages are fixed point numbers scaled by 1e18.
FIXED_POINT: int = 10**18

DEPOSIT_DATA_ABI_TYPE = "(uint256,uint64,address,address,uint256,uint64,uint64,uint32)"


class ClientRelayState(IntEnum):
    """Relay state of a deposit as seen by the L1 client."""
    UNINITIALIZED = 0
    PENDING = 1
    FINALIZED = 2


class SettleableRelay(IntEnum):
    """Who, if anyone, may currently settle a pending relay."""
    CANNOT_SETTLE = 0
    SLOW_RELAYER_CAN_SETTLE = 1
    ANYONE_CAN_SETTLE = 2


class RelaySubmitType(Enum):
    """Relay action chosen for a deposit in a single sweep."""
    SLOW = "slow"
    SPEED_UP = "speed_up"
    INSTANT = "instant"
    IGNORE = "ignore"


def generate_deposit_hash(
    chain_id: int,
    deposit_id: int,
    l1_recipient: str,
    l2_sender: str,
    l1_token: str,
    amount: int,
    slow_relay_fee_pct: int,
    instant_relay_fee_pct: int,
    quote_timestamp: int,
) -> str:
    """
    Compute the deposit hash exactly as the bridge pool does.

    The pool hashes ``abi.encode(depositData, l1Token)``, so the deposit
    contract that emitted the event is not part of the hash.

    Returns:
        0x-prefixed keccak256 hex digest
    """
    encoded = encode(
        [DEPOSIT_DATA_ABI_TYPE, "address"],
        [
            (
                chain_id,
                deposit_id,
                Web3.to_checksum_address(l1_recipient),
                Web3.to_checksum_address(l2_sender),
                amount,
                slow_relay_fee_pct,
                instant_relay_fee_pct,
                quote_timestamp,
            ),
            Web3.to_checksum_address(l1_token),
        ],
    )
    return Web3.to_hex(Web3.keccak(encoded))


@dataclass(frozen=True, slots=True)
class Deposit:
    """Represents a FundsDeposited event on the L2 deposit box.

    Attributes:
        chain_id: Chain ID of the L2 the deposit was made on
        deposit_id: Per-chain, monotonically increasing deposit id
        deposit_hash: Content hash identifying the deposit on L1
        l1_recipient: Address receiving the funds on L1
        l2_sender: Address that deposited on L2
        l1_token: Token to be paid out on L1
        amount: Deposited amount in token base units
        slow_relay_fee_pct: Fee paid to the slow relayer (1e18 scaled)
        instant_relay_fee_pct: Fee paid to the instant relayer (1e18 scaled)
        quote_timestamp: Time basis for the realized LP fee
        deposit_contract: Deposit box that emitted the event
    """
    chain_id: int
    deposit_id: int
    deposit_hash: str
    l1_recipient: str
    l2_sender: str
    l1_token: str
    amount: int
    slow_relay_fee_pct: int
    instant_relay_fee_pct: int
    quote_timestamp: int
    deposit_contract: str

    @classmethod
    def from_fields(
        cls,
        chain_id: int,
        deposit_id: int,
        l1_recipient: str,
        l2_sender: str,
        l1_token: str,
        amount: int,
        slow_relay_fee_pct: int,
        instant_relay_fee_pct: int,
        quote_timestamp: int,
        deposit_contract: str,
    ) -> "Deposit":
        """Build a deposit, deriving its hash from the other fields."""
        deposit_hash = generate_deposit_hash(
            chain_id,
            deposit_id,
            l1_recipient,
            l2_sender,
            l1_token,
            amount,
            slow_relay_fee_pct,
            instant_relay_fee_pct,
            quote_timestamp,
        )
        return cls(
            chain_id=chain_id,
            deposit_id=deposit_id,
            deposit_hash=deposit_hash,
            l1_recipient=l1_recipient,
            l2_sender=l2_sender,
            l1_token=l1_token,
            amount=amount,
            slow_relay_fee_pct=slow_relay_fee_pct,
            instant_relay_fee_pct=instant_relay_fee_pct,
            quote_timestamp=quote_timestamp,
            deposit_contract=deposit_contract,
        )

    def to_deposit_data(self) -> tuple:
        """Return the bridge pool's DepositData struct for this deposit."""
        return (
            self.chain_id,
            self.deposit_id,
            Web3.to_checksum_address(self.l1_recipient),
            Web3.to_checksum_address(self.l2_sender),
            self.amount,
            self.slow_relay_fee_pct,
            self.instant_relay_fee_pct,
            self.quote_timestamp,
        )

    def __str__(self) -> str:
        return (
            f"Deposit(chain={self.chain_id}, id={self.deposit_id}, "
            f"hash={self.deposit_hash[:10]}..., amount={self.amount})"
        )


@dataclass(frozen=True, slots=True)
class Relay:
    """Represents a relay recorded by a bridge pool on L1.

    Carries the deposit fields attested by the ``DepositRelayed`` event
    together with the pool's RelayData struct, plus the settleability derived
    from the pool's current time.
    """
    chain_id: int
    deposit_id: int
    deposit_hash: str
    l1_recipient: str
    l2_sender: str
    l1_token: str
    amount: int
    slow_relay_fee_pct: int
    instant_relay_fee_pct: int
    quote_timestamp: int
    relay_state: ClientRelayState
    slow_relayer: str
    relay_id: int
    realized_lp_fee_pct: int
    price_request_time: int
    proposer_bond: int
    final_fee: int
    settleable: SettleableRelay = SettleableRelay.CANNOT_SETTLE

    def to_relay_data(self) -> tuple:
        """Return the bridge pool's RelayData struct for this relay."""
        return (
            int(self.relay_state),
            Web3.to_checksum_address(self.slow_relayer),
            self.relay_id,
            self.realized_lp_fee_pct,
            self.price_request_time,
            self.proposer_bond,
            self.final_fee,
        )

    def to_deposit(self, deposit_contract: str = "") -> Deposit:
        """Rebuild the deposit this relay attests to."""
        return Deposit(
            chain_id=self.chain_id,
            deposit_id=self.deposit_id,
            deposit_hash=self.deposit_hash,
            l1_recipient=self.l1_recipient,
            l2_sender=self.l2_sender,
            l1_token=self.l1_token,
            amount=self.amount,
            slow_relay_fee_pct=self.slow_relay_fee_pct,
            instant_relay_fee_pct=self.instant_relay_fee_pct,
            quote_timestamp=self.quote_timestamp,
            deposit_contract=deposit_contract,
        )


@dataclass(frozen=True, slots=True)
class RelayableDeposit:
    """A deposit that has not been finalized yet, with its relay state."""
    status: ClientRelayState
    deposit: Deposit


@dataclass(frozen=True, slots=True)
class DeploymentInfo:
    """Bridge pool deployment time and block height for an L1 token."""
    timestamp: int
    block_number: int


@dataclass(frozen=True, slots=True)
class BridgePoolInfo:
    """Snapshot of a bridge pool taken on the last L1 client update."""
    address: str
    l1_token: str
    current_time: int


@dataclass(frozen=True, slots=True)
class RelayTokenRequirement:
    """Token balance needed to slow relay or speed up a deposit."""
    slow: int
    instant: int


@dataclass(frozen=True, slots=True)
class RelayDecision:
    """Outcome of the relay decision engine for one deposit."""
    action: RelaySubmitType
    profit: int
    slow_profit: int = 0
    speed_up_profit: int = 0
    instant_profit: int = 0


@dataclass(frozen=True, slots=True)
class PreparedTransaction:
    """A contract call ready for submission.

    Attributes:
        target: Address of the contract being called
        data: ABI encoded calldata (0x-prefixed)
        description: Short human readable message for logs
        details: Longer description of what the call does
    """
    target: str
    data: str
    description: str
    details: str = ""


@dataclass(frozen=True, slots=True)
class TransactionResult:
    """Outcome of submitting a single transaction."""
    description: str
    success: bool
    tx_hash: str | None = None
    error: str | None = None


@dataclass(slots=True)
class BatchResult:
    """Outcome of processing a batch of prepared transactions.

    ``results`` holds the multicall result when the batch succeeded, or one
    result per transaction when the batch was sent individually.
    """
    batched: bool = False
    batch_succeeded: bool = False
    results: list[TransactionResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[TransactionResult]:
        return [result for result in self.results if result.success]

    @property
    def failed(self) -> list[TransactionResult]:
        return [result for result in self.results if not result.success]


@dataclass(frozen=True, slots=True)
class SweepAction:
    """A single action taken (or deliberately not taken) during a sweep."""
    kind: str
    deposit_hash: str
    l1_token: str
    detail: str = ""
    profit: int = 0


@dataclass(slots=True)
class SweepReport:
    """Explicit record of what a sweep did, returned to the caller."""
    sweep: str
    actions: list[SweepAction] = field(default_factory=list)
    skipped: list[SweepAction] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    batches: list[BatchResult] = field(default_factory=list)

    def actions_of(self, kind: str) -> list[SweepAction]:
        """Return the actions of the given kind."""
        return [action for action in self.actions if action.kind == kind]

    def to_dict(self) -> dict[str, Any]:
        """Summarize the report for logging."""
        return {
            "sweep": self.sweep,
            "actions": len(self.actions),
            "skipped": len(self.skipped),
            "errors": len(self.errors),
            "transactions_failed": sum(len(batch.failed) for batch in self.batches),
        }
