"""
Interfaces of the L1 and L2 chain clients and the canonical bridge adapters.

The orchestrator depends only on these protocols so that clients for other
chains, or in-memory fakes in tests, can be substituted freely.
"""

from typing import Any, Protocol, runtime_checkable

from ..models import BridgePoolInfo, ClientRelayState, Deposit, PreparedTransaction, Relay


class L1ClientProtocol(Protocol):
    """Read access to the bridge admin and bridge pools on L1."""

    optimistic_oracle_liveness: int

    async def update(self) -> None:
        """Refresh cached relay state from the chain."""
        ...

    def get_deposit_relay_state(self, deposit: Deposit) -> ClientRelayState: ...

    def get_relay_for_deposit(self, l1_token: str, deposit: Deposit) -> Relay | None: ...

    def get_pending_relayed_deposits(self) -> list[Relay]: ...

    def get_settleable_relayed_deposits_for_l1_token(self, l1_token: str) -> list[Relay]: ...

    def has_instant_relayer(self, l1_token: str, deposit_hash: str, realized_lp_fee_pct: int) -> bool: ...

    def get_instant_relayer(self, l1_token: str, deposit_hash: str, realized_lp_fee_pct: int) -> str | None: ...

    def get_bridge_pool_for_token(self, l1_token: str) -> BridgePoolInfo: ...

    def get_bridge_pool_contract(self, l1_token: str) -> Any: ...

    def get_collateral_info(self, l1_token: str) -> tuple[int, str]:
        """Return the token's (decimals, symbol)."""
        ...

    async def get_token_balance(self, l1_token: str, account: str) -> int: ...

    async def get_proposer_bond_pct(self) -> int: ...

    async def get_deposit_contract(self, chain_id: int) -> str: ...

    async def calculate_realized_lp_fee_pct(self, deposit: Deposit) -> int: ...


class L2ClientProtocol(Protocol):
    """Read access to the deposit box on L2."""

    chain_id: int

    async def update(self) -> None:
        """Refresh cached deposits over the default lookback window."""
        ...

    def get_all_deposits_for_l1_token(self, l1_token: str) -> list[Deposit]: ...

    def get_deposit_by_hash(self, deposit_hash: str) -> Deposit | None: ...

    async def scan_deposit_events(self, from_block: int, to_block: int) -> list[Deposit]: ...

    async def get_latest_block_number(self) -> int: ...


@runtime_checkable
class FinalizationAdapterProtocol(Protocol):
    """Canonical bridge of one L2 stack, moving a deposit box message to L1.

    Implementations build the L1 call that finalizes the message sent by an
    L2 transaction, or return None while the message cannot be finalized yet.
    """

    async def initialize(self) -> None: ...

    async def construct_finalization_transaction(self, l2_transaction_hash: str) -> PreparedTransaction | None: ...
