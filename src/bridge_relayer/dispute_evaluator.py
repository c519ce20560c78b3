"""
Dispute evaluation for pending relays.

Decides whether a pending relay on L1 is expired, valid, or should be
disputed, given the deposit it claims to relay on L2.
"""

import logging
from dataclasses import dataclass

from .clients.interfaces import L1ClientProtocol, L2ClientProtocol
from .deposit_matcher import DepositMatcher
from .models import DeploymentInfo, Deposit, Relay, SettleableRelay

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RelayExpiry:
    """Whether a relay's dispute window has closed."""
    is_expired: bool
    expiration_time: int
    contract_time: int


@dataclass(frozen=True, slots=True)
class DisputeCheck:
    """Result of validating a relay's parameters against expected values."""
    can_dispute: bool
    reason: str = ""


@dataclass(frozen=True, slots=True)
class DisputeVerdict:
    """Outcome of evaluating a pending relay.

    Attributes:
        expired: The relay can no longer be disputed
        disputable: The relay should be disputed
        reason: Why the relay is (or is not) disputable
        deposit: Deposit matched to the relay, if one was found
    """
    expired: bool
    disputable: bool
    reason: str
    deposit: Deposit | None = None


def is_pending_relay_disputable(relay: Relay, expected_realized_lp_fee_pct: int) -> DisputeCheck:
    """
    Validate the relay parameters that are not covered by the deposit hash.

    Any deposit parameter that is wrong changes the deposit hash, so a relay
    matched by hash only needs its realized LP fee checked.
    """
    if relay.realized_lp_fee_pct != expected_realized_lp_fee_pct:
        return DisputeCheck(
            can_dispute=True,
            reason=(
                f"relayRealizedLpFeePct: {relay.realized_lp_fee_pct} != "
                f"expectedRelayRealizedLpFeePct: {expected_realized_lp_fee_pct}"
            ),
        )
    return DisputeCheck(can_dispute=False)


class DisputeEvaluator:
    """Evaluates pending relays for expiry and validity."""

    def __init__(
        self,
        l1_client: L1ClientProtocol,
        l2_client: L2ClientProtocol,
        deposit_matcher: DepositMatcher,
        whitelisted_chain_ids: list[int],
        deploy_timestamps: dict[str, DeploymentInfo],
        l2_deploy_block: int | None = None,
    ) -> None:
        """
        Initialize the dispute evaluator.

        Args:
            l1_client: Client for the bridge pools on L1
            l2_client: Client for the deposit box on L2
            deposit_matcher: Finds the deposit a relay refers to
            whitelisted_chain_ids: Chains relays may originate from; others are disputed
            deploy_timestamps: Bridge pool deployment info keyed by L1 token
            l2_deploy_block: First block of the L2 deposit box, if known
        """
        self.l1_client = l1_client
        self.l2_client = l2_client
        self.deposit_matcher = deposit_matcher
        self.whitelisted_chain_ids = whitelisted_chain_ids
        self.deploy_timestamps = deploy_timestamps
        self.l2_deploy_block = l2_deploy_block

    def is_relay_expired(self, relay: Relay) -> RelayExpiry:
        """A relay is expired once it can be settled by anyone, including its slow relayer."""
        return RelayExpiry(
            is_expired=relay.settleable != SettleableRelay.CANNOT_SETTLE,
            expiration_time=relay.price_request_time + self.l1_client.optimistic_oracle_liveness,
            contract_time=self.l1_client.get_bridge_pool_for_token(relay.l1_token).current_time,
        )

    def search_start_block(self, l1_token: str) -> int:
        """First L2 block searched when the default lookback misses a deposit."""
        if self.l2_deploy_block is not None:
            return self.l2_deploy_block
        return self.deploy_timestamps[l1_token].block_number

    async def evaluate(self, relay: Relay) -> DisputeVerdict:
        """
        Evaluate a pending relay.

        Checks run in order: expiry, chain whitelist, deposit match, quote time
        against the bridge pool deployment, and finally the realized LP fee.

        Args:
            relay: Pending relay to evaluate

        Returns:
            Verdict describing whether the relay should be disputed
        """
        expiry = self.is_relay_expired(relay)
        if expiry.is_expired:
            return DisputeVerdict(
                expired=True,
                disputable=False,
                reason=(
                    f"relay expired at {expiry.expiration_time}, "
                    f"contract time {expiry.contract_time}"
                ),
            )

        if relay.chain_id not in self.whitelisted_chain_ids:
            return DisputeVerdict(
                expired=False,
                disputable=True,
                reason=f"chain id {relay.chain_id} is not whitelisted",
            )

        # Deposits from other whitelisted chains cannot be queried by this L2 client.
        if relay.chain_id != self.l2_client.chain_id:
            return DisputeVerdict(
                expired=False,
                disputable=False,
                reason=(
                    f"relay chain id {relay.chain_id} does not match "
                    f"L2 client chain id {self.l2_client.chain_id}"
                ),
            )

        deposit = await self.deposit_matcher.match_relay_with_deposit(
            relay, self.search_start_block(relay.l1_token)
        )
        if deposit is None or deposit.chain_id != relay.chain_id:
            return DisputeVerdict(
                expired=False,
                disputable=True,
                reason="no deposit matches the relay",
            )

        deployment = self.deploy_timestamps[deposit.l1_token]
        if deposit.quote_timestamp < deployment.timestamp:
            return DisputeVerdict(
                expired=False,
                disputable=True,
                reason=(
                    f"deposit quote time {deposit.quote_timestamp} is before "
                    f"bridge pool deployment {deployment.timestamp}"
                ),
                deposit=deposit,
            )

        expected_realized_lp_fee_pct = await self.l1_client.calculate_realized_lp_fee_pct(deposit)
        check = is_pending_relay_disputable(relay, expected_realized_lp_fee_pct)
        if check.can_dispute:
            return DisputeVerdict(expired=False, disputable=True, reason=check.reason, deposit=deposit)

        return DisputeVerdict(
            expired=False,
            disputable=False,
            reason="relay matched with deposit and params are valid",
            deposit=deposit,
        )
