"""
Relay, dispute and settlement sweeps for the insured bridge.

Each sweep reads the cached state of the L1 and L2 clients, decides what to do
for every deposit or relay, prepares the corresponding bridge pool calls and
hands them to the transaction batcher, one batch per bridge pool. A failure
processing one item is logged and recorded in the sweep report; it never
stops the rest of the sweep.
"""

import logging

from .clients.interfaces import L1ClientProtocol, L2ClientProtocol
from .deposit_matcher import DepositMatcher
from .dispute_evaluator import DisputeEvaluator, is_pending_relay_disputable
from .models import (
    ClientRelayState,
    DeploymentInfo,
    Deposit,
    PreparedTransaction,
    Relay,
    RelayableDeposit,
    RelayDecision,
    RelaySubmitType,
    SettleableRelay,
    SweepAction,
    SweepReport,
)
from .relay_decision import required_capital, should_relay
from .relay_requirements import get_relay_token_requirement
from .transaction_batcher import TransactionBatcher
from .utils.formatting import format_pct, format_units

logger = logging.getLogger(__name__)


class RelayerOrchestrator:
    """Runs the relayer, disputer and finalizer sweeps for one L2."""

    def __init__(
        self,
        l1_client: L1ClientProtocol,
        l2_client: L2ClientProtocol,
        transaction_batcher: TransactionBatcher,
        account: str,
        whitelisted_l1_tokens: list[str],
        whitelisted_chain_ids: list[int],
        deploy_timestamps: dict[str, DeploymentInfo],
        l2_lookback_window: int,
        l2_deploy_block: int | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            l1_client: Client for the bridge pools on L1
            l2_client: Client for the deposit box on L2
            transaction_batcher: Sends prepared calls
            account: Address of the relayer account
            whitelisted_l1_tokens: L1 tokens to relay and settle
            whitelisted_chain_ids: Chains relays may originate from
            deploy_timestamps: Bridge pool deployment info keyed by L1 token
            l2_lookback_window: Blocks per window when searching L2 for a deposit
            l2_deploy_block: First block of the L2 deposit box, if known
        """
        self.l1_client = l1_client
        self.l2_client = l2_client
        self.transaction_batcher = transaction_batcher
        self.account = account
        self.whitelisted_l1_tokens = whitelisted_l1_tokens
        self.deploy_timestamps = deploy_timestamps

        self.deposit_matcher = DepositMatcher(l2_client, l2_lookback_window)
        self.dispute_evaluator = DisputeEvaluator(
            l1_client=l1_client,
            l2_client=l2_client,
            deposit_matcher=self.deposit_matcher,
            whitelisted_chain_ids=whitelisted_chain_ids,
            deploy_timestamps=deploy_timestamps,
            l2_deploy_block=l2_deploy_block,
        )

    # Relayer

    async def check_for_pending_deposits_and_relay(self) -> SweepReport:
        """
        Relay every profitable, non-finalized deposit on each whitelisted token.

        The account's balance is read once per token and reduced by the
        capital committed to each chosen relay, so a sweep never relies on
        more tokens than the account holds.

        Raises:
            BatchTargetMismatchError: If a batch mixes bridge pools
        """
        logger.debug("Checking for pending deposits and relaying")
        report = SweepReport(sweep="relay")

        relayable_deposits = self._get_relayable_deposits()
        if not relayable_deposits:
            logger.debug("No relayable deposits for any whitelisted tokens")
            return report

        for l1_token, deposits in relayable_deposits.items():
            logger.debug(f"Processing {len(deposits)} relayable deposits for L1 token {l1_token}")
            try:
                available_balance = await self.l1_client.get_token_balance(l1_token, self.account)
                proposer_bond_pct = await self.l1_client.get_proposer_bond_pct()
            except Exception as e:
                logger.error(f"Unexpected error reading balance for L1 token {l1_token}: {e}", exc_info=True)
                report.errors.append(f"{l1_token}: {e}")
                continue

            relay_transactions: list[PreparedTransaction | None] = []
            for relayable_deposit in deposits:
                deposit = relayable_deposit.deposit
                deployment_time = self.deploy_timestamps[l1_token].timestamp
                if deposit.quote_timestamp < deployment_time:
                    # Pricing cannot be queried before the pool existed.
                    logger.debug(
                        f"Deposit {deposit} quote time < bridge pool deployment {deployment_time}, skipping"
                    )
                    report.skipped.append(
                        SweepAction("pre_deployment_quote", deposit.deposit_hash, l1_token)
                    )
                    continue

                try:
                    transaction, committed = await self._generate_relay_transaction_for_pending_deposit(
                        l1_token, relayable_deposit, available_balance, proposer_bond_pct, report
                    )
                except Exception as e:
                    logger.error(f"Unexpected error processing deposit {deposit}: {e}", exc_info=True)
                    report.errors.append(f"{deposit.deposit_hash}: {e}")
                    continue

                if transaction is not None:
                    relay_transactions.append(transaction)
                    available_balance -= committed

            if relay_transactions:
                report.batches.append(await self.transaction_batcher.process_transaction_batch(relay_transactions))

        logger.info(f"Relay sweep finished: {report.to_dict()}")
        return report

    async def _generate_relay_transaction_for_pending_deposit(
        self,
        l1_token: str,
        relayable_deposit: RelayableDeposit,
        available_balance: int,
        proposer_bond_pct: int,
        report: SweepReport,
    ) -> tuple[PreparedTransaction | None, int]:
        """Decide how to relay one deposit; returns the call and the capital it commits."""
        deposit = relayable_deposit.deposit
        realized_lp_fee_pct = await self.l1_client.calculate_realized_lp_fee_pct(deposit)

        pending_relay = self.l1_client.get_relay_for_deposit(l1_token, deposit)
        if pending_relay is not None:
            # A relay can only be sped up while it is disputable and valid.
            expiry = self.dispute_evaluator.is_relay_expired(pending_relay)
            if expiry.is_expired:
                logger.debug(
                    f"Pending relay for {deposit} has expired at {expiry.expiration_time} "
                    f"(contract time {expiry.contract_time}), ignoring"
                )
                report.skipped.append(SweepAction("expired_relay", deposit.deposit_hash, l1_token))
                return None, 0

            check = is_pending_relay_disputable(pending_relay, realized_lp_fee_pct)
            if check.can_dispute:
                logger.debug(f"Pending relay for {deposit} is invalid: {check.reason}")
                report.skipped.append(SweepAction("invalid_relay", deposit.deposit_hash, l1_token, check.reason))
                return None, 0

        has_instant_relayer = self.l1_client.has_instant_relayer(
            l1_token, deposit.deposit_hash, realized_lp_fee_pct
        )
        if has_instant_relayer and relayable_deposit.status == ClientRelayState.PENDING:
            logger.debug(f"Relay for {deposit} pending and already sped up 😖")
            report.skipped.append(SweepAction("already_sped_up", deposit.deposit_hash, l1_token))
            return None, 0

        requirement = get_relay_token_requirement(deposit, proposer_bond_pct, realized_lp_fee_pct)
        decision = should_relay(
            deposit, relayable_deposit.status, has_instant_relayer, available_balance, requirement
        )

        transaction = self._generate_relay_transaction(
            decision, realized_lp_fee_pct, relayable_deposit, pending_relay, report
        )
        if transaction is None:
            return None, 0
        return transaction, required_capital(decision.action, requirement)

    def _generate_relay_transaction(
        self,
        decision: RelayDecision,
        realized_lp_fee_pct: int,
        relayable_deposit: RelayableDeposit,
        pending_relay: Relay | None,
        report: SweepReport,
    ) -> PreparedTransaction | None:
        deposit = relayable_deposit.deposit
        bridge_pool = self.l1_client.get_bridge_pool_contract(deposit.l1_token)

        match decision.action:
            case RelaySubmitType.IGNORE:
                logger.debug(
                    f"Not relaying potentially unprofitable deposit, or insufficient balance 😖 "
                    f"{deposit} realizedLpFeePct={realized_lp_fee_pct} state={relayable_deposit.status.name}"
                )
                report.skipped.append(SweepAction("unprofitable", deposit.deposit_hash, deposit.l1_token))
                return None

            case RelaySubmitType.SLOW:
                logger.debug(f"Slow relaying deposit {deposit}")
                data = bridge_pool.encode_abi("relayDeposit", args=[deposit.to_deposit_data(), realized_lp_fee_pct])
                description = "Slow Relay executed 🐌"

            case RelaySubmitType.SPEED_UP:
                logger.debug(f"Speeding up existing relayed deposit {deposit}")
                if pending_relay is None:
                    logger.error(f"speedUpRelay: no pending relay for {deposit}")
                    report.errors.append(f"{deposit.deposit_hash}: speed up chosen without a pending relay")
                    return None
                data = bridge_pool.encode_abi(
                    "speedUpRelay", args=[deposit.to_deposit_data(), pending_relay.to_relay_data()]
                )
                description = "Slow relay sped up 🏇"

            case RelaySubmitType.INSTANT:
                logger.debug(f"Instant relaying deposit {deposit}")
                data = bridge_pool.encode_abi("relayAndSpeedUp", args=[deposit.to_deposit_data(), realized_lp_fee_pct])
                description = "Relay instantly sent 🚀"

        details = self._generate_detail_for_relay(deposit, realized_lp_fee_pct)
        report.actions.append(
            SweepAction(decision.action.value, deposit.deposit_hash, deposit.l1_token, details, decision.profit)
        )
        return PreparedTransaction(target=bridge_pool.address, data=data, description=description, details=details)

    def _get_relayable_deposits(self) -> dict[str, list[RelayableDeposit]]:
        """Build a fresh map of non-finalized deposits keyed by L1 token."""
        relayable_deposits: dict[str, list[RelayableDeposit]] = {}
        for l1_token in self.whitelisted_l1_tokens:
            logger.debug(f"Checking relays for token {l1_token}")
            for deposit in self.l2_client.get_all_deposits_for_l1_token(l1_token):
                status = self.l1_client.get_deposit_relay_state(deposit)
                if status != ClientRelayState.FINALIZED:
                    relayable_deposits.setdefault(l1_token, []).append(RelayableDeposit(status, deposit))
        return relayable_deposits

    # Disputer

    async def check_for_pending_relays_and_dispute(self) -> SweepReport:
        """
        Dispute every pending relay that is invalid and not yet expired.

        Raises:
            BatchTargetMismatchError: If a batch mixes bridge pools
        """
        logger.debug("Checking for pending relays and disputing")
        report = SweepReport(sweep="dispute")

        pending_relays = self.l1_client.get_pending_relayed_deposits()
        if not pending_relays:
            logger.debug("No pending relays")
            return report
        logger.debug(f"Processing {len(pending_relays)} pending relays")

        disputes: dict[str, list[PreparedTransaction]] = {}
        for relay in pending_relays:
            try:
                transaction = await self._dispute_pending_relay(relay, report)
            except Exception as e:
                logger.error(f"Unexpected error processing relay {relay.deposit_hash}: {e}", exc_info=True)
                report.errors.append(f"{relay.deposit_hash}: {e}")
                continue
            if transaction is not None:
                disputes.setdefault(relay.l1_token, []).append(transaction)

        for transactions in disputes.values():
            report.batches.append(await self.transaction_batcher.process_transaction_batch(transactions))

        logger.info(f"Dispute sweep finished: {report.to_dict()}")
        return report

    async def _dispute_pending_relay(self, relay: Relay, report: SweepReport) -> PreparedTransaction | None:
        verdict = await self.dispute_evaluator.evaluate(relay)

        if verdict.expired:
            logger.debug(f"Pending relay {relay.deposit_hash} has expired, ignoring: {verdict.reason}")
            report.skipped.append(SweepAction("expired_relay", relay.deposit_hash, relay.l1_token, verdict.reason))
            return None

        if not verdict.disputable:
            logger.debug(f"Skipping relay {relay.deposit_hash}; {verdict.reason}")
            report.skipped.append(SweepAction("not_disputable", relay.deposit_hash, relay.l1_token, verdict.reason))
            return None

        deposit = verdict.deposit
        if deposit is None:
            # Nothing on L2 backs the relay, so dispute the deposit it claims.
            deposit = relay.to_deposit(deposit_contract=await self.l1_client.get_deposit_contract(relay.chain_id))

        logger.debug(f"Disputing pending relay {relay.deposit_hash}: {verdict.reason}")
        bridge_pool = self.l1_client.get_bridge_pool_contract(relay.l1_token)
        report.actions.append(SweepAction("dispute", relay.deposit_hash, relay.l1_token, verdict.reason))
        return PreparedTransaction(
            target=bridge_pool.address,
            data=bridge_pool.encode_abi("disputeRelay", args=[deposit.to_deposit_data(), relay.to_relay_data()]),
            description="Disputed pending relay. Relay was deleted. 🚓",
            details=f"Disputed relay of deposit ID {relay.deposit_id} on chain {relay.chain_id}: {verdict.reason}",
        )

    # Finalizer

    async def check_for_settleable_relays_and_settle(self) -> SweepReport:
        """
        Settle every relay this account may settle, token by token.

        A relay is settleable by this account when the account is its slow
        relayer inside the exclusivity window, or by anyone once the window
        has passed.

        Raises:
            BatchTargetMismatchError: If a batch mixes bridge pools
        """
        logger.debug("Checking for settleable relays and settling")
        report = SweepReport(sweep="settle")

        for l1_token in self.whitelisted_l1_tokens:
            logger.debug(f"Checking settleable relays for token {l1_token}")
            settleable_relays = [
                relay
                for relay in self.l1_client.get_settleable_relayed_deposits_for_l1_token(l1_token)
                if self._can_settle(relay)
            ]
            if not settleable_relays:
                logger.debug(f"No settleable relays for token {l1_token}")
                continue

            settle_transactions: list[PreparedTransaction | None] = []
            for relay in settleable_relays:
                try:
                    settle_transactions.append(self._generate_settle_transaction(relay))
                except Exception as e:
                    logger.error(f"Unexpected error processing relay {relay.deposit_hash}: {e}", exc_info=True)
                    report.errors.append(f"{relay.deposit_hash}: {e}")
                    continue
                report.actions.append(SweepAction("settle", relay.deposit_hash, l1_token))

            if settle_transactions:
                report.batches.append(await self.transaction_batcher.process_transaction_batch(settle_transactions))

        logger.info(f"Settlement sweep finished: {report.to_dict()}")
        return report

    def _can_settle(self, relay: Relay) -> bool:
        match relay.settleable:
            case SettleableRelay.SLOW_RELAYER_CAN_SETTLE:
                return relay.slow_relayer.lower() == self.account.lower()
            case SettleableRelay.ANYONE_CAN_SETTLE:
                return True
            case _:
                return False

    def _generate_settle_transaction(self, relay: Relay) -> PreparedTransaction:
        deposit = relay.to_deposit()
        bridge_pool = self.l1_client.get_bridge_pool_contract(relay.l1_token)
        return PreparedTransaction(
            target=bridge_pool.address,
            data=bridge_pool.encode_abi("settleRelay", args=[deposit.to_deposit_data(), relay.to_relay_data()]),
            description="Relay settled 💸",
            details=self._generate_detail_for_settle(deposit, relay),
        )

    # Details

    def _generate_detail_for_relay(self, deposit: Deposit, realized_lp_fee_pct: int) -> str:
        decimals, symbol = self.l1_client.get_collateral_info(deposit.l1_token)
        return (
            f"Relayed deposit ID {deposit.deposit_id} of size {format_units(deposit.amount, decimals)} {symbol} "
            f"from {deposit.l2_sender} to {deposit.l1_recipient}. "
            f"slowRelayFeePct: {format_pct(deposit.slow_relay_fee_pct)}, "
            f"instantRelayFeePct: {format_pct(deposit.instant_relay_fee_pct)}, "
            f"realizedLpFeePct: {format_pct(realized_lp_fee_pct)}."
        )

    def _generate_detail_for_settle(self, deposit: Deposit, relay: Relay) -> str:
        decimals, symbol = self.l1_client.get_collateral_info(deposit.l1_token)
        instant_relayer = self.l1_client.get_instant_relayer(
            deposit.l1_token, deposit.deposit_hash, relay.realized_lp_fee_pct
        )
        return (
            f"Settled deposit ID {deposit.deposit_id} of size {format_units(deposit.amount, decimals)} {symbol} "
            f"from {deposit.l2_sender} to {deposit.l1_recipient}. "
            f"slowRelayer: {relay.slow_relayer} instantRelayer: {instant_relayer or 'none'}."
        )
