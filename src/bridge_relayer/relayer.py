"""
Insured bridge relayer service.

This module wires the L1 and L2 clients, transaction submission and the sweep
orchestrator together, and runs the sweeps on a fixed polling interval.
"""

import asyncio
import logging

from eth_account import Account

from .clients.l1_client import InsuredBridgeL1Client
from .clients.l2_client import InsuredBridgeL2Client
from .config import RelayerConfig
from .gas_estimator import GasEstimator
from .lp_fee_calculator import LpFeeCalculator
from .models import SweepReport
from .orchestrator import RelayerOrchestrator
from .transaction_batcher import TransactionBatcher
from .transaction_submitter import TransactionSubmitter
from .utils.block_finder import BlockFinder
from .utils.contract_utility import ContractUtility
from .utils.rofl_utility import RoflUtility

logger = logging.getLogger(__name__)


class InsuredBridgeRelayer:
    """
    Main relayer service.

    This class focuses on wiring and lifecycle management, delegating the
    relay, dispute and settlement logic to the RelayerOrchestrator.
    """

    def __init__(self, config: RelayerConfig) -> None:
        """
        Initialize the relayer.

        Args:
            config: Relayer configuration
        """
        self.config = config
        self.local_mode = config.local_mode
        self.running = False

        self.l1_util = ContractUtility(
            rpc_url=config.l1.rpc_url,
            secret=config.private_key if self.local_mode and config.private_key else "",
        )
        self.l2_util = ContractUtility(rpc_url=config.l2.rpc_url)
        self.rofl_util: RoflUtility | None = None if self.local_mode else RoflUtility(config.rofl_appd_url)

        self.account: str | None = None
        self.l1_client: InsuredBridgeL1Client | None = None
        self.l2_client: InsuredBridgeL2Client | None = None
        self.orchestrator: RelayerOrchestrator | None = None

        self.shutdown_event = asyncio.Event()

    @classmethod
    def from_env(cls, local_mode: bool = False) -> "InsuredBridgeRelayer":
        """
        Create a relayer from environment variables.

        Raises:
            ValueError: If required environment variables are missing
        """
        config = RelayerConfig.from_env(local_mode=local_mode)
        config.log_config()
        return cls(config)

    async def _resolve_account(self) -> str:
        match self.rofl_util:
            case None:
                if self.l1_util.account_address is None:
                    raise RuntimeError("Local mode requires a signing key")
                return self.l1_util.account_address
            case rofl_util:
                return Account.from_key(await rofl_util.fetch_key()).address

    async def initialize(self) -> None:
        """Resolve the relayer account and build the clients and orchestrator."""
        self.account = await self._resolve_account()
        l2_chain_id = self.l2_util.w3.eth.chain_id
        logger.info(f"Relayer account {self.account} on L2 chain {l2_chain_id}")

        self.l2_client = InsuredBridgeL2Client(
            w3=self.l2_util.w3,
            deposit_box=self.l2_util.get_contract(self.config.l2.deposit_box_address, "BridgeDepositBox"),
            chain_id=l2_chain_id,
            lookback_window=self.config.l2.lookback_window,
            max_block_range=self.config.l2.lookback_window,
        )
        self.l1_client = InsuredBridgeL1Client(
            contract_util=self.l1_util,
            bridge_admin_address=self.config.l1.bridge_admin_address,
            whitelisted_l1_tokens=self.config.tokens.whitelisted_l1_tokens,
            l2_chain_id=l2_chain_id,
            deploy_timestamps=self.config.tokens.deploy_timestamps,
            lp_fee_calculator=LpFeeCalculator(self.config.tokens.rate_models, BlockFinder(self.l1_util.w3)),
            max_block_range=self.config.l1.block_range,
        )

        submitter = TransactionSubmitter(
            w3=self.l1_util.w3,
            gas_estimator=GasEstimator(self.l1_util.w3, self.config.l1.min_gas_price_gwei),
            account=self.account,
            rofl_util=self.rofl_util,
            receipt_timeout=self.config.monitoring.tx_receipt_timeout,
        )
        self.orchestrator = RelayerOrchestrator(
            l1_client=self.l1_client,
            l2_client=self.l2_client,
            transaction_batcher=TransactionBatcher(submitter),
            account=self.account,
            whitelisted_l1_tokens=self.config.tokens.whitelisted_l1_tokens,
            whitelisted_chain_ids=self.config.tokens.whitelisted_chain_ids,
            deploy_timestamps=self.config.tokens.deploy_timestamps,
            l2_lookback_window=self.config.l2.lookback_window,
            l2_deploy_block=self.config.l2.deploy_block,
        )
        logger.info(f"Initialized relayer in {'local' if self.local_mode else 'ROFL'} mode")

    async def run_once(self) -> list[SweepReport]:
        """
        Refresh both clients and run every enabled sweep once.

        A client update failure skips the run. A sweep that raises is logged
        and the remaining sweeps still run.

        Returns:
            Reports of the sweeps that completed
        """
        if self.orchestrator is None or self.l1_client is None or self.l2_client is None:
            raise RuntimeError("Relayer not initialized, call initialize() first")

        try:
            await self.l1_client.update()
            await self.l2_client.update()
        except Exception as e:
            logger.error(f"Failed to update clients, skipping this run: {e}", exc_info=True)
            return []
        logger.debug(f"Bridge pool status: {self.l1_client.get_status()}")

        sweeps = [
            (self.config.sweeps.relayer_enabled, "Relayer", self.orchestrator.check_for_pending_deposits_and_relay),
            (self.config.sweeps.disputer_enabled, "Disputer", self.orchestrator.check_for_pending_relays_and_dispute),
            (self.config.sweeps.finalizer_enabled, "Finalizer", self.orchestrator.check_for_settleable_relays_and_settle),
        ]

        reports: list[SweepReport] = []
        for enabled, name, sweep in sweeps:
            if not enabled:
                continue
            try:
                reports.append(await sweep())
            except Exception as e:
                logger.error(f"{name} sweep failed: {e}", exc_info=True)
        return reports

    async def run(self) -> None:
        """Main loop: run the sweeps every polling interval until stopped."""
        self.running = True
        logger.info("Insured Bridge Relayer starting...")
        logger.info(f"Polling interval: {self.config.monitoring.polling_interval}s")

        try:
            if self.orchestrator is None:
                await self.initialize()

            while self.running:
                await self.run_once()
                try:
                    await asyncio.wait_for(
                        self.shutdown_event.wait(), timeout=self.config.monitoring.polling_interval
                    )
                    break  # Shutdown requested
                except asyncio.TimeoutError:
                    pass

        except Exception as e:
            logger.error(f"Error in main loop: {e}", exc_info=True)
            raise
        finally:
            self.running = False
            logger.info("Insured Bridge Relayer stopped")

    def stop(self) -> None:
        """Stop the relayer service."""
        self.running = False
        self.shutdown_event.set()
