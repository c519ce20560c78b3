"""Configuration management for the insured bridge relayer.

This module provides type-safe configuration dataclasses with validation.
Configuration is loaded from environment variables with sensible defaults
where appropriate.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

from web3 import Web3

from .lp_fee_calculator import RateModel
from .models import DeploymentInfo

logger = logging.getLogger(__name__)

DEFAULT_WHITELISTED_CHAIN_IDS = "10,288,42161"


def _validate_rpc_url(rpc_url: str, env_name: str) -> None:
    if not rpc_url:
        raise ValueError(f"RPC URL is required ({env_name})")

    parsed = urlparse(rpc_url)
    if parsed.scheme not in ("http", "https", "ws", "wss"):
        raise ValueError(
            f"Invalid RPC URL scheme for {env_name}: {parsed.scheme}. "
            "Expected http, https, ws, or wss"
        )


def _checksum(address: str, name: str) -> str:
    if not address:
        raise ValueError(f"{name} is required")
    if not Web3.is_address(address):
        raise ValueError(f"Invalid {name}: {address}")
    return Web3.to_checksum_address(address)


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    match raw.strip().lower():
        case "1" | "true" | "yes" | "on":
            return True
        case "0" | "false" | "no" | "off":
            return False
        case _:
            raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _env_json(name: str) -> dict[str, Any]:
    raw = os.environ.get(name, "")
    if not raw:
        raise ValueError(f"{name} environment variable is required")
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"{name} is not valid JSON: {e}") from None
    if not isinstance(value, dict):
        raise ValueError(f"{name} must be a JSON object keyed by L1 token address")
    return value


@dataclass(frozen=True, slots=True)
class L1Config:
    """Configuration for the L1 chain holding the bridge pools.

    Attributes:
        rpc_url: RPC endpoint for L1
        bridge_admin_address: Checksummed BridgeAdmin address
        block_range: Maximum number of blocks per get_logs request
        min_gas_price_gwei: Floor applied to gas price estimates
    """

    rpc_url: str
    bridge_admin_address: str
    block_range: int = 20000
    min_gas_price_gwei: int = 1

    def __post_init__(self) -> None:
        """Validate L1 configuration."""
        _validate_rpc_url(self.rpc_url, "L1_RPC_URL")
        object.__setattr__(
            self, "bridge_admin_address", _checksum(self.bridge_admin_address, "bridge admin address (BRIDGE_ADMIN_ADDRESS)")
        )
        if self.block_range <= 0:
            raise ValueError(f"L1 block range must be positive, got {self.block_range}")
        if self.min_gas_price_gwei < 0:
            raise ValueError(f"Minimum gas price must be non-negative, got {self.min_gas_price_gwei}")


@dataclass(frozen=True, slots=True)
class L2Config:
    """Configuration for the L2 chain holding the deposit box.

    Attributes:
        rpc_url: RPC endpoint for L2
        deposit_box_address: Checksummed BridgeDepositBox address
        lookback_window: Blocks cached by the L2 client and scanned per matcher window
        deploy_block: Deposit box deployment block, used to start deposit searches
    """

    rpc_url: str
    deposit_box_address: str
    lookback_window: int = 10000
    deploy_block: int | None = None

    def __post_init__(self) -> None:
        """Validate L2 configuration."""
        _validate_rpc_url(self.rpc_url, "L2_RPC_URL")
        object.__setattr__(
            self,
            "deposit_box_address",
            _checksum(self.deposit_box_address, "deposit box address (BRIDGE_DEPOSIT_BOX_ADDRESS)"),
        )
        if self.lookback_window <= 0:
            raise ValueError(f"L2 lookback window must be positive, got {self.lookback_window}")
        if self.deploy_block is not None and self.deploy_block < 0:
            raise ValueError(f"L2 deploy block must be non-negative, got {self.deploy_block}")


@dataclass(frozen=True, slots=True)
class TokenConfig:
    """Whitelisted tokens and chains, with per-token pool parameters."""

    whitelisted_l1_tokens: list[str]
    whitelisted_chain_ids: list[int]
    deploy_timestamps: dict[str, DeploymentInfo] = field(default_factory=dict)
    rate_models: dict[str, RateModel] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate token configuration."""
        if not self.whitelisted_l1_tokens:
            raise ValueError("At least one L1 token must be whitelisted (WHITELISTED_L1_TOKENS)")
        if not self.whitelisted_chain_ids:
            raise ValueError("At least one chain ID must be whitelisted (WHITELISTED_CHAIN_IDS)")

        tokens = [_checksum(token, "whitelisted L1 token") for token in self.whitelisted_l1_tokens]
        deploy_timestamps = {_checksum(k, "DEPLOY_TIMESTAMPS key"): v for k, v in self.deploy_timestamps.items()}
        rate_models = {_checksum(k, "RATE_MODELS key"): v for k, v in self.rate_models.items()}

        for token in tokens:
            if token not in deploy_timestamps:
                raise ValueError(f"DEPLOY_TIMESTAMPS has no entry for whitelisted L1 token {token}")
            if token not in rate_models:
                raise ValueError(f"RATE_MODELS has no entry for whitelisted L1 token {token}")

        object.__setattr__(self, "whitelisted_l1_tokens", tokens)
        object.__setattr__(self, "deploy_timestamps", deploy_timestamps)
        object.__setattr__(self, "rate_models", rate_models)


@dataclass(frozen=True, slots=True)
class MonitoringConfig:
    """Configuration for the run loop and transaction confirmation."""
    polling_interval: int = 60  # seconds between runs
    tx_receipt_timeout: int = 120  # seconds to wait for a receipt in local mode

    def __post_init__(self) -> None:
        """Validate monitoring configuration."""
        if self.polling_interval <= 0:
            raise ValueError(f"Polling interval must be positive, got {self.polling_interval}")
        if self.polling_interval > 3600:
            raise ValueError(f"Polling interval too long (max 3600s), got {self.polling_interval}")
        if self.tx_receipt_timeout <= 0:
            raise ValueError(f"Transaction receipt timeout must be positive, got {self.tx_receipt_timeout}")


@dataclass(frozen=True, slots=True)
class SweepConfig:
    """Which sweeps run on each iteration."""
    relayer_enabled: bool = True
    disputer_enabled: bool = True
    finalizer_enabled: bool = True


@dataclass(frozen=True, slots=True)
class RelayerConfig:
    """Main configuration for the insured bridge relayer.

    Attributes:
        l1: Configuration for L1
        l2: Configuration for L2
        tokens: Whitelisted tokens and chains
        monitoring: Run loop settings
        sweeps: Enabled sweeps
        local_mode: Whether running in local mode (signing with private_key)
        private_key: Private key for local mode
        rofl_appd_url: ROFL daemon socket path or URL for production mode
    """

    l1: L1Config
    l2: L2Config
    tokens: TokenConfig
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    sweeps: SweepConfig = field(default_factory=SweepConfig)
    local_mode: bool = False
    private_key: str | None = None
    rofl_appd_url: str = ""

    def __post_init__(self) -> None:
        """Validate relayer configuration."""
        if self.local_mode and not self.private_key:
            raise ValueError("Local mode requires PRIVATE_KEY environment variable")

        if self.private_key:
            key = self.private_key.removeprefix("0x")
            if len(key) != 64:
                raise ValueError(f"Invalid private key length. Expected 64 hex characters, got {len(key)}")
            try:
                int(key, 16)
            except ValueError:
                raise ValueError("Invalid private key format. Must be hexadecimal") from None

    @classmethod
    def from_env(cls, local_mode: bool = False) -> "RelayerConfig":
        """Load configuration from environment variables.

        Args:
            local_mode: Whether to run in local mode (for testing)

        Returns:
            RelayerConfig instance with loaded values

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        l1_config = L1Config(
            rpc_url=os.environ.get("L1_RPC_URL", ""),
            bridge_admin_address=os.environ.get("BRIDGE_ADMIN_ADDRESS", ""),
            block_range=_env_int("L1_BLOCK_RANGE", 20000),
            min_gas_price_gwei=_env_int("MIN_GAS_PRICE_GWEI", 1),
        )

        l2_config = L2Config(
            rpc_url=os.environ.get("L2_RPC_URL", ""),
            deposit_box_address=os.environ.get("BRIDGE_DEPOSIT_BOX_ADDRESS", ""),
            lookback_window=_env_int("L2_LOOKBACK_WINDOW", 10000),
            deploy_block=_env_int("L2_DEPLOY_BLOCK", None),
        )

        tokens = [token.strip() for token in os.environ.get("WHITELISTED_L1_TOKENS", "").split(",") if token.strip()]
        try:
            chain_ids = [
                int(chain_id)
                for chain_id in os.environ.get("WHITELISTED_CHAIN_IDS", DEFAULT_WHITELISTED_CHAIN_IDS).split(",")
                if chain_id.strip()
            ]
        except ValueError:
            raise ValueError("WHITELISTED_CHAIN_IDS must be a comma separated list of integers") from None

        try:
            deploy_timestamps = {
                token: DeploymentInfo(timestamp=int(info["timestamp"]), block_number=int(info["blockNumber"]))
                for token, info in _env_json("DEPLOY_TIMESTAMPS").items()
            }
        except (KeyError, TypeError) as e:
            raise ValueError(
                f'DEPLOY_TIMESTAMPS entries must look like {{"timestamp": int, "blockNumber": int}}: {e}'
            ) from None

        rate_models = {token: RateModel.from_dict(model) for token, model in _env_json("RATE_MODELS").items()}

        token_config = TokenConfig(
            whitelisted_l1_tokens=tokens,
            whitelisted_chain_ids=chain_ids,
            deploy_timestamps=deploy_timestamps,
            rate_models=rate_models,
        )

        monitoring_config = MonitoringConfig(
            polling_interval=_env_int("POLLING_INTERVAL", 60),
            tx_receipt_timeout=_env_int("TX_RECEIPT_TIMEOUT", 120),
        )

        sweep_config = SweepConfig(
            relayer_enabled=_env_bool("RELAYER_ENABLED", True),
            disputer_enabled=_env_bool("DISPUTER_ENABLED", True),
            finalizer_enabled=_env_bool("FINALIZER_ENABLED", True),
        )

        return cls(
            l1=l1_config,
            l2=l2_config,
            tokens=token_config,
            monitoring=monitoring_config,
            sweeps=sweep_config,
            local_mode=local_mode,
            private_key=os.environ.get("PRIVATE_KEY") if local_mode else None,
            rofl_appd_url=os.environ.get("ROFL_APPD_URL", ""),
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format for debugging."""
        logger.info("=" * 60)
        logger.info("Insured Bridge Relayer Configuration")
        logger.info("=" * 60)

        logger.info("L1:")
        logger.info(f"  RPC URL: {self.l1.rpc_url}")
        logger.info(f"  Bridge Admin: {self.l1.bridge_admin_address}")
        logger.info(f"  Block Range: {self.l1.block_range}")
        logger.info(f"  Min Gas Price: {self.l1.min_gas_price_gwei} gwei")

        logger.info("L2:")
        logger.info(f"  RPC URL: {self.l2.rpc_url}")
        logger.info(f"  Deposit Box: {self.l2.deposit_box_address}")
        logger.info(f"  Lookback Window: {self.l2.lookback_window} blocks")
        if self.l2.deploy_block is not None:
            logger.info(f"  Deploy Block: {self.l2.deploy_block}")

        logger.info("Tokens:")
        for token in self.tokens.whitelisted_l1_tokens:
            deployment = self.tokens.deploy_timestamps[token]
            logger.info(f"  {token} (deployed at {deployment.timestamp}, block {deployment.block_number})")
        logger.info(f"  Whitelisted Chain IDs: {', '.join(map(str, self.tokens.whitelisted_chain_ids))}")

        logger.info("Sweeps:")
        logger.info(f"  Relayer: {'enabled' if self.sweeps.relayer_enabled else 'disabled'}")
        logger.info(f"  Disputer: {'enabled' if self.sweeps.disputer_enabled else 'disabled'}")
        logger.info(f"  Finalizer: {'enabled' if self.sweeps.finalizer_enabled else 'disabled'}")
        logger.info(f"  Polling Interval: {self.monitoring.polling_interval} seconds")

        logger.info(f"Mode: {'LOCAL' if self.local_mode else 'PRODUCTION'}")
        if self.local_mode:
            logger.info("  Private Key: [CONFIGURED]")
        else:
            logger.info(f"  ROFL Daemon: {self.rofl_appd_url or 'default socket'}")

        logger.info("=" * 60)
