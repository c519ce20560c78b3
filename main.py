#!/usr/bin/env python3
"""Entry point for the insured bridge relayer.

Runs the relayer, disputer and finalizer sweeps either in production mode
(signing through ROFL) or in local testing mode with a private key.
"""

import argparse
import asyncio
import logging
import os
import sys

from bridge_relayer.relayer import InsuredBridgeRelayer


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


logger = logging.getLogger(__name__)


async def main() -> None:
    """Parse arguments, load configuration and run the relayer until stopped."""
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Insured Bridge Relayer - relay, dispute and settle L2 to L1 deposits",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  L1_RPC_URL                 - RPC endpoint for L1
  L2_RPC_URL                 - RPC endpoint for L2
  BRIDGE_ADMIN_ADDRESS       - BridgeAdmin contract on L1
  BRIDGE_DEPOSIT_BOX_ADDRESS - BridgeDepositBox contract on L2
  WHITELISTED_L1_TOKENS      - Comma separated L1 token addresses
  DEPLOY_TIMESTAMPS          - JSON {l1Token: {"timestamp", "blockNumber"}}
  RATE_MODELS                - JSON {l1Token: {"UBar", "R0", "R1", "R2"}}
  PRIVATE_KEY                - Private key for local mode (required with --local)
  LOG_LEVEL                  - Logging level (can be overridden with --log-level)
        """
    )
    parser.add_argument(
        "--local",
        action="store_true",
        default=False,
        help="Run in local mode without ROFL utilities (for testing)"
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )
    args: argparse.Namespace = parser.parse_args()

    setup_logging(args.log_level)
    logger.info(f"=== Insured Bridge Relayer starting in {'LOCAL' if args.local else 'ROFL'} mode ===")

    relayer: InsuredBridgeRelayer | None = None
    try:
        relayer = InsuredBridgeRelayer.from_env(local_mode=args.local)
        await relayer.run()

    except ValueError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please check your environment variables:")
        logger.error("  - L1_RPC_URL / L2_RPC_URL: RPC endpoints")
        logger.error("  - BRIDGE_ADMIN_ADDRESS / BRIDGE_DEPOSIT_BOX_ADDRESS: Bridge contracts")
        logger.error("  - WHITELISTED_L1_TOKENS: Tokens to relay")
        logger.error("  - DEPLOY_TIMESTAMPS / RATE_MODELS: Per-token pool parameters")
        if args.local:
            logger.error("  - PRIVATE_KEY: Required for local mode")
        sys.exit(1)

    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down gracefully...")
        if relayer is not None:
            relayer.stop()

    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
