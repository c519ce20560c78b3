"""
Batch processing of prepared transactions.

Calls to the same bridge pool are sent as a single multicall. If the batch
fails, every call is retried on its own so one bad call cannot block the rest.
"""

import logging
from collections.abc import Iterable, Sequence

from eth_abi import encode
from web3 import Web3

from .models import BatchResult, PreparedTransaction, TransactionResult
from .transaction_submitter import TransactionSubmitter

logger = logging.getLogger(__name__)

MULTICALL_SELECTOR: bytes = Web3.keccak(text="multicall(bytes[])")[:4]


class BatchTargetMismatchError(ValueError):
    """Raised when a batch mixes transactions for different contracts."""


def encode_multicall(calls: Sequence[str]) -> str:
    """ABI encode a ``multicall(bytes[])`` call wrapping ``calls``."""
    payload = encode(["bytes[]"], [[Web3.to_bytes(hexstr=call) for call in calls]])
    return Web3.to_hex(MULTICALL_SELECTOR + payload)


class TransactionBatcher:
    """Sends prepared transactions, batching them when possible."""

    def __init__(self, submitter: TransactionSubmitter) -> None:
        self.submitter = submitter

    async def process_transaction_batch(
        self, transactions: Iterable[PreparedTransaction | None]
    ) -> BatchResult:
        """
        Send a group of transactions.

        Empty entries are dropped. A single transaction is sent directly;
        several are sent as one multicall to their shared target, falling back
        to sending each individually when the multicall fails.

        Args:
            transactions: Prepared calls, possibly containing None entries

        Returns:
            Outcome of the batch and of any individual sends

        Raises:
            BatchTargetMismatchError: If the calls do not share one target contract
        """
        pending = [tx for tx in transactions if tx is not None and tx.data]

        if not pending:
            return BatchResult()

        if len(pending) == 1:
            logger.debug("Sending transaction")
            return BatchResult(results=[await self.submitter.submit(pending[0])])

        target = pending[0].target
        if any(tx.target.lower() != target.lower() for tx in pending):
            targets = sorted({tx.target for tx in pending})
            raise BatchTargetMismatchError(
                f"Batch transaction processing error! Can't specify multiple `to` fields within batch: {targets}"
            )

        details = "Transactions sent in batch:\n" + "\n".join(
            f"  • {tx.description}: {tx.details}" for tx in pending
        )
        batch_transaction = PreparedTransaction(
            target=target,
            data=encode_multicall([tx.data for tx in pending]),
            description=f"Multicall transaction batch of {len(pending)} sent",
            details=details,
        )

        batch_result = await self.submitter.submit(batch_transaction)
        if batch_result.success:
            return BatchResult(batched=True, batch_succeeded=True, results=[batch_result])

        logger.info(f"Batch of {len(pending)} transactions failed, sending batched transactions individually😷")
        result = BatchResult(batched=True, batch_succeeded=False)
        for tx in pending:
            try:
                result.results.append(await self.submitter.submit(tx))
            except Exception as e:
                logger.error(f"Unexpected error sending '{tx.description}': {e}", exc_info=True)
                result.results.append(TransactionResult(tx.description, False, error=str(e)))

        logger.info(
            f"Sent {len(pending)} transactions individually: "
            f"{len(result.succeeded)} succeeded, {len(result.failed)} failed"
        )
        return result
