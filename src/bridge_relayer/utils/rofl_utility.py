import logging
from typing import Any

import cbor2
import httpx
from web3.types import TxParams

logger = logging.getLogger(__name__)


class RoflTransactionError(Exception):
    """Raised when the ROFL daemon reports a failed transaction."""


class RoflUtility:
    """Client for the ROFL application daemon.

    The relayer's signing key lives inside the ROFL runtime: the daemon hands
    out the account key and signs and submits L1 transactions on our behalf.
    """

    ROFL_SOCKET_PATH: str = "/run/rofl-appd.sock"
    KEY_ID: str = "insured-bridge-relayer"

    def __init__(self, url: str = "", timeout: float = 30.0) -> None:
        """Initialize ROFL utility.

        Args:
            url: Daemon socket path or http(s) URL (defaults to the standard socket)
            timeout: Seconds to wait for each daemon request
        """
        self.url: str = url
        self.timeout = timeout

    def _transport(self) -> httpx.AsyncHTTPTransport | None:
        if self.url.startswith("http"):
            return None
        socket_path = self.url or self.ROFL_SOCKET_PATH
        logger.debug(f"Using unix domain socket: {socket_path}")
        return httpx.AsyncHTTPTransport(uds=socket_path)

    async def _appd_post(self, path: str, payload: Any) -> Any:
        """Post a JSON request to the daemon and return the decoded JSON response.

        Raises:
            httpx.HTTPStatusError: If the request fails
        """
        base_url: str = self.url if self.url.startswith("http") else "http://localhost"
        async with httpx.AsyncClient(transport=self._transport()) as client:
            logger.debug(f"Posting to {base_url + path}")
            response: httpx.Response = await client.post(base_url + path, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return response.json()

    async def fetch_key(self, key_id: str = KEY_ID) -> str:
        """Fetch (generating on first use) the secp256k1 key identified by ``key_id``."""
        response: dict[str, Any] = await self._appd_post(
            "/rofl/v1/keys/generate", {"key_id": key_id, "kind": "secp256k1"}
        )
        return response["key"]

    @staticmethod
    def decode_cbor_response(response_hex: str) -> dict[str, Any]:
        """Decode the hex-encoded CBOR body of a sign-submit response."""
        try:
            decoded: Any = cbor2.loads(bytes.fromhex(response_hex.removeprefix("0x")))
        except (ValueError, cbor2.CBORDecodeError) as decode_error:
            logger.error(f"CBOR decode error: {decode_error}")
            return {"error": "decode_failed", "raw": response_hex}
        return decoded if isinstance(decoded, dict) else {"data": decoded}

    async def submit_tx(self, tx: TxParams) -> bool:
        """
        Have the daemon sign and submit an L1 transaction.

        Args:
            tx: Transaction parameters with ``to``, ``data``, ``gas`` and ``value``

        Returns:
            True once the daemon accepted the transaction

        Raises:
            RoflTransactionError: If the daemon reports a failure
            httpx.HTTPStatusError: If the request fails
        """
        payload: dict[str, Any] = {
            "tx": {
                "kind": "eth",
                "data": {
                    "gas_limit": tx["gas"],
                    "to": str(tx["to"]).removeprefix("0x"),
                    "value": tx.get("value", 0),
                    "data": str(tx["data"]).removeprefix("0x"),
                },
            },
            "encrypt": False,
        }

        response: dict[str, Any] = await self._appd_post("/rofl/v1/tx/sign-submit", payload)
        decoded_response = self.decode_cbor_response(response["data"])

        match decoded_response:
            case {"ok": _}:
                logger.debug("ROFL accepted transaction")
                return True
            case {"error": error_msg}:
                raise RoflTransactionError(f"ROFL transaction failed: {error_msg}")
            case _:
                # The daemon only reports errors explicitly; anything else was submitted.
                logger.warning(f"Unknown ROFL response format: {decoded_response}")
                return True
