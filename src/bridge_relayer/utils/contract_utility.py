import json
from functools import cache
from pathlib import Path
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import LegacyWebSocketProvider, Web3
from web3.contract import Contract
from web3.middleware import SignAndSendRawMiddlewareBuilder

CONTRACTS_DIR: Path = Path(__file__).resolve().parent.parent / "contracts"


@cache
def load_contract_abi(contract_name: str) -> list[dict[str, Any]]:
    """Load and cache the ABI shipped with the package for ``contract_name``.

    Raises:
        FileNotFoundError: If the contract file doesn't exist
        json.JSONDecodeError: If the contract file is invalid JSON
    """
    contract_path: Path = CONTRACTS_DIR / f"{contract_name}.json"

    with contract_path.open() as file:
        contract_data: dict[str, Any] = json.load(file)

    return contract_data["abi"]


class ContractUtility:
    """
    Web3 connection and contract factory for one chain.

    Can be used in two modes:
    1. Signing mode: Initialize with RPC URL and private key to send transactions locally
    2. Read-only mode: Initialize with RPC URL only (reads, or unsigned transactions for ROFL)
    """

    def __init__(self, rpc_url: str, secret: str = "") -> None:
        """
        Initialize the ContractUtility.

        Args:
            rpc_url: RPC URL for the network (required)
            secret: Private key for signing transactions (optional - if not provided, read-only mode)
        """
        if not rpc_url:
            raise ValueError("RPC URL is required")

        self.rpc_url = rpc_url
        provider = (
            LegacyWebSocketProvider(rpc_url)
            if rpc_url.startswith(("ws://", "wss://"))
            else Web3.HTTPProvider(rpc_url)
        )
        self.w3 = Web3(provider)
        self.account_address: str | None = None

        if secret:
            self._add_signing_middleware(secret)

    def _add_signing_middleware(self, secret: str) -> None:
        account: LocalAccount = Account.from_key(secret)
        self.w3.middleware_onion.inject(SignAndSendRawMiddlewareBuilder.build(account), layer=0)
        self.w3.eth.default_account = account.address
        self.account_address = account.address

    def get_contract_abi(self, contract_name: str) -> list[dict[str, Any]]:
        """Fetches ABI of the given contract from the package's contracts folder."""
        return load_contract_abi(contract_name)

    def get_contract(self, address: str, contract_name: str) -> Contract:
        """Build a contract instance bound to this connection."""
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=self.get_contract_abi(contract_name),
        )
