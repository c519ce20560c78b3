"""Chain clients for the settlement (L1) and origin (L2) ledgers."""

from .interfaces import FinalizationAdapterProtocol, L1ClientProtocol, L2ClientProtocol
from .l1_client import InsuredBridgeL1Client
from .l2_client import InsuredBridgeL2Client

__all__ = [
    "FinalizationAdapterProtocol",
    "L1ClientProtocol",
    "L2ClientProtocol",
    "InsuredBridgeL1Client",
    "InsuredBridgeL2Client",
]
