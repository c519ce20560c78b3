"""
Insured bridge relayer package.

Relays L2 deposits to L1 bridge pools, disputes invalid relays and settles
relays once their dispute window has passed.
"""

from .config import RelayerConfig
from .models import Deposit, Relay, SweepReport
from .orchestrator import RelayerOrchestrator
from .relayer import InsuredBridgeRelayer

__all__ = ["RelayerConfig", "InsuredBridgeRelayer", "RelayerOrchestrator", "Deposit", "Relay", "SweepReport"]
__version__ = "0.1.0"
