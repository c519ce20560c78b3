"""
Capital requirements for relaying a deposit.
"""

import logging

from .models import FIXED_POINT, Deposit, RelayTokenRequirement

logger = logging.getLogger(__name__)


def get_relay_token_requirement(
    deposit: Deposit,
    proposer_bond_pct: int,
    realized_lp_fee_pct: int,
) -> RelayTokenRequirement:
    """
    Compute the token balance needed for each kind of relay.

    A slow relay posts the proposer bond; a speed up pays the recipient the
    deposit amount net of every fee.

    Args:
        deposit: The deposit to relay
        proposer_bond_pct: Proposer bond percentage (1e18 scaled)
        realized_lp_fee_pct: Realized LP fee percentage (1e18 scaled)

    Returns:
        Slow and instant requirements in token base units
    """
    slow = deposit.amount * proposer_bond_pct // FIXED_POINT

    net_pct = (
        FIXED_POINT
        - realized_lp_fee_pct
        - deposit.slow_relay_fee_pct
        - deposit.instant_relay_fee_pct
    )
    if net_pct < 0:
        logger.error(
            f"Negative instant relay requirement for deposit {deposit.deposit_hash}: "
            f"realizedLpFeePct={realized_lp_fee_pct} slowRelayFeePct={deposit.slow_relay_fee_pct} "
            f"instantRelayFeePct={deposit.instant_relay_fee_pct} sum to more than 100%"
        )
        net_pct = 0

    return RelayTokenRequirement(slow=slow, instant=deposit.amount * net_pct // FIXED_POINT)
