"""
Relay decision engine.

Picks the most profitable relay action for a deposit given the bot's token
balance, the deposit's relay state and the capital each action requires.
"""

from .models import (
    FIXED_POINT,
    ClientRelayState,
    Deposit,
    RelayDecision,
    RelaySubmitType,
    RelayTokenRequirement,
)


def should_relay(
    deposit: Deposit,
    client_relay_state: ClientRelayState,
    has_instant_relayer: bool,
    balance: int,
    requirement: RelayTokenRequirement,
) -> RelayDecision:
    """
    Decide how to relay a deposit.

    There are three kinds of profit the bot can earn, each only available
    when the balance covers the action and the relay state allows it:

    a) slow relay: nothing has happened on L1 for this deposit yet.
    b) speed up: no instant relayer yet and the deposit is not finalized.
    c) instant relay (slow relay + speed up in one call): nothing has happened
       on L1 yet and the balance covers both requirements. The speed up
       part must earn something.

    Instant wins whenever it is at least as profitable as the other options.
    A speed up must be strictly more profitable than a slow relay to be chosen.

    Args:
        deposit: Deposit being considered
        client_relay_state: Relay state of the deposit on L1
        has_instant_relayer: Whether the relay was already sped up
        balance: Bot's available balance of the deposit's L1 token
        requirement: Capital required for each relay kind

    Returns:
        The chosen action and the profit of each candidate
    """
    slow_profit = 0
    speed_up_profit = 0
    instant_profit = 0

    if balance >= requirement.slow and client_relay_state == ClientRelayState.UNINITIALIZED:
        slow_profit = deposit.amount * deposit.slow_relay_fee_pct // FIXED_POINT

    if (
        not has_instant_relayer
        and balance >= requirement.instant
        and client_relay_state != ClientRelayState.FINALIZED
    ):
        speed_up_profit = deposit.amount * deposit.instant_relay_fee_pct // FIXED_POINT

    # Once slow relayed, a deposit can only be sped up, so instant relays are
    # limited to uninitialized deposits. relayAndSpeedUp reverts when an
    # instant relayer already exists.
    if (
        speed_up_profit > 0
        and balance >= requirement.slow + requirement.instant
        and client_relay_state == ClientRelayState.UNINITIALIZED
    ):
        instant_profit = slow_profit + speed_up_profit

    profits = {
        "slow_profit": slow_profit,
        "speed_up_profit": speed_up_profit,
        "instant_profit": instant_profit,
    }

    if instant_profit > 0 and instant_profit >= speed_up_profit and instant_profit >= slow_profit:
        return RelayDecision(RelaySubmitType.INSTANT, instant_profit, **profits)
    if speed_up_profit > slow_profit:
        return RelayDecision(RelaySubmitType.SPEED_UP, speed_up_profit, **profits)
    if slow_profit > 0:
        return RelayDecision(RelaySubmitType.SLOW, slow_profit, **profits)
    return RelayDecision(RelaySubmitType.IGNORE, 0, **profits)


def required_capital(action: RelaySubmitType, requirement: RelayTokenRequirement) -> int:
    """Token balance committed by taking ``action``."""
    match action:
        case RelaySubmitType.SLOW:
            return requirement.slow
        case RelaySubmitType.SPEED_UP:
            return requirement.instant
        case RelaySubmitType.INSTANT:
            return requirement.slow + requirement.instant
        case _:
            return 0
