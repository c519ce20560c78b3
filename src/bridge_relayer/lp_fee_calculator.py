"""
Realized LP fee pricing.

Bridge pools charge depositors a fee that depends on how much of the pool's
liquidity a relay uses. The fee is the weekly rate implied by the average APY
of a piecewise linear rate curve over the utilization interval the relay
moves the pool across, read at the block of the deposit's quote timestamp.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal, localcontext
from typing import Any

from web3.contract import Contract

from .models import FIXED_POINT
from .utils.block_finder import BlockFinder

logger = logging.getLogger(__name__)

WEEKS_PER_YEAR: int = 52


@dataclass(frozen=True, slots=True)
class RateModel:
    """Piecewise linear rate curve with a kink at ``u_bar``.

    All values are 1e18 scaled. ``r0`` is the rate at zero utilization, ``r1``
    the rate added up to the kink and ``r2`` the rate added from the kink to
    full utilization.
    """
    u_bar: int
    r0: int
    r1: int
    r2: int

    def __post_init__(self) -> None:
        if not 0 < self.u_bar < FIXED_POINT:
            raise ValueError(f"UBar must be strictly between 0 and 1e18, got {self.u_bar}")
        if min(self.r0, self.r1, self.r2) < 0:
            raise ValueError("Rate model rates must not be negative")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RateModel":
        """Parse ``{"UBar": ..., "R0": ..., "R1": ..., "R2": ...}`` with int or string values."""
        try:
            return cls(
                u_bar=int(data["UBar"]),
                r0=int(data["R0"]),
                r1=int(data["R1"]),
                r2=int(data["R2"]),
            )
        except KeyError as e:
            raise ValueError(f"Rate model is missing {e.args[0]}") from e


def _mul(a: int, b: int) -> int:
    return a * b // FIXED_POINT


def _div(a: int, b: int) -> int:
    return a * FIXED_POINT // b


def calculate_instantaneous_rate(model: RateModel, utilization: int) -> int:
    """Rate of the curve at ``utilization``."""
    before_kink = min(utilization, model.u_bar)
    after_kink = max(0, utilization - model.u_bar)
    return (
        model.r0
        + _div(_mul(before_kink, model.r1), model.u_bar)
        + _div(_mul(after_kink, model.r2), FIXED_POINT - model.u_bar)
    )


def calculate_area_under_rate_curve(model: RateModel, utilization: int) -> int:
    """Integral of the curve from zero to ``utilization``: two rectangles and two triangles."""
    before_kink = min(utilization, model.u_bar)
    after_kink = max(0, utilization - model.u_bar)
    half = FIXED_POINT // 2

    rectangle_1 = _mul(before_kink, model.r0)
    triangle_1 = _mul(_mul(half, calculate_instantaneous_rate(model, before_kink) - model.r0), before_kink)
    rectangle_2 = _mul(after_kink, model.r0 + model.r1)
    triangle_2 = _mul(
        _mul(half, calculate_instantaneous_rate(model, utilization) - (model.r0 + model.r1)),
        after_kink,
    )
    return rectangle_1 + triangle_1 + rectangle_2 + triangle_2


def calculate_apy_from_utilization(model: RateModel, utilization_before: int, utilization_after: int) -> int:
    """Average rate over ``[utilization_before, utilization_after]``."""
    if utilization_before == utilization_after:
        return calculate_instantaneous_rate(model, utilization_before)

    area_before = calculate_area_under_rate_curve(model, utilization_before)
    area_after = calculate_area_under_rate_curve(model, utilization_after)
    return _div(area_after - area_before, utilization_after - utilization_before)


def convert_apy_to_weekly_fee(apy: int) -> int:
    """Weekly rate ``(1 + apy)^(1/52) - 1``, floored to 1e18 fixed point."""
    with localcontext() as ctx:
        ctx.prec = 60
        weekly = (Decimal(1) + Decimal(apy) / FIXED_POINT) ** (Decimal(1) / WEEKS_PER_YEAR) - 1
        return int((weekly * FIXED_POINT).to_integral_value(rounding=ROUND_FLOOR))


def calculate_realized_lp_fee_pct(model: RateModel, utilization_before: int, utilization_after: int) -> int:
    """Realized LP fee for a relay moving the pool between the two utilizations."""
    apy = calculate_apy_from_utilization(model, utilization_before, utilization_after)
    return convert_apy_to_weekly_fee(apy)


class LpFeeCalculator:
    """Prices deposits against each bridge pool's configured rate model."""

    def __init__(self, rate_models: dict[str, RateModel], block_finder: BlockFinder) -> None:
        """
        Initialize the LP fee calculator.

        Args:
            rate_models: Rate model per L1 token address
            block_finder: Maps quote timestamps to L1 blocks
        """
        self.rate_models = rate_models
        self.block_finder = block_finder

    def get_rate_model(self, l1_token: str) -> RateModel:
        try:
            return self.rate_models[l1_token]
        except KeyError:
            raise ValueError(f"No rate model configured for L1 token {l1_token}") from None

    def calculate_realized_lp_fee_pct(
        self,
        bridge_pool: Contract,
        l1_token: str,
        amount: int,
        quote_timestamp: int,
    ) -> int:
        """
        Compute the realized LP fee for relaying ``amount`` at ``quote_timestamp``.

        Args:
            bridge_pool: Bridge pool contract for the token
            l1_token: L1 token of the deposit
            amount: Deposit amount in token base units
            quote_timestamp: Deposit quote time

        Returns:
            Realized LP fee percentage (1e18 scaled)
        """
        model = self.get_rate_model(l1_token)
        quote_block = self.block_finder.get_block_for_timestamp(quote_timestamp)

        utilization_before = bridge_pool.functions.liquidityUtilizationCurrent().call(
            block_identifier=quote_block
        )
        utilization_after = bridge_pool.functions.liquidityUtilizationPostRelay(amount).call(
            block_identifier=quote_block
        )

        realized_lp_fee_pct = calculate_realized_lp_fee_pct(model, utilization_before, utilization_after)
        logger.debug(
            f"Realized LP fee for {amount} of {l1_token} at block {quote_block}: "
            f"utilization {utilization_before} -> {utilization_after}, fee {realized_lp_fee_pct}"
        )
        return realized_lp_fee_pct
