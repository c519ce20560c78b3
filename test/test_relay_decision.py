#!/usr/bin/env python3
"""Tests for relay requirements and the relay decision engine."""

import logging

import pytest

from bridge_relayer.models import ClientRelayState, RelaySubmitType, RelayTokenRequirement
from bridge_relayer.relay_decision import required_capital, should_relay
from bridge_relayer.relay_requirements import get_relay_token_requirement

from conftest import FIXED_POINT, PROPOSER_BOND_PCT, REALIZED_LP_FEE_PCT, make_deposit


class TestRelayTokenRequirement:
    """Tests for get_relay_token_requirement."""

    def test_requirement(self, deposit):
        """Slow posts the bond; instant pays the amount net of fees."""
        requirement = get_relay_token_requirement(deposit, PROPOSER_BOND_PCT, REALIZED_LP_FEE_PCT)
        assert requirement == RelayTokenRequirement(slow=50, instant=965)

    def test_zero_fees(self):
        """Without fees the instant requirement is the full amount."""
        deposit = make_deposit(slow_relay_fee_pct=0, instant_relay_fee_pct=0)
        requirement = get_relay_token_requirement(deposit, 0, 0)
        assert requirement == RelayTokenRequirement(slow=0, instant=1000)

    def test_negative_instant_requirement_floors_at_zero(self, caplog):
        """Fees summing past 100% are logged as an error and floored."""
        deposit = make_deposit(slow_relay_fee_pct=FIXED_POINT // 2, instant_relay_fee_pct=FIXED_POINT // 2)
        with caplog.at_level(logging.ERROR):
            requirement = get_relay_token_requirement(deposit, PROPOSER_BOND_PCT, REALIZED_LP_FEE_PCT)

        assert requirement.instant == 0
        assert "Negative instant relay requirement" in caplog.text


class TestShouldRelay:
    """Tests for should_relay."""

    REQUIREMENT = RelayTokenRequirement(slow=50, instant=965)

    def test_scenario_a_slow(self, deposit):
        """Balance covers slow and instant separately but not both: slow wins on profit."""
        decision = should_relay(deposit, ClientRelayState.UNINITIALIZED, False, 1000, self.REQUIREMENT)

        assert decision.action == RelaySubmitType.SLOW
        assert decision.profit == 10
        assert decision.slow_profit == 10
        assert decision.speed_up_profit == 5
        assert decision.instant_profit == 0

    def test_scenario_b_instant(self, deposit):
        """Balance covers slow + instant: instant relay earns both fees."""
        decision = should_relay(deposit, ClientRelayState.UNINITIALIZED, False, 1100, self.REQUIREMENT)

        assert decision.action == RelaySubmitType.INSTANT
        assert decision.profit == 15

    def test_only_slow_affordable(self, deposit):
        """Balance below the instant requirement only allows a slow relay."""
        decision = should_relay(deposit, ClientRelayState.UNINITIALIZED, False, 60, self.REQUIREMENT)
        assert decision.action == RelaySubmitType.SLOW

    def test_insufficient_balance_ignores(self, deposit):
        """Nothing affordable means ignore."""
        decision = should_relay(deposit, ClientRelayState.UNINITIALIZED, False, 10, self.REQUIREMENT)
        assert decision.action == RelaySubmitType.IGNORE
        assert decision.profit == 0

    def test_pending_relay_is_sped_up(self, deposit):
        """A pending relay without an instant relayer can only be sped up."""
        decision = should_relay(deposit, ClientRelayState.PENDING, False, 1100, self.REQUIREMENT)

        assert decision.action == RelaySubmitType.SPEED_UP
        assert decision.profit == 5

    def test_pending_relay_already_sped_up_ignored(self, deposit):
        """A pending relay with an instant relayer offers no profit."""
        decision = should_relay(deposit, ClientRelayState.PENDING, True, 1100, self.REQUIREMENT)
        assert decision.action == RelaySubmitType.IGNORE

    def test_finalized_ignored(self, deposit):
        """Finalized deposits are never relayed."""
        decision = should_relay(deposit, ClientRelayState.FINALIZED, False, 10_000, self.REQUIREMENT)
        assert decision.action == RelaySubmitType.IGNORE

    def test_speed_up_slow_tie_favors_slow(self):
        """Equal speed up and slow profits choose the slow relay."""
        deposit = make_deposit(slow_relay_fee_pct=10**16, instant_relay_fee_pct=10**16)
        requirement = get_relay_token_requirement(deposit, PROPOSER_BOND_PCT, REALIZED_LP_FEE_PCT)

        decision = should_relay(deposit, ClientRelayState.UNINITIALIZED, False, 1000, requirement)

        assert decision.slow_profit == decision.speed_up_profit == 10
        assert decision.instant_profit == 0
        assert decision.action == RelaySubmitType.SLOW

    def test_speed_up_beats_smaller_slow_profit(self):
        """A strictly larger speed up profit wins over slow."""
        deposit = make_deposit(slow_relay_fee_pct=10**15, instant_relay_fee_pct=10**16)
        requirement = get_relay_token_requirement(deposit, PROPOSER_BOND_PCT, REALIZED_LP_FEE_PCT)

        decision = should_relay(deposit, ClientRelayState.UNINITIALIZED, False, requirement.instant, requirement)

        assert decision.action == RelaySubmitType.SPEED_UP

    @pytest.mark.parametrize("extra", [0, 1, 500, 10**6])
    def test_instant_dominates_when_affordable(self, extra):
        """With balance >= slow + instant on an uninitialized deposit, instant always wins."""
        for slow_fee, instant_fee in [(10**16, 5 * 10**15), (10**15, 10**16), (10**16, 10**16)]:
            deposit = make_deposit(slow_relay_fee_pct=slow_fee, instant_relay_fee_pct=instant_fee)
            requirement = get_relay_token_requirement(deposit, PROPOSER_BOND_PCT, REALIZED_LP_FEE_PCT)
            balance = requirement.slow + requirement.instant + extra

            decision = should_relay(deposit, ClientRelayState.UNINITIALIZED, False, balance, requirement)

            assert decision.action == RelaySubmitType.INSTANT

    def test_existing_instant_relayer_slow_relays(self, deposit):
        """A disputed relay that was sped up before is slow relayed, never relayed instantly again."""
        decision = should_relay(deposit, ClientRelayState.UNINITIALIZED, True, 10**9, self.REQUIREMENT)

        assert decision.action == RelaySubmitType.SLOW
        assert decision.profit == 10
        assert decision.speed_up_profit == 0
        assert decision.instant_profit == 0

    def test_zero_instant_fee_slow_relays(self):
        """Without an instant fee, the capital for a speed up earns nothing extra."""
        deposit = make_deposit(instant_relay_fee_pct=0)
        requirement = get_relay_token_requirement(deposit, PROPOSER_BOND_PCT, REALIZED_LP_FEE_PCT)

        decision = should_relay(deposit, ClientRelayState.UNINITIALIZED, False, 10**9, requirement)

        assert decision.action == RelaySubmitType.SLOW
        assert decision.profit == 10
        assert decision.instant_profit == 0
        assert required_capital(decision.action, requirement) == requirement.slow

    def test_zero_slow_fee_ties_to_instant(self):
        """A real tie between instant and speed up still favors instant on an uninitialized deposit."""
        deposit = make_deposit(slow_relay_fee_pct=0)
        requirement = get_relay_token_requirement(deposit, PROPOSER_BOND_PCT, REALIZED_LP_FEE_PCT)

        decision = should_relay(deposit, ClientRelayState.UNINITIALIZED, False, 10**9, requirement)

        assert decision.speed_up_profit == decision.instant_profit == 5
        assert decision.action == RelaySubmitType.INSTANT

    def test_never_exceeds_balance(self, deposit):
        """The chosen action's capital never exceeds the balance."""
        for state in ClientRelayState:
            for has_instant_relayer in (False, True):
                for balance in range(0, 1200, 5):
                    decision = should_relay(deposit, state, has_instant_relayer, balance, self.REQUIREMENT)
                    assert required_capital(decision.action, self.REQUIREMENT) <= balance


class TestRequiredCapital:
    """Tests for required_capital."""

    @pytest.mark.parametrize(
        "action,expected",
        [
            (RelaySubmitType.SLOW, 50),
            (RelaySubmitType.SPEED_UP, 965),
            (RelaySubmitType.INSTANT, 1015),
            (RelaySubmitType.IGNORE, 0),
        ],
    )
    def test_capital(self, action, expected):
        assert required_capital(action, RelayTokenRequirement(slow=50, instant=965)) == expected
