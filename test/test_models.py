#!/usr/bin/env python3
"""Unit tests for the shared data models."""

import dataclasses

import pytest
from web3 import Web3

from bridge_relayer.models import (
    BatchResult,
    ClientRelayState,
    SweepAction,
    SweepReport,
    TransactionResult,
    generate_deposit_hash,
)

from conftest import DEPOSIT_BOX, OTHER_RELAYER, make_deposit, make_relay

MIXED_CASE_ADDRESS = "0x52908400098527886E0F7030069857D2E4169EE7"


class TestDepositHash:
    """Tests for deposit hashing."""

    def test_hash_is_deterministic(self):
        """Recomputing the hash from identical fields yields the same hash."""
        assert make_deposit().deposit_hash == make_deposit().deposit_hash

    def test_hash_format(self):
        """Hash is a 0x-prefixed 32 byte hex string."""
        deposit_hash = make_deposit().deposit_hash
        assert deposit_hash.startswith("0x")
        assert len(deposit_hash) == 66

    @pytest.mark.parametrize(
        "field,value",
        [
            ("chain_id", 288),
            ("deposit_id", 2),
            ("l1_recipient", "0x1234567890123456789012345678901234567890"),
            ("l2_sender", "0x1234567890123456789012345678901234567890"),
            ("l1_token", "0x1234567890123456789012345678901234567890"),
            ("amount", 1001),
            ("slow_relay_fee_pct", 10**16 + 1),
            ("instant_relay_fee_pct", 5 * 10**15 + 1),
            ("quote_timestamp", 1_700_000_001),
        ],
    )
    def test_any_field_change_changes_hash(self, field, value):
        """Changing any hashed field produces a different hash."""
        assert make_deposit(**{field: value}).deposit_hash != make_deposit().deposit_hash

    def test_deposit_contract_is_not_hashed(self):
        """The emitting deposit box is provenance only."""
        other = make_deposit(deposit_contract="0x1234567890123456789012345678901234567890")
        assert other.deposit_hash == make_deposit().deposit_hash

    def test_address_case_does_not_matter(self):
        """Addresses are checksummed before hashing."""
        lower = make_deposit(l1_recipient=MIXED_CASE_ADDRESS.lower())
        assert lower.deposit_hash == make_deposit(l1_recipient=MIXED_CASE_ADDRESS).deposit_hash

    def test_matches_from_fields(self, deposit):
        """Deposit.from_fields uses generate_deposit_hash."""
        assert deposit.deposit_hash == generate_deposit_hash(
            deposit.chain_id,
            deposit.deposit_id,
            deposit.l1_recipient,
            deposit.l2_sender,
            deposit.l1_token,
            deposit.amount,
            deposit.slow_relay_fee_pct,
            deposit.instant_relay_fee_pct,
            deposit.quote_timestamp,
        )


class TestStructs:
    """Tests for the contract struct conversions."""

    def test_deposit_data_order(self, deposit):
        """DepositData follows the bridge pool struct layout."""
        assert deposit.to_deposit_data() == (
            deposit.chain_id,
            deposit.deposit_id,
            Web3.to_checksum_address(deposit.l1_recipient),
            Web3.to_checksum_address(deposit.l2_sender),
            deposit.amount,
            deposit.slow_relay_fee_pct,
            deposit.instant_relay_fee_pct,
            deposit.quote_timestamp,
        )

    def test_relay_data_order(self, deposit):
        """RelayData follows the bridge pool struct layout."""
        relay = make_relay(deposit, relay_id=3, proposer_bond=50, final_fee=7)
        assert relay.to_relay_data() == (
            int(ClientRelayState.PENDING),
            OTHER_RELAYER,
            3,
            relay.realized_lp_fee_pct,
            relay.price_request_time,
            50,
            7,
        )

    def test_relay_to_deposit_round_trips_hash(self, deposit):
        """The deposit rebuilt from a relay keeps the attested hash."""
        rebuilt = make_relay(deposit).to_deposit(deposit_contract=DEPOSIT_BOX)
        assert rebuilt == deposit

    def test_models_are_frozen(self, deposit):
        """Deposits cannot be mutated."""
        with pytest.raises(dataclasses.FrozenInstanceError):
            deposit.amount = 1


class TestReports:
    """Tests for batch results and sweep reports."""

    def test_batch_result_partitions(self):
        """Succeeded and failed results are split."""
        result = BatchResult(
            results=[TransactionResult("a", True), TransactionResult("b", False), TransactionResult("c", True)]
        )
        assert [r.description for r in result.succeeded] == ["a", "c"]
        assert [r.description for r in result.failed] == ["b"]

    def test_sweep_report_summary(self):
        """Summary counts actions, skips, errors and failed transactions."""
        report = SweepReport(sweep="relay")
        report.actions.append(SweepAction("slow", "0x01", "0x02", profit=10))
        report.actions.append(SweepAction("instant", "0x03", "0x02", profit=15))
        report.skipped.append(SweepAction("unprofitable", "0x04", "0x02"))
        report.errors.append("0x05: boom")
        report.batches.append(BatchResult(results=[TransactionResult("x", False)]))

        assert [action.deposit_hash for action in report.actions_of("slow")] == ["0x01"]
        assert report.to_dict() == {
            "sweep": "relay",
            "actions": 2,
            "skipped": 1,
            "errors": 1,
            "transactions_failed": 1,
        }
