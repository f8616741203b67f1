"""
Unit tests for the in-memory public ledger.
"""

import pytest

from zkasset.errors import (
    InsufficientAllowance,
    InsufficientBalance,
    InvalidAmount,
    LedgerError,
    ValidationError,
)
from zkasset.ledger import InMemoryPublicLedger, PublicLedger


class TestInMemoryPublicLedger:
    """Test the InMemoryPublicLedger class."""

    @pytest.fixture
    def ledger(self):
        ledger = InMemoryPublicLedger("ZKT", "operator")
        ledger.mint("alice", 100)
        return ledger

    def test_is_public_ledger(self, ledger):
        assert isinstance(ledger, PublicLedger)

    def test_requires_asset_and_operator(self):
        with pytest.raises(ValidationError):
            InMemoryPublicLedger("", "operator")
        with pytest.raises(ValidationError):
            InMemoryPublicLedger("ZKT", "")

    def test_mint_updates_balance_and_supply(self, ledger):
        assert ledger.balance_of("alice") == 100
        assert ledger.total_supply("ZKT") == 100

    def test_total_supply_of_other_asset(self, ledger):
        with pytest.raises(LedgerError):
            ledger.total_supply("OTHER")

    def test_transfer(self, ledger):
        ledger.transfer("alice", "bob", 30)
        assert ledger.balance_of("alice") == 70
        assert ledger.balance_of("bob") == 30
        assert ledger.total_supply("ZKT") == 100

    def test_transfer_insufficient_balance(self, ledger):
        with pytest.raises(InsufficientBalance):
            ledger.transfer("bob", "alice", 1)

    def test_approve_sets_and_increase_adds(self, ledger):
        ledger.approve("alice", "operator", 10)
        ledger.approve("alice", "operator", 4)
        assert ledger.allowance("alice", "operator") == 4
        assert ledger.increase_approval("alice", "operator", 6) == 10

    def test_negative_approval_rejected(self, ledger):
        with pytest.raises(InvalidAmount):
            ledger.approve("alice", "operator", -1)

    def test_debit_consumes_operator_allowance(self, ledger):
        ledger.approve("alice", "operator", 15)
        ledger.apply_delta("alice", "ZKT", -10)
        assert ledger.balance_of("alice") == 90
        assert ledger.total_supply("ZKT") == 90
        assert ledger.allowance("alice", "operator") == 5

    def test_debit_without_allowance(self, ledger):
        with pytest.raises(InsufficientAllowance) as exc_info:
            ledger.apply_delta("alice", "ZKT", -10)
        assert exc_info.value.source == "ledger"
        assert ledger.balance_of("alice") == 100

    def test_debit_exceeding_balance(self, ledger):
        ledger.approve("alice", "operator", 500)
        with pytest.raises(InsufficientBalance) as exc_info:
            ledger.apply_delta("alice", "ZKT", -101)
        assert exc_info.value.required == 101
        assert exc_info.value.available == 100
        assert ledger.allowance("alice", "operator") == 500

    def test_credit_needs_no_allowance(self, ledger):
        ledger.apply_delta("bob", "ZKT", 6)
        assert ledger.balance_of("bob") == 6
        assert ledger.total_supply("ZKT") == 106

    def test_apply_delta_wrong_asset(self, ledger):
        with pytest.raises(LedgerError):
            ledger.apply_delta("alice", "OTHER", 5)

    def test_apply_delta_non_integer(self, ledger):
        with pytest.raises(LedgerError):
            ledger.apply_delta("alice", "ZKT", 1.5)

    def test_revert_debit_restores_allowance(self, ledger):
        ledger.approve("alice", "operator", 10)
        ledger.apply_delta("alice", "ZKT", -10)
        ledger.revert_delta("alice", "ZKT", -10)
        assert ledger.balance_of("alice") == 100
        assert ledger.total_supply("ZKT") == 100
        assert ledger.allowance("alice", "operator") == 10

    def test_revert_credit(self, ledger):
        ledger.apply_delta("bob", "ZKT", 6)
        ledger.revert_delta("bob", "ZKT", 6)
        assert ledger.balance_of("bob") == 0
        assert ledger.total_supply("ZKT") == 100
