"""
Public ledger interface and an in-memory ERC20-style implementation.

The note registry treats the public token as an external collaborator reached
through ``PublicLedger``. ``apply_delta`` debits when the signed amount is
negative and credits when it is positive; in both cases the asset's public
total supply moves with the balance, since the value is leaving or entering
the private note set.
"""

import logging

logger = logging.getLogger(__name__)
import threading
from abc import ABC, abstractmethod
from typing import Dict, Tuple

from .errors import (
    InsufficientAllowance,
    InsufficientBalance,
    LedgerError,
    ValidationError,
    require_amount,
)


class PublicLedger(ABC):
    """Balance, supply and allowance store for one public token."""

    @abstractmethod
    def balance_of(self, account: str) -> int:
        """Public balance of ``account``."""

    @abstractmethod
    def total_supply(self, asset: str) -> int:
        """Public total supply of ``asset``."""

    @abstractmethod
    def allowance(self, holder: str, spender: str) -> int:
        """Amount ``spender`` may debit from ``holder``."""

    @abstractmethod
    def apply_delta(self, account: str, asset: str, signed_amount: int) -> None:
        """Credit (positive) or debit (negative) ``account``.

        Raises:
            InsufficientBalance: the debit exceeds the balance.
            InsufficientAllowance: the debit exceeds the operator's allowance.
            LedgerError: any other refusal.
        """

    def revert_delta(self, account: str, asset: str, signed_amount: int) -> None:
        """Undo a previously applied ``apply_delta``.

        Used as a compensating action when a transition fails after its
        ledger side was committed. The default applies the opposite delta.
        """
        self.apply_delta(account, asset, -signed_amount)


class InMemoryPublicLedger(PublicLedger):
    """Thread-safe in-memory token ledger.

    Debits made through ``apply_delta`` are spent by ``operator`` and consume
    the holder's allowance in the operator's favour, like ``transferFrom``.
    """

    def __init__(self, asset: str, operator: str):
        if not asset:
            raise ValidationError("asset must be set", field="asset")
        if not operator:
            raise ValidationError("operator must be set", field="operator")
        self.asset = asset
        self.operator = operator
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self._total_supply = 0
        self._lock = threading.RLock()

    def balance_of(self, account: str) -> int:
        with self._lock:
            return self._balances.get(account, 0)

    def total_supply(self, asset: str) -> int:
        self._check_asset(asset)
        with self._lock:
            return self._total_supply

    def allowance(self, holder: str, spender: str) -> int:
        with self._lock:
            return self._allowances.get((holder, spender), 0)

    def mint(self, account: str, amount: int) -> None:
        """Create ``amount`` public tokens for ``account``."""
        require_amount(amount)
        with self._lock:
            self._balances[account] = self._balances.get(account, 0) + amount
            self._total_supply += amount
        logger.debug("Minted %d %s to %s", amount, self.asset, account)

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        require_amount(amount)
        with self._lock:
            available = self._balances.get(sender, 0)
            if available < amount:
                raise InsufficientBalance(
                    f"Balance of {sender} is {available}, {amount} required",
                    account=sender,
                    asset=self.asset,
                    required=amount,
                    available=available,
                )
            self._balances[sender] = available - amount
            self._balances[recipient] = self._balances.get(recipient, 0) + amount

    def approve(self, holder: str, spender: str, amount: int) -> None:
        """Set the allowance of ``spender`` against ``holder``."""
        require_amount(amount)
        with self._lock:
            self._allowances[(holder, spender)] = amount

    def increase_approval(self, holder: str, spender: str, added: int) -> int:
        require_amount(added, field="added")
        with self._lock:
            updated = self._allowances.get((holder, spender), 0) + added
            self._allowances[(holder, spender)] = updated
            return updated

    def apply_delta(self, account: str, asset: str, signed_amount: int) -> None:
        self._check_asset(asset)
        if isinstance(signed_amount, bool) or not isinstance(signed_amount, int):
            raise LedgerError(
                f"Delta must be an integer, got {type(signed_amount).__name__}",
                account=account,
                asset=asset,
                retryable=False,
            )

        with self._lock:
            balance = self._balances.get(account, 0)
            if signed_amount < 0:
                amount = -signed_amount
                if balance < amount:
                    raise InsufficientBalance(
                        f"Balance of {account} is {balance}, {amount} required",
                        account=account,
                        asset=asset,
                        required=amount,
                        available=balance,
                    )
                approved = self._allowances.get((account, self.operator), 0)
                if approved < amount:
                    raise InsufficientAllowance(
                        f"Ledger allowance of {self.operator} against {account} "
                        f"is {approved}, {amount} required",
                        holder=account,
                        spender=self.operator,
                        required=amount,
                        available=approved,
                        source="ledger",
                    )
                self._allowances[(account, self.operator)] = approved - amount

            self._balances[account] = balance + signed_amount
            self._total_supply += signed_amount

        logger.debug("Applied delta %d to %s on %s", signed_amount, account, asset)

    def revert_delta(self, account: str, asset: str, signed_amount: int) -> None:
        """Restore balance, supply and consumed allowance of an applied delta."""
        self._check_asset(asset)
        with self._lock:
            self._balances[account] = self._balances.get(account, 0) - signed_amount
            self._total_supply -= signed_amount
            if signed_amount < 0:
                key = (account, self.operator)
                self._allowances[key] = self._allowances.get(key, 0) - signed_amount
        logger.warning("Reverted delta %d on %s for %s", signed_amount, asset, account)

    def _check_asset(self, asset: str) -> None:
        if asset != self.asset:
            raise LedgerError(
                f"Ledger holds {self.asset}, not {asset}",
                asset=asset,
                retryable=False,
            )
