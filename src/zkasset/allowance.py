"""
Allowance gate.

Tracks how much public value an operator may move on a holder's behalf. The
gate separates "may this value move" from "did it move": ``approve`` only
ever tops an allowance up, and ``authorize`` checks and decrements it in one
locked step. The note registry holds ``locked()`` across its whole
validate-and-commit step so that the check and the debit cannot be split by
a concurrent transition.

When a transition is submitted by someone other than the public token owner,
the owner must also approve that transition by hash for the public value it
moves. A standing allowance alone never lets a third party move a holder's
public value.
"""

import logging

logger = logging.getLogger(__name__)
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Tuple

from .errors import InsufficientAllowance, require_amount


@dataclass
class AllowanceRecord:
    """Authorized spend of ``spender`` against ``holder``."""

    holder: str
    spender: str
    amount: int = 0
    updated_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        require_amount(self.amount)


class AllowanceGate:
    """Thread-safe allowance store."""

    def __init__(self) -> None:
        self._records: Dict[Tuple[str, str], AllowanceRecord] = {}
        self._transition_approvals: Dict[Tuple[str, str], int] = {}
        self._lock = threading.RLock()

    def approve(self, holder: str, spender: str, amount: int) -> AllowanceRecord:
        """Increase the allowance of ``spender`` against ``holder`` by ``amount``."""
        require_amount(amount)
        with self._lock:
            record = self._records.get((holder, spender))
            if record is None:
                record = AllowanceRecord(holder, spender)
                self._records[(holder, spender)] = record
            record.amount += amount
            record.updated_at = time.time()
            logger.debug(
                "Allowance %s -> %s topped up by %d to %d",
                holder,
                spender,
                amount,
                record.amount,
            )
            return record

    def allowance(self, holder: str, spender: str) -> int:
        with self._lock:
            record = self._records.get((holder, spender))
            return record.amount if record else 0

    def check(self, holder: str, spender: str, required: int) -> None:
        """Raise InsufficientAllowance unless the allowance covers ``required``."""
        require_amount(required, field="required")
        with self._lock:
            available = self.allowance(holder, spender)
            if available < required:
                raise InsufficientAllowance(
                    f"Allowance of {spender} against {holder} is {available}, "
                    f"{required} required",
                    holder=holder,
                    spender=spender,
                    required=required,
                    available=available,
                    source="gate",
                )

    def authorize(self, holder: str, spender: str, required: int) -> int:
        """Check and consume ``required``; returns the remaining allowance."""
        with self._lock:
            self.check(holder, spender, required)
            if required == 0:
                return self.allowance(holder, spender)
            record = self._records[(holder, spender)]
            record.amount -= required
            record.updated_at = time.time()
            logger.debug(
                "Allowance %s -> %s consumed %d, %d remaining",
                holder,
                spender,
                required,
                record.amount,
            )
            return record.amount

    # Transition-scoped approvals

    def approve_transition(self, holder: str, transition_hash: str, amount: int) -> int:
        """Let one transition move up to ``amount`` of ``holder``'s public value.

        Granted by the public token owner when someone else submits the
        transition. Replaces any earlier approval for the same transition.
        """
        require_amount(amount)
        with self._lock:
            self._transition_approvals[(holder, transition_hash)] = amount
            logger.debug(
                "Holder %s approved %d for transition %s",
                holder,
                amount,
                transition_hash[:16],
            )
            return amount

    def transition_allowance(self, holder: str, transition_hash: str) -> int:
        with self._lock:
            return self._transition_approvals.get((holder, transition_hash), 0)

    def check_transition(self, holder: str, transition_hash: str, required: int) -> None:
        require_amount(required, field="required")
        with self._lock:
            available = self.transition_allowance(holder, transition_hash)
            if available < required:
                raise InsufficientAllowance(
                    f"{holder} approved {available} for transition "
                    f"{transition_hash[:16]}, {required} required",
                    holder=holder,
                    spender=transition_hash,
                    required=required,
                    available=available,
                    source="transition",
                )

    def authorize_transition(self, holder: str, transition_hash: str, required: int) -> int:
        """Check and consume a transition approval; returns what is left of it."""
        with self._lock:
            self.check_transition(holder, transition_hash, required)
            remaining = self._transition_approvals.pop((holder, transition_hash)) - required
            if remaining:
                self._transition_approvals[(holder, transition_hash)] = remaining
            return remaining

    @contextmanager
    def locked(self) -> Iterator["AllowanceGate"]:
        """Hold the gate lock for a multi-step check-and-debit."""
        with self._lock:
            yield self

    def records(self) -> List[AllowanceRecord]:
        with self._lock:
            return [
                AllowanceRecord(r.holder, r.spender, r.amount, r.updated_at)
                for r in self._records.values()
            ]
