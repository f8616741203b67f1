"""
Shared fixtures for zkasset tests.
"""

import pytest

from zkasset.config import LedgerConfig
from zkasset.crypto.signatures import PrivateKey
from zkasset.ledger import InMemoryPublicLedger
from zkasset.proofs import CommitmentProofBackend
from zkasset.registry import NoteRegistry
from zkasset.transaction import JoinSplitTransaction

ASSET = "ZKT"
OPERATOR = "operator"
ISSUER = "issuer"


@pytest.fixture
def alice_key():
    return PrivateKey.generate()


@pytest.fixture
def bob_key():
    return PrivateKey.generate()


@pytest.fixture
def alice_pub(alice_key):
    return alice_key.get_public_key().to_bytes()


@pytest.fixture
def bob_pub(bob_key):
    return bob_key.get_public_key().to_bytes()


@pytest.fixture
def config():
    return LedgerConfig(operator_address=OPERATOR, proof_generation_timeout=5.0)


@pytest.fixture
def backend():
    return CommitmentProofBackend()


@pytest.fixture
def ledger():
    """Public token with 100 units held by alice."""
    public_ledger = InMemoryPublicLedger(ASSET, OPERATOR)
    public_ledger.mint("alice", 100)
    return public_ledger


@pytest.fixture
def registry(backend, config, ledger):
    note_registry = NoteRegistry(backend, config=config)
    note_registry.create_note_registry(ASSET, ledger, owner=ISSUER, can_adjust_supply=True)
    return note_registry


@pytest.fixture
def approve(registry, ledger):
    """Top up both the gate and the ledger allowance for ``holder``."""

    def _approve(holder, amount):
        scaling = registry.get_registry(ASSET).scaling_factor
        registry.allowance_gate.approve(holder, OPERATOR, amount)
        ledger.increase_approval(holder, OPERATOR, amount * scaling)

    return _approve


@pytest.fixture
def deposit(registry, approve, alice_pub):
    """Deposit public value from ``holder`` into new notes; returns the notes."""

    def _deposit(values, owner_pub=None, holder="alice"):
        owner = owner_pub or alice_pub
        total = sum(values)
        approve(holder, total)
        tx = JoinSplitTransaction(
            registry, ASSET, [], [(owner, v) for v in values], -total, holder, holder
        )
        tx.execute()
        return list(tx.output_notes)

    return _deposit
