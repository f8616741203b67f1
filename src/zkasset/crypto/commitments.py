"""
Homomorphic value commitments.

Commitments live in the multiplicative group modulo the prime
``P = 2**255 - 19``::

    C(v, r) = G^v * H^r mod P

Multiplying commitments adds the committed values and blindings, so the
registry can check that a transition balances without learning any note
value. Given ``excess = sum(r_in) - sum(r_out)``, a transition with public
delta ``d`` balances iff::

    prod(C_in) == prod(C_out) * G^d * H^excess

Exponents are reduced modulo ``P - 1``.
"""

import hashlib
import secrets
from dataclasses import dataclass
from typing import Iterable

P = 2**255 - 19
ORDER = P - 1


def _map_to_base(tag: str) -> int:
    digest = hashlib.sha3_256(("ZKASSET:gen:" + tag).encode("utf-8")).hexdigest()
    return int(digest, 16) % (P - 3) + 2


def _check_generators(g: int, h: int) -> None:
    if g == h or g in (1, P - 1) or h in (1, P - 1):
        raise RuntimeError("Commitment generators must be distinct non-trivial elements")


G = _map_to_base("g")
H = _map_to_base("h")
_check_generators(G, H)


@dataclass(frozen=True)
class Commitment:
    """A group element committing to a hidden value."""

    element: int

    def __post_init__(self) -> None:
        if not 0 < self.element < P:
            raise ValueError("Commitment element out of range")

    @classmethod
    def identity(cls) -> "Commitment":
        return cls(1)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Commitment":
        if len(data) != 32:
            raise ValueError("Commitment must be exactly 32 bytes")
        return cls(int.from_bytes(data, byteorder="big"))

    def to_bytes(self) -> bytes:
        return self.element.to_bytes(32, byteorder="big")

    def to_hex(self) -> str:
        return self.to_bytes().hex()

    def __mul__(self, other: "Commitment") -> "Commitment":
        return Commitment((self.element * other.element) % P)

    def inverse(self) -> "Commitment":
        return Commitment(pow(self.element, -1, P))


def commit(value: int, blinding: int) -> Commitment:
    """Commit to ``value`` under ``blinding``."""
    return Commitment((pow(G, value % ORDER, P) * pow(H, blinding % ORDER, P)) % P)


def random_blinding() -> int:
    """Uniform blinding factor in ``[1, ORDER - 1]``."""
    return secrets.randbelow(ORDER - 1) + 1


def product(commitments: Iterable[Commitment]) -> Commitment:
    """Homomorphic sum of the committed values."""
    result = Commitment.identity()
    for commitment in commitments:
        result = result * commitment
    return result


def balance_commitment(public_value_delta: int, blinding_excess: int) -> Commitment:
    """Commitment the input side must equal once outputs are factored out."""
    return commit(public_value_delta, blinding_excess)


def blinding_excess(input_blindings: Iterable[int], output_blindings: Iterable[int]) -> int:
    """``(sum(inputs) - sum(outputs)) mod ORDER``."""
    return (sum(input_blindings) - sum(output_blindings)) % ORDER


def is_balanced(
    inputs: Iterable[Commitment],
    outputs: Iterable[Commitment],
    public_value_delta: int,
    excess: int,
) -> bool:
    """True iff ``sum(in) - sum(out) == public_value_delta`` under the commitments."""
    lhs = product(inputs)
    rhs = product(outputs) * balance_commitment(public_value_delta, excess)
    return lhs == rhs
