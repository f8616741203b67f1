"""
Cryptographic primitives for zkasset.

This module provides:
- Digital signatures (ECDSA over secp256k1)
- Hash functions (SHA-256)
- Homomorphic value commitments
"""

from .commitments import Commitment, commit, is_balanced, random_blinding
from .hashing import Hash, SHA256Hasher
from .signatures import ECDSASigner, PrivateKey, PublicKey, Signature

__all__ = [
    "ECDSASigner",
    "Signature",
    "PublicKey",
    "PrivateKey",
    "SHA256Hasher",
    "Hash",
    "Commitment",
    "commit",
    "is_balanced",
    "random_blinding",
]
