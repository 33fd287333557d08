"""Threshold RSA — Shoup partial signatures with zero-knowledge proofs."""

from .keyshare import KeyShare, PublicShare, ShareState
from .sigshare import GroupKey, SigShare, Verifier, verify, verify_shares, best_shares
from .util import (
    L1, DEFAULT_HASH, HASH_ALGORITHMS, DecodeError, ShareStateError,
    group_delta, resolve_hash,
)

__all__ = [
    'KeyShare', 'PublicShare', 'ShareState',
    'GroupKey', 'SigShare', 'Verifier', 'verify', 'verify_shares', 'best_shares',
    'L1', 'DEFAULT_HASH', 'HASH_ALGORITHMS', 'DecodeError', 'ShareStateError',
    'group_delta', 'resolve_hash',
]
