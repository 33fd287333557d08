"""
Threshold RSA — signature shares and their verification.

A signature share is one party's partial signature x^(4*delta*s_i) mod n
together with a non-interactive proof (Shoup, "Practical Threshold
Signatures", pg. 8) that the same exponent s_i sits behind the party's
public verifier v_i = v^s_i mod n.

Verification never raises on a bad proof: a share from a faulty or
malicious peer is ordinary input, reported as False so the combiner can
drop it and carry on with the rest of the batch.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .util import DEFAULT_HASH, FOUR, TWO, mod_inv, transcript_hash

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Verifier:
    """Proof transcript for one signature share."""
    z: int
    """Response c*s_i + r, never reduced."""
    c: int
    """Challenge, reduced mod n."""
    verifier: int
    """The signer's public verifier v_i."""
    group_verifier: int
    """The group verification base v."""


@dataclass(frozen=True)
class SigShare:
    """A partial signature from share ``id`` with its proof."""
    id: int
    sig: int
    proof: Verifier


class GroupKey:
    """Public parameters shared by every key share of one group."""

    def __init__(self, n: int, delta: int, group_verifier: int,
                 verifiers: dict = None, hash_name: str = DEFAULT_HASH):
        self.n = n
        self.delta = delta
        self.group_verifier = group_verifier
        self.verifiers = dict(verifiers) if verifiers else {}
        self.hash_name = hash_name

    def __repr__(self):
        return (f"GroupKey(n=<{self.n.bit_length()} bits>, delta={self.delta}, "
                f"shares={sorted(self.verifiers)})")

    @classmethod
    def from_public_shares(cls, shares: list, hash_name: str = DEFAULT_HASH):
        """
        Build a group key from the dealer's published public shares.

        Raises:
            ValueError: No shares, duplicate ids, or shares disagreeing on
                (n, delta, group_verifier).
        """
        if not shares:
            raise ValueError("Need at least one public share")

        first = shares[0]
        params = (first.n, first.delta, first.group_verifier % first.n)
        verifiers = {}
        for share in shares:
            if (share.n, share.delta, share.group_verifier % share.n) != params:
                raise ValueError(
                    f"Share {share.id} has different group parameters than share {first.id}. "
                    "Cannot mix shares from different groups."
                )
            if share.id in verifiers:
                raise ValueError(f"Duplicate share id {share.id}")
            verifiers[share.id] = share.verifier

        return cls(first.n, first.delta, first.group_verifier,
                   verifiers=verifiers, hash_name=hash_name)


def message_to_int(b: bytes, n: int) -> int:
    """Read a message representative as a non-negative integer mod n."""
    return int.from_bytes(b, 'big') % n


def challenge(n: int, group_verifier: int, xtilde: int, verifier: int,
              sig: int, vprime: int, xprime: int,
              hash_name: str = DEFAULT_HASH) -> int:
    """Fiat-Shamir challenge over the six transcript values, in order."""
    return transcript_hash(
        (group_verifier % n, xtilde, verifier % n, pow(sig, TWO, n), vprime, xprime),
        hash_name,
    ) % n


def verify(sig_share: SigShare, b: bytes, group: GroupKey) -> bool:
    """
    Check the proof attached to a signature share.

    Recomputes v'' = v^z * v_i^-c and x'' = xtilde^z * x_i^-c, then
    accepts only if hashing them reproduces the challenge c.

    Args:
        sig_share: The share to check
        b: The message representative that was signed
        group: Public group parameters

    Returns:
        True if the share is valid for b under this group.
    """
    n = group.n
    proof = sig_share.proof

    # Both are residues mod n; anything else is a second encoding of a share
    if not (0 <= sig_share.sig < n and 0 <= proof.c < n):
        logger.debug("share %s: sig or challenge outside [0, n)", sig_share.id)
        return False

    if proof.group_verifier % n != group.group_verifier % n:
        logger.debug("share %s: group verifier mismatch", sig_share.id)
        return False

    if group.verifiers:
        expected = group.verifiers.get(sig_share.id)
        if expected is None or expected % n != proof.verifier % n:
            logger.debug("share %s: verifier not published for this id", sig_share.id)
            return False

    x = message_to_int(b, n)
    xtilde = pow(x, FOUR * group.delta, n)

    try:
        vprime = pow(group.group_verifier, proof.z, n) \
            * mod_inv(pow(proof.verifier, proof.c, n), n) % n
        xprime = pow(xtilde, proof.z, n) \
            * mod_inv(pow(sig_share.sig, proof.c, n), n) % n
    except ValueError as e:
        # Negative exponent on a non-unit, or a non-invertible base
        logger.debug("share %s: %s", sig_share.id, e)
        return False

    c = challenge(n, group.group_verifier, xtilde, proof.verifier,
                  sig_share.sig, vprime, xprime, group.hash_name)
    ok = c == proof.c
    logger.debug("share %s: proof %s", sig_share.id, "accepted" if ok else "rejected")
    return ok


def verify_shares(sig_shares: list, b: bytes, group: GroupKey) -> dict:
    """
    Screen a batch of signature shares for the combiner.

    Invalid shares and repeats of an already accepted id are excluded,
    never fatal.

    Returns dict with:
        - valid: bool (every share verified and no id repeated)
        - ids: ids of the accepted shares, in input order
        - shares: the accepted SigShare objects
        - share_count: how many shares were accepted
        - errors: list of error messages for excluded shares
    """
    result = {
        'valid': True,
        'ids': [],
        'shares': [],
        'share_count': 0,
        'errors': [],
    }

    for i, share in enumerate(sig_shares):
        if share.id in result['ids']:
            result['errors'].append(f"Share {i+1}: duplicate id {share.id}")
            result['valid'] = False
            continue

        if not verify(share, b, group):
            result['errors'].append(f"Share {i+1}: proof for id {share.id} rejected")
            result['valid'] = False
            logger.warning("Excluding signature share %s: proof rejected", share.id)
            continue

        result['ids'].append(share.id)
        result['shares'].append(share)
        result['share_count'] += 1

    return result


def best_shares(sig_shares: list, b: bytes, group: GroupKey,
                k: int) -> Optional[list]:
    """Return k verified, distinct-id shares, or None if fewer are available."""
    report = verify_shares(sig_shares, b, group)
    if report['share_count'] < k:
        return None
    return report['shares'][:k]
