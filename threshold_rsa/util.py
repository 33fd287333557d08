"""
Threshold RSA — shared numeric utilities.

Protocol constants, the integer byte codec used by both the key-share
encoding and the proof transcript, modular inverse, the transcript hash
and the process-wide random source.
"""

import math
import secrets

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes


# Extra bits of randomness in r so that c*secret is statistically hidden
L1 = 128

TWO = 2
FOUR = 4

DEFAULT_HASH = 'sha256'

# sha1 matches transcripts produced by the legacy reference signer
HASH_ALGORITHMS = {
    'sha1': hashes.SHA1,
    'sha256': hashes.SHA256,
    'sha384': hashes.SHA384,
    'sha512': hashes.SHA512,
    'sha3-256': hashes.SHA3_256,
    'sha3-512': hashes.SHA3_512,
}

_random = secrets.SystemRandom()


class DecodeError(ValueError):
    """Raised when an encoded share is truncated or malformed."""


class ShareStateError(RuntimeError):
    """Raised when a key share is used outside its lifecycle."""


def default_rng():
    """Return the process-wide CSPRNG (OS entropy, safe across threads)."""
    return _random


def group_delta(l: int) -> int:
    """delta = l! for a group of l shares."""
    return math.factorial(l)


def int_to_bytes(value: int) -> bytes:
    """
    Minimal big-endian two's-complement encoding.

    Always at least one byte; a positive value whose top bit is set gets a
    leading 0x00 so it reads back as positive.
    """
    bits = value.bit_length() if value >= 0 else (~value).bit_length()
    return value.to_bytes(bits // 8 + 1, 'big', signed=True)


def bytes_to_int(data: bytes) -> int:
    """Inverse of int_to_bytes. Empty input reads as zero."""
    return int.from_bytes(data, 'big', signed=True)


def _extended_gcd(a: int, b: int) -> tuple:
    """Iterative extended Euclid. Returns (gcd, x, y) with ax + by = gcd."""
    x0, x1, y0, y1 = 1, 0, 0, 1
    while b:
        q, a, b = a // b, b, a % b
        x0, x1 = x1, x0 - q * x1
        y0, y1 = y1, y0 - q * y1
    return a, x0, y0


def mod_inv(a: int, n: int) -> int:
    """Modular multiplicative inverse of a mod n."""
    g, x, _ = _extended_gcd(a % n, n)
    if g != 1:
        raise ValueError(f"No modular inverse for {a} mod {n}")
    return x % n


def resolve_hash(name: str = DEFAULT_HASH) -> hashes.HashAlgorithm:
    """
    Look up a transcript hash by name and make sure the backend can run it.

    Raises:
        RuntimeError: Unknown name, or the backend cannot instantiate it.
    """
    try:
        algorithm = HASH_ALGORITHMS[name.lower()]()
    except KeyError:
        raise RuntimeError(
            f"Unknown transcript hash {name!r}. "
            f"Choose one of: {', '.join(sorted(HASH_ALGORITHMS))}"
        ) from None
    try:
        hashes.Hash(algorithm)
    except UnsupportedAlgorithm as e:
        raise RuntimeError(f"Hash {name!r} unavailable in this backend: {e}") from e
    return algorithm


def transcript_hash(values, hash_name: str = DEFAULT_HASH) -> int:
    """
    Hash the ordered concatenation of the encoded values into one digest.

    The digest is read as a signed big-endian integer; callers reduce it.
    """
    digest = hashes.Hash(resolve_hash(hash_name))
    for value in values:
        digest.update(int_to_bytes(value))
    return bytes_to_int(digest.finalize())
