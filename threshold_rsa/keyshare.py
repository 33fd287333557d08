"""
Threshold RSA — secret key shares.

A KeyShare is one party's piece of the RSA signing exponent in a (k,l)
threshold scheme (Shoup, "Practical Threshold Signatures"). It is created
by the dealer with the secret and group data, then becomes usable once the
dealer attaches the public verifiers.

Two encodings are provided:
    - holder-private (to_bytes / to_string): includes the secret, for the
      holder's own storage only. Never send it to the combiner or a peer.
    - public (to_public_bytes / to_public_string): everything but the
      secret. This is what the dealer publishes and peers verify against.

Layout (all integers minimal big-endian two's complement, each length a
4-byte signed big-endian byte count):
    id(4) | len(4) secret | len(4) n | len(4) delta | len(4) verifier | len(4) group_verifier
The public layout is the same without the secret field.
"""

import base64
import binascii
import enum
import logging
import struct

from .sigshare import SigShare, Verifier, challenge, message_to_int
from .util import (
    DEFAULT_HASH, FOUR, L1, DecodeError, ShareStateError,
    bytes_to_int, default_rng, int_to_bytes,
)

logger = logging.getLogger(__name__)


class ShareState(enum.Enum):
    UNVERIFIED = 'unverified'
    READY = 'ready'


def _pack_fields(share_id: int, values: list) -> bytes:
    out = [struct.pack('>i', share_id)]
    for value in values:
        raw = int_to_bytes(value)
        out.append(struct.pack('>i', len(raw)))
        out.append(raw)
    return b''.join(out)


def _unpack_fields(data: bytes, count: int) -> tuple:
    """
    Read the id and `count` length-prefixed integers.

    Raises DecodeError on a short buffer, a bad length or trailing bytes.
    """
    if len(data) < 4:
        raise DecodeError(f"Share too short: {len(data)} bytes, need at least 4 for id")
    share_id = struct.unpack_from('>i', data, 0)[0]
    if share_id < 1:
        raise DecodeError(f"Invalid share id {share_id}, ids start at 1")
    offset = 4

    values = []
    for field in range(count):
        if offset + 4 > len(data):
            raise DecodeError(f"Truncated share: missing length prefix of field {field + 1}")
        length = struct.unpack_from('>i', data, offset)[0]
        offset += 4
        if length <= 0:
            raise DecodeError(f"Invalid length {length} for field {field + 1}")
        if offset + length > len(data):
            raise DecodeError(
                f"Truncated share: field {field + 1} declares {length} bytes, "
                f"only {len(data) - offset} left"
            )
        values.append(bytes_to_int(data[offset:offset + length]))
        offset += length

    if offset != len(data):
        raise DecodeError(f"{len(data) - offset} trailing bytes after last field")

    return share_id, values


def _b64decode(text) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid base64 share: {e}") from e


class PublicShare:
    """The public half of a key share: no secret, safe to publish."""

    def __init__(self, id: int, n: int, delta: int, verifier: int, group_verifier: int):
        self.id = id
        self.n = n
        self.delta = delta
        self.verifier = verifier
        self.group_verifier = group_verifier

    def __eq__(self, other):
        if not isinstance(other, PublicShare):
            return NotImplemented
        return (self.id, self.n, self.delta, self.verifier, self.group_verifier) == \
            (other.id, other.n, other.delta, other.verifier, other.group_verifier)

    def __repr__(self):
        return f"PublicShare[{self.id}]"

    def to_bytes(self) -> bytes:
        return _pack_fields(self.id, [self.n, self.delta, self.verifier, self.group_verifier])

    def to_string(self) -> str:
        return base64.b64encode(self.to_bytes()).decode('ascii')

    @classmethod
    def from_bytes(cls, data: bytes) -> 'PublicShare':
        share_id, (n, delta, verifier, group_verifier) = _unpack_fields(data, 4)
        return cls(share_id, n, delta, verifier, group_verifier)

    @classmethod
    def from_string(cls, text: str) -> 'PublicShare':
        return cls.from_bytes(_b64decode(text))


class KeyShare:
    """A secret key share for an RSA (k,l) threshold scheme."""

    def __init__(self, id: int, secret: int, n: int, delta: int):
        self.id = id
        self.secret = secret
        self.n = n
        self.delta = delta
        # Attached later by the dealer via set_verifiers()
        self.verifier = None
        self.group_verifier = None
        # Exponent actually applied when signing
        self.sign_val = FOUR * delta * secret

    @property
    def state(self) -> ShareState:
        if self.verifier is None or self.group_verifier is None:
            return ShareState.UNVERIFIED
        return ShareState.READY

    def set_verifiers(self, verifier: int, group_verifier: int):
        """Attach the dealer's public verification values. Once only."""
        if self.state is ShareState.READY:
            raise ShareStateError(f"Share {self.id} already has verifiers attached")
        if verifier is None or group_verifier is None:
            raise ShareStateError(
                f"Share {self.id} needs both verifier and group verifier, got "
                f"verifier={'missing' if verifier is None else 'set'}, "
                f"group verifier={'missing' if group_verifier is None else 'set'}"
            )
        self.verifier = verifier
        self.group_verifier = group_verifier

    def _require_ready(self, action: str):
        if self.state is not ShareState.READY:
            raise ShareStateError(
                f"Cannot {action} share {self.id}: verifiers not attached. "
                "Call set_verifiers() first."
            )

    def __eq__(self, other):
        if not isinstance(other, KeyShare):
            return NotImplemented
        return (self.id, self.secret, self.n, self.delta, self.verifier, self.group_verifier) == \
            (other.id, other.secret, other.n, other.delta, other.verifier, other.group_verifier)

    def __repr__(self):
        return f"KeyShare[{self.id}, {self.state.value}]"

    def public(self) -> PublicShare:
        self._require_ready('export')
        return PublicShare(self.id, self.n, self.delta, self.verifier, self.group_verifier)

    # Encodings
    # ..........................................................................

    def to_bytes(self) -> bytes:
        """Holder-private encoding. Contains the secret."""
        self._require_ready('encode')
        return _pack_fields(self.id, [self.secret, self.n, self.delta,
                                      self.verifier, self.group_verifier])

    def to_string(self) -> str:
        """Holder-private base64 encoding. Contains the secret."""
        return base64.b64encode(self.to_bytes()).decode('ascii')

    def to_public_bytes(self) -> bytes:
        return self.public().to_bytes()

    def to_public_string(self) -> str:
        return self.public().to_string()

    @classmethod
    def from_bytes(cls, data: bytes) -> 'KeyShare':
        share_id, (secret, n, delta, verifier, group_verifier) = _unpack_fields(data, 5)
        share = cls(share_id, secret, n, delta)
        share.set_verifiers(verifier, group_verifier)
        return share

    @classmethod
    def from_string(cls, text: str) -> 'KeyShare':
        return cls.from_bytes(_b64decode(text))

    # Signing
    # ..........................................................................

    def sign(self, b: bytes, rng=None, hash_name: str = DEFAULT_HASH) -> SigShare:
        """
        Create a signature share and its proof for message representative b.

        Refer to Shoup pg. 8.

        Args:
            b: Message representative bytes (already hashed/padded by the caller)
            rng: Source of r, anything with getrandbits(k). Defaults to the
                process-wide CSPRNG.
            hash_name: Transcript hash, must match the verifier's

        Returns:
            SigShare(id, x^sign_val mod n, proof)
        """
        self._require_ready('sign with')
        rng = rng or default_rng()
        n = self.n

        x = message_to_int(b, n)

        # r in [0, 2^(L(n) + 3*L1))
        r = rng.getrandbits(n.bit_length() + 3 * L1)
        vprime = pow(self.group_verifier, r, n)
        xtilde = pow(x, FOUR * self.delta, n)
        xprime = pow(xtilde, r, n)
        sig = pow(x, self.sign_val, n)

        c = challenge(n, self.group_verifier, xtilde, self.verifier,
                      sig, vprime, xprime, hash_name)
        z = c * self.secret + r

        logger.debug("share %s: signed %d-byte representative", self.id, len(b))
        return SigShare(self.id, sig, Verifier(z, c, self.verifier, self.group_verifier))
