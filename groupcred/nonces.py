"""Seeds and the deterministic randomness derived from them.

The core never gathers entropy itself. Every randomized operation takes a
32 byte seed from the caller and expands it, under a per-operation label,
into an AES-256-CTR key stream from which scalars are drawn. The same seed
and label always give the same stream.

A seed must never be reused: two issuances or presentations from one seed
leak the blinding factors (and, for the issuer, the MAC key). This module
rejects the all-zero seed, and rejects any seed a caller-supplied
:class:`SeedTracker` has already seen.
"""

import threading
from hashlib import sha256

from petlib.bn import Bn
from petlib.cipher import Cipher

import pytest

from .errors import DeserializationError, SeedReuseError

SEED_LENGTH = 32

_ZERO_SEED = b"\x00" * SEED_LENGTH


class SeedTracker(object):
    """Remembers the seeds it has been shown, by digest, and refuses repeats.

    The tracker is owned by the caller and may be shared between threads.
    """

    def __init__(self):
        self._seen = set()
        self._lock = threading.Lock()

    def check(self, seed):
        digest = sha256(b"groupcred.seen|" + seed).digest()
        with self._lock:
            if digest in self._seen:
                raise SeedReuseError("Seed has already been used")
            self._seen.add(digest)

    def __len__(self):
        with self._lock:
            return len(self._seen)


def check_seed(seed, tracker=None):
    """Ensure seed is a usable single-use seed."""
    if not isinstance(seed, (bytes, bytearray)) or len(seed) != SEED_LENGTH:
        raise DeserializationError("A seed must be exactly %d bytes" % SEED_LENGTH)

    if bytes(seed) == _ZERO_SEED:
        raise SeedReuseError("The all-zero seed is not a seed")

    if tracker is not None:
        tracker.check(bytes(seed))


class SeededRandom(object):
    """A deterministic source of scalars keyed by a seed and a label.

    Example:
        >>> o = Bn(1000003)
        >>> a = SeededRandom(b"\\x01" * 32, b"doc").scalar(o)
        >>> b = SeededRandom(b"\\x01" * 32, b"doc").scalar(o)
        >>> a == b and 0 < a < o
        True

    """

    def __init__(self, seed, label, tracker=None):
        check_seed(seed, tracker)
        key = sha256(b"groupcred.rng|" + label + b"|" + bytes(seed)).digest()
        self._stream = Cipher("AES-256-CTR").enc(key, b"\x00" * 16)

    @staticmethod
    def from_witness(label, *parts):
        """Derive a stream from secret witness material rather than a fresh
        seed, or from a seed together with the statement it is used for. The
        same witness and statement then always give the same proof."""
        H = sha256(b"groupcred.witness|" + label)
        for p in parts:
            H.update(b"%d|" % len(p) + p)
        return SeededRandom(H.digest(), label)

    def random_bytes(self, n):
        return self._stream.update(b"\x00" * n)

    def scalar(self, order):
        """A uniform non-zero scalar modulo order (wide reduction of 512 bits)."""
        while True:
            x = Bn.from_binary(self.random_bytes(64)) % order
            if x != 0:
                return x

    def scalars(self, order, n):
        return [self.scalar(order) for _ in range(n)]


def test_check_seed():
    check_seed(b"\x01" * SEED_LENGTH)

    with pytest.raises(DeserializationError):
        check_seed(b"\x01" * (SEED_LENGTH - 1))

    with pytest.raises(DeserializationError):
        check_seed(None)

    with pytest.raises(SeedReuseError):
        check_seed(_ZERO_SEED)


def test_tracker():
    tracker = SeedTracker()
    check_seed(b"\x01" * SEED_LENGTH, tracker)
    check_seed(b"\x02" * SEED_LENGTH, tracker)
    assert len(tracker) == 2

    with pytest.raises(SeedReuseError):
        check_seed(b"\x01" * SEED_LENGTH, tracker)


def test_deterministic_stream():
    order = Bn(2) ** 255
    r1 = SeededRandom(b"\x07" * SEED_LENGTH, b"label")
    r2 = SeededRandom(b"\x07" * SEED_LENGTH, b"label")
    assert r1.scalars(order, 3) == r2.scalars(order, 3)

    r3 = SeededRandom(b"\x07" * SEED_LENGTH, b"other")
    assert r3.scalar(order) != SeededRandom(b"\x07" * SEED_LENGTH, b"label").scalar(order)


def test_from_witness():
    order = Bn(2) ** 255
    a = SeededRandom.from_witness(b"w", b"secret", b"stmt").scalar(order)
    b = SeededRandom.from_witness(b"w", b"secret", b"stmt").scalar(order)
    c = SeededRandom.from_witness(b"w", b"secretstmt").scalar(order)
    assert a == b
    assert 0 < a < order
    assert a != c
