"""The prime order group all credential arithmetic happens in, and the fixed
width encodings of its elements.

Points are exported in SEC1 compressed form and scalars as big-endian byte
strings padded to the width of the group order. Decoding is strict: a buffer
either re-encodes to exactly the same bytes or is rejected.

Example:
    >>> grp = default_group()
    >>> g = grp.hash_to_point(b"example")
    >>> grp.point_from_bytes(grp.point_to_bytes(g)) == g
    True
    >>> len(grp.point_to_bytes(g)) == POINT_LENGTH
    True

"""

from hashlib import sha512

from petlib.ec import EcGroup, EcPt
from petlib.bn import Bn

import pytest

from .errors import DeserializationError

# NIST/SECG P-256 (prime256v1)
DEFAULT_NID = 415

POINT_LENGTH = 33
SCALAR_LENGTH = 32


class AlgebraicGroup(object):
    """An elliptic curve group of prime order with strict encodings."""

    def __init__(self, nid=DEFAULT_NID):
        self.G = EcGroup(nid)
        self.nid = nid
        self.order = self.G.order()

    def hash_to_point(self, label, data=b""):
        """Deterministically map a label and some data to a group element
        with no known discrete log relation to any other."""
        return self.G.hash_to_point(_frame([b"groupcred.h2g", label, data]))

    def hash_to_scalar(self, label, *parts):
        """Hash a list of byte strings into a scalar modulo the group order."""
        digest = sha512(_frame([b"groupcred.h2s", label] + list(parts))).digest()
        return Bn.from_binary(digest) % self.order

    def point_to_bytes(self, pt):
        data = pt.export()
        assert len(data) == POINT_LENGTH
        return data

    def point_from_bytes(self, data):
        """Decode a compressed point, rejecting anything but a canonical
        encoding of a finite point on the curve."""
        if len(data) != POINT_LENGTH:
            raise DeserializationError("A point must be %d bytes, got %d" % (POINT_LENGTH, len(data)))

        try:
            pt = EcPt.from_binary(data, self.G)
        except Exception:
            raise DeserializationError("Invalid point encoding")

        if not self.G.check_point(pt) or pt.is_infinite():
            raise DeserializationError("Invalid point encoding")

        if pt.export() != data:
            raise DeserializationError("Non-canonical point encoding")

        return pt

    def scalar_to_bytes(self, x):
        x = x % self.order
        data = x.binary()
        return b"\x00" * (SCALAR_LENGTH - len(data)) + data

    def scalar_from_bytes(self, data, nonzero=False):
        """Decode a scalar, rejecting values outside [0, order)."""
        if len(data) != SCALAR_LENGTH:
            raise DeserializationError("A scalar must be %d bytes, got %d" % (SCALAR_LENGTH, len(data)))

        x = Bn.from_binary(data)
        if x >= self.order:
            raise DeserializationError("Scalar out of range")
        if nonzero and x == 0:
            raise DeserializationError("Scalar must not be zero")
        return x

    def reader(self, data, length):
        """Returns a :class:`ByteReader` over data, which must be exactly
        length bytes long."""
        if len(data) != length:
            raise DeserializationError("Expected %d bytes, got %d" % (length, len(data)))
        return ByteReader(self, data)


class ByteReader(object):
    """Consumes a fixed layout buffer field by field."""

    def __init__(self, group, data):
        self.group = group
        self.data = bytes(data)
        self.pos = 0

    def take(self, n):
        if self.pos + n > len(self.data):
            raise DeserializationError("Buffer too short")
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def point(self):
        return self.group.point_from_bytes(self.take(POINT_LENGTH))

    def scalar(self, nonzero=False):
        return self.group.scalar_from_bytes(self.take(SCALAR_LENGTH), nonzero)

    def done(self):
        if self.pos != len(self.data):
            raise DeserializationError("Trailing bytes in buffer")


def _frame(parts):
    # Length prefixed, so that distinct lists never frame to the same string
    return b"".join(b"%d|" % len(p) + p for p in parts)


_default = None

def default_group():
    """The group of the current protocol version, built once."""
    global _default
    if _default is None:
        _default = AlgebraicGroup(DEFAULT_NID)
    return _default


# --- TESTS ---

def test_point_io():
    grp = default_group()
    o = grp.order
    pt = o.random() * grp.hash_to_point(b"test")
    data = grp.point_to_bytes(pt)
    assert len(data) == POINT_LENGTH
    assert grp.point_from_bytes(data) == pt


def test_point_rejects():
    grp = default_group()
    data = grp.point_to_bytes(grp.hash_to_point(b"test"))

    with pytest.raises(DeserializationError):
        grp.point_from_bytes(data[:-1])

    with pytest.raises(DeserializationError):
        grp.point_from_bytes(b"\x05" + data[1:])

    with pytest.raises(DeserializationError):
        grp.point_from_bytes(b"\xff" * POINT_LENGTH)


def test_scalar_io():
    grp = default_group()
    x = grp.order.random()
    data = grp.scalar_to_bytes(x)
    assert len(data) == SCALAR_LENGTH
    assert grp.scalar_from_bytes(data) == x

    assert grp.scalar_to_bytes(Bn(0)) == b"\x00" * SCALAR_LENGTH
    assert grp.scalar_from_bytes(b"\x00" * SCALAR_LENGTH) == 0


def test_scalar_rejects():
    grp = default_group()
    with pytest.raises(DeserializationError):
        grp.scalar_from_bytes(b"\xff" * SCALAR_LENGTH)

    with pytest.raises(DeserializationError):
        grp.scalar_from_bytes(grp.scalar_to_bytes(grp.order - 1)[1:])

    with pytest.raises(DeserializationError):
        grp.scalar_from_bytes(b"\x00" * SCALAR_LENGTH, nonzero=True)


def test_hash_to_point_independent():
    grp = default_group()
    g = grp.hash_to_point(b"g")
    h = grp.hash_to_point(b"h")
    assert g != h
    assert g == grp.hash_to_point(b"g")
    assert grp.G.check_point(g)


def test_hash_to_scalar_framing():
    grp = default_group()
    assert grp.hash_to_scalar(b"t", b"ab", b"c") != grp.hash_to_scalar(b"t", b"a", b"bc")
    assert grp.hash_to_scalar(b"t", b"ab") == grp.hash_to_scalar(b"t", b"ab")


def test_reader():
    grp = default_group()
    x = grp.order.random()
    pt = x * grp.hash_to_point(b"r")
    data = grp.point_to_bytes(pt) + grp.scalar_to_bytes(x)

    rd = grp.reader(data, POINT_LENGTH + SCALAR_LENGTH)
    assert rd.point() == pt
    assert rd.scalar() == x
    rd.done()

    with pytest.raises(DeserializationError):
        grp.reader(data + b"\x00", POINT_LENGTH + SCALAR_LENGTH)
