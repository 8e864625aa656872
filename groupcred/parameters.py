"""System parameters: the two public generators every party shares.

Both generators are derived from a 32 byte seed by hashing into the group
under distinct labels, so that anyone holding the seed can check that nobody
knows the discrete log of one with respect to the other.

Example:
    >>> params = SystemParameters.create(b"\\x01" * 32)
    >>> data = params.to_bytes()
    >>> len(data) == SYSTEM_PARAMETERS_LENGTH
    True
    >>> SystemParameters.from_bytes(data) == params
    True

"""

import pytest

from .errors import DeserializationError
from .group import POINT_LENGTH, default_group
from .nonces import SEED_LENGTH

PROTOCOL_VERSION = 1

SYSTEM_PARAMETERS_LENGTH = 2 * POINT_LENGTH


class SystemParameters(object):
    """The generators g and h of the protocol group."""

    def __init__(self, g, h, grp=None):
        self.grp = grp or default_group()
        if g == h:
            raise DeserializationError("The generators g and h must differ")
        self.g = g
        self.h = h

    @staticmethod
    def create(seed):
        """Expand a seed into system parameters. The same seed always gives
        the same parameters."""
        if not isinstance(seed, (bytes, bytearray)) or len(seed) != SEED_LENGTH:
            raise DeserializationError("A seed must be exactly %d bytes" % SEED_LENGTH)

        grp = default_group()
        data = b"%d|" % PROTOCOL_VERSION + bytes(seed)
        g = grp.hash_to_point(b"system_parameters.g", data)
        h = grp.hash_to_point(b"system_parameters.h", data)
        return SystemParameters(g, h, grp)

    def to_bytes(self):
        return self.grp.point_to_bytes(self.g) + self.grp.point_to_bytes(self.h)

    @staticmethod
    def from_bytes(data, grp=None):
        grp = grp or default_group()
        rd = grp.reader(data, SYSTEM_PARAMETERS_LENGTH)
        g = rd.point()
        h = rd.point()
        rd.done()
        return SystemParameters(g, h, grp)

    def __eq__(self, other):
        return isinstance(other, SystemParameters) and \
            self.grp.nid == other.grp.nid and \
            self.g == other.g and self.h == other.h

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        return hash(self.to_bytes())


def test_create_deterministic():
    p1 = SystemParameters.create(b"\x01" * SEED_LENGTH)
    p2 = SystemParameters.create(b"\x01" * SEED_LENGTH)
    p3 = SystemParameters.create(b"\x02" * SEED_LENGTH)
    assert p1.to_bytes() == p2.to_bytes()
    assert p1 != p3
    assert p1.g != p1.h


def test_create_bad_seed():
    with pytest.raises(DeserializationError):
        SystemParameters.create(b"\x01" * (SEED_LENGTH + 1))

    with pytest.raises(DeserializationError):
        SystemParameters.create(b"")


def test_from_bytes():
    params = SystemParameters.create(b"\x03" * SEED_LENGTH)
    data = params.to_bytes()
    assert len(data) == SYSTEM_PARAMETERS_LENGTH
    assert SystemParameters.from_bytes(data) == params

    with pytest.raises(DeserializationError):
        SystemParameters.from_bytes(data[:-1])

    with pytest.raises(DeserializationError):
        SystemParameters.from_bytes(data + b"\x00")

    # Both generators the same
    g = data[:POINT_LENGTH]
    with pytest.raises(DeserializationError):
        SystemParameters.from_bytes(g + g)
