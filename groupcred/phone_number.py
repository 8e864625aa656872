"""The phone number attribute.

A phone number arrives already canonicalised, as an opaque byte string with
one byte per digit. It enters the protocol only as a scalar, hashed into the
group order, so its length and syntax are never checked here.
"""

import pytest

from .errors import DeserializationError
from .group import default_group

PHONE_NUMBER_LABEL = b"phone_number"


class PhoneNumber(object):
    """A canonical phone number and the attribute scalar it encodes to."""

    def __init__(self, number, grp=None):
        if not isinstance(number, (bytes, bytearray)):
            raise DeserializationError("A phone number must be a byte string")
        self.grp = grp or default_group()
        self.number = bytes(number)
        self.m = self.grp.hash_to_scalar(PHONE_NUMBER_LABEL, self.number)

    @staticmethod
    def attribute(number, grp=None):
        """The attribute scalar for a phone number, or an existing
        :class:`PhoneNumber` passed through."""
        if isinstance(number, PhoneNumber):
            return number.m
        return PhoneNumber(number, grp).m

    def __eq__(self, other):
        return isinstance(other, PhoneNumber) and self.m == other.m

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        return hash(self.number)

    def __repr__(self):
        return "PhoneNumber(<%d digits>)" % len(self.number)


def test_attribute():
    a = PhoneNumber(b"14155550100")
    b = PhoneNumber(bytearray(b"14155550100"))
    c = PhoneNumber(b"14155550101")
    assert a == b
    assert a != c
    assert 0 <= a.m < a.grp.order
    assert PhoneNumber.attribute(a) == a.m
    assert PhoneNumber.attribute(b"14155550100") == a.m


def test_no_syntax_checks():
    PhoneNumber(b"")
    PhoneNumber(b"\xff" * 100)

    with pytest.raises(DeserializationError):
        PhoneNumber(u"14155550100")


def test_repr_hides_number():
    assert b"4155550100".decode() not in repr(PhoneNumber(b"14155550100"))
