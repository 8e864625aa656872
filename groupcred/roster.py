"""Roster entries and group membership rosters.

A roster entry is a Pedersen commitment ``C = m*h + opening*g`` to the
attribute of a phone number. The group keeps only commitments, in three
permission tiers, and a verified credential is a member of a tier when the
commitment it disclosed is listed there.

Example:
    >>> from groupcred.parameters import SystemParameters
    >>> params = SystemParameters.create(b"\\x01" * 32)
    >>> rec = commit(b"14155550100", params, b"\\x02" * 32)
    >>> open(rec.commitment, rec.opening, b"14155550100", params)
    True
    >>> open(rec.commitment, rec.opening, b"14155550101", params)
    False

The tiers are independent: an owner is not implicitly an admin or a user.
"""

import logging

import msgpack
from petlib.hmac import secure_compare

import pytest

from .errors import CommitmentOpeningMismatch, DeserializationError, MembershipNotFound
from .group import POINT_LENGTH, SCALAR_LENGTH, default_group
from .nonces import SeededRandom
from .parameters import PROTOCOL_VERSION
from .phone_number import PhoneNumber

log = logging.getLogger(__name__)

ROSTER_ENTRY_LENGTH = POINT_LENGTH
ROSTER_ENTRY_COMMITMENT_LENGTH = POINT_LENGTH + SCALAR_LENGTH

OWNER = "owner"
ADMIN = "admin"
USER = "user"
TIERS = (OWNER, ADMIN, USER)


def pedersen(params, m, opening):
    """The roster commitment to attribute m under an opening."""
    return m * params.h + opening * params.g


class RosterEntry(object):
    """The public part of a roster entry: the commitment alone."""

    def __init__(self, C, grp=None):
        self.grp = grp or default_group()
        self.C = C

    def to_bytes(self):
        return self.grp.point_to_bytes(self.C)

    @staticmethod
    def from_bytes(data, grp=None):
        grp = grp or default_group()
        return RosterEntry(grp.point_from_bytes(data), grp)

    def __eq__(self, other):
        return isinstance(other, RosterEntry) and self.to_bytes() == other.to_bytes()

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        return hash(self.to_bytes())


class RosterEntryCommitment(object):
    """A roster commitment together with its opening. The opening stays
    with the user: only :attr:`entry` goes to the roster."""

    def __init__(self, commitment, opening, grp=None):
        self.grp = grp or default_group()
        self.commitment = commitment
        self.opening = opening

    @property
    def entry(self):
        return RosterEntry(self.commitment, self.grp)

    def opens_to(self, params, m):
        """Check the commitment against an attribute scalar, in constant time."""
        expected = self.grp.point_to_bytes(pedersen(params, m, self.opening))
        return secure_compare(expected, self.grp.point_to_bytes(self.commitment))

    def to_bytes(self):
        return self.grp.point_to_bytes(self.commitment) + \
            self.grp.scalar_to_bytes(self.opening)

    @staticmethod
    def from_bytes(data, grp=None):
        grp = grp or default_group()
        rd = grp.reader(data, ROSTER_ENTRY_COMMITMENT_LENGTH)
        commitment = rd.point()
        opening = rd.scalar()
        rd.done()
        return RosterEntryCommitment(commitment, opening, grp)


def commit(phone_number, params, seed, tracker=None):
    """Commit to a phone number under a fresh opening drawn from seed."""
    m = PhoneNumber.attribute(phone_number, params.grp)
    rng = SeededRandom(seed, b"roster.commit", tracker)
    opening = rng.scalar(params.grp.order)
    return RosterEntryCommitment(pedersen(params, m, opening), opening, params.grp)


def open(commitment, opening, phone_number, params):
    """True if commitment is the commitment to phone_number under opening."""
    m = PhoneNumber.attribute(phone_number, params.grp)
    return RosterEntryCommitment(commitment, opening, params.grp).opens_to(params, m)


def check_open(commitment, opening, phone_number, params):
    """As :func:`open`, raising CommitmentOpeningMismatch on a mismatch."""
    if not open(commitment, opening, phone_number, params):
        raise CommitmentOpeningMismatch("Commitment does not open to this phone number")


class Roster(object):
    """The membership roster of one group: a set of entries per tier.

    A roster is owned and mutated by its caller; it does no locking of
    its own.
    """

    def __init__(self, group_id=0, grp=None):
        self.grp = grp or default_group()
        self.group_id = group_id
        self.tiers = dict((t, set()) for t in TIERS)

    def _tier(self, tier):
        if tier not in self.tiers:
            raise KeyError("Unknown tier: %r" % (tier,))
        return self.tiers[tier]

    def add(self, entry, tier):
        self._tier(tier).add(entry)

    def remove(self, entry, tier):
        """Remove an entry from a tier, if present."""
        self._tier(tier).discard(entry)

    def members(self, tier):
        return sorted(self._tier(tier), key=lambda e: e.to_bytes())

    def __contains__(self, entry):
        return any(entry in s for s in self.tiers.values())

    def find(self, data, tier):
        """The entry of a tier whose encoding is exactly data."""
        for entry in self._tier(tier):
            if entry.to_bytes() == data:
                return entry
        raise MembershipNotFound("Not a member of the %s tier" % tier)

    def to_bytes(self):
        tiers = [[e.to_bytes() for e in self.members(t)] for t in TIERS]
        return msgpack.packb([PROTOCOL_VERSION, self.group_id] + tiers, use_bin_type=True)

    @staticmethod
    def from_bytes(data, grp=None):
        try:
            fields = msgpack.unpackb(data, raw=False)
        except (msgpack.exceptions.UnpackException, ValueError, TypeError):
            raise DeserializationError("Invalid roster encoding")

        if not isinstance(fields, list) or len(fields) != 2 + len(TIERS):
            raise DeserializationError("Invalid roster encoding")

        version, group_id = fields[:2]
        if version != PROTOCOL_VERSION:
            raise DeserializationError("Unsupported roster version: %r" % (version,))
        if not isinstance(group_id, int):
            raise DeserializationError("Invalid group id")

        roster = Roster(group_id, grp)
        for tier, entries in zip(TIERS, fields[2:]):
            if not isinstance(entries, list):
                raise DeserializationError("Invalid roster encoding")
            for data in entries:
                if not isinstance(data, bytes):
                    raise DeserializationError("Invalid roster entry")
                roster.add(RosterEntry.from_bytes(data, roster.grp), tier)
        return roster


def check_membership(verified, roster, tier):
    """The roster entry in tier equal to the commitment a verified credential
    disclosed. Raises MembershipNotFound otherwise."""
    try:
        return roster.find(verified.to_bytes(), tier)
    except MembershipNotFound:
        log.debug("Membership check failed for the %s tier", tier)
        raise


def check_owner(verified, roster):
    return check_membership(verified, roster, OWNER)


def check_admin(verified, roster):
    return check_membership(verified, roster, ADMIN)


def check_user(verified, roster):
    return check_membership(verified, roster, USER)


# --- TESTS ---

def _params():
    from .parameters import SystemParameters
    return SystemParameters.create(b"\x01" * 32)


def test_commit_open():
    params = _params()
    rec = commit(b"14155550100", params, b"\x02" * 32)
    assert open(rec.commitment, rec.opening, b"14155550100", params)
    assert not open(rec.commitment, rec.opening, b"14155550101", params)
    assert not open(rec.commitment, (rec.opening + 1) % params.grp.order, b"14155550100", params)

    check_open(rec.commitment, rec.opening, b"14155550100", params)
    with pytest.raises(CommitmentOpeningMismatch):
        check_open(rec.commitment, rec.opening, b"14155550101", params)


def test_commit_hiding():
    params = _params()
    seed = b"\x03" * 32
    a = commit(b"14155550100", params, seed).to_bytes()
    b = commit(b"14155550101", params, seed).to_bytes()
    assert len(a) == ROSTER_ENTRY_COMMITMENT_LENGTH
    assert a[:POINT_LENGTH] != b[:POINT_LENGTH]
    assert b"14155550100" not in a

    # Same seed and number, same commitment
    assert a == commit(b"14155550100", params, seed).to_bytes()


def test_commitment_io():
    params = _params()
    rec = commit(b"14155550100", params, b"\x04" * 32)
    rec2 = RosterEntryCommitment.from_bytes(rec.to_bytes())
    assert rec2.commitment == rec.commitment
    assert rec2.opening == rec.opening

    with pytest.raises(DeserializationError):
        RosterEntryCommitment.from_bytes(rec.to_bytes()[:-1])


class _Verified(object):
    def __init__(self, C):
        self.C = C

    def to_bytes(self):
        return default_group().point_to_bytes(self.C)


def test_tier_isolation():
    params = _params()
    owner = commit(b"1", params, b"\x05" * 32)
    admin = commit(b"2", params, b"\x06" * 32)
    user = commit(b"3", params, b"\x07" * 32)

    roster = Roster(group_id=42)
    roster.add(owner.entry, OWNER)
    roster.add(admin.entry, ADMIN)
    roster.add(user.entry, USER)

    assert check_owner(_Verified(owner.commitment), roster) == owner.entry
    assert check_admin(_Verified(admin.commitment), roster) == admin.entry
    assert check_user(_Verified(user.commitment), roster) == user.entry

    ## Tiers are not hierarchical
    with pytest.raises(MembershipNotFound):
        check_admin(_Verified(owner.commitment), roster)
    with pytest.raises(MembershipNotFound):
        check_user(_Verified(owner.commitment), roster)
    with pytest.raises(MembershipNotFound):
        check_owner(_Verified(user.commitment), roster)

    roster.remove(user.entry, USER)
    with pytest.raises(MembershipNotFound):
        check_user(_Verified(user.commitment), roster)

    with pytest.raises(KeyError):
        roster.add(user.entry, "moderator")


def test_roster_io():
    params = _params()
    roster = Roster(group_id=7)
    for i, tier in enumerate(TIERS):
        rec = commit(b"%d" % i, params, bytes([i + 1]) * 32)
        roster.add(rec.entry, tier)

    data = roster.to_bytes()
    roster2 = Roster.from_bytes(data)
    assert roster2.group_id == 7
    for tier in TIERS:
        assert roster2.members(tier) == roster.members(tier)
    assert roster2.to_bytes() == data

    with pytest.raises(DeserializationError):
        Roster.from_bytes(data[:-1])

    with pytest.raises(DeserializationError):
        Roster.from_bytes(msgpack.packb([PROTOCOL_VERSION + 1, 7, [], [], []]))

    with pytest.raises(DeserializationError):
        Roster.from_bytes(msgpack.packb([PROTOCOL_VERSION, 7, [b"\x00" * 33], [], []], use_bin_type=True))
