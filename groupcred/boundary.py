"""Byte buffer entry points, for callers that hold every object in its
serialized form (such as a foreign function interface).

Every function takes byte strings and returns a :class:`Result`. A successful
result carries a buffer of exactly the documented length; a failed one
carries the protocol error for local inspection and puts nothing on the wire.
Only :class:`~groupcred.errors.CredentialError` is turned into a failed
result, and all of its kinds look the same to a remote caller.

Example:
    >>> params = system_parameters_create(b"\\x01" * 32)
    >>> len(params.to_wire())
    66
    >>> res = system_parameters_create(b"\\x01" * 31)
    >>> bool(res), res.to_wire()
    (False, b'')

"""

import logging
import random
from functools import wraps

import pytest

from .credential import (CredentialRequest, CredentialIssuance, CredentialPresentation,
                         VerifiedCredential, CREDENTIAL_REQUEST_LENGTH,
                         CREDENTIAL_ISSUANCE_LENGTH, CREDENTIAL_PRESENTATION_LENGTH,
                         VERIFIED_CREDENTIAL_LENGTH)
from .errors import CredentialError, CommitmentOpeningMismatch
from .issuer import (Issuer, IssuerKeyPair, IssuerParameters, ISSUER_LENGTH,
                     ISSUER_KEYPAIR_LENGTH, ISSUER_PARAMETERS_LENGTH)
from .parameters import SystemParameters, SYSTEM_PARAMETERS_LENGTH
from .roster import (Roster, RosterEntryCommitment, ROSTER_ENTRY_COMMITMENT_LENGTH,
                     OWNER, ADMIN, USER)
from .user import User, Credential, user_show as _user_show, USER_LENGTH, CREDENTIAL_LENGTH
from . import roster

log = logging.getLogger(__name__)

_TRUE = b"\x01"


class Result(object):
    """Either a byte string or the error that prevented producing it."""

    def __init__(self, value=None, error=None):
        assert (value is None) != (error is None)
        self.value = value
        self.error = error

    @staticmethod
    def success(value):
        return Result(value=value)

    @staticmethod
    def failure(error):
        return Result(error=error)

    @property
    def ok(self):
        return self.error is None

    def __bool__(self):
        return self.ok

    def to_wire(self):
        """The buffer to hand to a remote caller: empty on failure."""
        if self.ok:
            return self.value
        return b""

    def unwrap(self):
        if not self.ok:
            raise self.error
        return self.value

    def __repr__(self):
        if self.ok:
            return "Result.success(<%d bytes>)" % len(self.value)
        return "Result.failure(%s)" % type(self.error).__name__


def returns(length):
    """A decorator catching protocol errors and checking the output length."""

    def wrap(f):
        @wraps(f)
        def new_f(*args, **kwargs):
            try:
                out = f(*args, **kwargs)
            except CredentialError as e:
                log.debug("%s failed: %s", f.__name__, type(e).__name__)
                return Result.failure(e)

            assert len(out) == length
            return Result.success(out)
        return new_f
    return wrap


@returns(SYSTEM_PARAMETERS_LENGTH)
def system_parameters_create(seed):
    return SystemParameters.create(seed).to_bytes()


@returns(ISSUER_KEYPAIR_LENGTH)
def issuer_create(system_parameters, seed, tracker=None):
    """A fresh issuer keypair."""
    params = SystemParameters.from_bytes(system_parameters)
    return IssuerKeyPair.keygen(params, seed, tracker).to_bytes(params.grp)


@returns(ISSUER_LENGTH)
def issuer_new(system_parameters, keypair):
    """The issuer state for a keypair."""
    params = SystemParameters.from_bytes(system_parameters)
    return Issuer.load(params, keypair).to_bytes()


@returns(ISSUER_PARAMETERS_LENGTH)
def issuer_get_issuer_parameters(issuer):
    return Issuer.from_bytes(issuer).public_parameters().to_bytes()


@returns(USER_LENGTH)
def user_new(system_parameters, phone_number, issuer_parameters, seed, tracker=None):
    params = SystemParameters.from_bytes(system_parameters)
    issuer_params = IssuerParameters.from_bytes(params, issuer_parameters)
    return User.new(params, issuer_params, phone_number, seed, tracker).to_bytes()


@returns(CREDENTIAL_REQUEST_LENGTH)
def user_obtain(user):
    return User.from_bytes(user).obtain().to_bytes()


@returns(CREDENTIAL_ISSUANCE_LENGTH)
def issuer_issue(issuer, seed, request, phone_number, tracker=None):
    issuer = Issuer.from_bytes(issuer)
    req = CredentialRequest.from_bytes(request, issuer.params.grp)
    return issuer.issue(req, phone_number, seed, tracker).to_bytes()


@returns(CREDENTIAL_LENGTH)
def user_obtain_finish(user, issuance):
    """The credential, if issuance verifies for user."""
    user = User.from_bytes(user)
    issuance = CredentialIssuance.from_bytes(issuance, user.params.grp)
    return user.obtain_finish(issuance).to_bytes()


@returns(CREDENTIAL_PRESENTATION_LENGTH)
def user_show(credential, seed, roster_entry_commitment, tracker=None):
    """A presentation of credential disclosing the commitment half of
    roster_entry_commitment, which must be to the credential's phone number."""
    cred = Credential.from_bytes(credential)
    entry = RosterEntryCommitment.from_bytes(roster_entry_commitment, cred.user.params.grp)
    return _user_show(cred, seed, entry, tracker).to_bytes()


@returns(VERIFIED_CREDENTIAL_LENGTH)
def issuer_verify(issuer, presentation):
    issuer = Issuer.from_bytes(issuer)
    presentation = CredentialPresentation.from_bytes(presentation, issuer.params.grp)
    return issuer.verify(presentation).to_bytes()


@returns(len(_TRUE))
def _verify_roster_membership(issuer, verified_credential, roster_bytes, tier):
    issuer = Issuer.from_bytes(issuer)
    verified = VerifiedCredential.from_bytes(verified_credential, issuer.params.grp)
    issuer.verify_roster_membership(verified, Roster.from_bytes(roster_bytes), tier)
    return _TRUE


def issuer_verify_roster_membership_owner(issuer, verified_credential, roster_bytes):
    return _verify_roster_membership(issuer, verified_credential, roster_bytes, OWNER)


def issuer_verify_roster_membership_admin(issuer, verified_credential, roster_bytes):
    return _verify_roster_membership(issuer, verified_credential, roster_bytes, ADMIN)


def issuer_verify_roster_membership_user(issuer, verified_credential, roster_bytes):
    return _verify_roster_membership(issuer, verified_credential, roster_bytes, USER)


@returns(ROSTER_ENTRY_COMMITMENT_LENGTH)
def roster_entry_commitment_create(phone_number, system_parameters, seed, tracker=None):
    params = SystemParameters.from_bytes(system_parameters)
    return roster.commit(phone_number, params, seed, tracker).to_bytes()


@returns(len(_TRUE))
def roster_entry_commitment_open(roster_entry_commitment, phone_number, system_parameters):
    """Succeeds when the commitment (which carries its opening) is to
    phone_number."""
    params = SystemParameters.from_bytes(system_parameters)
    rec = RosterEntryCommitment.from_bytes(roster_entry_commitment, params.grp)
    roster.check_open(rec.commitment, rec.opening, phone_number, params)
    return _TRUE


# --- TESTS ---

PHONE = b"14155550100"


def _run(phone_number=PHONE):
    """Drive the whole protocol through the byte interface."""
    params = system_parameters_create(b"\x01" * 32).unwrap()
    keypair = issuer_create(params, b"\x02" * 32).unwrap()
    issuer = issuer_new(params, keypair).unwrap()
    issuer_params = issuer_get_issuer_parameters(issuer).unwrap()

    user = user_new(params, phone_number, issuer_params, b"\x03" * 32).unwrap()
    request = user_obtain(user).unwrap()
    issuance = issuer_issue(issuer, b"\x04" * 32, request, phone_number).unwrap()
    credential = user_obtain_finish(user, issuance).unwrap()
    return params, issuer, user, request, issuance, credential


def _rec(params, phone_number=PHONE, seed=b"\x06" * 32):
    return roster_entry_commitment_create(phone_number, params, seed).unwrap()


def _flip(data, rnd):
    i = rnd.randrange(len(data) * 8)
    flipped = bytearray(data)
    flipped[i // 8] ^= 1 << (i % 8)
    return bytes(flipped)


def test_round_trip():
    phones = [PHONE, b"14155550101", b"447700900123"]
    runs = [_run(p) for p in phones]

    ## Everything the issuer handles while issuing
    issuer_side = []
    for _, _, _, request, issuance, _ in runs:
        issuer_side += [request, issuance, request[:VERIFIED_CREDENTIAL_LENGTH]]

    params, issuer, user, _, _, credential = runs[0]
    rec = _rec(params)
    presentation = user_show(credential, b"\x05" * 32, rec).unwrap()
    verified = issuer_verify(issuer, presentation).unwrap()
    assert len(verified) == VERIFIED_CREDENTIAL_LENGTH
    assert verified == rec[:VERIFIED_CREDENTIAL_LENGTH]

    ## The disclosed commitment cannot be matched against any issuance
    for data in issuer_side:
        assert verified != data
        assert verified not in data

    ## It opens with the roster entry opening only
    rho = user[-32:]
    assert roster_entry_commitment_open(rec, PHONE, params)
    assert not roster_entry_commitment_open(rec, phones[1], params)
    assert not roster_entry_commitment_open(verified + rho, PHONE, params)


def test_show_needs_matching_roster_entry():
    params, issuer, _, _, _, credential = _run()
    other = _rec(params, b"14155550101")
    res = user_show(credential, b"\x05" * 32, other)
    assert not res
    assert isinstance(res.error, CommitmentOpeningMismatch)
    assert res.to_wire() == b""

    assert not user_show(credential, b"\x05" * 32, b"")
    assert not user_show(credential, b"\x05" * 32, _rec(params)[:-1])


def test_lengths():
    params, issuer, user, request, issuance, credential = _run()
    assert len(params) == 66
    assert len(issuer) == 162
    assert len(issuer_get_issuer_parameters(issuer).unwrap()) == 66
    assert len(user) == 196
    assert len(request) == 97
    assert len(issuance) == 194
    assert len(credential) == 262
    assert len(user_show(credential, b"\x05" * 32, _rec(params)).unwrap()) == 292
    assert len(_rec(params)) == 65


def test_unlinkable():
    params, issuer, _, _, _, credential = _run()
    rec = _rec(params)
    p1 = user_show(credential, b"\x05" * 32, rec).unwrap()
    p2 = user_show(credential, b"\x06" * 32, rec).unwrap()
    assert p1 != p2

    ## Only the disclosed commitment is shared
    start, end = 3 * 33, 4 * 33
    assert p1[start:end] == p2[start:end]

    run = longest = 0
    for i, (a, b) in enumerate(zip(p1, p2)):
        run = run + 1 if a == b and not start <= i < end else 0
        longest = max(longest, run)
    assert longest < 8


def test_tamper_issuance():
    rnd = random.Random(1)
    params, issuer, user, request, issuance, credential = _run()
    for _ in range(200):
        res = user_obtain_finish(user, _flip(issuance, rnd))
        assert not res
        assert res.to_wire() == b""


def test_tamper_presentation():
    rnd = random.Random(2)
    params, issuer, user, request, issuance, credential = _run()
    presentation = user_show(credential, b"\x05" * 32, _rec(params)).unwrap()
    for _ in range(200):
        assert not issuer_verify(issuer, _flip(presentation, rnd))


def test_tamper_roster_entry_commitment():
    rnd = random.Random(3)
    params = system_parameters_create(b"\x01" * 32).unwrap()
    rec = _rec(params)
    assert roster_entry_commitment_open(rec, PHONE, params)
    for _ in range(200):
        assert not roster_entry_commitment_open(_flip(rec, rnd), PHONE, params)


def test_wrong_key():
    params, issuer, _, _, _, credential = _run()
    other = issuer_new(params, issuer_create(params, b"\x09" * 32).unwrap()).unwrap()
    presentation = user_show(credential, b"\x05" * 32, _rec(params)).unwrap()
    assert issuer_verify(issuer, presentation)
    assert not issuer_verify(other, presentation)


def test_wrong_phone_number():
    params, issuer, user, request, _, _ = _run()
    assert not issuer_issue(issuer, b"\x04" * 32, request, b"14155550101")


def test_roster_membership():
    params, issuer, _, _, _, credential = _run()
    rec = _rec(params)
    verified = issuer_verify(issuer, user_show(credential, b"\x05" * 32, rec).unwrap()).unwrap()

    members = Roster(group_id=1)
    members.add(RosterEntryCommitment.from_bytes(rec).entry, ADMIN)
    data = members.to_bytes()

    assert issuer_verify_roster_membership_admin(issuer, verified, data)
    assert not issuer_verify_roster_membership_owner(issuer, verified, data)
    assert not issuer_verify_roster_membership_user(issuer, verified, data)
    assert not issuer_verify_roster_membership_admin(issuer, verified, data[:-1])


def test_deterministic():
    a = _run()
    b = _run()
    assert a == b

    params = a[0]
    assert _rec(params) == _rec(params)


def test_seed_hygiene():
    from .nonces import SeedTracker
    from .errors import SeedReuseError
    params, issuer, _, _, _, credential = _run()
    rec = _rec(params)

    res = user_show(credential, b"\x00" * 32, rec)
    assert isinstance(res.error, SeedReuseError)

    tracker = SeedTracker()
    assert user_show(credential, b"\x05" * 32, rec, tracker=tracker)
    res = user_show(credential, b"\x05" * 32, rec, tracker=tracker)
    assert isinstance(res.error, SeedReuseError)

    assert not issuer_create(params, b"\x02" * 31)


def test_bad_buffers():
    params, issuer, user, request, issuance, credential = _run()
    assert not issuer_new(params, b"")
    assert not issuer_get_issuer_parameters(issuer[:-1])
    assert not user_obtain(user + b"\x00")
    assert not user_show(credential[:-1], b"\x05" * 32, _rec(params))
    assert not issuer_verify(issuer, b"")

    with pytest.raises(CredentialError):
        issuer_verify(issuer, b"").unwrap()
