## The user side of the credential protocol: asking for a credential,
## checking what the issuer returns, and showing the credential.

import logging

import pytest

from .amacs import rerandomize_ggm
from .credential import CredentialRequest, CredentialPresentation
from .errors import (CommitmentOpeningMismatch, DeserializationError,
                     KeyMismatchError, ProofVerificationError)
from .group import POINT_LENGTH, SCALAR_LENGTH
from .issuer import IssuerParameters, ISSUER_PARAMETERS_LENGTH
from .nonces import SeededRandom
from .parameters import SystemParameters, SYSTEM_PARAMETERS_LENGTH
from .phone_number import PhoneNumber
from . import proofs

log = logging.getLogger(__name__)

USER_LENGTH = SYSTEM_PARAMETERS_LENGTH + ISSUER_PARAMETERS_LENGTH + 2 * SCALAR_LENGTH
CREDENTIAL_LENGTH = USER_LENGTH + 2 * POINT_LENGTH


class User(object):
    """A user waiting for a credential on attribute m, holding the secret
    rho behind its request."""

    def __init__(self, params, issuer_params, m, rho):
        if issuer_params.params != params:
            raise KeyMismatchError("Issuer parameters belong to other system parameters")
        self.params = params
        self.issuer_params = issuer_params
        self.m = m
        self.rho = rho

    @staticmethod
    def new(params, issuer_params, phone_number, seed, tracker=None):
        m = PhoneNumber.attribute(phone_number, params.grp)
        rng = SeededRandom(seed, b"user.new", tracker)
        rho = rng.scalar(params.grp.order)
        return User(params, issuer_params, m, rho)

    def obtain(self):
        """The credential request for this user. The proof draws its
        witnesses from the user's own secrets, so the same user always makes
        the same request."""
        grp = self.params.grp
        rng = SeededRandom.from_witness(b"user.obtain", grp.scalar_to_bytes(self.m),
                                        grp.scalar_to_bytes(self.rho))
        R = self.rho * self.params.g
        proof = proofs.prove_request(self.params, self.m, self.rho, R, rng)
        return CredentialRequest(R, proof, grp)

    def obtain_finish(self, issuance):
        """Check an issuance against the issuer parameters and our request,
        and return the resulting credential."""
        request_bytes = self.obtain().to_bytes()
        try:
            ok = proofs.verify_issuance(self.params, self.issuer_params, self.m,
                                        issuance.tag, request_bytes, issuance.proof)
        except DeserializationError:
            ok = False

        if not ok:
            log.debug("Issuance rejected")
            raise ProofVerificationError("Invalid credential issuance")

        return Credential(self, issuance.u, issuance.uprime)

    def to_bytes(self):
        grp = self.params.grp
        return self.params.to_bytes() + self.issuer_params.to_bytes() + \
            grp.scalar_to_bytes(self.m) + grp.scalar_to_bytes(self.rho)

    @staticmethod
    def from_bytes(data):
        if len(data) != USER_LENGTH:
            raise DeserializationError("Expected %d bytes, got %d" % (USER_LENGTH, len(data)))
        return _read_user(data)


def _read_user(data):
    i = SYSTEM_PARAMETERS_LENGTH
    j = i + ISSUER_PARAMETERS_LENGTH
    params = SystemParameters.from_bytes(data[:i])
    issuer_params = IssuerParameters.from_bytes(params, data[i:j])
    rd = params.grp.reader(data[j:j + 2 * SCALAR_LENGTH], 2 * SCALAR_LENGTH)
    m = rd.scalar()
    rho = rd.scalar(nonzero=True)
    rd.done()
    return User(params, issuer_params, m, rho)


class Credential(object):
    """A user together with a MAC tag (u, u') on its attribute."""

    def __init__(self, user, u, uprime):
        self.user = user
        self.u = u
        self.uprime = uprime

    @property
    def tag(self):
        return (self.u, self.uprime)

    def to_bytes(self):
        grp = self.user.params.grp
        return self.user.to_bytes() + grp.point_to_bytes(self.u) + grp.point_to_bytes(self.uprime)

    @staticmethod
    def from_bytes(data):
        if len(data) != CREDENTIAL_LENGTH:
            raise DeserializationError("Expected %d bytes, got %d" % (CREDENTIAL_LENGTH, len(data)))
        user = _read_user(data[:USER_LENGTH])
        rd = user.params.grp.reader(data[USER_LENGTH:], 2 * POINT_LENGTH)
        u = rd.point()
        uprime = rd.point()
        rd.done()
        return Credential(user, u, uprime)


def user_request(params, issuer_params, phone_number, seed, tracker=None):
    """A new user and its credential request."""
    user = User.new(params, issuer_params, phone_number, seed, tracker)
    return user, user.obtain()


def user_show(credential, seed, roster_entry, tracker=None):
    """Present a credential. The tag is rerandomized, so that presentations
    made with distinct seeds cannot be linked to each other or to the
    issuance.

    roster_entry is a :class:`~groupcred.roster.RosterEntryCommitment` to
    the same phone number. Its commitment is disclosed to the verifier and
    its opening stays with the user.
    """
    user = credential.user
    params = user.params
    grp = params.grp
    o = grp.order
    g, h = params.g, params.h

    if not roster_entry.opens_to(params, user.m):
        raise CommitmentOpeningMismatch("Roster entry is not a commitment to this credential")
    C, rho = roster_entry.commitment, roster_entry.opening

    rng = SeededRandom(seed, b"user.show", tracker)

    ## Rerandomize the MAC
    u, uprime = rerandomize_ggm(params, credential.tag, rng)

    z, r = rng.scalars(o, 2)
    Cm = user.m * u + z * h
    Cup = uprime + r * g
    V = z * user.issuer_params.X1 - r * g

    points = {"u": u, "V": V, "Cm": Cm, "Cup": Cup, "C": C}
    secrets = {"m": user.m, "r": r, "rho": rho, "z": z}
    proof = proofs.prove_presentation(params, user.issuer_params, points, secrets, rng)

    ## V is recomputed by the issuer from its secret key
    return CredentialPresentation(u, Cm, Cup, C, proof, grp)


# --- TESTS ---

def _setup():
    from .issuer import Issuer
    params = SystemParameters.create(b"\x01" * 32)
    issuer = Issuer.create(params, b"\x02" * 32)
    return params, issuer


def test_user_io():
    params, issuer = _setup()
    user = User.new(params, issuer.public_parameters(), b"14155550100", b"\x03" * 32)
    data = user.to_bytes()
    assert len(data) == USER_LENGTH
    assert User.from_bytes(data).to_bytes() == data

    with pytest.raises(DeserializationError):
        User.from_bytes(data[:-1])


def test_obtain_deterministic():
    params, issuer = _setup()
    user = User.new(params, issuer.public_parameters(), b"14155550100", b"\x03" * 32)
    assert user.obtain().to_bytes() == user.obtain().to_bytes()


def test_issuance():
    params, issuer = _setup()
    user, request = user_request(params, issuer.public_parameters(), b"14155550100", b"\x03" * 32)
    issuance = issuer.issue(request, b"14155550100", b"\x04" * 32)

    cred = user.obtain_finish(issuance)
    assert len(cred.to_bytes()) == CREDENTIAL_LENGTH
    assert Credential.from_bytes(cred.to_bytes()).to_bytes() == cred.to_bytes()

    ## The MAC verifies under the issuer key
    from .amacs import verify_ggm
    assert verify_ggm(params, issuer.keypair.sk, user.m, cred.tag)


def test_issuance_wrong_phone_number():
    params, issuer = _setup()
    user, request = user_request(params, issuer.public_parameters(), b"14155550100", b"\x03" * 32)

    from .errors import ProofConstructionError
    with pytest.raises(ProofConstructionError):
        issuer.issue(request, b"14155550101", b"\x04" * 32)


def test_issuance_wrong_issuer():
    from .issuer import Issuer
    params, issuer = _setup()
    other = Issuer.create(params, b"\x09" * 32)
    user, request = user_request(params, issuer.public_parameters(), b"14155550100", b"\x03" * 32)

    issuance = other.issue(request, b"14155550100", b"\x04" * 32)
    with pytest.raises(ProofVerificationError):
        user.obtain_finish(issuance)


def test_key_mismatch():
    params, issuer = _setup()
    other_params = SystemParameters.create(b"\x08" * 32)
    with pytest.raises(KeyMismatchError):
        User.new(other_params, issuer.public_parameters(), b"14155550100", b"\x03" * 32)


def test_show_verify():
    from .roster import commit
    params, issuer = _setup()
    user, request = user_request(params, issuer.public_parameters(), b"14155550100", b"\x03" * 32)
    cred = user.obtain_finish(issuer.issue(request, b"14155550100", b"\x04" * 32))

    rec = commit(b"14155550100", params, b"\x06" * 32)
    presentation = user_show(cred, b"\x05" * 32, rec)
    verified = issuer.verify(CredentialPresentation.from_bytes(presentation.to_bytes()))
    assert verified.C == rec.commitment

    ## Nothing the issuer saw at issuance is disclosed again
    assert verified.C != request.R
    assert verified.C != user.m * params.h + user.rho * params.g

    rec = commit(b"14155550101", params, b"\x06" * 32)
    with pytest.raises(CommitmentOpeningMismatch):
        user_show(cred, b"\x07" * 32, roster_entry=rec)


def test_show_wrong_issuer():
    from .issuer import Issuer
    from .roster import commit
    params, issuer = _setup()
    other = Issuer.create(params, b"\x09" * 32)
    user, request = user_request(params, issuer.public_parameters(), b"14155550100", b"\x03" * 32)
    cred = user.obtain_finish(issuer.issue(request, b"14155550100", b"\x04" * 32))

    rec = commit(b"14155550100", params, b"\x06" * 32)
    presentation = user_show(cred, b"\x05" * 32, rec)
    with pytest.raises(ProofVerificationError):
        other.verify(presentation)
