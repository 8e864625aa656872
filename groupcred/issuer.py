## The issuer of credentials: its secret key material, the public
## parameters it publishes, and its side of issuance and verification.
## The MAC is the GGM aMAC of Chase, Meiklejohn and Zaverucha
## (see section 4.2, pages 8-9 of the CCS 2014 paper).

import logging

import pytest

from .amacs import keyGen_ggm, mac_ggm
from .credential import CredentialIssuance, CredentialRequest, VerifiedCredential
from .errors import DeserializationError, ProofConstructionError, ProofVerificationError
from .group import POINT_LENGTH, SCALAR_LENGTH
from .nonces import SeededRandom, check_seed
from .parameters import SystemParameters, SYSTEM_PARAMETERS_LENGTH
from .phone_number import PhoneNumber
from .roster import check_membership
from . import proofs

log = logging.getLogger(__name__)

ISSUER_KEYPAIR_LENGTH = 3 * SCALAR_LENGTH
ISSUER_PARAMETERS_LENGTH = 2 * POINT_LENGTH
ISSUER_LENGTH = SYSTEM_PARAMETERS_LENGTH + ISSUER_KEYPAIR_LENGTH


class IssuerKeyPair(object):
    """The issuer's secret MAC key (x0, x1) and the blinding x0_bar of its
    commitment to x0."""

    def __init__(self, x0, x1, x0_bar):
        self.x0 = x0
        self.x1 = x1
        self.x0_bar = x0_bar

    @property
    def sk(self):
        return [self.x0, self.x1]

    @staticmethod
    def keygen(params, seed, tracker=None):
        """ Generates keys for the credential issuer """
        rng = SeededRandom(seed, b"issuer.keygen", tracker)
        sk, _ = keyGen_ggm(params, rng)
        x0_bar = rng.scalar(params.grp.order)
        return IssuerKeyPair(sk[0], sk[1], x0_bar)

    def to_bytes(self, grp):
        return b"".join(grp.scalar_to_bytes(x) for x in [self.x0, self.x1, self.x0_bar])

    @staticmethod
    def from_bytes(data, grp):
        """Load a keypair, rejecting any scalar that is zero or out of range."""
        rd = grp.reader(data, ISSUER_KEYPAIR_LENGTH)
        x0, x1, x0_bar = [rd.scalar(nonzero=True) for _ in range(3)]
        rd.done()
        return IssuerKeyPair(x0, x1, x0_bar)


class IssuerParameters(object):
    """The public commitments Cx0 = x0*g + x0_bar*h and X1 = x1*h, bound to
    the system parameters they were made under."""

    def __init__(self, params, Cx0, X1):
        self.params = params
        self.Cx0 = Cx0
        self.X1 = X1

    def to_bytes(self):
        grp = self.params.grp
        return grp.point_to_bytes(self.Cx0) + grp.point_to_bytes(self.X1)

    @staticmethod
    def from_bytes(params, data):
        rd = params.grp.reader(data, ISSUER_PARAMETERS_LENGTH)
        Cx0 = rd.point()
        X1 = rd.point()
        rd.done()
        return IssuerParameters(params, Cx0, X1)

    def __eq__(self, other):
        return isinstance(other, IssuerParameters) and \
            self.params == other.params and \
            self.Cx0 == other.Cx0 and self.X1 == other.X1

    def __ne__(self, other):
        return not self.__eq__(other)


class Issuer(object):
    """An issuer holding a keypair under some system parameters."""

    def __init__(self, params, keypair):
        self.params = params
        self.keypair = keypair

    @staticmethod
    def create(params, seed, tracker=None):
        return Issuer(params, IssuerKeyPair.keygen(params, seed, tracker))

    @staticmethod
    def load(params, keypair_bytes):
        """Rebuild an issuer from a previously generated keypair."""
        return Issuer(params, IssuerKeyPair.from_bytes(keypair_bytes, params.grp))

    def public_parameters(self):
        g, h = self.params.g, self.params.h
        k = self.keypair
        return IssuerParameters(self.params, k.x0 * g + k.x0_bar * h, k.x1 * h)

    def to_bytes(self):
        return self.params.to_bytes() + self.keypair.to_bytes(self.params.grp)

    @staticmethod
    def from_bytes(data):
        if len(data) != ISSUER_LENGTH:
            raise DeserializationError("Expected %d bytes, got %d" % (ISSUER_LENGTH, len(data)))
        params = SystemParameters.from_bytes(data[:SYSTEM_PARAMETERS_LENGTH])
        return Issuer.load(params, data[SYSTEM_PARAMETERS_LENGTH:])

    def issue(self, request, phone_number, seed, tracker=None):
        """Issue a MAC on phone_number to the holder of request, with a proof
        that it was made with the key behind the issuer parameters."""
        m = PhoneNumber.attribute(phone_number, self.params.grp)
        request_bytes = request.to_bytes()

        try:
            ok = proofs.verify_request(self.params, m, request.R, request.proof)
        except DeserializationError:
            ok = False

        if not ok:
            raise ProofConstructionError("Malformed credential request")

        ## MAC randomness and proof witnesses are keyed by seed, key and request
        check_seed(seed, tracker)
        rng = SeededRandom.from_witness(b"issuer.issue", bytes(seed),
                                        self.keypair.to_bytes(self.params.grp),
                                        request_bytes)
        _, tag = mac_ggm(self.params, self.keypair.sk, m, rng)

        proof = proofs.prove_issuance(self.params, self.keypair,
                                      self.public_parameters(), m, tag,
                                      request_bytes, rng)

        u, uprime = tag
        return CredentialIssuance(u, uprime, proof, self.params.grp)

    def verify(self, presentation):
        """Check a proof of possession of a credential and return the roster
        commitment it discloses."""
        k = self.keypair
        u, Cm, Cup, C = presentation.u, presentation.Cm, presentation.Cup, presentation.C

        ## The MAC verification equation, with the secret key
        V = k.x0 * u + k.x1 * Cm - Cup

        points = {"u": u, "V": V, "Cm": Cm, "Cup": Cup, "C": C}
        try:
            ok = proofs.verify_presentation(self.params, k.x1 * self.params.h,
                                            points, presentation.proof)
        except DeserializationError:
            ok = False

        if not ok:
            log.debug("Presentation rejected")
            raise ProofVerificationError("Invalid credential presentation")

        return VerifiedCredential(C, self.params.grp)

    def verify_roster_membership(self, verified, roster, tier):
        """The roster entry matching a verified credential in a tier."""
        return check_membership(verified, roster, tier)


# --- TESTS ---

def _issuer(seed=b"\x05" * 32):
    params = SystemParameters.create(b"\x01" * 32)
    return Issuer.create(params, seed)


def test_keygen_deterministic():
    i1 = _issuer()
    i2 = _issuer()
    i3 = _issuer(b"\x06" * 32)
    assert i1.to_bytes() == i2.to_bytes()
    assert i1.to_bytes() != i3.to_bytes()
    assert len(i1.to_bytes()) == ISSUER_LENGTH
    assert len(i1.keypair.to_bytes(i1.params.grp)) == ISSUER_KEYPAIR_LENGTH


def test_load():
    issuer = _issuer()
    grp = issuer.params.grp
    kp = issuer.keypair.to_bytes(grp)

    loaded = Issuer.load(issuer.params, kp)
    assert loaded.public_parameters() == issuer.public_parameters()
    assert Issuer.from_bytes(issuer.to_bytes()).to_bytes() == issuer.to_bytes()

    with pytest.raises(DeserializationError):
        Issuer.load(issuer.params, kp[:-1])

    # Zero scalars
    with pytest.raises(DeserializationError):
        Issuer.load(issuer.params, b"\x00" * SCALAR_LENGTH + kp[SCALAR_LENGTH:])

    # Out of range scalars
    with pytest.raises(DeserializationError):
        Issuer.load(issuer.params, b"\xff" * SCALAR_LENGTH + kp[SCALAR_LENGTH:])


def test_public_parameters():
    issuer = _issuer()
    ip = issuer.public_parameters()
    data = ip.to_bytes()
    assert len(data) == ISSUER_PARAMETERS_LENGTH
    assert IssuerParameters.from_bytes(issuer.params, data) == ip

    ## The secret key never appears in the public parameters
    grp = issuer.params.grp
    for x in [issuer.keypair.x0, issuer.keypair.x1, issuer.keypair.x0_bar]:
        assert grp.scalar_to_bytes(x) not in data


def test_issue_rejects_malformed_request():
    issuer = _issuer()
    grp = issuer.params.grp
    R = grp.hash_to_point(b"test")
    request = CredentialRequest(R, b"\x00" * CredentialRequest.PROOF_LENGTH, grp)

    with pytest.raises(ProofConstructionError):
        issuer.issue(request, b"14155550100", b"\x07" * 32)

    request = CredentialRequest(R, b"\xff" * CredentialRequest.PROOF_LENGTH, grp)
    with pytest.raises(ProofConstructionError):
        issuer.issue(request, b"14155550100", b"\x07" * 32)


def test_issue_seed_bound_to_request():
    from .user import user_request
    from .errors import SeedReuseError
    from .nonces import SeedTracker
    issuer = _issuer()
    ip = issuer.public_parameters()
    _, r1 = user_request(issuer.params, ip, b"14155550100", b"\x03" * 32)
    _, r2 = user_request(issuer.params, ip, b"14155550101", b"\x04" * 32)

    seed = b"\x07" * 32
    i1 = issuer.issue(r1, b"14155550100", seed)
    i2 = issuer.issue(r2, b"14155550101", seed)

    ## One seed, two requests: nothing is shared between the issuances
    assert i1.u != i2.u
    assert i1.proof[:32] != i2.proof[:32]
    assert i1.to_bytes() == issuer.issue(r1, b"14155550100", seed).to_bytes()

    tracker = SeedTracker()
    issuer.issue(r1, b"14155550100", seed, tracker)
    with pytest.raises(SeedReuseError):
        issuer.issue(r2, b"14155550101", seed, tracker)
