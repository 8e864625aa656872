"""The messages exchanged between users and the issuer.

Every message has a fixed length for protocol version 1 and decodes
strictly: the wrong length, a point off the curve, or a scalar out of range
raises :class:`~groupcred.errors.DeserializationError`.

* :class:`CredentialRequest`, user to issuer: ``R || proof(c, rho)``
* :class:`CredentialIssuance`, issuer to user: ``u || u' || proof(c, x0, x0_bar, x1)``
* :class:`CredentialPresentation`, user to issuer: ``u || Cm || Cu' || C || proof(c, m, r, rho, z)``
* :class:`VerifiedCredential`, what a successful verification yields: ``C``

"""

import pytest

from .errors import DeserializationError
from .group import POINT_LENGTH, SCALAR_LENGTH, default_group

CREDENTIAL_REQUEST_LENGTH = POINT_LENGTH + 2 * SCALAR_LENGTH
CREDENTIAL_ISSUANCE_LENGTH = 2 * POINT_LENGTH + 4 * SCALAR_LENGTH
CREDENTIAL_PRESENTATION_LENGTH = 4 * POINT_LENGTH + 5 * SCALAR_LENGTH
VERIFIED_CREDENTIAL_LENGTH = POINT_LENGTH


class CredentialRequest(object):
    """A commitment R = rho*g to the per-issuance randomness of the user,
    and a proof of knowledge of rho bound to the phone number."""

    PROOF_LENGTH = 2 * SCALAR_LENGTH

    def __init__(self, R, proof, grp=None):
        assert len(proof) == self.PROOF_LENGTH
        self.grp = grp or default_group()
        self.R = R
        self.proof = proof

    def to_bytes(self):
        return self.grp.point_to_bytes(self.R) + self.proof

    @staticmethod
    def from_bytes(data, grp=None):
        grp = grp or default_group()
        rd = grp.reader(data, CREDENTIAL_REQUEST_LENGTH)
        R = rd.point()
        proof = rd.take(CredentialRequest.PROOF_LENGTH)
        rd.done()
        return CredentialRequest(R, proof, grp)


class CredentialIssuance(object):
    """A MAC tag (u, u') and the proof it was made under the issuer's key."""

    PROOF_LENGTH = 4 * SCALAR_LENGTH

    def __init__(self, u, uprime, proof, grp=None):
        assert len(proof) == self.PROOF_LENGTH
        self.grp = grp or default_group()
        self.u = u
        self.uprime = uprime
        self.proof = proof

    @property
    def tag(self):
        return (self.u, self.uprime)

    def to_bytes(self):
        return self.grp.point_to_bytes(self.u) + \
            self.grp.point_to_bytes(self.uprime) + self.proof

    @staticmethod
    def from_bytes(data, grp=None):
        grp = grp or default_group()
        rd = grp.reader(data, CREDENTIAL_ISSUANCE_LENGTH)
        u = rd.point()
        uprime = rd.point()
        proof = rd.take(CredentialIssuance.PROOF_LENGTH)
        rd.done()
        return CredentialIssuance(u, uprime, proof, grp)


class CredentialPresentation(object):
    """A rerandomized tag, the commitments to attribute and MAC, the
    disclosed roster commitment and the proof of possession."""

    PROOF_LENGTH = 5 * SCALAR_LENGTH

    def __init__(self, u, Cm, Cup, C, proof, grp=None):
        assert len(proof) == self.PROOF_LENGTH
        self.grp = grp or default_group()
        self.u = u
        self.Cm = Cm
        self.Cup = Cup
        self.C = C
        self.proof = proof

    def to_bytes(self):
        pts = [self.u, self.Cm, self.Cup, self.C]
        return b"".join(self.grp.point_to_bytes(p) for p in pts) + self.proof

    @staticmethod
    def from_bytes(data, grp=None):
        grp = grp or default_group()
        rd = grp.reader(data, CREDENTIAL_PRESENTATION_LENGTH)
        u, Cm, Cup, C = [rd.point() for _ in range(4)]
        proof = rd.take(CredentialPresentation.PROOF_LENGTH)
        rd.done()
        return CredentialPresentation(u, Cm, Cup, C, proof, grp)


class VerifiedCredential(object):
    """The disclosed roster commitment of a presentation that verified."""

    def __init__(self, C, grp=None):
        self.grp = grp or default_group()
        self.C = C

    def to_bytes(self):
        return self.grp.point_to_bytes(self.C)

    @staticmethod
    def from_bytes(data, grp=None):
        grp = grp or default_group()
        return VerifiedCredential(grp.point_from_bytes(data), grp)

    def __eq__(self, other):
        return isinstance(other, VerifiedCredential) and self.C == other.C

    def __ne__(self, other):
        return not self.__eq__(other)


# --- TESTS ---

def _points(n):
    grp = default_group()
    return [grp.hash_to_point(b"test", b"%d" % i) for i in range(n)]


def test_lengths():
    from .proofs import proof_length, request_proof, issuance_proof, presentation_proof
    assert CredentialRequest.PROOF_LENGTH == proof_length(request_proof)
    assert CredentialIssuance.PROOF_LENGTH == proof_length(issuance_proof)
    assert CredentialPresentation.PROOF_LENGTH == proof_length(presentation_proof)

    assert CREDENTIAL_REQUEST_LENGTH == 97
    assert CREDENTIAL_ISSUANCE_LENGTH == 194
    assert CREDENTIAL_PRESENTATION_LENGTH == 292
    assert VERIFIED_CREDENTIAL_LENGTH == 33


def test_presentation_io():
    u, Cm, Cup, C = _points(4)
    proof = b"\x01" * CredentialPresentation.PROOF_LENGTH
    data = CredentialPresentation(u, Cm, Cup, C, proof).to_bytes()
    assert len(data) == CREDENTIAL_PRESENTATION_LENGTH

    p = CredentialPresentation.from_bytes(data)
    assert (p.u, p.Cm, p.Cup, p.C, p.proof) == (u, Cm, Cup, C, proof)

    with pytest.raises(DeserializationError):
        CredentialPresentation.from_bytes(data[:-1])

    with pytest.raises(DeserializationError):
        CredentialPresentation.from_bytes(b"\x00" + data[1:])


def test_issuance_io():
    u, uprime = _points(2)
    proof = b"\x02" * CredentialIssuance.PROOF_LENGTH
    data = CredentialIssuance(u, uprime, proof).to_bytes()
    assert len(data) == CREDENTIAL_ISSUANCE_LENGTH
    assert CredentialIssuance.from_bytes(data).tag == (u, uprime)

    with pytest.raises(DeserializationError):
        CredentialIssuance.from_bytes(data + b"\x00")


def test_request_and_verified_io():
    C, = _points(1)
    proof = b"\x03" * CredentialRequest.PROOF_LENGTH
    data = CredentialRequest(C, proof).to_bytes()
    assert len(data) == CREDENTIAL_REQUEST_LENGTH
    assert CredentialRequest.from_bytes(data).R == C

    v = VerifiedCredential(C)
    assert VerifiedCredential.from_bytes(v.to_bytes()) == v
