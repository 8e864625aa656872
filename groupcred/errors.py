"""The exceptions raised by the credential core.

All of them derive from :class:`CredentialError`, which is the only exception
type the byte-buffer boundary (:mod:`groupcred.boundary`) catches and turns
into a failed result. Anything else escaping the core is a programming error.
"""


class CredentialError(Exception):
    """Base class of all protocol failures."""


class DeserializationError(CredentialError):
    """A buffer had the wrong length or held an invalid point or scalar."""


class KeyMismatchError(CredentialError):
    """Parameters, issuer and user state were combined inconsistently."""


class ProofConstructionError(CredentialError):
    """A proof could not be built, typically because a request was malformed."""


class ProofVerificationError(CredentialError):
    """An issuance or possession proof did not verify."""


class CommitmentOpeningMismatch(CredentialError):
    """An opening does not reproduce the claimed roster commitment."""


class MembershipNotFound(CredentialError):
    """A roster commitment is absent from the queried tier."""


class SeedReuseError(CredentialError):
    """A seed was all-zero or had been used before."""


def test_hierarchy():
    for cls in [DeserializationError, KeyMismatchError, ProofConstructionError,
                ProofVerificationError, CommitmentOpeningMismatch,
                MembershipNotFound, SeedReuseError]:
        assert issubclass(cls, CredentialError)
        assert not issubclass(cls, ValueError)
