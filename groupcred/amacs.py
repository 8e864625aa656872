# The GGM algebraic Message Authentication Code of Chase, Meiklejohn
# and Zaverucha (see "Algebraic MACs and Keyed-Verification
# Anonymous Credentials", at ACM CCS 2014), over a single attribute.
#
# All randomness is drawn from a SeededRandom, so a MAC is a function of
# the key, the attribute and the caller's seed.

import pytest

from .errors import ProofVerificationError
from .nonces import SeededRandom
from .parameters import SystemParameters


def keyGen_ggm(params, rng):
    """Secret key (x0, x1) and the public X1 = x1 * h"""
    o = params.grp.order
    sk = rng.scalars(o, 2)
    X1 = sk[1] * params.h
    return sk, X1


def Hx(sk, m, o):
    """A helper function Hx"""
    x0, x1 = sk
    return (x0 + x1.mod_mul(m, o)) % o


def mac_ggm(params, sk, m, rng):
    """Compute the mac on attribute m, returning the blinding b and the tag"""
    o = params.grp.order
    b = rng.scalar(o)
    u = b * params.g
    uprime = Hx(sk, m, o) * u
    return b, (u, uprime)


def verify_ggm(params, sk, m, tag):
    """Verify the mac on attribute m"""
    u, uprime = tag

    if u.is_infinite():
        raise ProofVerificationError("Invalid MAC: u point at infinity.")

    return uprime == Hx(sk, m, params.grp.order) * u


def rerandomize_ggm(params, tag, rng):
    """A fresh tag on the same attribute, unlinkable to the original"""
    u, uprime = tag
    a = rng.scalar(params.grp.order)
    return a * u, a * uprime


def test_mac():
    """Test basic GGM amac"""
    params = SystemParameters.create(b"\x01" * 32)
    rng = SeededRandom(b"\x02" * 32, b"test")
    sk, X1 = keyGen_ggm(params, rng)
    assert X1 == sk[1] * params.h

    _, tag = mac_ggm(params, sk, 10, rng)
    assert verify_ggm(params, sk, 10, tag)
    assert not verify_ggm(params, sk, 20, tag)

    tag2 = rerandomize_ggm(params, tag, rng)
    assert tag2 != tag
    assert verify_ggm(params, sk, 10, tag2)


def test_mac_wrong_key():
    params = SystemParameters.create(b"\x01" * 32)
    rng = SeededRandom(b"\x03" * 32, b"test")
    sk, _ = keyGen_ggm(params, rng)
    sk2, _ = keyGen_ggm(params, rng)

    _, tag = mac_ggm(params, sk, 10, rng)
    assert not verify_ggm(params, sk2, 10, tag)


def test_mac_infinity():
    params = SystemParameters.create(b"\x01" * 32)
    rng = SeededRandom(b"\x04" * 32, b"test")
    sk, _ = keyGen_ggm(params, rng)
    inf = params.grp.G.infinite()

    with pytest.raises(ProofVerificationError):
        verify_ggm(params, sk, 10, (inf, inf))
