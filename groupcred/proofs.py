"""The three statements proven during the protocol.

Each statement is a :class:`~groupcred.zkp.ZKProof` with its own domain
separation tag, so that a transcript for one can never be replayed as
another. The tags carry the protocol version and must not change within it.

* The request proof: the user knows the discrete log rho of ``R = rho*g``,
  bound to the phone number the issuer is given. R never reappears in a
  presentation.
* The issuance proof: the tag ``(u, u')`` was computed with the secret key
  behind the issuer parameters, ``u' = x0*u + x1*(m*u)``,
  ``Cx0 = x0*g + x0_bar*h`` and ``X1 = x1*h``.
* The presentation proof: the presenter knows an attribute m and a MAC on it
  such that ``V = z*X1 - r*g``, ``Cm = m*u + z*h``, and a roster entry
  opening with ``C = m*h + rho*g``.

"""

from petlib.bn import Bn

from .zkp import ZKProof, ZKEnv, ConstGen, Sec, ConstPub
from .group import default_group
from .nonces import SeededRandom

REQUEST_DST = b"groupcred.v1.credential_request"
ISSUANCE_DST = b"groupcred.v1.credential_issuance"
PRESENTATION_DST = b"groupcred.v1.credential_presentation"


def request_proof(grp):
    zk = ZKProof(grp, REQUEST_DST)

    g, h, R = zk.get(ConstGen, ["g", "h", "R"])
    m = zk.get(ConstPub, "m")
    rho = zk.get(Sec, "rho")

    zk.add_proof(R, rho * g)

    return zk


def issuance_proof(grp):
    zk = ZKProof(grp, ISSUANCE_DST)

    u, up, g, h, Cx0, X1 = zk.get(ConstGen, ["u", "up", "g", "h", "Cx0", "X1"])
    m = zk.get(ConstPub, "m")
    x0, x0_bar, x1 = zk.get(Sec, ["x0", "x0_bar", "x1"])

    ## Proof of correct MAC
    zk.add_proof(up, x0 * u + x1 * (m * u))

    ## Proof of knowing the secret of MAC
    zk.add_proof(Cx0, x0 * g + x0_bar * h)

    ## Proof of correct X1
    zk.add_proof(X1, x1 * h)

    return zk


def presentation_proof(grp):
    zk = ZKProof(grp, PRESENTATION_DST)

    u, g, h, X1 = zk.get(ConstGen, ["u", "g", "h", "X1"])
    V, Cm, Cup, C = zk.get(ConstGen, ["V", "Cm", "Cup", "C"])
    minus_one = zk.get(ConstPub, "minus1")
    m, r, rho, z = zk.get(Sec, ["m", "r", "rho", "z"])

    # Define the relations to prove
    zk.add_proof(V, z * X1 + r * (minus_one * g))
    zk.add_proof(Cm, m * u + z * h)

    ## The disclosed roster commitment is to the same attribute
    zk.add_proof(C, m * h + rho * g)

    return zk


def _public_env(zk, params, **points):
    env = ZKEnv(zk)
    env.g, env.h = params.g, params.h
    for name, value in points.items():
        setattr(env, name, value)
    return env


def prove_request(params, m, rho, R, rng):
    zk = request_proof(params.grp)
    env = _public_env(zk, params, R=R)
    env.m = m
    env.rho = rho
    return zk.export_proof(zk.build_proof(env.get(), rng))


def verify_request(params, m, R, proof):
    zk = request_proof(params.grp)
    sig = zk.import_proof(proof)
    env = _public_env(zk, params, R=R)
    env.m = m
    return zk.verify_proof(env.get(), sig)


def prove_issuance(params, keypair, issuer_params, m, tag, request_bytes, rng):
    zk = issuance_proof(params.grp)
    u, up = tag
    env = _public_env(zk, params, u=u, up=up, Cx0=issuer_params.Cx0, X1=issuer_params.X1)
    env.m = m
    env.x0, env.x1, env.x0_bar = keypair.x0, keypair.x1, keypair.x0_bar

    sig = zk.build_proof(env.get(), rng, message=request_bytes)
    if __debug__:
        assert zk.verify_proof(env.get(), sig, message=request_bytes, strict=False)
    return zk.export_proof(sig)


def verify_issuance(params, issuer_params, m, tag, request_bytes, proof):
    zk = issuance_proof(params.grp)
    sig = zk.import_proof(proof)
    u, up = tag
    env = _public_env(zk, params, u=u, up=up, Cx0=issuer_params.Cx0, X1=issuer_params.X1)
    env.m = m
    return zk.verify_proof(env.get(), sig, message=request_bytes)


def prove_presentation(params, issuer_params, points, secrets, rng):
    """Build the possession proof. points maps u, V, Cm, Cup and C to group
    elements; secrets maps m, r, rho and z to scalars."""
    zk = presentation_proof(params.grp)
    env = _public_env(zk, params, X1=issuer_params.X1, **points)
    env.minus1 = -Bn(1)
    for name, value in secrets.items():
        setattr(env, name, value)
    return zk.export_proof(zk.build_proof(env.get(), rng))


def verify_presentation(params, X1, points, proof):
    zk = presentation_proof(params.grp)
    sig = zk.import_proof(proof)
    env = _public_env(zk, params, X1=X1, **points)
    env.minus1 = -Bn(1)
    return zk.verify_proof(env.get(), sig)


def proof_length(statement):
    return statement(default_group()).proof_length()


# --- TESTS ---

def test_proof_lengths():
    from .group import SCALAR_LENGTH
    assert proof_length(request_proof) == 2 * SCALAR_LENGTH
    assert proof_length(issuance_proof) == 4 * SCALAR_LENGTH
    assert proof_length(presentation_proof) == 5 * SCALAR_LENGTH


def test_request_proof():
    from .parameters import SystemParameters
    params = SystemParameters.create(b"\x01" * 32)
    o = params.grp.order
    rng = SeededRandom(b"\x02" * 32, b"test")
    m, rho = rng.scalars(o, 2)
    R = rho * params.g

    proof = prove_request(params, m, rho, R, rng)
    assert verify_request(params, m, R, proof)

    # The proof is bound to the phone number the issuer holds
    assert not verify_request(params, (m + 1) % o, R, proof)
    assert not verify_request(params, m, R + params.g, proof)


def test_domain_separation():
    grp = default_group()
    assert len(set([REQUEST_DST, ISSUANCE_DST, PRESENTATION_DST])) == 3
    assert request_proof(grp).tag != presentation_proof(grp).tag
