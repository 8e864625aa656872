## A small engine for non-interactive Zero-Knowledge proofs of knowledge
#  of discrete log representations: Schnorr's protocol extended to AND
#  compositions of linear relations, made non-interactive with Fiat-Shamir.
#
# For the underlying technique see Chapter 3 of "Rethinking Public Key
# Infrastructures and Digital Certificates: Building in Privacy",
# Stefan Brands, MIT Press (2000).
#
# A statement is declared once, symbolically, by both the prover and the
# verifier. Proofs have a fixed binary layout: the challenge followed by one
# response per secret, in sorted secret-name order.

import re
from hashlib import sha512

from petlib.bn import Bn

import pytest

from .errors import DeserializationError, ProofConstructionError
from .group import SCALAR_LENGTH, default_group
from .nonces import SeededRandom


def challenge(elements):
    """Packages a challenge in a bijective way"""
    elem = [b"%d" % len(elements)] + [_as_bytes(e) for e in elements]
    state = b"|".join(b"%d||" % len(x) + x for x in elem)
    return sha512(state).digest()


def _as_bytes(x):
    if isinstance(x, bytes):
        return x
    if isinstance(x, str):
        return x.encode("utf8")
    if isinstance(x, int):
        return b"%d" % x
    if isinstance(x, Bn):
        if x < 0:
            return b"-" + (-x).binary()
        return b"+" + x.binary()
    # Group elements
    return x.export()


class Val(object):
    """A common ansestor for all values"""
    def val(self, env):
        return env[self.name]


class ConstPub(Val):
    """Defines a public scalar from the environment"""
    def __init__(self, zkp, name):
        self.name = name
        self.zkp = zkp
        assert name not in zkp.Const
        zkp.Const[name] = self


class Sec(Val):
    """Defines a secret value of the prover"""
    def __init__(self, zkp, name):
        self.name = name
        self.zkp = zkp
        assert name not in zkp.Sec
        zkp.Sec[name] = self


class Gen(object):
    """A group element expression: a sum of terms, each a constant base
    scaled by a list of scalar factors. At most one factor per term may be a
    secret, and a proven expression has one in every term."""
    def __init__(self, zkp, terms, prove):
        self.zkp = zkp
        self.terms = terms
        self.prove = prove
        self.name = None

    def __add__(self, other):
        assert isinstance(other, Gen)
        assert self.zkp == other.zkp
        assert self.prove == other.prove
        return Gen(self.zkp, self.terms + other.terms, self.prove)

    def __rmul__(self, other):
        assert isinstance(other, Val)
        assert self.zkp == other.zkp
        assert not self.prove
        assert len(self.terms) == 1

        base, factors = self.terms[0]
        return Gen(self.zkp, [(base, factors + [other])], isinstance(other, Sec))

    def val(self, env):
        """Returns the value of this expression"""
        Sum = None
        for base, factors in self.terms:
            pt = base.val(env)
            Prod = Bn(1)
            for v in factors:
                Prod = v.val(env) * Prod
            term = (Prod % pt.group.order()) * pt
            Sum = term if Sum is None else term + Sum
        return Sum


class ConstGen(Gen):
    """Represents a group element constant in the environment"""
    def __init__(self, zkp, name):
        Gen.__init__(self, zkp, [(self, [])], False)
        self.name = name
        assert name not in zkp.Const
        zkp.Const[name] = self

    def val(self, env):
        return env[self.name]


class ZKProof(object):
    """A class representing a number of associated ZK Proofs."""

    _name_re = re.compile("^[a-zA-Z][a-zA-Z0-9_]*$")

    def __init__(self, grp, tag):
        """Define a proof object, the group in which the proof is to be
        carried and a domain separation tag bound into every challenge."""

        self.grp = grp
        self.tag = tag

        self.Const = {}
        self.Sec = {}
        self.proofs = []

    def add_proof(self, lhs, rhs):
        """Adds a proof obligation to show the rhs is the representation of the lhs"""
        assert isinstance(lhs, Gen)
        assert lhs.prove == False
        assert isinstance(rhs, Gen)
        assert rhs.prove == True
        assert self == lhs.zkp == rhs.zkp

        self.proofs.append((lhs, rhs))

    def get(self, vtype, name):
        """Returns a number of proof variables of a certain type"""
        assert vtype in [ConstGen, Sec, ConstPub]

        if isinstance(name, str):
            assert self._name_re.match(name)
            return self._get(vtype, name)

        if isinstance(name, list):
            assert all(self._name_re.match(n) for n in name)
            return [self._get(vtype, n) for n in name]

        raise Exception("Wrong type of names: str or list(str)")

    def _get(self, vtype, name):
        for D in [self.Const, self.Sec]:
            if name in D:
                assert isinstance(D[name], vtype)
                return D[name]

        return vtype(self, name)

    def all_vars(self):
        return set(self.Const) | set(self.Sec)

    def secret_names(self):
        return sorted(self.Sec)

    def proof_length(self):
        """The number of bytes of an exported proof."""
        return SCALAR_LENGTH * (1 + len(self.Sec))

    def _check_env(self, env):
        variables = self.all_vars()

        for v in variables:
            if not v in env:
                raise Exception("Could not find variable %s in the environment.\n%s" % (repr(v), repr(variables)))

    def _state(self, env, message):
        ## Make a list of all the public state
        state = [b"ZKP", self.tag, self.grp.nid, message]
        for v in sorted(self.Const.keys()):
            state += [env[v]]
        return state

    def build_proof(self, env, rng, message=b""):
        """Generates a proof within an environment of assigned public and
        secret variables. The witnesses are drawn from rng, a
        :class:`SeededRandom`."""

        self._check_env(env)

        # Do sanity check on the proofs
        for base, expr in self.proofs:
            if base.val(env) != expr.val(env):
                raise ProofConstructionError("Proof about '%s' does not hold." % base.name)

        order = self.grp.order
        state = self._state(env, message)

        ## Set witnesses for all secrets
        witnesses = dict(env.items())
        for w in self.secret_names():
            witnesses[w] = rng.scalar(order)

        ## Compute the first message and add it to the state
        for base, expr in self.proofs:
            state += [expr.val(witnesses)]

        ## Compute the challenge using all the state
        c = Bn.from_binary(challenge(state)) % order

        ## Compute all the responses
        responses = {}
        for w in self.secret_names():
            responses[w] = (witnesses[w] - c * env[w]) % order

        return (c, responses)

    def verify_proof(self, env, sig, message=b"", strict=True):
        """Verifies a proof within an environment of assigned public only variables."""

        if strict:
            env_not = [k for k in env if k not in self.Const]
            if len(env_not):
                raise Exception("Did not check: " + (", ".join(env_not)))

        c, responses = sig
        responses = dict(list(responses.items()) + [(k, env[k]) for k in self.Const if k in env])

        ## Ensure all variables we need are here
        self._check_env(responses)

        state = self._state(responses, message)

        ## Recompute the first message from the responses
        for base, expr in self.proofs:
            Cr = expr.val(responses)
            Cx = base.val(responses)
            state += [Cr + c * Cx]

        c_prime = Bn.from_binary(challenge(state)) % self.grp.order
        return c == c_prime

    def export_proof(self, sig):
        c, responses = sig
        parts = [self.grp.scalar_to_bytes(c)]
        parts += [self.grp.scalar_to_bytes(responses[w]) for w in self.secret_names()]
        return b"".join(parts)

    def import_proof(self, data):
        rd = self.grp.reader(data, self.proof_length())
        c = rd.scalar()
        responses = {}
        for w in self.secret_names():
            responses[w] = rd.scalar()
        rd.done()
        return (c, responses)


class ZKEnv(object):
    """ A class that passes all the ZK environment
        state to the proof or verification.
    """

    def __init__(self, zkp):
        """ Initializes and ties to a specific proof. """
        ## Watch out for recursive calls, given we
        #  redefined __setattr__
        object.__setattr__(self, "zkp", zkp)
        object.__setattr__(self, "env", {})

    def __setattr__(self, name, value):
        """ Store into a special dictionary """
        if not name in self.zkp.all_vars():
            raise Exception("Variable name '%s' not known." % name)
        self.env[name] = value

    def __getattr__(self, name):
        if not name in self.zkp.all_vars():
            raise Exception("Variable name '%s' not known." % name)
        return self.env[name]

    def get(self):
        """ Get the environement. """
        return self.env


# --- TESTS ---

def _pedersen_statement():
    grp = default_group()
    zk = ZKProof(grp, b"test.pedersen")
    g, h = zk.get(ConstGen, ["g", "h"])
    x, o = zk.get(Sec, ["x", "o"])
    Cxo = zk.get(ConstGen, "Cxo")
    zk.add_proof(Cxo, x*g + o*h)
    return zk


def _pedersen_env(zk):
    grp = zk.grp
    rng = SeededRandom(b"\x11" * 32, b"test")
    env = ZKEnv(zk)
    env.g = grp.hash_to_point(b"g")
    env.h = grp.hash_to_point(b"h")
    env.x, env.o = rng.scalars(grp.order, 2)
    env.Cxo = env.x * env.g + env.o * env.h
    return env


def test_basic():
    zk = ZKProof(default_group(), b"test")
    g = zk.get(ConstGen, "g")

    # Test: ok to call twice
    g2 = zk.get(ConstGen, "g")
    assert g == g2

    # Test: need to be of same type!
    with pytest.raises(AssertionError):
        zk.get(Sec, "g")


def test_Pedersen():
    zk = _pedersen_statement()
    env = _pedersen_env(zk)
    sig = zk.build_proof(env.get(), SeededRandom(b"\x22" * 32, b"test"))

    # Execute the verification
    env_verify = ZKEnv(zk)
    env_verify.g, env_verify.h = env.g, env.h
    env_verify.Cxo = env.Cxo
    assert zk.verify_proof(env_verify.get(), sig)

    # The message is bound into the challenge
    assert not zk.verify_proof(env_verify.get(), sig, message=b"other")


def test_Pedersen_wrong_statement():
    zk = _pedersen_statement()
    env = _pedersen_env(zk)
    sig = zk.build_proof(env.get(), SeededRandom(b"\x22" * 32, b"test"))

    env_verify = ZKEnv(zk)
    env_verify.g, env_verify.h = env.g, env.h
    env_verify.Cxo = env.Cxo + env.g
    assert not zk.verify_proof(env_verify.get(), sig)


def test_deterministic_and_export():
    zk = _pedersen_statement()
    env = _pedersen_env(zk)
    sig1 = zk.build_proof(env.get(), SeededRandom(b"\x22" * 32, b"test"))
    sig2 = zk.build_proof(env.get(), SeededRandom(b"\x22" * 32, b"test"))
    data = zk.export_proof(sig1)
    assert data == zk.export_proof(sig2)
    assert len(data) == zk.proof_length() == 3 * SCALAR_LENGTH

    c, responses = zk.import_proof(data)
    assert c == sig1[0]
    assert responses == sig1[1]

    with pytest.raises(DeserializationError):
        zk.import_proof(data[:-1])


def test_Pedersen_Env_missing():
    zk = _pedersen_statement()
    env = _pedersen_env(zk)
    del env.env["o"]

    with pytest.raises(Exception) as excinfo:
        env.NOTEXISTING = 1
    assert "Variable name 'NOTEXISTING' not known" in str(excinfo.value)

    ## Ensure we catch missing variables
    with pytest.raises(Exception) as excinfo:
        zk.build_proof(env.get(), SeededRandom(b"\x22" * 32, b"test"))
    assert 'Could not find variable' in str(excinfo.value)

    ## Ensure we catch false statements
    env.o = zk.grp.order - 1
    with pytest.raises(ProofConstructionError) as excinfo:
        zk.build_proof(env.get(), SeededRandom(b"\x22" * 32, b"test"))
    assert "Proof about 'Cxo' does not hold" in str(excinfo.value)


def test_negated_generator():
    grp = default_group()
    zk = ZKProof(grp, b"test.neg")
    g, V = zk.get(ConstGen, ["g", "V"])
    minus_one = zk.get(ConstPub, "minus1")
    r = zk.get(Sec, "r")
    zk.add_proof(V, r * (minus_one * g))

    env = ZKEnv(zk)
    env.g = grp.hash_to_point(b"g")
    env.minus1 = -Bn(1)
    env.r = Bn(12345)
    env.V = -(env.r * env.g)
    sig = zk.build_proof(env.get(), SeededRandom(b"\x33" * 32, b"test"))

    env_verify = ZKEnv(zk)
    env_verify.g, env_verify.V, env_verify.minus1 = env.g, env.V, env.minus1
    assert zk.verify_proof(env_verify.get(), sig)


def test_expressions():
    grp = default_group()
    zk = ZKProof(grp, b"test.expr")
    g, h = zk.get(ConstGen, ["g", "h"])
    m = zk.get(ConstPub, "m")
    x, y = zk.get(Sec, ["x", "y"])

    env = {"g": grp.hash_to_point(b"g"), "h": grp.hash_to_point(b"h"),
           "m": Bn(7), "x": Bn(3), "y": Bn(5)}

    # A secret scaling a public product
    assert (x * (m * g)).val(env) == Bn(21) * env["g"]
    assert (x * (m * g)).prove
    assert (x * g + y * h).val(env) == Bn(3) * env["g"] + Bn(5) * env["h"]

    # Sums cannot be scaled, nor can proven expressions
    with pytest.raises(AssertionError):
        m * (x * g)
    with pytest.raises(AssertionError):
        x * (m * g + m * h)
    with pytest.raises(AssertionError):
        x * g + m * h
