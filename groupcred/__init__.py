# The groupcred version
VERSION = '0.1.0'


__all__ = ["amacs", "boundary", "credential", "errors", "group", "issuer",
           "nonces", "parameters", "phone_number", "proofs", "roster", "user", "zkp"]

def run_tests():
    # These are only needed in case we test
    import pytest
    import os.path
    import glob

    # List all groupcred files in the directory
    groupcred_dir = os.path.dirname(os.path.realpath(__file__))
    pyfiles = glob.glob(os.path.join(groupcred_dir, '*.py'))

    # Run the test suite
    print("Directory: %s" % pyfiles)
    res = pytest.main(["-v", "-x", "--doctest-modules"] + pyfiles)
    print("Result: %s" % res)

    # Return exit result
    return res
