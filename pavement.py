import os.path
import os
import re

from paver.tasks import task
from paver.easy import sh


def tell(x):
    print()
    print(("-"*10)+ str(x) + ("-"*10))
    print()

@task
def build(quiet=True):
    """ Builds the groupcred distribution. """
    tell("Build dist")
    sh('python setup.py sdist', capture=quiet)

@task
def test(quiet=False):
    """ Run the groupcred test suite, with coverage. """
    tell("Run the tests")
    sh('pytest -v --doctest-modules --cov=groupcred --cov-report=term groupcred/*.py', capture=quiet)

@task
def lint(quiet=False):
    """ Run the python linter on groupcred, hiding the inline tests. """
    tell("Run pylint on the library")
    sh('PYTHONPATH=utils:$PYTHONPATH pylint --load-plugins ignoretest groupcred', capture=quiet)

@task
def version(quiet=False):
    """ Print the groupcred version. """
    lib = open(os.path.join("groupcred", "__init__.py")).read()
    v = re.findall("VERSION.*=.*['\"](.*)['\"]", lib)[0]
    tell("groupcred %s" % v)

@task
def wc(quiet=False):
    """ Count the groupcred library lines. """
    tell("Counting code lines")

    print("\nLibrary code:")
    sh('wc -l groupcred/*.py', capture=quiet)

    print("\nAdministration code:")
    sh('wc -l pavement.py setup.py utils/ignoretest.py', capture=quiet)
