#!/usr/bin/env python

from setuptools import setup

import re
import os.path

def version():
    # Read the version without importing the package and its dependencies
    init = open(os.path.join(os.path.dirname(__file__), "groupcred", "__init__.py")).read()
    return re.findall("VERSION.*=.*['\"](.*)['\"]", init)[0]

setup(name='groupcred',
      version=version(),
      description='Anonymous group membership credentials bound to a phone number',
      packages=['groupcred'],
      license="2-clause BSD",
      long_description="""Keyed-verification anonymous credentials (algebraic MACs with zero-knowledge proofs) for proving membership of a group roster at a permission tier, built on petlib""",

      python_requires=">=3.6",
      install_requires=[
            "petlib >= 0.0.45",
            "msgpack >= 0.6.0",
            "pytest >= 2.5.0",
      ],
      tests_require = [
            "pytest >= 2.5.0",
            "paver >= 1.2.3",
            "pytest-cov >= 1.8.1",
            ],
      extras_require={
            "test": [
                  "pytest >= 2.5.0",
                  "pytest-cov >= 1.8.1",
                  "paver >= 1.2.3",
                  "pylint",
            ],
      },
      zip_safe=False,
)
