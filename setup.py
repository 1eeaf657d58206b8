#!/usr/bin/env python

from setuptools import setup, find_packages
import io
import os

here = os.path.abspath(os.path.dirname(__file__))

NAME = 'scentree'

# Import version from file
with open(os.path.join(here, 'VERSION')) as version_file:
    VERSION = version_file.read().strip()

DESCRIPTION = 'Scenario trees with a given nodal structure, fitted to data by neural gas'


# Import the README and use it as the long-description.
# Note: this will only work if 'README.md' is present in your MANIFEST.in file!
try:
    with io.open(os.path.join(here, 'README.md'), encoding='utf-8') as f:
        long_description = '\n' + f.read()
except FileNotFoundError:
    long_description = DESCRIPTION

setup(name=NAME,
      version=VERSION,
      description=DESCRIPTION,
      long_description=long_description,
      long_description_content_type='text/markdown',
      license='Apache 2.0',
      packages=find_packages(
          exclude=["tests"]),
      include_package_data=True,
      python_requires='>=3.8',
      install_requires=[
          'numpy>=1.22', 'scipy>=1.9'
      ],
      extras_require={
          'test': ['pytest']
      },

      classifiers=[
          'Programming Language :: Python :: 3',
          'Topic :: Scientific/Engineering :: Mathematics'
      ],
      keywords=['scenario tree, neural gas, stochastic programming'],
      zip_safe=False)
