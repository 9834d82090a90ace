#!/usr/bin/env python3
"""
Set up the package
"""

# Standard inputs
import os

# Third party inputs
from setuptools import setup, find_packages

# Find the version
version = {}
with open(os.path.join('stx_tools', 'version.py'), 'r') as version_file:
    exec(version_file.read(), version)

# Read the contents of your README file
with open('README.md', 'r') as f:
    long_description = f.read()

# Open the requirements.txt file
with open('requirements.txt') as f:
    # Read the file and split it into lines
    # Each line should be a separate requirement
    requirements = f.read().splitlines()

setup(
    name="StxTyper",
    version=version['__version__'],
    long_description=long_description,
    # The content type of the long description. Necessary for PyPI
    long_description_content_type='text/markdown',
    packages=find_packages(exclude=['tests']),
    include_package_data=True,
    entry_points={
        'console_scripts': [
            'stxtyper=stx_tools.stxtyper:cli'
        ]
    },
    install_requires=requirements,
    extras_require={
        'test': ['pytest']
    },
    # Classifiers categorize the project for users.
    classifiers=[
        # Specifies the intended audience of the project
        'Intended Audience :: Science/Research',
        # Specifies the supported Python versions
        'Programming Language :: Python :: 3.9',
        # Indicates the development status of the project
        'Development Status :: 5 - Production/Stable',
        # Specifies the topic related to the project
        'Topic :: Scientific/Engineering :: Bio-Informatics',
    ],
)
