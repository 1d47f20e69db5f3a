#!/usr/bin/env python
"""
vcinventory - vCenter VM Inventory Export Tool

A command-line tool that resolves vCenter credentials from an encrypted
local vault, exports filtered VM inventory to Excel and optionally mails
the report through Microsoft Graph.
"""

import os
from setuptools import setup, find_packages

# Read the README for long description
here = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(here, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

# Version
VERSION = '0.1.0'

setup(
    name='vcinventory',
    version=VERSION,
    description='vCenter VM inventory export with encrypted credential vault',
    long_description=long_description,
    long_description_content_type='text/markdown',

    license='MIT',

    classifiers=[
        'Development Status :: 4 - Beta',
        'Environment :: Console',
        'Intended Audience :: System Administrators',
        'Intended Audience :: Information Technology',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: System :: Systems Administration',
    ],

    keywords='vmware vcenter vsphere inventory excel vault graph',

    packages=find_packages(exclude=['tests', 'tests.*']),

    python_requires='>=3.10',

    install_requires=[
        'PyYAML>=6.0',
        'cryptography>=41.0',
        'requests>=2.30.0',
        'pyvmomi>=8.0',
        'openpyxl>=3.1',
        'msal>=1.24',
    ],

    extras_require={
        'dev': [
            'pytest>=7.0',
        ],
    },

    # Entry points for CLI commands
    entry_points={
        'console_scripts': [
            'vcinventory=vcinventory.cli.main:main',
        ],
    },
)
