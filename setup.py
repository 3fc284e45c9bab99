# -*- coding: utf-8 -*-
"""gcp_secretmanager_lifecycle a module for managing the secret lifecycle of a service.

This module authenticates a service to GCP Secret Manager through workload identity
federation, leases database credentials from it and rotates the live connection pool
on a fixed interval, and envelope encrypts sensitive fields with Cloud KMS.

"""

import setuptools
import re
from io import open

VERSIONFILE="gcp_secretmanager_lifecycle/_version.py"
verstrline = open(VERSIONFILE, "rt").read()
VSRE = r"^__version__ = ['\"]([^'\"]*)['\"]"
mo = re.search(VSRE, verstrline, re.M)
if mo:
    verstr = mo.group(1)
else:
    raise RuntimeError("Unable to find version string in %s." % (VERSIONFILE,))

with open("README.md", "r", encoding='utf-8') as fh:
    long_description = fh.read()

setuptools.setup(
    name='gcp_secretmanager_lifecycle',
    version=verstr,
    author="Mike Moore",
    author_email="z_z_zebra@yahoo.com",
    description="Authenticate to GCP secret manager, lease and rotate database credentials without dropping requests and envelope encrypt fields with Cloud KMS",
    long_description_content_type="text/markdown",
    long_description=long_description,
    url="https://github.com/Mikemoore63/gcp-secretmanager-lifecycle",
    packages=setuptools.find_packages(),
    python_requires=">=3.9",
    include_package_data=True,
    license="MIT",
    scripts=[],
    install_requires=[
        "google-cloud-secret-manager~=2.0",
        "google-api-python-client>1.0,<3.0",
        "google-auth~=2.0",
        "google-auth-httplib2<1.0",
        "httplib2>=0.19,<1.0",
        "google-crc32c~=1.0",
        "grpcio~=1.0",
        "requests~=2.0",
        "SQLAlchemy~=2.0",
        "psycopg2-binary~=2.0",
    ],
    extras_require={
        "test": ["pytest"],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],

)
