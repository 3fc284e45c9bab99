# -*- coding: utf-8 -*-
"""gcp_secretmanager_lifecycle

Authenticates a service to GCP Secret Manager, leases database credentials and
rotates the live connection pool without interrupting requests, and encrypts
sensitive fields through Cloud KMS

"""

from gcp_secretmanager_lifecycle.exceptions import SecretLifecycleError, \
    ConfigError, \
    AuthError, \
    RenewError, \
    SecretStoreError, \
    LeaseError, \
    NotFoundError, \
    WriteError, \
    ConnectError, \
    RotationError, \
    CryptoError, \
    EncryptError, \
    DecryptError
from gcp_secretmanager_lifecycle.config import Settings
from gcp_secretmanager_lifecycle.authenticator import Session, authenticate
from gcp_secretmanager_lifecycle.credential_store import CredentialStoreClient, DatabaseLease
from gcp_secretmanager_lifecycle.encryption import EnvelopeEncryptionClient
from gcp_secretmanager_lifecycle.connection_manager import ConnectionManager, \
    ConnectionHandle, \
    IntervalTimer, \
    create_pool
from gcp_secretmanager_lifecycle.audit import AuditEmitter
from gcp_secretmanager_lifecycle.decorators import InjectKeywordedSecretString, InjectSecretString
from gcp_secretmanager_lifecycle.bootstrap import SecretLifecycle
from ._version import __version__

__all__ = ["__version__",
           "SecretLifecycleError",
           "ConfigError",
           "AuthError",
           "RenewError",
           "SecretStoreError",
           "LeaseError",
           "NotFoundError",
           "WriteError",
           "ConnectError",
           "RotationError",
           "CryptoError",
           "EncryptError",
           "DecryptError",
           "Settings",
           "Session",
           "authenticate",
           "CredentialStoreClient",
           "DatabaseLease",
           "EnvelopeEncryptionClient",
           "ConnectionManager",
           "ConnectionHandle",
           "IntervalTimer",
           "create_pool",
           "AuditEmitter",
           "InjectSecretString",
           "InjectKeywordedSecretString",
           "SecretLifecycle"]
