# -*- coding: utf-8 -*-
"""Environment driven settings for the secret lifecycle.

Every option has a default except the credentials themselves, which only ever
come from the secret manager (or, for local development, ``SECRETS_TOKEN``).

Defaults::

    SECRETS_ENDPOINT       secretmanager.googleapis.com
    KMS_ENDPOINT           https://cloudkms.googleapis.com/
    SECRETS_PROJECT        tax-calculator
    SECRETS_ROLE           tax-calculator   (service account to impersonate)
    SECRETS_AUDIENCE       workload identity provider derived from project and role
    STS_TOKEN_URL          https://sts.googleapis.com/v1/token
    JWT_PATH               /var/run/secrets/kubernetes.io/serviceaccount/token
    SECRETS_TOKEN          (none)
    DB_CREDENTIALS_SECRET  tax-calculator-db
    CONFIG_SECRET          tax-calculator-config
    ENCRYPTION_KEY         projects/<project>/locations/global/keyRings/tax-calculator/
                           cryptoKeys/tax-calculator
    DB_HOST, DB_PORT, DB_NAME   postgres, 5432, taxcalc
    DB_DRIVER              postgresql+psycopg2
    DB_POOL_SIZE           5
    DB_MAX_OVERFLOW        20
    DB_CONN_MAX_LIFETIME   300
    DB_CONNECT_TIMEOUT     5
    DB_PROBE_TIMEOUT       5
    ROTATION_INTERVAL      3600
    REQUEST_TIMEOUT        10
    AUDIT_LOG_PATH         (none, audit goes to the log)
    PORT                   8080
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from .exceptions import ConfigError

MIN_ROTATION_INTERVAL = 30.0


def _env_int(environ, name, default):
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(name, raw) from None


def _env_float(environ, name, default):
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(name, raw) from None


@dataclass
class Settings:
    project: str = "tax-calculator"
    secrets_endpoint: str = "secretmanager.googleapis.com"
    kms_endpoint: str = "https://cloudkms.googleapis.com/"
    role: str = "tax-calculator"
    audience: Optional[str] = None
    sts_token_url: str = "https://sts.googleapis.com/v1/token"
    identity_token_path: str = "/var/run/secrets/kubernetes.io/serviceaccount/token"
    static_token: Optional[str] = field(default=None, repr=False)
    db_credentials_secret: str = "tax-calculator-db"
    config_secret: str = "tax-calculator-config"
    encryption_key: Optional[str] = None
    db_host: str = "postgres"
    db_port: int = 5432
    db_name: str = "taxcalc"
    db_driver: str = "postgresql+psycopg2"
    db_pool_size: int = 5
    db_max_overflow: int = 20
    db_conn_max_lifetime: int = 300
    db_connect_timeout: int = 5
    probe_timeout: float = 5.0
    rotation_interval: float = 3600.0
    request_timeout: float = 10.0
    audit_log_path: Optional[str] = None
    port: int = 8080

    def __post_init__(self):
        if self.rotation_interval < MIN_ROTATION_INTERVAL:
            raise ConfigError("ROTATION_INTERVAL", self.rotation_interval)
        if self.db_pool_size < 1:
            raise ConfigError("DB_POOL_SIZE", self.db_pool_size)
        if self.db_max_overflow < 0:
            raise ConfigError("DB_MAX_OVERFLOW", self.db_max_overflow)
        if self.audience is None:
            self.audience = (f"//iam.googleapis.com/projects/{self.project}/locations/global/"
                             f"workloadIdentityPools/{self.role or self.project}/providers/kubernetes")
        if self.encryption_key is None:
            self.encryption_key = (f"projects/{self.project}/locations/global/"
                                   f"keyRings/tax-calculator/cryptoKeys/tax-calculator")

    @property
    def service_account(self):
        """The service account email for the configured role or None for no impersonation."""
        if not self.role:
            return None
        if "@" in self.role:
            return self.role
        return f"{self.role}@{self.project}.iam.gserviceaccount.com"

    @property
    def max_open_connections(self):
        return self.db_pool_size + self.db_max_overflow

    @classmethod
    def from_env(cls, environ=None):
        if environ is None:
            environ = os.environ
        return cls(
            project=environ.get("SECRETS_PROJECT", "tax-calculator"),
            secrets_endpoint=environ.get("SECRETS_ENDPOINT", "secretmanager.googleapis.com"),
            kms_endpoint=environ.get("KMS_ENDPOINT", "https://cloudkms.googleapis.com/"),
            role=environ.get("SECRETS_ROLE", "tax-calculator"),
            audience=environ.get("SECRETS_AUDIENCE") or None,
            sts_token_url=environ.get("STS_TOKEN_URL", "https://sts.googleapis.com/v1/token"),
            identity_token_path=environ.get(
                "JWT_PATH", "/var/run/secrets/kubernetes.io/serviceaccount/token"),
            static_token=environ.get("SECRETS_TOKEN") or None,
            db_credentials_secret=environ.get("DB_CREDENTIALS_SECRET", "tax-calculator-db"),
            config_secret=environ.get("CONFIG_SECRET", "tax-calculator-config"),
            encryption_key=environ.get("ENCRYPTION_KEY") or None,
            db_host=environ.get("DB_HOST", "postgres"),
            db_port=_env_int(environ, "DB_PORT", 5432),
            db_name=environ.get("DB_NAME", "taxcalc"),
            db_driver=environ.get("DB_DRIVER", "postgresql+psycopg2"),
            db_pool_size=_env_int(environ, "DB_POOL_SIZE", 5),
            db_max_overflow=_env_int(environ, "DB_MAX_OVERFLOW", 20),
            db_conn_max_lifetime=_env_int(environ, "DB_CONN_MAX_LIFETIME", 300),
            db_connect_timeout=_env_int(environ, "DB_CONNECT_TIMEOUT", 5),
            probe_timeout=_env_float(environ, "DB_PROBE_TIMEOUT", 5.0),
            rotation_interval=_env_float(environ, "ROTATION_INTERVAL", 3600.0),
            request_timeout=_env_float(environ, "REQUEST_TIMEOUT", 10.0),
            audit_log_path=environ.get("AUDIT_LOG_PATH") or None,
            port=_env_int(environ, "PORT", 8080),
        )
