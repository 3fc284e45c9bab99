# -*- coding: utf-8 -*-
"""Initial identity proofing against the secret manager.

The preferred path exchanges the platform issued identity token (a kubernetes
service account JWT) with Google STS through workload identity federation and,
where a role is configured, impersonates the role's service account. The
resulting OAuth2 access token is the session token used by every other call.

When no identity token is available the static ``SECRETS_TOKEN`` is used as is.
That path only exists for local development and cannot be renewed.
"""

import logging
import threading

import google.oauth2.credentials
from google.auth import exceptions, identity_pool
from google.auth.transport.requests import Request

from .exceptions import AuthError, RenewError

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
JWT_TOKEN_TYPE = "urn:ietf:params:oauth:token-type:jwt"
IMPERSONATION_URL = ("https://iamcredentials.googleapis.com/v1/projects/-/"
                     "serviceAccounts/{}:generateAccessToken")


class Session:
    """Holds the credentials shared by all secret manager and KMS calls.

    Readers always get a complete credentials object. Renewal builds and
    refreshes a new one and replaces the old reference in a single assignment.
    """

    def __init__(self, credentials, factory=None):
        self._credentials = credentials
        self._factory = factory
        self.lock = threading.Lock()

    @property
    def credentials(self):
        return self._credentials

    @property
    def renewable(self):
        return self._factory is not None

    @property
    def valid(self):
        return bool(self._credentials.valid)

    def renew(self):
        if self._factory is None:
            raise RenewError("Static session token cannot be renewed")
        with self.lock:
            try:
                credentials = self._factory()
                credentials.refresh(Request())
            except (exceptions.GoogleAuthError, ValueError) as e:
                raise RenewError(f"Session renewal failed {e}") from e
            self._credentials = credentials
        logging.getLogger(__name__).info("Session token renewed")


def _read_identity_token(path):
    try:
        with open(path, "r", encoding="utf-8") as fh:
            token = fh.read().strip()
    except OSError as e:
        logging.getLogger(__name__).info(f"Identity token {path} not readable: {e.strerror}")
        return None
    return token or None


def _federated_credentials_factory(settings):
    impersonation_url = None
    if settings.service_account:
        impersonation_url = IMPERSONATION_URL.format(settings.service_account)

    def factory():
        return identity_pool.Credentials(
            audience=settings.audience,
            subject_token_type=JWT_TOKEN_TYPE,
            token_url=settings.sts_token_url,
            credential_source={"file": settings.identity_token_path},
            service_account_impersonation_url=impersonation_url,
            scopes=[CLOUD_PLATFORM_SCOPE],
        )

    return factory


def authenticate(settings):
    """Establish the session used by every downstream component.

    :param settings: a :class:`~gcp_secretmanager_lifecycle.config.Settings`
    :return: :class:`Session`
    :raises AuthError: when neither the identity token nor a static token works
    """
    logger = logging.getLogger(__name__)

    if _read_identity_token(settings.identity_token_path):
        factory = _federated_credentials_factory(settings)
        try:
            credentials = factory()
            credentials.refresh(Request())
        except (exceptions.GoogleAuthError, ValueError) as e:
            raise AuthError(f"Identity token exchange failed for role "
                            f"{settings.role!r}: {e}") from e
        logger.info(f"Authenticated with identity token as role {settings.role!r}")
        return Session(credentials, factory=factory)

    if settings.static_token:
        logger.warning("Identity token unavailable using static session token, "
                       "this is not suitable for production")
        return Session(google.oauth2.credentials.Credentials(token=settings.static_token))

    raise AuthError(f"No identity token at {settings.identity_token_path} "
                    f"and no static session token configured")
