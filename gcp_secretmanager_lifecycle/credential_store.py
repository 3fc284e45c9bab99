# -*- coding: utf-8 -*-
"""Secret manager access for database leases and key value secrets.

Every read takes the most recent *enabled* version of a secret rather than the
``latest`` alias, so a bad version is rolled back by disabling it. Payloads are
utf-8 JSON. Database credentials are expected as::

    {
        "username": "string",   # "user" is accepted as written by password rotators
        "password": "string"
    }

Host, port and database name are not secrets and come from configuration.
"""

import json
import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import google_crc32c
from google.api_core import exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import secretmanager, secretmanager_v1

from .exceptions import LeaseError, NotFoundError, SecretStoreError, WriteError

SECRET_MANAGER_ERRORS = (exceptions.GoogleAPIError,
                         auth_exceptions.GoogleAuthError)

# versions are treated as live until rotators disable them
LEASE_VALIDITY_FACTOR = 1.5

_SECRET_NAME_RE = re.compile(r"^projects/([^/]+)/secrets/([^/]+)$")


@dataclass
class DatabaseLease:
    username: str
    password: str = field(repr=False)
    host: str = "postgres"
    port: int = 5432
    database: str = "taxcalc"
    lease_id: Optional[str] = None
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def expires_before(self, when):
        return self.expires_at is not None and self.expires_at < when


class CredentialStoreClient:
    """Reads and writes secrets on behalf of the authenticated session.

    Holds no state beyond the shared session and per thread API clients. A
    client is rebuilt whenever the session's credentials have been replaced.
    """

    def __init__(self, session, settings):
        self._session = session
        self._settings = settings
        self.ns = threading.local()

    @property
    def session(self):
        return self._session

    def _client(self):
        credentials = self._session.credentials
        if getattr(self.ns, "credentials", None) is not credentials:
            self.ns.client = secretmanager.SecretManagerServiceClient(
                credentials=credentials,
                client_options={"api_endpoint": self._settings.secrets_endpoint})
            self.ns.credentials = credentials
        return self.ns.client

    def secret_name(self, path):
        """Resolve a bare secret id to its full resource name."""
        if _SECRET_NAME_RE.match(path):
            return path
        return f"projects/{self._settings.project}/secrets/{path}"

    def _latest_enabled_version(self, name):
        request = secretmanager_v1.ListSecretVersionsRequest(
            parent=name,
            filter="state=ENABLED"
        )
        page_result = self._client().list_secret_versions(request=request,
                                                          timeout=self._settings.request_timeout)
        latest = None
        for response in page_result:
            if latest is None or latest.create_time < response.create_time:
                latest = response
        return latest

    def _access(self, name):
        try:
            latest = self._latest_enabled_version(name)
            if not latest:
                raise NotFoundError(name, "has no active enabled versions")
            response = self._client().access_secret_version(
                request={"name": latest.name},
                timeout=self._settings.request_timeout)
        except exceptions.NotFound as e:
            raise NotFoundError(name, e.message) from e
        except SECRET_MANAGER_ERRORS as e:
            raise SecretStoreError(name, f"unavailable {e}") from e

        data = response.payload.data
        crc32c = google_crc32c.Checksum()
        crc32c.update(data)
        if response.payload.data_crc32c and \
                response.payload.data_crc32c != int(crc32c.hexdigest(), 16):
            raise SecretStoreError(name, "payload checksum mismatch")
        return latest, data

    def _decode_mapping(self, name, data):
        try:
            value = json.loads(data.decode("utf-8"))
        except ValueError:
            raise SecretStoreError(name, "payload is not valid JSON") from None
        if not isinstance(value, dict):
            raise SecretStoreError(name, "payload is not a JSON object")
        return value

    def _lease_expiry(self, name, issued_at):
        try:
            secret = self._client().get_secret(request={"name": name},
                                               timeout=self._settings.request_timeout)
        except SECRET_MANAGER_ERRORS as e:
            logging.getLogger(__name__).warning(
                f"Could not read rotation period of {name} lease expiry unknown {e}")
            return None
        rotation = secret.rotation
        period = rotation.rotation_period if rotation else None
        if not period or issued_at is None:
            return None
        return issued_at + period * LEASE_VALIDITY_FACTOR

    def get_database_lease(self):
        """Lease the current database credentials.

        :return: :class:`DatabaseLease`
        :raises LeaseError: when the manager is unreachable, holds no enabled
            version or the payload lacks a username or password
        """
        name = self.secret_name(self._settings.db_credentials_secret)
        try:
            version, data = self._access(name)
            secret = self._decode_mapping(name, data)
        except SecretStoreError as e:
            raise LeaseError(name, str(e)) from e

        username = secret.get("username") or secret.get("user")
        password = secret.get("password")
        if not isinstance(username, str) or not username or \
                not isinstance(password, str) or not password:
            raise LeaseError(name, "payload is missing username or password")

        issued_at = version.create_time
        lease = DatabaseLease(
            username=username,
            password=password,
            host=self._settings.db_host,
            port=self._settings.db_port,
            database=self._settings.db_name,
            lease_id=version.name,
            issued_at=issued_at,
            expires_at=self._lease_expiry(name, issued_at),
        )
        logging.getLogger(__name__).info(f"Leased database credentials {version.name} "
                                         f"for user {username}")
        return lease

    def get_key_value_secret(self, path, field=None):
        """Read a key value secret.

        :param path: secret id or full secret resource name
        :param field: when given return only this key of the mapping
        :return: the secret mapping or the value under ``field``
        :raises NotFoundError: if the secret, an enabled version or the field is missing
        :raises SecretStoreError: if the manager is unreachable or the payload malformed
        """
        name = self.secret_name(path)
        _version, data = self._access(name)
        value = self._decode_mapping(name, data)
        if field is None:
            return value
        if field not in value:
            raise NotFoundError(name, f"has no key {field}")
        return value[field]

    def put_key_value_secret(self, path, value):
        """Store ``value`` as the newest version of a secret, creating the secret if needed.

        :return: the resource name of the new version
        :raises WriteError: if the secret could not be written
        """
        name = self.secret_name(path)
        if not isinstance(value, dict):
            raise WriteError(name, "value must be a mapping")
        match = _SECRET_NAME_RE.match(name)
        if match is None:
            raise WriteError(name, "invalid secret path")
        project, secret_id = match.groups()
        try:
            payload = json.dumps(value).encode("utf8")
        except (TypeError, ValueError) as e:
            raise WriteError(name, f"value is not JSON serialisable {e}") from e

        crc32c = google_crc32c.Checksum()
        crc32c.update(payload)

        client = self._client()
        timeout = self._settings.request_timeout
        try:
            try:
                client.get_secret(request={"name": name}, timeout=timeout)
            except exceptions.NotFound:
                client.create_secret(
                    request={
                        "parent": f"projects/{project}",
                        "secret_id": secret_id,
                        "secret": {"replication": {"automatic": {}}},
                    },
                    timeout=timeout,
                )
                logging.getLogger(__name__).info(f"Created secret {name}")

            response = client.add_secret_version(
                request={
                    "parent": name,
                    "payload": {"data": payload, "data_crc32c": int(crc32c.hexdigest(), 16)},
                },
                timeout=timeout,
            )
        except SECRET_MANAGER_ERRORS as e:
            raise WriteError(name, str(e)) from e
        return response.name

    def renew_session(self):
        """Extend the session. Raises RenewError which callers log and ignore."""
        self._session.renew()

    def get_api_key(self, service):
        return self.get_key_value_secret(f"api-keys-{service}", "api_key")

    def store_api_key(self, service, api_key):
        return self.put_key_value_secret(f"api-keys-{service}", {"api_key": api_key})

    def get_config_value(self, key):
        return self.get_key_value_secret(self._settings.config_secret, key)
