# -*- coding: utf-8 -*-
"""Envelope encryption of sensitive fields through Cloud KMS.

Cryptography never happens locally. Plaintext is base64 encoded because the KMS
REST api requires it and the returned ciphertext is an opaque base64 string tied
to the key (and key version) that produced it. Neither plaintext nor ciphertext
is ever logged.
"""

import base64
import binascii
import threading

import google_auth_httplib2
import httplib2
from google.auth import exceptions as auth_exceptions
from googleapiclient.discovery import build
from googleapiclient.errors import Error as GoogleApiClientError

from .exceptions import DecryptError, EncryptError

KMS_ERRORS = (GoogleApiClientError,
              httplib2.HttpLib2Error,
              auth_exceptions.GoogleAuthError,
              OSError)


class EnvelopeEncryptionClient:

    def __init__(self, session, key_name, endpoint=None, timeout=10.0):
        self._session = session
        self._key_name = key_name
        self._endpoint = endpoint
        self._timeout = timeout
        self.ns = threading.local()

    @property
    def key_name(self):
        return self._key_name

    def _keys(self):
        credentials = self._session.credentials
        if getattr(self.ns, "credentials", None) is not credentials:
            http = google_auth_httplib2.AuthorizedHttp(credentials,
                                                       http=httplib2.Http(timeout=self._timeout))
            client_options = {"api_endpoint": self._endpoint} if self._endpoint else None
            kms_service = build("cloudkms", "v1",
                                http=http,
                                cache_discovery=False,
                                client_options=client_options)
            self.ns.keys = kms_service.projects().locations().keyRings().cryptoKeys()
            self.ns.credentials = credentials
        return self.ns.keys

    def encrypt(self, plaintext):
        """Encrypt a non empty string.

        :return: the ciphertext envelope
        :raises EncryptError: if KMS is unreachable or its response has no ciphertext
        """
        if not plaintext:
            raise EncryptError(self._key_name, "plaintext is empty")
        body = {"plaintext": base64.b64encode(plaintext.encode("utf-8")).decode("ascii")}
        try:
            response = self._keys().encrypt(name=self._key_name, body=body).execute()
        except KMS_ERRORS as e:
            raise EncryptError(self._key_name, type(e).__name__) from e

        ciphertext = (response or {}).get("ciphertext")
        if not ciphertext:
            raise EncryptError(self._key_name, "response has no ciphertext")
        return ciphertext

    def decrypt(self, ciphertext):
        """Decrypt a ciphertext envelope produced by :meth:`encrypt`.

        :raises DecryptError: if KMS rejects the ciphertext or its response has
            no plaintext or the plaintext is not valid base64 utf-8
        """
        if not ciphertext:
            raise DecryptError(self._key_name, "ciphertext is empty")
        try:
            response = self._keys().decrypt(name=self._key_name,
                                            body={"ciphertext": ciphertext}).execute()
        except KMS_ERRORS as e:
            raise DecryptError(self._key_name, type(e).__name__) from e

        plaintext_b64 = (response or {}).get("plaintext")
        if not plaintext_b64:
            raise DecryptError(self._key_name, "response has no plaintext")
        try:
            return base64.b64decode(plaintext_b64, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            raise DecryptError(self._key_name, "plaintext could not be decoded") from None
