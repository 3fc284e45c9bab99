# -*- coding: utf-8 -*-
import unittest
from unittest import mock

from gcp_secretmanager_lifecycle import InjectKeywordedSecretString, InjectSecretString, \
    NotFoundError


class FakeStore:
    def __init__(self, secrets):
        self.secrets = secrets
        self.get_key_value_secret = mock.MagicMock(side_effect=self._get)

    def _get(self, path, field=None):
        if path not in self.secrets:
            raise NotFoundError(self.secret_name(path), "not found")
        if field is None:
            return self.secrets[path]
        if field not in self.secrets[path]:
            raise NotFoundError(self.secret_name(path), f"has no key {field}")
        return self.secrets[path][field]

    def secret_name(self, path):
        return f"projects/tax-calculator/secrets/{path}"


class TestDecorators(unittest.TestCase):
    def setUp(self):
        self.store = FakeStore({
            "api-keys-hmrc": {"api_key": "k-123"},
            "smtp": {"username": "bob", "password": "password"},
        })

    def test_inject_secret_string(self):
        @InjectSecretString(self.store, "api-keys-hmrc", "api_key")
        def call_hmrc(api_key, fred=None):
            return api_key, fred

        assert call_hmrc() == ("k-123", None)
        assert call_hmrc(fred="hello") == ("k-123", "hello")
        # resolved once at decoration
        assert self.store.get_key_value_secret.call_count == 1

    def test_inject_keyworded_secret_string(self):
        @InjectKeywordedSecretString(self.store, "smtp",
                                     func_username="username",
                                     func_password="password")
        def send_mail(func_username, func_password, more_stuff=None):
            return func_username, func_password, more_stuff

        assert send_mail(more_stuff="hello") == ("bob", "password", "hello")
        assert send_mail.__name__ == "send_mail"

    def test_missing_key(self):
        with self.assertRaises(NotFoundError):
            @InjectKeywordedSecretString(self.store, "smtp", func_token="token")
            def send_mail(func_token):
                return func_token

    def test_missing_field(self):
        with self.assertRaises(NotFoundError):
            @InjectSecretString(self.store, "api-keys-hmrc", "secret")
            def call_hmrc(secret):
                return secret
