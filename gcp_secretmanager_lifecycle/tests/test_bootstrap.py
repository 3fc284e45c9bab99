# -*- coding: utf-8 -*-
import os
import tempfile
import unittest
from types import SimpleNamespace
from unittest import mock

from sqlalchemy import create_engine

from gcp_secretmanager_lifecycle import AuthError, DatabaseLease, LeaseError, SecretLifecycle, \
    Settings
from gcp_secretmanager_lifecycle.bootstrap import main


def sqlite_factory(lease):
    return create_engine("sqlite://")


class TestSecretLifecycle(unittest.TestCase):
    def setUp(self):
        self.session = SimpleNamespace(valid=True, renewable=False, credentials=object())
        patchers = {
            "authenticate": mock.patch("gcp_secretmanager_lifecycle.bootstrap.authenticate",
                                       return_value=self.session),
            "store": mock.patch("gcp_secretmanager_lifecycle.bootstrap.CredentialStoreClient"),
            "crypto": mock.patch("gcp_secretmanager_lifecycle.bootstrap.EnvelopeEncryptionClient"),
        }
        self.mocks = {}
        for key, patcher in patchers.items():
            self.mocks[key] = patcher.start()
            self.addCleanup(patcher.stop)
        self.store = self.mocks["store"].return_value
        self.store.session = self.session
        self.store.get_database_lease.return_value = DatabaseLease(username="u1", password="p1")
        self.settings = Settings(static_token="s.local")

    def start(self):
        lifecycle = SecretLifecycle.start(self.settings, engine_factory=sqlite_factory)
        self.addCleanup(lifecycle.stop)
        return lifecycle

    def test_start_wires_components(self):
        lifecycle = self.start()
        self.mocks["authenticate"].assert_called_once_with(self.settings)
        self.mocks["store"].assert_called_once_with(self.session, self.settings)
        self.mocks["crypto"].assert_called_once_with(self.session,
                                                     self.settings.encryption_key,
                                                     endpoint=self.settings.kms_endpoint,
                                                     timeout=self.settings.request_timeout)
        assert lifecycle.current().username == "u1"
        assert lifecycle.connections._thread.is_alive()

    def test_request_surface_delegates(self):
        lifecycle = self.start()
        crypto = self.mocks["crypto"].return_value
        crypto.encrypt.return_value = "CiQA..."
        crypto.decrypt.return_value = "AB123456C"
        assert lifecycle.encrypt("AB123456C") == "CiQA..."
        assert lifecycle.decrypt("CiQA...") == "AB123456C"
        with self.assertLogs("gcp_secretmanager_lifecycle.audit.records", "INFO"):
            lifecycle.record("tax_calculation", {"tax_year": "2024-25"})

    def test_health(self):
        lifecycle = self.start()
        assert lifecycle.health() == {"database": "healthy", "secrets": "healthy"}
        lifecycle.current().close()
        self.session.valid = False
        status = lifecycle.health()
        assert status["database"].startswith("unhealthy")
        assert status["secrets"].startswith("unhealthy")

    def test_auth_failure_aborts(self):
        self.mocks["authenticate"].side_effect = AuthError("no identity")
        with self.assertRaises(AuthError):
            SecretLifecycle.start(self.settings, engine_factory=sqlite_factory)
        self.mocks["store"].assert_not_called()

    def test_first_lease_failure_aborts(self):
        self.store.get_database_lease.side_effect = LeaseError("db", "unreachable")
        with self.assertRaises(LeaseError):
            SecretLifecycle.start(self.settings, engine_factory=sqlite_factory)
        self.mocks["crypto"].assert_not_called()


class TestMain(unittest.TestCase):

    def test_exits_without_credentials(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            environ = {"JWT_PATH": os.path.join(tmpdir, "absent")}
            with self.assertLogs("gcp_secretmanager_lifecycle.bootstrap", "CRITICAL"):
                assert main(environ) == 1

    def test_exits_on_bad_configuration(self):
        with self.assertLogs("gcp_secretmanager_lifecycle.bootstrap", "CRITICAL"):
            assert main({"DB_PORT": "not-a-port"}) == 1
