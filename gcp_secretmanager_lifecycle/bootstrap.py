# -*- coding: utf-8 -*-
"""Startup wiring for the secret lifecycle.

Order matters: authenticate, lease and connect once, then hand the connection
to the background rotation loop. A failure anywhere on that path is fatal
because there is no previous state to fall back on.
"""

import logging
import signal
import threading

from .audit import AuditEmitter
from .authenticator import authenticate
from .config import Settings
from .connection_manager import ConnectionManager
from .credential_store import CredentialStoreClient
from .encryption import EnvelopeEncryptionClient
from .exceptions import AuthError, ConfigError, ConnectError, LeaseError


class SecretLifecycle:
    """The surface request handlers use: current connection, encryption and audit."""

    def __init__(self, settings, session, store, connections, crypto, audit):
        self.settings = settings
        self.session = session
        self.store = store
        self.connections = connections
        self.crypto = crypto
        self.audit = audit

    @classmethod
    def start(cls, settings, engine_factory=None, timer=None):
        """Authenticate, connect and start rotating.

        :raises AuthError: no session could be established
        :raises LeaseError: the first lease failed
        :raises ConnectError: the first connection failed
        """
        session = authenticate(settings)
        store = CredentialStoreClient(session, settings)
        audit = AuditEmitter(settings.audit_log_path)
        connections = ConnectionManager(store, settings,
                                        engine_factory=engine_factory,
                                        timer=timer,
                                        audit=audit)
        connections.start()
        crypto = EnvelopeEncryptionClient(session,
                                          settings.encryption_key,
                                          endpoint=settings.kms_endpoint,
                                          timeout=settings.request_timeout)
        connections.start_rotation()
        return cls(settings, session, store, connections, crypto, audit)

    def current(self):
        return self.connections.current()

    def encrypt(self, plaintext):
        return self.crypto.encrypt(plaintext)

    def decrypt(self, ciphertext):
        return self.crypto.decrypt(ciphertext)

    def record(self, action, metadata=None):
        self.audit.record(action, metadata)

    def health(self):
        status = {"database": "healthy",
                  "secrets": "healthy" if self.session.valid else "unhealthy: session expired"}
        try:
            self.current().probe(self.settings.probe_timeout)
        except ConnectError as e:
            status["database"] = f"unhealthy: {e}"
        return status

    def stop(self):
        self.connections.stop(timeout=self.settings.request_timeout)


def main(environ=None):
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s %(message)s")
    logger = logging.getLogger(__name__)

    try:
        settings = Settings.from_env(environ)
        lifecycle = SecretLifecycle.start(settings)
    except (ConfigError, AuthError, LeaseError, ConnectError) as e:
        logger.critical(f"Cannot start, refusing to serve traffic {e}")
        return 1

    logger.info(f"Secret lifecycle running, rotating every {settings.rotation_interval}s "
                f"for service on port {settings.port}")
    stopping = threading.Event()

    def _stop(signum, frame):
        stopping.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)
    stopping.wait()
    lifecycle.stop()
    logger.info("Secret lifecycle stopped")
    return 0
