# -*- coding: utf-8 -*-
"""This module owns the live database connection pool and rotates its credentials.

Exactly one :class:`ConnectionHandle` is current at any time. Rotation leases
new credentials, builds and probes a new pool, publishes it with a single
reference assignment and only then closes the previous pool. Request handlers
call :meth:`ConnectionManager.current` and never wait on rotation.

A failed rotation keeps the previous handle. The next attempt is simply the
next tick of the timer, there is no backoff and no immediate retry.
"""

import logging
import threading
import weakref
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from datetime import datetime, timedelta, timezone
from functools import partial

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError

from .exceptions import ConnectError, LeaseError, RenewError, RotationError


def create_pool(lease, settings):
    """Build a bounded connection pool for ``lease``.

    ``pool_size`` bounds idle connections, ``pool_size + max_overflow`` bounds open
    connections and ``pool_recycle`` bounds the lifetime of each connection so
    connections are renewed even without an explicit rotation.
    """
    url = URL.create(
        settings.db_driver,
        username=lease.username,
        password=lease.password,
        host=lease.host,
        port=lease.port,
        database=lease.database,
    )
    connect_args = {}
    if settings.db_driver.startswith("postgresql"):
        connect_args["connect_timeout"] = settings.db_connect_timeout
    return create_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=settings.db_conn_max_lifetime,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


class IntervalTimer:
    """Paces the rotation loop. ``wait`` returns False once stopped."""

    def __init__(self, interval):
        self.interval = interval
        self._stopped = threading.Event()

    def wait(self):
        return not self._stopped.wait(self.interval)

    def stop(self):
        self._stopped.set()


class ConnectionHandle:
    """A connection pool bound to the lease it was created from."""

    def __init__(self, engine, lease):
        self._engine = engine
        self._lease = lease
        self._closed = False
        self.lock = threading.Lock()

    @property
    def lease(self):
        return self._lease

    @property
    def username(self):
        return self._lease.username

    @property
    def engine(self):
        return self._engine

    @property
    def closed(self):
        return self._closed

    @property
    def target(self):
        return f"{self._lease.host}:{self._lease.port}/{self._lease.database}"

    def connect(self):
        """Check out a connection. Use as a context manager."""
        if self._closed:
            raise ConnectError(self.target, self.username, "handle is closed")
        return self._engine.connect()

    def _ping(self):
        pool = self._engine.pool
        try:
            with self.connect() as conn:
                conn.execute(text("SELECT 1"))
        finally:
            # a ping that outlives its handle checks in to a pool close() already disposed
            if self._closed:
                pool.dispose()

    def probe(self, timeout):
        """Run ``SELECT 1`` and fail with ConnectError if it errors or exceeds ``timeout``."""
        if self._closed:
            raise ConnectError(self.target, self.username, "handle is closed")
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="probe")
        try:
            executor.submit(self._ping).result(timeout=timeout)
        except FuturesTimeoutError:
            raise ConnectError(self.target, self.username,
                               f"liveness probe timed out after {timeout}s") from None
        except SQLAlchemyError as e:
            raise ConnectError(self.target, self.username,
                               str(getattr(e, "orig", None) or type(e).__name__)) from e
        finally:
            executor.shutdown(wait=False)

    def close(self):
        with self.lock:
            if self._closed:
                return
            self._closed = True
        self._engine.dispose()


# the thread only holds a weak reference between ticks so a dropped manager
# does not live on because of its own rotation loop

def _background_rotation_thread(manager_weak_ref, timer):
    """
    Rotation loop driver
    :param manager_weak_ref: weak reference to the connection manager
    :param timer: object whose wait() returns True on each tick and False when stopped
    :return: None
    """
    while timer.wait():
        manager = manager_weak_ref()
        if not manager:
            break
        try:
            manager.tick()
        except Exception:
            logging.getLogger(__name__).exception("While rotating database credentials")
        del manager


class ConnectionManager:
    """Owns the current :class:`ConnectionHandle` and rotates it on a timer.

    :param store: credential store providing ``get_database_lease`` and ``renew_session``
    :param settings: :class:`~gcp_secretmanager_lifecycle.config.Settings`
    :param engine_factory: callable(lease) returning a SQLAlchemy engine, defaults
        to :func:`create_pool`
    :param timer: paces rotation, defaults to :class:`IntervalTimer`
    :param audit: optional :class:`~gcp_secretmanager_lifecycle.audit.AuditEmitter`
    :param clock: callable returning an aware ``datetime`` now
    """

    def __init__(self, store, settings, engine_factory=None, timer=None, audit=None,
                 clock=None):
        self._store = store
        self._settings = settings
        self._engine_factory = engine_factory or partial(create_pool, settings=settings)
        self._timer = timer or IntervalTimer(settings.rotation_interval)
        self._audit = audit
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._current = None
        self._thread = None
        self.lock = threading.Lock()

    def current(self):
        handle = self._current
        if handle is None:
            raise ConnectError(f"{self._settings.db_host}:{self._settings.db_port}/"
                               f"{self._settings.db_name}", "-", "no connection established")
        return handle

    def connect(self, lease):
        """Open and probe a new pool for ``lease``.

        :raises ConnectError: if the pool cannot be built or the probe fails
        """
        try:
            engine = self._engine_factory(lease)
        except (SQLAlchemyError, ImportError) as e:
            raise ConnectError(f"{lease.host}:{lease.port}/{lease.database}", lease.username,
                               type(e).__name__) from e
        handle = ConnectionHandle(engine, lease)
        try:
            handle.probe(self._settings.probe_timeout)
        except ConnectError:
            handle.close()
            raise
        return handle

    def start(self):
        """Establish the first connection. Failures propagate, there is nothing to fall back on."""
        with self.lock:
            lease = self._store.get_database_lease()
            self._current = self.connect(lease)
        logging.getLogger(__name__).info(f"Connected to database as {lease.username}")
        self._warn_if_expiring(lease)

    def rotate(self):
        """Swap in a connection built from freshly leased credentials.

        :raises RotationError: the previous handle stays current
        """
        with self.lock:
            previous = self._current
            try:
                lease = self._store.get_database_lease()
                handle = self.connect(lease)
            except (LeaseError, ConnectError) as e:
                self._record("credentials_rotation_failed", {"error": type(e).__name__})
                raise RotationError(e) from e
            except Exception as e:
                self._record("credentials_rotation_failed", {"error": type(e).__name__})
                raise
            self._current = handle

        logging.getLogger(__name__).info(f"Credentials rotated to {lease.username}")
        self._record("credentials_rotated", {"username": lease.username,
                                             "lease_id": lease.lease_id})
        self._warn_if_expiring(lease)
        if previous is not None:
            previous.close()

    def tick(self):
        """One iteration of the rotation loop: renew the session then rotate."""
        logger = logging.getLogger(__name__)
        if self._store.session.renewable:
            try:
                self._store.renew_session()
            except RenewError as e:
                logger.warning(f"Session renewal failed, continuing {e}")
        try:
            self.rotate()
        except RotationError as e:
            logger.error(f"Keeping current database connection {e}")

    def start_rotation(self):
        if self._thread is not None and self._thread.is_alive():
            return
        t = threading.Thread(target=_background_rotation_thread,
                             name="rotate_database_credentials",
                             args=[weakref.ref(self), self._timer])
        t.daemon = True
        t.start()
        self._thread = t

    def stop(self, timeout=None):
        """Stop the rotation loop and close the current handle."""
        self._timer.stop()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        with self.lock:
            handle = self._current
            self._current = None
        if handle is not None:
            handle.close()

    def _warn_if_expiring(self, lease):
        next_rotation = self._clock() + timedelta(seconds=self._settings.rotation_interval)
        if lease.expires_before(next_rotation):
            logging.getLogger(__name__).warning(
                f"Lease {lease.lease_id} expires at {lease.expires_at.isoformat()} before the "
                f"next rotation at {next_rotation.isoformat()}")

    def _record(self, action, metadata):
        if self._audit is not None:
            self._audit.record(action, metadata)
