# -*- coding: utf-8 -*-
"""Append only audit trail of security relevant actions.

Each record is a single JSON line::

    {"action": "tax_calculation", "timestamp": "2024-01-01T00:00:00+00:00", "metadata": {...}}

Recording is fire and forget, failures are logged and never reach the caller.
"""

import json
import logging
import threading
from datetime import datetime, timezone


class AuditEmitter:

    def __init__(self, path=None, logger_name=None):
        self._path = path
        self._logger = logging.getLogger(logger_name or f"{__name__}.records")
        self.lock = threading.Lock()

    @property
    def path(self):
        return self._path

    def record(self, action, metadata=None):
        try:
            line = json.dumps({
                "action": action,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "metadata": dict(metadata or {}),
            }, default=str)
            if self._path is None:
                self._logger.info(line)
                return
            # one write per record keeps lines whole across threads
            with self.lock:
                with open(self._path, "a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
        except Exception:
            logging.getLogger(__name__).exception(f"While recording audit action {action}")
