# -*- coding: utf-8 -*-
import json
import os
import shutil
import tempfile
import threading
import unittest
from datetime import datetime

from gcp_secretmanager_lifecycle import AuditEmitter


class TestAuditEmitter(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.path = os.path.join(self.tmpdir, "audit.log")

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def read_records(self):
        with open(self.path, "r", encoding="utf-8") as fh:
            return [json.loads(line) for line in fh]

    def test_record_appends_json_line(self):
        emitter = AuditEmitter(self.path)
        emitter.record("tax_calculation", {"gross_income": 50000, "tax_year": "2024-25"})
        emitter.record("credentials_rotated", {"username": "v-u2"})

        first, second = self.read_records()
        assert first["action"] == "tax_calculation"
        assert first["metadata"] == {"gross_income": 50000, "tax_year": "2024-25"}
        assert datetime.fromisoformat(first["timestamp"]).tzinfo is not None
        assert second["action"] == "credentials_rotated"

    def test_unserialisable_metadata_stringified(self):
        emitter = AuditEmitter(self.path)
        emitter.record("tax_calculation", {"at": datetime(2024, 4, 6)})
        assert self.read_records()[0]["metadata"]["at"] == "2024-04-06 00:00:00"

    def test_concurrent_records_never_interleave(self):
        emitter = AuditEmitter(self.path)

        def write(n):
            for i in range(200):
                emitter.record("encrypt", {"writer": n, "i": i, "padding": "x" * 512})

        threads = [threading.Thread(target=write, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        records = self.read_records()
        assert len(records) == 1600
        assert {(r["metadata"]["writer"], r["metadata"]["i"]) for r in records} == \
            {(n, i) for n in range(8) for i in range(200)}

    def test_sink_failure_swallowed(self):
        emitter = AuditEmitter(os.path.join(self.tmpdir, "missing", "dir", "audit.log"))
        with self.assertLogs("gcp_secretmanager_lifecycle.audit", "ERROR"):
            emitter.record("encrypt", {"field": "national_insurance"})

    def test_logger_sink(self):
        emitter = AuditEmitter()
        with self.assertLogs("gcp_secretmanager_lifecycle.audit.records", "INFO") as logs:
            emitter.record("decrypt", {"field": "national_insurance"})
        record = json.loads(logs.records[0].getMessage())
        assert record["action"] == "decrypt"
