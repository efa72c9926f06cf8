"""
Durable backup: round trip, atomic replace, and non-fatal load failures.
"""
import json
import os
import time

import pytest

from holders_ingest.backup import DurableBackup
from holders_ingest.errors import BackupAbsent, BackupCorrupt
from tests.conftest import holders


class TestSaveLoad:

    def test_round_trip_preserves_order_and_values(self, backup):
        records = holders(("0xB", "50"), ("0xA", "100"), ("0xc", "0.25"))

        backup.save(records)
        contents = backup.load()

        assert [(r.address, r.quantity) for r in contents.records] == [
            ("0xB", "50"), ("0xA", "100"), ("0xc", "0.25"),
        ]

    def test_file_uses_upstream_field_names(self, backup):
        backup.save(holders(("0xA", "1")))

        with open(backup.path, encoding="utf-8") as f:
            assert json.load(f) == [{"TokenHolderAddress": "0xA", "TokenHolderQuantity": "1"}]

    def test_save_overwrites_previous(self, backup):
        backup.save(holders(("old", 1), ("older", 0)))
        backup.save(holders(("new", 2)))

        assert [r.address for r in backup.load().records] == ["new"]

    def test_no_temp_file_left_behind(self, backup):
        backup.save(holders(("0xA", "1")))

        assert os.listdir(backup.path.parent) == [backup.path.name]

    def test_creates_parent_directory(self, tmp_path):
        backup = DurableBackup(tmp_path / "nested" / "dir" / "holders.json")
        backup.save(holders(("0xA", "1")))
        assert backup.exists()

    def test_modified_at_tracks_file_mtime(self, backup):
        backup.save(holders(("0xA", "1")))
        past = time.time() - 3600
        os.utime(backup.path, (past, past))

        contents = backup.load()

        assert abs(contents.modified_at.timestamp() - past) < 1

    def test_loads_raw_upstream_records(self, backup):
        raw = [
            {"TokenHolderAddress": "0xA", "TokenHolderQuantity": "5", "TokenDivisor": "18"},
            {"TokenHolderAddress": "0xB", "TokenHolderQuantity": "3"},
        ]
        backup.path.write_text(json.dumps(raw), encoding="utf-8")

        assert [r.address for r in backup.load().records] == ["0xA", "0xB"]


class TestLoadFailures:

    def test_absent_backup_is_none(self, backup):
        assert not backup.exists()
        assert backup.load() is None
        with pytest.raises(BackupAbsent):
            backup.read()

    @pytest.mark.parametrize("content", [
        "{not json",
        '{"TokenHolderAddress": "0xA"}',
        '[{"TokenHolderQuantity": "1"}]',
        "",
    ])
    def test_corrupt_backup_is_none(self, backup, content):
        backup.path.write_text(content, encoding="utf-8")

        assert backup.load() is None
        with pytest.raises(BackupCorrupt):
            backup.read()
