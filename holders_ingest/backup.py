"""
Durable Backup: the last complete snapshot as a JSON file on disk.

The file is a JSON array of holder records using the upstream field names.
Writes go to a .tmp sibling first and are moved into place with os.replace,
so a crash mid-write never leaves a truncated backup. The file mtime is the
fallback snapshot timestamp after a cold load.
"""
import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence, Union

import structlog
from pydantic import ValidationError

from holders_ingest.errors import BackupAbsent, BackupCorrupt
from holders_ingest.models import HolderRecord, records_from_wire

logger = structlog.get_logger()


@dataclass(frozen=True)
class BackupContents:
    records: tuple[HolderRecord, ...]
    modified_at: datetime


class DurableBackup:
    """Save/restore of the last successful record list."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, records: Sequence[HolderRecord]) -> None:
        """Serialize all records, replacing any previous backup."""
        payload = [record.to_wire() for record in records]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=True, indent=2)
            os.replace(tmp_path, self.path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
        logger.info("Backup saved", path=str(self.path), records=len(payload))

    def read(self) -> BackupContents:
        """
        Deserialize the backup.

        Raises:
            BackupAbsent: no backup file
            BackupCorrupt: unreadable JSON or invalid records
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            modified_at = datetime.fromtimestamp(os.path.getmtime(self.path), tz=timezone.utc)
        except FileNotFoundError as e:
            raise BackupAbsent(f"No backup at {self.path}") from e
        except (OSError, ValueError) as e:
            raise BackupCorrupt(f"Unreadable backup {self.path}: {e}") from e

        if not isinstance(raw, list):
            raise BackupCorrupt(f"Backup {self.path} is not a JSON array")
        try:
            records = records_from_wire(raw)
        except ValidationError as e:
            raise BackupCorrupt(f"Invalid record in backup {self.path}: {e}") from e

        return BackupContents(records=tuple(records), modified_at=modified_at)

    def load(self) -> Optional[BackupContents]:
        """Like read(), but a missing or corrupt backup is just None."""
        try:
            contents = self.read()
        except BackupAbsent:
            logger.info("No backup available", path=str(self.path))
            return None
        except BackupCorrupt as e:
            logger.warning("Ignoring corrupt backup", path=str(self.path), error=str(e))
            return None

        logger.info(
            "Backup loaded",
            path=str(self.path),
            records=len(contents.records),
            modified_at=contents.modified_at.isoformat(),
        )
        return contents
