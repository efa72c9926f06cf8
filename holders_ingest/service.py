"""
Service container wiring the store, backup, engine and scheduler together.
Shared by the HTTP app and the CLI.
"""
from dataclasses import dataclass
from typing import Optional

import structlog

from holders_ingest.backup import DurableBackup
from holders_ingest.config import Settings, get_settings
from holders_ingest.ingestion.engine import IngestionEngine, SourceFactory
from holders_ingest.ingestion.ranking import rank_records
from holders_ingest.models import Snapshot
from holders_ingest.scheduler import HolderRefreshScheduler
from holders_ingest.store import SnapshotStore

logger = structlog.get_logger()


@dataclass
class HoldersService:
    settings: Settings
    store: SnapshotStore
    backup: DurableBackup
    engine: IngestionEngine
    scheduler: HolderRefreshScheduler

    def cold_load(self) -> bool:
        """
        Seed the store from the backup file for instant startup.
        The file mtime stands in for the snapshot timestamp.
        """
        contents = self.backup.load()
        if contents is None:
            return False

        self.store.replace(
            Snapshot(
                records=tuple(rank_records(contents.records)),
                taken_at=contents.modified_at,
                complete=True,
            )
        )
        logger.info(
            "Loaded existing data from file",
            holders=len(contents.records),
            updated=contents.modified_at.isoformat(),
        )
        return True


def build_service(
    settings: Optional[Settings] = None,
    source_factory: Optional[SourceFactory] = None,
) -> HoldersService:
    settings = settings or get_settings()
    store = SnapshotStore()
    backup = DurableBackup(settings.backup_path)
    engine = IngestionEngine(store, backup, source_factory=source_factory, settings=settings)
    scheduler = HolderRefreshScheduler(engine, store, settings=settings)
    return HoldersService(
        settings=settings,
        store=store,
        backup=backup,
        engine=engine,
        scheduler=scheduler,
    )
