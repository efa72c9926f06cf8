"""
Data models for the holder snapshot pipeline.
HolderRecord is the wire/disk record; Snapshot and FetchState are the
immutable values swapped in and out of the snapshot store.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime"""
    return datetime.now(timezone.utc)


def parse_quantity(raw: Any) -> Decimal:
    """
    Numeric value of a decimal-as-string quantity.
    Missing, unparseable and non-finite values count as zero.
    """
    if raw is None:
        return Decimal(0)
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not value.is_finite():
        return Decimal(0)
    return value


# =============================================================================
# RECORDS
# =============================================================================

class HolderRecord(BaseModel):
    """
    One token holder as returned by the holder list API.

    The upstream field names are kept as aliases so API responses and
    backup files use the same shape the upstream API does.
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    address: str = Field(alias="TokenHolderAddress", min_length=1)
    quantity: str = Field(default="0", alias="TokenHolderQuantity")

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity_as_string(cls, value: Any) -> str:
        if value is None:
            return "0"
        return str(value)

    @property
    def quantity_value(self) -> Decimal:
        return parse_quantity(self.quantity)

    @property
    def address_key(self) -> str:
        """Case-insensitive identity of the holder."""
        return self.address.lower()

    def to_wire(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


# =============================================================================
# SNAPSHOT
# =============================================================================

@dataclass(frozen=True)
class Snapshot:
    """
    One ranked view of all holders.

    Records must already be sorted by quantity descending; the store never
    sorts. An index of lower-cased address -> first position is built once
    here so rank lookups do not scan.
    """
    records: tuple[HolderRecord, ...] = ()
    taken_at: Optional[datetime] = None
    complete: bool = False
    _index: dict[str, int] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self):
        records = tuple(self.records)
        index: dict[str, int] = {}
        for position, record in enumerate(records):
            index.setdefault(record.address_key, position)
        object.__setattr__(self, "records", records)
        object.__setattr__(self, "_index", index)

    @classmethod
    def empty(cls) -> "Snapshot":
        return cls()

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records

    def position_of(self, address: str) -> Optional[int]:
        """0-based position of the first record matching address, if any."""
        return self._index.get(address.strip().lower())

    def age_seconds(self, now: Optional[datetime] = None) -> Optional[float]:
        if self.taken_at is None:
            return None
        return ((now or utc_now()) - self.taken_at).total_seconds()


# =============================================================================
# FETCH STATE
# =============================================================================

class FetchStatus(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"


@dataclass(frozen=True)
class FetchState:
    """Process-wide ingestion state: Idle, or Fetching with a progress percent."""
    status: FetchStatus = FetchStatus.IDLE
    progress: int = 0

    @classmethod
    def idle(cls, progress: int = 0) -> "FetchState":
        return cls(FetchStatus.IDLE, progress)

    @classmethod
    def fetching(cls, progress: int = 0) -> "FetchState":
        return cls(FetchStatus.FETCHING, progress)

    @property
    def is_fetching(self) -> bool:
        return self.status == FetchStatus.FETCHING


# =============================================================================
# RUN RESULT
# =============================================================================

@dataclass
class IngestionResult:
    """Result of an ingestion run."""
    run_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    success: bool = False
    error: Optional[str] = None

    # Metrics
    pages_fetched: int = 0
    records_fetched: int = 0
    records_published: int = 0
    partial_publishes: int = 0
    restored_from_backup: bool = False
    source_metrics: dict[str, Any] = field(default_factory=dict)

    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "success": self.success,
            "error": self.error,
            "metrics": {
                "pages_fetched": self.pages_fetched,
                "records_fetched": self.records_fetched,
                "records_published": self.records_published,
                "partial_publishes": self.partial_publishes,
            },
            "source_metrics": dict(self.source_metrics),
            "restored_from_backup": self.restored_from_backup,
            "duration_seconds": self.duration_seconds,
        }


def records_from_wire(items: Iterable[dict[str, Any]]) -> list[HolderRecord]:
    """Validate raw upstream/backup dicts into records."""
    return [HolderRecord.model_validate(item) for item in items]


__all__ = [
    "utc_now",
    "parse_quantity",
    "HolderRecord",
    "Snapshot",
    "FetchStatus",
    "FetchState",
    "IngestionResult",
    "records_from_wire",
]
