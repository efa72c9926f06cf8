"""
Ranking helpers: ordering and optional de-duplication of holder records.

Ordering is quantity descending, compared numerically. Records with equal
quantity keep their arrival order (Python's sort is stable, also with
reverse=True), so there is no secondary key.
"""
from typing import Iterable, Literal

from holders_ingest.models import HolderRecord

DedupeStrategy = Literal["none", "first", "max"]


def rank_records(records: Iterable[HolderRecord]) -> list[HolderRecord]:
    """Return a new list sorted by quantity descending."""
    return sorted(records, key=lambda record: record.quantity_value, reverse=True)


def dedupe_records(
    records: Iterable[HolderRecord],
    strategy: DedupeStrategy = "none",
) -> list[HolderRecord]:
    """
    Collapse repeated addresses (case-insensitive).

    - none:  keep every record
    - first: keep the first occurrence
    - max:   keep the occurrence with the largest quantity, placed where
             the address first appeared
    """
    if strategy == "none":
        return list(records)

    kept: dict[str, HolderRecord] = {}
    for record in records:
        key = record.address_key
        current = kept.get(key)
        if current is None:
            kept[key] = record
        elif strategy == "max" and record.quantity_value > current.quantity_value:
            kept[key] = record
    return list(kept.values())


def is_ranked(records: Iterable[HolderRecord]) -> bool:
    """True if every adjacent pair is in non-increasing quantity order."""
    previous = None
    for record in records:
        value = record.quantity_value
        if previous is not None and previous < value:
            return False
        previous = value
    return True
