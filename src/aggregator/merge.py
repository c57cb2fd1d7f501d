"""Merge engine -- fold per-provider records into one record per address.

Conflict policy, applied left to right over duplicates of an address:
  price, price_*_change            first non-zero value wins
  market_cap, volume, liquidity,   maximum observed
  transaction_count
  last_updated                     merge time
  provenance                       ordered union of sources

The fold depends on input order only through "first non-zero", so a fixed
adapter order gives a reproducible result.
"""

import time
from collections.abc import Iterable
from dataclasses import replace

from aggregator.models import AssetRecord


def merge_records(
    records: Iterable[AssetRecord], now: float | None = None
) -> list[AssetRecord]:
    """Deduplicate records by address, resolving field conflicts.

    Args:
        records: Flattened records from all providers, in adapter order.
        now: Merge timestamp stamped on combined records (defaults to time.time()).

    Returns:
        One record per address, in first-seen order. Addresses seen once
        are returned unchanged.
    """
    merged: dict[str, AssetRecord] = {}

    for record in records:
        existing = merged.get(record.address)
        if existing is None:
            merged[record.address] = record
            continue
        merged[record.address] = _combine(
            existing, record, now if now is not None else time.time()
        )

    return list(merged.values())


def _combine(existing: AssetRecord, incoming: AssetRecord, now: float) -> AssetRecord:
    provenance = existing.provenance + tuple(
        source for source in incoming.provenance if source not in existing.provenance
    )
    return replace(
        existing,
        price=existing.price or incoming.price,
        market_cap=max(existing.market_cap, incoming.market_cap),
        volume=max(existing.volume, incoming.volume),
        liquidity=max(existing.liquidity, incoming.liquidity),
        transaction_count=max(existing.transaction_count, incoming.transaction_count),
        price_1h_change=existing.price_1h_change or incoming.price_1h_change,
        price_24h_change=existing.price_24h_change or incoming.price_24h_change,
        price_7d_change=existing.price_7d_change or incoming.price_7d_change,
        last_updated=now,
        provenance=provenance,
    )
