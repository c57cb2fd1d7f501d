"""Query engine -- filter, sort and cursor-paginate a merged asset set.

Known limitation: ``QueryFilter.time_period`` is accepted but not applied.
Filtering by window needs historical snapshots, which are not kept.

Sorting uses Python's stable sort in both directions, so records with
equal keys keep their input (aggregate) order.
"""

import base64
import binascii
import json

from aggregator.logging import get_logger
from aggregator.models import AssetRecord, Page, QueryFilter, SortKey, SortOrder

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 20

_SORT_FIELDS: dict[SortKey, str] = {
    SortKey.VOLUME: "volume",
    SortKey.PRICE_CHANGE: "price_1h_change",
    SortKey.MARKET_CAP: "market_cap",
    SortKey.LIQUIDITY: "liquidity",
}


def apply_filters(records: list[AssetRecord], query: QueryFilter) -> list[AssetRecord]:
    """Keep records meeting the minimum volume and market cap thresholds."""
    filtered = records

    if query.min_volume is not None:
        filtered = [r for r in filtered if r.volume >= query.min_volume]

    if query.min_market_cap is not None:
        filtered = [r for r in filtered if r.market_cap >= query.min_market_cap]

    return filtered


def apply_sorting(records: list[AssetRecord], query: QueryFilter) -> list[AssetRecord]:
    """Return records ordered by ``query.sort_by``, descending unless asc requested.

    ``price_change`` sorts on the 1h change.
    """
    field = _SORT_FIELDS.get(query.sort_by, "volume")
    return sorted(
        records,
        key=lambda r: getattr(r, field),
        reverse=query.sort_order != SortOrder.ASC,
    )


def encode_cursor(offset: int) -> str:
    """Opaque cursor for a position in the filtered, sorted sequence."""
    return base64.b64encode(json.dumps({"offset": offset}).encode()).decode()


def decode_cursor(cursor: str | None) -> int:
    """Decode a cursor into an offset. Anything invalid means offset 0."""
    if not cursor:
        return 0
    try:
        payload = json.loads(base64.b64decode(cursor, validate=True))
        offset = payload["offset"]
    except (binascii.Error, ValueError, TypeError, KeyError):
        logger.warning("invalid_cursor", cursor=cursor[:64])
        return 0

    if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
        logger.warning("invalid_cursor", cursor=cursor[:64])
        return 0
    return offset


def paginate(records: list[AssetRecord], query: QueryFilter) -> Page:
    """Slice one page starting at the cursor offset.

    ``next_cursor`` is set only when records remain after this page.
    """
    limit = query.limit if query.limit > 0 else DEFAULT_PAGE_SIZE
    start = decode_cursor(query.cursor)
    end = start + limit

    return Page(
        data=records[start:end],
        limit=limit,
        total=len(records),
        next_cursor=encode_cursor(end) if end < len(records) else None,
    )


def run_query(records: list[AssetRecord], query: QueryFilter) -> Page:
    """Filter, sort and paginate in one pass."""
    return paginate(apply_sorting(apply_filters(records, query), query), query)

