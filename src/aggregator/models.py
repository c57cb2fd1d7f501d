"""Shared data models for the asset aggregator.

All prices, market caps, volumes, liquidity and percentage changes use
Decimal. Prices and aggregates are denominated in SOL. Timestamps are Unix
seconds.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

_ZERO = Decimal("0")


class SortKey(str, Enum):
    """Field a filtered result set can be ordered by."""

    VOLUME = "volume"
    PRICE_CHANGE = "price_change"
    MARKET_CAP = "market_cap"
    LIQUIDITY = "liquidity"


class SortOrder(str, Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


class TimePeriod(str, Enum):
    """Requested time window. Accepted but not applied (no history kept)."""

    ONE_HOUR = "1h"
    ONE_DAY = "24h"
    SEVEN_DAYS = "7d"


class ChangeType(str, Enum):
    """Kind of change broadcast to subscribers."""

    NEW_TOKEN = "new_token"
    PRICE_UPDATE = "price_update"
    VOLUME_SPIKE = "volume_spike"


def _decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return _ZERO
    return Decimal(str(value))


@dataclass(frozen=True)
class AssetRecord:
    """Canonical per-asset snapshot built by a provider adapter.

    ``address`` is the identity shared across providers and the merge key.
    ``provenance`` lists the sources that contributed, in first-seen order.
    """

    address: str
    name: str
    ticker: str
    price: Decimal
    market_cap: Decimal = _ZERO
    volume: Decimal = _ZERO
    liquidity: Decimal = _ZERO
    transaction_count: int = 0
    price_1h_change: Decimal = _ZERO
    price_24h_change: Decimal = _ZERO
    price_7d_change: Decimal = _ZERO
    protocol: str = ""
    last_updated: float = field(default_factory=time.time)
    provenance: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation (Decimals as strings)."""
        return {
            "address": self.address,
            "name": self.name,
            "ticker": self.ticker,
            "price": str(self.price),
            "market_cap": str(self.market_cap),
            "volume": str(self.volume),
            "liquidity": str(self.liquidity),
            "transaction_count": self.transaction_count,
            "price_1h_change": str(self.price_1h_change),
            "price_24h_change": str(self.price_24h_change),
            "price_7d_change": str(self.price_7d_change),
            "protocol": self.protocol,
            "last_updated": self.last_updated,
            "provenance": list(self.provenance),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AssetRecord":
        """Rebuild a record from ``to_dict()`` output."""
        return cls(
            address=data["address"],
            name=data["name"],
            ticker=data["ticker"],
            price=_decimal(data.get("price")),
            market_cap=_decimal(data.get("market_cap")),
            volume=_decimal(data.get("volume")),
            liquidity=_decimal(data.get("liquidity")),
            transaction_count=int(data.get("transaction_count") or 0),
            price_1h_change=_decimal(data.get("price_1h_change")),
            price_24h_change=_decimal(data.get("price_24h_change")),
            price_7d_change=_decimal(data.get("price_7d_change")),
            protocol=data.get("protocol", ""),
            last_updated=float(data.get("last_updated") or 0.0),
            provenance=tuple(data.get("provenance") or ()),
        )


@dataclass
class ProviderResult:
    """Outcome of one adapter invocation."""

    records: list[AssetRecord]
    success: bool
    error: str | None = None

    @classmethod
    def ok(cls, records: list[AssetRecord]) -> "ProviderResult":
        return cls(records=records, success=True)

    @classmethod
    def failed(cls, error: str) -> "ProviderResult":
        return cls(records=[], success=False, error=error)


@dataclass
class QueryFilter:
    """Filter, sort and pagination request over the merged asset set."""

    time_period: TimePeriod | None = None
    sort_by: SortKey = SortKey.VOLUME
    sort_order: SortOrder = SortOrder.DESC
    min_volume: Decimal | None = None
    min_market_cap: Decimal | None = None
    limit: int = 20
    cursor: str | None = None

    def cache_params(self) -> dict[str, Any]:
        """Parameters identifying this query for cache key derivation."""
        return {
            "time_period": self.time_period.value if self.time_period else None,
            "sort_by": self.sort_by.value,
            "sort_order": self.sort_order.value,
            "min_volume": str(self.min_volume) if self.min_volume is not None else None,
            "min_market_cap": (
                str(self.min_market_cap) if self.min_market_cap is not None else None
            ),
            "limit": self.limit,
            "cursor": self.cursor,
        }


@dataclass
class Page:
    """One page of a filtered, sorted asset set."""

    data: list[AssetRecord]
    limit: int
    total: int
    next_cursor: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": [record.to_dict() for record in self.data],
            "pagination": {
                "limit": self.limit,
                "next_cursor": self.next_cursor,
                "total": self.total,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Page":
        pagination = data["pagination"]
        return cls(
            data=[AssetRecord.from_dict(item) for item in data["data"]],
            limit=pagination["limit"],
            total=pagination["total"],
            next_cursor=pagination.get("next_cursor"),
        )


@dataclass
class ChangeEvent:
    """A change detected between two successive aggregate snapshots."""

    type: ChangeType
    asset: AssetRecord
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "data": self.asset.to_dict(),
            "timestamp": self.timestamp,
        }
