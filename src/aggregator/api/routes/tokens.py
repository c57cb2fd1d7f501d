"""Token query endpoints. Thin shims over AggregationOrchestrator."""

from decimal import Decimal

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from aggregator.api.limits import (
    API_LIMIT_MESSAGE,
    SEARCH_LIMIT_MESSAGE,
    api_limit,
    limiter,
    search_limit,
)
from aggregator.models import QueryFilter, SortKey, SortOrder, TimePeriod

log = structlog.get_logger(__name__)

router = APIRouter()


@router.get("")
@limiter.shared_limit(api_limit, scope="tokens", error_message=API_LIMIT_MESSAGE)
async def get_tokens(request: Request, limit: int = Query(20, ge=0)) -> JSONResponse:
    """Top merged tokens by volume."""
    orchestrator = request.app.state.orchestrator
    tokens = await orchestrator.aggregate(limit)
    return JSONResponse(
        content={
            "success": True,
            "data": [token.to_dict() for token in tokens],
            "count": len(tokens),
        }
    )


@router.get("/filter")
@limiter.shared_limit(api_limit, scope="tokens", error_message=API_LIMIT_MESSAGE)
async def get_filtered_tokens(
    request: Request,
    time_period: TimePeriod | None = None,
    sort_by: SortKey = SortKey.VOLUME,
    sort_order: SortOrder = SortOrder.DESC,
    min_volume: Decimal | None = Query(None, ge=0),
    min_market_cap: Decimal | None = Query(None, ge=0),
    limit: int = Query(20, ge=1),
    cursor: str | None = None,
) -> JSONResponse:
    """Filtered, sorted, cursor-paginated tokens."""
    orchestrator = request.app.state.orchestrator
    page = await orchestrator.get_filtered(
        QueryFilter(
            time_period=time_period,
            sort_by=sort_by,
            sort_order=sort_order,
            min_volume=min_volume,
            min_market_cap=min_market_cap,
            limit=limit,
            cursor=cursor,
        )
    )
    return JSONResponse(content={"success": True, **page.to_dict()})


@router.get("/search")
@limiter.limit(search_limit, error_message=SEARCH_LIMIT_MESSAGE)
async def search_tokens(
    request: Request,
    q: str | None = None,
    limit: int = Query(20, ge=0),
) -> JSONResponse:
    """Relevance-ranked search across providers."""
    if not q or not q.strip():
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Query parameter is required"},
        )
    orchestrator = request.app.state.orchestrator
    tokens = await orchestrator.search(q.strip(), limit)
    return JSONResponse(
        content={
            "success": True,
            "data": [token.to_dict() for token in tokens],
            "count": len(tokens),
        }
    )


@router.post("/cache/invalidate")
async def invalidate_cache(request: Request) -> JSONResponse:
    """Admin: drop every cached aggregate, search and page."""
    orchestrator = request.app.state.orchestrator
    deleted = await orchestrator.invalidate_all()
    log.info("cache_invalidated_via_api", deleted=deleted)
    return JSONResponse(
        content={"success": True, "message": "Cache invalidated successfully", "deleted": deleted}
    )
