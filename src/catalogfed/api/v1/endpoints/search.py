"""Federated search endpoint — One query over many collections."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from catalogfed.api.deps import get_engine
from catalogfed.backends.base.exceptions import BackendError
from catalogfed.core.engine import CatalogEngine
from catalogfed.core.exceptions import CollectionSearchError, FederationTimeoutError, InvalidArgumentError
from catalogfed.models.query import FederatedSearchRequest
from catalogfed.models.result import FederatedResult

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/search",
    response_model=FederatedResult,
    summary="Federated Search",
    description=(
        "Execute one query against every listed collection concurrently and return "
        "a single result ranked by score, with total counts summed across collections.\n\n"
        "**Modes:**\n"
        "- `strict` — any failing collection fails the request.\n"
        "- `best_effort` — failing collections are listed in `failed_collections` "
        "and the result is flagged `partial`."
    ),
    responses={
        400: {"description": "Invalid collection set or deadline"},
        422: {"description": "Validation error — invalid request body"},
        502: {"description": "A collection search failed (strict mode)"},
        504: {"description": "Deadline expired before all collections answered (strict mode)"},
    },
)
async def federated_search(
    request: FederatedSearchRequest,
    engine: CatalogEngine = Depends(get_engine),
) -> FederatedResult:
    """Run a federated search, through the result cache unless ``use_cache`` is false."""
    query = request.to_query()
    try:
        if request.use_cache:
            return await engine.cached_federated_search(
                query,
                request.collections,
                ttl=request.cache_ttl_seconds,
                mode=request.mode,
                deadline=request.deadline_seconds,
            )
        return await engine.federated_search(
            query,
            request.collections,
            mode=request.mode,
            deadline=request.deadline_seconds,
        )
    except InvalidArgumentError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except FederationTimeoutError as e:
        logger.warning("Federated search timed out: %s", e)
        raise HTTPException(status_code=504, detail=str(e)) from e
    except (CollectionSearchError, BackendError) as e:
        logger.error("Federated search failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e)) from e
