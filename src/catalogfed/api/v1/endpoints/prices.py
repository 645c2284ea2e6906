"""Price window endpoint — Conditional upsert of one window into a product."""

from __future__ import annotations

import logging

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from catalogfed.api.deps import get_engine
from catalogfed.backends.base.exceptions import BackendError
from catalogfed.core.engine import CatalogEngine
from catalogfed.core.exceptions import InvalidArgumentError, ProductNotFoundError, UpdateConflictError
from catalogfed.models.price import PriceWindow, UpdateResult

logger = logging.getLogger(__name__)

router = APIRouter()


@router.put(
    "/collections/{collection}/products/{product_id}/price-windows",
    response_model=UpdateResult,
    summary="Upsert Price Window",
    description=(
        "Insert or replace the price window with the body's `billingReferenceId`. "
        "An existing window keeps its position; a new one is appended. "
        "Concurrent writers are resolved with optimistic concurrency and bounded retry."
    ),
    responses={
        400: {"description": "Invalid price window"},
        404: {"description": "Product not found"},
        409: {"description": "Product kept changing; every attempt conflicted"},
        503: {"description": "Backend unavailable"},
    },
)
async def upsert_price_window(
    collection: str,
    product_id: str,
    window: PriceWindow,
    max_attempts: int | None = Query(default=None, ge=1, le=50, description="Attempt budget override"),
    engine: CatalogEngine = Depends(get_engine),
) -> UpdateResult:
    with structlog.contextvars.bound_contextvars(collection=collection, product_id=product_id):
        try:
            return await engine.update_price_window(collection, product_id, window, max_attempts=max_attempts)
        except InvalidArgumentError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except ProductNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except UpdateConflictError as e:
            logger.warning("Price window update gave up: %s", e)
            raise HTTPException(status_code=409, detail=str(e)) from e
        except BackendError as e:
            logger.error("Price window update failed: %s", e)
            raise HTTPException(status_code=503, detail=str(e)) from e
