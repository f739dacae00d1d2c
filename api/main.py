"""FastAPI application for the valuation ledger.

This module provides a minimal HTTP API service for:
- GET /health - Ledger store connectivity
- GET /market/status - Whether the market is open at an instant
- POST /tax/preview - Effective delta for a category and valuation
- /ledger/... - Ledger state, events, candles and decay (api/routes/ledger.py)

Environment:
- DATABASE_URL selects the PostgreSQL store; unset uses an in-memory store
- MARKET_TIMEZONE overrides the reference timezone
- No authentication (local network only)
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from api.dependencies import get_calendar, get_clock, get_store
from api.routes.ledger import router as ledger_router
from engine.tax.rules import apply_tax, tax_multiplier
from engine.types import INITIAL_VALUATION_UC, price_from_valuation

logger = logging.getLogger(__name__)

# datetime range: 0001-01-01T00:00:00Z .. 9999-12-31T23:59:59.999Z
MIN_INSTANT_MS = -62_135_596_800_000
MAX_INSTANT_MS = 253_402_300_799_999

app = FastAPI(
    title="Valuation Ledger API",
    description="API for ledger state, taxed events, hourly decay and valuation candles",
    version="1.0.0",
)
app.include_router(ledger_router)


class TaxPreviewRequest(BaseModel):
    category: Literal["goal", "good", "bad", "addiction", "buy", "decay"]
    delta: int
    valuation: int = Field(INITIAL_VALUATION_UC, ge=0)


class TaxPreviewResponse(BaseModel):
    effective_delta: int
    was_taxed: bool
    multiplier: float
    price: float


@app.get("/health")
async def health() -> dict[str, Any]:
    """Health check endpoint.

    Returns:
        JSON with store connectivity status.

    Raises:
        HTTPException: If the store cannot be reached.
    """
    store = get_store()
    try:
        connected = store.ping()
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail={"status": "error", "store": {"connected": False, "error": type(e).__name__}},
        ) from e

    if not connected:
        raise HTTPException(status_code=503, detail={"status": "error", "store": {"connected": False}})

    return {"status": "ok", "store": {"connected": True, "backend": type(store).__name__}}


@app.get("/market/status")
async def market_status(
    at: Optional[int] = Query(
        default=None,
        ge=MIN_INSTANT_MS,
        le=MAX_INSTANT_MS,
        description="Instant in epoch ms (default: now)",
    ),
) -> dict[str, Any]:
    calendar = get_calendar()
    instant = get_clock()() if at is None else at
    try:
        local = calendar.local_datetime(instant)
        status = {
            "timezone": calendar.timezone_name,
            "at": instant,
            "local_time": local.isoformat(),
            "is_open": calendar.is_open(instant),
            "hour_bucket_start": calendar.hour_bucket_start(instant),
            "next_hour_bucket_start": calendar.next_hour_bucket_start(instant),
        }
    except (OverflowError, ValueError, OSError) as e:
        # Offsets near the edges of the datetime range can still leave it.
        raise HTTPException(status_code=400, detail=f"Instant {instant} is outside the supported range") from e

    return status


@app.post("/tax/preview", response_model=TaxPreviewResponse)
async def tax_preview(payload: TaxPreviewRequest) -> TaxPreviewResponse:
    """Preview the tax on a delta without touching any ledger."""
    effective_delta, was_taxed = apply_tax(payload.category, payload.delta, payload.valuation)
    multiplier = tax_multiplier(payload.category, payload.valuation) if payload.delta > 0 else 1.0
    return TaxPreviewResponse(
        effective_delta=effective_delta,
        was_taxed=was_taxed,
        multiplier=multiplier,
        price=float(price_from_valuation(payload.valuation)),
    )
