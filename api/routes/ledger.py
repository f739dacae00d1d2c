"""Ledger API endpoints."""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Any, Literal, Optional

from fastapi import APIRouter, HTTPException, Path, Query
from pydantic import BaseModel, Field, model_validator

from api.dependencies import get_calendar, get_clock, get_config, get_store
from engine.candles.aggregator import DEFAULT_TIMEFRAME, build_timeframe_candles, timeframe_change_pct
from engine.decay.scheduler import DecayScheduler
from engine.ledger.service import EVENT_CATALOG, LedgerService
from engine.ledger.state import LedgerState
from engine.persistence.interfaces import LedgerStoreError
from engine.types import price_from_valuation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ledger", tags=["ledger"])

# One scheduler per recently used account so the degraded flag survives
# between requests; least recently used entries are evicted past the cap.
MAX_CACHED_SCHEDULERS = 256
_schedulers: OrderedDict[str, DecayScheduler] = OrderedDict()


def _get_scheduler(account: str) -> DecayScheduler:
    scheduler = _schedulers.get(account)
    if scheduler is None or scheduler.store is not get_store() or scheduler.clock is not get_clock():
        config = get_config()
        scheduler = DecayScheduler(
            store=get_store(),
            account=account,
            calendar=get_calendar(),
            clock=get_clock(),
            grace_seconds=config.grace_seconds,
            decay_per_open_hour=config.decay_per_open_hour,
        )
        _schedulers[account] = scheduler
    _schedulers.move_to_end(account)
    while len(_schedulers) > MAX_CACHED_SCHEDULERS:
        evicted, _ = _schedulers.popitem(last=False)
        logger.debug(f"Evicted decay scheduler for {evicted}")
    return scheduler


def _service() -> LedgerService:
    return LedgerService(store=get_store(), clock=get_clock())


class EventRequest(BaseModel):
    """Either a catalogue ``code`` or an explicit ``kind``/``label``/``delta``."""

    code: Optional[str] = None
    activity: Optional[str] = None
    kind: Optional[Literal["goal", "good", "bad", "addiction", "buy"]] = None
    label: Optional[str] = Field(default=None, min_length=1)
    delta: Optional[int] = None

    @model_validator(mode="after")
    def _check_shape(self) -> "EventRequest":
        if self.code is None and (self.kind is None or self.label is None or self.delta is None):
            raise ValueError("provide either code or kind, label and delta")
        return self


def _state_to_dict(state: LedgerState, *, limit: int) -> dict[str, Any]:
    return {
        "valuation": state.valuation,
        "price": float(price_from_valuation(state.valuation)),
        "decay_watermark": state.decay_watermark,
        "transaction_count": len(state.transactions),
        "transactions": [tx.to_document() for tx in state.transactions[:limit]],
    }


@router.get("/{account}")
async def get_ledger(
    account: str = Path(..., min_length=1),
    limit: int = Query(default=50, ge=0, le=2000, description="Newest transactions to return"),
) -> dict[str, Any]:
    try:
        state = await asyncio.to_thread(_service().load, account)
    except LedgerStoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    return {"account": account, **_state_to_dict(state, limit=limit)}


@router.post("/{account}/events")
async def post_event(payload: EventRequest, account: str = Path(..., min_length=1)) -> dict[str, Any]:
    service = _service()
    try:
        if payload.code is not None:
            if payload.code not in EVENT_CATALOG:
                raise HTTPException(status_code=400, detail=f"Unknown event code: {payload.code}")
            result = await asyncio.to_thread(
                service.record_catalog_event, account, payload.code, activity=payload.activity
            )
        else:
            result = await asyncio.to_thread(
                service.record_event, account, kind=payload.kind, label=payload.label, delta=payload.delta
            )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except LedgerStoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    return {
        "account": account,
        "transaction": result.transaction.to_document(),
        "was_taxed": result.was_taxed,
        "valuation": result.valuation,
        "price": float(price_from_valuation(result.valuation)),
    }


@router.get("/{account}/candles")
async def get_candles(
    account: str = Path(..., min_length=1),
    timeframe: Literal["4h", "8h", "1d", "1w"] = Query(default=DEFAULT_TIMEFRAME),
) -> dict[str, Any]:
    try:
        state = await asyncio.to_thread(_service().load, account)
    except LedgerStoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    candles = build_timeframe_candles(state, timeframe, now_ms=get_clock()())
    return {
        "account": account,
        "timeframe": timeframe,
        "change_pct": round(timeframe_change_pct(candles), 4),
        "candles": [candle.to_dict() for candle in candles],
    }


@router.post("/{account}/decay")
async def run_decay(account: str = Path(..., min_length=1)) -> dict[str, Any]:
    scheduler = _get_scheduler(account)
    ok = await asyncio.to_thread(scheduler.run_decay_catch_up)
    return {"account": account, "ok": ok, **scheduler.status_dict()}
