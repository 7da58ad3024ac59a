"""FastAPI application exposing the stock cache.

Run with ``uvicorn stocksync.app.api:app`` or ``stocksync serve``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Request, Response, status

from stocksync import __version__
from stocksync.app.dependencies import (
    AccountIdDep,
    StockServiceDep,
    SyncEngineDep,
    get_services,
    get_settings,
)
from stocksync.infrastructure.observability import configure_logging, get_logger
from stocksync.services.dto import (
    LookupResultDTO,
    OverlayEntryDTO,
    OverlayUpdateDTO,
    StockSnapshotDTO,
    SyncRunDTO,
    SyncStatusDTO,
    SyncTriggerDTO,
    WireModel,
)
from stocksync.services.scheduler import SyncScheduler
from stocksync.services.stock import NotFoundError, StockService

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    settings = get_settings()
    scheduler: SyncScheduler | None = None
    if settings.scheduler_enabled and settings.advertiser_id:
        services = get_services()
        scheduler = SyncScheduler(
            sync_callable=services.sync_engine.run_sync,
            account_id=settings.advertiser_id,
        )
        await scheduler.start()
    else:
        logger.info("Stock sync scheduler disabled")
    app.state.scheduler = scheduler
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()
        await get_services().aclose()


app = FastAPI(title="stocksync API", version=__version__, lifespan=lifespan)


class ReserveLinkRequest(WireModel):
    reserve_link: str | None = None


class OverlayFieldRequest(WireModel):
    value: Any = None


class SchedulerStatusResponse(WireModel):
    status: str
    next_run_at: str | None = None
    last_run_started_at: str | None = None
    last_outcome: dict[str, Any] | None = None
    last_error: str | None = None
    runs: int = 0


@app.get("/")
async def root():
    """API root endpoint with version and links."""
    return {
        "name": "stocksync API",
        "version": __version__,
        "docs": "/docs",
        "endpoints": {
            "stock": "/stock",
            "sync": "/stock/sync",
            "sync_status": "/stock/sync-status",
            "lookup": "/stock/lookup/{registration}",
            "vehicle_metadata": "/vehicle-metadata/{registration}",
        },
    }


# =============================================================================
# Stock Endpoints
# =============================================================================


@app.get("/stock", response_model=StockSnapshotDTO)
async def get_stock(service: StockServiceDep, account_id: AccountIdDep) -> StockSnapshotDTO:
    """Cached listings with reserve links merged in; syncs once on a cold cache."""
    try:
        return await service.get_cached_stock(account_id)
    except Exception as exc:
        logger.exception("Error fetching stock")
        raise HTTPException(status_code=500, detail="Failed to fetch stock") from exc


@app.post("/stock/sync", response_model=SyncTriggerDTO, response_model_exclude_none=True)
async def trigger_sync(engine: SyncEngineDep, account_id: AccountIdDep) -> SyncTriggerDTO:
    """Run a sync now. A sync already in flight is reported as skipped."""
    try:
        outcome = await engine.run_sync(account_id, trigger="manual")
    except Exception as exc:
        logger.exception("Manual sync error")
        raise HTTPException(status_code=500, detail="Failed to sync stock") from exc
    return SyncTriggerDTO(**outcome.to_dict())


@app.get("/stock/sync-status", response_model=SyncStatusDTO)
async def get_sync_status(service: StockServiceDep, account_id: AccountIdDep) -> SyncStatusDTO:
    try:
        return service.get_sync_status(account_id)
    except Exception as exc:
        logger.exception("Error fetching sync status")
        raise HTTPException(status_code=500, detail="Failed to fetch sync status") from exc


@app.get("/stock/sync-runs", response_model=list[SyncRunDTO])
async def list_sync_runs(
    service: StockServiceDep,
    account_id: AccountIdDep,
    limit: int = Query(20, ge=1, le=200),
) -> list[SyncRunDTO]:
    return service.list_sync_runs(account_id, limit=limit)


@app.get("/stock/scheduler", response_model=SchedulerStatusResponse)
async def get_scheduler_status(request: Request) -> SchedulerStatusResponse:
    scheduler: SyncScheduler | None = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        return SchedulerStatusResponse(status="disabled")
    return SchedulerStatusResponse(**scheduler.get_status())


@app.get("/stock/lookup/{registration}", response_model=LookupResultDTO)
async def lookup_vehicle(
    registration: str, service: StockServiceDep, account_id: AccountIdDep
) -> LookupResultDTO:
    """Find a vehicle in the cache, falling back to the vehicle registry."""
    try:
        return await service.lookup_by_identifier(account_id, registration)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Lookup failed for %s", registration)
        raise HTTPException(status_code=500, detail="Failed to lookup vehicle") from exc


# =============================================================================
# Vehicle Metadata Endpoints
# =============================================================================


@app.get("/vehicle-metadata/{registration}", response_model=OverlayEntryDTO)
async def get_vehicle_metadata(registration: str, service: StockServiceDep) -> OverlayEntryDTO:
    """Overlay fields for a registration; unknown registrations get defaults."""
    return service.get_overlay(registration)


def _apply_overlay(
    service: StockService,
    registration: str,
    field: str,
    value: Any,
    response: Response,
) -> OverlayUpdateDTO:
    try:
        result = service.set_overlay_field(registration, field, value)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Update of %s for %s failed", field, registration)
        raise HTTPException(status_code=500, detail=f"Failed to update {field}") from exc
    if result.created:
        response.status_code = status.HTTP_201_CREATED
    return result


@app.patch("/vehicle-metadata/{registration}/reserve-link", response_model=OverlayUpdateDTO)
async def update_reserve_link(
    registration: str,
    payload: ReserveLinkRequest,
    service: StockServiceDep,
    response: Response,
) -> OverlayUpdateDTO:
    """Set the reserve link and copy it onto matching cached listings."""
    return _apply_overlay(
        service, registration, "reserveLink", payload.reserve_link or "", response
    )


@app.put("/vehicle-metadata/{registration}/fields/{field}", response_model=OverlayUpdateDTO)
async def update_vehicle_metadata_field(
    registration: str,
    field: str,
    payload: OverlayFieldRequest,
    service: StockServiceDep,
    response: Response,
) -> OverlayUpdateDTO:
    return _apply_overlay(service, registration, field, payload.value, response)
