"""Read side of the stock cache.

Serves cached listings with the metadata overlay merged in, looks single
vehicles up with a registry fallback, reports sync status and writes overlay
fields. Only :meth:`StockService.get_cached_stock` can start a sync, and only
when the account has never been cached.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from stocksync.domain import (
    listing_identifier,
    merge_overlay,
    normalize_identifier,
    overlay_values,
)
from stocksync.infrastructure.db.repositories import (
    StockCacheRepository,
    SyncRunRepository,
    VehicleMetadataRepository,
)
from stocksync.infrastructure.http import UKVDClient
from stocksync.services.base import BaseService, ConnectionFactory
from stocksync.services.dto import (
    LookupResultDTO,
    OverlayEntryDTO,
    OverlayUpdateDTO,
    StockSnapshotDTO,
    SyncRunDTO,
    SyncStatusDTO,
)
from stocksync.services.scheduler import SCHEDULE_TIMES, next_run_after
from stocksync.services.sync import SyncEngine

RESERVED_OVERLAY_FIELDS = frozenset({"registration"})
PROPAGATE_ATTEMPTS = 3


class NotFoundError(Exception):
    """Raised when a registration is in neither the cache nor the registry."""


class StockService(BaseService):
    """Cache reads, registry fallback and overlay writes."""

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        *,
        sync_engine: SyncEngine,
        registry: UKVDClient,
        schedule_times: Sequence[str] = SCHEDULE_TIMES,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        super().__init__(connection_factory)
        self._sync_engine = sync_engine
        self._registry = registry
        self._schedule_times = tuple(schedule_times)
        self._clock = clock

    async def get_cached_stock(self, account_id: str) -> StockSnapshotDTO:
        """Return cached listings with overlay fields merged into each vehicle.

        An account with no cache row yet is synced once before replying.
        """
        record = self._load_cache(account_id)
        if record is None:
            self._logger.info("No cached stock for %s; running initial sync", account_id)
            await self._sync_engine.run_sync(account_id, trigger="bootstrap")
            record = self._load_cache(account_id)
        if record is None:
            return StockSnapshotDTO()

        overlays = self._with_connection(
            lambda conn: VehicleMetadataRepository(conn).all_fields()
        )
        results = [
            merge_overlay(listing, overlays.get(listing_identifier(listing)))
            for listing in record["listings"]
        ]
        return StockSnapshotDTO(
            results=results,
            last_sync_time=record["last_sync_time"],
            total_vehicles=record["total_count"] or 0,
            sync_status=record["sync_status"] or "unknown",
        )

    async def lookup_by_identifier(self, account_id: str, identifier: str) -> LookupResultDTO:
        """Find one vehicle, first in the cache and then in the registry.

        Raises:
            NotFoundError: when neither source knows the registration.
        """
        registration = normalize_identifier(identifier)
        if not registration:
            raise NotFoundError("A registration is required")

        record = self._load_cache(account_id)
        listings = record["listings"] if record else []
        listing = next(
            (item for item in listings if listing_identifier(item) == registration),
            None,
        )
        overlay = self._load_overlay(registration)

        if listing is not None:
            self._logger.info("Vehicle %s found in local cache", registration)
            merged = merge_overlay(listing, overlay)
            return LookupResultDTO(
                source="local",
                vehicle=merged["vehicle"],
                features=_as_list(listing.get("features")),
                media=_as_dict(listing.get("media")),
            )

        self._logger.info("Vehicle %s not in local stock; trying registry", registration)
        vehicle = await self._registry.lookup(registration)
        if vehicle is None:
            raise NotFoundError(
                f"Vehicle {registration} not found in stock or external database"
            )
        return LookupResultDTO(
            source="fallback",
            vehicle={**vehicle, **overlay_values(overlay)},
            features=[],
            media={"images": []},
        )

    def get_sync_status(self, account_id: str) -> SyncStatusDTO:
        """Freshness and status of the cache plus the fixed schedule."""
        record = self._load_cache(account_id)
        next_at = next_run_after(self._clock(), self._schedule_times)
        if record is None:
            return SyncStatusDTO(
                next_sync_times=list(self._schedule_times),
                next_sync_at=next_at.isoformat(timespec="minutes"),
            )
        return SyncStatusDTO(
            last_sync_time=record["last_sync_time"],
            sync_status=record["sync_status"],
            total_count=record["total_count"] or 0,
            next_sync_times=list(self._schedule_times),
            next_sync_at=next_at.isoformat(timespec="minutes"),
        )

    def get_overlay(self, identifier: str) -> OverlayEntryDTO:
        registration = normalize_identifier(identifier)
        fields = overlay_values(self._load_overlay(registration))
        return OverlayEntryDTO(
            registration=registration,
            reserve_link=str(fields.get("reserveLink") or ""),
            fields=fields,
        )

    def set_overlay_field(self, identifier: str, field: str, value: Any) -> OverlayUpdateDTO:
        """Store an overlay field and copy it onto matching cached listings.

        Raises:
            ValueError: for an empty registration or an empty/reserved field.
        """
        registration = normalize_identifier(identifier)
        if not registration:
            raise ValueError("A registration is required")
        field = (field or "").strip()
        if not field:
            raise ValueError("An overlay field name is required")
        if field in RESERVED_OVERLAY_FIELDS:
            raise ValueError(f"Field '{field}' cannot be overridden")

        def write(conn) -> tuple[bool, int]:
            created = VehicleMetadataRepository(conn).set_field(registration, field, value)
            cache_repo = StockCacheRepository(conn)
            updated = sum(
                self._propagate(cache_repo, account_id, registration, field, value)
                for account_id in cache_repo.list_account_ids()
            )
            return created, updated

        created, updated = self._with_connection(write)
        self._logger.info(
            "Overlay %s.%s %s; %d cached listings updated",
            registration,
            field,
            "created" if created else "updated",
            updated,
        )
        return OverlayUpdateDTO(
            registration=registration,
            field=field,
            value=value,
            created=created,
            listings_updated=updated,
        )

    def _propagate(
        self,
        cache_repo: StockCacheRepository,
        account_id: str,
        registration: str,
        field: str,
        value: Any,
    ) -> int:
        """Copy ``field`` onto the account's cached listings for ``registration``.

        The write only lands if no sync touched the row after it was read;
        otherwise the fresh listings are read again and patched.
        """
        for _ in range(PROPAGATE_ATTEMPTS):
            record = cache_repo.get(account_id)
            if record is None:
                return 0
            changed = 0
            for listing in record["listings"]:
                vehicle = listing.get("vehicle")
                if isinstance(vehicle, dict) and listing_identifier(listing) == registration:
                    vehicle[field] = value
                    changed += 1
            if not changed:
                return 0
            if cache_repo.replace_listings(
                account_id, record["listings"], expected_updated_at=record["updated_at"]
            ):
                return changed
        self._logger.warning(
            "Cached listings for %s kept changing; %s.%s is applied when read",
            account_id,
            registration,
            field,
        )
        return 0

    def list_sync_runs(self, account_id: str, limit: int = 20) -> list[SyncRunDTO]:
        rows = self._with_connection(
            lambda conn: SyncRunRepository(conn).list_recent(account_id, limit)
        )
        return [SyncRunDTO(**row) for row in rows]

    def _load_cache(self, account_id: str) -> dict[str, Any] | None:
        return self._with_connection(lambda conn: StockCacheRepository(conn).get(account_id))

    def _load_overlay(self, registration: str) -> dict[str, Any] | None:
        entry = self._with_connection(
            lambda conn: VehicleMetadataRepository(conn).get(registration)
        )
        return entry["fields"] if entry else None


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, list) else []


def _as_dict(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}
