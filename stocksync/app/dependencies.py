"""Shared wiring and FastAPI dependencies for stocksync.

``build_services`` composes the HTTP clients and services from
:class:`Settings`; the CLI uses it directly and the API resolves it once
through :func:`get_services`.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, status

from stocksync.app.config import Settings
from stocksync.infrastructure.http import AutoTraderClient, UKVDClient
from stocksync.services.stock import StockService
from stocksync.services.sync import SyncEngine

__all__ = [
    "AppServices",
    "build_services",
    "get_account_id",
    "get_services",
    "get_settings",
    "get_stock_service",
    "get_sync_engine",
    "AccountIdDep",
    "SettingsDep",
    "StockServiceDep",
    "SyncEngineDep",
]


@dataclass
class AppServices:
    """Long-lived clients and services sharing one configuration."""

    settings: Settings
    provider: AutoTraderClient
    registry: UKVDClient
    sync_engine: SyncEngine
    stock_service: StockService

    async def aclose(self) -> None:
        await self.provider.close()
        await self.registry.close()


def build_services(
    settings: Settings,
    *,
    provider: AutoTraderClient | None = None,
    registry: UKVDClient | None = None,
) -> AppServices:
    provider = provider or AutoTraderClient(
        base_url=settings.autotrader_base_url, timeout=settings.http_timeout
    )
    registry = registry or UKVDClient(
        settings.ukvd_api_key,
        package_name=settings.ukvd_package,
        endpoint=settings.ukvd_endpoint,
        timeout=settings.http_timeout,
    )
    sync_engine = SyncEngine.from_sqlite_path(
        settings.db_path,
        provider=provider,
        key=settings.autotrader_key,
        secret=settings.autotrader_secret,
        page_size=settings.page_size,
        active_states=settings.active_states,
    )
    stock_service = StockService.from_sqlite_path(
        settings.db_path, sync_engine=sync_engine, registry=registry
    )
    return AppServices(
        settings=settings,
        provider=provider,
        registry=registry,
        sync_engine=sync_engine,
        stock_service=stock_service,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


SettingsDep = Annotated[Settings, Depends(get_settings)]


@lru_cache(maxsize=1)
def get_services() -> AppServices:
    return build_services(get_settings())


def get_stock_service(
    services: Annotated[AppServices, Depends(get_services)],
) -> StockService:
    return services.stock_service


def get_sync_engine(
    services: Annotated[AppServices, Depends(get_services)],
) -> SyncEngine:
    return services.sync_engine


def get_account_id(settings: SettingsDep) -> str:
    if not settings.advertiser_id:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="AUTOTRADER_ADVERTISER_ID is not configured",
        )
    return settings.advertiser_id


StockServiceDep = Annotated[StockService, Depends(get_stock_service)]
SyncEngineDep = Annotated[SyncEngine, Depends(get_sync_engine)]
AccountIdDep = Annotated[str, Depends(get_account_id)]
