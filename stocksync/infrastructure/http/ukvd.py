"""Client for the UK Vehicle Data registry lookup.

Used only when a registration is missing from the local stock cache. The
registry answer is reshaped into the same ``vehicle`` structure the stock
provider uses, so callers can treat both sources alike. A miss of any kind
(no key configured, HTTP error, error block, unexpected body) is reported as
``None``; nothing here writes to the cache.
"""

from __future__ import annotations

from typing import Any

import httpx

from stocksync.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ENDPOINT = "https://uk.api.vehicledataglobal.com/r2/lookup"
DEFAULT_PACKAGE = "VehicleDetails"

KW_TO_BHP = 1.341


def _section(parent: Any, key: str) -> dict[str, Any]:
    if not isinstance(parent, dict):
        return {}
    value = parent.get(key)
    return value if isinstance(value, dict) else {}


def normalize_vehicle_details(details: dict[str, Any], identifier: str) -> dict[str, Any]:
    """Map ``Results.VehicleDetails`` onto the provider's vehicle shape."""
    ident = _section(details, "VehicleIdentification")
    tech = _section(details, "DvlaTechnicalDetails")
    history = _section(details, "VehicleHistory")
    status = _section(details, "VehicleStatus")

    power_kw = tech.get("MaxNetPowerKw")
    try:
        bhp = round(float(power_kw) * KW_TO_BHP) if power_kw else None
    except (TypeError, ValueError):
        bhp = None

    return {
        "registration": ident.get("Vrm") or identifier,
        "make": ident.get("DvlaMake"),
        "model": ident.get("DvlaModel"),
        "generation": ident.get("DvlaModel"),
        "derivative": ident.get("DvlaBodyType") or "",
        "vehicleType": "Car",
        "trim": ident.get("DvlaModel"),
        "bodyType": ident.get("DvlaBodyType"),
        "fuelType": ident.get("DvlaFuelType"),
        "transmissionType": "",
        "drivetrain": "",
        "colour": _section(history, "ColourDetails").get("CurrentColour") or "",
        "engineCapacityCC": tech.get("EngineCapacityCc"),
        "enginePowerBHP": bhp,
        "emissionClass": "Euro 6",
        "co2EmissionGPKM": _section(status, "VehicleExciseDutyDetails").get("DvlaCo2"),
        "topSpeedMPH": None,
        "accelerationSeconds": None,
        "doors": None,
        "seats": tech.get("NumberOfSeats"),
        "firstRegistrationDate": ident.get("DateFirstRegistered"),
        "yearOfManufacture": ident.get("YearOfManufacture"),
        "odometerReadingMiles": None,
        "price": None,
        "images": [],
    }


class UKVDClient:
    """Async registry lookup by vehicle registration mark."""

    def __init__(
        self,
        api_key: str | None,
        *,
        package_name: str = DEFAULT_PACKAGE,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.package_name = package_name
        self.endpoint = endpoint
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "UKVDClient":
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def lookup(self, identifier: str) -> dict[str, Any] | None:
        """Return a normalized vehicle record, or None when the registry misses."""
        if not self.api_key:
            logger.warning("UKVD_API_KEY not set; registry lookup skipped for %s", identifier)
            return None

        logger.info("Looking up %s in the vehicle registry", identifier)
        try:
            client = await self._get_client()
            response = await client.get(
                self.endpoint,
                params={
                    "apiKey": self.api_key,
                    "packageName": self.package_name,
                    "vrm": identifier,
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "UKVD lookup error: status=%d, vrm=%s",
                exc.response.status_code,
                identifier,
            )
            return None
        except httpx.HTTPError as exc:
            logger.error("UKVD not reachable at %s: %s", self.endpoint, exc)
            return None
        except ValueError:
            logger.warning("UKVD lookup failed: response was not JSON")
            return None

        details = _section(_section(data, "Results"), "VehicleDetails")
        if details:
            vehicle = normalize_vehicle_details(details, identifier)
            logger.info("UKVD lookup successful: %s %s", vehicle["make"], vehicle["model"])
            return vehicle

        info = _section(data, "ResponseInformation")
        if info:
            logger.warning("UKVD lookup failed: %s", info.get("StatusMessage"))
        else:
            logger.warning("UKVD lookup failed: invalid response structure")
        return None
