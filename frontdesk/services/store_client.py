"""Async client for the booking store behind the relay."""

from typing import Any

import httpx
from pydantic import BaseModel

from frontdesk.config import StoreSettings, get_settings
from frontdesk.models.booking import BookingIdentifier
from frontdesk.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Request Models
# =============================================================================


class BookingListFilter(BaseModel):
    """Filter for getHOSSBookings / getFilterDetails."""

    status: str | None = None
    startDate: str | None = None
    endDate: str | None = None
    hotel: str | None = None
    search: str | None = None


# =============================================================================
# Exceptions
# =============================================================================


class StoreApiError(Exception):
    """Store call failed at the relay, the upstream, or the script itself."""

    def __init__(self, message: str, status: int | None = None, response: Any = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.response = response


def error_message(error: Exception) -> str:
    """Best human-readable message for a failed store call."""
    if isinstance(error, httpx.HTTPStatusError):
        try:
            data = error.response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            server_message = data.get("error") or data.get("message")
            if server_message:
                return str(server_message)
    return str(error) or "Unknown server error"


# =============================================================================
# Store Client
# =============================================================================


class StoreClient:
    """
    Async client for the spreadsheet store, always reached through the relay.

    Usage:
        async with StoreClient(base_url) as client:
            payload = await client.get_booking(identifier)
            await client.update_booking({...})
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize store client.

        Args:
            base_url: Relay endpoint (e.g., http://localhost:3000/api)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: StoreSettings | None = None, **kwargs: Any) -> "StoreClient":
        """Build a client for the configured relay endpoint."""
        settings = settings or get_settings().store
        return cls(settings.api_url, timeout=settings.timeout_seconds, **kwargs)

    async def __aenter__(self) -> "StoreClient":
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get HTTP client, raise if not initialized."""
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with StoreClient(...)' context.")
        return self._client

    # =========================================================================
    # Transport
    # =========================================================================

    async def _get(self, action: str, params: dict[str, Any] | None = None) -> Any:
        query = {"action": action, **{k: v for k, v in (params or {}).items() if v}}
        return await self._call("GET", action, params=query)

    async def _post(self, action: str, body: dict[str, Any]) -> Any:
        return await self._call("POST", action, json={"action": action, **body})

    async def _call(self, method: str, action: str, **kwargs: Any) -> Any:
        logger.debug("store_request", method=method, action=action)
        try:
            response = await self.client.request(method, self.base_url, **kwargs)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            message = error_message(e)
            logger.error(
                "store_http_error",
                action=action,
                status=e.response.status_code,
                error=message,
            )
            raise StoreApiError(message, status=e.response.status_code) from e
        except httpx.TimeoutException as e:
            logger.error("store_timeout", action=action, timeout=self.timeout)
            raise StoreApiError(f"Store did not respond within {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.error("store_transport_error", action=action, error=str(e))
            raise StoreApiError(error_message(e)) from e
        except ValueError as e:
            logger.error("store_invalid_json", action=action)
            raise StoreApiError("Store returned a malformed response") from e

        if isinstance(data, dict) and data.get("error"):
            logger.warning("store_rejected", action=action, error=data["error"])
            raise StoreApiError(str(data["error"]), response=data)
        return data

    @staticmethod
    def _data(response: Any) -> Any:
        return response.get("data") if isinstance(response, dict) else None

    @classmethod
    def _rows(cls, response: Any) -> list[dict]:
        data = cls._data(response)
        return data if isinstance(data, list) else []

    # =========================================================================
    # Bookings
    # =========================================================================

    async def get_booking(self, identifier: BookingIdentifier) -> dict[str, Any]:
        """
        Fetch one booking by its natural key.

        Raises:
            StoreApiError: If the call fails or the booking is missing
        """
        response = await self._get("getBookingDrawer", identifier.to_params())
        data = self._data(response)
        if not isinstance(data, dict):
            raise StoreApiError("Booking not found", response=response)
        return data

    async def update_booking(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Write booking fields; ``payload`` must carry the identifier keys."""
        response = await self._post("updateBooking", payload)
        data = self._data(response)
        return data if isinstance(data, dict) else {"success": True}

    # =========================================================================
    # Collections
    # =========================================================================

    async def get_enquiries(self) -> list[dict]:
        return self._rows(await self._get("getEnquiries"))

    async def get_hoss_bookings(self, filters: BookingListFilter | None = None) -> list[dict]:
        params = filters.model_dump(exclude_none=True) if filters else {}
        return self._rows(await self._get("getHOSSBookings", params))

    async def get_filter_details(self, filters: BookingListFilter | None = None) -> list[dict]:
        params = filters.model_dump(exclude_none=True, exclude={"search"}) if filters else {}
        return self._rows(await self._get("getFilterDetails", params))

    async def get_hotels(self) -> list[str]:
        """Distinct hotel names, in first-seen order."""
        rows = await self.get_filter_details()
        hotels: list[str] = []
        for row in rows:
            hotel = row.get("hotel")
            if hotel and hotel not in hotels:
                hotels.append(hotel)
        return hotels

    async def get_summary(self) -> dict[str, Any]:
        data = self._data(await self._get("getSummary"))
        if not isinstance(data, dict):
            return {
                "totalBookings": 0,
                "totalRevenue": 0,
                "occupancyRate": 0,
                "revenue": 0,
                "advance": 0,
                "due": 0,
                "expenses": 0,
            }
        return data
