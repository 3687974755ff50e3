"""
http_client.py

httpx implementation of the `SalesApi` Protocol.

- Every request carries the bearer token from settings (authentication itself
  happens elsewhere).
- The backend wraps payloads as `{"success": true, "data": {...}}`; any other
  shape, a non-2xx status or a transport error becomes a BackendError with the
  backend's own message when it sent one.
- No automatic retries: a failed call is reported once and the caller decides.
"""

from __future__ import annotations

from typing import Any

import httpx

from travel_sales_wizard.config.settings import require_api_base_url, settings
from travel_sales_wizard.domain.models import (
    CupoContext,
    Document,
    Passenger,
    PendingFile,
    Provider,
    ServiceTemplate,
)
from travel_sales_wizard.rest import wire
from travel_sales_wizard.services.sales_api import SaleRef, SalesApi
from travel_sales_wizard.utils.errors import BackendError, SubmissionError
from travel_sales_wizard.utils.logging import get_logger

logger = get_logger("http_client")


class HttpSalesApi(SalesApi):
    """
    What it does:
    - Talks JSON over HTTPS to the back-office REST API.

    Why it matters:
    - Keeps transport details (envelopes, multipart uploads, auth header) out of
      the wizard logic.

    Behavior:
    - One shared httpx.AsyncClient; close it with `aclose()` or `async with`.
    - `transport` can be injected (httpx.MockTransport in tests).
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        token = token if token is not None else settings.api_token
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.base_url = require_api_base_url(base_url) if base_url else require_api_base_url()
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout if timeout is not None else settings.api_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> HttpSalesApi:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # -------------------- Plumbing --------------------

    async def _request(
        self,
        method: str,
        url: str,
        *,
        error_cls: type[BackendError] = BackendError,
        **kwargs: Any,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise error_cls(f"Could not reach the server ({e.__class__.__name__})") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}

        if response.is_error or body.get("success") is False:
            message = (
                body.get("message")
                or body.get("error")
                or f"{method} {url} failed with status {response.status_code}"
            )
            logger.error("%s %s -> %s: %s", method, url, response.status_code, message)
            raise error_cls(str(message), status_code=response.status_code)

        return body

    @staticmethod
    def _data(body: dict[str, Any], key: str) -> Any:
        data = body.get("data") or {}
        if key not in data:
            raise BackendError(f"Unexpected response: missing '{key}'")
        return data[key]

    # -------------------- Reference data --------------------

    async def list_clients(self, search: str = "", *, limit: int = 50) -> list[Passenger]:
        body = await self._request(
            "GET",
            "/api/clients",
            params={"search": search, "limit": limit, "isMainClient": "true"},
        )
        return [wire.passenger_from_wire(c) for c in self._data(body, "clients")]

    async def get_client(self, client_id: str) -> Passenger:
        body = await self._request("GET", f"/api/clients/{client_id}")
        return wire.passenger_from_wire(self._data(body, "client"))

    async def list_companions(self, client_id: str, search: str = "") -> list[Passenger]:
        body = await self._request(
            "GET", f"/api/clients/{client_id}/companions", params={"search": search}
        )
        return [wire.passenger_from_wire(c) for c in self._data(body, "companions")]

    async def list_all_for_selection(
        self, search: str = "", *, exclude_client_id: str | None = None
    ) -> list[Passenger]:
        params = {"search": search, "excludeClientId": exclude_client_id or ""}
        body = await self._request("GET", "/api/clients/all-for-selection", params=params)
        return [wire.passenger_from_wire(c) for c in self._data(body, "allForSelection")]

    async def list_providers(self, search: str = "", *, limit: int = 50) -> list[Provider]:
        body = await self._request(
            "GET", "/api/providers", params={"search": search, "limit": limit}
        )
        return [wire.provider_from_wire(p) for p in self._data(body, "providers")]

    async def list_service_templates(self) -> list[ServiceTemplate]:
        body = await self._request("GET", "/api/service-templates/sale-wizard")
        return [wire.template_from_wire(t) for t in self._data(body, "serviceTemplates")]

    async def search_cities(self, query: str, *, limit: int = 5) -> list[str]:
        body = await self._request(
            "POST", "/api/destinations/search-cities", json={"query": query, "limit": limit}
        )
        return [wire.suggestion_label(c) for c in self._data(body, "cities")]

    async def search_countries(self, query: str, *, limit: int = 5) -> list[str]:
        body = await self._request(
            "POST", "/api/destinations/search-countries", json={"query": query, "limit": limit}
        )
        return [wire.suggestion_label(c) for c in self._data(body, "countries")]

    async def get_cupo(self, cupo_id: str) -> CupoContext:
        body = await self._request("GET", f"/api/cupos/{cupo_id}")
        return wire.cupo_from_wire(self._data(body, "cupo"))

    async def get_sale(self, sale_id: str) -> dict[str, Any]:
        body = await self._request("GET", f"/api/sales/{sale_id}")
        return self._data(body, "sale")

    # -------------------- Submission --------------------

    async def upload_provider_document(
        self, provider_id: str, file: PendingFile, *, sale_id: str | None = None
    ) -> Document:
        data = {"providerId": provider_id}
        if sale_id:
            data["saleId"] = sale_id

        body = await self._request(
            "POST",
            "/api/upload/provider-document",
            files={"file": (file.name, file.content, file.content_type)},
            data=data,
        )
        return Document(
            filename=str(body.get("filename") or file.name),
            url=str(body.get("url") or ""),
            type="receipt",
            original_name=body.get("originalName") or file.name,
        )

    async def create_sale(self, payload: dict[str, Any]) -> SaleRef:
        body = await self._request(
            "POST", "/api/sales/service-template-flow", json=payload, error_cls=SubmissionError
        )
        return self._sale_ref(body)

    async def update_sale(self, sale_id: str, payload: dict[str, Any]) -> SaleRef:
        body = await self._request(
            "PUT", f"/api/sales/{sale_id}", json=payload, error_cls=SubmissionError
        )
        return self._sale_ref(body, fallback_id=sale_id)

    def _sale_ref(self, body: dict[str, Any], *, fallback_id: str | None = None) -> SaleRef:
        sale = (body.get("data") or {}).get("sale") or {}
        sale_id = wire.ref_id(sale) or fallback_id
        if not sale_id:
            raise SubmissionError("The server did not return the sale id")
        return SaleRef(sale_id=sale_id, raw=sale or None)
