from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from travel_sales_wizard.domain.models import (
    CupoContext,
    Document,
    Passenger,
    PendingFile,
    Provider,
    ServiceTemplate,
)


@dataclass(frozen=True)
class SaleRef:
    sale_id: str
    raw: dict[str, Any] | None = None


class SalesApi(Protocol):
    """
    What it does:
    - Defines the REST surface the wizard consumes.

    Why it matters:
    - Wizard logic stays stable while the transport changes
      (FakeSalesApi for tests, HttpSalesApi for real use).

    Behavior:
    - Every call is async and independent; callers may run them concurrently.
    - List calls return possibly-partial projections (e.g. passengers without dni).
    - Failures raise BackendError (SubmissionError for create/update).
    """

    async def list_clients(self, search: str = "", *, limit: int = 50) -> list[Passenger]: ...

    async def get_client(self, client_id: str) -> Passenger: ...

    async def list_companions(self, client_id: str, search: str = "") -> list[Passenger]: ...

    async def list_all_for_selection(
        self, search: str = "", *, exclude_client_id: str | None = None
    ) -> list[Passenger]: ...

    async def list_providers(self, search: str = "", *, limit: int = 50) -> list[Provider]: ...

    async def list_service_templates(self) -> list[ServiceTemplate]: ...

    async def search_cities(self, query: str, *, limit: int = 5) -> list[str]: ...

    async def search_countries(self, query: str, *, limit: int = 5) -> list[str]: ...

    async def get_cupo(self, cupo_id: str) -> CupoContext: ...

    async def get_sale(self, sale_id: str) -> dict[str, Any]: ...

    async def upload_provider_document(
        self, provider_id: str, file: PendingFile, *, sale_id: str | None = None
    ) -> Document: ...

    async def create_sale(self, payload: dict[str, Any]) -> SaleRef: ...

    async def update_sale(self, sale_id: str, payload: dict[str, Any]) -> SaleRef: ...
