from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from travel_sales_wizard.config.settings import settings
from travel_sales_wizard.domain.enums import PassengerRole
from travel_sales_wizard.domain.models import Passenger, Provider, SaleDraft, ServiceTemplate
from travel_sales_wizard.services.sales_api import SalesApi
from travel_sales_wizard.utils.errors import BackendError
from travel_sales_wizard.utils.logging import get_logger

logger = get_logger("reference_data")

PASSENGERS = "passengers"
COMPANIONS = "companions"
ALL_FOR_SELECTION = "all_for_selection"
PROVIDERS = "providers"
SERVICE_TEMPLATES = "service_templates"

RESOURCES = (PASSENGERS, COMPANIONS, ALL_FOR_SELECTION, PROVIDERS, SERVICE_TEMPLATES)

MIN_QUERY_LENGTH = 2


@dataclass
class ResourceState:
    """Last fetched items of one reference list, with its own loading flag."""

    items: list[Any] = field(default_factory=list)
    loading: bool = False
    loaded: bool = False
    error: str | None = None
    query: str | None = None


def is_searchable(query: str) -> bool:
    """Empty queries list everything; one-character queries are not sent."""
    query = query.strip()
    return not query or len(query) >= MIN_QUERY_LENGTH


def should_auto_refresh(draft: SaleDraft) -> bool:
    """The periodic refresh must not clobber services being configured or an edited sale."""
    return not draft.services and not draft.is_edit_mode


def merge_by_id(*groups: list[Passenger]) -> list[Passenger]:
    seen: set[str] = set()
    merged = []
    for group in groups:
        for p in group:
            if p.id in seen:
                continue
            seen.add(p.id)
            merged.append(p)
    return merged


class ReferenceData:
    """
    What it does:
    - Holds the reference lists the wizard picks from (passengers, companions,
      providers, service templates) and refreshes them from the backend.

    Why it matters:
    - Fetches are independent: one slow list never blocks another, and a
      failed fetch leaves the previous items in place.

    Behavior:
    - Each list has its own ResourceState (items, loading, error).
    - Fetch failures are logged and recorded on the state; they never raise.
    - Searches are re-issued only when the query changes.
    """

    def __init__(
        self,
        api: SalesApi,
        *,
        search_limit: int | None = None,
        refresh_interval: float | None = None,
    ) -> None:
        self.api = api
        self.search_limit = search_limit if search_limit is not None else settings.search_limit
        self.refresh_interval = (
            refresh_interval if refresh_interval is not None else settings.reference_refresh_seconds
        )
        self.states: dict[str, ResourceState] = {name: ResourceState() for name in RESOURCES}

    def state(self, name: str) -> ResourceState:
        return self.states[name]

    @property
    def passengers(self) -> list[Passenger]:
        return self.states[PASSENGERS].items

    @property
    def providers(self) -> list[Provider]:
        return self.states[PROVIDERS].items

    @property
    def service_templates(self) -> list[ServiceTemplate]:
        return self.states[SERVICE_TEMPLATES].items

    @property
    def companion_pool(self) -> list[Passenger]:
        return merge_by_id(self.states[COMPANIONS].items, self.states[ALL_FOR_SELECTION].items)

    def set_items(self, name: str, items: list[Any]) -> None:
        self.states[name].items = list(items)

    async def _load(
        self,
        name: str,
        fetch: Callable[[], Awaitable[list[Any]]],
        *,
        query: str | None = None,
    ) -> list[Any]:
        state = self.states[name]
        state.loading = True
        state.error = None
        try:
            items = await fetch()
        except BackendError as e:
            state.error = e.message
            logger.warning("Failed to fetch %s: %s", name, e.message)
            return state.items
        finally:
            state.loading = False

        state.items = list(items)
        state.loaded = True
        state.query = query
        return state.items

    # -------------------- Individual lists --------------------

    async def refresh_passengers(self, search: str = "") -> list[Passenger]:
        return await self._load(
            PASSENGERS,
            lambda: self.api.list_clients(search, limit=self.search_limit),
            query=search,
        )

    async def refresh_companions(self, client_id: str, search: str = "") -> list[Passenger]:
        return await self._load(
            COMPANIONS,
            lambda: self.api.list_companions(client_id, search),
            query=search,
        )

    async def refresh_all_for_selection(
        self, search: str = "", *, exclude_client_id: str | None = None
    ) -> list[Passenger]:
        return await self._load(
            ALL_FOR_SELECTION,
            lambda: self.api.list_all_for_selection(search, exclude_client_id=exclude_client_id),
            query=search,
        )

    async def refresh_providers(self, search: str = "") -> list[Provider]:
        return await self._load(
            PROVIDERS,
            lambda: self.api.list_providers(search, limit=self.search_limit),
            query=search,
        )

    async def refresh_service_templates(self) -> list[ServiceTemplate]:
        return await self._load(SERVICE_TEMPLATES, self.api.list_service_templates)

    # -------------------- Batches --------------------

    async def load_initial(self) -> None:
        await asyncio.gather(
            self.refresh_passengers(),
            self.refresh_providers(),
            self.refresh_service_templates(),
        )

    async def refresh_catalogs(self) -> None:
        await asyncio.gather(self.refresh_providers(), self.refresh_service_templates())

    async def search(
        self,
        query: str,
        role: PassengerRole,
        *,
        primary_id: str | None = None,
    ) -> list[Passenger]:
        """
        Candidate search for one role.

        MAIN searches main clients. COMPANION merges the primary's own
        companions with the broader selection pool (primary excluded).
        An unchanged or too-short query returns the current items without a call.
        """
        if role == PassengerRole.MAIN:
            state = self.states[PASSENGERS]
            if not is_searchable(query) or (state.loaded and state.query == query):
                return state.items
            return await self.refresh_passengers(query)

        pool = self.states[ALL_FOR_SELECTION]
        if not is_searchable(query) or (pool.loaded and pool.query == query):
            return self.companion_pool

        fetches = [self.refresh_all_for_selection(query, exclude_client_id=primary_id)]
        if primary_id:
            fetches.append(self.refresh_companions(primary_id, query))
        await asyncio.gather(*fetches)
        return self.companion_pool

    async def search_destinations(self, query: str, *, kind: str = "city") -> list[str]:
        if len(query.strip()) < MIN_QUERY_LENGTH:
            return []
        try:
            if kind == "country":
                return await self.api.search_countries(query.strip())
            return await self.api.search_cities(query.strip())
        except BackendError as e:
            logger.warning("Destination search failed: %s", e.message)
            return []

    # -------------------- Background refresh --------------------

    async def run_periodic_refresh(
        self,
        draft_supplier: Callable[[], SaleDraft],
        stop: asyncio.Event,
    ) -> None:
        """
        Re-pulls providers and templates every `refresh_interval` seconds until
        `stop` is set. Skipped while services exist or an existing sale is edited.
        """
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.refresh_interval)
                return
            except TimeoutError:
                pass

            if should_auto_refresh(draft_supplier()):
                logger.debug("Periodic reference refresh")
                await self.refresh_catalogs()
            else:
                logger.debug("Periodic reference refresh suppressed")
