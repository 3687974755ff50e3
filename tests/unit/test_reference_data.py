import asyncio

import pytest

from travel_sales_wizard.domain.enums import PassengerRole
from travel_sales_wizard.domain.models import Passenger, SaleDraft
from travel_sales_wizard.services.reference_data import (
    PROVIDERS,
    ReferenceData,
    is_searchable,
    merge_by_id,
    should_auto_refresh,
)

pytestmark = pytest.mark.unit


def _calls(api, name):
    return [c for c in api.calls if c[0] == name]


def test_short_queries_are_not_sent():
    assert is_searchable("")
    assert not is_searchable("a")
    assert is_searchable("an")


def test_initial_load_fills_independent_lists(fake_api):
    ref = ReferenceData(fake_api, search_limit=10)

    asyncio.run(ref.load_initial())

    assert [p.id for p in ref.passengers] == ["c1", "c2"]
    assert [p.id for p in ref.providers] == ["p1", "p2"]
    assert len(ref.service_templates) == 2
    assert not ref.state(PROVIDERS).loading


def test_search_skips_unchanged_and_short_queries(fake_api):
    ref = ReferenceData(fake_api)

    async def scenario():
        await ref.search("a", PassengerRole.MAIN)
        first = await ref.search("an", PassengerRole.MAIN)
        await ref.search("an", PassengerRole.MAIN)
        return first

    found = asyncio.run(scenario())

    assert [p.id for p in found] == ["c1"]
    assert _calls(fake_api, "list_clients") == [("list_clients", "an")]


def test_companion_search_merges_own_companions_with_pool(fake_api, ana, bruno):
    carla = Passenger(id="c3", name="Carla", surname="Brito", dni="5")
    fake_api.companions = {ana.id: [carla, bruno]}
    ref = ReferenceData(fake_api)

    pool = asyncio.run(ref.search("", PassengerRole.COMPANION, primary_id=ana.id))

    assert [p.id for p in pool] == ["c3", "c2"]
    assert ("list_all_for_selection", "", ana.id) in fake_api.calls


def test_failed_fetch_keeps_previous_items(fake_api):
    ref = ReferenceData(fake_api)
    asyncio.run(ref.refresh_providers())

    fake_api.fail_lists = True
    items = asyncio.run(ref.refresh_providers())

    assert [p.id for p in items] == ["p1", "p2"]
    assert ref.state(PROVIDERS).error == "providers unavailable"


def test_destination_autocomplete(fake_api):
    ref = ReferenceData(fake_api)

    assert asyncio.run(ref.search_destinations("B")) == []
    assert asyncio.run(ref.search_destinations("ba")) == ["Bariloche", "Barcelona"]
    assert asyncio.run(ref.search_destinations("arg", kind="country")) == ["Argentina"]


def test_merge_by_id_keeps_first_occurrence(ana, bruno):
    assert merge_by_id([ana], [bruno, ana]) == [ana, bruno]


def test_auto_refresh_is_suppressed_with_services_or_in_edit_mode(configured_service):
    assert should_auto_refresh(SaleDraft())
    assert not should_auto_refresh(SaleDraft(services=(configured_service,)))
    assert not should_auto_refresh(SaleDraft(sale_id="s-1"))


@pytest.mark.parametrize(
    ("draft_factory", "expect_refresh"),
    [
        (lambda svc: SaleDraft(), True),
        (lambda svc: SaleDraft(services=(svc,)), False),
    ],
)
def test_periodic_refresh(fake_api, configured_service, draft_factory, expect_refresh):
    ref = ReferenceData(fake_api, refresh_interval=0.01)
    draft = draft_factory(configured_service)

    async def scenario():
        stop = asyncio.Event()
        task = asyncio.create_task(ref.run_periodic_refresh(lambda: draft, stop))
        await asyncio.sleep(0.08)
        stop.set()
        await task

    asyncio.run(scenario())

    assert bool(_calls(fake_api, "list_providers")) is expect_refresh
