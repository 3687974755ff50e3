from dataclasses import replace
from decimal import Decimal

import pytest

from travel_sales_wizard.domain.enums import Currency, WizardStep
from travel_sales_wizard.domain.models import Destination, MonetaryAmount, SaleDraft
from travel_sales_wizard.services import wizard
from travel_sales_wizard.utils.errors import ValidationError

pytestmark = pytest.mark.unit


def _at(step, draft):
    return wizard.WizardState(step=step, draft=draft)


def test_step_titles_are_stable():
    assert [s.title for s in WizardStep] == [
        "Passengers & Companions",
        "Price Per Passenger",
        "Select Service Template",
        "Service Dates",
        "Service Cost & Provider",
        "Edit Services",
        "Review & Create",
    ]


def test_passenger_gate_blocks_without_primary():
    state = wizard.advance(wizard.WizardState())

    assert state.step == WizardStep.PASSENGERS
    assert state.message == "Please select at least one passenger to continue"


def test_price_gate_requires_positive_amount_and_ars_rate(ready_draft):
    zero = replace(ready_draft, price_schedule=MonetaryAmount.zero())
    assert wizard.advance(_at(WizardStep.PRICE, zero)).step == WizardStep.PRICE

    no_rate = replace(
        ready_draft,
        price_schedule=MonetaryAmount(
            original_amount=Decimal("1000"),
            original_currency=Currency.ARS,
            exchange_rate=None,
            base_amount=Decimal("1000"),
        ),
    )
    state = wizard.advance(_at(WizardStep.PRICE, no_rate))
    assert state.step == WizardStep.PRICE
    assert "exchange rate" in state.message

    assert wizard.advance(_at(WizardStep.PRICE, ready_draft)).step == WizardStep.TEMPLATE


def test_dates_gate_checks_instance_under_edit(ready_draft, configured_service):
    missing_city = wizard.advance(_at(WizardStep.DATES, ready_draft))
    assert missing_city.step == WizardStep.DATES

    with_city = replace(
        configured_service, destination=Destination(city="Bariloche", country="Argentina")
    )
    draft = replace(ready_draft, services=(with_city,))
    assert wizard.advance(_at(WizardStep.DATES, draft)).step == WizardStep.COST_PROVIDER


def test_cost_gate_rejects_if_any_service_lacks_provider(ready_draft, configured_service):
    services = tuple(replace(configured_service, id=f"svc-{i}") for i in range(4))
    services += (replace(configured_service, id="svc-bare", providers=()),)
    draft = replace(ready_draft, services=services)

    state = wizard.advance(_at(WizardStep.COST_PROVIDER, draft))

    assert state.step == WizardStep.COST_PROVIDER
    with pytest.raises(ValidationError) as exc:
        wizard.check_step(WizardStep.COST_PROVIDER, draft)
    assert exc.value.fields == ("services.svc-bare",)


def test_advance_stops_at_review_and_retreat_stops_at_first(ready_draft):
    state = _at(WizardStep.EDIT_SERVICES, ready_draft)
    state = wizard.advance(state)
    assert state.step == WizardStep.REVIEW
    assert state.can_submit
    assert wizard.advance(state) is state

    first = wizard.WizardState(draft=ready_draft)
    assert wizard.retreat(first) is first
    assert wizard.retreat(state).step == WizardStep.EDIT_SERVICES


def test_rewind_only_goes_backwards(ready_draft):
    state = _at(WizardStep.EDIT_SERVICES, ready_draft)

    assert wizard.rewind_to(state, WizardStep.DATES).step == WizardStep.DATES
    with pytest.raises(ValidationError):
        wizard.rewind_to(state, WizardStep.REVIEW)


def test_instance_under_edit_prefers_open_then_unconfigured(configured_service):
    fresh = replace(configured_service, id="svc-new", is_template_only=True, check_in=None)
    draft = SaleDraft(services=(configured_service, fresh))
    assert wizard.instance_under_edit(draft) is fresh

    draft = replace(draft, editing_instance_id=configured_service.id)
    assert wizard.instance_under_edit(draft) is configured_service

    assert wizard.instance_under_edit(SaleDraft()) is None


def test_successful_advance_clears_message(ana):
    state = wizard.advance(wizard.WizardState())
    assert state.message

    moved = wizard.advance(wizard.with_draft(state, SaleDraft(primary_passenger=ana)))

    assert moved.step == WizardStep.PRICE
    assert moved.message is None
    assert wizard.entered(state, moved, WizardStep.PRICE)
