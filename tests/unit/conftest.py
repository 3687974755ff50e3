from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from travel_sales_wizard.domain.enums import Currency
from travel_sales_wizard.domain.models import (
    MonetaryAmount,
    Passenger,
    Provider,
    ProviderAssignment,
    SaleDraft,
    ServiceTemplate,
    ServiceTemplateInstance,
)
from travel_sales_wizard.testing.fakes import FakeSalesApi
from travel_sales_wizard.utils.logging import reset_logging


@pytest.fixture(autouse=True)
def _clean_logging():
    yield
    reset_logging()


@pytest.fixture()
def ana():
    return Passenger(id="c1", name="Ana", surname="Perez", dni="30111222")


@pytest.fixture()
def bruno():
    return Passenger(id="c2", name="Bruno", surname="Diaz", dni="28999000")


@pytest.fixture()
def hotel_template():
    return ServiceTemplate(id="t-hotel", name="Hotel", category="Hotel")


@pytest.fixture()
def transfer_template():
    return ServiceTemplate(id="t-transfer", name="Transfer", category="Transfer")


@pytest.fixture()
def hilton():
    return Provider(id="p1", name="Hilton", phone="+54 11 5555", email="res@hilton.test")


@pytest.fixture()
def configured_service(hotel_template, hilton):
    return ServiceTemplateInstance(
        id="svc-1",
        template_id=hotel_template.id,
        template_name=hotel_template.name,
        template_category=hotel_template.category,
        service_info="Hotel 3 nights",
        check_in=date(2026, 3, 1),
        check_out=date(2026, 3, 4),
        cost=MonetaryAmount(
            original_amount=Decimal("300"),
            original_currency=Currency.USD,
            exchange_rate=None,
            base_amount=Decimal("300"),
        ),
        providers=(ProviderAssignment.from_provider(hilton),),
        is_template_only=False,
    )


@pytest.fixture()
def ready_draft(ana, configured_service):
    return SaleDraft(
        primary_passenger=ana,
        client_id=ana.id,
        price_schedule=MonetaryAmount(
            original_amount=Decimal("1000"),
            original_currency=Currency.USD,
            exchange_rate=None,
            base_amount=Decimal("1000"),
        ),
        services=(configured_service,),
    )


@pytest.fixture()
def fake_api(ana, bruno, hilton, hotel_template, transfer_template):
    return FakeSalesApi(
        clients=[ana, bruno],
        selection_pool=[bruno],
        providers=[hilton, Provider(id="p2", name="Andes Transfers")],
        templates=[hotel_template, transfer_template],
        cities=["Bariloche", "Buenos Aires", "Barcelona"],
        countries=["Argentina", "Spain"],
    )
