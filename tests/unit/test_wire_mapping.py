from datetime import date
from decimal import Decimal

import pytest

from travel_sales_wizard.domain.enums import Currency
from travel_sales_wizard.rest.wire import (
    assignment_from_wire,
    cupo_from_wire,
    destination_from_label,
    draft_from_sale,
    parse_date,
    passenger_from_wire,
)

pytestmark = pytest.mark.unit


def test_passenger_accepts_alternate_field_names():
    p = passenger_from_wire({"_id": "c1", "firstName": "Ana", "lastName": "Perez"})

    assert (p.id, p.name, p.surname, p.dni) == ("c1", "Ana", "Perez", "")
    assert not p.has_dni


def test_parse_date_accepts_timestamps_and_ignores_garbage():
    assert parse_date("2026-03-01T00:00:00.000Z") == date(2026, 3, 1)
    assert parse_date("soon") is None
    assert parse_date("") is None


def test_destination_label_split():
    d = destination_from_label("Bariloche, Argentina")
    assert (d.city, d.country) == ("Bariloche", "Argentina")


def test_assignment_accepts_populated_and_bare_provider():
    populated = assignment_from_wire(
        {
            "providerId": {"_id": "p1", "name": "Hilton"},
            "documents": [{"filename": "a.pdf", "url": "/u/a.pdf"}],
        }
    )
    bare = assignment_from_wire({"_id": "p2", "name": "Andes"})

    assert (populated.provider_id, populated.name) == ("p1", "Hilton")
    assert populated.documents[0].type == "receipt"
    assert (bare.provider_id, bare.name) == ("p2", "Andes")


def test_cupo_snapshot():
    cupo = cupo_from_wire(
        {
            "_id": "k1",
            "availableSeats": 4,
            "serviceId": {
                "name": "Hotel",
                "destino": "Hotel Llao Llao",
                "providerId": {"_id": "p1", "name": "Hilton"},
            },
            "metadata": {
                "date": "2026-07-10",
                "completionDate": "2026-07-17",
                "value": 250000,
                "currency": "ARS",
                "exchangeRate": 1000,
                "destination": "Bariloche, Argentina",
            },
        }
    )

    assert cupo.available_seats == 4
    assert cupo.provider.name == "Hilton"
    assert cupo.currency == Currency.ARS
    assert cupo.exchange_rate == Decimal("1000")
    assert cupo.destination.country == "Argentina"


def test_edit_mode_hydration():
    sale = {
        "_id": "s-1",
        "clientId": {"_id": "c1"},
        "saleCurrency": "ARS",
        "exchangeRate": 400,
        "originalSalePrice": 400000,
        "passengers": [
            {"type": "companion", "passengerId": {"_id": "c2", "name": "Bruno"}},
            {"isMainClient": True, "passengerId": {"_id": "c1", "name": "Ana", "dni": "1"}},
        ],
        "serviceTemplateInstances": [
            {
                "_id": "svc-1",
                "templateId": {"_id": "t1"},
                "templateName": "Hotel",
                "checkIn": "2026-03-01",
                "checkOut": "2026-03-04",
                "cost": 300,
                "originalAmount": 120000,
                "originalCurrency": "ARS",
                "exchangeRate": 400,
                "providers": [{"providerId": {"_id": "p1", "name": "Hilton"}}],
            }
        ],
    }

    draft = draft_from_sale(sale)

    assert draft.sale_id == "s-1"
    assert draft.is_edit_mode
    assert draft.client_id == "c1"
    assert draft.primary_passenger.id == "c1"
    assert [c.id for c in draft.companions] == ["c2"]
    assert draft.price_schedule.base_amount == Decimal("1000")
    service = draft.services[0]
    assert service.template_id == "t1"
    assert service.cost.base_amount == Decimal("300")
    assert not service.is_template_only
    assert draft.shared_dates.check_in == date(2026, 3, 1)
