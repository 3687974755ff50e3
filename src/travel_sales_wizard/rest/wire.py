"""
wire.py

Maps the backend's JSON documents to wizard models and back.

Every record fetched from the backend is treated as a possibly-partial
projection: missing fields become empty values rather than errors, and the
wizard decides later whether a record is complete enough to submit.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from travel_sales_wizard.domain.enums import BASE_CURRENCY
from travel_sales_wizard.domain.models import (
    CupoContext,
    Destination,
    Document,
    MonetaryAmount,
    Passenger,
    Provider,
    ProviderAssignment,
    SaleDraft,
    ServiceTemplate,
    ServiceTemplateInstance,
    StayDates,
)
from travel_sales_wizard.services.currency import normalize, normalize_currency, to_decimal
from travel_sales_wizard.utils.errors import ValidationError
from travel_sales_wizard.utils.logging import get_logger

logger = get_logger("wire")


def ref_id(value: Any) -> str | None:
    """Mongo-style references arrive either as an id string or as a populated document."""
    if value is None:
        return None
    if isinstance(value, dict):
        raw = value.get("_id") or value.get("id")
        return str(raw) if raw is not None else None
    return str(value)


def _text(data: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = data.get(key)
        if value:
            return str(value)
    return ""


def _optional(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    return str(value) if value not in (None, "") else None


def parse_date(value: Any) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        logger.warning("Ignoring unparseable date %r", value)
        return None


def format_date(value: date | None) -> str | None:
    return value.isoformat() if value else None


def destination_from_label(label: str | None) -> Destination:
    if not label:
        return Destination()
    city, _, country = label.partition(",")
    return Destination(city=city.strip(), country=country.strip())


def destination_from_wire(data: Any) -> Destination:
    if isinstance(data, str):
        return destination_from_label(data)
    if not isinstance(data, dict):
        return Destination()
    return Destination(city=_text(data, "city"), country=_text(data, "country"))


def passenger_from_wire(data: dict[str, Any]) -> Passenger:
    return Passenger(
        id=ref_id(data) or "",
        name=_text(data, "name", "firstName"),
        surname=_text(data, "surname", "lastName"),
        dni=_text(data, "dni"),
        email=_optional(data, "email"),
        phone=_optional(data, "phone"),
        passport_number=_optional(data, "passportNumber"),
        dob=_optional(data, "dob"),
    )


def provider_from_wire(data: Any) -> Provider:
    if not isinstance(data, dict):
        return Provider(id=str(data), name="")
    return Provider(
        id=ref_id(data) or "",
        name=_text(data, "name"),
        phone=_optional(data, "phone"),
        email=_optional(data, "email"),
    )


def template_from_wire(data: dict[str, Any]) -> ServiceTemplate:
    return ServiceTemplate(
        id=ref_id(data) or "",
        name=_text(data, "name"),
        category=_optional(data, "category"),
    )


def document_from_wire(data: dict[str, Any]) -> Document:
    return Document(
        filename=_text(data, "filename", "originalName"),
        url=_text(data, "url"),
        type=_text(data, "type") or "receipt",
        original_name=_optional(data, "originalName"),
    )


def document_to_wire(doc: Document) -> dict[str, Any]:
    out = {"filename": doc.filename, "url": doc.url, "type": doc.type}
    if doc.original_name:
        out["originalName"] = doc.original_name
    return out


def suggestion_label(item: Any) -> str:
    if isinstance(item, dict):
        return _text(item, "name", "city", "country", "label")
    return str(item)


def assignment_from_wire(data: Any) -> ProviderAssignment:
    """Accepts both `{providerId: {...}, documents}` and a bare provider document."""
    if not isinstance(data, dict):
        return ProviderAssignment(provider_id=str(data), name="")

    nested = data.get("providerId")
    source = nested if isinstance(nested, dict) else data
    provider_id = ref_id(nested) if nested is not None else ref_id(data)
    return ProviderAssignment(
        provider_id=provider_id or "",
        name=_text(source, "name") or _text(data, "name"),
        phone=_optional(source, "phone"),
        email=_optional(source, "email"),
        documents=tuple(document_from_wire(d) for d in data.get("documents") or ()),
    )


def cupo_from_wire(data: dict[str, Any]) -> CupoContext:
    service = data.get("serviceId") if isinstance(data.get("serviceId"), dict) else {}
    metadata = data.get("metadata") or {}
    provider_ref = service.get("providerId")

    rate = metadata.get("exchangeRate")
    return CupoContext(
        cupo_id=ref_id(data) or "",
        available_seats=int(data.get("availableSeats") or 0),
        service_name=_optional(service, "name"),
        service_destino=_optional(service, "destino"),
        service_type=_optional(service, "type"),
        provider=provider_from_wire(provider_ref) if provider_ref else None,
        start_date=parse_date(metadata.get("date")),
        end_date=parse_date(metadata.get("completionDate")),
        value=to_decimal(metadata.get("value") or 0, field="cupo.value"),
        currency=normalize_currency(metadata.get("currency") or BASE_CURRENCY),
        exchange_rate=to_decimal(rate, field="cupo.exchange_rate") if rate else None,
        destination=destination_from_label(metadata.get("destination")),
    )


def _money_from_wire(data: dict[str, Any]) -> MonetaryAmount:
    original = data.get("originalAmount")
    currency = data.get("originalCurrency") or data.get("currency") or BASE_CURRENCY
    rate = data.get("exchangeRate")
    if original is None:
        original = data.get("cost", data.get("costProvider", 0))
        if currency != BASE_CURRENCY and rate is None:
            # legacy rows only kept the USD figure
            currency = BASE_CURRENCY
    try:
        return normalize(original or 0, currency, rate)
    except ValidationError:
        logger.warning(
            "Could not normalize stored amount %r %s (rate=%r)", original, currency, rate
        )
        return MonetaryAmount.zero()


def _service_from_wire(index: int, data: dict[str, Any]) -> ServiceTemplateInstance:
    dates = data.get("serviceDates") or {}
    providers = data.get("providers")
    if not providers and data.get("providerId"):
        providers = [data["providerId"]]

    return ServiceTemplateInstance(
        id=ref_id(data) or f"sale_service_{index}",
        template_id=ref_id(data.get("templateId")) or ref_id(data.get("serviceId")) or "",
        template_name=_text(data, "templateName", "serviceName", "name"),
        template_category=_optional(data, "templateCategory"),
        service_info=_text(data, "serviceInfo", "serviceName", "notes", "templateName"),
        check_in=parse_date(data.get("checkIn") or dates.get("startDate")),
        check_out=parse_date(data.get("checkOut") or dates.get("endDate")),
        cost=_money_from_wire(data),
        destination=destination_from_wire(data.get("destination")),
        providers=tuple(assignment_from_wire(p) for p in providers or ()),
        is_template_only=False,
    )


def draft_from_sale(sale: dict[str, Any]) -> SaleDraft:
    """
    What it does:
    - Hydrates a SaleDraft from an existing sale (edit mode).

    Why it matters:
    - Editing re-runs the same wizard and gates on a pre-filled draft.

    Behavior:
    - Passengers split by `isMainClient` (or `type == main_passenger`).
    - Services arrive configured; their providers keep stored documents.
    - Amounts that cannot be normalized are hydrated as zero and logged.
    """
    primary = None
    companions = []
    for entry in sale.get("passengers") or ():
        person = entry.get("passengerId") if isinstance(entry.get("passengerId"), dict) else entry
        passenger = passenger_from_wire(person)
        if not passenger.id:
            passenger = Passenger(
                id=ref_id(entry.get("clientId")) or ref_id(entry) or "",
                name=passenger.name,
                surname=passenger.surname,
                dni=passenger.dni,
                email=passenger.email,
                phone=passenger.phone,
                passport_number=passenger.passport_number,
                dob=passenger.dob,
            )
        is_main = entry.get("isMainClient") or entry.get("type") == "main_passenger"
        if is_main and primary is None:
            primary = passenger
        else:
            companions.append(passenger)

    currency = sale.get("saleCurrency") or BASE_CURRENCY
    rate = sale.get("exchangeRate")
    price_value = sale.get("originalSalePrice", sale.get("salePrice")) or 0
    try:
        price = normalize(price_value, currency, rate if currency != BASE_CURRENCY else None)
    except ValidationError:
        logger.warning("Sale %s has an unusable price %r %s", ref_id(sale), price_value, currency)
        price = MonetaryAmount.zero()

    services_raw = sale.get("serviceTemplateInstances") or sale.get("services") or ()
    services = tuple(_service_from_wire(i, s) for i, s in enumerate(services_raw))

    first_dates = StayDates(
        check_in=services[0].check_in if services else None,
        check_out=services[0].check_out if services else None,
    )

    return SaleDraft(
        primary_passenger=primary,
        companions=tuple(companions),
        destination=destination_from_wire(sale.get("destination")),
        shared_dates=first_dates,
        price_schedule=price,
        sale_currency=price.original_currency,
        sale_exchange_rate=price.exchange_rate,
        services=services,
        sale_id=ref_id(sale),
        client_id=ref_id(sale.get("clientId")) or (primary.id if primary else None),
        notes=_text(sale, "saleNotes", "notes"),
    )


def money_to_wire(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None
