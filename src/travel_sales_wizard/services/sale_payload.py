from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any

from travel_sales_wizard.domain.enums import BASE_CURRENCY, PassengerRole
from travel_sales_wizard.domain.models import (
    Destination,
    Document,
    Passenger,
    ProviderAssignment,
    SaleDraft,
    ServiceTemplateInstance,
)
from travel_sales_wizard.rest.wire import document_to_wire, format_date, money_to_wire
from travel_sales_wizard.services.cupo_reservation import check_seats
from travel_sales_wizard.services.sales_api import SaleRef, SalesApi
from travel_sales_wizard.utils.errors import (
    BackendError,
    SubmissionError,
    UploadFailure,
    ValidationError,
)
from travel_sales_wizard.utils.logging import get_logger

logger = get_logger("sale_payload")


@dataclass(frozen=True)
class SubmissionOutcome:
    sale_id: str
    created: bool
    uploaded_documents: int


def validate_passengers(draft: SaleDraft) -> None:
    """
    Fails fast on the first passenger lacking name, surname or dni.

    The error names the passenger and the missing fields.
    """
    if draft.primary_passenger is None:
        raise ValidationError("Please select at least one passenger", fields=["primary_passenger"])

    for index, passenger in enumerate(draft.passengers):
        missing = passenger.missing_fields()
        if missing:
            who = passenger.name or passenger.id or "passenger"
            raise ValidationError(
                f"Missing required fields for {who}: name, surname, and DNI are required "
                f"(missing: {', '.join(missing)})",
                fields=[f"passengers.{index}.{f}" for f in missing],
            )


def pending_upload_count(draft: SaleDraft) -> int:
    return sum(len(a.pending_files) for s in draft.services for a in s.providers)


def _passenger_to_wire(p: Passenger, role: PassengerRole, draft: SaleDraft) -> dict[str, Any]:
    return {
        "clientId": p.id,
        "name": p.name,
        "surname": p.surname,
        "dni": p.dni,
        "passportNumber": p.passport_number,
        "dob": p.dob,
        "email": p.email,
        "phone": p.phone,
        "type": role.value,
        "isMainClient": role == PassengerRole.MAIN,
        "price": money_to_wire(draft.price_schedule.original_amount),
    }


def _assignment_to_wire(a: ProviderAssignment) -> dict[str, Any]:
    return {
        "providerId": a.provider_id,
        "name": a.name,
        "phone": a.phone,
        "email": a.email,
        "documents": [document_to_wire(d) for d in a.documents],
    }


def _destination_to_wire(draft: SaleDraft) -> dict[str, str]:
    destination = draft.destination
    if not (destination.city and destination.country) and draft.services:
        destination = draft.services[0].destination
    city = destination.city or "Unknown City"
    country = destination.country or "Unknown Country"
    return {
        "name": Destination(city=city, country=country).label,
        "city": city,
        "country": country,
    }


def _service_to_wire(s: ServiceTemplateInstance) -> dict[str, Any]:
    default = s.default_provider
    return {
        "id": s.id,
        "templateId": s.template_id,
        "templateName": s.template_name,
        "templateCategory": s.template_category,
        "serviceInfo": s.service_info,
        "checkIn": format_date(s.check_in),
        "checkOut": format_date(s.check_out),
        "cost": money_to_wire(s.cost.base_amount),
        "currency": BASE_CURRENCY.value,
        "originalCurrency": s.cost.original_currency.value,
        "originalAmount": money_to_wire(s.cost.original_amount),
        "exchangeRate": money_to_wire(s.cost.exchange_rate),
        "provider": _assignment_to_wire(default) if default else None,
        "providers": [_assignment_to_wire(a) for a in s.providers],
        "destination": {"city": s.destination.city, "country": s.destination.country},
    }


def _selected_providers(draft: SaleDraft) -> list[dict[str, Any]]:
    merged: dict[str, dict[str, Any]] = {}
    for service in draft.services:
        for a in service.providers:
            entry = merged.setdefault(a.provider_id, {**_assignment_to_wire(a), "documents": []})
            for doc in a.documents:
                wired = document_to_wire(doc)
                if wired not in entry["documents"]:
                    entry["documents"].append(wired)
    return list(merged.values())


def build_payload(draft: SaleDraft) -> dict[str, Any]:
    """
    What it does:
    - Converts the final draft into the create/update request body.

    Why it matters:
    - One place maps draft fields to backend fields.

    Behavior:
    - Documents stay nested under the provider/service that owns them; a
      de-duplicated flat `selectedProviders` list is added for older consumers.
    - Pending (not yet uploaded) files are never serialized.
    """
    passengers = []
    if draft.primary_passenger is not None:
        passengers.append(_passenger_to_wire(draft.primary_passenger, PassengerRole.MAIN, draft))
    passengers.extend(
        _passenger_to_wire(c, PassengerRole.COMPANION, draft) for c in draft.companions
    )

    price = draft.price_schedule
    client_id = draft.client_id
    if client_id is None and draft.primary_passenger is not None:
        client_id = draft.primary_passenger.id
    payload: dict[str, Any] = {
        "clientId": client_id,
        "passengers": passengers,
        "destination": _destination_to_wire(draft),
        "serviceTemplateInstances": [_service_to_wire(s) for s in draft.services],
        "selectedProviders": _selected_providers(draft),
        "pricingModel": "unit",
        "saleCurrency": draft.sale_currency.value,
        "exchangeRate": money_to_wire(draft.sale_exchange_rate),
        "baseCurrency": BASE_CURRENCY.value,
        "originalSalePrice": money_to_wire(price.original_amount),
        "originalCurrency": price.original_currency.value,
        "salePriceUSD": money_to_wire(price.base_amount),
        "notes": draft.notes,
    }

    cupo = draft.cupo_context
    if cupo is not None:
        payload["cupoContext"] = {
            "cupoId": cupo.cupo_id,
            "seatsToReserve": draft.seats_requested,
            "availableSeats": cupo.available_seats,
        }

    return payload


def _record_upload(
    draft: SaleDraft, service_index: int, provider_index: int, doc: Document
) -> SaleDraft:
    """Moves the first pending file of one assignment to its uploaded documents."""
    services = list(draft.services)
    service = services[service_index]
    providers = list(service.providers)
    target = providers[provider_index]
    providers[provider_index] = replace(
        target,
        documents=(*target.documents, doc),
        pending_files=target.pending_files[1:],
    )
    services[service_index] = replace(service, providers=tuple(providers))
    return replace(draft, services=tuple(services))


class SalePayloadAssembler:
    """
    What it does:
    - Validates the final draft, uploads queued provider documents and issues
      a single create (or update) call.

    Why it matters:
    - Cross-entity checks and the upload/merge dance do not belong in the step
      logic or in the transport.

    Behavior:
    - Service eligibility, passenger completeness and the cupo seat check run
      before any network call.
    - Uploads are sequential, one file at a time; the first failure aborts
      everything with UploadFailure (no sale is created).
    - Each uploaded reference replaces its pending file on the same assignment
      of the same service, and `on_progress` receives the draft after every
      upload so callers can keep it when a later step fails.
    """

    def __init__(self, *, api: SalesApi) -> None:
        self.api = api

    def validate(self, draft: SaleDraft) -> None:
        if not draft.services:
            raise ValidationError("Please add at least one service", fields=["services"])
        invalid = [s.id for s in draft.services if not s.is_submittable]
        if invalid:
            raise ValidationError(
                "Every service needs a cost greater than zero and at least one provider",
                fields=[f"services.{i}" for i in invalid],
            )
        validate_passengers(draft)
        check_seats(draft)

    async def upload_documents(
        self,
        draft: SaleDraft,
        *,
        on_progress: Callable[[SaleDraft], None] | None = None,
    ) -> SaleDraft:
        current = draft
        for s_index, service in enumerate(draft.services):
            for p_index, assignment in enumerate(service.providers):
                for file in assignment.pending_files:
                    try:
                        doc = await self.api.upload_provider_document(
                            assignment.provider_id, file, sale_id=draft.sale_id
                        )
                    except BackendError as e:
                        logger.error(
                            "Upload of %s for provider %s failed: %s",
                            file.name,
                            assignment.name,
                            e,
                        )
                        raise UploadFailure(
                            provider_id=assignment.provider_id,
                            provider_name=assignment.name or assignment.provider_id,
                            filename=file.name,
                            reason=str(e),
                        ) from e
                    current = _record_upload(current, s_index, p_index, doc)
                    if on_progress is not None:
                        on_progress(current)
        return current

    async def send(self, draft: SaleDraft) -> SaleRef:
        payload = build_payload(draft)
        if draft.sale_id:
            ref = await self.api.update_sale(draft.sale_id, payload)
        else:
            ref = await self.api.create_sale(payload)
        logger.info(
            "Sale %s %s with %d service(s)",
            ref.sale_id,
            "updated" if draft.sale_id else "created",
            len(draft.services),
        )
        return ref

    async def submit(
        self,
        draft: SaleDraft,
        *,
        on_progress: Callable[[SaleDraft], None] | None = None,
    ) -> SubmissionOutcome:
        """
        Runs validate -> upload -> send; the draft passed in is never mutated.

        Uploaded references reach the caller only through `on_progress`, also
        when the upload pass or the create/update fails afterwards.
        """
        self.validate(draft)
        to_upload = pending_upload_count(draft)
        prepared = await self.upload_documents(draft, on_progress=on_progress)
        try:
            ref = await self.send(prepared)
        except SubmissionError:
            logger.error("Sale submission failed; the draft is kept for retry")
            raise
        return SubmissionOutcome(
            sale_id=ref.sale_id, created=not draft.sale_id, uploaded_documents=to_upload
        )
