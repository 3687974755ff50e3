from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from travel_sales_wizard.domain.models import (
    CupoContext,
    MonetaryAmount,
    ProviderAssignment,
    SaleDraft,
    ServiceTemplate,
    ServiceTemplateInstance,
    StayDates,
)
from travel_sales_wizard.services.currency import normalize
from travel_sales_wizard.services.service_instances import new_instance_id
from travel_sales_wizard.utils.errors import (
    InsufficientInventory,
    InvalidExchangeRate,
    ValidationError,
)
from travel_sales_wizard.utils.logging import get_logger

logger = get_logger("cupo_reservation")


def check_seats(draft: SaleDraft) -> None:
    """
    Advisory seat check against the snapshot taken at wizard entry.

    No-op outside reservation mode. Raises InsufficientInventory when
    1 + companions exceeds the snapshot's available seats.
    """
    cupo = draft.cupo_context
    if cupo is None:
        return

    requested = draft.seats_requested
    if requested > cupo.available_seats:
        raise InsufficientInventory(requested=requested, available=cupo.available_seats)


def seats_remaining(draft: SaleDraft) -> int | None:
    if draft.cupo_context is None:
        return None
    return draft.cupo_context.available_seats - draft.seats_requested


def match_template(
    cupo: CupoContext, templates: Iterable[ServiceTemplate]
) -> ServiceTemplate | None:
    """
    Finds the template for the cupo's service: exact name/destino first, then
    case-insensitive containment on destino, then category == service type.
    """
    templates = list(templates)
    names = {n for n in (cupo.service_destino, cupo.service_name) if n}

    for t in templates:
        if t.name in names:
            return t

    if cupo.service_destino:
        destino = cupo.service_destino.lower()
        for t in templates:
            name = t.name.lower()
            if name in destino or destino in name:
                return t

    if cupo.service_type:
        service_type = cupo.service_type.lower()
        for t in templates:
            if t.category and t.category.lower() == service_type:
                return t

    return None


def prepopulate_from_cupo(draft: SaleDraft, templates: Iterable[ServiceTemplate]) -> SaleDraft:
    """
    What it does:
    - Builds the first service instance of a reservation from the cupo snapshot.

    Why it matters:
    - Selling from inventory should start with the reserved service already
      configured (dates, value, provider, destination).

    Behavior:
    - Only runs in reservation mode with no services yet; otherwise returns the draft.
    - The instance is configured when the cupo names a provider and a positive
      value, template-only otherwise.
    - Seeds the draft's destination, shared dates and sale currency from the cupo.
    - No matching template -> ValidationError.
    """
    cupo = draft.cupo_context
    if cupo is None or draft.services:
        return draft

    template = match_template(cupo, templates)
    if template is None:
        logger.warning("No matching service template for cupo %s", cupo.cupo_id)
        raise ValidationError(
            "No matching service template found for this cupo. "
            "Please ensure service templates are loaded or contact support.",
            fields=["template"],
        )

    try:
        cost = normalize(cupo.value, cupo.currency, cupo.exchange_rate)
    except InvalidExchangeRate:
        # the cupo carries no usable rate; the seller enters the cost manually
        logger.warning("Cupo %s has no exchange rate for %s", cupo.cupo_id, cupo.currency)
        cost = MonetaryAmount.zero()
    providers = (ProviderAssignment.from_provider(cupo.provider),) if cupo.provider else ()

    instance = ServiceTemplateInstance(
        id=f"cupo_{cupo.cupo_id}_{new_instance_id()[:8]}",
        template_id=template.id,
        template_name=template.name,
        template_category=template.category,
        service_info=cupo.service_destino or cupo.service_name or template.name,
        check_in=cupo.start_date,
        check_out=cupo.end_date,
        cost=cost,
        destination=cupo.destination,
        providers=providers,
        is_template_only=not (providers and cost.base_amount > 0),
    )
    logger.info("Pre-populated service %s from cupo %s", template.name, cupo.cupo_id)

    return replace(
        draft,
        services=(instance,),
        destination=cupo.destination,
        shared_dates=StayDates(check_in=cupo.start_date, check_out=cupo.end_date),
        sale_currency=cost.original_currency,
        sale_exchange_rate=cost.exchange_rate,
    )
