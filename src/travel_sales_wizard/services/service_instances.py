from __future__ import annotations

import uuid
from collections import Counter
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal

from travel_sales_wizard.domain.enums import BASE_CURRENCY, Currency
from travel_sales_wizard.domain.models import (
    Destination,
    MonetaryAmount,
    ProviderAssignment,
    SaleDraft,
    ServiceTemplate,
    ServiceTemplateInstance,
    StayDates,
)
from travel_sales_wizard.services.currency import normalize
from travel_sales_wizard.services.providers import PROVIDER_SELECTION_CAP
from travel_sales_wizard.utils.errors import NotFoundError, ValidationError
from travel_sales_wizard.utils.logging import get_logger

logger = get_logger("service_instances")


@dataclass(frozen=True)
class ServiceForm:
    """
    The values of the "Service Cost & Provider" form.

    `cost`/`exchange_rate` are kept as entered (text or number) and only
    normalized on commit.
    """

    template: ServiceTemplate | None = None
    service_info: str = ""
    check_in: date | None = None
    check_out: date | None = None
    cost: Decimal | str | int | float | None = None
    currency: Currency | str = BASE_CURRENCY
    exchange_rate: Decimal | str | int | float | None = None
    providers: tuple[ProviderAssignment, ...] = ()
    destination: Destination | None = None


def new_instance_id() -> str:
    return uuid.uuid4().hex


def select_template(
    draft: SaleDraft,
    template: ServiceTemplate,
    *,
    instance_id: str | None = None,
) -> SaleDraft:
    """
    Appends a template-only instance (cost 0, no providers) seeded from the
    shared dates and destination. Does not move the wizard.
    """
    instance = ServiceTemplateInstance(
        id=instance_id or new_instance_id(),
        template_id=template.id,
        template_name=template.name,
        template_category=template.category,
        service_info=template.name,
        check_in=draft.shared_dates.check_in,
        check_out=draft.shared_dates.check_out,
        cost=MonetaryAmount.zero(),
        destination=draft.destination,
        providers=(),
        is_template_only=True,
    )
    return replace(draft, services=(*draft.services, instance))


def remove_instance(draft: SaleDraft, instance_id: str) -> SaleDraft:
    editing = None if draft.editing_instance_id == instance_id else draft.editing_instance_id
    return replace(
        draft,
        services=tuple(s for s in draft.services if s.id != instance_id),
        editing_instance_id=editing,
    )


def form_from_instance(instance: ServiceTemplateInstance) -> ServiceForm:
    """Pre-fills the form with the values as originally entered, not the USD ones."""
    return ServiceForm(
        template=ServiceTemplate(
            id=instance.template_id,
            name=instance.template_name,
            category=instance.template_category,
        ),
        service_info=instance.service_info,
        check_in=instance.check_in,
        check_out=instance.check_out,
        cost=instance.cost.original_amount,
        currency=instance.cost.original_currency,
        exchange_rate=instance.cost.exchange_rate,
        providers=instance.providers,
        destination=instance.destination,
    )


def open_instance(draft: SaleDraft, instance_id: str) -> tuple[SaleDraft, ServiceForm]:
    """Marks an instance as under edit and seeds the shared controls from it."""
    instance = draft.find_service(instance_id)
    if instance is None:
        raise NotFoundError(f"Service instance {instance_id} not found")

    draft = replace(
        draft,
        editing_instance_id=instance_id,
        shared_dates=StayDates(check_in=instance.check_in, check_out=instance.check_out),
        destination=instance.destination,
    )
    return draft, form_from_instance(instance)


def close_instance(draft: SaleDraft) -> SaleDraft:
    return replace(draft, editing_instance_id=None)


def _validate_form(form: ServiceForm, *, template: ServiceTemplate | None) -> None:
    missing = []
    if template is None:
        missing.append("template")
    if not (form.service_info or "").strip():
        missing.append("service_info")
    if form.check_in is None:
        missing.append("check_in")
    if form.check_out is None:
        missing.append("check_out")
    if form.cost is None or (isinstance(form.cost, str) and not form.cost.strip()):
        missing.append("cost")
    if not form.providers:
        missing.append("providers")

    if missing:
        raise ValidationError(
            "Please complete all required fields for this service, "
            "including selecting at least one provider",
            fields=missing,
        )

    if form.check_out < form.check_in:
        raise ValidationError("Check-out cannot be before check-in", fields=["check_out"])


def _within_cap(
    draft: SaleDraft,
    providers: tuple[ProviderAssignment, ...],
    *,
    replacing: ServiceTemplateInstance | None,
) -> tuple[ProviderAssignment, ...]:
    counts = Counter(a.provider_id for s in draft.services for a in s.providers)
    if replacing is not None:
        counts.subtract(a.provider_id for a in replacing.providers)

    kept = []
    for assignment in providers:
        if counts[assignment.provider_id] >= PROVIDER_SELECTION_CAP:
            logger.info(
                "Provider %s reached the maximum of %d selections, skipping",
                assignment.name,
                PROVIDER_SELECTION_CAP,
            )
            continue
        counts[assignment.provider_id] += 1
        kept.append(assignment)
    return tuple(kept)


def commit_instance(draft: SaleDraft, form: ServiceForm) -> SaleDraft:
    """
    What it does:
    - Validates the service form, normalizes its cost to USD and stores it.

    Why it matters:
    - This is the only place where cost/provider terms enter the draft, and the
      only place they fan out to sibling services.

    Behavior:
    - Instance open for edit -> replaced in place, keeping its id; no fan-out.
    - Otherwise -> appended as a new configured instance, then every
      template-only sibling receives the same cost, dates, destination and
      providers and becomes configured. Configured siblings are never touched.
      Copies never push a provider past PROVIDER_SELECTION_CAP.
    - Sale-wide currency/rate mirror the committed cost's currency/rate.
    - Raises ValidationError / InvalidExchangeRate without changing the draft.
    """
    editing = draft.find_service(draft.editing_instance_id) if draft.editing_instance_id else None
    template = form.template
    if template is None and editing is not None:
        template = ServiceTemplate(
            id=editing.template_id,
            name=editing.template_name,
            category=editing.template_category,
        )

    _validate_form(form, template=template)
    cost = normalize(form.cost, form.currency, form.exchange_rate)

    configured = ServiceTemplateInstance(
        id=editing.id if editing is not None else new_instance_id(),
        template_id=template.id,
        template_name=template.name,
        template_category=template.category,
        service_info=form.service_info.strip(),
        check_in=form.check_in,
        check_out=form.check_out,
        cost=cost,
        destination=form.destination if form.destination is not None else draft.destination,
        providers=_within_cap(draft, form.providers, replacing=editing),
        is_template_only=False,
    )

    if not configured.providers:
        raise ValidationError(
            f"Every selected provider already has {PROVIDER_SELECTION_CAP} selections in this sale",
            fields=["providers"],
        )

    if cost.original_currency == BASE_CURRENCY:
        draft = replace(draft, sale_currency=BASE_CURRENCY, sale_exchange_rate=None)
    else:
        draft = replace(
            draft,
            sale_currency=cost.original_currency,
            sale_exchange_rate=cost.exchange_rate,
        )

    if editing is not None:
        logger.info("Updated service %s (%s)", configured.id, configured.service_info)
        return replace(
            draft,
            services=tuple(configured if s.id == editing.id else s for s in draft.services),
        )

    counts = Counter(a.provider_id for s in draft.services for a in s.providers)
    counts.update(a.provider_id for a in configured.providers)

    services = []
    fanned_out = 0
    for sibling in draft.services:
        if sibling.is_template_only:
            counts.subtract(a.provider_id for a in sibling.providers)
            providers = []
            for assignment in configured.providers:
                if counts[assignment.provider_id] >= PROVIDER_SELECTION_CAP:
                    continue
                counts[assignment.provider_id] += 1
                # Local files stay with the service that attached them.
                providers.append(replace(assignment, pending_files=()))
            sibling = replace(
                sibling,
                cost=configured.cost,
                check_in=configured.check_in,
                check_out=configured.check_out,
                destination=configured.destination,
                providers=tuple(providers),
                is_template_only=False,
            )
            fanned_out += 1
        services.append(sibling)
    services.append(configured)

    logger.info(
        "Added service %s (%s); applied its terms to %d unconfigured service(s)",
        configured.id,
        configured.service_info,
        fanned_out,
    )
    return replace(draft, services=tuple(services), editing_instance_id=None)


def synchronize_shared_fields(
    draft: SaleDraft,
    dates: StayDates,
    destination: Destination,
) -> SaleDraft:
    """
    What it does:
    - Applies the shared dates/destination controls to the draft and to every
      service instance.

    Why it matters:
    - A batch of same-trip services follows the shared controls.

    Behavior:
    - Only dates and destination are written; providers and cost are never
      read or written here.
    - Empty shared values keep the instance's own value.
    - A check-out earlier than the check-in is cleared.
    """
    if dates.check_in and dates.check_out and dates.check_out < dates.check_in:
        dates = StayDates(check_in=dates.check_in, check_out=None)

    services = []
    for instance in draft.services:
        new_destination = Destination(
            city=destination.city or instance.destination.city,
            country=destination.country or instance.destination.country,
        )
        new_check_in = dates.check_in or instance.check_in
        new_check_out = dates.check_out or instance.check_out
        if (
            new_check_in == instance.check_in
            and new_check_out == instance.check_out
            and new_destination == instance.destination
        ):
            services.append(instance)
            continue
        services.append(
            replace(
                instance,
                check_in=new_check_in,
                check_out=new_check_out,
                destination=new_destination,
            )
        )

    return replace(
        draft,
        shared_dates=dates,
        destination=destination,
        services=tuple(services),
    )
