from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace

from travel_sales_wizard.domain.enums import BASE_CURRENCY, WizardStep
from travel_sales_wizard.domain.models import SaleDraft, ServiceTemplateInstance
from travel_sales_wizard.utils.errors import ValidationError
from travel_sales_wizard.utils.logging import get_logger

logger = get_logger("wizard")

FIRST_STEP = WizardStep.PASSENGERS
LAST_STEP = WizardStep.REVIEW


@dataclass(frozen=True)
class WizardState:
    step: WizardStep = FIRST_STEP
    draft: SaleDraft = field(default_factory=SaleDraft)
    # user-facing message of the last rejected transition
    message: str | None = None

    @property
    def can_submit(self) -> bool:
        return self.step == LAST_STEP


def instance_under_edit(draft: SaleDraft) -> ServiceTemplateInstance | None:
    """The instance open for edit, else the first unconfigured one, else the last one."""
    if draft.editing_instance_id:
        instance = draft.find_service(draft.editing_instance_id)
        if instance is not None:
            return instance
    for instance in draft.services:
        if instance.is_template_only:
            return instance
    return draft.services[-1] if draft.services else None


def _check_passengers(draft: SaleDraft) -> None:
    if draft.primary_passenger is None:
        raise ValidationError(
            "Please select at least one passenger to continue", fields=["primary_passenger"]
        )


def _check_price(draft: SaleDraft) -> None:
    price = draft.price_schedule
    if price.original_amount <= 0:
        raise ValidationError(
            "Please enter a valid price per passenger to continue", fields=["price"]
        )
    if price.original_currency != BASE_CURRENCY and not (
        price.exchange_rate is not None and price.exchange_rate > 0
    ):
        raise ValidationError(
            "Please enter a valid exchange rate for ARS to USD conversion",
            fields=["exchange_rate"],
        )


def _check_templates(draft: SaleDraft) -> None:
    if not draft.services:
        raise ValidationError(
            "Please select a service template to continue", fields=["services"]
        )


def _check_dates(draft: SaleDraft) -> None:
    instance = instance_under_edit(draft)
    missing = []
    if instance is None or instance.check_in is None:
        missing.append("check_in")
    if instance is None or instance.check_out is None:
        missing.append("check_out")
    if instance is None or not instance.destination.city.strip():
        missing.append("destination.city")
    if missing:
        raise ValidationError(
            "Please enter check-in and check-out dates and city to continue", fields=missing
        )


def _check_cost_and_providers(draft: SaleDraft) -> None:
    invalid = [s.id for s in draft.services if not s.is_submittable]
    if invalid:
        raise ValidationError(
            "Please enter a valid service cost and select providers for all services to continue",
            fields=[f"services.{i}" for i in invalid],
        )


_GUARDS: dict[WizardStep, Callable[[SaleDraft], None]] = {
    WizardStep.PASSENGERS: _check_passengers,
    WizardStep.PRICE: _check_price,
    WizardStep.TEMPLATE: _check_templates,
    WizardStep.DATES: _check_dates,
    WizardStep.COST_PROVIDER: _check_cost_and_providers,
}


def check_step(step: WizardStep, draft: SaleDraft) -> None:
    """Raises ValidationError when `draft` may not leave `step` forwards."""
    guard = _GUARDS.get(step)
    if guard is not None:
        guard(draft)


def advance(state: WizardState) -> WizardState:
    """
    What it does:
    - Moves one step forward if the current step's gate passes.

    Why it matters:
    - Gates are local checks on the draft: instantaneous, no network.

    Behavior:
    - Gate fails -> same step, `message` carries the reason.
    - Gate passes -> step + 1 (never beyond REVIEW), message cleared.
    """
    if state.step >= LAST_STEP:
        return state

    try:
        check_step(state.step, state.draft)
    except ValidationError as e:
        logger.info("Step %d (%s) rejected: %s", state.step, state.step.title, e.message)
        return replace(state, message=e.message)

    return replace(state, step=WizardStep(state.step + 1), message=None)


def retreat(state: WizardState) -> WizardState:
    if state.step <= FIRST_STEP:
        return state
    return replace(state, step=WizardStep(state.step - 1), message=None)


def rewind_to(state: WizardState, step: WizardStep) -> WizardState:
    """Jumps back to an earlier (or the current) step; forward jumps must go through advance()."""
    if step > state.step:
        raise ValidationError(
            f"Cannot jump forward from step {int(state.step)} to step {int(step)}", fields=["step"]
        )
    return replace(state, step=step, message=None)


def with_draft(state: WizardState, draft: SaleDraft) -> WizardState:
    return replace(state, draft=draft)


def entered(previous: WizardState, current: WizardState, step: WizardStep) -> bool:
    return previous.step != step and current.step == step
