from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import replace
from decimal import Decimal

from travel_sales_wizard.domain.enums import BASE_CURRENCY, Currency, PassengerRole, WizardStep
from travel_sales_wizard.domain.models import (
    CupoContext,
    Destination,
    Passenger,
    PendingFile,
    Provider,
    SaleDraft,
    ServiceTemplate,
    StayDates,
)
from travel_sales_wizard.rest.wire import draft_from_sale
from travel_sales_wizard.services import providers as provider_ops
from travel_sales_wizard.services import selection
from travel_sales_wizard.services import service_instances as instance_ops
from travel_sales_wizard.services import wizard
from travel_sales_wizard.services.cupo_reservation import prepopulate_from_cupo
from travel_sales_wizard.services.currency import normalize
from travel_sales_wizard.services.reference_data import ALL_FOR_SELECTION, ReferenceData
from travel_sales_wizard.services.sale_payload import SalePayloadAssembler, SubmissionOutcome
from travel_sales_wizard.services.sales_api import SalesApi
from travel_sales_wizard.services.service_instances import ServiceForm
from travel_sales_wizard.utils.errors import ValidationError
from travel_sales_wizard.utils.logging import get_logger

logger = get_logger("wizard_session")


class SaleWizardSession:
    """
    What it does:
    - Owns the one live SaleDraft of a wizard session and routes every user
      action through the pure step/selection/service/provider functions.

    Why it matters:
    - A UI (or the CLI) only talks to this object; each action replaces the
      whole state at once, so there are no partial, order-dependent updates.

    Behavior:
    - Synchronous actions mutate only the in-memory draft.
    - Async actions fetch reference data or submit; failures leave the draft intact.
    - Entering "Select Service Template" always refreshes the template catalog.
    - A successful submit discards the draft and returns the sale id.
    """

    def __init__(
        self,
        *,
        api: SalesApi,
        reference: ReferenceData | None = None,
        assembler: SalePayloadAssembler | None = None,
    ) -> None:
        self.api = api
        self.reference = reference or ReferenceData(api)
        self.assembler = assembler or SalePayloadAssembler(api=api)
        self._state = wizard.WizardState()
        self._refresh_stop: asyncio.Event | None = None
        self._refresh_task: asyncio.Task[None] | None = None

    # -------------------- State access --------------------

    @property
    def state(self) -> wizard.WizardState:
        return self._state

    @property
    def draft(self) -> SaleDraft:
        return self._state.draft

    @property
    def step(self) -> WizardStep:
        return self._state.step

    @property
    def message(self) -> str | None:
        return self._state.message

    def _set_draft(self, draft: SaleDraft) -> None:
        self._state = wizard.with_draft(self._state, draft)

    # -------------------- Entry --------------------

    async def mount(
        self,
        *,
        sale_id: str | None = None,
        client_id: str | None = None,
        cupo_id: str | None = None,
        cupo: CupoContext | None = None,
        preselected: Passenger | None = None,
    ) -> None:
        """
        Builds the initial draft from the entry parameters, then loads the
        reference lists.

        Edit mode hydrates from the stored sale. A navigation-carried cupo wins
        over `cupo_id`; `client_id` is only used without a cupo. A pre-selected
        passenger applies when there is no `client_id` and no sale to edit.
        """
        draft = SaleDraft()
        if sale_id:
            draft = draft_from_sale(await self.api.get_sale(sale_id))
        elif cupo is not None:
            draft = replace(draft, cupo_context=cupo)
        elif cupo_id:
            draft = replace(draft, cupo_context=await self.api.get_cupo(cupo_id))
        elif client_id:
            client = await self.api.get_client(client_id)
            draft = replace(draft, primary_passenger=client, client_id=client.id)

        if preselected is not None and not sale_id and not client_id:
            if draft.primary_passenger is None:
                draft = replace(draft, primary_passenger=preselected, client_id=preselected.id)

        self._state = wizard.WizardState(draft=draft)
        await self.reference.load_initial()
        self._set_draft(selection.repair_selection(self.draft, self.reference.passengers))

        if self.draft.cupo_context is not None and self.reference.service_templates:
            self.prepopulate_cupo()

    def prepopulate_cupo(self) -> None:
        try:
            draft = prepopulate_from_cupo(self.draft, self.reference.service_templates)
        except ValidationError as e:
            logger.warning("Cupo prepopulation skipped: %s", e.message)
            self._state = replace(self._state, message=e.message)
            return
        self._set_draft(draft)

    # -------------------- Step 1: passengers --------------------

    def select_passenger(self, entity: Passenger) -> None:
        was_companion = any(c.id == entity.id for c in self.draft.companions)
        known = [*self.reference.passengers, *self.reference.companion_pool]
        self._set_draft(selection.select(self.draft, entity, known=known))

        if was_companion:
            pool = self.reference.state(ALL_FOR_SELECTION).items
            pool = selection.return_to_pool(pool, entity)
            self.reference.set_items(ALL_FOR_SELECTION, list(pool))

    def remove_companion(self, companion_id: str) -> None:
        pool = self.reference.state(ALL_FOR_SELECTION).items
        draft, pool = selection.remove_companion(self.draft, companion_id, pool)
        self.reference.set_items(ALL_FOR_SELECTION, list(pool))
        self._set_draft(draft)

    def candidates(self, role: PassengerRole) -> list[Passenger]:
        if role == PassengerRole.MAIN:
            pool = self.reference.passengers
        else:
            pool = self.reference.companion_pool
        return selection.visible_candidates(pool, self.draft)

    async def search(self, query: str, role: PassengerRole) -> list[Passenger]:
        primary = self.draft.primary_passenger
        fetched = await self.reference.search(
            query, role, primary_id=primary.id if primary else None
        )
        self._set_draft(selection.repair_selection(self.draft, fetched))
        return self.candidates(role)

    # -------------------- Step 2: price --------------------

    def set_price(
        self,
        amount: Decimal | str | int | float,
        currency: Currency | str = BASE_CURRENCY,
        rate: Decimal | str | int | float | None = None,
    ) -> None:
        """Raises ValidationError/InvalidExchangeRate and keeps the previous price on bad input."""
        self._set_draft(replace(self.draft, price_schedule=normalize(amount, currency, rate)))

    def set_notes(self, notes: str) -> None:
        self._set_draft(replace(self.draft, notes=notes))

    # -------------------- Navigation --------------------

    async def advance(self) -> bool:
        previous = self._state
        self._state = wizard.advance(previous)
        if wizard.entered(previous, self._state, WizardStep.TEMPLATE):
            await self.reference.refresh_service_templates()
        return self._state.step != previous.step

    def retreat(self) -> bool:
        previous = self._state
        self._state = wizard.retreat(previous)
        return self._state.step != previous.step

    # -------------------- Steps 3-6: services --------------------

    def select_template(self, template: ServiceTemplate) -> str:
        self._set_draft(instance_ops.select_template(self.draft, template))
        return self.draft.services[-1].id

    def update_shared_fields(self, dates: StayDates, destination: Destination) -> None:
        self._set_draft(instance_ops.synchronize_shared_fields(self.draft, dates, destination))

    def open_service(self, instance_id: str) -> ServiceForm:
        draft, form = instance_ops.open_instance(self.draft, instance_id)
        self._set_draft(draft)
        if self.step > WizardStep.DATES:
            self._state = wizard.rewind_to(self._state, WizardStep.DATES)
        return form

    def close_service(self) -> None:
        self._set_draft(instance_ops.close_instance(self.draft))

    def commit_service(self, form: ServiceForm) -> None:
        """Stores the form, then moves on to "Edit Services" when committed from step 5."""
        self._set_draft(instance_ops.commit_instance(self.draft, form))
        if self.step == WizardStep.COST_PROVIDER:
            self._state = wizard.advance(self._state)

    def remove_service(self, instance_id: str) -> None:
        self._set_draft(instance_ops.remove_instance(self.draft, instance_id))

    def assign_provider(self, service_id: str, provider: Provider) -> bool:
        before = self.draft
        self._set_draft(provider_ops.assign(before, service_id, provider))
        return self.draft is not before

    def unassign_provider(self, service_id: str, provider_index: int) -> None:
        self._set_draft(provider_ops.unassign(self.draft, service_id, provider_index))

    def attach_documents(
        self, service_id: str, provider_index: int, files: Iterable[PendingFile]
    ) -> None:
        self._set_draft(provider_ops.attach_files(self.draft, service_id, provider_index, files))

    # -------------------- Step 7: submit --------------------

    async def submit(self) -> SubmissionOutcome:
        if not self._state.can_submit:
            raise ValidationError(
                "The sale can only be created from the review step", fields=["step"]
            )

        # uploaded references stay on the draft when a later step fails
        outcome = await self.assembler.submit(self.draft, on_progress=self._set_draft)
        logger.info("Sale %s %s", outcome.sale_id, "created" if outcome.created else "updated")
        self.discard()
        return outcome

    def discard(self) -> None:
        self._state = wizard.WizardState()

    # -------------------- Background refresh --------------------

    def start_auto_refresh(self) -> asyncio.Task[None]:
        if self._refresh_task is not None and not self._refresh_task.done():
            return self._refresh_task
        self._refresh_stop = asyncio.Event()
        self._refresh_task = asyncio.create_task(
            self.reference.run_periodic_refresh(lambda: self.draft, self._refresh_stop)
        )
        return self._refresh_task

    async def stop_auto_refresh(self) -> None:
        if self._refresh_task is None or self._refresh_stop is None:
            return
        self._refresh_stop.set()
        await self._refresh_task
        self._refresh_task = None
        self._refresh_stop = None
