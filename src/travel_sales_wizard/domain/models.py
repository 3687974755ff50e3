from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from travel_sales_wizard.domain.enums import BASE_CURRENCY, Currency

_ZERO = Decimal("0")


@dataclass(frozen=True)
class Passenger:
    """
    A client record as the wizard sees it.

    Records coming from list endpoints are projections and may lack `dni`;
    they are repaired against richer fetches before submission.
    """

    id: str
    name: str = ""
    surname: str = ""
    dni: str = ""
    email: str | None = None
    phone: str | None = None
    passport_number: str | None = None
    dob: str | None = None

    def missing_fields(self) -> list[str]:
        return [f for f in ("name", "surname", "dni") if not (getattr(self, f) or "").strip()]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    @property
    def has_dni(self) -> bool:
        return bool((self.dni or "").strip())

    @property
    def display_name(self) -> str:
        full = f"{self.name} {self.surname}".strip()
        return full or self.id


@dataclass(frozen=True)
class Destination:
    city: str = ""
    country: str = ""

    @property
    def label(self) -> str:
        if self.city and self.country:
            return f"{self.city}, {self.country}"
        return self.city or self.country


@dataclass(frozen=True)
class StayDates:
    check_in: date | None = None
    check_out: date | None = None


@dataclass(frozen=True)
class MonetaryAmount:
    """
    An amount as entered plus its USD normalization.

    `base_amount` is always USD. The original amount, currency and rate are
    kept for display and audit.
    """

    original_amount: Decimal
    original_currency: Currency
    exchange_rate: Decimal | None
    base_amount: Decimal

    @classmethod
    def zero(cls) -> MonetaryAmount:
        return cls(
            original_amount=_ZERO,
            original_currency=BASE_CURRENCY,
            exchange_rate=None,
            base_amount=_ZERO,
        )

    @property
    def base_currency(self) -> Currency:
        return BASE_CURRENCY


@dataclass(frozen=True)
class Provider:
    id: str
    name: str
    phone: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class Document:
    """A stored reference returned by the upload endpoint."""

    filename: str
    url: str
    type: str = "receipt"
    original_name: str | None = None


@dataclass(frozen=True)
class PendingFile:
    """A local file attached in the wizard, uploaded only at submission time."""

    name: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class ProviderAssignment:
    provider_id: str
    name: str
    phone: str | None = None
    email: str | None = None
    documents: tuple[Document, ...] = ()
    pending_files: tuple[PendingFile, ...] = ()

    @classmethod
    def from_provider(cls, provider: Provider) -> ProviderAssignment:
        return cls(
            provider_id=provider.id,
            name=provider.name,
            phone=provider.phone,
            email=provider.email,
        )


@dataclass(frozen=True)
class ServiceTemplate:
    id: str
    name: str
    category: str | None = None


@dataclass(frozen=True)
class ServiceTemplateInstance:
    id: str
    template_id: str
    template_name: str = ""
    template_category: str | None = None
    service_info: str = ""
    check_in: date | None = None
    check_out: date | None = None
    cost: MonetaryAmount = field(default_factory=MonetaryAmount.zero)
    destination: Destination = field(default_factory=Destination)
    providers: tuple[ProviderAssignment, ...] = ()
    # True until the instance has been configured with its own cost/providers
    is_template_only: bool = True

    @property
    def default_provider(self) -> ProviderAssignment | None:
        # Legacy single-provider view: always derived, never stored.
        return self.providers[0] if self.providers else None

    @property
    def is_submittable(self) -> bool:
        return self.cost.base_amount > 0 and len(self.providers) >= 1


@dataclass(frozen=True)
class CupoContext:
    """Inventory block snapshot taken when the wizard was entered."""

    cupo_id: str
    available_seats: int
    service_name: str | None = None
    service_destino: str | None = None
    service_type: str | None = None
    provider: Provider | None = None
    start_date: date | None = None
    end_date: date | None = None
    value: Decimal = _ZERO
    currency: Currency = BASE_CURRENCY
    exchange_rate: Decimal | None = None
    destination: Destination = field(default_factory=Destination)


@dataclass(frozen=True)
class SaleDraft:
    """Root aggregate: one live instance per wizard session, memory only."""

    primary_passenger: Passenger | None = None
    companions: tuple[Passenger, ...] = ()
    destination: Destination = field(default_factory=Destination)
    shared_dates: StayDates = field(default_factory=StayDates)
    price_schedule: MonetaryAmount = field(default_factory=MonetaryAmount.zero)
    sale_currency: Currency = BASE_CURRENCY
    sale_exchange_rate: Decimal | None = None
    services: tuple[ServiceTemplateInstance, ...] = ()
    cupo_context: CupoContext | None = None
    editing_instance_id: str | None = None
    sale_id: str | None = None
    client_id: str | None = None
    notes: str = ""

    @property
    def passengers(self) -> tuple[Passenger, ...]:
        if self.primary_passenger is None:
            return self.companions
        return (self.primary_passenger, *self.companions)

    @property
    def seats_requested(self) -> int:
        return 1 + len(self.companions)

    @property
    def is_edit_mode(self) -> bool:
        return self.sale_id is not None

    @property
    def is_cupo_reservation(self) -> bool:
        return self.cupo_context is not None

    def find_service(self, instance_id: str) -> ServiceTemplateInstance | None:
        for instance in self.services:
            if instance.id == instance_id:
                return instance
        return None
