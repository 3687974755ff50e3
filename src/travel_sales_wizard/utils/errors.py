from __future__ import annotations


class WizardError(Exception):
    """Base class for every failure the sale wizard reports to its caller."""


class NotFoundError(WizardError):
    """Raised when an expected record (service instance, sale, client) does not exist."""


class ValidationError(WizardError):
    """
    Field-level or step-gate failure. Recoverable: the draft is left untouched.

    `fields` names the offending inputs so a UI can highlight them.
    """

    def __init__(self, message: str, *, fields: list[str] | tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.message = message
        self.fields = tuple(fields)


class InvalidExchangeRate(ValidationError):
    def __init__(self, currency: str, rate: object) -> None:
        super().__init__(
            f"A positive exchange rate is required to convert {currency} to USD (got {rate!r})",
            fields=("exchange_rate",),
        )
        self.currency = currency
        self.rate = rate


class InsufficientInventory(WizardError):
    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            f"Not enough seats available. Requested: {requested}, Available: {available}"
        )
        self.requested = requested
        self.available = available


class UploadFailure(WizardError):
    """A provider document failed to upload; the whole submission is aborted."""

    def __init__(self, *, provider_id: str, provider_name: str, filename: str, reason: str) -> None:
        super().__init__(
            f"Failed to upload documents for provider {provider_name}: {filename} ({reason})"
        )
        self.provider_id = provider_id
        self.provider_name = provider_name
        self.filename = filename


class BackendError(WizardError):
    """The REST backend answered with an error, or could not be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SubmissionError(BackendError):
    """Create/update of the sale was rejected. The draft is kept for a manual retry."""
