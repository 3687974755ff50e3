from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from travel_sales_wizard.domain.models import (
    PendingFile,
    Provider,
    ProviderAssignment,
    SaleDraft,
    ServiceTemplateInstance,
)
from travel_sales_wizard.utils.errors import NotFoundError
from travel_sales_wizard.utils.logging import get_logger

logger = get_logger("providers")

# Maximum assignments of one provider across the whole draft (all services together).
PROVIDER_SELECTION_CAP = 7


def global_assignment_count(draft: SaleDraft, provider_id: str) -> int:
    return sum(
        1 for service in draft.services for a in service.providers if a.provider_id == provider_id
    )


def default_provider(instance: ServiceTemplateInstance) -> ProviderAssignment | None:
    return instance.default_provider


def _as_assignment(provider: Provider | ProviderAssignment) -> ProviderAssignment:
    if isinstance(provider, ProviderAssignment):
        return provider
    return ProviderAssignment.from_provider(provider)


def _replace_service(
    draft: SaleDraft, service_id: str, updated: ServiceTemplateInstance
) -> SaleDraft:
    return replace(
        draft,
        services=tuple(updated if s.id == service_id else s for s in draft.services),
    )


def _require_service(draft: SaleDraft, service_id: str) -> ServiceTemplateInstance:
    instance = draft.find_service(service_id)
    if instance is None:
        raise NotFoundError(f"Service instance {service_id} not found")
    return instance


def assign(
    draft: SaleDraft,
    service_id: str,
    provider: Provider | ProviderAssignment,
) -> SaleDraft:
    """
    What it does:
    - Appends a provider assignment to one service instance.

    Why it matters:
    - A provider may be picked several times, but never more than
      PROVIDER_SELECTION_CAP times across the whole sale.

    Behavior:
    - The cap is checked against the count over ALL services at call time.
    - Cap reached -> the draft is returned unchanged (no error).
    - Unknown service id -> NotFoundError.
    """
    instance = _require_service(draft, service_id)
    assignment = _as_assignment(provider)

    count = global_assignment_count(draft, assignment.provider_id)
    if count >= PROVIDER_SELECTION_CAP:
        logger.info(
            "Provider %s reached the maximum of %d selections, skipping",
            assignment.name,
            PROVIDER_SELECTION_CAP,
        )
        return draft

    updated = replace(instance, providers=(*instance.providers, assignment))
    return _replace_service(draft, service_id, updated)


def unassign(draft: SaleDraft, service_id: str, provider_index: int) -> SaleDraft:
    """Removes the assignment at `provider_index` only; out-of-range indexes are ignored."""
    instance = _require_service(draft, service_id)
    if not 0 <= provider_index < len(instance.providers):
        return draft

    providers = instance.providers[:provider_index] + instance.providers[provider_index + 1 :]
    return _replace_service(draft, service_id, replace(instance, providers=providers))


def attach_files(
    draft: SaleDraft,
    service_id: str,
    provider_index: int,
    files: Iterable[PendingFile],
) -> SaleDraft:
    """Queues local files on one assignment; they are uploaded at submission time."""
    instance = _require_service(draft, service_id)
    if not 0 <= provider_index < len(instance.providers):
        raise NotFoundError(
            f"Service instance {service_id} has no provider at position {provider_index}"
        )

    files = tuple(files)
    if not files:
        return draft

    providers = list(instance.providers)
    target = providers[provider_index]
    providers[provider_index] = replace(target, pending_files=(*target.pending_files, *files))
    return _replace_service(draft, service_id, replace(instance, providers=tuple(providers)))
