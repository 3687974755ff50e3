from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from travel_sales_wizard.domain.models import Passenger, SaleDraft
from travel_sales_wizard.utils.logging import get_logger

logger = get_logger("selection")


def is_selected(draft: SaleDraft, entity_id: str) -> bool:
    return any(p.id == entity_id for p in draft.passengers)


def _complete_version(entity: Passenger, known: Iterable[Passenger]) -> Passenger:
    if entity.has_dni:
        return entity
    for candidate in known:
        if candidate.id == entity.id and candidate.has_dni:
            logger.info("Using complete record for %s (dni was missing)", entity.id)
            return candidate
    return entity


def select(
    draft: SaleDraft,
    entity: Passenger,
    *,
    known: Iterable[Passenger] = (),
) -> SaleDraft:
    """
    What it does:
    - Toggles a passenger/companion selection.

    Why it matters:
    - One click handler covers both lists without ever duplicating an entry.

    Behavior:
    - Entity is the primary -> primary is cleared.
    - Entity is a companion -> that companion is removed.
    - Otherwise: becomes primary when none is set, else appended as companion.
    - When the entity lacks a dni, a complete record with the same id from
      `known` (e.g. the latest fetched pool) is stored instead.
    """
    primary = draft.primary_passenger
    if primary is not None and primary.id == entity.id:
        client_id = draft.client_id if draft.is_edit_mode else None
        return replace(draft, primary_passenger=None, client_id=client_id)

    if any(c.id == entity.id for c in draft.companions):
        return replace(draft, companions=tuple(c for c in draft.companions if c.id != entity.id))

    chosen = _complete_version(entity, known)
    if primary is None:
        client_id = draft.client_id if draft.is_edit_mode else chosen.id
        return replace(draft, primary_passenger=chosen, client_id=client_id)
    return replace(draft, companions=(*draft.companions, chosen))


def remove_companion(
    draft: SaleDraft,
    companion_id: str,
    pool: Iterable[Passenger],
) -> tuple[SaleDraft, tuple[Passenger, ...]]:
    """
    Removes a selected companion and returns it to the candidate pool.

    Returns (new draft, new pool). The companion is appended to the pool only
    if no entry with the same id is already there.
    """
    pool = tuple(pool)
    removed = next((c for c in draft.companions if c.id == companion_id), None)
    if removed is None:
        return draft, pool

    draft = replace(draft, companions=tuple(c for c in draft.companions if c.id != companion_id))
    return draft, return_to_pool(pool, removed)


def return_to_pool(pool: Iterable[Passenger], passenger: Passenger) -> tuple[Passenger, ...]:
    pool = tuple(pool)
    if any(p.id == passenger.id for p in pool):
        return pool
    return (*pool, passenger)


def visible_candidates(pool: Iterable[Passenger], draft: SaleDraft) -> list[Passenger]:
    """Candidates that can still be picked: selected ids are hidden, duplicates collapsed."""
    seen: set[str] = set()
    out: list[Passenger] = []
    for p in pool:
        if p.id in seen or is_selected(draft, p.id):
            continue
        seen.add(p.id)
        out.append(p)
    return out


def repair_selection(draft: SaleDraft, fetched: Iterable[Passenger]) -> SaleDraft:
    """
    What it does:
    - Replaces selected records that lack a dni with a richer fetched record
      carrying the same id.

    Why it matters:
    - List endpoints return partial projections; submission needs name,
      surname and dni.

    Behavior:
    - Replacement happens in place: selection order and other entries are
      untouched.
    - Records that already have a dni are never overwritten.
    - Returns the same draft object when nothing changed.
    """
    richer = {p.id: p for p in fetched if p.has_dni}
    if not richer:
        return draft

    changed = False

    def _repair(p: Passenger) -> Passenger:
        nonlocal changed
        if p.has_dni or p.id not in richer:
            return p
        changed = True
        logger.info("Repaired incomplete passenger record %s", p.id)
        return richer[p.id]

    primary = draft.primary_passenger
    new_primary = _repair(primary) if primary is not None else None
    new_companions = tuple(_repair(c) for c in draft.companions)

    if not changed:
        return draft
    return replace(draft, primary_passenger=new_primary, companions=new_companions)
