import pytest

from travel_sales_wizard.domain.models import Passenger, SaleDraft
from travel_sales_wizard.services.selection import (
    remove_companion,
    repair_selection,
    select,
    visible_candidates,
)

pytestmark = pytest.mark.unit


def test_first_pick_is_primary_then_companions(ana, bruno):
    draft = select(SaleDraft(), ana)
    draft = select(draft, bruno)

    assert draft.primary_passenger == ana
    assert draft.client_id == ana.id
    assert draft.companions == (bruno,)
    assert draft.seats_requested == 2


def test_picking_selected_entity_again_deselects(ana, bruno):
    draft = select(select(SaleDraft(), ana), bruno)

    draft = select(draft, bruno)
    assert draft.companions == ()

    draft = select(draft, ana)
    assert draft.primary_passenger is None
    assert draft.client_id is None


def test_edit_mode_keeps_client_id_when_primary_changes(ana, bruno):
    draft = SaleDraft(primary_passenger=ana, client_id=ana.id, sale_id="s-1")

    draft = select(draft, ana)
    draft = select(draft, bruno)

    assert draft.primary_passenger == bruno
    assert draft.client_id == ana.id


def test_select_prefers_complete_record_from_known_list(ana):
    partial = Passenger(id=ana.id, name="Ana", surname="Perez", dni="")

    draft = select(SaleDraft(), partial, known=[ana])

    assert draft.primary_passenger.dni == "30111222"


def test_no_duplicate_when_selected_twice_via_other_list(ana, bruno):
    draft = select(select(SaleDraft(), ana), bruno)
    draft = select(draft, bruno)
    draft = select(draft, bruno)

    assert [p.id for p in draft.passengers] == [ana.id, bruno.id]


def test_remove_companion_returns_it_to_pool_once(ana, bruno):
    draft = select(select(SaleDraft(), ana), bruno)

    draft, pool = remove_companion(draft, bruno.id, [])
    assert draft.companions == ()
    assert pool == (bruno,)

    _, pool_again = remove_companion(select(draft, bruno), bruno.id, pool)
    assert pool_again == (bruno,)


def test_visible_candidates_hide_selected_and_duplicates(ana, bruno):
    carla = Passenger(id="c3", name="Carla")
    draft = select(SaleDraft(), ana)

    visible = visible_candidates([ana, bruno, carla, bruno], draft)

    assert [p.id for p in visible] == [bruno.id, carla.id]


def test_repair_replaces_partial_records_in_place():
    primary = Passenger(id="c1", name="Ana", surname="Perez", dni="")
    companion = Passenger(id="c2", name="Bruno", surname="Diaz", dni="28999000")
    draft = SaleDraft(primary_passenger=primary, companions=(companion,))

    fetched = [
        Passenger(id="c9", name="Other", dni="1"),
        Passenger(id="c1", name="Ana", surname="Perez", dni="30111222"),
    ]
    repaired = repair_selection(draft, fetched)

    assert repaired.primary_passenger.dni == "30111222"
    assert [p.id for p in repaired.passengers] == ["c1", "c2"]
    assert repaired.companions[0] is companion


def test_repair_is_noop_when_nothing_to_fix(ana):
    draft = SaleDraft(primary_passenger=ana)
    richer = Passenger(id=ana.id, name="Ana", surname="Perez", dni="99")

    assert repair_selection(draft, [richer]) is draft
    assert repair_selection(draft, []) is draft
