import pytest

from hospitals.exceptions import NotFound, ValidationError
from hospitals.models import ResourceSnapshot
from hospitals.services.resources import (
    BLOOD_GROUPS,
    OXYGEN_NUMBER,
    OXYGEN_OBJECT,
    ResourceView,
    get_snapshot,
    overview,
    set_field,
)

pytestmark = pytest.mark.django_db


def test_oxygen_bare_number_is_read_and_written_back_as_number():
    view = ResourceView.from_document('H1', {'oxygenCylinders': 7})
    assert view.oxygen_available == 7
    assert view.oxygen_shape == OXYGEN_NUMBER
    view.oxygen_available = 4
    assert view.as_document()['oxygenCylinders'] == 4


def test_oxygen_object_keeps_shape_and_extra_keys():
    view = ResourceView.from_document('H1', {'oxygenCylinders': {'available': 3, 'supplier': 'Acme'}})
    assert view.oxygen_available == 3
    assert view.oxygen_shape == OXYGEN_OBJECT
    view.oxygen_available = 1
    assert view.as_document()['oxygenCylinders'] == {'available': 1, 'supplier': 'Acme'}


def test_missing_sections_read_as_zero():
    view = ResourceView.from_document('H1', {'beds': {'total': '5'}})
    assert view.beds == {'total': 5, 'occupied': 0}
    assert view.available('bed') == 5
    assert view.available('icuBeds') == 0
    assert view.blood_bank == {g: 0 for g in BLOOD_GROUPS}


def test_unknown_document_keys_survive_a_write():
    view = ResourceView.from_document('H1', {'beds': {'total': 2, 'occupied': 0}, 'lastAudit': '2024-01-01'})
    view.beds['occupied'] = 1
    doc = view.as_document()
    assert doc['lastAudit'] == '2024-01-01'
    assert doc['beds'] == {'total': 2, 'occupied': 1}


def test_availability_is_floored_at_zero_for_inconsistent_data():
    view = ResourceView.from_document('H1', {
        'beds': {'total': 3, 'occupied': 5},
        'ambulances': {'total': 5, 'active': 4, 'maintenance': 3},
    })
    assert view.available('bed') == 0
    assert view.available('ambulances') == 0
    assert view.clamped_ambulances() == {'total': 5, 'active': 4, 'maintenance': 1, 'available': 0}


def test_get_snapshot_creates_default_when_missing(make_hospital):
    make_hospital('H-NEW', snapshot=False)
    view = get_snapshot('H-NEW')
    assert view.beds == {'total': 0, 'occupied': 0}
    assert view.oxygen_shape == OXYGEN_OBJECT
    snap = ResourceSnapshot.objects.get(hospital_id='H-NEW')
    assert snap.data['oxygenCylinders'] == {'available': 0}
    assert set(snap.data['bloodBank']) == set(BLOOD_GROUPS)


def test_get_snapshot_for_unknown_hospital_raises():
    with pytest.raises(NotFound):
        get_snapshot('NOPE')


def test_set_field_clamps_negative_values(receiver):
    view = set_field(receiver.id, 'beds.total', -4)
    assert view.beds['total'] == 0
    assert ResourceSnapshot.objects.get(hospital=receiver).data['beds']['total'] == 0


def test_set_field_blood_group_and_oxygen_shape(make_hospital):
    h = make_hospital('H-OX', resources={'oxygenCylinders': 2})
    set_field(h.id, 'oxygenCylinders', 9)
    set_field(h.id, 'bloodBank.AB-', 12)
    data = ResourceSnapshot.objects.get(hospital=h).data
    assert data['oxygenCylinders'] == 9
    assert data['bloodBank']['AB-'] == 12


@pytest.mark.parametrize('path', ['beds', 'beds.free', 'bloodBank.C+', 'helicopters.total'])
def test_set_field_rejects_unknown_paths(receiver, path):
    with pytest.raises(ValidationError) as ei:
        set_field(receiver.id, path, 1)
    assert ei.value.code == 'unknown_field'


def test_overview_reports_critical_blood_groups(receiver):
    data = overview(get_snapshot(receiver.id))
    assert data['beds']['available'] == 2
    assert data['bloodBank']['totalUnits'] == 59
    # O+ (25) and A+ (30) are the only groups at or above the threshold
    assert set(data['bloodBank']['criticalGroups']) == set(BLOOD_GROUPS) - {'O+', 'A+'}
    assert data['ambulances']['available'] == 3
