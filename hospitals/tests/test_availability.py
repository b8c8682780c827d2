import pytest

from hospitals.services.availability import check_sufficiency, is_empty_request, normalize_request
from hospitals.services.resources import ResourceView

DOC = {
    'beds': {'total': 10, 'occupied': 8},
    'icuBeds': {'total': 2, 'occupied': 2},
    'ventilators': {'total': 1, 'occupied': 0},
    'oxygenCylinders': 4,
    'ambulances': {'total': 6, 'active': 2, 'maintenance': 1},
    'bloodBank': {'O+': 3},
}


@pytest.fixture
def view():
    return ResourceView.from_document('H1', DOC)


def test_request_equal_to_availability_is_sufficient(view):
    result = check_sufficiency(view, {'bed': 2, 'ventilator': 1, 'oxygenCylinders': 4,
                                      'ambulances': 3, 'bloodBank': {'O+': 3}})
    assert result.ok
    assert result.shortages == []


def test_one_more_than_available_is_a_shortage(view):
    result = check_sufficiency(view, {'bed': 3})
    assert not result.ok
    [s] = result.shortages
    assert (s.resource, s.requested, s.available) == ('bed', 3, 2)
    assert str(s) == 'Beds required: 3, available: 2'


def test_ambulances_exclude_active_and_maintenance(view):
    assert view.available('ambulances') == 3
    assert not check_sufficiency(view, {'ambulances': 4}).ok


def test_missing_blood_group_counts_as_zero(view):
    result = check_sufficiency(view, {'bloodBank': {'B-': 1}})
    assert [s.as_dict() for s in result.shortages] == [
        {'resource': 'bloodBank.B-', 'label': 'B- blood', 'requested': 1, 'available': 0},
    ]


def test_shortages_follow_resource_order(view):
    result = check_sufficiency(view, {'bloodBank': {'O+': 9}, 'icuBeds': 1, 'bed': 5})
    assert [s.resource for s in result.shortages] == ['bed', 'icuBeds', 'bloodBank.O+']
    assert result.summary().splitlines()[0].startswith('Beds required')


def test_normalize_request_fills_and_clamps():
    req = normalize_request({'bed': -2, 'icuBeds': '3', 'bloodBank': {'A+': 1}})
    assert req['bed'] == 0
    assert req['icuBeds'] == 3
    assert req['ambulances'] == 0
    assert req['bloodBank']['A+'] == 1
    assert req['bloodBank']['O-'] == 0


def test_blood_only_request_is_not_empty():
    assert not is_empty_request({'bloodBank': {'O+': 3}})
    assert is_empty_request({'bed': 0, 'bloodBank': {'O+': 0}})
    assert is_empty_request({})
