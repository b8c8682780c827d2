import pytest
from django.conf import settings
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from hospitals.models import Hospital, ResourceSnapshot, User
from hospitals.services.resources import default_document


@pytest.fixture(scope='session')
def django_db_modify_db_settings(django_db_modify_db_settings_parallel_suffix, tmp_path_factory):
    # file-backed SQLite so concurrent connections lock the database, not a shared in-memory cache
    db = settings.DATABASES['default']
    if db['ENGINE'].endswith('sqlite3'):
        db.setdefault('TEST', {})['NAME'] = str(tmp_path_factory.mktemp('db') / 'test_referralnet.sqlite3')


@pytest.fixture(autouse=True)
def _reset_throttles():
    # throttle history lives in the locmem cache, which outlives a single test
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def make_hospital(db):
    def _make(hospital_id, name=None, location='Somewhere', resources=None, snapshot=True):
        h = Hospital.objects.create(id=hospital_id, name=name or f'Hospital {hospital_id}', location=location)
        if snapshot:
            ResourceSnapshot.objects.create(hospital=h, data={**default_document(), **(resources or {})})
        return h
    return _make


@pytest.fixture
def make_staff(db):
    def _make(username, hospital=None, password='P@ssw0rd1'):
        return User.objects.create_user(
            username=username,
            password=password,
            hospital=hospital,
            hospital_bind_time=timezone.now() if hospital else None,
        )
    return _make


@pytest.fixture
def receiver(make_hospital):
    return make_hospital('REG-A', 'Alpha General', resources={
        'beds': {'total': 10, 'occupied': 8},
        'icuBeds': {'total': 4, 'occupied': 1},
        'ventilators': {'total': 3, 'occupied': 3},
        'oxygenCylinders': {'available': 6},
        'ambulances': {'total': 5, 'active': 1, 'maintenance': 1},
        'bloodBank': {'O+': 25, 'O-': 4, 'A+': 30, 'A-': 0, 'B+': 0, 'B-': 0, 'AB+': 0, 'AB-': 0},
    })


@pytest.fixture
def sender(make_hospital):
    return make_hospital('REG-B', 'Beta Clinic', location='Riverside')


@pytest.fixture
def receiver_staff(make_staff, receiver):
    return make_staff('alpha_staff', receiver)


@pytest.fixture
def sender_staff(make_staff, sender):
    return make_staff('beta_staff', sender)


@pytest.fixture
def receiver_client(receiver_staff):
    client = APIClient()
    client.force_authenticate(user=receiver_staff)
    return client


@pytest.fixture
def sender_client(sender_staff):
    client = APIClient()
    client.force_authenticate(user=sender_staff)
    return client
