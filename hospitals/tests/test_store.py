import pytest
from django.db import IntegrityError, OperationalError, transaction

from hospitals.exceptions import ConcurrencyConflict, NotFound, TransportError
from hospitals.services.store import is_conflict, run_transaction


@pytest.fixture(autouse=True)
def _no_backoff(settings):
    settings.REFERRAL_TX_BACKOFF_MS = 0


def _flaky(failures, exc=None):
    calls = []

    def unit():
        calls.append(1)
        if len(calls) <= failures:
            raise exc or OperationalError('database is locked')
        return 'done'
    return unit, calls


@pytest.mark.django_db(transaction=True)
def test_write_conflicts_are_retried():
    unit, calls = _flaky(2)
    assert run_transaction(unit, label='t') == 'done'
    assert len(calls) == 3


@pytest.mark.django_db(transaction=True)
def test_persistent_conflict_becomes_concurrency_conflict():
    unit, calls = _flaky(10, OperationalError('Deadlock found when trying to get lock'))
    with pytest.raises(ConcurrencyConflict):
        run_transaction(unit, max_attempts=4)
    assert len(calls) == 4


@pytest.mark.django_db(transaction=True)
def test_other_database_errors_become_transport_errors():
    unit, calls = _flaky(1, IntegrityError('constraint failed'))
    with pytest.raises(TransportError):
        run_transaction(unit)
    assert len(calls) == 1


@pytest.mark.django_db(transaction=True)
def test_domain_errors_propagate_unchanged():
    def unit():
        raise NotFound('gone')
    with pytest.raises(NotFound):
        run_transaction(unit)


@pytest.mark.django_db(transaction=True)
def test_nested_units_leave_retries_to_the_outer_transaction():
    unit, calls = _flaky(1)
    with pytest.raises(OperationalError):
        with transaction.atomic():
            run_transaction(unit)
    assert len(calls) == 1


def test_is_conflict():
    assert is_conflict(OperationalError('could not serialize access due to concurrent update'))
    assert is_conflict(OperationalError('Lock wait timeout exceeded'))
    assert not is_conflict(OperationalError('no such table: hospitals_hospital'))
    assert not is_conflict(ValueError('database is locked'))
