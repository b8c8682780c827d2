"""
Resource Store Accessor.

Reads and writes the ``resourceInfo`` document of a hospital.  Every
consumer goes through :class:`ResourceView`, which normalises the two
historical shapes of ``oxygenCylinders`` (a bare number, or
``{"available": n}``) into one integer and remembers which shape was
stored so that writes never migrate the schema behind the owner's back.

Availability is defined once, here, and shared by the validator and the
reservation transaction:

* beds / ICU beds / ventilators: ``total - occupied``
* oxygen cylinders: the normalised available count
* ambulances: ``total - active - maintenance`` (``active`` = in use)
* blood: units on hand for the group

all floored at zero.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import IntegrityError, transaction

from hospitals.exceptions import NotFound, ValidationError
from hospitals.models import Hospital, ResourceSnapshot
from hospitals.services.broadcast import publish_on_commit, resources_group
from hospitals.services.store import run_transaction

logger = logging.getLogger(__name__)

BLOOD_GROUPS = ("O+", "O-", "A+", "A-", "B+", "B-", "AB+", "AB-")
OCCUPANCY_SECTIONS = ("beds", "icuBeds", "ventilators")

OXYGEN_NUMBER = 'number'
OXYGEN_OBJECT = 'object'

# request key -> (display label, snapshot section); order is the shortage order
SCALAR_RESOURCES = (
    ('bed', 'Beds', 'beds'),
    ('icuBeds', 'ICU Beds', 'icuBeds'),
    ('ventilator', 'Ventilators', 'ventilators'),
    ('oxygenCylinders', 'Oxygen cylinders', 'oxygenCylinders'),
    ('ambulances', 'Ambulances', 'ambulances'),
)
REQUEST_KEYS = tuple(key for key, _label, _section in SCALAR_RESOURCES)


def default_document() -> dict:
    return {
        "beds": {"total": 0, "occupied": 0},
        "icuBeds": {"total": 0, "occupied": 0},
        "ventilators": {"total": 0, "occupied": 0},
        "oxygenCylinders": {"available": 0},
        "ambulances": {"total": 0, "active": 0, "maintenance": 0},
        "bloodBank": {g: 0 for g in BLOOD_GROUPS},
    }


def to_count(value: Any) -> int:
    """Coerce a stored or submitted value to a non-negative integer."""
    if isinstance(value, bool) or value is None:
        return 0
    try:
        n = int(value)
    except (TypeError, ValueError):
        return 0
    return max(0, n)


def read_oxygen(value: Any) -> tuple[int, str]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return to_count(value), OXYGEN_NUMBER
    if isinstance(value, dict):
        return to_count(value.get('available')), OXYGEN_OBJECT
    return 0, OXYGEN_OBJECT


@dataclass
class ResourceView:
    hospital_id: str
    beds: Dict[str, int]
    icu_beds: Dict[str, int]
    ventilators: Dict[str, int]
    oxygen_available: int
    oxygen_shape: str
    ambulances: Dict[str, int]
    blood_bank: Dict[str, int]
    raw: dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_document(cls, hospital_id: str, data: Optional[dict]) -> 'ResourceView':
        data = data if isinstance(data, dict) else {}

        def section(key, fields):
            src = data.get(key) if isinstance(data.get(key), dict) else {}
            return {f: to_count(src.get(f)) for f in fields}

        oxygen, shape = read_oxygen(data.get('oxygenCylinders', {"available": 0}))
        stored_blood = data.get('bloodBank') if isinstance(data.get('bloodBank'), dict) else {}
        blood = {g: 0 for g in BLOOD_GROUPS}
        blood.update({g: to_count(v) for g, v in stored_blood.items()})
        return cls(
            hospital_id=hospital_id,
            beds=section('beds', ('total', 'occupied')),
            icu_beds=section('icuBeds', ('total', 'occupied')),
            ventilators=section('ventilators', ('total', 'occupied')),
            oxygen_available=oxygen,
            oxygen_shape=shape,
            ambulances=section('ambulances', ('total', 'active', 'maintenance')),
            blood_bank=blood,
            raw=copy.deepcopy(data),
        )

    def _occupancy(self, section: str) -> Dict[str, int]:
        return {'beds': self.beds, 'icuBeds': self.icu_beds, 'ventilators': self.ventilators}[section]

    def available(self, key: str) -> int:
        """Availability for a request key (``bed``, ``icuBeds``, ...)."""
        if key == 'bed':
            return max(0, self.beds['total'] - self.beds['occupied'])
        if key == 'icuBeds':
            return max(0, self.icu_beds['total'] - self.icu_beds['occupied'])
        if key == 'ventilator':
            return max(0, self.ventilators['total'] - self.ventilators['occupied'])
        if key == 'oxygenCylinders':
            return self.oxygen_available
        if key == 'ambulances':
            a = self.ambulances
            return max(0, a['total'] - a['active'] - a['maintenance'])
        raise KeyError(key)

    def blood_available(self, group: str) -> int:
        return self.blood_bank.get(group, 0)

    def clamped_ambulances(self) -> Dict[str, int]:
        """Ambulance figures safe for display when legacy data is inconsistent."""
        total = self.ambulances['total']
        active = min(self.ambulances['active'], total)
        maintenance = min(self.ambulances['maintenance'], total - active)
        return {'total': total, 'active': active, 'maintenance': maintenance, 'available': total - active - maintenance}

    def as_document(self) -> dict:
        """The document to persist, keeping the stored oxygen shape and any extra keys."""
        doc = copy.deepcopy(self.raw)
        for name, values in (('beds', self.beds), ('icuBeds', self.icu_beds),
                             ('ventilators', self.ventilators), ('ambulances', self.ambulances)):
            current = doc.get(name) if isinstance(doc.get(name), dict) else {}
            doc[name] = {**current, **values}
        if self.oxygen_shape == OXYGEN_NUMBER:
            doc['oxygenCylinders'] = self.oxygen_available
        else:
            current = doc.get('oxygenCylinders') if isinstance(doc.get('oxygenCylinders'), dict) else {}
            doc['oxygenCylinders'] = {**current, 'available': self.oxygen_available}
        current_blood = doc.get('bloodBank') if isinstance(doc.get('bloodBank'), dict) else {}
        doc['bloodBank'] = {**current_blood, **self.blood_bank}
        return doc

    def availability(self) -> dict:
        return {
            'bedsAvailable': self.available('bed'),
            'icuAvailable': self.available('icuBeds'),
            'ventilatorsAvailable': self.available('ventilator'),
            'oxygenAvailable': self.available('oxygenCylinders'),
            'ambulancesAvailable': self.available('ambulances'),
            'bloodBankAvailable': dict(self.blood_bank),
        }

    def to_json(self) -> dict:
        return {
            'hospitalId': self.hospital_id,
            'beds': dict(self.beds),
            'icuBeds': dict(self.icu_beds),
            'ventilators': dict(self.ventilators),
            'oxygenCylinders': {'available': self.oxygen_available, 'shape': self.oxygen_shape},
            'ambulances': dict(self.ambulances),
            'bloodBank': dict(self.blood_bank),
            'availability': self.availability(),
        }


def _publish(view: ResourceView) -> None:
    publish_on_commit(resources_group(view.hospital_id), {'type': 'resources.changed', 'hospitalId': view.hospital_id})


def create_default_snapshot(hospital: Hospital) -> ResourceSnapshot:
    snapshot, _ = ResourceSnapshot.objects.get_or_create(hospital=hospital, defaults={'data': default_document()})
    return snapshot


def get_snapshot(hospital_id: str) -> ResourceView:
    """Return the hospital's snapshot, persisting all-zero defaults if it has none."""
    snapshot = ResourceSnapshot.objects.filter(hospital_id=hospital_id).first()
    if snapshot is None:
        hospital = Hospital.objects.filter(id=hospital_id).first()
        if hospital is None:
            raise NotFound(f'hospital {hospital_id} does not exist')
        try:
            with transaction.atomic():
                snapshot = create_default_snapshot(hospital)
        except IntegrityError:
            snapshot = ResourceSnapshot.objects.get(hospital_id=hospital_id)
        logger.info('created default resource snapshot for %s', hospital_id)
    return ResourceView.from_document(hospital_id, snapshot.data)


def lock_snapshot(hospital_id: str) -> Optional[ResourceSnapshot]:
    """Row-lock and return the snapshot; must run inside a transaction."""
    return ResourceSnapshot.objects.select_for_update().filter(hospital_id=hospital_id).first()


def save_view(snapshot: ResourceSnapshot, view: ResourceView) -> None:
    snapshot.data = view.as_document()
    snapshot.save(update_fields=['data', 'updated_at'])
    _publish(view)


def _apply_path(view: ResourceView, path: str, value: int) -> None:
    parts = path.split('.', 1)
    head = parts[0]
    tail = parts[1] if len(parts) > 1 else None
    if head in OCCUPANCY_SECTIONS and tail in ('total', 'occupied'):
        view._occupancy(head)[tail] = value
    elif head == 'ambulances' and tail in ('total', 'active', 'maintenance'):
        view.ambulances[tail] = value
    elif head == 'oxygenCylinders' and tail in (None, 'available'):
        view.oxygen_available = value
    elif head == 'bloodBank' and tail in BLOOD_GROUPS:
        view.blood_bank[tail] = value
    else:
        raise ValidationError(f'unknown resource field: {path}', code='unknown_field')


def set_field(hospital_id: str, path: str, value: Any) -> ResourceView:
    """Write one field by dotted path (``beds.total``, ``bloodBank.O+``, ...).

    The value is clamped to ``>= 0``.  Staff edits take the same row lock as
    referral acceptance so the two never interleave.
    """
    value = to_count(value)

    def unit() -> ResourceView:
        snapshot = lock_snapshot(hospital_id)
        if snapshot is None:
            hospital = Hospital.objects.filter(id=hospital_id).first()
            if hospital is None:
                raise NotFound(f'hospital {hospital_id} does not exist')
            create_default_snapshot(hospital)
            snapshot = lock_snapshot(hospital_id)
        view = ResourceView.from_document(hospital_id, snapshot.data)
        _apply_path(view, path, value)
        save_view(snapshot, view)
        return view

    view = run_transaction(unit, label=f'resources.set {hospital_id}')
    logger.info('resource %s.%s set to %d', hospital_id, path, value)
    return view


def overview(view: ResourceView) -> dict:
    """Figures for the dashboard cards."""
    threshold = getattr(settings, 'LOW_BLOOD_THRESHOLD', 20)
    blood = view.blood_bank
    return {
        'beds': {**view.beds, 'available': view.available('bed')},
        'icuBeds': {**view.icu_beds, 'available': view.available('icuBeds')},
        'ventilators': {**view.ventilators, 'available': view.available('ventilator')},
        'oxygenCylinders': {'available': view.oxygen_available},
        'ambulances': view.clamped_ambulances(),
        'bloodBank': {
            'totalUnits': sum(blood.values()),
            'criticalGroups': [g for g in BLOOD_GROUPS if blood.get(g, 0) < threshold],
            'units': dict(blood),
        },
    }
