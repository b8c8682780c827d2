from typing import Optional, Tuple

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from hospitals.exceptions import NotFound, ValidationError
from hospitals.models import Hospital, ResourceSnapshot, User
from hospitals.services.audit import log_action
from hospitals.services.resources import ResourceView, create_default_snapshot
from hospitals.services.text import plain_text

# network filter -> request key whose availability must be positive
RESOURCE_FILTERS = {
    'beds': 'bed',
    'icu': 'icuBeds',
    'ventilators': 'ventilator',
    'oxygen': 'oxygenCylinders',
    'ambulances': 'ambulances',
}


@transaction.atomic
def register_hospital(user: User, *, registration_number: str, name: str = '', type: str = '', location: str = '',
                      contact: str = '', email: str = '', website: str = '') -> Tuple[Hospital, bool]:
    """Create the hospital (with an all-zero resource snapshot) or link to an existing one.

    Either way the user is bound to it and subsequent requests act as that
    hospital.
    """
    hospital_id = (registration_number or '').strip()
    if not hospital_id:
        raise ValidationError('Hospital Registration Number is required.', code='registration_required')

    hospital = Hospital.objects.select_for_update().filter(id=hospital_id).first()
    created = False
    if hospital is None:
        name = plain_text(name)
        if not name:
            raise ValidationError('Hospital name is required.', code='name_required')
        hospital = Hospital.objects.create(
            id=hospital_id,
            name=name,
            type=plain_text(type),
            location=plain_text(location),
            contact=plain_text(contact),
            email=(email or '').strip(),
            website=plain_text(website),
        )
        create_default_snapshot(hospital)
        created = True

    user.hospital = hospital
    user.hospital_bind_time = timezone.now()
    user.save(update_fields=['hospital', 'hospital_bind_time'])

    log_action(user=user, action='hospital_register' if created else 'hospital_link',
               object_type='hospital', object_id=hospital.id)
    return hospital, created


def _view_for(hospital: Hospital, snapshots: dict) -> ResourceView:
    snap = snapshots.get(hospital.id)
    return ResourceView.from_document(hospital.id, snap.data if snap else None)


def format_hospital(hospital: Hospital, view: Optional[ResourceView] = None) -> dict:
    data = {
        'id': hospital.id,
        'name': hospital.name or 'Unnamed Hospital',
        'type': hospital.type,
        'location': hospital.location or 'No location',
        'contact': hospital.contact or 'N/A',
        'email': hospital.email or 'N/A',
        'website': hospital.website,
    }
    if view is not None:
        data['resources'] = view.to_json()
    return data


def list_network(exclude_hospital_id: Optional[str], *, q: Optional[str] = None, resource: str = 'all') -> list[dict]:
    """Every other hospital with its availability, filtered by search term and resource."""
    qs = Hospital.objects.all()
    if exclude_hospital_id:
        qs = qs.exclude(id=exclude_hospital_id)
    if q:
        qs = qs.filter(Q(name__icontains=q) | Q(location__icontains=q))
    hospitals = list(qs.order_by('name', 'id'))
    snapshots = {s.hospital_id: s for s in ResourceSnapshot.objects.filter(hospital_id__in=[h.id for h in hospitals])}

    wanted = RESOURCE_FILTERS.get(resource)
    out = []
    for h in hospitals:
        view = _view_for(h, snapshots)
        if wanted and view.available(wanted) <= 0:
            continue
        out.append(format_hospital(h, view))
    return out


def hospital_detail(hospital_id: str) -> dict:
    hospital = Hospital.objects.filter(id=hospital_id).first()
    if hospital is None:
        raise NotFound('Hospital not found')
    snap = ResourceSnapshot.objects.filter(hospital_id=hospital_id).first()
    return format_hospital(hospital, ResourceView.from_document(hospital_id, snap.data if snap else None))
