"""
Availability Validator.

Compares a referral's ``resourcesRequested`` against a
:class:`~hospitals.services.resources.ResourceView`.  The result lists
every resource whose requested amount exceeds what is available, in a
stable order (scalar resources first, then blood groups).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List

from hospitals.services.resources import BLOOD_GROUPS, SCALAR_RESOURCES, ResourceView, to_count


@dataclass(frozen=True)
class Shortage:
    resource: str
    label: str
    requested: int
    available: int

    def as_dict(self) -> dict:
        return {'resource': self.resource, 'label': self.label, 'requested': self.requested, 'available': self.available}

    def __str__(self) -> str:
        return f"{self.label} required: {self.requested}, available: {self.available}"


@dataclass
class SufficiencyResult:
    ok: bool
    shortages: List[Shortage] = field(default_factory=list)

    def summary(self) -> str:
        return '\n'.join(str(s) for s in self.shortages)


def normalize_request(requested: Any) -> dict:
    """Return ``resourcesRequested`` with every known key present and clamped to >= 0."""
    requested = requested if isinstance(requested, dict) else {}
    blood_src = requested.get('bloodBank') if isinstance(requested.get('bloodBank'), dict) else {}
    out = {key: to_count(requested.get(key)) for key, _label, _section in SCALAR_RESOURCES}
    out['bloodBank'] = {g: to_count(blood_src.get(g)) for g in BLOOD_GROUPS}
    return out


def is_empty_request(requested: dict) -> bool:
    req = normalize_request(requested)
    if any(req[key] for key, _label, _section in SCALAR_RESOURCES):
        return False
    return not any(v > 0 for v in req['bloodBank'].values())


def check_sufficiency(snapshot: ResourceView, requested: Any) -> SufficiencyResult:
    req = normalize_request(requested)
    shortages: List[Shortage] = []
    for key, label, _section in SCALAR_RESOURCES:
        amount = req[key]
        available = snapshot.available(key)
        if amount > available:
            shortages.append(Shortage(key, label, amount, available))
    for group in BLOOD_GROUPS:
        amount = req['bloodBank'][group]
        available = snapshot.blood_available(group)
        if amount > available:
            shortages.append(Shortage(f'bloodBank.{group}', f'{group} blood', amount, available))
    return SufficiencyResult(ok=not shortages, shortages=shortages)
