"""
Referral endpoints.

The acting hospital is always the requesting user's bound hospital.
Permission, lookup and validation failures come back as
``{'ok': False, 'detail': ...}``; insufficient stock adds ``shortages``.
Conflicts and transport failures are left to the global handler.
"""
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle

from hospitals.exceptions import InvalidTransition, ValidationError
from hospitals.permissions import HasHospital
from hospitals.serializers.referral import ReferralListQuerySerializer, ReferralSendSerializer
from hospitals.services.referrals import (
    accept_referral,
    check_status,
    create_referral,
    format_referral,
    list_referrals,
    load_referral,
    reject_referral,
)


def _error(e: Exception, status: int) -> Response:
    body = {'ok': False, 'detail': str(e)}
    code = getattr(e, 'code', None)
    if code:
        body['code'] = code
    shortages = getattr(e, 'shortages', None)
    if shortages:
        body['shortages'] = [s.as_dict() for s in shortages]
    return Response(body, status=status)


@api_view(['POST'])
@permission_classes([HasHospital])
@throttle_classes([ScopedRateThrottle])
def referral_send(request):
    s = ReferralSendSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        referral = create_referral(
            request.user.hospital_id,
            vd['toHospitalId'],
            required_specialist=vd.get('requiredSpecialist', ''),
            resources_requested=vd['resourcesRequested'],
            user=request.user,
        )
    except PermissionError as e:
        return _error(e, 403)
    except LookupError as e:
        return _error(e, 404)
    except ValueError as e:
        return _error(e, 400)
    return Response({'ok': True, 'referralId': referral.referral_id, 'data': format_referral(referral)}, status=201)

referral_send.cls.throttle_scope = 'referral_write'


@api_view(['GET'])
@permission_classes([HasHospital])
def referral_list(request):
    q = ReferralListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    items = list_referrals(
        request.user.hospital_id,
        direction=q.validated_data.get('direction'),
        status=q.validated_data.get('status'),
    )
    return Response({'ok': True, 'data': [format_referral(m) for m in items], 'total': len(items)})


@api_view(['GET'])
@permission_classes([HasHospital])
def referral_detail(request, referral_id: str):
    try:
        mirror = load_referral(request.user.hospital_id, referral_id)
    except PermissionError as e:
        return _error(e, 403)
    except LookupError as e:
        return _error(e, 404)
    return Response({'ok': True, 'data': format_referral(mirror)})


@api_view(['GET'])
@permission_classes([HasHospital])
def referral_status(request, referral_id: str):
    try:
        referral = check_status(request.user.hospital_id, referral_id)
    except PermissionError as e:
        return _error(e, 403)
    except LookupError as e:
        return _error(e, 404)
    return Response({'ok': True, 'referralId': referral.referral_id, 'status': referral.status,
                     'updatedAt': referral.updated_at.isoformat() if referral.updated_at else None})


def _respond(request, referral_id: str, action) -> Response:
    try:
        referral = action(request.user.hospital_id, referral_id, user=request.user)
    except PermissionError as e:
        return _error(e, 403)
    except LookupError as e:
        return _error(e, 404)
    except InvalidTransition as e:
        return _error(e, 409)
    except ValidationError as e:
        return _error(e, 400)
    return Response({'ok': True, 'data': format_referral(referral)})


@api_view(['POST'])
@permission_classes([HasHospital])
@throttle_classes([ScopedRateThrottle])
def referral_accept(request, referral_id: str):
    """Accept an incoming referral; resources are allocated at this hospital."""
    return _respond(request, referral_id, accept_referral)

referral_accept.cls.throttle_scope = 'referral_write'


@api_view(['POST'])
@permission_classes([HasHospital])
@throttle_classes([ScopedRateThrottle])
def referral_reject(request, referral_id: str):
    return _respond(request, referral_id, reject_referral)

referral_reject.cls.throttle_scope = 'referral_write'
