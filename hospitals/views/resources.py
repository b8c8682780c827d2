"""
Resource snapshot endpoints for the acting hospital.

``GET /api/resources`` self-heals a missing snapshot; staff edits go
through the same row lock as referral acceptance.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from hospitals.permissions import HasHospital
from hospitals.serializers.resources import ResourceUpdateSerializer
from hospitals.services.notifications import unread_count
from hospitals.services.resources import get_snapshot, overview, set_field


@api_view(['GET'])
@permission_classes([HasHospital])
def my_resources(request):
    view = get_snapshot(request.user.hospital_id)
    return Response({'ok': True, 'data': view.to_json()})


@api_view(['POST'])
@permission_classes([HasHospital])
def update_resource(request):
    s = ResourceUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        view = set_field(request.user.hospital_id, s.validated_data['path'], s.validated_data['value'])
    except LookupError as e:
        return Response({'ok': False, 'detail': str(e)}, status=404)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)
    return Response({'ok': True, 'data': view.to_json()})


@api_view(['GET'])
@permission_classes([HasHospital])
def dashboard_overview(request):
    hid = request.user.hospital_id
    view = get_snapshot(hid)
    return Response({
        'ok': True,
        'hospitalId': hid,
        'hospitalName': request.user.hospital.name,
        'data': overview(view),
        'unreadNotifications': unread_count(hid),
    })
