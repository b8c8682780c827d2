from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from hospitals.permissions import HasHospital
from hospitals.serializers.notification import AlertSerializer, NotificationListQuerySerializer, NotificationReadSerializer
from hospitals.services.audit import log_action
from hospitals.services.notifications import enqueue, format_notification, list_for, mark_read, mark_read_one, unread_count


@api_view(['GET'])
@permission_classes([HasHospital])
def notification_list(request):
    q = NotificationListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    hid = request.user.hospital_id
    items = list_for(hid, unread_only=q.validated_data.get('unreadOnly', False), limit=q.validated_data.get('limit'))
    return Response({'ok': True, 'data': [format_notification(n) for n in items], 'unread': unread_count(hid)})


@api_view(['POST'])
@permission_classes([HasHospital])
def notification_read(request):
    """Mark inbox entries read, either every entry of a referral or one entry by id."""
    s = NotificationReadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    hid = request.user.hospital_id
    vd = s.validated_data
    if vd.get('notificationId'):
        n = mark_read_one(hid, vd['notificationId'])
    else:
        n = mark_read(hid, vd['referralId'])
    return Response({'ok': True, 'updated': n, 'unread': unread_count(hid)})


@api_view(['POST'])
@permission_classes([HasHospital])
def notification_alert(request):
    """Post an ad hoc alert to the acting hospital's own inbox."""
    s = AlertSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    n = enqueue(request.user.hospital_id, type=vd['type'], title=vd['title'], message=vd.get('message', ''))
    log_action(user=request.user, action='notification_alert', object_type='notification', object_id=n.id,
               detail={'type': vd['type']})
    return Response({'ok': True, 'data': format_notification(n)}, status=201)
