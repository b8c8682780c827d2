"""
Hospital registration, network directory and detail endpoints.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from hospitals.auth_views import get_hospital_binding_for_user
from hospitals.permissions import HasHospital
from hospitals.serializers.hospital import HospitalRegisterSerializer, NetworkQuerySerializer
from hospitals.services.hospitals import format_hospital, hospital_detail as load_hospital_detail, list_network, register_hospital


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def register(request):
    """Register a new hospital or link the user to an existing registration number."""
    s = HospitalRegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        hospital, created = register_hospital(
            request.user,
            registration_number=vd['registrationNumber'],
            name=vd.get('name', ''),
            type=vd.get('type', ''),
            location=vd.get('location', ''),
            contact=vd.get('contact', ''),
            email=vd.get('email', ''),
            website=vd.get('website', ''),
        )
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)
    return Response({
        'ok': True,
        'created': created,
        'hospital': format_hospital(hospital),
        'hospitalBinding': get_hospital_binding_for_user(request.user),
    }, status=201 if created else 200)


@api_view(['GET'])
@permission_classes([HasHospital])
def network(request):
    q = NetworkQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    data = list_network(
        request.user.hospital_id,
        q=(q.validated_data.get('q') or '').strip() or None,
        resource=q.validated_data.get('resource', 'all'),
    )
    return Response({'ok': True, 'data': data, 'total': len(data)})


@api_view(['GET'])
@permission_classes([HasHospital])
def hospital_detail(request, hospital_id: str):
    try:
        data = load_hospital_detail(hospital_id)
    except LookupError as e:
        return Response({'ok': False, 'detail': str(e)}, status=404)
    return Response({'ok': True, 'data': data})
