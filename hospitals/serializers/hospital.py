from rest_framework import serializers


class HospitalRegisterSerializer(serializers.Serializer):
    registrationNumber = serializers.CharField(max_length=64)
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    type = serializers.CharField(max_length=100, required=False, allow_blank=True)
    location = serializers.CharField(max_length=255, required=False, allow_blank=True)
    contact = serializers.CharField(max_length=64, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    website = serializers.CharField(max_length=255, required=False, allow_blank=True)

    def validate_registrationNumber(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('Hospital Registration Number is required.')
        if '/' in v:
            raise serializers.ValidationError('Registration number may not contain "/".')
        return v


class NetworkQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=64, required=False, allow_blank=True)
    resource = serializers.ChoiceField(
        choices=['all', 'beds', 'icu', 'ventilators', 'oxygen', 'ambulances'], required=False, default='all'
    )
