from rest_framework import serializers

from hospitals.services.resources import BLOOD_GROUPS


class ResourcesRequestedSerializer(serializers.Serializer):
    bed = serializers.IntegerField(min_value=0, required=False, default=0)
    icuBeds = serializers.IntegerField(min_value=0, required=False, default=0)
    ventilator = serializers.IntegerField(min_value=0, required=False, default=0)
    oxygenCylinders = serializers.IntegerField(min_value=0, required=False, default=0)
    ambulances = serializers.IntegerField(min_value=0, required=False, default=0)
    bloodBank = serializers.DictField(child=serializers.IntegerField(min_value=0), required=False, default=dict)

    def validate_bloodBank(self, v):
        unknown = sorted(set(v) - set(BLOOD_GROUPS))
        if unknown:
            raise serializers.ValidationError(f"unknown blood group(s): {', '.join(unknown)}")
        return v


class ReferralSendSerializer(serializers.Serializer):
    toHospitalId = serializers.CharField(max_length=64)
    requiredSpecialist = serializers.CharField(max_length=255, allow_blank=True)
    resourcesRequested = ResourcesRequestedSerializer()


class ReferralListQuerySerializer(serializers.Serializer):
    direction = serializers.ChoiceField(choices=['incoming', 'outgoing'], required=False)
    status = serializers.ChoiceField(choices=['pending', 'accepted', 'rejected'], required=False)
