from rest_framework import serializers


class ResourceUpdateSerializer(serializers.Serializer):
    path = serializers.CharField(max_length=64)
    # negative input is accepted and clamped to 0 by the accessor
    value = serializers.IntegerField()
