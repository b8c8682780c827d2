from rest_framework import serializers


class NotificationReadSerializer(serializers.Serializer):
    referralId = serializers.CharField(max_length=32, required=False)
    notificationId = serializers.IntegerField(min_value=1, required=False)

    def validate(self, attrs):
        if not attrs.get('referralId') and not attrs.get('notificationId'):
            raise serializers.ValidationError('referralId or notificationId is required')
        return attrs


class NotificationListQuerySerializer(serializers.Serializer):
    unreadOnly = serializers.BooleanField(required=False, default=False)
    limit = serializers.IntegerField(min_value=1, max_value=500, required=False)


class AlertSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=['critical', 'warning', 'default'], required=False, default='default')
    title = serializers.CharField(max_length=255)
    message = serializers.CharField(max_length=2000, required=False, allow_blank=True, default='')
