from django.core.management.base import BaseCommand
from django.utils import timezone
from channels.layers import get_channel_layer
from asgiref.sync import async_to_sync

from hospitals.models import Hospital
from hospitals.services.broadcast import notifications_group
from hospitals.services.referrals import heal_mirrors


class Command(BaseCommand):
    help = "Materialise missing referral mirrors, re-sync stale ones from canonical; broadcast a refresh."

    def handle(self, *args, **options):
        now = timezone.now()
        result = heal_mirrors()

        # Broadcast so open inbox views re-fetch
        channel_layer = get_channel_layer()
        if channel_layer is not None and (result['created'] or result['updated']):
            for hid in Hospital.objects.values_list('id', flat=True):
                event = {"type": "notifications.changed", "hospitalId": hid, "ts": now.isoformat()}
                async_to_sync(channel_layer.group_send)(notifications_group(hid), event)

        self.stdout.write(self.style.SUCCESS(
            f"Healed mirrors at {now}: {result['created']} created, {result['updated']} updated"
        ))
