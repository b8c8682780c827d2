"""
Django admin registrations for the referral network models.

Superusers can inspect hospitals, snapshots, referrals (canonical and
mirrors) and inboxes at ``/admin/``.  Referral rows are read-only in
practice: status changes must go through the referral services so that
allocation and mirrors stay consistent.
"""

from django.contrib import admin

from .models import (
    AuditEvent,
    Hospital,
    Notification,
    Referral,
    ReferralMirror,
    ResourceSnapshot,
    User,
)


@admin.register(Hospital)
class HospitalAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'type', 'location', 'contact', 'created_at')
    search_fields = ('id', 'name', 'location', 'email')


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'email', 'hospital', 'is_staff', 'is_superuser')
    list_filter = ('hospital',)
    search_fields = ('username', 'email')


@admin.register(ResourceSnapshot)
class ResourceSnapshotAdmin(admin.ModelAdmin):
    list_display = ('hospital', 'updated_at')


@admin.register(Referral)
class ReferralAdmin(admin.ModelAdmin):
    list_display = ('referral_id', 'from_hospital', 'to_hospital', 'required_specialist', 'status', 'created_at', 'updated_at')
    list_filter = ('status',)
    search_fields = ('referral_id', 'from_hospital_name', 'to_hospital_name')
    readonly_fields = ('status', 'resources_requested', 'created_at', 'updated_at')


@admin.register(ReferralMirror)
class ReferralMirrorAdmin(admin.ModelAdmin):
    list_display = ('referral_id', 'hospital', 'direction', 'status', 'updated_at')
    list_filter = ('direction', 'status')
    search_fields = ('referral_id',)


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'hospital', 'type', 'title', 'referral_id', 'read', 'timestamp')
    list_filter = ('type', 'read')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action',)
