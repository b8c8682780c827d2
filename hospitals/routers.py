"""
URL mappings for the referral network API.

Paths carry no trailing slash, as the front-end client expects.  Fixed
``api/hospitals/...`` paths are listed before the ``<hospital_id>``
catch-all.
"""
from django.urls import path, include

from .auth_views import login_view, signup_view, jwt_refresh_view, jwt_logout_view
from .views import health
from .views.hospitals import register, network, hospital_detail
from .views.resources import my_resources, update_resource, dashboard_overview
from .views.referrals import (
    referral_send,
    referral_list,
    referral_detail,
    referral_status,
    referral_accept,
    referral_reject,
)
from .views.notifications import notification_list, notification_read, notification_alert


urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Authentication
    path('api/auth/signup', signup_view, name='signup_view'),
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh_view'),
    path('api/auth/logout', jwt_logout_view, name='jwt_logout_view'),
    # Hospitals
    path('api/hospitals/register', register, name='hospital_register'),
    path('api/hospitals/network', network, name='hospital_network'),
    path('api/hospitals/<str:hospital_id>', hospital_detail, name='hospital_detail'),
    # Resources / dashboard
    path('api/resources', my_resources, name='my_resources'),
    path('api/resources/update', update_resource, name='update_resource'),
    path('api/dashboard/overview', dashboard_overview, name='dashboard_overview'),
    # Referrals
    path('api/referrals', referral_list, name='referral_list'),
    path('api/referrals/send', referral_send, name='referral_send'),
    path('api/referrals/<str:referral_id>', referral_detail, name='referral_detail'),
    path('api/referrals/<str:referral_id>/status', referral_status, name='referral_status'),
    path('api/referrals/<str:referral_id>/accept', referral_accept, name='referral_accept'),
    path('api/referrals/<str:referral_id>/reject', referral_reject, name='referral_reject'),
    # Notifications
    path('api/notifications', notification_list, name='notification_list'),
    path('api/notifications/read', notification_read, name='notification_read'),
    path('api/notifications/alert', notification_alert, name='notification_alert'),
]
