"""Hospital referral network application.

This package contains models, services, serializers, views and route
registrations for hospital registration, resource publishing and the
referral protocol between hospitals.
"""
