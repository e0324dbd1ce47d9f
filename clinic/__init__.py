"""Clinic application for the HospitalCare backend.

This package contains models, serializers, views and route registrations
for accounts, appointment booking and the appointment reminder and
notification services.
"""
