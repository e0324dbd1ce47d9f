"""
URL mappings for the HospitalCare API.

This module registers all API endpoints with their corresponding view
functions.  Trailing slashes are deliberately omitted to match the
front-end client.
"""
from django.urls import path, include

from .auth_views import login_view, register_view, me_view, jwt_refresh_view, jwt_logout_view
from .views import admin_panel, appointments, health, medical_records, prescriptions, reminders, second_opinions


urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/register', register_view, name='register_view'),
    path('api/auth/me', me_view, name='me_view'),
    path('api/auth/refresh', jwt_refresh_view),
    path('api/auth/logout', jwt_logout_view),
    # Patients
    path('api/appointments/doctors', appointments.available_doctors, name='available_doctors'),
    path('api/appointments/book', appointments.book, name='book_appointment'),
    path('api/appointments/mine', appointments.my_appointments, name='my_appointments'),
    path('api/appointments/<int:pk>/cancel', appointments.cancel, name='cancel_appointment'),
    # Doctors
    path('api/appointments/doctor/requests', appointments.doctor_requests, name='doctor_requests'),
    path('api/appointments/doctor', appointments.doctor_appointments, name='doctor_appointments'),
    path('api/appointments/<int:pk>/approve', appointments.approve, name='approve_appointment'),
    path('api/appointments/<int:pk>/reject', appointments.reject, name='reject_appointment'),
    path('api/appointments/<int:pk>/complete', appointments.complete, name='complete_appointment'),
    # Admin
    path('api/admin/appointments', admin_panel.all_appointments, name='admin_appointments'),
    path('api/admin/doctors', admin_panel.doctors, name='admin_doctors'),
    path('api/admin/doctors/<int:pk>/approve', admin_panel.approve_doctor, name='admin_approve_doctor'),
    path('api/admin/doctors/<int:pk>/reject', admin_panel.reject_doctor, name='admin_reject_doctor'),
    path('api/admin/reports/appointments', admin_panel.appointment_reports, name='admin_reports'),
    # Prescriptions
    path('api/prescriptions', prescriptions.prescriptions, name='prescriptions'),
    path('api/prescriptions/mine', prescriptions.my_prescriptions, name='my_prescriptions'),
    path('api/prescriptions/doctor', prescriptions.doctor_prescriptions, name='doctor_prescriptions'),
    path('api/prescriptions/appointment/<int:pk>', prescriptions.prescription_for_appointment,
         name='appointment_prescription'),
    path('api/prescriptions/<int:pk>', prescriptions.prescription_detail, name='prescription_detail'),
    # Medical records
    path('api/medical-records', medical_records.medical_records, name='medical_records'),
    path('api/medical-records/mine', medical_records.my_records, name='my_medical_records'),
    path('api/medical-records/doctor', medical_records.doctor_records, name='doctor_medical_records'),
    path('api/medical-records/patient/<int:pk>', medical_records.patient_records, name='patient_medical_records'),
    path('api/medical-records/<int:pk>', medical_records.record_detail, name='medical_record_detail'),
    # Second opinions
    path('api/second-opinions', second_opinions.submit, name='submit_second_opinion'),
    path('api/second-opinions/mine', second_opinions.my_requests, name='my_second_opinions'),
    path('api/second-opinions/doctor/pending', second_opinions.pending_pool, name='second_opinion_pool'),
    path('api/second-opinions/doctor/cases', second_opinions.doctor_cases, name='second_opinion_cases'),
    path('api/second-opinions/<int:pk>', second_opinions.detail, name='second_opinion_detail'),
    path('api/second-opinions/<int:pk>/cancel', second_opinions.cancel, name='cancel_second_opinion'),
    path('api/second-opinions/<int:pk>/accept', second_opinions.accept, name='accept_second_opinion'),
    path('api/second-opinions/<int:pk>/start-review', second_opinions.start_review, name='start_second_opinion_review'),
    path('api/second-opinions/<int:pk>/opinion', second_opinions.submit_opinion, name='submit_second_opinion_review'),
    # Reminders
    path('api/reminders/test/<int:pk>', reminders.test_reminder, name='test_reminder'),
    path('api/reminders/scan', reminders.run_scan, name='run_reminder_scan'),
]
