"""
Django admin registrations for the clinic models.

Superusers can inspect accounts, appointments (including their reminder
state), clinical documents, second opinions and the audit trail via the
``/admin/`` URL.
"""

from django.contrib import admin

from .models import Appointment, AuditEvent, MedicalRecord, Prescription, SecondOpinionRequest, User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'email', 'role', 'status', 'specialization', 'is_active', 'is_staff')
    list_filter = ('role', 'status', 'is_active')
    search_fields = ('username', 'first_name', 'last_name', 'email', 'phone', 'license_id')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'doctor', 'appointment_date', 'start_time', 'end_time', 'status')
    list_filter = ('status', 'appointment_date')
    search_fields = ('id', 'patient__username', 'doctor__username')
    readonly_fields = ('reminders', 'created_at', 'updated_at')
    list_select_related = ('patient', 'doctor')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('user__username', 'object_id')


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ('number', 'patient', 'doctor', 'appointment', 'status', 'issued_at')
    list_filter = ('status',)
    search_fields = ('number', 'patient__username', 'doctor__username', 'diagnosis')
    list_select_related = ('patient', 'doctor', 'appointment')


@admin.register(MedicalRecord)
class MedicalRecordAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'doctor', 'appointment', 'status', 'created_at')
    list_filter = ('status',)
    search_fields = ('patient__username', 'doctor__username', 'diagnosis')
    list_select_related = ('patient', 'doctor', 'appointment')


@admin.register(SecondOpinionRequest)
class SecondOpinionRequestAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'doctor', 'priority', 'status', 'created_at', 'completed_at')
    list_filter = ('status', 'priority')
    search_fields = ('patient__username', 'doctor__username', 'chief_complaint')
    list_select_related = ('patient', 'doctor')
