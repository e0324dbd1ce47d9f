"""
Database models for the HospitalCare backend.

These models capture the core concepts of the system: users with a
role (patient, doctor, admin), appointments booked between a patient
and a doctor together with the reminder bookkeeping for each
appointment, the prescriptions and medical records doctors write for
those appointments, second-opinion requests, and an audit trail of
significant actions.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone

from clinic.services.reminder_windows import default_reminders


class User(AbstractUser):
    """Custom user model with a role and role-specific profile fields.

    Doctors who sign up through the API start in the ``pending``
    moderation status and become bookable once an administrator approves
    them.  Accounts created any other way default to ``approved``.
    """
    ROLE_PATIENT = 'patient'
    ROLE_DOCTOR = 'doctor'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_PATIENT, 'Patient'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_ADMIN, 'Administrator'),
    ]

    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_PATIENT, db_index=True)
    phone = models.CharField(max_length=32, blank=True)
    # Doctor profile
    specialization = models.CharField(max_length=128, blank=True)
    experience = models.PositiveIntegerField(null=True, blank=True, help_text="Years of practice")
    education = models.CharField(max_length=255, blank=True)
    license_id = models.CharField(max_length=64, unique=True, null=True, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_APPROVED, db_index=True)

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.username

    @property
    def is_doctor(self) -> bool:
        return self.role == self.ROLE_DOCTOR

    @property
    def is_patient(self) -> bool:
        return self.role == self.ROLE_PATIENT

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Appointment(models.Model):
    """A booking between a patient and a doctor.

    ``start_time`` and ``end_time`` are ``HH:MM`` strings interpreted in
    the project time zone on ``appointment_date``.  ``reminders`` holds
    one entry per reminder window with an aggregate ``sent`` flag and the
    per-recipient ``patientSent``/``doctorSent`` sub-flags.
    """
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    # Statuses that still hold the slot and receive reminders
    ACTIVE_STATUSES = (STATUS_PENDING, STATUS_APPROVED)
    TRANSITIONS = {
        STATUS_PENDING: {STATUS_APPROVED, STATUS_REJECTED},
        STATUS_APPROVED: {STATUS_COMPLETED, STATUS_CANCELLED},
    }

    patient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='patient_appointments')
    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='doctor_appointments')
    appointment_date = models.DateField()
    start_time = models.CharField(max_length=5, help_text="HH:MM")
    end_time = models.CharField(max_length=5, help_text="HH:MM")
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)
    request_message = models.TextField(blank=True, default='')
    rejection_reason = models.TextField(blank=True, default='')
    notes = models.TextField(blank=True, default='')
    approved_at = models.DateTimeField(null=True, blank=True)
    reminders = models.JSONField(default=default_reminders, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['patient', 'appointment_date'], name='appt_patient_date_idx'),
            models.Index(fields=['doctor', 'appointment_date'], name='appt_doctor_date_idx'),
            models.Index(fields=['status', 'appointment_date'], name='appt_status_date_idx'),
        ]

    def can_transition(self, to_status: str) -> bool:
        return to_status in self.TRANSITIONS.get(self.status, set())

    def __str__(self) -> str:
        return f"appt {self.id} p={self.patient_id} d={self.doctor_id} {self.appointment_date} {self.start_time} ({self.status})"


class Prescription(models.Model):
    """Medicines issued by the treating doctor for one appointment.

    ``medicines`` is a list of ``{name, dosage, frequency, duration, notes}``
    entries; ``symptoms`` and ``lab_tests`` are lists of short strings.
    ``number`` (``RX-YYYYMMDD-NNNNN``) is assigned right after the insert.
    """
    STATUS_ACTIVE = 'active'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    FREQUENCIES = (
        'Once daily', 'Twice daily', 'Three times daily', 'Four times daily',
        'Every 4 hours', 'Every 6 hours', 'Every 8 hours', 'Every 12 hours',
        'As needed', 'Before meals', 'After meals', 'With meals', 'At bedtime', 'Custom',
    )

    number = models.CharField(max_length=32, unique=True, null=True, blank=True, editable=False)
    patient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='prescriptions')
    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='issued_prescriptions')
    appointment = models.OneToOneField(Appointment, on_delete=models.CASCADE, related_name='prescription')
    diagnosis = models.CharField(max_length=500)
    symptoms = models.JSONField(default=list, blank=True)
    medicines = models.JSONField(default=list)
    lab_tests = models.JSONField(default=list, blank=True)
    instructions = models.TextField(blank=True, default='')
    follow_up_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    issued_at = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['patient', 'created_at'], name='rx_patient_created_idx'),
            models.Index(fields=['doctor', 'created_at'], name='rx_doctor_created_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.number or 'RX'} appt={self.appointment_id} ({self.status})"


class MedicalRecord(models.Model):
    """Clinical note written by a doctor about a patient seen in an appointment."""
    STATUS_ACTIVE = 'active'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    patient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='medical_records')
    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='authored_records')
    appointment = models.ForeignKey(Appointment, on_delete=models.CASCADE, related_name='medical_records')
    diagnosis = models.TextField()
    symptoms = models.TextField()
    treatment_plan = models.TextField()
    notes = models.TextField(blank=True, default='')
    prescription = models.TextField(blank=True, default='')
    # bloodPressure {systolic, diastolic}, temperature, heartRate, weight, height
    vital_signs = models.JSONField(default=dict, blank=True)
    lab_results = models.TextField(blank=True, default='')
    follow_up_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['patient', 'doctor'], name='record_patient_doctor_idx'),
            models.Index(fields=['created_at'], name='record_created_idx'),
        ]

    def __str__(self) -> str:
        return f"record {self.id} p={self.patient_id} d={self.doctor_id}"


class SecondOpinionRequest(models.Model):
    """A patient's request for an independent review of their case.

    A request names a doctor up front (``assigned``) or waits in the
    ``pending`` pool until an approved doctor accepts it.  The doctor's
    opinion is stored on the request when it is completed.
    """
    STATUS_PENDING = 'pending'
    STATUS_ASSIGNED = 'assigned'
    STATUS_UNDER_REVIEW = 'under_review'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ASSIGNED, 'Assigned'),
        (STATUS_UNDER_REVIEW, 'Under review'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    TRANSITIONS = {
        STATUS_PENDING: {STATUS_ASSIGNED, STATUS_CANCELLED},
        STATUS_ASSIGNED: {STATUS_UNDER_REVIEW, STATUS_COMPLETED, STATUS_CANCELLED},
        STATUS_UNDER_REVIEW: {STATUS_COMPLETED},
    }

    PRIORITY_CHOICES = [
        ('normal', 'Normal'),
        ('urgent', 'Urgent'),
        ('emergency', 'Emergency'),
    ]

    patient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='second_opinion_requests')
    doctor = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True,
                               related_name='second_opinion_cases')
    chief_complaint = models.TextField()
    medical_history = models.TextField(blank=True, default='')
    current_medications = models.TextField(blank=True, default='')
    allergies = models.TextField(blank=True, default='')
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='normal')
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=STATUS_PENDING)
    # Doctor's opinion
    diagnosis = models.TextField(blank=True, default='')
    recommendations = models.TextField(blank=True, default='')
    prescribed_treatment = models.TextField(blank=True, default='')
    additional_notes = models.TextField(blank=True, default='')
    assigned_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['patient', 'status'], name='opinion_patient_status_idx'),
            models.Index(fields=['doctor', 'status'], name='opinion_doctor_status_idx'),
        ]

    def can_transition(self, to_status: str) -> bool:
        return to_status in self.TRANSITIONS.get(self.status, set())

    def __str__(self) -> str:
        return f"opinion {self.id} p={self.patient_id} d={self.doctor_id} ({self.status})"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_created_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
