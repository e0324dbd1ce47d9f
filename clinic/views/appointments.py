"""
Appointment booking and management views.

Patients browse approved doctors, book slots and cancel their own
bookings; doctors review incoming requests and approve, reject or
complete them.  Approving a request sends the approval notice to the
patient through the notification dispatcher.
"""
from __future__ import annotations

from django.conf import settings
from django.core.cache import cache
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle

from clinic.models import Appointment
from clinic.permissions import IsApprovedDoctor, IsDoctorRole, IsPatientRole
from clinic.serializers.appointments import (
    AppointmentListQuerySerializer,
    BookAppointmentSerializer,
    DoctorQuerySerializer,
    NotesSerializer,
    RejectSerializer,
)
from clinic.services import appointments as svc
from clinic.services.doctors import doctor_cache_key, list_doctors


def _get_appointment(pk: int) -> Appointment:
    appt = Appointment.objects.select_related('patient', 'doctor').filter(pk=pk).first()
    if not appt:
        raise NotFound('appointment not found')
    return appt


def _page(qs, q):
    rows, total, page, page_size = svc.paginate(qs, q.get('page') or 1, q.get('pageSize') or 20)
    return {
        'ok': True,
        'data': [svc.serialize_appointment(a) for a in rows],
        'pagination': {'total': total, 'page': page, 'pageSize': page_size},
    }


def service_error(e: Exception) -> Response:
    if isinstance(e, PermissionError):
        return Response({'ok': False, 'detail': str(e)}, status=403)
    if isinstance(e, LookupError):
        return Response({'ok': False, 'detail': str(e)}, status=404)
    return Response({'ok': False, 'detail': str(e)}, status=400)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPatientRole])
def available_doctors(request):
    """Approved doctors patients can book with.
    Query params:
      - q: optional name search
      - specialization: exact specialization (case-insensitive)
      - page, pageSize: pagination (optional)
    """
    q = DoctorQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    v = q.validated_data
    search = (v.get('q') or '').strip() or None
    spec = (v.get('specialization') or '').strip() or None
    page, page_size = v.get('page'), v.get('pageSize')

    cache_key = doctor_cache_key(q=search, specialization=spec, page=page, page_size=page_size)
    cached = cache.get(cache_key)
    if cached:
        return Response(cached)

    doctors, total = list_doctors(q=search, specialization=spec, page=page, page_size=page_size)
    payload = {'ok': True, 'data': doctors,
               'pagination': {'total': total, 'page': page or 1, 'pageSize': page_size or total}}
    cache.set(cache_key, payload, settings.DOCTOR_LIST_CACHE_SECONDS)
    return Response(payload)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
@throttle_classes([ScopedRateThrottle])
def book(request):
    s = BookAppointmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    try:
        appt = svc.book_appointment(
            request.user, doctor_id=v['doctorId'], appointment_date=v['appointmentDate'],
            start_time=v['startTime'], end_time=v['endTime'], request_message=v.get('requestMessage', ''),
        )
    except (PermissionError, LookupError, ValueError) as e:
        return service_error(e)
    return Response({'ok': True, 'message': 'Appointment request sent to doctor',
                     'data': svc.serialize_appointment(appt)}, status=201)

book.cls.throttle_scope = 'booking'


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPatientRole])
def my_appointments(request):
    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = Appointment.objects.select_related('patient', 'doctor').filter(patient=request.user)
    if q.validated_data.get('status'):
        qs = qs.filter(status=q.validated_data['status'])
    return Response(_page(qs.order_by('-appointment_date', '-start_time'), q.validated_data))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def doctor_requests(request):
    """Requests addressed to the current doctor, ``pending`` unless ``status`` is given."""
    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    status = q.validated_data.get('status') or Appointment.STATUS_PENDING
    qs = (Appointment.objects.select_related('patient', 'doctor')
          .filter(doctor=request.user, status=status)
          .order_by('-created_at'))
    return Response(_page(qs, q.validated_data))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def doctor_appointments(request):
    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = Appointment.objects.select_related('patient', 'doctor').filter(doctor=request.user)
    if q.validated_data.get('status'):
        qs = qs.filter(status=q.validated_data['status'])
    if q.validated_data.get('date'):
        qs = qs.filter(appointment_date=q.validated_data['date'])
    return Response(_page(qs.order_by('appointment_date', 'start_time'), q.validated_data))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsApprovedDoctor])
def approve(request, pk: int):
    s = NotesSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = _get_appointment(pk)
    try:
        appt, results = svc.approve_appointment(request.user, appt, notes=s.validated_data.get('notes'))
    except (PermissionError, ValueError) as e:
        return service_error(e)
    return Response({'ok': True, 'message': 'Appointment approved successfully',
                     'data': svc.serialize_appointment(appt), 'notification': results})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsApprovedDoctor])
def reject(request, pk: int):
    s = RejectSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = _get_appointment(pk)
    try:
        appt = svc.reject_appointment(request.user, appt, reason=s.validated_data.get('reason'))
    except (PermissionError, ValueError) as e:
        return service_error(e)
    return Response({'ok': True, 'message': 'Appointment rejected', 'data': svc.serialize_appointment(appt)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsApprovedDoctor])
def complete(request, pk: int):
    s = NotesSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = _get_appointment(pk)
    try:
        appt = svc.complete_appointment(request.user, appt, notes=s.validated_data.get('notes'))
    except (PermissionError, ValueError) as e:
        return service_error(e)
    return Response({'ok': True, 'data': svc.serialize_appointment(appt)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
def cancel(request, pk: int):
    appt = _get_appointment(pk)
    try:
        appt = svc.cancel_appointment(request.user, appt)
    except (PermissionError, ValueError) as e:
        return service_error(e)
    return Response({'ok': True, 'data': svc.serialize_appointment(appt)})
