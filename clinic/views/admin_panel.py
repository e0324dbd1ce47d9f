"""
Administrator views: appointment overview, doctor moderation and reports.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.models import Appointment, User
from clinic.permissions import IsAdminRole
from clinic.serializers.appointments import AppointmentListQuerySerializer, DoctorQuerySerializer, RejectSerializer
from clinic.services.accounts import moderate_doctor
from clinic.services.appointments import paginate, serialize_appointment
from clinic.services.audit import log_action
from clinic.services.doctors import format_doctor, invalidate_doctor_cache, list_doctors
from clinic.services.reports import appointment_report


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def all_appointments(request):
    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    v = q.validated_data
    qs = Appointment.objects.select_related('patient', 'doctor')
    if v.get('status'):
        qs = qs.filter(status=v['status'])
    if v.get('doctorId'):
        qs = qs.filter(doctor_id=v['doctorId'])
    if v.get('date'):
        qs = qs.filter(appointment_date=v['date'])
    rows, total, page, page_size = paginate(qs.order_by('-appointment_date', '-start_time'),
                                            v.get('page') or 1, v.get('pageSize') or 20)
    return Response({
        'ok': True,
        'data': [serialize_appointment(a) for a in rows],
        'pagination': {'total': total, 'page': page, 'pageSize': page_size,
                       'pages': (total + page_size - 1) // page_size},
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def doctors(request):
    """All doctors, optionally filtered by moderation ``status``."""
    q = DoctorQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    v = q.validated_data
    data, total = list_doctors(status=v.get('status'), q=(v.get('q') or '').strip() or None,
                               specialization=(v.get('specialization') or '').strip() or None,
                               page=v.get('page'), page_size=v.get('pageSize'))
    return Response({'ok': True, 'data': data,
                     'pagination': {'total': total, 'page': v.get('page') or 1, 'pageSize': v.get('pageSize') or total}})


def _moderate(request, pk: int, status: str):
    doctor = User.objects.filter(pk=pk, role=User.ROLE_DOCTOR).first()
    if not doctor:
        raise NotFound('doctor not found')
    detail = {'status': status}
    if status == User.STATUS_REJECTED:
        s = RejectSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        detail['reason'] = s.validated_data.get('reason') or ''
    moderate_doctor(doctor, status)
    invalidate_doctor_cache()
    log_action(user=request.user, action=f'doctor_{status}', object_type='user', object_id=doctor.id, detail=detail)
    return Response({'ok': True, 'data': format_doctor(doctor)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def approve_doctor(request, pk: int):
    return _moderate(request, pk, User.STATUS_APPROVED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def reject_doctor(request, pk: int):
    return _moderate(request, pk, User.STATUS_REJECTED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def appointment_reports(request):
    return Response({'ok': True, 'data': appointment_report()})
