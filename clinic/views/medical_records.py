"""
Medical record views.

Records are written by the doctor of an approved or completed
appointment.  A doctor's view of a patient's history is limited to the
records that doctor wrote.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.models import MedicalRecord, User
from clinic.permissions import IsApprovedDoctor, IsDoctorRole, IsPatientRole, is_admin_user
from clinic.serializers.clinical import DocumentQuerySerializer, MedicalRecordSerializer, MedicalRecordUpdateSerializer
from clinic.services import clinical
from clinic.services.appointments import paginate
from clinic.views.appointments import service_error


def _records():
    return MedicalRecord.objects.select_related('patient', 'doctor', 'appointment')


def _list(request, qs):
    q = DocumentQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    v = q.validated_data
    if v.get('status'):
        qs = qs.filter(status=v['status'])
    if v.get('patientId'):
        qs = qs.filter(patient_id=v['patientId'])
    if v.get('doctorId'):
        qs = qs.filter(doctor_id=v['doctorId'])
    rows, total, page, page_size = paginate(qs.order_by('-created_at'), v.get('page') or 1, v.get('pageSize') or 20)
    return Response({
        'ok': True,
        'data': [clinical.serialize_record(r) for r in rows],
        'pagination': {'total': total, 'page': page, 'pageSize': page_size},
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def medical_records(request):
    """``GET`` lists every record (administrators); ``POST`` writes one (approved doctors)."""
    if request.method == 'GET':
        if not is_admin_user(request.user):
            raise PermissionDenied('Only administrators can list all medical records')
        return _list(request, _records())

    if not IsApprovedDoctor().has_permission(request, None):
        raise PermissionDenied('Only approved doctors can create medical records')
    s = MedicalRecordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        record = clinical.create_medical_record(request.user, **s.validated_data)
    except (PermissionError, LookupError, ValueError) as e:
        return service_error(e)
    return Response({'ok': True, 'message': 'Medical record created successfully',
                     'data': clinical.serialize_record(record)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPatientRole])
def my_records(request):
    return _list(request, _records().filter(patient=request.user))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def doctor_records(request):
    return _list(request, _records().filter(doctor=request.user))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def patient_records(request, pk: int):
    user = request.user
    if not (user.is_doctor or is_admin_user(user)):
        raise PermissionDenied('Only doctors and administrators can view patient histories')
    if not User.objects.filter(pk=pk, role=User.ROLE_PATIENT).exists():
        raise NotFound('patient not found')
    qs = _records().filter(patient_id=pk)
    if not is_admin_user(user):
        qs = qs.filter(doctor=user)
    return _list(request, qs)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def record_detail(request, pk: int):
    record = _records().filter(pk=pk).first()
    if not record:
        raise NotFound('medical record not found')
    if not clinical.can_view(request.user, record):
        raise PermissionDenied('You do not have permission to view this medical record')
    if request.method == 'GET':
        return Response({'ok': True, 'data': clinical.serialize_record(record)})
    try:
        if request.method == 'PUT':
            s = MedicalRecordUpdateSerializer(data=request.data, partial=True)
            s.is_valid(raise_exception=True)
            record = clinical.update_medical_record(request.user, record, s.validated_data)
            return Response({'ok': True, 'message': 'Medical record updated successfully',
                             'data': clinical.serialize_record(record)})
        clinical.delete_document(request.user, record)
    except (PermissionError, ValueError) as e:
        return service_error(e)
    return Response(status=status.HTTP_204_NO_CONTENT)
