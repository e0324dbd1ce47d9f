"""
Prescription views.

Approved doctors issue one prescription per approved or completed
appointment and may amend it afterwards.  Patients read their own,
administrators list and delete any prescription.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.models import Prescription, User
from clinic.permissions import IsApprovedDoctor, IsDoctorRole, IsPatientRole, is_admin_user
from clinic.serializers.clinical import DocumentQuerySerializer, PrescriptionSerializer, PrescriptionUpdateSerializer
from clinic.services import clinical
from clinic.services.appointments import paginate
from clinic.views.appointments import service_error


def _prescriptions():
    return Prescription.objects.select_related('patient', 'doctor', 'appointment')


def _get_prescription(pk: int, user: User) -> Prescription:
    rx = _prescriptions().filter(pk=pk).first()
    if not rx:
        raise NotFound('prescription not found')
    if not clinical.can_view(user, rx):
        raise PermissionDenied('You do not have permission to view this prescription')
    return rx


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
        'data': [clinical.serialize_prescription(rx) for rx in rows],
        'pagination': {'total': total, 'page': page, 'pageSize': page_size},
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def prescriptions(request):
    """``GET`` lists every prescription (administrators); ``POST`` issues one (approved doctors)."""
    if request.method == 'GET':
        if not is_admin_user(request.user):
            raise PermissionDenied('Only administrators can list all prescriptions')
        return _list(request, _prescriptions())

    if not IsApprovedDoctor().has_permission(request, None):
        raise PermissionDenied('Only approved doctors can issue prescriptions')
    s = PrescriptionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        rx = clinical.create_prescription(request.user, **s.validated_data)
    except (PermissionError, LookupError, ValueError) as e:
        return service_error(e)
    return Response({'ok': True, 'message': 'Prescription created successfully',
                     'data': clinical.serialize_prescription(rx)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPatientRole])
def my_prescriptions(request):
    return _list(request, _prescriptions().filter(patient=request.user))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def doctor_prescriptions(request):
    """Prescriptions the current doctor issued; ``patientId`` narrows to one patient."""
    return _list(request, _prescriptions().filter(doctor=request.user))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def prescription_for_appointment(request, pk: int):
    rx = _prescriptions().filter(appointment_id=pk).first()
    if not rx:
        raise NotFound('no prescription for this appointment')
    if not clinical.can_view(request.user, rx):
        raise PermissionDenied('You do not have permission to view this prescription')
    return Response({'ok': True, 'data': clinical.serialize_prescription(rx)})


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def prescription_detail(request, pk: int):
    rx = _get_prescription(pk, request.user)
    if request.method == 'GET':
        return Response({'ok': True, 'data': clinical.serialize_prescription(rx)})
    try:
        if request.method == 'PUT':
            s = PrescriptionUpdateSerializer(data=request.data, partial=True)
            s.is_valid(raise_exception=True)
            rx = clinical.update_prescription(request.user, rx, s.validated_data)
            return Response({'ok': True, 'message': 'Prescription updated successfully',
                             'data': clinical.serialize_prescription(rx)})
        clinical.delete_document(request.user, rx)
    except (PermissionError, ValueError) as e:
        return service_error(e)
    return Response(status=status.HTTP_204_NO_CONTENT)
