"""
Second-opinion views.

Patients submit and withdraw requests; approved doctors take requests
from the pending pool, review the cases assigned to them and submit
their opinion, which notifies the patient.
"""
from __future__ import annotations

from django.db.models import Case, IntegerField, Value, When
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.models import SecondOpinionRequest
from clinic.permissions import IsApprovedDoctor, IsDoctorRole, IsPatientRole
from clinic.serializers.second_opinions import OpinionSerializer, SecondOpinionQuerySerializer, SubmitSecondOpinionSerializer
from clinic.services import second_opinions as svc
from clinic.services.appointments import paginate
from clinic.views.appointments import service_error

_PRIORITY_RANK = Case(
    When(priority='emergency', then=Value(0)),
    When(priority='urgent', then=Value(1)),
    default=Value(2),
    output_field=IntegerField(),
)


def _get_request(pk: int) -> SecondOpinionRequest:
    req = SecondOpinionRequest.objects.select_related('patient', 'doctor').filter(pk=pk).first()
    if not req:
        raise NotFound('second opinion request not found')
    return req


def _list(request, qs):
    q = SecondOpinionQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    v = q.validated_data
    if v.get('status'):
        qs = qs.filter(status=v['status'])
    rows, total, page, page_size = paginate(qs, v.get('page') or 1, v.get('pageSize') or 20)
    return Response({
        'ok': True,
        'data': [svc.serialize_request(r) for r in rows],
        'pagination': {'total': total, 'page': page, 'pageSize': page_size},
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
def submit(request):
    s = SubmitSecondOpinionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        req = svc.submit_request(request.user, **s.validated_data)
    except (PermissionError, LookupError, ValueError) as e:
        return service_error(e)
    req = _get_request(req.pk)
    return Response({'ok': True, 'message': 'Second opinion request submitted successfully',
                     'data': svc.serialize_request(req)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPatientRole])
def my_requests(request):
    qs = SecondOpinionRequest.objects.select_related('patient', 'doctor') \
        .filter(patient=request.user).order_by('-created_at')
    return _list(request, qs)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def detail(request, pk: int):
    req = _get_request(pk)
    if not svc.can_view(request.user, req):
        raise PermissionDenied('You do not have permission to view this request')
    return Response({'ok': True, 'data': svc.serialize_request(req)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
def cancel(request, pk: int):
    req = _get_request(pk)
    try:
        req = svc.cancel_request(request.user, req)
    except (PermissionError, ValueError) as e:
        return service_error(e)
    return Response({'ok': True, 'data': svc.serialize_request(req)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsApprovedDoctor])
def pending_pool(request):
    """Unassigned requests, most urgent first."""
    qs = SecondOpinionRequest.objects.select_related('patient', 'doctor') \
        .filter(status=SecondOpinionRequest.STATUS_PENDING, doctor__isnull=True) \
        .annotate(rank=_PRIORITY_RANK).order_by('rank', 'created_at')
    return _list(request, qs)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def doctor_cases(request):
    qs = SecondOpinionRequest.objects.select_related('patient', 'doctor') \
        .filter(doctor=request.user).order_by('-created_at')
    return _list(request, qs)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsApprovedDoctor])
def accept(request, pk: int):
    req = _get_request(pk)
    try:
        req = svc.accept_request(request.user, req)
    except (PermissionError, ValueError) as e:
        return service_error(e)
    return Response({'ok': True, 'data': svc.serialize_request(req)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsApprovedDoctor])
def start_review(request, pk: int):
    req = _get_request(pk)
    try:
        req = svc.start_review(request.user, req)
    except (PermissionError, ValueError) as e:
        return service_error(e)
    return Response({'ok': True, 'data': svc.serialize_request(req)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsApprovedDoctor])
def submit_opinion(request, pk: int):
    req = _get_request(pk)
    s = OpinionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        req, results = svc.submit_opinion(request.user, req, **s.validated_data)
    except (PermissionError, ValueError) as e:
        return service_error(e)
    return Response({'ok': True, 'message': 'Second opinion submitted successfully',
                     'data': svc.serialize_request(req), 'notification': results})
