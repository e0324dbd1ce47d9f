"""
Manual reminder endpoints for administrators.

``test_reminder`` forces the 24-hour reminder to both parties of one
appointment without touching its reminder state; ``run_scan`` runs a
single reminder tick in the request and returns its report.
"""
from __future__ import annotations

import logging

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.models import Appointment
from clinic.permissions import IsAdminRole
from clinic.services.audit import log_action
from clinic.services.reminders import scan_due_reminders, send_test_reminder

logger = logging.getLogger(__name__)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def test_reminder(request, pk: int):
    try:
        results = send_test_reminder(pk)
    except Appointment.DoesNotExist:
        return Response({'ok': False, 'detail': 'Appointment not found'}, status=404)
    log_action(user=request.user, action='reminder_test', object_type='appointment', object_id=pk, detail=results)
    return Response({'ok': True, 'message': 'Test reminder sent', **results})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def run_scan(request):
    report = scan_due_reminders()
    return Response({'ok': True, 'data': report.as_dict()})
