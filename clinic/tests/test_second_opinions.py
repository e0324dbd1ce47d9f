"""
Second-opinion workflow tests: submission, the pending pool, review and
the "second opinion ready" notice sent when the doctor submits.
"""
import pytest
from django.core import mail
from django.urls import reverse
from rest_framework.test import APIClient

from clinic.models import AuditEvent, SecondOpinionRequest, User
from clinic.services import second_opinions as svc

pytestmark = pytest.mark.django_db


@pytest.fixture
def other_doctor(db):
    return User.objects.create_user(
        username='drsara', password='Passw0rd!123', role=User.ROLE_DOCTOR,
        first_name='Sara', last_name='Malik', email='sara@example.com',
        specialization='Dermatology', experience=4, education='MBBS', license_id='PMDC-2',
    )


def api(user):
    client = APIClient()
    client.force_authenticate(user)
    return client


def submit(patient, **kw):
    kw.setdefault('chief_complaint', 'Recurring chest pain after exercise')
    return svc.submit_request(patient, **kw)


# --- submission ------------------------------------------------------------

def test_submit_with_doctor_is_assigned(patient, doctor):
    res = api(patient).post(reverse('submit_second_opinion'), {
        'doctorId': doctor.id,
        'chiefComplaint': '<b>Chest pain</b> after exercise',
        'allergies': 'Penicillin',
        'priority': 'urgent',
    }, format='json')
    assert res.status_code == 201
    data = res.json()['data']
    assert data['status'] == 'assigned'
    assert data['doctorName'] == 'John Smith'
    assert data['chiefComplaint'] == 'Chest pain after exercise'
    assert data['opinion'] is None
    req = SecondOpinionRequest.objects.get(pk=data['id'])
    assert req.assigned_at is not None
    assert AuditEvent.objects.filter(action='second_opinion_submit', object_id=req.id).exists()


def test_submit_without_doctor_goes_to_pool(patient):
    req = submit(patient)
    assert req.status == SecondOpinionRequest.STATUS_PENDING
    assert req.doctor is None


def test_submit_with_unapproved_doctor_not_found(patient, doctor):
    doctor.status = User.STATUS_PENDING
    doctor.save(update_fields=['status'])
    res = api(patient).post(reverse('submit_second_opinion'),
                            {'doctorId': doctor.id, 'chiefComplaint': 'Rash'}, format='json')
    assert res.status_code == 404
    assert SecondOpinionRequest.objects.count() == 0


def test_only_patients_submit(doctor):
    res = api(doctor).post(reverse('submit_second_opinion'), {'chiefComplaint': 'Rash'}, format='json')
    assert res.status_code == 403


# --- pool and visibility ---------------------------------------------------

def test_pool_lists_most_urgent_first(patient, doctor):
    normal = submit(patient)
    emergency = submit(patient, priority='emergency')
    urgent = submit(patient, priority='urgent')
    submit(patient, doctor_id=doctor.id)
    res = api(doctor).get(reverse('second_opinion_pool'))
    assert res.status_code == 200
    assert [r['id'] for r in res.json()['data']] == [emergency.id, urgent.id, normal.id]


def test_visibility(patient, doctor, other_doctor, admin_user):
    pooled = submit(patient)
    assigned = submit(patient, doctor_id=doctor.id)
    assert svc.can_view(other_doctor, pooled)
    assert not svc.can_view(other_doctor, assigned)
    assert svc.can_view(doctor, assigned)
    assert svc.can_view(admin_user, assigned)
    stranger = User.objects.create_user(username='bilal', password='Passw0rd!123', role=User.ROLE_PATIENT)
    assert api(stranger).get(reverse('second_opinion_detail', args=[assigned.id])).status_code == 403


# --- doctor workflow -------------------------------------------------------

def test_accept_from_pool_once(patient, doctor, other_doctor):
    req = submit(patient)
    res = api(doctor).post(reverse('accept_second_opinion', args=[req.id]))
    assert res.status_code == 200
    assert res.json()['data']['doctorId'] == doctor.id

    res = api(other_doctor).post(reverse('accept_second_opinion', args=[req.id]))
    assert res.status_code == 400
    req.refresh_from_db()
    assert req.doctor_id == doctor.id


def test_stale_copy_cannot_accept_taken_request(patient, doctor, other_doctor):
    stale = submit(patient)
    svc.accept_request(doctor, SecondOpinionRequest.objects.get(pk=stale.pk))
    with pytest.raises(ValueError):
        svc.accept_request(other_doctor, stale)
    stale.refresh_from_db()
    assert stale.doctor_id == doctor.id


def test_only_assigned_doctor_reviews(patient, doctor, other_doctor):
    req = submit(patient, doctor_id=doctor.id)
    assert api(other_doctor).post(reverse('start_second_opinion_review', args=[req.id])).status_code == 403
    res = api(doctor).post(reverse('start_second_opinion_review', args=[req.id]))
    assert res.status_code == 200
    assert res.json()['data']['status'] == 'under_review'


def test_doctor_cases_filter_by_status(patient, doctor):
    submit(patient, doctor_id=doctor.id)
    reviewing = submit(patient, doctor_id=doctor.id)
    svc.start_review(doctor, reviewing)
    res = api(doctor).get(reverse('second_opinion_cases'), {'status': 'under_review'})
    assert [r['id'] for r in res.json()['data']] == [reviewing.id]


def test_submitted_opinion_notifies_patient(patient, doctor):
    req = submit(patient, doctor_id=doctor.id)
    svc.start_review(doctor, req)
    res = api(doctor).post(reverse('submit_second_opinion_review', args=[req.id]), {
        'diagnosis': 'Stable angina',
        'recommendations': 'Stress test and cardiology follow-up',
        'prescribedTreatment': 'Aspirin 75mg daily',
    }, format='json')
    assert res.status_code == 200
    body = res.json()
    assert body['notification'] == {'email': True}
    assert body['data']['status'] == 'completed'
    assert body['data']['opinion']['diagnosis'] == 'Stable angina'

    assert len(mail.outbox) == 1
    msg = mail.outbox[0]
    assert msg.to == ['ayesha@example.com']
    assert msg.subject == 'Your Second Opinion is Ready - HospitalCare System'
    assert 'Summary: Stable angina' in msg.body
    assert 'Dr. John Smith' in msg.body


def test_long_diagnosis_is_summarised(patient, doctor):
    req = submit(patient, doctor_id=doctor.id)
    req, _ = svc.submit_opinion(doctor, req, diagnosis='x' * 400, recommendations='Rest')
    summary = mail.outbox[0].body.split('Summary: ')[1].splitlines()[0]
    assert len(summary) == svc.SUMMARY_MAX_CHARS
    assert summary.endswith('...')
    assert len(req.diagnosis) == 400


def test_failed_notice_keeps_opinion(patient, doctor):
    patient.email = ''
    patient.save(update_fields=['email'])
    req = submit(patient, doctor_id=doctor.id)
    req, results = svc.submit_opinion(doctor, req, diagnosis='Eczema', recommendations='Moisturise')
    assert results == {'email': False}
    req.refresh_from_db()
    assert req.status == SecondOpinionRequest.STATUS_COMPLETED
    assert req.completed_at is not None


def test_opinion_cannot_be_submitted_twice(patient, doctor):
    req = submit(patient, doctor_id=doctor.id)
    svc.submit_opinion(doctor, req, diagnosis='Eczema', recommendations='Moisturise')
    with pytest.raises(ValueError):
        svc.submit_opinion(doctor, req, diagnosis='Psoriasis', recommendations='Other')
    req.refresh_from_db()
    assert req.diagnosis == 'Eczema'
    assert len(mail.outbox) == 1


# --- cancellation ----------------------------------------------------------

def test_patient_cancels_before_review(patient, doctor):
    req = submit(patient, doctor_id=doctor.id)
    res = api(patient).post(reverse('cancel_second_opinion', args=[req.id]))
    assert res.status_code == 200
    assert res.json()['data']['status'] == 'cancelled'


def test_cannot_cancel_once_under_review(patient, doctor):
    req = submit(patient, doctor_id=doctor.id)
    svc.start_review(doctor, req)
    res = api(patient).post(reverse('cancel_second_opinion', args=[req.id]))
    assert res.status_code == 400
    req.refresh_from_db()
    assert req.status == SecondOpinionRequest.STATUS_UNDER_REVIEW


def test_cannot_cancel_someone_elses_request(patient):
    req = submit(patient)
    stranger = User.objects.create_user(username='bilal', password='Passw0rd!123', role=User.ROLE_PATIENT)
    assert api(stranger).post(reverse('cancel_second_opinion', args=[req.id])).status_code == 403
