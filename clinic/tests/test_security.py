import pytest
from django.urls import reverse
from rest_framework.test import APIClient
from clinic.models import AuditEvent, User

pytestmark = pytest.mark.django_db


def login(client, username, password):
    r = client.post(reverse('login_view'), {'username': username, 'password': password}, format='json')
    assert r.status_code in (200, 400, 401)
    return r


def test_no_role_bypass_in_login():
    client = APIClient()
    u = User.objects.create_user(username='u1', password='P@ssw0rd1', role='patient')
    # Try to escalate by sending a role
    r = client.post(reverse('login_view'), {'username': 'u1', 'password': 'P@ssw0rd1', 'role': 'admin'}, format='json')
    assert r.status_code == 200
    assert r.data['role'] == 'patient'
    u.refresh_from_db()
    assert u.role == 'patient'


def test_login_returns_jwt_and_legacy_token():
    client = APIClient()
    User.objects.create_user(username='u_jwt', password='P@ssw0rd1', role='patient')
    r = login(client, 'u_jwt', 'P@ssw0rd1')
    assert r.status_code == 200
    assert 'jwt_access' in r.data and r.data['jwt_access']
    assert 'jwt_refresh' in r.data and r.data['jwt_refresh']
    assert 'token' in r.data and r.data['token']


def test_both_token_kinds_authenticate():
    client = APIClient()
    User.objects.create_user(username='u2', password='P@ssw0rd1', role='patient')
    r = login(client, 'u2', 'P@ssw0rd1')

    client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    assert client.get(reverse('me_view')).data['user']['username'] == 'u2'

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['jwt_access']}")
    assert client.get(reverse('me_view')).data['user']['username'] == 'u2'


def test_failed_login_is_audited():
    client = APIClient()
    User.objects.create_user(username='u3', password='P@ssw0rd1', role='patient')
    r = login(client, 'u3', 'wrong-password')
    assert r.status_code == 400
    assert r.data['ok'] is False
    ev = AuditEvent.objects.get(action='login')
    assert ev.detail['result'] == 'fail' and ev.detail['username'] == 'u3'


def test_login_throttled():
    client = APIClient()
    for _ in range(10):
        login(client, 'nobody', 'nothing')
    r = client.post(reverse('login_view'), {'username': 'nobody', 'password': 'nothing'}, format='json')
    assert r.status_code == 429
    assert r.data['error']['code'] == 'throttled'


def test_register_patient():
    client = APIClient()
    r = client.post(reverse('register_view'), {
        'username': 'newpatient', 'password': 'Str0ng!Passw0rd', 'name': 'Ali Raza',
        'email': 'ali@example.com', 'phone': '03001112233',
    }, format='json')
    assert r.status_code == 201, r.data
    u = User.objects.get(username='newpatient')
    assert u.role == 'patient' and u.status == 'approved'
    assert u.first_name == 'Ali' and u.last_name == 'Raza'
    assert r.data['token']


def test_register_doctor_starts_pending():
    client = APIClient()
    payload = {
        'username': 'newdoc', 'password': 'Str0ng!Passw0rd', 'name': 'Hina Malik',
        'email': 'hina@example.com', 'role': 'doctor',
    }
    r = client.post(reverse('register_view'), payload, format='json')
    assert r.status_code == 400
    assert set(r.data['error']['message']) >= {'specialization', 'licenseId'}

    payload.update(specialization='Pediatrics', experience=6, education='MBBS, FCPS', licenseId='PMDC-77')
    r = client.post(reverse('register_view'), payload, format='json')
    assert r.status_code == 201, r.data
    assert r.data['user']['status'] == 'pending'
    assert 'pending admin approval' in r.data['detail']

    # a pending doctor cannot act on appointments yet
    client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    resp = client.post(reverse('approve_appointment', args=[1]), {}, format='json')
    assert resp.status_code == 403


def test_register_cannot_create_admin_or_duplicates():
    client = APIClient()
    User.objects.create_user(username='taken', password='P@ssw0rd1', email='taken@example.com')
    base = {'username': 'x1', 'password': 'Str0ng!Passw0rd', 'name': 'Some One', 'email': 'x1@example.com'}
    assert client.post(reverse('register_view'), {**base, 'role': 'admin'}, format='json').status_code == 400
    assert client.post(reverse('register_view'), {**base, 'username': 'taken'}, format='json').status_code == 400
    assert client.post(reverse('register_view'), {**base, 'email': 'taken@example.com'}, format='json').status_code == 400
    r = client.post(reverse('register_view'), {**base, 'password': 'password'}, format='json')
    assert r.status_code == 400


def test_rejected_doctor_cannot_log_in():
    client = APIClient()
    User.objects.create_user(username='gone', password='P@ssw0rd1', role='doctor', status='rejected',
                             is_active=False)
    assert login(client, 'gone', 'P@ssw0rd1').status_code == 400


def test_patient_cannot_reach_admin_or_doctor_endpoints():
    client = APIClient()
    User.objects.create_user(username='p', password='P@ssw0rd1', role='patient')
    client.credentials(HTTP_AUTHORIZATION=f"Token {login(client, 'p', 'P@ssw0rd1').data['token']}")
    assert client.get(reverse('admin_doctors')).status_code == 403
    assert client.get(reverse('doctor_requests')).status_code == 403
    assert client.post(reverse('test_reminder', args=[1])).status_code == 403
