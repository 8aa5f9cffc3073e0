import pytest
from rest_framework.test import APIClient

from practice.models import AuditLog, Practitioner

pytestmark = pytest.mark.django_db


def login(client, email, password):
    return client.post('/api/auth/login', {'email': email, 'password': password}, format='json')


def test_login_returns_token_and_jwt_pair(practitioner):
    client = APIClient()
    r = login(client, 'DR.MARTIN@example.fr', 'P@ssw0rd1')
    assert r.status_code == 200
    data = r.data['data']
    assert data['token'] and data['jwt_access'] and data['jwt_refresh']
    assert data['user']['practitioner']['id'] == str(practitioner.id)
    assert AuditLog.objects.filter(action='login', detail__result='ok').exists()


def test_login_with_wrong_password_is_401(practitioner):
    r = login(APIClient(), 'dr.martin@example.fr', 'mauvaismdp')
    assert r.status_code == 401
    assert r.data['error'] == 'Identifiants incorrects'
    assert AuditLog.objects.filter(action='login', detail__result='fail').exists()


def test_login_validation_messages():
    r = APIClient().post('/api/auth/login', {'email': 'pas-un-email', 'password': 'x'}, format='json')
    assert r.status_code == 400
    assert r.data['error'] == "Format d'email invalide"
    assert 'details' in r.data


def test_token_authenticates_following_requests(practitioner):
    client = APIClient()
    token = login(client, 'dr.martin@example.fr', 'P@ssw0rd1').data['data']['token']
    client.credentials(HTTP_AUTHORIZATION=f'Token {token}')
    r = client.get('/api/auth/user')
    assert r.status_code == 200
    assert r.data['data']['user']['email'] == 'dr.martin@example.fr'


def test_jwt_access_token_is_accepted(practitioner):
    client = APIClient()
    access = login(client, 'dr.martin@example.fr', 'P@ssw0rd1').data['data']['jwt_access']
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')
    assert client.get('/api/patients').status_code == 200


def test_refresh_returns_new_access(practitioner):
    client = APIClient()
    refresh = login(client, 'dr.martin@example.fr', 'P@ssw0rd1').data['data']['jwt_refresh']
    r = client.post('/api/auth/refresh', {'refresh': refresh}, format='json')
    assert r.status_code == 200
    assert r.data['data']['jwt_access']

    r = client.post('/api/auth/refresh', {'refresh': 'garbage'}, format='json')
    assert r.status_code == 401


def test_register_creates_user_and_practitioner():
    client = APIClient()
    r = client.post('/api/auth/register', {
        'email': 'Nouveau@Example.fr', 'password': 'P@ssw0rd1', 'first_name': 'Léa', 'last_name': 'Petit',
    }, format='json')
    assert r.status_code == 201
    p = Practitioner.objects.get(email='nouveau@example.fr')
    assert p.user.check_password('P@ssw0rd1')
    assert r.data['data']['token']

    again = client.post('/api/auth/register', {
        'email': 'nouveau@example.fr', 'password': 'P@ssw0rd1', 'first_name': 'Léa', 'last_name': 'Petit',
    }, format='json')
    assert again.status_code == 400


def test_register_rejects_short_password():
    r = APIClient().post('/api/auth/register', {
        'email': 'a@example.fr', 'password': 'court', 'first_name': 'A', 'last_name': 'B',
    }, format='json')
    assert r.status_code == 400
    assert r.data['error'] == 'Le mot de passe doit contenir au moins 8 caractères'


def test_change_password(api, practitioner):
    r = api.put('/api/auth/user', {'currentPassword': 'faux-mot-de-passe', 'newPassword': 'NouveauP@ss1'},
                format='json')
    assert r.status_code == 400
    r = api.put('/api/auth/user', {'currentPassword': 'P@ssw0rd1', 'newPassword': 'NouveauP@ss1'}, format='json')
    assert r.status_code == 200
    practitioner.user.refresh_from_db()
    assert practitioner.user.check_password('NouveauP@ss1')


def test_logout_drops_token(practitioner):
    client = APIClient()
    token = login(client, 'dr.martin@example.fr', 'P@ssw0rd1').data['data']['token']
    client.credentials(HTTP_AUTHORIZATION=f'Token {token}')
    r = client.post('/api/auth/logout', {}, format='json')
    assert r.status_code == 200
    assert r.data['data']['blacklisted'] == 1
    assert client.get('/api/auth/user').status_code == 401


def test_practitioner_list_is_public(practitioner, other_practitioner):
    r = APIClient().get('/api/auth/practitioners')
    assert r.status_code == 200
    assert {p['email'] for p in r.data['data']} == {'dr.martin@example.fr', 'dr.durand@example.fr'}


def test_unauthenticated_api_call_is_401():
    r = APIClient().get('/api/patients')
    assert r.status_code == 401
    assert r.data['error'] == 'Non autorisé'


def test_user_without_practitioner_profile_is_403(django_user_model):
    user = django_user_model.objects.create_user(username='admin', email='admin@example.fr', password='P@ssw0rd1')
    client = APIClient()
    client.force_authenticate(user=user)
    assert client.get('/api/patients').status_code == 403


def test_login_is_throttled(practitioner, monkeypatch):
    from rest_framework.throttling import ScopedRateThrottle
    monkeypatch.setattr(ScopedRateThrottle, 'THROTTLE_RATES', {'login': '2/min'})
    client = APIClient()
    codes = [login(client, 'dr.martin@example.fr', 'mauvaismdp').status_code for _ in range(3)]
    assert codes == [401, 401, 429]
