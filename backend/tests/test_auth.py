from datetime import timedelta
from flask_jwt_extended import create_access_token
from tests.test_utils_seed import ensure_technician, ensure_admin, auth_headers
from jollybaba.models.technician import Technician


def test_login_and_me(client):
    ensure_technician('t@example.com', name='Tina', password='pw')
    resp = client.post('/api/auth/login', json={'email': 't@example.com', 'password': 'pw'})
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['user'] == {'id': body['user']['id'], 'name': 'Tina', 'email': 't@example.com', 'role': 'technician'}
    me = client.get('/api/me', headers={'Authorization': f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.get_json()['email'] == 't@example.com'


def test_login_requires_email_and_password(client):
    resp = client.post('/api/auth/login', json={'email': 't@example.com'})
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Email and password required'


def test_login_failures_are_indistinguishable(client, session):
    ensure_technician('t@example.com', password='pw')
    no_hash = Technician(name='Nohash', email='nohash@example.com', role='technician')
    session.add(no_hash); session.commit()
    for payload in (
        {'email': 'missing@example.com', 'password': 'pw'},
        {'email': 't@example.com', 'password': 'wrong'},
        {'email': 'nohash@example.com', 'password': 'anything'},
    ):
        resp = client.post('/api/auth/login', json=payload)
        assert resp.status_code == 401
        assert resp.get_json()['error'] == 'Invalid credentials'


def test_me_without_token(client):
    resp = client.get('/api/me')
    assert resp.status_code == 401
    body = resp.get_json()
    assert body['error'] == 'Unauthorized'
    assert body['message']


def test_malformed_and_expired_tokens(client, app_ctx):
    tech = ensure_technician('t@example.com')
    bad = client.get('/api/me', headers={'Authorization': 'Bearer not-a-token'})
    assert bad.status_code == 401
    assert bad.get_json()['error'] == 'Unauthorized'
    expired = create_access_token(identity=str(tech.id), expires_delta=timedelta(seconds=-1),
                                  additional_claims={'email': tech.email, 'name': tech.name, 'role': tech.role})
    resp = client.get('/api/me', headers={'Authorization': f'Bearer {expired}'})
    assert resp.status_code == 401
    assert resp.get_json()['message'] == 'Invalid or expired token'


def test_token_carries_identity_claims(app_ctx):
    from flask_jwt_extended import decode_token
    tech = ensure_technician('claims@example.com', name='Claire')
    claims = decode_token(auth_headers(tech)['Authorization'].split(' ', 1)[1])
    assert claims['sub'] == str(tech.id)
    assert claims['email'] == 'claims@example.com'
    assert claims['name'] == 'Claire'
    assert claims['role'] == 'technician'
    assert claims['exp'] - claims['iat'] == 4 * 3600


def test_admin_only_routes_reject_technicians(client):
    tech = ensure_technician('t@example.com')
    resp = client.get('/api/technicians', headers=auth_headers(tech))
    assert resp.status_code == 403
    assert resp.get_json()['error'] == 'Forbidden'
    resp = client.post('/api/technicians', json={'name': 'X', 'email': 'x@example.com', 'password': 'pw'},
                       headers=auth_headers(tech))
    assert resp.status_code == 403
