import pytest
from tests.test_utils_seed import ensure_technician, auth_headers
from jollybaba.errors import ApiError, ValidationError, PaidExceedsAmount, DuplicateImei, NotFound


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    assert resp.status_code == 404
    body = resp.get_json()
    assert body['error'] == 'Not Found'
    assert 'message' in body


def test_api_error_payload_shape():
    err = ValidationError('Each item needs model and imei', error='INVALID_ITEM', extra={'item': {'model': ''}})
    assert err.code == 400
    assert err.to_dict() == {'error': 'INVALID_ITEM', 'message': 'Each item needs model and imei', 'item': {'model': ''}}
    assert PaidExceedsAmount().to_dict()['error'] == 'PAID_TOO_HIGH'
    assert DuplicateImei().code == 409
    assert NotFound().code == 404
    assert issubclass(NotFound, ApiError)


def test_internal_error_shape_outside_production(client, monkeypatch):
    tech = ensure_technician('err@example.com')
    import jollybaba.routes.khatabook as kb_routes

    class BoomSession:
        def execute(self, *a, **k):
            raise RuntimeError('explode')

    monkeypatch.setattr(kb_routes, 'get_db', lambda: BoomSession())
    resp = client.get('/api/khatabook', headers=auth_headers(tech))
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['error'] == 'Internal server error'
    assert body['detail'] == 'explode'
    assert 'RuntimeError' in body['stack']


def test_internal_error_hides_detail_in_production(client, app_ctx, monkeypatch):
    tech = ensure_technician('err@example.com')
    app_ctx.config['APP_ENV'] = 'production'
    import jollybaba.routes.khatabook as kb_routes

    class BoomSession:
        def execute(self, *a, **k):
            raise RuntimeError('explode')

    monkeypatch.setattr(kb_routes, 'get_db', lambda: BoomSession())
    body = client.get('/api/khatabook', headers=auth_headers(tech)).get_json()
    assert body['error'] == 'Internal server error'
    assert 'detail' not in body
    assert 'stack' not in body


def test_health(client):
    resp = client.get('/health')
    assert resp.status_code == 200
    assert resp.get_json() == {'status': 'ok', 'db': 'up'}
