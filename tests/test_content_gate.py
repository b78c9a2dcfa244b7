"""
Protected resource delivery. Checks run session -> subscription -> registry -> file,
and the first failing stage decides the status code.
"""
import pytest

from audit.services import AuditLog
from content.gate import access_gate
from content.registry import ResourceRegistry

PDF_BYTES = b'%PDF-1.4\n' + b'x' * (200 * 1024)


@pytest.fixture
def resource_root(tmp_path, monkeypatch):
    monkeypatch.setattr(access_gate.registry, 'root', tmp_path)
    (tmp_path / 'health-wellness.pdf').write_bytes(PDF_BYTES)
    return tmp_path


def test_anonymous_caller_gets_401_even_for_unknown_resource(client, resource_root):
    assert client.get('/content/articles/health-wellness').status_code == 401
    assert client.get('/content/articles/does-not-exist').status_code == 401


def test_invalid_token_gets_401(client, resource_root):
    response = client.get('/content/articles/health-wellness', headers={'Authorization': 'Bearer not-a-jwt'})

    assert response.status_code == 401
    assert response.headers['WWW-Authenticate'] == 'Bearer'


def test_caller_without_subscription_gets_403_even_for_unknown_resource(client, resource_root, auth_headers):
    headers = auth_headers('free_user')

    assert client.get('/content/articles/health-wellness', headers=headers).status_code == 403
    assert client.get('/content/articles/does-not-exist', headers=headers).status_code == 403


def test_expired_subscription_gets_403(client, resource_root, auth_headers, subscribed_user):
    user_id = subscribed_user(days=-1)

    response = client.get('/content/articles/health-wellness', headers=auth_headers(user_id))

    assert response.status_code == 403


@pytest.mark.parametrize('resource_id', ['does-not-exist', 'health-wellness.pdf', '..', '%2E%2E%2Fconfig.py'])
def test_subscriber_gets_404_for_unregistered_ids(client, resource_root, auth_headers, subscribed_user, resource_id):
    headers = auth_headers(subscribed_user())

    response = client.get(f'/content/articles/{resource_id}', headers=headers)

    assert response.status_code == 404


def test_registered_but_missing_file_is_404(client, resource_root, auth_headers, subscribed_user, caplog):
    headers = auth_headers(subscribed_user())

    response = client.get('/content/articles/advanced-strategies', headers=headers)

    assert response.status_code == 404
    assert any(r.name == 'content.gate' and r.levelname == 'ERROR' for r in caplog.records)


def test_subscriber_receives_file_with_no_cache_headers(db, client, resource_root, auth_headers, subscribed_user):
    user_id = subscribed_user()

    response = client.get('/content/articles/health-wellness', headers=auth_headers(user_id))

    assert response.status_code == 200
    assert response.content == PDF_BYTES
    assert response.headers['content-type'] == 'application/pdf'
    assert response.headers['cache-control'] == 'no-cache, no-store, must-revalidate'
    assert response.headers['pragma'] == 'no-cache'
    assert response.headers['expires'] == '0'
    assert response.headers['content-disposition'] == 'attachment; filename="health-wellness.pdf"'
    db.expire_all()
    entry = AuditLog.list(db, action='resource_accessed')[0]
    assert entry.user_id == user_id
    assert entry.details == {'resource_id': 'health-wellness', 'size': len(PDF_BYTES)}


def test_session_cookie_is_accepted(client, resource_root, auth_headers, subscribed_user):
    token = auth_headers(subscribed_user())['Authorization'].split(' ', 1)[1]
    client.cookies.set('session', token)

    response = client.get('/content/articles/health-wellness')

    assert response.status_code == 200


def test_public_listing_has_no_file_locations(client):
    response = client.get('/content/public')

    assert response.status_code == 200
    articles = response.json()['articles']
    assert {a['id'] for a in articles} == {'health-wellness', 'advanced-strategies'}
    assert all('file_name' not in a for a in articles)


def test_article_listing_requires_subscription(client, resource_root, auth_headers, subscribed_user):
    assert client.get('/content/articles').status_code == 401
    assert client.get('/content/articles', headers=auth_headers('free_user')).status_code == 403

    response = client.get('/content/articles', headers=auth_headers(subscribed_user()))

    assert response.status_code == 200
    body = response.json()
    assert body['subscription']['plan_id'] == 'starter'
    sizes = {a['id']: a['size'] for a in body['articles']}
    assert sizes == {'health-wellness': len(PDF_BYTES), 'advanced-strategies': None}


def test_verify_reports_access(client, auth_headers, subscribed_user):
    assert client.get('/content/verify', headers=auth_headers('free_user')).json() == {
        'has_access': False, 'subscription': None,
    }

    body = client.get('/content/verify', headers=auth_headers(subscribed_user())).json()

    assert body['has_access'] is True
    assert body['subscription']['status'] == 'active'


@pytest.mark.parametrize('file_name', ['../config.py', '/etc/passwd', 'a/b.pdf', '..', '', 'sub\\x.pdf'])
def test_registry_rejects_path_like_file_names(tmp_path, file_name):
    with pytest.raises(ValueError):
        ResourceRegistry(str(tmp_path), {'bad': {'file_name': file_name, 'title': 'Bad'}})


def test_registry_resolves_only_registered_ids(tmp_path):
    registry = ResourceRegistry(str(tmp_path), {'guide': {'file_name': 'guide.pdf', 'title': 'Guide'}})

    assert registry.resolve('guide') == tmp_path / 'guide.pdf'
    assert registry.resolve('guide.pdf') is None
    assert registry.resolve('../guide') is None
