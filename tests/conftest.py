import json
from datetime import datetime, timezone, timedelta
from unittest.mock import Mock, patch

import pytest

from app import create_app
from config import TestConfig
from extensions import db
from models import User
from services.credential_store import CredentialStore


class CSRFEnabledTestConfig(TestConfig):
    """Test configuration with CSRF enabled."""
    WTF_CSRF_ENABLED = True
    WTF_CSRF_CHECK_DEFAULT = True


# =============================================================================
# Fake provider HTTP
# =============================================================================

def fake_response(status_code=200, json_data=None, text=None, headers=None):
    """Build a requests.Response stand-in."""
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.headers = headers or {}
    if json_data is not None:
        response.text = json.dumps(json_data)
        response.json.return_value = json_data
    else:
        response.text = text or ''
        response.json.side_effect = ValueError('No JSON object could be decoded')
    return response


class FakeProviderHttp:
    """
    URL-routing fake for requests.request.

    Routes are (method, url prefix) pairs; the longest matching prefix wins.
    Each route replays its responses in order and repeats the last one.
    A response may also be an exception instance, which is raised.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, method, url_prefix, *responses):
        self.routes[(method.upper(), url_prefix)] = list(responses)
        return self

    def __call__(self, method, url, **kwargs):
        self.calls.append((method.upper(), url, kwargs))
        matches = [
            (prefix, responses) for (route_method, prefix), responses in self.routes.items()
            if route_method == method.upper() and url.startswith(prefix)
        ]
        if not matches:
            raise AssertionError(f'Unexpected provider call: {method} {url}')
        _, responses = max(matches, key=lambda match: len(match[0]))
        response = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    def calls_to(self, url_prefix, method=None):
        return [
            call for call in self.calls
            if call[1].startswith(url_prefix) and (method is None or call[0] == method.upper())
        ]


@pytest.fixture
def provider_http():
    """Patch outbound provider HTTP with a FakeProviderHttp router."""
    fake = FakeProviderHttp()
    with patch('services.provider_http.requests.request', side_effect=fake):
        yield fake


# =============================================================================
# App and users
# =============================================================================

@pytest.fixture
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def csrf_app():
    """Create application with CSRF protection enabled for testing."""
    app = create_app(CSRFEnabledTestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


def _create_user(email, password, name):
    user = User(email=email, name=name)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return {'id': user.id, 'email': email, 'password': password}


@pytest.fixture
def test_user(app):
    """Create a test user."""
    return _create_user('test@example.com', 'TestPassword123!', 'Test User')


@pytest.fixture
def other_user(app):
    """Create another user for isolation tests."""
    return _create_user('other@example.com', 'OtherPassword123!', 'Other User')


@pytest.fixture
def client(app):
    """Create test client (unauthenticated)."""
    return app.test_client()


@pytest.fixture
def auth_client(app, test_user):
    """Create authenticated test client by logging in."""
    client = app.test_client()
    response = client.post('/auth/login', json={
        'email': test_user['email'],
        'password': test_user['password'],
    })
    assert response.status_code == 200
    return client


# =============================================================================
# Connections
# =============================================================================

DEFAULT_SCOPES = {
    'twitter': {'tweet.read', 'tweet.write', 'users.read', 'offline.access'},
    'linkedin': {'openid', 'profile', 'email', 'w_member_social'},
    'instagram': {'user_profile', 'user_media'},
}


@pytest.fixture
def make_connection(app):
    """
    Factory for stored connections.

    Usage:
        connection = make_connection(user_id, 'twitter', expires_in=120)
    """
    store = CredentialStore()

    def _make(user_id, provider='twitter', access_token='stored-access-token',
              refresh_token='stored-refresh-token', expires_in=3600, scopes=None,
              profile_id='12345', username='testhandle', status=None):
        expires_at = None
        if expires_in is not None:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        connection = store.save_connection(
            user_id=user_id,
            provider=provider,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
            scopes=DEFAULT_SCOPES[provider] if scopes is None else scopes,
            profile_id=profile_id,
            username=username,
        )
        if status is not None:
            store.mark_status(connection, status)
        return connection

    return _make


@pytest.fixture
def oauth1_config(app):
    """Configure Twitter OAuth 1.0a app credentials."""
    app.config.update(
        TWITTER_API_KEY='consumer-key',
        TWITTER_API_SECRET='consumer-secret',
        TWITTER_ACCESS_TOKEN='app-token',
        TWITTER_ACCESS_TOKEN_SECRET='app-token-secret',
    )
    return app.config
