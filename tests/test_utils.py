"""Tests for utility modules and the error taxonomy."""
import logging

import pytest
from flask import g

from services.errors import (
    SocialError, InputError, ScopeError, TokenError, ProviderError, MediaError, ConfigurationError,
    DuplicateContentError, UnknownProviderError, AuthError,
)
from utils.logging import RequestIdFilter
from utils.routes import get_request_id, error_response, handle_social_errors
from utils.validation import validate_required, validate_email, validate_url, parse_int


class TestValidateRequired:
    """Tests for validate_required function."""

    def test_required_valid(self):
        assert validate_required("test value", "name") == "test value"

    def test_required_empty_string(self):
        """Test empty string raises InputError naming the field."""
        with pytest.raises(InputError) as exc:
            validate_required("", "name")
        assert exc.value.details['field'] == "name"
        assert exc.value.code == 'missing_field'

    def test_required_whitespace(self):
        with pytest.raises(InputError):
            validate_required("   ", "name")

    def test_required_strips_whitespace(self):
        assert validate_required("  test  ", "name") == "test"

    def test_required_max_length(self):
        with pytest.raises(InputError) as exc:
            validate_required("long value", "name", max_length=5)
        assert "5 characters" in exc.value.message


class TestValidateEmail:

    def test_email_lowercased(self):
        assert validate_email("Test@Example.com") == "test@example.com"

    def test_email_invalid_format(self):
        with pytest.raises(InputError) as exc:
            validate_email("not-an-email")
        assert exc.value.details['field'] == "email"


class TestValidateUrl:
    """Tests for validate_url function."""

    def test_url_valid_https(self):
        assert validate_url("https://example.com/path?x=1", "url") == "https://example.com/path?x=1"

    def test_url_empty_returns_none(self):
        assert validate_url("", "url") is None
        assert validate_url("   ", "url") is None

    @pytest.mark.parametrize('value', ['ftp://example.com/a', 'javascript:alert(1)', 'https://localhost'])
    def test_url_invalid(self, value):
        with pytest.raises(InputError):
            validate_url(value, "media_url")

    def test_url_too_long(self):
        with pytest.raises(InputError):
            validate_url("https://example.com/" + "a" * 2048, "url")


class TestParseInt:

    def test_default_when_missing(self):
        assert parse_int(None, 'limit', default=20) == 20
        assert parse_int('', 'limit', default=20) == 20

    def test_clamped_to_bounds(self):
        assert parse_int('500', 'limit', min_val=1, max_val=100) == 100
        assert parse_int('0', 'limit', min_val=1, max_val=100) == 1
        assert parse_int(' 7 ', 'limit') == 7

    def test_invalid(self):
        with pytest.raises(InputError) as exc:
            parse_int('seven', 'limit')
        assert exc.value.details['field'] == 'limit'


class TestErrorTaxonomy:

    @pytest.mark.parametrize('error_class,status,code', [
        (InputError, 400, 'invalid_request'),
        (UnknownProviderError, 404, 'unknown_provider'),
        (DuplicateContentError, 409, 'DUPLICATE_CONTENT'),
        (AuthError, 400, 'state_mismatch'),
        (TokenError, 401, 'REAUTH_REQUIRED'),
        (ScopeError, 403, 'MISSING_SCOPE'),
        (MediaError, 422, 'MEDIA_UPLOAD_FAILED'),
        (ProviderError, 502, 'PROVIDER_ERROR'),
        (ConfigurationError, 503, 'not_configured'),
        (SocialError, 500, 'unknown'),
    ])
    def test_defaults(self, error_class, status, code):
        error = error_class('message')
        assert error.status_code == status
        assert error.code == code

    def test_to_dict_includes_details(self):
        error = ScopeError('missing', required_scope='tweet.write', provider='twitter')
        assert error.to_dict() == {
            'code': 'MISSING_SCOPE', 'message': 'missing',
            'required_scope': 'tweet.write', 'provider': 'twitter',
        }


class TestRouteHelpers:

    def test_error_response(self, app):
        with app.test_request_context():
            response, status = error_response(TokenError('gone', code='UNAUTHORIZED'))
            assert status == 401
            assert response.get_json() == {'code': 'UNAUTHORIZED', 'message': 'gone'}

    def test_handle_social_errors_passes_through(self, app):
        @handle_social_errors
        def view():
            return 'ok'

        with app.test_request_context():
            assert view() == 'ok'

    def test_handle_social_errors_serializes(self, app):
        @handle_social_errors
        def view():
            raise ProviderError('upstream', status=503)

        with app.test_request_context():
            response, status = view()
            assert status == 502
            assert response.get_json()['status'] == 503

    def test_handle_social_errors_unexpected(self, app, caplog):
        @handle_social_errors
        def view():
            raise RuntimeError('boom')

        with app.test_request_context():
            response, status = view()

        assert status == 500
        assert response.get_json()['code'] == 'unknown'
        assert 'boom' in caplog.text

    def test_get_request_id_exists(self, app):
        with app.test_request_context():
            g.request_id = 'test-123'
            assert get_request_id() == 'test-123'

    def test_get_request_id_fallback(self, app):
        with app.test_request_context():
            assert len(get_request_id()) == 8


class TestRequestIdFilter:

    def test_outside_request(self):
        record = logging.LogRecord('services', logging.INFO, __file__, 1, 'msg', None, None)
        RequestIdFilter().filter(record)
        assert record.request_id == '-'

    def test_inside_request(self, app):
        record = logging.LogRecord('services', logging.INFO, __file__, 1, 'msg', None, None)
        with app.test_request_context():
            g.request_id = 'abcd1234'
            RequestIdFilter().filter(record)
        assert record.request_id == 'abcd1234'

    def test_request_id_header(self, client):
        response = client.get('/auth/csrf-token')
        assert response.headers['X-Request-ID']
