"""Tests for publish dispatch: validation, scope gate, refresh and history."""

import pytest

from models import PublishRecord, SocialConnection
from services.errors import InputError, ScopeError, TokenError, ProviderError, UnknownProviderError
from services.publishers import (
    BearerTextPublisher,
    ContainerPublisher,
    MediaContent,
    PublishContent,
    SignedRequestPublisher,
    UgcFallbackPublisher,
)
from services.publishers.twitter import TWEETS_URL
from services.publishing import PublishingService
from tests.conftest import fake_response

TWITTER_TOKEN_URL = 'https://api.twitter.com/2/oauth2/token'


class TestPublisherSelection:

    def test_twitter_without_app_credentials_is_bearer(self, app):
        assert isinstance(PublishingService().get_publisher('twitter'), BearerTextPublisher)

    def test_twitter_with_app_credentials_is_signed(self, app, oauth1_config):
        assert isinstance(PublishingService().get_publisher('twitter'), SignedRequestPublisher)

    def test_other_providers(self, app):
        assert isinstance(PublishingService().get_publisher('linkedin'), UgcFallbackPublisher)
        assert isinstance(PublishingService().get_publisher('instagram'), ContainerPublisher)

    def test_sleep_is_passed_to_publishers(self, app):
        sleep = object()
        assert PublishingService(sleep=sleep).get_publisher('instagram').sleep is sleep


class TestValidation:

    def test_text_required(self, app, test_user, provider_http):
        with pytest.raises(InputError) as exc:
            PublishingService().publish(test_user['id'], 'twitter', PublishContent('   '))
        assert exc.value.code == 'missing_text'

    def test_text_too_long(self, app, test_user, provider_http):
        with pytest.raises(InputError) as exc:
            PublishingService().publish(test_user['id'], 'twitter', PublishContent('x' * 281))
        assert exc.value.code == 'text_too_long'

    def test_linkedin_allows_longer_posts(self, app):
        PublishingService.validate('linkedin', PublishContent('x' * 3000))

    def test_unknown_provider(self, app, test_user):
        with pytest.raises(UnknownProviderError):
            PublishingService().publish(test_user['id'], 'friendster', PublishContent('hi'))


class TestPublish:

    def test_not_connected(self, app, test_user, provider_http):
        with pytest.raises(TokenError) as exc:
            PublishingService().publish(test_user['id'], 'twitter', PublishContent('hi'))
        assert exc.value.code == 'NOT_CONNECTED'
        assert PublishRecord.query.count() == 0

    def test_missing_scope_checked_before_any_network_call(self, app, test_user, make_connection, provider_http):
        # expiring token: a refresh would be attempted if the scope gate ran second
        make_connection(test_user['id'], 'linkedin', scopes={'openid', 'profile'}, expires_in=10)

        with pytest.raises(ScopeError) as exc:
            PublishingService().publish(test_user['id'], 'linkedin', PublishContent('hi'),
                                        reconnect_url='/social/linkedin/connect')

        assert exc.value.code == 'MISSING_SCOPE'
        assert exc.value.details['required_scope'] == 'w_member_social'
        assert exc.value.details['reconnect_url'] == '/social/linkedin/connect'
        assert provider_http.calls == []

    def test_success_records_history(self, app, test_user, make_connection, provider_http):
        connection = make_connection(test_user['id'], username='TwitterDev')
        provider_http.add('POST', TWEETS_URL, fake_response(201, {'data': {'id': '555'}}))

        result = PublishingService().publish(test_user['id'], 'twitter', PublishContent('hello world'))

        assert result.external_id == '555'
        record = PublishRecord.query.one()
        assert record.status == PublishRecord.STATUS_PUBLISHED
        assert record.external_id == '555'
        assert record.connection_id == connection.id
        assert record.text == 'hello world'
        assert record.has_media is False
        assert connection.last_used_at is not None
        assert connection.last_error is None

    def test_failure_records_history_and_reraises(self, app, test_user, make_connection, provider_http):
        connection = make_connection(test_user['id'])
        provider_http.add('POST', TWEETS_URL, fake_response(500, text='internal error'))

        with pytest.raises(ProviderError):
            PublishingService().publish(test_user['id'], 'twitter', PublishContent('hello'))

        record = PublishRecord.query.one()
        assert record.status == PublishRecord.STATUS_FAILED
        assert record.error_code == 'PROVIDER_ERROR'
        assert connection.last_error.startswith('PROVIDER_ERROR')
        assert connection.status == SocialConnection.STATUS_CONNECTED

    def test_expiring_token_refreshed_before_publish(self, app, test_user, make_connection, provider_http):
        make_connection(test_user['id'], expires_in=120)
        provider_http.add('POST', TWITTER_TOKEN_URL, fake_response(200, {
            'access_token': 'refreshed-access', 'refresh_token': 'refreshed-refresh', 'expires_in': 7200,
        }))
        provider_http.add('POST', TWEETS_URL, fake_response(201, {'data': {'id': '556'}}))

        PublishingService().publish(test_user['id'], 'twitter', PublishContent('hello'))

        methods_and_urls = [(method, url) for method, url, _ in provider_http.calls]
        assert methods_and_urls == [('POST', TWITTER_TOKEN_URL), ('POST', TWEETS_URL)]
        _, _, tweet = provider_http.calls[1]
        assert tweet['headers']['Authorization'] == 'Bearer refreshed-access'

    def test_refresh_failure_blocks_publish(self, app, test_user, make_connection, provider_http):
        connection = make_connection(test_user['id'], expires_in=120)
        provider_http.add('POST', TWITTER_TOKEN_URL, fake_response(400, {'error': 'invalid_grant'}))

        with pytest.raises(TokenError) as exc:
            PublishingService().publish(test_user['id'], 'twitter', PublishContent('hello'))

        assert exc.value.code == 'REAUTH_REQUIRED'
        assert provider_http.calls_to(TWEETS_URL) == []
        assert connection.status == SocialConnection.STATUS_EXPIRED
        assert PublishRecord.query.one().error_code == 'REAUTH_REQUIRED'

    def test_media_with_bearer_publisher_is_rejected(self, app, test_user, make_connection, provider_http):
        make_connection(test_user['id'])
        content = PublishContent('hello', MediaContent('image/png', data=b'png'))

        with pytest.raises(InputError):
            PublishingService().publish(test_user['id'], 'twitter', content)

        assert provider_http.calls == []
        assert PublishRecord.query.one().has_media is True

    def test_connections_are_isolated_per_user(self, app, test_user, other_user, make_connection, provider_http):
        make_connection(test_user['id'])

        with pytest.raises(TokenError) as exc:
            PublishingService().publish(other_user['id'], 'twitter', PublishContent('hello'))

        assert exc.value.code == 'NOT_CONNECTED'
        assert provider_http.calls == []
