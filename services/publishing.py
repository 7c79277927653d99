"""Publication Dispatcher.

PublishingService.publish() runs a publish request end to end:
validate, load the connection, check the publish scope, make sure the token
is usable, hand off to the provider's adapter, and record the outcome in the
publish history.
"""

import logging
import time

from flask import current_app

from constants import MAX_POST_LENGTH
from models.social import PublishRecord
from services.credential_store import CredentialStore
from services.errors import SocialError, InputError, TokenError
from services.providers import get_provider, TWITTER, LINKEDIN, INSTAGRAM
from services.publishers import (
    PublishContent,
    PublishResult,
    BearerTextPublisher,
    SignedRequestPublisher,
    UgcFallbackPublisher,
    ContainerPublisher,
)
from services.signatures import OAuth1Credentials
from services.token_lifecycle import TokenLifecycleManager

logger = logging.getLogger(__name__)


class PublishingService:
    """Publishes content to a user's connected provider account."""

    def __init__(self, store: CredentialStore = None, lifecycle: TokenLifecycleManager = None,
                 sleep=time.sleep):
        self.store = store or CredentialStore()
        self.lifecycle = lifecycle or TokenLifecycleManager(self.store)
        self.sleep = sleep

    def get_publisher(self, provider: str):
        """Pick the adapter for a provider."""
        if provider == TWITTER:
            credentials = OAuth1Credentials.from_config(current_app.config)
            if credentials:
                return SignedRequestPublisher(credentials, sleep=self.sleep)
            return BearerTextPublisher(sleep=self.sleep)
        if provider == LINKEDIN:
            return UgcFallbackPublisher(sleep=self.sleep)
        if provider == INSTAGRAM:
            return ContainerPublisher(sleep=self.sleep)
        raise InputError(f'Publishing is not supported for {provider}', code='unsupported_provider')

    @staticmethod
    def validate(provider: str, content: PublishContent):
        text = (content.text or '').strip()
        if not text:
            raise InputError('Post text is required', code='missing_text', provider=provider)
        limit = MAX_POST_LENGTH.get(provider)
        if limit and len(text) > limit:
            raise InputError(
                f'Post exceeds {limit} characters ({len(text)} chars)',
                code='text_too_long',
                provider=provider,
            )

    def publish(self, user_id: int, provider: str, content: PublishContent,
                reconnect_url: str = None) -> PublishResult:
        """
        Publish content for a user.

        Args:
            user_id: Owner of the connection
            provider: Provider name
            content: Text and optional media
            reconnect_url: Returned with MISSING_SCOPE so the client can re-authorize

        Returns:
            PublishResult

        Raises:
            SocialError subclass describing why the post was not published
        """
        descriptor = get_provider(provider)
        self.validate(descriptor.name, content)

        connection = self.store.get(user_id, descriptor.name)
        if connection is None:
            raise TokenError(
                f'No {descriptor.display_name} account connected. Please connect your account first.',
                code='NOT_CONNECTED',
                provider=descriptor.name,
            )

        start_time = time.time()
        try:
            self.lifecycle.require_scope(connection, descriptor.publish_scope, reconnect_url)
            access_token = self.lifecycle.ensure_valid_token(connection)
            publisher = self.get_publisher(descriptor.name)
            result = publisher.publish(connection, access_token, content)
        except SocialError as e:
            response_time = int((time.time() - start_time) * 1000)
            logger.warning(f'Publish to {descriptor.name} failed for user {user_id}: {e.code} {e.message}')
            self.store.append_history(
                user_id=user_id,
                provider=descriptor.name,
                connection_id=connection.id,
                text=content.text,
                has_media=content.media is not None,
                status=PublishRecord.STATUS_FAILED,
                error_code=e.code,
                error_message=e.message,
                response_time_ms=response_time,
            )
            self.store.record_use(connection, error=f'{e.code}: {e.message}')
            raise

        response_time = int((time.time() - start_time) * 1000)
        self.store.append_history(
            user_id=user_id,
            provider=descriptor.name,
            connection_id=connection.id,
            text=content.text,
            has_media=content.media is not None,
            status=PublishRecord.STATUS_PUBLISHED,
            external_id=result.external_id,
            external_url=result.url,
            published_at=result.published_at,
            response_time_ms=response_time,
        )
        self.store.record_use(connection)
        return result
