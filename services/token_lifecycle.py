"""Token Lifecycle Manager.

Keeps a connection's access token usable before it is handed to a publisher:
checks granted scopes, refreshes tokens that are about to expire, and marks
connections that can no longer be refreshed so the user is asked to reconnect.
"""

import logging
from datetime import datetime, timezone, timedelta

from flask import current_app

from constants import TOKEN_REFRESH_LEEWAY_SECONDS
from models.social import SocialConnection
from services.credential_store import CredentialStore
from services.errors import ProviderError, ScopeError, TokenError
from services.provider_http import provider_request, response_json, log_provider_failure
from services.providers import get_provider, CLIENT_AUTH_BASIC

logger = logging.getLogger(__name__)


class TokenLifecycleManager:
    """Scope checks and refresh-before-use for stored connections."""

    def __init__(self, store: CredentialStore = None):
        self.store = store or CredentialStore()

    @property
    def leeway(self) -> timedelta:
        seconds = current_app.config.get('TOKEN_REFRESH_LEEWAY', TOKEN_REFRESH_LEEWAY_SECONDS)
        return timedelta(seconds=seconds)

    def is_expiring(self, connection: SocialConnection, now: datetime = None) -> bool:
        """True when the token expires within the refresh leeway. No expiry means never."""
        expires_at = connection.expires_at
        if expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= expires_at - self.leeway

    def require_scope(self, connection: SocialConnection, scope: str, reconnect_url: str = None):
        """
        Raise ScopeError unless ``scope`` was granted to the connection.

        Runs before any refresh or provider call.
        """
        if not scope or scope in connection.scope_set:
            return
        descriptor = get_provider(connection.provider)
        raise ScopeError(
            f'{descriptor.display_name} connection is missing the "{scope}" permission. '
            f'Please reconnect your account.',
            code='MISSING_SCOPE',
            provider=connection.provider,
            required_scope=scope,
            reconnect_url=reconnect_url,
        )

    def ensure_valid_token(self, connection: SocialConnection) -> str:
        """
        Return a usable access token, refreshing it once if it is expiring.

        Raises:
            TokenError: REAUTH_REQUIRED when the connection is not usable
                and cannot be refreshed
        """
        if not connection.is_connected:
            raise self._reauth(connection, f'Connection is {connection.status}')

        credentials = self.store.decrypt_credentials(connection)
        if not self.is_expiring(connection):
            return credentials.access_token

        if not credentials.refresh_token:
            raise self._reauth(connection, 'Access token expired and no refresh token is stored')

        return self.refresh(connection, credentials.refresh_token)

    def refresh(self, connection: SocialConnection, refresh_token: str) -> str:
        """
        Make exactly one refresh call and merge the new tokens.

        On any failure the connection is marked expired with its stored data
        kept, and REAUTH_REQUIRED is raised.
        """
        descriptor = get_provider(connection.provider)
        if not descriptor.supports_refresh:
            raise self._reauth(connection, f'{descriptor.display_name} tokens cannot be refreshed')

        client_id, client_secret = descriptor.client_credentials()
        data = {
            'refresh_token': refresh_token,
            'grant_type': 'refresh_token',
            'client_id': client_id,
        }
        kwargs = {'data': data}
        if descriptor.client_auth == CLIENT_AUTH_BASIC:
            kwargs['auth'] = (client_id, client_secret)
        else:
            data['client_secret'] = client_secret

        logger.info(f'Refreshing {descriptor.name} token for connection {connection.id}')
        try:
            response = provider_request('POST', descriptor.token_endpoint, provider=descriptor.name, **kwargs)
        except ProviderError as e:
            self.store.mark_status(connection, SocialConnection.STATUS_EXPIRED, error=e.message)
            raise self._reauth(connection, 'Token refresh failed: provider unreachable')

        token_data = response_json(response) if response.ok else None
        if not token_data or not token_data.get('access_token'):
            log_provider_failure(descriptor.name, 'token refresh', response)
            self.store.mark_status(
                connection, SocialConnection.STATUS_EXPIRED,
                error=f'Token refresh failed ({response.status_code})',
            )
            raise self._reauth(connection, 'Token refresh failed')

        expires_at = None
        if token_data.get('expires_in'):
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(token_data['expires_in']))

        self.store.merge_tokens(
            connection,
            access_token=token_data['access_token'],
            refresh_token=token_data.get('refresh_token'),
            expires_at=expires_at,
        )
        logger.info(f'Refreshed {descriptor.name} token for connection {connection.id}')
        return token_data['access_token']

    @staticmethod
    def _reauth(connection: SocialConnection, reason: str) -> TokenError:
        logger.info(f'Connection {connection.id} ({connection.provider}) needs reauthorization: {reason}')
        return TokenError(
            'Your account connection has expired. Please reconnect.',
            code='REAUTH_REQUIRED',
            provider=connection.provider,
            reason=reason,
        )
