"""Authorization Flow Controller.

One generic OAuth 2.0 authorization-code flow, parameterized by
ProviderDescriptor:

- begin_authorization() stores a single-use attempt and builds the
  provider's authorize URL (with PKCE where the provider uses it)
- complete_authorization() consumes the attempt, exchanges the code,
  fetches the account identity and only then persists the connection
- disconnect() removes the connection

Each run is tracked in an AuthorizationFlow whose transitions are logged.
"""

import enum
import logging
from datetime import datetime, timezone, timedelta
from urllib.parse import urlencode

from flask import current_app

from constants import AUTHORIZATION_ATTEMPT_TTL_SECONDS
from models.social import attempt_expired
from services.credential_store import CredentialStore
from services.errors import SocialError, InputError, AuthError, ProviderError
from services.provider_http import provider_request, response_json, log_provider_failure
from services.providers import (
    get_provider, parse_scopes, placeholder_profile_id, CLIENT_AUTH_BASIC, TWITTER, LINKEDIN,
)
from services.signatures import generate_csrf_state, generate_pkce_pair, verify_state

logger = logging.getLogger(__name__)


class FlowState(enum.Enum):
    INIT = 'init'
    REDIRECTED = 'redirected'
    CALLBACK_RECEIVED = 'callback_received'
    TOKEN_EXCHANGED = 'token_exchanged'
    PROFILE_FETCHED = 'profile_fetched'
    PERSISTED = 'persisted'
    FAILED = 'failed'


class FailureReason:
    MISSING_PARAMS = 'missing_params'
    STATE_MISMATCH = 'state_mismatch'
    TOKEN_EXCHANGE_FAILED = 'token_exchange_failed'
    PROFILE_FETCH_FAILED = 'profile_fetch_failed'
    PROVIDER_DENIED = 'provider_denied'
    UNKNOWN = 'unknown'


class AuthorizationFlow:
    """In-memory record of one authorization run."""

    def __init__(self, provider: str, user_id: int = None):
        self.provider = provider
        self.user_id = user_id
        self.state = FlowState.INIT
        self.reason = None
        self.history = [FlowState.INIT]

    def advance(self, state: FlowState):
        logger.info(f'{self.provider} authorization for user {self.user_id}: '
                    f'{self.state.value} -> {state.value}')
        self.state = state
        self.history.append(state)

    def fail(self, reason: str):
        logger.warning(f'{self.provider} authorization for user {self.user_id} failed '
                       f'in {self.state.value}: {reason}')
        self.reason = reason
        self.state = FlowState.FAILED
        self.history.append(FlowState.FAILED)

    @property
    def is_failed(self):
        return self.state == FlowState.FAILED


class AuthorizationController:
    """Runs the authorization-code flow for any configured provider."""

    def __init__(self, store: CredentialStore = None):
        self.store = store or CredentialStore()

    # =========================================================================
    # Begin
    # =========================================================================

    def begin_authorization(self, user_id: int, provider: str, redirect_uri: str):
        """
        Start an authorization flow.

        Args:
            user_id: Authenticated user starting the flow
            provider: Provider name
            redirect_uri: Callback URL registered with the provider

        Returns:
            Tuple of (authorize_url, AuthorizationFlow)

        Raises:
            UnknownProviderError: Provider not supported
            ConfigurationError: Provider client credentials missing
        """
        descriptor = get_provider(provider)
        descriptor.require_configured()
        flow = AuthorizationFlow(descriptor.name, user_id)

        state = generate_csrf_state(user_id)
        pkce = generate_pkce_pair() if descriptor.uses_pkce else None
        self.store.create_attempt(
            user_id, descriptor.name, state,
            pkce_verifier=pkce.verifier if pkce else None,
        )

        client_id, _ = descriptor.client_credentials()
        params = {
            'response_type': 'code',
            'client_id': client_id,
            'redirect_uri': redirect_uri,
            'scope': descriptor.scope_string(),
            'state': state,
        }
        if pkce:
            params['code_challenge'] = pkce.challenge
            params['code_challenge_method'] = 'S256'

        flow.advance(FlowState.REDIRECTED)
        return f'{descriptor.authorize_endpoint}?{urlencode(params)}', flow

    # =========================================================================
    # Complete
    # =========================================================================

    def complete_authorization(self, provider: str, params, redirect_uri: str, user_id: int = None):
        """
        Finish an authorization flow from the provider's callback parameters.

        Args:
            provider: Provider name from the callback route
            params: Callback query parameters (code, state, error, error_description)
            redirect_uri: The redirect_uri used when the flow began
            user_id: Logged-in user, if any; must own the attempt

        Returns:
            The persisted SocialConnection

        Raises:
            SocialError subclass whose code is the failure reason, with the
            flow attached as ``error.flow``
        """
        descriptor = get_provider(provider)
        flow = AuthorizationFlow(descriptor.name, user_id)
        flow.advance(FlowState.CALLBACK_RECEIVED)

        try:
            return self._complete(descriptor, flow, params, redirect_uri, user_id)
        except SocialError as e:
            if not flow.is_failed:
                flow.fail(e.code)
            e.flow = flow
            raise
        except Exception as e:
            logger.exception(f'Unexpected error completing {descriptor.name} authorization')
            flow.fail(FailureReason.UNKNOWN)
            error = SocialError(f'Authorization failed: {e}', code=FailureReason.UNKNOWN,
                                provider=descriptor.name)
            error.flow = flow
            raise error from e

    def _complete(self, descriptor, flow, params, redirect_uri, user_id):
        if params.get('error'):
            if params.get('state'):
                # A denied flow must restart; its state is spent.
                self.store.consume_attempt(params['state'])
            flow.fail(FailureReason.PROVIDER_DENIED)
            raise AuthError(
                params.get('error_description') or params.get('error'),
                code=FailureReason.PROVIDER_DENIED,
                provider=descriptor.name,
                provider_error=params.get('error'),
            )

        code = params.get('code')
        state = params.get('state')
        if not code or not state:
            flow.fail(FailureReason.MISSING_PARAMS)
            raise InputError('Missing code or state parameter', code=FailureReason.MISSING_PARAMS,
                             provider=descriptor.name)

        attempt = self.store.consume_attempt(state)
        if not self._attempt_matches(attempt, state, descriptor.name, user_id):
            flow.fail(FailureReason.STATE_MISMATCH)
            raise AuthError('Invalid or expired authorization state', code=FailureReason.STATE_MISMATCH,
                            provider=descriptor.name)
        flow.user_id = attempt.user_id

        token_data = self.exchange_code(descriptor, code, redirect_uri, attempt.pkce_verifier)
        flow.advance(FlowState.TOKEN_EXCHANGED)

        access_token = token_data['access_token']
        identity = self.fetch_identity(descriptor, access_token)
        flow.advance(FlowState.PROFILE_FETCHED)

        expires_at = None
        if token_data.get('expires_in'):
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(token_data['expires_in']))

        connection = self.store.save_connection(
            user_id=attempt.user_id,
            provider=descriptor.name,
            access_token=access_token,
            refresh_token=token_data.get('refresh_token'),
            expires_at=expires_at,
            scopes=parse_scopes(token_data.get('scope')),
            profile_id=identity.get('profile_id'),
            username=identity.get('username'),
            email=identity.get('email'),
            profile_image_url=identity.get('profile_image_url'),
        )
        flow.advance(FlowState.PERSISTED)
        return connection

    def _attempt_matches(self, attempt, state: str, provider: str, user_id: int) -> bool:
        if attempt is None or not verify_state(attempt.state, state):
            return False
        if attempt.provider != provider:
            return False
        if user_id is not None and attempt.user_id != user_id:
            return False
        ttl = current_app.config.get('AUTHORIZATION_ATTEMPT_TTL', AUTHORIZATION_ATTEMPT_TTL_SECONDS)
        return not attempt_expired(attempt.created_at, ttl)

    def exchange_code(self, descriptor, code: str, redirect_uri: str, code_verifier: str = None) -> dict:
        """
        Exchange an authorization code for tokens.

        Returns:
            Token response dict containing at least access_token

        Raises:
            ProviderError: Non-2xx response, transport failure or no access_token
        """
        client_id, client_secret = descriptor.client_credentials()
        data = {
            'code': code,
            'grant_type': 'authorization_code',
            'client_id': client_id,
            'redirect_uri': redirect_uri,
        }
        if code_verifier:
            data['code_verifier'] = code_verifier

        kwargs = {'data': data}
        if descriptor.client_auth == CLIENT_AUTH_BASIC:
            kwargs['auth'] = (client_id, client_secret)
        else:
            data['client_secret'] = client_secret

        try:
            response = provider_request('POST', descriptor.token_endpoint, provider=descriptor.name, **kwargs)
        except ProviderError as e:
            raise ProviderError(e.message, code=FailureReason.TOKEN_EXCHANGE_FAILED,
                                provider=descriptor.name) from e

        token_data = response_json(response) if response.ok else None
        if not token_data or not token_data.get('access_token'):
            log_provider_failure(descriptor.name, 'token exchange', response)
            raise ProviderError(
                f'{descriptor.display_name} token exchange failed ({response.status_code})',
                code=FailureReason.TOKEN_EXCHANGE_FAILED,
                provider=descriptor.name,
            )

        logger.debug(f'{descriptor.name} token received: '
                     f'has_refresh_token={bool(token_data.get("refresh_token"))} '
                     f'expires_in={token_data.get("expires_in")}')
        return token_data

    def fetch_identity(self, descriptor, access_token: str) -> dict:
        """
        Fetch the connected account's identity.

        LinkedIn's userinfo endpoint is unreliable for some app configurations,
        so when it fails a placeholder identity is synthesized instead of
        aborting the flow. Re-verify against the live API before relying on it.

        Returns:
            Dict with profile_id, username, email, profile_image_url
        """
        if descriptor.identity_token_in_query:
            kwargs = {'params': {'access_token': access_token}}
        else:
            kwargs = {'headers': {'Authorization': f'Bearer {access_token}', 'Accept': 'application/json'}}

        try:
            response = provider_request('GET', descriptor.identity_endpoint, provider=descriptor.name, **kwargs)
        except ProviderError:
            if descriptor.identity_fallback:
                return self._placeholder_identity(descriptor)
            raise ProviderError(f'Failed to reach {descriptor.display_name} for profile',
                                code=FailureReason.PROFILE_FETCH_FAILED, provider=descriptor.name)

        data = response_json(response) if response.ok else None
        identity = self._parse_identity(descriptor.name, data) if isinstance(data, dict) else None

        if not identity or not identity.get('profile_id'):
            log_provider_failure(descriptor.name, 'profile fetch', response)
            if descriptor.identity_fallback:
                return self._placeholder_identity(descriptor)
            raise ProviderError(
                f'Failed to fetch {descriptor.display_name} profile ({response.status_code})',
                code=FailureReason.PROFILE_FETCH_FAILED,
                provider=descriptor.name,
            )
        return identity

    @staticmethod
    def _parse_identity(provider: str, data: dict) -> dict:
        if provider == TWITTER:
            user = data.get('data') or {}
            return {
                'profile_id': user.get('id'),
                'username': user.get('username'),
                'profile_image_url': user.get('profile_image_url'),
            }
        if provider == LINKEDIN:
            return {
                'profile_id': data.get('sub'),
                'username': data.get('name'),
                'email': data.get('email'),
                'profile_image_url': data.get('picture'),
            }
        return {
            'profile_id': data.get('id'),
            'username': data.get('username'),
        }

    @staticmethod
    def _placeholder_identity(descriptor) -> dict:
        profile_id = placeholder_profile_id(descriptor.name)
        logger.warning(f'Using placeholder identity {profile_id} for {descriptor.name}')
        return {
            'profile_id': profile_id,
            'username': f'{descriptor.display_name} User {profile_id[-6:]}',
        }

    # =========================================================================
    # Disconnect
    # =========================================================================

    def disconnect(self, user_id: int, provider: str) -> bool:
        """Delete the user's connection for a provider. Returns False if none existed."""
        descriptor = get_provider(provider)
        removed = self.store.clear(user_id, descriptor.name)
        if removed:
            logger.info(f'User {user_id} disconnected {descriptor.name}')
        return removed
