"""Provider descriptors.

Each supported provider is described by a ProviderDescriptor: the endpoints
and flags the generic authorization flow, token lifecycle and publishing
dispatch need. Adding a provider means adding a descriptor here and, if its
publishing protocol is new, a publisher adapter.
"""

import time
from dataclasses import dataclass

from flask import current_app

from services.errors import ConfigurationError, UnknownProviderError

TWITTER = 'twitter'
LINKEDIN = 'linkedin'
INSTAGRAM = 'instagram'

# How the client credentials are presented to the token endpoint
CLIENT_AUTH_BASIC = 'basic'
CLIENT_AUTH_BODY = 'body'


@dataclass(frozen=True)
class ProviderDescriptor:
    name: str
    display_name: str
    authorize_endpoint: str
    token_endpoint: str
    identity_endpoint: str
    scopes: tuple
    scope_separator: str = ' '
    uses_pkce: bool = False
    uses_oauth1: bool = False
    client_auth: str = CLIENT_AUTH_BODY
    publish_scope: str = None
    identity_fallback: bool = False
    supports_refresh: bool = True
    identity_token_in_query: bool = False

    @property
    def client_id_key(self):
        return f'{self.name.upper()}_CLIENT_ID'

    @property
    def client_secret_key(self):
        return f'{self.name.upper()}_CLIENT_SECRET'

    def client_credentials(self):
        """Return (client_id, client_secret) from app config."""
        return (
            current_app.config.get(self.client_id_key),
            current_app.config.get(self.client_secret_key),
        )

    @property
    def is_configured(self):
        client_id, client_secret = self.client_credentials()
        return bool(client_id and client_secret)

    def require_configured(self):
        if not self.is_configured:
            raise ConfigurationError(
                f'{self.display_name} API credentials not configured',
                provider=self.name,
            )

    def scope_string(self):
        return self.scope_separator.join(self.scopes)


PROVIDERS = {
    TWITTER: ProviderDescriptor(
        name=TWITTER,
        display_name='Twitter/X',
        authorize_endpoint='https://twitter.com/i/oauth2/authorize',
        token_endpoint='https://api.twitter.com/2/oauth2/token',
        identity_endpoint='https://api.twitter.com/2/users/me?user.fields=username,profile_image_url',
        scopes=('tweet.read', 'tweet.write', 'users.read', 'offline.access'),
        uses_pkce=True,
        uses_oauth1=True,
        client_auth=CLIENT_AUTH_BASIC,
        publish_scope='tweet.write',
    ),
    LINKEDIN: ProviderDescriptor(
        name=LINKEDIN,
        display_name='LinkedIn',
        authorize_endpoint='https://www.linkedin.com/oauth/v2/authorization',
        token_endpoint='https://www.linkedin.com/oauth/v2/accessToken',
        identity_endpoint='https://api.linkedin.com/v2/userinfo',
        scopes=('openid', 'profile', 'email', 'w_member_social'),
        publish_scope='w_member_social',
        identity_fallback=True,
    ),
    INSTAGRAM: ProviderDescriptor(
        name=INSTAGRAM,
        display_name='Instagram',
        authorize_endpoint='https://api.instagram.com/oauth/authorize',
        token_endpoint='https://api.instagram.com/oauth/access_token',
        identity_endpoint='https://graph.instagram.com/me?fields=id,username',
        scopes=('user_profile', 'user_media'),
        scope_separator=',',
        supports_refresh=False,
        identity_token_in_query=True,
    ),
}


def get_provider(name: str) -> ProviderDescriptor:
    """Look up a provider descriptor by name."""
    descriptor = PROVIDERS.get((name or '').lower())
    if descriptor is None:
        raise UnknownProviderError(f'Unknown provider: {name}')
    return descriptor


def placeholder_profile_id(provider: str) -> str:
    """Stand-in profile id for a connection whose identity lookup failed."""
    return f'{provider}_{int(time.time() * 1000)}'


def is_placeholder_profile_id(provider: str, profile_id) -> bool:
    return bool(profile_id) and profile_id.startswith(f'{provider}_')


def parse_scopes(raw) -> set:
    """
    Normalize a provider's granted-scope value into a set.

    Providers report scopes as space- or comma-separated strings, or as
    lists. Absence means no scopes.
    """
    if not raw:
        return set()
    if isinstance(raw, (list, tuple, set)):
        return {str(s).strip() for s in raw if str(s).strip()}
    return {s for s in str(raw).replace(',', ' ').split() if s}
