"""Authentication material for provider requests.

Stateless helpers for:
- PKCE code verifier / challenge pairs (RFC 7636, S256)
- CSRF state tokens for the authorization redirect
- OAuth 1.0a HMAC-SHA1 request signing (RFC 5849)
"""

import base64
import hashlib
import hmac
import secrets
import string
import time
from dataclasses import dataclass
from urllib.parse import urlsplit, parse_qsl

from authlib.common.security import generate_token
from authlib.oauth1.rfc5849.client_auth import ClientAuth
from authlib.oauth1.rfc5849.parameters import prepare_headers
from authlib.oauth1.rfc5849.signature import (
    SIGNATURE_HMAC_SHA1,
    construct_base_string,
    hmac_sha1_signature,
)
from authlib.oauth1.rfc5849.util import escape

# RFC 7636 section 4.1: ALPHA / DIGIT / "-" / "." / "_" / "~"
PKCE_ALPHABET = string.ascii_letters + string.digits + '-._~'
PKCE_VERIFIER_LENGTH = 64


@dataclass(frozen=True)
class PkcePair:
    verifier: str
    challenge: str


def derive_code_challenge(verifier: str) -> str:
    """Return base64url(sha256(verifier)) without padding."""
    digest = hashlib.sha256(verifier.encode('ascii')).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b'=').decode('ascii')


def generate_pkce_pair(length: int = PKCE_VERIFIER_LENGTH) -> PkcePair:
    """
    Generate a PKCE code_verifier and its S256 code_challenge.

    Args:
        length: Verifier length, 43-128 characters

    Returns:
        PkcePair with verifier and challenge
    """
    if not 43 <= length <= 128:
        raise ValueError('PKCE verifier length must be between 43 and 128')
    verifier = ''.join(secrets.choice(PKCE_ALPHABET) for _ in range(length))
    return PkcePair(verifier=verifier, challenge=derive_code_challenge(verifier))


def generate_csrf_state(user_id) -> str:
    """Generate an unguessable state token for a user's authorization attempt.

    The token itself is opaque. The binding to ``user_id`` is held by the
    persisted AuthorizationAttempt, never encoded in the token.
    """
    if user_id is None:
        raise ValueError('user_id is required to bind a state token')
    return secrets.token_urlsafe(32)


def verify_state(expected: str, received: str) -> bool:
    """Constant-time, byte-for-byte state comparison."""
    if not expected or not received:
        return False
    return hmac.compare_digest(expected.encode('utf-8'), received.encode('utf-8'))

def percent_encode(value) -> str:
    """RFC 3986 percent-encoding, leaving only unreserved characters."""
    return escape(str(value))


@dataclass(frozen=True)
class OAuth1Credentials:
    """Consumer and token credentials used to sign OAuth 1.0a requests."""
    consumer_key: str
    consumer_secret: str
    token: str
    token_secret: str

    @classmethod
    def from_config(cls, config):
        """Build credentials from app config, or None if any value is missing."""
        values = (
            config.get('TWITTER_API_KEY'),
            config.get('TWITTER_API_SECRET'),
            config.get('TWITTER_ACCESS_TOKEN'),
            config.get('TWITTER_ACCESS_TOKEN_SECRET'),
        )
        if not all(values):
            return None
        return cls(*values)


class OAuth1Signer:
    """Produces OAuth 1.0a Authorization headers (HMAC-SHA1) with authlib."""

    SIGNATURE_METHOD = SIGNATURE_HMAC_SHA1
    VERSION = '1.0'

    def __init__(self, credentials: OAuth1Credentials):
        self.credentials = credentials
        self.client = ClientAuth(
            credentials.consumer_key,
            client_secret=credentials.consumer_secret,
            token=credentials.token,
            token_secret=credentials.token_secret,
            signature_method=SIGNATURE_HMAC_SHA1,
        )

    @staticmethod
    def generate_nonce() -> str:
        return generate_token(32)

    @staticmethod
    def _query_params(url: str) -> list:
        return parse_qsl(urlsplit(url).query, keep_blank_values=True)

    def signature_base_string(self, method: str, url: str, params) -> str:
        """Build the signature base string from method, URL and all parameters.

        Query string parameters on ``url`` are signed alongside ``params``.
        """
        pairs = self._query_params(url)
        pairs.extend(params.items() if isinstance(params, dict) else params)
        return construct_base_string(method, url, [(str(k), str(v)) for k, v in pairs])

    def oauth_params(self, nonce: str, timestamp: str) -> list:
        return self.client.get_oauth_params(nonce, str(timestamp))

    def signature(self, method: str, url: str, params: dict, nonce: str, timestamp: str) -> str:
        """Compute the base64 HMAC-SHA1 signature for a request."""
        pairs = list((params or {}).items())
        pairs.extend(self.oauth_params(nonce, timestamp))
        base_string = self.signature_base_string(method, url, pairs)
        return hmac_sha1_signature(
            base_string, self.credentials.consumer_secret, self.credentials.token_secret,
        )

    def sign(self, method: str, url: str, params: dict = None, nonce: str = None, timestamp=None) -> str:
        """
        Build the Authorization header for a request.

        Args:
            method: HTTP method
            url: Request URL (query string parameters are signed too)
            params: Form or query parameters to include in the signature.
                Multipart and JSON bodies are never signed.
            nonce: Override the random nonce (replay/testing only)
            timestamp: Override the Unix timestamp (replay/testing only)

        Returns:
            Value for the ``Authorization`` header
        """
        nonce = nonce or self.generate_nonce()
        timestamp = str(timestamp if timestamp is not None else int(time.time()))

        header_params = self.oauth_params(nonce, timestamp)
        header_params.append(('oauth_signature', self.signature(method, url, params, nonce, timestamp)))

        return prepare_headers(sorted(header_params))['Authorization']
