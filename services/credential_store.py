"""Credential Store: durable per-user connection state.

Handles:
- Encrypting/decrypting OAuth tokens at rest (Fernet)
- Creating, overwriting and clearing connections
- Last-writer-wins merge of refreshed token fields
- Pending authorization attempts (single-use)
- Append-only publish history
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from cryptography.fernet import Fernet, InvalidToken
from flask import current_app
from sqlalchemy import update

from extensions import db
from models.social import SocialConnection, AuthorizationAttempt, PublishRecord
from services.base import db_transaction
from services.errors import ConfigurationError, TokenError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredCredentials:
    access_token: str
    refresh_token: str = None


@dataclass(frozen=True)
class PendingAuthorization:
    """Snapshot of a consumed AuthorizationAttempt."""
    user_id: int
    provider: str
    state: str
    pkce_verifier: str
    created_at: datetime


class CredentialStore:
    """Persistence for connections, authorization attempts and publish history."""

    def __init__(self, encryption_key: str = None):
        self._encryption_key = encryption_key
        self._fernet = None

    @property
    def fernet(self):
        """Lazy-load Fernet cipher for token encryption."""
        if self._fernet is None:
            key = self._encryption_key or current_app.config.get('SOCIAL_TOKEN_ENCRYPTION_KEY')
            if not key:
                raise ConfigurationError('SOCIAL_TOKEN_ENCRYPTION_KEY is not set')
            try:
                self._fernet = Fernet(key.encode() if isinstance(key, str) else key)
            except (ValueError, TypeError) as e:
                raise ConfigurationError(f'Invalid encryption key: {e}')
        return self._fernet

    # =========================================================================
    # Token Encryption/Decryption
    # =========================================================================

    def encrypt_credentials(self, credentials: StoredCredentials) -> str:
        payload = json.dumps({
            'access_token': credentials.access_token,
            'refresh_token': credentials.refresh_token,
        })
        return self.fernet.encrypt(payload.encode()).decode()

    def decrypt_credentials(self, connection: SocialConnection) -> StoredCredentials:
        """
        Decrypt a connection's stored tokens.

        Raises:
            TokenError: If the blob cannot be decrypted (key rotated or data corrupted)
        """
        try:
            decrypted = self.fernet.decrypt(connection.encrypted_credentials.encode())
        except InvalidToken:
            logger.error(f'Could not decrypt credentials for connection {connection.id}')
            raise TokenError(
                'Stored credentials are unreadable. Please reconnect your account.',
                code='REAUTH_REQUIRED',
                provider=connection.provider,
            )
        data = json.loads(decrypted.decode())
        return StoredCredentials(
            access_token=data.get('access_token'),
            refresh_token=data.get('refresh_token'),
        )

    # =========================================================================
    # Connections
    # =========================================================================

    def get(self, user_id: int, provider: str) -> SocialConnection:
        return SocialConnection.query.filter_by(user_id=user_id, provider=provider).first()

    def list_for_user(self, user_id: int) -> list:
        return SocialConnection.query.filter_by(user_id=user_id).order_by(SocialConnection.provider).all()

    @db_transaction
    def save_connection(
        self,
        user_id: int,
        provider: str,
        access_token: str,
        refresh_token: str = None,
        expires_at: datetime = None,
        scopes=None,
        profile_id: str = None,
        username: str = None,
        email: str = None,
        profile_image_url: str = None,
    ) -> SocialConnection:
        """
        Create or overwrite the user's connection for a provider.

        Called only once every field is resolved, so a connection is never
        half-written.
        """
        if not access_token:
            raise ValueError('A connected account requires an access token')

        connection = self.get(user_id, provider)
        if connection is None:
            connection = SocialConnection(user_id=user_id, provider=provider)
            db.session.add(connection)

        now = datetime.now(timezone.utc)
        connection.encrypted_credentials = self.encrypt_credentials(
            StoredCredentials(access_token=access_token, refresh_token=refresh_token)
        )
        connection.token_expires_at = expires_at
        connection.scope_set = scopes or set()
        connection.profile_id = profile_id
        connection.username = username
        connection.email = email
        connection.profile_image_url = profile_image_url
        connection.status = SocialConnection.STATUS_CONNECTED
        connection.last_error = None
        connection.connected_at = now
        connection.updated_at = now
        return connection

    @db_transaction
    def merge_tokens(self, connection: SocialConnection, access_token: str,
                     refresh_token: str = None, expires_at: datetime = None) -> SocialConnection:
        """
        Overwrite the token fields after a refresh.

        The write is a single UPDATE on the token columns with no version
        check: concurrent refreshes resolve last-writer-wins. A missing
        refresh_token keeps the previously stored one.
        """
        if refresh_token is None:
            refresh_token = self.decrypt_credentials(connection).refresh_token

        encrypted = self.encrypt_credentials(
            StoredCredentials(access_token=access_token, refresh_token=refresh_token)
        )
        db.session.execute(
            update(SocialConnection)
            .where(SocialConnection.id == connection.id)
            .values(
                encrypted_credentials=encrypted,
                token_expires_at=expires_at,
                status=SocialConnection.STATUS_CONNECTED,
                last_error=None,
                updated_at=datetime.now(timezone.utc),
            )
        )
        return connection

    @db_transaction
    def mark_status(self, connection: SocialConnection, status: str, error: str = None) -> SocialConnection:
        """Set connection status without touching stored tokens."""
        if status not in SocialConnection.STATUSES:
            raise ValueError(f'Unknown connection status: {status}')
        connection.status = status
        if error is not None:
            connection.last_error = error
        return connection

    @db_transaction
    def record_use(self, connection: SocialConnection, error: str = None) -> SocialConnection:
        if error is None:
            connection.last_used_at = datetime.now(timezone.utc)
        connection.last_error = error
        return connection

    @db_transaction
    def clear(self, user_id: int, provider: str) -> bool:
        """
        Remove the user's connection and pending attempts for a provider.

        Returns:
            True if a connection was removed, False if none existed
        """
        AuthorizationAttempt.query.filter_by(user_id=user_id, provider=provider).delete()
        connection = self.get(user_id, provider)
        if connection is None:
            return False
        db.session.delete(connection)
        return True

    # =========================================================================
    # Authorization Attempts
    # =========================================================================

    @db_transaction
    def create_attempt(self, user_id: int, provider: str, state: str,
                       pkce_verifier: str = None) -> AuthorizationAttempt:
        """Store a new attempt, replacing any pending one for the same user and provider."""
        AuthorizationAttempt.query.filter_by(user_id=user_id, provider=provider).delete()
        attempt = AuthorizationAttempt(
            user_id=user_id,
            provider=provider,
            state=state,
            pkce_verifier=pkce_verifier,
        )
        db.session.add(attempt)
        return attempt

    def consume_attempt(self, state: str) -> PendingAuthorization:
        """
        Atomically consume the attempt matching ``state``.

        Only the caller whose DELETE removes the row gets the attempt back;
        a replayed or concurrent callback receives None.
        """
        if not state:
            return None

        attempt = AuthorizationAttempt.query.filter_by(state=state).first()
        if attempt is None:
            return None

        snapshot = PendingAuthorization(
            user_id=attempt.user_id,
            provider=attempt.provider,
            state=attempt.state,
            pkce_verifier=attempt.pkce_verifier,
            created_at=attempt.created_at,
        )
        deleted = AuthorizationAttempt.query.filter_by(id=attempt.id).delete()
        db.session.commit()

        if deleted != 1:
            return None
        return snapshot

    # =========================================================================
    # Publish History
    # =========================================================================

    @db_transaction
    def append_history(self, user_id: int, provider: str, text: str, status: str,
                       connection_id: int = None, has_media: bool = False,
                       external_id: str = None, external_url: str = None,
                       error_code: str = None, error_message: str = None,
                       published_at: datetime = None, response_time_ms: int = None) -> PublishRecord:
        record = PublishRecord(
            user_id=user_id,
            provider=provider,
            connection_id=connection_id,
            text=text,
            has_media=has_media,
            status=status,
            external_id=external_id,
            external_url=external_url,
            error_code=error_code,
            error_message=error_message,
            published_at=published_at or datetime.now(timezone.utc),
            response_time_ms=response_time_ms,
        )
        db.session.add(record)
        return record

    def history(self, user_id: int, provider: str = None, limit: int = None) -> list:
        """Publish records, newest first."""
        query = PublishRecord.query.filter_by(user_id=user_id)
        if provider:
            query = query.filter_by(provider=provider)
        query = query.order_by(PublishRecord.published_at.desc(), PublishRecord.id.desc())
        if limit:
            query = query.limit(limit)
        return query.all()
