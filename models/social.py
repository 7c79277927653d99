"""Social connection models - provider connections, pending authorizations, publish history."""
from datetime import datetime, timezone
from extensions import db


def as_utc(value):
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def attempt_expired(created_at, ttl_seconds: int, now=None) -> bool:
    """Whether an authorization attempt created at ``created_at`` is past its TTL."""
    if created_at is None:
        return True
    now = now or datetime.now(timezone.utc)
    return (now - as_utc(created_at)).total_seconds() > ttl_seconds


class SocialConnection(db.Model):
    """A user's OAuth connection to one provider account."""
    __tablename__ = 'social_connections'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    # Provider identification
    provider = db.Column(db.String(50), nullable=False, index=True)

    # Account info
    profile_id = db.Column(db.String(100), nullable=True)
    username = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    profile_image_url = db.Column(db.Text, nullable=True)

    # Encrypted {access_token, refresh_token}
    encrypted_credentials = db.Column(db.Text, nullable=False)

    # Token metadata
    token_expires_at = db.Column(db.DateTime, nullable=True)
    scopes = db.Column(db.Text, nullable=False, default='')

    # Status
    status = db.Column(db.String(20), nullable=False, default='connected')
    last_used_at = db.Column(db.DateTime, nullable=True)
    last_error = db.Column(db.Text, nullable=True)

    # Timestamps
    connected_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    user = db.relationship('User', backref=db.backref('social_connections', cascade='all, delete-orphan'))

    STATUS_CONNECTED = 'connected'
    STATUS_EXPIRED = 'expired'
    STATUS_REVOKED = 'revoked'
    STATUS_DISCONNECTED = 'disconnected'

    STATUSES = [STATUS_CONNECTED, STATUS_EXPIRED, STATUS_REVOKED, STATUS_DISCONNECTED]

    __table_args__ = (
        db.UniqueConstraint('user_id', 'provider', name='unique_user_provider'),
    )

    @property
    def scope_set(self) -> set:
        """Granted scopes as a set. Empty when none were granted."""
        return set((self.scopes or '').split())

    @scope_set.setter
    def scope_set(self, values):
        self.scopes = ' '.join(sorted(values or ()))

    @property
    def expires_at(self):
        return as_utc(self.token_expires_at)

    @property
    def is_connected(self):
        return self.status == self.STATUS_CONNECTED

    def to_dict(self):
        from services.providers import PROVIDERS
        descriptor = PROVIDERS.get(self.provider)
        return {
            'id': self.id,
            'user_id': self.user_id,
            'provider': self.provider,
            'provider_display': descriptor.display_name if descriptor else self.provider.title(),
            'profile_id': self.profile_id,
            'username': self.username,
            'profile_image_url': self.profile_image_url,
            'scopes': sorted(self.scope_set),
            'status': self.status,
            'expires_at': self.expires_at.isoformat() if self.token_expires_at else None,
            'connected_at': self.connected_at.isoformat() if self.connected_at else None,
            'last_used_at': self.last_used_at.isoformat() if self.last_used_at else None,
            'last_error': self.last_error,
        }


class AuthorizationAttempt(db.Model):
    """An in-flight authorization flow, consumed exactly once by its callback."""
    __tablename__ = 'authorization_attempts'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    provider = db.Column(db.String(50), nullable=False)
    state = db.Column(db.String(128), nullable=False, unique=True, index=True)
    pkce_verifier = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))


class PublishRecord(db.Model):
    """Append-only history of publish attempts."""
    __tablename__ = 'publish_records'

    id = db.Column(db.Integer, primary_key=True)

    # Links
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    connection_id = db.Column(db.Integer, db.ForeignKey('social_connections.id', ondelete='SET NULL'),
                              nullable=True)

    # Post details
    provider = db.Column(db.String(50), nullable=False, index=True)
    text = db.Column(db.Text, nullable=False)
    has_media = db.Column(db.Boolean, default=False)

    # Result
    status = db.Column(db.String(20), nullable=False)
    external_id = db.Column(db.String(100), nullable=True)
    external_url = db.Column(db.Text, nullable=True)
    error_code = db.Column(db.String(50), nullable=True)
    error_message = db.Column(db.Text, nullable=True)

    # Timing
    published_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), index=True)
    response_time_ms = db.Column(db.Integer, nullable=True)

    STATUS_PUBLISHED = 'published'
    STATUS_FAILED = 'failed'

    def to_dict(self):
        return {
            'id': self.id,
            'provider': self.provider,
            'text': self.text,
            'has_media': self.has_media,
            'status': self.status,
            'external_id': self.external_id,
            'external_url': self.external_url,
            'error_code': self.error_code,
            'error_message': self.error_message,
            'published_at': self.published_at.isoformat() if self.published_at else None,
            'response_time_ms': self.response_time_ms,
        }
