"""Publisher contract and shared helpers for provider adapters."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

from flask import current_app

from constants import (
    MEDIA_CHUNK_SIZE,
    MEDIA_STATUS_MAX_POLLS,
    MEDIA_STATUS_MAX_WAIT_SECONDS,
    MEDIA_STATUS_DEFAULT_INTERVAL,
)
from services.errors import InputError, MediaError

logger = logging.getLogger(__name__)


@dataclass
class MediaContent:
    mime_type: str
    data: bytes = None
    filename: str = None
    url: str = None

    @property
    def is_image(self):
        return (self.mime_type or '').startswith('image/')

    @property
    def is_video(self):
        return (self.mime_type or '').startswith('video/')

    @property
    def size(self):
        return len(self.data) if self.data else 0


@dataclass
class PublishContent:
    text: str
    media: MediaContent = None


@dataclass
class PublishResult:
    external_id: str
    status: str = 'published'
    url: str = None
    published_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'external_id': self.external_id,
            'status': self.status,
            'url': self.url,
            'published_at': self.published_at.isoformat(),
        }


class Publisher:
    """
    Base class for provider publishing adapters.

    Subclasses implement publish(connection, access_token, content) and
    raise SocialError subclasses with one of the codes UNAUTHORIZED,
    PERMISSION_DENIED, DUPLICATE_CONTENT, MEDIA_UPLOAD_FAILED or
    PROVIDER_ERROR.
    """

    provider = None

    def __init__(self, sleep=time.sleep):
        self.sleep = sleep

    def publish(self, connection, access_token: str, content: PublishContent) -> PublishResult:
        raise NotImplementedError

    # =========================================================================
    # Settings
    # =========================================================================

    @property
    def chunk_size(self):
        return current_app.config.get('MEDIA_CHUNK_SIZE', MEDIA_CHUNK_SIZE)

    @property
    def max_polls(self):
        return current_app.config.get('MEDIA_STATUS_MAX_POLLS', MEDIA_STATUS_MAX_POLLS)

    @property
    def max_wait(self):
        return current_app.config.get('MEDIA_STATUS_MAX_WAIT', MEDIA_STATUS_MAX_WAIT_SECONDS)

    # =========================================================================
    # Helpers
    # =========================================================================

    def require_supported_media(self, media: MediaContent):
        if not (media.is_image or media.is_video):
            raise InputError(
                f'Unsupported media type: {media.mime_type}',
                code='invalid_media',
                provider=self.provider,
            )

    def poll_until_ready(self, poll, delay):
        """
        Wait for provider-side media processing.

        ``poll()`` returns (ready, next_delay) and raises MediaError when the
        provider reports failure. Polling stops after max_polls attempts or
        once the total wait would exceed max_wait seconds.
        """
        waited = 0
        for attempt in range(self.max_polls):
            delay = delay if delay is not None else MEDIA_STATUS_DEFAULT_INTERVAL
            if waited + delay > self.max_wait:
                break
            self.sleep(delay)
            waited += delay
            ready, delay = poll()
            logger.debug(f'{self.provider} media status poll {attempt + 1}: ready={ready}')
            if ready:
                return
        raise MediaError(
            'Media processing did not finish in time',
            code='MEDIA_UPLOAD_FAILED',
            provider=self.provider,
            waited_seconds=waited,
        )
