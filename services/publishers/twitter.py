"""Twitter/X publishing adapters.

BearerTextPublisher posts text with the user's OAuth 2.0 token.
SignedRequestPublisher signs every call with OAuth 1.0a app credentials,
which the v1.1 media upload endpoint requires.
"""

import logging
import time

from services.errors import DuplicateContentError, InputError, MediaError, ProviderError, TokenError
from services.provider_http import provider_request, response_body, response_json, log_provider_failure
from services.providers import TWITTER
from services.publishers.base import Publisher, PublishContent, PublishResult, MediaContent
from services.signatures import OAuth1Signer

logger = logging.getLogger(__name__)

TWEETS_URL = 'https://api.twitter.com/2/tweets'
MEDIA_UPLOAD_URL = 'https://upload.twitter.com/1.1/media/upload.json'


def tweet_url(connection, tweet_id):
    if tweet_id and connection.username:
        return f'https://twitter.com/{connection.username}/status/{tweet_id}'
    return None


def raise_for_tweet_response(response):
    """Map a failed POST /2/tweets response onto the error taxonomy."""
    log_provider_failure(TWITTER, 'post tweet', response)
    body = response_body(response)

    if response.status_code == 401:
        raise TokenError('Twitter rejected the access token. Please reconnect your account.',
                         code='UNAUTHORIZED', provider=TWITTER)
    if response.status_code == 403 and 'duplicate' in body.lower():
        raise DuplicateContentError('Twitter rejected this post as a duplicate.',
                                    code='DUPLICATE_CONTENT', provider=TWITTER)
    raise ProviderError(f'Twitter API error ({response.status_code})',
                        code='PROVIDER_ERROR', provider=TWITTER,
                        status=response.status_code, body=body)


def tweet_result(connection, response) -> PublishResult:
    data = (response_json(response) or {}).get('data') or {}
    tweet_id = data.get('id')
    if not tweet_id:
        raise ProviderError('Twitter response did not include a tweet id',
                            code='PROVIDER_ERROR', provider=TWITTER, body=response_body(response))
    logger.info(f'Posted tweet {tweet_id} for connection {connection.id}')
    return PublishResult(external_id=tweet_id, url=tweet_url(connection, tweet_id))


class BearerTextPublisher(Publisher):
    """Text-only tweets authorized with the user's bearer token."""

    provider = TWITTER

    def publish(self, connection, access_token: str, content: PublishContent) -> PublishResult:
        if content.media is not None:
            raise InputError(
                'Posting media to Twitter requires OAuth 1.0a app credentials.',
                code='invalid_media',
                provider=TWITTER,
            )

        response = provider_request(
            'POST', TWEETS_URL, provider=TWITTER,
            headers={'Authorization': f'Bearer {access_token}', 'Content-Type': 'application/json'},
            json={'text': content.text},
        )
        if response.status_code not in (200, 201):
            raise_for_tweet_response(response)
        return tweet_result(connection, response)


class SignedRequestPublisher(Publisher):
    """Tweets (with optional image or video) signed with OAuth 1.0a."""

    provider = TWITTER

    def __init__(self, credentials, sleep=time.sleep):
        super().__init__(sleep=sleep)
        self.signer = OAuth1Signer(credentials)

    def publish(self, connection, access_token: str, content: PublishContent) -> PublishResult:
        payload = {'text': content.text}

        if content.media is not None:
            media_id = self.upload_media(content.media)
            payload['media'] = {'media_ids': [media_id]}

        response = provider_request(
            'POST', TWEETS_URL, provider=TWITTER,
            headers={
                'Authorization': self.signer.sign('POST', TWEETS_URL),
                'Content-Type': 'application/json',
            },
            json=payload,
        )
        if response.status_code not in (200, 201):
            raise_for_tweet_response(response)
        return tweet_result(connection, response)

    # =========================================================================
    # Media Upload
    # =========================================================================

    def upload_media(self, media: MediaContent) -> str:
        """Upload media and return its media_id_string once it is ready to attach."""
        self.require_supported_media(media)
        if not media.data:
            raise InputError('Media file is empty', code='invalid_media', provider=TWITTER)

        if media.is_video:
            return self._upload_video(media)
        return self._upload_image(media)

    def _upload_image(self, media: MediaContent) -> str:
        response = provider_request(
            'POST', MEDIA_UPLOAD_URL, provider=TWITTER,
            headers={'Authorization': self.signer.sign('POST', MEDIA_UPLOAD_URL)},
            files={'media': (media.filename or 'image', media.data, media.mime_type)},
        )
        return self._media_id(response, 'image upload')

    def _upload_video(self, media: MediaContent) -> str:
        init_params = {
            'command': 'INIT',
            'total_bytes': str(media.size),
            'media_type': media.mime_type,
            'media_category': 'tweet_video',
        }
        response = self._signed_form('POST', init_params)
        media_id = self._media_id(response, 'video INIT')

        chunk_size = self.chunk_size
        for segment_index, offset in enumerate(range(0, media.size, chunk_size)):
            chunk = media.data[offset:offset + chunk_size]
            response = provider_request(
                'POST', MEDIA_UPLOAD_URL, provider=TWITTER,
                headers={'Authorization': self.signer.sign('POST', MEDIA_UPLOAD_URL)},
                data={'command': 'APPEND', 'media_id': media_id, 'segment_index': str(segment_index)},
                files={'media': (media.filename or 'video', chunk, 'application/octet-stream')},
            )
            if not response.ok:
                self._media_failure(response, f'video APPEND segment {segment_index}')

        response = self._signed_form('POST', {'command': 'FINALIZE', 'media_id': media_id})
        if not response.ok:
            self._media_failure(response, 'video FINALIZE')

        processing_info = (response_json(response) or {}).get('processing_info')
        if processing_info and not self._processing_done(processing_info):
            self.poll_until_ready(
                lambda: self._check_status(media_id),
                processing_info.get('check_after_secs'),
            )
        return media_id

    def _check_status(self, media_id):
        params = {'command': 'STATUS', 'media_id': media_id}
        response = provider_request(
            'GET', MEDIA_UPLOAD_URL, provider=TWITTER,
            headers={'Authorization': self.signer.sign('GET', MEDIA_UPLOAD_URL, params)},
            params=params,
        )
        if not response.ok:
            self._media_failure(response, 'video STATUS')

        processing_info = (response_json(response) or {}).get('processing_info')
        if not processing_info:
            return True, None
        return self._processing_done(processing_info), processing_info.get('check_after_secs')

    @staticmethod
    def _processing_done(processing_info) -> bool:
        state = processing_info.get('state')
        if state == 'failed':
            error = processing_info.get('error') or {}
            raise MediaError(
                f'Twitter could not process the video: {error.get("message", "unknown error")}',
                code='MEDIA_UPLOAD_FAILED',
                provider=TWITTER,
                processing_error=error,
            )
        return state == 'succeeded'

    def _signed_form(self, method, params):
        return provider_request(
            method, MEDIA_UPLOAD_URL, provider=TWITTER,
            headers={'Authorization': self.signer.sign(method, MEDIA_UPLOAD_URL, params)},
            data=params,
        )

    def _media_id(self, response, action) -> str:
        media_id = (response_json(response) or {}).get('media_id_string') if response.ok else None
        if not media_id:
            self._media_failure(response, action)
        return media_id

    @staticmethod
    def _media_failure(response, action):
        log_provider_failure(TWITTER, action, response)
        if response.status_code == 401:
            raise TokenError('Twitter rejected the app credentials for media upload.',
                             code='UNAUTHORIZED', provider=TWITTER)
        raise MediaError(f'Twitter {action} failed ({response.status_code})',
                         code='MEDIA_UPLOAD_FAILED', provider=TWITTER,
                         status=response.status_code, body=response_body(response))
