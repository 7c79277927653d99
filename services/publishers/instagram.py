"""Instagram publishing adapter (Graph API content publishing).

Instagram pulls media from a public URL: a container is created for the
media, video containers are polled until processed, then the container is
published.
"""

import logging

from services.errors import InputError, MediaError, ProviderError, ScopeError, TokenError
from services.provider_http import provider_request, response_body, response_json, log_provider_failure
from services.providers import INSTAGRAM
from services.publishers.base import Publisher, PublishContent, PublishResult

logger = logging.getLogger(__name__)

GRAPH_URL = 'https://graph.instagram.com/v19.0'


class ContainerPublisher(Publisher):
    """Create-container, wait, publish."""

    provider = INSTAGRAM

    def publish(self, connection, access_token: str, content: PublishContent) -> PublishResult:
        media = content.media
        if media is None or not media.url:
            raise InputError('Instagram posts require media with a public URL.',
                             code='invalid_media', provider=INSTAGRAM)
        self.require_supported_media(media)

        account = connection.profile_id
        params = {'caption': content.text, 'access_token': access_token}
        if media.is_video:
            params.update({'media_type': 'REELS', 'video_url': media.url})
        else:
            params['image_url'] = media.url

        response = provider_request('POST', f'{GRAPH_URL}/{account}/media', provider=INSTAGRAM, params=params)
        container_id = self._json_or_raise(response, 'create container').get('id')
        if not container_id:
            raise MediaError('Instagram did not return a media container',
                             code='MEDIA_UPLOAD_FAILED', provider=INSTAGRAM)

        if media.is_video:
            self.poll_until_ready(lambda: self._container_ready(container_id, access_token), None)

        response = provider_request(
            'POST', f'{GRAPH_URL}/{account}/media_publish', provider=INSTAGRAM,
            params={'creation_id': container_id, 'access_token': access_token},
        )
        media_id = self._json_or_raise(response, 'media_publish').get('id')
        if not media_id:
            raise ProviderError('Instagram response did not include a media id',
                                code='PROVIDER_ERROR', provider=INSTAGRAM, body=response_body(response))

        logger.info(f'Published Instagram media {media_id} for connection {connection.id}')
        return PublishResult(external_id=media_id)

    def _container_ready(self, container_id, access_token):
        response = provider_request(
            'GET', f'{GRAPH_URL}/{container_id}', provider=INSTAGRAM,
            params={'fields': 'status_code', 'access_token': access_token},
        )
        status_code = self._json_or_raise(response, 'container status').get('status_code')
        if status_code == 'ERROR':
            raise MediaError('Instagram could not process the video.',
                             code='MEDIA_UPLOAD_FAILED', provider=INSTAGRAM, container_id=container_id)
        return status_code == 'FINISHED', None

    @staticmethod
    def _json_or_raise(response, action) -> dict:
        data = response_json(response)
        if response.ok and isinstance(data, dict):
            return data

        log_provider_failure(INSTAGRAM, action, response)
        error = (data.get('error') if isinstance(data, dict) else None) or {}
        message = error.get('message') or f'Instagram {action} failed ({response.status_code})'
        if error.get('type') == 'OAuthException':
            if response.status_code == 401:
                raise TokenError(message, code='UNAUTHORIZED', provider=INSTAGRAM)
            raise ScopeError(message, code='PERMISSION_DENIED', provider=INSTAGRAM)
        raise ProviderError(message, code='PROVIDER_ERROR', provider=INSTAGRAM,
                            status=response.status_code, body=response_body(response))
