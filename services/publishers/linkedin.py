"""LinkedIn publishing adapter.

Posts through the UGC Posts API. Apps without the required product version
are rejected with a NO_VERSION 403; for those a single retry goes to the
legacy Shares API. This fallback reflects provider behavior observed in the
past and should be re-verified against the live API.
"""

import logging

from services.errors import InputError, ProviderError, ScopeError, TokenError
from services.provider_http import provider_request, response_body, response_json, log_provider_failure
from services.providers import LINKEDIN, is_placeholder_profile_id
from services.publishers.base import Publisher, PublishContent, PublishResult

logger = logging.getLogger(__name__)

UGC_POSTS_URL = 'https://api.linkedin.com/v2/ugcPosts'
SHARES_URL = 'https://api.linkedin.com/v2/shares'
API_VERSION = '202401'

NO_VERSION_MARKERS = ('ugcPosts.CREATE.NO_VERSION', 'No active product version')

PERMISSION_GUIDANCE = (
    'Your LinkedIn app is not allowed to post. Add the "Share on LinkedIn" product '
    'to the app in the LinkedIn Developer Portal and make sure the w_member_social '
    'permission is granted, then reconnect.'
)


def author_urn(profile_id: str) -> str:
    return f'urn:li:person:{profile_id}'


class UgcFallbackPublisher(Publisher):
    """Text posts via ugcPosts, with one fallback to shares."""

    provider = LINKEDIN

    def publish(self, connection, access_token: str, content: PublishContent) -> PublishResult:
        if content.media is not None:
            raise InputError('LinkedIn media posts are not supported yet.',
                             code='invalid_media', provider=LINKEDIN)
        if not connection.profile_id:
            raise TokenError('LinkedIn profile id is missing. Please reconnect your account.',
                             code='REAUTH_REQUIRED', provider=LINKEDIN)
        if is_placeholder_profile_id(LINKEDIN, connection.profile_id):
            raise TokenError('LinkedIn did not return your profile when you connected. '
                             'Please reconnect your account before posting.',
                             code='REAUTH_REQUIRED', provider=LINKEDIN)

        author = author_urn(connection.profile_id)
        headers = {
            'Authorization': f'Bearer {access_token}',
            'Content-Type': 'application/json',
            'X-Restli-Protocol-Version': '2.0.0',
            'LinkedIn-Version': API_VERSION,
        }

        response = provider_request('POST', UGC_POSTS_URL, provider=LINKEDIN,
                                    headers=headers, json=self.ugc_payload(author, content.text))

        if response.status_code == 403 and self._is_no_version(response):
            logger.info('LinkedIn ugcPosts rejected with NO_VERSION, falling back to shares')
            response = provider_request('POST', SHARES_URL, provider=LINKEDIN,
                                        headers=headers, json=self.share_payload(author, content.text))
            if not response.ok:
                log_provider_failure(LINKEDIN, 'share fallback', response)
                raise ScopeError(PERMISSION_GUIDANCE, code='PERMISSION_DENIED', provider=LINKEDIN,
                                 status=response.status_code, body=response_body(response))

        if not response.ok:
            self._raise_for_response(response)

        post_id = response.headers.get('x-restli-id') or (response_json(response) or {}).get('id')
        if not post_id:
            raise ProviderError('LinkedIn response did not include a post id',
                                code='PROVIDER_ERROR', provider=LINKEDIN, body=response_body(response))

        logger.info(f'Posted LinkedIn share {post_id} for connection {connection.id}')
        return PublishResult(
            external_id=post_id,
            url=f'https://www.linkedin.com/feed/update/{post_id}/',
        )

    @staticmethod
    def ugc_payload(author: str, text: str) -> dict:
        return {
            'author': author,
            'lifecycleState': 'PUBLISHED',
            'specificContent': {
                'com.linkedin.ugc.ShareContent': {
                    'shareCommentary': {'text': text},
                    'shareMediaCategory': 'NONE',
                },
            },
            'visibility': {
                'com.linkedin.ugc.MemberNetworkVisibility': 'PUBLIC',
            },
        }

    @staticmethod
    def share_payload(author: str, text: str) -> dict:
        return {
            'owner': author,
            'text': {'text': text},
            'distribution': {'linkedInDistributionTarget': {}},
        }

    @staticmethod
    def _is_no_version(response) -> bool:
        body = response_body(response)
        return any(marker in body for marker in NO_VERSION_MARKERS)

    @staticmethod
    def _raise_for_response(response):
        log_provider_failure(LINKEDIN, 'post', response)
        body = response_body(response)
        if response.status_code == 401:
            raise TokenError('LinkedIn rejected the access token. Please reconnect your account.',
                             code='UNAUTHORIZED', provider=LINKEDIN)
        if response.status_code == 403 and 'ACCESS_DENIED' in body:
            raise ScopeError(PERMISSION_GUIDANCE, code='PERMISSION_DENIED', provider=LINKEDIN)
        raise ProviderError(f'LinkedIn API error ({response.status_code})',
                            code='PROVIDER_ERROR', provider=LINKEDIN,
                            status=response.status_code, body=body)
