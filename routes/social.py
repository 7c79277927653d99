"""Social account routes.

Handles:
- OAuth connection flow for every supported provider
- Account management (connect/disconnect/list)
- Publishing text and media
- Publish history
"""

import logging
from urllib.parse import urlencode

from flask import Blueprint, redirect, url_for, request, jsonify, current_app
from flask_login import login_required, current_user

from constants import RATE_LIMITS, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from extensions import limiter
from services.authorization import AuthorizationController
from services.credential_store import CredentialStore
from services.errors import SocialError
from services.providers import PROVIDERS, get_provider
from services.publishers import PublishContent, MediaContent
from services.publishing import PublishingService
from utils.routes import handle_social_errors, error_response
from utils.validation import parse_int, validate_url

logger = logging.getLogger(__name__)

social_bp = Blueprint('social', __name__)


def get_redirect_uri(provider):
    """Get the OAuth redirect URI for a provider's callback."""
    return url_for('social.callback', provider=provider, _external=True)


def connect_result_redirect(**params):
    """Redirect to CONNECT_RESULT_REDIRECT with the outcome, or None when unset."""
    target = current_app.config.get('CONNECT_RESULT_REDIRECT')
    if not target:
        return None
    separator = '&' if '?' in target else '?'
    return redirect(f'{target}{separator}{urlencode(params)}')


# =============================================================================
# Connection Management
# =============================================================================

@social_bp.route('/connections')
@login_required
@handle_social_errors
def connections():
    """List connected accounts and provider availability."""
    connected = {c.provider: c for c in CredentialStore().list_for_user(current_user.id)}
    providers = [
        {
            'name': descriptor.name,
            'display_name': descriptor.display_name,
            'configured': descriptor.is_configured,
            'connected': descriptor.name in connected,
        }
        for descriptor in PROVIDERS.values()
    ]
    return jsonify({
        'connections': [c.to_dict() for c in connected.values()],
        'providers': providers,
    })


@social_bp.route('/<provider>/connect', methods=['GET', 'POST'])
@login_required
@limiter.limit(RATE_LIMITS['connect'])
@handle_social_errors
def connect(provider):
    """Start the provider's OAuth flow."""
    descriptor = get_provider(provider)
    url, _ = AuthorizationController().begin_authorization(
        current_user.id, descriptor.name, get_redirect_uri(descriptor.name)
    )
    if request.method == 'GET':
        return redirect(url)
    return jsonify({'url': url, 'provider': descriptor.name})


@social_bp.route('/<provider>/callback')
@limiter.limit(RATE_LIMITS['callback'])
@handle_social_errors
def callback(provider):
    """Handle the provider's OAuth callback."""
    descriptor = get_provider(provider)
    user_id = current_user.id if current_user.is_authenticated else None

    try:
        connection = AuthorizationController().complete_authorization(
            descriptor.name, request.args, get_redirect_uri(descriptor.name), user_id=user_id,
        )
    except SocialError as e:
        logger.warning(f'{descriptor.name} OAuth callback failed: {e.code}')
        return connect_result_redirect(error=e.code, provider=descriptor.name) or error_response(e)

    response = connect_result_redirect(success=f'{descriptor.name}_connected')
    if response is not None:
        return response
    return jsonify({'connection': connection.to_dict()})


@social_bp.route('/<provider>/disconnect', methods=['POST'])
@login_required
@handle_social_errors
def disconnect(provider):
    """Remove the connected account."""
    descriptor = get_provider(provider)
    removed = AuthorizationController().disconnect(current_user.id, descriptor.name)
    return jsonify({'provider': descriptor.name, 'disconnected': removed})


# =============================================================================
# Publishing
# =============================================================================

def content_from_request() -> PublishContent:
    """Build PublishContent from a multipart upload or a JSON body."""
    upload = request.files.get('media')
    if upload is not None and upload.filename:
        return PublishContent(
            text=request.form.get('text', ''),
            media=MediaContent(
                mime_type=upload.mimetype,
                data=upload.read(),
                filename=upload.filename,
            ),
        )

    data = request.get_json(silent=True) or request.form
    media = None
    media_url = validate_url(data.get('media_url') or '', 'media_url')
    if media_url:
        media_type = (data.get('media_type') or 'image').lower()
        if '/' not in media_type:
            media_type = f'{media_type}/*'
        media = MediaContent(mime_type=media_type, url=media_url)
    return PublishContent(text=data.get('text') or '', media=media)


@social_bp.route('/<provider>/publish', methods=['POST'])
@login_required
@limiter.limit(RATE_LIMITS['publish'])
@handle_social_errors
def publish(provider):
    """Publish a post to the connected account."""
    descriptor = get_provider(provider)
    content = content_from_request()
    result = PublishingService().publish(
        current_user.id,
        descriptor.name,
        content,
        reconnect_url=url_for('social.connect', provider=descriptor.name, _external=True),
    )
    return jsonify({'provider': descriptor.name, 'result': result.to_dict()}), 201


# =============================================================================
# Publish History
# =============================================================================

@social_bp.route('/<provider>/history')
@login_required
@handle_social_errors
def history(provider):
    """Publish history for one provider, newest first."""
    descriptor = get_provider(provider)
    limit = parse_int(request.args.get('limit'), 'limit', default=DEFAULT_PAGE_SIZE,
                      min_val=1, max_val=MAX_PAGE_SIZE)
    records = CredentialStore().history(current_user.id, descriptor.name, limit=limit)
    return jsonify({'provider': descriptor.name, 'history': [r.to_dict() for r in records]})
