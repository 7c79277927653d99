"""Outbound HTTP to provider APIs.

All provider calls go through provider_request() so every call gets the
same bounded timeout and the same translation of transport failures.
"""

import logging

import requests
from flask import current_app, has_app_context

from services.errors import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
MAX_LOGGED_BODY = 2000


def _timeout():
    if has_app_context():
        return current_app.config.get('PROVIDER_REQUEST_TIMEOUT', DEFAULT_TIMEOUT)
    return DEFAULT_TIMEOUT


def provider_request(method: str, url: str, provider: str = None, **kwargs) -> requests.Response:
    """
    Issue a request to a provider API.

    Args:
        method: HTTP method
        url: Full URL
        provider: Provider name, for log context
        **kwargs: Passed through to requests.request

    Returns:
        requests.Response (any status code)

    Raises:
        ProviderError: On timeout or connection failure
    """
    kwargs.setdefault('timeout', _timeout())
    label = provider or 'provider'

    try:
        return requests.request(method, url, **kwargs)
    except requests.Timeout:
        logger.warning(f'{label} request timed out: {method} {url}')
        raise ProviderError(f'{label} API request timed out', code='PROVIDER_ERROR', reason='timeout')
    except requests.ConnectionError:
        logger.warning(f'{label} connection failed: {method} {url}')
        raise ProviderError(f'Failed to connect to {label} API', code='PROVIDER_ERROR', reason='connection_error')


def response_body(response) -> str:
    """Raw response text, truncated for logs and error details."""
    text = response.text or ''
    return text[:MAX_LOGGED_BODY]


def response_json(response):
    """Parsed JSON body, or None if the body is not JSON."""
    try:
        return response.json()
    except ValueError:
        return None


def log_provider_failure(provider: str, action: str, response):
    """Log the raw status and body of a failed provider call."""
    logger.warning(
        f'{provider} {action} failed: status={response.status_code} body={response_body(response)}'
    )
