"""Provider publishing adapters."""
from services.publishers.base import Publisher, PublishContent, MediaContent, PublishResult
from services.publishers.twitter import BearerTextPublisher, SignedRequestPublisher
from services.publishers.linkedin import UgcFallbackPublisher
from services.publishers.instagram import ContainerPublisher

__all__ = [
    'Publisher',
    'PublishContent',
    'MediaContent',
    'PublishResult',
    'BearerTextPublisher',
    'SignedRequestPublisher',
    'UgcFallbackPublisher',
    'ContainerPublisher',
]
