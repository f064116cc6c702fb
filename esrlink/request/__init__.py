"""
Signing request model, codec and resolver.
"""
from .codec import Codec, DEFAULT_CODEC, deflate_raw, inflate_raw
from .protocol import CHAIN_ALIASES, DEFAULT_SCHEME, PLACEHOLDER_AUTH, PLACEHOLDER_NAME, PLACEHOLDER_PERMISSION
from .resolver import RequestResolver, Resolution
from .signing_request import ResolvedSigningRequest, SigningRequest, signing_digest

__all__ = [
    'Codec',
    'DEFAULT_CODEC',
    'deflate_raw',
    'inflate_raw',
    'CHAIN_ALIASES',
    'DEFAULT_SCHEME',
    'PLACEHOLDER_AUTH',
    'PLACEHOLDER_NAME',
    'PLACEHOLDER_PERMISSION',
    'RequestResolver',
    'Resolution',
    'ResolvedSigningRequest',
    'SigningRequest',
    'signing_digest',
]
