"""
Identity module for the esrlink agent.

Holds the signing key and the account it authorizes. Keys are injected at
startup and never persisted by the agent.
"""
from .keys import PrivateKey, PublicKey, Signature, is_canonical
from .types import Identity, DEFAULT_PERMISSION

__all__ = [
    'Identity',
    'PrivateKey',
    'PublicKey',
    'Signature',
    'is_canonical',
    'DEFAULT_PERMISSION',
]
