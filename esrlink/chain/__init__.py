"""
Chain RPC access.
"""
from .client import ChainClient, validate_rpc_url

__all__ = [
    'ChainClient',
    'validate_rpc_url',
]
