"""
Shared constants and builders for the esrlink tests.
"""
from .factories import (
    TEST_WIF, TEST_LEGACY_PUBLIC_KEY, TEST_ACCOUNT, TEST_RPC_URL, TEST_CALLBACK,
    TOKEN_ABI, CHAIN_INFO, BLOCK, EXPECTED_EXPIRATION,
    FakeListener, make_identity, make_token_abis, make_transfer_request, mock_chain
)

__all__ = [
    'TEST_WIF',
    'TEST_LEGACY_PUBLIC_KEY',
    'TEST_ACCOUNT',
    'TEST_RPC_URL',
    'TEST_CALLBACK',
    'TOKEN_ABI',
    'CHAIN_INFO',
    'BLOCK',
    'EXPECTED_EXPIRATION',
    'FakeListener',
    'make_identity',
    'make_token_abis',
    'make_transfer_request',
    'mock_chain',
]
