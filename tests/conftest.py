"""
Pytest fixtures for the esrlink tests.
"""
import pytest
from unittest.mock import MagicMock

from esrlink.channel._rate_limited_log import reset_rate_limits
from esrlink.chain import ChainClient
from esrlink.config import AgentSettings
from esrlink.models import BlockInfo, ChainInfo
from esrlink.session import MemorySessionStore

from test_helpers import BLOCK, CHAIN_INFO, TEST_RPC_URL, make_identity, make_token_abis


@pytest.fixture(autouse=True)
def _reset_log_limits():
    """Rate limited messages must not leak between tests."""
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture(autouse=True)
def _no_insecure_override(monkeypatch):
    monkeypatch.delenv("ESRLINK_INSECURE_RPC", raising=False)


@pytest.fixture
def identity():
    return make_identity()


@pytest.fixture
def token_abis():
    return make_token_abis()


@pytest.fixture
def chain_stub(token_abis):
    """ChainClient double answering with head block 100."""
    chain = MagicMock(spec=ChainClient)
    chain.get_info.return_value = ChainInfo.model_validate(CHAIN_INFO)
    chain.get_block.return_value = BlockInfo.model_validate(BLOCK)
    chain.get_abi.side_effect = lambda account: token_abis[account]
    return chain


@pytest.fixture
def chain_client():
    return ChainClient(TEST_RPC_URL, retry_count=0, timeout=5)


@pytest.fixture
def session_store():
    return MemorySessionStore()


@pytest.fixture
def fast_settings():
    return AgentSettings(
        chain_url=TEST_RPC_URL,
        debounce_seconds=0.05,
        settle_seconds=0,
        retry_count=0,
    )
