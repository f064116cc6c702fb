"""
Tests for the chain RPC client.
"""
import pytest
import requests

from esrlink.chain import ChainClient, validate_rpc_url
from esrlink.exceptions import AbiFetchError, ChainQueryError

from test_helpers import BLOCK, CHAIN_INFO, TEST_RPC_URL, mock_chain


def test_get_info(chain_client, requests_mock):
    mock_chain(requests_mock)
    info = chain_client.get_info()
    assert info.head_block_num == 100
    assert info.chain_id == CHAIN_INFO["chain_id"]


def test_get_block_posts_block_num(chain_client, requests_mock):
    mock_chain(requests_mock)
    block = chain_client.get_block(100)
    assert block.block_id == BLOCK["id"]
    assert block.tapos_context() == {
        "block_num": 100,
        "timestamp": BLOCK["timestamp"],
        "ref_block_prefix": BLOCK["ref_block_prefix"],
    }
    assert requests_mock.last_request.json() == {"block_num_or_id": 100}


def test_get_abi(chain_client, requests_mock):
    mock_chain(requests_mock)
    abi = chain_client.get_abi("eosio.token")
    assert abi.action_type("transfer") == "transfer"
    assert requests_mock.last_request.json() == {"account_name": "eosio.token"}


def test_get_abi_account_without_abi(chain_client, requests_mock):
    requests_mock.post(f"{TEST_RPC_URL}/v1/chain/get_abi", json={"account_name": "alice"})
    with pytest.raises(AbiFetchError, match="has no ABI"):
        chain_client.get_abi("alice")


def test_get_abi_http_error(chain_client, requests_mock):
    requests_mock.post(f"{TEST_RPC_URL}/v1/chain/get_abi", status_code=500, text="boom")
    with pytest.raises(AbiFetchError, match="eosio.token"):
        chain_client.get_abi("eosio.token")


def test_http_error(chain_client, requests_mock):
    requests_mock.post(f"{TEST_RPC_URL}/v1/chain/get_info", status_code=503, text="unavailable")
    with pytest.raises(ChainQueryError, match="503"):
        chain_client.get_info()


def test_connection_error(chain_client, requests_mock):
    requests_mock.post(f"{TEST_RPC_URL}/v1/chain/get_info", exc=requests.exceptions.ConnectionError)
    with pytest.raises(ChainQueryError, match="request failed"):
        chain_client.get_info()


def test_invalid_json(chain_client, requests_mock):
    requests_mock.post(f"{TEST_RPC_URL}/v1/chain/get_info", text="<html>")
    with pytest.raises(ChainQueryError, match="Invalid JSON"):
        chain_client.get_info()


def test_malformed_block(chain_client, requests_mock):
    requests_mock.post(f"{TEST_RPC_URL}/v1/chain/get_block", json={"block_num": 1})
    with pytest.raises(ChainQueryError, match="Malformed"):
        chain_client.get_block(1)


def test_trailing_slash_stripped():
    assert ChainClient(TEST_RPC_URL + "/").rpc_url == TEST_RPC_URL


@pytest.mark.parametrize("url", ["http://localhost:8888", "http://127.0.0.1:8888", "http://[::1]:8888"])
def test_local_http_allowed(url):
    assert validate_rpc_url(url) == url


def test_remote_http_rejected():
    with pytest.raises(ValueError, match="https"):
        ChainClient("http://node.example.com")


def test_insecure_override(monkeypatch):
    monkeypatch.setenv("ESRLINK_INSECURE_RPC", "1")
    assert ChainClient("http://node.example.com").rpc_url == "http://node.example.com"


def test_malformed_url_rejected():
    with pytest.raises(ValueError, match="Invalid"):
        validate_rpc_url("node.example.com")
