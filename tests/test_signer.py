"""
Tests for RequestSigner and the key signature provider.
"""
from unittest.mock import MagicMock

import pytest

from esrlink.exceptions import SigningError
from esrlink.identity import PrivateKey, Signature
from esrlink.models import Callback
from esrlink.request import CHAIN_ALIASES, RequestResolver, Resolution
from esrlink.signer import KeySignatureProvider, RequestSigner

from test_helpers import TEST_CALLBACK, make_transfer_request


@pytest.fixture
def resolution(chain_stub, identity):
    return RequestResolver(chain_stub, identity).resolve(make_transfer_request().encode())


def _stub_resolution(req_value):
    """Resolution whose callback carries the given ``req`` value."""
    resolved = MagicMock()
    resolved.chain_id = CHAIN_ALIASES[1]
    resolved.serialized_transaction = b"\x01" * 40
    resolved.get_callback.return_value = Callback(
        url="https://cb.example.com/link/abc",
        payload={"sig": "", "tx": "00", "req": req_value, "sa": "alice", "sp": "active"},
    )
    return Resolution(resolved=resolved, callback_url="https://cb.example.com/link/abc", abis={})


def test_sign_builds_payload(resolution, identity):
    callback = RequestSigner(identity, link_name="testapp").sign(resolution)

    payload = callback.payload
    assert callback.url == TEST_CALLBACK
    assert payload["sa"] == "alice"
    assert payload["sp"] == "active"
    assert payload["tx"] == resolution.resolved.transaction_id
    assert payload["link_ch"] == TEST_CALLBACK
    assert payload["link_key"] == str(identity.public_key)
    assert payload["link_name"] == "testapp"

    signature = Signature.from_string(payload["sig"])
    assert signature.recover(resolution.resolved.signing_digest) == identity.public_key


def test_link_key_is_never_the_private_key(resolution, identity):
    payload = RequestSigner(identity).sign(resolution).payload
    assert payload["link_key"].startswith("PUB_K1_")
    assert identity.private_key.to_wif() not in payload.values()
    assert payload["link_name"] == "mydapp"


def test_absent_req_is_replaced_with_scheme(identity):
    callback = RequestSigner(identity).sign(_stub_resolution("undefined"))
    assert callback.payload["req"] == "esr"


@pytest.mark.parametrize("value", ["esr://gmNgZGBY", "undefinedx", "xundefined", "Undefined", ""])
def test_other_req_values_untouched(identity, value):
    callback = RequestSigner(identity).sign(_stub_resolution(value))
    assert callback.payload["req"] == value


def test_provider_receives_required_key(resolution, identity):
    provider = MagicMock()
    provider.sign.return_value = ["SIG_K1_fake"]
    RequestSigner(identity, provider=provider).sign(resolution)

    chain_id, keys, serialized, abis = provider.sign.call_args.args
    assert chain_id == CHAIN_ALIASES[1]
    assert keys == [identity.public_key]
    assert serialized == resolution.resolved.serialized_transaction
    assert abis is resolution.abis


def test_provider_failure_is_signing_error(resolution, identity):
    provider = MagicMock()
    provider.sign.side_effect = RuntimeError("device locked")
    with pytest.raises(SigningError, match="device locked"):
        RequestSigner(identity, provider=provider).sign(resolution)
    assert provider.sign.call_count == 1


def test_provider_without_signatures(resolution, identity):
    provider = MagicMock()
    provider.sign.return_value = []
    with pytest.raises(SigningError, match="no signatures"):
        RequestSigner(identity, provider=provider).sign(resolution)


def test_key_provider_missing_key(identity):
    other = PrivateKey((7).to_bytes(32, "big"))
    provider = KeySignatureProvider([other])
    with pytest.raises(SigningError, match="No private key"):
        provider.sign(CHAIN_ALIASES[1], [identity.public_key], b"\x00", {})
    assert provider.available_keys == [other.to_public()]
