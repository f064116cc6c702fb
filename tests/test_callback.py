"""
Tests for callback URL substitution and delivery.
"""
import pytest
import requests

from esrlink.callback import CALLBACK_PARAMS, CallbackDispatcher, substitute_url
from esrlink.exceptions import NetworkError
from esrlink.models import Callback

FULL_PAYLOAD = {
    "bn": "123",
    "ex": "2020-01-01T00:01:00",
    "rbn": "100",
    "req": "esr://abc",
    "rid": "42",
    "sa": "alice",
    "sig": "SIG_K1_x",
    "sp": "active",
    "tx": "deadbeef",
}


def test_all_nine_placeholders_substituted():
    template = "https://cb.example.com/" + "/".join("{{%s}}" % name for name in CALLBACK_PARAMS)
    url = substitute_url(template, FULL_PAYLOAD)
    assert url == "https://cb.example.com/" + "/".join(FULL_PAYLOAD[name] for name in CALLBACK_PARAMS)
    assert len(CALLBACK_PARAMS) == 9


def test_missing_values_left_as_is():
    payload = dict(FULL_PAYLOAD)
    del payload["bn"]
    url = substitute_url("https://cb.example.com/?bn={{bn}}&tx={{tx}}", payload)
    assert url == "https://cb.example.com/?bn={{bn}}&tx=deadbeef"


def test_unknown_placeholders_left_as_is():
    payload = dict(FULL_PAYLOAD, link_ch="https://x")
    url = substitute_url("https://cb.example.com/{{link_ch}}/{{sa}}", payload)
    assert url == "https://cb.example.com/{{link_ch}}/alice"


def test_repeated_placeholder():
    assert substitute_url("{{sa}}-{{sa}}", FULL_PAYLOAD) == "alice-alice"


def test_deliver_posts_payload_once(requests_mock):
    requests_mock.post("https://cb.example.com/done/deadbeef", status_code=200)
    callback = Callback(url="https://cb.example.com/done/{{tx}}", payload=FULL_PAYLOAD)

    response = CallbackDispatcher().deliver(callback)

    assert response.status_code == 200
    assert requests_mock.call_count == 1
    assert requests_mock.last_request.json() == FULL_PAYLOAD


def test_deliver_non_2xx(requests_mock):
    requests_mock.post("https://cb.example.com/done", status_code=500)
    with pytest.raises(NetworkError) as exc_info:
        CallbackDispatcher().deliver(Callback(url="https://cb.example.com/done", payload=FULL_PAYLOAD))
    assert exc_info.value.status_code == 500
    assert requests_mock.call_count == 1


def test_deliver_transport_error(requests_mock):
    requests_mock.post("https://cb.example.com/done", exc=requests.exceptions.ConnectTimeout)
    with pytest.raises(NetworkError, match="delivery failed"):
        CallbackDispatcher().deliver(Callback(url="https://cb.example.com/done", payload=FULL_PAYLOAD))


def test_empty_url_skips_delivery(requests_mock):
    assert CallbackDispatcher().deliver(Callback(url="", payload=FULL_PAYLOAD)) is None
    assert requests_mock.call_count == 0
