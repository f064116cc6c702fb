"""
Tests for request URI byte transforms and the encode/decode round trip.
"""
import pytest
from hypothesis import given, settings, strategies as st

from esrlink.exceptions import DecodeError
from esrlink.request import Codec, SigningRequest
from esrlink.request.codec import base64u_decode, base64u_encode, deflate_raw, inflate_raw

from test_helpers import make_transfer_request


def test_base64u_has_no_padding():
    assert base64u_encode(b"\xff\xfe") == "__4"
    assert base64u_decode("__4") == b"\xff\xfe"


def test_deflate_is_raw():
    data = b"hello hello hello hello"
    compressed = deflate_raw(data)
    # A zlib stream would start with 0x78
    assert compressed[0] != 0x78
    assert inflate_raw(compressed) == data


def test_inflate_garbage():
    with pytest.raises(DecodeError, match="compressed"):
        inflate_raw(b"\xff\xff\xff\xff")


def test_non_ascii_payload_rejected():
    with pytest.raises(DecodeError):
        Codec().from_base64u("gmé")


def test_custom_codec_is_used_both_ways():
    calls = []

    def compress(data):
        calls.append("compress")
        return deflate_raw(data)

    def decompress(data):
        calls.append("decompress")
        return inflate_raw(data)

    codec = Codec(compress=compress, decompress=decompress)
    request = SigningRequest.from_uri(make_transfer_request(memo="x" * 200).encode())
    request.codec = codec
    uri = request.encode()
    assert SigningRequest.from_uri(uri, codec=codec) == request
    assert calls == ["compress", "decompress"]


memo_strategy = st.text(max_size=120)
callback_strategy = st.one_of(
    st.just(""),
    st.from_regex(r"https://[a-z]{1,12}\.example\.com/[a-z0-9/]{0,20}(\?tx=\{\{tx\}\})?", fullmatch=True),
)


@settings(max_examples=50, deadline=None)
@given(
    memo=memo_strategy,
    callback=callback_strategy,
    amount=st.integers(min_value=0, max_value=10**12),
    background=st.booleans(),
    compress=st.booleans(),
    slashes=st.booleans(),
)
def test_decode_encode_round_trip(memo, callback, amount, background, compress, slashes):
    """Decoding an encoded request gives back the same request"""
    quantity = f"{amount // 10000}.{amount % 10000:04d} EOS"
    request = make_transfer_request(memo=memo, callback=callback, quantity=quantity, background=background)

    uri = request.encode(compress=compress, slashes=slashes)
    assert uri.startswith("esr://" if slashes else "esr:")

    decoded = SigningRequest.from_uri(uri)
    assert decoded == request
    assert decoded.callback == callback
    assert decoded.background is background
    assert decoded.encode(compress=compress, slashes=slashes) == uri
