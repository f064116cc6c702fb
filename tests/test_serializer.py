"""
Tests for the binary serializer.
"""
import pytest

from esrlink.exceptions import SerializationError
from esrlink.serializer import Abi, ByteReader, ByteWriter, int_to_name, name_to_int
from esrlink.serializer.types import format_asset, parse_asset

from test_helpers import TOKEN_ABI


def test_name_encoding_matches_chain_values():
    """Known name values"""
    assert name_to_int("eosio") == 0x5530EA0000000000
    assert int_to_name(0x5530EA0000000000) == "eosio"
    assert name_to_int("") == 0
    assert int_to_name(0) == ""


def test_placeholder_names():
    """The placeholder names survive a round trip"""
    assert name_to_int("............1") == 1
    assert int_to_name(1) == "............1"
    assert int_to_name(2) == "............2"


@pytest.mark.parametrize("bad", ["UPPER", "toolongname12345", "bad!", "............z"])
def test_invalid_names_rejected(bad):
    with pytest.raises(SerializationError):
        name_to_int(bad)


def test_varuint32():
    writer = ByteWriter()
    writer.write_varuint32(300)
    assert writer.getvalue() == b"\xac\x02"
    assert ByteReader(b"\xac\x02").read_varuint32() == 300


def test_read_past_end():
    reader = ByteReader(b"\x01")
    with pytest.raises(SerializationError, match="past end"):
        reader.read(2)


def test_asset_formatting():
    assert parse_asset("1.0000 EOS") == (10000, 4, "EOS")
    assert parse_asset("-0.0001 EOS") == (-1, 4, "EOS")
    assert format_asset(10000, 4, "EOS") == "1.0000 EOS"
    assert format_asset(-1, 4, "EOS") == "-0.0001 EOS"
    assert format_asset(5, 0, "WAX") == "5 WAX"


def test_asset_binary_layout():
    abi = Abi()
    data = abi.encode("asset", "1.0000 EOS")
    assert data[:8] == (10000).to_bytes(8, "little")
    assert data[8] == 4
    assert data[9:12] == b"EOS"
    assert abi.decode("asset", data) == "1.0000 EOS"


def test_transfer_struct():
    """ABI structs encode in field order and decode back"""
    abi = Abi.from_dict(TOKEN_ABI)
    value = {"from": "alice", "to": "bob", "quantity": "2.5000 EOS", "memo": "hi"}
    data = abi.encode("transfer", value)
    assert data[:8] == name_to_int("alice").to_bytes(8, "little")
    assert abi.decode("transfer", data) == value
    assert abi.action_type("transfer") == "transfer"


def test_missing_field_raises():
    abi = Abi.from_dict(TOKEN_ABI)
    with pytest.raises(SerializationError, match="Missing field 'memo'"):
        abi.encode("transfer", {"from": "alice", "to": "bob", "quantity": "1.0000 EOS"})


def test_unknown_action():
    abi = Abi.from_dict(TOKEN_ABI)
    with pytest.raises(SerializationError, match="Unknown action"):
        abi.action_type("issue")


def test_trailing_bytes_strict():
    abi = Abi()
    with pytest.raises(SerializationError, match="trailing"):
        abi.decode("uint8", b"\x01\x02")
    assert abi.decode("uint8", b"\x01\x02", strict=False) == 1


def test_optional_array_and_variant():
    abi = Abi.from_dict({
        "structs": [{"name": "pair", "base": "", "fields": [
            {"name": "a", "type": "uint8"},
            {"name": "b", "type": "string?"},
            {"name": "c", "type": "uint16[]"},
            {"name": "d", "type": "num_or_text"},
        ]}],
        "variants": [{"name": "num_or_text", "types": ["uint32", "string"]}],
    })
    value = {"a": 1, "b": None, "c": [1, 2], "d": ["string", "x"]}
    data = abi.encode("pair", value)
    assert data == b"\x01" + b"\x00" + b"\x02\x01\x00\x02\x00" + b"\x01\x01x"
    assert abi.decode("pair", data) == value


def test_binary_extension_fields():
    abi = Abi.from_dict({
        "structs": [{"name": "ext", "base": "", "fields": [
            {"name": "a", "type": "uint8"},
            {"name": "b", "type": "uint8$"},
        ]}],
    })
    assert abi.encode("ext", {"a": 1}) == b"\x01"
    assert abi.decode("ext", b"\x01") == {"a": 1}
    assert abi.decode("ext", b"\x01\x02") == {"a": 1, "b": 2}


def test_struct_base_fields_come_first():
    abi = Abi.from_dict({
        "structs": [
            {"name": "base", "base": "", "fields": [{"name": "x", "type": "uint8"}]},
            {"name": "child", "base": "base", "fields": [{"name": "y", "type": "uint8"}]},
        ],
    })
    assert abi.encode("child", {"y": 2, "x": 1}) == b"\x01\x02"


def test_time_point_sec():
    abi = Abi()
    data = abi.encode("time_point_sec", "2020-01-01T00:00:00")
    assert data == (1577836800).to_bytes(4, "little")
    assert abi.decode("time_point_sec", data) == "2020-01-01T00:00:00"


def test_transform_only_visits_names():
    abi = Abi.from_dict(TOKEN_ABI)
    value = {"from": "............1", "to": "bob", "quantity": "1.0000 EOS", "memo": "............1"}
    seen = []

    def visit(type_name, leaf):
        seen.append(type_name)
        return "alice" if type_name == "name" and leaf == "............1" else leaf

    result = abi.transform("transfer", value, visit)
    assert result["from"] == "alice"
    assert result["memo"] == "............1"
    assert seen == ["name", "name", "asset", "string"]
    assert value["from"] == "............1"


def test_unknown_type():
    with pytest.raises(SerializationError, match="Unknown type"):
        Abi().encode("nope", 1)
