"""
Builtin EOSIO binary types.

Each builtin is an (encoder, decoder) pair working on ByteWriter/ByteReader.
Decoded values use JSON friendly representations: names and assets as
strings, bytes and checksums as lowercase hex, 64-bit integers as ints.
"""
import re
import struct
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Tuple, Union

from ..exceptions import SerializationError
from ..identity.ec_constants import KEY_TYPES
from ..identity.keys import PublicKey, Signature, PUBLIC_KEY_SIZE, SIGNATURE_SIZE

NAME_CHARS = ".12345abcdefghijklmnopqrstuvwxyz"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
BLOCK_TIMESTAMP_EPOCH = datetime(2000, 1, 1, tzinfo=timezone.utc)
NULL_TIME = "1970-01-01T00:00:00"

_SYMBOL_CODE_RE = re.compile(r"^[A-Z]{1,7}$")


class ByteReader:
    """Sequential reader over a bytes buffer."""

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.pos = 0

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos

    def read(self, size: int) -> bytes:
        if size < 0 or self.pos + size > len(self.data):
            raise SerializationError(
                f"Read past end of buffer (wanted {size} bytes, {self.remaining} left)"
            )
        chunk = self.data[self.pos:self.pos + size]
        self.pos += size
        return chunk

    def unpack(self, fmt: str) -> Any:
        return struct.unpack(fmt, self.read(struct.calcsize(fmt)))[0]

    def read_varuint32(self) -> int:
        value = 0
        shift = 0
        while True:
            byte = self.read(1)[0]
            value |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return value
            shift += 7
            if shift >= 35:
                raise SerializationError("varuint32 is too long")


class ByteWriter:
    """Append-only bytes buffer."""

    def __init__(self):
        self._buf = bytearray()

    def write(self, data: bytes) -> None:
        self._buf.extend(data)

    def pack(self, fmt: str, value: Any) -> None:
        try:
            self._buf.extend(struct.pack(fmt, value))
        except struct.error as e:
            raise SerializationError(f"Cannot pack {value!r} as {fmt}: {e}") from e

    def write_varuint32(self, value: int) -> None:
        if value < 0 or value > 0xFFFFFFFF:
            raise SerializationError(f"varuint32 out of range: {value}")
        while True:
            byte = value & 0x7F
            value >>= 7
            if value:
                self._buf.append(byte | 0x80)
            else:
                self._buf.append(byte)
                return

    def getvalue(self) -> bytes:
        return bytes(self._buf)


# Names

def name_to_int(name: str) -> int:
    """Convert an account/action name to its uint64 value."""
    if not isinstance(name, str) or len(name) > 13:
        raise SerializationError(f"Invalid name: {name!r}")
    value = 0
    for i in range(13):
        symbol = 0
        if i < len(name):
            symbol = NAME_CHARS.find(name[i])
            if symbol < 0:
                raise SerializationError(f"Invalid character {name[i]!r} in name {name!r}")
        if i < 12:
            value |= (symbol & 0x1F) << (64 - 5 * (i + 1))
        else:
            if symbol > 0x0F:
                raise SerializationError(f"Thirteenth character of name {name!r} must be in [.1-5a-j]")
            value |= symbol
    return value


def int_to_name(value: int) -> str:
    chars = []
    for i in range(13):
        mask, shift = (0x0F, 4) if i == 0 else (0x1F, 5)
        chars.append(NAME_CHARS[value & mask])
        value >>= shift
    return "".join(reversed(chars)).rstrip(".")


# Symbols and assets

def symbol_code_to_int(code: str) -> int:
    if not _SYMBOL_CODE_RE.match(code):
        raise SerializationError(f"Invalid symbol code: {code!r}")
    value = 0
    for i, char in enumerate(code):
        value |= ord(char) << (8 * i)
    return value


def int_to_symbol_code(value: int) -> str:
    chars = []
    while value:
        chars.append(chr(value & 0xFF))
        value >>= 8
    return "".join(chars)


def parse_symbol(text: str) -> Tuple[int, str]:
    """Parse ``"4,EOS"`` into (precision, code)."""
    precision, sep, code = text.partition(",")
    if not sep or not precision.isdigit():
        raise SerializationError(f"Invalid symbol: {text!r}")
    return int(precision), code


def parse_asset(text: str) -> Tuple[int, int, str]:
    """Parse ``"1.0000 EOS"`` into (amount, precision, code)."""
    parts = text.strip().split(" ")
    if len(parts) != 2:
        raise SerializationError(f"Invalid asset: {text!r}")
    amount_text, code = parts
    negative = amount_text.startswith("-")
    if negative:
        amount_text = amount_text[1:]
    whole, _, fraction = amount_text.partition(".")
    digits = whole + fraction
    if not digits.isdigit():
        raise SerializationError(f"Invalid asset amount: {text!r}")
    amount = int(digits)
    return (-amount if negative else amount), len(fraction), code


def format_asset(amount: int, precision: int, code: str) -> str:
    sign = "-" if amount < 0 else ""
    digits = str(abs(amount)).rjust(precision + 1, "0")
    if precision:
        digits = f"{digits[:-precision]}.{digits[-precision:]}"
    return f"{sign}{digits} {code}"


def _write_symbol(writer: ByteWriter, precision: int, code: str) -> None:
    if not 0 <= precision <= 18:
        raise SerializationError(f"Invalid symbol precision: {precision}")
    writer.pack("<Q", precision | (symbol_code_to_int(code) << 8))


def _read_symbol(reader: ByteReader) -> Tuple[int, str]:
    value = reader.unpack("<Q")
    return value & 0xFF, int_to_symbol_code(value >> 8)


def _write_asset(writer: ByteWriter, value: str) -> None:
    amount, precision, code = parse_asset(value)
    writer.pack("<q", amount)
    _write_symbol(writer, precision, code)


def _read_asset(reader: ByteReader) -> str:
    amount = reader.unpack("<q")
    precision, code = _read_symbol(reader)
    return format_asset(amount, precision, code)


# Time

def parse_time(value: Union[str, int, datetime]) -> datetime:
    """Parse an ISO timestamp (UTC, no zone suffix) or epoch seconds."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, int):
        return EPOCH + timedelta(seconds=value)
    try:
        parsed = datetime.fromisoformat(str(value).rstrip("Z"))
    except ValueError as e:
        raise SerializationError(f"Invalid timestamp: {value!r}") from e
    return parsed.replace(tzinfo=timezone.utc)


def format_time_point_sec(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%S")


def _format_millis(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}"


def _write_time_point_sec(writer: ByteWriter, value: Any) -> None:
    seconds = int((parse_time(value) - EPOCH).total_seconds())
    writer.pack("<I", seconds)


def _read_time_point_sec(reader: ByteReader) -> str:
    return format_time_point_sec(EPOCH + timedelta(seconds=reader.unpack("<I")))


def _write_time_point(writer: ByteWriter, value: Any) -> None:
    delta = parse_time(value) - EPOCH
    writer.pack("<q", delta // timedelta(microseconds=1))


def _read_time_point(reader: ByteReader) -> str:
    return _format_millis(EPOCH + timedelta(microseconds=reader.unpack("<q")))


def _write_block_timestamp(writer: ByteWriter, value: Any) -> None:
    delta = parse_time(value) - BLOCK_TIMESTAMP_EPOCH
    writer.pack("<I", delta // timedelta(milliseconds=500))


def _read_block_timestamp(reader: ByteReader) -> str:
    return _format_millis(BLOCK_TIMESTAMP_EPOCH + timedelta(milliseconds=500 * reader.unpack("<I")))


# Bytes, strings and checksums

def to_bytes(value: Union[bytes, bytearray, str]) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    try:
        return bytes.fromhex(value)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Expected bytes or hex string, got {value!r}") from e


def _write_bytes(writer: ByteWriter, value: Any) -> None:
    data = to_bytes(value)
    writer.write_varuint32(len(data))
    writer.write(data)


def _read_bytes(reader: ByteReader) -> str:
    return reader.read(reader.read_varuint32()).hex()


def _write_string(writer: ByteWriter, value: str) -> None:
    if not isinstance(value, str):
        raise SerializationError(f"Expected string, got {type(value).__name__}")
    data = value.encode("utf-8")
    writer.write_varuint32(len(data))
    writer.write(data)


def _read_string(reader: ByteReader) -> str:
    data = reader.read(reader.read_varuint32())
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise SerializationError(f"Invalid utf-8 string: {e}") from e


def _checksum(size: int) -> Tuple[Callable, Callable]:
    def write(writer: ByteWriter, value: Any) -> None:
        data = to_bytes(value)
        if len(data) != size:
            raise SerializationError(f"Checksum must be {size} bytes, got {len(data)}")
        writer.write(data)

    def read(reader: ByteReader) -> str:
        return reader.read(size).hex()

    return write, read


# Integers

def _fixed(fmt: str) -> Tuple[Callable, Callable]:
    def write(writer: ByteWriter, value: Any) -> None:
        try:
            number = int(value)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Expected integer, got {value!r}") from e
        writer.pack(fmt, number)

    def read(reader: ByteReader) -> int:
        return reader.unpack(fmt)

    return write, read


def _wide(signed: bool) -> Tuple[Callable, Callable]:
    def write(writer: ByteWriter, value: Any) -> None:
        try:
            writer.write(int(value).to_bytes(16, "little", signed=signed))
        except (OverflowError, TypeError, ValueError) as e:
            raise SerializationError(f"Invalid 128-bit integer: {value!r}") from e

    def read(reader: ByteReader) -> int:
        return int.from_bytes(reader.read(16), "little", signed=signed)

    return write, read


def _write_varint32(writer: ByteWriter, value: Any) -> None:
    number = int(value)
    writer.write_varuint32(((number << 1) ^ (number >> 31)) & 0xFFFFFFFF)


def _read_varint32(reader: ByteReader) -> int:
    raw = reader.read_varuint32()
    return (raw >> 1) ^ -(raw & 1)


def _write_bool(writer: ByteWriter, value: Any) -> None:
    writer.pack("<B", 1 if value else 0)


def _read_bool(reader: ByteReader) -> bool:
    byte = reader.unpack("<B")
    if byte > 1:
        raise SerializationError(f"Invalid bool value: {byte}")
    return bool(byte)


# Keys

def _write_public_key(writer: ByteWriter, value: Any) -> None:
    try:
        key = PublicKey.from_value(value)
    except ValueError as e:
        raise SerializationError(str(e)) from e
    writer.pack("<B", KEY_TYPES.index(key.key_type))
    writer.write(key.data)


def _read_public_key(reader: ByteReader) -> str:
    index = reader.unpack("<B")
    if index >= len(KEY_TYPES):
        raise SerializationError(f"Unsupported public key type index: {index}")
    return str(PublicKey(KEY_TYPES[index], reader.read(PUBLIC_KEY_SIZE)))


def _write_signature(writer: ByteWriter, value: Any) -> None:
    try:
        signature = Signature.from_value(value)
    except ValueError as e:
        raise SerializationError(str(e)) from e
    writer.pack("<B", KEY_TYPES.index(signature.key_type))
    writer.write(signature.data)


def _read_signature(reader: ByteReader) -> str:
    index = reader.unpack("<B")
    if index >= len(KEY_TYPES):
        raise SerializationError(f"Unsupported signature type index: {index}")
    return str(Signature(KEY_TYPES[index], reader.read(SIGNATURE_SIZE)))


def _write_name(writer: ByteWriter, value: str) -> None:
    writer.pack("<Q", name_to_int(value))


def _read_name(reader: ByteReader) -> str:
    return int_to_name(reader.unpack("<Q"))


def _write_symbol_string(writer: ByteWriter, value: str) -> None:
    _write_symbol(writer, *parse_symbol(value))


def _read_symbol_string(reader: ByteReader) -> str:
    precision, code = _read_symbol(reader)
    return f"{precision},{code}"


def _write_symbol_code(writer: ByteWriter, value: str) -> None:
    writer.pack("<Q", symbol_code_to_int(value))


def _read_symbol_code(reader: ByteReader) -> str:
    return int_to_symbol_code(reader.unpack("<Q"))


def _write_extended_asset(writer: ByteWriter, value: Dict[str, str]) -> None:
    _write_asset(writer, value["quantity"])
    _write_name(writer, value["contract"])


def _read_extended_asset(reader: ByteReader) -> Dict[str, str]:
    return {"quantity": _read_asset(reader), "contract": _read_name(reader)}


BUILTIN_TYPES: Dict[str, Tuple[Callable[[ByteWriter, Any], None], Callable[[ByteReader], Any]]] = {
    "bool": (_write_bool, _read_bool),
    "int8": _fixed("<b"),
    "uint8": _fixed("<B"),
    "int16": _fixed("<h"),
    "uint16": _fixed("<H"),
    "int32": _fixed("<i"),
    "uint32": _fixed("<I"),
    "int64": _fixed("<q"),
    "uint64": _fixed("<Q"),
    "int128": _wide(True),
    "uint128": _wide(False),
    "varint32": (_write_varint32, _read_varint32),
    "varuint32": (lambda w, v: w.write_varuint32(int(v)), lambda r: r.read_varuint32()),
    "float32": (lambda w, v: w.pack("<f", float(v)), lambda r: r.unpack("<f")),
    "float64": (lambda w, v: w.pack("<d", float(v)), lambda r: r.unpack("<d")),
    "float128": _checksum(16),
    "time_point": (_write_time_point, _read_time_point),
    "time_point_sec": (_write_time_point_sec, _read_time_point_sec),
    "block_timestamp_type": (_write_block_timestamp, _read_block_timestamp),
    "name": (_write_name, _read_name),
    "bytes": (_write_bytes, _read_bytes),
    "string": (_write_string, _read_string),
    "checksum160": _checksum(20),
    "checksum256": _checksum(32),
    "checksum512": _checksum(64),
    "public_key": (_write_public_key, _read_public_key),
    "signature": (_write_signature, _read_signature),
    "symbol": (_write_symbol_string, _read_symbol_string),
    "symbol_code": (_write_symbol_code, _read_symbol_code),
    "asset": (_write_asset, _read_asset),
    "extended_asset": (_write_extended_asset, _read_extended_asset),
}
