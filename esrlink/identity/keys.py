"""
Key material for the identity module.

Private keys, public keys and signatures in the EOSIO string formats
(legacy ``EOS``/WIF and the ``PUB_K1_``/``PVT_K1_``/``SIG_K1_`` forms).
"""
import logging
from typing import Union

import base58
from Crypto.Hash import RIPEMD160
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed, decode_dss_signature
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from eth_keys import keys as eth_keys

from .ec_constants import (
    SECP256K1_HALF_N, SECP256K1_MIN, SECP256K1_MAX, SECP256K1_N,
    KEY_TYPES, WIF_VERSION, MAX_SIGN_ATTEMPTS
)

logger = logging.getLogger(__name__)

PUBLIC_KEY_SIZE = 33
SIGNATURE_SIZE = 65


def ripemd160(data: bytes) -> bytes:
    return RIPEMD160.new(data).digest()


def _encode_check(data: bytes, suffix: bytes = b"") -> str:
    """Base58 encode ``data`` with a ripemd160 checksum over ``data + suffix``."""
    checksum = ripemd160(data + suffix)[:4]
    return base58.b58encode(data + checksum).decode("ascii")


def _decode_check(text: str, suffix: bytes = b"") -> bytes:
    raw = base58.b58decode(text)
    if len(raw) < 5:
        raise ValueError("Encoded key is too short")
    data, checksum = raw[:-4], raw[-4:]
    if ripemd160(data + suffix)[:4] != checksum:
        raise ValueError("Key checksum mismatch")
    return data


def _split_prefixed(text: str, prefix: str):
    """Split ``PUB_K1_xxx`` style strings into (key_type, body)."""
    parts = text.split("_", 2)
    if len(parts) != 3 or parts[0] != prefix:
        raise ValueError(f"Invalid {prefix} key format")
    key_type, body = parts[1], parts[2]
    if key_type not in KEY_TYPES:
        raise ValueError(f"Unsupported key type: {key_type}")
    return key_type, body


def is_canonical(r: bytes, s: bytes) -> bool:
    """
    Check the canonical signature rule enforced by EOSIO nodes.

    Both r and s must be 32 bytes with the top bit clear and without
    a redundant leading zero byte.
    """
    return (
        not (r[0] & 0x80)
        and not (r[0] == 0 and not (r[1] & 0x80))
        and not (s[0] & 0x80)
        and not (s[0] == 0 and not (s[1] & 0x80))
    )


class PublicKey:
    """A compressed secp256k1 (K1) or secp256r1 (R1) public key."""

    def __init__(self, key_type: str, data: bytes):
        if key_type not in KEY_TYPES:
            raise ValueError(f"Unsupported key type: {key_type}")
        if len(data) != PUBLIC_KEY_SIZE:
            raise ValueError(f"Public key must be {PUBLIC_KEY_SIZE} bytes, got {len(data)}")
        self.key_type = key_type
        self.data = bytes(data)

    @classmethod
    def from_string(cls, text: str) -> "PublicKey":
        """
        Parse a public key string.

        Args:
            text: ``PUB_K1_...``, ``PUB_R1_...`` or legacy ``EOS...`` key

        Returns:
            PublicKey instance

        Raises:
            ValueError: If the string is not a valid public key
        """
        if text.startswith("PUB_"):
            key_type, body = _split_prefixed(text, "PUB")
            return cls(key_type, _decode_check(body, key_type.encode()))
        if text.startswith("EOS"):
            return cls("K1", _decode_check(text[3:]))
        raise ValueError(f"Unrecognized public key format: {text[:8]}…")

    @classmethod
    def from_value(cls, value: Union["PublicKey", str]) -> "PublicKey":
        if isinstance(value, PublicKey):
            return value
        return cls.from_string(value)

    def to_legacy_string(self, prefix: str = "EOS") -> str:
        if self.key_type != "K1":
            raise ValueError("Legacy format is only defined for K1 keys")
        return prefix + _encode_check(self.data)

    def __str__(self) -> str:
        return f"PUB_{self.key_type}_{_encode_check(self.data, self.key_type.encode())}"

    def __repr__(self) -> str:
        return f"PublicKey({str(self)!r})"

    def __eq__(self, other) -> bool:
        if isinstance(other, str):
            try:
                other = PublicKey.from_string(other)
            except ValueError:
                return False
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.key_type == other.key_type and self.data == other.data

    def __hash__(self) -> int:
        return hash((self.key_type, self.data))


class Signature:
    """A recoverable compact signature (recovery byte + r + s)."""

    def __init__(self, key_type: str, data: bytes):
        if key_type not in KEY_TYPES:
            raise ValueError(f"Unsupported signature type: {key_type}")
        if len(data) != SIGNATURE_SIZE:
            raise ValueError(f"Signature must be {SIGNATURE_SIZE} bytes, got {len(data)}")
        self.key_type = key_type
        self.data = bytes(data)

    @classmethod
    def from_string(cls, text: str) -> "Signature":
        key_type, body = _split_prefixed(text, "SIG")
        return cls(key_type, _decode_check(body, key_type.encode()))

    @classmethod
    def from_value(cls, value: Union["Signature", str]) -> "Signature":
        if isinstance(value, Signature):
            return value
        return cls.from_string(value)

    def recover(self, digest: bytes) -> PublicKey:
        """
        Recover the public key that produced this signature.

        Args:
            digest: 32-byte message digest that was signed

        Returns:
            Recovered PublicKey

        Raises:
            ValueError: If recovery fails
        """
        if self.key_type != "K1":
            raise ValueError("Only K1 signatures can be recovered")
        recovery_id = (self.data[0] - 27) & 3
        r = int.from_bytes(self.data[1:33], "big")
        s = int.from_bytes(self.data[33:65], "big")
        try:
            recovered = eth_keys.Signature(vrs=(recovery_id, r, s)).recover_public_key_from_msg_hash(digest)
        except Exception as e:
            raise ValueError(f"Failed to recover public key: {e}") from e
        return PublicKey("K1", recovered.to_compressed_bytes())

    def __str__(self) -> str:
        return f"SIG_{self.key_type}_{_encode_check(self.data, self.key_type.encode())}"

    def __repr__(self) -> str:
        text = str(self)
        return f"Signature({text[:14]}…)"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Signature):
            return NotImplemented
        return self.key_type == other.key_type and self.data == other.data

    def __hash__(self) -> int:
        return hash((self.key_type, self.data))


class PrivateKey:
    """A secp256k1 private key able to produce canonical EOSIO signatures."""

    def __init__(self, secret: bytes):
        if len(secret) != 32:
            raise ValueError(f"Private key must be 32 bytes, got {len(secret)}")
        value = int.from_bytes(secret, "big")
        if not SECP256K1_MIN <= value <= SECP256K1_MAX:
            raise ValueError("Private key is outside the valid secp256k1 range")
        self._secret = bytes(secret)
        self._ec_key = ec.derive_private_key(value, ec.SECP256K1())
        self._public_key = PublicKey(
            "K1",
            self._ec_key.public_key().public_bytes(Encoding.X962, PublicFormat.CompressedPoint)
        )

    @classmethod
    def from_string(cls, text: str) -> "PrivateKey":
        """
        Parse a private key string.

        Args:
            text: ``PVT_K1_...`` key or legacy WIF key

        Returns:
            PrivateKey instance

        Raises:
            ValueError: If the key is malformed
        """
        text = text.strip()
        if text.startswith("PVT_"):
            key_type, body = _split_prefixed(text, "PVT")
            if key_type != "K1":
                raise ValueError("Only K1 private keys are supported")
            return cls(_decode_check(body, b"K1"))

        raw = base58.b58decode_check(text)
        if raw[0] != WIF_VERSION:
            raise ValueError(f"Invalid WIF version byte: {raw[0]:#x}")
        secret = raw[1:]
        if len(secret) == 33 and secret[-1] == 0x01:
            secret = secret[:-1]
        return cls(secret)

    def to_public(self) -> PublicKey:
        return self._public_key

    def to_wif(self) -> str:
        return base58.b58encode_check(bytes([WIF_VERSION]) + self._secret).decode("ascii")

    def sign_digest(self, digest: bytes) -> Signature:
        """
        Sign a 32-byte digest.

        Nonces are drawn until the signature satisfies the canonical rule,
        then the recovery id is determined by trial recovery.

        Args:
            digest: sha256 digest to sign

        Returns:
            K1 Signature

        Raises:
            ValueError: If no canonical signature was found
        """
        if len(digest) != 32:
            raise ValueError(f"Digest must be 32 bytes, got {len(digest)}")

        for attempt in range(MAX_SIGN_ATTEMPTS):
            der = self._ec_key.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256())))
            r, s = decode_dss_signature(der)
            if s > SECP256K1_HALF_N:
                s = SECP256K1_N - s
            r_bytes = r.to_bytes(32, "big")
            s_bytes = s.to_bytes(32, "big")
            if not is_canonical(r_bytes, s_bytes):
                continue
            recovery_id = self._recovery_id(digest, r, s)
            logger.debug("Produced canonical signature after %d attempt(s)", attempt + 1)
            return Signature("K1", bytes([recovery_id + 31]) + r_bytes + s_bytes)

        raise ValueError(f"No canonical signature after {MAX_SIGN_ATTEMPTS} attempts")

    def _recovery_id(self, digest: bytes, r: int, s: int) -> int:
        for recovery_id in (0, 1):
            candidate = eth_keys.Signature(vrs=(recovery_id, r, s)).recover_public_key_from_msg_hash(digest)
            if candidate.to_compressed_bytes() == self._public_key.data:
                return recovery_id
        raise ValueError("Unable to determine signature recovery id")

    def __repr__(self) -> str:
        # Never expose the secret
        return f"PrivateKey(public={self._public_key})"
