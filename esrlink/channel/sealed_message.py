"""
Sealed message envelope received over the push channel.
"""
from dataclasses import dataclass
from typing import Any, Dict

from ..exceptions import MessageDecodeError, SerializationError
from ..identity.keys import PublicKey
from ..serializer import Abi

SEALED_MESSAGE_ABI = Abi.from_dict({
    "version": "eosio::abi/1.1",
    "structs": [
        {
            "name": "sealed_message", "base": "",
            "fields": [
                {"name": "from", "type": "public_key"},
                {"name": "nonce", "type": "uint64"},
                {"name": "ciphertext", "type": "bytes"},
                {"name": "checksum", "type": "uint32"},
            ],
        },
    ],
})


@dataclass(frozen=True)
class SealedMessage:
    """
    An encrypted message from the requesting application.

    Attributes:
        sender: Public key of the sender (``from`` on the wire)
        nonce: Nonce used for the shared secret
        ciphertext: Encrypted payload
        checksum: Checksum of the shared secret
    """
    sender: PublicKey
    nonce: int
    ciphertext: bytes
    checksum: int

    @classmethod
    def decode(cls, data: bytes) -> "SealedMessage":
        """
        Decode a binary sealed message.

        Raises:
            MessageDecodeError: If the data does not match the layout
        """
        if isinstance(data, str):
            raise MessageDecodeError("Sealed messages must be binary frames")
        try:
            fields = SEALED_MESSAGE_ABI.decode("sealed_message", bytes(data))
        except SerializationError as e:
            raise MessageDecodeError(f"Invalid sealed message: {e}") from e
        return cls(
            sender=PublicKey.from_string(fields["from"]),
            nonce=fields["nonce"],
            ciphertext=bytes.fromhex(fields["ciphertext"]),
            checksum=fields["checksum"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": str(self.sender),
            "nonce": self.nonce,
            "ciphertext": self.ciphertext.hex(),
            "checksum": self.checksum,
        }

    def encode(self) -> bytes:
        return SEALED_MESSAGE_ABI.encode("sealed_message", self.to_dict())
