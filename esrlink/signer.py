"""
Signer - signs resolved requests and builds the callback payload.
"""
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from .exceptions import SigningError
from .identity.keys import PrivateKey, PublicKey, Signature
from .identity.types import Identity
from .models import Callback
from .request.protocol import DEFAULT_SCHEME
from .request.resolver import Resolution
from .request.signing_request import signing_digest
from .serializer import Abi

logger = logging.getLogger(__name__)

# Value some request encoders emit for a missing ``req`` field
ABSENT_TOKEN = "undefined"

DEFAULT_LINK_NAME = "mydapp"


class SignatureProvider(Protocol):
    """Protocol for signature providers"""

    def sign(
        self,
        chain_id: str,
        required_keys: Sequence[PublicKey],
        serialized_transaction: bytes,
        abis: Mapping[str, Abi]
    ) -> List[Signature]:
        """Sign the transaction with every required key"""
        ...


class KeySignatureProvider:
    """
    Signature provider backed by in-memory private keys.

    Args:
        keys: Private keys the provider may sign with
    """

    def __init__(self, keys: Iterable[PrivateKey]):
        self._keys: Dict[PublicKey, PrivateKey] = {key.to_public(): key for key in keys}

    @property
    def available_keys(self) -> List[PublicKey]:
        return list(self._keys)

    def sign(
        self,
        chain_id: str,
        required_keys: Sequence[PublicKey],
        serialized_transaction: bytes,
        abis: Mapping[str, Abi]
    ) -> List[Signature]:
        digest = signing_digest(chain_id, serialized_transaction)
        signatures = []
        for public_key in required_keys:
            private_key = self._keys.get(public_key)
            if private_key is None:
                raise SigningError(f"No private key available for {public_key}")
            signatures.append(private_key.sign_digest(digest))
        return signatures


class RequestSigner:
    """
    Signs resolved requests for a single identity.

    Args:
        identity: Account and key to sign with
        provider: Signature provider, defaults to one holding the identity's key
        link_name: Client identifier sent as ``link_name``
        scheme: Scheme identifier substituted for an absent ``req`` value
    """

    def __init__(
        self,
        identity: Identity,
        provider: Optional[SignatureProvider] = None,
        link_name: str = DEFAULT_LINK_NAME,
        scheme: str = DEFAULT_SCHEME
    ):
        self.identity = identity
        self.provider = provider or KeySignatureProvider([identity.private_key])
        self.link_name = link_name
        self.scheme = scheme

    def sign(self, resolution: Resolution) -> Callback:
        """
        Sign a resolved request and build its callback.

        Args:
            resolution: Output of RequestResolver.resolve

        Returns:
            Callback with the unsubstituted URL template and the full payload

        Raises:
            SigningError: If the provider fails or returns no signatures
        """
        resolved = resolution.resolved
        public_key = self.identity.public_key
        try:
            signatures = self.provider.sign(
                resolved.chain_id,
                [public_key],
                resolved.serialized_transaction,
                resolution.abis,
            )
        except SigningError:
            raise
        except Exception as e:
            raise SigningError(f"Signature provider failed: {e}") from e
        if not signatures:
            raise SigningError("Signature provider returned no signatures")

        callback = resolved.get_callback(signatures)
        payload = dict(callback.payload)
        payload.update({
            "link_ch": resolution.callback_url,
            "link_key": str(public_key),
            "link_name": self.link_name,
        })
        if payload.get("req") == ABSENT_TOKEN:
            logger.debug(f"Replacing absent req value with '{self.scheme}'")
            payload["req"] = self.scheme

        logger.info(f"Signed transaction {payload['tx']} as {payload['sa']}@{payload['sp']}")
        return Callback(url=callback.url, payload=payload, background=callback.background)
