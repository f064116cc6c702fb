"""
RequestResolver - turns a signing request into a signable transaction.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

from ..chain.client import ChainClient
from ..exceptions import DecodeError
from ..identity.types import Identity
from ..serializer import Abi
from .codec import Codec, DEFAULT_CODEC
from .protocol import DEFAULT_SCHEME
from .signing_request import DEFAULT_EXPIRE_SECONDS, ResolvedSigningRequest, SigningRequest

logger = logging.getLogger(__name__)

RequestInput = Union[str, SigningRequest, Mapping[str, Any]]


@dataclass(frozen=True)
class Resolution:
    """Result of a successful resolve"""
    resolved: ResolvedSigningRequest
    callback_url: str
    abis: Dict[str, Abi] = field(repr=False)

    @property
    def request(self) -> SigningRequest:
        return self.resolved.request


class RequestResolver:
    """
    Decodes signing requests and binds them to the current chain head.

    Every call fetches ABIs and the head block afresh; nothing is cached
    between calls.
    """

    def __init__(
        self,
        chain: ChainClient,
        identity: Identity,
        codec: Codec = DEFAULT_CODEC,
        scheme: str = DEFAULT_SCHEME,
        expire_seconds: int = DEFAULT_EXPIRE_SECONDS
    ):
        self.chain = chain
        self.identity = identity
        self.codec = codec
        self.scheme = scheme
        self.expire_seconds = expire_seconds

    def decode(self, request: RequestInput) -> SigningRequest:
        """
        Decode a URI string, a mapping of request fields or pass through a
        SigningRequest.

        Raises:
            DecodeError: If the input cannot be decoded
        """
        if isinstance(request, SigningRequest):
            decoded = request
        elif isinstance(request, str):
            decoded = SigningRequest.from_uri(request, codec=self.codec)
        elif isinstance(request, Mapping):
            decoded = SigningRequest.from_payload(request, codec=self.codec)
        else:
            raise DecodeError(f"Cannot decode signing request from {type(request).__name__}")
        if decoded.scheme != self.scheme:
            decoded = SigningRequest(
                decoded.version, decoded.data, signature=decoded.signature,
                codec=self.codec, scheme=self.scheme
            )
        return decoded

    def fetch_abis(self, request: SigningRequest) -> Dict[str, Abi]:
        """
        Fetch the ABI of every distinct contract the request calls.

        Raises:
            AbiFetchError: If any ABI cannot be fetched
        """
        abis: Dict[str, Abi] = {}
        for account in request.get_required_abis():
            if account in abis:
                continue
            logger.debug(f"Fetching ABI for {account}")
            abis[account] = self.chain.get_abi(account)
        return abis

    def resolve(self, request: RequestInput, signer: Optional[Mapping[str, str]] = None) -> Resolution:
        """
        Resolve a request for the configured identity.

        Args:
            request: URI string, request field mapping or SigningRequest
            signer: Permission level override, defaults to the identity's

        Returns:
            Resolution with the resolved request, the unresolved callback
            template and the ABIs used

        Raises:
            DecodeError: If the request is malformed
            AbiFetchError: If a contract ABI cannot be fetched
            ChainQueryError: If chain info or the reference block are unavailable
        """
        decoded = self.decode(request)
        abis = self.fetch_abis(decoded)

        info = self.chain.get_info()
        block = self.chain.get_block(info.head_block_num)
        logger.debug(f"Resolving against block {block.block_num} ({block.timestamp})")

        signer = signer or self.identity.permission_level
        resolved = decoded.resolve(abis, signer, block.tapos_context(), self.expire_seconds)
        logger.info(
            f"Resolved request for {signer['actor']}@{signer['permission']}, "
            f"transaction {resolved.transaction_id}"
        )
        return Resolution(resolved=resolved, callback_url=decoded.callback, abis=abis)
