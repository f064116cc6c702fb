"""
esrlink - signing agent for EOSIO Signing Requests.
"""
from .agent import PipelineResult, SigningAgent
from .callback import CallbackDispatcher, substitute_url
from .chain import ChainClient
from .channel import ChannelListener, ListenerState, SealedMessage, channel_from_url
from .config import AgentSettings
from .exceptions import (
    AbiFetchError, ChainQueryError, DecodeError, EsrLinkError, MessageDecodeError,
    NetworkError, SerializationError, SigningError, Stage, StorageError
)
from .identity import Identity, PrivateKey, PublicKey, Signature
from .models import BlockInfo, Callback, ChainInfo, SessionRecord
from .request import Codec, RequestResolver, Resolution, ResolvedSigningRequest, SigningRequest
from .session import FileSessionStore, KeyringSessionStore, MemorySessionStore, SessionStore
from .signer import KeySignatureProvider, RequestSigner, SignatureProvider
from .version import __version__

__all__ = [
    "SigningAgent",
    "PipelineResult",
    "AgentSettings",
    "Identity",
    "PrivateKey",
    "PublicKey",
    "Signature",
    "SigningRequest",
    "ResolvedSigningRequest",
    "RequestResolver",
    "Resolution",
    "Codec",
    "ChainClient",
    "RequestSigner",
    "SignatureProvider",
    "KeySignatureProvider",
    "CallbackDispatcher",
    "substitute_url",
    "ChannelListener",
    "ListenerState",
    "SealedMessage",
    "channel_from_url",
    "SessionStore",
    "MemorySessionStore",
    "KeyringSessionStore",
    "FileSessionStore",
    "ChainInfo",
    "BlockInfo",
    "Callback",
    "SessionRecord",
    "Stage",
    "EsrLinkError",
    "DecodeError",
    "SerializationError",
    "AbiFetchError",
    "ChainQueryError",
    "SigningError",
    "NetworkError",
    "StorageError",
    "MessageDecodeError",
    "__version__",
]
