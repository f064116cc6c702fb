"""
Exceptions for the esrlink agent.
"""
from enum import Enum
from typing import Optional


class Stage(str, Enum):
    """
    Pipeline stages of the signing agent.

    Used to tag errors and results with the step that produced them.
    """
    DECODE = "decode"
    RESOLVE = "resolve"
    SIGN = "sign"
    DELIVER = "deliver"
    LOAD_SESSION = "load_session"
    SAVE_SESSION = "save_session"
    CHANNEL = "channel"
    COMPLETE = "complete"


class EsrLinkError(Exception):
    """Base exception for all esrlink errors."""

    stage: Optional[Stage] = None

    def __init__(self, message: str, stage: Optional[Stage] = None):
        if stage is not None:
            self.stage = stage
        super().__init__(message)


class DecodeError(EsrLinkError):
    """Raised when a signing request URI is malformed or incompatible."""
    stage = Stage.DECODE


class SerializationError(DecodeError):
    """Raised when binary data cannot be encoded or decoded with an ABI."""
    pass


class AbiFetchError(EsrLinkError):
    """Raised when a contract ABI cannot be fetched from the chain."""
    stage = Stage.RESOLVE


class ChainQueryError(EsrLinkError):
    """Raised when chain info or a reference block is unavailable."""
    stage = Stage.RESOLVE


class SigningError(EsrLinkError):
    """Raised when the signature provider rejects a transaction."""
    stage = Stage.SIGN


class NetworkError(EsrLinkError):
    """Raised when the callback POST fails."""
    stage = Stage.DELIVER

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class StorageError(EsrLinkError):
    """Raised when the session record cannot be read or written."""
    stage = Stage.SAVE_SESSION


class MessageDecodeError(EsrLinkError):
    """Raised when a push channel message is not a valid sealed message."""
    stage = Stage.CHANNEL
