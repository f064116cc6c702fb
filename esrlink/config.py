"""
Agent configuration.
"""
import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from .chain.client import validate_rpc_url
from .channel.listener import DEFAULT_CHANNEL_SERVICE
from .request.protocol import DEFAULT_SCHEME
from .request.signing_request import DEFAULT_EXPIRE_SECONDS
from .session import DEFAULT_KEYRING_SERVICE, DEFAULT_SESSION_KEY
from .signer import DEFAULT_LINK_NAME

ENV_PREFIX = "ESRLINK_"


class AgentSettings(BaseModel):
    """
    Settings for SigningAgent.

    Every field can be set from an ``ESRLINK_<FIELD>`` environment variable
    through ``from_env``.
    """
    chain_url: str = "https://eos.greymass.com"
    channel_service: str = DEFAULT_CHANNEL_SERVICE
    scheme: str = DEFAULT_SCHEME
    link_name: str = DEFAULT_LINK_NAME
    debounce_seconds: float = Field(1.0, ge=0)
    settle_seconds: float = Field(0.25, ge=0)
    expire_seconds: int = Field(DEFAULT_EXPIRE_SECONDS, gt=0)
    request_timeout: float = Field(10.0, gt=0)
    retry_count: int = Field(3, ge=0)
    session_key: str = DEFAULT_SESSION_KEY
    keyring_service: str = DEFAULT_KEYRING_SERVICE
    session_path: Optional[str] = None
    rearm_after_sign: bool = False
    close_replaced_listener: bool = False

    @field_validator("chain_url")
    @classmethod
    def check_chain_url(cls, value: str) -> str:
        return validate_rpc_url(value)

    @field_validator("channel_service")
    @classmethod
    def check_channel_service(cls, value: str) -> str:
        if value.split("://", 1)[0] not in ("http", "https", "ws", "wss"):
            raise ValueError(f"Unsupported channel service URL '{value}'")
        return value.rstrip("/")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "AgentSettings":
        """
        Load settings from ``ESRLINK_*`` variables.

        Args:
            environ: Mapping to read instead of ``os.environ``
            **overrides: Values that take precedence over the environment

        Raises:
            pydantic.ValidationError: If a value is invalid
        """
        env = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = env.get(ENV_PREFIX + name.upper())
            if raw is not None and raw != "":
                values[name] = raw
        values.update(overrides)
        return cls(**values)
