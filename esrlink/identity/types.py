"""
Data types for the identity module.
"""
import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from .keys import PrivateKey, PublicKey

DEFAULT_PERMISSION = "active"


@dataclass(frozen=True)
class Identity:
    """
    The single account and key the agent signs with.

    Attributes:
        account: Account name used as the signer actor
        private_key: Key used to sign resolved transactions
        permission: Permission name, always ``active`` for this agent
    """
    account: str
    private_key: PrivateKey = field(repr=False)
    permission: str = DEFAULT_PERMISSION

    @property
    def public_key(self) -> PublicKey:
        return self.private_key.to_public()

    @property
    def permission_level(self) -> Dict[str, str]:
        return {"actor": self.account, "permission": self.permission}

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Identity":
        """
        Build the identity from ``ESRLINK_ACCOUNT`` and ``ESRLINK_PRIVATE_KEY``.

        Raises:
            ValueError: If either variable is missing or the key is invalid
        """
        env = os.environ if environ is None else environ
        account = env.get("ESRLINK_ACCOUNT")
        key = env.get("ESRLINK_PRIVATE_KEY")
        if not account or not key:
            raise ValueError("ESRLINK_ACCOUNT and ESRLINK_PRIVATE_KEY must be set")
        return cls(account=account, private_key=PrivateKey.from_string(key))
