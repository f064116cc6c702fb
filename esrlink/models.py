"""
Data models for the esrlink agent.
"""
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChainInfo(BaseModel):
    """Subset of the ``get_info`` response"""
    model_config = ConfigDict(extra="allow")

    chain_id: str
    head_block_num: int
    head_block_id: Optional[str] = None
    last_irreversible_block_num: Optional[int] = None


class BlockInfo(BaseModel):
    """Reference block used for TAPOS fields"""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    block_num: int
    block_id: str = Field(..., alias="id")
    timestamp: str
    ref_block_prefix: int

    def tapos_context(self) -> Dict[str, object]:
        return {
            "block_num": self.block_num,
            "timestamp": self.timestamp,
            "ref_block_prefix": self.ref_block_prefix,
        }


class Callback(BaseModel):
    """
    A callback ready to be delivered.

    ``url`` is the template from the request; placeholders are substituted
    by the dispatcher.
    """
    url: str
    payload: Dict[str, str]
    background: bool = False


class SessionRecord(BaseModel):
    """Persisted link session, restored at startup"""
    network: str
    actor: str
    permission: str
    payload: str
