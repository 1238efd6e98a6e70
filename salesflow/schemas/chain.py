"""
Document chain tree returned by the chain resolver
"""
from typing import List, Optional

from pydantic import BaseModel, Field

MISSING_STATUS = "missing"


class ChainNode(BaseModel):
    type: str
    id: str
    status: str
    number: Optional[str] = None
    missing: bool = False
    children: List["ChainNode"] = Field(default_factory=list)


ChainNode.model_rebuild()
