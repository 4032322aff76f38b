"""
Pydantic models for the visualization wire protocol

Every message is a JSON object with exactly one key naming the event kind.
Each model below validates the body found under its key.
"""

from typing import Any, ClassVar, Dict, List, Optional, Union

from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr, validator

# Block and node ids are JSON scalars; StrictInt keeps booleans out
BlockId = Union[StrictStr, StrictInt]


def _require_list(v):
    if not isinstance(v, list):
        raise ValueError('must be a list')
    return v


class WireEvent(BaseModel):
    """Common base: knows its discriminator and how to go back on the wire"""
    WIRE_KEY: ClassVar[str] = ""

    def to_wire(self) -> Dict[str, Any]:
        return {self.WIRE_KEY: self.model_dump(by_alias=True)}


class NodeAdded(WireEvent):
    WIRE_KEY: ClassVar[str] = "Node"

    node_id: BlockId = Field(..., alias="id")
    lat: StrictFloat = Field(..., ge=-90, le=90)
    lon: StrictFloat = Field(..., ge=-180, le=180)


class ProposerBlockAdded(WireEvent):
    WIRE_KEY: ClassVar[str] = "ProposerBlock"

    block_id: BlockId = Field(..., alias="id")
    parent: Optional[BlockId] = Field(..., description="Parent proposer block id, null for genesis")
    miner: BlockId
    transaction_refs: List[BlockId]

    @validator('transaction_refs', pre=True)
    def validate_refs(cls, v):
        return _require_list(v)


class TransactionBlockAdded(WireEvent):
    WIRE_KEY: ClassVar[str] = "TransactionBlock"

    block_id: BlockId = Field(..., alias="id")
    miner: BlockId


class VoterBlockAdded(WireEvent):
    WIRE_KEY: ClassVar[str] = "VoterBlock"

    chain: StrictInt
    block_id: BlockId = Field(..., alias="id")
    miner: BlockId
    votes: List[BlockId]

    @validator('votes', pre=True)
    def validate_votes(cls, v):
        return _require_list(v)


class LedgerUpdated(WireEvent):
    WIRE_KEY: ClassVar[str] = "UpdatedLedger"

    added: List[BlockId]
    removed: List[BlockId] = Field(default_factory=list)

    @validator('added', 'removed', pre=True)
    def validate_lists(cls, v):
        return _require_list(v)


EVENT_MODELS = {
    model.WIRE_KEY: model
    for model in (NodeAdded, ProposerBlockAdded, TransactionBlockAdded, VoterBlockAdded, LedgerUpdated)
}

Event = Union[NodeAdded, ProposerBlockAdded, TransactionBlockAdded, VoterBlockAdded, LedgerUpdated]
