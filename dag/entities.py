"""
Entities of the reconstructed Prism DAG
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

BlockId = Union[str, int]


@dataclass(frozen=True)
class Node:
    node_id: BlockId
    lat: float
    lon: float


@dataclass(frozen=True)
class TransactionBlock:
    block_id: BlockId
    miner_id: BlockId


@dataclass
class ProposerBlock:
    """
    Proposer tree vertex. ``parent_id`` is None when the block hangs off the
    implicit genesis; children are never stored, the store looks them up.
    """
    block_id: BlockId
    miner_id: BlockId
    transaction_refs: Tuple[BlockId, ...]
    parent_id: Optional[BlockId]
    confirmed: bool = False

    def confirm(self) -> bool:
        """Mark as confirmed. Returns True only on the first call."""
        if self.confirmed:
            return False
        self.confirmed = True
        return True


@dataclass(frozen=True)
class VoterBlock:
    block_id: BlockId
    miner_id: BlockId
    chain_index: int
    parent_id: Optional[BlockId]
    votes: Tuple[BlockId, ...]
    height: int


@dataclass
class Chain:
    """Append-only voter chain with a cached tip"""
    index: int
    blocks: List[VoterBlock] = field(default_factory=list)
    by_id: Dict[BlockId, VoterBlock] = field(default_factory=dict)
    tip: Optional[VoterBlock] = None

    def __len__(self):
        return len(self.blocks)

    def __contains__(self, block_id) -> bool:
        return block_id in self.by_id

    def append(self, block_id: BlockId, miner_id: BlockId, votes) -> VoterBlock:
        block = VoterBlock(
            block_id=block_id,
            miner_id=miner_id,
            chain_index=self.index,
            parent_id=self.tip.block_id if self.tip else None,
            votes=tuple(votes),
            height=len(self.blocks),
        )
        self.blocks.append(block)
        self.by_id[block_id] = block
        self.tip = block
        return block
