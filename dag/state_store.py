"""
DAG State Store - canonical in-memory reconstruction of the Prism block DAG

Holds one proposer tree (rooted at an implicit genesis) and a fixed number of
append-only voter chains. Every mutation touches only the new entity and its
direct parent or tip, so all updates are O(1) apart from child lookups, which
are computed on demand.

Structural violations (unknown parent/chain, duplicate ids) are recorded as
anomalies and raised; the store is left exactly as it was. Forward references
(transaction refs, votes, confirmations of unknown blocks) are tolerated and
only counted.
"""
from collections import Counter
from typing import Dict, Iterable, List, Optional, Tuple

from config.config import GENESIS_PROPOSER_ID
from dag.entities import BlockId, Chain, Node, ProposerBlock, TransactionBlock, VoterBlock
from errors.exceptions import (
    DuplicateBlockError,
    DuplicateNodeError,
    StateError,
    UnknownBlockError,
    UnknownChainError,
    UnknownParentError,
)
from events.event_bus import EventBus, EventTypes
from log_utils import get_logger
from monitoring.metrics import anomalies_total

logger = get_logger(__name__)

# Anomaly kinds for tolerated references
UNKNOWN_CONFIRMATION = "unknown_confirmation"
DANGLING_TRANSACTION_REF = "dangling_transaction_ref"
DUPLICATE_TRANSACTION_REF = "duplicate_transaction_ref"
DANGLING_VOTE = "dangling_vote"
LEDGER_REMOVAL_IGNORED = "ledger_removal_ignored"


class DagStateStore:
    """
    Owns every node, block and chain of one visualization session.

    The renderer only reads: through the accessors, ``snapshot()``, or the
    notifications published on ``event_bus``.
    """

    def __init__(self, num_chains: int, event_bus: Optional[EventBus] = None,
                 genesis_id: BlockId = GENESIS_PROPOSER_ID):
        if num_chains < 1:
            raise ValueError(f"num_chains must be positive, got {num_chains}")
        self.num_chains = num_chains
        self.genesis_id = genesis_id
        self.event_bus = event_bus if event_bus is not None else EventBus()
        self.nodes: Dict[BlockId, Node] = {}
        self.proposer_blocks: Dict[BlockId, ProposerBlock] = {}
        self.transaction_blocks: Dict[BlockId, TransactionBlock] = {}
        self.chains: List[Chain] = [Chain(index=i) for i in range(num_chains)]
        self._referenced_transactions: Dict[BlockId, BlockId] = {}  # tx id -> first proposer referencing it
        self._ledger: List[BlockId] = []
        self._anomalies: Counter = Counter()
        logger.info(f"DAG store initialized with {num_chains} voter chains")

    # ------------------------------------------------------------------ #
    # anomalies
    # ------------------------------------------------------------------ #
    def record_anomaly(self, kind: str, message: str, quiet: bool = False, **details) -> None:
        """Count an anomaly, log it and tell the renderer"""
        self._anomalies[kind] += 1
        anomalies_total.labels(anomaly=kind).inc()
        log = logger.debug if quiet else logger.warning
        log(f"Anomaly {kind}: {message}", extra={"anomaly": kind, **details})
        self.event_bus.publish(EventTypes.ANOMALY, {"anomaly": kind, "detail": message, **details})

    def _reject(self, error: StateError, **details):
        self.record_anomaly(error.anomaly, error.message, **details)
        raise error

    def anomalies(self) -> Dict[str, int]:
        return dict(self._anomalies)

    def anomaly_count(self, kind: Optional[str] = None) -> int:
        if kind is None:
            return sum(self._anomalies.values())
        return self._anomalies.get(kind, 0)

    # ------------------------------------------------------------------ #
    # mutations
    # ------------------------------------------------------------------ #
    def add_node(self, node_id: BlockId, lat: float, lon: float) -> Node:
        if node_id in self.nodes:
            self._reject(DuplicateNodeError(node_id), miner=node_id)

        node = Node(node_id=node_id, lat=lat, lon=lon)
        self.nodes[node_id] = node
        logger.debug(f"Node {node_id} added at ({lat}, {lon})", extra={"miner": node_id})
        self.event_bus.publish(EventTypes.NODE_ADDED, {"node_id": node_id, "lat": lat, "lon": lon})
        return node

    def add_proposer_block(self, block_id: BlockId, parent_id: Optional[BlockId], miner_id: BlockId,
                           transaction_refs: Iterable[BlockId] = ()) -> ProposerBlock:
        """
        Attach a proposer block under ``parent_id``.

        ``parent_id`` of None or the genesis id makes the block a child of the
        implicit genesis. Raises UnknownParentError or DuplicateBlockError.
        """
        if block_id in self.proposer_blocks or block_id == self.genesis_id:
            self._reject(DuplicateBlockError("proposer block", block_id), block_id=block_id)

        if parent_id is None or parent_id == self.genesis_id:
            resolved_parent = None
        elif parent_id in self.proposer_blocks:
            resolved_parent = parent_id
        else:
            self._reject(UnknownParentError(block_id, parent_id), block_id=block_id)

        refs = tuple(transaction_refs)
        block = ProposerBlock(
            block_id=block_id,
            miner_id=miner_id,
            transaction_refs=refs,
            parent_id=resolved_parent,
        )
        self.proposer_blocks[block_id] = block

        for tx_id in refs:
            if tx_id not in self.transaction_blocks:
                self.record_anomaly(
                    DANGLING_TRANSACTION_REF,
                    f"proposer block {block_id} references unknown transaction block {tx_id}",
                    quiet=True, block_id=block_id,
                )
            if tx_id in self._referenced_transactions:
                self.record_anomaly(
                    DUPLICATE_TRANSACTION_REF,
                    f"transaction block {tx_id} already referenced by {self._referenced_transactions[tx_id]}",
                    block_id=block_id,
                )
            else:
                self._referenced_transactions[tx_id] = block_id

        logger.debug(
            f"Proposer block {block_id} added under {parent_id} with {len(refs)} transaction refs",
            extra={"block_id": block_id, "miner": miner_id},
        )
        self.event_bus.publish(EventTypes.PROPOSER_BLOCK_ADDED, {
            "block_id": block_id,
            "parent_id": resolved_parent if resolved_parent is not None else self.genesis_id,
            "miner": miner_id,
            "transaction_refs": list(refs),
        })
        return block

    def add_transaction_block(self, block_id: BlockId, miner_id: BlockId) -> TransactionBlock:
        if block_id in self.transaction_blocks:
            self._reject(DuplicateBlockError("transaction block", block_id), block_id=block_id)

        block = TransactionBlock(block_id=block_id, miner_id=miner_id)
        self.transaction_blocks[block_id] = block
        logger.debug(f"Transaction block {block_id} added", extra={"block_id": block_id, "miner": miner_id})
        self.event_bus.publish(EventTypes.TRANSACTION_BLOCK_ADDED, {"block_id": block_id, "miner": miner_id})
        return block

    def add_voter_block(self, chain_index: int, block_id: BlockId, miner_id: BlockId,
                        votes: Iterable[BlockId] = ()) -> VoterBlock:
        """Append a voter block to the tip of ``chain_index``"""
        if not 0 <= chain_index < self.num_chains:
            self._reject(UnknownChainError(chain_index, self.num_chains), block_id=block_id, chain=chain_index)

        chain = self.chains[chain_index]
        if block_id in chain:
            self._reject(DuplicateBlockError("voter block", block_id, chain_index),
                         block_id=block_id, chain=chain_index)

        block = chain.append(block_id, miner_id, votes)

        for proposer_id in block.votes:
            if proposer_id not in self.proposer_blocks:
                self.record_anomaly(
                    DANGLING_VOTE,
                    f"voter block {block_id} on chain {chain_index} votes for unknown proposer block {proposer_id}",
                    quiet=True, block_id=block_id, chain=chain_index,
                )

        logger.debug(
            f"Voter block {block_id} appended to chain {chain_index} at height {block.height}",
            extra={"block_id": block_id, "chain": chain_index, "miner": miner_id},
        )
        self.event_bus.publish(EventTypes.VOTER_BLOCK_ADDED, {
            "chain": chain_index,
            "block_id": block_id,
            "parent_id": block.parent_id,
            "miner": miner_id,
            "votes": list(block.votes),
            "height": block.height,
        })
        return block

    def confirm_proposer_blocks(self, added_ids: Iterable[BlockId]) -> List[BlockId]:
        """
        Confirm proposer blocks in the given order.

        Unknown ids are counted as anomalies, already confirmed ones are
        skipped. Returns the ids confirmed by this call.
        """
        newly_confirmed = []
        for block_id in added_ids:
            block = self.proposer_blocks.get(block_id)
            if block is None:
                self.record_anomaly(
                    UNKNOWN_CONFIRMATION,
                    f"ledger confirms unknown proposer block {block_id}",
                    block_id=block_id,
                )
                continue
            if not block.confirm():
                continue
            self._ledger.append(block_id)
            newly_confirmed.append(block_id)
            self.event_bus.publish(EventTypes.PROPOSER_BLOCK_CONFIRMED, {
                "block_id": block_id,
                "ledger_position": len(self._ledger) - 1,
            })

        if newly_confirmed:
            logger.info(f"Confirmed {len(newly_confirmed)} proposer blocks, ledger size {len(self._ledger)}")
        return newly_confirmed

    def ignore_ledger_removals(self, removed_ids: Iterable[BlockId]) -> None:
        """Confirmation is final; removals are only reported"""
        for block_id in removed_ids:
            self.record_anomaly(
                LEDGER_REMOVAL_IGNORED,
                f"ledger removal of {block_id} ignored, confirmation is final",
                block_id=block_id,
            )

    # ------------------------------------------------------------------ #
    # reads
    # ------------------------------------------------------------------ #
    def get_node(self, node_id: BlockId) -> Node:
        try:
            return self.nodes[node_id]
        except KeyError:
            raise UnknownBlockError("node", node_id)

    def get_proposer_block(self, block_id: BlockId) -> ProposerBlock:
        try:
            return self.proposer_blocks[block_id]
        except KeyError:
            raise UnknownBlockError("proposer block", block_id)

    def get_transaction_block(self, block_id: BlockId) -> TransactionBlock:
        try:
            return self.transaction_blocks[block_id]
        except KeyError:
            raise UnknownBlockError("transaction block", block_id)

    def _chain(self, chain_index: int) -> Chain:
        if not 0 <= chain_index < self.num_chains:
            raise UnknownChainError(chain_index, self.num_chains)
        return self.chains[chain_index]

    def get_voter_block(self, chain_index: int, block_id: BlockId) -> VoterBlock:
        chain = self._chain(chain_index)
        try:
            return chain.by_id[block_id]
        except KeyError:
            raise UnknownBlockError("voter block", block_id)

    def chain_tip(self, chain_index: int) -> Optional[VoterBlock]:
        """Most recent voter block of the chain, None while it is empty"""
        return self._chain(chain_index).tip

    def chain_block_ids(self, chain_index: int) -> Tuple[BlockId, ...]:
        return tuple(block.block_id for block in self._chain(chain_index).blocks)

    def is_confirmed(self, block_id: BlockId) -> bool:
        if block_id == self.genesis_id:
            return True
        return self.get_proposer_block(block_id).confirmed

    def parent_of(self, block_id: BlockId) -> Optional[ProposerBlock]:
        """Parent proposer block, None for children of genesis"""
        parent_id = self.get_proposer_block(block_id).parent_id
        return self.proposer_blocks[parent_id] if parent_id is not None else None

    def children_of(self, block_id: BlockId) -> List[ProposerBlock]:
        """Children in insertion order; the genesis id lists the roots"""
        if block_id == self.genesis_id:
            parent_key = None
        else:
            self.get_proposer_block(block_id)
            parent_key = block_id
        return [block for block in self.proposer_blocks.values() if block.parent_id == parent_key]

    def ledger(self) -> List[BlockId]:
        """Confirmed proposer block ids in confirmation order"""
        return list(self._ledger)

    def counts(self) -> Dict[str, int]:
        return {
            "nodes": len(self.nodes),
            "proposer_blocks": len(self.proposer_blocks),
            "confirmed": len(self._ledger),
            "transaction_blocks": len(self.transaction_blocks),
            "voter_blocks": sum(len(chain) for chain in self.chains),
        }

    def snapshot(self) -> dict:
        """Plain-data copy of the whole DAG, safe to hand to a renderer"""
        return {
            "genesis": self.genesis_id,
            "nodes": [
                {"id": n.node_id, "lat": n.lat, "lon": n.lon} for n in self.nodes.values()
            ],
            "proposer_blocks": [
                {
                    "id": b.block_id,
                    "parent": b.parent_id if b.parent_id is not None else self.genesis_id,
                    "miner": b.miner_id,
                    "transaction_refs": list(b.transaction_refs),
                    "confirmed": b.confirmed,
                }
                for b in self.proposer_blocks.values()
            ],
            "transaction_blocks": [
                {"id": t.block_id, "miner": t.miner_id} for t in self.transaction_blocks.values()
            ],
            "voter_chains": [
                {
                    "chain": chain.index,
                    "tip": chain.tip.block_id if chain.tip else None,
                    "blocks": [
                        {
                            "id": v.block_id,
                            "parent": v.parent_id,
                            "miner": v.miner_id,
                            "votes": list(v.votes),
                            "height": v.height,
                        }
                        for v in chain.blocks
                    ],
                }
                for chain in self.chains
            ],
            "ledger": list(self._ledger),
            "anomalies": self.anomalies(),
        }
