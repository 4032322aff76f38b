"""
Event processor - decode one visualization message and fold it into the store
"""
from dataclasses import dataclass
from typing import Any, Optional

from dag.state_store import DagStateStore
from errors.exceptions import DecodeError, StateError
from log_utils import get_logger
from models.decoder import decode
from models.events import (
    LedgerUpdated,
    NodeAdded,
    ProposerBlockAdded,
    TransactionBlockAdded,
    VoterBlockAdded,
)
from monitoring.metrics import decode_failures_total, events_applied_total, events_rejected_total

logger = get_logger(__name__)


@dataclass
class ProcessOutcome:
    """What happened to one inbound message"""
    applied: bool
    kind: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class EventProcessor:
    """
    Single writer of a DagStateStore.

    ``process`` runs decode and mutation to completion and never raises:
    malformed messages are dropped, structural violations are reported in
    the returned outcome and the session carries on.
    """

    def __init__(self, store: DagStateStore):
        self.store = store
        self.processed = 0
        self.applied = 0
        self.decode_failures = 0
        self.rejected = 0
        self._handlers = {
            NodeAdded: self._apply_node,
            ProposerBlockAdded: self._apply_proposer_block,
            TransactionBlockAdded: self._apply_transaction_block,
            VoterBlockAdded: self._apply_voter_block,
            LedgerUpdated: self._apply_ledger_update,
        }

    def process(self, raw: Any) -> ProcessOutcome:
        self.processed += 1
        try:
            event = decode(raw)
        except DecodeError as e:
            self.decode_failures += 1
            decode_failures_total.labels(reason=e.code).inc()
            logger.warning(f"Dropping message: {e.message}", extra={"error_code": e.code})
            return ProcessOutcome(applied=False, error=e.message, error_code=e.code)

        kind = event.WIRE_KEY
        try:
            self.apply(event)
        except StateError as e:
            # The store has already logged and counted the anomaly
            self.rejected += 1
            events_rejected_total.labels(kind=kind).inc()
            logger.debug(f"{kind} event rejected: {e.message}", extra={"event_kind": kind})
            return ProcessOutcome(applied=False, kind=kind, error=e.message, error_code=e.code)

        self.applied += 1
        events_applied_total.labels(kind=kind).inc()
        return ProcessOutcome(applied=True, kind=kind)

    def apply(self, event) -> None:
        """Route a decoded event to its store mutation"""
        self._handlers[type(event)](event)

    def _apply_node(self, event: NodeAdded):
        self.store.add_node(event.node_id, event.lat, event.lon)

    def _apply_proposer_block(self, event: ProposerBlockAdded):
        self.store.add_proposer_block(event.block_id, event.parent, event.miner, event.transaction_refs)

    def _apply_transaction_block(self, event: TransactionBlockAdded):
        self.store.add_transaction_block(event.block_id, event.miner)

    def _apply_voter_block(self, event: VoterBlockAdded):
        self.store.add_voter_block(event.chain, event.block_id, event.miner, event.votes)

    def _apply_ledger_update(self, event: LedgerUpdated):
        self.store.confirm_proposer_blocks(event.added)
        if event.removed:
            self.store.ignore_ledger_removals(event.removed)

    def stats(self) -> dict:
        return {
            "processed": self.processed,
            "applied": self.applied,
            "decode_failures": self.decode_failures,
            "rejected": self.rejected,
        }
