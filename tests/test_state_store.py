"""
Tests for the DAG state store
"""
import pytest

from dag.state_store import (
    DANGLING_TRANSACTION_REF,
    DANGLING_VOTE,
    DUPLICATE_TRANSACTION_REF,
    UNKNOWN_CONFIRMATION,
    DagStateStore,
)
from errors.exceptions import (
    DuplicateBlockError,
    DuplicateNodeError,
    UnknownBlockError,
    UnknownChainError,
    UnknownParentError,
)
from events.event_bus import EventTypes


class TestProposerTree:

    def test_child_of_genesis(self, store):
        block = store.add_proposer_block("p1", "genesis", "n1", ["t1"])
        assert block.parent_id is None
        assert block.confirmed is False
        assert store.parent_of("p1") is None
        assert [b.block_id for b in store.children_of("genesis")] == ["p1"]

    def test_null_parent_means_genesis(self, store):
        store.add_proposer_block("p1", None, "n1")
        assert [b.block_id for b in store.children_of(store.genesis_id)] == ["p1"]

    def test_children_computed_by_lookup(self, store):
        store.add_proposer_block("p1", "genesis", "n1")
        store.add_proposer_block("p2", "p1", "n2")
        store.add_proposer_block("p3", "p1", "n3")
        store.add_proposer_block("p4", "p2", "n1")
        assert [b.block_id for b in store.children_of("p1")] == ["p2", "p3"]
        assert [b.block_id for b in store.children_of("p2")] == ["p4"]
        assert store.children_of("p4") == []
        assert store.parent_of("p4").block_id == "p2"

    def test_unknown_parent_rejected(self, store):
        with pytest.raises(UnknownParentError) as exc_info:
            store.add_proposer_block("p2", "p1", "n1")
        assert exc_info.value.parent_id == "p1"
        assert "p2" not in store.proposer_blocks
        assert store.anomaly_count("unknown_parent") == 1

    def test_duplicate_proposer_rejected(self, store):
        store.add_proposer_block("p1", "genesis", "n1", ["t1"])
        with pytest.raises(DuplicateBlockError):
            store.add_proposer_block("p1", "genesis", "n2", ["t2"])
        assert store.get_proposer_block("p1").miner_id == "n1"
        assert store.get_proposer_block("p1").transaction_refs == ("t1",)

    def test_genesis_id_cannot_be_reused(self, store):
        with pytest.raises(DuplicateBlockError):
            store.add_proposer_block("genesis", None, "n1")

    def test_every_parent_exists_at_insertion(self, store):
        ids = ["p1", "p2", "p3", "p4", "p5"]
        parent = "genesis"
        for block_id in ids:
            store.add_proposer_block(block_id, parent, "n1")
            parent = block_id
        for block_id in ids:
            block = store.get_proposer_block(block_id)
            assert block.parent_id is None or block.parent_id in store.proposer_blocks

    def test_children_of_unknown_block(self, store):
        with pytest.raises(UnknownBlockError):
            store.children_of("nope")


class TestTransactionBlocks:

    def test_refs_to_known_transaction(self, store):
        store.add_transaction_block("t1", "n1")
        store.add_proposer_block("p1", "genesis", "n1", ["t1"])
        assert store.anomalies() == {}

    def test_dangling_ref_tolerated(self, store):
        block = store.add_proposer_block("p1", "genesis", "n1", ["t1", "t2"])
        assert block.transaction_refs == ("t1", "t2")
        assert store.anomaly_count(DANGLING_TRANSACTION_REF) == 2

    def test_second_reference_is_an_anomaly(self, store):
        store.add_transaction_block("t1", "n1")
        store.add_proposer_block("p1", "genesis", "n1", ["t1"])
        store.add_proposer_block("p2", "p1", "n1", ["t1"])
        assert store.anomaly_count(DUPLICATE_TRANSACTION_REF) == 1
        assert store.get_proposer_block("p2").transaction_refs == ("t1",)

    def test_duplicate_transaction_block(self, store):
        store.add_transaction_block("t1", "n1")
        with pytest.raises(DuplicateBlockError):
            store.add_transaction_block("t1", "n2")
        assert store.get_transaction_block("t1").miner_id == "n1"


class TestVoterChains:

    def test_tip_and_parent(self, store):
        v1 = store.add_voter_block(0, "v1", "n2", ["p1"])
        v2 = store.add_voter_block(0, "v2", "n3", [])
        assert v1.parent_id is None
        assert v2.parent_id == "v1"
        assert store.chain_tip(0) is v2
        assert (v1.height, v2.height) == (0, 1)

    def test_chains_are_independent(self, store):
        store.add_voter_block(0, "v1", "n1")
        store.add_voter_block(1, "v1", "n1")
        assert store.chain_tip(1).parent_id is None
        assert store.get_voter_block(1, "v1").chain_index == 1
        assert store.chain_tip(2) is None

    def test_append_only_reads(self, store):
        seen = []
        for i in range(5):
            store.add_voter_block(3, f"v{i}", "n1")
            ids = store.chain_block_ids(3)
            assert ids[:len(seen)] == tuple(seen)
            seen = list(ids)
        assert seen == ["v0", "v1", "v2", "v3", "v4"]
        assert store.chain_block_ids(3) == store.chain_block_ids(3)

    @pytest.mark.parametrize("chain", [-1, 4, 7])
    def test_unknown_chain(self, store, chain):
        with pytest.raises(UnknownChainError):
            store.add_voter_block(chain, "v1", "n1")
        assert store.counts()["voter_blocks"] == 0
        assert store.anomaly_count("unknown_chain") == 1

    def test_duplicate_on_same_chain(self, store):
        store.add_voter_block(0, "v1", "n1")
        with pytest.raises(DuplicateBlockError):
            store.add_voter_block(0, "v1", "n2")
        assert store.chain_block_ids(0) == ("v1",)

    def test_votes_kept_verbatim(self, store):
        store.add_proposer_block("p1", "genesis", "n1")
        block = store.add_voter_block(0, "v1", "n1", ["p2", "p1", "p2"])
        assert block.votes == ("p2", "p1", "p2")
        assert store.anomaly_count(DANGLING_VOTE) == 2

    def test_read_unknown_chain(self, store):
        with pytest.raises(UnknownChainError):
            store.chain_tip(9)


class TestConfirmation:

    def test_confirm_in_order(self, store):
        for block_id, parent in (("p1", "genesis"), ("p2", "p1"), ("p3", "p2")):
            store.add_proposer_block(block_id, parent, "n1")
        assert store.confirm_proposer_blocks(["p2", "p1"]) == ["p2", "p1"]
        assert store.ledger() == ["p2", "p1"]
        assert store.is_confirmed("p1") and store.is_confirmed("p2")
        assert not store.is_confirmed("p3")

    def test_idempotent(self, store):
        store.add_proposer_block("p1", "genesis", "n1", ["t1"])
        store.confirm_proposer_blocks(["p1"])
        before = store.snapshot()
        assert store.confirm_proposer_blocks(["p1"]) == []
        assert store.snapshot() == before
        assert store.is_confirmed("p1")

    def test_never_reverts(self, store):
        store.add_proposer_block("p1", "genesis", "n1")
        store.confirm_proposer_blocks(["p1"])
        store.ignore_ledger_removals(["p1"])
        store.add_proposer_block("p2", "p1", "n1")
        store.confirm_proposer_blocks(["p2", "p1"])
        assert store.is_confirmed("p1")
        assert store.ledger() == ["p1", "p2"]

    def test_unknown_id_is_counted_not_raised(self, store):
        store.add_proposer_block("p1", "genesis", "n1")
        before = store.snapshot()
        assert store.confirm_proposer_blocks(["pX"]) == []
        assert store.anomaly_count(UNKNOWN_CONFIRMATION) == 1
        after = store.snapshot()
        assert after["proposer_blocks"] == before["proposer_blocks"]
        assert after["ledger"] == before["ledger"]

    def test_genesis_counts_as_confirmed(self, store):
        assert store.is_confirmed("genesis")

    def test_unknown_block_lookup(self, store):
        with pytest.raises(UnknownBlockError):
            store.is_confirmed("missing")


class TestNodes:

    def test_add_and_get(self, store):
        node = store.add_node("n1", 40.0, -74.0)
        assert store.get_node("n1") == node

    def test_duplicate_node(self, store):
        store.add_node("n1", 40.0, -74.0)
        with pytest.raises(DuplicateNodeError):
            store.add_node("n1", 0.0, 0.0)
        assert store.get_node("n1").lat == 40.0


class TestNotifications:

    def test_one_notification_per_mutation(self, store, bus):
        store.add_node("n1", 1.0, 2.0)
        store.add_transaction_block("t1", "n1")
        store.add_proposer_block("p1", "genesis", "n1", ["t1"])
        store.add_voter_block(0, "v1", "n1", ["p1"])
        store.confirm_proposer_blocks(["p1"])
        events = bus.drain()
        assert [e.type for e in events] == [
            EventTypes.NODE_ADDED,
            EventTypes.TRANSACTION_BLOCK_ADDED,
            EventTypes.PROPOSER_BLOCK_ADDED,
            EventTypes.VOTER_BLOCK_ADDED,
            EventTypes.PROPOSER_BLOCK_CONFIRMED,
        ]
        assert events[2].data["parent_id"] == "genesis"
        assert events[3].data == {
            "chain": 0, "block_id": "v1", "parent_id": None, "miner": "n1", "votes": ["p1"], "height": 0,
        }

    def test_rejection_publishes_anomaly_only(self, store, bus):
        with pytest.raises(UnknownChainError):
            store.add_voter_block(7, "v1", "n1")
        events = bus.drain()
        assert [e.type for e in events] == [EventTypes.ANOMALY]
        assert events[0].data["anomaly"] == "unknown_chain"


class TestSnapshot:

    def test_snapshot_is_a_copy(self, store):
        store.add_proposer_block("p1", "genesis", "n1", ["t1"])
        snap = store.snapshot()
        snap["proposer_blocks"][0]["transaction_refs"].append("t2")
        snap["ledger"].append("p1")
        assert store.get_proposer_block("p1").transaction_refs == ("t1",)
        assert store.ledger() == []

    def test_shape(self, store):
        store.add_voter_block(1, "v1", "n1")
        snap = store.snapshot()
        assert snap["genesis"] == "genesis"
        assert len(snap["voter_chains"]) == 4
        assert snap["voter_chains"][1]["tip"] == "v1"
        assert snap["voter_chains"][0]["tip"] is None


def test_num_chains_must_be_positive():
    with pytest.raises(ValueError):
        DagStateStore(num_chains=0)
