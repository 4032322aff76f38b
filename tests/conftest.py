# tests/conftest.py
"""
Shared fixtures for the test suite.

Key design points
─────────────────
1.  Make project-root importable so `from dag.state_store import …` works no
    matter where pytest is launched.
2.  Every test gets its own EventBus / DagStateStore / EventProcessor, so
    notifications and anomaly counters never leak between tests.
"""

from __future__ import annotations
import pathlib
import sys
import pytest

# ─────────────────────────────────────────────────────────────────────────────
#  Ensure the repo root is on sys.path
# ─────────────────────────────────────────────────────────────────────────────
ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

# Only now import modules that live in the repo
from dag.state_store import DagStateStore
from events.event_bus import EventBus
from stream.processor import EventProcessor


NUM_CHAINS = 4


# ───────────────────────────── store fixtures ───────────────────────────────
@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def store(bus):
    """Fresh store with voter chains 0..3"""
    return DagStateStore(num_chains=NUM_CHAINS, event_bus=bus)


@pytest.fixture
def processor(store):
    return EventProcessor(store)


@pytest.fixture
def send(processor):
    """Feed wire messages through the processor, returning the last outcome"""
    def _send(*messages):
        outcome = None
        for message in messages:
            outcome = processor.process(message)
        return outcome
    return _send
