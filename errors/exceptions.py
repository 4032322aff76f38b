"""
Custom exception classes for the Prism visualizer
"""

class VisualizationError(Exception):
    """Base exception for visualizer operations"""
    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        self.code = code or "VISUALIZATION_ERROR"

class DecodeError(VisualizationError):
    """Inbound message could not be turned into an event"""
    def __init__(self, message: str, code: str = "DECODE_ERROR"):
        super().__init__(message, code)

class UnrecognizedEventError(DecodeError):
    """Message has no (or more than one, or an unknown) discriminator key"""
    def __init__(self, message: str):
        super().__init__(message, "UNRECOGNIZED_EVENT")

class MalformedFieldError(DecodeError):
    """Known event kind with a missing or mistyped field"""
    def __init__(self, kind: str, message: str):
        super().__init__(f"Malformed {kind} event: {message}", "MALFORMED_FIELD")
        self.kind = kind

class StateError(VisualizationError):
    """A mutation would break a DAG invariant"""
    anomaly = "state_error"

    def __init__(self, message: str, code: str = "STATE_ERROR"):
        super().__init__(message, code)

class UnknownParentError(StateError):
    """Proposer block references a parent that is not in the store"""
    anomaly = "unknown_parent"

    def __init__(self, block_id, parent_id):
        super().__init__(f"Proposer block {block_id} has unknown parent {parent_id}", "UNKNOWN_PARENT")
        self.block_id = block_id
        self.parent_id = parent_id

class UnknownChainError(StateError):
    """Voter block targets a chain outside the configured range"""
    anomaly = "unknown_chain"

    def __init__(self, chain_index: int, num_chains: int):
        super().__init__(
            f"Voter chain {chain_index} out of range (0..{num_chains - 1})", "UNKNOWN_CHAIN"
        )
        self.chain_index = chain_index
        self.num_chains = num_chains

class DuplicateBlockError(StateError):
    """Block id already present for its kind"""
    anomaly = "duplicate_block"

    def __init__(self, kind: str, block_id, chain_index: int = None):
        where = f" on chain {chain_index}" if chain_index is not None else ""
        super().__init__(f"Duplicate {kind} {block_id}{where}", "DUPLICATE_BLOCK")
        self.kind = kind
        self.block_id = block_id
        self.chain_index = chain_index

class DuplicateNodeError(StateError):
    """Node id already registered"""
    anomaly = "duplicate_node"

    def __init__(self, node_id):
        super().__init__(f"Duplicate node {node_id}", "DUPLICATE_NODE")
        self.node_id = node_id

class UnknownBlockError(VisualizationError):
    """Lookup of a block that is not in the store"""
    def __init__(self, kind: str, block_id):
        super().__init__(f"Unknown {kind} {block_id}", "UNKNOWN_BLOCK")
        self.kind = kind
        self.block_id = block_id
