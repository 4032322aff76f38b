"""
Prometheus metrics for the Prism visualizer
"""

from prometheus_client import Counter, Gauge, Info, generate_latest, CONTENT_TYPE_LATEST

visualizer_info = Info('prism_visualizer', 'Prism visualizer information')
events_applied_total = Counter('prism_events_applied_total', 'Events applied to the DAG store', ['kind'])
events_rejected_total = Counter('prism_events_rejected_total', 'Events rejected by the DAG store', ['kind'])
decode_failures_total = Counter('prism_decode_failures_total', 'Inbound messages that failed to decode', ['reason'])
notifications_dropped_total = Counter('prism_notifications_dropped_total', 'Store notifications dropped because no renderer drained the queue')
anomalies_total = Counter('prism_anomalies_total', 'Protocol anomalies observed by the DAG store', ['anomaly'])
proposer_blocks = Gauge('prism_proposer_blocks', 'Proposer blocks in the store')
confirmed_proposer_blocks = Gauge('prism_confirmed_proposer_blocks', 'Confirmed proposer blocks in the store')
transaction_blocks = Gauge('prism_transaction_blocks', 'Transaction blocks in the store')
voter_blocks = Gauge('prism_voter_blocks', 'Voter blocks in the store')
stream_connected = Gauge('prism_stream_connected', 'Visualization stream status (1=connected, 0=not connected)')

visualizer_info.info({'version': '1.0.0'})


def update_store_gauges(store) -> None:
    """Refresh entity-count gauges from a DagStateStore"""
    counts = store.counts()
    proposer_blocks.set(counts["proposer_blocks"])
    confirmed_proposer_blocks.set(counts["confirmed"])
    transaction_blocks.set(counts["transaction_blocks"])
    voter_blocks.set(counts["voter_blocks"])


def generate_metrics():
    """Return (payload, content_type) for the /metrics endpoint"""
    return generate_latest(), CONTENT_TYPE_LATEST
