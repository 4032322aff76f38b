import asyncio
import os

VISUALIZATION_URL = os.environ.get("VISUALIZATION_URL", "ws://localhost:8080")
VISUALIZATION_PROTOCOL = os.environ.get("VISUALIZATION_PROTOCOL", "visualization")
VOTER_CHAINS = int(os.environ.get("VOTER_CHAINS", "10"))
GENESIS_PROPOSER_ID = os.environ.get("GENESIS_PROPOSER_ID", "genesis")
RECONNECT_DELAY = float(os.environ.get("RECONNECT_DELAY", "5"))
WEB_HOST = os.environ.get("WEB_HOST", "0.0.0.0")
WEB_PORT = int(os.environ.get("WEB_PORT", "9090"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOG_FILE = os.environ.get("LOG_FILE")
NOTIFICATION_QUEUE_SIZE = int(os.environ.get("NOTIFICATION_QUEUE_SIZE", "10000"))
TOPOLOGY_FILE = os.environ.get("TOPOLOGY_FILE")
shutdown_event = asyncio.Event()
