#!/usr/bin/env python3

import asyncio
import argparse
import uvicorn

from config.config import (
    LOG_FILE, LOG_LEVEL, TOPOLOGY_FILE, VISUALIZATION_PROTOCOL, VISUALIZATION_URL,
    VOTER_CHAINS, WEB_HOST, WEB_PORT, shutdown_event,
)
from dag.state_store import DagStateStore
from events.event_bus import EventBus
from log_utils import setup_logging
from node.topology import load_topology
from stream.client import VisualizationClient
from stream.processor import EventProcessor
from web.web import create_app


async def main(args):
    logger = setup_logging(
        level=args.log_level,
        log_file=args.log_file,
        enable_console=True,
        enable_structured=True
    )
    logger.info("Starting Prism visualizer")
    logger.info(f"Stream: {args.url} (protocol {args.protocol}), voter chains: {args.chains}")

    store = DagStateStore(num_chains=args.chains, event_bus=EventBus())
    processor = EventProcessor(store)

    if args.topology:
        load_topology(args.topology, processor)

    client = VisualizationClient(args.url, processor, protocol=args.protocol, stop_event=shutdown_event)
    app = create_app(store, processor=processor, client=client)

    config_web = uvicorn.Config(
        app,
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        access_log=False
    )
    server_web = uvicorn.Server(config_web)
    logger.info(f"Renderer API configured on {args.host}:{args.port}")

    async def serve():
        try:
            await server_web.serve()
        finally:
            client.stop()

    try:
        await asyncio.gather(serve(), client.run())
    except asyncio.CancelledError:
        logger.info("Cancelled, shutting down")
    finally:
        logger.info(f"Session summary: {processor.stats()}, anomalies: {store.anomalies()}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Prism DAG visualizer client')
    parser.add_argument('--url', type=str, default=VISUALIZATION_URL,
                        help=f'Visualization websocket URL (default: {VISUALIZATION_URL})')
    parser.add_argument('--protocol', type=str, default=VISUALIZATION_PROTOCOL,
                        help=f'Websocket sub-protocol (default: {VISUALIZATION_PROTOCOL})')
    parser.add_argument('--chains', type=int, default=VOTER_CHAINS,
                        help=f'Number of voter chains (default: {VOTER_CHAINS})')
    parser.add_argument('--topology', type=str, default=TOPOLOGY_FILE,
                        help='Node list file with id,lat,lon lines')
    parser.add_argument('--host', type=str, default=WEB_HOST,
                        help=f'Renderer API host (default: {WEB_HOST})')
    parser.add_argument('--port', type=int, default=WEB_PORT,
                        help=f'Renderer API port (default: {WEB_PORT})')
    parser.add_argument('--log-level', type=str, default=LOG_LEVEL,
                        help=f'Log level (default: {LOG_LEVEL})')
    parser.add_argument('--log-file', type=str, default=LOG_FILE,
                        help='Also write logs to this file')

    args = parser.parse_args()
    asyncio.run(main(args))
