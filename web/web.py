import logging
import time
from typing import Callable, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from dag.state_store import DagStateStore
from errors.exceptions import UnknownBlockError
from middleware.error_handler import setup_error_handlers
from models.validation import RendererSubscription
from monitoring.metrics import generate_metrics, update_store_gauges
from web.websocket_handlers import RendererEventHandlers, WebSocketManager

logger = logging.getLogger(__name__)


def _lookup(getter: Callable, raw_id: str, *args):
    """Path ids arrive as text; fall back to the integer form for numeric ids"""
    try:
        return getter(*args, raw_id)
    except UnknownBlockError:
        digits = raw_id[1:] if raw_id.startswith("-") else raw_id
        if digits.isascii() and digits.isdecimal():
            return getter(*args, int(raw_id))
        raise


def _proposer_view(store: DagStateStore, block) -> dict:
    return {
        "id": block.block_id,
        "parent": block.parent_id if block.parent_id is not None else store.genesis_id,
        "miner": block.miner_id,
        "transaction_refs": list(block.transaction_refs),
        "confirmed": block.confirmed,
    }


def _voter_view(block) -> Optional[dict]:
    if block is None:
        return None
    return {
        "id": block.block_id,
        "chain": block.chain_index,
        "parent": block.parent_id,
        "miner": block.miner_id,
        "votes": list(block.votes),
        "height": block.height,
    }


def create_app(store: DagStateStore, processor=None, client=None) -> FastAPI:
    """Read-only renderer API over one DAG store"""
    app = FastAPI(title="Prism Visualizer API", version="1.0.0")
    app.state.store = store
    app.state.processor = processor
    app.state.client = client
    websocket_manager = WebSocketManager()
    app.state.websocket_manager = websocket_manager

    setup_error_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"]
    )

    @app.on_event("startup")
    async def startup_event():
        """Start relaying store notifications to renderers"""
        try:
            await store.event_bus.start()
            handlers = RendererEventHandlers(websocket_manager)
            handlers.register_handlers(store.event_bus)
            app.state.renderer_handlers = handlers
        except Exception as e:
            logger.error(f"Failed to start event system: {e}")
            raise

    @app.on_event("shutdown")
    async def shutdown_event():
        handlers = getattr(app.state, "renderer_handlers", None)
        if handlers:
            store.event_bus.unsubscribe("*", handlers.handle_notification)
        await store.event_bus.stop()

    @app.get("/snapshot")
    async def get_snapshot():
        return store.snapshot()

    @app.get("/proposer/{block_id}")
    async def get_proposer_block(block_id: str):
        return _proposer_view(store, _lookup(store.get_proposer_block, block_id))

    @app.get("/proposer/{block_id}/children")
    async def get_children(block_id: str):
        if block_id == str(store.genesis_id):
            children = store.children_of(store.genesis_id)
        else:
            parent = _lookup(store.get_proposer_block, block_id)
            children = store.children_of(parent.block_id)
        return {"id": block_id, "children": [_proposer_view(store, b) for b in children]}

    @app.get("/transaction/{block_id}")
    async def get_transaction_block(block_id: str):
        block = _lookup(store.get_transaction_block, block_id)
        return {"id": block.block_id, "miner": block.miner_id}

    @app.get("/chains/{chain_index}")
    async def get_chain(chain_index: int):
        return {"chain": chain_index, "blocks": list(store.chain_block_ids(chain_index))}

    @app.get("/chains/{chain_index}/tip")
    async def get_chain_tip(chain_index: int):
        return {"chain": chain_index, "tip": _voter_view(store.chain_tip(chain_index))}

    @app.get("/chains/{chain_index}/blocks/{block_id}")
    async def get_voter_block(chain_index: int, block_id: str):
        return _voter_view(_lookup(store.get_voter_block, block_id, chain_index))

    @app.get("/ledger")
    async def get_ledger():
        return {"ledger": store.ledger()}

    @app.get("/anomalies")
    async def get_anomalies():
        return {"total": store.anomaly_count(), "anomalies": store.anomalies()}

    @app.get("/health")
    async def health_check(request: Request):
        stream_client = request.app.state.client
        connected = bool(stream_client and stream_client.connected)
        return {
            "status": "healthy" if connected or stream_client is None else "degraded",
            "stream_connected": connected,
            "counts": store.counts(),
            "processor": processor.stats() if processor else None,
            "timestamp": time.time(),
        }

    @app.get("/metrics")
    async def metrics():
        update_store_gauges(store)
        payload, content_type = generate_metrics()
        return Response(content=payload, media_type=content_type)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket_manager.connect(websocket)
        try:
            while True:
                data = await websocket.receive_json()

                if isinstance(data, dict) and data.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})
                    continue

                try:
                    request = RendererSubscription(**data)
                except Exception as e:
                    await websocket.send_json({
                        "error": "validation_error",
                        "message": f"Invalid subscription request: {str(e)}"
                    })
                    continue

                websocket_manager.subscribe(websocket, request.subscribe)
                await websocket.send_json({
                    "type": "subscription_confirmed",
                    "subscribe": sorted(websocket_manager.active_connections.get(websocket, ())),
                })
                if request.snapshot:
                    await websocket.send_json({"type": "snapshot", "data": store.snapshot()})
        except WebSocketDisconnect:
            logger.info("Renderer disconnected")
        finally:
            await websocket_manager.disconnect(websocket)

    return app
