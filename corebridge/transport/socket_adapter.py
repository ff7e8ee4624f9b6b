"""WebSocket transport: one connection, one session."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from loguru import logger
from starlette.websockets import WebSocketState

from corebridge import __version__
from corebridge.bridge import CoreBridge
from corebridge.config.schema import Config
from corebridge.engine.loader import load_engine
from corebridge.rpc.serialization import encode_message
from corebridge.session.session import Session
from corebridge.utils.exceptions import TransportClosed, TransportFault

BridgeFactory = Callable[[], CoreBridge]


async def read_frames(websocket: WebSocket, bridge: CoreBridge, session: Session) -> None:
    """Pass each inbound message to the dispatcher as it arrives."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000))
        text = message.get("text")
        data = message.get("bytes")
        if text is not None:
            await bridge.dispatch(session, text)
        elif data is not None:
            await bridge.dispatch(session, data)
        else:
            raise TransportFault("websocket message carried no payload", {"type": message["type"]})


async def write_frames(websocket: WebSocket, session: Session) -> None:
    """Drain the session's outbound queue, one text frame per item, until it closes."""
    while True:
        try:
            item = await session.outbound.get()
        except TransportClosed:
            return
        await websocket.send_text(encode_message(item))


async def serve_connection(websocket: WebSocket, bridge: CoreBridge) -> None:
    """Run reader and writer for one accepted connection, then tear the session down."""
    session = bridge.open_session("socket")
    reader = asyncio.create_task(read_frames(websocket, bridge, session), name=f"ws-reader:{session.id}")
    writer = asyncio.create_task(write_frames(websocket, session), name=f"ws-writer:{session.id}")
    faulted = False
    try:
        done, pending = await asyncio.wait({reader, writer}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            exc = task.exception()
            if exc is None or isinstance(exc, (WebSocketDisconnect, TransportClosed)):
                continue
            faulted = True
            logger.error("Session {} transport fault: {}", session.id, exc)
        # Closed before our own teardown means the bridge failed the session.
        faulted = faulted or session.closed
    finally:
        reader.cancel()
        writer.cancel()
        await bridge.close_session(session)
    if websocket.client_state == WebSocketState.CONNECTED and websocket.application_state == WebSocketState.CONNECTED:
        await websocket.close(code=1011 if faulted else 1000)


def create_app(bridge_factory: BridgeFactory | None = None, config: Config | None = None) -> FastAPI:
    """Build the FastAPI app serving the bridge over a WebSocket endpoint."""
    config = config or Config()

    def default_factory() -> CoreBridge:
        return CoreBridge(load_engine(config.engine), config)

    factory = bridge_factory or default_factory

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        bridge = factory()
        app.state.bridge = bridge
        logger.info("corebridge socket adapter ready at {}", config.socket.path)
        try:
            yield
        finally:
            await bridge.aclose()

    app = FastAPI(title="corebridge", version=__version__, lifespan=lifespan)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        bridge: CoreBridge = app.state.bridge
        return {"ok": True, "sessions": len(bridge.sessions)}

    @app.websocket(config.socket.path)
    async def websocket_rpc(websocket: WebSocket):
        """JSON-RPC 2.0 endpoint; requests and notifications interleave freely."""
        await websocket.accept()
        await serve_connection(websocket, websocket.app.state.bridge)

    return app
