"""JSON Lines over stdin/stdout with one implicit session."""

from __future__ import annotations

import asyncio
import sys
from typing import Awaitable, Callable, Protocol

from loguru import logger

from corebridge.bridge import CoreBridge
from corebridge.rpc.serialization import encode_message
from corebridge.session.session import Session
from corebridge.utils.exceptions import TransportClosed

WriteLine = Callable[[str], Awaitable[None]]


class LineReader(Protocol):
    async def readline(self) -> bytes: ...


class StdioAdapter:
    """Reads one payload per line and writes one frame per outbound item."""

    def __init__(self, bridge: CoreBridge, *, drain_seconds: float | None = None):
        self.bridge = bridge
        self.drain_seconds = (
            bridge.config.session.teardown_grace_seconds if drain_seconds is None else drain_seconds
        )

    async def run(self, reader: LineReader, write_line: WriteLine) -> None:
        """Serve until EOF, then let in-flight calls finish briefly and tear down."""
        session = self.bridge.open_session("stdio")
        writer = asyncio.create_task(self._write_loop(session, write_line), name=f"stdio-writer:{session.id}")
        try:
            while not writer.done():
                line = await reader.readline()
                if not line:
                    logger.info("EOF reached on stdin")
                    break
                if not line.strip():
                    continue
                try:
                    await self.bridge.dispatch(session, line)
                except TransportClosed:
                    break
            await self._drain(session)
        finally:
            await self.bridge.close_session(session)
            if not writer.done():
                writer.cancel()
            await asyncio.gather(writer, return_exceptions=True)

    async def _drain(self, session: Session) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.drain_seconds
        while (len(session.pending) or len(session.outbound)) and not session.closed:
            if loop.time() >= deadline:
                logger.debug("Session {} drain timed out with {} pending", session.id, len(session.pending))
                return
            await asyncio.sleep(0.01)

    @staticmethod
    async def _write_loop(session: Session, write_line: WriteLine) -> None:
        while True:
            try:
                item = await session.outbound.get()
            except TransportClosed:
                return
            await write_line(encode_message(item))


async def open_stdio() -> tuple[asyncio.StreamReader, WriteLine]:
    """Wrap the process stdin as a stream reader and stdout as a line writer."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=2**24)
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)

    async def write_line(line: str) -> None:
        sys.stdout.write(line + "\n")
        sys.stdout.flush()

    return reader, write_line


async def run_stdio(bridge: CoreBridge) -> None:
    reader, write_line = await open_stdio()
    try:
        await StdioAdapter(bridge).run(reader, write_line)
    finally:
        await bridge.aclose()
