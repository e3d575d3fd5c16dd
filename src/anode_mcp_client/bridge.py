"""stdio ⇄ WebSocket bridge.

Lets tools that only speak stdio MCP (editors, agent CLIs) reach an Anode
device. Frames are relayed verbatim; the bridge never parses them.

Wire format (newline-delimited, UTF-8):
- stdin:  one JSON-RPC frame per line, forwarded to the WebSocket
- stdout: every frame received from the WebSocket, followed by LF
- stderr: diagnostics only (stdout is reserved for the protocol)

Lines typed before the socket is open are queued and flushed in order once
it opens. When the socket drops, the bridge reconnects after the configured
interval, or exits with status 1 if reconnection is disabled. stdin EOF
closes the socket and exits with status 0.
"""

from __future__ import annotations

import asyncio
import contextlib
import io
import logging
import sys
import threading
from collections import deque
from collections.abc import Callable
from typing import BinaryIO

from .config import ClientConfig
from .errors import TransportError
from .transport import ClientTransport, WebSocketClientTransport

logger = logging.getLogger(__name__)

# UTF-8 encoding for all stdio traffic
ENCODING = "utf-8"

# Newline character (always LF for cross-platform consistency)
NEWLINE = "\n"

BridgeTransportFactory = Callable[[ClientConfig], ClientTransport]


class StdioBridge:
    """Relays lines between stdio and one WebSocket connection.

    Usage:
        bridge = StdioBridge(ClientConfig.from_env())
        exit_code = await bridge.run()  # Blocks until stdin closes
    """

    def __init__(
        self,
        config: ClientConfig,
        stdin: BinaryIO | None = None,
        stdout: BinaryIO | None = None,
        transport_factory: BridgeTransportFactory | None = None,
    ):
        """Initialize the bridge.

        Args:
            config: Host, port and reconnect policy
            stdin: Binary input stream (default: sys.stdin.buffer)
            stdout: Binary output stream (default: sys.stdout.buffer)
            transport_factory: Builds the socket transport (for testing)
        """
        self.config = config
        self._reader = io.TextIOWrapper(
            stdin if stdin is not None else sys.stdin.buffer,
            encoding=ENCODING,
            errors="replace",
            newline="",  # Universal newline mode - accepts LF, CRLF, CR
        )
        self._writer = io.TextIOWrapper(
            stdout if stdout is not None else sys.stdout.buffer,
            encoding=ENCODING,
            errors="replace",
            newline=NEWLINE,
            write_through=True,
        )
        self._transport_factory = transport_factory or WebSocketClientTransport
        self._transport: ClientTransport | None = None
        self._queue: deque[str] = deque()
        self._send_lock = asyncio.Lock()
        self._exit_code: int | None = None

    @property
    def is_connected(self) -> bool:
        return self._transport is not None and self._transport.is_open

    @property
    def queued(self) -> list[str]:
        """Lines waiting for the connection to open."""
        return list(self._queue)

    async def run(self) -> int:
        """Run until stdin closes or the connection is lost for good.

        Returns:
            Process exit status
        """
        connection = asyncio.create_task(self.connection_loop())
        stdin = asyncio.create_task(self._stdin_loop())

        try:
            done, _ = await asyncio.wait(
                {connection, stdin}, return_when=asyncio.FIRST_COMPLETED
            )
            if stdin in done:
                logger.info("stdin closed, exiting...")
                return 0
            if connection.exception() is not None:
                logger.error("Bridge connection failed", exc_info=connection.exception())
            return self._exit_code if self._exit_code is not None else 1
        finally:
            for task in (connection, stdin):
                task.cancel()
            await self.close()

    async def close(self) -> None:
        transport, self._transport = self._transport, None
        if transport is not None:
            await transport.close()

    async def handle_line(self, line: str) -> None:
        """Forward one stdin line, or queue it while disconnected."""
        line = line.rstrip("\r\n")
        if line.startswith("\ufeff"):
            line = line[1:]
        if not line.strip():
            return

        async with self._send_lock:
            if self.is_connected and not self._queue:
                try:
                    await self._transport.send(line)  # type: ignore[union-attr]
                    return
                except TransportError as e:
                    logger.warning(f"Send failed, queueing: {e}")
            self._queue.append(line)

    async def connection_loop(self) -> None:
        """Connect, relay inbound frames, reconnect on loss."""
        while True:
            url = self.config.ws_url
            logger.info(f"Connecting to {url}...")
            transport = self._transport_factory(self.config)

            try:
                await transport.open()
            except TransportError as e:
                logger.error(f"WebSocket error: {e}")
                await transport.close()
            else:
                self._transport = transport
                logger.info("Connected to Anode MCP Server")
                try:
                    await self._flush_queue(transport)
                except TransportError as e:
                    # Unsent lines stay queued for the next connection
                    logger.warning(f"Flushing queued lines failed: {e}")

                async for frame in transport.frames():
                    self._write(frame)

                logger.info(f"Disconnected: {transport.close_reason}")
                self._transport = None
                await transport.close()

            if not self.config.auto_reconnect:
                self._exit_code = 1
                return
            await asyncio.sleep(self.config.reconnect_interval)

    async def _flush_queue(self, transport: ClientTransport) -> None:
        async with self._send_lock:
            while self._queue:
                await transport.send(self._queue[0])
                self._queue.popleft()

    async def _stdin_loop(self) -> None:
        lines: asyncio.Queue[str | None] = asyncio.Queue()
        self._start_stdin_reader(asyncio.get_running_loop(), lines)
        while True:
            line = await lines.get()
            if line is None:
                return  # EOF
            await self.handle_line(line)

    def _start_stdin_reader(
        self, loop: asyncio.AbstractEventLoop, lines: asyncio.Queue[str | None]
    ) -> None:
        """Read stdin on a daemon thread so a blocked readline never holds up exit."""

        def pump() -> None:
            # RuntimeError: loop already closed while we were blocked
            with contextlib.suppress(RuntimeError):
                for line in iter(self._reader.readline, ""):
                    loop.call_soon_threadsafe(lines.put_nowait, line)
                loop.call_soon_threadsafe(lines.put_nowait, None)

        threading.Thread(target=pump, name="anode-mcp-stdin", daemon=True).start()

    def _write(self, frame: str) -> None:
        """Write one inbound frame to stdout."""
        self._writer.write(frame + NEWLINE)
        self._writer.flush()


async def run_bridge(config: ClientConfig) -> int:
    """Run the stdio bridge as main entry point."""
    bridge = StdioBridge(config)
    return await bridge.run()
