"""WebSocket relay transport for pomostr.

[RelayConnection][pomostr.utils.transport.RelayConnection] wraps one aiohttp
WebSocket to one relay. It reports every status transition through an
``on_status(url, status)`` callback instead of being polled, never
reconnects by itself, and never raises for transport failures: a failed
dial or a broken stream is an ``ERROR`` status with a human-readable
reason.

Two usage styles share the same class:

* Pooled: [NostrClient][pomostr.core.client.NostrClient] calls
  [open()][pomostr.utils.transport.RelayConnection.open] and then
  [start()][pomostr.utils.transport.RelayConnection.start], which runs a
  reader task feeding every text frame to a callback.
* Ephemeral: [open_relay()][pomostr.utils.transport.open_relay] is an async
  context manager for short-lived queries that pull frames with
  [receive()][pomostr.utils.transport.RelayConnection.receive]. Its teardown
  never raises.

Examples:
    ```python
    async with open_relay("relay.damus.io", connect_timeout=5.0) as conn:
        if conn.status.is_connected:
            await conn.send(encode_req(sub_id, [flt]))
            raw = await conn.receive()
    ```

See Also:
    [normalize_relay_url()][pomostr.models.relay.normalize_relay_url]:
        Produces the ``url`` every connection is keyed by.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from typing import Final

import aiohttp

from pomostr.models.relay import RelayStatus, normalize_relay_url


DEFAULT_CONNECT_TIMEOUT: Final[float] = 10.0
DEFAULT_HEARTBEAT: Final[float] = 30.0
_WS_CLOSE_TIMEOUT: Final[float] = 5.0

StatusCallback = Callable[[str, RelayStatus], None]
MessageCallback = Callable[[str], None]

logger = logging.getLogger("utils.transport")


def _describe(error: BaseException) -> str:
    text = str(error)
    return f"{type(error).__name__}: {text}" if text else type(error).__name__


class RelayConnection:
    """A single persistent WebSocket to one relay.

    Status moves ``CONNECTING -> CONNECTED -> DISCONNECTED`` or
    ``CONNECTING -> ERROR`` (also ``CONNECTED -> ERROR`` on a broken
    stream). A connection that reached a terminal status is not reused.

    Args:
        url: Relay URL; normalized on construction.
        on_status: Callback receiving ``(url, status)`` on every transition.
        connect_timeout: Seconds allowed for the WebSocket handshake.
        heartbeat: Seconds between WebSocket pings.
        close_timeout: Seconds allowed for the closing handshake.
    """

    def __init__(
        self,
        url: str,
        *,
        on_status: StatusCallback | None = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        heartbeat: float = DEFAULT_HEARTBEAT,
        close_timeout: float = _WS_CLOSE_TIMEOUT,
    ) -> None:
        self.url = normalize_relay_url(url)
        self._on_status = on_status
        self._connect_timeout = connect_timeout
        self._heartbeat = heartbeat
        self._close_timeout = close_timeout
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task[None] | None = None
        self._status = RelayStatus.disconnected()
        self._opened = False
        self._closing = False

    def __repr__(self) -> str:
        return f"RelayConnection(url={self.url!r}, state={self._status.state.value!r})"

    @property
    def status(self) -> RelayStatus:
        return self._status

    @property
    def can_send(self) -> bool:
        return (
            self._ws is not None
            and not self._ws.closed
            and not self._closing
            and self._status.is_connected
        )

    def _report(self, status: RelayStatus) -> None:
        if status == self._status:
            return
        self._status = status
        logger.debug(
            "relay_status url=%s state=%s reason=%s", self.url, status.state, status.reason
        )
        if self._on_status is not None:
            self._on_status(self.url, status)

    async def open(self) -> bool:
        """Dial the relay.

        Returns:
            True once the handshake completed, False if it failed. Failures
            are reported as an ``ERROR`` status, never raised.

        Raises:
            RuntimeError: If the connection was already opened.
            asyncio.CancelledError: If cancelled while dialing.
        """
        if self._opened:
            raise RuntimeError(f"Connection to {self.url} was already opened")
        self._opened = True
        self._report(RelayStatus.connecting())

        session = aiohttp.ClientSession()
        try:
            async with asyncio.timeout(self._connect_timeout):
                ws = await session.ws_connect(self.url, heartbeat=self._heartbeat)
        except asyncio.CancelledError:
            await session.close()
            self._report_terminal(RelayStatus.disconnected())
            raise
        except TimeoutError:
            await session.close()
            logger.debug("ws_connect_timeout url=%s", self.url)
            reason = f"Connection timeout after {self._connect_timeout}s"
            self._report_terminal(RelayStatus.error(reason))
            return False
        except (aiohttp.ClientError, OSError, ValueError) as e:
            await session.close()
            logger.debug("ws_connect_failed url=%s error=%s", self.url, e)
            self._report_terminal(RelayStatus.error(_describe(e)))
            return False

        self._session = session
        self._ws = ws
        if self._closing:
            # close() ran while the handshake was in flight
            await self._teardown()
            return False
        self._report(RelayStatus.connected())
        return True

    async def send(self, message: str) -> bool:
        """Send one text frame; return False if the socket cannot accept writes."""
        if not self.can_send:
            return False
        assert self._ws is not None  # noqa: S101
        try:
            await self._ws.send_str(message)
        except (aiohttp.ClientError, OSError, RuntimeError) as e:
            logger.debug("ws_send_failed url=%s error=%s", self.url, e)
            return False
        return True

    async def receive(self) -> str | None:
        """Return the next text frame, or None once the stream has ended.

        A clean close reports ``DISCONNECTED``; a transport error reports
        ``ERROR``. Binary frames are decoded as UTF-8 where possible and
        skipped otherwise.
        """
        ws = self._ws
        if ws is None:
            return None
        while True:
            try:
                msg = await ws.receive()
            except (aiohttp.ClientError, OSError, RuntimeError) as e:
                self._report_terminal(RelayStatus.error(_describe(e)))
                return None

            if msg.type == aiohttp.WSMsgType.TEXT:
                return msg.data
            if msg.type == aiohttp.WSMsgType.BINARY:
                try:
                    return msg.data.decode("utf-8")
                except UnicodeDecodeError:
                    logger.debug("ws_binary_frame_skipped url=%s", self.url)
                    continue
            if msg.type == aiohttp.WSMsgType.ERROR:
                self._report_terminal(RelayStatus.error(_describe(ws.exception() or msg.data)))
                return None
            # CLOSE, CLOSING, CLOSED -> connection terminated
            self._report_terminal(RelayStatus.disconnected())
            return None

    def _report_terminal(self, status: RelayStatus) -> None:
        if not self._closing and self._status.is_active:
            self._report(status)

    def start(self, on_message: MessageCallback) -> asyncio.Task[None]:
        """Start the reader task feeding each text frame to *on_message*.

        Frames are delivered in arrival order. The task ends when the
        stream ends or the connection is closed.
        """
        if self._reader is not None:
            raise RuntimeError(f"Reader for {self.url} already started")

        async def _read() -> None:
            while (raw := await self.receive()) is not None:
                on_message(raw)

        self._reader = asyncio.create_task(_read(), name=f"relay-reader:{self.url}")
        return self._reader

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the connection. Idempotent and best-effort; never raises.

        Reports ``DISCONNECTED`` unless the connection already reached a
        terminal status.
        """
        if self._closing:
            return
        self._closing = True
        was_active = self._status.is_active

        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task() and not reader.done():
            reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)

        await self._teardown(code, reason)
        if was_active:
            self._report(RelayStatus.disconnected())

    async def _teardown(self, code: int = 1000, reason: str = "") -> None:
        ws, self._ws = self._ws, None
        session, self._session = self._session, None
        # aiohttp can raise ClientError, ServerDisconnectedError, etc. during close
        if ws is not None:
            with contextlib.suppress(Exception):
                await asyncio.wait_for(
                    ws.close(code=code, message=reason.encode("utf-8")),
                    timeout=self._close_timeout,
                )
        if session is not None:
            with contextlib.suppress(Exception):
                await asyncio.wait_for(session.close(), timeout=self._close_timeout)


@contextlib.asynccontextmanager
async def open_relay(
    url: str,
    *,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    heartbeat: float = DEFAULT_HEARTBEAT,
    on_status: StatusCallback | None = None,
) -> AsyncIterator[RelayConnection]:
    """Open a dedicated short-lived connection.

    The connection is yielded even when the dial failed; check
    ``conn.status`` (``ERROR`` carries the reason). Teardown never raises.
    """
    conn = RelayConnection(
        url, on_status=on_status, connect_timeout=connect_timeout, heartbeat=heartbeat
    )
    try:
        await conn.open()
        yield conn
    finally:
        await conn.close()
