"""Scriptable NIP-01 relays served over local ``aiohttp.web`` WebSockets.

A [FakeRelay] stores events, answers REQ with the stored events that match
the first filter, records every frame it receives, and can be told to stay
silent, answer slowly, reject publications, or inject raw frames.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from aiohttp import WSMsgType, web
from aiohttp.test_utils import TestServer

from pomostr.models.event import Event


# Nothing listens on port 1
UNREACHABLE_RELAY = "ws://127.0.0.1:1"


def matches(event: Event, event_filter: dict[str, Any]) -> bool:
    """Evaluate the subset of NIP-01 filter semantics the fakes need."""
    if "kinds" in event_filter and event.kind not in event_filter["kinds"]:
        return False
    if "authors" in event_filter and event.pubkey not in event_filter["authors"]:
        return False
    if "since" in event_filter and event.created_at < event_filter["since"]:
        return False
    if "until" in event_filter and event.created_at > event_filter["until"]:
        return False
    if "search" in event_filter and event_filter["search"].lower() not in event.content.lower():
        return False
    for key, values in event_filter.items():
        if key.startswith("#") and not set(values) & set(event.tag_values(key[1:])):
            return False
    return True


class FakeRelay:
    """One in-process relay.

    Args:
        events: Stored events returned to matching REQs.
        respond: Answer REQ at all (False simulates a hanging relay).
        eose: Send EOSE after stored events.
        delay: Seconds to wait before answering each REQ.
        accept: OK flag for published events; None never answers OK.
        preamble: Raw frames sent before stored events on every REQ.
        filtered: Apply the REQ filter; False sends every stored event.
    """

    def __init__(
        self,
        events: Iterable[Event] = (),
        *,
        respond: bool = True,
        eose: bool = True,
        delay: float = 0.0,
        accept: bool | None = True,
        ok_message: str = "",
        preamble: Iterable[str] = (),
        filtered: bool = True,
    ) -> None:
        self.events = list(events)
        self.respond = respond
        self.eose = eose
        self.delay = delay
        self.accept = accept
        self.ok_message = ok_message
        self.preamble = list(preamble)
        self.filtered = filtered
        self.received: list[list[Any]] = []
        self.connections = 0
        self.url = ""
        self._sockets: set[web.WebSocketResponse] = set()
        self._server: TestServer | None = None

    def frames(self, kind: str) -> list[list[Any]]:
        """Received frames whose discriminator is *kind*."""
        return [frame for frame in self.received if frame and frame[0] == kind]

    @property
    def open_sockets(self) -> int:
        return len(self._sockets)

    async def start(self) -> FakeRelay:
        app = web.Application()
        app.router.add_get("/", self._handle)
        self._server = TestServer(app)
        await self._server.start_server()
        self.url = f"ws://{self._server.host}:{self._server.port}"
        return self

    async def stop(self) -> None:
        await self._close_sockets()
        if self._server is not None:
            await self._server.close()
            self._server = None

    async def drop_all(self) -> None:
        """Close every client socket from the relay side."""
        await self._wait_for_socket()
        await self._close_sockets()

    async def _close_sockets(self) -> None:
        for ws in list(self._sockets):
            with contextlib.suppress(Exception):
                await ws.close()

    async def push(self, sub_id: str, event: Event) -> None:
        """Send a live EVENT to every connected client."""
        await self.send_raw(json.dumps(["EVENT", sub_id, event.to_dict()]))

    async def send_raw(self, raw: str) -> None:
        await self._wait_for_socket()
        for ws in list(self._sockets):
            await ws.send_str(raw)

    async def _wait_for_socket(self) -> None:
        # A client can finish its handshake before the handler registers the socket
        async with asyncio.timeout(2.0):
            while not self._sockets:
                await asyncio.sleep(0.01)

    async def wait_for_frames(self, kind: str, count: int = 1, timeout: float = 2.0) -> None:
        async with asyncio.timeout(timeout):
            while len(self.frames(kind)) < count:
                await asyncio.sleep(0.01)

    async def _handle(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        self.connections += 1
        await ws.prepare(request)
        self._sockets.add(ws)
        try:
            async for msg in ws:
                if msg.type != WSMsgType.TEXT:
                    continue
                frame = json.loads(msg.data)
                self.received.append(frame)
                await self._answer(ws, frame)
        finally:
            self._sockets.discard(ws)
        return ws

    async def _answer(self, ws: web.WebSocketResponse, frame: list[Any]) -> None:
        match frame:
            case ["REQ", str(sub_id), dict(event_filter), *_]:
                if not self.respond:
                    return
                if self.delay:
                    await asyncio.sleep(self.delay)
                for raw in self.preamble:
                    await ws.send_str(raw)
                for event in self.events:
                    if not self.filtered or matches(event, event_filter):
                        await ws.send_str(json.dumps(["EVENT", sub_id, event.to_dict()]))
                if self.eose:
                    await ws.send_str(json.dumps(["EOSE", sub_id]))
            case ["EVENT", dict(data)]:
                try:
                    event = Event.from_dict(data)
                except ValueError as e:
                    await ws.send_str(json.dumps(["OK", data.get("id"), False, f"invalid: {e}"]))
                    return
                self.events.append(event)
                if self.accept is not None:
                    await ws.send_str(json.dumps(["OK", data["id"], self.accept, self.ok_message]))
            case _:
                pass


RelayFactory = Callable[..., Awaitable[FakeRelay]]
