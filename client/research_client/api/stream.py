"""Live event subscriptions for a single research run."""

from __future__ import annotations

import logging
from typing import AsyncIterator, Dict, Optional, Protocol, Union
from urllib.parse import quote, urlencode

import websockets
from websockets.exceptions import ConnectionClosedError, WebSocketException

from research_client.core.errors import TransportError
from research_client.core.settings import Settings
from research_client.models.events import RunEvent
from research_client.utils.json_parser import decode_json

logger = logging.getLogger(__name__)

Frame = Union[str, bytes]


class Subscription(Protocol):
    """Source of raw frames for one run.

    ``frames()`` ends when the transport closes cleanly and raises
    TransportError on a fault. ``close()`` may be called at any time.
    """

    def frames(self) -> AsyncIterator[Frame]: ...

    async def close(self) -> None: ...


def parse_frame(frame: Frame) -> Optional[RunEvent]:
    """Decode one ``{"event": ..., "data": ...}`` frame, or ``None`` if malformed."""

    return RunEvent.from_message(decode_json(frame))


def stream_url(settings: Settings, run_id: str, query: str) -> str:
    params = urlencode({"query": query, "user_id": settings.user_id})
    return f"{settings.stream_base}/ws/runs/{quote(run_id, safe='')}?{params}"


class WebSocketSubscription:
    """Subscription backed by a WebSocket connection opened on first iteration."""

    def __init__(self, url: str, token: Optional[str] = None) -> None:
        self.url = url
        self._headers: Dict[str, str] = {"Authorization": f"Bearer {token}"} if token else {}
        self._connection = None
        self._closed = False

    @classmethod
    def for_run(
        cls, settings: Settings, run_id: str, query: str, token: Optional[str] = None
    ) -> "WebSocketSubscription":
        return cls(stream_url(settings, run_id, query), token=token)

    async def frames(self) -> AsyncIterator[Frame]:
        if self._closed:
            return
        try:
            # no handshake timeout or keepalive pings: a silent stream stays open
            self._connection = await websockets.connect(
                self.url,
                additional_headers=self._headers,
                open_timeout=None,
                ping_interval=None,
            )
        except (OSError, WebSocketException) as exc:
            raise TransportError(f"Could not open event stream: {exc}") from exc
        logger.debug("Event stream open: %s", self.url)
        try:
            if self._closed:
                return
            async for frame in self._connection:
                yield frame
        except ConnectionClosedError as exc:
            raise TransportError(f"Event stream dropped: {exc}") from exc
        finally:
            await self._connection.close()

    async def close(self) -> None:
        self._closed = True
        if self._connection is not None:
            await self._connection.close()
