"""
ChannelListener - push channel subscription for a linked session.
"""
import asyncio
import logging
import urllib.parse
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..exceptions import MessageDecodeError
from ._rate_limited_log import rate_limited_log
from .sealed_message import SealedMessage

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_SERVICE = "https://cb.anchor.link"
CHANNEL_MARKER = "link/"
EVENTS = ("connect", "disconnect", "error", "message")

Handler = Callable[..., Any]


class ListenerState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def channel_from_url(callback_url: str) -> str:
    """
    Extract the channel id from a callback URL.

    The id is everything after the last ``link/`` marker, e.g.
    ``https://host/link/abcdef`` gives ``abcdef``.

    Raises:
        ValueError: If the URL yields an empty channel id
    """
    channel = callback_url.split(CHANNEL_MARKER)[-1]
    if not channel:
        raise ValueError(f"No channel id in callback URL '{callback_url}'")
    return channel


def channel_service_url(service: str, channel: str) -> str:
    """Build the websocket URL of a channel on the given service."""
    parsed = urllib.parse.urlparse(service)
    scheme = {"https": "wss", "http": "ws"}.get(parsed.scheme, parsed.scheme)
    base = urllib.parse.urlunparse(parsed._replace(scheme=scheme)).rstrip("/")
    return f"{base}/{channel}"


class ChannelListener:
    """
    Listens on a push channel and emits decoded sealed messages.

    Reconnection with backoff is left to ``websockets.connect``; the
    listener only tracks state and dispatches the ``connect``,
    ``disconnect``, ``error`` and ``message`` events. Handlers may be plain
    functions or coroutine functions; their exceptions are logged and never
    stop the listener.

    Args:
        callback_url: Callback URL the channel id is derived from
        service: Channel service base URL
        connect: Factory with the ``websockets.connect`` interface
    """

    def __init__(
        self,
        callback_url: str,
        service: str = DEFAULT_CHANNEL_SERVICE,
        connect: Optional[Callable[..., Any]] = None
    ):
        self.channel = channel_from_url(callback_url)
        self.url = channel_service_url(service, self.channel)
        self._connect = connect or websockets.connect
        self._handlers: Dict[str, List[Handler]] = {event: [] for event in EVENTS}
        self._state = ListenerState.DISCONNECTED
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ListenerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def on(self, event: str, handler: Handler) -> "ChannelListener":
        if event not in self._handlers:
            raise ValueError(f"Unknown event '{event}', expected one of {', '.join(EVENTS)}")
        self._handlers[event].append(handler)
        return self

    def start(self) -> asyncio.Task:
        """Start listening in a background task on the running loop."""
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._state = ListenerState.DISCONNECTED

    async def _run(self) -> None:
        logger.info(f"Listening on channel {self.channel}")
        self._state = ListenerState.CONNECTING
        try:
            async for websocket in self._connect(self.url):
                self._state = ListenerState.CONNECTED
                await self._emit("connect")
                try:
                    async for frame in websocket:
                        await self._handle_frame(frame)
                except ConnectionClosed as e:
                    await self._emit("error", e)
                self._state = ListenerState.DISCONNECTED
                await self._emit("disconnect")
                self._state = ListenerState.CONNECTING
        except (WebSocketException, OSError) as e:
            rate_limited_log(f"Channel {self.channel} failed: {e}", "error", logger_instance=logger)
            await self._emit("error", e)
        finally:
            self._state = ListenerState.DISCONNECTED

    async def _handle_frame(self, frame: Any) -> None:
        try:
            message = SealedMessage.decode(frame)
        except MessageDecodeError as e:
            rate_limited_log(f"Dropping frame on channel {self.channel}: {e}", logger_instance=logger)
            await self._emit("error", e)
            return
        logger.debug(f"Sealed message from {message.sender} (nonce {message.nonce})")
        await self._emit("message", message)

    async def _emit(self, event: str, *args: Any) -> None:
        for handler in list(self._handlers[event]):
            try:
                result = handler(*args)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                rate_limited_log(
                    f"{event} handler failed on channel {self.channel}: {e}", "error",
                    logger_instance=logger
                )
