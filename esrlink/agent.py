"""
SigningAgent - ties resolving, signing, delivery and session persistence
together behind two entry points.
"""
import asyncio
import concurrent.futures
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from .callback import CallbackDispatcher
from .chain.client import ChainClient
from .channel.listener import ChannelListener
from .channel.sealed_message import SealedMessage
from .config import AgentSettings
from .exceptions import EsrLinkError, MessageDecodeError, NetworkError, Stage
from .identity.types import Identity
from .models import Callback, SessionRecord
from .request.codec import Codec, DEFAULT_CODEC
from .request.resolver import RequestResolver, Resolution
from .session import SessionStore, default_session_store, load_session, save_session
from .signer import RequestSigner, SignatureProvider

logger = logging.getLogger(__name__)

ListenerFactory = Callable[[str, str], ChannelListener]
MessageHook = Callable[[SealedMessage], Union[None, Awaitable[None]]]


@dataclass
class PipelineResult:
    """
    Outcome of an agent entry point.

    Attributes:
        ok: True when every stage succeeded
        stage: Stage that failed, or ``Stage.COMPLETE``
        error: The error that stopped or degraded the run
        callback: Callback built by the signer, if signing happened
        session: Session record that was saved or restored
        channel: Channel id the listener was armed on
        dropped: True when the trigger was ignored because a run was in flight
    """
    ok: bool
    stage: Stage = Stage.COMPLETE
    error: Optional[Exception] = None
    callback: Optional[Callback] = None
    session: Optional[SessionRecord] = None
    channel: Optional[str] = None
    dropped: bool = False


class SigningAgent:
    """
    Signing agent for a single identity.

    ``handle_incoming_request`` is debounced: triggers within
    ``debounce_seconds`` of each other collapse into one run with the latest
    URI, which starts after a further ``settle_seconds``. Only one run is in
    flight at a time; triggers arriving during a run are dropped. Entry
    points never raise, they report through ``PipelineResult``.

    Args:
        identity: Account and key to sign with
        settings: Agent settings, defaults to ``AgentSettings()``
        chain: Chain client, built from the settings on first use if omitted
        store: Session store, defaults to ``default_session_store(settings)``
        provider: Signature provider, defaults to the identity's key
        dispatcher: Callback dispatcher
        listener_factory: Builds a listener from (callback_url, service)
        on_message: Hook receiving decoded sealed messages
        codec: Compression and text codec for request URIs
    """

    def __init__(
        self,
        identity: Identity,
        settings: Optional[AgentSettings] = None,
        chain: Optional[ChainClient] = None,
        store: Optional[SessionStore] = None,
        provider: Optional[SignatureProvider] = None,
        dispatcher: Optional[CallbackDispatcher] = None,
        listener_factory: Optional[ListenerFactory] = None,
        on_message: Optional[MessageHook] = None,
        codec: Codec = DEFAULT_CODEC
    ):
        self.identity = identity
        self.settings = settings or AgentSettings()
        self.chain = chain
        self.store = store if store is not None else default_session_store(self.settings)
        self.signer = RequestSigner(
            identity, provider, link_name=self.settings.link_name, scheme=self.settings.scheme
        )
        self.dispatcher = dispatcher or CallbackDispatcher(timeout=self.settings.request_timeout)
        self.codec = codec
        self.on_message = on_message
        self._listener_factory = listener_factory or ChannelListener
        self._resolver: Optional[RequestResolver] = None

        self.listener: Optional[ChannelListener] = None
        self._running = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._pending_uri: Optional[str] = None
        self._pending_result: Optional[asyncio.Future] = None
        self._pipeline_task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def resolver(self) -> RequestResolver:
        if self._resolver is None:
            if self.chain is None:
                self.chain = ChainClient(
                    self.settings.chain_url,
                    retry_count=self.settings.retry_count,
                    timeout=self.settings.request_timeout,
                )
            self._resolver = RequestResolver(
                self.chain,
                self.identity,
                codec=self.codec,
                scheme=self.settings.scheme,
                expire_seconds=self.settings.expire_seconds,
            )
        return self._resolver

    @property
    def running(self) -> bool:
        return self._running

    async def initialize(self) -> PipelineResult:
        """
        Restore the saved session and arm the channel listener for it.

        The saved request is re-resolved only to recover its callback URL;
        nothing is signed. Binds the agent to the running event loop.
        """
        self._loop = asyncio.get_running_loop()
        stage = Stage.RESOLVE
        try:
            resolver = self.resolver
            stage = Stage.LOAD_SESSION
            record = await asyncio.to_thread(load_session, self.store, self.settings.session_key)
            if record is None:
                logger.info("No saved session, waiting for a new request")
                return PipelineResult(ok=True)

            logger.info(f"Restoring session for {record.actor}@{record.permission}")
            await asyncio.sleep(self.settings.settle_seconds)
            stage = Stage.RESOLVE
            resolution = await asyncio.to_thread(resolver.resolve, record.payload)
            stage = Stage.CHANNEL
            listener = self._arm_listener(resolution.callback_url)
            return PipelineResult(ok=True, session=record, channel=listener.channel)
        except Exception as e:
            return self._failed(stage, e, "Session restore failed")

    def handle_incoming_request(
        self, uri: str
    ) -> Union[asyncio.Future, concurrent.futures.Future]:
        """
        Schedule a signing run for ``uri``.

        On the event loop thread an ``asyncio.Future`` is returned. From any
        other thread the trigger is handed to the loop the agent is bound to
        (by ``initialize`` or an earlier on-loop call) and a
        ``concurrent.futures.Future`` is returned; without a bound loop that
        future already holds a dropped result.

        Returns:
            Future resolving to the PipelineResult of the run this trigger
            joined, or a dropped result if a run is already in flight
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return self._submit_threadsafe(uri)
        self._loop = loop
        if self._running:
            logger.warning("Signing already in progress, dropping request")
            future = loop.create_future()
            future.set_result(PipelineResult(ok=False, stage=Stage.COMPLETE, dropped=True))
            return future

        self._pending_uri = uri
        if self._timer is not None:
            self._timer.cancel()
        if self._pending_result is None:
            self._pending_result = loop.create_future()
        self._timer = loop.call_later(self.settings.debounce_seconds, self._fire)
        return self._pending_result

    def _submit_threadsafe(self, uri: str) -> concurrent.futures.Future:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.error("Agent is not bound to a running event loop, dropping request")
            future: concurrent.futures.Future = concurrent.futures.Future()
            future.set_result(PipelineResult(
                ok=False, stage=Stage.COMPLETE, dropped=True,
                error=RuntimeError("No event loop bound to the agent")
            ))
            return future

        async def _join() -> PipelineResult:
            return await self.handle_incoming_request(uri)

        return asyncio.run_coroutine_threadsafe(_join(), loop)

    def _fire(self) -> None:
        uri, future = self._pending_uri, self._pending_result
        self._timer = None
        self._pending_uri = None
        self._pending_result = None
        self._running = True
        self._pipeline_task = asyncio.get_running_loop().create_task(self._run_pipeline(uri))

        def _done(task: asyncio.Task) -> None:
            if future.done():
                return
            if task.cancelled():
                future.set_result(PipelineResult(ok=False, stage=Stage.COMPLETE, dropped=True))
            else:
                future.set_result(task.result())

        self._pipeline_task.add_done_callback(_done)

    async def _run_pipeline(self, uri: str) -> PipelineResult:
        stage = Stage.RESOLVE
        try:
            await asyncio.sleep(self.settings.settle_seconds)
            resolution: Resolution = await asyncio.to_thread(self.resolver.resolve, uri)

            stage = Stage.SIGN
            callback = await asyncio.to_thread(self.signer.sign, resolution)

            stage = Stage.DELIVER
            delivery_error = None
            try:
                await asyncio.to_thread(self.dispatcher.deliver, callback)
            except NetworkError as e:
                logger.error(f"Callback delivery failed, saving session anyway: {e}")
                delivery_error = e

            stage = Stage.SAVE_SESSION
            signer = resolution.resolved.signer
            record = SessionRecord(
                network=resolution.resolved.chain_id,
                actor=signer["actor"],
                permission=signer["permission"],
                payload=resolution.request.encode(),
            )
            await asyncio.to_thread(save_session, self.store, record, self.settings.session_key)

            channel = None
            if self.settings.rearm_after_sign and resolution.callback_url:
                stage = Stage.CHANNEL
                channel = self._arm_listener(resolution.callback_url).channel

            if delivery_error is not None:
                return PipelineResult(
                    ok=False, stage=Stage.DELIVER, error=delivery_error,
                    callback=callback, session=record, channel=channel
                )
            logger.info(f"Request {callback.payload['tx']} completed")
            return PipelineResult(ok=True, callback=callback, session=record, channel=channel)
        except Exception as e:
            return self._failed(stage, e, "Signing request failed")
        finally:
            self._running = False

    def _failed(self, stage: Stage, error: Exception, context: str) -> PipelineResult:
        if isinstance(error, EsrLinkError):
            stage = error.stage or stage
            logger.error(f"{context} at {stage.value}: {error}")
        else:
            logger.exception(f"{context} at {stage.value}: {error}")
        return PipelineResult(ok=False, stage=stage, error=error)

    def _arm_listener(self, callback_url: str) -> ChannelListener:
        """Replace the active listener with one on the callback's channel."""
        listener = self._listener_factory(callback_url, self.settings.channel_service)
        listener.on("message", self.handle_channel_message)
        listener.on("error", lambda error: logger.warning(f"Channel error: {error}"))
        listener.on("connect", lambda: logger.info(f"Channel {listener.channel} connected"))
        listener.on("disconnect", lambda: logger.info(f"Channel {listener.channel} disconnected"))

        previous, self.listener = self.listener, listener
        if previous is not None and self.settings.close_replaced_listener:
            asyncio.get_running_loop().create_task(previous.stop())
        listener.start()
        logger.info(f"Armed listener on channel {listener.channel}")
        return listener

    async def handle_channel_message(self, message: Union[SealedMessage, bytes]) -> PipelineResult:
        """
        Handle a message from the push channel.

        The envelope is decoded and passed to ``on_message``; the ciphertext
        is not decrypted.
        """
        try:
            if not isinstance(message, SealedMessage):
                message = SealedMessage.decode(message)
            logger.info(f"Received sealed message from {message.sender}")
            if self.on_message is not None:
                result: Any = self.on_message(message)
                if asyncio.iscoroutine(result):
                    await result
            return PipelineResult(ok=True, stage=Stage.COMPLETE)
        except MessageDecodeError as e:
            return self._failed(Stage.CHANNEL, e, "Channel message rejected")
        except Exception as e:
            return self._failed(Stage.CHANNEL, e, "Channel message handler failed")

    async def close(self) -> None:
        """Drop pending triggers, wait for a running pipeline and stop the listener."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._pending_result is not None and not self._pending_result.done():
            self._pending_result.set_result(PipelineResult(ok=False, stage=Stage.COMPLETE, dropped=True))
        self._pending_result = None
        self._pending_uri = None
        if self._pipeline_task is not None and not self._pipeline_task.done():
            await asyncio.wait([self._pipeline_task])
        if self.listener is not None:
            await self.listener.stop()
            self.listener = None
