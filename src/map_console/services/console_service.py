"""The realtime console: one session, its channel, transcript and map feed."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from map_console.application.dto.views import (
    logged_event_view,
    session_view,
    snapshot_view,
    transcript_entry_view,
)
from map_console.application.exceptions import (
    AppError,
    ChannelStateError,
    ConflictError,
    CredentialError,
    MediaAccessError,
    NegotiationError,
    SessionTimeoutError,
    ValidationError,
)
from map_console.application.ports.clock import Clock
from map_console.application.ports.credentials import CredentialProvider
from map_console.application.ports.peer import PeerFactory
from map_console.application.ports.signaling import SignalingClient
from map_console.application.ports.updates import UpdatePublisher
from map_console.domain.entities.logged_event import LoggedEvent
from map_console.domain.entities.session import Session
from map_console.domain.entities.snapshot import Snapshot
from map_console.domain.entities.transcript import TranscriptEntry
from map_console.domain.value_objects.enums import SessionState
from map_console.domain.value_objects.geo import MapView
from map_console.infrastructure.realtime.channel import EventChannelCoordinator
from map_console.infrastructure.realtime.protocol import (
    OutboundEvent,
    response_request,
    snapshot_message,
    text_message,
)
from map_console.services.signaling_service import close_peer, negotiate
from map_console.services.snapshot_capturer import SnapshotCapturer
from map_console.services.transcript_reconciler import TranscriptReconciler

logger = logging.getLogger(__name__)

TERMINAL_CONNECTION_STATES = frozenset({"failed", "closed"})

_FAILURE_STATUS: dict[type[AppError], str] = {
    CredentialError: "Could not obtain a realtime credential.",
    MediaAccessError: "Microphone access denied or unavailable.",
    NegotiationError: "Realtime service rejected the connection.",
    SessionTimeoutError: "Realtime handshake timed out.",
}


class RealtimeConsole:
    """Owns the single Session and wires channel, transcript and snapshots together."""

    def __init__(
        self,
        *,
        credentials: CredentialProvider,
        peer_factory: PeerFactory,
        signaling: SignalingClient,
        capturer: SnapshotCapturer,
        clock: Clock,
        publisher: UpdatePublisher | None = None,
        default_model: str,
        handshake_timeout: float = 10.0,
        log_limit: int = 500,
        warn_threshold: int = 100,
    ) -> None:
        self._credentials = credentials
        self._peer_factory = peer_factory
        self._signaling = signaling
        self._clock = clock
        self._publisher = publisher
        self._default_model = default_model
        self._handshake_timeout = handshake_timeout
        self._log_limit = log_limit
        self._warn_threshold = warn_threshold
        self._session: Session | None = None
        self._coordinator: EventChannelCoordinator | None = None
        self._stop_task: asyncio.Task[None] | None = None
        self.microphone_enabled = True
        self.capturer = capturer
        self.transcript = TranscriptReconciler(clock)
        self.transcript.on_change(self._handle_transcript)
        capturer.on_snapshot(self._forward_snapshot)

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def coordinator(self) -> EventChannelCoordinator | None:
        return self._coordinator

    async def start_session(self) -> Session:
        if self._session is not None and self._session.is_live:
            raise ConflictError("A realtime session is already running.")

        session = Session(created_at=self._clock.now())
        coordinator = EventChannelCoordinator(
            self._clock,
            log_limit=self._log_limit,
            warn_threshold=self._warn_threshold,
        )
        coordinator.on_message(self.transcript.handle)
        coordinator.on_open(lambda: self._handle_channel_open(session))
        coordinator.on_logged(self._handle_logged)
        coordinator.on_remote_close(lambda: self._handle_channel_closed(session))
        self._session = session
        self._coordinator = coordinator
        self.microphone_enabled = True
        session.state = SessionState.NEGOTIATING
        self._set_status(session, "Requesting realtime session…")

        try:
            credential = await self._credentials.fetch()
            if session.state == SessionState.CLOSED:
                return session
            session.credential = credential.value
            session.model = credential.model or self._default_model
            self._set_status(session, "Negotiating realtime connection…")
            handle = await negotiate(
                session,
                credential,
                peer_factory=self._peer_factory,
                signaling=self._signaling,
                coordinator=coordinator,
                model=session.model,
                timeout=self._handshake_timeout,
            )
        except Exception as exc:
            if session.state == SessionState.CLOSED:
                logger.info("Handshake abandoned; session was stopped")
                return session
            if isinstance(exc, AppError):
                error = exc
            else:
                error = NegotiationError(str(exc) or exc.__class__.__name__)
            await self._abort(session, coordinator, error)
            if error is exc:
                raise
            raise error from exc

        if session.state == SessionState.CLOSED:
            return session

        handle.peer.on_connection_state_change(
            lambda state: self._handle_connection_state(session, state)
        )
        if session.state == SessionState.NEGOTIATING:
            self._set_status(session, "Realtime session ready.")
        return session

    async def stop_session(self) -> None:
        """Tear everything down. Safe at any point, including mid-handshake."""
        self.capturer.stop()
        if self._coordinator is not None:
            self._coordinator.close()

        session = self._session
        if session is None:
            return
        peer, session.peer, session.channel = session.peer, None, None
        if peer is not None:
            await close_peer(peer)
        if session.state != SessionState.ERROR and session.state != SessionState.CLOSED:
            session.state = SessionState.CLOSED
            self._set_status(session, "Session closed.")

    async def aclose(self) -> None:
        await self.stop_session()
        if self._stop_task is not None:
            await asyncio.gather(self._stop_task, return_exceptions=True)

    def send_event(self, event: OutboundEvent | dict[str, Any]) -> str:
        coordinator = self._live_coordinator()
        return coordinator.send(event)

    def send_text_message(self, text: str) -> list[str]:
        """Show the message locally, then add it to the conversation and ask for a reply."""
        text = (text or "").strip()
        if not text:
            raise ValidationError("Message text is required.")
        coordinator = self._live_coordinator()
        self.transcript.add_local_user_message(text)
        return [
            coordinator.send(text_message(text)),
            coordinator.send(response_request()),
        ]

    def request_response(self) -> str:
        return self.send_event(response_request())

    def set_microphone_enabled(self, enabled: bool) -> None:
        session = self._session
        if session is None or session.peer is None:
            raise ChannelStateError("No active realtime session.")
        session.peer.set_microphone_enabled(enabled)
        self.microphone_enabled = enabled
        logger.info("Microphone %s", "enabled" if enabled else "muted")

    async def capture_snapshot(self) -> Snapshot | None:
        return await self.capturer.capture_once()

    def update_view(self, view: MapView) -> None:
        self.capturer.update_view(view)

    def start_snapshots(self) -> None:
        self.capturer.start()

    def stop_snapshots(self) -> None:
        self.capturer.stop()

    def state(self) -> dict[str, Any]:
        now = self._clock.now()
        coordinator = self._coordinator
        return {
            "session": session_view(self._session),
            "microphone_enabled": self.microphone_enabled,
            "pending_events": coordinator.pending_count if coordinator else 0,
            "transcript": [transcript_entry_view(e) for e in self.transcript.entries],
            "events": [logged_event_view(e) for e in coordinator.event_log] if coordinator else [],
            "capture": {
                "status": self.capturer.status.value,
                "message": self.capturer.status_message(now),
                "error": self.capturer.error_message or None,
                "strategy": self.capturer.strategy.value,
                "view": {
                    "center": {
                        "lat": self.capturer.view.center.lat,
                        "lng": self.capturer.view.center.lng,
                    },
                    "zoom": self.capturer.view.zoom,
                },
            },
            "snapshots": [snapshot_view(s, now) for s in self.capturer.history],
        }

    def _live_coordinator(self) -> EventChannelCoordinator:
        session = self._session
        coordinator = self._coordinator
        if session is None or not session.is_live or coordinator is None or coordinator.closed:
            logger.warning("Dropped client event: no active realtime session")
            raise ChannelStateError("No active realtime session.")
        return coordinator

    async def _abort(
        self,
        session: Session,
        coordinator: EventChannelCoordinator,
        exc: AppError,
    ) -> None:
        logger.error("Failed to start realtime session: %s", exc.detail)
        coordinator.close()
        peer, session.peer, session.channel = session.peer, None, None
        if peer is not None:
            await close_peer(peer)
        session.state = SessionState.ERROR
        session.error = exc.detail
        status = next(
            (text for kind, text in _FAILURE_STATUS.items() if isinstance(exc, kind)),
            "Failed to connect to realtime service.",
        )
        self._set_status(session, status)

    def _handle_channel_open(self, session: Session) -> None:
        if session is not self._session or session.state != SessionState.NEGOTIATING:
            return
        session.state = SessionState.ACTIVE
        self._set_status(session, "Connected. You can start chatting.")
        self.capturer.start()

    def _handle_connection_state(self, session: Session, state: str) -> None:
        if session is not self._session:
            return
        self._set_status(session, f"Connection state: {state}")
        if state in TERMINAL_CONNECTION_STATES and session.is_live:
            logger.warning("Peer connection %s; stopping session", state)
            self._schedule_stop()

    def _handle_channel_closed(self, session: Session) -> None:
        if session is not self._session or not session.is_live:
            return
        logger.warning("Data channel closed by remote; stopping session")
        self.capturer.stop()
        self._schedule_stop()

    def _schedule_stop(self) -> None:
        if self._stop_task is None or self._stop_task.done():
            self._stop_task = asyncio.ensure_future(self.stop_session())

    def _forward_snapshot(self, snapshot: Snapshot) -> None:
        self._publish("snapshot.captured", snapshot_view(snapshot, self._clock.now()))
        session = self._session
        coordinator = self._coordinator
        if session is None or session.state != SessionState.ACTIVE:
            return
        if coordinator is None or not coordinator.is_open:
            return
        logger.info("Sending map snapshot to conversation context")
        coordinator.send(snapshot_message(snapshot))

    def _handle_transcript(self, entries: list[TranscriptEntry]) -> None:
        self._publish("transcript.updated", {"entries": [transcript_entry_view(e) for e in entries]})

    def _handle_logged(self, event: LoggedEvent) -> None:
        self._publish("event.logged", logged_event_view(event))

    def _set_status(self, session: Session, status: str) -> None:
        session.status = status
        logger.info("Session %s: %s", session.state.value, status)
        if session is self._session:
            self._publish("status.changed", session_view(session))

    def _publish(self, event_type: str, data: dict[str, Any]) -> None:
        if self._publisher is None:
            return
        try:
            self._publisher.publish(event_type, data)
        except Exception:
            logger.exception("Failed to publish %s update", event_type)
