"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from map_console.application.exceptions import CredentialError, NegotiationError
from map_console.application.ports.credentials import EphemeralCredential
from map_console.application.ports.imagery import CapturedImage
from map_console.domain.value_objects.enums import CaptureStrategy, ChannelReadyState
from map_console.domain.value_objects.geo import LatLng, MapView
from map_console.services.console_service import RealtimeConsole
from map_console.services.snapshot_capturer import SnapshotCapturer

DEFAULT_VIEW = MapView(center=LatLng(lat=40.758, lng=-73.9855), zoom=13)


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@dataclass
class FakeClock:
    current: datetime = field(default_factory=lambda: datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


@dataclass
class FakeDataChannel:
    label: str = "oai-events"
    state: ChannelReadyState = ChannelReadyState.CONNECTING
    sent: list[str] = field(default_factory=list)
    close_calls: int = 0
    fail_sends: int = 0
    _on_open: list[Callable[[], None]] = field(default_factory=list)
    _on_message: list[Callable[[str], None]] = field(default_factory=list)
    _on_close: list[Callable[[], None]] = field(default_factory=list)

    @property
    def ready_state(self) -> ChannelReadyState:
        return self.state

    def send(self, data: str) -> None:
        if self.state != ChannelReadyState.OPEN:
            raise RuntimeError(f"send on {self.state} channel")
        if self.fail_sends:
            self.fail_sends -= 1
            raise RuntimeError("transient send failure")
        self.sent.append(data)

    def close(self) -> None:
        self.close_calls += 1
        self.state = ChannelReadyState.CLOSED

    def on_open(self, callback: Callable[[], None]) -> None:
        self._on_open.append(callback)

    def on_message(self, callback: Callable[[str], None]) -> None:
        self._on_message.append(callback)

    def on_close(self, callback: Callable[[], None]) -> None:
        self._on_close.append(callback)

    # test drivers

    def open(self) -> None:
        self.state = ChannelReadyState.OPEN
        for callback in list(self._on_open):
            callback()

    def receive(self, payload: dict[str, Any] | str) -> None:
        raw = payload if isinstance(payload, str) else json.dumps(payload)
        for callback in list(self._on_message):
            callback(raw)

    def remote_close(self) -> None:
        self.state = ChannelReadyState.CLOSED
        for callback in list(self._on_close):
            callback()

    @property
    def sent_events(self) -> list[dict[str, Any]]:
        return [json.loads(raw) for raw in self.sent]


@dataclass
class FakePeer:
    offer: str = "v=0\r\no=- offer"
    channel: FakeDataChannel | None = None
    answer: str | None = None
    connection_state: str = "new"
    microphone_enabled: bool = True
    close_calls: int = 0
    _state_callbacks: list[Callable[[str], None]] = field(default_factory=list)

    def create_data_channel(self, label: str) -> FakeDataChannel:
        self.channel = FakeDataChannel(label=label)
        return self.channel

    async def create_offer(self) -> str:
        return self.offer

    async def apply_answer(self, sdp: str) -> None:
        if self.close_calls:
            raise RuntimeError("peer connection is closed")
        self.answer = sdp

    def on_connection_state_change(self, callback: Callable[[str], None]) -> None:
        self._state_callbacks.append(callback)

    def set_microphone_enabled(self, enabled: bool) -> None:
        self.microphone_enabled = enabled

    async def close(self) -> None:
        self.close_calls += 1
        self.connection_state = "closed"

    def change_state(self, state: str) -> None:
        self.connection_state = state
        for callback in list(self._state_callbacks):
            callback(state)


@dataclass
class FakePeerFactory:
    error: Exception | None = None
    peers: list[FakePeer] = field(default_factory=list)

    async def create(self) -> FakePeer:
        if self.error is not None:
            raise self.error
        peer = FakePeer()
        self.peers.append(peer)
        return peer

    @property
    def last(self) -> FakePeer:
        return self.peers[-1]


@dataclass
class FakeCredentialProvider:
    credential: EphemeralCredential = field(
        default_factory=lambda: EphemeralCredential(value="ek_test", model="gpt-realtime")
    )
    error: Exception | None = None
    calls: int = 0

    async def fetch(self) -> EphemeralCredential:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.credential


@dataclass
class FakeSignalingClient:
    answer: str = "v=0\r\no=- answer"
    error: Exception | None = None
    delay: float = 0.0
    calls: list[tuple[str, str, str]] = field(default_factory=list)

    async def exchange(self, offer_sdp: str, credential: str, model: str) -> str:
        self.calls.append((offer_sdp, credential, model))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.answer


@dataclass
class FakeImageSource:
    """Returns `images` in order, repeating the last one."""

    images: list[bytes] = field(default_factory=lambda: [b"png-1"])
    error: Exception | None = None
    delay: float = 0.0
    views: list[MapView] = field(default_factory=list)

    async def fetch(self, view: MapView) -> CapturedImage:
        self.views.append(view)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        index = min(len(self.views), len(self.images)) - 1
        return CapturedImage(content=self.images[index], media_type="image/png")


class CountingImageSource(FakeImageSource):
    """Every fetch yields a fresh payload."""

    async def fetch(self, view: MapView) -> CapturedImage:
        self.views.append(view)
        if self.error is not None:
            raise self.error
        return CapturedImage(content=f"png-{len(self.views)}".encode(), media_type="image/png")


@dataclass
class RecordingPublisher:
    updates: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def publish(self, event_type: str, data: dict[str, Any]) -> None:
        self.updates.append((event_type, data))

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [data for kind, data in self.updates if kind == event_type]


def make_capturer(
    source: FakeImageSource | None = None,
    clock: FakeClock | None = None,
    *,
    strategy: CaptureStrategy = CaptureStrategy.INTERVAL,
    interval: float = 15.0,
    debounce: float = 0.35,
    history_size: int = 12,
    timeout: float = 10.0,
    enabled: bool = True,
) -> SnapshotCapturer:
    return SnapshotCapturer(
        source or FakeImageSource(),
        clock or FakeClock(),
        view=DEFAULT_VIEW,
        strategy=strategy,
        interval=interval,
        debounce=debounce,
        history_size=history_size,
        timeout=timeout,
        enabled=enabled,
    )


@dataclass
class ConsoleRig:
    console: RealtimeConsole
    credentials: FakeCredentialProvider
    peers: FakePeerFactory
    signaling: FakeSignalingClient
    images: FakeImageSource
    publisher: RecordingPublisher
    clock: FakeClock

    @property
    def channel(self) -> FakeDataChannel:
        channel = self.peers.last.channel
        assert channel is not None
        return channel


def make_console(
    *,
    credentials: FakeCredentialProvider | None = None,
    peers: FakePeerFactory | None = None,
    signaling: FakeSignalingClient | None = None,
    images: FakeImageSource | None = None,
    snapshots_enabled: bool = False,
    handshake_timeout: float = 10.0,
) -> ConsoleRig:
    clock = FakeClock()
    credentials = credentials or FakeCredentialProvider()
    peers = peers or FakePeerFactory()
    signaling = signaling or FakeSignalingClient()
    images = images or CountingImageSource()
    publisher = RecordingPublisher()
    console = RealtimeConsole(
        credentials=credentials,
        peer_factory=peers,
        signaling=signaling,
        capturer=make_capturer(images, clock, interval=3600, enabled=snapshots_enabled),
        clock=clock,
        publisher=publisher,
        default_model="gpt-realtime",
        handshake_timeout=handshake_timeout,
    )
    return ConsoleRig(console, credentials, peers, signaling, images, publisher, clock)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rig() -> ConsoleRig:
    return make_console()


def credential_failure() -> CredentialError:
    return CredentialError("Token request failed with status 500")


def rejected_offer() -> NegotiationError:
    return NegotiationError("Realtime API responded with status 400", details="invalid offer")
