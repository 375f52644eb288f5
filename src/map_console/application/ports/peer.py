"""Ports for the WebRTC peer endpoint and its data channel."""
from __future__ import annotations

from typing import Callable, Protocol

from map_console.domain.value_objects.enums import ChannelReadyState

OnOpen = Callable[[], None]
OnMessage = Callable[[str], None]
OnClose = Callable[[], None]
OnStateChange = Callable[[str], None]


class DataChannel(Protocol):
    label: str

    @property
    def ready_state(self) -> ChannelReadyState: ...

    def send(self, data: str) -> None: ...

    def close(self) -> None: ...

    def on_open(self, callback: OnOpen) -> None: ...

    def on_message(self, callback: OnMessage) -> None: ...

    def on_close(self, callback: OnClose) -> None: ...


class PeerConnection(Protocol):
    @property
    def connection_state(self) -> str: ...

    def create_data_channel(self, label: str) -> DataChannel: ...

    async def create_offer(self) -> str:
        """Create the offer, apply it locally and return its SDP."""
        ...

    async def apply_answer(self, sdp: str) -> None: ...

    def on_connection_state_change(self, callback: OnStateChange) -> None: ...

    def set_microphone_enabled(self, enabled: bool) -> None: ...

    async def close(self) -> None:
        """Stop local tracks and close the connection. Safe to call twice."""
        ...


class PeerFactory(Protocol):
    async def create(self) -> PeerConnection:
        """Acquire the microphone and build a peer around it.

        Raises MediaAccessError when the microphone cannot be opened.
        """
        ...
