"""aiortc implementation of the peer and data channel ports."""
from __future__ import annotations

import asyncio
import logging

from aiortc import RTCDataChannel, RTCPeerConnection, RTCSessionDescription
from aiortc.contrib.media import MediaBlackhole, MediaPlayer, MediaRecorder

from map_console.application.exceptions import MediaAccessError
from map_console.application.ports.peer import OnClose, OnMessage, OnOpen, OnStateChange
from map_console.domain.value_objects.enums import ChannelReadyState

logger = logging.getLogger(__name__)


class AiortcDataChannel:
    def __init__(self, channel: RTCDataChannel) -> None:
        self._channel = channel
        self.label = channel.label

    @property
    def ready_state(self) -> ChannelReadyState:
        return ChannelReadyState(self._channel.readyState)

    def send(self, data: str) -> None:
        self._channel.send(data)

    def close(self) -> None:
        self._channel.close()

    def on_open(self, callback: OnOpen) -> None:
        self._channel.on("open", callback)

    def on_message(self, callback: OnMessage) -> None:
        self._channel.on("message", callback)

    def on_close(self, callback: OnClose) -> None:
        self._channel.on("close", callback)


class AiortcPeer:
    """RTCPeerConnection with one outgoing microphone track and a sink for remote audio."""

    def __init__(
        self,
        pc: RTCPeerConnection,
        microphone: MediaPlayer,
        sink: MediaBlackhole | MediaRecorder,
    ) -> None:
        self._pc = pc
        self._microphone = microphone
        self._sink = sink
        self._sink_task: asyncio.Task[None] | None = None
        self._closed = False
        self._sender = pc.addTrack(microphone.audio)
        pc.on("track", self._handle_track)

    @property
    def connection_state(self) -> str:
        return self._pc.connectionState

    def create_data_channel(self, label: str) -> AiortcDataChannel:
        return AiortcDataChannel(self._pc.createDataChannel(label))

    async def create_offer(self) -> str:
        offer = await self._pc.createOffer()
        await self._pc.setLocalDescription(offer)
        # candidates are gathered during setLocalDescription
        return self._pc.localDescription.sdp

    async def apply_answer(self, sdp: str) -> None:
        await self._pc.setRemoteDescription(RTCSessionDescription(sdp=sdp, type="answer"))

    def on_connection_state_change(self, callback: OnStateChange) -> None:
        def _changed() -> None:
            callback(self._pc.connectionState)

        self._pc.on("connectionstatechange", _changed)

    def set_microphone_enabled(self, enabled: bool) -> None:
        self._sender.replaceTrack(self._microphone.audio if enabled else None)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._microphone.audio is not None:
            self._microphone.audio.stop()
        try:
            await self._sink.stop()
        except Exception:
            logger.exception("Error stopping remote audio sink")
        await self._pc.close()

    def _handle_track(self, track) -> None:
        if track.kind != "audio":
            return
        self._sink.addTrack(track)
        self._sink_task = asyncio.ensure_future(self._sink.start())


class AiortcPeerFactory:
    def __init__(
        self,
        *,
        device: str,
        device_format: str | None = None,
        sink: str | None = None,
        sink_format: str | None = None,
    ) -> None:
        self._device = device
        self._device_format = device_format
        self._sink = sink
        self._sink_format = sink_format

    async def create(self) -> AiortcPeer:
        try:
            microphone = MediaPlayer(self._device, format=self._device_format)
        except Exception as exc:
            raise MediaAccessError(f"Microphone access denied or unavailable: {exc}") from exc
        if microphone.audio is None:
            raise MediaAccessError(f"No audio track on device {self._device!r}")

        if self._sink:
            sink: MediaBlackhole | MediaRecorder = MediaRecorder(self._sink, format=self._sink_format)
        else:
            sink = MediaBlackhole()
        return AiortcPeer(RTCPeerConnection(), microphone, sink)
