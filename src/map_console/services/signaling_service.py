from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from map_console.application.exceptions import SessionTimeoutError
from map_console.application.ports.credentials import EphemeralCredential
from map_console.application.ports.peer import DataChannel, PeerConnection, PeerFactory
from map_console.application.ports.signaling import SignalingClient
from map_console.domain.entities.session import Session
from map_console.infrastructure.realtime.channel import EventChannelCoordinator
from map_console.infrastructure.realtime.protocol import DATA_CHANNEL_LABEL

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SessionHandle:
    peer: PeerConnection
    channel: DataChannel
    model: str


async def negotiate(
    session: Session,
    credential: EphemeralCredential,
    *,
    peer_factory: PeerFactory,
    signaling: SignalingClient,
    coordinator: EventChannelCoordinator,
    model: str,
    timeout: float,
) -> SessionHandle:
    """Run the offer/answer handshake once, without retries.

    The peer and channel are stored on `session` as soon as they exist so a
    concurrent stop can tear them down. On any failure the half-built peer
    is closed before the error propagates.
    """
    try:
        return await asyncio.wait_for(
            _negotiate(session, credential, peer_factory, signaling, coordinator, model),
            timeout,
        )
    except asyncio.TimeoutError as exc:
        raise SessionTimeoutError(f"Realtime handshake timed out after {timeout:g}s") from exc


async def _negotiate(
    session: Session,
    credential: EphemeralCredential,
    peer_factory: PeerFactory,
    signaling: SignalingClient,
    coordinator: EventChannelCoordinator,
    model: str,
) -> SessionHandle:
    peer = await peer_factory.create()
    session.peer = peer
    try:
        channel = peer.create_data_channel(DATA_CHANNEL_LABEL)
        coordinator.attach(channel)
        session.channel = channel

        offer_sdp = await peer.create_offer()
        answer_sdp = await signaling.exchange(offer_sdp, credential.value, model)
        await peer.apply_answer(answer_sdp)
    except (Exception, asyncio.CancelledError):
        await close_peer(peer)
        raise

    logger.info("Realtime handshake complete (model=%s)", model)
    return SessionHandle(peer=peer, channel=channel, model=model)


async def close_peer(peer: PeerConnection) -> None:
    try:
        await peer.close()
    except Exception:
        logger.exception("Error closing peer connection")
