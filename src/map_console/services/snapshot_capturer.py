"""Map viewport snapshots: capture, deduplicate, keep a short history."""
from __future__ import annotations

import asyncio
import base64
import logging
from collections import deque
from datetime import datetime
from typing import Callable, Iterator

from map_console.application.exceptions import CaptureError
from map_console.application.ports.clock import Clock
from map_console.application.ports.imagery import ImageSource
from map_console.domain.entities.snapshot import Snapshot
from map_console.domain.value_objects.enums import CaptureStatus, CaptureStrategy
from map_console.domain.value_objects.geo import MapView

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Snapshot], None]

STATUS_LABELS: dict[CaptureStatus, str] = {
    CaptureStatus.DISABLED: "disabled",
    CaptureStatus.IDLE: "idle",
    CaptureStatus.CAPTURING: "capturing snapshots",
    CaptureStatus.PAUSED: "snapshot timer paused",
    CaptureStatus.ERROR: "error",
}


class SnapshotHistory:
    """Newest-first list capped at `limit`; the oldest entry falls off."""

    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError("history limit must be positive")
        self._items: deque[Snapshot] = deque(maxlen=limit)

    @property
    def limit(self) -> int:
        return self._items.maxlen or 0

    def push(self, snapshot: Snapshot) -> None:
        self._items.appendleft(snapshot)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Snapshot]:
        return iter(self._items)


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class SnapshotCapturer:
    """Captures the current map view on a timer or after the view settles.

    The strategy is fixed at construction. A failed capture stops the
    recurring schedule and leaves the status at `error` until restarted.
    """

    def __init__(
        self,
        source: ImageSource,
        clock: Clock,
        *,
        view: MapView,
        strategy: CaptureStrategy = CaptureStrategy.INTERVAL,
        interval: float = 15.0,
        debounce: float = 0.35,
        history_size: int = 12,
        timeout: float = 10.0,
        enabled: bool = True,
    ) -> None:
        self._source = source
        self._clock = clock
        self._strategy = strategy
        self._interval = interval
        self._debounce = debounce
        self._timeout = timeout
        self._callbacks: list[SnapshotCallback] = []
        self._timer: asyncio.Task[None] | None = None
        self._debounce_task: asyncio.Task[None] | None = None
        self._running = False
        self.view = view
        self.history = SnapshotHistory(history_size)
        self.last_snapshot: Snapshot | None = None
        self.error_message = ""
        self.status = CaptureStatus.IDLE if enabled else CaptureStatus.DISABLED

    @property
    def strategy(self) -> CaptureStrategy:
        return self._strategy

    @property
    def running(self) -> bool:
        return self._running

    def on_snapshot(self, callback: SnapshotCallback) -> None:
        self._callbacks.append(callback)

    def status_message(self, now: datetime) -> str:
        last = self.last_snapshot
        if self.status == CaptureStatus.CAPTURING and last:
            return f"capturing snapshots (last snapshot {last.relative_time(now)})"
        if self.status == CaptureStatus.PAUSED and last:
            return f"paused (last snapshot {last.relative_time(now)})"
        return STATUS_LABELS[self.status]

    def start(self) -> None:
        """Capture now and keep capturing. No-op while already running."""
        if self.status == CaptureStatus.DISABLED:
            logger.debug("Snapshot capture disabled; start ignored")
            return
        if self._running:
            return
        self._running = True
        self.error_message = ""
        self.status = CaptureStatus.CAPTURING
        if self._strategy == CaptureStrategy.INTERVAL:
            self._timer = asyncio.create_task(self._run_interval(), name="snapshot-timer")
        else:
            self._timer = asyncio.create_task(self._capture_quietly(), name="snapshot-initial")
        logger.info("Snapshot capture started (strategy=%s)", self._strategy)

    def stop(self, *, preserve_status: bool = False) -> None:
        """Cancel any scheduled capture. Idempotent."""
        was_running = self._running
        self._running = False
        current = _current_task()
        for task in (self._timer, self._debounce_task):
            if task is not None and not task.done() and task is not current:
                task.cancel()
        self._timer = None
        self._debounce_task = None
        if not preserve_status and self.status == CaptureStatus.CAPTURING:
            self.status = CaptureStatus.PAUSED
        if was_running:
            logger.info("Snapshot capture stopped")

    def update_view(self, view: MapView) -> None:
        """Record the settled viewport; with the idle strategy, schedule a capture."""
        self.view = view
        if not self._running or self._strategy != CaptureStrategy.IDLE:
            return
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.create_task(self._debounced(), name="snapshot-debounce")

    async def capture_once(self) -> Snapshot | None:
        """Fetch the current view. Returns None when the image has not changed."""
        if self.status == CaptureStatus.DISABLED:
            raise CaptureError("Snapshot capture is disabled; set GOOGLE_MAPS_API_KEY.")

        view = self.view
        captured_at = self._clock.now()
        try:
            image = await asyncio.wait_for(self._source.fetch(view), self._timeout)
        except asyncio.TimeoutError as exc:
            raise self._halt(CaptureError(f"Snapshot fetch timed out after {self._timeout:g}s")) from exc
        except CaptureError as exc:
            raise self._halt(exc)
        except Exception as exc:
            raise self._halt(CaptureError(str(exc) or exc.__class__.__name__)) from exc

        encoded = base64.b64encode(image.content).decode("ascii")
        if self.last_snapshot is not None and self.last_snapshot.image_base64 == encoded:
            logger.debug("Snapshot unchanged; skipping")
            return None

        snapshot = Snapshot(
            image_base64=encoded,
            media_type=image.media_type or "image/png",
            center=view.center,
            zoom=view.zoom,
            captured_at=captured_at,
        )
        self.last_snapshot = snapshot
        self.history.push(snapshot)
        self.error_message = ""
        if self._running:
            self.status = CaptureStatus.CAPTURING
        elif self.status == CaptureStatus.ERROR:
            self.status = CaptureStatus.IDLE

        for callback in self._callbacks:
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Snapshot callback failed")
        return snapshot

    def _halt(self, error: CaptureError) -> CaptureError:
        logger.error("Failed to capture map snapshot: %s", error.detail)
        self.error_message = error.detail
        self.stop(preserve_status=True)
        self.status = CaptureStatus.ERROR
        return error

    async def _capture_quietly(self) -> bool:
        try:
            await self.capture_once()
        except CaptureError:
            return False
        return True

    async def _run_interval(self) -> None:
        while self._running:
            if not await self._capture_quietly():
                return
            await asyncio.sleep(self._interval)

    async def _debounced(self) -> None:
        await asyncio.sleep(self._debounce)
        await self._capture_quietly()
