from __future__ import annotations

import asyncio
import base64
from datetime import timedelta

import pytest

from map_console.application.exceptions import CaptureError
from map_console.domain.entities.snapshot import relative_time
from map_console.domain.value_objects.enums import CaptureStatus, CaptureStrategy
from map_console.domain.value_objects.geo import LatLng, MapView
from map_console.services.snapshot_capturer import SnapshotHistory
from tests.conftest import CountingImageSource, FakeImageSource, make_capturer, wait_until


def decoded(snapshot) -> bytes:
    return base64.b64decode(snapshot.image_base64)


@pytest.mark.asyncio
async def test_capture_once_records_snapshot(clock):
    capturer = make_capturer(FakeImageSource(images=[b"tile"]), clock)
    seen = []
    capturer.on_snapshot(seen.append)

    snapshot = await capturer.capture_once()

    assert snapshot is not None
    assert decoded(snapshot) == b"tile"
    assert snapshot.media_type == "image/png"
    assert snapshot.captured_at == clock.now()
    assert snapshot.center == LatLng(lat=40.758, lng=-73.9855)
    assert snapshot.data_url.startswith("data:image/png;base64,")
    assert seen == [snapshot]
    assert list(capturer.history) == [snapshot]


@pytest.mark.asyncio
async def test_identical_image_is_forwarded_once():
    capturer = make_capturer(FakeImageSource(images=[b"same"]))
    seen = []
    capturer.on_snapshot(seen.append)

    first = await capturer.capture_once()
    second = await capturer.capture_once()

    assert first is not None
    assert second is None
    assert len(seen) == 1
    assert len(capturer.history) == 1


@pytest.mark.asyncio
async def test_history_keeps_newest_first_up_to_limit():
    capturer = make_capturer(CountingImageSource(), history_size=3)

    for _ in range(5):
        await capturer.capture_once()

    assert len(capturer.history) == 3
    assert [decoded(s) for s in capturer.history] == [b"png-5", b"png-4", b"png-3"]


def test_history_rejects_non_positive_limit():
    with pytest.raises(ValueError):
        SnapshotHistory(0)


@pytest.mark.asyncio
async def test_capture_uses_current_view():
    source = CountingImageSource()
    capturer = make_capturer(source)
    view = MapView(center=LatLng(lat=51.5074, lng=-0.1278), zoom=15)

    capturer.update_view(view)
    snapshot = await capturer.capture_once()

    assert source.views == [view]
    assert snapshot.zoom == 15
    assert snapshot.center.lat == 51.5074


@pytest.mark.asyncio
async def test_fetch_failure_sets_error_and_stops_schedule(clock):
    source = FakeImageSource(error=CaptureError("Static map request failed with status 403"))
    capturer = make_capturer(source, interval=0.01)

    capturer.start()
    await wait_until(lambda: capturer.status == CaptureStatus.ERROR)
    await asyncio.sleep(0.05)

    assert capturer.running is False
    assert len(source.views) == 1
    assert capturer.error_message == "Static map request failed with status 403"
    assert capturer.status_message(clock.now()) == "error"


@pytest.mark.asyncio
async def test_unexpected_failure_is_wrapped():
    capturer = make_capturer(FakeImageSource(error=RuntimeError("canvas tainted")))

    with pytest.raises(CaptureError, match="canvas tainted"):
        await capturer.capture_once()
    assert capturer.status == CaptureStatus.ERROR


@pytest.mark.asyncio
async def test_slow_fetch_times_out():
    capturer = make_capturer(FakeImageSource(delay=1.0), timeout=0.01)

    with pytest.raises(CaptureError, match="timed out"):
        await capturer.capture_once()
    assert capturer.status == CaptureStatus.ERROR


@pytest.mark.asyncio
async def test_interval_strategy_captures_immediately_and_repeats():
    source = CountingImageSource()
    capturer = make_capturer(source, interval=0.01)

    capturer.start()
    await wait_until(lambda: len(source.views) >= 3)
    capturer.stop()

    assert capturer.status == CaptureStatus.PAUSED
    assert len(capturer.history) >= 3


@pytest.mark.asyncio
async def test_start_twice_schedules_once():
    source = CountingImageSource()
    capturer = make_capturer(source, interval=3600)

    capturer.start()
    capturer.start()
    await wait_until(lambda: len(source.views) >= 1)
    await asyncio.sleep(0.02)
    capturer.stop()

    assert len(source.views) == 1


@pytest.mark.asyncio
async def test_stop_is_idempotent():
    capturer = make_capturer(CountingImageSource(), interval=3600)

    capturer.stop()
    assert capturer.status == CaptureStatus.IDLE

    capturer.start()
    capturer.stop()
    capturer.stop()

    assert capturer.running is False
    assert capturer.status == CaptureStatus.PAUSED


@pytest.mark.asyncio
async def test_idle_strategy_debounces_view_changes():
    source = CountingImageSource()
    capturer = make_capturer(source, strategy=CaptureStrategy.IDLE, debounce=0.05)

    capturer.start()
    await wait_until(lambda: len(source.views) == 1)

    for zoom in (14, 15, 16):
        capturer.update_view(MapView(center=LatLng(lat=40.0, lng=-74.0), zoom=zoom))
        await asyncio.sleep(0.01)
    await wait_until(lambda: len(source.views) == 2)
    await asyncio.sleep(0.1)
    capturer.stop()

    assert len(source.views) == 2
    assert source.views[-1].zoom == 16


@pytest.mark.asyncio
async def test_idle_strategy_ignores_views_when_stopped():
    source = CountingImageSource()
    capturer = make_capturer(source, strategy=CaptureStrategy.IDLE, debounce=0.01)

    capturer.update_view(MapView(center=LatLng(lat=1.0, lng=2.0), zoom=3))
    await asyncio.sleep(0.05)

    assert source.views == []
    assert capturer.view.zoom == 3


@pytest.mark.asyncio
async def test_restart_after_error_clears_it():
    source = FakeImageSource(error=CaptureError("down"))
    capturer = make_capturer(source, interval=3600)
    with pytest.raises(CaptureError):
        await capturer.capture_once()

    source.error = None
    capturer.start()
    await wait_until(lambda: capturer.last_snapshot is not None)
    capturer.stop()

    assert capturer.error_message == ""
    assert capturer.status == CaptureStatus.PAUSED


@pytest.mark.asyncio
async def test_disabled_capturer():
    capturer = make_capturer(enabled=False)

    capturer.start()

    assert capturer.running is False
    assert capturer.status == CaptureStatus.DISABLED
    with pytest.raises(CaptureError, match="disabled"):
        await capturer.capture_once()


@pytest.mark.asyncio
async def test_failing_callback_does_not_break_capture():
    capturer = make_capturer(CountingImageSource())
    seen = []

    def broken(_snapshot):
        raise RuntimeError("boom")

    capturer.on_snapshot(broken)
    capturer.on_snapshot(seen.append)

    snapshot = await capturer.capture_once()

    assert seen == [snapshot]


@pytest.mark.asyncio
async def test_status_message_includes_relative_age(clock):
    capturer = make_capturer(CountingImageSource(), clock, interval=3600)

    capturer.start()
    await wait_until(lambda: capturer.last_snapshot is not None)
    clock.advance(5)

    assert capturer.status_message(clock.now()) == "capturing snapshots (last snapshot 5s ago)"

    capturer.stop()
    assert capturer.status_message(clock.now()) == "paused (last snapshot 5s ago)"


def test_relative_time(clock):
    now = clock.now()

    assert relative_time(None, now) == "never"
    assert relative_time(now - timedelta(milliseconds=400), now) == "just now"
    assert relative_time(now - timedelta(seconds=42), now) == "42s ago"
    assert relative_time(now - timedelta(minutes=3), now) == "3m ago"
