from __future__ import annotations

import logging
from typing import Any

import pytest

from inatmap._constants import MARKER_CLASS, STYLE_ID
from inatmap.config import EnhancerConfig
from inatmap.exceptions import HostPageError
from inatmap.map_adapter import MapAdapter, default_strategies
from inatmap.models.viewport import LatLngBounds
from inatmap.scheduling import ManualScheduler
from inatmap.state.store import StateStore
from inatmap.styles import StyleManager, build_stylesheet, panel_inline_styles

from fakes import USER_URL, FakeLibrary, FakeMap, FakePage, build_page


class _Harness:
    def __init__(self, page: FakePage, library: FakeLibrary, config: EnhancerConfig | None = None) -> None:
        self.page = page
        self.library = library
        self.config = config or EnhancerConfig()
        self.scheduler = ManualScheduler()
        self.state = StateStore()
        self.maps = MapAdapter(config=self.config, state=self.state, strategies=default_strategies(page, library))
        self.styles = StyleManager(
            config=self.config,
            page=page,
            state=self.state,
            maps=self.maps,
            scheduler=self.scheduler,
        )


def _harness(page: FakePage | None = None, instance: FakeMap | None = None, **config: Any) -> _Harness:
    page = page or build_page()
    library = FakeLibrary(registry={7: instance} if instance is not None else {})
    return _Harness(page, library, EnhancerConfig(**config) if config else None)


def test_stylesheet_is_scoped_and_uses_offsets() -> None:
    css = build_stylesheet(EnhancerConfig(header_offset=200, footer_offset=100, panel_spacing=10))

    assert f"body.{MARKER_CLASS} #map" in css
    assert "calc(100vh - 200px - 100px)" in css
    assert "calc(100vh - 200px - 100px - 20px)" in css
    assert "right: 10px !important" in css
    for line in css.splitlines():
        if line.strip().startswith("#"):
            pytest.fail(f"unscoped rule: {line}")


def test_panel_inline_styles_follow_config() -> None:
    styles = panel_inline_styles(EnhancerConfig(panel_width=400, panel_spacing=15))

    assert styles["width"] == "400px"
    assert styles["right"] == "15px"
    assert styles["max-height"] == "calc(100% - 30px)"


@pytest.mark.asyncio
async def test_apply_is_idempotent() -> None:
    h = _harness()

    assert await h.styles.apply() is True
    assert await h.styles.apply() is False

    assert h.page.style_count() == 1
    assert h.page.body_classes == {MARKER_CLASS}
    assert h.scheduler.pending_frames == 1


@pytest.mark.asyncio
async def test_apply_replaces_stale_stylesheet() -> None:
    page = build_page()
    page.styles.append((STYLE_ID, "/* left over */"))
    h = _harness(page)

    await h.styles.apply()

    assert page.style_count() == 1
    assert page.styles[-1][1] != "/* left over */"


@pytest.mark.asyncio
async def test_apply_skips_ineligible_page() -> None:
    h = _harness(build_page(url=USER_URL))

    assert await h.styles.apply() is False

    assert h.page.styles == []
    assert h.page.body_classes == set()


@pytest.mark.asyncio
async def test_apply_skips_until_map_container_exists() -> None:
    h = _harness(build_page(with_map=False))

    assert await h.styles.apply() is False
    assert not h.styles.applied

    h.page.add(id="map", classes={"leaflet-container"}, leaflet_id=7)
    assert await h.styles.apply() is True


@pytest.mark.asyncio
async def test_follow_up_fits_map_and_notifies_layout() -> None:
    instance = FakeMap(zoom=5.0)
    h = _harness(instance=instance)

    await h.styles.apply()
    await h.scheduler.flush_frames()

    assert instance.zoom == 4.5
    assert instance.max_bounds == LatLngBounds.world()
    assert instance.min_zoom == 2.0
    assert instance.layers[0].options["noWrap"] is True
    assert h.page.resize_events == 1
    assert h.state.original_viewport is not None
    assert h.state.original_viewport.zoom == 5.0


@pytest.mark.asyncio
async def test_overlay_works_without_map_instance() -> None:
    h = _harness()

    assert await h.styles.apply() is True
    await h.scheduler.flush_frames()

    assert h.page.style_count() == 1
    assert h.page.resize_events == 1
    assert h.state.original_viewport is None


@pytest.mark.asyncio
async def test_repeated_apply_captures_viewport_once() -> None:
    instance = FakeMap(zoom=5.0)
    h = _harness(instance=instance)

    await h.styles.apply()
    await h.scheduler.flush_frames()
    await h.styles.apply()
    await h.scheduler.flush_frames()

    assert instance.zoom == 4.5
    assert h.state.original_viewport is not None
    assert h.state.original_viewport.zoom == 5.0


@pytest.mark.asyncio
async def test_apply_then_remove_restores_page_and_map() -> None:
    instance = FakeMap(zoom=5.0)
    h = _harness(instance=instance)
    original_center = instance.center
    panel = await h.page.query_selector("#obs")
    assert panel is not None

    await h.styles.apply()
    await h.scheduler.flush_frames()
    assert panel.style["width"] == "350px"

    assert await h.styles.remove() is True

    assert h.page.style_count() == 0
    assert h.page.body_classes == set()
    assert not h.styles.applied
    assert instance.zoom == 5.0
    assert instance.center == original_center
    assert panel.style == {"width": "300px"}
    assert h.state.original_viewport is None


@pytest.mark.asyncio
async def test_remove_when_not_applied_is_noop() -> None:
    h = _harness()

    assert await h.styles.remove() is False
    assert "remove_style" not in h.page.calls


@pytest.mark.asyncio
async def test_follow_up_after_remove_is_noop() -> None:
    instance = FakeMap(zoom=5.0)
    h = _harness(instance=instance)

    await h.styles.apply()
    assert h.styles.follow_up_pending
    await h.styles.remove()
    await h.scheduler.flush_frames()

    assert instance.zoom == 5.0
    assert instance.calls == []
    assert h.page.resize_events == 0


@pytest.mark.asyncio
async def test_failed_injection_rolls_back() -> None:
    page = build_page()
    page.fail = {"add_body_class"}
    h = _harness(page)

    with pytest.raises(HostPageError):
        await h.styles.apply()

    assert page.style_count() == 0
    assert not h.styles.applied
    assert h.scheduler.pending_frames == 0


@pytest.mark.asyncio
async def test_failed_stylesheet_removal_finishes_and_can_be_retried() -> None:
    instance = FakeMap(zoom=5.0)
    h = _harness(instance=instance)
    await h.styles.apply()
    await h.scheduler.flush_frames()
    h.page.fail = {"remove_style"}

    with pytest.raises(HostPageError):
        await h.styles.remove()

    assert h.page.body_classes == set()
    assert instance.zoom == 5.0
    assert h.state.original_viewport is None
    assert h.styles.applied

    h.page.fail = set()
    assert await h.styles.remove() is True

    assert h.page.style_count() == 0
    assert not h.styles.applied


@pytest.mark.asyncio
async def test_failed_marker_removal_can_be_retried() -> None:
    instance = FakeMap(zoom=5.0)
    h = _harness(instance=instance)
    await h.styles.apply()
    await h.scheduler.flush_frames()
    h.page.fail = {"remove_body_class"}

    with pytest.raises(HostPageError):
        await h.styles.remove()

    assert h.page.style_count() == 0
    assert instance.zoom == 5.0

    h.page.fail = set()
    assert await h.styles.remove() is True

    assert h.page.body_classes == set()
    assert not h.styles.applied


@pytest.mark.asyncio
async def test_follow_up_failure_still_notifies_layout() -> None:
    instance = FakeMap(zoom=5.0)
    h = _harness(instance=instance)
    await h.styles.apply()
    h.page.fail = {"get_inline_styles"}

    await h.scheduler.flush_frames()

    assert h.page.resize_events == 1
    assert h.styles.applied


@pytest.mark.asyncio
async def test_map_restore_failure_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    instance = FakeMap(zoom=5.0)
    h = _harness(instance=instance)
    await h.styles.apply()
    await h.scheduler.flush_frames()
    instance.fail = {"setZoom", "panTo"}

    with caplog.at_level(logging.WARNING):
        assert await h.styles.remove() is True

    assert h.page.style_count() == 0
    assert "setZoom" in caplog.text


@pytest.mark.asyncio
async def test_panel_repositioning_can_be_disabled() -> None:
    h = _harness(reposition_panels=False)
    panel = await h.page.query_selector("#obs")
    assert panel is not None

    await h.styles.apply()
    await h.scheduler.flush_frames()

    assert panel.style == {"width": "300px"}
    assert h.page.resize_events == 1


@pytest.mark.asyncio
async def test_controls_restyled_and_restored() -> None:
    page = build_page()
    controls = page.add(classes={"map-controls"})
    h = _harness(page)

    await h.styles.apply()
    await h.scheduler.flush_frames()
    assert controls.style["position"] == "absolute"

    await h.styles.remove()
    assert controls.style == {}
