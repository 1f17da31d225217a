from __future__ import annotations

from typing import Any

import pytest

from inatmap._constants import MARKER_CLASS
from inatmap.bridge import MessageBridge
from inatmap.config import EnhancerConfig
from inatmap.map_adapter import MapAdapter, default_strategies
from inatmap.scheduling import ManualScheduler
from inatmap.state.store import StateStore
from inatmap.styles import StyleManager

from fakes import USER_URL, FakeLibrary, FakePage, build_page

SENDER = {"id": "inat-map-enhancer", "url": "chrome-extension://inat-map-enhancer/popup.html"}


def _bridge(page: FakePage | None = None) -> tuple[MessageBridge, StateStore, FakePage, ManualScheduler]:
    page = page or build_page()
    config = EnhancerConfig()
    state = StateStore()
    scheduler = ManualScheduler()
    maps = MapAdapter(config=config, state=state, strategies=default_strategies(page, FakeLibrary()))
    styles = StyleManager(config=config, page=page, state=state, maps=maps, scheduler=scheduler)
    return MessageBridge(extension_id=config.extension_id, state=state, styles=styles), state, page, scheduler


@pytest.mark.asyncio
async def test_get_state_reports_preference() -> None:
    bridge, state, _page, _scheduler = _bridge()

    assert await bridge.handle({"action": "getState"}, SENDER) == {"fullMapHeight": True}

    state.set_enabled(False)
    assert await bridge.handle({"action": "getState"}, SENDER) == {"fullMapHeight": False}


@pytest.mark.asyncio
async def test_get_state_independent_of_applied_overlay() -> None:
    bridge, _state, page, _scheduler = _bridge(build_page(with_map=False))

    assert await bridge.handle({"action": "getState"}, SENDER) == {"fullMapHeight": True}
    assert page.styles == []


@pytest.mark.asyncio
async def test_toggle_off_and_on() -> None:
    bridge, state, page, _scheduler = _bridge()
    await bridge.handle({"action": "toggleFullMapHeight", "enabled": True}, SENDER)
    assert page.body_classes == {MARKER_CLASS}

    response = await bridge.handle({"action": "toggleFullMapHeight", "enabled": False}, SENDER)

    assert response == {"success": True}
    assert state.enabled is False
    assert page.styles == []
    assert page.body_classes == set()

    response = await bridge.handle({"action": "toggleFullMapHeight", "enabled": True}, SENDER)

    assert response == {"success": True}
    assert page.style_count() == 1


@pytest.mark.asyncio
async def test_toggle_on_ineligible_page_only_mirrors_preference() -> None:
    bridge, state, page, _scheduler = _bridge(build_page(url=USER_URL))
    state.set_enabled(False)

    response = await bridge.handle({"action": "toggleFullMapHeight", "enabled": True}, SENDER)

    assert response == {"success": True}
    assert state.enabled is True
    assert page.styles == []
    assert await bridge.handle({"action": "getState"}, SENDER) == {"fullMapHeight": True}


@pytest.mark.asyncio
async def test_unknown_action() -> None:
    bridge, _state, _page, _scheduler = _bridge()

    assert await bridge.handle({"action": "explode"}, SENDER) == {"success": False, "error": "Unknown action"}
    assert await bridge.handle({}, SENDER) == {"success": False, "error": "Unknown action"}
    assert await bridge.handle("getState", SENDER) == {"success": False, "error": "Unknown action"}


@pytest.mark.parametrize(
    "sender",
    [None, {}, {"id": "someone-else"}, {"id": ""}, {"url": "https://evil.example"}],
)
@pytest.mark.asyncio
async def test_untrusted_sender_rejected_without_side_effects(sender: Any) -> None:
    bridge, state, page, _scheduler = _bridge()

    response = await bridge.handle({"action": "toggleFullMapHeight", "enabled": False}, sender)

    assert response == {"success": False, "error": "Invalid sender"}
    assert state.enabled is True
    assert page.calls == []


@pytest.mark.asyncio
async def test_invalid_toggle_payload() -> None:
    bridge, state, page, _scheduler = _bridge()

    response = await bridge.handle({"action": "toggleFullMapHeight", "enabled": "sometimes"}, SENDER)

    assert response["success"] is False
    assert response["error"].startswith("Invalid request: enabled")
    assert state.enabled is True
    assert page.calls == []


@pytest.mark.asyncio
async def test_toggle_failure_reported_to_caller() -> None:
    page = build_page()
    page.fail = {"replace_style"}
    bridge, state, _page, _scheduler = _bridge(page)

    response = await bridge.handle({"action": "toggleFullMapHeight", "enabled": True}, SENDER)

    assert response == {"success": False, "error": "replace_style failed"}
    assert state.enabled is True


@pytest.mark.parametrize("enabled", ["yes", "on", "true", 1, 0, None])
@pytest.mark.asyncio
async def test_toggle_requires_strict_boolean(enabled: Any) -> None:
    bridge, state, page, _scheduler = _bridge()

    response = await bridge.handle({"action": "toggleFullMapHeight", "enabled": enabled}, SENDER)

    assert response["success"] is False
    assert response["error"].startswith("Invalid request: enabled")
    assert state.enabled is True
    assert page.calls == []
