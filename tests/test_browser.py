from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from inatmap._constants import STYLE_ID
from inatmap.browser import (
    MUTATION_BINDING,
    PlaywrightHostPage,
    PlaywrightMapInstance,
    PlaywrightMapLibrary,
)
from inatmap.exceptions import HostPageError
from inatmap.host import MutationBatch
from inatmap.models.viewport import LatLng, LatLngBounds


def _page(evaluate_result: object = None) -> MagicMock:
    page = MagicMock()
    page.url = "https://www.inaturalist.org/observations"
    page.evaluate = AsyncMock(return_value=evaluate_result)
    page.query_selector = AsyncMock(return_value=None)
    page.expose_binding = AsyncMock()
    return page


def _element(evaluate_result: object = None) -> MagicMock:
    element = MagicMock()
    element.evaluate = AsyncMock(return_value=evaluate_result)
    return element


@pytest.mark.asyncio
async def test_replace_style_passes_id_and_css() -> None:
    page = _page()
    host = PlaywrightHostPage(page)

    await host.replace_style(STYLE_ID, "body { color: red; }")

    assert page.evaluate.await_args.args[1] == [STYLE_ID, "body { color: red; }"]
    assert await host.current_url() == "https://www.inaturalist.org/observations"


@pytest.mark.asyncio
async def test_playwright_errors_become_host_page_errors() -> None:
    page = _page()
    page.evaluate.side_effect = PlaywrightError("Target closed")
    host = PlaywrightHostPage(page)

    with pytest.raises(HostPageError) as excinfo:
        await host.remove_style(STYLE_ID)

    assert excinfo.value.operation == "remove_style"
    assert "Target closed" in str(excinfo.value)


@pytest.mark.asyncio
async def test_detached_handle_is_not_attached() -> None:
    host = PlaywrightHostPage(_page())
    element = _element()
    element.evaluate.side_effect = PlaywrightError("Element is not attached to the DOM")

    assert await host.is_attached(element) is False


@pytest.mark.asyncio
async def test_inline_styles_normalise_missing_values() -> None:
    host = PlaywrightHostPage(_page())
    element = _element({"height": "", "width": None})

    assert await host.get_inline_styles(element, ["height", "width"]) == {"height": "", "width": ""}


@pytest.mark.asyncio
async def test_leaflet_id_read_from_element() -> None:
    host = PlaywrightHostPage(_page())

    assert await host.leaflet_id(_element(12)) == 12
    assert await host.leaflet_id(_element(None)) is None


@pytest.mark.asyncio
async def test_observe_exposes_binding_once_and_forwards_batches() -> None:
    page = _page()
    host = PlaywrightHostPage(page)
    batches: list[MutationBatch] = []

    await host.observe(_element(), batches.append)
    await host.observe(_element(), batches.append)

    page.expose_binding.assert_awaited_once()
    assert page.expose_binding.await_args.args[0] == MUTATION_BINDING

    host._on_mutations(None, [{"id": "map", "classes": ["leaflet-container"]}, "junk"])  # noqa: SLF001

    assert len(batches) == 2
    assert batches[0].added[0].signals_map
    assert len(batches[0].added) == 1


@pytest.mark.asyncio
async def test_map_instance_forwards_arguments() -> None:
    page = _page({"lat": 12.5, "lng": -70.0})
    instance = PlaywrightMapInstance(page, {"kind": "registry", "id": 7})

    assert await instance.get_center() == LatLng(lat=12.5, lng=-70.0)

    await instance.set_zoom(4.5, animate=False)
    assert page.evaluate.await_args.args[1] == [{"kind": "registry", "id": 7}, {"zoom": 4.5, "animate": False}]

    await instance.set_max_bounds(LatLngBounds.world())
    assert page.evaluate.await_args.args[1][1] == {"s": -85.0, "w": -180.0, "n": 85.0, "e": 180.0}


@pytest.mark.asyncio
async def test_each_layer_reports_tile_layers() -> None:
    page = _page([True, False])
    instance = PlaywrightMapInstance(page, {"kind": "global"})
    seen: list[bool] = []

    async def collect(layer: object) -> None:
        seen.append(layer.is_tile_layer)  # type: ignore[attr-defined]

    await instance.each_layer(collect)

    assert seen == [True, False]


@pytest.mark.asyncio
async def test_library_returns_none_when_map_missing() -> None:
    page = _page(False)
    library = PlaywrightMapLibrary(page)

    assert await library.instance_for(3) is None
    assert await library.global_instance() is None

    page.evaluate.return_value = True
    found = await library.instance_for(3)
    assert found is not None
    assert found.ref == {"kind": "registry", "id": 3}
