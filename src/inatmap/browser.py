"""Playwright-backed host page and Leaflet access.

Each protocol method maps onto one ``evaluate`` round trip. Mutation
records come back through a binding exposed on the page, so the observer
itself runs inside the browser and only a compact summary of each added
element crosses over.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from playwright.async_api import ElementHandle, Page
from playwright.async_api import Error as PlaywrightError

from inatmap._constants import LEAFLET_CONTAINER_CLASS
from inatmap.exceptions import HostPageError
from inatmap.host import AddedNode, MapLayer, MutationBatch, MutationCallback
from inatmap.models.viewport import LatLng, LatLngBounds

_logger = logging.getLogger(__name__)

MUTATION_BINDING = "__inatmapMutations"

_REPLACE_STYLE_JS = """
([id, css]) => {
  for (const node of document.querySelectorAll(`[id="${id}"]`)) node.remove();
  const style = document.createElement('style');
  style.id = id;
  style.textContent = css;
  (document.head || document.documentElement).appendChild(style);
}
"""

_REMOVE_STYLE_JS = """
(id) => {
  const nodes = document.querySelectorAll(`[id="${id}"]`);
  nodes.forEach((node) => node.remove());
  return nodes.length > 0;
}
"""

_GET_INLINE_JS = """
(el, props) => Object.fromEntries(props.map((p) => [p, el.style.getPropertyValue(p)]))
"""

_SET_INLINE_JS = """
(el, styles) => {
  for (const [prop, value] of Object.entries(styles)) {
    if (value) el.style.setProperty(prop, value);
    else el.style.removeProperty(prop);
  }
}
"""

_OBSERVE_JS = """
(root, opts) => {
  if (root.__inatmapObserver) return;
  const observer = new MutationObserver((mutations) => {
    const added = [];
    for (const m of mutations) {
      if (m.type !== 'childList') continue;
      for (const node of m.addedNodes) {
        if (node.nodeType !== Node.ELEMENT_NODE) continue;
        added.push({
          id: node.id || null,
          classes: Array.from(node.classList || []),
          containsMapRoot: !!(node.querySelector && node.querySelector('.' + opts.leafletClass)),
        });
      }
    }
    if (added.length && typeof window[opts.binding] === 'function') window[opts.binding](added);
  });
  observer.observe(root, { childList: true, subtree: true });
  root.__inatmapObserver = observer;
}
"""

_NEXT_FRAME_JS = "() => new Promise((resolve) => requestAnimationFrame(() => resolve()))"

_LOCATE_MAP_JS = """
(ref) => {
  if (ref.kind === 'registry') {
    const L = window.L;
    if (!L || !L.map || !L.map._instances) return null;
    return L.map._instances[ref.id] || null;
  }
  return (window.GLOBALS && window.GLOBALS.map) || null;
}
"""


def _map_call_js(body: str) -> str:
    return (
        "([ref, arg]) => {"
        f" const map = ({_LOCATE_MAP_JS})(ref);"
        " if (!map) throw new Error('map instance is gone');"
        f" {body} }}"
    )


class PlaywrightHostPage:
    """:class:`~inatmap.host.HostPage` over a Playwright :class:`Page`."""

    def __init__(self, page: Page) -> None:
        self._page = page
        self._callbacks: list[MutationCallback] = []
        self._binding_installed = False

    @property
    def page(self) -> Page:
        return self._page

    async def _run(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await awaitable
        except PlaywrightError as exc:
            raise HostPageError(f"{operation} failed: {exc}", operation=operation) from exc

    async def current_url(self) -> str:
        return self._page.url

    async def query_selector(self, selector: str) -> ElementHandle | None:
        return await self._run("query_selector", self._page.query_selector(selector))

    async def is_attached(self, node: ElementHandle) -> bool:
        try:
            return bool(await node.evaluate("(el) => el.isConnected"))
        except PlaywrightError:
            return False

    async def replace_style(self, style_id: str, css: str) -> None:
        await self._run("replace_style", self._page.evaluate(_REPLACE_STYLE_JS, [style_id, css]))

    async def remove_style(self, style_id: str) -> bool:
        return bool(await self._run("remove_style", self._page.evaluate(_REMOVE_STYLE_JS, style_id)))

    async def add_body_class(self, name: str) -> None:
        await self._run(
            "add_body_class",
            self._page.evaluate("(name) => document.body && document.body.classList.add(name)", name),
        )

    async def remove_body_class(self, name: str) -> None:
        await self._run(
            "remove_body_class",
            self._page.evaluate("(name) => document.body && document.body.classList.remove(name)", name),
        )

    async def get_inline_styles(self, node: ElementHandle, properties: Sequence[str]) -> dict[str, str]:
        result = await self._run("get_inline_styles", node.evaluate(_GET_INLINE_JS, list(properties)))
        return {str(k): str(v or "") for k, v in (result or {}).items()}

    async def set_inline_styles(self, node: ElementHandle, styles: Mapping[str, str]) -> None:
        await self._run("set_inline_styles", node.evaluate(_SET_INLINE_JS, dict(styles)))

    async def dispatch_resize(self) -> None:
        await self._run("dispatch_resize", self._page.evaluate("() => window.dispatchEvent(new Event('resize'))"))

    async def next_frame(self) -> None:
        await self._run("next_frame", self._page.evaluate(_NEXT_FRAME_JS))

    async def leaflet_id(self, node: ElementHandle) -> int | None:
        value = await self._run(
            "leaflet_id",
            node.evaluate("(el) => (typeof el._leaflet_id === 'number' ? el._leaflet_id : null)"),
        )
        return int(value) if value is not None else None

    async def observe(self, root: ElementHandle, callback: MutationCallback) -> None:
        if not self._binding_installed:
            await self._run("expose_binding", self._page.expose_binding(MUTATION_BINDING, self._on_mutations))
            self._binding_installed = True
        self._callbacks.append(callback)
        await self._run(
            "observe",
            root.evaluate(_OBSERVE_JS, {"binding": MUTATION_BINDING, "leafletClass": LEAFLET_CONTAINER_CLASS}),
        )

    def _on_mutations(self, source: Any, records: Any) -> None:
        if not isinstance(records, list):
            return
        batch = MutationBatch.of(AddedNode.from_record(r) for r in records if isinstance(r, Mapping))
        for callback in list(self._callbacks):
            try:
                callback(batch)
            except Exception:
                _logger.warning("Mutation callback failed", exc_info=True)


class PlaywrightMapLayer:
    """One layer of a map, addressed by its position in ``eachLayer`` order."""

    def __init__(self, instance: PlaywrightMapInstance, index: int, is_tile_layer: bool) -> None:
        self._instance = instance
        self._index = index
        self._is_tile_layer = is_tile_layer

    @property
    def is_tile_layer(self) -> bool:
        return self._is_tile_layer

    async def set_option(self, name: str, value: Any) -> None:
        await self._instance._call(  # noqa: SLF001
            "let i = 0;"
            " map.eachLayer((layer) => {"
            " if (i++ === arg.index && layer.options) layer.options[arg.name] = arg.value; });",
            {"index": self._index, "name": name, "value": value},
        )


class PlaywrightMapInstance:
    """:class:`~inatmap.host.MapInstance` forwarding calls into the page."""

    def __init__(self, page: Page, ref: dict[str, Any]) -> None:
        self._page = page
        self._ref = ref

    @property
    def ref(self) -> dict[str, Any]:
        return dict(self._ref)

    async def _call(self, body: str, arg: Any = None) -> Any:
        return await self._page.evaluate(_map_call_js(body), [self._ref, arg])

    async def get_zoom(self) -> float:
        return float(await self._call("return map.getZoom();"))

    async def set_zoom(self, zoom: float, *, animate: bool) -> None:
        await self._call("map.setZoom(arg.zoom, { animate: arg.animate });", {"zoom": zoom, "animate": animate})

    async def get_center(self) -> LatLng:
        raw = await self._call("const c = map.getCenter(); return { lat: c.lat, lng: c.lng };")
        return LatLng.model_validate(raw)

    async def pan_to(self, center: LatLng, *, animate: bool) -> None:
        await self._call(
            "const target = window.L ? window.L.latLng(arg.lat, arg.lng) : [arg.lat, arg.lng];"
            " map.panTo(target, { animate: arg.animate });",
            {"lat": center.lat, "lng": center.lng, "animate": animate},
        )

    async def invalidate_size(self, *, animate: bool, pan: bool) -> None:
        await self._call("map.invalidateSize({ animate: arg.animate, pan: arg.pan });", {"animate": animate, "pan": pan})

    async def set_max_bounds(self, bounds: LatLngBounds) -> None:
        await self._call(
            "const L = window.L;"
            " map.setMaxBounds(L.latLngBounds(L.latLng(arg.s, arg.w), L.latLng(arg.n, arg.e)));",
            {
                "s": bounds.south_west.lat,
                "w": bounds.south_west.lng,
                "n": bounds.north_east.lat,
                "e": bounds.north_east.lng,
            },
        )

    async def set_min_zoom(self, zoom: float) -> None:
        await self._call("map.setMinZoom(arg);", zoom)

    async def each_layer(self, callback: Callable[[MapLayer], Awaitable[None]]) -> None:
        flags = await self._call(
            "const out = []; map.eachLayer((layer) => out.push(!!(layer.options && layer.setUrl))); return out;"
        )
        for index, is_tile in enumerate(flags or []):
            await callback(PlaywrightMapLayer(self, index, bool(is_tile)))


class PlaywrightMapLibrary:
    """:class:`~inatmap.host.MapLibrary` reading ``window.L`` and ``window.GLOBALS``."""

    def __init__(self, page: Page) -> None:
        self._page = page

    async def _locate(self, ref: dict[str, Any]) -> PlaywrightMapInstance | None:
        found = await self._page.evaluate(f"(ref) => !!({_LOCATE_MAP_JS})(ref)", ref)
        return PlaywrightMapInstance(self._page, ref) if found else None

    async def instance_for(self, leaflet_id: int) -> PlaywrightMapInstance | None:
        return await self._locate({"kind": "registry", "id": leaflet_id})

    async def global_instance(self) -> PlaywrightMapInstance | None:
        return await self._locate({"kind": "global"})
