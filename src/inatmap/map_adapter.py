"""Bridge between the layout engine and the live Leaflet map.

Locating the map instance is an ordered chain of lookup strategies; the
first strategy that yields an instance wins. Every call into the mapping
library is isolated: a failure is logged where it happens and the rest of
the adjustment carries on, so a misbehaving map degrades the page to a
CSS-only layout instead of blocking it.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol, TypeVar

from inatmap.config import EnhancerConfig
from inatmap.host import HostPage, MapInstance, MapLayer, MapLibrary
from inatmap.models.viewport import LatLng, LatLngBounds, OriginalViewportState
from inatmap.state.store import StateStore

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class LookupStrategy(Protocol):
    """One way of finding the map instance behind a container element."""

    name: str

    async def __call__(self, element: Any) -> MapInstance | None: ...


class RegistryLookup:
    """Find the instance in the library's registry by the element's Leaflet id."""

    name = "registry"

    def __init__(self, page: HostPage, library: MapLibrary) -> None:
        self._page = page
        self._library = library

    async def __call__(self, element: Any) -> MapInstance | None:
        if element is None:
            return None
        leaflet_id = await self._page.leaflet_id(element)
        if leaflet_id is None:
            return None
        return await self._library.instance_for(leaflet_id)


class GlobalLookup:
    """Fall back to the map singleton published by the host page."""

    name = "global"

    def __init__(self, library: MapLibrary) -> None:
        self._library = library

    async def __call__(self, element: Any) -> MapInstance | None:
        return await self._library.global_instance()


def default_strategies(page: HostPage, library: MapLibrary) -> list[LookupStrategy]:
    return [RegistryLookup(page, library), GlobalLookup(library)]


class MapAdapter:
    """Resolve map instances and adjust their viewport."""

    def __init__(
        self,
        *,
        config: EnhancerConfig,
        state: StateStore,
        strategies: Sequence[LookupStrategy],
    ) -> None:
        self._config = config
        self._state = state
        self._strategies = list(strategies)
        self._reported_unresolved = False

    @property
    def strategies(self) -> tuple[LookupStrategy, ...]:
        return tuple(self._strategies)

    async def resolve(self, element: Any) -> MapInstance | None:
        """Return the live map instance for *element*, or ``None``.

        ``None`` means callers keep the CSS-only layout.
        """
        for strategy in self._strategies:
            try:
                instance = await strategy(element)
            except Exception:
                _logger.debug("Map lookup via %s failed", strategy.name, exc_info=True)
                continue
            if instance is not None:
                _logger.debug("Map instance resolved via %s", strategy.name)
                return instance
        if not self._reported_unresolved:
            self._reported_unresolved = True
            _logger.info("Map instance not found; keeping CSS-only layout")
        return None

    async def _call(self, label: str, fn: Callable[[], Awaitable[T]]) -> tuple[bool, T | None]:
        try:
            return True, await fn()
        except Exception as exc:
            _logger.warning("Map call %s failed: %s", label, exc)
            _logger.debug("Map call %s traceback", label, exc_info=True)
            return False, None

    async def fit_viewport(self, instance: MapInstance, *, map_height: str | None = None) -> None:
        """Zoom out one step and pin the map to a single copy of the world.

        The first call of a session records zoom, center and the container's
        inline height before anything changes.
        """
        config = self._config

        if self._state.original_viewport is None:
            zoom_ok, zoom = await self._call("getZoom", instance.get_zoom)
            center_ok, center = await self._call("getCenter", instance.get_center)
            if zoom_ok or center_ok:
                self._state.capture_viewport(
                    OriginalViewportState(
                        zoom=zoom if zoom_ok else None,
                        center=center if center_ok else None,
                        map_height=map_height,
                    )
                )
                _logger.debug("Captured original viewport %s", self._state.original_viewport)

        ok, current = await self._call("getZoom", instance.get_zoom)
        if ok and current is not None and current > config.min_zoom_level:
            target = max(config.min_zoom_level, current - config.zoom_step)
            await self._call("setZoom", lambda: instance.set_zoom(target, animate=False))

        await self._call("invalidateSize", lambda: instance.invalidate_size(animate=False, pan=False))

        bounds = LatLngBounds.world(config.max_latitude)
        await self._call("setMaxBounds", lambda: instance.set_max_bounds(bounds))
        await self._call("setMinZoom", lambda: instance.set_min_zoom(config.bounded_min_zoom))
        await self._call("eachLayer", lambda: instance.each_layer(_disable_wrap))

    async def restore(self, instance: MapInstance, state: OriginalViewportState) -> None:
        """Re-apply a captured zoom and center without animation."""
        zoom = state.zoom
        if zoom is not None:
            await self._call("setZoom", lambda: instance.set_zoom(zoom, animate=False))
        center: LatLng | None = state.center
        if center is not None:
            await self._call("panTo", lambda: instance.pan_to(center, animate=False))
        await self._call("invalidateSize", lambda: instance.invalidate_size(animate=False, pan=False))


async def _disable_wrap(layer: MapLayer) -> None:
    if layer.is_tile_layer:
        await layer.set_option("noWrap", True)
