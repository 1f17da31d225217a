"""Overlay stylesheet construction and its apply/remove lifecycle."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from inatmap._constants import (
    ANCHOR_SELECTOR,
    CACHE_LEAFLET_MAP,
    CACHE_MAP,
    CACHE_OBS_PANEL,
    LEAFLET_SELECTOR,
    MAP_CONTROLS_SELECTOR,
    MARKER_CLASS,
    OBS_PANEL_SELECTORS,
    STYLE_ID,
)
from inatmap.classifier import is_eligible_page
from inatmap.config import EnhancerConfig
from inatmap.host import HostPage
from inatmap.map_adapter import MapAdapter
from inatmap.models.viewport import OriginalViewportState
from inatmap.scheduling import ScheduledCall, Scheduler
from inatmap.state.store import StateStore

_logger = logging.getLogger(__name__)

_CACHE_MAP_CONTROLS = "mapControls"


def build_stylesheet(config: EnhancerConfig) -> str:
    """Compose the overlay CSS.

    Every rule is scoped under ``body.<marker>`` so the page's own
    specificity is untouched once the marker class is gone. Heights use
    viewport-relative ``calc()`` expressions built from the configured
    header and footer reservations.
    """
    header = config.header_offset
    footer = config.footer_offset
    spacing = config.panel_spacing
    scope = f"body.{MARKER_CLASS}"

    map_height = f"calc(100vh - {header}px - {footer}px)"
    obs_height = f"calc(100vh - {header}px - {footer}px - {spacing * 2}px)"

    return f"""
    /* Map containers */
    {scope} #obs-container,
    {scope} #obs-container .container,
    {scope} #map,
    {scope} #observations-map {{
      height: {map_height} !important;
    }}

    /* Let the map area use the full page width */
    {scope} #obs-container .container {{
      width: 100% !important;
      max-width: 100% !important;
      padding: 0 !important;
      margin: 0 !important;
    }}

    /* Observation panel floats over the map */
    {scope} #obs {{
      height: calc({obs_height} - {config.panel_height_trim}px) !important;
      max-height: {obs_height} !important;
      overflow-y: auto !important;
      position: fixed !important;
      right: {spacing}px !important;
      top: calc({header}px + {config.panel_top_gap}px) !important;
      z-index: 1000 !important;
    }}

    {scope} #map-controls {{
      margin-left: {config.controls_margin}px !important;
    }}

    {scope} #map-legend-control {{
      position: absolute !important;
      top: calc({map_height} - {config.legend_offset}px) !important;
      left: {config.legend_inset}px !important;
    }}
  """


def panel_inline_styles(config: EnhancerConfig) -> dict[str, str]:
    spacing = config.panel_spacing
    return {
        "position": "absolute",
        "top": f"{spacing}px",
        "bottom": f"{spacing}px",
        "right": f"{spacing}px",
        "width": f"{config.panel_width}px",
        "max-height": f"calc(100% - {spacing * 2}px)",
        "overflow-y": "auto",
        "z-index": "1000",
        "background": "white",
        "border-radius": "8px",
        "box-shadow": "0 0 10px rgba(0, 0, 0, 0.2)",
    }


CONTROLS_INLINE_STYLES: dict[str, str] = {
    "position": "absolute",
    "left": "10px",
    "top": "10px",
    "z-index": "1000",
    "background-color": "rgba(255, 255, 255, 0.8)",
    "border-radius": "4px",
    "padding": "5px",
}


class StyleManager:
    """Inject and remove the overlay, keeping the map in step with it.

    ``apply``, ``remove`` and the post-paint follow-up share one lock and
    read the flags only once they hold it, so an action scheduled before a
    toggle turns into a no-op afterwards.
    """

    def __init__(
        self,
        *,
        config: EnhancerConfig,
        page: HostPage,
        state: StateStore,
        maps: MapAdapter,
        scheduler: Scheduler,
    ) -> None:
        self._config = config
        self._page = page
        self._state = state
        self._maps = maps
        self._scheduler = scheduler
        self._lock = asyncio.Lock()
        self._follow_up: ScheduledCall | None = None

    @property
    def applied(self) -> bool:
        return self._state.flags.styles_applied

    @property
    def follow_up_pending(self) -> bool:
        return self._follow_up is not None and self._follow_up.pending

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    async def apply(self) -> bool:
        """Apply the overlay. Returns ``True`` when this call applied it."""
        async with self._lock:
            flags = self._state.flags
            if flags.styles_applied:
                _logger.debug("Overlay already applied, skipping")
                return False

            url = await self._page.current_url()
            if not is_eligible_page(url, self._config.listing_path):
                _logger.debug("Not the listing page (%s), skipping", url)
                return False

            anchor = await self._state.elements.resolve(self._page, CACHE_MAP, ANCHOR_SELECTOR)
            if anchor is None:
                _logger.debug("Map container not present yet, skipping")
                return False

            css = build_stylesheet(self._config)
            try:
                await self._page.replace_style(STYLE_ID, css)
                await self._page.add_body_class(MARKER_CLASS)
            except Exception:
                await self._discard_overlay()
                raise

            flags.styles_applied = True
            self._follow_up = self._scheduler.request_frame(self._after_paint, label="post-paint")
            _logger.info("Full-height map overlay applied")
            return True

    async def _discard_overlay(self) -> None:
        try:
            await self._page.remove_style(STYLE_ID)
            await self._page.remove_body_class(MARKER_CLASS)
        except Exception:
            _logger.debug("Rollback of partial overlay failed", exc_info=True)

    async def _after_paint(self) -> None:
        async with self._lock:
            self._follow_up = None
            if not self._state.flags.styles_applied:
                _logger.debug("Overlay removed before follow-up ran, skipping")
                return

            try:
                await self._fit_map()
            except Exception:
                _logger.warning("Could not fit map viewport", exc_info=True)

            if self._config.reposition_panels:
                try:
                    await self._reposition_panels()
                except Exception:
                    _logger.warning("Could not reposition side panel", exc_info=True)

            await self._page.dispatch_resize()

    async def _fit_map(self) -> None:
        anchor = await self._state.elements.resolve(self._page, CACHE_MAP, ANCHOR_SELECTOR)
        if anchor is None:
            return
        element = await self._state.elements.resolve(self._page, CACHE_LEAFLET_MAP, LEAFLET_SELECTOR)
        instance = await self._maps.resolve(element if element is not None else anchor)
        if instance is not None:
            height = (await self._page.get_inline_styles(anchor, ["height"])).get("height", "")
            await self._maps.fit_viewport(instance, map_height=height)

    async def _find_panel(self) -> Any | None:
        cached = self._state.elements.peek(CACHE_OBS_PANEL)
        if cached is not None and await self._page.is_attached(cached):
            return cached
        for selector in OBS_PANEL_SELECTORS:
            node = await self._page.query_selector(selector)
            if node is not None:
                self._state.elements.remember(CACHE_OBS_PANEL, node)
                return node
        self._state.elements.invalidate(CACHE_OBS_PANEL)
        return None

    async def _restyle(self, key: str, node: Any, styles: dict[str, str]) -> None:
        previous = await self._page.get_inline_styles(node, list(styles))
        self._state.remember_inline(key, node, previous)
        await self._page.set_inline_styles(node, styles)

    async def _reposition_panels(self) -> None:
        panel = await self._find_panel()
        if panel is not None:
            await self._restyle(CACHE_OBS_PANEL, panel, panel_inline_styles(self._config))

        controls = await self._page.query_selector(MAP_CONTROLS_SELECTOR)
        if controls is not None:
            await self._restyle(_CACHE_MAP_CONTROLS, controls, CONTROLS_INLINE_STYLES)

    # ------------------------------------------------------------------
    # Remove
    # ------------------------------------------------------------------

    async def remove(self) -> bool:
        """Remove the overlay. Returns ``True`` when this call removed it."""
        async with self._lock:
            if not self._state.flags.styles_applied:
                _logger.debug("Overlay not applied, nothing to remove")
                return False

            self.cancel_pending()

            # Every step runs; the flag stays set until the page is clean so
            # a later remove() can finish the job.
            errors: list[Exception] = []
            for label, step in (
                ("stylesheet", lambda: self._page.remove_style(STYLE_ID)),
                ("marker class", lambda: self._page.remove_body_class(MARKER_CLASS)),
            ):
                try:
                    await step()
                except Exception as exc:
                    _logger.warning("Failed to remove overlay %s", label, exc_info=True)
                    errors.append(exc)
            if not errors:
                self._state.flags.styles_applied = False

            await self._restore_inline()

            snapshot = self._state.take_viewport()
            if snapshot is not None:
                await self._restore_viewport(snapshot)

            if errors:
                raise errors[0]
            _logger.info("Full-height map overlay removed")
            return True

    def cancel_pending(self) -> None:
        """Drop a scheduled post-paint follow-up, if any."""
        if self._follow_up is not None:
            self._follow_up.cancel()
            self._follow_up = None

    async def _restore_inline(self) -> None:
        for key, backup in self._state.take_inline_backups().items():
            try:
                if await self._page.is_attached(backup.node):
                    await self._page.set_inline_styles(backup.node, backup.values)
            except Exception:
                _logger.warning("Failed to restore inline styles of %s", key, exc_info=True)

    async def _restore_viewport(self, snapshot: OriginalViewportState) -> None:
        try:
            anchor = await self._state.elements.resolve(self._page, CACHE_MAP, ANCHOR_SELECTOR)
            element = await self._state.elements.resolve(self._page, CACHE_LEAFLET_MAP, LEAFLET_SELECTOR)
            instance = await self._maps.resolve(element if element is not None else anchor)
            if instance is not None:
                await self._maps.restore(instance, snapshot)
            if anchor is not None and snapshot.map_height is not None:
                await self._page.set_inline_styles(anchor, {"height": snapshot.map_height})
        except Exception:
            _logger.warning("Failed to restore map state", exc_info=True)
