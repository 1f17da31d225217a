"""Per-page-load controller wiring the engine components together."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from inatmap._constants import ACTION_TOGGLE, ANCHOR_SELECTOR, CACHE_MAP, PREFERENCE_KEY
from inatmap.bridge import MessageBridge
from inatmap.classifier import is_eligible_page
from inatmap.config import EnhancerConfig
from inatmap.host import AddedNode, HostPage, MapLibrary
from inatmap.map_adapter import LookupStrategy, MapAdapter, default_strategies
from inatmap.models.messages import MessageSender
from inatmap.models.preferences import Preferences
from inatmap.preferences import MemoryPreferenceStore, PreferenceStore
from inatmap.scheduling import LoopScheduler, ScheduledCall, Scheduler
from inatmap.state.store import StateStore
from inatmap.styles import StyleManager
from inatmap.watcher import MutationWatcher

_logger = logging.getLogger(__name__)


class EnhancementSession:
    """Everything the engine knows about one page load.

    Usage::

        async with EnhancementSession(page, library, preferences=store) as session:
            response = await session.handle_message({"action": "getState"}, sender)

    Several sessions can live side by side; none of them share state.

    Parameters
    ----------
    page : HostPage
        DOM access to the page being enhanced.
    library : MapLibrary
        Access to the page's mapping library. Ignored when *strategies*
        is given.
    config : EnhancerConfig, optional
        Layout and behaviour settings. Defaults to ``EnhancerConfig()``.
    preferences : PreferenceStore, optional
        Where ``fullMapHeight`` is persisted. Defaults to an in-memory store.
    scheduler : Scheduler, optional
        Timer and frame scheduling. Defaults to a :class:`LoopScheduler`
        that waits on ``page.next_frame``.
    strategies : sequence of LookupStrategy, optional
        Map lookup chain, tried in order.
    """

    def __init__(
        self,
        page: HostPage,
        library: MapLibrary,
        *,
        config: EnhancerConfig | None = None,
        preferences: PreferenceStore | None = None,
        scheduler: Scheduler | None = None,
        strategies: Sequence[LookupStrategy] | None = None,
    ) -> None:
        self._config = config or EnhancerConfig()
        self._page = page
        self._preferences = preferences if preferences is not None else MemoryPreferenceStore()
        self._scheduler: Scheduler = scheduler or LoopScheduler(frame_source=page.next_frame)
        self._owns_scheduler = scheduler is None
        self._initial_apply: ScheduledCall | None = None
        self._started = False

        self.state = StateStore()
        self.maps = MapAdapter(
            config=self._config,
            state=self.state,
            strategies=strategies if strategies is not None else default_strategies(page, library),
        )
        self.styles = StyleManager(
            config=self._config,
            page=page,
            state=self.state,
            maps=self.maps,
            scheduler=self._scheduler,
        )
        self.watcher = MutationWatcher(
            config=self._config,
            page=page,
            state=self.state,
            scheduler=self._scheduler,
            on_map_mounted=self._on_map_mounted,
        )
        self.bridge = MessageBridge(
            extension_id=self._config.extension_id,
            state=self.state,
            styles=self.styles,
        )

    @property
    def config(self) -> EnhancerConfig:
        return self._config

    @property
    def sender(self) -> MessageSender:
        """The identity this session presents for its own requests."""
        return MessageSender(id=self._config.extension_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> EnhancementSession:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def start(self) -> None:
        """Observe the page, load the stored preference and apply if due."""
        if self._started:
            return
        self._started = True

        await self.watcher.start()
        await self.load_preferences()

        if is_eligible_page(await self._page.current_url(), self._config.listing_path):
            self._initial_apply = self._scheduler.request_frame(self._apply_if_ready, label="initial-apply")

    async def close(self) -> None:
        self.watcher.stop()
        self.styles.cancel_pending()
        if self._initial_apply is not None:
            self._initial_apply.cancel()
            self._initial_apply = None
        if self._owns_scheduler and isinstance(self._scheduler, LoopScheduler):
            await self._scheduler.aclose()

    async def load_preferences(self) -> bool:
        """Mirror the stored preference and bring the page in line with it.

        Returns the mirrored ``enabled`` value.
        """
        try:
            stored = await self._preferences.get(PREFERENCE_KEY)
        except Exception:
            _logger.warning("Could not read preferences, defaulting to enabled", exc_info=True)
            stored = None

        prefs = Preferences()
        if stored is not None:
            try:
                prefs = Preferences.model_validate({PREFERENCE_KEY: stored})
            except ValidationError:
                _logger.warning("Ignoring invalid stored %s=%r", PREFERENCE_KEY, stored)

        self.state.set_enabled(prefs.full_map_height)
        try:
            if self.state.enabled:
                await self.styles.apply()
            else:
                await self.styles.remove()
        except Exception:
            _logger.warning("Could not bring overlay in line with preferences", exc_info=True)
        return self.state.enabled

    async def _apply_if_ready(self) -> None:
        if not self.state.enabled:
            return
        if await self.state.elements.resolve(self._page, CACHE_MAP, ANCHOR_SELECTOR) is None:
            return
        await self.styles.apply()

    async def _on_map_mounted(self, node: AddedNode) -> None:
        _logger.debug("Map mount detected (id=%s, classes=%s)", node.element_id, sorted(node.classes))
        if not self.state.enabled:
            return
        try:
            await self.styles.apply()
        except Exception:
            _logger.warning("Applying overlay after map mount failed", exc_info=True)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def handle_message(self, message: Any, sender: MessageSender | Mapping[str, Any] | None) -> dict[str, Any]:
        return await self.bridge.handle(message, sender)

    def get_state(self) -> dict[str, Any]:
        return self.bridge.get_state()

    async def set_enabled(self, enabled: bool) -> dict[str, Any]:
        """Persist *enabled* and toggle the overlay.

        A failed write is logged; the toggle still happens.
        """
        try:
            await self._preferences.set(PREFERENCE_KEY, enabled)
        except Exception:
            _logger.warning("Could not persist %s=%s", PREFERENCE_KEY, enabled, exc_info=True)
        return await self.bridge.handle({"action": ACTION_TOGGLE, "enabled": enabled}, self.sender)
