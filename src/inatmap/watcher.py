"""Mutation watching for the asynchronously mounted map."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from inatmap._constants import WATCH_FALLBACK_SELECTOR, WATCH_ROOT_SELECTORS
from inatmap.config import EnhancerConfig
from inatmap.host import AddedNode, HostPage, MutationBatch
from inatmap.scheduling import Debouncer, Scheduler
from inatmap.state.store import StateStore

_logger = logging.getLogger(__name__)


class MutationWatcher:
    """Observe one bounded container and react when the map mounts.

    The observer stays connected for the whole session because the page
    is a single-page app that may remount the map. Once the map has been
    seen and the overlay is applied, each batch costs a single flag check.
    """

    def __init__(
        self,
        *,
        config: EnhancerConfig,
        page: HostPage,
        state: StateStore,
        scheduler: Scheduler,
        on_map_mounted: Callable[[AddedNode], Awaitable[None] | None],
    ) -> None:
        self._page = page
        self._state = state
        self._debounced = Debouncer(scheduler, config.debounce_delay, on_map_mounted, label="map-mounted")
        self._root: Any | None = None
        self.batches_seen = 0

    @property
    def started(self) -> bool:
        return self._root is not None

    @property
    def pending(self) -> bool:
        return self._debounced.pending

    async def _find_root(self) -> Any | None:
        for selector in WATCH_ROOT_SELECTORS:
            node = await self._page.query_selector(selector)
            if node is not None:
                _logger.debug("Observing mutations under %s", selector)
                return node
        _logger.debug("No scoped container found, observing %s", WATCH_FALLBACK_SELECTOR)
        return await self._page.query_selector(WATCH_FALLBACK_SELECTOR)

    async def start(self) -> bool:
        """Start observing. Returns ``False`` when no root could be found."""
        if self._root is not None:
            return True
        root = await self._find_root()
        if root is None:
            _logger.warning("Nothing to observe; map mounts will not be detected")
            return False
        await self._page.observe(root, self.handle_batch)
        self._root = root
        return True

    def handle_batch(self, batch: MutationBatch) -> None:
        self.batches_seen += 1
        flags = self._state.flags
        if flags.settled:
            return
        for node in batch.added:
            if node.signals_map:
                flags.map_found = True
                self._debounced(node)
                break

    def stop(self) -> None:
        """Drop a pending trigger. The host observer itself is left running."""
        self._debounced.cancel()
