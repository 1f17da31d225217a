"""Page-session state: preferences mirror, progress flags and cached handles."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from inatmap.host import HostPage
from inatmap.models.preferences import Preferences
from inatmap.models.viewport import OriginalViewportState

_logger = logging.getLogger(__name__)


@dataclass
class EnhancementFlags:
    """Idempotency and progress guards."""

    styles_applied: bool = False
    map_found: bool = False

    @property
    def settled(self) -> bool:
        """Both the map has mounted and the overlay is in place."""
        return self.styles_applied and self.map_found


class ElementCache:
    """Logical key → node handle, refreshed when a node leaves the document."""

    def __init__(self) -> None:
        self._nodes: dict[str, Any] = {}

    async def resolve(self, page: HostPage, key: str, selector: str) -> Any | None:
        node = self._nodes.get(key)
        if node is not None and await page.is_attached(node):
            return node
        node = await page.query_selector(selector)
        if node is None:
            self._nodes.pop(key, None)
        else:
            self._nodes[key] = node
        return node

    def remember(self, key: str, node: Any) -> None:
        self._nodes[key] = node

    def peek(self, key: str) -> Any | None:
        return self._nodes.get(key)

    def invalidate(self, key: str | None = None) -> None:
        if key is None:
            self._nodes.clear()
        else:
            self._nodes.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._nodes


@dataclass
class InlineBackup:
    """Inline style values a follow-up overwrote on one node."""

    node: Any
    values: dict[str, str] = field(default_factory=dict)


class StateStore:
    """Mutable state owned by one :class:`~inatmap.session.EnhancementSession`.

    Only the engine components mutate it, always from the event loop
    thread, so the flags double as cooperative guards.
    """

    def __init__(self, preferences: Preferences | None = None) -> None:
        self.preferences = preferences or Preferences()
        self.flags = EnhancementFlags()
        self.elements = ElementCache()
        self.original_viewport: OriginalViewportState | None = None
        self.inline_backups: dict[str, InlineBackup] = {}

    @property
    def enabled(self) -> bool:
        return self.preferences.full_map_height

    def set_enabled(self, enabled: bool) -> None:
        if enabled != self.preferences.full_map_height:
            _logger.debug("Preference fullMapHeight -> %s", enabled)
        self.preferences = self.preferences.model_copy(update={"full_map_height": enabled})

    def capture_viewport(self, snapshot: OriginalViewportState) -> bool:
        """Store *snapshot* unless one is already held for this session."""
        if self.original_viewport is not None:
            return False
        self.original_viewport = snapshot
        return True

    def take_viewport(self) -> OriginalViewportState | None:
        """Return and clear the captured viewport."""
        snapshot, self.original_viewport = self.original_viewport, None
        return snapshot

    def remember_inline(self, key: str, node: Any, previous: dict[str, str]) -> None:
        """Keep the first-seen inline values of *node* for later restore."""
        existing = self.inline_backups.get(key)
        if existing is not None and existing.node is node:
            return
        self.inline_backups[key] = InlineBackup(node=node, values=dict(previous))

    def take_inline_backups(self) -> dict[str, InlineBackup]:
        backups, self.inline_backups = self.inline_backups, {}
        return backups
