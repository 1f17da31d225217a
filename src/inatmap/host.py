"""Structural interfaces for the page and the mapping library.

The engine never touches a browser directly. Everything it needs from the
host page and from the Leaflet runtime is expressed here, which keeps the
production implementation (:mod:`inatmap.browser`) concrete while tests
pass in-memory doubles.

Node handles are opaque: whatever ``query_selector`` returns is handed
back unchanged to the other ``HostPage`` methods.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from inatmap._constants import LEAFLET_CONTAINER_CLASS, MAP_ID
from inatmap.models.viewport import LatLng, LatLngBounds


@dataclass(frozen=True)
class AddedNode:
    """Summary of one element node added to the observed subtree.

    ``contains_map_root`` tells whether the node has a descendant carrying
    the Leaflet container class. ``node`` is a host handle when the host
    can provide one.
    """

    element_id: str | None = None
    classes: frozenset[str] = frozenset()
    contains_map_root: bool = False
    node: Any = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> AddedNode:
        raw_classes = record.get("classes") or ()
        if isinstance(raw_classes, str):
            raw_classes = raw_classes.split()
        element_id = record.get("id") or None
        return cls(
            element_id=element_id if isinstance(element_id, str) else None,
            classes=frozenset(str(c) for c in raw_classes),
            contains_map_root=bool(record.get("containsMapRoot")),
        )

    @property
    def signals_map(self) -> bool:
        """Whether this node is, or wraps, the map container."""
        return (
            self.element_id == MAP_ID
            or LEAFLET_CONTAINER_CLASS in self.classes
            or self.contains_map_root
        )


@dataclass(frozen=True)
class MutationBatch:
    """One delivery of child-list mutations from the observer."""

    added: tuple[AddedNode, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, nodes: Iterable[AddedNode]) -> MutationBatch:
        return cls(added=tuple(nodes))


MutationCallback = Callable[[MutationBatch], None]


class HostPage(Protocol):
    """DOM operations the engine performs on the page."""

    async def current_url(self) -> str: ...

    async def query_selector(self, selector: str) -> Any | None: ...

    async def is_attached(self, node: Any) -> bool: ...

    async def replace_style(self, style_id: str, css: str) -> None:
        """Remove every node with ``style_id`` and append a fresh ``<style>``."""
        ...

    async def remove_style(self, style_id: str) -> bool: ...

    async def add_body_class(self, name: str) -> None: ...

    async def remove_body_class(self, name: str) -> None: ...

    async def get_inline_styles(self, node: Any, properties: Sequence[str]) -> dict[str, str]: ...

    async def set_inline_styles(self, node: Any, styles: Mapping[str, str]) -> None:
        """Set inline properties; an empty value removes the property."""
        ...

    async def dispatch_resize(self) -> None: ...

    async def next_frame(self) -> None:
        """Return once the page has rendered its next frame."""
        ...

    async def observe(self, root: Any, callback: MutationCallback) -> None:
        """Deliver child-list/subtree mutations under ``root`` to ``callback``."""
        ...

    async def leaflet_id(self, node: Any) -> int | None: ...


class MapLayer(Protocol):
    """A layer attached to a map instance."""

    @property
    def is_tile_layer(self) -> bool: ...

    async def set_option(self, name: str, value: Any) -> None: ...


class MapInstance(Protocol):
    """The subset of the Leaflet map API the engine calls."""

    async def get_zoom(self) -> float: ...

    async def set_zoom(self, zoom: float, *, animate: bool) -> None: ...

    async def get_center(self) -> LatLng: ...

    async def pan_to(self, center: LatLng, *, animate: bool) -> None: ...

    async def invalidate_size(self, *, animate: bool, pan: bool) -> None: ...

    async def set_max_bounds(self, bounds: LatLngBounds) -> None: ...

    async def set_min_zoom(self, zoom: float) -> None: ...

    async def each_layer(self, callback: Callable[[MapLayer], Awaitable[None]]) -> None: ...


class MapLibrary(Protocol):
    """Ways the host page exposes live map instances."""

    async def instance_for(self, leaflet_id: int) -> MapInstance | None:
        """Look up the library's per-element instance registry."""
        ...

    async def global_instance(self) -> MapInstance | None:
        """Return the map singleton the host page publishes, if any."""
        ...
