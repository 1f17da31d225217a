"""Typed models for viewport snapshots, preferences and messages."""

from inatmap.models.messages import (
    ActionResult,
    MessageSender,
    StateReport,
    ToggleRequest,
)
from inatmap.models.preferences import Preferences
from inatmap.models.viewport import LatLng, LatLngBounds, OriginalViewportState

__all__ = [
    "ActionResult",
    "LatLng",
    "LatLngBounds",
    "MessageSender",
    "OriginalViewportState",
    "Preferences",
    "StateReport",
    "ToggleRequest",
]
