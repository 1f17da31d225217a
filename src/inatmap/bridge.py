"""Validated dispatch of cross-context requests."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from inatmap._constants import ACTION_GET_STATE, ACTION_TOGGLE, ERROR_INVALID_SENDER, ERROR_UNKNOWN_ACTION
from inatmap.models.messages import ActionResult, MessageSender, StateReport, ToggleRequest
from inatmap.state.store import StateStore
from inatmap.styles import StyleManager

_logger = logging.getLogger(__name__)


def _describe_validation(exc: ValidationError) -> str:
    first = exc.errors()[0] if exc.errors() else None
    if first is None:
        return "Invalid request"
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"Invalid request: {location}: {first.get('msg', 'invalid value')}"


class MessageBridge:
    """Answer ``toggleFullMapHeight`` and ``getState`` requests.

    The sender check only confirms the request comes from the same
    extension identity; it is not a network security boundary.
    """

    def __init__(self, *, extension_id: str, state: StateStore, styles: StyleManager) -> None:
        self._extension_id = extension_id
        self._state = state
        self._styles = styles

    def is_trusted(self, sender: MessageSender) -> bool:
        return sender.id is not None and sender.id == self._extension_id

    async def handle(self, message: Any, sender: MessageSender | Mapping[str, Any] | None) -> dict[str, Any]:
        """Dispatch one request and return its wire response."""
        try:
            origin = sender if isinstance(sender, MessageSender) else MessageSender.model_validate(sender or {})
        except ValidationError:
            origin = MessageSender()
        if not self.is_trusted(origin):
            _logger.debug("Rejected message from sender %r", origin.id)
            return ActionResult.failed(ERROR_INVALID_SENDER).to_wire()

        action = message.get("action") if isinstance(message, Mapping) else None
        if action == ACTION_TOGGLE:
            return await self._toggle(message)
        if action == ACTION_GET_STATE:
            return self.get_state()
        _logger.debug("Unknown action %r", action)
        return ActionResult.failed(ERROR_UNKNOWN_ACTION).to_wire()

    async def _toggle(self, message: Mapping[str, Any]) -> dict[str, Any]:
        try:
            request = ToggleRequest.model_validate(message)
        except ValidationError as exc:
            return ActionResult.failed(_describe_validation(exc)).to_wire()
        return (await self.toggle(request.enabled)).to_wire()

    async def toggle(self, enabled: bool) -> ActionResult:
        """Mirror *enabled* and apply or remove the overlay.

        A missing map or ineligible page is not an error: there is simply
        nothing to toggle yet.
        """
        self._state.set_enabled(enabled)
        try:
            if enabled:
                await self._styles.apply()
            else:
                await self._styles.remove()
        except Exception as exc:
            _logger.warning("Toggle to %s failed", enabled, exc_info=True)
            return ActionResult.failed(str(exc) or type(exc).__name__)
        return ActionResult.ok()

    def get_state(self) -> dict[str, Any]:
        return StateReport(full_map_height=self._state.enabled).to_wire()
