"""Pydantic models for the cross-context message protocol.

Requests follow a "validate → dispatch → respond" flow in
:class:`inatmap.bridge.MessageBridge`. Responses are dumped by alias so
the wire keys stay camelCase.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, StrictBool, field_validator
from pydantic.alias_generators import to_camel

from inatmap._constants import ACTION_TOGGLE


class _WireModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )


class MessageSender(_WireModel):
    """Identity of the context that sent a request."""

    id: str | None = None
    url: str | None = None

    @field_validator("id")
    @classmethod
    def _blank_is_missing(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()


class ToggleRequest(_WireModel):
    action: Literal["toggleFullMapHeight"] = ACTION_TOGGLE
    enabled: StrictBool


class ActionResult(_WireModel):
    """Acknowledgement for requests that change state."""

    success: bool
    error: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def ok(cls) -> ActionResult:
        return cls(success=True)

    @classmethod
    def failed(cls, error: str) -> ActionResult:
        return cls(success=False, error=error)


class StateReport(_WireModel):
    """Answer to ``getState``."""

    full_map_height: bool

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
