"""User preference mirror."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Preferences(BaseModel):
    """The user-facing settings, keyed as they are persisted.

    ``full_map_height`` is stored under ``fullMapHeight`` and defaults
    to enabled when nothing has been stored yet.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    full_map_height: bool = True
