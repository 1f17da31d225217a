"""Geographic and viewport snapshot models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LatLng(BaseModel):
    """A geographic point as reported by the mapping library."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    lat: float = Field(ge=-90, le=90)
    lng: float


class LatLngBounds(BaseModel):
    """Rectangular bounds given by two opposite corners."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    south_west: LatLng
    north_east: LatLng

    @model_validator(mode="after")
    def _corners_ordered(self) -> LatLngBounds:
        if self.south_west.lat > self.north_east.lat:
            raise ValueError("south_west must not lie north of north_east")
        return self

    @classmethod
    def world(cls, max_latitude: float = 85.0) -> LatLngBounds:
        """Bounds covering every longitude and the usable latitude band."""
        return cls(
            south_west=LatLng(lat=-max_latitude, lng=-180.0),
            north_east=LatLng(lat=max_latitude, lng=180.0),
        )


class OriginalViewportState(BaseModel):
    """Map state captured before the first layout change of a session.

    Parameters
    ----------
    zoom : float or None
        Zoom level reported by the map, if it could be read.
    center : LatLng or None
        Map center, if it could be read.
    map_height : str or None
        Inline ``height`` of the map container (``""`` when unset).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    zoom: float | None = None
    center: LatLng | None = None
    map_height: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.zoom is None and self.center is None
