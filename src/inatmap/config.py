"""Engine configuration for inatmap."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from inatmap.exceptions import EnhancerConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class EnhancerConfig:
    """Engine configuration.

    All layout offsets are in CSS pixels and feed the viewport-relative
    ``calc()`` expressions of the injected stylesheet.

    Parameters
    ----------
    listing_path : str
        URL path of the only page type the engine enhances.
    extension_id : str
        Identity a message sender must present to be accepted.
    header_offset : int
        Height reserved above the map (nav bar, search, stats, view toggle).
    footer_offset : int
        Height reserved below the map for the page footer.
    panel_width : int
        Width of the repositioned observation side panel.
    panel_spacing : int
        Gap between the side panel and the map edges.
    panel_top_gap : int
        Extra distance between the header and the top of the side panel.
    panel_height_trim : int
        Amount subtracted from the panel's available height.
    controls_margin : int
        Left margin applied to the map controls.
    legend_offset : int
        Distance of the map legend from the bottom of the map.
    legend_inset : int
        Distance of the map legend from the left edge.
    zoom_step : float
        Zoom decrement applied on the first viewport fit.
    min_zoom_level : float
        Floor below which the zoom is never decreased.
    bounded_min_zoom : float
        Minimum zoom enforced together with the world bounds.
    max_latitude : float
        Latitude limit of the bounding box (Web Mercator stops at ~85).
    debounce_delay : float
        Trailing-edge debounce window for mutation bursts, in seconds.
    reposition_panels : bool
        Apply inline positioning to the side panel and map controls
        after each paint follow-up.
    """

    listing_path: str = "/observations"
    extension_id: str = "inat-map-enhancer"
    header_offset: int = 210
    footer_offset: int = 190
    panel_width: int = 350
    panel_spacing: int = 25
    panel_top_gap: int = 60
    panel_height_trim: int = 90
    controls_margin: int = 20
    legend_offset: int = 70
    legend_inset: int = 35
    zoom_step: float = 0.5
    min_zoom_level: float = 1.0
    bounded_min_zoom: float = 2.0
    max_latitude: float = 85.0
    debounce_delay: float = 0.1
    reposition_panels: bool = True

    def __post_init__(self) -> None:
        if not self.listing_path.startswith("/"):
            raise EnhancerConfigError(f"listing_path must start with '/', got {self.listing_path!r}")
        if not self.extension_id.strip():
            raise EnhancerConfigError("extension_id must be non-empty")
        for name in (
            "header_offset",
            "footer_offset",
            "panel_width",
            "panel_spacing",
            "panel_top_gap",
            "panel_height_trim",
            "controls_margin",
            "legend_offset",
            "legend_inset",
        ):
            if getattr(self, name) < 0:
                raise EnhancerConfigError(f"{name} must be >= 0, got {getattr(self, name)}")
        if self.zoom_step <= 0:
            raise EnhancerConfigError(f"zoom_step must be > 0, got {self.zoom_step}")
        if self.debounce_delay < 0:
            raise EnhancerConfigError(f"debounce_delay must be >= 0, got {self.debounce_delay}")
        if not 0 < self.max_latitude <= 90:
            raise EnhancerConfigError(f"max_latitude must be in (0, 90], got {self.max_latitude}")

    @classmethod
    def from_env(cls, **overrides: Any) -> EnhancerConfig:
        """Create configuration from environment variables.

        Reads optional ``INATMAP_*`` variables. Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        EnhancerConfig
            Populated configuration.

        Raises
        ------
        EnhancerConfigError
            If a numeric variable cannot be parsed or a value is out of range.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_STR_MAP = {
            "INATMAP_LISTING_PATH": "listing_path",
            "INATMAP_EXTENSION_ID": "extension_id",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type]] = {
            "INATMAP_HEADER_OFFSET": ("header_offset", int),
            "INATMAP_FOOTER_OFFSET": ("footer_offset", int),
            "INATMAP_PANEL_WIDTH": ("panel_width", int),
            "INATMAP_PANEL_SPACING": ("panel_spacing", int),
            "INATMAP_ZOOM_STEP": ("zoom_step", float),
            "INATMAP_MIN_ZOOM_LEVEL": ("min_zoom_level", float),
            "INATMAP_BOUNDED_MIN_ZOOM": ("bounded_min_zoom", float),
            "INATMAP_DEBOUNCE_DELAY": ("debounce_delay", float),
        }
        for env_key, (field_name, kind) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = kind(val)
            except ValueError as exc:
                raise EnhancerConfigError(f"{env_key} must be a number, got {val!r}") from exc

        if "reposition_panels" not in overrides:
            config_kwargs["reposition_panels"] = _env_bool(env.get("INATMAP_REPOSITION_PANELS"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
