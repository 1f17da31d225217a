"""Internal constants shared across the library."""

STYLE_ID = "inat-map-enhancer-styles"
MARKER_CLASS = "inat-map-enhanced"
PREFERENCE_KEY = "fullMapHeight"

# ------------------------------------------------------------------
# Selectors on the iNaturalist observations page
# ------------------------------------------------------------------

MAP_ID = "map"
LEAFLET_CONTAINER_CLASS = "leaflet-container"
ANCHOR_SELECTOR = "#map, .leaflet-container"
LEAFLET_SELECTOR = ".leaflet-container"
MAP_CONTROLS_SELECTOR = ".map-control-group, .map-controls"

# Observation roots, most specific first. ``body`` is the last resort.
WATCH_ROOT_SELECTORS: tuple[str, ...] = (".container", ".ObservationsMapView", "main")
WATCH_FALLBACK_SELECTOR = "body"

OBS_PANEL_SELECTORS: tuple[str, ...] = (
    "#obs",
    ".observation-cards",
    ".ObservationsMapView .observations",
    ".observations",
    ".observation_list",
    "#observation_list",
    ".obs-container",
    ".observations-container",
    ".ObservationsMapView .sidebar",
    ".map-sidebar",
    ".map-results",
    ".map-panel",
    ".right-panel",
)

# ------------------------------------------------------------------
# Element cache keys
# ------------------------------------------------------------------

CACHE_MAP = "map"
CACHE_OBS_PANEL = "obsPanel"
CACHE_LEAFLET_MAP = "leafletMap"

# ------------------------------------------------------------------
# Message protocol
# ------------------------------------------------------------------

ACTION_TOGGLE = "toggleFullMapHeight"
ACTION_GET_STATE = "getState"
ERROR_UNKNOWN_ACTION = "Unknown action"
ERROR_INVALID_SENDER = "Invalid sender"
