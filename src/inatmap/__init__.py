"""inatmap - Full-height map layout engine for the iNaturalist observations page."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("inatmap")
except PackageNotFoundError:
    __version__ = "0+local"
from inatmap.bridge import MessageBridge
from inatmap.classifier import is_eligible_page
from inatmap.config import EnhancerConfig
from inatmap.exceptions import (
    EnhancerConfigError,
    HostPageError,
    MapEnhancerError,
    PreferenceStoreError,
)
from inatmap.host import AddedNode, HostPage, MapInstance, MapLayer, MapLibrary, MutationBatch
from inatmap.map_adapter import GlobalLookup, LookupStrategy, MapAdapter, RegistryLookup
from inatmap.models import (
    ActionResult,
    LatLng,
    LatLngBounds,
    MessageSender,
    OriginalViewportState,
    Preferences,
    StateReport,
    ToggleRequest,
)
from inatmap.preferences import JsonFilePreferenceStore, MemoryPreferenceStore, PreferenceStore
from inatmap.scheduling import Debouncer, LoopScheduler, ManualScheduler, ScheduledCall, Scheduler
from inatmap.session import EnhancementSession
from inatmap.state.store import ElementCache, EnhancementFlags, StateStore
from inatmap.styles import StyleManager, build_stylesheet
from inatmap.watcher import MutationWatcher

__all__ = [
    "__version__",
    "ActionResult",
    "AddedNode",
    "Debouncer",
    "ElementCache",
    "EnhancementFlags",
    "EnhancementSession",
    "EnhancerConfig",
    "EnhancerConfigError",
    "GlobalLookup",
    "HostPage",
    "HostPageError",
    "JsonFilePreferenceStore",
    "LatLng",
    "LatLngBounds",
    "LookupStrategy",
    "LoopScheduler",
    "ManualScheduler",
    "MapAdapter",
    "MapEnhancerError",
    "MapInstance",
    "MapLayer",
    "MapLibrary",
    "MemoryPreferenceStore",
    "MessageBridge",
    "MessageSender",
    "MutationBatch",
    "MutationWatcher",
    "OriginalViewportState",
    "PreferenceStore",
    "PreferenceStoreError",
    "Preferences",
    "RegistryLookup",
    "ScheduledCall",
    "Scheduler",
    "StateReport",
    "StateStore",
    "StyleManager",
    "ToggleRequest",
    "build_stylesheet",
    "is_eligible_page",
]
