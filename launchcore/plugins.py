"""Plugin metadata, plugin loaders and the providers that find them."""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional

from launchcore.extension import Extension, Signal


class LoadType(Enum):
    """How a plugin has to be treated when loading."""

    FRONTEND = "frontend"
    NO_UNLOAD = "nounload"
    USER = "user"


class PluginState(Enum):
    """The state of a plugin."""

    UNLOADED = "unloaded"
    BUSY = "busy"
    LOADED = "loaded"


class MetadataError(ValueError):
    """Plugin metadata is missing or malformed."""


_REQUIRED_STRINGS = ("id", "version", "name", "description", "license", "url")

_LIST_FIELDS = {
    "maintainers": "maintainers",
    "lib_deps": "runtime_dependencies",
    "exec_deps": "binary_dependencies",
    "credits": "third_party_credits",
    "platforms": "platforms",
}


@dataclass
class PluginMetaData:
    """Common metadata of all plugins."""

    iid: str = ""
    id: str = ""
    version: str = ""
    name: str = ""
    description: str = ""
    long_description: str = ""
    license: str = ""
    url: str = ""
    maintainers: list[str] = field(default_factory=list)
    runtime_dependencies: list[str] = field(default_factory=list)
    binary_dependencies: list[str] = field(default_factory=list)
    third_party_credits: list[str] = field(default_factory=list)
    platforms: list[str] = field(default_factory=list)
    load_type: LoadType = LoadType.USER

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PluginMetaData":
        """Build metadata from the mapping stored in a plugin's metadata.json."""
        if not isinstance(data, Mapping):
            raise MetadataError("Plugin metadata must be an object.")

        values: dict[str, Any] = {}
        for key in _REQUIRED_STRINGS:
            value = data.get(key)
            if value is None:
                raise MetadataError(f"Plugin {key} is undefined")
            if not isinstance(value, str):
                raise MetadataError(f"Plugin {key} must be a string")
            values[key] = value

        for key in ("iid", "long_description"):
            value = data.get(key, "")
            if not isinstance(value, str):
                raise MetadataError(f"Plugin {key} must be a string")
            values[key] = value

        for key, attribute in _LIST_FIELDS.items():
            value = data.get(key, [])
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise MetadataError(f"Plugin {key} must be a list of strings")
            values[attribute] = list(value)

        load_type = data.get("loadtype", LoadType.USER.value)
        try:
            values["load_type"] = LoadType(load_type)
        except ValueError:
            raise MetadataError(f"Invalid plugin load type: {load_type!r}") from None

        return cls(**values)


class PluginLoader:
    """Loads and unloads one plugin and tracks its state.

    Subclasses implement ``_load``, returning the plugin instance, and may
    implement ``_unload``. ``state_changed`` is emitted on every state change.
    """

    def __init__(self, path: str, provider: "PluginProvider", metadata: PluginMetaData) -> None:
        self.path = str(path)
        self._provider = provider
        self._metadata = metadata
        self._instance: Any = None
        self._state = PluginState.UNLOADED
        self._state_info = ""
        self.state_changed = Signal()

    def provider(self) -> "PluginProvider":
        """The provider of this plugin."""
        return self._provider

    def metadata(self) -> PluginMetaData:
        """The plugin metadata."""
        return self._metadata

    def instance(self) -> Any:
        """The plugin instance, or None if not loaded."""
        return self._instance

    @property
    def state(self) -> PluginState:
        """The current state."""
        return self._state

    @property
    def state_info(self) -> str:
        """Detail about the latest state change, empty if there is none."""
        return self._state_info

    def _set_state(self, state: PluginState, info: str = "") -> None:
        self._state = state
        self._state_info = info
        self.state_changed.emit()

    def load(self) -> None:
        """Load the plugin. Errors of the loader are recorded and re-raised."""
        if self._state is not PluginState.UNLOADED:
            raise RuntimeError(f"Plugin '{self._metadata.id}' is not unloaded.")
        self._set_state(PluginState.BUSY, "Loading…")
        try:
            instance = self._load()
        except Exception as e:
            self._set_state(PluginState.UNLOADED, str(e))
            raise
        self._instance = instance
        self._set_state(PluginState.LOADED)

    def unload(self) -> None:
        """Unload the plugin. Errors of the loader are recorded and re-raised."""
        if self._state is not PluginState.LOADED:
            raise RuntimeError(f"Plugin '{self._metadata.id}' is not loaded.")
        self._set_state(PluginState.BUSY, "Unloading…")
        try:
            self._unload(self._instance)
        except Exception as e:
            self._set_state(PluginState.LOADED, str(e))
            raise
        self._instance = None
        self._set_state(PluginState.UNLOADED)

    @abstractmethod
    def _load(self) -> Any:
        """Create and return the plugin instance."""

    def _unload(self, instance: Any) -> None:
        """Release ``instance``. Does nothing by default."""


class PluginProvider(Extension):
    """An extension that provides plugins."""

    @abstractmethod
    def plugins(self) -> list[PluginLoader]:
        """The plugins provided."""


def frontend_plugins(loaders: Iterable[PluginLoader]) -> list[PluginLoader]:
    """The loaders among ``loaders`` whose plugin is a frontend."""
    return [loader for loader in loaders if loader.metadata().load_type is LoadType.FRONTEND]


def _is_loader(obj: Optional[Any]) -> bool:
    return isinstance(obj, PluginLoader)