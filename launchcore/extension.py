"""Extensions, the registry that holds them, and watchers that observe it."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Optional


class Signal:
    """A list of callbacks that are invoked in connection order."""

    def __init__(self) -> None:
        self._callbacks: list[Callable[..., Any]] = []

    def connect(self, callback: Callable[..., Any]) -> None:
        """Call ``callback`` whenever the signal is emitted."""
        self._callbacks.append(callback)

    def disconnect(self, callback: Callable[..., Any]) -> None:
        """Stop calling ``callback``. Raises ValueError if it is not connected."""
        try:
            self._callbacks.remove(callback)
        except ValueError:
            raise ValueError("callback is not connected") from None

    def emit(self, *args: Any) -> None:
        """Call every connected callback with ``args``."""
        for callback in list(self._callbacks):
            callback(*args)


class Extension(ABC):
    """An object of the extension system."""

    @abstractmethod
    def id(self) -> str:
        """The unique identifier of the extension."""

    @abstractmethod
    def name(self) -> str:
        """Pretty, human readable name."""

    @abstractmethod
    def description(self) -> str:
        """Brief description of what this extension provides."""


class ExtensionRegistry:
    """The common extension registry. Not thread safe."""

    def __init__(self) -> None:
        self._extensions: dict[str, Extension] = {}
        self.added = Signal()
        self.removed = Signal()

    def add(self, extension: Extension) -> None:
        """Register ``extension`` and emit ``added``."""
        ext_id = extension.id()
        if ext_id in self._extensions:
            raise ValueError(f"Extension already registered: '{ext_id}'.")
        self._extensions[ext_id] = extension
        self.added.emit(extension)

    def remove(self, extension: Extension) -> None:
        """Deregister ``extension`` and emit ``removed``."""
        ext_id = extension.id()
        if self._extensions.get(ext_id) is not extension:
            raise KeyError(f"Extension not registered: '{ext_id}'.")
        del self._extensions[ext_id]
        self.removed.emit(extension)

    def extensions(self, kind: Optional[type] = None) -> dict[str, Any]:
        """All registered extensions of ``kind``, ordered by id."""
        wanted = kind if kind is not None else Extension
        return {
            ext_id: ext
            for ext_id, ext in sorted(self._extensions.items())
            if isinstance(ext, wanted)
        }

    def extension(self, id: str, kind: Optional[type] = None) -> Any:
        """The extension with ``id`` if it is of ``kind``, else None."""
        ext = self._extensions.get(id)
        wanted = kind if kind is not None else Extension
        if ext is not None and isinstance(ext, wanted):
            return ext
        return None


class ExtensionWatcher:
    """Observes a registry for extensions of the kinds in ``kinds``."""

    kinds: tuple[type, ...] = (Extension,)

    def __init__(
        self,
        registry: Optional[ExtensionRegistry] = None,
        kinds: Optional[Iterable[type]] = None,
    ) -> None:
        if kinds is not None:
            self.kinds = tuple(kinds)
        self._registry: Optional[ExtensionRegistry] = None
        if registry is not None:
            self.set_registry(registry)

    def set_registry(self, registry: ExtensionRegistry) -> None:
        """Track ``registry`` instead of any previously tracked one."""
        self.close()
        registry.added.connect(self._handle_added)
        registry.removed.connect(self._handle_removed)
        self._registry = registry

    def close(self) -> None:
        """Stop tracking the registry."""
        if self._registry is not None:
            self._registry.added.disconnect(self._handle_added)
            self._registry.removed.disconnect(self._handle_removed)
            self._registry = None

    def _handle_added(self, extension: Extension) -> None:
        if isinstance(extension, self.kinds):
            self.on_add(extension)

    def _handle_removed(self, extension: Extension) -> None:
        if isinstance(extension, self.kinds):
            self.on_remove(extension)

    def on_add(self, extension: Extension) -> None:
        """Called when a watched extension has been registered."""

    def on_remove(self, extension: Extension) -> None:
        """Called when a watched extension has been deregistered."""