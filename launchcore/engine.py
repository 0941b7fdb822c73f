"""The query engine: keeps track of handlers and builds queries."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from launchcore.extension import Extension, ExtensionRegistry, ExtensionWatcher
from launchcore.handlers import FallbackHandler, GlobalQueryHandler, TriggerQueryHandler
from launchcore.query import GlobalQuery, QueryBase, TriggerQuery
from launchcore.settings import Settings
from launchcore.timing import logger

if TYPE_CHECKING:
    from launchcore.usage import UsageHistory

CFG_TRIGGER = "trigger"
CFG_FUZZY = "fuzzy"
CFG_RUN_EMPTY_QUERY = "runEmptyQuery"
CFG_RUN_EMPTY_QUERY_DEF = False


class HandlerKind(Enum):
    """The roles a handler can play, with the settings key of its switch."""

    TRIGGER = (TriggerQueryHandler, "trigger_handler_enabled")
    GLOBAL = (GlobalQueryHandler, "global_handler_enabled")
    FALLBACK = (FallbackHandler, "fallback_hanlder_enabled")

    def __init__(self, handler_type: type, settings_key: str) -> None:
        self.handler_type = handler_type
        self.settings_key = settings_key


class TriggerError(Exception):
    """A trigger could not be set or activated."""


class QueryEngine(ExtensionWatcher):
    """Activates handlers as they are registered and creates queries."""

    kinds = (TriggerQueryHandler, GlobalQueryHandler, FallbackHandler)

    def __init__(
        self,
        registry: ExtensionRegistry,
        settings: Optional[Settings] = None,
        usage_history: Optional["UsageHistory"] = None,
    ) -> None:
        self._extension_registry = registry
        self._settings = settings if settings is not None else Settings()
        self.usage_history = usage_history
        self._enabled: dict[HandlerKind, dict[str, Any]] = {kind: {} for kind in HandlerKind}
        self._active_triggers: dict[str, TriggerQueryHandler] = {}
        self._run_empty_query = bool(
            self._settings.get(CFG_RUN_EMPTY_QUERY, CFG_RUN_EMPTY_QUERY_DEF)
        )
        super().__init__(registry)

    @staticmethod
    def _key(handler: Extension, name: str) -> str:
        return f"{handler.id()}/{name}"

    @staticmethod
    def _kinds_of(extension: Extension) -> list[HandlerKind]:
        return [kind for kind in HandlerKind if isinstance(extension, kind.handler_type)]

    # --------------------------------------------------------------- queries

    def query(self, query_string: str) -> QueryBase:
        """Create a query for ``query_string``. Call ``run`` on it to process it."""
        fallback_handlers = list(self._enabled[HandlerKind.FALLBACK].values())

        for trigger, handler in sorted(self._active_triggers.items()):
            if query_string.startswith(trigger):
                return TriggerQuery(
                    fallback_handlers,
                    handler,
                    query_string[len(trigger):],
                    trigger,
                    self.usage_history,
                )

        global_handlers = (
            list(self._enabled[HandlerKind.GLOBAL].values())
            if query_string or self._run_empty_query
            else []
        )
        return GlobalQuery(fallback_handlers, global_handlers, query_string, self.usage_history)

    # -------------------------------------------------------------- handlers

    def trigger_handlers(self) -> dict[str, TriggerQueryHandler]:
        """All registered trigger handlers by id."""
        return self._extension_registry.extensions(TriggerQueryHandler)

    def global_handlers(self) -> dict[str, GlobalQueryHandler]:
        """All registered global handlers by id."""
        return self._extension_registry.extensions(GlobalQueryHandler)

    def fallback_handlers(self) -> dict[str, FallbackHandler]:
        """All registered fallback handlers by id."""
        return self._extension_registry.extensions(FallbackHandler)

    def is_active(self, handler: Extension, kind: HandlerKind) -> bool:
        """Whether ``handler`` currently takes part in queries as ``kind``."""
        return handler.id() in self._enabled[kind]

    def set_active(self, handler: Extension, kind: HandlerKind, active: bool = True) -> None:
        """Let ``handler`` take part in queries as ``kind`` or not.

        Raises TriggerError if a trigger handler's trigger is taken.
        """
        enabled = self._enabled[kind]
        if kind is not HandlerKind.TRIGGER:
            if active:
                enabled.setdefault(handler.id(), handler)
            else:
                enabled.pop(handler.id(), None)
            return

        if self.is_active(handler, kind) == active:
            return
        if active:
            holder = self._active_triggers.get(handler.trigger)
            if holder is not None:
                raise TriggerError(
                    f"Trigger '{handler.trigger}' is reserved for '{holder.id()}'."
                )
            self._active_triggers[handler.trigger] = handler
            enabled[handler.id()] = handler
        else:
            self._active_triggers.pop(handler.trigger, None)
            del enabled[handler.id()]

    def is_enabled(self, handler: Extension, kind: HandlerKind) -> bool:
        """Whether the user enabled ``handler`` as ``kind``."""
        return bool(self._settings.get(self._key(handler, kind.settings_key), True))

    def set_enabled(self, handler: Extension, kind: HandlerKind, enabled: bool = True) -> None:
        """Persist the user's choice and (de)activate ``handler`` accordingly."""
        self._settings[self._key(handler, kind.settings_key)] = bool(enabled)
        self.set_active(handler, kind, enabled)

    def set_trigger(self, handler: TriggerQueryHandler, trigger: str) -> None:
        """Remap the trigger of ``handler``; an empty trigger restores the default."""
        if handler.trigger == trigger:
            return
        if not handler.allow_trigger_remap():
            raise TriggerError(f"'{handler.id()}' does not allow to remap trigger.")
        self.set_active(handler, HandlerKind.TRIGGER, False)
        key = self._key(handler, CFG_TRIGGER)
        if trigger:
            handler.trigger = trigger
            self._settings[key] = trigger
        else:
            handler.trigger = handler.default_trigger()
            self._settings.pop(key, None)
        self.set_active(handler, HandlerKind.TRIGGER)

    def fuzzy(self, handler: TriggerQueryHandler) -> bool:
        """Whether ``handler`` matches fuzzily."""
        return handler.fuzzy_matching()

    def set_fuzzy(self, handler: TriggerQueryHandler, enabled: bool) -> None:
        """Switch fuzzy matching of ``handler`` if it supports it."""
        if handler.supports_fuzzy_matching():
            self._settings[self._key(handler, CFG_FUZZY)] = bool(enabled)
            handler.set_fuzzy_matching(bool(enabled))

    @property
    def run_empty_query(self) -> bool:
        """Whether global handlers are asked on an empty query."""
        return self._run_empty_query

    @run_empty_query.setter
    def run_empty_query(self, value: bool) -> None:
        self._run_empty_query = bool(value)
        self._settings[CFG_RUN_EMPTY_QUERY] = self._run_empty_query

    # -------------------------------------------------------- registry events

    def on_add(self, extension: Extension) -> None:
        """Configure a registered handler and activate it where enabled."""
        if self.usage_history is not None and isinstance(extension, GlobalQueryHandler):
            extension.usage_history = self.usage_history
        for kind in self._kinds_of(extension):
            if kind is HandlerKind.TRIGGER:
                extension.trigger = str(
                    self._settings.get(
                        self._key(extension, CFG_TRIGGER), extension.default_trigger()
                    )
                )
                extension.set_fuzzy_matching(
                    bool(self._settings.get(self._key(extension, CFG_FUZZY), False))
                )
            if self.is_enabled(extension, kind):
                try:
                    self.set_active(extension, kind)
                except TriggerError as e:
                    logger.warning(
                        "Failed enabling trigger handler '%s': %s", extension.id(), e
                    )

    def on_remove(self, extension: Extension) -> None:
        """Deactivate a deregistered handler."""
        for kind in self._kinds_of(extension):
            self.set_active(extension, kind, False)