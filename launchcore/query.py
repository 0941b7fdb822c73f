"""Queries: what a frontend runs and reads matches and fallbacks from."""

from __future__ import annotations

import itertools
import os
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Optional

from launchcore.extension import Extension, Signal
from launchcore.handlers import FallbackHandler, GlobalQueryHandler, TriggerQueryHandler
from launchcore.items import Action, Item, RankItem
from launchcore.timing import TimePrinter, logger

if TYPE_CHECKING:
    from launchcore.usage import UsageHistory


@dataclass(frozen=True)
class Match:
    """An item in a result list together with the extension that produced it."""

    extension: Extension
    item: Any


class QueryBase(ABC):
    """Common part of triggered and global queries.

    ``run`` processes the query in a background thread; ``finished`` is
    emitted when processing is done.
    """

    _ids = itertools.count()

    def __init__(
        self,
        fallback_handlers: Iterable[FallbackHandler],
        string: str,
        usage_history: Optional["UsageHistory"] = None,
    ) -> None:
        self._fallback_handlers = list(fallback_handlers)
        self._string = string
        self._usage_history = usage_history
        self._matches: list[Match] = []
        self._fallbacks: list[Match] = []
        self._lock = threading.Lock()
        self._valid = True
        self._thread: Optional[threading.Thread] = None
        self._done = threading.Event()
        self.finished = Signal()
        self.query_id = next(QueryBase._ids)

    # ------------------------------------------------------------ interface

    @property
    @abstractmethod
    def trigger(self) -> str:
        """The trigger of this query, empty if there is none."""

    @property
    @abstractmethod
    def synopsis(self) -> str:
        """Usage hint of the handling extension."""

    @property
    def string(self) -> str:
        """The query string excluding the trigger."""
        return self._string

    @abstractmethod
    def _run(self) -> None:
        """Produce the matches of the query."""

    # ------------------------------------------------------------ lifecycle

    def run(self) -> None:
        """Start processing the query in a background thread."""
        if self._thread is not None:
            raise RuntimeError(f"Query #{self.query_id} has already been run.")
        self._thread = threading.Thread(
            target=self._work, name=f"query-{self.query_id}", daemon=True
        )
        self._thread.start()

    def _work(self) -> None:
        try:
            try:
                self._run_fallback_handlers()
                self._run()
            except Exception as e:
                logger.warning("Handler thread threw %s", e)
            self.finished.emit()
        finally:
            self._done.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until processing is done. Returns False on timeout."""
        if self._thread is None:
            return True
        return self._done.wait(timeout)

    def cancel(self) -> None:
        """Mark the query as no longer needed; handlers should stop."""
        self._valid = False

    def is_finished(self) -> bool:
        """True if the query is not being processed."""
        return self._thread is None or self._done.is_set()

    def is_valid(self) -> bool:
        """True if the query has not been cancelled."""
        return self._valid

    def is_triggered(self) -> bool:
        """True if the query has a trigger."""
        return bool(self.trigger)

    # -------------------------------------------------------------- results

    def matches(self) -> list[Match]:
        """A snapshot of the matches."""
        with self._lock:
            return list(self._matches)

    def fallbacks(self) -> list[Match]:
        """A snapshot of the fallbacks."""
        with self._lock:
            return list(self._fallbacks)

    def match_actions(self, item: int) -> list[Action]:
        """The actions of match number ``item``."""
        with self._lock:
            match = self._matches[item]
        return list(match.item.actions)

    def fallback_actions(self, item: int) -> list[Action]:
        """The actions of fallback number ``item``."""
        with self._lock:
            match = self._fallbacks[item]
        return list(match.item.actions)

    def activate_match(self, item: int, action: int = 0) -> None:
        """Run action number ``action`` of match number ``item``."""
        with self._lock:
            match = self._matches[item]
        self._activate(match, action)

    def activate_fallback(self, item: int, action: int = 0) -> None:
        """Run action number ``action`` of fallback number ``item``."""
        with self._lock:
            match = self._fallbacks[item]
        self._activate(match, action)

    def _activate(self, match: Match, action: int) -> None:
        chosen = list(match.item.actions)[action]
        if self._usage_history is not None:
            self._usage_history.add_activation(
                self._string, match.extension.id(), match.item.id, chosen.id
            )
        chosen()

    def _extend_matches(self, matches: Iterable[Match]) -> None:
        with self._lock:
            self._matches.extend(matches)

    def _run_fallback_handlers(self) -> None:
        text = f"{self.trigger}{self.string}"
        pairs = [
            (handler, RankItem(item, 1.0))
            for handler in self._fallback_handlers
            for item in handler.fallbacks(text)
        ]
        if self._usage_history is not None:
            self._usage_history.apply_pair_scores(pairs)
        pairs.sort(key=lambda pair: pair[1].score, reverse=True)
        with self._lock:
            self._fallbacks.extend(Match(handler, r.item) for handler, r in pairs)


class TriggerQuery(QueryBase):
    """A query handled by the single handler whose trigger it starts with."""

    def __init__(
        self,
        fallback_handlers: Iterable[FallbackHandler],
        handler: TriggerQueryHandler,
        string: str,
        trigger: str,
        usage_history: Optional["UsageHistory"] = None,
    ) -> None:
        super().__init__(fallback_handlers, string, usage_history)
        self._handler = handler
        self._trigger = trigger
        self._synopsis = handler.synopsis()

    @property
    def trigger(self) -> str:
        return self._trigger

    @property
    def synopsis(self) -> str:
        return self._synopsis

    def add(self, items: Any) -> None:
        """Append one item or an iterable of items to the matches."""
        if isinstance(items, Item):
            items = [items]
        self._extend_matches(Match(self._handler, item) for item in items)

    def _run(self) -> None:
        message = f"TIME: {{}} µs ['{self._handler.id()}':'{self._string}']"
        with TimePrinter(message, unit="µs"):
            try:
                self._handler.handle_trigger_query(self)
            except Exception as e:
                logger.warning("Handler thread threw %s", e)


class GlobalQuery(QueryBase):
    """A query answered by all enabled global handlers, ranked by score."""

    def __init__(
        self,
        fallback_handlers: Iterable[FallbackHandler],
        query_handlers: Iterable[GlobalQueryHandler],
        string: str,
        usage_history: Optional["UsageHistory"] = None,
    ) -> None:
        super().__init__(fallback_handlers, string, usage_history)
        self._query_handlers = list(query_handlers)

    @property
    def trigger(self) -> str:
        return ""

    @property
    def synopsis(self) -> str:
        return ""

    def _run(self) -> None:
        collected: list[tuple[GlobalQueryHandler, RankItem]] = []
        collected_lock = threading.Lock()

        def run_handler(handler: GlobalQueryHandler) -> None:
            try:
                message = f"TIME: {{}} µs [{handler.id()}:'{self._string}']"
                with TimePrinter(message, unit="µs"):
                    rank_items = handler.handle_global_query(self)
                    if not rank_items:
                        return
                    handler.apply_usage_score(rank_items)
                with collected_lock:
                    collected.extend((handler, r) for r in rank_items)
            except Exception as e:
                logger.warning("Global search: %s threw %s", handler.id(), e)

        if self._query_handlers:
            workers = min(len(self._query_handlers), os.cpu_count() or 1)
            with ThreadPoolExecutor(max_workers=workers) as pool:
                list(pool.map(run_handler, self._query_handlers))

        with TimePrinter(f"TIME: {{}} ms, Sorting global query '{self._string}' results") as tp:
            collected.sort(key=lambda pair: (pair[1].score, pair[1].item.text), reverse=True)
            tp.restart(f"TIME: {{}} ms, adding global query '{self._string}' results")
            self._extend_matches(Match(handler, r.item) for handler, r in collected)