"""Query handler interfaces: triggered, global and fallback handlers."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Optional

from launchcore.extension import Extension
from launchcore.items import RankItem

if TYPE_CHECKING:
    from launchcore.usage import UsageHistory


class TriggerQueryHandler(Extension):
    """Handles a query alone when its trigger prefixes the query string.

    ``trigger`` holds the user configured trigger; the query engine sets it.
    """

    trigger: str = ""

    def synopsis(self) -> str:
        """Hint shown on an empty query."""
        return ""

    def default_trigger(self) -> str:
        """The trigger used when the user configured none."""
        return f"{self.id()} "

    def allow_trigger_remap(self) -> bool:
        """Whether the user may change the trigger."""
        return True

    def supports_fuzzy_matching(self) -> bool:
        """Whether the handler can match fuzzily."""
        return False

    def fuzzy_matching(self) -> bool:
        """Whether fuzzy matching is on."""
        return False

    def set_fuzzy_matching(self, enabled: bool) -> None:
        """Switch fuzzy matching. Does nothing by default."""

    @abstractmethod
    def handle_trigger_query(self, query: Any) -> None:
        """Process ``query`` and add results to it. Runs in a worker thread."""


class GlobalQueryHandler(TriggerQueryHandler):
    """Returns scored items so its results take part in the global search.

    ``usage_history`` is the usage history scores are adjusted with; without
    one, scores are left as they are.
    """

    usage_history: Optional["UsageHistory"] = None

    @abstractmethod
    def handle_global_query(self, query: Any) -> list[RankItem]:
        """Return the matching items with scores in (0, 1].

        An empty query string should return all items with score 0.
        """

    def apply_usage_score(self, rank_items: list[RankItem]) -> None:
        """Adjust the scores of ``rank_items`` in place by the user's usage."""
        if self.usage_history is not None:
            self.usage_history.apply_scores(self.id(), rank_items)

    def handle_trigger_query(self, query: Any) -> None:
        """Run the global query, rank the results and add them to ``query``."""
        rank_items = self.handle_global_query(query)
        self.apply_usage_score(rank_items)
        rank_items.sort(key=lambda r: r.score, reverse=True)
        query.add([r.item for r in rank_items])


class FallbackHandler(Extension):
    """Provides items shown when a query yielded no results."""

    @abstractmethod
    def fallbacks(self, query_string: str) -> list[Any]:
        """The fallback items for ``query_string``."""