"""Usage history: records item activations and turns them into ranking scores."""

from __future__ import annotations

import os
import sqlite3
import threading
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from launchcore.items import RankItem
from launchcore.settings import Settings
from launchcore.timing import TimePrinter, logger

CFG_MEMORY_DECAY = "memoryDecay"
DEF_MEMORY_DECAY = 0.5
CFG_PRIO_PERFECT = "prioritizePerfectMatch"
DEF_PRIO_PERFECT = True

_CREATE_TABLE = (
    "CREATE TABLE IF NOT EXISTS activation ( "
    "    timestamp INTEGER DEFAULT CURRENT_TIMESTAMP, "
    "    query TEXT, "
    "    extension_id, "
    "    item_id TEXT, "
    "    action_id TEXT "
    "); "
)


@dataclass(frozen=True)
class Activation:
    """A single activation of an item action."""

    query: str
    extension_id: str
    item_id: str
    action_id: str


class UsageHistory:
    """Stores activations in an SQLite database and scores items by usage.

    Score bands applied by :meth:`apply_scores`::

        perfect,  recent   (3, 4]   3 + usage score
        perfect, !recent   (2, 3]   2 + 1 / len(text)
       !perfect,  recent   (1, 2]   1 + usage score
       !perfect, !recent   (0, 1]   match score, unchanged
        no match           (-1, 0]  -1 + 1 / len(text)

    The perfect bands only apply while perfect matches are prioritized.
    """

    def __init__(
        self,
        database: Union[str, os.PathLike] = ":memory:",
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings if settings is not None else Settings()
        self._data_lock = threading.RLock()
        self._db_lock = threading.RLock()

        database = str(database)
        if database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
        logger.debug("Database: Connecting…")
        with TimePrinter("Database: Connected ({} ms)."):
            self._conn = sqlite3.connect(database, check_same_thread=False)
        self._initialize_db()

        self._memory_decay = float(self._settings.get(CFG_MEMORY_DECAY, DEF_MEMORY_DECAY))
        self._prioritize_perfect_match = bool(
            self._settings.get(CFG_PRIO_PERFECT, DEF_PRIO_PERFECT)
        )
        self._usage_scores: dict[tuple[str, str], float] = {}
        self._update_scores()

    def __enter__(self) -> "UsageHistory":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ------------------------------------------------------------------ scores

    def _apply_score(self, extension_id: str, rank_item: RankItem) -> None:
        usage = self._usage_scores.get((extension_id, rank_item.item.id))
        if self._prioritize_perfect_match and rank_item.score == 1.0:
            if usage is not None:
                rank_item.score = 3.0 + usage
            else:
                rank_item.score = 2.0 + 1.0 / len(rank_item.item.text)
        elif usage is not None:
            rank_item.score = 1.0 + usage
        elif rank_item.score == 0.0:
            rank_item.score = -1.0 + 1.0 / len(rank_item.item.text)

    def apply_scores(self, extension_id: str, rank_items: Iterable[RankItem]) -> None:
        """Adjust the scores of ``rank_items`` of one extension in place."""
        with self._data_lock:
            for rank_item in rank_items:
                self._apply_score(extension_id, rank_item)

    def apply_pair_scores(self, pairs: Iterable[tuple[Any, RankItem]]) -> None:
        """Adjust scores of ``(extension, rank_item)`` pairs in place."""
        with self._data_lock:
            for extension, rank_item in pairs:
                self._apply_score(extension.id(), rank_item)

    @property
    def memory_decay(self) -> float:
        """Weight factor per activation of age; older activations count less."""
        with self._data_lock:
            return self._memory_decay

    @memory_decay.setter
    def memory_decay(self, value: float) -> None:
        self._settings[CFG_MEMORY_DECAY] = value
        with self._data_lock:
            self._memory_decay = float(value)
        self._update_scores()

    @property
    def prioritize_perfect_match(self) -> bool:
        """Whether perfect matches rank above all other matches."""
        with self._data_lock:
            return self._prioritize_perfect_match

    @prioritize_perfect_match.setter
    def prioritize_perfect_match(self, value: bool) -> None:
        self._settings[CFG_PRIO_PERFECT] = bool(value)
        with self._data_lock:
            self._prioritize_perfect_match = bool(value)

    def add_activation(
        self, query: str, extension_id: str, item_id: str, action_id: str
    ) -> None:
        """Record an activation and recompute the usage scores."""
        with self._db_lock:
            logger.debug("Database: Adding activation…")
            with TimePrinter("Database: Activation added ({} ms)."), self._conn:
                self._conn.execute(
                    "INSERT INTO activation (query, extension_id, item_id, action_id) "
                    "VALUES (:query, :extension_id, :item_id, :action_id);",
                    {
                        "query": query,
                        "extension_id": extension_id,
                        "item_id": item_id,
                        "action_id": action_id,
                    },
                )
        self._update_scores()

    def _update_scores(self) -> None:
        with TimePrinter("{} ms fetching activations.") as tp:
            activations = self.activations()
            tp.restart("{} ms computing usage scores.")

            decay = self.memory_decay
            weights: dict[tuple[str, str], float] = defaultdict(float)
            for age, activation in zip(range(len(activations), 0, -1), activations):
                weights[(activation.extension_id, activation.item_id)] += decay**age

            by_weight: dict[float, list[tuple[str, str]]] = defaultdict(list)
            for ids, weight in weights.items():
                by_weight[weight].append(ids)

            distinct = len(by_weight)
            scores = {
                ids: rank / distinct
                for rank, weight in enumerate(sorted(by_weight))
                for ids in by_weight[weight]
            }

        with self._data_lock:
            self._usage_scores = scores

    # ---------------------------------------------------------------- database

    def _initialize_db(self) -> None:
        with self._db_lock:
            logger.debug("Database: Initializing…")
            with TimePrinter("Database: Initialized ({} ms)."), self._conn:
                self._conn.execute(_CREATE_TABLE)

    def activations(self) -> list[Activation]:
        """All recorded activations that refer to an item, oldest first."""
        with self._db_lock:
            logger.debug("Database: Fetching activations…")
            with TimePrinter("Database: Activations fetched ({} ms)."):
                rows = self._conn.execute(
                    "SELECT query, extension_id, item_id, action_id "
                    "FROM activation WHERE item_id<>'' ORDER BY rowid"
                ).fetchall()
        return [Activation(*(str(v) if v is not None else "" for v in row)) for row in rows]

    def clear_activations(self) -> None:
        """Delete all recorded activations."""
        with self._db_lock:
            logger.debug("Database: Clearing activations…")
            with TimePrinter("Database: Activations cleared ({} ms)."), self._conn:
                self._conn.execute("DROP TABLE activation;")
            self._initialize_db()
        self._update_scores()

    def close(self) -> None:
        """Close the database connection."""
        with self._db_lock:
            self._conn.close()