"""Result items, their actions and scored wrappers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass
class Action:
    """An action a user can run on an item."""

    id: str
    text: str
    function: Callable[[], Any]

    def __call__(self) -> None:
        """Run the action."""
        self.function()


class Item(ABC):
    """An item displayed in the query results list."""

    @property
    @abstractmethod
    def id(self) -> str:
        """Identifier, unique per extension."""

    @property
    @abstractmethod
    def text(self) -> str:
        """Primary text. Must not be empty, its length is used for scoring."""

    @property
    @abstractmethod
    def subtext(self) -> str:
        """Secondary descriptive text."""

    @property
    @abstractmethod
    def icon_urls(self) -> list[str]:
        """Urls used to look up the item icon."""

    @property
    def input_action_text(self) -> str:
        """Replacement text for the input line."""
        return ""

    @property
    def actions(self) -> list[Action]:
        """The actions a user can run."""
        return []


@dataclass
class StandardItem:
    """General purpose value type item."""

    id: str = ""
    text: str = ""
    subtext: str = ""
    input_action_text: str = ""
    icon_urls: list[str] = field(default_factory=list)
    actions: list[Action] = field(default_factory=list)


Item.register(StandardItem)


@dataclass
class RankItem:
    """An item with a match score, used to rank results of several handlers."""

    item: Any
    score: float


@dataclass
class IndexItem:
    """An item together with the string it is looked up by."""

    item: Any
    string: str