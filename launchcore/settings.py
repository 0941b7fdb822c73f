"""Persistent key/value settings stored as JSON."""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Iterator, MutableMapping
from pathlib import Path
from typing import Any, Optional, Union


class Settings(MutableMapping):
    """A mapping of string keys to JSON values, persisted to a file.

    Keys conventionally use ``group/key`` form. Without a path the settings
    live in memory only. With ``autosync`` every change is written at once.
    """

    def __init__(
        self, path: Optional[Union[str, os.PathLike]] = None, *, autosync: bool = True
    ) -> None:
        self.path = Path(path) if path is not None else None
        self.autosync = autosync
        self._data: dict[str, Any] = {}
        if self.path is not None and self.path.exists():
            self._data = self._load(self.path)

    @staticmethod
    def _load(path: Path) -> dict[str, Any]:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Settings file does not hold an object: {path}")
        return data

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if not isinstance(key, str):
            raise TypeError(f"Settings keys must be strings, not {type(key).__name__}")
        try:
            encoded = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise TypeError(f"Value for '{key}' cannot be stored: {e}") from None
        self._data[key] = json.loads(encoded)
        if self.autosync:
            self.sync()

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        if self.autosync:
            self.sync()

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Settings({str(self.path) if self.path else None!r}, {self._data!r})"

    def sync(self) -> None:
        """Write the settings to their file atomically."""
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise