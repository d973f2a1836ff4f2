"""
Console state: the append-only history log and its entries.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, List, Protocol, Union

from gemini_explorer.operations.results import OperationResult, TextResult

WELCOME_MESSAGE = (
    "Welcome to the Gemini API Terminal Explorer. Type 'help' for a list of commands."
)


class EntryKind(str, Enum):
    command = "command"
    output = "output"
    system = "system"
    error = "error"


EntryContent = Union[str, OperationResult]


@dataclass
class HistoryEntry:
    kind: EntryKind
    content: EntryContent
    sequence: int


class HistoryListener(Protocol):
    def on_append(self, entry: HistoryEntry) -> None: ...

    def on_extend(self, entry: HistoryEntry, text: str) -> None: ...

    def on_reset(self, entry: HistoryEntry) -> None: ...


class HistoryLog:
    """Append-only record of everything shown in the console.

    Only the most recently appended entry may change after it is added, and
    only by extending its text (used while a response streams in).
    """

    def __init__(self) -> None:
        self._entries: List[HistoryEntry] = []
        self._next_sequence = 0
        self._listeners: List[HistoryListener] = []
        self._entries.append(self._make(EntryKind.system, WELCOME_MESSAGE))

    def _make(self, kind: EntryKind, content: EntryContent) -> HistoryEntry:
        entry = HistoryEntry(kind=kind, content=content, sequence=self._next_sequence)
        self._next_sequence += 1
        return entry

    def subscribe(self, listener: HistoryListener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def append(self, kind: EntryKind, content: EntryContent) -> HistoryEntry:
        entry = self._make(kind, content)
        self._entries.append(entry)
        for listener in list(self._listeners):
            listener.on_append(entry)
        return entry

    def extend_last(self, text: str) -> HistoryEntry:
        """Append ``text`` to the content of the most recent entry."""
        if not self._entries:
            raise IndexError("history is empty")
        entry = self._entries[-1]
        if isinstance(entry.content, TextResult):
            entry.content.text += text
        elif isinstance(entry.content, str):
            entry.content += text
        else:
            raise TypeError(f"cannot extend {type(entry.content).__name__} content")
        for listener in list(self._listeners):
            listener.on_extend(entry, text)
        return entry

    def reset(self) -> None:
        """Drop every entry and start again from the welcome message."""
        self._entries = [self._make(EntryKind.system, WELCOME_MESSAGE)]
        for listener in list(self._listeners):
            listener.on_reset(self._entries[0])

    @property
    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    @property
    def last(self) -> HistoryEntry:
        return self._entries[-1]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(list(self._entries))
