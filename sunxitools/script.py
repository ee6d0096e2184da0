"""In-memory tree of a sunxi script: named sections holding typed entries."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import ClassVar, Iterator, Optional, Sequence

NAME_MAX = 31
"""Longest section or entry name kept; longer names are truncated."""

GPIO_BANK_MAX = 14
"""Number of GPIO banks (A to N)."""

GPIO_PORT_POWER = 0xFFFF
"""Port value marking a ``port:powerN`` GPIO."""


class ValueType(enum.IntEnum):
    """Kinds of values an entry may hold, numbered as in the binary format."""

    SINGLE_WORD = 1
    STRING = 2
    MULTI_WORD = 3
    GPIO = 4
    NULL = 5


def _truncate(name: str) -> str:
    return name[:NAME_MAX]


@dataclass
class Entry:
    """A named value inside a section."""

    name: str
    type: ClassVar[ValueType]

    def __post_init__(self) -> None:
        self.name = _truncate(self.name)


@dataclass
class NullEntry(Entry):
    """An entry without a value."""

    type: ClassVar[ValueType] = ValueType.NULL


@dataclass
class SingleEntry(Entry):
    """An entry holding one 32-bit word."""

    value: int = 0
    type: ClassVar[ValueType] = ValueType.SINGLE_WORD

    def __post_init__(self) -> None:
        super().__post_init__()
        self.value &= 0xFFFFFFFF


@dataclass
class StringEntry(Entry):
    """An entry holding a string."""

    value: str = ""
    type: ClassVar[ValueType] = ValueType.STRING


@dataclass
class GpioEntry(Entry):
    """An entry describing a GPIO pin and its four settings.

    The settings are mode, pull, drive level and data; -1 means default.
    """

    port: int = 0
    port_num: int = 0
    data: tuple = (-1, -1, -1, -1)
    type: ClassVar[ValueType] = ValueType.GPIO

    def __post_init__(self) -> None:
        super().__post_init__()
        data = tuple(int(v) for v in self.data)
        if len(data) != 4:
            raise ValueError("GPIO data must hold exactly four values")
        self.data = data


@dataclass
class Section:
    """A named, ordered collection of entries."""

    name: str
    entries: list = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("section name must not be empty")
        self.name = _truncate(self.name)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def _append(self, entry: Entry) -> Entry:
        self.entries.append(entry)
        return entry

    @staticmethod
    def _require_name(name: str) -> None:
        if not name:
            raise ValueError("entry name must not be empty")

    def add_null(self, name: str) -> NullEntry:
        """Append an entry without a value."""
        self._require_name(name)
        return self._append(NullEntry(name))

    def add_single(self, name: str, value: int) -> SingleEntry:
        """Append a 32-bit word entry; the value is reduced modulo 2**32."""
        self._require_name(name)
        return self._append(SingleEntry(name, value))

    def add_string(self, name: str, value: str) -> StringEntry:
        """Append a string entry."""
        return self._append(StringEntry(name, value))

    def add_gpio(self, name: str, port: int, port_num: int,
                 data: Sequence[int]) -> GpioEntry:
        """Append a GPIO entry."""
        self._require_name(name)
        return self._append(GpioEntry(name, port, port_num, tuple(data)))

    def find_entry(self, name: str) -> Optional[Entry]:
        """Return the first entry with the given name, or None."""
        return next((e for e in self.entries if e.name == name), None)

    def remove_entry(self, entry: Entry) -> None:
        """Remove an entry from this section."""
        for i, candidate in enumerate(self.entries):
            if candidate is entry:
                del self.entries[i]
                return
        raise ValueError(f"entry {entry.name!r} is not in section {self.name!r}")


@dataclass
class Script:
    """The root of a script tree: an ordered list of sections."""

    sections: list = field(default_factory=list)

    def __iter__(self) -> Iterator[Section]:
        return iter(self.sections)

    def __len__(self) -> int:
        return len(self.sections)

    def add_section(self, name: str) -> Section:
        """Append a new section and return it."""
        section = Section(name)
        self.sections.append(section)
        return section

    def find_section(self, name: str) -> Optional[Section]:
        """Return the first section with the given name, or None."""
        return next((s for s in self.sections if s.name == name), None)

    def remove_section(self, section: Section) -> None:
        """Remove a section, with all its entries, from the script."""
        for i, candidate in enumerate(self.sections):
            if candidate is section:
                section.entries.clear()
                del self.sections[i]
                return
        raise ValueError(f"section {section.name!r} is not in the script")