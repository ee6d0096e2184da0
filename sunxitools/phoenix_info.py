"""Inspection and extraction of partitions from PhoenixCard images."""

from __future__ import annotations

import contextlib
import getopt
import io
import re
import struct
import sys
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator, List, Optional, Sequence

HEADER_OFFSET = 0x1C00
TABLE_SIZE = 0x400
SECTOR_SIZE = 0x200
SIGNATURE = b"PHOENIX_CARD_IMG"
MAX_PARTS = 62
PART_SIG = 0x00646461  # "add\0"

_HEAD = struct.Struct("<16sIHH8s")
_ENTRY = struct.Struct("<4I")

_PROG = "phoenix-info"


@dataclass(frozen=True)
class PhoenixEntry:
    """One partition record: start in 512-byte blocks, size in bytes."""

    start: int
    size: int
    unknown: int
    sig: int

    @property
    def offset(self) -> int:
        """Byte offset of the partition in the image."""
        return self.start * SECTOR_SIZE


@dataclass
class PhoenixTable:
    """The partition table of a PhoenixCard image."""

    signature: bytes
    unknown1: int
    parts: int
    unknown2: int
    pad: bytes
    entries: List[PhoenixEntry] = field(default_factory=list)

    @classmethod
    def from_bytes(cls, data: bytes) -> "PhoenixTable":
        """Decode a table from its 1 KiB binary form (short input is zero padded)."""
        data = bytes(data[:TABLE_SIZE]).ljust(TABLE_SIZE, b"\0")
        signature, unknown1, parts, unknown2, pad = _HEAD.unpack_from(data, 0)
        entries = [PhoenixEntry(*fields) for fields in
                   _ENTRY.iter_unpack(data[_HEAD.size:_HEAD.size + MAX_PARTS * _ENTRY.size])]
        return cls(signature, unknown1, parts, unknown2, pad, entries)

    @property
    def used_entries(self) -> List[PhoenixEntry]:
        """The entries the table says are in use."""
        return self.entries[:self.parts]


def _skip(stream: BinaryIO, count: int) -> None:
    try:
        stream.seek(count, io.SEEK_CUR)
    except (OSError, AttributeError):
        stream.read(count)


def read_ptable(stream: BinaryIO) -> PhoenixTable:
    """Read the partition table that follows the current position by 0x1C00 bytes.

    Raises ValueError if the signature does not match.
    """
    _skip(stream, HEADER_OFFSET)
    table = PhoenixTable.from_bytes(stream.read(TABLE_SIZE))
    if table.signature != SIGNATURE:
        raise ValueError("Not a phoenix image")
    return table


def _expand(dest: str, index: int) -> str:
    try:
        return dest % index
    except (TypeError, ValueError):
        return dest


def save_part(table: PhoenixTable, index: int, dest: str,
              stream: BinaryIO) -> str:
    """Copy partition ``index`` to the file named by the pattern ``dest``.

    ``dest`` may hold ``%d`` for the partition number; "-" means standard
    output. Returns the name written to.
    """
    if index < 0 or index > table.parts or index >= len(table.entries):
        raise IndexError("Part index out of range")
    entry = table.entries[index]
    outname = _expand(dest, index)
    stream.seek(entry.offset)
    data = stream.read(entry.size)
    if len(data) != entry.size:
        raise OSError(f"short read of part {index}: "
                      f"{len(data)} of {entry.size} bytes")
    if outname == "-":
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
    else:
        with open(outname, "wb") as out:
            out.write(data)
    return outname


def _usage(prog: str = _PROG) -> str:
    """Build the usage text for ``prog``."""
    options = [
        ("-v", "verbose"),
        ("-q", "quiet"),
        ("-p N", "part number"),
        ("-o X", "destination directory, file or pattern (%d for part number)"),
        ("-s", "save all parts"),
    ]
    lines = [f"{_PROG}", "", f"Usage: {prog} [options] [phoenix_image]"]
    lines.extend(f"\t{flag}\t{text}" for flag, text in options)
    return "\n".join(lines)


def _atoi(text: str) -> int:
    match = re.match(r"\s*([+-]?\d+)", text)
    return int(match.group(1)) if match else 0


@contextlib.contextmanager
def _open_input(args: Sequence[str]) -> Iterator[BinaryIO]:
    if args:
        with open(args[0], "rb") as stream:
            yield stream
    else:
        yield sys.stdin.buffer


def _print_table_header(table: PhoenixTable) -> None:
    print(f"????  : {table.unknown1:08x}")
    print(f"Parts : {table.parts}")
    print(f"????  : {table.unknown2:08x}")
    print(f"pad   : {table.pad.hex()}")
    print()


def _print_entry(index: int, entry: PhoenixEntry, verbose: int) -> None:
    print(f"part {index}:")
    print("\tstart: 0x%08x (%u / 0x%08x)"
          % (entry.offset & 0xFFFFFFFF, entry.start, entry.start))
    print(f"\tsize : {entry.size}")
    print(f"\t?????: {entry.unknown:08x}")
    if verbose > 1 or entry.sig != PART_SIG:
        print(f"\tsig??: {entry.sig:08x}")
    print()


def _run(stream: BinaryIO, verbose: int, save: bool, part: int,
         dest: str) -> int:
    try:
        table = read_ptable(stream)
    except ValueError:
        print("ERROR: Not a phoenix image", file=sys.stderr)
        return 1
    if verbose > 1:
        _print_table_header(table)
    for index, entry in enumerate(table.used_entries):
        selected = part in (-1, index)
        if verbose and selected:
            _print_entry(index, entry, verbose)
        if save and selected:
            try:
                save_part(table, index, dest, stream)
            except (OSError, IndexError) as exc:
                print(f"ERROR: {exc}", file=sys.stderr)
    sys.stdout.flush()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """List, and optionally extract, the partitions of a PhoenixCard image."""
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        opts, rest = getopt.getopt(args, "vqso:p:?")
    except getopt.GetoptError:
        print(_usage())
        return 1

    verbose = 1
    save = False
    part = -1
    dest = "%d.img"
    for opt, value in opts:
        if opt == "-v":
            verbose += 1
        elif opt == "-q":
            if verbose:
                verbose -= 1
        elif opt == "-o":
            dest = value
            save = True
        elif opt == "-p":
            save = True
            part = _atoi(value)
        elif opt == "-s":
            save = True
        else:
            print(_usage())
            return 1

    if save and "%" not in dest:
        base = dest or "./"
        if base.endswith("/") or part == 0:
            base = f"{base}/%d.img"
        dest = base

    if len(rest) > 1:
        print(_usage())
        return 1

    try:
        with _open_input(rest) as stream:
            return _run(stream, verbose, save, part, dest)
    except OSError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1