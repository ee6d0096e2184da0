"""Text (.fex) parsing and generation of script trees."""

from __future__ import annotations

import logging
import string
from typing import Callable, Iterable, Optional, TextIO, TypeVar

from .script import (
    GPIO_BANK_MAX,
    GPIO_PORT_POWER,
    Entry,
    GpioEntry,
    Script,
    Section,
    SingleEntry,
    StringEntry,
    ValueType,
)

log = logging.getLogger(__name__)

UINT32_MAX = 0xFFFFFFFF
INT32_MAX = 0x7FFFFFFF
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1

_HEXA_ENTRIES = (
    "dram_baseaddr", "dram_zq", "dram_tpr", "dram_emr",
    "g2d_size",
    "rtp_press_threshold", "rtp_sensitive_level",
    "ctp_twi_addr", "csi_twi_addr", "csi_twi_addr_b", "tkey_twi_addr",
    "lcd_gamma_tbl_",
    "gsensor_twi_addr",
)

_DIGITS = "0123456789abcdef"
_BLANKS = " \t"
_SPACES = " \t\n\r\f\v"

T = TypeVar("T")


class FexParseError(ValueError):
    """Raised when a .fex text cannot be parsed."""


# ---------------------------------------------------------------------------
# generator
# ---------------------------------------------------------------------------

def _s32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _is_hexa(name: str) -> bool:
    """Whether a single-word entry is conventionally written in hexadecimal."""
    stem = name.rstrip(string.digits)
    return any(candidate.startswith(stem) for candidate in _HEXA_ENTRIES)


def _format_entry(entry: Entry) -> str:
    if entry.type == ValueType.SINGLE_WORD:
        assert isinstance(entry, SingleEntry)
        if _is_hexa(entry.name):
            return f"{entry.name} = 0x{entry.value & 0xFFFFFFFF:x}\n"
        return f"{entry.name} = {_s32(entry.value)}\n"
    if entry.type == ValueType.STRING:
        assert isinstance(entry, StringEntry)
        return f'{entry.name} = "{entry.value}"\n'
    if entry.type == ValueType.GPIO:
        assert isinstance(entry, GpioEntry)
        port_num = entry.port_num & 0xFFFFFFFF
        if entry.port == GPIO_PORT_POWER:
            head = f"{entry.name} = port:power{port_num}"
        else:
            letter = chr((ord("A") - 1 + entry.port) & 0xFF)
            head = f"{entry.name} = port:P{letter}{port_num:02d}"
        settings = "".join("<default>" if v == -1 else f"<{v}>"
                           for v in entry.data)
        return f"{head}{settings}\n"
    if entry.type == ValueType.NULL:
        return f"{entry.name} =\n"
    raise ValueError(f"{entry.name}: unsupported value type {entry.type!r}")


def generate_fex(out: TextIO, script: Script) -> None:
    """Write ``script`` to ``out`` in .fex text form."""
    for section in script:
        out.write(f"[{section.name}]\n")
        for entry in section:
            out.write(_format_entry(entry))
        out.write("\n")


# ---------------------------------------------------------------------------
# parser
# ---------------------------------------------------------------------------

def _is_alnum(ch: str) -> bool:
    return ch.isascii() and ch.isalnum()


def _is_digit(ch: str) -> bool:
    return ch in string.digits


def _is_key_char(ch: str) -> bool:
    return _is_alnum(ch) or ch in "_-"


def _is_section_char(ch: str) -> bool:
    return _is_alnum(ch) or ch in "_-/"


def _skip_blank(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] in _BLANKS:
        pos += 1
    return pos


def _strtol(text: str, pos: int, base: int) -> tuple[int, int]:
    """Parse an integer the way C's strtol does.

    Returns the value and the index just past it; the index equals ``pos``
    when no digits were found.
    """
    i = pos
    n = len(text)
    while i < n and text[i] in _SPACES:
        i += 1
    sign = 1
    if i < n and text[i] in "+-":
        sign = -1 if text[i] == "-" else 1
        i += 1
    if base == 0:
        if (text.startswith(("0x", "0X"), i) and i + 2 < n
                and text[i + 2] in string.hexdigits):
            base = 16
            i += 2
        elif i < n and text[i] == "0":
            base = 8
        else:
            base = 10
    start = i
    valid = _DIGITS[:base]
    while i < n and len(text[i].lower()) == 1 and text[i].lower() in valid:
        i += 1
    if i == start:
        return 0, pos
    value = sign * int(text[start:i], base)
    return max(_INT64_MIN, min(_INT64_MAX, value)), i


class _LineParser:
    """Parses one line of .fex text into the script."""

    def __init__(self, script: Script, filename: str, lineno: int, line: str):
        self.script = script
        self.filename = filename
        self.lineno = lineno
        self.line = line

    def error(self, message: str) -> FexParseError:
        return FexParseError(f"{self.filename}:{self.lineno}: {message}")

    def invalid_at(self, pos: int) -> FexParseError:
        return self.error(f"invalid character at {pos + 1}.")

    def parse_error_at(self, pos: int) -> FexParseError:
        return self.error(f"parse error at {pos + 1}.")

    def add(self, method: Callable[..., T], *args) -> T:
        try:
            return method(*args)
        except ValueError as exc:
            raise self.error(str(exc)) from exc

    def parse_section(self, start: int) -> Section:
        line = self.line
        p = start + 1
        while p < len(line) and _is_section_char(line[p]):
            p += 1
        if p < len(line) and line[p] == "]" and p + 1 == len(line):
            return self.add(self.script.add_section, line[start + 1:p])
        if p < len(line):
            raise self.invalid_at(p)
        raise self.error("incomplete section declaration.")

    def parse_entry(self, section: Optional[Section], start: int) -> None:
        line = self.line
        if section is None:
            raise self.error("data must follow a section.")
        p = start
        while p < len(line) and _is_key_char(line[p]):
            p += 1
        key = line[start:p]
        p = _skip_blank(line, p)
        if p >= len(line) or line[p] != "=":
            raise self.invalid_at(p)
        p = _skip_blank(line, p + 1)

        if p == len(line):
            self.add(section.add_null, key)
        elif len(line) > p + 1 and line[p] == '"' and line[-1] == '"':
            self.add(section.add_string, key, line[p + 1:-1])
        elif line.startswith("port:", p):
            self.parse_gpio(section, key, p + 5)
        elif _is_digit(line[p]) or (line[p] == "-" and p + 1 < len(line)
                                    and _is_digit(line[p + 1])):
            value, end = _strtol(line, p, 0)
            if end != len(line):
                raise self.invalid_at(end)
            if value > UINT32_MAX:
                raise self.error(f"value out of range {value}.")
            self.add(section.add_single, key, value)
        else:
            log.warning("%s:%d: unquoted value '%s', assuming string",
                        self.filename, self.lineno, line[p:])
            self.add(section.add_string, key, line[p:])

    def parse_gpio(self, section: Section, key: str, p: int) -> None:
        line = self.line
        first = line[p] if p < len(line) else ""
        second = line[p + 1] if p + 1 < len(line) else ""
        last_bank = chr(ord("A") + GPIO_BANK_MAX)
        if first == "P" and not ("A" <= second <= last_bank):
            raise self.parse_error_at(p)
        if first != "P" and not line.startswith("power", p):
            raise self.parse_error_at(p)

        if first == "P":
            port = ord(second) - ord("A") + 1
            p += 2
        else:
            port = GPIO_PORT_POWER
            p += 5

        value, end = _strtol(line, p, 10)
        if end == p:
            raise self.invalid_at(p)
        if not 0 <= value <= 255:
            raise self.error(f"port out of range at {p + 1} ({value}).")
        port_num = value
        p = end

        data = [-1, -1, -1, -1]
        for index in range(4):
            if p >= len(line):
                break
            if line.startswith("<default>", p):
                p += 9
                continue
            if line[p] == "<":
                p += 1
                value, end = _strtol(line, p, 10)
                if end == p:
                    pass
                elif not 0 <= value <= INT32_MAX:
                    raise self.error(
                        f"value out of range at {p + 1} ({value}).")
                elif end >= len(line) or line[end] != ">":
                    p = end
                else:
                    p = end + 1
                    data[index] = value
                    continue
            break
        if p < len(line):
            raise self.invalid_at(p)
        self.add(section.add_gpio, key, port, port_num, data)


def _trim(raw: str) -> tuple[str, int]:
    """Cut line endings, trailing blanks and one trailing semicolon.

    Returns the trimmed line and the index of its first non-blank character.
    """
    if raw.endswith("\r\n"):
        raw = raw[:-2]
    elif raw.endswith("\n"):
        raw = raw[:-1]
    start = _skip_blank(raw, 0)
    end = len(raw)
    while end > start and raw[end - 1] in _BLANKS:
        end -= 1
    if end > start and raw[end - 1] == ";":
        end -= 1
    return raw[:end], start


def parse_fex(stream: Iterable[str], filename: str = "<input>") -> Script:
    """Parse .fex text lines from ``stream`` into a new :class:`Script`.

    Raises :class:`FexParseError` at the first malformed line.
    """
    script = Script()
    section: Optional[Section] = None
    for lineno, raw in enumerate(stream, 1):
        line, start = _trim(raw)
        if start == len(line) or line[start] in ";#":
            continue
        if line[start] == ":":
            log.warning("%s:%d: invalid line, suspecting typo/malformed comment.",
                        filename, lineno)
            continue
        parser = _LineParser(script, filename, lineno, line)
        if line[start] == "[":
            section = parser.parse_section(start)
        else:
            parser.parse_entry(section, start)
    return script