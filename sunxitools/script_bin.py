"""Binary (script.bin) encoding and decoding of script trees."""

from __future__ import annotations

import logging
import struct
from typing import NamedTuple

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

_HEAD = struct.Struct("<4I")         # sections, filesize, version[2]
_SECTION = struct.Struct("<32sii")   # name, length, offset (in words)
_ENTRY = struct.Struct("<32siI")     # name, offset (in words), pattern
_GPIO = struct.Struct("<6i")         # port, port_num, mul_sel, pull, drv_level, data
_WORD = struct.Struct("<I")

VERSION_LIMIT = 0x10
SECTION_LIMIT = 0x100

_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


class ScriptBinError(ValueError):
    """Raised when a binary script is malformed or cannot be produced."""


class BinLayout(NamedTuple):
    """Size of the binary form of a script, with its section and entry counts."""

    size: int
    sections: int
    entries: int


def _s32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _encode_name(name: str) -> bytes:
    return name.encode(_ENCODING, _ERRORS)[:31]


def _decode_cstring(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode(_ENCODING, _ERRORS)


def _entry_payload(entry: Entry) -> bytes:
    """Return the word-aligned data block of an entry."""
    if entry.type == ValueType.NULL:
        return bytes(_WORD.size)
    if entry.type == ValueType.SINGLE_WORD:
        assert isinstance(entry, SingleEntry)
        return _WORD.pack(entry.value & 0xFFFFFFFF)
    if entry.type == ValueType.STRING:
        assert isinstance(entry, StringEntry)
        raw = entry.value.encode(_ENCODING, _ERRORS)
        padded = (len(raw) + 3) // 4 * 4
        return raw.ljust(padded, b"\0")
    if entry.type == ValueType.GPIO:
        assert isinstance(entry, GpioEntry)
        return _GPIO.pack(_s32(entry.port), _s32(entry.port_num),
                          *(_s32(v) for v in entry.data))
    raise ScriptBinError(f"{entry.name}: unsupported value type {entry.type!r}")


def script_bin_size(script: Script) -> BinLayout:
    """Compute the size of the binary form of ``script``."""
    sections = entries = data = 0
    for section in script:
        sections += 1
        for entry in section:
            entries += 1
            data += len(_entry_payload(entry))
    size = (_HEAD.size + sections * _SECTION.size
            + entries * _ENTRY.size + data)
    log.debug("sections:%d entries:%d data:%d -> %d",
              sections, entries, data, size)
    return BinLayout(size, sections, entries)


def generate_bin(script: Script) -> bytes:
    """Encode ``script`` in the binary script format."""
    layout = script_bin_size(script)
    buf = bytearray(layout.size)
    _HEAD.pack_into(buf, 0, layout.sections, layout.size, 1, 2)

    section_pos = _HEAD.size
    entry_pos = section_pos + layout.sections * _SECTION.size
    data_pos = entry_pos + layout.entries * _ENTRY.size

    for section in script:
        _SECTION.pack_into(buf, section_pos, _encode_name(section.name),
                           len(section), entry_pos >> 2)
        section_pos += _SECTION.size
        for entry in section:
            payload = _entry_payload(entry)
            buf[data_pos:data_pos + len(payload)] = payload
            pattern = (int(entry.type) << 16) | (len(payload) >> 2)
            _ENTRY.pack_into(buf, entry_pos, _encode_name(entry.name),
                             data_pos >> 2, pattern)
            entry_pos += _ENTRY.size
            data_pos += len(payload)
    return bytes(buf)


def _unpack(layout: struct.Struct, data: bytes, offset: int) -> tuple:
    if offset < 0 or offset + layout.size > len(data):
        raise ScriptBinError(
            f"Malformed data: read of {layout.size} bytes at offset {offset} "
            f"is outside the {len(data)} byte input")
    return layout.unpack_from(data, offset)


def _valid_key(name: str) -> bool:
    return all((ch.isascii() and ch.isalnum()) or ch in "_-" for ch in name)


def _decompile_section(data: bytes, filename: str, name: str, length: int,
                       offset: int, script: Script) -> None:
    bin_size = len(data)
    if offset < 0 or offset > bin_size // 4:
        raise ScriptBinError(f"Malformed data: invalid section offset: {offset}")
    room = bin_size - 4 * offset
    if length < 0 or length > room // _ENTRY.size:
        raise ScriptBinError(f"Malformed data: invalid section length: {length}")
    try:
        section = script.add_section(name)
    except ValueError as exc:
        raise ScriptBinError(f"Malformed data: {exc}") from exc

    for index in range(length):
        raw_name, data_offset, pattern = _unpack(
            _ENTRY, data, (offset << 2) + index * _ENTRY.size)
        key = _decode_cstring(raw_name)
        value_pos = data_offset << 2
        vtype = (pattern >> 16) & 0xFFFF
        words = pattern & 0xFFFF

        if not _valid_key(key):
            log.warning('Malformed entry key "%s"', key)

        if vtype == ValueType.SINGLE_WORD:
            if words != 1:
                log.error("%s: %s.%s: invalid length %d (assuming %d)",
                          filename, section.name, key, words, 1)
            (value,) = _unpack(_WORD, data, value_pos)
            _add(section.add_single, key, value)
        elif vtype == ValueType.STRING:
            end = value_pos + (words << 2)
            if value_pos < 0 or end > bin_size:
                raise ScriptBinError(
                    f"{filename}: {section.name}.{key}: string outside of data")
            section.add_string(key, _decode_cstring(data[value_pos:end]))
        elif vtype == ValueType.GPIO:
            port, port_num, *settings = _unpack(_GPIO, data, value_pos)
            if words != 6:
                log.error("%s: %s.%s: invalid length %d (assuming %d)",
                          filename, section.name, key, words, 6)
            elif port == GPIO_PORT_POWER:
                pass
            elif port < 1 or port > GPIO_BANK_MAX:
                letter = chr(ord("A") + port - 1) if 1 <= port <= 26 else ""
                bank = f"{letter} " if letter else ""
                raise ScriptBinError(
                    f"{filename}: {section.name}.{key}: unknown GPIO port bank "
                    f"{bank}({port & 0xFFFFFFFF})")
            _add(section.add_gpio, key, port & 0xFFFFFFFF,
                 port_num & 0xFFFFFFFF, settings)
        elif vtype == ValueType.NULL:
            if not key:
                log.error("%s: empty entry in section: %s", filename, section.name)
            else:
                section.add_null(key)
        else:
            raise ScriptBinError(
                f"{filename}: {section.name}.{key}: unknown type {vtype}")


def _add(method, key, *args) -> None:
    try:
        method(key, *args)
    except ValueError as exc:
        raise ScriptBinError(f"Malformed data: {exc}") from exc


def decompile_bin(data: bytes, filename: str = "") -> Script:
    """Decode a binary script into a :class:`Script` tree."""
    data = bytes(data)
    sections, filesize, major, minor = _unpack(_HEAD, data, 0)
    if major > VERSION_LIMIT or minor > VERSION_LIMIT:
        raise ScriptBinError(f"Malformed data: version {major}.{minor}.")
    if sections > SECTION_LIMIT:
        raise ScriptBinError(f"Malformed data: too many sections ({sections}).")

    log.info("%s: version: %d.%d", filename, major, minor)
    log.info("%s: size: %d (%d sections), header value: %d",
             filename, len(data), sections, filesize)

    script = Script()
    for index in range(sections):
        raw_name, length, offset = _unpack(
            _SECTION, data, _HEAD.size + index * _SECTION.size)
        _decompile_section(data, filename, _decode_cstring(raw_name),
                           length, offset, script)
    return script