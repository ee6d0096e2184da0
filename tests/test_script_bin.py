import logging
import struct

import pytest

from sunxitools.script import GPIO_PORT_POWER, Script
from sunxitools.script_bin import (
    ScriptBinError,
    decompile_bin,
    generate_bin,
    script_bin_size,
)

HEAD = 16
SECTION = 40
ENTRY = 40


def _sample():
    script = Script()
    product = script.add_section("product")
    product.add_single("version", 100)
    product.add_string("machine", "evb")
    product.add_null("empty")
    uart = script.add_section("uart_para")
    uart.add_gpio("uart_tx", 2, 22, (2, 1, -1, -1))
    uart.add_gpio("pwr", GPIO_PORT_POWER, 3, (1, -1, -1, 0))
    return script


def _entry_pos(data, section_index, entry_index):
    (offset,) = struct.unpack_from("<i", data, HEAD + section_index * SECTION + 36)
    return offset * 4 + entry_index * ENTRY


def test_round_trip():
    script = _sample()
    assert decompile_bin(generate_bin(script), "sample.bin") == script


def test_size_matches_generated_output():
    script = _sample()
    layout = script_bin_size(script)
    data = generate_bin(script)
    assert len(data) == layout.size
    assert layout.sections == 2
    assert layout.entries == 5


def test_header_fields():
    data = generate_bin(_sample())
    sections, filesize, major, minor = struct.unpack_from("<4I", data, 0)
    assert sections == 2
    assert filesize == len(data)
    assert (major, minor) == (1, 2)


def test_empty_script():
    data = generate_bin(Script())
    assert len(data) == HEAD
    assert len(decompile_bin(data, "empty.bin")) == 0


@pytest.mark.parametrize("text", ["", "abcd", "abcde", "a b c"])
def test_string_round_trip(text):
    script = Script()
    script.add_section("s").add_string("key", text)
    decoded = decompile_bin(generate_bin(script), "x")
    assert decoded.find_section("s").find_entry("key").value == text


def test_negative_single_wraps_to_unsigned():
    script = Script()
    script.add_section("s").add_single("key", -1)
    decoded = decompile_bin(generate_bin(script), "x")
    assert decoded.find_section("s").find_entry("key").value == 0xFFFFFFFF


def test_bad_version_rejected():
    data = bytearray(generate_bin(_sample()))
    struct.pack_into("<I", data, 8, 0x11)
    with pytest.raises(ScriptBinError, match="version"):
        decompile_bin(bytes(data), "x")


def test_too_many_sections_rejected():
    data = bytearray(generate_bin(_sample()))
    struct.pack_into("<I", data, 0, 0x101)
    with pytest.raises(ScriptBinError, match="too many sections"):
        decompile_bin(bytes(data), "x")


def test_unknown_type_rejected():
    data = bytearray(generate_bin(_sample()))
    pos = _entry_pos(data, 0, 0)
    struct.pack_into("<I", data, pos + 36, (3 << 16) | 1)
    with pytest.raises(ScriptBinError, match="unknown type"):
        decompile_bin(bytes(data), "x")


def test_unknown_gpio_bank_rejected():
    data = bytearray(generate_bin(_sample()))
    pos = _entry_pos(data, 1, 0)
    (data_offset,) = struct.unpack_from("<i", data, pos + 32)
    struct.pack_into("<i", data, data_offset * 4, 20)
    with pytest.raises(ScriptBinError, match="unknown GPIO port bank"):
        decompile_bin(bytes(data), "x")


def test_invalid_section_offset_rejected():
    data = bytearray(generate_bin(_sample()))
    struct.pack_into("<i", data, HEAD + 36, len(data))
    with pytest.raises(ScriptBinError, match="invalid section offset"):
        decompile_bin(bytes(data), "x")


def test_invalid_section_length_rejected():
    data = bytearray(generate_bin(_sample()))
    struct.pack_into("<i", data, HEAD + 32, -1)
    with pytest.raises(ScriptBinError, match="invalid section length"):
        decompile_bin(bytes(data), "x")


def test_truncated_input_rejected():
    with pytest.raises(ScriptBinError):
        decompile_bin(generate_bin(_sample())[:10], "x")


def test_single_with_wrong_length_is_kept(caplog):
    data = bytearray(generate_bin(_sample()))
    pos = _entry_pos(data, 0, 0)
    struct.pack_into("<I", data, pos + 36, (1 << 16) | 2)
    with caplog.at_level(logging.ERROR):
        decoded = decompile_bin(bytes(data), "x")
    assert "invalid length" in caplog.text
    assert decoded.find_section("product").find_entry("version").value == 100


def test_null_entry_with_empty_name_is_skipped(caplog):
    script = Script()
    script.add_section("s").add_null("gone")
    data = bytearray(generate_bin(script))
    pos = _entry_pos(data, 0, 0)
    data[pos:pos + 32] = bytes(32)
    with caplog.at_level(logging.ERROR):
        decoded = decompile_bin(bytes(data), "x")
    assert "empty entry" in caplog.text
    assert len(decoded.find_section("s")) == 0


def test_long_names_are_truncated_in_output():
    script = Script()
    script.add_section("s" * 40).add_single("k" * 40, 1)
    decoded = decompile_bin(generate_bin(script), "x")
    section = decoded.sections[0]
    assert section.name == "s" * 31
    assert section.entries[0].name == "k" * 31