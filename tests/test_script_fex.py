import io

import pytest

from sunxitools.script import GpioEntry, Script, SingleEntry, StringEntry, NullEntry
from sunxitools.script_fex import FexParseError, generate_fex, parse_fex

CANONICAL = (
    "[product]\n"
    "version = 100\n"
    'machine = "evb"\n'
    "\n"
    "[dram_para]\n"
    "dram_baseaddr = 0x40000000\n"
    "dram_clk = 408\n"
    "dram_tpr0 = 0x30926692\n"
    "dram_emr1 = 0x4\n"
    "\n"
    "[lcd0_para]\n"
    "lcd_gamma_tbl_5 = 0x10\n"
    "\n"
    "[uart_para]\n"
    "uart_debug_port = 0\n"
    "uart_debug_tx = port:PB22<2><1><default><default>\n"
    "uart_debug_rx = port:PB23<2><1><default><default>\n"
    "empty_entry =\n"
    "\n"
    "[pmu]\n"
    "power_pin = port:power3<1><0><default><1>\n"
    "offset = -5\n"
    "\n"
)


def parse(text, filename="board.fex"):
    return parse_fex(io.StringIO(text), filename)


def generate(script):
    out = io.StringIO()
    generate_fex(out, script)
    return out.getvalue()


def test_canonical_round_trip():
    assert generate(parse(CANONICAL)) == CANONICAL


def test_parsed_tree_contents():
    script = parse(CANONICAL)
    assert [s.name for s in script] == [
        "product", "dram_para", "lcd0_para", "uart_para", "pmu"]
    uart = script.find_section("uart_para")
    tx = uart.find_entry("uart_debug_tx")
    assert isinstance(tx, GpioEntry)
    assert tx.port == 2
    assert tx.port_num == 22
    assert tx.data == (2, 1, -1, -1)
    assert isinstance(uart.find_entry("empty_entry"), NullEntry)
    machine = script.find_section("product").find_entry("machine")
    assert isinstance(machine, StringEntry)
    assert machine.value == "evb"


def test_negative_value_stored_as_word_and_printed_signed():
    script = parse("[s]\noffset = -5\n")
    entry = script.find_section("s").find_entry("offset")
    assert isinstance(entry, SingleEntry)
    assert entry.value == 0xFFFFFFFB
    assert generate(script) == "[s]\noffset = -5\n\n"


def test_power_gpio_port():
    script = parse("[pmu]\npower_pin = port:power3<1><0><default><1>\n")
    entry = script.find_section("pmu").find_entry("power_pin")
    assert entry.port == 0xFFFF
    assert entry.port_num == 3
    assert entry.data == (1, 0, -1, 1)


def test_blanks_comments_and_line_endings_are_normalised():
    messy = (
        "; comment\r\n"
        "# another\r\n"
        "  [sec]  \r\n"
        "\tkey=5;\r\n"
        ":bad line\r\n"
        'name =   "x y"  \r\n'
        "\n"
    )
    assert generate(parse(messy)) == '[sec]\nkey = 5\nname = "x y"\n\n'


def test_unquoted_value_is_string():
    script = parse("[s]\nk = hello world\n")
    entry = script.find_section("s").find_entry("k")
    assert isinstance(entry, StringEntry)
    assert entry.value == "hello world"


def test_largest_word_accepted():
    script = parse("[s]\nk = 4294967295\n")
    assert script.find_section("s").find_entry("k").value == 4294967295


def test_hex_and_octal_literals():
    script = parse("[s]\na = 0x1F\nb = 010\n")
    section = script.find_section("s")
    assert section.find_entry("a").value == 0x1F
    assert section.find_entry("b").value == 0o10


def test_generate_built_script_round_trips():
    script = Script()
    section = script.add_section("gpio_para")
    section.add_gpio("gpio_pin_1", 8, 10, (1, -1, 2, 0))
    section.add_string("label", "some text")
    section.add_null("nothing")
    back = parse(generate(script))
    entries = list(back.find_section("gpio_para"))
    assert [e.name for e in entries] == ["gpio_pin_1", "label", "nothing"]
    assert entries[0].port == 8
    assert entries[0].port_num == 10
    assert entries[0].data == (1, -1, 2, 0)
    assert entries[1].value == "some text"


def test_empty_script_generates_nothing():
    assert generate(Script()) == ""


@pytest.mark.parametrize("text, message", [
    ("k = 1\n", "data must follow a section"),
    ("[sec\n", "incomplete section declaration"),
    ("[se$c]\n", "invalid character"),
    ("[s]\nk = 12abc\n", "invalid character"),
    ("[s]\nk 5\n", "invalid character"),
    ("[s]\nk = 4294967296\n", "value out of range"),
    ("[s]\nk = port:PB300\n", "port out of range"),
    ("[s]\nk = port:PZ1\n", "parse error"),
    ("[s]\nk = port:PB1<2>junk\n", "invalid character"),
    ("[s]\nk = port:PBx\n", "invalid character"),
])
def test_parse_errors(text, message):
    with pytest.raises(FexParseError, match=message):
        parse(text)


def test_error_names_file_and_line():
    with pytest.raises(FexParseError, match=r"board\.fex:2:"):
        parse("[s]\nk = 12abc\n")