"""Generation of U-Boot DRAM parameter source from a script tree."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, TextIO

from .script import (
    GPIO_PORT_POWER,
    Entry,
    GpioEntry,
    Script,
    Section,
    SingleEntry,
    ValueType,
)

log = logging.getLogger(__name__)


class UbootGenerationError(ValueError):
    """Raised when a script lacks what the U-Boot output needs."""


@dataclass(frozen=True)
class _Member:
    name: str
    translation: Optional[str] = None
    hexa: bool = False

    def key(self, prefix_len: int) -> str:
        return self.translation or self.name[prefix_len:]


_DRAM_MEMBERS = (
    _Member("dram_clock"),
    _Member("dram_clk", translation="clock"),
    _Member("dram_type"),
    _Member("dram_rank_num"),
    _Member("dram_density"),
    _Member("dram_chip_density", translation="density"),
    _Member("dram_io_width"),
    _Member("dram_bus_width"),
    _Member("dram_cas"),
    _Member("dram_zq"),
    _Member("dram_odt_en"),
    _Member("dram_size"),
    _Member("dram_tpr0", hexa=True),
    _Member("dram_tpr1", hexa=True),
    _Member("dram_tpr2", hexa=True),
    _Member("dram_tpr3", hexa=True),
    _Member("dram_tpr4", hexa=True),
    _Member("dram_tpr5", hexa=True),
    _Member("dram_emr1", hexa=True),
    _Member("dram_emr2", hexa=True),
    _Member("dram_emr3", hexa=True),
)

_HEADER = (
    "/* this file is generated, don't edit it yourself */\n\n"
    "#include <common.h>\n"
    "#include <asm/arch/dram.h>\n\n"
)


def _format_u32(key: str, hexa: bool, value: int) -> str:
    value &= 0xFFFFFFFF
    if hexa:
        text = hex(value) if value else "0"
    else:
        text = str(value)
    return f"\t.{key} = {text},\n"


def _format_gpio(key: str, gpio: GpioEntry) -> str:
    if gpio.port == GPIO_PORT_POWER:
        head = f"GPIO_AXP_CFG({gpio.port_num & 0xFFFFFFFF}"
    else:
        head = f"GPIO_CFG({gpio.port & 0xFFFFFFFF}, {gpio.port_num & 0xFFFFFFFF}"
    args = "".join(", 0xff" if v == -1 else f", {v & 0xFFFFFFFF}"
                   for v in gpio.data)
    return f"\t.{key} = {head}{args}),\n"


def _format_member(key: str, hexa: bool, entry: Entry) -> Optional[str]:
    if entry.type == ValueType.SINGLE_WORD:
        assert isinstance(entry, SingleEntry)
        return _format_u32(key, hexa, entry.value)
    if entry.type == ValueType.NULL:
        return f"\t/* {key} is NULL */\n"
    if entry.type == ValueType.GPIO:
        assert isinstance(entry, GpioEntry)
        return _format_gpio(key, entry)
    return None


def _generate_dram_struct(out: TextIO, section: Section) -> bool:
    ok = True
    out.write("static struct dram_para dram_para = {\n")
    for member in _DRAM_MEMBERS:
        entry = section.find_entry(member.name)
        if entry is None:
            continue
        text = _format_member(member.key(5), member.hexa, entry)
        if text is None:
            log.error("dram_para: %s: invalid field", entry.name)
            ok = False
        else:
            out.write(text)
    out.write("};\n")
    out.write("\nunsigned long sunxi_dram_init(void)\n"
              "{\n\treturn dramc_init(&dram_para);\n}\n")
    return ok


def generate_uboot(out: TextIO, script: Script) -> None:
    """Write U-Boot DRAM setup source for ``script`` to ``out``.

    Fields of an unsupported type are reported in the log and left out.
    """
    dram = script.find_section("dram_para")
    if dram is None:
        raise UbootGenerationError("dram_para: critical section missing")
    out.write(_HEADER)
    _generate_dram_struct(out, dram)