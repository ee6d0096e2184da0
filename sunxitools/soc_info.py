"""Per-SoC memory layout and peripheral information for FEL operations."""

from __future__ import annotations

import struct
import sys
from dataclasses import dataclass
from typing import Optional, Tuple

SOC_NAME_MAX = 7
"""Longest SoC name string returned by :func:`get_soc_name_from_id`."""


@dataclass(frozen=True)
class SramSwapBuffer:
    """A pair of SRAM regions exchanged around SPL execution.

    ``buf1`` is the BROM buffer, ``buf2`` the backup location.
    """

    buf1: int
    buf2: int
    size: int


@dataclass(frozen=True)
class WatchdogInfo:
    """The watchdog register and the value that triggers a reset."""

    reg_mode: int
    reg_mode_value: int


@dataclass(frozen=True)
class SocInfo:
    """Memory layout and quirks of one SoC variant."""

    soc_id: int = 0
    name: Optional[str] = None
    spl_addr: int = 0
    scratch_addr: int = 0
    thunk_addr: int = 0
    thunk_size: int = 0
    needs_l2en: bool = False
    mmu_tt_addr: int = 0
    sid_base: int = 0
    sid_offset: int = 0
    rvbar_reg: int = 0
    watchdog: Optional[WatchdogInfo] = None
    sid_fix: bool = False
    needs_smc_workaround_if_zero_word_at_addr: int = 0
    sram_size: int = 0
    swap_buffers: Tuple[SramSwapBuffer, ...] = ()


_FEL_VERSION = struct.Struct("<8sIIHBBI2I")


@dataclass(frozen=True)
class FelVersion:
    """SoC version information as returned by the FEL protocol."""

    signature: bytes
    soc_id: int
    unknown_0a: int
    protocol: int
    unknown_12: int
    unknown_13: int
    scratchpad: int
    pad: Tuple[int, int] = (0, 0)

    SIZE = _FEL_VERSION.size

    @classmethod
    def from_bytes(cls, data: bytes) -> "FelVersion":
        """Decode the 32-byte little-endian version record."""
        if len(data) < _FEL_VERSION.size:
            raise ValueError(
                f"FEL version record needs {_FEL_VERSION.size} bytes, "
                f"got {len(data)}")
        (signature, soc_id, unknown_0a, protocol, unknown_12, unknown_13,
         scratchpad, pad0, pad1) = _FEL_VERSION.unpack_from(bytes(data), 0)
        return cls(signature, soc_id, unknown_0a, protocol, unknown_12,
                   unknown_13, scratchpad, (pad0, pad1))

    def to_bytes(self) -> bytes:
        """Encode the record in its 32-byte little-endian form."""
        return _FEL_VERSION.pack(self.signature, self.soc_id, self.unknown_0a,
                                 self.protocol, self.unknown_12,
                                 self.unknown_13, self.scratchpad, *self.pad)


def _buffers(*triples: Tuple[int, int, int]) -> Tuple[SramSwapBuffer, ...]:
    return tuple(SramSwapBuffer(*t) for t in triples)


# BROM FEL stacks on A10/A13/A20 are moved into SRAM A3/A4 while the SPL runs.
A10_A13_A20_SRAM_SWAP_BUFFERS = _buffers(
    (0x1C00, 0xA400, 0x0400),   # IRQ stack
    (0x5C00, 0xA800, 0x1400),   # stack
    (0x7C00, 0xBC00, 0x0400),   # something important
)

A31_SRAM_SWAP_BUFFERS = _buffers(
    (0x1800, 0x20000, 0x800),
    (0x5C00, 0x20800, 0x8000 - 0x5C00),
)

A64_SRAM_SWAP_BUFFERS = _buffers(
    (0x11C00, 0x31400, 0x0400),
    (0x15C00, 0x31800, 0x1400),
    (0x17C00, 0x32C00, 0x0400),
)

# SRAM shared with the OpenRISC core serves as backup storage.
AR100_ABUSING_SRAM_SWAP_BUFFERS = _buffers(
    (0x1800, 0x44000, 0x800),
    (0x5C00, 0x44800, 0x8000 - 0x5C00),
)

A80_SRAM_SWAP_BUFFERS = _buffers(
    (0x11800, 0x20000, 0x800),
    (0x15400, 0x20800, 0x18000 - 0x15400),
)

H6_SRAM_SWAP_BUFFERS = _buffers(
    (0x21C00, 0x42400, 0x0400),
    (0x25C00, 0x42800, 0x1400),
    (0x27C00, 0x43C00, 0x0400),
)

V831_SRAM_SWAP_BUFFERS = _buffers(
    (0x21000, 0x38000, 0x1000),
)

H616_SRAM_SWAP_BUFFERS = _buffers(
    (0x21000, 0x52A00, 0x1000),
)

R329_SRAM_SWAP_BUFFERS = _buffers(
    (0x101000, 0x13BC00, 0x0400),
)

F1C100S_SRAM_SWAP_BUFFERS = _buffers(
    (0x1C00, 0x9000, 0x0400),
    (0x5C00, 0x9400, 0x1400),
    (0x7C00, 0xA800, 0x0400),
)

A133_SRAM_SWAP_BUFFERS = _buffers(
    (0x21000, 0x43200, 0x0400),
    (0x40A00, 0x43600, 0x1800),
)

WD_A10_COMPAT = WatchdogInfo(reg_mode=0x01C20C94, reg_mode_value=3)
WD_H3_COMPAT = WatchdogInfo(reg_mode=0x01C20CB8, reg_mode_value=1)
WD_A80 = WatchdogInfo(reg_mode=0x06000CB8, reg_mode_value=1)
WD_H6_COMPAT = WatchdogInfo(reg_mode=0x030090B8, reg_mode_value=1)

SOC_INFO_TABLE: Tuple[SocInfo, ...] = (
    SocInfo(soc_id=0x1623, name="A10", scratch_addr=0x1000,
            thunk_addr=0xA200, thunk_size=0x200,
            swap_buffers=A10_A13_A20_SRAM_SWAP_BUFFERS,
            sram_size=48 * 1024, needs_l2en=True,
            sid_base=0x01C23800, watchdog=WD_A10_COMPAT),
    SocInfo(soc_id=0x1625, name="A13", scratch_addr=0x1000,
            thunk_addr=0xA200, thunk_size=0x200,
            swap_buffers=A10_A13_A20_SRAM_SWAP_BUFFERS,
            sram_size=48 * 1024, needs_l2en=True,
            sid_base=0x01C23800, watchdog=WD_A10_COMPAT),
    SocInfo(soc_id=0x1651, name="A20", scratch_addr=0x1000,
            thunk_addr=0xA200, thunk_size=0x200,
            swap_buffers=A10_A13_A20_SRAM_SWAP_BUFFERS,
            sram_size=48 * 1024,
            sid_base=0x01C23800, watchdog=WD_A10_COMPAT),
    SocInfo(soc_id=0x1650, name="A23", scratch_addr=0x1000,
            thunk_addr=0x46E00, thunk_size=0x200,
            swap_buffers=AR100_ABUSING_SRAM_SWAP_BUFFERS,
            sram_size=64 * 1024,
            sid_base=0x01C23800, watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1633, name="A31", scratch_addr=0x1000,
            thunk_addr=0x22E00, thunk_size=0x200,
            swap_buffers=A31_SRAM_SWAP_BUFFERS,
            sram_size=32 * 1024, watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1667, name="A33", scratch_addr=0x1000,
            thunk_addr=0x46E00, thunk_size=0x200,
            swap_buffers=AR100_ABUSING_SRAM_SWAP_BUFFERS,
            sram_size=32 * 1024,
            sid_base=0x01C23800, watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1689, name="A64", spl_addr=0x10000,
            scratch_addr=0x11000, thunk_addr=0x31200, thunk_size=0x200,
            swap_buffers=A64_SRAM_SWAP_BUFFERS,
            sram_size=140 * 1024,
            sid_base=0x01C14000, sid_offset=0x200,
            rvbar_reg=0x017000A0,
            needs_smc_workaround_if_zero_word_at_addr=0x40004,
            watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1639, name="A80", spl_addr=0x10000,
            scratch_addr=0x11000, thunk_addr=0x23400, thunk_size=0x200,
            swap_buffers=A80_SRAM_SWAP_BUFFERS,
            sram_size=40 * 1024,
            sid_base=0x01C0E000, sid_offset=0x200,
            watchdog=WD_A80),
    SocInfo(soc_id=0x1663, name="F1C100s", scratch_addr=0x1000,
            thunk_addr=0xB400, thunk_size=0x200,
            swap_buffers=F1C100S_SRAM_SWAP_BUFFERS,
            sram_size=32 * 1024, watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1673, name="A83T", scratch_addr=0x1000,
            mmu_tt_addr=0x44000, thunk_addr=0x46E00, thunk_size=0x200,
            swap_buffers=AR100_ABUSING_SRAM_SWAP_BUFFERS,
            sram_size=32 * 1024,
            sid_base=0x01C14000, sid_offset=0x200,
            watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1680, name="H3", scratch_addr=0x1000,
            mmu_tt_addr=0x8000, thunk_addr=0xA200, thunk_size=0x200,
            swap_buffers=A10_A13_A20_SRAM_SWAP_BUFFERS,
            sram_size=108 * 1024,
            sid_base=0x01C14000, sid_offset=0x200, sid_fix=True,
            needs_smc_workaround_if_zero_word_at_addr=0x40004,
            watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1681, name="V3s", scratch_addr=0x1000,
            mmu_tt_addr=0x8000, thunk_addr=0xA200, thunk_size=0x200,
            swap_buffers=A10_A13_A20_SRAM_SWAP_BUFFERS,
            sram_size=60 * 1024,
            sid_base=0x01C23800, watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1718, name="H5", spl_addr=0x10000,
            scratch_addr=0x11000, thunk_addr=0x31200, thunk_size=0x200,
            swap_buffers=A64_SRAM_SWAP_BUFFERS,
            sram_size=140 * 1024,
            sid_base=0x01C14000, sid_offset=0x200,
            rvbar_reg=0x017000A0,
            needs_smc_workaround_if_zero_word_at_addr=0x40004,
            watchdog=WD_H3_COMPAT),
    SocInfo(soc_id=0x1701, name="R40", scratch_addr=0x1000,
            thunk_addr=0xA200, thunk_size=0x200,
            swap_buffers=A10_A13_A20_SRAM_SWAP_BUFFERS,
            sram_size=48 * 1024,
            sid_base=0x01C1B000, sid_offset=0x200,
            watchdog=WD_A10_COMPAT),
    SocInfo(soc_id=0x1728, name="H6", spl_addr=0x20000,
            scratch_addr=0x21000, thunk_addr=0x42200, thunk_size=0x200,
            swap_buffers=H6_SRAM_SWAP_BUFFERS,
            sram_size=144 * 1024,
            sid_base=0x03006000, sid_offset=0x200,
            rvbar_reg=0x09010040,
            needs_smc_workaround_if_zero_word_at_addr=0x100004,
            watchdog=WD_H6_COMPAT),
    SocInfo(soc_id=0x1816, name="V536", spl_addr=0x20000,
            scratch_addr=0x21000, thunk_addr=0x2A200, thunk_size=0x200,
            swap_buffers=V831_SRAM_SWAP_BUFFERS,
            sram_size=228 * 1024,
            sid_base=0x03006000, sid_offset=0x200,
            watchdog=WD_H6_COMPAT),
    SocInfo(soc_id=0x1817, name="V831", spl_addr=0x20000,
            scratch_addr=0x21000, thunk_addr=0x2A200, thunk_size=0x200,
            swap_buffers=V831_SRAM_SWAP_BUFFERS,
            sram_size=228 * 1024,
            sid_base=0x03006000, sid_offset=0x200,
            watchdog=WD_H6_COMPAT),
    SocInfo(soc_id=0x1823, name="H616", spl_addr=0x20000,
            scratch_addr=0x21000, thunk_addr=0x53A00, thunk_size=0x200,
            swap_buffers=H616_SRAM_SWAP_BUFFERS,
            sram_size=207 * 1024,
            sid_base=0x03006000, sid_offset=0x200,
            rvbar_reg=0x09010040, watchdog=WD_H6_COMPAT),
    SocInfo(soc_id=0x1851, name="R329", spl_addr=0x100000,
            scratch_addr=0x101000, mmu_tt_addr=0x130000,
            thunk_addr=0x13BA00, thunk_size=0x200,
            swap_buffers=R329_SRAM_SWAP_BUFFERS,
            sram_size=1856 * 1024,
            sid_base=0x03006000, sid_offset=0x200,
            rvbar_reg=0x08100040, watchdog=WD_H6_COMPAT),
    SocInfo(soc_id=0x1855, name="A133", spl_addr=0x20000,
            scratch_addr=0x21000, thunk_addr=0x43000, thunk_size=0x200,
            swap_buffers=A133_SRAM_SWAP_BUFFERS,
            sram_size=140 * 1024,
            sid_base=0x03006000, sid_offset=0x200,
            rvbar_reg=0x08100040, watchdog=WD_H6_COMPAT),
)

# Assumes a BROM like A10/A13/A20/A31 with no SRAM beyond 0x8000 and an IRQ
# stack that never grows past 0x400 bytes.
GENERIC_SRAM_SWAP_BUFFERS = _buffers(
    (0x1C00, 0x5800, 0x400),
)

GENERIC_SOC_INFO = SocInfo(
    scratch_addr=0x1000,
    thunk_addr=0x5680,
    thunk_size=0x180,
    swap_buffers=GENERIC_SRAM_SWAP_BUFFERS,
)


def _lookup(soc_id: int) -> Optional[SocInfo]:
    return next((soc for soc in SOC_INFO_TABLE if soc.soc_id == soc_id), None)


def get_soc_info_from_id(soc_id: int) -> SocInfo:
    """Return the record for ``soc_id``, or the generic record with a warning."""
    soc = _lookup(soc_id)
    if soc is None:
        print("Warning: no 'soc_sram_info' data for your SoC (id=%04X)"
              % soc_id, file=sys.stdout)
        return GENERIC_SOC_INFO
    return soc


def get_soc_info_from_version(version: FelVersion) -> SocInfo:
    """Return the record for the SoC described by a FEL version reply."""
    return get_soc_info_from_id(version.soc_id)


def get_soc_name_from_id(soc_id: int) -> str:
    """Return the SoC's name, or its hexadecimal ID when it is unknown."""
    soc = _lookup(soc_id)
    if soc is not None and soc.name is not None:
        return soc.name[:SOC_NAME_MAX]
    return ("0x%04X" % soc_id)[:SOC_NAME_MAX - 1]