"""Inspection and configuration of the sunxi PIO (GPIO) controller registers.

The register block can come from a saved dump or, on the device itself,
from a mapping of the controller through ``/dev/mem``.
"""

from __future__ import annotations

import contextlib
import errno
import getopt
import mmap
import os
import re
import struct
import sys
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

PIO_REG_SIZE = 0x228
PIO_PORT_SIZE = 0x24
PIO_NR_PORTS = 9  # A-I
PINS_PER_PORT = 32
PIO_BASE = 0x01C20800
PIO_MAP_SIZE = 0x800

_CFG = 0x00
_DATA = 0x10
_DLEVEL = 0x14
_PULL = 0x1C

_WORD = struct.Struct("<I")
_PROG = "sunxi-pio"

_INT_RE = re.compile(
    r"[ \t\n\r\f\v]*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")
_ATOI_RE = re.compile(r"[ \t\n\r\f\v]*([+-]?\d+)")
_LONG_MIN = -(1 << 63)
_LONG_MAX = (1 << 63) - 1


@dataclass
class PioStatus:
    """Settings of one pin.

    ``data`` is None when the pin is in an I/O function mode (mode > 1).
    When writing, a field that is None or negative is left unchanged.
    """

    mul_sel: Optional[int] = None
    pull: Optional[int] = None
    drv_level: Optional[int] = None
    data: Optional[int] = None


def _parse_int(text: str) -> Optional[int]:
    """Parse a leading integer with C prefix rules (0x hex, 0 octal)."""
    match = _INT_RE.match(text)
    if not match:
        return None
    sign, digits = match.groups()
    if digits[:2].lower() == "0x":
        value = int(digits, 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits, 10)
    if sign == "-":
        value = -value
    if not _LONG_MIN <= value <= _LONG_MAX:
        return None
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _atoi(text: str) -> int:
    match = _ATOI_RE.match(text)
    return int(match.group(1)) if match else 0


def parse_pin(name: str) -> Tuple[int, int]:
    """Split a pin name such as ``PB7`` or ``B7`` into (port index, pin)."""
    if name.startswith("P"):
        name = name[1:]
    if not name:
        raise ValueError("missing port letter in pin name")
    return ord(name[0]) - ord("A"), _atoi(name[1:])


class PioState:
    """A view of the PIO register block held in a writable buffer."""

    def __init__(self, buffer=None) -> None:
        self.buffer = bytearray(PIO_REG_SIZE) if buffer is None else buffer

    def to_bytes(self) -> bytes:
        """Return the register block as saved by the ``-o`` option."""
        return bytes(self.buffer[:PIO_REG_SIZE])

    # register access -----------------------------------------------------

    def _check(self, offset: int) -> None:
        if offset < 0 or offset + _WORD.size > len(self.buffer):
            raise ValueError(f"register offset {offset:#x} is outside the PIO block")

    def _read(self, offset: int) -> int:
        self._check(offset)
        return _WORD.unpack_from(self.buffer, offset)[0]

    def _write(self, offset: int, value: int) -> None:
        self._check(offset)
        _WORD.pack_into(self.buffer, offset, value & 0xFFFFFFFF)

    @staticmethod
    def _offsets(port: int, pin: int) -> Tuple[int, int, int, int]:
        if not 0 <= pin < PINS_PER_PORT:
            raise ValueError(f"pin number {pin} out of range")
        base = port * PIO_PORT_SIZE
        cfg = base + ((pin >> 3) << 2) + _CFG
        pull = base + ((pin >> 4) << 2) + _PULL
        dlevel = base + ((pin >> 4) << 2) + _DLEVEL
        data = base + _DATA
        return cfg, pull, dlevel, data

    def _update(self, offset: int, mask: int, shift: int, value: int) -> None:
        val = self._read(offset)
        val &= ~(mask << shift)
        val |= (value & mask) << shift
        self._write(offset, val)

    # pin operations ------------------------------------------------------

    def get(self, port: int, pin: int) -> PioStatus:
        """Read the settings of a pin."""
        cfg, pull, dlevel, data = self._offsets(port, pin)
        func_shift = (pin & 0x07) << 2
        pull_shift = (pin & 0x0F) << 1
        status = PioStatus(
            mul_sel=(self._read(cfg) >> func_shift) & 0x07,
            pull=(self._read(pull) >> pull_shift) & 0x03,
            drv_level=(self._read(dlevel) >> pull_shift) & 0x03,
        )
        if status.mul_sel <= 1:
            status.data = (self._read(data) >> pin) & 0x01
        return status

    def set(self, port: int, pin: int, status: PioStatus) -> None:
        """Write the given settings of a pin, leaving unset fields alone."""
        cfg, pull, dlevel, data = self._offsets(port, pin)
        func_shift = (pin & 0x07) << 2
        pull_shift = (pin & 0x0F) << 1

        def given(value: Optional[int]) -> bool:
            return value is not None and value >= 0

        if given(status.mul_sel):
            self._update(cfg, 0x07, func_shift, status.mul_sel)
        if given(status.pull):
            self._update(pull, 0x03, pull_shift, status.pull)
        if given(status.drv_level):
            self._update(dlevel, 0x03, pull_shift, status.drv_level)
        if given(status.data):
            self._update(data, 0x01, pin, 1 if status.data else 0)

    @staticmethod
    def _format(port: int, pin: int, status: PioStatus) -> str:
        text = "P%c%d<%x><%x><%x>" % (chr(ord("A") + port), pin,
                                      status.mul_sel, status.pull,
                                      status.drv_level)
        if status.data is not None and status.data >= 0:
            text += "<%x>" % status.data
        return text

    def format_pin(self, port: int, pin: int) -> str:
        """Describe a pin as ``Pxx<mode><pull><drive>[<data>]``."""
        return self._format(port, pin, self.get(port, pin))

    def _all_pins(self) -> Iterator[Tuple[int, int]]:
        for port in range(PIO_NR_PORTS):
            for pin in range(PINS_PER_PORT):
                yield port, pin

    def dump(self) -> str:
        """Describe every pin of ports A to I, one per line."""
        return "".join(self.format_pin(port, pin) + "\n"
                       for port, pin in self._all_pins())

    def clean(self) -> None:
        """Clear the output data bit of every pin configured as input."""
        for port, pin in self._all_pins():
            status = self.get(port, pin)
            if status.mul_sel == 0:
                status.data = 0
                self.set(port, pin, status)

    def oscillate(self, port: int, pin: int, count: int) -> None:
        """Make a pin an output and toggle its data bit ``count`` times."""
        status = self.get(port, pin)
        status.mul_sel = 1
        self.set(port, pin, status)
        data_offset = self._offsets(port, pin)[3]
        val = self._read(data_offset)
        for _ in range(count):
            val ^= 1 << pin
            self._write(data_offset, val)

    def _set_from_command(self, command: str) -> None:
        port, pin = parse_pin(command)
        status = self.get(port, pin)
        if "=" in command:
            rest = command[command.index("=") + 1:]
            status.mul_sel = 1
            value = _parse_int(rest)
            if value is not None:
                status.data = value
            if "," in rest:
                value = _parse_int(rest[rest.index(",") + 1:])
                if value is not None:
                    status.drv_level = value
        elif "?" in command:
            status.mul_sel = 0
            status.data = 0
            status.drv_level = 0
            value = _parse_int(command[command.index("?") + 1:])
            if value is not None:
                status.pull = value
        elif "<" in command:
            pos = command.find("<")
            for name in ("mul_sel", "pull", "drv_level", "data"):
                if pos < 0:
                    break
                pos += 1
                value = _parse_int(command[pos:])
                if value is not None:
                    setattr(status, name, value)
                pos = command.find("<", pos)
        self.set(port, pin, status)

    def run_command(self, command: str) -> Optional[str]:
        """Run one command; return the text it shows, if any.

        Raises ValueError for an unknown command or an invalid pin.
        """
        if command.startswith("P"):
            if any(ch in command for ch in "<=?"):
                self._set_from_command(command)
                return None
            if "*" in command:
                port, pin = parse_pin(command)
                count = _parse_int(command[command.index("*") + 1:])
                self.oscillate(port, pin, count or 0)
                return None
            port, pin = parse_pin(command)
            return self.format_pin(port, pin) + "\n"
        if command == "print":
            return self.dump()
        if command == "clean":
            self.clean()
            return None
        raise ValueError(f"unknown command {command!r}")


def _usage() -> str:
    return (
        f"{_PROG}\n\n"
        f"usage: {_PROG} -m|-i input [-o output] pin..\n"
        " -m\t\t\t\tmmap - read pin state from system\n"
        " -i\t\t\t\tread pin state from file\n"
        " -o\t\t\t\tsave pin state data to file\n"
        " print\t\t\t\tShow all pins\n"
        " Pxx\t\t\t\tShow pin\n"
        " Pxx<mode><pull><drive><data>\tConfigure pin\n"
        " Pxx=data,drive\t\t\tConfigure GPIO output\n"
        " Pxx*count\t\t\tOscillate GPIO output (mmap mode only)\n"
        " Pxx?pull\t\t\tConfigure GPIO input\n"
        " clean\t\t\t\tClean input pins\n"
        "\n\tmode 0-7, 0=input, 1=output, 2-7 I/O function\n"
        "\tpull 0=none, 1=up, 2=down\n"
        "\tdrive 0-3, I/O drive level\n"
    )


def _print_usage() -> None:
    sys.stderr.write(_usage())


def _perror(what: str, exc: OSError) -> None:
    reason = exc.strerror or str(exc)
    print(f"{what}: {reason}", file=sys.stderr)


@contextlib.contextmanager
def _map_pio() -> Iterator[memoryview]:
    """Map the PIO controller registers from /dev/mem."""
    if not hasattr(mmap, "MAP_SHARED"):
        raise OSError(errno.ENOSYS, os.strerror(errno.ENOSYS))
    pagesize = mmap.PAGESIZE
    base = PIO_BASE & ~(pagesize - 1)
    offset = PIO_BASE & (pagesize - 1)
    length = (PIO_MAP_SIZE + pagesize - 1) & ~(pagesize - 1)
    fd = os.open("/dev/mem", os.O_RDWR)
    try:
        mem = mmap.mmap(fd, length, mmap.MAP_SHARED,
                        mmap.PROT_READ | mmap.PROT_WRITE, offset=base)
    finally:
        os.close(fd)
    whole = memoryview(mem)
    view = whole[offset:]
    try:
        yield view
    finally:
        view.release()
        whole.release()
        mem.close()


def _read_input(name: str) -> bytes:
    if name == "-":
        return sys.stdin.buffer.read(PIO_REG_SIZE)
    with open(name, "rb") as stream:
        return stream.read(PIO_REG_SIZE)


def _write_output(name: str, data: bytes) -> None:
    if name == "-":
        sys.stdout.flush()
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
        return
    with open(name, "wb") as stream:
        stream.write(data)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Show or change pin settings of a PIO register dump or the live system."""
    args: List[str] = list(sys.argv[1:] if argv is None else argv)
    try:
        opts, commands = getopt.gnu_getopt(args, "i:o:m")
    except getopt.GetoptError as exc:
        print(f"{_PROG}: {exc}", file=sys.stderr)
        _print_usage()
        return 0

    do_mmap = False
    in_name: Optional[str] = None
    out_name: Optional[str] = None
    for opt, value in opts:
        if opt == "-m":
            do_mmap = True
        elif opt == "-i":
            in_name = value
        elif opt == "-o":
            out_name = value

    if not in_name and not do_mmap:
        _print_usage()
        return 1

    with contextlib.ExitStack() as stack:
        if do_mmap:
            try:
                buffer = stack.enter_context(_map_pio())
            except OSError as exc:
                what = "open /dev/mem" if exc.filename else "mmap PIO"
                _perror(what, exc)
                return 1
        else:
            buffer = bytearray(PIO_REG_SIZE)

        if in_name:
            try:
                data = _read_input(in_name)
            except OSError as exc:
                _perror("open input", exc)
                return 1
            if len(data) != PIO_REG_SIZE:
                print("read input: short read", file=sys.stderr)
                return 1
            buffer[:PIO_REG_SIZE] = data

        state = PioState(buffer)
        for command in commands:
            try:
                text = state.run_command(command)
            except ValueError as exc:
                print(f"{_PROG}: {exc}", file=sys.stderr)
                _print_usage()
                return 1
            if text:
                sys.stdout.write(text)
        sys.stdout.flush()

        if out_name:
            try:
                _write_output(out_name, state.to_bytes())
            except OSError as exc:
                _perror("open output", exc)
                return 1
    return 0