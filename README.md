# sunxitools

Utilities for Allwinner (sunxi) system-on-chip boards.

- `sunxitools.script` – an in-memory script tree: a `Script` of named
  `Section`s holding `NullEntry`, `SingleEntry`, `StringEntry` and
  `GpioEntry` values.
- `sunxitools.script_fex` – parse `.fex` board configuration text into a
  script tree (`parse_fex`) and write a tree back as text (`generate_fex`).
  Malformed input raises `FexParseError`.
- `sunxitools.script_bin` – encode a tree in the binary `script.bin` layout
  (`generate_bin`, with `script_bin_size` for the size and counts) and decode
  binaries again (`decompile_bin`). Malformed data raises `ScriptBinError`;
  suspicious but tolerated input is reported through the `logging` module.
- `sunxitools.script_uboot` – write the `[dram_para]` section as a U-Boot
  C source fragment (`generate_uboot`); raises `UbootGenerationError` when
  that section is missing.
- `sunxitools.pio` – inspect and edit the PIO (GPIO) register block
  (`PioState`, `PioStatus`, `parse_pin`), and the `sunxi-pio` command.
- `sunxitools.phoenix_info` – read the partition table of a
  `PHOENIX_CARD_IMG` card image (`read_ptable`, `PhoenixTable`,
  `PhoenixEntry`), extract partitions (`save_part`), and the
  `phoenix-info` command.
- `sunxitools.soc_info` – SRAM swap buffers, thunk placement, SID and
  watchdog details per SoC id (`get_soc_info_from_id`,
  `get_soc_info_from_version`, `get_soc_name_from_id`, `FelVersion`).
  Unknown ids print a warning and get a generic record.
- `sunxitools.progress` – transfer progress with a progress bar and
  `dialog --gauge` style output (`Progress`, `format_eta`, `rate`,
  `estimate`).

## Installation

```
pip install .
```

## Converting FEX scripts

```python
from sunxitools.script_fex import parse_fex, generate_fex
from sunxitools.script_bin import generate_bin, decompile_bin

with open("board.fex") as stream:
    script = parse_fex(stream, "board.fex")

with open("script.bin", "wb") as out:
    out.write(generate_bin(script))

with open("script.bin", "rb") as f:
    restored = decompile_bin(f.read(), "script.bin")

with open("roundtrip.fex", "w") as out:
    generate_fex(out, restored)
```

Scripts can be built by hand too:

```python
from sunxitools.script import Script

script = Script()
section = script.add_section("uart_para")
section.add_single("uart_debug_port", 0)
section.add_gpio("uart_debug_tx", 2, 22, [2, 1, -1, -1])
```

GPIO settings are mode, pull, drive level and data; `-1` means default.

## Editing PIO register dumps

```
sunxi-pio -i pio.bin print
sunxi-pio -i pio.bin -o new.bin PB22=1,2 PB23?1
sunxi-pio -i pio.bin "PH20<2><1><0>"
sunxi-pio -i pio.bin clean -o clean.bin
```

`-i FILE` reads a saved register block (`-` for standard input), `-o FILE`
writes the result (`-` for standard output), and `-m` maps the live
registers through `/dev/mem` on the board itself.

Commands:

- `print` – show all pins of ports A to I
- `Pxx` – show one pin
- `Pxx<mode><pull><drive><data>` – configure a pin
- `Pxx=data,drive` – configure as GPIO output
- `Pxx?pull` – configure as GPIO input
- `Pxx*count` – make the pin an output and toggle it `count` times
- `clean` – clear the data bit of input pins

Each pin is shown as `Pxx<mode><pull><drive><data>`; the data field is
left out for pins in a peripheral function (mode above 1).

From Python:

```python
from sunxitools.pio import PioState

with open("pio.bin", "rb") as f:
    state = PioState(bytearray(f.read()))
print(state.format_pin(1, 22))          # port B, pin 22
state.run_command("PB22=1,2")
```

## Inspecting Phoenix images

```
phoenix-info image.img          # list partitions
phoenix-info -v image.img       # also show table header details
phoenix-info -q image.img       # no listing
phoenix-info -s image.img       # save every partition as N.img
phoenix-info -p 2 -o part.img image.img
```

`-o` takes a file name, a directory ending in `/`, or a pattern containing
`%d` for the partition number. Without an image argument the image is read
from standard input.

## Progress reporting

```python
from sunxitools.progress import Progress

progress = Progress()
progress.start(progress.bar, expected_total=1_000_000)
progress.update(4096)
```

`gauge` and `gauge_xxx` are alternative callbacks whose output suits
`dialog --gauge`.

## What it does not do

There is no command-line converter between `.fex` and `script.bin`; use the
functions above. The package does not talk to devices over USB (no FEL
transfers or SPL loading) and does not edit NAND partition tables; the SoC
data in `sunxitools.soc_info` is provided as a table only.