import io
import struct

import pytest

from sunxitools.phoenix_info import (
    PhoenixEntry,
    PhoenixTable,
    main,
    read_ptable,
    save_part,
)

SECTOR = 512
SIGNATURE = b"PHOENIX_CARD_IMG"
ADD_SIG = 0x00646461


def make_image(payloads, signature=SIGNATURE, sig=ADD_SIG):
    entries = []
    blobs = b""
    start = 0x2000 // SECTOR
    for payload in payloads:
        entries.append((start, len(payload), 7, sig))
        padded = payload + bytes((-len(payload)) % SECTOR)
        blobs += padded
        start += len(padded) // SECTOR
    head = struct.pack("<16sIHH8s", signature, 0x00200100, len(payloads), 1, bytes(8))
    table = head + b"".join(struct.pack("<4I", *e) for e in entries)
    table = table.ljust(0x400, b"\0")
    return bytes(0x1C00) + table + blobs, entries


PAYLOADS = [b"first partition data", bytes(range(256)) * 3]


@pytest.fixture
def image_file(tmp_path):
    data, _ = make_image(PAYLOADS)
    path = tmp_path / "card.img"
    path.write_bytes(data)
    return path


def test_read_ptable_decodes_entries():
    data, entries = make_image(PAYLOADS)
    table = read_ptable(io.BytesIO(data))
    assert table.parts == len(PAYLOADS)
    assert table.signature == SIGNATURE
    assert [PhoenixEntry(*e) for e in entries] == table.used_entries
    assert table.used_entries[0].offset == entries[0][0] * SECTOR


def test_from_bytes_has_all_slots():
    data, _ = make_image(PAYLOADS)
    table = PhoenixTable.from_bytes(data[0x1C00:0x2000])
    assert len(table.entries) == 62
    assert table.entries[len(PAYLOADS)] == PhoenixEntry(0, 0, 0, 0)


def test_bad_signature_rejected():
    data, _ = make_image(PAYLOADS, signature=b"NOT_A_PHOENIX!!!")
    with pytest.raises(ValueError):
        read_ptable(io.BytesIO(data))


def test_save_part_copies_data(tmp_path):
    data, _ = make_image(PAYLOADS)
    stream = io.BytesIO(data)
    table = read_ptable(stream)
    for index, payload in enumerate(PAYLOADS):
        name = save_part(table, index, str(tmp_path / "%d.img"), stream)
        assert name == str(tmp_path / f"{index}.img")
        assert (tmp_path / f"{index}.img").read_bytes() == payload


def test_save_part_index_out_of_range(tmp_path):
    data, _ = make_image(PAYLOADS)
    stream = io.BytesIO(data)
    table = read_ptable(stream)
    with pytest.raises(IndexError):
        save_part(table, len(PAYLOADS) + 1, str(tmp_path / "%d.img"), stream)


def test_main_lists_parts(image_file, capsys):
    assert main([str(image_file)]) == 0
    out = capsys.readouterr().out
    assert "part 0:" in out
    assert "part 1:" in out
    assert f"\tsize : {len(PAYLOADS[1])}\n" in out
    assert "sig??" not in out


def test_main_verbose_shows_signature(image_file, capsys):
    assert main(["-v", str(image_file)]) == 0
    out = capsys.readouterr().out
    assert f"Parts : {len(PAYLOADS)}\n" in out
    assert f"\tsig??: {ADD_SIG:08x}\n" in out


def test_main_saves_all_parts(image_file, tmp_path, capsys):
    outdir = tmp_path / "out"
    outdir.mkdir()
    assert main(["-q", "-s", "-o", str(outdir / "%d.img"), str(image_file)]) == 0
    assert capsys.readouterr().out == ""
    for index, payload in enumerate(PAYLOADS):
        assert (outdir / f"{index}.img").read_bytes() == payload


def test_main_saves_selected_part(image_file, tmp_path):
    outdir = tmp_path / "sel"
    outdir.mkdir()
    assert main(["-q", "-p", "1", "-o", str(outdir / "%d.img"), str(image_file)]) == 0
    assert sorted(p.name for p in outdir.iterdir()) == ["1.img"]
    assert (outdir / "1.img").read_bytes() == PAYLOADS[1]


def test_main_directory_destination(image_file, tmp_path):
    outdir = tmp_path / "dir"
    outdir.mkdir()
    assert main(["-q", "-p", "0", "-o", str(outdir) + "/", str(image_file)]) == 0
    assert (outdir / "0.img").read_bytes() == PAYLOADS[0]


def test_main_rejects_non_phoenix(tmp_path):
    path = tmp_path / "junk.img"
    path.write_bytes(bytes(0x3000))
    assert main([str(path)]) == 1


def test_main_rejects_extra_arguments(image_file, capsys):
    assert main([str(image_file), str(image_file)]) == 1
    assert "Usage:" in capsys.readouterr().out


def test_main_rejects_unknown_option(image_file):
    assert main(["-x", str(image_file)]) == 1