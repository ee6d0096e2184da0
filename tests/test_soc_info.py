import struct

import pytest

from sunxitools.soc_info import (
    GENERIC_SOC_INFO,
    SOC_INFO_TABLE,
    WD_A10_COMPAT,
    WD_H6_COMPAT,
    FelVersion,
    SocInfo,
    SramSwapBuffer,
    get_soc_info_from_id,
    get_soc_info_from_version,
    get_soc_name_from_id,
)


def test_known_soc_lookup_a20():
    soc = get_soc_info_from_id(0x1651)
    assert soc.name == "A20"
    assert soc.sid_base == 0x01C23800
    assert soc.watchdog == WD_A10_COMPAT
    assert soc.needs_l2en is False


def test_a10_needs_l2en():
    assert get_soc_info_from_id(0x1623).needs_l2en is True


def test_h3_flags():
    soc = get_soc_info_from_id(0x1680)
    assert soc.sid_fix is True
    assert soc.needs_smc_workaround_if_zero_word_at_addr == 0x40004
    assert soc.mmu_tt_addr == 0x8000


def test_h6_record():
    soc = get_soc_info_from_id(0x1728)
    assert soc.spl_addr == 0x20000
    assert soc.rvbar_reg == 0x09010040
    assert soc.watchdog == WD_H6_COMPAT
    assert soc.swap_buffers[0] == SramSwapBuffer(0x21C00, 0x42400, 0x0400)


def test_unknown_soc_returns_generic_with_warning(capsys):
    soc = get_soc_info_from_id(0x1234)
    assert soc is GENERIC_SOC_INFO
    assert soc.thunk_addr == 0x5680
    assert soc.thunk_size == 0x180
    out = capsys.readouterr().out
    assert "Warning: no 'soc_sram_info' data for your SoC (id=1234)" in out


def test_known_soc_prints_nothing(capsys):
    get_soc_info_from_id(0x1689)
    assert capsys.readouterr().out == ""


def test_name_lookup_known():
    assert get_soc_name_from_id(0x1663) == "F1C100s"
    assert get_soc_name_from_id(0x1625) == "A13"


def test_name_lookup_unknown_uses_hex():
    assert get_soc_name_from_id(0x1234) == "0x1234"
    assert get_soc_name_from_id(0xABCD) == "0xABCD"


def test_name_lookup_truncates_long_hex():
    assert len(get_soc_name_from_id(0x12345)) == 6
    assert get_soc_name_from_id(0x12345).startswith("0x1234")


def test_every_table_name_resolves():
    for soc in SOC_INFO_TABLE:
        assert get_soc_name_from_id(soc.soc_id) == soc.name
        assert get_soc_info_from_id(soc.soc_id) is soc


def test_lookup_by_id_returns_distinct_records():
    found = [get_soc_info_from_id(soc.soc_id) for soc in SOC_INFO_TABLE]
    assert len({id(soc) for soc in found}) == len(SOC_INFO_TABLE)


def test_swap_buffers_sorted_and_nonempty():
    records = [get_soc_info_from_id(soc.soc_id) for soc in SOC_INFO_TABLE]
    records.append(get_soc_info_from_id(0x9999))
    for soc in records:
        assert soc.swap_buffers
        starts = [b.buf1 for b in soc.swap_buffers]
        assert starts == sorted(starts)
        assert all(b.size > 0 for b in soc.swap_buffers)


def test_mmu_table_is_16k_aligned():
    for soc in SOC_INFO_TABLE:
        assert get_soc_info_from_id(soc.soc_id).mmu_tt_addr % 0x4000 == 0


def test_fel_version_decode_and_lookup():
    raw = struct.pack("<8sIIHBBI2I", b"AWUSBFEX", 0x1651, 1, 1,
                      0x44, 0x08, 0x7E00, 0, 0)
    version = FelVersion.from_bytes(raw)
    assert version.signature == b"AWUSBFEX"
    assert version.soc_id == 0x1651
    assert version.scratchpad == 0x7E00
    assert version.unknown_12 == 0x44
    assert version.to_bytes() == raw
    assert get_soc_info_from_version(version).name == "A20"


def test_fel_version_size():
    raw = struct.pack("<8sIIHBBI2I", b"AWUSBFEX", 0x1680, 1, 1,
                      0x44, 0x08, 0x7E00, 0, 0)
    encoded = FelVersion.from_bytes(raw).to_bytes()
    assert len(encoded) == 32
    assert FelVersion.SIZE == len(encoded)


def test_fel_version_too_short():
    with pytest.raises(ValueError):
        FelVersion.from_bytes(b"\0" * 10)


def test_records_are_frozen():
    soc = get_soc_info_from_id(0x1651)
    with pytest.raises(AttributeError):
        soc.name = "other"
    assert isinstance(soc, SocInfo)
    assert get_soc_info_from_id(0x1651).name == "A20"