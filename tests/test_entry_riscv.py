import functools
import itertools
import operator

import pytest

from pagetable_multiarch.entry_riscv import PTEFlags, Rv64PTE
from pagetable_multiarch.flags import MappingFlags

_BASIC = [MappingFlags.READ, MappingFlags.WRITE, MappingFlags.EXECUTE, MappingFlags.USER]
_NONEMPTY = [
    functools.reduce(operator.or_, combo)
    for n in range(1, len(_BASIC) + 1)
    for combo in itertools.combinations(_BASIC, n)
]
_LEAF = [f for f in _NONEMPTY if f & (MappingFlags.READ | MappingFlags.EXECUTE)]

RW = MappingFlags.READ | MappingFlags.WRITE


def test_flag_bits_from_source():
    assert PTEFlags.from_bits_truncate(1 << 0) == PTEFlags.V
    assert PTEFlags.from_bits_truncate(1 << 4) == PTEFlags.U
    assert PTEFlags.from_bits_truncate(1 << 7) == PTEFlags.D
    assert PTEFlags.from_bits_truncate(0x91) == PTEFlags.V | PTEFlags.U | PTEFlags.D


def test_empty_flags_encode_to_nothing():
    assert PTEFlags.from_mapping(MappingFlags(0)) == 0


@pytest.mark.parametrize("flags", _NONEMPTY)
def test_flags_round_trip(flags):
    attr = PTEFlags.from_mapping(flags)
    assert PTEFlags.V in attr
    assert attr.to_mapping() == flags


def test_device_and_uncached_are_dropped():
    attr = PTEFlags.from_mapping(MappingFlags.READ | MappingFlags.DEVICE | MappingFlags.UNCACHED)
    assert attr.to_mapping() == MappingFlags.READ


def test_invalid_decodes_empty():
    assert (PTEFlags.R | PTEFlags.W).to_mapping() == MappingFlags(0)


@pytest.mark.parametrize("flags", _LEAF)
def test_new_page_round_trip(flags):
    pte = Rv64PTE.new_page(0x8020_0000, flags, False)
    assert pte.paddr() == 0x8020_0000
    assert pte.flags() == flags
    assert pte.is_present()
    assert pte.is_huge()
    bits = PTEFlags.from_bits_truncate(pte.raw)
    assert PTEFlags.A in bits
    assert PTEFlags.D in bits


def test_new_page_requires_read_or_execute():
    with pytest.raises(AssertionError):
        Rv64PTE.new_page(0x8020_0000, MappingFlags.WRITE, False)
    pte = Rv64PTE.new_page(0x8020_0000, RW, False)
    assert pte.flags() == RW


def test_new_table():
    pte = Rv64PTE.new_table(0x8020_0000)
    assert pte.raw == 0x2008_0001
    assert pte.paddr() == 0x8020_0000
    assert pte.is_present()
    assert not pte.is_huge()
    assert pte.flags() == MappingFlags(0)


def test_set_flags_keeps_address():
    pte = Rv64PTE.new_page(0x8000_0000, RW, True)
    pte.set_flags(MappingFlags.READ | MappingFlags.EXECUTE | MappingFlags.USER, True)
    assert pte.paddr() == 0x8000_0000
    assert pte.flags() == MappingFlags.READ | MappingFlags.EXECUTE | MappingFlags.USER


def test_set_paddr_keeps_flags():
    pte = Rv64PTE.new_page(0x8000_0000, RW, False)
    pte.set_paddr(0x8040_0000)
    assert pte.paddr() == 0x8040_0000
    assert pte.flags() == RW


def test_clear_and_empty():
    pte = Rv64PTE.new_page(0x8000_0000, RW, False)
    pte.clear()
    assert pte.is_unused()
    assert not pte.is_present()
    assert pte == Rv64PTE.empty()