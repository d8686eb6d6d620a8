import pytest

from pagetable_multiarch.entry_aarch64 import (
    A64El2PTE,
    A64PTE,
    DescriptorAttr,
    MAIR_VALUE,
    MemAttr,
)
from pagetable_multiarch.flags import MappingFlags

R = MappingFlags.READ
W = MappingFlags.WRITE
X = MappingFlags.EXECUTE
U = MappingFlags.USER
DEV = MappingFlags.DEVICE
UC = MappingFlags.UNCACHED


@pytest.mark.parametrize(
    "idx,mair_byte",
    [
        (MemAttr.DEVICE, 0x04),
        (MemAttr.NORMAL, 0xFF),
        (MemAttr.NORMAL_NON_CACHEABLE, 0x44),
    ],
)
def test_mair_value(idx, mair_byte):
    assert MAIR_VALUE == 0x44FF04
    assert MemAttr.MAIR_VALUE == MAIR_VALUE
    attr = DescriptorAttr.from_mem_attr(idx)
    index = int(attr & DescriptorAttr.ATTR_INDX) >> 2
    assert (MAIR_VALUE >> (8 * index)) & 0xFF == mair_byte


def test_from_mem_attr_device_has_no_shareability():
    attr = DescriptorAttr.from_mem_attr(MemAttr.DEVICE)
    assert attr.mem_attr() is MemAttr.DEVICE
    assert DescriptorAttr.INNER not in attr
    assert DescriptorAttr.SHAREABLE not in attr


@pytest.mark.parametrize("idx", [MemAttr.NORMAL, MemAttr.NORMAL_NON_CACHEABLE])
def test_from_mem_attr_normal_is_shareable(idx):
    attr = DescriptorAttr.from_mem_attr(idx)
    assert attr.mem_attr() is idx
    assert DescriptorAttr.INNER in attr
    assert DescriptorAttr.SHAREABLE in attr


def test_reserved_mem_attr_is_none():
    assert DescriptorAttr.ATTR_INDX.mem_attr() is None


def test_empty_flags_encode_to_nothing():
    assert int(DescriptorAttr.from_mapping(MappingFlags(0))) == 0
    assert int(DescriptorAttr.from_mapping(MappingFlags(0), el2=True)) == 0


@pytest.mark.parametrize(
    "flags",
    [R, R | W, R | X, R | W | X, R | U, R | W | U, R | X | U, R | W | X | U,
     R | W | DEV, R | W | UC, R | X | U | UC],
)
def test_el1_round_trip(flags):
    assert DescriptorAttr.from_mapping(flags).to_mapping() == flags


@pytest.mark.parametrize("flags", [R, R | W, R | X, R | W | X, R | W | DEV, R | UC])
def test_el2_round_trip(flags):
    attr = DescriptorAttr.from_mapping(flags, el2=True)
    assert attr.to_mapping(el2=True) == flags


def test_el2_drops_user():
    attr = DescriptorAttr.from_mapping(R | W | U, el2=True)
    assert DescriptorAttr.AP_EL0 not in attr
    assert attr.to_mapping(el2=True) == R | W


def test_kernel_mapping_is_never_user_executable():
    attr = DescriptorAttr.from_mapping(R | X)
    assert DescriptorAttr.UXN in attr
    assert DescriptorAttr.PXN not in attr
    assert DescriptorAttr.AP_RO in attr


def test_user_mapping_is_never_privileged_executable():
    attr = DescriptorAttr.from_mapping(R | W | X | U)
    assert DescriptorAttr.PXN in attr
    assert DescriptorAttr.AP_EL0 in attr
    assert DescriptorAttr.UXN not in attr


def test_device_takes_precedence_over_uncached():
    attr = DescriptorAttr.from_mapping(R | DEV | UC)
    assert attr.mem_attr() is MemAttr.DEVICE
    assert attr.to_mapping() == R | DEV


def test_not_readable_is_not_valid():
    attr = DescriptorAttr.from_mapping(W)
    assert DescriptorAttr.VALID not in attr
    assert attr.to_mapping() == MappingFlags(0)


def test_from_bits_truncate_drops_unknown_bits():
    attr = DescriptorAttr.from_bits_truncate((1 << 12) | int(DescriptorAttr.VALID))
    assert int(attr) == int(DescriptorAttr.VALID)


def test_new_page_4k():
    paddr = 0x1234_5000
    pte = A64PTE.new_page(paddr, R | W, False)
    assert pte.paddr() == paddr
    assert pte.flags() == R | W
    assert pte.is_present()
    assert not pte.is_huge()
    assert DescriptorAttr.AF in pte.attr()


def test_new_page_huge():
    pte = A64PTE.new_page(0x4000_0000, R | X, True)
    assert pte.is_huge()
    assert pte.flags() == R | X


def test_new_table():
    pte = A64PTE.new_table(0x8000)
    assert pte.paddr() == 0x8000
    assert pte.is_present()
    assert not pte.is_huge()


def test_paddr_is_masked():
    pte = A64PTE.new_page((1 << 50) | 0x1234, R, False)
    assert pte.paddr() == 0x1000


def test_set_flags_keeps_paddr():
    pte = A64PTE.new_page(0x20_0000, R | W, True)
    pte.set_flags(R | U, False)
    assert pte.paddr() == 0x20_0000
    assert pte.flags() == R | U
    assert not pte.is_huge()


def test_set_paddr_keeps_flags():
    pte = A64PTE.new_page(0x1000, R | W | X, False)
    pte.set_paddr(0x3000)
    assert pte.paddr() == 0x3000
    assert pte.flags() == R | W | X


def test_clear_and_empty():
    pte = A64PTE.new_page(0x1000, R, False)
    assert not pte.is_unused()
    pte.clear()
    assert pte.is_unused()
    assert not pte.is_present()
    assert pte == A64PTE.empty()


def test_el2_pte_uses_el2_model():
    pte = A64El2PTE.new_page(0x1000, R | W | U, False)
    assert pte.flags() == R | W
    el1 = A64PTE.new_page(0x1000, R | W | U, False)
    assert el1.flags() == R | W | U