import pytest

from pagetable_multiarch.entry_x86_64 import X64PTE
from pagetable_multiarch.flags import GenericPTE, MappingFlags

_ADDR = ~0xFFF
_PRESENT = 0x400
_HUGE = 0x800


def _encode(paddr, flags, is_huge):
    return (paddr & _ADDR) | int(flags) | _PRESENT | (_HUGE if is_huge else 0)


class _ToyPTE(GenericPTE):
    """Flags in the low six bits, present at bit 10, huge at bit 11."""

    __slots__ = ()

    @classmethod
    def new_page(cls, paddr, flags, is_huge):
        return cls(_encode(paddr, flags, is_huge))

    @classmethod
    def new_table(cls, paddr):
        return cls(_encode(paddr, 0, False))

    def paddr(self):
        return self.raw & _ADDR

    def set_paddr(self, paddr):
        self.raw = _encode(paddr, self.flags(), self.is_huge())

    def flags(self):
        return MappingFlags(self.raw & 0x3F)

    def set_flags(self, flags, is_huge):
        self.raw = _encode(self.paddr(), flags, is_huge)

    def is_present(self):
        return bool(self.raw & _PRESENT)

    def is_huge(self):
        return bool(self.raw & _HUGE)


@pytest.mark.parametrize(
    "bit,member",
    [
        (0, MappingFlags.READ),
        (1, MappingFlags.WRITE),
        (2, MappingFlags.EXECUTE),
        (3, MappingFlags.USER),
        (4, MappingFlags.DEVICE),
        (5, MappingFlags.UNCACHED),
    ],
)
def test_mapping_flag_bits(bit, member):
    assert MappingFlags(1 << bit) == member
    assert int(MappingFlags(1 << bit)) == 1 << bit


def test_mapping_flags_combine():
    flags = MappingFlags(0b11)
    assert flags == MappingFlags.READ | MappingFlags.WRITE
    assert MappingFlags.READ in flags
    assert MappingFlags.EXECUTE not in flags


def test_generic_pte_is_abstract():
    with pytest.raises(TypeError):
        GenericPTE(0)


def test_empty_is_unused():
    pte = X64PTE.empty()
    assert pte.is_unused()
    assert pte.raw == 0


def test_raw_truncated_to_64_bits():
    assert X64PTE((1 << 64) | 5).raw == 5


@pytest.mark.parametrize("pte_type", [X64PTE, _ToyPTE])
def test_clear_resets_entry(pte_type):
    pte = pte_type.new_page(0x5000, MappingFlags.READ, False)
    assert not pte.is_unused()
    pte.clear()
    assert pte.is_unused()
    assert not pte.is_present()
    assert pte == pte_type.empty()


def test_equality_by_raw_and_type():
    a = X64PTE.new_table(0x2000)
    b = X64PTE.new_table(0x2000)
    assert a == b
    assert a != X64PTE.new_table(0x3000)


def test_repr_names_class():
    text = GenericPTE.__repr__(_ToyPTE.new_table(0x2000))
    assert text.startswith("_ToyPTE(")
    assert "paddr=0x2000" in text