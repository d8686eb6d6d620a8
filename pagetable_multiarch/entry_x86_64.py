"""x86_64 page table entries for 64-bit paging."""

from __future__ import annotations

import enum
import functools
import operator

from .flags import GenericPTE, MappingFlags


class PTF(enum.IntFlag):
    """x86_64 page table entry flag bits."""

    PRESENT = 1 << 0
    WRITABLE = 1 << 1
    USER_ACCESSIBLE = 1 << 2
    WRITE_THROUGH = 1 << 3
    NO_CACHE = 1 << 4
    ACCESSED = 1 << 5
    DIRTY = 1 << 6
    HUGE_PAGE = 1 << 7
    GLOBAL = 1 << 8
    BIT_9 = 1 << 9
    BIT_10 = 1 << 10
    BIT_11 = 1 << 11
    BIT_52 = 1 << 52
    BIT_53 = 1 << 53
    BIT_54 = 1 << 54
    BIT_55 = 1 << 55
    BIT_56 = 1 << 56
    BIT_57 = 1 << 57
    BIT_58 = 1 << 58
    BIT_59 = 1 << 59
    BIT_60 = 1 << 60
    BIT_61 = 1 << 61
    BIT_62 = 1 << 62
    NO_EXECUTE = 1 << 63

    @classmethod
    def from_bits_truncate(cls, bits):
        """Keep only the bits that name a flag."""
        return cls(bits & functools.reduce(operator.or_, map(int, cls.__members__.values())))

    @classmethod
    def from_mapping(cls, flags):
        """Encode generic mapping flags."""
        flags = MappingFlags(flags)
        if not flags:
            return cls(0)
        ret = cls.PRESENT
        for generic, bit in _DIRECT:
            if generic in flags:
                ret |= bit
        if MappingFlags.EXECUTE not in flags:
            ret |= cls.NO_EXECUTE
        if flags & (MappingFlags.DEVICE | MappingFlags.UNCACHED):
            ret |= cls.NO_CACHE | cls.WRITE_THROUGH
        return ret

    def to_mapping(self):
        """Decode into generic mapping flags."""
        if PTF.PRESENT not in self:
            return MappingFlags(0)
        ret = MappingFlags.READ
        for generic, bit in _DIRECT:
            if bit in self:
                ret |= generic
        if PTF.NO_EXECUTE not in self:
            ret |= MappingFlags.EXECUTE
        if PTF.NO_CACHE in self:
            ret |= MappingFlags.UNCACHED
        return ret


# Generic flags that correspond one-to-one with an entry bit.
_DIRECT = (
    (MappingFlags.WRITE, PTF.WRITABLE),
    (MappingFlags.USER, PTF.USER_ACCESSIBLE),
)


class X64PTE(GenericPTE):
    """An x86_64 page table entry."""

    __slots__ = ()

    PHYS_ADDR_MASK = 0x000F_FFFF_FFFF_F000  # bits 12..52

    @staticmethod
    def _attr(flags, is_huge):
        attr = PTF.from_mapping(flags)
        if is_huge:
            attr |= PTF.HUGE_PAGE
        return int(attr)

    @classmethod
    def new_page(cls, paddr, flags, is_huge):
        return cls(cls._attr(flags, is_huge) | (paddr & cls.PHYS_ADDR_MASK))

    @classmethod
    def new_table(cls, paddr):
        attr = PTF.PRESENT | PTF.WRITABLE | PTF.USER_ACCESSIBLE
        return cls(int(attr) | (paddr & cls.PHYS_ADDR_MASK))

    def paddr(self):
        return self.raw & self.PHYS_ADDR_MASK

    def set_paddr(self, paddr):
        self.raw ^= (self.raw ^ paddr) & self.PHYS_ADDR_MASK

    def flags(self):
        return PTF.from_bits_truncate(self.raw).to_mapping()

    def set_flags(self, flags, is_huge):
        self.raw = self.paddr() | self._attr(flags, is_huge)

    def is_present(self):
        return bool(self.raw & PTF.PRESENT)

    def is_huge(self):
        return bool(self.raw & PTF.HUGE_PAGE)