"""LoongArch64 multi-level page table entries."""

from __future__ import annotations

import enum

from .flags import GenericPTE, MappingFlags


class PTEFlags(enum.IntFlag):
    """LoongArch64 page table entry flag bits.

    The memory access type (MATL/MATH) is 0 for strongly-ordered uncached,
    1 for coherent cached and 2 for weakly-ordered uncached.
    """

    V = 1 << 0
    D = 1 << 1
    PLVL = 1 << 2
    PLVH = 1 << 3
    MATL = 1 << 4
    MATH = 1 << 5
    GH = 1 << 6
    P = 1 << 7
    W = 1 << 8
    G = 1 << 12
    NR = 1 << 61
    NX = 1 << 62
    RPLV = 1 << 63

    @classmethod
    def from_bits_truncate(cls, bits):
        """Keep only the bits that name a flag."""
        return cls(bits & sum(int(m) for m in cls.__members__.values()))

    @classmethod
    def from_mapping(cls, flags):
        """Encode generic mapping flags."""
        flags = MappingFlags(flags)
        if not flags:
            return cls(0)
        ret = cls.V | cls.P
        for generic, denied in _DENIALS:
            if generic not in flags:
                ret |= denied
        if MappingFlags.WRITE in flags:
            ret |= cls.W
        if MappingFlags.USER in flags:
            ret |= _USER
        if MappingFlags.DEVICE not in flags:
            # weakly-ordered uncached, or coherent cached
            ret |= cls.MATH if MappingFlags.UNCACHED in flags else cls.MATL
        return ret

    def to_mapping(self):
        """Decode into generic mapping flags."""
        if PTEFlags.V not in self:
            return MappingFlags(0)
        ret = MappingFlags(0)
        for generic, denied in _DENIALS:
            if denied not in self:
                ret |= generic
        if PTEFlags.W in self:
            ret |= MappingFlags.WRITE
        if _USER in self:
            ret |= MappingFlags.USER
        if PTEFlags.MATL not in self:
            ret |= MappingFlags.UNCACHED if PTEFlags.MATH in self else MappingFlags.DEVICE
        return ret


# Generic permissions granted by the absence of an entry bit.
_DENIALS = (
    (MappingFlags.READ, PTEFlags.NR),
    (MappingFlags.EXECUTE, PTEFlags.NX),
)
_USER = PTEFlags.PLVL | PTEFlags.PLVH


class LA64PTE(GenericPTE):
    """Page table entry for LoongArch64 systems."""

    __slots__ = ()

    PHYS_ADDR_MASK = 0x0000_FFFF_FFFF_F000  # bits 12..48

    @staticmethod
    def _attr(flags, is_huge):
        attr = PTEFlags.from_mapping(flags) | PTEFlags.D
        if is_huge:
            attr |= PTEFlags.GH
        return int(attr)

    @classmethod
    def new_page(cls, paddr, flags, is_huge):
        return cls(cls._attr(flags, is_huge) | (paddr & cls.PHYS_ADDR_MASK))

    @classmethod
    def new_table(cls, paddr):
        return cls(paddr & cls.PHYS_ADDR_MASK)

    def paddr(self):
        return self.raw & self.PHYS_ADDR_MASK

    def set_paddr(self, paddr):
        keep = self.raw & ~self.PHYS_ADDR_MASK
        self.raw = keep | (paddr & self.PHYS_ADDR_MASK)

    def flags(self):
        return PTEFlags.from_bits_truncate(self.raw).to_mapping()

    def set_flags(self, flags, is_huge):
        self.raw = self.paddr() | self._attr(flags, is_huge)

    def is_present(self):
        return bool(self.raw & PTEFlags.P)

    def is_huge(self):
        return bool(self.raw & PTEFlags.GH)