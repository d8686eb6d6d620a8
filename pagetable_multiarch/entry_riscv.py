"""RISC-V Sv39/Sv48 page table entries."""

from __future__ import annotations

import enum

from .flags import GenericPTE, MappingFlags


class PTEFlags(enum.IntFlag):
    """RISC-V page table entry flag bits."""

    V = 1 << 0
    R = 1 << 1
    W = 1 << 2
    X = 1 << 3
    U = 1 << 4
    G = 1 << 5
    A = 1 << 6
    D = 1 << 7

    @classmethod
    def from_bits_truncate(cls, bits):
        """Keep only the bits that name a flag (the low eight)."""
        return cls(bits & 0xFF)

    @classmethod
    def from_mapping(cls, flags):
        """Encode generic mapping flags."""
        flags = MappingFlags(flags)
        if not flags:
            return cls(0)
        ret = cls.V
        for generic, bit in _PAIRS:
            if generic in flags:
                ret |= bit
        return ret

    def to_mapping(self):
        """Decode into generic mapping flags."""
        if PTEFlags.V not in self:
            return MappingFlags(0)
        ret = MappingFlags(0)
        for generic, bit in _PAIRS:
            if bit in self:
                ret |= generic
        return ret


_PAIRS = (
    (MappingFlags.READ, PTEFlags.R),
    (MappingFlags.WRITE, PTEFlags.W),
    (MappingFlags.EXECUTE, PTEFlags.X),
    (MappingFlags.USER, PTEFlags.U),
)


class Rv64PTE(GenericPTE):
    """Sv39 and Sv48 page table entry for RV64 systems."""

    __slots__ = ()

    PHYS_ADDR_MASK = (1 << 54) - (1 << 10)  # bits 10..54

    @staticmethod
    def _attr(flags):
        attr = PTEFlags.from_mapping(flags) | PTEFlags.A | PTEFlags.D
        assert attr & (PTEFlags.R | PTEFlags.X), "leaf entry must be readable or executable"
        return int(attr)

    @classmethod
    def _pack(cls, paddr):
        return (paddr >> 2) & cls.PHYS_ADDR_MASK

    @classmethod
    def new_page(cls, paddr, flags, is_huge):
        return cls(cls._attr(flags) | cls._pack(paddr))

    @classmethod
    def new_table(cls, paddr):
        return cls(int(PTEFlags.V) | cls._pack(paddr))

    def paddr(self):
        return (self.raw & self.PHYS_ADDR_MASK) << 2

    def set_paddr(self, paddr):
        self.raw = (self.raw & ~self.PHYS_ADDR_MASK) | self._pack(paddr)

    def flags(self):
        return PTEFlags.from_bits_truncate(self.raw).to_mapping()

    def set_flags(self, flags, is_huge):
        self.raw = (self.raw & self.PHYS_ADDR_MASK) | self._attr(flags)

    def is_present(self):
        return bool(self.raw & PTEFlags.V)

    def is_huge(self):
        return bool(self.raw & (PTEFlags.R | PTEFlags.X))