"""AArch64 VMSAv8-64 translation table descriptors."""

from __future__ import annotations

import enum
import functools
import operator

from .flags import GenericPTE, MappingFlags


class MemAttr(enum.IntEnum):
    """Memory attribute index into the MAIR register."""

    DEVICE = 0
    NORMAL = 1
    NORMAL_NON_CACHEABLE = 2


# Value for MAIR_ELx matching the indices of MemAttr:
# attr0 Device-nGnRE, attr1 Normal write-back, attr2 Normal non-cacheable.
MAIR_VALUE = 0x44_FF_04
MemAttr.MAIR_VALUE = MAIR_VALUE


class DescriptorAttr(enum.IntFlag):
    """Attribute fields of VMSAv8-64 translation table descriptors."""

    VALID = 1 << 0
    NON_BLOCK = 1 << 1
    ATTR_INDX = 0b111 << 2
    NS = 1 << 5
    AP_EL0 = 1 << 6
    AP_RO = 1 << 7
    INNER = 1 << 8
    SHAREABLE = 1 << 9
    AF = 1 << 10
    NG = 1 << 11
    CONTIGUOUS = 1 << 52
    PXN = 1 << 53
    UXN = 1 << 54
    PXN_TABLE = 1 << 59
    XN_TABLE = 1 << 60
    AP_NO_EL0_TABLE = 1 << 61
    AP_NO_WRITE_TABLE = 1 << 62
    NS_TABLE = 1 << 63

    @classmethod
    def from_bits_truncate(cls, bits):
        """Keep only the bits that belong to a named field."""
        return cls(bits & functools.reduce(operator.or_, map(int, cls.__members__.values())))

    @classmethod
    def from_mem_attr(cls, idx):
        """Descriptor holding only the memory attribute index (and shareability)."""
        idx = MemAttr(idx)
        bits = int(idx) << 2
        if idx in (MemAttr.NORMAL, MemAttr.NORMAL_NON_CACHEABLE):
            bits |= int(cls.INNER) | int(cls.SHAREABLE)
        return cls(bits)

    def mem_attr(self):
        """The memory attribute index field, or ``None`` if it is reserved."""
        idx = (int(self) & int(DescriptorAttr.ATTR_INDX)) >> 2
        try:
            return MemAttr(idx)
        except ValueError:
            return None

    @classmethod
    def from_mapping(cls, flags, el2=False):
        """Encode generic mapping flags; ``el2`` selects the EL2 permission model."""
        flags = MappingFlags(flags)
        if not flags:
            return cls(0)
        if MappingFlags.DEVICE in flags:
            attr = cls.from_mem_attr(MemAttr.DEVICE)
        elif MappingFlags.UNCACHED in flags:
            attr = cls.from_mem_attr(MemAttr.NORMAL_NON_CACHEABLE)
        else:
            attr = cls.from_mem_attr(MemAttr.NORMAL)
        if MappingFlags.READ in flags:
            attr |= cls.VALID
        if MappingFlags.WRITE not in flags:
            attr |= cls.AP_RO
        executable = MappingFlags.EXECUTE in flags
        if el2:
            if not executable:
                attr |= cls.UXN
        elif MappingFlags.USER in flags:
            attr |= cls.AP_EL0 | cls.PXN
            if not executable:
                attr |= cls.UXN
        else:
            attr |= cls.UXN
            if not executable:
                attr |= cls.PXN
        return attr

    def to_mapping(self, el2=False):
        """Decode into generic mapping flags; ``el2`` selects the EL2 permission model."""
        if DescriptorAttr.VALID not in self:
            return MappingFlags(0)
        flags = MappingFlags.READ
        if DescriptorAttr.AP_RO not in self:
            flags |= MappingFlags.WRITE
        if el2:
            never = DescriptorAttr.UXN
        elif DescriptorAttr.AP_EL0 in self:
            flags |= MappingFlags.USER
            never = DescriptorAttr.UXN
        else:
            never = DescriptorAttr.PXN
        if never not in self:
            flags |= MappingFlags.EXECUTE
        flags |= _MEMORY_KIND.get(self.mem_attr(), MappingFlags(0))
        return flags


_MEMORY_KIND = {
    MemAttr.DEVICE: MappingFlags.DEVICE,
    MemAttr.NORMAL_NON_CACHEABLE: MappingFlags.UNCACHED,
}


class A64PTE(GenericPTE):
    """A VMSAv8-64 translation table descriptor (EL1 permission model).

    AttrIndx is 0 for device memory, 1 for normal memory and 2 for normal
    non-cacheable memory; MAIR_ELx must be set to ``MAIR_VALUE``.
    """

    __slots__ = ()

    PHYS_ADDR_MASK = 0x0000_FFFF_FFFF_F000  # bits 12..48
    EL2 = False

    @classmethod
    def _attr(cls, flags, is_huge):
        attr = DescriptorAttr.from_mapping(flags, cls.EL2) | DescriptorAttr.AF
        if not is_huge:
            attr |= DescriptorAttr.NON_BLOCK
        return int(attr)

    @classmethod
    def new_page(cls, paddr, flags, is_huge):
        return cls(cls._attr(flags, is_huge) | (paddr & cls.PHYS_ADDR_MASK))

    @classmethod
    def new_table(cls, paddr):
        attr = DescriptorAttr.NON_BLOCK | DescriptorAttr.VALID
        return cls(int(attr) | (paddr & cls.PHYS_ADDR_MASK))

    def paddr(self):
        return self.raw & self.PHYS_ADDR_MASK

    def set_paddr(self, paddr):
        self.raw = self.raw - self.paddr() + (paddr & self.PHYS_ADDR_MASK)

    def attr(self):
        """The descriptor attribute fields of this entry."""
        return DescriptorAttr.from_bits_truncate(self.raw)

    def flags(self):
        return self.attr().to_mapping(self.EL2)

    def set_flags(self, flags, is_huge):
        self.raw = self.paddr() | self._attr(flags, is_huge)

    def is_present(self):
        return DescriptorAttr.VALID in self.attr()

    def is_huge(self):
        return DescriptorAttr.NON_BLOCK not in self.attr()

    def __repr__(self):
        return (
            f"{type(self).__name__}(raw={self.raw:#x}, paddr={self.paddr():#x}, "
            f"attr={self.attr()!r}, flags={self.flags()!r})"
        )


class A64El2PTE(A64PTE):
    """A VMSAv8-64 descriptor using the EL2 permission model."""

    __slots__ = ()

    EL2 = True