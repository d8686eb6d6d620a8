"""Architecture metadata and ready-made page table constructors."""

from __future__ import annotations

from .entry_aarch64 import A64PTE
from .entry_loongarch64 import LA64PTE
from .entry_riscv import Rv64PTE
from .entry_x86_64 import X64PTE
from .paging import PagingMetaData
from .table64 import PageTable64


class X64PagingMetaData(PagingMetaData):
    """Metadata of x86_64 4-level page tables."""

    LEVELS = 4
    PA_MAX_BITS = 52
    VA_MAX_BITS = 48


class A64PagingMetaData(PagingMetaData):
    """Metadata of AArch64 VMSAv8-64 translation tables."""

    LEVELS = 4
    PA_MAX_BITS = 48
    VA_MAX_BITS = 48

    def vaddr_is_valid(self, vaddr):
        """Whether the bits above bit 47 are all zeros or all ones."""
        if vaddr < 0:
            return False
        top_bits = vaddr >> self.VA_MAX_BITS
        return top_bits == 0 or top_bits == 0xFFFF


class LA64MetaData(PagingMetaData):
    """Metadata of LoongArch64 page tables (dir3, dir2, dir1 and pt)."""

    LEVELS = 4
    PA_MAX_BITS = 48
    VA_MAX_BITS = 48

    # PWCL: PTBase 12, PTWidth 9, Dir1Base 21, Dir1Width 9,
    # Dir2Base 30, Dir2Width 9, PTEWidth 0.
    PWCL_VALUE = 12 | (9 << 5) | (21 << 10) | (9 << 15) | (30 << 20) | (9 << 25)
    # PWCH: Dir3Base 39, Dir3Width 9, Dir4 unused, hardware walker disabled.
    PWCH_VALUE = 39 | (9 << 6)


class Sv39MetaData(PagingMetaData):
    """Metadata of RISC-V Sv39 (3-level) page tables."""

    LEVELS = 3
    PA_MAX_BITS = 56
    VA_MAX_BITS = 39


class Sv48MetaData(PagingMetaData):
    """Metadata of RISC-V Sv48 (4-level) page tables."""

    LEVELS = 4
    PA_MAX_BITS = 56
    VA_MAX_BITS = 48


def x64_page_table(handler, flush=None):
    """Create an x86_64 page table backed by ``handler``."""
    return PageTable64(X64PagingMetaData(flush), X64PTE, handler)


def a64_page_table(handler, flush=None):
    """Create an AArch64 translation table backed by ``handler``."""
    return PageTable64(A64PagingMetaData(flush), A64PTE, handler)


def la64_page_table(handler, flush=None):
    """Create a LoongArch64 page table backed by ``handler``."""
    return PageTable64(LA64MetaData(flush), LA64PTE, handler)


def sv39_page_table(handler, flush=None):
    """Create a RISC-V Sv39 page table backed by ``handler``."""
    return PageTable64(Sv39MetaData(flush), Rv64PTE, handler)


def sv48_page_table(handler, flush=None):
    """Create a RISC-V Sv48 page table backed by ``handler``."""
    return PageTable64(Sv48MetaData(flush), Rv64PTE, handler)