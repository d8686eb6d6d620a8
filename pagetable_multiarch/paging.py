"""Errors, page sizes, metadata, frame handlers and TLB flush tokens."""

from __future__ import annotations

import abc
import enum
import heapq
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Optional

ENTRY_COUNT = 512
PAGE_SIZE_4K = 0x1000
_U64_MASK = (1 << 64) - 1


class PagingError(Exception):
    """Base class for page table operation failures."""


class NoMemoryError(PagingError):
    """Cannot allocate memory."""


class NotAlignedError(PagingError):
    """The address is not aligned to the page size."""


class NotMappedError(PagingError):
    """The mapping is not present."""


class AlreadyMappedError(PagingError):
    """The mapping is already present."""


class MappedToHugePageError(PagingError):
    """The entry maps a huge page where a next-level table was expected."""


class PageSize(enum.IntEnum):
    """Page sizes supported by the hardware page tables."""

    SIZE_4K = 0x1000
    SIZE_2M = 0x20_0000
    SIZE_1G = 0x4000_0000

    def is_huge(self):
        """Whether this size is larger than 4K."""
        return self is not PageSize.SIZE_4K

    def is_aligned(self, addr_or_size):
        """Whether an address or size is a multiple of this page size."""
        return addr_or_size & (self.value - 1) == 0

    def align_offset(self, addr):
        """Offset of the address within a page of this size."""
        return addr & (self.value - 1)


class PagingMetaData:
    """Architecture-dependent description of a page table format.

    Subclasses set ``LEVELS``, ``PA_MAX_BITS`` and ``VA_MAX_BITS``. The
    ``flush`` callback receives a virtual address, or ``None`` to flush the
    whole TLB.
    """

    LEVELS: ClassVar[int]
    PA_MAX_BITS: ClassVar[int]
    VA_MAX_BITS: ClassVar[int]

    def __init__(self, flush: Optional[Callable[[Optional[int]], Any]] = None):
        missing = [
            name
            for name in ("LEVELS", "PA_MAX_BITS", "VA_MAX_BITS")
            if not hasattr(type(self), name)
        ]
        if missing:
            raise TypeError(
                f"{type(self).__name__} must define {', '.join(missing)}"
            )
        self._flush = flush

    def pa_max_addr(self):
        """The largest valid physical address."""
        return (1 << self.PA_MAX_BITS) - 1

    def paddr_is_valid(self, paddr):
        """Whether a physical address is within range."""
        return 0 <= paddr <= self.pa_max_addr()

    def vaddr_is_valid(self, vaddr):
        """Whether a virtual address has sign-extended top bits."""
        if not 0 <= vaddr <= _U64_MASK:
            return False
        top_mask = (_U64_MASK << (self.VA_MAX_BITS - 1)) & _U64_MASK
        top = vaddr & top_mask
        return top == 0 or top == top_mask

    def flush_tlb(self, vaddr=None):
        """Flush the TLB entry for ``vaddr``, or the whole TLB when ``None``."""
        if self._flush is not None:
            self._flush(vaddr)


class PagingHandler(abc.ABC):
    """OS-dependent helpers for allocating and accessing table frames."""

    @abc.abstractmethod
    def alloc_frame(self):
        """Allocate a 4K physical frame; return its address or ``None``."""

    @abc.abstractmethod
    def dealloc_frame(self, paddr):
        """Free a previously allocated frame."""

    @abc.abstractmethod
    def table(self, paddr):
        """Return the mutable list of raw entries stored in a frame."""


class FrameAllocator(PagingHandler):
    """In-memory handler that hands out frames from a contiguous range."""

    def __init__(self, base, frame_count):
        if base < 0 or base % PAGE_SIZE_4K:
            raise ValueError(f"frame base {base:#x} is not 4K aligned")
        if frame_count < 0:
            raise ValueError("frame count must not be negative")
        self._free = [base + i * PAGE_SIZE_4K for i in range(frame_count)]
        heapq.heapify(self._free)
        self._tables: dict[int, list[int]] = {}

    def alloc_frame(self):
        if not self._free:
            return None
        paddr = heapq.heappop(self._free)
        self._tables[paddr] = [0] * ENTRY_COUNT
        return paddr

    def dealloc_frame(self, paddr):
        if self._tables.pop(paddr, None) is None:
            raise ValueError(f"frame {paddr:#x} is not allocated")
        heapq.heappush(self._free, paddr)

    def table(self, paddr):
        try:
            return self._tables[paddr]
        except KeyError:
            raise ValueError(f"frame {paddr:#x} is not allocated") from None

    def allocated(self):
        """Physical addresses of the frames currently in use."""
        return frozenset(self._tables)


@dataclass
class TlbFlush:
    """Marks that the mapping of one virtual address has changed."""

    metadata: PagingMetaData
    vaddr: int

    def flush(self):
        """Flush the TLB entry for this virtual address."""
        self.metadata.flush_tlb(self.vaddr)

    def ignore(self):
        """Leave the TLB alone; the caller flushes it later."""


@dataclass
class TlbFlushAll:
    """Marks that page table mappings have changed."""

    metadata: PagingMetaData

    def flush_all(self):
        """Flush the entire TLB."""
        self.metadata.flush_tlb(None)

    def ignore(self):
        """Leave the TLB alone; the caller flushes it later."""