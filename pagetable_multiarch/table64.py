"""A generic multi-level page table for 64-bit platforms."""

from __future__ import annotations

import logging

from .flags import MappingFlags
from .paging import (
    ENTRY_COUNT,
    AlreadyMappedError,
    MappedToHugePageError,
    NoMemoryError,
    NotAlignedError,
    NotMappedError,
    PageSize,
    PagingError,
    TlbFlush,
    TlbFlushAll,
)

logger = logging.getLogger(__name__)

_INDEX_MASK = ENTRY_COUNT - 1


def _p4_index(vaddr):
    return (vaddr >> (12 + 27)) & _INDEX_MASK


def _p3_index(vaddr):
    return (vaddr >> (12 + 18)) & _INDEX_MASK


def _p2_index(vaddr):
    return (vaddr >> (12 + 9)) & _INDEX_MASK


def _p1_index(vaddr):
    return (vaddr >> 12) & _INDEX_MASK


class PageTable64:
    """A 3- or 4-level page table whose frames come from a paging handler.

    Intermediate tables are tracked through the entries themselves and are
    returned to the handler by :meth:`close`, or when leaving a ``with`` block.
    """

    def __init__(self, metadata, pte_type, handler):
        if metadata.LEVELS not in (3, 4):
            raise ValueError(f"unsupported number of levels: {metadata.LEVELS}")
        self._meta = metadata
        self._pte = pte_type
        self._handler = handler
        self._closed = False
        self._root = self._alloc_table()

    def root_paddr(self):
        """Physical address of the root table."""
        return self._root

    # -- single pages -------------------------------------------------------

    def map(self, vaddr, target, page_size, flags):
        """Map the page at ``vaddr`` to the frame at ``target``.

        ``target`` is aligned down to the page size. Raises
        :class:`AlreadyMappedError` if the entry is in use.
        """
        page_size = PageSize(page_size)
        table, idx = self._get_entry_or_create(vaddr, page_size)
        if not self._pte(table[idx]).is_unused():
            raise AlreadyMappedError(f"{vaddr:#x} is already mapped")
        aligned = target & ~(page_size.value - 1)
        entry = self._pte.new_page(aligned, MappingFlags(flags), page_size.is_huge())
        table[idx] = entry.raw
        return TlbFlush(self._meta, vaddr)

    def remap(self, vaddr, paddr, flags):
        """Replace both the target frame and the flags of the mapping at ``vaddr``.

        Returns the page size and a TLB flush token.
        """
        table, idx, size = self._get_entry(vaddr)
        entry = self._pte(table[idx])
        entry.set_paddr(paddr)
        entry.set_flags(MappingFlags(flags), size.is_huge())
        table[idx] = entry.raw
        return size, TlbFlush(self._meta, vaddr)

    def protect(self, vaddr, flags):
        """Replace the flags of the mapping at ``vaddr``.

        Returns the page size and a TLB flush token.
        """
        table, idx, size = self._get_entry(vaddr)
        entry = self._pte(table[idx])
        if not entry.is_present():
            raise NotMappedError(f"{vaddr:#x} is not mapped")
        entry.set_flags(MappingFlags(flags), size.is_huge())
        table[idx] = entry.raw
        return size, TlbFlush(self._meta, vaddr)

    def unmap(self, vaddr):
        """Remove the mapping at ``vaddr``.

        Returns the physical address, the page size and a TLB flush token.
        """
        table, idx, size = self._get_entry(vaddr)
        entry = self._pte(table[idx])
        present = entry.is_present()
        paddr = entry.paddr()
        table[idx] = 0
        if not present:
            raise NotMappedError(f"{vaddr:#x} is not mapped")
        return paddr, size, TlbFlush(self._meta, vaddr)

    def query(self, vaddr):
        """Translate ``vaddr``; return the physical address, flags and page size."""
        table, idx, size = self._get_entry(vaddr)
        entry = self._pte(table[idx])
        if not entry.is_present():
            raise NotMappedError(f"{vaddr:#x} is not mapped")
        return entry.paddr() + size.align_offset(vaddr), entry.flags(), size

    # -- regions ------------------------------------------------------------

    def map_region(self, vaddr, get_paddr, size, flags, allow_huge, flush_tlb_by_page):
        """Map ``size`` bytes starting at ``vaddr``.

        ``get_paddr`` gives the physical address for each virtual page. The
        address and size must be 4K aligned. Huge pages are used where
        ``allow_huge`` is set and both addresses and the remaining size allow.
        """
        flags = MappingFlags(flags)
        if not PageSize.SIZE_4K.is_aligned(vaddr) or not PageSize.SIZE_4K.is_aligned(size):
            raise NotAlignedError(f"region {vaddr:#x}+{size:#x} is not 4K aligned")
        logger.debug(
            "map_region(%#x): [%#x, %#x) %r", self._root, vaddr, vaddr + size, flags
        )
        while size > 0:
            paddr = get_paddr(vaddr)
            page_size = self._pick_page_size(vaddr, paddr, size, allow_huge)
            try:
                tlb = self.map(vaddr, paddr, page_size, flags)
            except PagingError as err:
                logger.error(
                    "failed to map page: %#x(%r) -> %#x, %r", vaddr, page_size, paddr, err
                )
                raise
            if flush_tlb_by_page:
                self._meta.flush_tlb(vaddr)
                tlb.flush()
            else:
                tlb.ignore()
            vaddr += page_size.value
            size -= page_size.value
        return TlbFlushAll(self._meta)

    @staticmethod
    def _pick_page_size(vaddr, paddr, size, allow_huge):
        if allow_huge:
            for candidate in (PageSize.SIZE_1G, PageSize.SIZE_2M):
                if (
                    candidate.is_aligned(vaddr)
                    and candidate.is_aligned(paddr)
                    and size >= candidate.value
                ):
                    return candidate
        return PageSize.SIZE_4K

    def unmap_region(self, vaddr, size, flush_tlb_by_page):
        """Unmap ``size`` bytes starting at ``vaddr``, following huge pages."""
        logger.debug("unmap_region(%#x) [%#x, %#x)", self._root, vaddr, vaddr + size)
        while size > 0:
            try:
                _, page_size, tlb = self.unmap(vaddr)
            except PagingError as err:
                logger.error("failed to unmap page: %#x, %r", vaddr, err)
                raise
            self._finish_region_step(tlb, flush_tlb_by_page)
            self._check_step(vaddr, size, page_size)
            vaddr += page_size.value
            size -= page_size.value
        return TlbFlushAll(self._meta)

    def protect_region(self, vaddr, size, flags, flush_tlb_by_page):
        """Change the flags of ``size`` bytes starting at ``vaddr``."""
        flags = MappingFlags(flags)
        logger.debug(
            "protect_region(%#x) [%#x, %#x) %r", self._root, vaddr, vaddr + size, flags
        )
        while size > 0:
            try:
                page_size, tlb = self.protect(vaddr, flags)
            except PagingError as err:
                logger.error("failed to protect page: %#x, %r", vaddr, err)
                raise
            self._finish_region_step(tlb, flush_tlb_by_page)
            self._check_step(vaddr, size, page_size)
            vaddr += page_size.value
            size -= page_size.value
        return TlbFlushAll(self._meta)

    @staticmethod
    def _finish_region_step(tlb, flush_tlb_by_page):
        if flush_tlb_by_page:
            tlb.flush()
        else:
            tlb.ignore()

    @staticmethod
    def _check_step(vaddr, size, page_size):
        if not page_size.is_aligned(vaddr):
            raise AssertionError(f"{vaddr:#x} is not aligned to {page_size!r}")
        if page_size.value > size:
            raise AssertionError(f"{page_size!r} exceeds the remaining size {size:#x}")

    # -- traversal ----------------------------------------------------------

    def walk(self, limit, pre_func=None, post_func=None):
        """Visit present entries recursively.

        The callbacks receive ``(level, index, vaddr, entry)`` before and after
        descending. At most ``limit`` present entries are visited per table.
        """
        self._walk(self._root_table(), 0, 0, limit, pre_func, post_func)

    def _walk(self, table, level, start_vaddr, limit, pre_func, post_func):
        levels = self._meta.LEVELS
        shift = 12 + (levels - 1 - level) * 9
        visited = 0
        for index, raw in enumerate(table):
            entry = self._pte(raw)
            if not entry.is_present():
                continue
            vaddr = start_vaddr + (index << shift)
            if pre_func is not None:
                pre_func(level, index, vaddr, entry)
            if level < levels - 1 and not entry.is_huge():
                child = self._next_table(entry)
                self._walk(child, level + 1, vaddr, limit, pre_func, post_func)
            if post_func is not None:
                post_func(level, index, vaddr, entry)
            visited += 1
            if visited >= limit:
                break

    def copy_from(self, other, start, size):
        """Copy the top-level entries covering ``[start, start + size)`` from ``other``."""
        if size == 0:
            return
        index = _p3_index if self._meta.LEVELS == 3 else _p4_index
        start_idx = index(start)
        end_idx = index(start + size - 1) + 1
        if start_idx >= end_idx:
            raise ValueError(f"range {start:#x}+{size:#x} wraps around the table")
        src = other._root_table()
        dst = self._root_table()
        dst[start_idx:end_idx] = src[start_idx:end_idx]

    # -- lifetime -----------------------------------------------------------

    def close(self):
        """Return every intermediate table and the root to the handler."""
        if self._closed:
            return
        last = self._meta.LEVELS - 1

        def release(level, _index, _vaddr, entry):
            if level < last and entry.is_present() and not entry.is_huge():
                self._handler.dealloc_frame(entry.paddr())

        try:
            self.walk(ENTRY_COUNT, None, release)
        except PagingError:
            pass
        self._handler.dealloc_frame(self._root)
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # -- internals ----------------------------------------------------------

    def _root_table(self):
        if self._closed:
            raise ValueError("page table is closed")
        return self._handler.table(self._root)

    def _alloc_table(self):
        paddr = self._handler.alloc_frame()
        if paddr is None:
            raise NoMemoryError("cannot allocate a page table frame")
        self._handler.table(paddr)[:] = [0] * ENTRY_COUNT
        return paddr

    def _next_table(self, entry):
        if entry.paddr() == 0:
            raise NotMappedError("next-level table is not present")
        if entry.is_huge():
            raise MappedToHugePageError("entry maps a huge page")
        return self._handler.table(entry.paddr())

    def _next_table_or_create(self, table, idx):
        entry = self._pte(table[idx])
        if entry.is_unused():
            paddr = self._alloc_table()
            table[idx] = self._pte.new_table(paddr).raw
            return self._handler.table(paddr)
        return self._next_table(entry)

    def _top_table(self, vaddr, create):
        root = self._root_table()
        if self._meta.LEVELS == 3:
            return root
        idx = _p4_index(vaddr)
        if create:
            return self._next_table_or_create(root, idx)
        return self._next_table(self._pte(root[idx]))

    def _get_entry(self, vaddr):
        p3 = self._top_table(vaddr, create=False)
        i3 = _p3_index(vaddr)
        p3e = self._pte(p3[i3])
        if p3e.is_huge():
            return p3, i3, PageSize.SIZE_1G
        p2 = self._next_table(p3e)
        i2 = _p2_index(vaddr)
        p2e = self._pte(p2[i2])
        if p2e.is_huge():
            return p2, i2, PageSize.SIZE_2M
        p1 = self._next_table(p2e)
        return p1, _p1_index(vaddr), PageSize.SIZE_4K

    def _get_entry_or_create(self, vaddr, page_size):
        p3 = self._top_table(vaddr, create=True)
        i3 = _p3_index(vaddr)
        if page_size is PageSize.SIZE_1G:
            return p3, i3
        p2 = self._next_table_or_create(p3, i3)
        i2 = _p2_index(vaddr)
        if page_size is PageSize.SIZE_2M:
            return p2, i2
        p1 = self._next_table_or_create(p2, i2)
        return p1, _p1_index(vaddr)